"""Unit data model."""

from dataclasses import dataclass, field

from regindex.models.enums import Platform, SourceCategory


@dataclass(frozen=True)
class Unit:
    """An independently processable regulatory source.

    One CFR title, one state statute code, one county or one city. Built
    from static configuration and never mutated at runtime.
    """

    id: str
    name: str
    category: SourceCategory
    platform: Platform
    base_url: str
    jurisdiction: str
    enabled: bool = True
    code_name: str = "Code of Ordinances"
    categories: tuple[str, ...] = field(default_factory=tuple)
    skip_reason: str | None = None

    def __post_init__(self):
        if not isinstance(self.category, SourceCategory):
            object.__setattr__(self, "category", SourceCategory(self.category))
        if not isinstance(self.platform, Platform):
            object.__setattr__(self, "platform", Platform(self.platform))
        if not self.id:
            raise ValueError("id must not be empty")
        if not self.base_url:
            raise ValueError("base_url must not be empty")

    @property
    def tac_title(self) -> str | None:
        """Title number of a Texas Administrative Code unit (``tac-16`` -> ``16``)."""
        if self.platform != Platform.TEXAS_TAC:
            return None
        return self.id.removeprefix("tac-")

    @property
    def primary_category(self) -> str | None:
        return self.categories[0] if self.categories else None

    def summary(self) -> dict:
        """Small JSON-safe description used in step results."""
        return {"unitId": self.id, "name": self.name, "platform": self.platform.value}
