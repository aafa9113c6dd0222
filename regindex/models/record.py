"""Raw record data model."""

from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass
class Subsection:
    """A lettered or numbered subdivision of a section, e.g. ``(a)(1)``."""

    id: str
    text: str


@dataclass
class RawRecord:
    """One fetched section, ordinance or rule before chunking."""

    unit_id: str
    chapter: str
    section: str
    heading: str
    text: str
    source_url: str
    part: str | None = None
    subsections: list[Subsection] = field(default_factory=list)
    fetched_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def __post_init__(self):
        if not self.unit_id:
            raise ValueError("unit_id must not be empty")
        if not self.source_url:
            raise ValueError("source_url must not be empty")
        self.subsections = [
            s if isinstance(s, Subsection) else Subsection(**s) for s in self.subsections
        ]

    def to_dict(self) -> dict:
        return {
            "unitId": self.unit_id,
            "chapter": self.chapter,
            "section": self.section,
            "part": self.part,
            "heading": self.heading,
            "text": self.text,
            "sourceUrl": self.source_url,
            "fetchedAt": self.fetched_at,
            "subsections": [{"id": s.id, "text": s.text} for s in self.subsections],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RawRecord":
        return cls(
            unit_id=data["unitId"],
            chapter=data.get("chapter", ""),
            section=data.get("section", ""),
            part=data.get("part"),
            heading=data.get("heading", ""),
            text=data.get("text", ""),
            source_url=data["sourceUrl"],
            fetched_at=data.get("fetchedAt", ""),
            subsections=data.get("subsections", []),
        )
