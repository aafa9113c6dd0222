"""Workflow result data model."""

from dataclasses import dataclass, field


@dataclass
class WorkflowResult:
    """Terminal outcome of a worker or coordinator run."""

    success: bool
    duration_ms: int
    data: dict = field(default_factory=dict)
    error: str | None = None

    def __post_init__(self):
        if self.duration_ms < 0:
            raise ValueError("duration_ms must be >= 0")

    def to_dict(self) -> dict:
        result = {
            "success": self.success,
            "durationMs": self.duration_ms,
            "data": self.data,
        }
        if self.error is not None:
            result["error"] = self.error
        return result

    @classmethod
    def from_dict(cls, data: dict) -> "WorkflowResult":
        return cls(
            success=bool(data.get("success")),
            duration_ms=int(data.get("durationMs", 0)),
            data=dict(data.get("data") or {}),
            error=data.get("error"),
        )
