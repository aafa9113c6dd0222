"""Enumeration types for regindex data models."""

from enum import Enum


class SourceCategory(str, Enum):
    FEDERAL = "federal"
    STATE = "state"
    COUNTY = "county"
    MUNICIPAL = "municipal"


class Platform(str, Enum):
    """Publishing platform of a unit; selects the source adapter."""

    ECFR = "ecfr"
    TEXAS_STATUTES = "texas_statutes"
    TEXAS_TAC = "texas_tac"
    MUNICODE = "municode"
    ELAWS = "elaws"


class WorkflowStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETE = "complete"
    ERRORED = "errored"

    @property
    def is_terminal(self) -> bool:
        return self in (WorkflowStatus.COMPLETE, WorkflowStatus.ERRORED)
