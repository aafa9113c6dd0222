"""
Durable workflow tables.

One row per workflow instance plus one row per completed step. A step row
is the checkpoint: on restart an instance replays its ``run`` method and
every step that already has a row returns the stored result instead of
executing again.

Dependencies: sqlalchemy
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from sqlalchemy import (
    JSON,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker

from regindex.models.enums import WorkflowStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class TimestampMixin:
    """created_at set once on insert; updated_at refreshed on every update."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        nullable=False,
    )


class WorkflowInstanceModel(Base, TimestampMixin):
    """
    A coordinator or worker run.

    Attributes:
        id: Caller-chosen or generated instance id (children use
            ``{parent}-{unit}`` so re-spawning is idempotent)
        workflow_type: Registered workflow name
        params: Input parameters
        status: queued -> running -> complete | errored
        output: Result dict returned by ``run`` (complete only)
        error: Exception message (errored only)
        parent_id: Spawning coordinator, if any
    """

    __tablename__ = "workflow_instances"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)

    workflow_type: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    params: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    status: Mapped[WorkflowStatus] = mapped_column(
        Enum(WorkflowStatus, native_enum=False),
        nullable=False,
        default=WorkflowStatus.QUEUED,
        index=True,
    )

    output: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    error: Mapped[str | None] = mapped_column(Text, nullable=True)

    parent_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)

    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    finished_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class WorkflowStepModel(Base):
    """Checkpointed result of one named step of one instance."""

    __tablename__ = "workflow_steps"
    __table_args__ = (UniqueConstraint("instance_id", "name", name="uq_workflow_step"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    instance_id: Mapped[str] = mapped_column(
        String(255),
        ForeignKey("workflow_instances.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    result: Mapped[Any] = mapped_column(JSON, nullable=True)

    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    completed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        nullable=False,
    )


def create_session_factory(database_url: str) -> sessionmaker:
    """Create the engine, ensure tables exist and return a session factory.

    SQLite connections are shared across worker threads; writes are
    serialized by the engine's write lock.
    """
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False, "timeout": 30}
        db_path = database_url.removeprefix("sqlite:///")
        if db_path and db_path != database_url and ":memory:" not in db_path:
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    engine = create_engine(database_url, connect_args=connect_args, pool_pre_ping=True)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
