"""Durable step runtime for coordinator and worker workflows.

Each workflow instance runs ``Workflow.run`` on a thread pool. Work inside
``run`` is split into named steps via ``StepContext.do``; a step's JSON
result is checkpointed in the database as soon as it completes. If the
process dies, ``WorkflowEngine.resume_incomplete`` re-runs unfinished
instances from the top and every checkpointed step returns its stored
result, so execution effectively resumes at the first incomplete step.

Coordinators and workers use separate pools: a coordinator blocks while
awaiting its children, and the children must never queue behind it.
"""

import json
import logging
import threading
import time
import uuid
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import wait as wait_futures
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from regindex.errors import StepPayloadTooLargeError, WorkflowNotFoundError
from regindex.fetching.retry import DEFAULT_RETRY, RetryConfig, retry
from regindex.models.enums import WorkflowStatus
from regindex.workflows.db import WorkflowInstanceModel, WorkflowStepModel

logger = logging.getLogger(__name__)

DEFAULT_STEP_PAYLOAD_LIMIT = 1024 * 1024

WORKER_POOL = "worker"
COORDINATOR_POOL = "coordinator"


@dataclass
class WorkflowEvent:
    """Input handed to ``Workflow.run``."""

    instance_id: str
    params: dict
    parent_id: str | None = None


@dataclass
class InstanceStatus:
    """Snapshot of a workflow instance row."""

    instance_id: str
    workflow_type: str
    status: WorkflowStatus
    params: dict = field(default_factory=dict)
    output: dict | None = None
    error: str | None = None
    parent_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_model(cls, row: WorkflowInstanceModel) -> "InstanceStatus":
        return cls(
            instance_id=row.id,
            workflow_type=row.workflow_type,
            status=row.status,
            params=row.params or {},
            output=row.output,
            error=row.error,
            parent_id=row.parent_id,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def to_dict(self) -> dict:
        result = {
            "instanceId": self.instance_id,
            "workflowType": self.workflow_type,
            "status": self.status.value,
        }
        if self.output is not None:
            result["output"] = self.output
        if self.error is not None:
            result["error"] = self.error
        if self.parent_id is not None:
            result["parentId"] = self.parent_id
        return result


class Workflow(ABC):
    """Base class for durable workflows.

    Subclasses set ``workflow_type`` (the registry name and state-store
    namespace) and ``pool``, and implement ``run``. ``run`` must be
    deterministic apart from what happens inside steps.
    """

    workflow_type: str
    pool: str = WORKER_POOL

    def __init__(self, engine: "WorkflowEngine", services):
        self.engine = engine
        self.services = services

    @abstractmethod
    def run(self, event: WorkflowEvent, step: "StepContext") -> dict:
        ...


class StepContext:
    """Checkpointing step executor bound to one instance."""

    def __init__(self, engine: "WorkflowEngine", instance_id: str, workflow_type: str):
        self._engine = engine
        self.instance_id = instance_id
        self.workflow_type = workflow_type

    def do(self, name: str, fn: Callable[[], Any], retry_config: RetryConfig | None = None) -> Any:
        """Run ``fn`` as step ``name`` unless it already completed.

        The result must be JSON-serializable and no larger than the payload
        limit; the caller receives the JSON round-tripped value so a fresh
        run and a replay see identical data.
        """
        found, result = self._engine._load_step(self.instance_id, name)
        if found:
            logger.debug("Step %s/%s replayed from checkpoint", self.instance_id, name)
            return result

        attempts = 0

        def attempt():
            nonlocal attempts
            attempts += 1
            return fn()

        label = f"{self.workflow_type}/{self.instance_id}/{name}"
        value = retry(attempt, label, retry_config or DEFAULT_RETRY, sleep=self._engine.sleep)

        payload = json.dumps(value)
        size = len(payload.encode("utf-8"))
        if size > self._engine.step_payload_limit:
            raise StepPayloadTooLargeError(name, size, self._engine.step_payload_limit)

        stored = json.loads(payload)
        self._engine._save_step(self.instance_id, name, stored, attempts)
        logger.info("Step %s completed (%d attempt(s))", label, attempts)
        return stored


class WorkflowEngine:
    """Creates, runs, tracks and resumes workflow instances."""

    def __init__(
        self,
        services,
        session_factory: sessionmaker,
        max_workers: int = 4,
        max_coordinators: int = 2,
        step_payload_limit: int = DEFAULT_STEP_PAYLOAD_LIMIT,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.services = services
        self.step_payload_limit = step_payload_limit
        self.sleep = sleep
        self._session_factory = session_factory
        self._workflows: dict[str, type[Workflow]] = {}
        self._pools = {
            WORKER_POOL: ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="regindex-worker"),
            COORDINATOR_POOL: ThreadPoolExecutor(
                max_workers=max_coordinators, thread_name_prefix="regindex-coordinator"
            ),
        }
        self._futures: dict[str, Future] = {}
        self._futures_lock = threading.Lock()
        self._write_lock = threading.Lock()

    # -- registry -----------------------------------------------------------

    def register(self, workflow_cls: type[Workflow]) -> type[Workflow]:
        if workflow_cls.pool not in self._pools:
            raise ValueError(f"Unknown pool '{workflow_cls.pool}' for {workflow_cls.__name__}")
        self._workflows[workflow_cls.workflow_type] = workflow_cls
        return workflow_cls

    @property
    def workflow_types(self) -> list[str]:
        return sorted(self._workflows)

    # -- instances ----------------------------------------------------------

    def create(
        self,
        workflow_type: str,
        params: dict | None = None,
        instance_id: str | None = None,
        parent_id: str | None = None,
    ) -> str:
        """Create and schedule an instance. Returns its id.

        Creating an instance id that already exists schedules nothing new
        and returns the existing id; a terminal instance is left as-is.
        """
        if workflow_type not in self._workflows:
            raise ValueError(f"Unknown workflow type: {workflow_type}")

        instance_id = instance_id or f"{workflow_type}-{uuid.uuid4().hex[:12]}"

        with self._write_lock, self._session_factory() as session:
            existing = session.get(WorkflowInstanceModel, instance_id)
            if existing is not None:
                if existing.workflow_type != workflow_type:
                    raise ValueError(
                        f"Instance {instance_id} already exists as {existing.workflow_type}"
                    )
                terminal = existing.status.is_terminal
            else:
                session.add(
                    WorkflowInstanceModel(
                        id=instance_id,
                        workflow_type=workflow_type,
                        params=params or {},
                        status=WorkflowStatus.QUEUED,
                        parent_id=parent_id,
                    )
                )
                session.commit()
                terminal = False
                logger.info("Created %s instance %s", workflow_type, instance_id)

        if not terminal:
            self._submit(instance_id, workflow_type)
        return instance_id

    def get(self, instance_id: str) -> InstanceStatus:
        with self._session_factory() as session:
            row = session.get(WorkflowInstanceModel, instance_id)
            if row is None:
                raise WorkflowNotFoundError(f"Workflow instance not found: {instance_id}")
            return InstanceStatus.from_model(row)

    def status(self, instance_id: str) -> WorkflowStatus:
        return self.get(instance_id).status

    def children(self, instance_id: str) -> list[InstanceStatus]:
        with self._session_factory() as session:
            rows = session.scalars(
                select(WorkflowInstanceModel)
                .where(WorkflowInstanceModel.parent_id == instance_id)
                .order_by(WorkflowInstanceModel.created_at)
            ).all()
            return [InstanceStatus.from_model(row) for row in rows]

    def steps(self, instance_id: str) -> list[str]:
        """Names of completed steps, in completion order."""
        with self._session_factory() as session:
            return list(
                session.scalars(
                    select(WorkflowStepModel.name)
                    .where(WorkflowStepModel.instance_id == instance_id)
                    .order_by(WorkflowStepModel.id)
                ).all()
            )

    def wait(
        self,
        instance_id: str,
        poll_interval: float = 1.0,
        timeout: float | None = None,
    ) -> InstanceStatus:
        """Block until the instance reaches a terminal status.

        Raises TimeoutError if ``timeout`` (seconds) elapses first.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            snapshot = self.get(instance_id)
            if snapshot.status.is_terminal:
                return snapshot
            if deadline is not None and time.monotonic() >= deadline:
                raise TimeoutError(f"Timed out waiting for {instance_id}")

            with self._futures_lock:
                future = self._futures.get(instance_id)
            if future is not None and not future.done():
                wait_futures([future], timeout=poll_interval)
            else:
                time.sleep(poll_interval)

    def resume_incomplete(self) -> int:
        """Reschedule every queued or running instance. Returns the count."""
        with self._session_factory() as session:
            rows = session.execute(
                select(WorkflowInstanceModel.id, WorkflowInstanceModel.workflow_type).where(
                    WorkflowInstanceModel.status.in_([WorkflowStatus.QUEUED, WorkflowStatus.RUNNING])
                )
            ).all()

        resumed = 0
        for instance_id, workflow_type in rows:
            if workflow_type not in self._workflows:
                logger.warning("Cannot resume %s: unknown workflow type %s", instance_id, workflow_type)
                continue
            if self._submit(instance_id, workflow_type):
                resumed += 1
        if resumed:
            logger.info("Resumed %d incomplete workflow instances", resumed)
        return resumed

    def shutdown(self, wait: bool = True) -> None:
        # Coordinators first: they may still be creating children
        self._pools[COORDINATOR_POOL].shutdown(wait=wait)
        self._pools[WORKER_POOL].shutdown(wait=wait)

    # -- execution ----------------------------------------------------------

    def _submit(self, instance_id: str, workflow_type: str) -> bool:
        workflow_cls = self._workflows[workflow_type]
        with self._futures_lock:
            current = self._futures.get(instance_id)
            if current is not None and not current.done():
                return False
            self._futures[instance_id] = self._pools[workflow_cls.pool].submit(self._execute, instance_id)
        return True

    def _execute(self, instance_id: str) -> None:
        snapshot = self.get(instance_id)
        if snapshot.status.is_terminal:
            return

        workflow = self._workflows[snapshot.workflow_type](self, self.services)
        event = WorkflowEvent(instance_id=instance_id, params=snapshot.params, parent_id=snapshot.parent_id)
        step = StepContext(self, instance_id, snapshot.workflow_type)

        self._set_running(instance_id)
        logger.info("Running %s instance %s", snapshot.workflow_type, instance_id)

        try:
            output = workflow.run(event, step)
            output = json.loads(json.dumps(output))
        except Exception as e:
            logger.exception("Workflow %s errored", instance_id)
            self._finish(instance_id, WorkflowStatus.ERRORED, error=str(e) or type(e).__name__)
            return

        self._finish(instance_id, WorkflowStatus.COMPLETE, output=output)
        logger.info("Workflow %s complete", instance_id)

    def _set_running(self, instance_id: str) -> None:
        with self._write_lock, self._session_factory() as session:
            row = session.get(WorkflowInstanceModel, instance_id)
            row.status = WorkflowStatus.RUNNING
            row.started_at = row.started_at or datetime.now(timezone.utc)
            session.commit()

    def _finish(
        self,
        instance_id: str,
        status: WorkflowStatus,
        output: dict | None = None,
        error: str | None = None,
    ) -> None:
        with self._write_lock, self._session_factory() as session:
            row = session.get(WorkflowInstanceModel, instance_id)
            row.status = status
            row.output = output
            row.error = error
            row.finished_at = datetime.now(timezone.utc)
            session.commit()

    def _load_step(self, instance_id: str, name: str) -> tuple[bool, Any]:
        with self._session_factory() as session:
            row = session.scalars(
                select(WorkflowStepModel).where(
                    WorkflowStepModel.instance_id == instance_id,
                    WorkflowStepModel.name == name,
                )
            ).first()
            if row is None:
                return False, None
            return True, row.result

    def _save_step(self, instance_id: str, name: str, result: Any, attempts: int) -> None:
        with self._write_lock, self._session_factory() as session:
            session.add(
                WorkflowStepModel(instance_id=instance_id, name=name, result=result, attempts=attempts)
            )
            session.commit()
