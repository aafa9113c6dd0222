"""
HTTP trigger and status API.

Routes:
    POST /workflows/{category}   start a coordinator run for one category
    GET  /workflows/{instance_id} poll a coordinator or worker instance
    GET  /health

The engine lives on ``app.state.engine``. ``create_app()`` without an engine
builds one from settings at startup and shuts it down with the app.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, status
from pydantic import BaseModel

from regindex.errors import WorkflowNotFoundError
from regindex.models.enums import SourceCategory
from regindex.storage.state import WorkflowStateStore
from regindex.workflows.coordinator import CoordinatorWorkflow
from regindex.workflows.runtime import WorkflowEngine

logger = logging.getLogger(__name__)


class TriggerRequest(BaseModel):
    units: list[str] | None = None


class TriggerResponse(BaseModel):
    instanceId: str
    workflowType: str
    status: str
    statusUrl: str
    triggeredAt: str


def get_engine(request: Request) -> WorkflowEngine:
    return request.app.state.engine


router = APIRouter(prefix="/workflows", tags=["workflows"])


@router.post("/{category}", status_code=status.HTTP_202_ACCEPTED, response_model=TriggerResponse)
def trigger_batch(
    category: SourceCategory,
    body: TriggerRequest | None = None,
    engine: WorkflowEngine = Depends(get_engine),
) -> TriggerResponse:
    """Queue a coordinator for ``category``, optionally restricted to ``units``."""
    units = body.units if body and body.units else None
    instance_id = engine.create(
        CoordinatorWorkflow.workflow_type,
        {"category": category.value, "units": units},
    )
    logger.info("Triggered %s batch %s (units=%s)", category.value, instance_id, units or "all")
    return TriggerResponse(
        instanceId=instance_id,
        workflowType=CoordinatorWorkflow.workflow_type,
        status="queued",
        statusUrl=f"/workflows/{instance_id}",
        triggeredAt=datetime.now(timezone.utc).isoformat(),
    )


@router.get("/{instance_id}")
def get_workflow_status(instance_id: str, engine: WorkflowEngine = Depends(get_engine)) -> dict:
    """Current status of an instance; includes ``progress`` while a worker is running."""
    try:
        snapshot = engine.get(instance_id)
    except WorkflowNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    result = snapshot.to_dict()
    if not snapshot.status.is_terminal:
        state = WorkflowStateStore(engine.services.storage, snapshot.workflow_type, instance_id)
        progress = state.get("progress")
        if progress is not None:
            result["progress"] = progress
    return result


def create_app(engine: WorkflowEngine | None = None) -> FastAPI:
    """Create the API application, optionally around an existing engine."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = False
        if getattr(app.state, "engine", None) is None:
            from regindex.workflows.factory import build_engine

            app.state.engine = build_engine()
            owned = True
        yield
        if owned:
            app.state.engine.shutdown(wait=False)

    app = FastAPI(
        title="regindex",
        description="Regulatory corpus ingestion workflows",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.engine = engine

    @app.get("/health")
    def health() -> dict:
        return {"status": "healthy"}

    app.include_router(router)
    return app
