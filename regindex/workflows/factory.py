"""Wire settings into a ready-to-use WorkflowEngine."""

import logging

from config.settings import Settings, get_settings
from regindex.fetching.client import RateLimitedClient
from regindex.sources.units import UnitCatalog
from regindex.storage.object_store import build_object_storage
from regindex.vectorstore.chroma_store import ChromaVectorIndex
from regindex.workflows.coordinator import CoordinatorWorkflow
from regindex.workflows.db import create_session_factory
from regindex.workflows.metadata_sync import build_metadata_sync
from regindex.workflows.runtime import WorkflowEngine
from regindex.workflows.services import WorkflowServices
from regindex.workflows.worker import UnitWorkflow

logger = logging.getLogger(__name__)


def build_services(settings: Settings | None = None) -> WorkflowServices:
    """Create the production collaborators. Loads the embedding model."""
    from regindex.embedding.sentence_transformer import SentenceTransformerEmbeddingProvider

    settings = settings or get_settings()
    return WorkflowServices(
        storage=build_object_storage(settings),
        client=RateLimitedClient(
            min_interval=settings.regindex_fetch_min_interval,
            user_agent=settings.regindex_user_agent,
            timeout=settings.regindex_fetch_timeout,
        ),
        embedding_provider=SentenceTransformerEmbeddingProvider(settings.regindex_embedding_model),
        vector_index=ChromaVectorIndex(
            path=str(settings.chroma_path),
            collection_name=settings.regindex_chroma_collection,
        ),
        catalog=UnitCatalog(),
        metadata_sync=build_metadata_sync(settings.regindex_metadata_sync_url),
        child_poll_interval=settings.regindex_child_poll_interval,
    )


def build_engine(
    settings: Settings | None = None,
    services: WorkflowServices | None = None,
    resume: bool = True,
) -> WorkflowEngine:
    """Create an engine with both workflows registered.

    With ``resume`` set, instances left queued or running by a previous
    process are rescheduled immediately.
    """
    settings = settings or get_settings()
    engine = WorkflowEngine(
        services=services or build_services(settings),
        session_factory=create_session_factory(settings.runtime_db_url),
        max_workers=settings.regindex_max_concurrent_workers,
        max_coordinators=settings.regindex_max_concurrent_coordinators,
        step_payload_limit=settings.regindex_step_payload_limit,
    )
    engine.register(UnitWorkflow)
    engine.register(CoordinatorWorkflow)
    logger.info(
        "Workflow engine ready (%d workers, %d coordinators, runtime db %s)",
        settings.regindex_max_concurrent_workers,
        settings.regindex_max_concurrent_coordinators,
        settings.runtime_db_url,
    )

    if resume:
        engine.resume_incomplete()
    return engine
