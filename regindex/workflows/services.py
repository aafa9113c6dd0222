"""Collaborators shared by every workflow instance."""

from dataclasses import dataclass
from typing import Callable

from regindex.embedding.provider import EmbeddingProvider
from regindex.fetching.client import RateLimitedClient
from regindex.models.unit import Unit
from regindex.sources.base import SourceAdapter
from regindex.sources.registry import get_adapter
from regindex.sources.units import UnitCatalog
from regindex.storage.object_store import ObjectStorage
from regindex.vectorstore.chroma_store import ChromaVectorIndex
from regindex.workflows.metadata_sync import MetadataSync, NullMetadataSync


@dataclass
class WorkflowServices:
    storage: ObjectStorage
    client: RateLimitedClient
    embedding_provider: EmbeddingProvider
    vector_index: ChromaVectorIndex
    catalog: UnitCatalog
    metadata_sync: MetadataSync = NullMetadataSync()
    adapter_factory: Callable[[Unit, RateLimitedClient], SourceAdapter] = get_adapter
    child_poll_interval: float = 2.0
