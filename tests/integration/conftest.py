"""Shared fixtures: a real engine over SQLite with mocked external services."""

from unittest.mock import MagicMock

import pytest

from regindex.embedding.provider import EmbeddingProvider
from regindex.fetching.client import RateLimitedClient
from regindex.models.record import RawRecord
from regindex.sources.base import SourceValidation
from regindex.sources.units import UnitCatalog
from regindex.storage.object_store import InMemoryObjectStorage
from regindex.vectorstore.chroma_store import ChromaVectorIndex
from regindex.workflows.coordinator import CoordinatorWorkflow
from regindex.workflows.db import create_session_factory
from regindex.workflows.runtime import WorkflowEngine
from regindex.workflows.services import WorkflowServices
from regindex.workflows.worker import UnitWorkflow


def _records(unit_id: str, count: int) -> list[RawRecord]:
    return [
        RawRecord(
            unit_id=unit_id,
            chapter="1",
            part="1",
            section=f"1.{i}",
            heading=f"Section 1.{i}",
            text=f"Section 1.{i}. Every regulated establishment shall keep records.",
            source_url=f"https://example.gov/{unit_id}/1.{i}",
        )
        for i in range(count)
    ]


@pytest.fixture
def make_records():
    """Factory for ``count`` short records, one chunk each."""
    return _records


class FakeSources:
    """Adapter factory serving canned records per unit id."""

    def __init__(self):
        self.records: dict[str, list[RawRecord]] = {}
        self.unreachable: set[str] = set()

    def __call__(self, unit, client):
        adapter = MagicMock()
        if unit.id in self.unreachable:
            adapter.validate_source.return_value = SourceValidation(accessible=False, error="HTTP 503")
        else:
            adapter.validate_source.return_value = SourceValidation(accessible=True)
        adapter.fetch_records.side_effect = lambda u: iter(self.records.get(u.id, []))
        return adapter


@pytest.fixture
def sources():
    return FakeSources()


@pytest.fixture
def embedding_provider():
    provider = MagicMock(spec=EmbeddingProvider)
    provider.embed.side_effect = lambda texts: [[0.1, 0.2, 0.3] for _ in texts]
    return provider


@pytest.fixture
def vector_index():
    index = MagicMock(spec=ChromaVectorIndex)
    index.upsert.side_effect = lambda records: len(records)
    return index


@pytest.fixture
def storage():
    return InMemoryObjectStorage()


@pytest.fixture
def services(storage, sources, embedding_provider, vector_index):
    metadata_sync = MagicMock()
    metadata_sync.sync.return_value = True
    return WorkflowServices(
        storage=storage,
        client=MagicMock(spec=RateLimitedClient),
        embedding_provider=embedding_provider,
        vector_index=vector_index,
        catalog=UnitCatalog(),
        metadata_sync=metadata_sync,
        adapter_factory=sources,
        child_poll_interval=0.01,
    )


@pytest.fixture
def engine(services, tmp_path):
    engine = WorkflowEngine(
        services,
        create_session_factory(f"sqlite:///{tmp_path / 'runtime.db'}"),
        max_workers=4,
        max_coordinators=2,
        sleep=lambda seconds: None,
    )
    engine.register(UnitWorkflow)
    engine.register(CoordinatorWorkflow)
    yield engine
    engine.shutdown(wait=True)
