"""Integration tests for the per-unit worker workflow."""

from unittest.mock import MagicMock

import pytest

from regindex.fetching.client import DomainThrottle, RateLimitedClient
from regindex.models.enums import WorkflowStatus
from regindex.sources.registry import get_adapter
from regindex.storage.object_store import InMemoryObjectStorage
from regindex.workflows.db import WorkflowInstanceModel, create_session_factory
from regindex.workflows.runtime import WorkflowEngine
from regindex.workflows.worker import UnitWorkflow


def _run(engine, category, unit_id):
    instance_id = engine.create(UnitWorkflow.workflow_type, {"category": category, "unitId": unit_id})
    return instance_id, engine.wait(instance_id, poll_interval=0.01, timeout=30)


class TestZeroRecords:
    """A unit with nothing to fetch succeeds without touching embed or upsert."""

    def test_short_circuits_to_cleanup(self, engine, sources, embedding_provider, vector_index, storage):
        sources.records["21"] = []

        instance_id, snapshot = _run(engine, "federal", "21")

        assert snapshot.status == WorkflowStatus.COMPLETE
        assert snapshot.output["success"] is True
        assert snapshot.output["data"] == {
            "unitId": "21",
            "unitName": "Title 21: Food and Drugs",
            "recordsProcessed": 0,
            "chunksCreated": 0,
            "vectorsUpserted": 0,
        }
        assert embedding_provider.embed.call_count == 0
        assert vector_index.upsert.call_count == 0
        assert engine.steps(instance_id) == ["fetch", "cleanup"]
        assert storage.list("workflows/") == []


class TestFullRun:
    """130 chunks: 3 embedding batches and 2 upsert batches."""

    def test_processes_every_batch(self, engine, sources, make_records, embedding_provider, vector_index, storage):
        sources.records["21"] = make_records("21", 130)

        instance_id, snapshot = _run(engine, "federal", "21")

        assert snapshot.status == WorkflowStatus.COMPLETE
        data = snapshot.output["data"]
        assert snapshot.output["success"] is True
        assert data["recordsProcessed"] == 130
        assert data["chunksCreated"] == 130
        assert data["vectorsUpserted"] == 130

        assert engine.steps(instance_id) == [
            "fetch",
            "chunk",
            "embed-batch-0",
            "embed-batch-1",
            "embed-batch-2",
            "upsert-batch-0",
            "upsert-batch-1",
            "cleanup",
        ]
        assert [len(c.args[0]) for c in embedding_provider.embed.call_args_list] == [64, 64, 2]
        assert [len(c.args[0]) for c in vector_index.upsert.call_args_list] == [100, 30]
        assert storage.list("workflows/") == []

    def test_upserted_records_carry_metadata(self, engine, sources, make_records, vector_index):
        sources.records["PE"] = make_records("PE", 2)

        _run(engine, "state", "PE")

        records = vector_index.upsert.call_args.args[0]
        assert [r["id"] for r in records] == ["tx-statute-pe-1-1.0-0", "tx-statute-pe-1-1.1-0"]
        metadata = records[0]["metadata"]
        assert metadata["sourceId"] == "tx-statute-pe"
        assert metadata["sourceType"] == "tx-statute"
        assert metadata["jurisdiction"] == "TX"
        assert metadata["citation"].startswith("Tex. Penal Code Ann. § 1.0")

    def test_rerun_produces_identical_ids(self, engine, sources, make_records, vector_index):
        sources.records["21"] = make_records("21", 3)

        _run(engine, "federal", "21")
        first = [r["id"] for r in vector_index.upsert.call_args.args[0]]
        engine.create(UnitWorkflow.workflow_type, {"category": "federal", "unitId": "21"}, instance_id="second-run")
        engine.wait("second-run", poll_interval=0.01, timeout=30)
        second = [r["id"] for r in vector_index.upsert.call_args.args[0]]

        assert first == second


class TestFailures:
    """Failures become failure results, never errored instances."""

    def test_unreachable_source(self, engine, sources, embedding_provider, storage):
        sources.unreachable.add("21")

        instance_id, snapshot = _run(engine, "federal", "21")

        assert snapshot.status == WorkflowStatus.COMPLETE
        assert snapshot.output["success"] is False
        assert "Source validation failed" in snapshot.output["error"]
        assert snapshot.output["data"]["recordsProcessed"] == 0
        assert embedding_provider.embed.call_count == 0
        assert storage.list("workflows/") == []

    def test_embedding_outage_keeps_counts(self, engine, sources, make_records, embedding_provider, vector_index):
        sources.records["21"] = make_records("21", 5)
        embedding_provider.embed.side_effect = ConnectionError("provider down")

        _, snapshot = _run(engine, "federal", "21")

        assert snapshot.output["success"] is False
        assert snapshot.output["data"]["recordsProcessed"] == 5
        assert snapshot.output["data"]["chunksCreated"] == 5
        assert snapshot.output["data"]["vectorsUpserted"] == 0
        assert vector_index.upsert.call_count == 0

    def test_unknown_unit(self, engine):
        _, snapshot = _run(engine, "federal", "999")

        assert snapshot.output["success"] is False
        assert "999" in snapshot.output["error"]


class _UnlistableStorage(InMemoryObjectStorage):
    """Storage whose listing is down, so every cleanup fails."""

    def list(self, prefix):
        raise ConnectionError("storage listing down")


class TestCleanupIsBestEffort:
    def test_cleanup_failure_keeps_success(self, engine, services, sources, make_records):
        services.storage = _UnlistableStorage()
        sources.records["21"] = make_records("21", 3)

        instance_id, snapshot = _run(engine, "federal", "21")

        assert snapshot.status == WorkflowStatus.COMPLETE
        assert snapshot.output["success"] is True
        assert snapshot.output["data"]["vectorsUpserted"] == 3
        assert "cleanup" not in engine.steps(instance_id)

    def test_cleanup_failure_keeps_failure_error(self, engine, services, sources):
        services.storage = _UnlistableStorage()
        sources.unreachable.add("21")

        _, snapshot = _run(engine, "federal", "21")

        assert snapshot.output["success"] is False
        assert "Source validation failed" in snapshot.output["error"]


class TestRequestBudget:
    """The fetch step does not retry on top of the client's per-GET retries."""

    @pytest.fixture
    def session(self, services):
        session = MagicMock()
        services.client = RateLimitedClient(
            session=session,
            throttle=DomainThrottle(sleep=lambda s: None),
            sleep=lambda s: None,
        )
        services.adapter_factory = get_adapter
        return session

    def test_missing_source_is_requested_once(self, engine, session):
        session.get.return_value = MagicMock(status_code=404, headers={}, reason="Not Found")

        instance_id, snapshot = _run(engine, "federal", "21")

        assert session.get.call_count == 1
        assert snapshot.output["success"] is False
        assert "Source validation failed" in snapshot.output["error"]
        assert engine.steps(instance_id) == ["cleanup"]

    def test_server_error_costs_one_retry_budget(self, engine, session):
        session.get.return_value = MagicMock(status_code=500, headers={}, reason="Internal Server Error")

        _, snapshot = _run(engine, "federal", "21")

        assert session.get.call_count == 4
        assert snapshot.output["success"] is False
        assert "HTTP 500" in snapshot.output["error"]


class TestReplay:
    def test_replayed_run_leaves_no_state(self, engine, services, sources, make_records, storage, tmp_path):
        sources.records["21"] = make_records("21", 130)
        instance_id, first = _run(engine, "federal", "21")
        assert first.output["success"] is True

        session_factory = create_session_factory(f"sqlite:///{tmp_path / 'runtime.db'}")
        with session_factory() as session:
            session.get(WorkflowInstanceModel, instance_id).status = WorkflowStatus.RUNNING
            session.commit()

        restarted = WorkflowEngine(services, session_factory, sleep=lambda s: None)
        restarted.register(UnitWorkflow)
        try:
            assert restarted.resume_incomplete() == 1
            snapshot = restarted.wait(instance_id, poll_interval=0.01, timeout=30)
        finally:
            restarted.shutdown(wait=True)

        assert snapshot.output["success"] is True
        assert snapshot.output["data"]["vectorsUpserted"] == 130
        assert storage.list("workflows/") == []
