"""Per-unit worker: fetch -> chunk -> embed batches -> upsert batches -> cleanup.

Each stage is a durable step. Bulk data (records, chunks, vectors) lives in
the instance's state store; step results carry only counts. The worker
always returns a WorkflowResult dict, including on failure, so that its
coordinator can keep aggregating siblings.
"""

import logging
import time
from datetime import datetime, timezone

from regindex.errors import NotFoundError, TransientFetchError, UnknownUnitError
from regindex.fetching.retry import EMBED_RETRY, NO_RETRY, STORAGE_RETRY, UPSERT_RETRY
from regindex.ingestion.chunker import ChunkContext, chunk_records
from regindex.models.enums import SourceCategory
from regindex.models.result import WorkflowResult
from regindex.models.unit import Unit
from regindex.pipeline.batching import embed_batch_count, upsert_batch_count
from regindex.pipeline.embed import EmbeddingBatcher
from regindex.pipeline.upsert import UpsertBatcher
from regindex.storage.state import WorkflowStateStore
from regindex.workflows.runtime import WORKER_POOL, StepContext, Workflow, WorkflowEvent

logger = logging.getLogger(__name__)


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


class UnitWorkflow(Workflow):
    """Processes one unit end to end.

    Params: ``{"category": str, "unitId": str}``.
    """

    workflow_type = "unit-processor"
    pool = WORKER_POOL

    def run(self, event: WorkflowEvent, step: StepContext) -> dict:
        start = time.monotonic()
        unit_id = event.params.get("unitId", "")
        data = {
            "unitId": unit_id,
            "unitName": unit_id,
            "recordsProcessed": 0,
            "chunksCreated": 0,
            "vectorsUpserted": 0,
        }

        try:
            unit = self.services.catalog.get(SourceCategory(event.params.get("category")), unit_id)
        except (UnknownUnitError, ValueError) as e:
            return WorkflowResult(False, _elapsed_ms(start), data, str(e)).to_dict()
        data["unitName"] = unit.name

        state = WorkflowStateStore(self.services.storage, self.workflow_type, event.instance_id)

        try:
            # Retries happen per GET inside the client
            fetched = step.do("fetch", lambda: self._fetch(unit, state), NO_RETRY)
            data["recordsProcessed"] = fetched["recordCount"]
            if fetched["recordCount"] == 0:
                logger.info("No records for %s, skipping to cleanup", unit.id)
                self._cleanup(step, state)
                return WorkflowResult(True, _elapsed_ms(start), data).to_dict()

            chunked = step.do("chunk", lambda: self._chunk(unit, state), STORAGE_RETRY)
            total = chunked["chunkCount"]
            data["chunksCreated"] = total
            if total == 0:
                logger.info("No chunks for %s, skipping to cleanup", unit.id)
                self._cleanup(step, state)
                return WorkflowResult(True, _elapsed_ms(start), data).to_dict()

            embedder = EmbeddingBatcher(state, self.services.embedding_provider)
            embed_batches = embed_batch_count(total)
            for i in range(embed_batches):
                step.do(
                    f"embed-batch-{i}",
                    lambda i=i: self._embed(embedder, state, i, embed_batches),
                    EMBED_RETRY,
                )

            upserter = UpsertBatcher(state, self.services.vector_index)
            upsert_batches = upsert_batch_count(total)
            for j in range(upsert_batches):
                data["vectorsUpserted"] += step.do(
                    f"upsert-batch-{j}",
                    lambda j=j: self._upsert(upserter, state, j, upsert_batches),
                    UPSERT_RETRY,
                )
        except Exception as e:
            logger.error("Worker %s for %s failed: %s", event.instance_id, unit_id, e)
            self._cleanup(step, state)
            return WorkflowResult(False, _elapsed_ms(start), data, str(e) or type(e).__name__).to_dict()

        self._cleanup(step, state)
        logger.info(
            "Worker %s done: %d records, %d chunks, %d vectors",
            event.instance_id, data["recordsProcessed"], data["chunksCreated"], data["vectorsUpserted"],
        )
        return WorkflowResult(True, _elapsed_ms(start), data).to_dict()

    def _fetch(self, unit: Unit, state: WorkflowStateStore) -> dict:
        adapter = self.services.adapter_factory(unit, self.services.client)
        validation = adapter.validate_source(unit)
        if not validation.accessible:
            message = f"Source validation failed for {unit.id}: {validation.error}"
            if validation.permanent:
                raise NotFoundError(message)
            raise TransientFetchError(message)

        records = [record.to_dict() for record in adapter.fetch_records(unit)]
        state.put("structure", records)
        state.put_progress("fetch", len(records), len(records))
        return {
            "recordCount": len(records),
            "fetchedAt": datetime.now(timezone.utc).isoformat(),
        }

    def _chunk(self, unit: Unit, state: WorkflowStateStore) -> dict:
        records = state.get_required("structure")
        chunks = chunk_records(records, ChunkContext.for_unit(unit))
        indexed_at = datetime.now(timezone.utc).isoformat()
        state.put("chunks", [chunk.to_stored(indexed_at) for chunk in chunks])
        state.put_progress("chunk", len(chunks), len(chunks))
        return {"chunkCount": len(chunks)}

    @staticmethod
    def _embed(embedder: EmbeddingBatcher, state: WorkflowStateStore, index: int, batches: int) -> int:
        count = embedder.embed_batch(index)
        state.put_progress("embed", index + 1, batches)
        return count

    @staticmethod
    def _upsert(upserter: UpsertBatcher, state: WorkflowStateStore, index: int, batches: int) -> int:
        count = upserter.upsert_batch(index)
        state.put_progress("upsert", index + 1, batches)
        return count

    @staticmethod
    def _cleanup(step: StepContext, state: WorkflowStateStore) -> None:
        """Run the cleanup step. Its failure is logged and never changes the result."""
        try:
            step.do("cleanup", state.cleanup, STORAGE_RETRY)
        except Exception as e:
            logger.warning("Cleanup of %s failed: %s", state.prefix, e)
