"""Per-category coordinator: fans out one worker per unit and aggregates.

Steps: determine-units -> spawn-children -> await-{unit} (one per child)
-> aggregate -> sync-metadata -> cleanup.

Children run concurrently on the worker pool as soon as they are spawned;
the coordinator awaits them one at a time. A child that errors is recorded
as a failure result for its unit and never stops the others.
"""

import logging
import time
from datetime import datetime, timezone

from regindex.errors import InvariantViolationError
from regindex.fetching.retry import AWAIT_RETRY, NO_RETRY, STORAGE_RETRY
from regindex.ingestion.citations import slugify
from regindex.models.enums import SourceCategory, WorkflowStatus
from regindex.models.result import WorkflowResult
from regindex.storage.state import WorkflowStateStore
from regindex.workflows.runtime import COORDINATOR_POOL, StepContext, Workflow, WorkflowEvent
from regindex.workflows.worker import UnitWorkflow

logger = logging.getLogger(__name__)


def child_instance_id(parent_id: str, unit_id: str) -> str:
    return f"{parent_id}-{slugify(unit_id)}"


def check_child_slugs(unit_ids: list[str]) -> None:
    """Raise InvariantViolationError unless every unit id has a distinct, non-empty slug."""
    seen: dict[str, str] = {}
    for unit_id in unit_ids:
        slug = slugify(unit_id)
        if not slug:
            raise InvariantViolationError(f"Unit id {unit_id!r} has an empty slug")
        if slug in seen:
            raise InvariantViolationError(
                f"Unit ids {seen[slug]!r} and {unit_id!r} share the slug {slug!r}"
            )
        seen[slug] = unit_id


def aggregate_results(results: dict[str, dict]) -> dict:
    """Sum per-unit worker results."""
    values = list(results.values())
    return {
        "unitsProcessed": len(values),
        "successCount": sum(1 for r in values if r.get("success")),
        "totalChunks": sum(r.get("data", {}).get("chunksCreated", 0) for r in values),
        "totalVectors": sum(r.get("data", {}).get("vectorsUpserted", 0) for r in values),
    }


class CoordinatorWorkflow(Workflow):
    """Processes every enabled (or every requested) unit of one category.

    Params: ``{"category": str, "units": [unitId, ...] | None}``.
    """

    workflow_type = "batch-coordinator"
    pool = COORDINATOR_POOL

    def run(self, event: WorkflowEvent, step: StepContext) -> dict:
        start = time.monotonic()
        category = SourceCategory(event.params["category"])
        requested = event.params.get("units") or []
        state = WorkflowStateStore(self.services.storage, self.workflow_type, event.instance_id)

        data = {
            "category": category.value,
            "unitsProcessed": 0,
            "successCount": 0,
            "totalChunks": 0,
            "totalVectors": 0,
            "childInstanceIds": [],
            "results": {},
        }

        try:
            units = step.do(
                "determine-units", lambda: self._determine_units(category, requested, state), STORAGE_RETRY
            )
            children = step.do(
                "spawn-children", lambda: self._spawn_children(category, units, event.instance_id, state), STORAGE_RETRY
            )
            data["childInstanceIds"] = [c["childInstanceId"] for c in children]

            results: dict[str, dict] = {}
            for child in children:
                results[child["unitId"]] = step.do(
                    f"await-{slugify(child['unitId'])}", lambda child=child: self._await_child(child), AWAIT_RETRY
                )
                outcome = "SUCCESS" if results[child["unitId"]].get("success") else "FAILED"
                logger.info("%s %s: %s", category.value, child["unitId"], outcome)
            data["results"] = results

            totals = step.do("aggregate", lambda: aggregate_results(results), NO_RETRY)
            data.update(totals)

            duration_ms = int((time.monotonic() - start) * 1000)
            step.do("sync-metadata", lambda: self._sync_metadata(category, totals, duration_ms), NO_RETRY)
        except Exception as e:
            logger.error("Coordinator %s failed: %s", event.instance_id, e)
            self._cleanup(step, state)
            data["summary"] = f"{data['successCount']} of {data['unitsProcessed']} units succeeded"
            return WorkflowResult(
                False, int((time.monotonic() - start) * 1000), data, str(e) or type(e).__name__
            ).to_dict()

        self._cleanup(step, state)
        data["summary"] = f"{data['successCount']} of {data['unitsProcessed']} units succeeded"
        logger.info("Coordinator %s: %s, %d vectors", event.instance_id, data["summary"], data["totalVectors"])
        return WorkflowResult(
            data["successCount"] == data["unitsProcessed"],
            int((time.monotonic() - start) * 1000),
            data,
        ).to_dict()

    def _determine_units(self, category: SourceCategory, requested: list[str], state: WorkflowStateStore) -> list[dict]:
        units = [unit.summary() for unit in self.services.catalog.resolve(category, requested)]
        check_child_slugs([u["unitId"] for u in units])
        state.put("units", units)
        logger.info("Processing %d %s units: %s", len(units), category.value, ", ".join(u["unitId"] for u in units))
        return units

    def _spawn_children(
        self, category: SourceCategory, units: list[dict], parent_id: str, state: WorkflowStateStore
    ) -> list[dict]:
        children = []
        for unit in units:
            child_id = self.engine.create(
                UnitWorkflow.workflow_type,
                {"category": category.value, "unitId": unit["unitId"], "parentInstanceId": parent_id},
                instance_id=child_instance_id(parent_id, unit["unitId"]),
                parent_id=parent_id,
            )
            children.append({"unitId": unit["unitId"], "unitName": unit["name"], "childInstanceId": child_id})
        state.put("children", children)
        return children

    def _await_child(self, child: dict) -> dict:
        snapshot = self.engine.wait(child["childInstanceId"], poll_interval=self.services.child_poll_interval)
        if snapshot.status == WorkflowStatus.COMPLETE and snapshot.output is not None:
            return snapshot.output

        return WorkflowResult(
            success=False,
            duration_ms=0,
            data={
                "unitId": child["unitId"],
                "unitName": child.get("unitName", child["unitId"]),
                "recordsProcessed": 0,
                "chunksCreated": 0,
                "vectorsUpserted": 0,
            },
            error=snapshot.error or "Workflow errored",
        ).to_dict()

    def _sync_metadata(self, category: SourceCategory, totals: dict, duration_ms: int) -> dict:
        status = "complete" if totals["successCount"] == totals["unitsProcessed"] else "partial"
        payload = {
            "category": category.value,
            "status": status,
            "lastScrapedAt": int(datetime.now(timezone.utc).timestamp() * 1000),
            "unitsProcessed": totals["unitsProcessed"],
            "totalVectors": totals["totalVectors"],
            "durationMs": duration_ms,
        }
        try:
            synced = self.services.metadata_sync.sync(payload)
        except Exception as e:
            logger.warning("Metadata sync for %s failed: %s", category.value, e)
            synced = False
        return {"synced": synced}

    @staticmethod
    def _cleanup(step: StepContext, state: WorkflowStateStore) -> None:
        """Run the cleanup step. Its failure is logged and never changes the result."""
        try:
            step.do("cleanup", state.cleanup, STORAGE_RETRY)
        except Exception as e:
            logger.warning("Cleanup of %s failed: %s", state.prefix, e)
