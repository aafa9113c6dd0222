"""Per-instance workflow state on top of object storage.

Durable step results are capped at about 1 MiB, so anything that can grow
with the size of a unit (fetched records, chunk lists, embedding vectors)
is written here and only counts and batch indices flow through step
return values.

Key layout: ``workflows/{workflow_type}/{instance_id}/{key}.json``. An
instance only ever touches its own prefix.
"""

import json
import logging
from collections import defaultdict
from datetime import datetime, timedelta, timezone

from regindex.errors import MissingStateError
from regindex.storage.object_store import ObjectStorage

logger = logging.getLogger(__name__)

STATE_ROOT = "workflows"


class WorkflowStateStore:
    """Namespaced JSON state for a single workflow instance."""

    def __init__(self, storage: ObjectStorage, workflow_type: str, instance_id: str):
        if not workflow_type or not instance_id:
            raise ValueError("workflow_type and instance_id must not be empty")
        self._storage = storage
        self.workflow_type = workflow_type
        self.instance_id = instance_id
        self.prefix = f"{STATE_ROOT}/{workflow_type}/{instance_id}"

    def key_for(self, key: str) -> str:
        return f"{self.prefix}/{key}.json"

    def put(self, key: str, value) -> str:
        """Serialize ``value`` as JSON and store it. Returns the full key."""
        full_key = self.key_for(key)
        self._storage.put(full_key, json.dumps(value).encode("utf-8"))
        return full_key

    def get(self, key: str):
        """Return the parsed JSON for ``key``, or None if it was never written."""
        body = self._storage.get(self.key_for(key))
        if body is None:
            return None
        return json.loads(body)

    def get_required(self, key: str):
        """Like ``get`` but raises MissingStateError when the key is absent."""
        value = self.get(key)
        if value is None:
            raise MissingStateError(self.key_for(key))
        return value

    def put_raw(self, key: str, body: bytes | str) -> str:
        """Store ``body`` verbatim under ``key`` (no .json suffix). Returns the full key."""
        full_key = f"{self.prefix}/{key}"
        if isinstance(body, str):
            body = body.encode("utf-8")
        self._storage.put(full_key, body)
        return full_key

    def get_raw(self, key: str) -> bytes | None:
        return self._storage.get(f"{self.prefix}/{key}")

    def exists(self, key: str) -> bool:
        return self._storage.exists(self.key_for(key))

    def delete(self, key: str) -> None:
        self._storage.delete(self.key_for(key))

    def list(self) -> list[str]:
        """Full keys of every object under this instance's prefix."""
        return [obj.key for obj in self._storage.list(self.prefix + "/")]

    def cleanup(self) -> int:
        """Delete every object under the prefix. Returns the number deleted."""
        keys = self.list()
        for key in keys:
            self._storage.delete(key)
        if keys:
            logger.info("Cleaned up %d state objects under %s", len(keys), self.prefix)
        return len(keys)

    def put_progress(self, phase: str, completed: int, total: int, message: str | None = None) -> None:
        progress = {
            "phase": phase,
            "completed": completed,
            "total": total,
            "updatedAt": datetime.now(timezone.utc).isoformat(),
        }
        if message:
            progress["message"] = message
        self.put("progress", progress)


def sweep_stale_state(
    storage: ObjectStorage,
    max_age: timedelta,
    now: datetime | None = None,
) -> int:
    """Delete the state of every instance whose newest object is older than ``max_age``.

    Instances that crash before their cleanup step leave their state behind;
    this is the garbage collector for that case. An instance is swept whole
    or not at all, so a running instance with one fresh write keeps its
    older objects. Returns the number of objects deleted.
    """
    now = now or datetime.now(timezone.utc)
    cutoff = now - max_age

    instances: dict[str, list] = defaultdict(list)
    for obj in storage.list(STATE_ROOT + "/"):
        parts = obj.key.split("/")
        if len(parts) < 4:
            continue
        instances["/".join(parts[:3])].append(obj)

    deleted = 0
    for prefix, objects in instances.items():
        if max(obj.last_modified for obj in objects) >= cutoff:
            continue
        for obj in objects:
            storage.delete(obj.key)
        deleted += len(objects)
        logger.debug("Swept stale state under %s", prefix)
    logger.info("Swept %d stale state objects older than %s", deleted, max_age)
    return deleted
