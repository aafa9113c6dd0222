"""Object storage backends for workflow state.

All backends share one flat key space with "/"-separated prefixes, the same
model as S3. ``build_object_storage`` picks one from settings.
"""

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

import boto3
from botocore.exceptions import ClientError

# Directories this shallow (e.g. workflows/{type}) are shared between instances and never pruned
PRUNE_FLOOR_DEPTH = 2


@dataclass(frozen=True)
class StoredObject:
    """Listing entry for one stored object."""

    key: str
    size: int
    last_modified: datetime


class ObjectStorage(ABC):
    """Interface for key/value blob storage."""

    @abstractmethod
    def put(self, key: str, body: bytes) -> None:
        ...

    @abstractmethod
    def get(self, key: str) -> bytes | None:
        """Return the object body, or None if the key does not exist."""
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        """Delete ``key``. Deleting a missing key is not an error."""
        ...

    @abstractmethod
    def list(self, prefix: str) -> list[StoredObject]:
        ...

    def exists(self, key: str) -> bool:
        return self.get(key) is not None


class InMemoryObjectStorage(ObjectStorage):
    """Process-local storage for tests and single-run CLI use."""

    def __init__(self):
        self._objects: dict[str, tuple[bytes, datetime]] = {}
        self._lock = threading.Lock()

    def put(self, key: str, body: bytes) -> None:
        with self._lock:
            self._objects[key] = (bytes(body), datetime.now(timezone.utc))

    def get(self, key: str) -> bytes | None:
        with self._lock:
            entry = self._objects.get(key)
        return entry[0] if entry else None

    def delete(self, key: str) -> None:
        with self._lock:
            self._objects.pop(key, None)

    def list(self, prefix: str) -> list[StoredObject]:
        with self._lock:
            items = list(self._objects.items())
        return [
            StoredObject(key=key, size=len(body), last_modified=modified)
            for key, (body, modified) in sorted(items)
            if key.startswith(prefix)
        ]


class LocalObjectStorage(ObjectStorage):
    """Stores each object as a file under ``root``."""

    def __init__(self, root: Path | str):
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        if key.startswith("/") or ".." in Path(key).parts:
            raise ValueError(f"Invalid storage key: {key}")
        return self.root / key

    def put(self, key: str, body: bytes) -> None:
        target = self._path(key)
        target.parent.mkdir(parents=True, exist_ok=True)
        tmp = target.with_name(target.name + ".tmp")
        tmp.write_bytes(body)
        tmp.replace(target)

    def get(self, key: str) -> bytes | None:
        target = self._path(key)
        if not target.is_file():
            return None
        return target.read_bytes()

    def delete(self, key: str) -> None:
        target = self._path(key)
        try:
            target.unlink()
        except FileNotFoundError:
            return
        self._prune_empty_dirs(target.parent)

    def list(self, prefix: str) -> list[StoredObject]:
        if not self.root.is_dir():
            return []
        objects = []
        for path in sorted(self.root.rglob("*")):
            if not path.is_file() or path.name.endswith(".tmp"):
                continue
            key = path.relative_to(self.root).as_posix()
            if not key.startswith(prefix):
                continue
            stat = path.stat()
            objects.append(
                StoredObject(
                    key=key,
                    size=stat.st_size,
                    last_modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
                )
            )
        return objects

    def _prune_empty_dirs(self, directory: Path) -> None:
        while len(directory.relative_to(self.root).parts) > PRUNE_FLOOR_DEPTH and directory.is_dir():
            try:
                directory.rmdir()
            except OSError:
                return
            directory = directory.parent


class S3ObjectStorage(ObjectStorage):
    """S3 (or S3-compatible, e.g. R2 / MinIO) bucket storage via boto3."""

    def __init__(
        self,
        bucket: str,
        region: str = "us-east-1",
        endpoint_url: str | None = None,
        client=None,
    ):
        if not bucket:
            raise ValueError("bucket must not be empty")
        self._bucket = bucket
        self._s3_client = client or boto3.client(
            "s3", region_name=region, endpoint_url=endpoint_url or None
        )

    def put(self, key: str, body: bytes) -> None:
        self._s3_client.put_object(Bucket=self._bucket, Key=key, Body=body)

    def get(self, key: str) -> bytes | None:
        try:
            response = self._s3_client.get_object(Bucket=self._bucket, Key=key)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in ("NoSuchKey", "404"):
                return None
            raise
        return response["Body"].read()

    def delete(self, key: str) -> None:
        self._s3_client.delete_object(Bucket=self._bucket, Key=key)

    def list(self, prefix: str) -> list[StoredObject]:
        paginator = self._s3_client.get_paginator("list_objects_v2")
        objects = []
        for page in paginator.paginate(Bucket=self._bucket, Prefix=prefix):
            for obj in page.get("Contents", []):
                objects.append(
                    StoredObject(
                        key=obj["Key"],
                        size=obj.get("Size", 0),
                        last_modified=obj["LastModified"],
                    )
                )
        return objects


def build_object_storage(settings) -> ObjectStorage:
    """Create the storage backend named by ``settings.regindex_storage_backend``."""
    backend = settings.regindex_storage_backend.lower()

    if backend == "local":
        return LocalObjectStorage(settings.state_path)
    elif backend == "s3":
        return S3ObjectStorage(
            bucket=settings.regindex_s3_bucket,
            region=settings.regindex_s3_region,
            endpoint_url=settings.regindex_s3_endpoint_url or None,
        )
    elif backend == "memory":
        return InMemoryObjectStorage()
    else:
        raise ValueError(
            f"Unsupported storage backend: {backend}. "
            "Supported: 'local', 's3', 'memory'"
        )
