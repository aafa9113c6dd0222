"""Best-effort status reporting to the external metadata store.

A coordinator reports one status write per run. Failures are logged and
reported as ``False``; they never fail the pipeline.
"""

import logging
from abc import ABC, abstractmethod

import requests

logger = logging.getLogger(__name__)

MUTATION_PATH = "sources:updateSourceStatus"


class MetadataSync(ABC):
    @abstractmethod
    def sync(self, payload: dict) -> bool:
        """Report ``payload``. Returns True if the store accepted it. Never raises."""
        ...


class NullMetadataSync(MetadataSync):
    """Used when no metadata store is configured."""

    def sync(self, payload: dict) -> bool:
        logger.debug("Metadata sync disabled, skipping %s", payload.get("category"))
        return False


class HttpMetadataSync(MetadataSync):
    """POSTs ``{path, args}`` to ``{base_url}/api/mutation``."""

    def __init__(self, base_url: str, session: requests.Session | None = None, timeout: float = 10.0):
        self.url = f"{base_url.rstrip('/')}/api/mutation"
        self.timeout = timeout
        self._session = session or requests.Session()

    def sync(self, payload: dict) -> bool:
        body = {"path": MUTATION_PATH, "args": payload}
        try:
            resp = self._session.post(self.url, json=body, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning("Metadata sync to %s failed: %s", self.url, e)
            return False

        if not resp.ok:
            logger.warning("Metadata sync to %s returned HTTP %s", self.url, resp.status_code)
            return False
        return True


def build_metadata_sync(url: str | None) -> MetadataSync:
    return HttpMetadataSync(url) if url else NullMetadataSync()
