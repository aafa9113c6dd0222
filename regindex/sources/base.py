"""Source adapter interface.

An adapter turns one unit into a stream of RawRecords. Adapters are
selected by the unit's ``Platform`` (see ``registry.py``). Failures on a
single chapter or section are logged and skipped inside the adapter; only
failures that make the whole unit unreachable propagate.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterator
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from regindex.errors import NotFoundError, RegindexError
from regindex.fetching.client import RateLimitedClient
from regindex.models.enums import Platform
from regindex.models.record import RawRecord
from regindex.models.unit import Unit

logger = logging.getLogger(__name__)


@dataclass
class SourceValidation:
    """Outcome of a reachability check.

    ``permanent`` marks failures that retrying cannot fix, such as a 404 on
    the unit's index page.
    """

    accessible: bool
    error: str | None = None
    permanent: bool = False


class SourceAdapter(ABC):
    """Abstract interface for per-platform record fetching."""

    platform: Platform
    min_interval: float = 0.5

    def __init__(self, client: RateLimitedClient):
        self.client = client

    @abstractmethod
    def fetch_records(self, unit: Unit) -> Iterator[RawRecord]:
        """Yield every record of ``unit`` in document order."""
        ...

    @abstractmethod
    def validate_source(self, unit: Unit) -> SourceValidation:
        """Check that the unit's source is reachable and looks as expected."""
        ...


class HtmlSourceAdapter(SourceAdapter):
    """Base for adapters that scrape server-rendered HTML."""

    def load_page(self, url: str, label: str | None = None) -> BeautifulSoup:
        html = self.client.fetch_text(url, label or f"load_page({url})", min_interval=self.min_interval)
        return BeautifulSoup(html, "html.parser")

    def validate_source(self, unit: Unit) -> SourceValidation:
        try:
            soup = self.load_page(self.validation_url(unit), f"validate {unit.id}")
        except NotFoundError as e:
            logger.warning("Source for %s not found: %s", unit.id, e)
            return SourceValidation(accessible=False, error=str(e), permanent=True)
        except RegindexError as e:
            logger.warning("Source validation for %s failed: %s", unit.id, e)
            return SourceValidation(accessible=False, error=str(e))

        if not self.validate_structure(soup):
            return SourceValidation(
                accessible=False,
                error="HTML structure changed - expected elements not found",
            )
        return SourceValidation(accessible=True)

    def validation_url(self, unit: Unit) -> str:
        return unit.base_url

    def validate_structure(self, soup: BeautifulSoup) -> bool:
        return soup.body is not None

    @staticmethod
    def absolute_url(base_url: str, href: str) -> str:
        return urljoin(base_url if base_url.endswith("/") else base_url + "/", href)
