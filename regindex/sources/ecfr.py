"""Electronic Code of Federal Regulations adapter.

Downloads a full title as XML from the eCFR versioner API and yields one
record per section, with the part number as an extra locator.
"""

import logging
import re
import xml.etree.ElementTree as ET
from datetime import date
from typing import Iterator

from regindex.errors import NotFoundError, RegindexError
from regindex.models.enums import Platform
from regindex.models.record import RawRecord
from regindex.models.unit import Unit
from regindex.sources.base import SourceAdapter, SourceValidation

logger = logging.getLogger(__name__)

ECFR_API_URL = "https://www.ecfr.gov/api/versioner/v1"
SECTION_URL = "https://www.ecfr.gov/current/title-{title}/part-{part}/section-{section}"

_TEXT_TAGS = ("P", "FP")
_SECTION_SIGN_RE = re.compile(r"^\s*§+\s*")


def _element_text(element: ET.Element | None) -> str:
    if element is None:
        return ""
    return " ".join("".join(element.itertext()).split())


def parse_title_xml(xml: str, title: str) -> Iterator[RawRecord]:
    """Yield a RawRecord for every SECTION div in a title document."""
    root = ET.fromstring(xml)

    for part_div in root.iter():
        if part_div.get("TYPE") != "PART":
            continue
        part = part_div.get("N", "")

        for section_div in part_div.iter():
            if section_div.get("TYPE") != "SECTION":
                continue

            section = _SECTION_SIGN_RE.sub("", _element_text(section_div.find("SECTNO")))
            section = section or section_div.get("N", "")
            heading = _element_text(section_div.find("SUBJECT")) or _element_text(section_div.find("HEAD"))

            paragraphs = [
                _element_text(el)
                for el in section_div.iter()
                if el.tag in _TEXT_TAGS and _element_text(el)
            ]
            if not section or not paragraphs:
                continue

            yield RawRecord(
                unit_id=title,
                chapter=part,
                part=part,
                section=section,
                heading=heading,
                text="\n\n".join(paragraphs),
                source_url=SECTION_URL.format(title=title, part=part, section=section),
            )


class EcfrAdapter(SourceAdapter):
    platform = Platform.ECFR
    min_interval = 0.2

    def title_url(self, unit: Unit, on_date: date | None = None) -> str:
        on_date = on_date or date.today()
        base = unit.base_url.rstrip("/")
        return f"{base}/full/{on_date.isoformat()}/title-{unit.id}.xml"

    def fetch_records(self, unit: Unit) -> Iterator[RawRecord]:
        url = self.title_url(unit)
        logger.info("Fetching CFR title %s from %s", unit.id, url)
        xml = self.client.fetch_text(url, f"fetch CFR title {unit.id}", min_interval=self.min_interval)

        count = 0
        for record in parse_title_xml(xml, unit.id):
            count += 1
            yield record
        logger.info("Parsed %d sections from CFR title %s", count, unit.id)

    def validate_source(self, unit: Unit) -> SourceValidation:
        base = unit.base_url.rstrip("/")
        try:
            data = self.client.fetch_json(f"{base}/titles", "fetch CFR title list")
        except NotFoundError as e:
            return SourceValidation(accessible=False, error=str(e), permanent=True)
        except (RegindexError, ValueError) as e:
            return SourceValidation(accessible=False, error=str(e))

        numbers = {str(t.get("number")) for t in data.get("titles", [])}
        if unit.id not in numbers:
            return SourceValidation(accessible=False, error=f"CFR title {unit.id} not listed", permanent=True)
        return SourceValidation(accessible=True)
