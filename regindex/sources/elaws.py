"""eLaws adapter (*.elaws.us), server-rendered HTML.

The code's landing page links directly to sections; each link's title
carries the chapter and section numbers.
"""

import logging
import re
from typing import Iterator
from urllib.parse import urlparse

from bs4 import BeautifulSoup

from regindex.errors import RegindexError
from regindex.ingestion.cleaner import clean_html_text
from regindex.models.enums import Platform
from regindex.models.record import RawRecord
from regindex.models.unit import Unit
from regindex.sources.base import HtmlSourceAdapter

logger = logging.getLogger(__name__)

LINK_SELECTORS = [
    ".toc-item a",
    "#toc a",
    ".toc a",
    'table a[href*="sec"]',
    'table a[href*="SEC"]',
    'table a[href*="ch"]',
    'table a[href*="CH"]',
    'a[href*="_sec"]',
    'a[href*="_SEC"]',
    'a[href*="article"]',
    'a[href*="coor"]',
]

TEXT_SELECTORS = [".section-text", ".content", ".code-text", "main", "article"]

SKIP_TITLES = {"home", "search", "help", "back"}

_CHAPTER_RE = re.compile(r"(?:Chapter\s+(\d+)|Art(?:icle)?\.?\s*([IVXLCDM]+|\d+))", re.IGNORECASE)
_SECTION_RE = re.compile(r"Sec(?:tion)?\.?\s*([\d.]+)", re.IGNORECASE)
_LEADING_SECTION_RE = re.compile(r"^([\d.]+)\s")

MIN_TEXT_CHARS = 50


def _numeric_parts(value: str) -> list[int]:
    return [int(p) if p.isdigit() else 0 for p in value.split(".")]


class ElawsAdapter(HtmlSourceAdapter):
    platform = Platform.ELAWS
    min_interval = 1.0

    def validate_structure(self, soup: BeautifulSoup) -> bool:
        title = soup.title.get_text(strip=True).lower() if soup.title else ""
        return (
            soup.select_one(".toc-item, frame, a[href*='coor'], table, .code-section") is not None
            or "code of ordinances" in title
            or (soup.body is not None and len(soup.body.get_text()) > 500)
        )

    def section_links(self, soup: BeautifulSoup, unit: Unit) -> list[dict]:
        parsed = urlparse(unit.base_url)
        origin = f"{parsed.scheme}://{parsed.netloc}"
        base_path = parsed.path.rsplit("/", 1)[0]

        links: list[dict] = []
        for selector in LINK_SELECTORS:
            for anchor in soup.select(selector):
                href = anchor.get("href")
                title = anchor.get_text(strip=True)
                if not href or not title or title.lower() in SKIP_TITLES:
                    continue

                if href.startswith("http"):
                    url = href
                elif href.startswith("/"):
                    url = origin + href
                else:
                    url = f"{origin}{base_path}/{href}"

                chapter_match = _CHAPTER_RE.search(title)
                chapter = next((g for g in chapter_match.groups() if g), "0") if chapter_match else "0"
                section_match = _SECTION_RE.search(title) or _LEADING_SECTION_RE.match(title)
                section = section_match.group(1).rstrip(".") if section_match else "0"

                if not any(link["url"] == url for link in links):
                    links.append({"url": url, "title": title, "chapter": chapter, "section": section})
            if links:
                break

        return sorted(links, key=lambda l: (_numeric_parts(l["chapter"]), _numeric_parts(l["section"])))

    def parse_section(self, soup: BeautifulSoup, unit: Unit, link: dict) -> RawRecord | None:
        heading = link["title"]
        for selector in ("h1", "h2", ".section-title", "title"):
            element = soup.select_one(selector)
            if element and element.get_text(strip=True):
                heading = element.get_text(" ", strip=True)
                break

        for toc in soup.select(".toc, #toc"):
            toc.decompose()
        text = clean_html_text(soup, TEXT_SELECTORS)
        if len(text) < MIN_TEXT_CHARS:
            logger.info("Skipping %s - insufficient content", link["url"])
            return None

        return RawRecord(
            unit_id=unit.id,
            chapter=link["chapter"],
            section=link["section"],
            heading=heading or f"Section {link['section']}",
            text=text,
            source_url=link["url"],
        )

    def fetch_records(self, unit: Unit) -> Iterator[RawRecord]:
        landing = self.load_page(unit.base_url, f"fetch {unit.id} table of contents")
        links = self.section_links(landing, unit)
        logger.info("Found %d section links for %s", len(links), unit.name)

        for link in links:
            try:
                page = self.load_page(link["url"], f"fetch {unit.id} {link['title']}")
            except RegindexError as e:
                logger.error("Failed to fetch %s: %s", link["url"], e)
                continue
            record = self.parse_section(page, unit, link)
            if record:
                yield record
