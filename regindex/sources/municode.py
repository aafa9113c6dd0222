"""Municode Library adapter (library.municode.com).

Reads chapter links from the code's table of contents, then extracts
sections from each chapter page. A chapter whose page fails is skipped.
"""

import logging
import re
from typing import Iterator

from bs4 import BeautifulSoup, Tag

from regindex.errors import RegindexError
from regindex.models.enums import Platform
from regindex.models.record import RawRecord
from regindex.models.unit import Unit
from regindex.sources.base import HtmlSourceAdapter

logger = logging.getLogger(__name__)

MUNICODE_ORIGIN = "https://library.municode.com"

TOC_SELECTORS = [
    ".toc-link",
    ".toc-item a",
    "[data-toc-item] a",
    ".codes-toc a",
    "nav.toc a",
    'a[href*="nodeId"]',
    'a[href*="CHAPTER"]',
    'a[href*="chapter"]',
]

SECTION_SELECTORS = [
    ".chunk-content",
    ".section-content",
    "[data-section]",
    "article section",
    ".code-section",
]

_CHAPTER_RE = re.compile(r"Chapter\s+(\d+)", re.IGNORECASE)
_LEADING_NUMBER_RE = re.compile(r"^(\d+)\.")
_SECTION_RE = re.compile(r"(?:Section|Sec\.?)\s*([\d.\-]+)", re.IGNORECASE)
_LEADING_SECTION_RE = re.compile(r"^([\d.\-]+)")

MIN_SECTION_CHARS = 50
MIN_PAGE_CHARS = 100


def _chapter_sort_key(link: dict):
    chapter = link["chapter"]
    return (0, int(chapter), "") if chapter.isdigit() else (1, 0, chapter)


class MunicodeAdapter(HtmlSourceAdapter):
    platform = Platform.MUNICODE
    min_interval = 1.0

    def validate_structure(self, soup: BeautifulSoup) -> bool:
        return any(
            soup.select_one(selector) is not None
            for selector in ("#codebankToggle", ".toc", "[data-testid]", ".codes-title", 'a[href*="/codes/"]', "main", "article")
        )

    def chapter_links(self, soup: BeautifulSoup, unit: Unit) -> list[dict]:
        """Chapter links from the first TOC selector that matches anything."""
        links: list[dict] = []
        for selector in TOC_SELECTORS:
            for anchor in soup.select(selector):
                href = anchor.get("href")
                title = anchor.get_text(strip=True)
                if not href or not title:
                    continue
                if "search" in title.lower() or "help" in title.lower():
                    continue

                if href.startswith("http"):
                    url = href
                elif href.startswith("/"):
                    url = MUNICODE_ORIGIN + href
                else:
                    url = self.absolute_url(unit.base_url, href)

                match = _CHAPTER_RE.search(title) or _LEADING_NUMBER_RE.match(title)
                chapter = match.group(1) if match else "0"
                if not any(link["url"] == url for link in links):
                    links.append({"url": url, "title": title, "chapter": chapter})
            if links:
                break
        return sorted(links, key=_chapter_sort_key)

    def extract_sections(self, soup: BeautifulSoup, unit: Unit, chapter: str, url: str) -> list[RawRecord]:
        records = []
        for selector in SECTION_SELECTORS:
            for element in soup.select(selector):
                record = self._section_record(element, unit, chapter, url)
                if record:
                    records.append(record)
            if records:
                break

        if not records:
            # Fall back to the whole page as one record
            title = soup.select_one("h1, .page-title")
            content = soup.select_one("main, article, .content")
            page_text = content.get_text("\n", strip=True) if content else ""
            if len(page_text) > MIN_PAGE_CHARS:
                records.append(
                    RawRecord(
                        unit_id=unit.id,
                        chapter=chapter,
                        section="0",
                        heading=title.get_text(strip=True) if title else f"Chapter {chapter}",
                        text=page_text,
                        source_url=url,
                    )
                )
        return records

    def _section_record(self, element: Tag, unit: Unit, chapter: str, url: str) -> RawRecord | None:
        heading_el = element.select_one("h1, h2, h3, .section-heading, .section-title") or element.select_one("strong, b")
        heading = heading_el.get_text(" ", strip=True) if heading_el else ""
        text = "\n\n".join(
            p.get_text(" ", strip=True)
            for p in element.select("p, .section-text, .section-body")
            if p.get_text(strip=True)
        )
        if not heading or len(text) <= MIN_SECTION_CHARS:
            return None

        match = _SECTION_RE.search(heading) or _LEADING_SECTION_RE.match(heading)
        return RawRecord(
            unit_id=unit.id,
            chapter=chapter,
            section=match.group(1).rstrip(".-") if match else "0",
            heading=heading,
            text=text,
            source_url=url,
        )

    def fetch_records(self, unit: Unit) -> Iterator[RawRecord]:
        toc = self.load_page(unit.base_url, f"fetch {unit.id} table of contents")
        links = self.chapter_links(toc, unit)
        logger.info("Found %d chapters for %s", len(links), unit.name)

        for link in links:
            try:
                page = self.load_page(link["url"], f"fetch {unit.id} chapter {link['chapter']}")
            except RegindexError as e:
                logger.error("Failed to fetch chapter %s of %s: %s", link["chapter"], unit.name, e)
                continue
            yield from self.extract_sections(page, unit, link["chapter"], link["url"])
