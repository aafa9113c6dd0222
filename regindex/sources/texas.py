"""Texas state adapters.

``TexasStatuteAdapter`` reads the Texas Constitution and Statutes site
(statutes.capitol.texas.gov): the code's table of contents lists its
chapters, each chapter page lists its sections, and every section has its
own page.

``TexasTacAdapter`` reads the Texas Administrative Code from the Secretary
of State (texreg.sos.state.tx.us) the same way: title -> chapters -> rules.
"""

import logging
import re
from typing import Iterator

from bs4 import BeautifulSoup

from regindex.errors import NotFoundError, RegindexError
from regindex.ingestion.cleaner import clean_html_text
from regindex.models.enums import Platform
from regindex.models.record import RawRecord
from regindex.models.unit import Unit
from regindex.sources.base import HtmlSourceAdapter

logger = logging.getLogger(__name__)

HEADING_SELECTORS = ["h2.section-heading", "h2", ".statute-heading", "p.heading", "b"]
TEXT_SELECTORS = [".section-text", ".statute-body", "article", "main"]

_NAV_RE = re.compile(r"^.*(\[Home\]|Statutes Home|Copyright).*$", re.IGNORECASE | re.MULTILINE)


def _numeric_key(value: str) -> list[int]:
    return [int(p) if p.isdigit() else 0 for p in re.split(r"[.\-]", value)]


class TexasStatuteAdapter(HtmlSourceAdapter):
    platform = Platform.TEXAS_STATUTES
    min_interval = 0.2

    def docs_url(self, unit: Unit, page: str) -> str:
        return f"{unit.base_url.rstrip('/')}/Docs/{unit.id}/htm/{unit.id}.{page}.htm"

    def discover_chapters(self, unit: Unit) -> list[str]:
        soup = self.load_page(self.docs_url(unit, "toc"), f"fetch {unit.id} table of contents")
        pattern = re.compile(rf"{re.escape(unit.id)}\.(\d+[A-Z]?)\.htm", re.IGNORECASE)
        chapters = []
        for link in soup.find_all("a", href=True):
            match = pattern.search(link["href"])
            if match and match.group(1) not in chapters:
                chapters.append(match.group(1))
        return sorted(chapters, key=_numeric_key)

    def discover_sections(self, unit: Unit, chapter: str) -> list[str]:
        soup = self.load_page(self.docs_url(unit, chapter), f"fetch {unit.id} chapter {chapter}")
        pattern = re.compile(
            rf"{re.escape(unit.id)}\.({re.escape(chapter)}\.\d+[A-Z]?)\.htm", re.IGNORECASE
        )
        sections = []
        for link in soup.find_all("a", href=True):
            match = pattern.search(link["href"])
            if match and match.group(1) not in sections:
                sections.append(match.group(1))
        return sorted(sections, key=_numeric_key)

    def parse_section(self, soup: BeautifulSoup, unit: Unit, chapter: str, section: str, url: str) -> RawRecord | None:
        heading = ""
        for selector in HEADING_SELECTORS:
            element = soup.select_one(selector)
            if element and element.get_text(strip=True):
                heading = element.get_text(" ", strip=True)
                break

        text = _NAV_RE.sub("", clean_html_text(soup, TEXT_SELECTORS)).strip()
        if len(text) < 10:
            logger.warning("Section %s § %s has no usable text (%s)", unit.id, section, url)
            return None

        return RawRecord(
            unit_id=unit.id,
            chapter=chapter,
            section=section,
            heading=heading,
            text=text,
            source_url=url,
        )

    def fetch_records(self, unit: Unit) -> Iterator[RawRecord]:
        chapters = self.discover_chapters(unit)
        logger.info("Found %d chapters in %s", len(chapters), unit.id)

        for chapter in chapters:
            try:
                sections = self.discover_sections(unit, chapter)
            except RegindexError as e:
                logger.error("Failed to list %s chapter %s: %s", unit.id, chapter, e)
                continue

            for section in sections:
                url = self.docs_url(unit, section)
                try:
                    soup = self.load_page(url, f"fetch {unit.id} § {section}")
                except NotFoundError:
                    logger.warning("Section not found: %s § %s", unit.id, section)
                    continue
                except RegindexError as e:
                    logger.error("Failed to fetch %s § %s: %s", unit.id, section, e)
                    continue

                record = self.parse_section(soup, unit, chapter, section, url)
                if record:
                    yield record

    def validate_structure(self, soup: BeautifulSoup) -> bool:
        return soup.find("a", href=True) is not None

    def validation_url(self, unit: Unit) -> str:
        return self.docs_url(unit, "toc")


TAC_HEADING_SELECTORS = [".rule-heading", ".tac-heading", ".rule-title", "h1", "h2", "h3", "h4", "strong", "b"]
TAC_TEXT_SELECTORS = [".rule-text", ".tac-body", ".rule-content", ".tac-content", "article", "main", "#content"]

_TAC_HEADING_PREFIX_RE = re.compile(r"^§?\s*[\d.]+\s*[-–]\s*")
_TAC_CHAPTER_RE = re.compile(r"[?&]ch=(\d+)")
_TAC_RULE_RE = re.compile(r"[?&]rl=([\d.]+)")


class TexasTacAdapter(HtmlSourceAdapter):
    """One TAC title per unit; unit ids look like ``tac-16``."""

    platform = Platform.TEXAS_TAC
    min_interval = 0.2

    def title_url(self, unit: Unit) -> str:
        return f"{unit.base_url.rstrip('/')}/readtac$ext.ViewTAC?tac_view=3&ti={unit.tac_title}"

    def chapter_url(self, unit: Unit, chapter: str) -> str:
        return f"{unit.base_url.rstrip('/')}/readtac$ext.ViewTAC?tac_view=4&ti={unit.tac_title}&ch={chapter}"

    def rule_url(self, unit: Unit, chapter: str, rule: str) -> str:
        title = unit.tac_title
        return (
            f"{unit.base_url.rstrip('/')}/readtac$ext.TacPage?sl=R&app=9&p_dir=&p_rloc={title}"
            f"&p_tloc=&p_ploc=&pg=1&p_tac=&ti={title}&pt=&ch={chapter}&rl={rule}"
        )

    def discover_chapters(self, unit: Unit) -> list[str]:
        soup = self.load_page(self.title_url(unit), f"discover TAC title {unit.tac_title} chapters")
        chapters = []
        for link in soup.find_all("a", href=True):
            match = _TAC_CHAPTER_RE.search(link["href"])
            if match and match.group(1) not in chapters:
                chapters.append(match.group(1))
        return sorted(chapters, key=int)

    def discover_rules(self, unit: Unit, chapter: str) -> list[str]:
        soup = self.load_page(
            self.chapter_url(unit, chapter), f"discover TAC title {unit.tac_title} chapter {chapter} rules"
        )
        rules = []
        for link in soup.find_all("a", href=True):
            match = _TAC_RULE_RE.search(link["href"])
            if match:
                rule = match.group(1).rstrip(".")
                if rule.startswith(f"{chapter}.") and rule not in rules:
                    rules.append(rule)
        return sorted(rules, key=_numeric_key)

    def parse_rule(self, soup: BeautifulSoup, unit: Unit, chapter: str, rule: str, url: str) -> RawRecord | None:
        heading = ""
        for selector in TAC_HEADING_SELECTORS:
            element = soup.select_one(selector)
            if element and element.get_text(strip=True):
                heading = _TAC_HEADING_PREFIX_RE.sub("", element.get_text(" ", strip=True)).strip()
                break

        text = clean_html_text(soup, TAC_TEXT_SELECTORS).strip()
        if len(text) < 20:
            logger.warning("TAC %s § %s has no usable text (%s)", unit.tac_title, rule, url)
            return None

        return RawRecord(
            unit_id=unit.id,
            chapter=chapter,
            section=rule,
            heading=heading,
            text=text,
            source_url=url,
        )

    def fetch_records(self, unit: Unit) -> Iterator[RawRecord]:
        chapters = self.discover_chapters(unit)
        logger.info("Found %d chapters in TAC title %s", len(chapters), unit.tac_title)

        for chapter in chapters:
            try:
                rules = self.discover_rules(unit, chapter)
            except RegindexError as e:
                logger.error("Failed to list TAC title %s chapter %s: %s", unit.tac_title, chapter, e)
                continue

            for rule in rules:
                url = self.rule_url(unit, chapter, rule)
                try:
                    soup = self.load_page(url, f"fetch TAC {unit.tac_title} § {rule}")
                except NotFoundError:
                    logger.warning("Rule not found: TAC %s § %s", unit.tac_title, rule)
                    continue
                except RegindexError as e:
                    logger.error("Failed to fetch TAC %s § %s: %s", unit.tac_title, rule, e)
                    continue

                record = self.parse_rule(soup, unit, chapter, rule, url)
                if record:
                    yield record

    def validation_url(self, unit: Unit) -> str:
        return self.title_url(unit)

    def validate_structure(self, soup: BeautifulSoup) -> bool:
        return any(_TAC_CHAPTER_RE.search(a["href"]) for a in soup.find_all("a", href=True))
