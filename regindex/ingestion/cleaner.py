"""Text cleaning for statute and ordinance HTML pages."""

import re

from bs4 import BeautifulSoup, Tag

CONTENT_SELECTORS = [
    ".chunk-content",
    ".section-content",
    ".content",
    "#content",
    "main",
    "article",
]


def clean_html_text(html: str | BeautifulSoup | Tag, selectors: list[str] | None = None) -> str:
    """Extract and clean the legal text from an HTML page or element.

    Picks the first container matching ``selectors`` (falling back to the
    body), drops navigation chrome, flattens tables, and normalizes
    whitespace while keeping paragraph breaks.
    """
    if isinstance(html, str):
        root = BeautifulSoup(html, "html.parser")
    else:
        root = html

    container = None
    for selector in selectors or CONTENT_SELECTORS:
        container = root.select_one(selector)
        if container:
            break
    if container is None:
        container = root.body if isinstance(root, BeautifulSoup) and root.body else root

    for tag in container.find_all(["script", "style", "nav", "footer", "header", "noscript"]):
        tag.decompose()

    for table in container.find_all("table"):
        table_text = table.get_text(separator=" | ", strip=True)
        if table_text:
            table.replace_with(f"\n[Table: {table_text[:500]}]\n")
        else:
            table.decompose()

    # Block elements become paragraph breaks
    for block in container.find_all(["p", "div", "li", "h1", "h2", "h3", "h4", "br"]):
        block.insert_after("\n\n")

    text = container.get_text(separator="", strip=False)
    text = _normalize_whitespace(text)
    text = _strip_web_artifacts(text)
    return text.strip()


def _strip_web_artifacts(text: str) -> str:
    """Remove site chrome that leaks into statute page text."""
    text = re.sub(r"^\s*(Print|Share|Email|Back to Top|Previous|Next)\s*$", "", text, flags=re.MULTILINE)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text


def _normalize_whitespace(text: str) -> str:
    """Normalize whitespace while preserving paragraph breaks."""
    text = text.replace("\xa0", " ")
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r" *\n *", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text
