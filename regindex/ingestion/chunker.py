"""Structure-aware chunker for statutes, rules and ordinances.

Strategy per record:

1. Whole record if it fits in MAX_CHUNK_TOKENS.
2. Otherwise split at subsection boundaries, using the adapter's parsed
   subsections or ``(a)`` / ``(1)`` / ``(a)(1)`` markers found in the text.
3. Subsections that are still too large, and unstructured text, are split
   at paragraph boundaries with 15% overlap.
4. Paragraphs larger than the budget are split by line, sentence, then word.
"""

import logging
import re
from dataclasses import dataclass

from regindex.ingestion.citations import chunk_id_for, citation_for, source_id_for
from regindex.ingestion.tokens import MAX_CHUNK_TOKENS, count_tokens, max_chars_for_tokens
from regindex.models.chunk import Chunk
from regindex.models.enums import SourceCategory
from regindex.models.record import RawRecord, Subsection
from regindex.models.unit import Unit

logger = logging.getLogger(__name__)

OVERLAP_RATIO = 0.15

SUBSECTION_PATTERN = re.compile(r"(?:^|\n)\s*(\([a-z0-9]+\)(?:\([a-z0-9]+\))*)\s+")
PARAGRAPH_PATTERN = re.compile(r"\n\n+")


@dataclass(frozen=True)
class ChunkContext:
    """Per-unit values stamped onto every chunk."""

    unit: Unit
    source_type: str
    jurisdiction: str
    code_name: str
    category: str | None = None
    year: int | None = None

    @classmethod
    def for_unit(cls, unit: Unit, year: int | None = None) -> "ChunkContext":
        if unit.tac_title is not None:
            source_type = "tx-tac"
        elif unit.category == SourceCategory.STATE:
            source_type = "tx-statute"
        else:
            source_type = unit.category.value
        return cls(
            unit=unit,
            source_type=source_type,
            jurisdiction=unit.jurisdiction,
            code_name=unit.code_name,
            category=unit.primary_category,
            year=year,
        )


def split_at_subsections(text: str) -> list[Subsection]:
    """Detect lettered/numbered subsection markers and split on them.

    Text before the first marker is attached to the first subsection.
    Returns an empty list when fewer than two markers are found.
    """
    matches = list(SUBSECTION_PATTERN.finditer(text))
    if len(matches) < 2:
        return []

    subsections = []
    for i, match in enumerate(matches):
        start = 0 if i == 0 else match.start()
        end = matches[i + 1].start() if i + 1 < len(matches) else len(text)
        body = text[start:end].strip()
        if body:
            subsections.append(Subsection(id=match.group(1), text=body))
    return subsections


def _split_text_recursive(
    text: str,
    max_tokens: int,
    separators: list[str] | None = None,
) -> list[str]:
    """Split a single oversized block by line, then sentence, then word.

    Falls back to fixed character windows when no separator applies.
    """
    if separators is None:
        separators = ["\n", ". ", " "]

    if count_tokens(text) <= max_tokens:
        return [text]

    if not separators:
        width = max_chars_for_tokens(max_tokens)
        return [text[i:i + width].strip() for i in range(0, len(text), width) if text[i:i + width].strip()]

    separator = separators[0]
    remaining_separators = separators[1:]

    parts = text.split(separator)
    if len(parts) == 1:
        return _split_text_recursive(text, max_tokens, remaining_separators)

    chunks = []
    current_chunk = ""

    for part in parts:
        candidate = (current_chunk + separator + part).strip() if current_chunk else part.strip()

        if count_tokens(candidate) > max_tokens and current_chunk:
            chunks.append(current_chunk.strip())
            current_chunk = part.strip()
        else:
            current_chunk = candidate

        # A single part can itself be over budget
        if count_tokens(current_chunk) > max_tokens:
            pieces = _split_text_recursive(current_chunk, max_tokens, remaining_separators)
            chunks.extend(pieces[:-1])
            current_chunk = pieces[-1] if pieces else ""

    if current_chunk.strip():
        chunks.append(current_chunk.strip())

    return chunks


def _get_overlap_text(paragraphs: list[str], target_tokens: int) -> str:
    """Trailing whole paragraphs of ``paragraphs`` that fit in ``target_tokens``."""
    overlap = []
    total = 0
    for paragraph in reversed(paragraphs):
        tokens = count_tokens(paragraph)
        if total + tokens > target_tokens:
            break
        overlap.insert(0, paragraph)
        total += tokens
    return "\n\n".join(overlap)


def split_with_overlap(
    text: str,
    max_tokens: int = MAX_CHUNK_TOKENS,
    overlap_ratio: float = OVERLAP_RATIO,
) -> list[str]:
    """Pack paragraphs into chunks of at most ``max_tokens``.

    Each new chunk starts with up to ``overlap_ratio * max_tokens`` worth of
    trailing paragraphs from the previous one.
    """
    overlap_tokens = int(max_tokens * overlap_ratio)

    paragraphs = []
    for paragraph in PARAGRAPH_PATTERN.split(text):
        paragraph = paragraph.strip()
        if not paragraph:
            continue
        if count_tokens(paragraph) > max_tokens:
            paragraphs.extend(_split_text_recursive(paragraph, max_tokens))
        else:
            paragraphs.append(paragraph)

    chunks = []
    current: list[str] = []
    current_tokens = 0

    for paragraph in paragraphs:
        paragraph_tokens = count_tokens(paragraph)

        if current_tokens + paragraph_tokens > max_tokens and current:
            chunks.append("\n\n".join(current))
            overlap_text = _get_overlap_text(current, overlap_tokens)
            if overlap_text and count_tokens(overlap_text) + paragraph_tokens <= max_tokens:
                current = [overlap_text]
                current_tokens = count_tokens(overlap_text)
            else:
                current = []
                current_tokens = 0

        current.append(paragraph)
        current_tokens += paragraph_tokens

    if current:
        chunks.append("\n\n".join(current))

    return chunks


def chunk_record(record: RawRecord, context: ChunkContext) -> list[Chunk]:
    """Split one record into citation-tagged chunks. Empty records yield []."""
    text = (record.text or "").strip()
    if not text and not record.subsections:
        return []

    base_citation = citation_for(context.unit, record, context.year)

    # (text, citation) pairs in order
    pieces: list[tuple[str, str]] = []

    if text and count_tokens(text) <= MAX_CHUNK_TOKENS:
        pieces.append((text, base_citation))
    else:
        subsections = record.subsections or split_at_subsections(text)
        if subsections:
            for subsection in subsections:
                sub_text = subsection.text.strip()
                if not sub_text:
                    continue
                citation = f"{base_citation} {subsection.id}".strip()
                if count_tokens(sub_text) <= MAX_CHUNK_TOKENS:
                    pieces.append((sub_text, citation))
                else:
                    pieces.extend((part, citation) for part in split_with_overlap(sub_text))
        else:
            pieces.extend((part, base_citation) for part in split_with_overlap(text))

    source_id = source_id_for(context.unit)
    total = len(pieces)
    return [
        Chunk(
            chunk_id=chunk_id_for(context.unit, record, index),
            source_id=source_id,
            source_type=context.source_type,
            jurisdiction=context.jurisdiction,
            text=piece_text,
            citation=citation,
            url=record.source_url,
            chunk_index=index,
            total_chunks=total,
            chapter=record.chapter,
            section=record.section,
            category=context.category,
        )
        for index, (piece_text, citation) in enumerate(pieces)
    ]


def chunk_records(records, context: ChunkContext) -> list[Chunk]:
    """Chunk every record and flatten the result.

    Accepts RawRecord instances or their stored dict form. Malformed records
    are logged and skipped. A record whose chunk IDs collide with an earlier
    record's is dropped whole, so IDs stay unique within one run and every
    kept chunk agrees with its siblings on ``total_chunks``.
    """
    chunks: list[Chunk] = []
    seen: set[str] = set()
    skipped = 0

    for position, record in enumerate(records):
        try:
            if isinstance(record, dict):
                record = RawRecord.from_dict(record)
            record_chunks = chunk_record(record, context)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning("Skipping malformed record #%d for %s: %s", position, context.unit.id, e)
            skipped += 1
            continue

        ids = {chunk.chunk_id for chunk in record_chunks}
        if ids & seen:
            logger.warning(
                "Dropping record #%d for %s: chunk ids already produced (%s)",
                position, context.unit.id, record_chunks[0].chunk_id,
            )
            skipped += 1
            continue
        seen.update(ids)
        chunks.extend(record_chunks)

    logger.info(
        "Chunked %s: %d chunks (%d records skipped)", context.unit.id, len(chunks), skipped
    )
    return chunks
