"""Unit tests for structure-aware chunking with citation metadata."""

import pytest

from regindex.ingestion.chunker import (
    ChunkContext,
    _get_overlap_text,
    _split_text_recursive,
    chunk_record,
    chunk_records,
    split_at_subsections,
    split_with_overlap,
)
from regindex.ingestion.tokens import MAX_CHUNK_TOKENS, count_tokens
from regindex.models.record import RawRecord, Subsection
from regindex.sources.units import UnitCatalog


def _paragraph(i: int, length: int = 400) -> str:
    return (f"Paragraph {i:03d} " + "regulated entity shall comply " * 30)[:length]


@pytest.fixture
def catalog():
    return UnitCatalog()


@pytest.fixture
def federal_context(catalog):
    return ChunkContext.for_unit(catalog.get("federal", "21"), year=2024)


@pytest.fixture
def state_context(catalog):
    return ChunkContext.for_unit(catalog.get("state", "PE"), year=2024)


@pytest.fixture
def short_record():
    return RawRecord(
        unit_id="21",
        chapter="",
        part="101",
        section="101.1",
        heading="Principal display panel",
        text="The term principal display panel means the part of a label most likely to be displayed.",
        source_url="https://www.ecfr.gov/current/title-21/section-101.1",
    )


class TestChunkContext:
    def test_state_units_use_statute_source_type(self, state_context):
        assert state_context.source_type == "tx-statute"
        assert state_context.jurisdiction == "TX"

    def test_federal_context(self, federal_context):
        assert federal_context.source_type == "federal"
        assert federal_context.category == "food-safety"

    def test_tac_units_use_tac_source_type(self, catalog):
        context = ChunkContext.for_unit(catalog.get("state", "tac-16"), year=2026)
        record = RawRecord(
            unit_id="tac-16",
            chapter="5",
            section="5.31",
            heading="Enforcement Actions",
            text="The commission may take enforcement action against a licensee.",
            source_url="u",
        )

        chunk = chunk_record(record, context)[0]

        assert context.source_type == "tx-tac"
        assert chunk.chunk_id == "tx-tac-16-5-5.31-0"
        assert chunk.source_id == "tx-tac-16"
        assert chunk.citation == "16 Tex. Admin. Code § 5.31 (2026)"


class TestChunkRecord:
    """Test the whole-record, subsection and paragraph strategies."""

    def test_short_record_is_one_chunk(self, short_record, federal_context):
        chunks = chunk_record(short_record, federal_context)

        assert len(chunks) == 1
        chunk = chunks[0]
        assert chunk.chunk_id == "cfr-21-101-101.1-0"
        assert chunk.source_id == "cfr-title-21"
        assert chunk.citation == "21 C.F.R. § 101.1"
        assert chunk.total_chunks == 1
        assert chunk.text == short_record.text

    def test_ids_are_deterministic_across_runs(self, short_record, federal_context):
        first = [c.chunk_id for c in chunk_record(short_record, federal_context)]
        second = [c.chunk_id for c in chunk_record(short_record, federal_context)]
        assert first == second

    def test_locator_change_changes_id(self, short_record, federal_context):
        moved = RawRecord(
            unit_id="21",
            chapter="",
            part="101",
            section="101.2",
            heading=short_record.heading,
            text=short_record.text,
            source_url=short_record.source_url,
        )
        original = chunk_record(short_record, federal_context)[0].chunk_id
        assert chunk_record(moved, federal_context)[0].chunk_id != original

    def test_empty_record_yields_nothing(self, federal_context):
        record = RawRecord(unit_id="21", chapter="", section="1", heading="", text="  ", source_url="u")
        assert chunk_record(record, federal_context) == []

    def test_oversized_record_splits_at_detected_subsections(self, state_context):
        text = "(a) " + "A person commits an offense. " * 110 + "\n(b) " + "The offense is a felony. " * 120
        record = RawRecord(
            unit_id="PE", chapter="31", section="31.03", heading="Theft", text=text, source_url="u"
        )
        assert count_tokens(text) > MAX_CHUNK_TOKENS

        chunks = chunk_record(record, state_context)

        assert [c.citation for c in chunks] == [
            "Tex. Penal Code Ann. § 31.03 (West 2024) (a)",
            "Tex. Penal Code Ann. § 31.03 (West 2024) (b)",
        ]
        assert [c.chunk_id for c in chunks] == [
            "tx-statute-pe-31-31.03-0",
            "tx-statute-pe-31-31.03-1",
        ]
        assert all(c.total_chunks == 2 for c in chunks)

    def test_adapter_subsections_take_precedence(self, state_context):
        record = RawRecord(
            unit_id="PE",
            chapter="31",
            section="31.03",
            heading="Theft",
            text="x " * 4000,
            source_url="u",
            subsections=[Subsection(id="(a)", text="first part"), Subsection(id="(b)", text="second part")],
        )
        chunks = chunk_record(record, state_context)
        assert [c.text for c in chunks] == ["first part", "second part"]

    def test_unstructured_text_respects_budget(self, federal_context):
        text = "\n\n".join(_paragraph(i) for i in range(40))
        record = RawRecord(unit_id="21", chapter="", part="1", section="1.1", heading="", text=text, source_url="u")

        chunks = chunk_record(record, federal_context)

        assert len(chunks) > 1
        assert all(count_tokens(c.text) <= MAX_CHUNK_TOKENS for c in chunks)
        assert [c.chunk_index for c in chunks] == list(range(len(chunks)))


class TestChunkRecords:
    """Test batch chunking over stored dict records."""

    def test_accepts_stored_dicts(self, short_record, federal_context):
        chunks = chunk_records([short_record.to_dict()], federal_context)
        assert [c.chunk_id for c in chunks] == ["cfr-21-101-101.1-0"]

    def test_skips_malformed_records(self, short_record, federal_context):
        records = [{"unitId": "21", "section": "9"}, short_record.to_dict()]
        chunks = chunk_records(records, federal_context)
        assert len(chunks) == 1

    def test_drops_duplicate_ids(self, short_record, federal_context):
        chunks = chunk_records([short_record, short_record], federal_context)
        assert len(chunks) == 1

    def test_colliding_record_is_dropped_whole(self, short_record, federal_context):
        longer = RawRecord(
            unit_id="21",
            chapter="",
            part="101",
            section="101.1",
            heading="Principal display panel",
            text="x " * 4000,
            source_url=short_record.source_url,
            subsections=[Subsection(id=f"({s})", text=f"part {s}") for s in "abc"],
        )
        assert len(chunk_record(longer, federal_context)) == 3

        chunks = chunk_records([short_record, longer], federal_context)

        assert [c.chunk_id for c in chunks] == ["cfr-21-101-101.1-0"]
        assert chunks[0].total_chunks == 1


class TestSplitAtSubsections:
    def test_preamble_joins_first_subsection(self):
        text = "Definitions apply.\n(a) First rule.\n(b) Second rule."
        subsections = split_at_subsections(text)

        assert [s.id for s in subsections] == ["(a)", "(b)"]
        assert subsections[0].text.startswith("Definitions apply.")
        assert subsections[1].text == "(b) Second rule."

    def test_nested_markers(self):
        subsections = split_at_subsections("(a)(1) One.\n(a)(2) Two.")
        assert [s.id for s in subsections] == ["(a)(1)", "(a)(2)"]

    def test_single_marker_is_not_structure(self):
        assert split_at_subsections("(a) Only one subsection here.") == []


class TestSplitWithOverlap:
    """Test paragraph packing and overlap."""

    def test_next_chunk_starts_with_previous_tail(self):
        paragraphs = [_paragraph(i) for i in range(40)]
        chunks = split_with_overlap("\n\n".join(paragraphs))

        assert len(chunks) >= 3
        for previous, current in zip(chunks, chunks[1:]):
            tail = previous.split("\n\n")[-1]
            assert current.startswith(tail) or tail in current

    def test_short_text_is_one_chunk(self):
        assert split_with_overlap("one\n\ntwo") == ["one\n\ntwo"]

    def test_oversized_paragraph_is_split(self):
        text = "word " * 10000
        chunks = split_with_overlap(text)
        assert len(chunks) > 1
        assert all(count_tokens(c) <= MAX_CHUNK_TOKENS for c in chunks)


class TestSplitTextRecursive:
    def test_falls_back_to_character_windows(self):
        pieces = _split_text_recursive("a" * 20000, 1000)
        assert len(pieces) > 1
        assert all(count_tokens(p) <= 1000 for p in pieces)
        assert "".join(pieces) == "a" * 20000

    def test_prefers_sentence_boundaries(self):
        text = ". ".join(f"Sentence number {i} about permits" for i in range(300))
        pieces = _split_text_recursive(text, 200)
        assert all(count_tokens(p) <= 200 for p in pieces)
        assert pieces[0].startswith("Sentence number 0")


class TestGetOverlapText:
    def test_takes_whole_trailing_paragraphs(self):
        assert _get_overlap_text(["first", "second", "third"], 6) == "second\n\nthird"

    def test_zero_budget(self):
        assert _get_overlap_text(["first"], 0) == ""

    def test_paragraph_larger_than_budget_is_not_cut(self):
        assert _get_overlap_text(["a" * 400], 10) == ""
