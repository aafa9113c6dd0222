"""Unit tests for chunk IDs, source IDs and citations."""

import pytest

from regindex.ingestion.citations import chunk_id_for, citation_for, slugify, source_id_for
from regindex.ingestion.tokens import count_tokens, is_within_model_limit, max_chars_for_tokens
from regindex.models.record import RawRecord
from regindex.sources.units import UnitCatalog


@pytest.fixture
def catalog():
    return UnitCatalog()


def _record(chapter="1", section="1-2", part=None):
    return RawRecord(
        unit_id="x", chapter=chapter, section=section, part=part, heading="", text="t", source_url="u"
    )


class TestSlugify:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("PE", "pe"),
            ("101.1", "101.1"),
            ("Sec. 1.02(a)", "sec._1.02_a"),
            ("Fort Bend", "fort_bend"),
            (None, ""),
            ("  ", ""),
        ],
    )
    def test_slugify(self, value, expected):
        assert slugify(value) == expected


class TestChunkIds:
    """IDs depend only on unit, locators and ordinal."""

    def test_federal(self, catalog):
        unit = catalog.get("federal", "21")
        assert chunk_id_for(unit, _record(chapter="", section="101.1", part="101"), 3) == "cfr-21-101-101.1-3"

    def test_state(self, catalog):
        unit = catalog.get("state", "PE")
        assert chunk_id_for(unit, _record(chapter="31", section="31.03"), 0) == "tx-statute-pe-31-31.03-0"

    def test_tac(self, catalog):
        unit = catalog.get("state", "tac-30")
        assert chunk_id_for(unit, _record(chapter="290", section="290.46"), 2) == "tx-tac-30-290-290.46-2"

    def test_county(self, catalog):
        unit = catalog.get("county", "fort_bend")
        assert chunk_id_for(unit, _record(), 0) == "county-fort_bend-1-1_2-0"

    def test_municipal_with_empty_chapter(self, catalog):
        unit = catalog.get("municipal", "houston")
        assert chunk_id_for(unit, _record(chapter=""), 1) == "municipal-houston-0-1_2-1"

    def test_ordinal_changes_id(self, catalog):
        unit = catalog.get("state", "PE")
        record = _record(chapter="31", section="31.03")
        assert chunk_id_for(unit, record, 0) != chunk_id_for(unit, record, 1)

    def test_negative_index_rejected(self, catalog):
        with pytest.raises(ValueError):
            chunk_id_for(catalog.get("state", "PE"), _record(), -1)


class TestSourceIds:
    @pytest.mark.parametrize(
        "category,unit_id,expected",
        [
            ("federal", "21", "cfr-title-21"),
            ("state", "HS", "tx-statute-hs"),
            ("state", "tac-22", "tx-tac-22"),
            ("county", "harris", "county-harris"),
            ("municipal", "san_antonio", "municipal-san_antonio"),
        ],
    )
    def test_source_ids(self, catalog, category, unit_id, expected):
        assert source_id_for(catalog.get(category, unit_id)) == expected


class TestCitations:
    def test_federal(self, catalog):
        assert citation_for(catalog.get("federal", "49"), _record(section="171.1")) == "49 C.F.R. § 171.1"

    def test_state_uses_bluebook_abbreviation(self, catalog):
        citation = citation_for(catalog.get("state", "HS"), _record(section="431.002"), year=2024)
        assert citation == "Tex. Health & Safety Code Ann. § 431.002 (West 2024)"

    def test_tac(self, catalog):
        citation = citation_for(catalog.get("state", "tac-16"), _record(section="5.31"), year=2026)
        assert citation == "16 Tex. Admin. Code § 5.31 (2026)"

    def test_county(self, catalog):
        citation = citation_for(catalog.get("county", "harris"), _record(section="2-1"), year=2024)
        assert citation == "Harris County, Tex., Code of Ordinances sect. 2-1 (2024)"

    def test_municipal(self, catalog):
        citation = citation_for(catalog.get("municipal", "austin"), _record(section="25-2-1"), year=2023)
        assert citation == "Austin, Tex., Code of Ordinances sect. 25-2-1 (2023)"


class TestTokens:
    def test_estimate_is_conservative(self):
        assert count_tokens("") == 0
        assert count_tokens("abcd") == 2
        assert count_tokens("a" * 400) >= 110

    def test_max_chars_round_trip_stays_within_budget(self):
        for tokens in (10, 200, 1500):
            assert count_tokens("a" * max_chars_for_tokens(tokens)) <= tokens

    def test_model_limit(self):
        assert is_within_model_limit("a" * 1000)
        assert not is_within_model_limit("a" * 40000)
