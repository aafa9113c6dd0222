"""Unit tests for the unit catalog."""

import pytest

from regindex.errors import UnknownUnitError
from regindex.models.enums import Platform, SourceCategory
from regindex.models.unit import Unit
from regindex.sources.units import COUNTY_UNITS, UnitCatalog


def _unit(unit_id, enabled=True):
    return Unit(
        id=unit_id,
        name=unit_id.title(),
        category=SourceCategory.COUNTY,
        platform=Platform.MUNICODE,
        base_url=f"https://library.municode.com/tx/{unit_id}",
        jurisdiction="TX-48000",
        enabled=enabled,
        skip_reason=None if enabled else "no online code",
    )


@pytest.fixture
def catalog():
    return UnitCatalog([_unit("alpha"), _unit("beta", enabled=False), _unit("gamma")])


class TestDefaultCatalog:
    def test_category_sizes(self):
        catalog = UnitCatalog()
        assert len(catalog.all_units("federal")) == 7
        assert len(catalog.all_units("state")) == 15
        assert len(catalog.all_units("county")) == 10
        assert len(catalog.all_units("municipal")) == 15

    def test_county_jurisdictions_use_fips(self):
        harris = next(u for u in COUNTY_UNITS if u.id == "harris")
        assert harris.jurisdiction == "TX-48201"

    def test_federal_titles(self):
        ids = [u.id for u in UnitCatalog().enabled_units(SourceCategory.FEDERAL)]
        assert ids == ["7", "9", "21", "27", "29", "40", "49"]


class TestResolve:
    """Unit resolution for a coordinator run."""

    def test_default_is_every_enabled_unit(self, catalog):
        assert [u.id for u in catalog.resolve("county")] == ["alpha", "gamma"]

    def test_requested_order_is_kept(self, catalog):
        assert [u.id for u in catalog.resolve("county", ["gamma", "alpha"])] == ["gamma", "alpha"]

    def test_unknown_and_disabled_are_dropped(self, catalog):
        assert [u.id for u in catalog.resolve("county", ["beta", "zeta", "alpha", "alpha"])] == ["alpha"]

    def test_other_categories_are_empty(self, catalog):
        assert catalog.resolve("federal") == []


class TestGet:
    def test_get(self, catalog):
        assert catalog.get(SourceCategory.COUNTY, "alpha").name == "Alpha"

    def test_unknown(self, catalog):
        with pytest.raises(UnknownUnitError):
            catalog.get("county", "zeta")

    def test_invalid_category(self, catalog):
        with pytest.raises(ValueError):
            catalog.get("galactic", "alpha")


class TestUnit:
    def test_summary(self):
        assert _unit("alpha").summary() == {"unitId": "alpha", "name": "Alpha", "platform": "municode"}

    def test_requires_id(self):
        with pytest.raises(ValueError):
            _unit("")
