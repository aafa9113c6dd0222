"""Static catalog of ingestible units, grouped by source category."""

import logging

from regindex.errors import UnknownUnitError
from regindex.models.enums import Platform, SourceCategory
from regindex.models.unit import Unit
from regindex.sources.ecfr import ECFR_API_URL

logger = logging.getLogger(__name__)

TEXAS_STATUTES_URL = "https://statutes.capitol.texas.gov"
TEXAS_TAC_URL = "https://texreg.sos.state.tx.us/public"


def _cfr_title(number: int, name: str, categories: tuple[str, ...]) -> Unit:
    return Unit(
        id=str(number),
        name=f"Title {number}: {name}",
        category=SourceCategory.FEDERAL,
        platform=Platform.ECFR,
        base_url=ECFR_API_URL,
        jurisdiction="US",
        code_name=name,
        categories=categories,
    )


def _texas_code(code: str, name: str, categories: tuple[str, ...]) -> Unit:
    return Unit(
        id=code,
        name=name,
        category=SourceCategory.STATE,
        platform=Platform.TEXAS_STATUTES,
        base_url=TEXAS_STATUTES_URL,
        jurisdiction="TX",
        code_name=name,
        categories=categories,
    )


def _tac_title(number: int, name: str, categories: tuple[str, ...]) -> Unit:
    return Unit(
        id=f"tac-{number}",
        name=f"TAC Title {number}: {name}",
        category=SourceCategory.STATE,
        platform=Platform.TEXAS_TAC,
        base_url=TEXAS_TAC_URL,
        jurisdiction="TX",
        code_name="Texas Administrative Code",
        categories=categories,
    )


def _county(name: str, fips: str, platform: Platform, base_url: str, categories: tuple[str, ...], **kwargs) -> Unit:
    return Unit(
        id=name.lower().replace(" ", "_"),
        name=name,
        category=SourceCategory.COUNTY,
        platform=platform,
        base_url=base_url,
        jurisdiction=f"TX-{fips}",
        categories=categories,
        **kwargs,
    )


def _city(name: str, city_id: str, categories: tuple[str, ...] = ("zoning", "building", "health")) -> Unit:
    return Unit(
        id=city_id,
        name=name,
        category=SourceCategory.MUNICIPAL,
        platform=Platform.MUNICODE,
        base_url=f"https://library.municode.com/tx/{city_id}/codes/code_of_ordinances",
        jurisdiction=f"TX-{city_id}",
        categories=categories,
    )


FEDERAL_UNITS = [
    _cfr_title(7, "Agriculture", ("food-retail", "food-safety")),
    _cfr_title(9, "Animals and Animal Products", ("food-safety",)),
    _cfr_title(21, "Food and Drugs", ("food-safety", "pharmacy")),
    _cfr_title(27, "Alcohol, Tobacco, Products and Firearms", ("alcohol",)),
    _cfr_title(29, "Labor", ("employment",)),
    _cfr_title(40, "Protection of Environment", ("fuel", "hazmat")),
    _cfr_title(49, "Transportation", ("fuel", "transportation")),
]

STATE_UNITS = [
    _texas_code("OC", "Occupations Code", ("licensing", "professional-regulation")),
    _texas_code("HS", "Health & Safety Code", ("food-safety", "pharmacy", "hazmat")),
    _texas_code("AL", "Alcoholic Beverage Code", ("alcohol",)),
    _texas_code("TX", "Tax Code", ("tax",)),
    _texas_code("LA", "Labor Code", ("employment",)),
    _texas_code("PE", "Penal Code", ("criminal", "fraud")),
    _texas_code("BC", "Business & Commerce Code", ("consumer-protection", "contracts")),
    _texas_code("IN", "Insurance Code", ("insurance",)),
    _texas_code("AG", "Agriculture Code", ("agriculture",)),
    _texas_code("LG", "Local Government Code", ("zoning", "permits")),
    _tac_title(16, "Economic Regulation", ("alcohol", "licensing")),
    _tac_title(22, "Examining Boards", ("licensing", "professional-regulation")),
    _tac_title(25, "Health Services", ("pharmacy", "food-safety")),
    _tac_title(30, "Environmental Quality", ("environmental", "water")),
    _tac_title(37, "Public Safety and Corrections", ("licensing", "professional-regulation")),
]

_MUNICODE_COUNTY = "https://library.municode.com/tx/{slug}/codes/code_of_ordinances"

COUNTY_UNITS = [
    _county("Harris", "48201", Platform.MUNICODE, _MUNICODE_COUNTY.format(slug="harris_county"),
            ("subdivision", "infrastructure", "flood", "health")),
    _county("Dallas", "48113", Platform.ELAWS, "http://dallascounty-tx.elaws.us/code/coor",
            ("subdivision", "building", "flood", "health")),
    _county("Tarrant", "48439", Platform.MUNICODE, _MUNICODE_COUNTY.format(slug="tarrant_county"),
            ("subdivision", "building", "drainage", "health")),
    _county("Bexar", "48029", Platform.MUNICODE, _MUNICODE_COUNTY.format(slug="bexar_county"),
            ("subdivision", "building", "flood", "health")),
    _county("Travis", "48453", Platform.MUNICODE, _MUNICODE_COUNTY.format(slug="travis_county"),
            ("subdivision", "building", "flood", "septic", "health")),
    _county("Collin", "48085", Platform.MUNICODE, _MUNICODE_COUNTY.format(slug="collin_county"),
            ("subdivision", "building", "drainage", "health")),
    _county("Denton", "48121", Platform.MUNICODE, _MUNICODE_COUNTY.format(slug="denton_county"),
            ("subdivision", "building", "flood", "health")),
    _county("Fort Bend", "48157", Platform.MUNICODE, _MUNICODE_COUNTY.format(slug="fort_bend_county"),
            ("subdivision", "building", "drainage", "flood", "health")),
    _county("Williamson", "48491", Platform.MUNICODE, _MUNICODE_COUNTY.format(slug="williamson_county"),
            ("subdivision", "building", "flood", "septic", "health")),
    _county("El Paso", "48141", Platform.MUNICODE, _MUNICODE_COUNTY.format(slug="el_paso_county"),
            ("subdivision", "building", "flood", "health")),
]

MUNICIPAL_UNITS = [
    _city("Houston", "houston"),
    _city("San Antonio", "san_antonio"),
    _city("Austin", "austin"),
    _city("El Paso", "el_paso"),
    _city("Arlington", "arlington"),
    _city("Plano", "plano"),
    _city("Corpus Christi", "corpus_christi"),
    _city("Lubbock", "lubbock"),
    _city("Laredo", "laredo"),
    _city("Irving", "irving"),
    _city("Garland", "garland"),
    _city("Frisco", "frisco"),
    _city("McKinney", "mckinney"),
    _city("Amarillo", "amarillo"),
    _city("Grand Prairie", "grand_prairie"),
]

DEFAULT_UNITS = FEDERAL_UNITS + STATE_UNITS + COUNTY_UNITS + MUNICIPAL_UNITS


class UnitCatalog:
    """Lookup over a fixed set of units."""

    def __init__(self, units: list[Unit] | None = None):
        self._units: dict[SourceCategory, dict[str, Unit]] = {c: {} for c in SourceCategory}
        for unit in DEFAULT_UNITS if units is None else units:
            self._units[unit.category][unit.id] = unit

    def all_units(self, category: SourceCategory | str) -> list[Unit]:
        return list(self._units[SourceCategory(category)].values())

    def enabled_units(self, category: SourceCategory | str) -> list[Unit]:
        return [u for u in self.all_units(category) if u.enabled]

    def get(self, category: SourceCategory | str, unit_id: str) -> Unit:
        unit = self._units[SourceCategory(category)].get(unit_id)
        if unit is None:
            raise UnknownUnitError(f"Unknown {SourceCategory(category).value} unit: {unit_id}")
        return unit

    def resolve(self, category: SourceCategory | str, requested_ids: list[str] | None = None) -> list[Unit]:
        """Units to process for a run.

        With no explicit request, every enabled unit. Otherwise the requested
        units in request order; unknown or disabled ids are logged and dropped.
        """
        if not requested_ids:
            return self.enabled_units(category)

        units = []
        for unit_id in dict.fromkeys(requested_ids):
            try:
                unit = self.get(category, unit_id)
            except UnknownUnitError as e:
                logger.warning("%s", e)
                continue
            if not unit.enabled:
                logger.warning("Skipping disabled unit %s: %s", unit.id, unit.skip_reason)
                continue
            units.append(unit)
        return units
