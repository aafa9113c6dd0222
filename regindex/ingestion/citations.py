"""Chunk IDs, source IDs and Bluebook-style citations.

Chunk IDs are a pure function of the unit, the record's locators and the
chunk's ordinal index, so re-running a unit over unchanged text produces the
same IDs and the vector index upsert overwrites instead of duplicating.

Formats by category:

- federal:   ``cfr-{title}-{part}-{section}-{index}``
- state:     ``tx-statute-{code}-{chapter}-{section}-{index}`` for statutes,
             ``tx-tac-{title}-{chapter}-{section}-{index}`` for TAC rules
- county:    ``county-{county}-{chapter}-{section}-{index}``
- municipal: ``municipal-{city}-{chapter}-{section}-{index}``

Each component is reduced to lowercase ``[a-z0-9.]`` with runs of anything
else collapsed to ``_``.
"""

import re
from datetime import datetime, timezone

from regindex.models.enums import SourceCategory
from regindex.models.record import RawRecord
from regindex.models.unit import Unit

_SLUG_RE = re.compile(r"[^a-z0-9.]+")

EMPTY_LOCATOR = "0"

# Bluebook (21st ed.) Table 1.3 abbreviations for Texas codes
TEXAS_CODE_ABBREVIATIONS = {
    "AG": "Agric. Code",
    "AL": "Alco. Bev. Code",
    "BC": "Bus. & Com. Code",
    "BO": "Bus. Orgs. Code",
    "CP": "Civ. Prac. & Rem. Code",
    "CR": "Crim. Proc. Code",
    "ED": "Educ. Code",
    "EL": "Elec. Code",
    "ES": "Estates Code",
    "FA": "Fam. Code",
    "FI": "Fin. Code",
    "GV": "Gov't Code",
    "HS": "Health & Safety Code",
    "HR": "Hum. Res. Code",
    "IN": "Ins. Code",
    "LA": "Lab. Code",
    "LG": "Loc. Gov't Code",
    "NR": "Nat. Res. Code",
    "OC": "Occ. Code",
    "PW": "Parks & Wild. Code",
    "PE": "Penal Code",
    "PR": "Prop. Code",
    "TX": "Tax Code",
    "TN": "Transp. Code",
    "UT": "Util. Code",
    "WA": "Water Code",
}


def slugify(value) -> str:
    """Normalize an ID component: lowercase, ``[a-z0-9.]`` kept, rest -> ``_``."""
    slug = _SLUG_RE.sub("_", str(value or "").strip().lower())
    return slug.strip("_.")


def _locator(value) -> str:
    return slugify(value) or EMPTY_LOCATOR


def source_id_for(unit: Unit) -> str:
    """Identifier shared by every chunk of a unit."""
    category = unit.category
    if category == SourceCategory.FEDERAL:
        return f"cfr-title-{_locator(unit.id)}"
    if unit.tac_title is not None:
        return f"tx-tac-{_locator(unit.tac_title)}"
    if category == SourceCategory.STATE:
        return f"tx-statute-{_locator(unit.id)}"
    return f"{category.value}-{_locator(unit.id)}"


def chunk_id_for(unit: Unit, record: RawRecord, index: int) -> str:
    if index < 0:
        raise ValueError("index must be >= 0")

    if unit.category == SourceCategory.FEDERAL:
        part = record.part or record.chapter
        locators = [unit.id, part, record.section]
        prefix = "cfr"
    elif unit.tac_title is not None:
        locators = [unit.tac_title, record.chapter, record.section]
        prefix = "tx-tac"
    elif unit.category == SourceCategory.STATE:
        locators = [unit.id, record.chapter, record.section]
        prefix = "tx-statute"
    else:
        locators = [unit.id, record.chapter, record.section]
        prefix = unit.category.value

    return "-".join([prefix, *(_locator(v) for v in locators), str(index)])


def citation_for(unit: Unit, record: RawRecord, year: int | None = None) -> str:
    """Human-readable citation for a record."""
    year = year or datetime.now(timezone.utc).year
    section = record.section

    if unit.category == SourceCategory.FEDERAL:
        return f"{unit.id} C.F.R. § {section}"
    elif unit.tac_title is not None:
        return f"{unit.tac_title} Tex. Admin. Code § {section} ({year})"
    elif unit.category == SourceCategory.STATE:
        code_name = TEXAS_CODE_ABBREVIATIONS.get(unit.id.upper(), unit.code_name)
        return f"Tex. {code_name} Ann. § {section} (West {year})"
    elif unit.category == SourceCategory.COUNTY:
        return f"{unit.name} County, Tex., {unit.code_name} sect. {section} ({year})"
    else:
        return f"{unit.name}, Tex., {unit.code_name} sect. {section} ({year})"
