"""
Persisted pedigree document.

The JSON shape mirrors the in-memory graph with camelCase field names::

    {
      "individuals": [{"id": "III-1", "generation": 3, "position": 1, "gender": "male",
                       "parentIds": ["II-1", "II-2"], "spouseId": null, ...}],
      "probandId": "III-1",
      "inheritancePattern": "autosomal_dominant",
      "carrierFrequency": 0.01
    }

Derived fields (``x``, ``y``, ``calculatedRisks``) are written out but always
recomputed after a load. Dangling references are kept as-is; the engines skip
them.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Optional

from .errors import PedigreeLoadError
from .layout import LayoutSettings
from .mutations import recompute
from .models import (
    ADOPTION_DIRECTIONS,
    DEFAULT_CARRIER_FREQUENCY,
    GENDERS,
    MARRIAGE_STATUSES,
    MAX_GENERATION,
    MIN_GENERATION,
    NO_OFFSPRING_TYPES,
    TEST_RESULTS,
    TWIN_TYPES,
    Individual,
    InheritancePattern,
    MarriageInfo,
    Pedigree,
    SpecialMarker,
    roman_to_int,
)

LOGGER = logging.getLogger(__name__)

_TEXT_FIELDS = {
    "name": "name",
    "age": "age",
    "birthYear": "birth_year",
    "deathYear": "death_year",
    "deathAge": "death_age",
    "conditions": "conditions",
    "remarks": "remarks",
}


def individual_to_dict(ind: Individual) -> dict:
    data = {
        "id": ind.id,
        "gender": ind.gender,
        "generation": ind.generation,
        "position": ind.position,
        "affected": ind.affected,
        "carrier": ind.carrier,
        "testResult": ind.test_result,
        "spouseId": ind.spouse_id,
        "parentIds": list(ind.parent_ids),
        "childrenIds": list(ind.children_ids),
        "deceased": ind.deceased,
        "calculatedRisks": dict(ind.calculated_risks),
        "x": ind.x,
        "y": ind.y,
    }
    for key, attr in _TEXT_FIELDS.items():
        data[key] = getattr(ind, attr)
    if ind.marriage_info is not None:
        data["marriageInfo"] = {"status": ind.marriage_info.status, "doubleLine": ind.marriage_info.double_line}
    if ind.twin_with:
        data["twinWith"] = ind.twin_with
        data["twinType"] = ind.twin_type
    if ind.is_adopted:
        data["isAdopted"] = True
        data["adoptedDirection"] = ind.adopted_direction
    if ind.is_pregnancy:
        data["isPregnancy"] = True
    if ind.is_pregnancy_loss:
        data["isPregnancyLoss"] = True
        data["isTermination"] = ind.is_termination
    if ind.no_offspring:
        data["noOffspringInfo"] = {"type": ind.no_offspring}
    return data


def pedigree_to_dict(pedigree: Pedigree) -> dict:
    return {
        "individuals": [individual_to_dict(ind) for ind in pedigree.individuals.values()],
        "probandId": pedigree.proband_id,
        "inheritancePattern": InheritancePattern(pedigree.inheritance_pattern).value,
        "carrierFrequency": pedigree.carrier_frequency,
    }


def _fail(message: str) -> None:
    raise PedigreeLoadError(message)


def _choice(data: dict, key: str, choices, default, where: str):
    value = data.get(key)
    if value in (None, ""):
        return default
    if value not in choices:
        _fail(f"{where}: invalid {key} {value!r}")
    return value


def _optional_id(value, key: str, where: str) -> Optional[str]:
    if value in (None, ""):
        return None
    if not isinstance(value, str):
        _fail(f"{where}: {key} must be a string id")
    return value


def _id_list(value, key: str, where: str) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        _fail(f"{where}: {key} must be a list of ids")
    return list(value)


def _marker(data: dict) -> SpecialMarker:
    if data.get("isTermination"):
        return SpecialMarker.TERMINATION
    if data.get("isPregnancyLoss"):
        return SpecialMarker.PREGNANCY_LOSS
    if data.get("isPregnancy"):
        return SpecialMarker.PREGNANCY
    return SpecialMarker.NONE


def individual_from_dict(data: dict, index: int) -> Individual:
    if not isinstance(data, dict):
        _fail(f"individuals[{index}] is not an object")
    pid = data.get("id")
    if not isinstance(pid, str) or not pid:
        _fail(f"individuals[{index}] has no id")
    where = f"individual {pid}"

    gen = data.get("generation")
    if gen is None and "-" in pid:
        gen = roman_to_int(pid.split("-", 1)[0])
    if isinstance(gen, bool) or not isinstance(gen, int) or not MIN_GENERATION <= gen <= MAX_GENERATION:
        _fail(f"{where}: generation must be an integer in {MIN_GENERATION}..{MAX_GENERATION}")
    position = data.get("position", 0)
    if isinstance(position, bool) or not isinstance(position, (int, float)):
        _fail(f"{where}: position must be a number")

    ind = Individual(
        id=pid,
        generation=gen,
        position=int(position),
        gender=_choice(data, "gender", GENDERS, "unknown", where),
        affected=bool(data.get("affected", False)),
        carrier=bool(data.get("carrier", False)),
        test_result=_choice(data, "testResult", TEST_RESULTS, "", where),
        spouse_id=_optional_id(data.get("spouseId"), "spouseId", where),
        children_ids=_id_list(data.get("childrenIds"), "childrenIds", where),
        twin_with=_optional_id(data.get("twinWith"), "twinWith", where),
        is_adopted=bool(data.get("isAdopted", False)),
        deceased=bool(data.get("deceased", False)),
        marker=_marker(data),
    )
    ind.set_parents(_id_list(data.get("parentIds"), "parentIds", where))
    for key, attr in _TEXT_FIELDS.items():
        value = data.get(key)
        setattr(ind, attr, "" if value is None else str(value))

    if ind.twin_with:
        ind.twin_type = _choice(data, "twinType", TWIN_TYPES, None, where)
    if ind.is_adopted:
        ind.adopted_direction = _choice(data, "adoptedDirection", ADOPTION_DIRECTIONS, None, where)

    marriage = data.get("marriageInfo")
    if marriage is not None:
        if not isinstance(marriage, dict):
            _fail(f"{where}: marriageInfo must be an object")
        # doubleLine is a rendering hint; the status decides.
        ind.marriage_info = MarriageInfo(status=_choice(marriage, "status", MARRIAGE_STATUSES, "married", where))

    no_offspring = data.get("noOffspringInfo")
    if isinstance(no_offspring, dict) and no_offspring.get("type"):
        ind.no_offspring = _choice(no_offspring, "type", NO_OFFSPRING_TYPES, None, where)

    risks = data.get("calculatedRisks")
    if isinstance(risks, dict):
        ind.calculated_risks = {
            k: (float(v) if isinstance(v, (int, float)) and not isinstance(v, bool) else None)
            for k, v in risks.items()
        }
    for axis in ("x", "y"):
        value = data.get(axis)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            setattr(ind, axis, float(value))
    return ind


def pedigree_from_dict(data) -> Pedigree:
    """Build a new pedigree from a persisted document; raises ``PedigreeLoadError``."""
    if not isinstance(data, dict):
        _fail("document root must be an object")
    raw = data.get("individuals", [])
    if not isinstance(raw, list):
        _fail("individuals must be a list")

    pedigree = Pedigree()
    for index, item in enumerate(raw):
        ind = individual_from_dict(item, index)
        if ind.id in pedigree:
            _fail(f"duplicate id {ind.id!r}")
        pedigree.add(ind)

    pattern = data.get("inheritancePattern") or InheritancePattern.AUTOSOMAL_DOMINANT.value
    try:
        pedigree.inheritance_pattern = InheritancePattern(pattern)
    except ValueError:
        _fail(f"unknown inheritance pattern {pattern!r}")

    freq = data.get("carrierFrequency", DEFAULT_CARRIER_FREQUENCY)
    if isinstance(freq, bool) or not isinstance(freq, (int, float)) or not 0 < freq < 1:
        _fail(f"carrierFrequency must be a number between 0 and 1, got {freq!r}")
    pedigree.carrier_frequency = float(freq)

    proband_id = data.get("probandId")
    if proband_id is not None and proband_id not in pedigree:
        LOGGER.warning("probandId %r does not match any individual; ignoring it", proband_id)
        proband_id = None
    pedigree.proband_id = proband_id
    return pedigree


def load_into(pedigree: Pedigree, data, settings: Optional[LayoutSettings] = None) -> Pedigree:
    """Replace ``pedigree``'s contents with ``data``; on failure it is left untouched."""
    loaded = pedigree_from_dict(data)
    recompute(loaded, settings)
    pedigree.individuals = loaded.individuals
    pedigree.proband_id = loaded.proband_id
    pedigree.inheritance_pattern = loaded.inheritance_pattern
    pedigree.carrier_frequency = loaded.carrier_frequency
    LOGGER.info("Loaded pedigree with %d individuals", len(pedigree))
    return pedigree


def loads(text: str, settings: Optional[LayoutSettings] = None) -> Pedigree:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise PedigreeLoadError(f"invalid JSON: {exc}") from exc
    return load_into(Pedigree(), data, settings)


def load_pedigree(path, settings: Optional[LayoutSettings] = None) -> Pedigree:
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise PedigreeLoadError(f"cannot read {path}: {exc}") from exc
    return loads(text, settings)


def dumps(pedigree: Pedigree) -> str:
    return json.dumps(pedigree_to_dict(pedigree), indent=2, ensure_ascii=False)


def save_pedigree(pedigree: Pedigree, path) -> str:
    Path(path).write_text(dumps(pedigree), encoding="utf-8")
    return str(path)

