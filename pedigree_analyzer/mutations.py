"""
Relationship mutations on a ``Pedigree``.

Every operation checks its preconditions first and raises ``MutationRejected``
(with a reason code) before touching the graph. On success it updates the
reciprocal references on related individuals and then calls ``recompute``:
positions are renormalised, the full layout is rebuilt and all risks are
recalculated. There is no incremental update.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .errors import MutationRejected
from .layout import LayoutSettings, apply_layout, compute_layout, reorder_positions
from .models import (
    ADOPTION_DIRECTIONS,
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
    clamp_generation,
    make_id,
)
from .resolver import children_of, spouse_of
from .risk import apply_risks, compute_all_risks

LOGGER = logging.getLogger(__name__)

PROBAND_GENERATION = 3


def recompute(pedigree: Pedigree, settings: Optional[LayoutSettings] = None) -> Pedigree:
    reorder_positions(pedigree)
    apply_layout(pedigree, compute_layout(pedigree, settings))
    apply_risks(pedigree, compute_all_risks(pedigree))
    return pedigree


# ---------- validation helpers ----------
def _require(pedigree: Pedigree, individual_id: str) -> Individual:
    ind = pedigree.get(individual_id)
    if ind is None:
        raise MutationRejected("not_found", f"No individual with id {individual_id!r}.")
    return ind


def _check_choice(value, choices: Iterable, what: str) -> None:
    if value not in tuple(choices):
        raise MutationRejected("invalid_value", f"Unknown {what}: {value!r}.")


def _check_adoption(adopted: Optional[str]) -> None:
    if adopted is not None:
        _check_choice(adopted, ADOPTION_DIRECTIONS, "adoption direction")


def _require_spouse(pedigree: Pedigree, ind: Individual, action: str) -> Individual:
    spouse = spouse_of(pedigree, ind)
    if spouse is None:
        raise MutationRejected("needs_spouse", f"{ind.id} needs a spouse to {action}. Add a spouse first.")
    return spouse


def _require_room_below(ind: Individual) -> None:
    if ind.generation >= MAX_GENERATION:
        raise MutationRejected("bottom_generation", f"{ind.id} is in the last generation; no children can be added.")


def _opposite_gender(gender: str) -> str:
    return "female" if gender == "male" else "male"


def _marry(a: Individual, b: Individual, status: str) -> None:
    a.spouse_id = b.id
    b.spouse_id = a.id
    a.marriage_info = None
    b.marriage_info = None
    holder = a if a.id < b.id else b
    holder.marriage_info = MarriageInfo(status=status)


def _new_individual(
    pedigree: Pedigree,
    generation: int,
    *,
    name: str = "",
    gender: str = "unknown",
    affected: bool = False,
    parent_ids: Tuple[str, ...] = (),
    slot: Optional[Tuple[str, int]] = None,
    remarks: str = "",
) -> Individual:
    generation = clamp_generation(generation)
    individual_id, position = slot or pedigree.allocate_ids(generation)[0]
    ind = Individual(
        id=individual_id,
        generation=generation,
        position=position,
        gender=gender,
        name=name or "",
        affected=bool(affected),
        remarks=remarks,
    )
    ind.set_parents(parent_ids)
    return ind


def _attach_child(pedigree: Pedigree, child: Individual) -> Individual:
    pedigree.add(child)
    for pid in child.parent_ids:
        parent = pedigree.get(pid)
        if parent is not None:
            parent.add_child(child.id)
    return child


def _couple_parent_ids(pedigree: Pedigree, parent: Individual) -> Tuple[str, ...]:
    spouse = spouse_of(pedigree, parent)
    return (parent.id, spouse.id) if spouse is not None else (parent.id,)


def _mark_adoption(ind: Individual, adopted: Optional[str]) -> None:
    if adopted is not None:
        ind.is_adopted = True
        ind.adopted_direction = adopted


# ---------- operations ----------
def add_proband(
    pedigree: Pedigree,
    name: str,
    gender: str,
    affected: bool = False,
    settings: Optional[LayoutSettings] = None,
) -> Individual:
    """Start a pedigree from its reference individual (id ``III-1``)."""
    if len(pedigree):
        raise MutationRejected("pedigree_not_empty", "A proband can only start an empty pedigree.")
    _check_choice(gender, ("male", "female"), "proband gender")
    proband = _new_individual(
        pedigree,
        PROBAND_GENERATION,
        name=name,
        gender=gender,
        affected=affected,
        slot=(make_id(PROBAND_GENERATION, 1), 1),
        remarks="Proband - central individual for pedigree analysis",
    )
    pedigree.add(proband)
    pedigree.proband_id = proband.id
    LOGGER.info("Added proband %s", proband.id)
    recompute(pedigree, settings)
    return proband


def add_parents(
    pedigree: Pedigree,
    child_id: str,
    first: Dict,
    second: Optional[Dict] = None,
    marital_status: str = "married",
    settings: Optional[LayoutSettings] = None,
) -> Tuple[Individual, Individual]:
    """Add a couple as the parents of ``child_id``.

    ``first``/``second`` are dicts with ``name``, ``affected`` and (first only)
    ``gender``; the second parent always gets the opposite gender.
    """
    child = _require(pedigree, child_id)
    if len(child.parent_ids) >= 2:
        raise MutationRejected("has_two_parents", f"{child.id} already has two parents.")
    if child.parent_ids:
        raise MutationRejected(
            "has_single_parent",
            f"{child.id} has one parent on record; add a spouse to that parent instead.",
        )
    if child.generation <= MIN_GENERATION:
        raise MutationRejected("top_generation", f"{child.id} is in the first generation; no parents can be added.")
    second = second or {}
    gender1 = first.get("gender", "male")
    _check_choice(gender1, ("male", "female"), "parent gender")
    _check_choice(marital_status, MARRIAGE_STATUSES, "marital status")

    generation = clamp_generation(child.generation - 1)
    (id1, pos1), (id2, pos2) = pedigree.allocate_ids(generation, 2)
    parent1 = _new_individual(
        pedigree, generation, name=first.get("name", ""), gender=gender1,
        affected=first.get("affected", False), slot=(id1, pos1),
    )
    parent2 = _new_individual(
        pedigree, generation, name=second.get("name", ""), gender=_opposite_gender(gender1),
        affected=second.get("affected", False), slot=(id2, pos2),
    )
    _marry(parent1, parent2, marital_status)
    for parent in (parent1, parent2):
        parent.add_child(child.id)
        pedigree.add(parent)
    child.set_parents((parent1.id, parent2.id))
    LOGGER.info("Added parents %s and %s of %s", parent1.id, parent2.id, child.id)
    recompute(pedigree, settings)
    return parent1, parent2


def add_spouse(
    pedigree: Pedigree,
    individual_id: str,
    name: str,
    affected: bool = False,
    marital_status: str = "married",
    gender: Optional[str] = None,
    settings: Optional[LayoutSettings] = None,
) -> Individual:
    ind = _require(pedigree, individual_id)
    if spouse_of(pedigree, ind) is not None:
        raise MutationRejected("has_spouse", f"{ind.id} already has a spouse.")
    _check_choice(marital_status, MARRIAGE_STATUSES, "marital status")
    gender = gender or _opposite_gender(ind.gender)
    _check_choice(gender, GENDERS, "gender")

    spouse = _new_individual(pedigree, ind.generation, name=name, gender=gender, affected=affected)
    _marry(ind, spouse, marital_status)
    pedigree.add(spouse)
    # The new partner becomes co-parent of children that have a free parent slot.
    for child in children_of(pedigree, ind):
        if len(child.parent_ids) < 2 and spouse.id not in child.parent_ids:
            child.set_parents(child.parent_ids + (spouse.id,))
            spouse.add_child(child.id)
    LOGGER.info("Added spouse %s of %s", spouse.id, ind.id)
    recompute(pedigree, settings)
    return spouse


def add_child(
    pedigree: Pedigree,
    parent_id: str,
    name: str,
    gender: str,
    affected: bool = False,
    adopted: Optional[str] = None,
    settings: Optional[LayoutSettings] = None,
) -> Individual:
    parent = _require(pedigree, parent_id)
    spouse = _require_spouse(pedigree, parent, "add a child")
    _require_room_below(parent)
    _check_choice(gender, GENDERS, "gender")
    _check_adoption(adopted)

    child = _new_individual(
        pedigree, parent.generation + 1, name=name, gender=gender, affected=affected,
        parent_ids=(parent.id, spouse.id),
    )
    _mark_adoption(child, adopted)
    _attach_child(pedigree, child)
    LOGGER.info("Added child %s of %s and %s", child.id, parent.id, spouse.id)
    recompute(pedigree, settings)
    return child


def add_sibling(
    pedigree: Pedigree,
    individual_id: str,
    name: str,
    gender: str,
    affected: bool = False,
    adopted: Optional[str] = None,
    settings: Optional[LayoutSettings] = None,
) -> Individual:
    ind = _require(pedigree, individual_id)
    if not ind.parent_ids:
        raise MutationRejected("no_parents", f"{ind.id} has no parents in the chart; add parents first.")
    _check_choice(gender, GENDERS, "gender")
    _check_adoption(adopted)

    sibling = _new_individual(
        pedigree, ind.generation, name=name, gender=gender, affected=affected, parent_ids=ind.parent_ids,
    )
    _mark_adoption(sibling, adopted)
    _attach_child(pedigree, sibling)
    LOGGER.info("Added sibling %s of %s", sibling.id, ind.id)
    recompute(pedigree, settings)
    return sibling


def add_twins(
    pedigree: Pedigree,
    parent_id: str,
    twin_type: str,
    first: Dict,
    second: Dict,
    settings: Optional[LayoutSettings] = None,
) -> Tuple[Individual, Individual]:
    """Add a twin pair to a couple. Identical twins share the first twin's gender."""
    parent = _require(pedigree, parent_id)
    spouse = _require_spouse(pedigree, parent, "add twins")
    _require_room_below(parent)
    _check_choice(twin_type, TWIN_TYPES, "twin type")
    gender1 = first.get("gender", "unknown")
    gender2 = gender1 if twin_type == "identical" else second.get("gender", "unknown")
    _check_choice(gender1, GENDERS, "gender")
    _check_choice(gender2, GENDERS, "gender")

    generation = clamp_generation(parent.generation + 1)
    slots = pedigree.allocate_ids(generation, 2)
    remarks = "Identical twin" if twin_type == "identical" else "Fraternal twin"
    parents = (parent.id, spouse.id)
    twin1 = _new_individual(
        pedigree, generation, name=first.get("name", ""), gender=gender1,
        affected=first.get("affected", False), parent_ids=parents, slot=slots[0], remarks=remarks,
    )
    twin2 = _new_individual(
        pedigree, generation, name=second.get("name", ""), gender=gender2,
        affected=second.get("affected", False), parent_ids=parents, slot=slots[1], remarks=remarks,
    )
    twin1.twin_with, twin2.twin_with = twin2.id, twin1.id
    twin1.twin_type = twin2.twin_type = twin_type
    _attach_child(pedigree, twin1)
    _attach_child(pedigree, twin2)
    LOGGER.info("Added %s twins %s and %s", twin_type, twin1.id, twin2.id)
    recompute(pedigree, settings)
    return twin1, twin2


def add_pregnancy(
    pedigree: Pedigree,
    parent_id: str,
    gender: str = "unknown",
    settings: Optional[LayoutSettings] = None,
) -> Individual:
    parent = _require(pedigree, parent_id)
    _require_room_below(parent)
    _check_choice(gender, GENDERS, "gender")
    child = _new_individual(
        pedigree, parent.generation + 1, name="Pregnancy", gender=gender,
        parent_ids=_couple_parent_ids(pedigree, parent), remarks="Pregnancy",
    )
    child.marker = SpecialMarker.PREGNANCY
    _attach_child(pedigree, child)
    LOGGER.info("Added pregnancy %s", child.id)
    recompute(pedigree, settings)
    return child


def add_pregnancy_loss(
    pedigree: Pedigree,
    parent_id: str,
    termination: bool = False,
    settings: Optional[LayoutSettings] = None,
) -> Individual:
    """Spontaneous miscarriage, or termination of pregnancy when ``termination``."""
    parent = _require(pedigree, parent_id)
    _require_room_below(parent)
    child = _new_individual(
        pedigree, parent.generation + 1,
        name="Termination" if termination else "Miscarriage",
        parent_ids=_couple_parent_ids(pedigree, parent),
        remarks="Termination of pregnancy" if termination else "Spontaneous miscarriage",
    )
    child.marker = SpecialMarker.TERMINATION if termination else SpecialMarker.PREGNANCY_LOSS
    _attach_child(pedigree, child)
    LOGGER.info("Added pregnancy loss %s (termination=%s)", child.id, termination)
    recompute(pedigree, settings)
    return child


def add_termination(pedigree: Pedigree, parent_id: str, settings: Optional[LayoutSettings] = None) -> Individual:
    return add_pregnancy_loss(pedigree, parent_id, termination=True, settings=settings)


def mark_no_offspring(
    pedigree: Pedigree,
    individual_id: str,
    kind: str = "no_offspring",
    settings: Optional[LayoutSettings] = None,
) -> Tuple[Individual, Individual]:
    ind = _require(pedigree, individual_id)
    spouse = _require_spouse(pedigree, ind, "record no offspring or infertility")
    _check_choice(kind, NO_OFFSPRING_TYPES, "no-offspring type")
    ind.no_offspring = kind
    spouse.no_offspring = kind
    LOGGER.info("Marked %s and %s as %s", ind.id, spouse.id, kind)
    recompute(pedigree, settings)
    return ind, spouse


_EDITABLE_TEXT = ("name", "age", "birth_year", "death_year", "death_age", "conditions", "remarks")
_EDITABLE_FLAGS = ("affected", "carrier", "deceased")


def update_individual(pedigree: Pedigree, individual_id: str, settings: Optional[LayoutSettings] = None, **fields) -> Individual:
    """Edit clinical and descriptive fields; ``marital_status`` edits the couple."""
    ind = _require(pedigree, individual_id)
    allowed = set(_EDITABLE_TEXT) | set(_EDITABLE_FLAGS) | {"gender", "test_result", "marital_status"}
    unknown = sorted(set(fields) - allowed)
    if unknown:
        raise MutationRejected("invalid_value", f"Fields cannot be edited: {', '.join(unknown)}.")
    if "gender" in fields:
        _check_choice(fields["gender"], GENDERS, "gender")
    if "test_result" in fields:
        _check_choice(fields["test_result"], TEST_RESULTS, "test result")
    spouse = None
    if "marital_status" in fields:
        _check_choice(fields["marital_status"], MARRIAGE_STATUSES, "marital status")
        spouse = _require_spouse(pedigree, ind, "set a marital status")

    for name in _EDITABLE_TEXT:
        if name in fields:
            setattr(ind, name, str(fields[name] or ""))
    for name in _EDITABLE_FLAGS:
        if name in fields:
            setattr(ind, name, bool(fields[name]))
    if "gender" in fields:
        ind.gender = fields["gender"]
    if "test_result" in fields:
        ind.test_result = fields["test_result"]
    if spouse is not None:
        _marry(ind, spouse, fields["marital_status"])
    LOGGER.info("Updated %s (%s)", ind.id, ", ".join(sorted(fields)))
    recompute(pedigree, settings)
    return ind


def set_proband(pedigree: Pedigree, individual_id: str, settings: Optional[LayoutSettings] = None) -> Individual:
    ind = _require(pedigree, individual_id)
    pedigree.proband_id = ind.id
    LOGGER.info("Proband reassigned to %s", ind.id)
    recompute(pedigree, settings)
    return ind


def _scrub(pedigree: Pedigree, ids: Iterable[str]) -> List[str]:
    doomed = set(ids)
    removed = [pid for pid in pedigree.individuals if pid in doomed]
    for pid in removed:
        del pedigree.individuals[pid]
    for ind in pedigree.individuals.values():
        if ind.spouse_id in doomed:
            ind.spouse_id = None
            ind.marriage_info = None
            ind.no_offspring = None
        if ind.twin_with in doomed:
            ind.twin_with = None
            ind.twin_type = None
        if any(pid in doomed for pid in ind.parent_ids):
            ind.set_parents(pid for pid in ind.parent_ids if pid not in doomed)
        ind.children_ids = [cid for cid in ind.children_ids if cid not in doomed]
    return removed


def delete_individual(pedigree: Pedigree, individual_id: str, settings: Optional[LayoutSettings] = None) -> List[str]:
    """Delete an individual and its spouse (the proband is never deleted)."""
    ind = _require(pedigree, individual_id)
    if ind.id == pedigree.proband_id:
        raise MutationRejected(
            "proband_protected",
            "Cannot delete the proband. Assign a new proband first.",
        )
    ids = [ind.id]
    spouse = spouse_of(pedigree, ind)
    if spouse is not None and spouse.id != pedigree.proband_id:
        ids.append(spouse.id)
    removed = _scrub(pedigree, ids)
    LOGGER.info("Deleted %s", ", ".join(removed))
    recompute(pedigree, settings)
    return removed


def delete_individuals(pedigree: Pedigree, individual_ids: Iterable[str], settings: Optional[LayoutSettings] = None) -> List[str]:
    """Delete several individuals with their spouses, silently keeping the proband."""
    ids = [pid for pid in dict.fromkeys(individual_ids) if pid in pedigree and pid != pedigree.proband_id]
    if not ids:
        raise MutationRejected("proband_protected", "Nothing to delete; the proband cannot be deleted.")
    for pid in list(ids):
        spouse = spouse_of(pedigree, pedigree.individuals[pid])
        if spouse is not None and spouse.id != pedigree.proband_id and spouse.id not in ids:
            ids.append(spouse.id)
    removed = _scrub(pedigree, ids)
    LOGGER.info("Deleted %s", ", ".join(removed))
    recompute(pedigree, settings)
    return removed


def set_inheritance_pattern(pedigree: Pedigree, pattern: str, settings: Optional[LayoutSettings] = None) -> Pedigree:
    try:
        pedigree.inheritance_pattern = InheritancePattern(pattern)
    except ValueError:
        raise MutationRejected("invalid_value", f"Unknown inheritance pattern: {pattern!r}.") from None
    LOGGER.info("Inheritance pattern set to %s", pedigree.inheritance_pattern.value)
    return recompute(pedigree, settings)


def set_carrier_frequency(pedigree: Pedigree, value: float, settings: Optional[LayoutSettings] = None) -> Pedigree:
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise MutationRejected("invalid_value", f"Carrier frequency must be a number, got {value!r}.") from None
    if not 0 < value < 1:
        raise MutationRejected("invalid_value", f"Carrier frequency must be between 0 and 1, got {value}.")
    pedigree.carrier_frequency = value
    LOGGER.info("Carrier frequency set to %s", value)
    return recompute(pedigree, settings)


def clear(pedigree: Pedigree, settings: Optional[LayoutSettings] = None) -> Pedigree:
    fresh = Pedigree()
    pedigree.individuals = fresh.individuals
    pedigree.proband_id = fresh.proband_id
    pedigree.inheritance_pattern = fresh.inheritance_pattern
    pedigree.carrier_frequency = fresh.carrier_frequency
    LOGGER.info("Pedigree cleared")
    return recompute(pedigree, settings)


OPERATIONS: Dict[str, Callable] = {
    "add_proband": add_proband,
    "add_parents": add_parents,
    "add_parent": add_parents,
    "add_spouse": add_spouse,
    "add_child": add_child,
    "add_sibling": add_sibling,
    "add_twins": add_twins,
    "add_twin": add_twins,
    "add_pregnancy": add_pregnancy,
    "add_pregnancy_loss": add_pregnancy_loss,
    "add_termination": add_termination,
    "mark_no_offspring": mark_no_offspring,
    "update_individual": update_individual,
    "set_proband": set_proband,
    "delete_individual": delete_individual,
    "delete_individuals": delete_individuals,
    "set_inheritance_pattern": set_inheritance_pattern,
    "set_carrier_frequency": set_carrier_frequency,
    "clear": clear,
}


def mutate(pedigree: Pedigree, operation: str, **params) -> Pedigree:
    """Run a named operation and return the (recomputed) pedigree."""
    func = OPERATIONS.get(operation)
    if func is None:
        raise MutationRejected("invalid_value", f"Unknown operation: {operation!r}.")
    try:
        func(pedigree, **params)
    except MutationRejected as exc:
        LOGGER.info("Rejected %s: %s", operation, exc)
        raise
    return pedigree
