"""
Deterministic row-by-row layout of a pedigree.

Generations are laid out top-down so that parents' x are final before their
children are placed. Within one generation the pipeline is:

1. partition the row into sibling groups and singles;
2. build each group's display sequence (siblings with out-marrying spouses);
3. centre each sequence under its parents' marriage line;
4. resolve overlaps with a single left-to-right pass;
5. place singles around the groups;
6. re-centre couples whose partners both have parents on record;
7. derive twin anchors and fall back to the row centre for anything left over.

Every stage is a plain function so it can be exercised on its own.
``compute_layout`` never mutates the pedigree; ``apply_layout`` writes the result.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Sequence, Set, Tuple

from .models import MAX_GENERATION, MIN_GENERATION, Individual, Pedigree
from .resolver import couples, sibling_group_key, sibling_groups, twin_pairs_within

LOGGER = logging.getLogger(__name__)


@dataclass
class LayoutSettings:
    generation_y: Tuple[float, ...] = (150.0, 300.0, 450.0, 600.0, 750.0)
    spacing: float = 140.0
    center_x: float = 700.0
    # Extra half-gap per partner with two parents when two only-children marry,
    # so the couple does not crowd the grandparents' descent lines.
    only_child_widening: float = 35.0

    def row_y(self, generation: int) -> float:
        idx = max(MIN_GENERATION, min(MAX_GENERATION, generation)) - 1
        idx = min(idx, len(self.generation_y) - 1)
        return self.generation_y[idx]


@dataclass
class TwinAnchor:
    x: float
    y: float
    partner_ids: Tuple[str, str]
    identical: bool = False
    bar: Optional[Tuple[float, float]] = None  # identical twins: equality bar extent


@dataclass
class Placement:
    x: float
    y: float
    sibship_anchor: bool = False
    twin_anchor: Optional[TwinAnchor] = None


@dataclass
class GroupPlacement:
    key: str
    parent_ids: Tuple[str, ...]
    members: List[Individual]
    display: List[Individual]
    start: float
    order: int = 0  # first-appearance order within the row

    def end(self, spacing: float) -> float:
        return self.start + (len(self.display) - 1) * spacing


# ---------- Stage 1: partition ----------
def partition_generation(individuals: Sequence[Individual]) -> Tuple[List[Tuple[str, List[Individual]]], List[Individual]]:
    ordered = sorted(individuals, key=lambda ind: ind.position)
    return sibling_groups(ordered)


# ---------- Stage 2: display sequence ----------
def _insertable_spouse(sib: Individual, row: Dict[str, Individual], group_key: str, claimed: Set[str]) -> Optional[Individual]:
    spouse = row.get(sib.spouse_id) if sib.spouse_id else None
    if spouse is None or spouse.id in claimed:
        return None
    spouse_key = sibling_group_key(spouse.parent_ids)
    if spouse_key == group_key:
        return None
    if spouse_key:
        # Laid out with its own sibling group; the couple pass brings the pair together.
        return None
    return spouse


def display_sequence(
    members: Sequence[Individual],
    row: Dict[str, Individual],
    claimed: Optional[Set[str]] = None,
) -> List[Individual]:
    """Siblings (by position) with their out-marrying spouses inserted next to them.

    The first sibling's spouse goes before the block and every other sibling's
    spouse immediately after that sibling. A twin pair is one unit: the left twin's
    spouse goes before the pair and the right twin's after it. A lone child is
    followed by its spouse.
    """
    claimed = set() if claimed is None else claimed
    siblings = sorted(members, key=lambda ind: ind.position)
    if not siblings:
        return []
    key = sibling_group_key(siblings[0].parent_ids)

    def take_spouse(sib: Individual) -> List[Individual]:
        spouse = _insertable_spouse(sib, row, key, claimed)
        if spouse is None:
            return []
        claimed.add(spouse.id)
        return [spouse]

    if len(siblings) == 1:
        return [siblings[0]] + take_spouse(siblings[0])

    twin_partner: Dict[str, Individual] = {}
    for left, right in twin_pairs_within(siblings):
        twin_partner[left.id] = right
        twin_partner[right.id] = left

    display: List[Individual] = []
    done: Set[str] = set()
    for idx, sib in enumerate(siblings):
        if sib.id in done:
            continue
        partner = twin_partner.get(sib.id)
        if partner is not None and partner.id not in done:
            display.extend(take_spouse(sib))
            display.extend((sib, partner))
            display.extend(take_spouse(partner))
            done.update((sib.id, partner.id))
            continue
        if idx == 0:
            display.extend(take_spouse(sib))
            display.append(sib)
        else:
            display.append(sib)
            display.extend(take_spouse(sib))
        done.add(sib.id)
    return display


# ---------- Stage 3: base placement ----------
def parents_midpoint(parent_ids: Sequence[str], coords: Dict[str, float], settings: LayoutSettings) -> float:
    xs = [coords[pid] for pid in parent_ids if pid in coords]
    if not xs:
        return settings.center_x
    return sum(xs) / len(xs)


def place_groups(
    groups: Sequence[Tuple[str, List[Individual]]],
    row: Dict[str, Individual],
    coords: Dict[str, float],
    settings: LayoutSettings,
) -> List[GroupPlacement]:
    claimed: Set[str] = set(ind.id for _, members in groups for ind in members)
    placements: List[GroupPlacement] = []
    for order, (key, members) in enumerate(groups):
        display = display_sequence(members, row, claimed)
        parent_ids = members[0].parent_ids
        mid = parents_midpoint(parent_ids, coords, settings)
        span = (len(display) - 1) * settings.spacing
        placements.append(
            GroupPlacement(
                key=key,
                parent_ids=tuple(parent_ids),
                members=sorted(members, key=lambda ind: ind.position),
                display=display,
                start=mid - span / 2,
                order=order,
            )
        )
    return placements


# ---------- Stage 4: overlap resolution ----------
def resolve_overlaps(placements: Sequence[GroupPlacement], spacing: float) -> List[GroupPlacement]:
    """Single forward pass; a later group is only ever pushed right."""
    ordered = sorted(placements, key=lambda g: (g.start, g.order))
    resolved: List[GroupPlacement] = []
    for group in ordered:
        if resolved:
            limit = resolved[-1].end(spacing) + spacing
            if group.start < limit:
                group = replace(group, start=limit)
        resolved.append(group)
    return resolved


def group_coordinates(placements: Sequence[GroupPlacement], spacing: float) -> Dict[str, float]:
    xs: Dict[str, float] = {}
    for group in placements:
        for idx, ind in enumerate(group.display):
            xs[ind.id] = group.start + idx * spacing
    return xs


# ---------- Stage 5: singles ----------
def _single_units(singles: Sequence[Individual], row: Dict[str, Individual], placed: Set[str]) -> List[List[Individual]]:
    units: List[List[Individual]] = []
    used: Set[str] = set(placed)
    for ind in sorted(singles, key=lambda i: i.position):
        if ind.id in used:
            continue
        unit = [ind]
        used.add(ind.id)
        spouse = row.get(ind.spouse_id) if ind.spouse_id else None
        if spouse is not None and spouse.id not in used and not sibling_group_key(spouse.parent_ids):
            unit.append(spouse)
            used.add(spouse.id)
        units.append(unit)
    return units


def place_singles(
    singles: Sequence[Individual],
    row: Dict[str, Individual],
    placements: Sequence[GroupPlacement],
    settings: LayoutSettings,
    placed: Set[str],
) -> Dict[str, float]:
    """Place individuals without parents on record.

    With no sibling groups in the row the singles form one centred row. Otherwise
    units (a single, or a couple of singles) alternate left of the leftmost group
    and right of the rightmost one. The proband is an ordinary single here: its
    stability comes from the position it keeps in ``reorder_positions``, never
    from a previously stored x.
    """
    spacing = settings.spacing
    units = _single_units(singles, row, placed)
    xs: Dict[str, float] = {}

    if not placements:
        flat = [ind for unit in units for ind in unit]
        start = settings.center_x - (len(flat) - 1) * spacing / 2
        for idx, ind in enumerate(flat):
            xs[ind.id] = start + idx * spacing
        return xs

    left_edge = min(g.start for g in placements)
    right_edge = max(g.end(spacing) for g in placements)
    side = 0
    for unit in units:
        if side % 2 == 0:
            for idx, ind in enumerate(reversed(unit)):
                xs[ind.id] = left_edge - (idx + 1) * spacing
            left_edge -= len(unit) * spacing
        else:
            for idx, ind in enumerate(unit):
                xs[ind.id] = right_edge + (idx + 1) * spacing
            right_edge += len(unit) * spacing
        side += 1
    return xs


# ---------- Stage 6: couple refinement ----------
def refine_spouse_pairs(
    row: Dict[str, Individual],
    coords: Dict[str, float],
    xs: Dict[str, float],
    settings: LayoutSettings,
) -> Dict[str, float]:
    """Re-centre couples whose partners both have parents on record.

    ``coords`` holds the already final x of earlier generations, ``xs`` the
    current x of this row. Returns an updated copy of ``xs``.
    """
    spacing = settings.spacing
    out = dict(xs)
    members = sorted(row.values(), key=lambda ind: ind.position)

    def siblings_in_row(ind: Individual) -> List[Individual]:
        key = sibling_group_key(ind.parent_ids)
        return [m for m in members if sibling_group_key(m.parent_ids) == key]

    for first, second in couples(members):
        if not first.parent_ids or not second.parent_ids:
            continue
        first_parents = [pid for pid in first.parent_ids if pid in coords]
        second_parents = [pid for pid in second.parent_ids if pid in coords]
        if not first_parents or not second_parents:
            continue
        first_mid = sum(coords[pid] for pid in first_parents) / len(first_parents)
        second_mid = sum(coords[pid] for pid in second_parents) / len(second_parents)
        if (second_mid, second.id) < (first_mid, first.id):
            first, second = second, first
            first_parents, second_parents = second_parents, first_parents
            first_mid, second_mid = second_mid, first_mid
        pair_mid = (first_mid + second_mid) / 2

        first_sibs = siblings_in_row(first)
        second_sibs = siblings_in_row(second)
        if len(first_sibs) == 1 and len(second_sibs) == 1:
            two_parent_partners = (len(first_parents) == 2) + (len(second_parents) == 2)
            offset = spacing / 2 + settings.only_child_widening * two_parent_partners
            out[first.id] = pair_mid - offset
            out[second.id] = pair_mid + offset
            continue

        block: List[Individual] = []
        taken: Set[str] = {first.id, second.id}

        def extend_with(sibs: Sequence[Individual]) -> None:
            for sib in sibs:
                if sib.id in taken:
                    continue
                block.append(sib)
                taken.add(sib.id)
                spouse = row.get(sib.spouse_id) if sib.spouse_id else None
                if spouse is not None and spouse.id not in taken:
                    block.append(spouse)
                    taken.add(spouse.id)

        extend_with(first_sibs)
        block.extend((first, second))
        extend_with(second_sibs)
        start = pair_mid - (len(block) - 1) * spacing / 2
        for idx, ind in enumerate(block):
            out[ind.id] = start + idx * spacing
    return out


# ---------- Stage 7: anchors and fallback ----------
def twin_anchors(placements: Sequence[GroupPlacement], xs: Dict[str, float], y: float) -> Dict[str, TwinAnchor]:
    anchors: Dict[str, TwinAnchor] = {}
    for group in placements:
        for a, b in twin_pairs_within(group.members):
            if a.id not in xs or b.id not in xs:
                continue
            left, right = (a, b) if xs[a.id] <= xs[b.id] else (b, a)
            identical = a.twin_type == "identical" and b.twin_type == "identical"
            anchor = TwinAnchor(
                x=(xs[left.id] + xs[right.id]) / 2,
                y=y,
                partner_ids=(left.id, right.id),
                identical=identical,
                bar=(xs[left.id], xs[right.id]) if identical else None,
            )
            anchors[a.id] = anchor
            anchors[b.id] = anchor
    return anchors


def _finite(value: Optional[float]) -> bool:
    return isinstance(value, (int, float)) and math.isfinite(value)


def layout_generation(
    pedigree: Pedigree,
    generation: int,
    coords: Dict[str, float],
    settings: LayoutSettings,
) -> Dict[str, Placement]:
    individuals = pedigree.in_generation(generation)
    row = {ind.id: ind for ind in individuals}
    y = settings.row_y(generation)

    groups, singles = partition_generation(individuals)
    placements = resolve_overlaps(place_groups(groups, row, coords, settings), settings.spacing)
    xs = group_coordinates(placements, settings.spacing)

    xs.update(place_singles(singles, row, placements, settings, set(xs)))

    xs = refine_spouse_pairs(row, coords, xs, settings)
    anchors = twin_anchors(placements, xs, y)
    sibship_anchors = set(g.members[0].id for g in placements if g.members)

    result: Dict[str, Placement] = {}
    for ind in individuals:
        x = xs.get(ind.id)
        if not _finite(x):
            LOGGER.debug("No finite x for %s in generation %d; using row centre", ind.id, generation)
            x = settings.center_x
        result[ind.id] = Placement(
            x=float(x),
            y=y,
            sibship_anchor=ind.id in sibship_anchors,
            twin_anchor=anchors.get(ind.id),
        )
    return result


def compute_layout(pedigree: Pedigree, settings: Optional[LayoutSettings] = None) -> Dict[str, Placement]:
    """Coordinates for every individual, keyed by id. Does not modify ``pedigree``."""
    settings = settings or LayoutSettings()
    placements: Dict[str, Placement] = {}
    coords: Dict[str, float] = {}
    for generation in pedigree.generations():
        row = layout_generation(pedigree, generation, coords, settings)
        placements.update(row)
        coords.update((pid, p.x) for pid, p in row.items())
    return placements


def apply_layout(pedigree: Pedigree, placements: Dict[str, Placement]) -> None:
    for ind in pedigree.individuals.values():
        placement = placements.get(ind.id)
        if placement is None:
            continue
        ind.x = placement.x
        ind.y = placement.y


def reorder_positions(pedigree: Pedigree) -> None:
    """Renumber positions so siblings, their spouses and couples sit together.

    Per generation: each sibling group (first appearance order) followed by its
    members' spouses, then every single followed by its spouse. The proband keeps
    its position; its slot is still counted.
    """
    for generation in pedigree.generations():
        members = pedigree.in_generation(generation)
        row = {ind.id: ind for ind in members}
        groups, singles = sibling_groups(members)
        order: List[Individual] = []
        seen: Set[str] = set()

        def push(ind: Optional[Individual]) -> None:
            if ind is not None and ind.id not in seen:
                order.append(ind)
                seen.add(ind.id)

        for _, sibs in groups:
            for sib in sibs:
                push(sib)
            for sib in sibs:
                push(row.get(sib.spouse_id) if sib.spouse_id else None)
        for ind in singles:
            push(ind)
            push(row.get(ind.spouse_id) if ind.spouse_id else None)

        pos = 1
        for ind in order:
            if ind.id != pedigree.proband_id:
                ind.position = pos
            pos += 1
