"""
Relationship queries over a ``Pedigree``.

All functions are read-only. A dangling id (a reference to an individual that is
no longer on record) resolves to ``None`` or is dropped from result lists; the
graph may be transiently inconsistent between mutation steps and callers treat a
missing reference as "no relationship".
"""

from __future__ import annotations

from collections import deque
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .models import Individual, MarriageInfo, Pedigree


def sibling_group_key(parent_ids: Optional[Iterable[str]]) -> str:
    """Canonical key of a parent set; ``""`` means no parents on record."""
    if not parent_ids:
        return ""
    return ",".join(sorted(pid for pid in parent_ids if pid))


def parents_of(pedigree: Pedigree, individual: Individual) -> List[Individual]:
    return [p for p in (pedigree.get(pid) for pid in individual.parent_ids) if p is not None]


def children_of(pedigree: Pedigree, individual: Individual) -> List[Individual]:
    return [c for c in (pedigree.get(cid) for cid in individual.children_ids) if c is not None]


def mother_of(pedigree: Pedigree, individual: Individual) -> Optional[Individual]:
    for parent in parents_of(pedigree, individual):
        if parent.gender == "female":
            return parent
    return None


def father_of(pedigree: Pedigree, individual: Individual) -> Optional[Individual]:
    for parent in parents_of(pedigree, individual):
        if parent.gender == "male":
            return parent
    return None


def spouse_of(pedigree: Pedigree, individual: Individual) -> Optional[Individual]:
    return pedigree.get(individual.spouse_id)


def twin_of(pedigree: Pedigree, individual: Individual) -> Optional[Individual]:
    twin = pedigree.get(individual.twin_with)
    if twin is None or twin.twin_with != individual.id:
        return None
    return twin


def marriage_info_for(pedigree: Pedigree, individual: Individual) -> Optional[MarriageInfo]:
    """Marriage info of a couple, whichever partner carries it."""
    if individual.marriage_info is not None:
        return individual.marriage_info
    spouse = spouse_of(pedigree, individual)
    if spouse is not None:
        return spouse.marriage_info
    return None


def siblings_of(pedigree: Pedigree, individual: Individual, *, include_self: bool = True) -> List[Individual]:
    """Everyone sharing the subject's parent set, ordered by position.

    Individuals without parents on record have no sibling group; only the subject
    itself is returned for them (or nothing when ``include_self`` is false).
    """
    key = sibling_group_key(individual.parent_ids)
    if not key:
        return [individual] if include_self else []
    group = [
        ind
        for ind in pedigree.individuals.values()
        if sibling_group_key(ind.parent_ids) == key and (include_self or ind.id != individual.id)
    ]
    group.sort(key=lambda ind: ind.position)
    return group


def sibling_groups(individuals: Sequence[Individual]) -> Tuple[List[Tuple[str, List[Individual]]], List[Individual]]:
    """Partition individuals into sibling groups (first-appearance order) and singles.

    Members keep the order of ``individuals``; callers pass them sorted by position.
    """
    groups: Dict[str, List[Individual]] = {}
    singles: List[Individual] = []
    for ind in individuals:
        key = sibling_group_key(ind.parent_ids)
        if not key:
            singles.append(ind)
            continue
        groups.setdefault(key, []).append(ind)
    return list(groups.items()), singles


def ancestors_up_to(pedigree: Pedigree, individual: Individual, generations: int) -> List[Individual]:
    """Breadth-first ancestors, at most ``generations`` levels up, each listed once."""
    found: List[Individual] = []
    visited: Set[str] = {individual.id}
    queue = deque([(individual, 0)])
    while queue:
        current, depth = queue.popleft()
        if depth >= generations:
            continue
        for parent in parents_of(pedigree, current):
            if parent.id in visited:
                continue
            visited.add(parent.id)
            found.append(parent)
            queue.append((parent, depth + 1))
    return found


def descendants_of(pedigree: Pedigree, individual: Individual, generations: Optional[int] = None) -> List[Individual]:
    found: List[Individual] = []
    visited: Set[str] = {individual.id}
    queue = deque([(individual, 0)])
    while queue:
        current, depth = queue.popleft()
        if generations is not None and depth >= generations:
            continue
        for child in children_of(pedigree, current):
            if child.id in visited:
                continue
            visited.add(child.id)
            found.append(child)
            queue.append((child, depth + 1))
    return found


def twin_pairs_within(group: Sequence[Individual]) -> List[Tuple[Individual, Individual]]:
    """Mutual twin pairs inside ``group``, each pair ordered by position."""
    by_id = {ind.id: ind for ind in group}
    pairs: List[Tuple[Individual, Individual]] = []
    seen: Set[str] = set()
    for ind in group:
        if ind.id in seen or not ind.twin_with:
            continue
        other = by_id.get(ind.twin_with)
        if other is None or other.twin_with != ind.id or other.id == ind.id:
            continue
        left, right = sorted((ind, other), key=lambda p: (p.position, p.id))
        pairs.append((left, right))
        seen.update((ind.id, other.id))
    return pairs


def couples(individuals: Sequence[Individual]) -> List[Tuple[Individual, Individual]]:
    """Married pairs with both partners among ``individuals``, listed once each."""
    by_id = {ind.id: ind for ind in individuals}
    pairs: List[Tuple[Individual, Individual]] = []
    for ind in individuals:
        if not ind.spouse_id or ind.id >= ind.spouse_id:
            continue
        spouse = by_id.get(ind.spouse_id)
        if spouse is not None and spouse.spouse_id == ind.id:
            pairs.append((ind, spouse))
    return pairs
