"""
Per-individual genetic risk estimates.

A risk map goes from risk kind (see ``RISK_KINDS``) to a percentage in
[0, 100]. A missing key means "not computed"; ``None`` means "not applicable"
and is only produced for adopted individuals, whose biological relatives are
not on record.

Results depend only on the structural and test fields of the pedigree. Stored
``calculated_risks`` are never read back: whenever a rule needs to know whether
a parent or a spouse is a known carrier, that relative's own affected/carrier
map is computed within the same pass and memoized.
"""

from __future__ import annotations

import logging
import math
from typing import Dict, Optional, Set, Union

from .models import RISK_KINDS, Individual, InheritancePattern, Pedigree
from .resolver import father_of, mother_of, parents_of, spouse_of

LOGGER = logging.getLogger(__name__)

RiskMap = Dict[str, Optional[float]]

RISK_LABELS = {
    "carrier": "Carrier Risk",
    "affected": "Affected Risk",
    "offspring_affected": "Offspring Affected Risk",
    "offspring_carrier": "Offspring Carrier Risk",
}

# Unaffected child of two heterozygous parents: P(carrier | not affected) = 2/3.
CARRIER_GIVEN_UNAFFECTED = 66.7


def not_applicable() -> RiskMap:
    return {kind: None for kind in RISK_KINDS}


def population_carrier_probability(carrier_frequency: float) -> float:
    """Hardy-Weinberg heterozygote frequency 2q(1-q) with q = sqrt(frequency)."""
    q = math.sqrt(carrier_frequency)
    return 2 * q * (1 - q)


def is_known_carrier(individual: Optional[Individual], risks: Optional[RiskMap] = None) -> bool:
    """Carrier flag, carrier test, affected, or a 100% carrier risk in ``risks``.

    ``risks`` must come from the current pass. Without it only the recorded
    flags count.
    """
    if individual is None:
        return False
    if individual.carrier or individual.test_result == "carrier" or individual.affected:
        return True
    return bool(risks) and risks.get("carrier") == 100


def _pattern(value: Union[str, InheritancePattern]) -> InheritancePattern:
    return value if isinstance(value, InheritancePattern) else InheritancePattern(value)


class _Pass:
    """One inference pass: memoized affected/carrier maps, offspring risk excluded."""

    def __init__(self, pedigree: Pedigree, pattern: InheritancePattern, carrier_frequency: float) -> None:
        self.pedigree = pedigree
        self.pattern = pattern
        self.carrier_frequency = carrier_frequency
        self.own: Dict[str, RiskMap] = {}
        self._pending: Set[str] = set()

    def own_risks(self, ind: Individual) -> RiskMap:
        cached = self.own.get(ind.id)
        if cached is not None:
            return cached
        if ind.id in self._pending:
            # Only reachable through a malformed parent cycle.
            return {}
        self._pending.add(ind.id)
        try:
            risks = self._own_risks(ind)
        finally:
            self._pending.discard(ind.id)
        self.own[ind.id] = risks
        return risks

    def _own_risks(self, ind: Individual) -> RiskMap:
        if ind.is_adopted:
            return not_applicable()
        if self.pattern == InheritancePattern.AUTOSOMAL_DOMINANT:
            return autosomal_dominant_risk(self.pedigree, ind)
        if self.pattern == InheritancePattern.AUTOSOMAL_RECESSIVE:
            return autosomal_recessive_status(self.pedigree, ind, self.carrier_frequency, self)
        if self.pattern == InheritancePattern.X_LINKED_RECESSIVE:
            return x_linked_recessive_risk(self.pedigree, ind, self)
        return x_linked_dominant_risk(self.pedigree, ind)

    def known_carrier(self, individual: Optional[Individual]) -> bool:
        if individual is None:
            return False
        return is_known_carrier(individual, self.own_risks(individual))

    def risks(self, ind: Individual) -> RiskMap:
        risks = dict(self.own_risks(ind))
        if self.pattern == InheritancePattern.AUTOSOMAL_RECESSIVE and not ind.is_adopted:
            risks.update(recessive_offspring_risk(self.pedigree, ind, risks, self.carrier_frequency, self))
        return risks


def autosomal_dominant_risk(pedigree: Pedigree, ind: Individual) -> RiskMap:
    risks: RiskMap = {}
    if ind.test_result == "positive" or ind.affected:
        risks["affected"] = 100
    elif ind.test_result == "negative":
        risks["affected"] = 0
    elif any(p.affected for p in parents_of(pedigree, ind)):
        risks["affected"] = 50

    if risks.get("affected") == 100:
        risks["offspring_affected"] = 50
    return risks


def autosomal_recessive_status(pedigree: Pedigree, ind: Individual, carrier_frequency: float, state: _Pass) -> RiskMap:
    risks: RiskMap = {}
    if ind.test_result == "positive" or ind.affected:
        risks["affected"] = 100
        risks["carrier"] = 100
    elif ind.test_result == "negative":
        risks["carrier"] = 0
        risks["affected"] = 0
    elif ind.test_result == "carrier" or ind.carrier:
        risks["carrier"] = 100
        risks["affected"] = 0
    else:
        parents = parents_of(pedigree, ind)
        if any(p.affected for p in parents):
            risks["carrier"] = 100
        elif len(parents) == 2 and all(state.known_carrier(p) for p in parents):
            risks["carrier"] = CARRIER_GIVEN_UNAFFECTED
            risks["affected"] = 25
        else:
            risks["carrier"] = population_carrier_probability(carrier_frequency) * 100
    return risks


def recessive_offspring_risk(
    pedigree: Pedigree, ind: Individual, risks: RiskMap, carrier_frequency: float, state: _Pass
) -> RiskMap:
    """Offspring risks for a known, unaffected carrier with a spouse on record."""
    if risks.get("affected") == 100 or ind.test_result == "negative":
        return {}
    if not is_known_carrier(ind, risks):
        return {}
    spouse = spouse_of(pedigree, ind)
    if spouse is None:
        return {}
    if state.known_carrier(spouse):
        return {"offspring_affected": 25, "offspring_carrier": 50}
    return {"offspring_affected": population_carrier_probability(carrier_frequency) * 0.25 * 100}


def x_linked_recessive_risk(pedigree: Pedigree, ind: Individual, state: _Pass) -> RiskMap:
    risks: RiskMap = {}
    if ind.test_result == "positive" or ind.affected:
        risks["affected"] = 100
        risks["carrier"] = 100
        return risks
    if ind.test_result == "negative":
        risks["affected"] = 0
        risks["carrier"] = 0
        return risks
    if ind.test_result == "carrier" or ind.carrier:
        risks["carrier"] = 100
        risks["affected"] = 0
        return risks

    mother = mother_of(pedigree, ind)
    father = father_of(pedigree, ind)
    if ind.gender == "male":
        if mother is not None and state.known_carrier(mother):
            risks["affected"] = 50
    elif ind.gender == "female":
        if father is not None and father.affected:
            risks["carrier"] = 100
        elif mother is not None and state.known_carrier(mother):
            risks["carrier"] = 50
    return risks


def x_linked_dominant_risk(pedigree: Pedigree, ind: Individual) -> RiskMap:
    risks: RiskMap = {}
    if ind.test_result == "positive" or ind.affected:
        risks["affected"] = 100
        return risks
    if ind.test_result == "negative":
        risks["affected"] = 0
        return risks

    mother = mother_of(pedigree, ind)
    father = father_of(pedigree, ind)
    if ind.gender == "male":
        # Sons inherit their only X from the mother.
        if mother is not None and mother.affected:
            risks["affected"] = 50
    elif ind.gender == "female":
        if father is not None and father.affected:
            risks["affected"] = 100
        elif mother is not None and mother.affected:
            risks["affected"] = 50
    return risks


def _new_pass(
    pedigree: Pedigree,
    pattern: Union[str, InheritancePattern, None] = None,
    carrier_frequency: Optional[float] = None,
) -> _Pass:
    pattern = _pattern(pattern if pattern is not None else pedigree.inheritance_pattern)
    freq = pedigree.carrier_frequency if carrier_frequency is None else carrier_frequency
    return _Pass(pedigree, pattern, freq)


def calculate_individual_risk(
    pedigree: Pedigree,
    individual: Individual,
    pattern: Union[str, InheritancePattern, None] = None,
    carrier_frequency: Optional[float] = None,
) -> RiskMap:
    """Risk map for one individual under ``pattern`` (pedigree setting by default)."""
    return _new_pass(pedigree, pattern, carrier_frequency).risks(individual)


def compute_all_risks(pedigree: Pedigree) -> Dict[str, RiskMap]:
    """Risk maps for everyone, parents before children. Does not modify ``pedigree``."""
    state = _new_pass(pedigree)
    result: Dict[str, RiskMap] = {}
    for generation in pedigree.generations():
        for ind in pedigree.in_generation(generation):
            result[ind.id] = state.risks(ind)
    LOGGER.debug(
        "Computed risks for %d individuals (%s, carrier frequency %s)",
        len(result),
        state.pattern.value,
        state.carrier_frequency,
    )
    return result


def apply_risks(pedigree: Pedigree, risks: Dict[str, RiskMap]) -> None:
    for ind in pedigree.individuals.values():
        if ind.id in risks:
            ind.calculated_risks = dict(risks[ind.id])
