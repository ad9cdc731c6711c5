"""
Pedigree graph model.

Individuals live in one id-indexed dict on the ``Pedigree`` (insertion order is
kept and is the tie-break of last resort). Cross references (spouse, parents,
children, twin) are plain id strings; every consumer resolves them through
``Pedigree.get`` and treats a missing id as "no relationship".

Generations are fixed to five rows (I..V).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional, Tuple

MIN_GENERATION = 1
MAX_GENERATION = 5

GENDERS = ("male", "female", "unknown")
TEST_RESULTS = ("", "positive", "negative", "carrier")
MARRIAGE_STATUSES = ("married", "divorced", "separated", "consanguinity")
TWIN_TYPES = ("identical", "fraternal")
ADOPTION_DIRECTIONS = ("in", "out")
NO_OFFSPRING_TYPES = ("no_offspring", "infertility")

RISK_KINDS = ("affected", "carrier", "offspring_affected", "offspring_carrier")

DEFAULT_CARRIER_FREQUENCY = 0.01


class InheritancePattern(str, Enum):
    AUTOSOMAL_DOMINANT = "autosomal_dominant"
    AUTOSOMAL_RECESSIVE = "autosomal_recessive"
    X_LINKED_RECESSIVE = "x_linked_recessive"
    X_LINKED_DOMINANT = "x_linked_dominant"


class SpecialMarker(str, Enum):
    """Pregnancy-related state of an individual (at most one applies)."""

    NONE = "none"
    PREGNANCY = "pregnancy"
    PREGNANCY_LOSS = "pregnancy_loss"
    TERMINATION = "termination"


ROMAN_DIGITS = {"I": 1, "V": 5, "X": 10, "L": 50, "C": 100, "D": 500, "M": 1000}


def roman_to_int(numeral: str) -> Optional[int]:
    """Value of a Roman numeral such as ``"IV"``; ``None`` when it is not one."""
    letters = (numeral or "").strip().upper()
    try:
        values = [ROMAN_DIGITS[ch] for ch in letters]
    except KeyError:
        return None
    total = 0
    for value, following in zip(values, values[1:] + [0]):
        # A smaller digit before a larger one is subtracted (IV, IX).
        total += -value if value < following else value
    return total if total > 0 else None


def int_to_roman(n: int) -> str:
    if n <= 0:
        return ""
    numeral = ""
    for value, symbol in ((10, "X"), (9, "IX"), (5, "V"), (4, "IV"), (1, "I")):
        count, n = divmod(n, value)
        numeral += symbol * count
    return numeral


def make_id(generation: int, position: int) -> str:
    return f"{int_to_roman(generation)}-{position}"


def clamp_generation(generation: int) -> int:
    return max(MIN_GENERATION, min(MAX_GENERATION, int(generation)))


@dataclass
class MarriageInfo:
    status: str = "married"  # one of MARRIAGE_STATUSES

    @property
    def double_line(self) -> bool:
        # Rendering hint only; the status is the single source of truth.
        return self.status == "consanguinity"


@dataclass
class Individual:
    id: str
    generation: int
    position: int
    gender: str = "unknown"
    name: str = ""
    affected: bool = False
    carrier: bool = False
    test_result: str = ""
    spouse_id: Optional[str] = None
    marriage_info: Optional[MarriageInfo] = None
    parent_ids: Tuple[str, ...] = ()  # always sorted; see set_parents
    children_ids: List[str] = field(default_factory=list)
    twin_with: Optional[str] = None
    twin_type: Optional[str] = None
    is_adopted: bool = False
    adopted_direction: Optional[str] = None
    marker: SpecialMarker = SpecialMarker.NONE
    no_offspring: Optional[str] = None  # one of NO_OFFSPRING_TYPES

    # Descriptive fields, carried through persistence and reports only.
    age: str = ""
    birth_year: str = ""
    death_year: str = ""
    death_age: str = ""
    deceased: bool = False
    conditions: str = ""
    remarks: str = ""

    # Derived; owned by the risk and layout engines.
    calculated_risks: Dict[str, Optional[float]] = field(default_factory=dict)
    x: Optional[float] = None
    y: Optional[float] = None

    def set_parents(self, parent_ids) -> None:
        self.parent_ids = tuple(sorted(set(pid for pid in parent_ids if pid)))

    def add_child(self, child_id: str) -> None:
        if child_id not in self.children_ids:
            self.children_ids.append(child_id)

    @property
    def is_pregnancy(self) -> bool:
        return self.marker == SpecialMarker.PREGNANCY

    @property
    def is_pregnancy_loss(self) -> bool:
        return self.marker in (SpecialMarker.PREGNANCY_LOSS, SpecialMarker.TERMINATION)

    @property
    def is_termination(self) -> bool:
        return self.marker == SpecialMarker.TERMINATION


@dataclass
class Pedigree:
    individuals: Dict[str, Individual] = field(default_factory=dict)
    proband_id: Optional[str] = None
    inheritance_pattern: InheritancePattern = InheritancePattern.AUTOSOMAL_DOMINANT
    carrier_frequency: float = DEFAULT_CARRIER_FREQUENCY

    def __len__(self) -> int:
        return len(self.individuals)

    def __iter__(self) -> Iterator[Individual]:
        return iter(list(self.individuals.values()))

    def __contains__(self, individual_id: object) -> bool:
        return individual_id in self.individuals

    def get(self, individual_id: Optional[str]) -> Optional[Individual]:
        if not individual_id:
            return None
        return self.individuals.get(individual_id)

    def add(self, individual: Individual) -> Individual:
        self.individuals[individual.id] = individual
        return individual

    @property
    def proband(self) -> Optional[Individual]:
        return self.get(self.proband_id)

    def in_generation(self, generation: int) -> List[Individual]:
        """Members of one row, ordered by position (stable on insertion order)."""
        members = [ind for ind in self.individuals.values() if ind.generation == generation]
        members.sort(key=lambda ind: ind.position)
        return members

    def generations(self) -> List[int]:
        return sorted(set(ind.generation for ind in self.individuals.values()))

    def next_position(self, generation: int) -> int:
        positions = [ind.position for ind in self.individuals.values() if ind.generation == generation]
        return max(positions) + 1 if positions else 1

    def allocate_ids(self, generation: int, count: int = 1) -> List[Tuple[str, int]]:
        """Reserve ``count`` consecutive (id, position) pairs in a generation."""
        pos = self.next_position(generation)
        while True:
            slots = [(make_id(generation, pos + i), pos + i) for i in range(count)]
            if not any(sid in self.individuals for sid, _ in slots):
                return slots
            pos += 1
