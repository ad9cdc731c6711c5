"""Plain-text genetic risk assessment report."""

from __future__ import annotations

from datetime import date
from typing import List, Optional

from .models import RISK_KINDS, InheritancePattern, Individual, Pedigree, int_to_roman
from .resolver import ancestors_up_to
from .risk import RISK_LABELS

RECOMMENDATIONS = (
    "Genetic counseling recommended for all at-risk individuals",
    "Consider genetic testing for carriers and at-risk family members",
    "Regular medical surveillance for affected individuals",
    "Family planning counseling for reproductive-age individuals",
)


def format_risk_type(kind: str) -> str:
    return RISK_LABELS.get(kind, kind)


def _status(ind: Individual) -> str:
    if ind.affected:
        return "Affected"
    if ind.carrier:
        return "Carrier"
    return "Normal"


def _risk_lines(ind: Individual) -> List[str]:
    risks = ind.calculated_risks or {}
    if risks and all(risks.get(kind) is None for kind in RISK_KINDS if kind in risks):
        return ["Calculated Risks: not applicable (adopted)"]
    shown = [(kind, value) for kind, value in risks.items() if value]
    if not shown:
        return []
    lines = ["Calculated Risks:"]
    for kind, value in shown:
        lines.append(f"  - {format_risk_type(kind)}: {value:.1f}%")
    return lines


def individual_block(ind: Individual) -> List[str]:
    lines = [
        f"{ind.name or 'Unnamed'} ({ind.id})",
        f"Generation: {int_to_roman(ind.generation)}",
        f"Gender: {ind.gender.capitalize()}",
        f"Status: {_status(ind)}",
    ]
    if ind.test_result:
        lines.append(f"Genetic Test: {ind.test_result}")
    lines.extend(_risk_lines(ind))
    if ind.conditions:
        lines.append(f"Medical Conditions: {ind.conditions}")
    return lines


def generate_risk_report(pedigree: Pedigree, today: Optional[date] = None) -> str:
    today = today or date.today()
    proband = pedigree.proband
    pattern = InheritancePattern(pedigree.inheritance_pattern).value

    lines = [
        "GENETIC RISK ASSESSMENT REPORT",
        f"Generated on: {today.isoformat()}",
        f"Inheritance Pattern: {pattern.replace('_', ' ').upper()}",
        f"Population Carrier Frequency: {pedigree.carrier_frequency}",
        f"Proband: {(proband.name or 'Unnamed') if proband else 'Unknown'} ({pedigree.proband_id or '-'})",
    ]
    if proband is not None:
        ancestors = ancestors_up_to(pedigree, proband, 2)
        affected = [a.id for a in ancestors if a.affected]
        lines.append(f"Affected parents/grandparents: {', '.join(affected) if affected else 'none on record'}")
    lines += ["", "INDIVIDUAL RISK ASSESSMENTS:", "=" * 50, ""]

    for generation in pedigree.generations():
        for ind in pedigree.in_generation(generation):
            lines.extend(individual_block(ind))
            lines.append("")

    lines += ["", "RECOMMENDATIONS:", "=" * 20]
    lines.extend(f"- {item}" for item in RECOMMENDATIONS)
    return "\n".join(lines) + "\n"
