"""
pedigree_analyzer

Pedigree graph model, deterministic layout, genetic risk inference and SVG/text
output for family pedigrees.
"""

from .errors import MutationRejected, PedigreeError, PedigreeLoadError
from .layout import LayoutSettings, Placement, TwinAnchor, apply_layout, compute_layout
from .models import Individual, InheritancePattern, MarriageInfo, Pedigree, SpecialMarker
from .mutations import OPERATIONS, mutate, recompute
from .report import generate_risk_report
from .risk import calculate_individual_risk, compute_all_risks
from .storage import dumps, load_into, load_pedigree, loads, save_pedigree
from .svg import SvgStyle, render_svg

__version__ = "0.1.0"

__all__ = [
    "Individual",
    "InheritancePattern",
    "LayoutSettings",
    "MarriageInfo",
    "MutationRejected",
    "OPERATIONS",
    "Pedigree",
    "PedigreeError",
    "PedigreeLoadError",
    "Placement",
    "SpecialMarker",
    "SvgStyle",
    "TwinAnchor",
    "apply_layout",
    "calculate_individual_risk",
    "compute_all_risks",
    "compute_layout",
    "dumps",
    "generate_risk_report",
    "load_into",
    "load_pedigree",
    "loads",
    "mutate",
    "recompute",
    "render_svg",
    "save_pedigree",
]
