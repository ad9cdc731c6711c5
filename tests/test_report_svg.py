from datetime import date
from xml.etree import ElementTree as ET

from pedigree_analyzer import compute_layout, generate_risk_report, mutate, render_svg
from pedigree_analyzer.svg import SvgStyle
from .fixtures import nuclear_family

SVG = "{http://www.w3.org/2000/svg}"


def elements_by_id(markup):
    root = ET.fromstring(markup)
    assert root.tag == SVG + "svg"
    return {el.get("id"): el for el in root.iter() if el.get("id")}


def test_report_lists_risks_per_individual():
    pedigree = nuclear_family(father_affected=True)
    report = generate_risk_report(pedigree, today=date(2024, 5, 1))
    assert report.startswith("GENETIC RISK ASSESSMENT REPORT\n")
    assert "Generated on: 2024-05-01" in report
    assert "Inheritance Pattern: AUTOSOMAL DOMINANT" in report
    assert "Proband: P (III-1)" in report
    assert "Affected parents/grandparents: II-1" in report
    block = report.split("\nP (III-1)\n", 1)[1]
    assert block.startswith("Generation: III\nGender: Male\nStatus: Normal\nCalculated Risks:\n  - Affected Risk: 50.0%")
    assert "  - Offspring Affected Risk: 50.0%" in report
    assert report.rstrip().endswith("- Family planning counseling for reproductive-age individuals")


def test_report_marks_adopted_as_not_applicable():
    pedigree = nuclear_family()
    mutate(pedigree, "add_sibling", individual_id="III-1", name="Adoptee", gender="female", adopted="in")
    mutate(pedigree, "update_individual", individual_id="III-2", conditions="asthma")
    report = generate_risk_report(pedigree)
    block = report.split("Adoptee (III-2)\n", 1)[1].split("\n\n", 1)[0]
    assert "Calculated Risks: not applicable (adopted)" in block
    assert "Medical Conditions: asthma" in block


def test_svg_symbols_and_proband_arrow():
    pedigree = nuclear_family(father_affected=True)
    ids = elements_by_id(render_svg(pedigree, today=date(2024, 5, 1)))
    assert ids["sym_II-1"].tag == SVG + "rect"
    assert ids["sym_II-1"].get("fill") == "#000"
    assert ids["sym_II-2"].tag == SVG + "circle"
    assert ids["sym_II-2"].get("fill") == "none"
    assert "arrow_III-1_head" in ids
    assert "spouse_married_II-1_II-2" in ids
    assert ids["meta"].text == "2024-05-01"


def test_svg_marriage_variants_and_markers():
    pedigree = nuclear_family()
    mutate(pedigree, "update_individual", individual_id="II-1", marital_status="consanguinity", deceased=True)
    mutate(pedigree, "mark_no_offspring", individual_id="II-1", kind="infertility")
    mutate(pedigree, "update_individual", individual_id="III-1", carrier=True)
    mutate(pedigree, "add_sibling", individual_id="III-1", name="Adoptee", gender="female", adopted="in")
    mutate(pedigree, "add_termination", parent_id="II-1")
    ids = elements_by_id(render_svg(pedigree))

    assert "spouse_consanguinity2_II-1_II-2" in ids
    assert "nooffspring_bar2_II-1_II-2" in ids
    assert "deceased_II-1" in ids
    assert "carrier_III-1" in ids
    assert ids["child_III-2"].get("stroke-dasharray") == "4,4"
    assert "adopt_III-2_L" in ids
    termination = next(ind for ind in pedigree if ind.is_termination)
    assert ids["sym_" + termination.id].tag == SVG + "polygon"
    assert "slash_" + termination.id in ids
    assert "sibship_II-1_II-2" in ids


def test_svg_identical_twins_share_a_bar():
    pedigree = nuclear_family()
    mutate(pedigree, "add_twins", parent_id="II-1", twin_type="identical", first={"gender": "female"}, second={})
    placements = compute_layout(pedigree)
    ids = elements_by_id(render_svg(pedigree, placements, SvgStyle(show_date=False)))
    assert "twin_III-2" in ids and "twin_III-3" in ids
    assert "twinbar_III-2_III-3" in ids
    assert "meta" not in ids
    # Both tethers start at the shared twin anchor.
    anchor_x = placements["III-2"].twin_anchor.x
    assert float(ids["twin_III-2"].get("x1")) == anchor_x == float(ids["twin_III-3"].get("x1"))


def test_empty_pedigree_renders():
    from pedigree_analyzer import Pedigree

    root = ET.fromstring(render_svg(Pedigree()))
    assert root.get("width") == "120"
