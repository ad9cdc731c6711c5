import pytest

from pedigree_analyzer import MutationRejected, Pedigree, SpecialMarker, loads, mutate
from .fixtures import married_only_children, nuclear_family


def assert_spouses_symmetric(pedigree):
    for ind in pedigree:
        if ind.spouse_id:
            spouse = pedigree.get(ind.spouse_id)
            assert spouse is not None and spouse.spouse_id == ind.id
            holders = [p for p in (ind, spouse) if p.marriage_info is not None]
            assert holders == [min((ind, spouse), key=lambda p: p.id)]


def test_add_proband():
    pedigree = Pedigree()
    mutate(pedigree, "add_proband", name="P", gender="female", affected=True)
    proband = pedigree.proband
    assert proband.id == "III-1"
    assert (proband.generation, proband.position) == (3, 1)
    assert proband.affected
    assert proband.calculated_risks == {"affected": 100, "offspring_affected": 50}


def test_add_proband_requires_empty_pedigree():
    pedigree = nuclear_family()
    with pytest.raises(MutationRejected) as excinfo:
        mutate(pedigree, "add_proband", name="Again", gender="male")
    assert excinfo.value.reason == "pedigree_not_empty"


def test_add_parents_links_both_directions():
    pedigree = nuclear_family()
    father, mother = pedigree.get("II-1"), pedigree.get("II-2")
    assert (father.gender, mother.gender) == ("male", "female")
    assert pedigree.get("III-1").parent_ids == ("II-1", "II-2")
    assert father.children_ids == ["III-1"] and mother.children_ids == ["III-1"]
    assert father.marriage_info.status == "married"
    assert_spouses_symmetric(pedigree)


@pytest.mark.parametrize("child_id, reason", [("III-1", "has_two_parents"), ("III-9", "not_found")])
def test_add_parents_rejections_leave_graph_unchanged(child_id, reason):
    pedigree = nuclear_family()
    before = len(pedigree)
    with pytest.raises(MutationRejected) as excinfo:
        mutate(pedigree, "add_parents", child_id=child_id, first={"gender": "male"})
    assert excinfo.value.reason == reason
    assert len(pedigree) == before


def test_add_parents_not_above_first_generation():
    pedigree = nuclear_family()
    mutate(pedigree, "add_parents", child_id="II-1", first={"name": "Grandfather", "gender": "male"})
    grandfather = next(ind for ind in pedigree if ind.name == "Grandfather")
    assert grandfather.generation == 1
    with pytest.raises(MutationRejected) as excinfo:
        mutate(pedigree, "add_parents", child_id=grandfather.id, first={"gender": "male"})
    assert excinfo.value.reason == "top_generation"


def test_add_parents_to_child_with_one_parent():
    pedigree = loads(
        '{"individuals": ['
        '{"id": "II-1", "generation": 2, "position": 1, "gender": "female", "childrenIds": ["III-1"]},'
        '{"id": "III-1", "generation": 3, "position": 1, "gender": "male", "parentIds": ["II-1"]}'
        '], "probandId": "III-1"}'
    )
    with pytest.raises(MutationRejected) as excinfo:
        mutate(pedigree, "add_parents", child_id="III-1", first={"gender": "male"})
    assert excinfo.value.reason == "has_single_parent"

    # The way to complete the parent pair is to marry the lone parent.
    mutate(pedigree, "add_spouse", individual_id="II-1", name="Father")
    father = pedigree.get(pedigree.get("II-1").spouse_id)
    assert father.gender == "male"
    assert pedigree.get("III-1").parent_ids == tuple(sorted(("II-1", father.id)))
    assert father.children_ids == ["III-1"]


def test_add_spouse_rejects_second_spouse():
    pedigree = nuclear_family()
    with pytest.raises(MutationRejected) as excinfo:
        mutate(pedigree, "add_spouse", individual_id="II-1", name="Other")
    assert excinfo.value.reason == "has_spouse"


def test_add_child_requires_spouse():
    pedigree = nuclear_family()
    with pytest.raises(MutationRejected) as excinfo:
        mutate(pedigree, "add_child", parent_id="III-1", name="Kid", gender="male")
    assert excinfo.value.reason == "needs_spouse"


def test_add_child_not_below_last_generation():
    pedigree = nuclear_family()
    mutate(pedigree, "add_spouse", individual_id="III-1", name="Wife")
    child = mutate(pedigree, "add_child", parent_id="III-1", name="Kid", gender="female").get("IV-1")
    mutate(pedigree, "add_spouse", individual_id=child.id, name="Partner")
    mutate(pedigree, "add_child", parent_id=child.id, name="Grandkid", gender="male")
    grandkid = next(ind for ind in pedigree if ind.name == "Grandkid")
    assert grandkid.generation == 5
    mutate(pedigree, "add_spouse", individual_id=grandkid.id, name="Partner 2")
    with pytest.raises(MutationRejected) as excinfo:
        mutate(pedigree, "add_child", parent_id=grandkid.id, name="Too far", gender="male")
    assert excinfo.value.reason == "bottom_generation"


def test_add_sibling_requires_parents():
    pedigree = Pedigree()
    mutate(pedigree, "add_proband", name="P", gender="male")
    with pytest.raises(MutationRejected) as excinfo:
        mutate(pedigree, "add_sibling", individual_id="III-1", name="Sib", gender="female")
    assert excinfo.value.reason == "no_parents"


def test_add_twins():
    pedigree = nuclear_family()
    mutate(
        pedigree,
        "add_twins",
        parent_id="II-1",
        twin_type="fraternal",
        first={"name": "A", "gender": "male"},
        second={"name": "B", "gender": "female"},
    )
    a = next(ind for ind in pedigree if ind.name == "A")
    b = next(ind for ind in pedigree if ind.name == "B")
    assert (a.twin_with, b.twin_with) == (b.id, a.id)
    assert a.twin_type == b.twin_type == "fraternal"
    assert (a.gender, b.gender) == ("male", "female")
    assert a.parent_ids == b.parent_ids == ("II-1", "II-2")
    assert len(set(ind.id for ind in pedigree)) == len(pedigree)


def test_pregnancy_markers():
    pedigree = nuclear_family()
    mutate(pedigree, "add_pregnancy", parent_id="II-2")
    mutate(pedigree, "add_pregnancy_loss", parent_id="II-2")
    mutate(pedigree, "add_termination", parent_id="II-2")
    markers = sorted(ind.marker.value for ind in pedigree.in_generation(3) if ind.id != "III-1")
    assert markers == ["pregnancy", "pregnancy_loss", "termination"]
    loss = next(ind for ind in pedigree if ind.marker == SpecialMarker.TERMINATION)
    assert loss.is_pregnancy_loss and loss.is_termination and not loss.is_pregnancy
    assert loss.parent_ids == ("II-1", "II-2")


def test_mark_no_offspring_on_both_partners():
    pedigree = nuclear_family()
    mutate(pedigree, "mark_no_offspring", individual_id="II-2", kind="infertility")
    assert pedigree.get("II-1").no_offspring == pedigree.get("II-2").no_offspring == "infertility"


def test_update_marital_status_rehomes_marriage_info():
    pedigree = nuclear_family()
    mutate(pedigree, "update_individual", individual_id="II-2", marital_status="consanguinity")
    assert pedigree.get("II-1").marriage_info.double_line
    assert pedigree.get("II-2").marriage_info is None
    assert_spouses_symmetric(pedigree)


def test_update_rejects_unknown_values():
    pedigree = nuclear_family()
    with pytest.raises(MutationRejected):
        mutate(pedigree, "update_individual", individual_id="II-1", test_result="maybe")
    with pytest.raises(MutationRejected):
        mutate(pedigree, "update_individual", individual_id="II-1", spouse_id="III-1")


def test_delete_cascades_to_spouse():
    pedigree = nuclear_family()
    mutate(pedigree, "add_sibling", individual_id="III-1", name="Sister", gender="female")
    mutate(pedigree, "add_spouse", individual_id="III-2", name="Brother-in-law")
    mutate(pedigree, "delete_individual", individual_id="III-2")
    assert "III-2" not in pedigree and "III-3" not in pedigree
    for ind in pedigree:
        assert ind.spouse_id not in ("III-2", "III-3")
        assert not set(ind.parent_ids) & {"III-2", "III-3"}
        assert not set(ind.children_ids) & {"III-2", "III-3"}
    assert pedigree.get("II-1").children_ids == ["III-1"]


def test_deleting_parent_removes_couple_and_links():
    pedigree = nuclear_family()
    mutate(pedigree, "delete_individual", individual_id="II-2")
    assert len(pedigree) == 1
    assert pedigree.get("III-1").parent_ids == ()


def test_proband_is_protected():
    pedigree = married_only_children()
    with pytest.raises(MutationRejected) as excinfo:
        mutate(pedigree, "delete_individual", individual_id="III-1")
    assert excinfo.value.reason == "proband_protected"

    # Deleting the proband's spouse keeps the proband, now unmarried.
    mutate(pedigree, "delete_individual", individual_id="III-2")
    proband = pedigree.proband
    assert proband.spouse_id is None and proband.marriage_info is None


def test_delete_many_skips_proband():
    pedigree = married_only_children()
    mutate(pedigree, "delete_individuals", individual_ids=["III-1", "II-3"])
    assert "III-1" in pedigree
    assert "II-3" not in pedigree and "II-4" not in pedigree
    assert pedigree.get("III-2").parent_ids == ()


def test_set_proband_then_delete_former():
    pedigree = nuclear_family()
    mutate(pedigree, "set_proband", individual_id="II-1")
    assert pedigree.proband_id == "II-1"
    with pytest.raises(MutationRejected):
        mutate(pedigree, "delete_individual", individual_id="II-1")
    mutate(pedigree, "delete_individual", individual_id="III-1")
    assert "III-1" not in pedigree


def test_settings_validation():
    pedigree = nuclear_family()
    with pytest.raises(MutationRejected):
        mutate(pedigree, "set_carrier_frequency", value=1.5)
    with pytest.raises(MutationRejected):
        mutate(pedigree, "set_inheritance_pattern", pattern="mitochondrial")
    assert pedigree.carrier_frequency == 0.01


def test_unknown_operation():
    with pytest.raises(MutationRejected) as excinfo:
        mutate(Pedigree(), "add_cousin")
    assert excinfo.value.reason == "invalid_value"


def test_clear():
    pedigree = nuclear_family(pattern="x_linked_dominant")
    assert mutate(pedigree, "clear") is pedigree
    assert len(pedigree) == 0
    assert pedigree.proband_id is None
    assert pedigree.inheritance_pattern == "autosomal_dominant"

    # A cleared pedigree starts over with the usual layout and risks.
    mutate(pedigree, "add_proband", name="Again", gender="female", affected=True)
    proband = pedigree.proband
    assert (proband.id, proband.x, proband.y) == ("III-1", 700, 450)
    assert proband.calculated_risks == {"affected": 100, "offspring_affected": 50}
