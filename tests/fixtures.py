"""Small pedigrees built through the public mutation operations."""
from pedigree_analyzer import Pedigree, mutate
from pedigree_analyzer.models import Individual


def nuclear_family(pattern="autosomal_dominant", father_affected=False, mother_affected=False):
    """Proband III-1 (male) with parents II-1 (father) and II-2 (mother)."""
    pedigree = Pedigree()
    mutate(pedigree, "add_proband", name="P", gender="male")
    mutate(
        pedigree,
        "add_parents",
        child_id="III-1",
        first={"name": "Father", "gender": "male", "affected": father_affected},
        second={"name": "Mother", "affected": mother_affected},
    )
    mutate(pedigree, "set_inheritance_pattern", pattern=pattern)
    return pedigree


def carrier_parents_family():
    """Autosomal recessive: both parents flagged carrier, one child."""
    pedigree = nuclear_family(pattern="autosomal_recessive")
    mutate(pedigree, "update_individual", individual_id="II-1", carrier=True)
    mutate(pedigree, "update_individual", individual_id="II-2", carrier=True)
    return pedigree


def x_linked_family():
    """X-linked recessive: carrier mother, unaffected father, son III-1 and daughter III-2."""
    pedigree = nuclear_family(pattern="x_linked_recessive")
    mutate(pedigree, "update_individual", individual_id="II-2", carrier=True)
    mutate(pedigree, "add_sibling", individual_id="III-1", name="Sister", gender="female")
    return pedigree


def married_only_children():
    """Proband III-1 and spouse III-2, each with both parents on record."""
    pedigree = nuclear_family()
    mutate(pedigree, "add_spouse", individual_id="III-1", name="Wife")
    mutate(pedigree, "add_parents", child_id="III-2", first={"name": "In-law father", "gender": "male"})
    return pedigree


def person(pid, generation, position, **kwargs):
    parent_ids = kwargs.pop("parent_ids", ())
    ind = Individual(id=pid, generation=generation, position=position, **kwargs)
    ind.set_parents(parent_ids)
    return ind


def build(*individuals, **settings):
    pedigree = Pedigree(**settings)
    for ind in individuals:
        pedigree.add(ind)
    return pedigree
