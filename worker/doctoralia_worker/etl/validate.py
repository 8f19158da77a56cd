"""Decide whether an extracted record is an individual doctor.

The rules form a denylist: a record is accepted unless one of them fires.
"""

from __future__ import annotations

from typing import Optional

from doctoralia_worker.etl.normalize import fold_accents
from doctoralia_worker.models import CanonicalRecord

# Matched as accent-insensitive, lower-case substrings of the name.
ORGANIZATION_TERMS = (
    "clinica",
    "hospital",
    "centro medico",
    "centro de salud",
    "medical center",
    "policlinico",
    "servicios medicos",
    "essalud",
    "oncosalud",
)


def rejection_reason(record: CanonicalRecord, *, compare_specialty: bool = False) -> Optional[str]:
    """Return why ``record`` is not a doctor, or ``None`` when it is acceptable."""
    name = " ".join((record.full_name or "").split())
    folded = fold_accents(name).lower()

    for term in ORGANIZATION_TERMS:
        if term in folded:
            return f"name contains organization term {term!r}"

    if name == name.upper() and " " in name:
        return "name is entirely upper-case"

    if compare_specialty and name == " ".join((record.specialty or "").split()):
        return "name equals specialty label"

    if len(name.split()) < 2:
        return "name has no surname"

    return None


def is_valid_candidate(record: CanonicalRecord, *, compare_specialty: bool = False) -> bool:
    return rejection_reason(record, compare_specialty=compare_specialty) is None
