"""Utilities for turning canonical records into database rows and JSON exports."""

import logging
from typing import Any, Dict, Iterable, List, Sequence, Tuple

from doctoralia_worker.etl.normalize import normalize_rating
from doctoralia_worker.models import CanonicalRecord, ServiceOffering, TimeSlot

logger = logging.getLogger(__name__)


def unique_treatments(treatments: Iterable[ServiceOffering]) -> List[ServiceOffering]:
    seen = set()
    unique = []
    for treatment in treatments:
        key = treatment.name.lower()
        if key in seen:
            continue
        seen.add(key)
        unique.append(treatment)
    return unique


def to_doctor_row(record: CanonicalRecord) -> Dict[str, Any]:
    return {
        "full_name": record.full_name,
        "specialty": record.specialty,
        "city": record.city,
        "address": record.address,
        "phone_country_code": record.phone_country_code,
        "phone_number": record.phone_number,
        "rating": normalize_rating(record.rating) if record.rating is not None else None,
        "review_count": record.review_count,
        "source_profile_url": record.profile_url,
    }


def to_treatment_row(doctor_id: Any, treatment: ServiceOffering) -> Dict[str, Any]:
    return {
        "doctor_id": doctor_id,
        "name": treatment.name,
        "price": treatment.price,
        "currency": treatment.currency,
        "duration_minutes": treatment.duration_minutes,
    }


def to_availability_row(doctor_id: Any, slot: TimeSlot) -> Dict[str, Any]:
    return {
        "doctor_id": doctor_id,
        "start_at": slot.start_at,
        "end_at": slot.end_at,
        "modality": slot.modality,
    }


def _slot_dict(slot: TimeSlot) -> Dict[str, Any]:
    return {
        "start_at": slot.start_at.isoformat(),
        "end_at": slot.end_at.isoformat(),
        "modality": slot.modality,
    }


def _treatment_dict(treatment: ServiceOffering) -> Dict[str, Any]:
    return {
        "name": treatment.name,
        "price": treatment.price,
        "currency": treatment.currency,
        "duration_minutes": treatment.duration_minutes,
    }


def to_export_payloads(records: Sequence[CanonicalRecord]) -> Tuple[List[dict], List[dict], List[dict]]:
    """Doctors, treatments and availability as JSON-ready lists.

    Treatments and slots carry the ``doctor_index`` of their doctor in the
    first list.
    """
    doctors = []
    treatments = []
    availability = []
    for index, record in enumerate(records):
        doctor = to_doctor_row(record)
        doctor["treatments"] = [_treatment_dict(t) for t in record.treatments]
        doctor["availability"] = [_slot_dict(s) for s in record.availability]
        doctors.append(doctor)
        treatments.extend({"doctor_index": index, **_treatment_dict(t)} for t in record.treatments)
        availability.extend({"doctor_index": index, **_slot_dict(s)} for s in record.availability)
    return doctors, treatments, availability
