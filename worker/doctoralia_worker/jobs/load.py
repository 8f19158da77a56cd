"""Hand canonical records and generated data to the database, row by row."""

from __future__ import annotations

import logging
from typing import Any, List, Sequence

import psycopg2

from doctoralia_worker.core import db
from doctoralia_worker.core import failures as stages
from doctoralia_worker.core.failures import FailureTracker
from doctoralia_worker.etl.transform import unique_treatments
from doctoralia_worker.models import AppointmentData, CanonicalRecord, InsertedDoctor, PatientData

logger = logging.getLogger(__name__)

_ROW_ERRORS = (psycopg2.Error, ValueError)


def load_doctors(records: Sequence[CanonicalRecord], failures: FailureTracker) -> List[InsertedDoctor]:
    """Insert each record once, then its treatments and availability."""
    logger.info("Inserting doctors...")
    inserted: List[InsertedDoctor] = []

    for record in records:
        try:
            doctor_id = db.insert_doctor(record)
        except _ROW_ERRORS as exc:
            logger.error("Failed: %s (%s)", record.full_name, exc)
            failures.record(stages.INSERT_DOCTORS, f"Failed: {record.full_name}", exc)
            continue

        doctor = InsertedDoctor(id=doctor_id)
        for treatment in unique_treatments(record.treatments):
            try:
                doctor.treatment_ids.append(db.insert_treatment(doctor_id, treatment))
            except _ROW_ERRORS as exc:
                failures.record(stages.INSERT_TREATMENTS, f"Failed: {treatment.name}", exc)

        for slot in record.availability:
            try:
                db.insert_availability(doctor_id, slot)
            except _ROW_ERRORS as exc:
                failures.record(stages.INSERT_AVAILABILITY, f"Failed for doctor {doctor_id}", exc)
                continue
            doctor.availability.append(slot)

        inserted.append(doctor)
        logger.debug(
            "%s: %d treatments, %d slots",
            record.full_name,
            len(doctor.treatment_ids),
            len(doctor.availability),
        )

    logger.info("Inserted %d doctors", len(inserted))
    return inserted


def load_patients(patients: Sequence[PatientData], failures: FailureTracker) -> List[Any]:
    logger.info("Inserting patients...")
    ids = []
    for patient in patients:
        try:
            ids.append(db.insert_patient(patient))
        except _ROW_ERRORS as exc:
            logger.error("Failed: %s (%s)", patient.full_name, exc)
            failures.record(stages.INSERT_PATIENTS, f"Failed: {patient.full_name}", exc)
    logger.info("Inserted %d patients", len(ids))
    return ids


def load_appointments(appointments: Sequence[AppointmentData], failures: FailureTracker) -> int:
    logger.info("Inserting appointments...")
    count = 0
    for appointment in appointments:
        try:
            db.insert_appointment(appointment)
        except _ROW_ERRORS as exc:
            failures.record(
                stages.INSERT_APPOINTMENTS,
                f"Failed for doctor {appointment.doctor_id} at {appointment.start_at.isoformat()}",
                exc,
            )
            continue
        count += 1
    logger.info("Inserted %d appointments", count)
    return count
