"""Synthetic patients and appointments used to populate a demo database."""

from __future__ import annotations

import logging
import random
from datetime import timedelta
from typing import List, Optional, Sequence

from doctoralia_worker.models import AppointmentData, InsertedDoctor, PatientData

logger = logging.getLogger(__name__)

FIRST_NAMES = (
    "Juan", "María", "Carlos", "Ana", "Luis", "Carmen", "José", "Rosa",
    "Miguel", "Patricia", "Pedro", "Laura", "Diego", "Sofia", "Fernando",
)
LAST_NAMES = (
    "García", "Rodríguez", "López", "Martínez", "Sánchez", "Pérez",
    "Gómez", "Fernández", "Torres", "Ramírez", "Flores", "Vega",
)
EMAIL_DOMAINS = ("gmail.com", "hotmail.com", "yahoo.com", "outlook.com")
APPOINTMENT_LENGTH = timedelta(minutes=30)
APPOINTMENTS_PER_BLOCK = 4
STATUS_WEIGHTS = (("scheduled", 0.7), ("completed", 0.2), ("cancelled", 0.1))


class PatientGenerator:
    def __init__(self, count: int, rng: Optional[random.Random] = None) -> None:
        self.count = count
        self.rng = rng or random.Random()

    def generate(self) -> List[PatientData]:
        logger.info("Generating %d patients...", self.count)
        patients = []
        for _ in range(self.count):
            first = self.rng.choice(FIRST_NAMES)
            last1 = self.rng.choice(LAST_NAMES)
            last2 = self.rng.choice(LAST_NAMES)
            patients.append(
                PatientData(
                    full_name=f"{first} {last1} {last2}",
                    document_number=str(self.rng.randint(10_000_000, 99_999_999)),
                    phone_number=f"9{self.rng.randint(0, 99_999_999):08d}",
                    email=self._email(first, last1),
                )
            )
        return patients

    def _email(self, first: str, last: str) -> str:
        domain = self.rng.choice(EMAIL_DOMAINS)
        return f"{first.lower()}.{last.lower()}{self.rng.randint(0, 998)}@{domain}"


class AppointmentGenerator:
    def __init__(self, per_doctor: int, rng: Optional[random.Random] = None) -> None:
        self.per_doctor = per_doctor
        self.rng = rng or random.Random()

    def generate(self, doctors: Sequence[InsertedDoctor], patient_ids: Sequence) -> List[AppointmentData]:
        logger.info("Generating appointments...")
        appointments: List[AppointmentData] = []
        if not patient_ids:
            logger.warning("No patients available; skipping appointments")
            return appointments

        for doctor in doctors:
            if not doctor.availability:
                logger.warning("Doctor %s has no availability slots", doctor.id)
                continue
            if not doctor.treatment_ids:
                logger.warning("Doctor %s has no treatments", doctor.id)
                continue

            attempts = min(self.per_doctor, len(doctor.availability) * APPOINTMENTS_PER_BLOCK)
            for _ in range(attempts):
                appointment = self._appointment(doctor, patient_ids)
                if appointment is not None:
                    appointments.append(appointment)

        logger.info("Generated %d appointments", len(appointments))
        return appointments

    def _appointment(self, doctor: InsertedDoctor, patient_ids: Sequence) -> Optional[AppointmentData]:
        block = self.rng.choice(doctor.availability)
        slots = int((block.end_at - block.start_at) / APPOINTMENT_LENGTH)
        if slots <= 0:
            return None

        start_at = block.start_at + self.rng.randrange(slots) * APPOINTMENT_LENGTH
        end_at = start_at + APPOINTMENT_LENGTH
        if end_at > block.end_at:
            return None

        return AppointmentData(
            doctor_id=doctor.id,
            patient_id=self.rng.choice(patient_ids),
            treatment_id=self.rng.choice(doctor.treatment_ids),
            start_at=start_at,
            end_at=end_at,
            status=self._status(),
        )

    def _status(self) -> str:
        roll = self.rng.random()
        threshold = 0.0
        for status, weight in STATUS_WEIGHTS:
            threshold += weight
            if roll < threshold:
                return status
        return STATUS_WEIGHTS[-1][0]
