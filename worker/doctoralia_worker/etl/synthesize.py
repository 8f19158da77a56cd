"""Placeholder values for fields the directory does not expose reliably.

Synthesis only fills gaps; it never replaces an extracted value. The random
source is injected so a seeded ``random.Random`` gives repeatable output.
"""

from __future__ import annotations

import random
from datetime import date, datetime, time, timedelta
from typing import List, Optional, Tuple

from doctoralia_worker.etl.normalize import fold_accents
from doctoralia_worker.etl.slots import SITE_TZ, WINDOW_DAYS
from doctoralia_worker.models import IN_PERSON, REMOTE, ServiceOffering, TimeSlot

GENERIC_SERVICE = "Consulta general"
SERVICE_CURRENCY = "PEN"
PRICE_RANGE = (50, 250)
DURATIONS = (30, 45, 60)
REST_DAYS = (5, 6)
DAY_BLOCKS = ((time(9, 0), time(13, 0)), (time(15, 0), time(19, 0)))
PHONE_LEADING_DIGIT = "9"

# First key contained in the normalised specialty wins.
SERVICES_BY_SPECIALTY: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("cardio", ("Consulta cardiológica", "Electrocardiograma", "Ecocardiograma")),
    ("derma", ("Consulta dermatológica", "Tratamiento acné", "Peeling")),
    ("pediatr", ("Consulta pediátrica", "Control niño sano", "Vacunación")),
    ("psico", ("Terapia individual", "Terapia pareja", "Evaluación psicológica")),
    ("psiquiatr", ("Consulta psiquiátrica", "Evaluación", "Seguimiento")),
    ("dent", ("Limpieza dental", "Blanqueamiento", "Ortodoncia")),
    ("nutri", ("Consulta nutricional", "Plan alimenticio")),
)


def service_names_for(specialty: str) -> Tuple[str, ...]:
    normalized = fold_accents(specialty).lower()
    for key, names in SERVICES_BY_SPECIALTY:
        if key in normalized:
            return names
    return (GENERIC_SERVICE,)


def synthetic_window(today: date) -> Tuple[datetime, datetime]:
    """The days covered by synthesized availability: tomorrow through ``WINDOW_DAYS``."""
    start = datetime.combine(today + timedelta(days=1), time(0, 0), tzinfo=SITE_TZ)
    return start, start + timedelta(days=WINDOW_DAYS)


class Synthesizer:
    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self.rng = rng or random.Random()

    def services(self, specialty: str) -> Tuple[ServiceOffering, ...]:
        return tuple(
            ServiceOffering(
                name=name,
                price=self.rng.randint(*PRICE_RANGE),
                currency=SERVICE_CURRENCY,
                duration_minutes=self.rng.choice(DURATIONS),
            )
            for name in service_names_for(specialty)
        )

    def availability(self, is_online: bool = False, today: Optional[date] = None) -> Tuple[TimeSlot, ...]:
        """A morning and an afternoon block on every working day of the window."""
        today = today or datetime.now(SITE_TZ).date()
        modality = REMOTE if is_online else IN_PERSON
        slots: List[TimeSlot] = []

        for offset in range(1, WINDOW_DAYS + 1):
            day = today + timedelta(days=offset)
            if day.weekday() in REST_DAYS:
                continue
            for start, end in DAY_BLOCKS:
                slots.append(
                    TimeSlot(
                        start_at=datetime.combine(day, start, tzinfo=SITE_TZ),
                        end_at=datetime.combine(day, end, tzinfo=SITE_TZ),
                        modality=modality,
                    )
                )
        return tuple(slots)

    def phone(self) -> str:
        return f"{PHONE_LEADING_DIGIT}{self.rng.randint(0, 99_999_999):08d}"
