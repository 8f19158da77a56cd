import random
import re
from datetime import date, datetime, time, timedelta

from doctoralia_worker.etl.slots import SITE_TZ
from doctoralia_worker.etl.synthesize import (
    GENERIC_SERVICE,
    Synthesizer,
    service_names_for,
    synthetic_window,
)
from doctoralia_worker.models import IN_PERSON, REMOTE

MONDAY = date(2024, 3, 4)


def test_service_names_match_first_key():
    assert service_names_for("Cardiólogo")[0] == "Consulta cardiológica"
    assert service_names_for("Psicólogo") == ("Terapia individual", "Terapia pareja", "Evaluación psicológica")
    assert service_names_for("Psiquiatra")[0] == "Consulta psiquiátrica"
    assert service_names_for("Odontólogo - Dentista")[0] == "Limpieza dental"


def test_unmatched_specialty_gets_single_generic_service():
    services = Synthesizer(random.Random(1)).services("Traumatólogo")
    assert len(services) == 1
    assert services[0].name == GENERIC_SERVICE


def test_services_have_bounded_price_and_known_duration():
    synthesizer = Synthesizer(random.Random(7))
    for _ in range(50):
        for service in synthesizer.services("Dermatólogo"):
            assert 50 <= service.price <= 250
            assert service.currency == "PEN"
            assert service.duration_minutes in (30, 45, 60)


def test_seeded_synthesis_is_repeatable():
    first = Synthesizer(random.Random(42))
    second = Synthesizer(random.Random(42))
    assert first.services("Pediatra") == second.services("Pediatra")
    assert first.phone() == second.phone()


def test_phone_pattern():
    synthesizer = Synthesizer(random.Random(3))
    for _ in range(200):
        assert re.fullmatch(r"9\d{8}", synthesizer.phone())


def test_availability_skips_weekends_and_has_two_blocks_per_day():
    slots = Synthesizer().availability(today=MONDAY)

    days = sorted({slot.start_at.date() for slot in slots})
    assert len(days) == 10
    assert all(day.weekday() < 5 for day in days)
    assert len(slots) == 20
    assert days[0] == MONDAY + timedelta(days=1)

    first_day = [slot for slot in slots if slot.start_at.date() == days[0]]
    assert [(s.start_at.time(), s.end_at.time()) for s in first_day] == [
        (time(9, 0), time(13, 0)),
        (time(15, 0), time(19, 0)),
    ]
    assert all(slot.modality == IN_PERSON for slot in slots)


def test_availability_online_modality_and_window():
    slots = Synthesizer().availability(is_online=True, today=MONDAY)
    window_start, window_end = synthetic_window(MONDAY)

    assert all(slot.modality == REMOTE for slot in slots)
    for slot in slots:
        assert slot.end_at > slot.start_at
        assert window_start <= slot.start_at
        assert slot.end_at <= window_end
    assert window_end == datetime(2024, 3, 19, tzinfo=SITE_TZ)
