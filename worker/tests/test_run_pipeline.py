import dataclasses
import json
from datetime import date, datetime, timedelta, timezone

import pytest

from doctoralia_worker.core import config
from doctoralia_worker.core import failures as stages
from doctoralia_worker.jobs import run_pipeline as job
from doctoralia_worker.models import CanonicalRecord, InsertedDoctor, ServiceOffering, TimeSlot

TZ = timezone(timedelta(hours=-5))
START = datetime(2024, 3, 5, 9, tzinfo=TZ)


def make_record(name="Juan Pérez"):
    return CanonicalRecord(
        full_name=name,
        specialty="Cardiólogo",
        city="Lima",
        address="Av. Arequipa 123",
        phone_country_code="+51",
        phone_number="987654321",
        rating=4.5,
        review_count=3,
        profile_url="https://www.doctoralia.pe/juan-perez",
        treatments=(ServiceOffering(name="Consulta", price=150.0, currency="PEN"),),
        availability=(TimeSlot(start_at=START, end_at=START + timedelta(hours=4)),),
    )


class DummyCrawler:
    records = []

    def __init__(self, settings, context, today=None):
        self.context = context

    def crawl(self):
        return list(self.records)


@pytest.fixture
def crawler(monkeypatch):
    DummyCrawler.records = [make_record()]
    monkeypatch.setattr(job, "DoctorCrawler", DummyCrawler)
    return DummyCrawler


@pytest.fixture
def database(monkeypatch):
    state = {"doctors": 0, "stats_calls": 0, "closed": False}

    def count_rows(table):
        return state[table]

    def get_stats():
        state["stats_calls"] += 1
        return {}

    def close_pool():
        state["closed"] = True

    monkeypatch.setattr(job.db, "count_rows", count_rows)
    monkeypatch.setattr(job.db, "get_stats", get_stats)
    monkeypatch.setattr(job.db, "close_pool", close_pool)
    return state


def test_dry_run_exports_json_without_touching_database(settings, context, crawler, tmp_path, monkeypatch):
    def fail(*args, **kwargs):
        raise AssertionError("database must not be used")

    monkeypatch.setattr(job.db, "count_rows", fail)
    monkeypatch.setattr(job, "load_doctors", fail)
    settings = dataclasses.replace(settings, data_dir=str(tmp_path / "out"))

    result = job.run_pipeline(settings, context, dry_run=True)

    assert len(result.records) == 1
    doctors = json.loads((tmp_path / "out" / "doctors.json").read_text(encoding="utf-8"))
    treatments = json.loads((tmp_path / "out" / "treatments.json").read_text(encoding="utf-8"))
    availability = json.loads((tmp_path / "out" / "availability.json").read_text(encoding="utf-8"))
    assert doctors[0]["full_name"] == "Juan Pérez"
    assert treatments == [{"doctor_index": 0, "name": "Consulta", "price": 150.0, "currency": "PEN", "duration_minutes": 30}]
    assert availability[0]["modality"] == "in_person"


def test_empty_crawl_is_fatal(settings, context, crawler, database):
    crawler.records = []
    with pytest.raises(job.NoRecordsError):
        job.run_pipeline(settings, context)


def test_populated_database_skips_the_run(settings, context, crawler, database, monkeypatch):
    database["doctors"] = 12

    def fail(*args, **kwargs):
        raise AssertionError("crawler must not run")

    monkeypatch.setattr(job, "DoctorCrawler", fail)

    result = job.run_pipeline(settings, context)

    assert result.skipped is True
    assert database["stats_calls"] == 1


def test_full_run_loads_doctors_patients_and_appointments(settings, context, crawler, database, tmp_path, monkeypatch):
    settings = dataclasses.replace(settings, data_dir=str(tmp_path), num_patients=3, num_appointments_per_doctor=2)
    calls = {}

    def fake_load_doctors(records, failures):
        calls["doctors"] = len(records)
        return [InsertedDoctor(id=1, treatment_ids=[5], availability=list(records[0].availability))]

    def fake_load_patients(patients, failures):
        calls["patients"] = len(patients)
        return [10, 11, 12]

    def fake_load_appointments(appointments, failures):
        calls["appointments"] = len(appointments)
        return len(appointments)

    monkeypatch.setattr(job, "load_doctors", fake_load_doctors)
    monkeypatch.setattr(job, "load_patients", fake_load_patients)
    monkeypatch.setattr(job, "load_appointments", fake_load_appointments)

    result = job.run_pipeline(settings, context, today=date(2024, 3, 4))

    assert calls == {"doctors": 1, "patients": 3, "appointments": 2}
    assert (result.doctors_inserted, result.patients_inserted, result.appointments_inserted) == (1, 3, 2)
    assert database["stats_calls"] == 1


def test_export_failure_is_recorded_not_raised(settings, context, tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x")

    assert job.export_json([make_record()], str(blocker), context) is None
    assert context.failures.filter_by_stage(stages.EXPORT_JSON)


def test_run_resets_previous_failures(settings, context, crawler, tmp_path):
    context.failures.record(stages.PROFILE, "stale")
    context.accept("https://www.doctoralia.pe/old")

    job.run_pipeline(dataclasses.replace(settings, data_dir=str(tmp_path)), context, dry_run=True)

    assert not context.failures.has_failures()
    assert context.accepted_urls == set()


def test_build_parser_uses_settings_defaults(settings):
    args = job.build_parser(settings).parse_args([])
    assert args.cities == "Lima"
    assert args.crawl_mode == "city"
    assert args.max_pages == 3
    assert args.seed is None
    assert args.dry_run is False


def test_settings_from_args_overrides(settings):
    parser = job.build_parser(settings)
    args = parser.parse_args(["--cities", "Lima, Cusco", "--mode", "specialty", "--specialties", "Pediatra", "--max-pages", "1"])

    updated = job.settings_from_args(settings, args)

    assert updated.target_cities == ("Lima", "Cusco")
    assert updated.target_specialties == ("Pediatra",)
    assert updated.crawl_mode == "specialty"
    assert updated.max_pages == 1
    assert updated.database_url == settings.database_url


@pytest.fixture
def env_settings(monkeypatch, settings):
    monkeypatch.setattr(job, "get_settings", lambda: settings)


def test_main_returns_one_when_nothing_is_scraped(env_settings, crawler, database):
    crawler.records = []
    assert job.main([]) == 1
    assert database["closed"] is True


def test_main_returns_zero_on_dry_run(env_settings, crawler, database, tmp_path):
    assert job.main(["--dry-run", "--seed", "7", "--data-dir", str(tmp_path)]) == 0
    assert (tmp_path / "doctors.json").exists()


def test_main_returns_two_on_bad_configuration(monkeypatch):
    def broken():
        raise config.ConfigError("CRAWL_MODE must be one of city, specialty")

    monkeypatch.setattr(job, "get_settings", broken)
    assert job.main([]) == 2


def test_report_logs_summary_at_warning_when_failures(context, caplog):
    caplog.set_level("INFO")
    job.report(context)
    assert "No errors during the run" in caplog.text

    caplog.clear()
    context.failures.record(stages.PROFILE, "Failed to fetch Ana")
    job.report(context)
    assert any(r.levelname == "WARNING" and "ERROR SUMMARY" in r.getMessage() for r in caplog.records)


def test_main_returns_two_on_non_numeric_setting(monkeypatch):
    monkeypatch.setattr(config, "load_dotenv", lambda: None)
    monkeypatch.setenv("CRAWL_MODE", "city")
    monkeypatch.setenv("MAX_PAGES_PER_SCOPE", "three")
    config.get_settings.cache_clear()
    try:
        assert job.main([]) == 2
    finally:
        config.get_settings.cache_clear()


def test_real_availability_flag_can_be_disabled_from_the_command_line(settings):
    enabled = dataclasses.replace(settings, use_real_availability=True)
    parser = job.build_parser(enabled)

    assert parser.parse_args([]).use_real_availability is True
    assert parser.parse_args(["--no-real-availability"]).use_real_availability is False
    assert job.build_parser(settings).parse_args(["--real-availability"]).use_real_availability is True
