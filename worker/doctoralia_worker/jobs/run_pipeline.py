"""CLI job that scrapes the directory and loads the results into the database."""

import argparse
import dataclasses
import json
import logging
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import List, Optional, Sequence

from doctoralia_worker.core import db
from doctoralia_worker.core import failures as stages
from doctoralia_worker.core.config import CRAWL_MODES, ConfigError, Settings, get_settings
from doctoralia_worker.core.context import RunContext
from doctoralia_worker.etl.generators import AppointmentGenerator, PatientGenerator
from doctoralia_worker.etl.transform import to_export_payloads
from doctoralia_worker.jobs.crawl import DoctorCrawler
from doctoralia_worker.jobs.load import load_appointments, load_doctors, load_patients
from doctoralia_worker.models import CanonicalRecord

logger = logging.getLogger(__name__)

EXPORT_FILES = ("doctors.json", "treatments.json", "availability.json")


class NoRecordsError(RuntimeError):
    """Raised when a run produces no accepted doctor at all."""


@dataclass
class PipelineResult:
    records: List[CanonicalRecord] = field(default_factory=list)
    doctors_inserted: int = 0
    patients_inserted: int = 0
    appointments_inserted: int = 0
    skipped: bool = False


def export_json(records: Sequence[CanonicalRecord], data_dir: str, context: RunContext) -> Optional[Path]:
    """Write the crawl output next to the database load; failures are only recorded."""
    target = Path(data_dir)
    try:
        target.mkdir(parents=True, exist_ok=True)
        for name, payload in zip(EXPORT_FILES, to_export_payloads(records)):
            with target.joinpath(name).open("w", encoding="utf-8") as fh:
                json.dump(payload, fh, ensure_ascii=False, indent=2)
    except (OSError, TypeError, ValueError) as exc:
        logger.warning("Could not save JSON files: %s", exc)
        context.failures.record(stages.EXPORT_JSON, f"Could not write JSON files to {target}", exc)
        return None
    logger.info("JSON files saved to %s", target)
    return target


def run_pipeline(
    settings: Settings,
    context: RunContext,
    *,
    dry_run: bool = False,
    today: Optional[date] = None,
) -> PipelineResult:
    context.reset()
    result = PipelineResult()

    if not dry_run:
        existing = db.count_rows("doctors")
        if existing > 0:
            logger.warning("Database already contains %d doctors; skipping migration to prevent duplicates.", existing)
            db.get_stats()
            result.skipped = True
            return result

    logger.info("[STEP 1/4] Scraping doctors from %s...", settings.base_url)
    result.records = DoctorCrawler(settings, context, today=today).crawl()
    if not result.records:
        raise NoRecordsError("No doctors data obtained")
    logger.info("Scraped %d doctors", len(result.records))
    export_json(result.records, settings.data_dir, context)

    if dry_run:
        logger.info("Dry run: skipping database load")
        return result

    logger.info("[STEP 2/4] Inserting doctors into database...")
    doctors = load_doctors(result.records, context.failures)
    result.doctors_inserted = len(doctors)

    logger.info("[STEP 3/4] Generating and inserting patients...")
    patients = PatientGenerator(settings.num_patients, context.rng).generate()
    patient_ids = load_patients(patients, context.failures)
    result.patients_inserted = len(patient_ids)

    logger.info("[STEP 4/4] Generating and inserting appointments...")
    appointments = AppointmentGenerator(settings.num_appointments_per_doctor, context.rng).generate(doctors, patient_ids)
    result.appointments_inserted = load_appointments(appointments, context.failures)

    db.get_stats()
    return result


def report(context: RunContext) -> None:
    if context.failures.has_failures():
        logger.warning("\n%s", context.failures.summarize())
    else:
        logger.info(context.failures.summarize())


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Scrape the doctor directory and load it into the database")
    parser.add_argument(
        "--cities",
        dest="cities",
        default=",".join(settings.target_cities),
        help="Comma separated cities to crawl",
    )
    parser.add_argument(
        "--specialties",
        dest="specialties",
        default=",".join(settings.target_specialties),
        help="Comma separated specialties (specialty mode)",
    )
    parser.add_argument("--mode", dest="crawl_mode", choices=CRAWL_MODES, default=settings.crawl_mode)
    parser.add_argument("--max-pages", dest="max_pages", type=int, default=settings.max_pages)
    parser.add_argument(
        "--max-per-scope",
        dest="max_doctors_per_scope",
        type=int,
        default=settings.max_doctors_per_scope,
        help="Maximum doctors accepted per city or specialty/city pair",
    )
    parser.add_argument(
        "--real-availability",
        dest="use_real_availability",
        action=argparse.BooleanOptionalAction,
        default=settings.use_real_availability,
        help="Query the slots endpoint before falling back to synthetic availability",
    )
    parser.add_argument("--data-dir", dest="data_dir", default=settings.data_dir)
    parser.add_argument("--seed", dest="seed", type=int, default=None, help="Seed for synthesized values")
    parser.add_argument("--dry-run", dest="dry_run", action="store_true", help="Scrape and export JSON only")
    return parser


def settings_from_args(settings: Settings, args: argparse.Namespace) -> Settings:
    return dataclasses.replace(
        settings,
        target_cities=tuple(c.strip() for c in args.cities.split(",") if c.strip()),
        target_specialties=tuple(s.strip() for s in args.specialties.split(",") if s.strip()),
        crawl_mode=args.crawl_mode,
        max_pages=args.max_pages,
        max_doctors_per_scope=args.max_doctors_per_scope,
        use_real_availability=args.use_real_availability,
        data_dir=args.data_dir,
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    try:
        base_settings = get_settings()
    except ConfigError as exc:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
        logger.error("Configuration error: %s", exc)
        return 2

    logging.basicConfig(
        level=getattr(logging, base_settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )
    args = build_parser(base_settings).parse_args(argv)
    settings = settings_from_args(base_settings, args)
    context = RunContext.create(args.seed)

    logger.info("=" * 60)
    logger.info("DOCTORALIA DATA MIGRATION PIPELINE")
    logger.info("=" * 60)

    try:
        result = run_pipeline(settings, context, dry_run=args.dry_run)
    except NoRecordsError as exc:
        logger.error("Migration pipeline failed: %s", exc)
        report(context)
        return 1
    except Exception as exc:  # noqa: BLE001
        logger.error("Migration pipeline failed: %s", exc, exc_info=True)
        report(context)
        return 1
    finally:
        db.close_pool()

    if result.skipped:
        logger.info("To re-run the migration, empty the database first.")
        return 0

    report(context)
    logger.info("Migration pipeline completed successfully with %d doctors", len(result.records))
    if context.failures.has_failures():
        logger.warning("Pipeline completed with %d errors (see summary above)", context.failures.count())
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
