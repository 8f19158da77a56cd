"""Application configuration helpers."""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable, Tuple

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

CRAWL_MODES = ("city", "specialty")


class ConfigError(RuntimeError):
    """Raised when a configuration value cannot be used."""


@dataclass(frozen=True)
class Settings:
    base_url: str = "https://www.doctoralia.pe"
    target_cities: Tuple[str, ...] = ("Lima",)
    target_specialties: Tuple[str, ...] = ()
    crawl_mode: str = "city"
    max_doctors_per_scope: int = 45
    max_pages: int = 3
    use_real_availability: bool = False
    request_timeout: float = 15.0
    request_delay: float = 0.5
    profile_delay: float = 0.4
    phone_country_code: str = "+51"
    database_url: str = ""
    data_dir: str = "data"
    num_patients: int = 100
    num_appointments_per_doctor: int = 10
    log_level: str = "INFO"


def _split_list(raw: str) -> Tuple[str, ...]:
    return tuple(item.strip() for item in raw.split(",") if item.strip())


def _env_number(name: str, default: str, cast: Callable[[str], Any]) -> Any:
    raw = os.getenv(name, default).strip()
    try:
        return cast(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""
    load_dotenv()

    crawl_mode = os.getenv("CRAWL_MODE", "city").strip().lower()
    if crawl_mode not in CRAWL_MODES:
        raise ConfigError(f"CRAWL_MODE must be one of {', '.join(CRAWL_MODES)}, got {crawl_mode!r}")

    target_specialties = _split_list(os.getenv("TARGET_SPECIALTIES", ""))
    database_url = os.getenv("DATABASE_URL", "")

    if not database_url:
        logger.warning("DATABASE_URL is not set; database operations will fail.")
    if crawl_mode == "specialty" and not target_specialties:
        logger.warning("CRAWL_MODE=specialty but TARGET_SPECIALTIES is empty; nothing will be crawled.")

    return Settings(
        base_url=os.getenv("DOCTORALIA_BASE_URL", "https://www.doctoralia.pe").rstrip("/"),
        target_cities=_split_list(os.getenv("TARGET_CITIES", "Lima")),
        target_specialties=target_specialties,
        crawl_mode=crawl_mode,
        max_doctors_per_scope=_env_number("MAX_DOCTORS_PER_SCOPE", "45", int),
        max_pages=_env_number("MAX_PAGES_PER_SCOPE", "3", int),
        use_real_availability=_env_flag("USE_REAL_AVAILABILITY"),
        request_timeout=_env_number("REQUEST_TIMEOUT", "15", float),
        request_delay=_env_number("REQUEST_DELAY", "0.5", float),
        profile_delay=_env_number("PROFILE_DELAY", "0.4", float),
        phone_country_code=os.getenv("PHONE_COUNTRY_CODE", "+51").strip(),
        database_url=database_url,
        data_dir=os.getenv("DATA_DIR", "data"),
        num_patients=_env_number("NUM_PATIENTS", "100", int),
        num_appointments_per_doctor=_env_number("NUM_APPOINTMENTS_PER_DOCTOR", "10", int),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
