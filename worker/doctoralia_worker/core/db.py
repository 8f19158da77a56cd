"""Database helpers for the worker."""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Optional

import psycopg2
from psycopg2 import pool

from doctoralia_worker.core.config import get_settings
from doctoralia_worker.etl.transform import to_availability_row, to_doctor_row, to_treatment_row
from doctoralia_worker.models import AppointmentData, CanonicalRecord, PatientData, ServiceOffering, TimeSlot

logger = logging.getLogger(__name__)

_connection_pool: Optional[pool.SimpleConnectionPool] = None

TABLES = ("doctors", "treatments", "doctor_availability", "patients", "appointments")


def init_pool(minconn: int = 1, maxconn: int = 5) -> pool.SimpleConnectionPool:
    """Initialise and return the shared connection pool."""
    global _connection_pool
    if _connection_pool is None:
        settings = get_settings()
        if not settings.database_url:
            raise RuntimeError("DATABASE_URL is required for database connections")
        _connection_pool = pool.SimpleConnectionPool(
            minconn,
            maxconn,
            dsn=settings.database_url,
            connect_timeout=10,
        )
        logger.info("Database connection pool initialised")
    return _connection_pool


def close_pool() -> None:
    global _connection_pool
    if _connection_pool is not None:
        _connection_pool.closeall()
        _connection_pool = None
        logger.info("Database connection pool closed")


@contextmanager
def get_connection():
    """Context manager yielding a pooled connection."""
    pg_pool = init_pool()
    conn = pg_pool.getconn()
    try:
        yield conn
    finally:
        pg_pool.putconn(conn)


_INSERT_DOCTOR = """
INSERT INTO doctors (
    full_name,
    specialty,
    city,
    address,
    phone_country_code,
    phone_number,
    rating,
    review_count,
    source_profile_url
) VALUES (
    %(full_name)s,
    %(specialty)s,
    %(city)s,
    %(address)s,
    %(phone_country_code)s,
    %(phone_number)s,
    %(rating)s,
    %(review_count)s,
    %(source_profile_url)s
)
RETURNING id;
"""

_INSERT_TREATMENT = """
INSERT INTO treatments (doctor_id, name, price, currency, duration_minutes)
VALUES (%(doctor_id)s, %(name)s, %(price)s, %(currency)s, %(duration_minutes)s)
RETURNING id;
"""

_INSERT_AVAILABILITY = """
INSERT INTO doctor_availability (doctor_id, start_at, end_at, modality)
VALUES (%(doctor_id)s, %(start_at)s, %(end_at)s, %(modality)s)
RETURNING id;
"""

_INSERT_PATIENT = """
INSERT INTO patients (full_name, document_number, phone_number, email)
VALUES (%(full_name)s, %(document_number)s, %(phone_number)s, %(email)s)
RETURNING id;
"""

_INSERT_APPOINTMENT = """
INSERT INTO appointments (doctor_id, patient_id, treatment_id, start_at, end_at, status)
VALUES (%(doctor_id)s, %(patient_id)s, %(treatment_id)s, %(start_at)s, %(end_at)s, %(status)s)
RETURNING id;
"""


def _insert_returning_id(sql: str, params: Dict[str, Any]) -> Any:
    with get_connection() as conn:
        try:
            with conn.cursor() as cur:
                cur.execute(sql, params)
                row = cur.fetchone()
            conn.commit()
        except psycopg2.Error:
            conn.rollback()
            raise
    return row[0]


def insert_doctor(record: CanonicalRecord) -> Any:
    """Persist one doctor row and return its id."""
    params = to_doctor_row(record)
    if not params["full_name"] or not params["source_profile_url"]:
        raise ValueError("full_name and source_profile_url are required for insert")
    doctor_id = _insert_returning_id(_INSERT_DOCTOR, params)
    logger.debug("Inserted doctor %s as %s", params["full_name"], doctor_id)
    return doctor_id


def insert_treatment(doctor_id: Any, treatment: ServiceOffering) -> Any:
    return _insert_returning_id(_INSERT_TREATMENT, to_treatment_row(doctor_id, treatment))


def insert_availability(doctor_id: Any, slot: TimeSlot) -> Any:
    return _insert_returning_id(_INSERT_AVAILABILITY, to_availability_row(doctor_id, slot))


def insert_patient(patient: PatientData) -> Any:
    return _insert_returning_id(
        _INSERT_PATIENT,
        {
            "full_name": patient.full_name,
            "document_number": patient.document_number,
            "phone_number": patient.phone_number,
            "email": patient.email,
        },
    )


def insert_appointment(appointment: AppointmentData) -> Any:
    return _insert_returning_id(
        _INSERT_APPOINTMENT,
        {
            "doctor_id": appointment.doctor_id,
            "patient_id": appointment.patient_id,
            "treatment_id": appointment.treatment_id,
            "start_at": appointment.start_at,
            "end_at": appointment.end_at,
            "status": appointment.status,
        },
    )


def count_rows(table: str) -> int:
    if table not in TABLES:
        raise ValueError(f"Unknown table {table!r}")
    with get_connection() as conn:
        with conn.cursor() as cur:
            cur.execute(f"SELECT COUNT(*) FROM {table};")
            (count,) = cur.fetchone()
        conn.commit()
    return int(count)


def get_stats() -> Dict[str, int]:
    stats = {table: count_rows(table) for table in TABLES}
    logger.info("=" * 50)
    logger.info("DATABASE STATISTICS")
    logger.info("=" * 50)
    for table, count in stats.items():
        logger.info("%s: %d", table, count)
    logger.info("=" * 50)
    return stats
