"""Core data models shared by the doctor directory pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, FrozenSet, Generic, Optional, Tuple, TypeVar

IN_PERSON = "in_person"
REMOTE = "online"
MODALITIES = (IN_PERSON, REMOTE)

T = TypeVar("T")


@dataclass(slots=True)
class CandidateListing:
    """One result card from a search page; only lives for a crawl pass."""

    doctor_id: str
    profile_url: str
    display_name: Optional[str] = None
    address_id: str = ""
    specialty: str = ""
    city: str = ""
    rating: Optional[float] = None
    review_count: int = 0


@dataclass(frozen=True, slots=True)
class ServiceOffering:
    name: str
    price: Optional[float] = None
    currency: Optional[str] = None
    duration_minutes: int = 30


@dataclass(frozen=True, slots=True)
class TimeSlot:
    start_at: datetime
    end_at: datetime
    modality: str = IN_PERSON

    def __post_init__(self) -> None:
        if self.end_at <= self.start_at:
            raise ValueError("time slot must end after it starts")
        if self.modality not in MODALITIES:
            raise ValueError(f"unknown modality {self.modality!r}")


@dataclass(frozen=True, slots=True)
class CanonicalRecord:
    """Normalized, persistence-ready doctor listing."""

    full_name: str
    specialty: str
    city: str
    address: str
    phone_country_code: str
    phone_number: str
    rating: Optional[float]
    review_count: int
    profile_url: str
    treatments: Tuple[ServiceOffering, ...] = ()
    availability: Tuple[TimeSlot, ...] = ()
    synthesized_fields: FrozenSet[str] = field(default=frozenset(), compare=False)

    def __post_init__(self) -> None:
        if self.rating is not None and not 0 <= self.rating <= 5:
            raise ValueError(f"rating {self.rating} outside [0, 5]")
        if self.review_count < 0:
            raise ValueError("review_count must be non-negative")
        names = [treatment.name.lower() for treatment in self.treatments]
        if len(names) != len(set(names)):
            raise ValueError("treatment names must be unique (case-insensitive)")


@dataclass(frozen=True, slots=True)
class Extraction(Generic[T]):
    """A field value together with where it came from.

    Absence is expressed by the extractor returning ``None`` instead of an
    ``Extraction``.
    """

    value: T
    strategy: str


@dataclass(frozen=True, slots=True)
class FailureRecord:
    stage: str
    message: str
    cause: Optional[str]
    timestamp: datetime


@dataclass(frozen=True, slots=True)
class PatientData:
    full_name: str
    document_number: str
    phone_number: str
    email: str


@dataclass(frozen=True, slots=True)
class AppointmentData:
    doctor_id: Any
    patient_id: Any
    treatment_id: Any
    start_at: datetime
    end_at: datetime
    status: str


@dataclass(slots=True)
class InsertedDoctor:
    """Durable ids handed back by the persistence layer for one record."""

    id: Any
    treatment_ids: list = field(default_factory=list)
    availability: list = field(default_factory=list)
