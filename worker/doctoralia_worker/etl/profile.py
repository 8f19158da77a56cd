"""Assemble a :class:`CanonicalRecord` from a listing and its profile page."""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional, Sequence, Set

from bs4 import Tag

from doctoralia_worker.etl.extractors import extract_address, extract_name, extract_phone, extract_services
from doctoralia_worker.etl.normalize import strip_title_prefixes
from doctoralia_worker.etl.synthesize import Synthesizer
from doctoralia_worker.models import CandidateListing, CanonicalRecord, TimeSlot

logger = logging.getLogger(__name__)

ONLINE_MARKER = "online"


def fallback_address(city: str) -> str:
    return f"Consultorio en {city}"


def resolve_name(listing: CandidateListing, soup: Tag) -> Optional[str]:
    if listing.display_name:
        name = strip_title_prefixes(listing.display_name)
        if name:
            return name
    extracted = extract_name(soup)
    return extracted.value if extracted else None


def build_record(
    listing: CandidateListing,
    soup: Tag,
    *,
    synthesizer: Synthesizer,
    country_code: str = "+51",
    real_availability: Sequence[TimeSlot] = (),
    today: Optional[date] = None,
) -> Optional[CanonicalRecord]:
    """Extract every field, synthesizing the gaps.

    Returns ``None`` only when no name can be recovered; a record is never
    built without one.
    """
    full_name = resolve_name(listing, soup)
    if not full_name:
        return None

    synthesized: Set[str] = set()

    address_result = extract_address(soup)
    if address_result:
        address = address_result.value
    else:
        address = fallback_address(listing.city)
        synthesized.add("address")

    phone_result = extract_phone(soup, country_code)
    if phone_result:
        phone_number = phone_result.value
    else:
        phone_number = synthesizer.phone()
        synthesized.add("phone_number")

    services_result = extract_services(soup)
    if services_result:
        treatments = services_result.value
    else:
        treatments = synthesizer.services(listing.specialty)
        synthesized.add("treatments")

    if real_availability:
        availability = tuple(real_availability)
    else:
        is_online = ONLINE_MARKER in address.lower()
        availability = synthesizer.availability(is_online=is_online, today=today)
        synthesized.add("availability")

    if synthesized:
        logger.debug("%s: synthesized %s", full_name, ", ".join(sorted(synthesized)))

    return CanonicalRecord(
        full_name=full_name,
        specialty=listing.specialty,
        city=listing.city,
        address=address,
        phone_country_code=country_code,
        phone_number=phone_number,
        rating=listing.rating,
        review_count=listing.review_count,
        profile_url=listing.profile_url,
        treatments=treatments,
        availability=availability,
        synthesized_fields=frozenset(synthesized),
    )
