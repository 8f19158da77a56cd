"""Turn search-result pages into :class:`CandidateListing` objects."""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Set

from bs4 import Tag

from doctoralia_worker.etl.extractors import extract_name
from doctoralia_worker.etl.normalize import canonical_url, normalize_count, normalize_rating
from doctoralia_worker.models import CandidateListing

logger = logging.getLogger(__name__)

RESULT_CARD_SELECTORS = ('[data-id="result-item"]',)
BROAD_CARD_SELECTORS = (
    '[data-id="result-item"]',
    "[data-doctor-url]",
    "[data-result-id]",
)


def _card_url(card: Tag) -> str:
    url = card.get("data-doctor-url") or ""
    if url:
        return url
    anchor = card.select_one("a[href]")
    return anchor["href"] if anchor else ""


def parse_card(card: Tag, *, base_url: str, city: str, specialty: Optional[str] = None) -> Optional[CandidateListing]:
    """Build a listing from one result card; ``None`` when ids are missing."""
    doctor_id = (card.get("data-result-id") or card.get("data-doctor-id") or "").strip()
    profile_url = canonical_url(_card_url(card), base_url)
    if not doctor_id or not profile_url:
        return None

    name = extract_name(card)
    return CandidateListing(
        doctor_id=doctor_id,
        profile_url=profile_url,
        display_name=name.value if name else None,
        address_id=(card.get("data-address-id") or "").strip(),
        specialty=(card.get("data-eec-specialization-name") or "").strip() or (specialty or ""),
        city=city,
        rating=normalize_rating(card.get("data-eec-stars-rating")),
        review_count=normalize_count(card.get("data-eec-opinions-count")),
    )


def parse_search_results(
    soup: Tag,
    *,
    base_url: str,
    city: str,
    specialty: Optional[str] = None,
    selectors: Sequence[str] = RESULT_CARD_SELECTORS,
) -> List[CandidateListing]:
    """Return the listings on a results page in document order."""
    results: List[CandidateListing] = []
    seen_cards: Set[int] = set()
    seen_urls: Set[str] = set()

    for selector in selectors:
        for card in soup.select(selector):
            if id(card) in seen_cards:
                continue
            seen_cards.add(id(card))
            listing = parse_card(card, base_url=base_url, city=city, specialty=specialty)
            if listing is None:
                logger.debug("Skipping result card without id or url")
                continue
            if listing.profile_url in seen_urls:
                continue
            seen_urls.add(listing.profile_url)
            results.append(listing)

    return results
