"""Fallback-ordered field extractors for doctor profile markup.

Every field has an ordered tuple of strategies. A strategy is a plain
function ``(soup) -> Optional[str]`` and never raises; :func:`run_cascade`
evaluates them left to right and stops at the first value that survives the
field's sanity check. Synthetic fallbacks are not part of these cascades, the
profile builder applies them when a cascade comes back empty.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, Iterable, List, Optional, Sequence, Set, Tuple

from bs4 import BeautifulSoup, Tag

from doctoralia_worker.etl.normalize import (
    clean_address,
    has_title_prefix,
    looks_like_person_name,
    normalize_phone,
    strip_title_prefixes,
)
from doctoralia_worker.models import Extraction, ServiceOffering

logger = logging.getLogger(__name__)

Strategy = Callable[[Tag], Optional[str]]

ADDRESS_KEYWORDS = ("calle", "av.", "avenida", "jr", "urb", "psicoterapia online")
ORGANIZATION_MARKERS = ("Clínica", "Clinica", "Centro", "Hospital", "Policlínico")
REGISTRATION_MARKER = "Núm. Colegiado"
NAME_TAG_PREFIX = re.compile(r"^(?:Dr\.|Dra\.|Ps\s)", re.IGNORECASE)
PRICE_PATTERN = re.compile(r"S/\.?\s*(\d+(?:[.,]\d{1,2})?)")
DEFAULT_CURRENCY = "PEN"
DEFAULT_DURATION_MINUTES = 30


def _text(node: Optional[Tag]) -> str:
    if node is None:
        return ""
    return node.get_text(" ", strip=True)


def run_cascade(
    soup: Tag,
    strategies: Sequence[Strategy],
    accept: Callable[[str], bool] = bool,
) -> Optional[Extraction[str]]:
    """Return the first strategy result that ``accept`` approves."""
    for strategy in strategies:
        try:
            value = strategy(soup)
        except (AttributeError, TypeError, ValueError) as exc:
            logger.debug("Strategy %s failed: %s", strategy.__name__, exc)
            continue
        if value and accept(value):
            logger.debug("Strategy %s produced %r", strategy.__name__, value)
            return Extraction(value=value, strategy=strategy.__name__)
    return None


# ---------- Address ----------


def _is_address_text(text: str, *, min_length: int = 15) -> bool:
    lowered = text.lower()
    return (
        len(text) > min_length
        and any(ch.isdigit() for ch in text)
        and any(keyword in lowered for keyword in ADDRESS_KEYWORDS)
    )


def address_from_itemprop_block(soup: Tag) -> Optional[str]:
    for block in soup.select('[itemprop="address"]'):
        street = _text(block.select_one("span.text-truncate"))
        if len(street) <= 10:
            continue
        cleaned = clean_address(street)
        if cleaned and REGISTRATION_MARKER not in cleaned:
            return cleaned
    return None


def address_from_street_label(soup: Tag) -> Optional[str]:
    label = soup.select_one('[data-__test__-id="street-address"]')
    if label is None or label.parent is None:
        return None
    text = _text(label.parent.select_one("span.text-truncate"))
    if len(text) > 10:
        return clean_address(text)
    return None


def address_from_meta(soup: Tag) -> Optional[str]:
    meta = soup.select_one('meta[itemprop="streetAddress"]')
    content = (meta.get("content") or "").strip() if meta else ""
    if len(content) > 5:
        return clean_address(content)
    return None


def address_from_layout_scan(soup: Tag) -> Optional[str]:
    for container in soup.select("div.overflow-hidden, div.d-flex"):
        for span in container.find_all("span"):
            text = _text(span)
            if not _is_address_text(text):
                continue
            if NAME_TAG_PREFIX.match(text):
                continue
            if any(marker in text for marker in ORGANIZATION_MARKERS):
                continue
            return clean_address(text)
    return None


def address_from_paragraph_scan(soup: Tag) -> Optional[str]:
    for paragraph in soup.select("p.m-0"):
        text = _text(paragraph.select_one("span.text-truncate"))
        if _is_address_text(text) and not NAME_TAG_PREFIX.match(text):
            return clean_address(text)
    return None


ADDRESS_STRATEGIES: Tuple[Strategy, ...] = (
    address_from_itemprop_block,
    address_from_street_label,
    address_from_meta,
    address_from_layout_scan,
    address_from_paragraph_scan,
)


def extract_address(soup: Tag) -> Optional[Extraction[str]]:
    result = run_cascade(soup, ADDRESS_STRATEGIES)
    if result is None:
        logger.debug("No address found with any strategy")
    return result


# ---------- Phone ----------


def _phone_is_plausible(value: str) -> bool:
    return value.isdigit() and 6 <= len(value) <= 15


def _phone_candidate_pattern(country_code: str) -> re.Pattern:
    prefix = re.escape(re.sub(r"\D", "", country_code))
    return re.compile(rf"(?<![\d+])(?:\(?\+?{prefix}\)?[\s.\-]?)?9\d{{2}}[\s.\-]?\d{{3}}[\s.\-]?\d{{3}}(?!\d)")


def phone_from_meta(soup: Tag, country_code: str = "+51") -> Optional[str]:
    meta = soup.select_one('meta[itemprop="telephone"]')
    content = (meta.get("content") or "") if meta else ""
    return normalize_phone(content, country_code)


def phone_from_text(soup: Tag, country_code: str = "+51") -> Optional[str]:
    for match in _phone_candidate_pattern(country_code).finditer(soup.get_text(" ")):
        phone = normalize_phone(match.group(0), country_code)
        if phone:
            return phone
    return None


def extract_phone(soup: Tag, country_code: str = "+51") -> Optional[Extraction[str]]:
    strategies = (
        _bind(phone_from_meta, country_code),
        _bind(phone_from_text, country_code),
    )
    return run_cascade(soup, strategies, accept=_phone_is_plausible)


def _bind(strategy: Callable[..., Optional[str]], country_code: str) -> Strategy:
    def bound(soup: Tag) -> Optional[str]:
        return strategy(soup, country_code)

    bound.__name__ = strategy.__name__
    return bound


# ---------- Name ----------


def name_from_itemprop(soup: Tag) -> Optional[str]:
    node = soup.select_one('[itemprop="name"]')
    if node is None:
        return None
    return (node.get("content") or _text(node)).strip() or None


def name_from_data_attribute(soup: Tag) -> Optional[str]:
    if soup.get("data-doctor-name"):
        return soup["data-doctor-name"].strip()
    node = soup.select_one("[data-doctor-name]")
    return node["data-doctor-name"].strip() if node else None


def name_from_anchor(soup: Tag) -> Optional[str]:
    for anchor in soup.find_all("a"):
        text = _text(anchor)
        if has_title_prefix(text) or looks_like_person_name(text):
            return text
    return None


def name_from_heading(soup: Tag) -> Optional[str]:
    for heading in soup.find_all(["h1", "h2", "h3", "h4"]):
        text = _text(heading)
        if has_title_prefix(text):
            return text
    return None


NAME_STRATEGIES: Tuple[Strategy, ...] = (
    name_from_itemprop,
    name_from_data_attribute,
    name_from_anchor,
    name_from_heading,
)


def _name_is_acceptable(value: str) -> bool:
    stripped = strip_title_prefixes(value)
    return bool(stripped) and (has_title_prefix(value) or looks_like_person_name(stripped) or " " in stripped)


def extract_name(soup: Tag) -> Optional[Extraction[str]]:
    """Return the doctor's name with title prefixes removed, or ``None``."""
    result = run_cascade(soup, NAME_STRATEGIES, accept=_name_is_acceptable)
    if result is None:
        return None
    return Extraction(value=strip_title_prefixes(result.value), strategy=result.strategy)


# ---------- Services ----------


def _parse_price(text: str) -> Optional[float]:
    match = PRICE_PATTERN.search(text or "")
    if not match:
        return None
    return float(match.group(1).replace(",", "."))


def _offering(name: str, price_text: str) -> ServiceOffering:
    price = _parse_price(price_text)
    return ServiceOffering(
        name=name,
        price=price,
        currency=DEFAULT_CURRENCY if price is not None else None,
        duration_minutes=DEFAULT_DURATION_MINUTES,
    )


def _collect_services(pairs: Iterable[Tuple[str, str]], seen: Set[str]) -> List[ServiceOffering]:
    services: List[ServiceOffering] = []
    for name, price_text in pairs:
        name = " ".join(name.split())
        if not name or name.lower() in seen:
            continue
        seen.add(name.lower())
        services.append(_offering(name, price_text))
    return services


def _service_items(soup: Tag) -> Iterable[Tuple[str, str]]:
    for item in soup.select('li[data-id="service-item"]'):
        yield _text(item.select_one('h3[itemprop="availableService"]')), _text(item.select_one(".mr-1"))


def _service_headings(soup: Tag) -> Iterable[Tuple[str, str]]:
    for heading in soup.select("h3.h5.font-weight-bold"):
        parent = heading.parent
        yield _text(heading), _text(parent.select_one(".mr-1")) if parent is not None else ""


def extract_services(soup: Tag) -> Optional[Extraction[Tuple[ServiceOffering, ...]]]:
    """Services listed on the profile, de-duplicated by case-insensitive name."""
    seen: Set[str] = set()
    services = _collect_services(_service_items(soup), seen)
    strategy = "service_items"
    if not services:
        services = _collect_services(_service_headings(soup), seen)
        strategy = "service_headings"
    if not services:
        return None
    return Extraction(value=tuple(services), strategy=strategy)


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html.parser")
