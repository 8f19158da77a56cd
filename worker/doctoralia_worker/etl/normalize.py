"""String normalisation helpers shared by the extractors."""

from __future__ import annotations

import re
import unicodedata
from typing import Any, Optional
from urllib.parse import urljoin, urlparse, urlunparse

import phonenumbers

_WHITESPACE = re.compile(r"\s+")
_DUPLICATE_COMMAS = re.compile(r",(?:\s*,)+")
_LEADING_COMMA = re.compile(r"^\s*,\s*")
_TRAILING_COMMA = re.compile(r"\s*,\s*$")
_SPACE_BEFORE_COMMA = re.compile(r"\s+,")
_SPACE_AFTER_COMMA = re.compile(r",\s*")
_POSTAL_CODE_SUFFIX = re.compile(r"[\s,]+\d{5}$")

TITLE_PREFIX = re.compile(
    r"^(?:dra|dr|psic|ps|odont|lic|mg|mag)(?:\.\s*|\s+)",
    re.IGNORECASE,
)
PERSON_NAME = re.compile(
    r"^[A-ZÁÉÍÓÚÑÜ][a-záéíóúñü'\-]+(?:\s+(?:de|del|la|y|[A-ZÁÉÍÓÚÑÜ][a-záéíóúñü'\-]+))*"
    r"\s+[A-ZÁÉÍÓÚÑÜ][a-záéíóúñü'\-]+$"
)


def clean_address(raw: str) -> str:
    """Collapse whitespace and tidy commas in a free-text address."""
    if not raw:
        return ""

    text = _WHITESPACE.sub(" ", raw).strip()
    text = _DUPLICATE_COMMAS.sub(",", text)
    text = _LEADING_COMMA.sub("", text)
    text = _TRAILING_COMMA.sub("", text)
    text = _POSTAL_CODE_SUFFIX.sub("", text)
    text = _SPACE_BEFORE_COMMA.sub(",", text)
    text = _SPACE_AFTER_COMMA.sub(", ", text)
    return text.strip()


def strip_title_prefixes(name: str) -> str:
    """Remove every leading professional title (``Dr.``, ``Ps``, ``Mg.`` ...)."""
    text = _WHITESPACE.sub(" ", name or "").strip()
    while True:
        stripped = TITLE_PREFIX.sub("", text, count=1)
        if stripped == text:
            return text.strip()
        text = stripped.strip()


def has_title_prefix(text: str) -> bool:
    return bool(TITLE_PREFIX.match((text or "").strip()))


def looks_like_person_name(text: str) -> bool:
    return bool(PERSON_NAME.match(_WHITESPACE.sub(" ", text or "").strip()))


def region_for_country_code(country_code: str) -> Optional[str]:
    """Map a calling code such as ``+51`` to its phonenumbers region (``PE``)."""
    digits = re.sub(r"\D", "", country_code or "")
    if not digits:
        return None
    region = phonenumbers.region_code_for_country_code(int(digits))
    return None if region == phonenumbers.UNKNOWN_REGION else region


def normalize_phone(raw: str, country_code: str = "+51") -> Optional[str]:
    """Return the national significant number of ``raw``, or ``None``.

    Numbers that are not possible, or that belong to another calling code,
    are rejected.
    """
    if not raw or not raw.strip():
        return None
    try:
        parsed = phonenumbers.parse(raw, region_for_country_code(country_code))
    except phonenumbers.NumberParseException:
        return None

    if not phonenumbers.is_possible_number(parsed):
        return None
    if f"+{parsed.country_code}" != "+" + re.sub(r"\D", "", country_code or ""):
        return None
    return str(parsed.national_number)


def normalize_rating(value: Any) -> Optional[float]:
    """Return a rating within [0, 5] or ``None``."""
    try:
        rating = float(value)
    except (TypeError, ValueError):
        return None
    if rating != rating or rating < 0 or rating > 5:
        return None
    return rating


def normalize_count(value: Any) -> int:
    try:
        count = int(float(value))
    except (TypeError, ValueError):
        return 0
    return max(count, 0)


def canonical_url(raw_url: str, base_url: str) -> Optional[str]:
    """Absolute profile URL without query, fragment or trailing slash."""
    if not raw_url or not raw_url.strip():
        return None

    parsed = urlparse(urljoin(base_url.rstrip("/") + "/", raw_url.strip()))
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        return None

    path = parsed.path.rstrip("/") or "/"
    return urlunparse((parsed.scheme, parsed.netloc.lower(), path, "", "", ""))


def fold_accents(value: str) -> str:
    decomposed = unicodedata.normalize("NFKD", value or "")
    return decomposed.encode("ascii", "ignore").decode("ascii")


def slugify(value: str) -> str:
    """URL slug used by the directory's specialty/city paths."""
    return re.sub(r"[^a-z0-9]+", "-", fold_accents(value).lower()).strip("-")
