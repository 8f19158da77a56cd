"""Client utilities for the Doctoralia public directory."""

import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import requests

from doctoralia_worker.etl.normalize import slugify

logger = logging.getLogger(__name__)
_SESSION = requests.Session()
USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"
HTML_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "text/html",
    "Accept-Language": "es-PE,es",
}
JSON_HEADERS = {"User-Agent": USER_AGENT, "Accept": "application/json"}


class DoctoraliaError(RuntimeError):
    """Raised when the directory cannot be reached or answers with an error."""


class PageNotFoundError(DoctoraliaError):
    """Raised on HTTP 404."""


def search_url(base_url: str, city: str, page: int, specialty: Optional[str] = None) -> str:
    base_url = base_url.rstrip("/")
    if specialty:
        return f"{base_url}/{slugify(specialty)}/{slugify(city)}?page={page}"
    return f"{base_url}/buscar?q=&loc={quote(city)}&page={page}"


def slots_url(base_url: str, doctor_id: str, address_id: str) -> str:
    return f"{base_url.rstrip('/')}/api/v3/doctors/{doctor_id}/addresses/{address_id}/slots"


def _get(url: str, *, headers: Dict[str, str], timeout: float, params: Optional[Dict[str, str]] = None):
    try:
        response = _SESSION.get(url, headers=headers, params=params, timeout=timeout)
    except requests.RequestException as exc:
        raise DoctoraliaError(f"GET {url} failed: {exc}") from exc
    if response.status_code == 404:
        raise PageNotFoundError(f"GET {url} returned 404")
    if response.status_code >= 400:
        logger.error("GET %s failed: status=%s", url, response.status_code)
        raise DoctoraliaError(f"GET {url} returned {response.status_code}")
    return response


def fetch_html(url: str, *, timeout: float = 15, referer: Optional[str] = None) -> str:
    headers = dict(HTML_HEADERS)
    if referer:
        headers["Referer"] = referer
    return _get(url, headers=headers, timeout=timeout).text


def fetch_slots(
    base_url: str,
    doctor_id: str,
    address_id: str,
    params: Dict[str, str],
    *,
    timeout: float = 10,
) -> Any:
    response = _get(slots_url(base_url, doctor_id, address_id), headers=JSON_HEADERS, timeout=timeout, params=params)
    try:
        return response.json()
    except ValueError as exc:
        raise DoctoraliaError(f"Slots payload for doctor {doctor_id} is not JSON") from exc
