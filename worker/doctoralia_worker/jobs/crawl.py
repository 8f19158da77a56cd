"""Paginated crawl of the directory, one scope at a time."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Sequence, Tuple

from doctoralia_worker.core import failures as stages
from doctoralia_worker.core.config import Settings
from doctoralia_worker.core.context import RunContext
from doctoralia_worker.etl.extractors import parse_html
from doctoralia_worker.etl.listings import BROAD_CARD_SELECTORS, parse_search_results
from doctoralia_worker.etl.profile import build_record
from doctoralia_worker.etl.slots import availability_window, parse_slots, window_params
from doctoralia_worker.etl.synthesize import Synthesizer
from doctoralia_worker.etl.validate import rejection_reason
from doctoralia_worker.models import CandidateListing, CanonicalRecord, TimeSlot
from doctoralia_worker.vendors import doctoralia

logger = logging.getLogger(__name__)

SLOTS_TIMEOUT = 10


@dataclass(frozen=True)
class Scope:
    city: str
    specialty: Optional[str] = None

    @property
    def label(self) -> str:
        return f"{self.specialty} / {self.city}" if self.specialty else self.city


def build_scopes(settings: Settings) -> List[Scope]:
    if settings.crawl_mode == "specialty":
        return [Scope(city=city, specialty=specialty) for specialty in settings.target_specialties for city in settings.target_cities]
    return [Scope(city=city) for city in settings.target_cities]


class DoctorCrawler:
    """Walk search pages per scope and turn each listing into a record.

    Failures never leave this class: a page or profile that cannot be fetched
    is recorded in the run's failure tracker and skipped.
    """

    def __init__(
        self,
        settings: Settings,
        context: RunContext,
        *,
        synthesizer: Optional[Synthesizer] = None,
        today: Optional[date] = None,
    ) -> None:
        self.settings = settings
        self.context = context
        self.synthesizer = synthesizer or Synthesizer(context.rng)
        self.today = today

    @property
    def compare_specialty(self) -> bool:
        return self.settings.crawl_mode == "specialty"

    def crawl(self, scopes: Optional[Sequence[Scope]] = None) -> List[CanonicalRecord]:
        records: List[CanonicalRecord] = []
        for scope in scopes if scopes is not None else build_scopes(self.settings):
            logger.info("Scraping %s...", scope.label)
            scope_records = self.crawl_scope(scope)
            logger.info("Accepted %d doctors for %s", len(scope_records), scope.label)
            records.extend(scope_records)
        return records

    def crawl_scope(self, scope: Scope) -> List[CanonicalRecord]:
        listings = self.collect_listings(scope)
        records: List[CanonicalRecord] = []

        for listing in listings:
            if len(records) >= self.settings.max_doctors_per_scope:
                logger.info("Reached %d doctors for %s; discarding the rest", len(records), scope.label)
                break
            if self.context.is_accepted(listing.profile_url):
                logger.debug("Already scraped %s", listing.profile_url)
                continue

            record = self.process_listing(listing)
            if record is None:
                continue
            records.append(record)
            logger.debug("[%d] %s", len(records), record.full_name)

        return records

    def collect_listings(self, scope: Scope) -> List[CandidateListing]:
        """Aggregate result cards across pages until a page comes back empty."""
        listings: List[CandidateListing] = []

        for page in range(1, self.settings.max_pages + 1):
            url = doctoralia.search_url(self.settings.base_url, scope.city, page, scope.specialty)
            logger.info("Page %d: %s", page, url)
            try:
                html = self._fetch(url, self.settings.request_delay)
            except doctoralia.PageNotFoundError as exc:
                if page == 1:
                    logger.warning("Search page not found for %s; trying the site root", scope.label)
                    return self._fallback_listings(scope, exc)
                logger.info("Page %d not found, stopping", page)
                break
            except doctoralia.DoctoraliaError as exc:
                logger.warning("Page %d failed: %s", page, exc)
                self.context.failures.record(stages.SEARCH_PAGE, f"Page {page} failed for {scope.label}", exc)
                continue

            page_results = parse_search_results(
                parse_html(html),
                base_url=self.settings.base_url,
                city=scope.city,
                specialty=scope.specialty,
            )
            if not page_results:
                logger.info("No more results, stopping")
                break

            logger.info("Found %d doctors", len(page_results))
            listings.extend(page_results)
        else:
            logger.info("Page limit of %d reached for %s", self.settings.max_pages, scope.label)

        return listings

    def _fallback_listings(self, scope: Scope, cause: Exception) -> List[CandidateListing]:
        try:
            html = self._fetch(self.settings.base_url, self.settings.request_delay)
        except doctoralia.DoctoraliaError as exc:
            self.context.failures.record(stages.SEARCH_PAGE, f"No search page or root fallback for {scope.label}", exc)
            return []

        listings = parse_search_results(
            parse_html(html),
            base_url=self.settings.base_url,
            city=scope.city,
            specialty=scope.specialty,
            selectors=BROAD_CARD_SELECTORS,
        )
        if not listings:
            self.context.failures.record(stages.SEARCH_PAGE, f"Search page not found for {scope.label}", cause)
        return listings

    def process_listing(self, listing: CandidateListing) -> Optional[CanonicalRecord]:
        failures = self.context.failures
        label = listing.display_name or listing.profile_url
        try:
            html = self._fetch(listing.profile_url, self.settings.profile_delay, referer=self.settings.base_url)
        except doctoralia.DoctoraliaError as exc:
            logger.warning("Failed to scrape %s", label)
            failures.record(stages.PROFILE, f"Failed to fetch {label}", exc)
            return None

        try:
            record = build_record(
                listing,
                parse_html(html),
                synthesizer=self.synthesizer,
                country_code=self.settings.phone_country_code,
                real_availability=self._real_availability(listing),
                today=self.today,
            )
        except ValueError as exc:
            failures.record(stages.PROFILE, f"Could not build a record for {label}", exc)
            return None

        if record is None:
            failures.record(stages.PROFILE, f"No doctor name found at {listing.profile_url}")
            return None

        reason = rejection_reason(record, compare_specialty=self.compare_specialty)
        if reason:
            logger.debug("Rejected %s: %s", record.full_name, reason)
            failures.record(stages.VALIDATION, f"Rejected {record.full_name}", reason)
            return None

        self.context.accept(listing.profile_url)
        return record

    def _real_availability(self, listing: CandidateListing) -> Tuple[TimeSlot, ...]:
        if not self.settings.use_real_availability or not listing.address_id:
            return ()

        _, window_end = availability_window(self.today)
        try:
            payload = doctoralia.fetch_slots(
                self.settings.base_url,
                listing.doctor_id,
                listing.address_id,
                window_params(self.today),
                timeout=SLOTS_TIMEOUT,
            )
        except doctoralia.DoctoraliaError as exc:
            logger.debug("No real availability for %s: %s", listing.doctor_id, exc)
            return ()
        finally:
            time.sleep(self.settings.request_delay)
        return tuple(parse_slots(payload, window_end=window_end))

    def _fetch(self, url: str, delay: float, referer: Optional[str] = None) -> str:
        """Fetch a page, then pause whatever the outcome."""
        try:
            return doctoralia.fetch_html(url, timeout=self.settings.request_timeout, referer=referer)
        finally:
            time.sleep(delay)
