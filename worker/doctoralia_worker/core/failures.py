"""Per-run log of non-fatal failures, grouped by pipeline stage."""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Dict, Iterator, List, Optional

from doctoralia_worker.models import FailureRecord

logger = logging.getLogger(__name__)

SEARCH_PAGE = "SEARCH_PAGE"
PROFILE = "PROFILE"
VALIDATION = "VALIDATION"
EXPORT_JSON = "EXPORT_JSON"
INSERT_DOCTORS = "INSERT_DOCTORS"
INSERT_TREATMENTS = "INSERT_TREATMENTS"
INSERT_AVAILABILITY = "INSERT_AVAILABILITY"
INSERT_PATIENTS = "INSERT_PATIENTS"
INSERT_APPOINTMENTS = "INSERT_APPOINTMENTS"

_RULE = "=" * 60


class FailureTracker:
    """Append-only failure log.

    Nothing in the pipeline reads it to make decisions; callers only look at
    it once a run is over to pick a log level and exit status.
    """

    def __init__(self) -> None:
        self._records: List[FailureRecord] = []

    def record(self, stage: str, message: str, cause: Optional[object] = None) -> FailureRecord:
        if isinstance(cause, BaseException):
            cause = str(cause) or type(cause).__name__
        elif cause is not None:
            cause = str(cause)
        entry = FailureRecord(
            stage=stage,
            message=message,
            cause=cause,
            timestamp=datetime.now(timezone.utc),
        )
        self._records.append(entry)
        logger.debug("Recorded %s failure: %s", stage, message)
        return entry

    def count(self) -> int:
        return len(self._records)

    def has_failures(self) -> bool:
        return bool(self._records)

    def filter_by_stage(self, stage: str) -> List[FailureRecord]:
        return [entry for entry in self._records if entry.stage == stage]

    def clear(self) -> None:
        self._records = []

    def __iter__(self) -> Iterator[FailureRecord]:
        return iter(list(self._records))

    def __len__(self) -> int:
        return len(self._records)

    def grouped(self) -> Dict[str, List[FailureRecord]]:
        groups: Dict[str, List[FailureRecord]] = defaultdict(list)
        for entry in self._records:
            groups[entry.stage].append(entry)
        return {stage: groups[stage] for stage in sorted(groups)}

    def summarize(self) -> str:
        """Render the end-of-run report."""
        if not self._records:
            return "No errors during the run"

        lines = [_RULE, f"ERROR SUMMARY: {len(self._records)} errors occurred", _RULE]
        for stage, entries in self.grouped().items():
            lines.append("")
            lines.append(f"{stage}: {len(entries)} errors")
            for index, entry in enumerate(entries, start=1):
                lines.append(f"   {index}. {entry.message}")
                if entry.cause:
                    lines.append(f"      -> {entry.cause}")
        lines.append("")
        lines.append(_RULE)
        return "\n".join(lines)
