"""State shared across one pipeline run."""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Optional, Set

from doctoralia_worker.core.failures import FailureTracker


@dataclass
class RunContext:
    failures: FailureTracker = field(default_factory=FailureTracker)
    accepted_urls: Set[str] = field(default_factory=set)
    rng: random.Random = field(default_factory=random.Random)

    @classmethod
    def create(cls, seed: Optional[int] = None) -> "RunContext":
        return cls(rng=random.Random(seed))

    def is_accepted(self, url: str) -> bool:
        return url in self.accepted_urls

    def accept(self, url: str) -> None:
        self.accepted_urls.add(url)

    def reset(self) -> None:
        self.failures.clear()
        self.accepted_urls.clear()
