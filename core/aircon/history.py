"""
Tick History Tracking

Simple in-memory record of recent tick results for the status endpoints.
"""

import threading
from collections import deque
from datetime import datetime, timedelta, timezone
from typing import Optional

from .models import TickOutcome, TickResult


class TickHistory:
    """Tracks the most recent tick results."""

    def __init__(self, max_entries: int = 1000):
        """Initialize tick history.

        Args:
            max_entries: How many results to keep before dropping the oldest
        """
        self.results: deque[TickResult] = deque(maxlen=max_entries)
        self.lock = threading.Lock()

    def add(self, result: TickResult):
        """Append a tick result, dropping the oldest past ``max_entries``."""
        with self.lock:
            self.results.append(result)

    def last(self) -> Optional[TickResult]:
        with self.lock:
            return self.results[-1] if self.results else None

    def last_actuation(self) -> Optional[TickResult]:
        with self.lock:
            return next((r for r in reversed(self.results) if r.outcome == TickOutcome.ACTUATED), None)

    def get_ticks(
        self,
        hours: int | None = None,
        outcome: TickOutcome | None = None,
        now: datetime | None = None,
    ) -> list[dict]:
        """Get tick history, oldest first.

        Args:
            hours: How many hours back (None = all available)
            outcome: Only results with this outcome
            now: Reference instant for ``hours`` (defaults to now)

        Returns:
            List of tick results as dicts
        """
        with self.lock:
            results = list(self.results)

        if outcome:
            results = [r for r in results if r.outcome == outcome]

        if hours:
            cutoff = (now or datetime.now(timezone.utc)) - timedelta(hours=hours)
            results = [r for r in results if r.timestamp > cutoff]

        return [r.to_dict() for r in results]
