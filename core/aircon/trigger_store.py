"""
Trigger Rule Storage

Default triggers and date-scoped overrides persisted as JSON in a key-value store.

Key layout:
    trigger:{hour*100+minute:04d}            one default trigger
    date:{YYYY-MM}:{weekOfMonth}:{DD}        one date override

Records that fail to decode are skipped with a warning, so a stale or partial
record never hides the rest of a listing.
"""

import json
import logging
from collections.abc import Callable
from datetime import date
from typing import Optional, TypeVar

from .calendar_gate import format_year_month, week_of_month
from .exceptions import MalformedRecordError
from .kv_store import KeyValueStore
from .models import DateOverride, Trigger

logger = logging.getLogger(__name__)

TRIGGER_PREFIX = "trigger:"
DATE_PREFIX = "date:"

T = TypeVar("T")


def trigger_key(trigger: Trigger) -> str:
    return f"{TRIGGER_PREFIX}{trigger.identity_key:04d}"


def override_prefix(year_month: str, week_index: int) -> str:
    return f"{DATE_PREFIX}{year_month}:{week_index}:"


def override_key(day: date) -> str:
    return f"{override_prefix(format_year_month(day), week_of_month(day))}{day:%d}"


class TriggerStore:
    """Read-through access to trigger rules. Writes are last-write-wins per key."""

    def __init__(self, kv: KeyValueStore):
        self.kv = kv

    def _decode(self, key: str, decoder: Callable[[object], T]) -> Optional[T]:
        """Fetch and strictly decode one record.

        Returns None if the key vanished between listing and reading.

        Raises:
            StoreUnavailableError: If the store cannot be read
            MalformedRecordError: If the stored value does not decode
        """
        raw = self.kv.get(key)
        if raw is None:
            return None
        try:
            return decoder(json.loads(raw))
        except ValueError as e:
            # json.JSONDecodeError is a ValueError too
            raise MalformedRecordError(key, str(e)) from e

    def _list(self, prefix: str, decoder: Callable[[object], T]) -> list[T]:
        records = []
        for key in self.kv.list_keys(prefix):
            try:
                record = self._decode(key, decoder)
            except MalformedRecordError as e:
                logger.warning(f"Skipping record: {e}")
                continue
            if record is not None:
                records.append(record)
        return records

    def list_default_triggers(self) -> list[Trigger]:
        """Return default triggers in ascending identity-key order.

        Raises:
            StoreUnavailableError: If the store cannot be read
        """
        by_identity: dict[int, Trigger] = {}
        for trigger in self._list(TRIGGER_PREFIX, Trigger.from_dict):
            by_identity[trigger.identity_key] = trigger
        return [by_identity[k] for k in sorted(by_identity)]

    def list_overrides_for_week(self, year_month: str, week_index: int) -> list[DateOverride]:
        """Return the date overrides stored under one week-of-month bucket.

        Args:
            year_month: ``YYYY-MM``
            week_index: Result of ``week_of_month`` for a date in that month

        Raises:
            StoreUnavailableError: If the store cannot be read
        """
        return self._list(override_prefix(year_month, week_index), DateOverride.from_dict)

    def find_override(self, day: date) -> Optional[DateOverride]:
        """Return the override for ``day``, or None when defaults apply."""
        overrides = self.list_overrides_for_week(format_year_month(day), week_of_month(day))
        matching = [o for o in overrides if o.date == day]
        return matching[-1] if matching else None

    def has_default_trigger(self, trigger: Trigger) -> bool:
        """True if a default trigger with the same identity key is stored."""
        return self.kv.get(trigger_key(trigger)) is not None

    def upsert_default_trigger(self, trigger: Trigger) -> None:
        """Store a default trigger, replacing any trigger with the same identity key."""
        key = trigger_key(trigger)
        self.kv.put(key, json.dumps(trigger.to_dict()))
        logger.info(f"Stored default trigger {key}")

    def upsert_date_override(self, override: DateOverride) -> None:
        """Store a date override, replacing any existing one for the same date."""
        key = override_key(override.date)
        self.kv.put(key, json.dumps(override.to_dict()))
        logger.info(f"Stored date override {key} ({len(override.triggers)} trigger(s))")
