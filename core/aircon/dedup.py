"""
Daily Actuation Guard

One completion record per local calendar date. The record expires on its own
after ``DEFAULT_COMPLETION_TTL_SECONDS``, which is kept above 24 hours so a
record written late in the evening still covers the whole local day.
"""

import logging

from .kv_store import KeyValueStore

logger = logging.getLogger(__name__)

DEFAULT_COMPLETION_TTL_SECONDS = 25 * 60 * 60
COMPLETION_VALUE = "done"


class DedupGuard:
    """Checks and records whether the air conditioner was already turned on today."""

    def __init__(self, kv: KeyValueStore, ttl_seconds: int = DEFAULT_COMPLETION_TTL_SECONDS):
        if ttl_seconds <= 24 * 60 * 60:
            raise ValueError(f"Completion TTL must exceed one day, got {ttl_seconds}s")
        self.kv = kv
        self.ttl_seconds = ttl_seconds

    def already_actuated_today(self, date_key: str) -> bool:
        """
        Raises:
            StoreUnavailableError: If the store cannot be read
        """
        return bool(self.kv.get(date_key))

    def mark_actuated_today(self, date_key: str) -> bool:
        """Write the completion record for ``date_key``.

        Uses a create-if-absent write when the store offers one.

        Returns:
            False if another writer had already recorded the date

        Raises:
            StoreUnavailableError: If the store cannot be written
        """
        put_if_absent = getattr(self.kv, "put_if_absent", None)
        if put_if_absent is not None:
            created = put_if_absent(date_key, COMPLETION_VALUE, ttl_seconds=self.ttl_seconds)
            if not created:
                logger.warning(f"Completion record for {date_key} already existed")
            return created

        self.kv.put(date_key, COMPLETION_VALUE, ttl_seconds=self.ttl_seconds)
        return True
