"""
Scheduler Service

Background service that fires a scheduler tick on a fixed interval.
Runs independently of the API - ticks keep happening whether or not anyone calls it.
"""

import asyncio
import logging
from typing import Optional

from .calendar_gate import CalendarGate
from .dedup import DedupGuard
from .history import TickHistory
from .kv_store import CloudflareKVStore, InMemoryKVStore, KeyValueStore
from .models import TickResult, Trigger
from .scheduler import Scheduler
from .settings import AirconSettings
from .switchbot_client import DeviceGateway, SwitchBotClient
from .trigger_store import TriggerStore

logger = logging.getLogger(__name__)


def build_kv_store(settings: AirconSettings) -> KeyValueStore:
    """Create the key-value backend selected in settings."""
    if settings.kv_backend == "cloudflare":
        return CloudflareKVStore(
            settings.cloudflare_account_id,
            settings.cloudflare_namespace_id,
            settings.cloudflare_api_token,
            timeout=settings.request_timeout,
        )
    logger.warning("Using in-memory KV store - rules and completion records are lost on restart")
    return InMemoryKVStore()


def seed_default_triggers(store: TriggerStore, records: list[dict]) -> int:
    """Write configured default triggers that are not stored yet.

    Triggers already present under the same identity key are left alone, so
    edits made through the API survive a restart. Invalid records are logged
    and skipped.

    Returns:
        Number of triggers written
    """
    written = 0
    for record in records:
        try:
            trigger = Trigger.from_dict(record)
        except ValueError as e:
            logger.warning(f"Skipping invalid seed trigger {record}: {e}")
            continue
        if store.has_default_trigger(trigger):
            logger.debug(f"Seed trigger {trigger.identity_key:04d} already stored, keeping it")
            continue
        store.upsert_default_trigger(trigger)
        written += 1
    return written


def build_scheduler(
    settings: AirconSettings,
    kv: KeyValueStore,
    gateway: Optional[DeviceGateway] = None,
    history: Optional[TickHistory] = None,
) -> Scheduler:
    """Wire a scheduler from settings."""
    if settings.holiday_country:
        gate = CalendarGate.for_country(
            settings.holiday_country,
            weekend_days=settings.weekend_days,
            start_hour=settings.start_hour,
        )
    else:
        gate = CalendarGate(weekend_days=settings.weekend_days, start_hour=settings.start_hour)

    if gateway is None:
        gateway = SwitchBotClient(
            settings.switchbot_token,
            settings.switchbot_secret,
            timeout=settings.request_timeout,
        )

    return Scheduler(
        calendar_gate=gate,
        trigger_store=TriggerStore(kv),
        dedup_guard=DedupGuard(kv, ttl_seconds=settings.completion_ttl_seconds),
        gateway=gateway,
        meter_device_id=settings.meter_device_id,
        air_conditioner_device_id=settings.air_conditioner_device_id,
        time_zone=settings.time_zone,
        history=history,
    )


class SchedulerService:
    """
    Background service for periodic ticks.

    Ticks run in a worker thread, one at a time per process.
    """

    def __init__(self, scheduler: Scheduler, tick_interval_seconds: int = 600):
        self.scheduler = scheduler
        self.tick_interval_seconds = tick_interval_seconds

        self._task: asyncio.Task | None = None
        self._running = False
        self._tick_lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self._running

    async def start(self):
        """Start the periodic tick loop."""
        if self._running:
            logger.warning("Scheduler service already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info(f"⏰ Scheduler service started (interval: {self.tick_interval_seconds} seconds)")

    async def stop(self):
        """Stop the periodic tick loop."""
        if not self._running:
            return

        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

        logger.info("⏰ Scheduler service stopped")

    async def run_once(self) -> TickResult:
        """Run a single tick now, waiting for any tick already in progress."""
        async with self._tick_lock:
            return await asyncio.to_thread(self.scheduler.tick)

    async def _run_loop(self):
        """Main loop - one tick per interval."""
        logger.info("⏰ Scheduler loop starting...")

        while self._running:
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"Error in scheduler loop: {e}", exc_info=True)

            # Sleep until next interval
            await asyncio.sleep(self.tick_interval_seconds)
