"""
Tick Scheduler

Runs one decision-and-actuation pass:

    calendar gate -> daily guard -> resolve rules -> read meter
    -> match thresholds -> actuate -> record completion

Each step may end the tick early. Collaborator failures end the tick as
FAILED without writing a completion record, so the next tick retries.
"""

import logging
from collections.abc import Callable
from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from .calendar_gate import CalendarGate, format_date
from .dedup import DedupGuard
from .exceptions import AirconError, StoreUnavailableError
from .history import TickHistory
from .matcher import choose_rule, select_active_rules
from .models import TickOutcome, TickResult, Trigger
from .switchbot_client import DeviceGateway
from .trigger_store import TriggerStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Scheduler:
    """Decides, once per tick, whether to turn the air conditioner on."""

    def __init__(
        self,
        calendar_gate: CalendarGate,
        trigger_store: TriggerStore,
        dedup_guard: DedupGuard,
        gateway: DeviceGateway,
        meter_device_id: str,
        air_conditioner_device_id: str,
        time_zone: str = "Asia/Tokyo",
        clock: Callable[[], datetime] = _utcnow,
        history: Optional[TickHistory] = None,
    ):
        self.calendar_gate = calendar_gate
        self.trigger_store = trigger_store
        self.dedup_guard = dedup_guard
        self.gateway = gateway
        self.meter_device_id = meter_device_id
        self.air_conditioner_device_id = air_conditioner_device_id
        self.time_zone = ZoneInfo(time_zone)
        self.clock = clock
        self.history = history

    def resolve_rules(self, day: date) -> list[Trigger]:
        """Return the rule set for ``day``: its override if one exists, else the defaults.

        An override replaces the defaults entirely, even when it holds no triggers.
        """
        override = self.trigger_store.find_override(day)
        if override is not None:
            logger.info(f"Using date override for {day} ({len(override.triggers)} trigger(s))")
            return override.triggers
        return self.trigger_store.list_default_triggers()

    def tick(self, now: Optional[datetime] = None) -> TickResult:
        """Run one tick.

        Args:
            now: Instant to evaluate (defaults to the clock). Naive values are taken as UTC.

        Returns:
            The tick result, also appended to the history if one is attached
        """
        instant = now or self.clock()
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=timezone.utc)
        now_local = instant.astimezone(self.time_zone)

        result = self._run(now_local)
        log = logger.error if result.outcome == TickOutcome.FAILED else logger.info
        log(
            f"Tick {now_local:%Y-%m-%d %H:%M} -> {result.outcome.value}"
            + (f" ({result.error})" if result.error else "")
        )
        if self.history is not None:
            self.history.add(result)
        return result

    def _run(self, now_local: datetime) -> TickResult:
        date_key = format_date(now_local)

        def finish(outcome: TickOutcome, **kwargs) -> TickResult:
            return TickResult(timestamp=now_local, outcome=outcome, date_key=date_key, **kwargs)

        if not self.calendar_gate.is_eligible(now_local):
            return finish(TickOutcome.INELIGIBLE)

        try:
            if self.dedup_guard.already_actuated_today(date_key):
                return finish(TickOutcome.ALREADY_DONE)

            active = select_active_rules(self.resolve_rules(now_local.date()), now_local.hour)
            if not active:
                return finish(TickOutcome.NO_ACTIVE_RULES)

            temperature = self.gateway.read_temperature(self.meter_device_id)
            rule = choose_rule(active, temperature)
            if rule is None:
                return finish(TickOutcome.BELOW_THRESHOLD, temperature=temperature)

            self.gateway.actuate(
                self.air_conditioner_device_id, rule.action.mode, rule.action.target_temp
            )
        except AirconError as e:
            return finish(TickOutcome.FAILED, error=f"{type(e).__name__}: {e}")

        recorded = False
        try:
            self.dedup_guard.mark_actuated_today(date_key)
            recorded = True
        except StoreUnavailableError as e:
            # The next tick re-evaluates and may actuate again
            logger.error(f"Actuated but failed to record completion for {date_key}: {e}")

        return finish(
            TickOutcome.ACTUATED,
            temperature=temperature,
            trigger=rule,
            completion_recorded=recorded,
        )
