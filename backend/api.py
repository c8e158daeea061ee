"""
Aircon Trigger API Endpoints
"""

import os
import sys
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from fastapi import APIRouter, HTTPException, Query
from loguru import logger
from pydantic import BaseModel, Field

# Add project root to Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from core.aircon.calendar_gate import week_buckets
from core.aircon.exceptions import StoreUnavailableError
from core.aircon.history import TickHistory
from core.aircon.models import (
    AirConditionerAction,
    DateOverride,
    OperationMode,
    TickOutcome,
    Trigger,
    TriggerTime,
)
from core.aircon.scheduler_service import SchedulerService, build_kv_store
from core.aircon.settings import load_settings
from core.aircon.trigger_store import TriggerStore, override_key, trigger_key

router = APIRouter()

# Days covered by the override listing (this week and next week)
OVERRIDE_WINDOW_DAYS = 14

# Load settings on module import; device settings are checked at startup
settings = load_settings().validate(require_devices=False)
kv_store = build_kv_store(settings)
trigger_store = TriggerStore(kv_store)
tick_history = TickHistory()

# Scheduler service (set by app.py during startup)
scheduler_service: Optional[SchedulerService] = None


class TriggerRequest(BaseModel):
    """Request body for a trigger rule."""

    hour: int = Field(ge=0, le=23)
    minute: int = Field(default=0, ge=0, le=59)
    room_temp: float = Field(ge=0, le=100)
    operation_mode: OperationMode
    settings_temp: int = Field(ge=0, le=100)  # setAll takes whole degrees

    def to_trigger(self) -> Trigger:
        return Trigger(
            time=TriggerTime(hour=self.hour, minute=self.minute),
            room_temp_threshold=self.room_temp,
            action=AirConditionerAction(mode=self.operation_mode, target_temp=self.settings_temp),
        )


class DateOverrideRequest(BaseModel):
    """Request body for a date override. An empty trigger list disables the day."""

    date: date
    triggers: list[TriggerRequest] = Field(default_factory=list)


def _local_now() -> datetime:
    return datetime.now(ZoneInfo(settings.time_zone))


@router.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "app": "aircon-trigger",
        "version": "0.1.0",
        "scheduler_running": bool(scheduler_service and scheduler_service.running),
    }


@router.get("/api/triggers")
async def get_triggers():
    """Get default triggers in identity-key order."""
    try:
        triggers = trigger_store.list_default_triggers()
    except StoreUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    return {"triggers": [t.to_dict() for t in triggers]}


@router.put("/api/triggers")
async def put_trigger(request: TriggerRequest):
    """Create or replace the default trigger for this hour and minute."""
    trigger = request.to_trigger()
    try:
        trigger_store.upsert_default_trigger(trigger)
    except StoreUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    return {"key": trigger_key(trigger), "trigger": trigger.to_dict()}


@router.get("/api/overrides")
async def get_overrides():
    """Get date overrides for this week and next week, ordered by date."""
    today = _local_now().date()
    overrides = []
    try:
        for year_month, week_index in week_buckets(today, OVERRIDE_WINDOW_DAYS):
            overrides.extend(trigger_store.list_overrides_for_week(year_month, week_index))
    except StoreUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    overrides.sort(key=lambda o: o.date)
    return {"overrides": [o.to_dict() for o in overrides]}


@router.put("/api/overrides")
async def put_override(request: DateOverrideRequest):
    """Create or replace the rule set for one date."""
    override = DateOverride(date=request.date, triggers=[t.to_trigger() for t in request.triggers])
    try:
        trigger_store.upsert_date_override(override)
    except StoreUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    return {"key": override_key(override.date), "override": override.to_dict()}


@router.post("/api/tick")
async def run_tick():
    """Run one scheduler tick immediately."""
    if not scheduler_service:
        raise HTTPException(status_code=503, detail="Scheduler not initialized")

    result = await scheduler_service.run_once()
    logger.info(f"Manual tick finished: {result.outcome.value}")
    return result.to_dict()


@router.get("/api/ticks")
async def get_ticks(
    hours: Optional[int] = Query(default=None, ge=1),
    outcome: Optional[TickOutcome] = None,
):
    """Get recent tick results."""
    return {"ticks": tick_history.get_ticks(hours=hours, outcome=outcome)}


@router.get("/api/status")
async def get_status():
    """Get system status."""
    last = tick_history.last()
    last_actuation = tick_history.last_actuation()
    return {
        "scheduler_running": bool(scheduler_service and scheduler_service.running),
        "time_zone": settings.time_zone,
        "kv_backend": settings.kv_backend,
        "last_tick": last.to_dict() if last else None,
        "last_actuation": last_actuation.to_dict() if last_actuation else None,
    }
