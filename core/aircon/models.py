"""
Aircon Trigger Data Models

Trigger rules, date overrides and the per-tick result record.
Serialized forms use the camelCase field names written by the admin UI.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional


class OperationMode(str, Enum):
    """Air conditioner operating mode."""

    COOL = "COOL"
    HEAT = "HEAT"


def _number(value: Any, name: str, low: float, high: float) -> float:
    # bool is an int subclass, but never a valid temperature
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{name} must be a number, got {value!r}")
    if not low <= value <= high:
        raise ValueError(f"{name} out of range [{low}, {high}]: {value}")
    return value


def _integer(value: Any, name: str, low: int, high: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    if not low <= value <= high:
        raise ValueError(f"{name} out of range [{low}, {high}]: {value}")
    return value


def _mapping(value: Any, name: str) -> dict:
    if not isinstance(value, dict):
        raise ValueError(f"{name} must be an object, got {type(value).__name__}")
    return value


@dataclass(frozen=True)
class TriggerTime:
    """Hour and minute at which a trigger becomes active."""

    hour: int
    minute: int = 0


@dataclass(frozen=True)
class AirConditionerAction:
    """Command sent to the air conditioner when a trigger fires."""

    mode: OperationMode
    target_temp: float


@dataclass(frozen=True)
class Trigger:
    """A rule pairing a time of day and a room temperature threshold with an action."""

    time: TriggerTime
    room_temp_threshold: float
    action: AirConditionerAction

    @property
    def identity_key(self) -> int:
        """Storage identity: two triggers with the same key replace each other."""
        return self.time.hour * 100 + self.time.minute

    @classmethod
    def from_dict(cls, data: Any) -> "Trigger":
        """Strictly decode a stored trigger.

        Raises:
            ValueError: If a field is missing, mistyped or out of range
        """
        data = _mapping(data, "trigger")
        try:
            time_data = _mapping(data["time"], "time")
            settings = _mapping(data["airConditionerSettings"], "airConditionerSettings")
            mode = OperationMode(settings["operationMode"])
            return cls(
                time=TriggerTime(
                    hour=_integer(time_data["hour"], "hour", 0, 23),
                    minute=_integer(time_data.get("minute", 0), "minute", 0, 59),
                ),
                room_temp_threshold=_number(data["roomTemp"], "roomTemp", 0, 100),
                action=AirConditionerAction(
                    mode=mode,
                    target_temp=_number(settings["settingsTemp"], "settingsTemp", 0, 100),
                ),
            )
        except KeyError as e:
            raise ValueError(f"missing field {e}") from e

    def to_dict(self) -> dict:
        """Convert to the stored JSON shape."""
        return {
            "time": {"hour": self.time.hour, "minute": self.time.minute},
            "roomTemp": self.room_temp_threshold,
            "airConditionerSettings": {
                "operationMode": self.action.mode.value,
                "settingsTemp": self.action.target_temp,
            },
        }


@dataclass
class DateOverride:
    """Full replacement rule set for one calendar date."""

    date: date
    triggers: list[Trigger] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "DateOverride":
        """Strictly decode a stored date override.

        The day of month is stored as ``dy``; ``day`` is accepted too.

        Raises:
            ValueError: If the date is invalid or any trigger fails to decode
        """
        data = _mapping(data, "date override")
        try:
            date_data = _mapping(data["date"], "date")
            day = date_data["dy"] if "dy" in date_data else date_data["day"]
            on = date(
                _integer(date_data["year"], "year", 1, 9999),
                _integer(date_data["month"], "month", 1, 12),
                _integer(day, "dy", 1, 31),
            )
            raw_triggers = data["triggers"]
        except KeyError as e:
            raise ValueError(f"missing field {e}") from e

        if not isinstance(raw_triggers, list):
            raise ValueError("triggers must be a list")

        return cls(date=on, triggers=[Trigger.from_dict(t) for t in raw_triggers])

    def to_dict(self) -> dict:
        """Convert to the stored JSON shape."""
        return {
            "date": {"year": self.date.year, "month": self.date.month, "dy": self.date.day},
            "triggers": [t.to_dict() for t in self.triggers],
        }


@dataclass(frozen=True)
class SensorReading:
    """A single meter reading, fetched fresh every tick."""

    temperature: float
    humidity: Optional[float] = None


class TickOutcome(str, Enum):
    """How a scheduler tick ended."""

    INELIGIBLE = "ineligible"
    ALREADY_DONE = "already_done"
    NO_ACTIVE_RULES = "no_active_rules"
    BELOW_THRESHOLD = "below_threshold"
    ACTUATED = "actuated"
    FAILED = "failed"


@dataclass
class TickResult:
    """Outcome of one scheduler tick."""

    timestamp: datetime
    outcome: TickOutcome
    date_key: Optional[str] = None
    temperature: Optional[float] = None
    trigger: Optional[Trigger] = None
    error: Optional[str] = None
    completion_recorded: bool = False

    @property
    def actuated(self) -> bool:
        return self.outcome == TickOutcome.ACTUATED

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "outcome": self.outcome.value,
            "date_key": self.date_key,
            "temperature": self.temperature,
            "trigger": self.trigger.to_dict() if self.trigger else None,
            "error": self.error,
            "completion_recorded": self.completion_recorded,
        }
