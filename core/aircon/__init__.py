"""Aircon trigger package."""

# Define public API
__all__ = [
    "AirconSettings",
    "Trigger",
    "DateOverride",
    "Scheduler",
    "SwitchBotClient",
]

# Import settings
from .settings import AirconSettings

# Import models
from .models import DateOverride, Trigger

# Import scheduler and device client
from .scheduler import Scheduler
from .switchbot_client import SwitchBotClient
