"""
Aircon Trigger Configuration Settings

User-facing settings are loaded from /data/options.json (add-on options) or
config.yaml during development. Secrets can come from the environment or a .env file.
"""

import json
import logging
import os
import re
from dataclasses import dataclass, field, fields
from typing import Any, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from dotenv import load_dotenv

from .calendar_gate import DEFAULT_START_HOUR, DEFAULT_WEEKEND_DAYS
from .dedup import DEFAULT_COMPLETION_TTL_SECONDS
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

OPTIONS_PATH = "/data/options.json"
CONFIG_PATH = os.path.join(os.path.dirname(__file__), "..", "..", "config.yaml")

# environment variable -> settings field
ENV_OVERRIDES = {
    "SWITCHBOT_TOKEN": "switchbot_token",
    "SWITCHBOT_CLIENT_SECRET": "switchbot_secret",
    "METER_DEVICE_ID": "meter_device_id",
    "AIR_CONDITIONER_DEVICE_ID": "air_conditioner_device_id",
    "CF_ACCOUNT_ID": "cloudflare_account_id",
    "CF_KV_NAMESPACE_ID": "cloudflare_namespace_id",
    "CF_API_TOKEN": "cloudflare_api_token",
    "TIME_ZONE": "time_zone",
}


def _camel_to_snake(name: str) -> str:
    """Convert camelCase to snake_case."""
    s1 = re.sub("(.)([A-Z][a-z]+)", r"\1_\2", name)
    return re.sub("([a-z0-9])([A-Z])", r"\1_\2", s1).lower()


@dataclass
class AirconSettings:
    """Configuration for the scheduler and its collaborators."""

    meter_device_id: str = ""
    air_conditioner_device_id: str = ""
    switchbot_token: str = ""
    switchbot_secret: str = ""
    time_zone: str = "Asia/Tokyo"
    holiday_country: Optional[str] = "JP"  # None disables holiday checks
    weekend_days: list[int] = field(default_factory=lambda: list(DEFAULT_WEEKEND_DAYS))
    start_hour: int = DEFAULT_START_HOUR  # Hours before this are never acted on
    request_timeout: float = 5.0  # Seconds, applied to every store/device call
    tick_interval_seconds: int = 600
    completion_ttl_seconds: int = DEFAULT_COMPLETION_TTL_SECONDS
    kv_backend: str = "memory"  # "memory" or "cloudflare"
    cloudflare_account_id: str = ""
    cloudflare_namespace_id: str = ""
    cloudflare_api_token: str = ""
    seed_triggers: list[dict] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "AirconSettings":
        """Create from dictionary. Unknown keys are ignored with a warning."""
        converted = {_camel_to_snake(k): v for k, v in data.items()}
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(converted) - known)
        if unknown:
            logger.warning(f"Ignoring unknown settings: {unknown}")
        return cls(**{k: v for k, v in converted.items() if k in known})

    def validate(self, require_devices: bool = True) -> "AirconSettings":
        """Check settings consistency.

        Raises:
            ConfigurationError: If any setting is invalid
        """
        try:
            ZoneInfo(self.time_zone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ConfigurationError(f"Unknown time zone: {self.time_zone}") from e

        if not 0 <= self.start_hour <= 23:
            raise ConfigurationError(f"start_hour must be 0-23, got {self.start_hour}")
        if any(d not in range(7) for d in self.weekend_days):
            raise ConfigurationError(f"weekend_days must be 0-6 (Monday = 0), got {self.weekend_days}")
        if self.request_timeout <= 0:
            raise ConfigurationError("request_timeout must be positive")
        if self.tick_interval_seconds <= 0:
            raise ConfigurationError("tick_interval_seconds must be positive")
        if self.completion_ttl_seconds <= 24 * 60 * 60:
            raise ConfigurationError("completion_ttl_seconds must be longer than one day")

        if self.kv_backend not in ("memory", "cloudflare"):
            raise ConfigurationError(f"Unknown kv_backend: {self.kv_backend}")
        if self.kv_backend == "cloudflare" and not (
            self.cloudflare_account_id and self.cloudflare_namespace_id and self.cloudflare_api_token
        ):
            raise ConfigurationError("Cloudflare KV backend requires account, namespace and API token")

        if require_devices:
            missing = [
                name
                for name in ("meter_device_id", "air_conditioner_device_id", "switchbot_token", "switchbot_secret")
                if not getattr(self, name)
            ]
            if missing:
                raise ConfigurationError(f"Missing device settings: {', '.join(missing)}")
        return self


def _read_options(options_path: str, config_path: str) -> dict[str, Any]:
    """Load raw options from options.json, falling back to config.yaml."""
    if os.path.exists(options_path):
        with open(options_path) as f:
            options = json.load(f)
        logger.info(f"Loaded settings from {options_path}")
        return options

    if os.path.exists(config_path):
        with open(config_path) as f:
            config = yaml.safe_load(f) or {}
        logger.info(f"Loaded settings from {config_path}")
        return config.get("options", {}) or {}

    logger.warning("No options.json or config.yaml found, using defaults")
    return {}


def load_settings(
    options_path: str = OPTIONS_PATH,
    config_path: str = CONFIG_PATH,
    environ: Optional[dict[str, str]] = None,
) -> AirconSettings:
    """Load settings from file, then overlay environment variables.

    Args:
        options_path: Add-on options file (production)
        config_path: YAML config with an ``options`` section (development)
        environ: Environment to read (defaults to os.environ after loading .env)

    Raises:
        ConfigurationError: If a settings file cannot be parsed
    """
    try:
        options = _read_options(options_path, config_path)
    except (OSError, json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Cannot read settings: {e}") from e

    if environ is None:
        load_dotenv()  # this loads from .env automatically
        environ = dict(os.environ)

    try:
        settings = AirconSettings.from_dict(options)
    except TypeError as e:
        raise ConfigurationError(f"Invalid settings: {e}") from e

    for env_name, attr in ENV_OVERRIDES.items():
        if environ.get(env_name):
            setattr(settings, attr, environ[env_name])
            logger.debug(f"Using {env_name} from environment")
    return settings
