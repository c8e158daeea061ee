"""
Aircon Trigger Custom Exceptions

Simple exception hierarchy for error handling.
"""


class AirconError(Exception):
    """Base exception for aircon-trigger."""

    pass


class ConfigurationError(AirconError):
    """Configuration is invalid."""

    pass


class StoreUnavailableError(AirconError):
    """The key-value store could not be reached. Retryable."""

    pass


class MalformedRecordError(AirconError):
    """A stored record could not be decoded."""

    def __init__(self, key: str, reason: str):
        super().__init__(f"Malformed record at {key}: {reason}")
        self.key = key
        self.reason = reason


class SensorUnreachableError(AirconError):
    """Sensor data is unavailable (network error or timeout)."""

    pass


class ActuatorRejectedError(AirconError):
    """The device service refused the command (bad parameters or auth)."""

    pass


class ActuatorUnreachableError(AirconError):
    """Cannot reach the device service to send a command."""

    pass
