"""
SwitchBot API Client for aircon-trigger

Minimal client for reading a meter and controlling an infrared air conditioner
through the SwitchBot Open API v1.1.
"""

import base64
import hashlib
import hmac
import logging
import time
import uuid
from typing import Any, Optional, Protocol

import requests

from .exceptions import (
    ActuatorRejectedError,
    ActuatorUnreachableError,
    SensorUnreachableError,
)
from .models import OperationMode, SensorReading

logger = logging.getLogger(__name__)

SWITCHBOT_API_URL = "https://api.switch-bot.com/v1.1"
STATUS_SUCCESS = 100

# setAll parameter codes
MODE_CODES = {
    OperationMode.COOL: 2,
    OperationMode.HEAT: 5,
}
FAN_SPEED_AUTO = 1


class DeviceGateway(Protocol):
    """What the scheduler needs from the device service."""

    def read_temperature(self, sensor_id: str) -> float: ...

    def actuate(self, device_id: str, mode: OperationMode, target_temp: float) -> None: ...


class SwitchBotClient:
    """Simple SwitchBot Open API client."""

    def __init__(
        self,
        token: str,
        secret: str,
        timeout: float = 5,
        base_url: str = SWITCHBOT_API_URL,
        session: Optional[requests.Session] = None,
    ):
        """Initialize SwitchBot client.

        Args:
            token: Open API token from the SwitchBot app
            secret: Client secret used to sign each request
            timeout: Per-request timeout in seconds
            base_url: API root (overridable for testing)
            session: Optional preconfigured session
        """
        self.token = token
        self.secret = secret
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        # Create a session for connection pooling
        self.session = session or requests.Session()

    def _signed_headers(self) -> dict[str, str]:
        """Build the per-request auth headers (token + t + nonce, HMAC-SHA256)."""
        t = str(int(time.time() * 1000))
        nonce = str(uuid.uuid4())
        string_to_sign = f"{self.token}{t}{nonce}".encode("utf-8")
        sign = base64.b64encode(
            hmac.new(self.secret.encode("utf-8"), msg=string_to_sign, digestmod=hashlib.sha256).digest()
        ).decode("utf-8")
        return {
            "Authorization": self.token,
            "Content-Type": "application/json; charset=utf8",
            "t": t,
            "sign": sign,
            "nonce": nonce,
        }

    def get_status(self, device_id: str) -> dict[str, Any]:
        """Get the status body of a device.

        Args:
            device_id: SwitchBot device id

        Returns:
            The ``body`` object of the API response

        Raises:
            SensorUnreachableError: If the request fails or the API reports an error
        """
        url = f"{self.base_url}/devices/{device_id}/status"
        try:
            response = self.session.get(url, headers=self._signed_headers(), timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except requests.exceptions.RequestException as e:
            raise SensorUnreachableError(f"SwitchBot status request failed for {device_id}: {e}") from e
        except ValueError as e:
            raise SensorUnreachableError(f"Invalid status response for {device_id}: {e}") from e

        if not isinstance(payload, dict):
            raise SensorUnreachableError(f"Invalid status response for {device_id}: {payload!r}")
        if payload.get("statusCode") != STATUS_SUCCESS:
            raise SensorUnreachableError(
                f"SwitchBot status error for {device_id}: "
                f"{payload.get('statusCode')} {payload.get('message')}"
            )
        body = payload.get("body") or {}
        if not isinstance(body, dict):
            raise SensorUnreachableError(f"Invalid status body for {device_id}: {body!r}")
        return body

    def read_meter(self, sensor_id: str) -> SensorReading:
        """Read temperature (and humidity if reported) from a meter.

        Raises:
            SensorUnreachableError: If the meter cannot be read
        """
        body = self.get_status(sensor_id)
        try:
            temperature = float(body["temperature"])
        except (KeyError, ValueError, TypeError) as e:
            raise SensorUnreachableError(f"Cannot read temperature from {sensor_id}: {e}") from e

        humidity = body.get("humidity")
        return SensorReading(
            temperature=temperature,
            humidity=float(humidity) if isinstance(humidity, (int, float)) else None,
        )

    def read_temperature(self, sensor_id: str) -> float:
        return self.read_meter(sensor_id).temperature

    def actuate(self, device_id: str, mode: OperationMode, target_temp: float) -> None:
        """Turn the air conditioner on with the given mode and setpoint.

        Args:
            device_id: Infrared air conditioner device id
            mode: COOL or HEAT
            target_temp: Setpoint in Celsius, rounded to a whole degree

        Raises:
            ActuatorRejectedError: If the API refuses the command
            ActuatorUnreachableError: If the API cannot be reached
        """
        url = f"{self.base_url}/devices/{device_id}/commands"
        # setAll only takes whole degrees
        setpoint = round(target_temp)
        data = {
            "command": "setAll",
            "parameter": f"{setpoint},{MODE_CODES[OperationMode(mode)]},{FAN_SPEED_AUTO},on",
            "commandType": "command",
        }

        try:
            logger.debug(f"Calling {url} with data: {data}")
            response = self.session.post(
                url, json=data, headers=self._signed_headers(), timeout=self.timeout
            )
            if response.status_code in (400, 401, 403, 404):
                raise ActuatorRejectedError(
                    f"SwitchBot refused command for {device_id}: HTTP {response.status_code}"
                )
            response.raise_for_status()
            payload = response.json()
        except requests.exceptions.RequestException as e:
            raise ActuatorUnreachableError(f"Failed to send command to {device_id}: {e}") from e
        except ValueError as e:
            raise ActuatorUnreachableError(f"Invalid command response for {device_id}: {e}") from e

        if not isinstance(payload, dict):
            raise ActuatorUnreachableError(f"Invalid command response for {device_id}: {payload!r}")
        if payload.get("statusCode") != STATUS_SUCCESS:
            raise ActuatorRejectedError(
                f"SwitchBot rejected command for {device_id}: "
                f"{payload.get('statusCode')} {payload.get('message')}"
            )
        logger.info(f"Set {device_id} to {OperationMode(mode).value} {setpoint}°C")
