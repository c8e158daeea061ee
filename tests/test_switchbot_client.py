import base64
import hashlib
import hmac
from unittest.mock import MagicMock

import pytest
import requests

from core.aircon.exceptions import (
    ActuatorRejectedError,
    ActuatorUnreachableError,
    SensorUnreachableError,
)
from core.aircon.models import OperationMode
from core.aircon.switchbot_client import SwitchBotClient


def _response(status_code=200, payload=None):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(f"HTTP {status_code}")
    return response


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def client(session):
    return SwitchBotClient("token-1", "secret-1", timeout=4, base_url="https://sb.test/v1.1", session=session)


def test_read_temperature(client, session):
    session.get.return_value = _response(
        payload={"statusCode": 100, "body": {"temperature": 36.4, "humidity": 60}, "message": "success"}
    )
    assert client.read_temperature("meter-1") == 36.4
    assert session.get.call_args.args[0] == "https://sb.test/v1.1/devices/meter-1/status"
    assert session.get.call_args.kwargs["timeout"] == 4


def test_read_meter_humidity(client, session):
    session.get.return_value = _response(payload={"statusCode": 100, "body": {"temperature": 25, "humidity": 55}})
    reading = client.read_meter("meter-1")
    assert reading.temperature == 25.0
    assert reading.humidity == 55.0


def test_requests_are_signed(client, session):
    session.get.return_value = _response(payload={"statusCode": 100, "body": {"temperature": 25}})
    client.read_temperature("meter-1")
    headers = session.get.call_args.kwargs["headers"]
    assert headers["Authorization"] == "token-1"
    expected = base64.b64encode(
        hmac.new(
            b"secret-1",
            msg=f"token-1{headers['t']}{headers['nonce']}".encode(),
            digestmod=hashlib.sha256,
        ).digest()
    ).decode()
    assert headers["sign"] == expected


@pytest.mark.parametrize(
    "side_effect",
    [requests.exceptions.Timeout("slow"), requests.exceptions.ConnectionError("down")],
)
def test_read_network_errors(client, session, side_effect):
    session.get.side_effect = side_effect
    with pytest.raises(SensorUnreachableError):
        client.read_temperature("meter-1")


def test_read_api_error_status(client, session):
    session.get.return_value = _response(payload={"statusCode": 161, "message": "device offline"})
    with pytest.raises(SensorUnreachableError):
        client.read_temperature("meter-1")


def test_read_missing_temperature(client, session):
    session.get.return_value = _response(payload={"statusCode": 100, "body": {}})
    with pytest.raises(SensorUnreachableError):
        client.read_temperature("meter-1")


@pytest.mark.parametrize("mode, code", [(OperationMode.COOL, 2), (OperationMode.HEAT, 5)])
def test_actuate_sends_set_all(client, session, mode, code):
    session.post.return_value = _response(payload={"statusCode": 100, "body": {}, "message": "success"})
    client.actuate("aircon-1", mode, 28)
    url = session.post.call_args.args[0]
    body = session.post.call_args.kwargs["json"]
    assert url == "https://sb.test/v1.1/devices/aircon-1/commands"
    assert body == {"command": "setAll", "parameter": f"28,{code},1,on", "commandType": "command"}


@pytest.mark.parametrize("target, sent", [(22.4, "22"), (26.6, "27"), (28.0, "28")])
def test_actuate_rounds_setpoint_to_whole_degrees(client, session, target, sent):
    session.post.return_value = _response(payload={"statusCode": 100})
    client.actuate("aircon-1", OperationMode.HEAT, target)
    assert session.post.call_args.kwargs["json"]["parameter"] == f"{sent},5,1,on"


@pytest.mark.parametrize("payload", [None, [], "ok"])
def test_read_non_object_response(client, session, payload):
    session.get.return_value = _response(payload=payload)
    with pytest.raises(SensorUnreachableError):
        client.read_temperature("meter-1")


def test_read_non_object_body(client, session):
    session.get.return_value = _response(payload={"statusCode": 100, "body": [25.0]})
    with pytest.raises(SensorUnreachableError):
        client.read_temperature("meter-1")


@pytest.mark.parametrize("payload", [None, [100]])
def test_actuate_non_object_response(client, session, payload):
    session.post.return_value = _response(payload=payload)
    with pytest.raises(ActuatorUnreachableError):
        client.actuate("aircon-1", OperationMode.COOL, 28)


@pytest.mark.parametrize("status_code", [400, 401, 403])
def test_actuate_http_rejection(client, session, status_code):
    session.post.return_value = _response(status_code=status_code)
    with pytest.raises(ActuatorRejectedError):
        client.actuate("aircon-1", OperationMode.COOL, 28)


def test_actuate_api_rejection(client, session):
    session.post.return_value = _response(payload={"statusCode": 160, "message": "command is not supported"})
    with pytest.raises(ActuatorRejectedError):
        client.actuate("aircon-1", OperationMode.COOL, 28)


def test_actuate_timeout(client, session):
    session.post.side_effect = requests.exceptions.Timeout("slow")
    with pytest.raises(ActuatorUnreachableError):
        client.actuate("aircon-1", OperationMode.COOL, 28)


def test_actuate_server_error_is_unreachable(client, session):
    session.post.return_value = _response(status_code=503)
    with pytest.raises(ActuatorUnreachableError):
        client.actuate("aircon-1", OperationMode.COOL, 28)
