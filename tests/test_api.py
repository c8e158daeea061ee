from datetime import date

import pytest
from fastapi.testclient import TestClient

import api
from app import app
from core.aircon.calendar_gate import CalendarGate
from core.aircon.dedup import DedupGuard
from core.aircon.history import TickHistory
from core.aircon.kv_store import InMemoryKVStore
from core.aircon.models import DateOverride
from core.aircon.scheduler import Scheduler
from core.aircon.scheduler_service import SchedulerService
from core.aircon.trigger_store import TriggerStore

from conftest import FakeGateway, make_trigger


@pytest.fixture
def client(monkeypatch):
    kv = InMemoryKVStore()
    monkeypatch.setattr(api, "kv_store", kv)
    monkeypatch.setattr(api, "trigger_store", TriggerStore(kv))
    monkeypatch.setattr(api, "tick_history", TickHistory())
    monkeypatch.setattr(api, "scheduler_service", None)
    return TestClient(app)


TRIGGER_BODY = {"hour": 17, "minute": 0, "room_temp": 35, "operation_mode": "COOL", "settings_temp": 28}


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["scheduler_running"] is False


def test_put_and_list_triggers(client):
    assert client.put("/api/triggers", json=TRIGGER_BODY).json()["key"] == "trigger:1700"
    client.put("/api/triggers", json={**TRIGGER_BODY, "room_temp": 30})
    client.put("/api/triggers", json={**TRIGGER_BODY, "hour": 16, "room_temp": 38})

    triggers = client.get("/api/triggers").json()["triggers"]
    assert [(t["time"]["hour"], t["roomTemp"]) for t in triggers] == [(16, 38), (17, 30)]


@pytest.mark.parametrize(
    "body",
    [
        {**TRIGGER_BODY, "hour": 24},
        {**TRIGGER_BODY, "minute": 60},
        {**TRIGGER_BODY, "room_temp": 101},
        {**TRIGGER_BODY, "settings_temp": -1},
        {**TRIGGER_BODY, "operation_mode": "DRY"},
    ],
)
def test_put_trigger_validates(client, body):
    assert client.put("/api/triggers", json=body).status_code == 422


def test_put_override_and_list(client):
    response = client.put("/api/overrides", json={"date": "2023-06-28", "triggers": [TRIGGER_BODY]})
    assert response.status_code == 200
    assert response.json()["key"] == "date:2023-06:5:28"
    assert api.trigger_store.find_override(date(2023, 6, 28)).triggers == [make_trigger(17, 35, target=28)]


def _freeze_today(monkeypatch, year, month, day):
    from datetime import datetime
    from zoneinfo import ZoneInfo

    monkeypatch.setattr(api, "_local_now", lambda: datetime(year, month, day, 12, tzinfo=ZoneInfo("Asia/Tokyo")))


def test_get_overrides_this_and_next_week(client, monkeypatch):
    _freeze_today(monkeypatch, 2023, 6, 28)
    api.trigger_store.upsert_date_override(DateOverride(date(2023, 7, 5), [make_trigger(17, 30)]))
    api.trigger_store.upsert_date_override(DateOverride(date(2023, 6, 29), []))
    api.trigger_store.upsert_date_override(DateOverride(date(2023, 7, 20), []))

    overrides = client.get("/api/overrides").json()["overrides"]
    assert [(o["date"]["month"], o["date"]["dy"]) for o in overrides] == [(6, 29), (7, 5)]


def test_get_overrides_across_month_boundary(client, monkeypatch):
    # Monday; the week continues into August, whose first days are week 1
    _freeze_today(monkeypatch, 2024, 7, 29)
    api.trigger_store.upsert_date_override(DateOverride(date(2024, 8, 1), []))
    api.trigger_store.upsert_date_override(DateOverride(date(2024, 8, 6), []))

    overrides = client.get("/api/overrides").json()["overrides"]
    assert [o["date"]["dy"] for o in overrides] == [1, 6]


def test_put_trigger_requires_whole_degree_setpoint(client):
    assert client.put("/api/triggers", json={**TRIGGER_BODY, "settings_temp": 26.5}).status_code == 422


def test_tick_without_scheduler(client):
    assert client.post("/api/tick").status_code == 503


def test_tick_and_status(client, monkeypatch):
    gateway = FakeGateway(temperature=20)
    scheduler = Scheduler(
        calendar_gate=CalendarGate(),
        trigger_store=api.trigger_store,
        dedup_guard=DedupGuard(api.kv_store),
        gateway=gateway,
        meter_device_id="meter-1",
        air_conditioner_device_id="aircon-1",
        history=api.tick_history,
    )
    monkeypatch.setattr(api, "scheduler_service", SchedulerService(scheduler))

    response = client.post("/api/tick")
    assert response.status_code == 200
    outcome = response.json()["outcome"]

    ticks = client.get("/api/ticks").json()["ticks"]
    assert [t["outcome"] for t in ticks] == [outcome]
    status = client.get("/api/status").json()
    assert status["last_tick"]["outcome"] == outcome
    assert status["last_actuation"] is None
    assert gateway.commands == []
