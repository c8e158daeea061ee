from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from core.aircon.calendar_gate import CalendarGate
from core.aircon.dedup import DedupGuard
from core.aircon.history import TickHistory
from core.aircon.kv_store import InMemoryKVStore
from core.aircon.models import AirConditionerAction, OperationMode, Trigger, TriggerTime
from core.aircon.scheduler import Scheduler
from core.aircon.trigger_store import TriggerStore

TOKYO = ZoneInfo("Asia/Tokyo")


def make_trigger(hour, threshold, minute=0, mode=OperationMode.COOL, target=28):
    return Trigger(
        time=TriggerTime(hour=hour, minute=minute),
        room_temp_threshold=threshold,
        action=AirConditionerAction(mode=mode, target_temp=target),
    )


def tokyo(year, month, day, hour=12, minute=0):
    return datetime(year, month, day, hour, minute, tzinfo=TOKYO)


class FakeClock:
    """Manually advanced epoch-seconds clock."""

    def __init__(self, start=1_700_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeGateway:
    def __init__(self, temperature=30.0, read_error=None, actuate_error=None):
        self.temperature = temperature
        self.read_error = read_error
        self.actuate_error = actuate_error
        self.reads = []
        self.commands = []

    def read_temperature(self, sensor_id):
        self.reads.append(sensor_id)
        if self.read_error:
            raise self.read_error
        return self.temperature

    def actuate(self, device_id, mode, target_temp):
        if self.actuate_error:
            raise self.actuate_error
        self.commands.append((device_id, mode, target_temp))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def kv(clock):
    return InMemoryKVStore(clock=clock)


@pytest.fixture
def store(kv):
    return TriggerStore(kv)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def history():
    return TickHistory()


@pytest.fixture
def scheduler(kv, store, gateway, history):
    return Scheduler(
        calendar_gate=CalendarGate.for_country("JP"),
        trigger_store=store,
        dedup_guard=DedupGuard(kv),
        gateway=gateway,
        meter_device_id="meter-1",
        air_conditioner_device_id="aircon-1",
        time_zone="Asia/Tokyo",
        history=history,
    )
