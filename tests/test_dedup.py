from unittest.mock import MagicMock

import pytest

from core.aircon.dedup import DEFAULT_COMPLETION_TTL_SECONDS, DedupGuard


def test_ttl_is_longer_than_a_day():
    assert DEFAULT_COMPLETION_TTL_SECONDS == 25 * 60 * 60


def test_rejects_ttl_of_a_day_or_less(kv):
    with pytest.raises(ValueError):
        DedupGuard(kv, ttl_seconds=24 * 60 * 60)


def test_mark_then_check(kv):
    guard = DedupGuard(kv)
    assert not guard.already_actuated_today("2023-06-28")
    assert guard.mark_actuated_today("2023-06-28")
    assert guard.already_actuated_today("2023-06-28")
    assert not guard.already_actuated_today("2023-06-29")


def test_record_expires_after_ttl(kv, clock):
    guard = DedupGuard(kv)
    guard.mark_actuated_today("2023-06-28")
    clock.advance(24 * 60 * 60)
    assert guard.already_actuated_today("2023-06-28")
    clock.advance(60 * 60)
    assert not guard.already_actuated_today("2023-06-28")


def test_second_mark_reports_existing_record(kv):
    guard = DedupGuard(kv)
    assert guard.mark_actuated_today("2023-06-28")
    assert not guard.mark_actuated_today("2023-06-28")


def test_plain_put_without_conditional_write():
    kv = MagicMock(spec=["get", "put", "list_keys", "delete"])
    guard = DedupGuard(kv)
    assert guard.mark_actuated_today("2023-06-28")
    kv.put.assert_called_once_with("2023-06-28", "done", ttl_seconds=DEFAULT_COMPLETION_TTL_SECONDS)
