"""
Trigger Matching

Picks the rules active for the current hour and decides whether the measured
room temperature warrants actuation.
"""

from collections.abc import Iterable, Sequence
from typing import Optional

from .models import Trigger


def select_active_rules(triggers: Iterable[Trigger], hour: int) -> list[Trigger]:
    """Return the triggers scheduled for ``hour``, in their original order.

    Minutes are informational; dispatch is per hour.
    """
    return [t for t in triggers if t.time.hour == hour]


def choose_rule(active_rules: Sequence[Trigger], temperature: float) -> Optional[Trigger]:
    """Return the rule whose action should be sent, or None.

    Among rules with ``room_temp_threshold <= temperature`` the highest
    threshold wins. Equal thresholds resolve to the rule appearing last.
    """
    chosen = None
    for rule in active_rules:
        if rule.room_temp_threshold > temperature:
            continue
        if chosen is None or rule.room_temp_threshold >= chosen.room_temp_threshold:
            chosen = rule
    return chosen


def should_actuate(active_rules: Sequence[Trigger], temperature: float) -> bool:
    """True iff some active rule's threshold is at or below ``temperature``."""
    return choose_rule(active_rules, temperature) is not None
