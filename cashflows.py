import datetime as _dt
import math
from typing import Dict, Iterable, Optional

import pandas as pd

from constants import EXPENSE_MARKER, INCOME_MARKER
from models import LifeEvent

EventMap = Dict[int, float]

_ONE_DAY = pd.Timedelta(days=1)


def day_offset(start_date: _dt.date, event_date: _dt.date) -> int:
    """Whole days from ``start_date`` to ``event_date``, rounded up."""
    delta = pd.Timestamp(event_date) - pd.Timestamp(start_date)
    return math.ceil(delta / _ONE_DAY)


def build_event_map(start_date: _dt.date, events: Iterable[LifeEvent]) -> EventMap:
    """
    Maps each life event to its day offset from ``start_date`` and sums the
    signed amounts landing on the same day. Events on or before the start
    date are dropped. The caller's events are not modified.
    """
    event_map: EventMap = {}
    for event in events:
        offset = day_offset(start_date, event.date)
        if offset > 0:
            event_map[offset] = event_map.get(offset, 0.0) + event.signed_amount
    return event_map


def apply_cashflow(wealth: float, event_map: EventMap, day: int) -> float:
    return wealth + event_map.get(day, 0.0)


def event_marker(event_map: EventMap, start: int, step: int) -> Optional[str]:
    """Marker for the bucket ``[start, start + step)``; the earliest event decides."""
    for day in range(start, start + step):
        amount = event_map.get(day)
        if amount:
            return EXPENSE_MARKER if amount < 0 else INCOME_MARKER
    return None
