from __future__ import annotations

import numpy as np
import pandas as pd
from typing import Tuple
from functools import lru_cache


ROLL_CONVENTIONS = ("NONE", "FOLLOWING", "MODIFIED_FOLLOWING", "PRECEDING")


def yearfrac(start: pd.Timestamp, end: pd.Timestamp, convention: str) -> float:
    """
    Year fraction between two dates under a day count convention.

    Supported:
    - ACT/365, ACT/365F
    - ACT/360
    - 30/360, 30/360US (US bond basis)
    """
    start = pd.Timestamp(start)
    end = pd.Timestamp(end)

    convention = convention.upper().replace(" ", "")
    if end < start:
        raise ValueError(f"end < start: {start=} {end=}")

    if convention in ("ACT/365", "ACT/365F"):
        return (end - start).days / 365.0

    if convention == "ACT/360":
        return (end - start).days / 360.0

    if convention in ("30/360", "30/360US"):
        y1, m1, d1 = start.year, start.month, start.day
        y2, m2, d2 = end.year, end.month, end.day

        if d1 == 31:
            d1 = 30
        if d2 == 31 and d1 == 30:
            d2 = 30

        return ((y2 - y1) * 360 + (m2 - m1) * 30 + (d2 - d1)) / 360.0

    raise ValueError(f"Unsupported day count convention: {convention}")


def _as_day(date: pd.Timestamp) -> np.datetime64:
    return pd.Timestamp(date).to_datetime64().astype("datetime64[D]")


def is_business_day(date: pd.Timestamp) -> bool:
    """Weekends are the only non-business days (no holiday calendars)."""
    return bool(np.is_busday(_as_day(date)))


def adjust_business_day(date: pd.Timestamp, convention: str = "MODIFIED_FOLLOWING") -> pd.Timestamp:
    """Roll a date onto a business day."""
    convention = convention.upper()
    date = pd.Timestamp(date).normalize()

    if convention == "NONE":
        return date
    if convention == "FOLLOWING":
        roll = "following"
    elif convention == "MODIFIED_FOLLOWING":
        roll = "modifiedfollowing"
    elif convention == "PRECEDING":
        roll = "preceding"
    else:
        raise ValueError(f"Unsupported business day convention: {convention}")

    return pd.Timestamp(np.busday_offset(_as_day(date), 0, roll=roll))


def add_business_days(date: pd.Timestamp, days: int) -> pd.Timestamp:
    """
    Move by a number of business days. A non-business start date is first
    rolled forward (positive moves) or backward (negative moves).
    """
    roll = "preceding" if days < 0 else "following"
    return pd.Timestamp(np.busday_offset(_as_day(date), days, roll=roll))


def add_months(date: pd.Timestamp, months: int) -> pd.Timestamp:
    """Calendar month arithmetic, clipping to month end (Jan-31 + 1M = Feb-28)."""
    return pd.Timestamp(date) + pd.DateOffset(months=months)


def periodic_schedule(
    start: pd.Timestamp,
    end: pd.Timestamp,
    months: int,
    convention: str = "MODIFIED_FOLLOWING",
) -> Tuple[pd.Timestamp, ...]:
    """
    Adjusted period boundaries from start to end, stepping forward `months`
    at a time from the unadjusted start. A short final stub is kept.

    Returns boundaries including both start and end (len = periods + 1).
    """
    start = pd.Timestamp(start)
    end = pd.Timestamp(end)

    if months <= 0:
        raise ValueError("months must be positive")
    if end <= start:
        raise ValueError("Schedule end must be after start.")

    unadjusted = [start]
    k = 1
    while True:
        d = add_months(start, k * months)
        if d >= end:
            break
        unadjusted.append(d)
        k += 1
    unadjusted.append(end)

    adjusted = [adjust_business_day(d, convention) for d in unadjusted]
    if any(adjusted[i] >= adjusted[i + 1] for i in range(len(adjusted) - 1)):
        raise ValueError("Non-increasing schedule after business day adjustment.")
    return tuple(adjusted)


@lru_cache(maxsize=100_000)
def cached_schedule(start: pd.Timestamp, end: pd.Timestamp, months: int, convention: str) -> Tuple[pd.Timestamp, ...]:
    """Cache schedules by (start, end, months, convention)."""
    return periodic_schedule(pd.Timestamp(start), pd.Timestamp(end), int(months), str(convention))
