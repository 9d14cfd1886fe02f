# app/util/timeutil.py
from __future__ import annotations

import time
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def now_ms() -> int:
    return int(time.time() * 1000)


def _zone(name: str) -> tzinfo:
    try:
        return ZoneInfo(name)
    except ZoneInfoNotFoundError:
        # Hosts without tzdata: only the default zone has a known fixed offset
        if name == "Asia/Kolkata":
            return timezone(timedelta(hours=5, minutes=30))
        return timezone.utc


def format_clock(ts_ms: Optional[int] = None, tz: str = "Asia/Kolkata") -> str:
    """12-hour wall clock time, e.g. '07:41:03 PM'."""
    ts = now_ms() if ts_ms is None else ts_ms
    dt = datetime.fromtimestamp(ts / 1000, tz=_zone(tz))
    return dt.strftime("%I:%M:%S %p")


def format_datetime(ts_ms: int, tz: str = "Asia/Kolkata") -> str:
    dt = datetime.fromtimestamp(ts_ms / 1000, tz=_zone(tz))
    return dt.strftime("%d/%m/%Y %I:%M:%S %p")
