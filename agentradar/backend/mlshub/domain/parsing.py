# mlshub/domain/parsing.py
from __future__ import annotations

import math
from datetime import date, datetime, timezone
from typing import Any


def to_int(x: Any) -> int | None:
    if x is None or x == "" or isinstance(x, bool):
        return None
    try:
        return int(float(x))
    except Exception:
        return None


def to_float(x: Any) -> float | None:
    if x is None or x == "" or isinstance(x, bool):
        return None
    try:
        if isinstance(x, str):
            x = x.replace(",", "").replace("$", "").strip()
        v = float(x)
    except Exception:
        return None
    if math.isnan(v) or math.isinf(v):
        return None
    return v


def to_str(x: Any) -> str | None:
    if x is None:
        return None
    if isinstance(x, (dict, list)):
        return None
    s = str(x).strip()
    return s or None


def to_date(x: Any) -> datetime | None:
    """
    Accepts ISO dates/datetimes, epoch seconds or epoch millis.
    Always returns an aware UTC datetime (or None).
    """
    if x is None or x == "" or isinstance(x, bool):
        return None

    if isinstance(x, datetime):
        dt = x
    elif isinstance(x, date):
        dt = datetime(x.year, x.month, x.day)
    elif isinstance(x, (int, float)):
        ts = float(x)
        if ts > 1e12:  # millis
            ts = ts / 1000.0
        try:
            return datetime.fromtimestamp(ts, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(x, str):
        s = x.strip()
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(s)
        except ValueError:
            return None
    else:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_str_list(x: Any) -> list[str]:
    """Photo lists come as ['url', ...], [{'url': ...}, ...] or 'a,b,c'."""
    if x is None:
        return []
    if isinstance(x, str):
        return [p.strip() for p in x.split(",") if p.strip()]
    if not isinstance(x, list):
        return []

    out: list[str] = []
    for item in x:
        if isinstance(item, str) and item.strip():
            out.append(item.strip())
        elif isinstance(item, dict):
            url = get_first(item, "url", "href", "MediaURL", "uri")
            if isinstance(url, str) and url.strip():
                out.append(url.strip())
    return out


def days_since(listed: datetime | None, now: datetime) -> int:
    """Whole days on market, rounded up. Future listing dates count as 0."""
    if listed is None:
        return 0
    seconds = (now - listed).total_seconds()
    if seconds <= 0:
        return 0
    return math.ceil(seconds / 86400)


def get_first(payload: dict[str, Any], *keys: str) -> Any:
    """Return first non-empty key from payload."""
    for k in keys:
        v = payload.get(k)
        if v is None:
            continue
        if isinstance(v, str) and not v.strip():
            continue
        return v
    return None
