# utils.py
# Common helpers used across the CLI.
# All timestamps are UTC and formatted as RFC3339.

import re
from datetime import datetime, timedelta, timezone
from dateutil import parser as dtp

_DURATION_UNITS = {
    "ns": timedelta(microseconds=0.001),
    "us": timedelta(microseconds=1),
    "µs": timedelta(microseconds=1),
    "ms": timedelta(milliseconds=1),
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


def parse_rfc3339(s: str) -> datetime:
    """Parse RFC3339/ISO8601 into aware UTC datetime.
    Naive input is taken to be UTC already."""
    return as_utc(dtp.isoparse(s))


def parse_duration(s: str) -> timedelta:
    """Parse a Go-style duration such as '8760h', '90m' or '1h30m15s'.

    Raises ValueError for anything else, including an empty string.
    """
    text = (s or "").strip()
    sign = 1
    if text[:1] in ("+", "-"):
        sign = -1 if text[0] == "-" else 1
        text = text[1:]
    if text == "0":
        return timedelta(0)
    pos = 0
    total = timedelta(0)
    for m in _DURATION_PART.finditer(text):
        if m.start() != pos:
            break
        total += float(m.group(1)) * _DURATION_UNITS[m.group(2)]
        pos = m.end()
    if not text or pos != len(text):
        raise ValueError(f"invalid duration: {s!r}")
    return sign * total


def as_utc(dt: datetime) -> datetime:
    """Naive datetimes are treated as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def days_until(expire: datetime, now: datetime = None) -> int:
    """Return integer number of full days from now until expire."""
    now = as_utc(now) if now else datetime.now(timezone.utc)
    return int((as_utc(expire) - now).total_seconds() // 86400)


def rfc3339(dt: datetime) -> str:
    """Format as RFC3339 string, e.g. 2025-10-04T12:34:56Z."""
    return as_utc(dt).strftime("%Y-%m-%dT%H:%M:%SZ")


def dedupe(items):
    """Drop repeated items, keeping first-seen order."""
    seen = set()
    out = []
    for i in items:
        if i in seen:
            continue
        seen.add(i)
        out.append(i)
    return out
