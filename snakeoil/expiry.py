# expiry.py
# Validity window for a new certificate, optionally rounded to a weekly anchor.

from datetime import datetime, timedelta

from .models import ValidityWindow
from .utils import as_utc

ANCHOR_WEEKDAY = 2  # Wednesday, datetime.weekday() numbering
ANCHOR_HOUR = 11


def next_weekly_anchor(when: datetime) -> datetime:
    """Smallest Wednesday 11:00 (same zone as `when`) that is not before `when`.

    A Wednesday after 11:00 goes to the following Wednesday rather than back
    to 11:00 that morning, so rounding never shortens the lifetime.
    """
    days = (ANCHOR_WEEKDAY - when.weekday()) % 7
    anchor = (when + timedelta(days=days)).replace(
        hour=ANCHOR_HOUR, minute=0, second=0, microsecond=0
    )
    if anchor < when:
        anchor += timedelta(days=7)
    return anchor


def compute_window(now: datetime, duration: timedelta, round_to_weekly_anchor: bool = False) -> ValidityWindow:
    if duration <= timedelta(0):
        raise ValueError(f"certificate lifetime must be positive, got {duration}")
    not_before = as_utc(now)
    not_after = not_before + duration
    if round_to_weekly_anchor:
        not_after = next_weekly_anchor(not_after)
    return ValidityWindow(not_before=not_before, not_after=not_after)
