"""Watch-window arithmetic for purchases."""

import math
from datetime import datetime, timedelta

from price_watch.models import PurchaseRecord

WINDOW_DAYS = 30
ONE_DAY = timedelta(days=1)


def expires_at(record: PurchaseRecord, window_days: int = WINDOW_DAYS) -> datetime:
    """Last instant of the watch window: purchase date plus whole calendar days."""
    return record.purchase_date + timedelta(days=window_days)


def is_eligible(record: PurchaseRecord, now: datetime, window_days: int = WINDOW_DAYS) -> bool:
    """True when the purchase is watched and still inside its window (end inclusive)."""
    return record.watched and expires_at(record, window_days) >= now


# Views call the same rule by the name the UI uses.
is_watched_now = is_eligible


def days_left(record: PurchaseRecord, now: datetime, window_days: int = WINDOW_DAYS) -> int:
    """Whole days remaining in the window, rounded up, never negative."""
    remaining = expires_at(record, window_days) - now
    return max(0, math.ceil(remaining / ONE_DAY))


def window_cutoff(now: datetime, window_days: int = WINDOW_DAYS) -> datetime:
    """
    Earliest purchase date that can still be in its window at ``now``.

    Storage queries use ``purchase_date >= window_cutoff(now)`` as the coarse
    pre-filter; since ``purchase_date >= now - N days`` is the same inequality
    as ``purchase_date + N days >= now``, it matches is_eligible exactly,
    including a purchase dated exactly N days ago.
    """
    return now - timedelta(days=window_days)
