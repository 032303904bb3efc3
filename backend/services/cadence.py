"""
Notification cadence rules.

should_notify() decides whether an alert of a given kind is due, given when
it last went out and the record's reference timestamp. All rules work on
calendar days of the explicit `now` passed in.
"""

from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Optional, Union

EXPIRING_THRESHOLDS = (90, 60, 30)
DAILY_WINDOW_DAYS = 30
DEBOUNCE_DAYS = 7
NON_COMPLIANCE_WINDOW = timedelta(hours=24)
REMINDER_INTERVAL_DAYS = 7
EXPIRING_LOOKAHEAD_DAYS = max(EXPIRING_THRESHOLDS)


class NotificationKind(str, Enum):
    EXPIRING = "expiring"
    EXPIRED = "expired"
    NON_COMPLIANT = "non_compliant"
    PENDING_REQUEST = "pending_request"


def as_naive_utc(value: datetime) -> datetime:
    """Stored timestamps are naive UTC; aware values are converted to match"""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def as_date(value: Union[date, datetime]) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def days_between(start: Union[date, datetime], end: Union[date, datetime]) -> int:
    """Whole calendar days from start to end"""
    return (as_date(end) - as_date(start)).days


def expiring_threshold_reached(days_left: int) -> bool:
    """90, 60 and 30 days out, then daily for the final stretch"""
    return days_left in EXPIRING_THRESHOLDS or 0 <= days_left < DAILY_WINDOW_DAYS


def _debounced(last_notified, today: date) -> bool:
    return last_notified is not None and days_between(last_notified, today) < DEBOUNCE_DAYS


def should_notify(
    kind: NotificationKind,
    last_notified: Optional[Union[date, datetime]],
    now: datetime,
    reference: Optional[Union[date, datetime]] = None,
) -> bool:
    """
    kind=EXPIRING         reference is the expiration date
    kind=EXPIRED          reference is the expiration date; last_notified is when
                          the expired alert went out, None if it never did
    kind=NON_COMPLIANT    reference is when the vendor became non-compliant
    kind=PENDING_REQUEST  reference is when the request was created
    """
    today = now.date()
    kind = NotificationKind(kind)

    if kind == NotificationKind.EXPIRING:
        if reference is None:
            return False
        if not expiring_threshold_reached(days_between(today, reference)):
            return False
        return not _debounced(last_notified, today)

    if kind == NotificationKind.EXPIRED:
        if reference is None or last_notified is not None:
            return False
        return days_between(reference, today) == 1

    if kind == NotificationKind.NON_COMPLIANT:
        if reference is None or not isinstance(reference, datetime):
            return False
        if reference > now or now - reference > NON_COMPLIANCE_WINDOW:
            return False
        return last_notified is None or last_notified < reference

    if kind == NotificationKind.PENDING_REQUEST:
        if reference is None:
            return False
        age = days_between(reference, today)
        if age < REMINDER_INTERVAL_DAYS or age % REMINDER_INTERVAL_DAYS != 0:
            return False
        return last_notified is None or as_date(last_notified) < today

    return False
