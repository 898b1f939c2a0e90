"""Submission window state machine.

UPCOMING -> OPEN -> CLOSED, driven by the clock, plus an administrator
override that forces CLOSED. Clients evaluate the same rules to disable the
submit button; that is UX only. Every write path calls :func:`require_open`
server-side before touching the store.
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone

from surveydesk.core.errors import WindowClosed


class WindowStatus(str, enum.Enum):
    UPCOMING = "UPCOMING"
    OPEN = "OPEN"
    CLOSED = "CLOSED"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: datetime | None) -> datetime | None:
    """Aware UTC datetime. Naive values (e.g. read back from SQLite) are taken as UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def window_status(survey, now: datetime | None = None) -> WindowStatus:
    """Pure function of (survey, now).

    1. manually closed        -> CLOSED
    2. now < opens_at         -> UPCOMING
    3. now > closes_at        -> CLOSED
    4. otherwise              -> OPEN

    A missing bound does not restrict that side of the window.
    """
    if survey.manually_closed:
        return WindowStatus.CLOSED

    current = as_utc(now) or utcnow()
    opens_at = as_utc(survey.opens_at)
    closes_at = as_utc(survey.closes_at)

    if opens_at is not None and current < opens_at:
        return WindowStatus.UPCOMING
    if closes_at is not None and current > closes_at:
        return WindowStatus.CLOSED
    return WindowStatus.OPEN


def can_submit(survey, now: datetime | None = None) -> bool:
    return window_status(survey, now) == WindowStatus.OPEN


def require_open(survey, now: datetime | None = None) -> None:
    status = window_status(survey, now)
    if status != WindowStatus.OPEN:
        raise WindowClosed(
            status.value,
            as_utc(survey.opens_at),
            as_utc(survey.closes_at),
            manually_closed=bool(survey.manually_closed),
        )
