from datetime import datetime
from types import SimpleNamespace

import pytest

from conftest import utc
from surveydesk.core.errors import WindowClosed
from surveydesk.core.window import WindowStatus, can_submit, require_open, window_status

JANUARY = dict(opens_at=utc(2024, 1, 1), closes_at=utc(2024, 1, 31, 23, 59))


def _survey(manually_closed=False, **bounds):
    return SimpleNamespace(manually_closed=manually_closed, **{"opens_at": None, "closes_at": None, **bounds})


@pytest.mark.parametrize(
    "now, expected",
    [
        (utc(2023, 12, 31, 23, 59), WindowStatus.UPCOMING),
        (utc(2024, 1, 1), WindowStatus.OPEN),
        (utc(2024, 1, 15, 10), WindowStatus.OPEN),
        (utc(2024, 1, 31, 23, 59), WindowStatus.OPEN),
        (utc(2024, 2, 1), WindowStatus.CLOSED),
    ],
)
def test_clock_driven_states(now, expected):
    assert window_status(_survey(**JANUARY), now) == expected


def test_manual_close_wins():
    s = _survey(manually_closed=True, **JANUARY)
    assert window_status(s, utc(2024, 1, 15)) == WindowStatus.CLOSED
    assert window_status(s, utc(2023, 6, 1)) == WindowStatus.CLOSED


def test_missing_bounds_are_unbounded():
    assert window_status(_survey(), utc(1999, 1, 1)) == WindowStatus.OPEN
    assert window_status(_survey(closes_at=utc(2024, 1, 1)), utc(1999, 1, 1)) == WindowStatus.OPEN
    assert window_status(_survey(opens_at=utc(2024, 1, 1)), utc(2099, 1, 1)) == WindowStatus.OPEN


def test_naive_values_are_utc():
    s = _survey(opens_at=datetime(2024, 1, 1), closes_at=datetime(2024, 1, 31))
    assert window_status(s, utc(2024, 1, 10)) == WindowStatus.OPEN
    assert can_submit(s, datetime(2024, 1, 10))


def test_require_open_reports_window():
    with pytest.raises(WindowClosed) as exc:
        require_open(_survey(**JANUARY), utc(2024, 2, 1))
    err = exc.value
    assert err.status_code == 409
    assert err.status == "CLOSED"
    payload = err.to_dict()
    assert payload["code"] == "window_closed"
    assert payload["retryable"] is False
    assert payload["window"]["closes_at"].startswith("2024-01-31T23:59")
    assert "2024-01-01 00:00 ~ 2024-01-31 23:59" in payload["detail"]


def test_require_open_upcoming_message():
    with pytest.raises(WindowClosed) as exc:
        require_open(_survey(**JANUARY), utc(2023, 12, 1))
    assert exc.value.status == "UPCOMING"
    assert "not started" in exc.value.message
