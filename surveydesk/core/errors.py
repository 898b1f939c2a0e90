from __future__ import annotations

from datetime import datetime
from typing import Iterable

from fastapi import HTTPException


def require(condition: bool, msg: str = "Forbidden", status_code: int = 403) -> None:
    """Small helper used across routers.

    Defaults to 403 (permission denied). For validation errors or not-found cases,
    pass `status_code=400/404`.
    """
    if not condition:
        raise HTTPException(status_code=status_code, detail=msg)


class SurveyDeskError(Exception):
    """Base for errors raised by the submission boundary."""

    status_code = 500
    code = "error"
    retryable = False

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__

    def to_dict(self) -> dict:
        return {"detail": self.message, "code": self.code, "retryable": self.retryable}


class ValidationError(SurveyDeskError):
    """Answers (or a field list) do not satisfy the schema. Fix the input and resend."""

    status_code = 422
    code = "validation_error"

    def __init__(self, violations: Iterable = (), message: str = "Submission does not satisfy the survey schema."):
        super().__init__(message)
        self.violations = list(violations)

    def to_dict(self) -> dict:
        out = super().to_dict()
        out["violations"] = [v.to_dict() if hasattr(v, "to_dict") else {"message": str(v)} for v in self.violations]
        return out


class WindowClosed(SurveyDeskError):
    """The survey is not accepting writes (UPCOMING or CLOSED). Never retried."""

    status_code = 409
    code = "window_closed"

    def __init__(self, status: str, opens_at: datetime | None, closes_at: datetime | None, manually_closed: bool = False):
        self.status = status
        self.opens_at = opens_at
        self.closes_at = closes_at
        self.manually_closed = manually_closed
        super().__init__(self._message())

    def _message(self) -> str:
        period = f"{_fmt(self.opens_at)} ~ {_fmt(self.closes_at)}"
        if self.manually_closed:
            return f"Survey has been closed by the administrator. Submission period: {period}"
        if self.status == "UPCOMING":
            return f"Submission period has not started. Submission period: {period}"
        return f"Submission period has ended. Submission period: {period}"

    def to_dict(self) -> dict:
        out = super().to_dict()
        out["window"] = {
            "status": self.status,
            "opens_at": self.opens_at.isoformat() if self.opens_at else None,
            "closes_at": self.closes_at.isoformat() if self.closes_at else None,
            "manually_closed": self.manually_closed,
        }
        return out


# Forbidden and NotFound share one message so a caller cannot tell a wrong
# token from a missing record.
OWNERSHIP_MESSAGE = "Submission not found or ownership token does not match."


class Forbidden(SurveyDeskError):
    status_code = 403
    code = "forbidden"

    def __init__(self, message: str = OWNERSHIP_MESSAGE):
        super().__init__(message)


class NotFound(SurveyDeskError):
    status_code = 404
    code = "not_found"

    def __init__(self, message: str = OWNERSHIP_MESSAGE):
        super().__init__(message)


class TransientError(SurveyDeskError):
    """Store/network failure. Safe to retry with backoff."""

    status_code = 503
    code = "transient_error"
    retryable = True
    retry_after_seconds = 2

    def __init__(self, message: str = "Storage is temporarily unavailable. Please retry."):
        super().__init__(message)


def _fmt(dt: datetime | None) -> str:
    if dt is None:
        return "-"
    return dt.strftime("%Y-%m-%d %H:%M")
