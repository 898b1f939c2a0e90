"""Trusted submission boundary.

Every write re-evaluates the submission window and, for edits, the ownership
token on the server. Nothing here trusts a client-side "OPEN" or "I am the
owner" flag.

- create_or_replace: one row per (survey, organization), last write wins,
  done with the store's native upsert so there is no check-then-write race.
- lookup_own / update_own: ownership is proven by presenting the same token the
  submitter chose at creation time. It lives inside the stored answers under
  OWNERSHIP_KEY and is compared with strict equality.
"""

from __future__ import annotations

import json
import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy.dialects.mysql import insert as mysql_insert
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import InterfaceError, OperationalError, TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from surveydesk.core.errors import NotFound, Forbidden, TransientError, ValidationError
from surveydesk.core.registry import org_code
from surveydesk.core.window import as_utc, require_open, utcnow
from surveydesk.db.models.submission import Submission
from surveydesk.db.models.survey import Survey
from surveydesk.utils.coverage_cache import invalidate_submitted
from surveydesk.utils.schema import (
    OWNERSHIP_KEY,
    FieldViolation,
    canonical_answers,
    normalize_answers,
    validate,
)

logger = logging.getLogger("surveydesk.submissions")

_REPLACED_COLUMNS = ("organization_id", "organization_name", "answers_json", "submitted_at", "updated_at")


@dataclass(frozen=True, slots=True)
class SubmissionRecord:
    id: str
    survey_id: str
    organization_id: str
    organization_name: str
    answers: dict = field(default_factory=dict)
    submitted_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "survey_id": self.survey_id,
            "organization_id": self.organization_id,
            "organization_name": self.organization_name,
            "answers": self.answers,
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


@contextmanager
def store_guard(db: Session):
    """Turn connection-level store failures into a retryable TransientError."""
    try:
        yield
    except (OperationalError, InterfaceError, PoolTimeoutError) as exc:
        db.rollback()
        logger.warning("Store unavailable: %s", exc.__class__.__name__)
        raise TransientError() from exc


def _load_answers(s: Submission) -> dict:
    try:
        v = json.loads(s.answers_json or "{}")
    except Exception:
        return {}
    return v if isinstance(v, dict) else {}


def _stored_token(s: Submission) -> str | None:
    v = _load_answers(s).get(OWNERSHIP_KEY)
    if isinstance(v, str) and v != "":
        return v
    return None


def _clean_token(token: Any) -> str:
    # Surrounding whitespace is trimmed (pasted tokens); the rest must match exactly.
    return token.strip() if isinstance(token, str) else ""


def _record(s: Submission, survey: Survey) -> SubmissionRecord:
    return SubmissionRecord(
        id=s.id,
        survey_id=s.survey_id,
        organization_id=s.organization_id,
        organization_name=s.organization_name or "",
        answers=normalize_answers(survey.fields, _load_answers(s)),
        submitted_at=as_utc(s.submitted_at),
        updated_at=as_utc(s.updated_at),
    )


def _check_answers(survey: Survey, answers: Any) -> None:
    if not isinstance(answers, dict):
        raise ValidationError([FieldViolation("answers", "Answers must be an object.")])
    violations = validate(survey, answers)
    if violations:
        raise ValidationError(violations)


def _upsert_statement(db: Session, values: dict):
    table = Submission.__table__
    dialect = db.get_bind().dialect.name

    if dialect in ("mysql", "mariadb"):
        stmt = mysql_insert(table).values(**values)
        return stmt.on_duplicate_key_update(**{c: stmt.inserted[c] for c in _REPLACED_COLUMNS})

    if dialect == "postgresql":
        stmt = pg_insert(table).values(**values)
    elif dialect == "sqlite":
        stmt = sqlite_insert(table).values(**values)
    else:
        raise RuntimeError(f"Upsert is not supported for dialect {dialect!r}")
    return stmt.on_conflict_do_update(
        index_elements=["survey_id", "organization_code"],
        set_={c: stmt.excluded[c] for c in _REPLACED_COLUMNS},
    )


def get_survey(db: Session, survey_id: str) -> Survey:
    survey = db.get(Survey, survey_id)
    if survey is None:
        raise NotFound("Survey not found.")
    return survey


def create_or_replace(
    db: Session,
    survey_id: str,
    organization_id: str,
    organization_name: str,
    answers: dict,
    *,
    now: datetime | None = None,
) -> SubmissionRecord:
    """Insert or fully replace the organization's submission for the survey.

    The ownership token, when the submitter chose one, travels inside
    ``answers`` under OWNERSHIP_KEY.
    """
    current = as_utc(now) or utcnow()
    with store_guard(db):
        survey = get_survey(db, survey_id)
        require_open(survey, current)

        code = org_code(organization_id)
        if not code:
            raise ValidationError([FieldViolation("organization_id", "Organization is required.")])
        _check_answers(survey, answers)

        token = _clean_token(answers.get(OWNERSHIP_KEY)) or None
        payload = canonical_answers(survey.fields, answers, token)

        values = {
            "id": uuid.uuid4().hex,
            "survey_id": survey.id,
            "organization_id": str(organization_id).strip(),
            "organization_code": code,
            "organization_name": (organization_name or "").strip(),
            "answers_json": json.dumps(payload, ensure_ascii=False),
            "submitted_at": current,
            "updated_at": None,
        }
        db.execute(_upsert_statement(db, values))
        db.commit()

        s = (
            db.query(Submission)
            .filter(Submission.survey_id == survey.id, Submission.organization_code == code)
            .one()
        )
        db.refresh(s)

    invalidate_submitted(survey.id)
    logger.info("Submission stored survey=%s org=%s id=%s", survey.id, code, s.id)
    return _record(s, survey)


def lookup_own(db: Session, survey_id: str, organization_id: str, ownership_token: str) -> list[SubmissionRecord]:
    """Submissions of the organization whose stored token equals the presented one.

    Any mismatch (unknown survey, no submission, no stored token, wrong token)
    gives an empty list.
    """
    token = _clean_token(ownership_token)
    code = org_code(organization_id)
    if not token or not code:
        return []

    with store_guard(db):
        survey = db.get(Survey, survey_id)
        if survey is None:
            return []
        rows = (
            db.query(Submission)
            .filter(Submission.survey_id == survey.id, Submission.organization_code == code)
            .order_by(Submission.submitted_at.desc())
            .all()
        )

    return [_record(s, survey) for s in rows if _stored_token(s) == token]


def update_own(
    db: Session,
    submission_id: str,
    survey_id: str,
    organization_id: str,
    ownership_token: str,
    new_answers: dict,
    *,
    now: datetime | None = None,
) -> SubmissionRecord:
    """Replace the answers of an existing submission after re-checking ownership.

    Raises NotFound (no such survey/submission pair), WindowClosed, Forbidden
    (token mismatch, including a submission stored without a token).
    """
    current = as_utc(now) or utcnow()
    token = _clean_token(ownership_token)

    with store_guard(db):
        survey = db.get(Survey, survey_id)
        if survey is None:
            raise NotFound()
        require_open(survey, current)

        s = (
            db.query(Submission)
            .filter(
                Submission.id == submission_id,
                Submission.survey_id == survey.id,
                Submission.organization_code == org_code(organization_id),
            )
            .first()
        )
        if s is None:
            raise NotFound()

        stored = _stored_token(s)
        if not token or stored is None or stored != token:
            logger.warning("Ownership check failed survey=%s submission=%s", survey.id, s.id)
            raise Forbidden()

        _check_answers(survey, new_answers)

        # token is preserved whatever the client sent under the reserved key
        payload = canonical_answers(survey.fields, new_answers, stored)
        s.answers_json = json.dumps(payload, ensure_ascii=False)
        s.updated_at = current
        db.commit()
        db.refresh(s)

    invalidate_submitted(survey.id)
    logger.info("Submission updated survey=%s id=%s", survey.id, s.id)
    return _record(s, survey)


def list_submissions(db: Session, survey_id: str) -> list[SubmissionRecord]:
    """All submissions of a survey, newest first (admin view, token stripped)."""
    with store_guard(db):
        survey = get_survey(db, survey_id)
        rows = (
            db.query(Submission)
            .filter(Submission.survey_id == survey.id)
            .order_by(Submission.submitted_at.desc(), Submission.id.asc())
            .all()
        )
    return [_record(s, survey) for s in rows]
