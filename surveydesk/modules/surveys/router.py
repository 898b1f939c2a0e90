from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from surveydesk.auth.deps import get_current_admin
from surveydesk.core.config import settings
from surveydesk.core.errors import ValidationError, require
from surveydesk.core.window import as_utc, utcnow, window_status
from surveydesk.db.models.submission import Submission
from surveydesk.db.models.survey import Survey
from surveydesk.db.models.survey_template import SurveyTemplate
from surveydesk.db.session import get_db
from surveydesk.utils.schema import check_fields, dump_fields, parse_fields, validate
from surveydesk.utils.submission_store import get_survey, store_guard

router = APIRouter(prefix="/surveys", tags=["surveys"])


class SurveyIn(BaseModel):
    title: str
    description: str = ""
    requesting_unit: str = ""
    opens_at: datetime | None = None
    closes_at: datetime | None = None
    # None keeps the stored value (False for a new survey)
    manually_closed: bool | None = None
    target_org_types: list[str] = Field(default_factory=list)
    # Neither `fields` nor `template_id` keeps the stored fields on update
    fields: list | None = None
    # Seed fields from a template when `fields` is not given
    template_id: str | None = None


class AnswersIn(BaseModel):
    answers: dict = Field(default_factory=dict)


def _client_dt(dt: datetime | None) -> datetime | None:
    """Naive datetimes from the client are wall-clock times in APP_TIMEZONE."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=ZoneInfo(settings.APP_TIMEZONE))
    return dt.astimezone(timezone.utc)


def _iso(dt: datetime | None) -> str | None:
    dt = as_utc(dt)
    return dt.isoformat() if dt else None


def survey_out(s: Survey, now: datetime | None = None) -> dict:
    return {
        "id": s.id,
        "title": s.title,
        "description": s.description or "",
        "requesting_unit": s.requesting_unit or "",
        "opens_at": _iso(s.opens_at),
        "closes_at": _iso(s.closes_at),
        "manually_closed": bool(s.manually_closed),
        "target_org_types": s.target_org_types,
        "fields": dump_fields(s.fields),
        "status": window_status(s, now).value,
        "created_at": _iso(s.created_at),
        "updated_at": _iso(s.updated_at),
    }


def _resolve_fields(db: Session, body: SurveyIn) -> list | None:
    if body.fields is not None:
        raw = body.fields
    elif body.template_id:
        t = db.get(SurveyTemplate, body.template_id)
        require(t is not None, "Template not found.", 404)
        raw = dump_fields(t.fields)
    else:
        return None

    errors = check_fields(raw)
    if errors:
        raise ValidationError(errors, message="Survey fields are not valid.")
    return dump_fields(parse_fields(raw))


def _apply(db: Session, s: Survey, body: SurveyIn) -> None:
    title = (body.title or "").strip()
    require(bool(title), "Title is required.", 400)

    opens_at = _client_dt(body.opens_at)
    closes_at = _client_dt(body.closes_at)
    if opens_at is not None and closes_at is not None:
        require(opens_at <= closes_at, "The submission window must open before it closes.", 400)

    types: list[str] = []
    for t in body.target_org_types or []:
        t = (t or "").strip()
        if t and t not in types:
            types.append(t)

    s.title = title
    s.description = (body.description or "").strip()
    s.requesting_unit = (body.requesting_unit or "").strip()
    s.opens_at = opens_at
    s.closes_at = closes_at
    if body.manually_closed is not None:
        s.manually_closed = body.manually_closed
    elif s.manually_closed is None:
        s.manually_closed = False
    s.target_org_types_json = json.dumps(types, ensure_ascii=False)

    fields = _resolve_fields(db, body)
    if fields is not None or s.fields_json is None:
        s.fields_json = json.dumps(fields or [], ensure_ascii=False)


@router.get("")
def list_surveys(db: Session = Depends(get_db)):
    with store_guard(db):
        surveys = db.query(Survey).order_by(Survey.created_at.desc(), Survey.title.asc()).all()
    now = utcnow()
    return {"surveys": [survey_out(s, now) for s in surveys]}


@router.get("/{survey_id}")
def get_one(survey_id: str, db: Session = Depends(get_db)):
    with store_guard(db):
        s = get_survey(db, survey_id)
    return survey_out(s)


@router.post("", status_code=201)
def create(body: SurveyIn, db: Session = Depends(get_db), admin: str = Depends(get_current_admin)):
    with store_guard(db):
        s = Survey(id=uuid.uuid4().hex, created_at=utcnow())
        _apply(db, s, body)
        db.add(s)
        db.commit()
        db.refresh(s)
    return survey_out(s)


@router.put("/{survey_id}")
def update(survey_id: str, body: SurveyIn, db: Session = Depends(get_db), admin: str = Depends(get_current_admin)):
    # Editing fields of a survey that already has submissions is allowed;
    # stored answers are not migrated.
    with store_guard(db):
        s = get_survey(db, survey_id)
        _apply(db, s, body)
        s.updated_at = utcnow()
        db.commit()
        db.refresh(s)
    return survey_out(s)


def _set_closed(db: Session, survey_id: str, closed: bool) -> dict:
    with store_guard(db):
        s = get_survey(db, survey_id)
        s.manually_closed = closed
        s.updated_at = utcnow()
        db.commit()
        db.refresh(s)
    return survey_out(s)


@router.post("/{survey_id}/close")
def close(survey_id: str, db: Session = Depends(get_db), admin: str = Depends(get_current_admin)):
    return _set_closed(db, survey_id, True)


@router.post("/{survey_id}/reopen")
def reopen(survey_id: str, db: Session = Depends(get_db), admin: str = Depends(get_current_admin)):
    return _set_closed(db, survey_id, False)


@router.delete("/{survey_id}")
def delete(survey_id: str, db: Session = Depends(get_db), admin: str = Depends(get_current_admin)):
    with store_guard(db):
        s = get_survey(db, survey_id)
        db.query(Submission).filter(Submission.survey_id == s.id).delete(synchronize_session=False)
        db.delete(s)
        db.commit()
    return {"ok": True}


@router.post("/{survey_id}/validate")
def validate_answers(survey_id: str, body: AnswersIn, db: Session = Depends(get_db)):
    """Dry run of the submission checks, for the form to show errors early."""
    with store_guard(db):
        s = get_survey(db, survey_id)
    violations = validate(s, body.answers)
    return {
        "ok": not violations,
        "status": window_status(s).value,
        "violations": [v.to_dict() for v in violations],
    }
