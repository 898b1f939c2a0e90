import json
import uuid

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from surveydesk.auth.deps import get_current_admin
from surveydesk.core.errors import ValidationError, require
from surveydesk.core.window import as_utc, utcnow
from surveydesk.db.models.survey_template import SurveyTemplate
from surveydesk.db.session import get_db
from surveydesk.utils.schema import check_fields, dump_fields, parse_fields
from surveydesk.utils.submission_store import store_guard

router = APIRouter(prefix="/templates", tags=["templates"])


class TemplateIn(BaseModel):
    name: str
    description: str = ""
    fields: list = Field(default_factory=list)


def _out(t: SurveyTemplate) -> dict:
    created = as_utc(t.created_at)
    updated = as_utc(t.updated_at)
    return {
        "id": t.id,
        "name": t.name,
        "description": t.description or "",
        "fields": dump_fields(t.fields),
        "created_at": created.isoformat() if created else None,
        "updated_at": updated.isoformat() if updated else None,
    }


def _apply(t: SurveyTemplate, body: TemplateIn) -> None:
    name = (body.name or "").strip()
    require(bool(name), "Template name is required.", 400)
    errors = check_fields(body.fields)
    if errors:
        raise ValidationError(errors, message="Template fields are not valid.")
    t.name = name
    t.description = (body.description or "").strip()
    t.fields_json = json.dumps(dump_fields(parse_fields(body.fields)), ensure_ascii=False)


def _get(db: Session, template_id: str) -> SurveyTemplate:
    t = db.get(SurveyTemplate, template_id)
    require(t is not None, "Template not found.", 404)
    return t


@router.get("")
def list_templates(db: Session = Depends(get_db), admin: str = Depends(get_current_admin)):
    with store_guard(db):
        items = db.query(SurveyTemplate).order_by(SurveyTemplate.name.asc()).all()
    return {"templates": [_out(t) for t in items]}


@router.get("/{template_id}")
def get_one(template_id: str, db: Session = Depends(get_db), admin: str = Depends(get_current_admin)):
    with store_guard(db):
        t = _get(db, template_id)
    return _out(t)


@router.post("", status_code=201)
def create(body: TemplateIn, db: Session = Depends(get_db), admin: str = Depends(get_current_admin)):
    with store_guard(db):
        t = SurveyTemplate(id=uuid.uuid4().hex, created_at=utcnow())
        _apply(t, body)
        db.add(t)
        db.commit()
        db.refresh(t)
    return _out(t)


@router.put("/{template_id}")
def update(template_id: str, body: TemplateIn, db: Session = Depends(get_db), admin: str = Depends(get_current_admin)):
    with store_guard(db):
        t = _get(db, template_id)
        _apply(t, body)
        t.updated_at = utcnow()
        db.commit()
        db.refresh(t)
    return _out(t)


@router.delete("/{template_id}")
def delete(template_id: str, db: Session = Depends(get_db), admin: str = Depends(get_current_admin)):
    with store_guard(db):
        t = db.get(SurveyTemplate, template_id)
        if t:
            db.delete(t)
            db.commit()
    return {"ok": True}
