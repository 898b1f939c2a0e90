from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from surveydesk.auth.deps import get_current_admin
from surveydesk.core.errors import NotFound
from surveydesk.core.registry import OrganizationRegistry, get_registry
from surveydesk.db.session import get_db
from surveydesk.utils.schema import OWNERSHIP_KEY, table_row_counts
from surveydesk.utils.submission_store import (
    create_or_replace,
    get_survey,
    list_submissions,
    lookup_own,
    store_guard,
    update_own,
)

router = APIRouter(prefix="/submissions", tags=["submissions"])


class SubmissionIn(BaseModel):
    survey_id: str
    organization_id: str
    organization_name: str = ""
    answers: dict = Field(default_factory=dict)
    # Optional; may also be sent inside answers under the reserved key.
    ownership_token: str | None = None


class LookupIn(BaseModel):
    survey_id: str
    organization_id: str
    ownership_token: str = ""


class UpdateIn(BaseModel):
    survey_id: str
    organization_id: str
    ownership_token: str = ""
    answers: dict = Field(default_factory=dict)


@router.post("")
def submit(body: SubmissionIn, db: Session = Depends(get_db), registry: OrganizationRegistry = Depends(get_registry)):
    answers = dict(body.answers)
    if body.ownership_token is not None:
        answers[OWNERSHIP_KEY] = body.ownership_token

    name = (body.organization_name or "").strip()
    if not name:
        org = registry.get(body.organization_id)
        name = org.name if org else ""

    rec = create_or_replace(db, body.survey_id, body.organization_id, name, answers)
    return rec.to_dict()


@router.post("/lookup")
def lookup(body: LookupIn, db: Session = Depends(get_db)):
    found = lookup_own(db, body.survey_id, body.organization_id, body.ownership_token)
    if not found:
        raise NotFound()
    return {"submissions": [r.to_dict() for r in found]}


@router.put("/{submission_id}")
def update(submission_id: str, body: UpdateIn, db: Session = Depends(get_db)):
    rec = update_own(
        db,
        submission_id,
        body.survey_id,
        body.organization_id,
        body.ownership_token,
        body.answers,
    )
    return rec.to_dict()


@router.get("")
def admin_list(survey_id: str, db: Session = Depends(get_db), admin: str = Depends(get_current_admin)):
    records = list_submissions(db, survey_id)
    with store_guard(db):
        fields = get_survey(db, survey_id).fields
    items = []
    for r in records:
        d = r.to_dict()
        d["table_row_counts"] = table_row_counts(fields, r.answers)
        items.append(d)
    return {"total": len(items), "submissions": items}
