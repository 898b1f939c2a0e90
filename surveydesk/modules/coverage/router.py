from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from surveydesk.auth.deps import get_current_admin
from surveydesk.core.registry import OrganizationRegistry, get_registry
from surveydesk.core.window import window_status
from surveydesk.db.session import get_db
from surveydesk.utils.answer_stats import answer_statistics
from surveydesk.utils.coverage import CoverageReport, DrawerStatus
from surveydesk.utils.coverage_cache import get_submitted_codes
from surveydesk.utils.submission_store import get_survey, list_submissions, store_guard

router = APIRouter(prefix="/coverage", tags=["coverage"])


def _report(db: Session, survey_id: str, registry: OrganizationRegistry):
    with store_guard(db):
        survey = get_survey(db, survey_id)
        codes = get_submitted_codes(db, survey.id)
    return survey, CoverageReport(registry, codes, survey.target_org_types)


@router.get("/{survey_id}")
def overview(
    survey_id: str,
    db: Session = Depends(get_db),
    registry: OrganizationRegistry = Depends(get_registry),
    admin: str = Depends(get_current_admin),
):
    survey, report = _report(db, survey_id, registry)
    out = report.to_dict()
    out["survey_id"] = survey.id
    out["status"] = window_status(survey).value
    out["target_org_types"] = survey.target_org_types
    return out


@router.get("/{survey_id}/regions/{region}")
def region_detail(
    survey_id: str,
    region: str,
    db: Session = Depends(get_db),
    registry: OrganizationRegistry = Depends(get_registry),
    admin: str = Depends(get_current_admin),
):
    survey, report = _report(db, survey_id, registry)
    rows = report.types_in_region(region)
    return {"survey_id": survey.id, "region": region, "by_type": [r.to_dict() for r in rows]}


@router.get("/{survey_id}/orgs")
def drawer(
    survey_id: str,
    status: DrawerStatus = Query(DrawerStatus.NOT_SUBMITTED),
    region: str = "",
    org_type: str = "",
    q: str = "",
    db: Session = Depends(get_db),
    registry: OrganizationRegistry = Depends(get_registry),
    admin: str = Depends(get_current_admin),
):
    survey, report = _report(db, survey_id, registry)
    orgs = report.drawer(status, region=region, organization_type=org_type, q=q)
    return {
        "survey_id": survey.id,
        "status": status.value,
        "total": len(orgs),
        "orgs": [o.to_dict() for o in orgs],
    }


@router.get("/{survey_id}/answers")
def answers(
    survey_id: str,
    db: Session = Depends(get_db),
    admin: str = Depends(get_current_admin),
):
    records = list_submissions(db, survey_id)
    with store_guard(db):
        survey = get_survey(db, survey_id)
    out = answer_statistics(survey.fields, [r.answers for r in records])
    out["survey_id"] = survey.id
    return out
