from __future__ import annotations

import json

from sqlalchemy.orm import Session

from surveydesk.core.config import settings
from surveydesk.core.redis import get_redis
from surveydesk.db.models.submission import Submission


def _key(survey_id: str) -> str:
    return f"coverage:submitted:{survey_id}"


def get_submitted_codes(db: Session, survey_id: str) -> set[str]:
    """Organization codes with a submission for the survey (cached with Redis TTL if available)."""
    r = get_redis()
    if r is not None:
        try:
            v = r.get(_key(survey_id))
            if v is not None:
                return set(json.loads(v))
        except Exception:
            pass

    rows = db.query(Submission.organization_code).filter(Submission.survey_id == survey_id).all()
    codes = {str(c) for (c,) in rows if c}

    if r is not None:
        try:
            r.setex(_key(survey_id), settings.COVERAGE_CACHE_TTL_SECONDS, json.dumps(sorted(codes)))
        except Exception:
            pass
    return codes


def invalidate_submitted(survey_id: str) -> None:
    r = get_redis()
    if r is None:
        return
    try:
        r.delete(_key(survey_id))
    except Exception:
        pass
