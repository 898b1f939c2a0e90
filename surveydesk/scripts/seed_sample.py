from __future__ import annotations

import json
import logging
from datetime import timedelta

from sqlalchemy.orm import Session

from surveydesk.core.window import utcnow
from surveydesk.db.models.survey import Survey
from surveydesk.db.models.survey_template import SurveyTemplate
from surveydesk.utils.schema import check_fields

logger = logging.getLogger("surveydesk.seed")

SAMPLE_SURVEY_ID = "sample-staffing-survey"
SAMPLE_TEMPLATE_ID = "sample-staffing-template"

SAMPLE_FIELDS = [
    {"id": "contact", "label": "담당자", "kind": "text", "required": True},
    {"id": "counsellors", "label": "상담 인력 수", "kind": "number", "required": True},
    {"id": "started_on", "label": "사업 시작일", "kind": "date"},
    {
        "id": "programs",
        "label": "운영 프로그램",
        "kind": "multiSelect",
        "options": ["개인 상담", "집단 상담", "교육"],
    },
    {
        "id": "staff",
        "label": "인력 현황",
        "kind": "table",
        "required": True,
        "tableSchema": {
            "columns": [
                {"id": "name", "label": "성명", "kind": "text", "required": True},
                {"id": "role", "label": "직종", "kind": "singleSelect", "options": ["의사", "간호사", "상담사"]},
                {"id": "hired_on", "label": "채용일", "kind": "date"},
            ],
            "minRows": 1,
            "maxRows": 50,
            "notApplicableDescription": "배치된 인력 없음",
        },
    },
]


def seed_sample(db: Session) -> None:
    """Create one open survey and one template if they are not there yet."""
    errors = check_fields(SAMPLE_FIELDS)
    if errors:
        raise ValueError("; ".join(errors))
    fields_json = json.dumps(SAMPLE_FIELDS, ensure_ascii=False)

    if db.get(SurveyTemplate, SAMPLE_TEMPLATE_ID) is None:
        db.add(
            SurveyTemplate(
                id=SAMPLE_TEMPLATE_ID,
                name="인력 현황 조사",
                description="기관별 인력 배치 현황",
                fields_json=fields_json,
                created_at=utcnow(),
            )
        )
        db.flush()

    if db.get(Survey, SAMPLE_SURVEY_ID) is None:
        now = utcnow()
        db.add(
            Survey(
                id=SAMPLE_SURVEY_ID,
                title="2026년 기관 인력 현황 조사",
                description="샘플 설문입니다.",
                requesting_unit="정신건강정책과",
                opens_at=now - timedelta(days=1),
                closes_at=now + timedelta(days=30),
                manually_closed=False,
                target_org_types_json=json.dumps(["보건소", "정신건강복지센터"], ensure_ascii=False),
                fields_json=fields_json,
                created_at=now,
            )
        )
        db.flush()
        logger.info("Seeded sample survey %s", SAMPLE_SURVEY_ID)


def main() -> int:
    from surveydesk.db.session import SessionLocal

    logging.basicConfig(level=logging.INFO)
    db = SessionLocal()
    try:
        seed_sample(db)
        db.commit()
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
