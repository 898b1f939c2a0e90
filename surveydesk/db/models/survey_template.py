from __future__ import annotations

import json
from datetime import datetime

from sqlalchemy import DateTime, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from surveydesk.db.base import Base
from surveydesk.utils.schema import FieldDefinition, parse_fields


class SurveyTemplate(Base):
    """Reusable field list an administrator can start a new survey from."""

    __tablename__ = "survey_templates"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), index=True)
    description: Mapped[str] = mapped_column(Text, default="")
    fields_json: Mapped[str] = mapped_column(Text, default="[]")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def fields(self) -> list[FieldDefinition]:
        try:
            raw = json.loads(self.fields_json or "[]")
        except Exception:
            raw = []
        return parse_fields(raw)
