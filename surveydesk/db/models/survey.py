from __future__ import annotations

import json
from datetime import datetime

from sqlalchemy import Boolean, DateTime, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from surveydesk.db.base import Base
from surveydesk.utils.schema import FieldDefinition, parse_fields


class Survey(Base):
    __tablename__ = "surveys"

    # uuid4 hex; shared with submitters as part of the survey link
    id: Mapped[str] = mapped_column(String(36), primary_key=True)

    title: Mapped[str] = mapped_column(String(200), index=True)
    description: Mapped[str] = mapped_column(Text, default="")
    requesting_unit: Mapped[str] = mapped_column(String(200), default="")

    # Submission window (stored as UTC). A missing bound is unbounded on that side.
    opens_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    closes_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Administrator override: forces CLOSED regardless of the window.
    manually_closed: Mapped[bool] = mapped_column(Boolean, default=False)

    # JSON list of organization types; [] means every type is eligible.
    target_org_types_json: Mapped[str] = mapped_column(Text, default="[]")

    # JSON list of field definitions (see surveydesk.utils.schema)
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

    @property
    def target_org_types(self) -> list[str]:
        try:
            raw = json.loads(self.target_org_types_json or "[]")
        except Exception:
            return []
        if not isinstance(raw, list):
            return []
        return [str(x).strip() for x in raw if str(x or "").strip()]
