from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from surveydesk.db.base import Base


class Submission(Base):
    __tablename__ = "submissions"
    # One submission per organization per survey. The key uses the trailing
    # code segment so "type:code" and "code" land on the same row.
    __table_args__ = (UniqueConstraint("survey_id", "organization_code", name="uq_survey_org"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    survey_id: Mapped[str] = mapped_column(ForeignKey("surveys.id", ondelete="CASCADE"), index=True)

    # As sent by the submitter (bare code or "type:code")
    organization_id: Mapped[str] = mapped_column(String(120), index=True)
    organization_code: Mapped[str] = mapped_column(String(120), index=True)
    organization_name: Mapped[str] = mapped_column(String(200), default="")

    # Answers keyed by field id; also carries the ownership token under a reserved key.
    answers_json: Mapped[str] = mapped_column(Text, default="{}")

    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
