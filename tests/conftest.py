import json
import os
import uuid
from datetime import datetime, timezone

# Settings are read at import time; point them at throwaway backends first.
os.environ["DATABASE_DSN"] = "sqlite://"
os.environ["REDIS_URL"] = ""
os.environ["ORG_REGISTRY_PATH"] = ""
os.environ["APP_TIMEZONE"] = "UTC"

import pytest
from fastapi.testclient import TestClient

from surveydesk.auth.deps import get_current_admin
from surveydesk.core.registry import OrganizationRecord, OrganizationRegistry
from surveydesk.db.base import Base
from surveydesk.db.models.survey import Survey
from surveydesk.db.session import SessionLocal, engine
from surveydesk.main import app


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def build_registry() -> OrganizationRegistry:
    """10 health centers and 5 clinics over three regions, plus one unclassified org."""
    records = []
    regions = ["서울", "부산", "경기"]
    for i in range(10):
        records.append(
            OrganizationRecord(
                id=f"HC{i:02d}",
                name=f"Health Center {i:02d}",
                region=regions[i % 3],
                organization_type="health-center",
            )
        )
    for i in range(5):
        records.append(
            OrganizationRecord(
                id=f"CL{i:02d}",
                name=f"Clinic {i:02d}",
                region=regions[i % 3],
                organization_type="clinic",
            )
        )
    records.append(OrganizationRecord(id="X99", name="Support Office", region="", organization_type=""))
    return OrganizationRegistry(records)


@pytest.fixture
def registry():
    return build_registry()


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def make_survey(db):
    def _make(
        fields,
        *,
        opens_at=None,
        closes_at=None,
        manually_closed=False,
        target_org_types=(),
        title="Staffing survey",
    ):
        s = Survey(
            id=uuid.uuid4().hex,
            title=title,
            description="",
            requesting_unit="Policy unit",
            opens_at=opens_at,
            closes_at=closes_at,
            manually_closed=manually_closed,
            target_org_types_json=json.dumps(list(target_org_types)),
            fields_json=json.dumps(fields),
            created_at=datetime.now(timezone.utc),
        )
        db.add(s)
        db.commit()
        db.refresh(s)
        return s

    return _make


@pytest.fixture
def anon_client(db, registry):
    previous = app.state.registry
    app.state.registry = registry
    try:
        yield TestClient(app)
    finally:
        app.state.registry = previous
        app.dependency_overrides.clear()


@pytest.fixture
def client(anon_client):
    """Client with the administrator guard satisfied."""
    app.dependency_overrides[get_current_admin] = lambda: "admin"
    return anon_client
