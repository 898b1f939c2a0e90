import pytest
from sqlalchemy.exc import OperationalError

from conftest import utc
from surveydesk.core.errors import Forbidden, NotFound, TransientError, ValidationError, WindowClosed
from surveydesk.db.models.submission import Submission
from surveydesk.utils.schema import OWNERSHIP_KEY
from surveydesk.utils.submission_store import (
    create_or_replace,
    list_submissions,
    lookup_own,
    store_guard,
    update_own,
)

Q1 = [{"id": "q1", "label": "Q1", "kind": "text", "required": True}]
JANUARY = dict(opens_at=utc(2024, 1, 1), closes_at=utc(2024, 1, 31, 23, 59))
MID_JANUARY = utc(2024, 1, 15, 10)


@pytest.fixture
def january(make_survey):
    return make_survey(Q1, **JANUARY)


def test_resubmission_replaces_the_record(db, january):
    first = create_or_replace(db, january.id, "A", "Org A", {"q1": "5"}, now=MID_JANUARY)
    assert first.organization_id == "A"
    assert utc(2024, 1, 1) <= first.submitted_at <= utc(2024, 1, 31, 23, 59)

    second = create_or_replace(db, january.id, "A", "Org A", {"q1": "7"}, now=utc(2024, 1, 16, 9))

    records = list_submissions(db, january.id)
    assert len(records) == 1
    assert records[0].answers == {"q1": "7"}
    assert records[0].submitted_at == utc(2024, 1, 16, 9)
    assert second.id == first.id


def test_composite_and_bare_ids_share_a_row(db, january):
    create_or_replace(db, january.id, "health-center:100", "Org", {"q1": "1"}, now=MID_JANUARY)
    create_or_replace(db, january.id, "100", "Org", {"q1": "2"}, now=MID_JANUARY)
    rows = db.query(Submission).all()
    assert len(rows) == 1
    assert rows[0].organization_code == "100"
    assert rows[0].organization_id == "100"


@pytest.mark.parametrize("now", [utc(2023, 12, 31), utc(2024, 2, 1)])
def test_out_of_window_create_writes_nothing(db, january, now):
    with pytest.raises(WindowClosed):
        create_or_replace(db, january.id, "A", "Org A", {"q1": "5"}, now=now)
    assert db.query(Submission).count() == 0


def test_manually_closed_survey_rejects_writes(db, make_survey):
    survey = make_survey(Q1, manually_closed=True)
    with pytest.raises(WindowClosed):
        create_or_replace(db, survey.id, "A", "Org A", {"q1": "5"})


def test_invalid_answers_write_nothing(db, january):
    with pytest.raises(ValidationError) as exc:
        create_or_replace(db, january.id, "A", "Org A", {"q1": ""}, now=MID_JANUARY)
    assert exc.value.to_dict()["violations"][0]["fieldId"] == "q1"
    assert db.query(Submission).count() == 0


def test_unknown_survey(db):
    with pytest.raises(NotFound):
        create_or_replace(db, "missing", "A", "Org A", {"q1": "5"})


def test_lookup_requires_exact_token(db, january):
    create_or_replace(db, january.id, "A", "Org A", {"q1": "5", OWNERSHIP_KEY: "s3cret"}, now=MID_JANUARY)

    found = lookup_own(db, january.id, "A", " s3cret ")
    assert len(found) == 1
    assert OWNERSHIP_KEY not in found[0].answers

    assert lookup_own(db, january.id, "type:A", "s3cret") == found
    assert lookup_own(db, january.id, "A", "S3CRET") == []
    assert lookup_own(db, january.id, "A", "") == []
    assert lookup_own(db, january.id, "B", "s3cret") == []
    assert lookup_own(db, "missing", "A", "s3cret") == []


def test_lookup_without_stored_token_finds_nothing(db, january):
    create_or_replace(db, january.id, "A", "Org A", {"q1": "5"}, now=MID_JANUARY)
    assert lookup_own(db, january.id, "A", "anything") == []


def test_update_own(db, january):
    rec = create_or_replace(db, january.id, "A", "Org A", {"q1": "5", OWNERSHIP_KEY: "tok"}, now=MID_JANUARY)
    later = utc(2024, 1, 20)

    updated = update_own(db, rec.id, january.id, "A", "tok", {"q1": "9", OWNERSHIP_KEY: "stolen"}, now=later)
    assert updated.answers == {"q1": "9"}
    assert updated.updated_at == later
    assert updated.submitted_at == MID_JANUARY

    # the stored token is kept whatever the client sends
    assert len(lookup_own(db, january.id, "A", "tok")) == 1
    assert lookup_own(db, january.id, "A", "stolen") == []


def test_update_own_rejections(db, january):
    rec = create_or_replace(db, january.id, "A", "Org A", {"q1": "5", OWNERSHIP_KEY: "tok"}, now=MID_JANUARY)

    with pytest.raises(Forbidden) as forbidden:
        update_own(db, rec.id, january.id, "A", "wrong", {"q1": "9"}, now=MID_JANUARY)
    with pytest.raises(NotFound) as not_found:
        update_own(db, "nope", january.id, "A", "tok", {"q1": "9"}, now=MID_JANUARY)
    with pytest.raises(NotFound):
        update_own(db, rec.id, january.id, "B", "tok", {"q1": "9"}, now=MID_JANUARY)
    with pytest.raises(WindowClosed):
        update_own(db, rec.id, january.id, "A", "tok", {"q1": "9"}, now=utc(2024, 3, 1))
    with pytest.raises(ValidationError):
        update_own(db, rec.id, january.id, "A", "tok", {"q1": " "}, now=MID_JANUARY)

    assert forbidden.value.message == not_found.value.message
    assert list_submissions(db, january.id)[0].answers == {"q1": "5"}


def test_update_without_stored_token_is_forbidden(db, january):
    rec = create_or_replace(db, january.id, "A", "Org A", {"q1": "5"}, now=MID_JANUARY)
    with pytest.raises(Forbidden):
        update_own(db, rec.id, january.id, "A", "", {"q1": "9"}, now=MID_JANUARY)
    with pytest.raises(Forbidden):
        update_own(db, rec.id, january.id, "A", "guess", {"q1": "9"}, now=MID_JANUARY)


def test_list_submissions_newest_first(db, january):
    create_or_replace(db, january.id, "A", "Org A", {"q1": "a"}, now=utc(2024, 1, 2))
    create_or_replace(db, january.id, "B", "Org B", {"q1": "b"}, now=utc(2024, 1, 3))
    assert [r.organization_id for r in list_submissions(db, january.id)] == ["B", "A"]


def test_store_failures_become_transient(db):
    with pytest.raises(TransientError) as exc:
        with store_guard(db):
            raise OperationalError("SELECT 1", {}, Exception("connection lost"))
    assert exc.value.retryable is True
    assert exc.value.status_code == 503
