import pytest

FIELDS = [
    {"id": "q1", "label": "Counsellors", "kind": "number", "required": True},
    {
        "id": "staff",
        "label": "Staff",
        "kind": "table",
        "required": True,
        "tableSchema": {"columns": [{"id": "name", "label": "Name", "kind": "text", "required": True}]},
    },
]

STAFF = {"status": "INPUT", "rows": [{"id": "R1", "cellValues": {"name": "Lee"}}, {"id": "R2", "cellValues": {"name": "Park"}}]}


@pytest.fixture
def survey_id(client):
    r = client.post("/surveys", json={"title": "Staffing", "fields": FIELDS})
    return r.json()["id"]


def _submit(client, survey_id, org="HC00", token="tok", **answers):
    body = {
        "survey_id": survey_id,
        "organization_id": org,
        "answers": {"q1": 3, "staff": STAFF, **answers},
        "ownership_token": token,
    }
    return client.post("/submissions", json=body)


def test_submit_fills_name_from_registry_and_hides_token(client, survey_id):
    r = _submit(client, survey_id)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["organization_name"] == "Health Center 00"
    assert "__system_user_id" not in body["answers"]
    assert body["answers"]["staff"]["rows"][1]["cellValues"] == {"name": "Park"}


def test_validation_error_payload(client, survey_id):
    r = _submit(client, survey_id, q1="lots", staff={"status": "INPUT", "rows": [{"id": "R1", "cellValues": {}}]})
    assert r.status_code == 422
    violations = r.json()["violations"]
    assert violations[0] == {"fieldId": "q1", "message": "'Counsellors' must be a number."}
    assert violations[1]["rowId"] == "R1"
    assert violations[1]["columnId"] == "name"


def test_lookup_and_update(client, survey_id):
    sub_id = _submit(client, survey_id).json()["id"]

    r = client.post("/submissions/lookup", json={"survey_id": survey_id, "organization_id": "HC00", "ownership_token": "tok"})
    assert r.status_code == 200
    assert [s["id"] for s in r.json()["submissions"]] == [sub_id]

    r = client.put(
        f"/submissions/{sub_id}",
        json={
            "survey_id": survey_id,
            "organization_id": "HC00",
            "ownership_token": "tok",
            "answers": {"q1": 5, "staff": {"status": "NONE", "rows": STAFF["rows"]}},
        },
    )
    assert r.status_code == 200
    assert r.json()["answers"]["staff"] == {"status": "NONE", "rows": []}
    assert r.json()["updated_at"] is not None


def test_wrong_token_does_not_leak_existence(client, survey_id):
    sub_id = _submit(client, survey_id).json()["id"]

    wrong = client.post("/submissions/lookup", json={"survey_id": survey_id, "organization_id": "HC00", "ownership_token": "nope"})
    missing = client.post("/submissions/lookup", json={"survey_id": survey_id, "organization_id": "HC01", "ownership_token": "tok"})
    assert wrong.status_code == missing.status_code == 404
    assert wrong.json()["detail"] == missing.json()["detail"]

    r = client.put(
        f"/submissions/{sub_id}",
        json={"survey_id": survey_id, "organization_id": "HC00", "ownership_token": "nope", "answers": {"q1": 1, "staff": STAFF}},
    )
    assert r.status_code == 403
    assert r.json()["detail"] == wrong.json()["detail"]


def test_admin_listing_counts_table_rows(client, survey_id):
    _submit(client, survey_id, org="HC00")
    _submit(client, survey_id, org="HC01", staff={"status": "NONE", "rows": STAFF["rows"] * 2})

    r = client.get("/submissions", params={"survey_id": survey_id})
    assert r.status_code == 200
    counts = {s["organization_id"]: s["table_row_counts"] for s in r.json()["submissions"]}
    assert counts == {"HC00": {"staff": 2}, "HC01": {"staff": 0}}


def test_admin_listing_needs_session(anon_client):
    assert anon_client.get("/submissions", params={"survey_id": "x"}).status_code == 401


def test_unknown_survey(client):
    r = client.post("/submissions", json={"survey_id": "missing", "organization_id": "HC00", "answers": {}})
    assert r.status_code == 404
    assert r.json()["code"] == "not_found"


def test_non_finite_number_is_rejected_and_not_stored(client, survey_id):
    raw = '{"survey_id": "%s", "organization_id": "HC00", "answers": {"q1": NaN, "staff": {"status": "NONE", "rows": []}}}'
    r = client.post("/submissions", content=raw % survey_id, headers={"content-type": "application/json"})
    assert r.status_code == 422
    assert r.json()["violations"][0]["fieldId"] == "q1"

    listing = client.get("/submissions", params={"survey_id": survey_id})
    assert listing.status_code == 200
    assert listing.json()["total"] == 0


def test_oversized_integer_is_a_violation(client, survey_id):
    raw = '{"answers": {"q1": %s}}' % ("9" * 400)
    r = client.post(f"/surveys/{survey_id}/validate", content=raw, headers={"content-type": "application/json"})
    assert r.status_code == 200
    assert r.json()["violations"][0] == {"fieldId": "q1", "message": "'Counsellors' must be a number."}
