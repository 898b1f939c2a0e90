from surveydesk.utils.answer_stats import answer_statistics
from surveydesk.utils.schema import normalize_answers, parse_fields

FIELDS = parse_fields(
    [
        {"id": "count", "label": "Count", "kind": "number"},
        {"id": "kind", "label": "Kind", "kind": "singleSelect", "options": ["a", "b"]},
        {"id": "tags", "label": "Tags", "kind": "multiSelect", "options": ["x", "y"]},
        {"id": "memo", "label": "Memo", "kind": "longText"},
        {
            "id": "staff",
            "label": "Staff",
            "kind": "table",
            "tableSchema": {
                "columns": [
                    {"id": "name", "label": "Name", "kind": "text"},
                    {"id": "role", "label": "Role", "kind": "singleSelect", "options": ["doctor", "nurse"]},
                    {"id": "hours", "label": "Hours", "kind": "number"},
                ]
            },
        },
    ]
)

LEFTOVER = [{"id": f"R{i}", "cellValues": {"name": "old", "role": "doctor", "hours": 99}} for i in range(3)]


def _stats(answers_list):
    stats = answer_statistics(FIELDS, [normalize_answers(FIELDS, a) for a in answers_list])
    return {f["field_id"]: f for f in stats["fields"]}, stats


def test_scalar_fields():
    by_id, stats = _stats(
        [
            {"count": "4", "kind": "a", "tags": ["x", "y"], "memo": "hi"},
            {"count": 2, "kind": "a", "tags": ["y"]},
            {"count": "n/a", "kind": "b"},
        ]
    )
    assert stats["submissions"] == 3
    assert (by_id["count"]["count"], by_id["count"]["sum"], by_id["count"]["average"]) == (2, 6.0, 3.0)
    assert by_id["count"]["answered"] == 3
    assert by_id["kind"]["options"] == {"a": 2, "b": 1}
    assert by_id["tags"]["options"] == {"x": 1, "y": 2}
    assert by_id["memo"]["answered"] == 1


def test_not_applicable_table_counts_zero_rows():
    by_id, _ = _stats(
        [
            {"staff": {"status": "NONE", "rows": LEFTOVER}},
            {
                "staff": {
                    "status": "INPUT",
                    "rows": [
                        {"id": "R1", "cellValues": {"name": "Lee", "role": "nurse", "hours": "40"}},
                        {"id": "R2", "cellValues": {"name": "Park", "role": "nurse", "hours": "?"}},
                    ],
                }
            },
        ]
    )
    staff = by_id["staff"]
    assert staff["rows"] == 2
    assert staff["not_applicable"] == 1
    assert staff["columns"]["role"] == {"options": {"doctor": 0, "nurse": 2}}
    assert staff["columns"]["hours"] == {"count": 1, "sum": 40.0, "average": 40.0}


def test_no_submissions():
    by_id, stats = _stats([])
    assert stats["submissions"] == 0
    assert by_id["count"]["average"] is None
    assert by_id["staff"]["rows"] == 0
