import pytest

from surveydesk.core.registry import OrganizationRecord
from surveydesk.utils.coverage import CoverageReport, DrawerStatus, submitted_rate

ORDER = ["전국", "서울", "부산", "경기"]


@pytest.mark.parametrize(
    "submitted, target, rate",
    [
        (0, 0, 0.0),
        (6, 10, 60.0),
        (1, 3, 33.3),
        (2, 3, 66.7),
        (1, 16, 6.3),  # 62.5 per mille rounds up
        (10, 10, 100.0),
    ],
)
def test_submitted_rate(submitted, target, rate):
    assert submitted_rate(submitted, target) == rate


def test_target_types_exclude_other_types(registry):
    submitted = [f"HC{i:02d}" for i in range(6)] + ["CL00", "CL01"]
    report = CoverageReport(registry, submitted, ["health-center"], region_order=ORDER)

    overall = report.overall()
    assert (overall.target_count, overall.submitted_count, overall.not_submitted_count) == (10, 6, 4)
    assert overall.submitted_rate == 60.0
    assert [s.key for s in report.by_type()] == ["health-center"]


def test_empty_target_set(registry):
    report = CoverageReport(registry, ["HC00"], ["no-such-type"], region_order=ORDER)
    assert report.overall().submitted_rate == 0.0
    assert report.by_region() == []


def test_composite_submitted_ids_match(registry):
    report = CoverageReport(registry, ["health-center:HC00", " "], region_order=ORDER)
    assert report.overall().submitted_count == 1


def test_regions_follow_fixed_order_then_name():
    orgs = [
        OrganizationRecord("1", "a", "Zeta", "t"),
        OrganizationRecord("2", "b", "경기", "t"),
        OrganizationRecord("3", "c", "Alpha", "t"),
        OrganizationRecord("4", "d", "서울", "t"),
        OrganizationRecord("5", "e", "", "t"),
        OrganizationRecord("6", "f", "전국", "t"),
    ]
    report = CoverageReport(orgs, [], region_order=ORDER, unclassified_label="미분류")
    assert [s.key for s in report.by_region()] == ["전국", "서울", "경기", "Alpha", "Zeta", "미분류"]


def test_region_drill_down(registry):
    report = CoverageReport(registry, ["HC00", "CL00"], region_order=ORDER)
    rows = report.types_in_region("서울")
    assert [(r.organization_type, r.target_count, r.submitted_count) for r in rows] == [
        ("clinic", 2, 1),
        ("health-center", 4, 1),
    ]
    assert report.to_dict()["by_region_type"]["서울"][1]["submitted_rate"] == 25.0


def test_unclassified_bucket(registry):
    report = CoverageReport(registry, [], region_order=ORDER, unclassified_label="미분류")
    assert report.by_region()[-1].key == "미분류"
    assert report.by_type()[-1].key == "미분류"


def test_drawer_filters_and_order(registry):
    report = CoverageReport(registry, ["HC00", "HC03"], ["health-center"], region_order=ORDER)

    done = report.drawer(DrawerStatus.SUBMITTED)
    assert [o.id for o in done] == ["HC00", "HC03"]

    pending = report.drawer("NOT_SUBMITTED")
    assert len(pending) == 8
    assert [o.region for o in pending] == ["서울"] * 2 + ["부산"] * 3 + ["경기"] * 3
    assert [o.id for o in pending[:2]] == ["HC06", "HC09"]

    busan = report.drawer(DrawerStatus.NOT_SUBMITTED, region="부산", q="center 07")
    assert [o.id for o in busan] == ["HC07"]
