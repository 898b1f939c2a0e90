"""Coverage of a survey over the organization registry.

Everything here is computed in memory from two inputs: the registry
(optionally narrowed to the survey's target organization types) and the ids
of organizations that have a submission. Counts are grouped overall, by
region, by organization type and by (region, type) for drill-down, and the
"drawer" lists the organizations behind any of those cells.

Rates are percentages with one decimal, rounded half-up on the per-mille
value: round(submitted / target * 1000) / 10, and 0.0 for an empty target.
"""

from __future__ import annotations

import enum
import unicodedata
from dataclasses import dataclass
from typing import Iterable

from surveydesk.core.config import settings
from surveydesk.core.registry import OrganizationRecord, org_code


class DrawerStatus(str, enum.Enum):
    SUBMITTED = "SUBMITTED"
    NOT_SUBMITTED = "NOT_SUBMITTED"


def submitted_rate(submitted: int, target: int) -> float:
    if target <= 0:
        return 0.0
    # integer half-up: floor(submitted * 1000 / target + 1/2)
    per_mille = (2 * submitted * 1000 + target) // (2 * target)
    return per_mille / 10


@dataclass(frozen=True, slots=True)
class CoverageStat:
    key: str
    target_count: int
    submitted_count: int

    @property
    def not_submitted_count(self) -> int:
        return self.target_count - self.submitted_count

    @property
    def submitted_rate(self) -> float:
        return submitted_rate(self.submitted_count, self.target_count)

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "target_count": self.target_count,
            "submitted_count": self.submitted_count,
            "not_submitted_count": self.not_submitted_count,
            "submitted_rate": self.submitted_rate,
        }


@dataclass(frozen=True, slots=True)
class RegionTypeStat:
    region: str
    organization_type: str
    target_count: int
    submitted_count: int

    @property
    def not_submitted_count(self) -> int:
        return self.target_count - self.submitted_count

    @property
    def submitted_rate(self) -> float:
        return submitted_rate(self.submitted_count, self.target_count)

    def to_dict(self) -> dict:
        return {
            "region": self.region,
            "organization_type": self.organization_type,
            "target_count": self.target_count,
            "submitted_count": self.submitted_count,
            "not_submitted_count": self.not_submitted_count,
            "submitted_rate": self.submitted_rate,
        }


def collate_key(s: str) -> str:
    return unicodedata.normalize("NFKC", s or "").casefold()


def region_sort_key(region: str, order: list[str]) -> tuple:
    idx = order.index(region) if region in order else len(order)
    return (idx, collate_key(region), region)


def type_sort_key(organization_type: str) -> tuple:
    return (collate_key(organization_type), organization_type)


class CoverageReport:
    """Registry x submitted organizations, grouped for the statistics view."""

    def __init__(
        self,
        organizations: Iterable[OrganizationRecord],
        submitted_ids: Iterable[str],
        target_types: Iterable[str] = (),
        *,
        region_order: list[str] | None = None,
        unclassified_label: str | None = None,
    ):
        types = {t for t in (target_types or ()) if t}
        self.region_order = list(region_order) if region_order is not None else settings.region_order()
        self.unclassified = unclassified_label if unclassified_label is not None else settings.UNCLASSIFIED_LABEL

        self.targets: list[OrganizationRecord] = [
            o for o in organizations if not types or o.organization_type in types
        ]
        self.submitted_codes: set[str] = {c for c in (org_code(x) for x in submitted_ids) if c}

    def is_submitted(self, org: OrganizationRecord) -> bool:
        return org.code in self.submitted_codes

    def region_of(self, org: OrganizationRecord) -> str:
        return org.region or self.unclassified

    def type_of(self, org: OrganizationRecord) -> str:
        return org.organization_type or self.unclassified

    def _count(self, key_fn) -> dict:
        counts: dict = {}
        for o in self.targets:
            k = key_fn(o)
            total, done = counts.get(k, (0, 0))
            counts[k] = (total + 1, done + (1 if self.is_submitted(o) else 0))
        return counts

    def overall(self) -> CoverageStat:
        submitted = sum(1 for o in self.targets if self.is_submitted(o))
        return CoverageStat(key="all", target_count=len(self.targets), submitted_count=submitted)

    def by_region(self) -> list[CoverageStat]:
        counts = self._count(self.region_of)
        keys = sorted(counts, key=lambda k: region_sort_key(k, self.region_order))
        return [CoverageStat(k, *counts[k]) for k in keys]

    def by_type(self) -> list[CoverageStat]:
        counts = self._count(self.type_of)
        keys = sorted(counts, key=type_sort_key)
        return [CoverageStat(k, *counts[k]) for k in keys]

    def by_region_type(self) -> list[RegionTypeStat]:
        counts = self._count(lambda o: (self.region_of(o), self.type_of(o)))
        keys = sorted(
            counts,
            key=lambda k: (region_sort_key(k[0], self.region_order), type_sort_key(k[1])),
        )
        return [RegionTypeStat(r, t, *counts[(r, t)]) for r, t in keys]

    def types_in_region(self, region: str) -> list[RegionTypeStat]:
        """Drill-down rows of one region, by organization type."""
        return [s for s in self.by_region_type() if s.region == region]

    def drawer(
        self,
        status: DrawerStatus | str,
        *,
        region: str = "",
        organization_type: str = "",
        q: str = "",
    ) -> list[OrganizationRecord]:
        """Organizations behind a cell, sorted by (region order, type, name)."""
        want_submitted = DrawerStatus(status) == DrawerStatus.SUBMITTED
        region = (region or "").strip()
        organization_type = (organization_type or "").strip()
        q = (q or "").strip().lower()

        out: list[OrganizationRecord] = []
        for o in self.targets:
            if self.is_submitted(o) != want_submitted:
                continue
            if region and self.region_of(o) != region:
                continue
            if organization_type and self.type_of(o) != organization_type:
                continue
            if q:
                hay = f"{o.name} {o.region} {o.organization_type}".lower()
                if q not in hay:
                    continue
            out.append(o)

        out.sort(
            key=lambda o: (
                region_sort_key(self.region_of(o), self.region_order),
                type_sort_key(self.type_of(o)),
                collate_key(o.name),
                o.id,
            )
        )
        return out

    def to_dict(self) -> dict:
        drill: dict[str, list[dict]] = {}
        for s in self.by_region_type():
            drill.setdefault(s.region, []).append(s.to_dict())
        return {
            "overall": self.overall().to_dict(),
            "by_region": [s.to_dict() for s in self.by_region()],
            "by_type": [s.to_dict() for s in self.by_type()],
            "by_region_type": drill,
        }
