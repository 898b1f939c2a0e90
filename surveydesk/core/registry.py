"""Read-only organization registry.

Loaded once per process (see ``main.py``) and handed to the coverage engine
and the organization picker explicitly, so tests can pass a synthetic one.

Organization ids come in two historical forms, a bare code (``"12345"``) and
a composite ``"<type>:<code>"``. Both refer to the same organization when the
trailing code segment matches; :func:`org_code` gives that segment.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from typing import Iterable

from fastapi import Request

logger = logging.getLogger("surveydesk.registry")


def org_code(org_id) -> str:
    s = str(org_id if org_id is not None else "").strip()
    return s.rsplit(":", 1)[-1].strip() if ":" in s else s


def same_org(a, b) -> bool:
    ca = org_code(a)
    return bool(ca) and ca == org_code(b)


@dataclass(frozen=True, slots=True)
class OrganizationRecord:
    id: str
    name: str
    region: str = ""
    organization_type: str = ""

    @property
    def code(self) -> str:
        return org_code(self.id)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "region": self.region,
            "organization_type": self.organization_type,
        }


def _record_from_raw(raw: dict) -> OrganizationRecord | None:
    oid = str(raw.get("id") or "").strip()
    if not oid:
        return None
    name = raw.get("name")
    if name is None:
        name = raw.get("orgName")
    otype = raw.get("organizationType")
    if otype is None:
        otype = raw.get("orgType")
    return OrganizationRecord(
        id=oid,
        name=str(name or "").strip(),
        region=str(raw.get("region") or "").strip(),
        organization_type=str(otype or "").strip(),
    )


class OrganizationRegistry:
    """Ordered, immutable list of organizations with lookup by id/code."""

    def __init__(self, records: Iterable[OrganizationRecord] = ()):
        self.records: tuple[OrganizationRecord, ...] = tuple(records)
        self._by_code: dict[str, OrganizationRecord] = {}
        for r in self.records:
            self._by_code.setdefault(r.code, r)

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self):
        return iter(self.records)

    def get(self, org_id) -> OrganizationRecord | None:
        return self._by_code.get(org_code(org_id))

    def regions(self) -> list[str]:
        return sorted({r.region for r in self.records if r.region})

    def organization_types(self) -> list[str]:
        return sorted({r.organization_type for r in self.records if r.organization_type})

    def filter(self, *, region: str = "", organization_type: str = "", q: str = "") -> list[OrganizationRecord]:
        region = (region or "").strip()
        organization_type = (organization_type or "").strip()
        q = (q or "").strip().lower()
        out = []
        for r in self.records:
            if region and r.region != region:
                continue
            if organization_type and r.organization_type != organization_type:
                continue
            if q and q not in r.name.lower():
                continue
            out.append(r)
        return out

    @classmethod
    def from_list(cls, raw: list) -> "OrganizationRegistry":
        records = []
        for item in raw or []:
            if isinstance(item, dict):
                rec = _record_from_raw(item)
                if rec is not None:
                    records.append(rec)
        return cls(records)


def load_registry(path: str) -> OrganizationRegistry:
    """Load the registry JSON file. A missing file gives an empty registry."""
    if not path or not os.path.exists(path):
        logger.warning("Organization registry not found at %s; using an empty registry", path)
        return OrganizationRegistry()
    with open(path, encoding="utf-8") as fh:
        raw = json.load(fh)
    if not isinstance(raw, list):
        raise ValueError(f"Organization registry at {path} must be a JSON list")
    registry = OrganizationRegistry.from_list(raw)
    logger.info("Loaded %d organizations from %s", len(registry), path)
    return registry


def get_registry(request: Request) -> OrganizationRegistry:
    """FastAPI dependency: the registry loaded at startup (see main.py)."""
    return request.app.state.registry
