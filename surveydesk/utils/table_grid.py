"""Row/column value grid for ``table`` fields.

The grid editor on the client emits a list of rows on every edit:

    [{"id": "ROW...", "cellValues": {"<column id>": "value", ...}}, ...]

The stored answer for a table field wraps those rows with an explicit status:

    {"status": "INPUT", "rows": [...], "note": "..."}

``NONE`` means the respondent declared the table "not applicable"; its rows are
always treated as empty. Older records may carry ``UNKNOWN``, no status at all,
or a bare row list. Those are read as ``NONE`` by :func:`normalize_table_answer`.
Writes go through :func:`canonical_table_answer` and never produce them.
"""

from __future__ import annotations

import uuid
from typing import Any, Iterable


TABLE_STATUS_INPUT = "INPUT"
TABLE_STATUS_NONE = "NONE"
TABLE_STATUS_UNKNOWN = "UNKNOWN"  # legacy only

TABLE_STATUSES = (TABLE_STATUS_INPUT, TABLE_STATUS_NONE)


def new_row_id() -> str:
    return f"ROW{uuid.uuid4().hex[:16]}"


def row_cells(row: Any) -> dict:
    """Cell map of a row. Accepts the legacy ``data`` key."""

    if not isinstance(row, dict):
        return {}
    cells = row.get("cellValues")
    if cells is None:
        cells = row.get("data")
    return cells if isinstance(cells, dict) else {}


def empty_row(columns: Iterable) -> dict:
    return {"id": new_row_id(), "cellValues": {c.id: "" for c in columns}}


def normalize_rows(raw_rows: Any, columns: Iterable | None = None) -> list[dict]:
    """Bring editor output into the canonical row shape.

    - non-dict rows are dropped
    - a missing/blank row id gets a fresh one
    - with ``columns`` given, unknown cells are dropped and missing ones are ""
    """

    if not isinstance(raw_rows, list):
        return []

    col_ids = [c.id for c in columns] if columns is not None else None

    out: list[dict] = []
    for r in raw_rows:
        if not isinstance(r, dict):
            continue
        rid = str(r.get("id") or "").strip() or new_row_id()
        cells = row_cells(r)
        if col_ids is None:
            values = dict(cells)
        else:
            values = {cid: cells.get(cid, "") for cid in col_ids}
            values = {k: ("" if v is None else v) for k, v in values.items()}
        out.append({"id": rid, "cellValues": values})
    return out


def normalize_table_answer(raw: Any, columns: Iterable | None = None) -> dict:
    """Read-side normalization; never raises.

    Anything that is not a dict with status INPUT collapses to
    ``{"status": "NONE", "rows": []}`` (a note is kept when present).
    """

    if not isinstance(raw, dict):
        return {"status": TABLE_STATUS_NONE, "rows": []}

    status = str(raw.get("status") or "").strip().upper()
    note = str(raw.get("note") or "").strip()

    if status != TABLE_STATUS_INPUT:
        out: dict = {"status": TABLE_STATUS_NONE, "rows": []}
    else:
        out = {"status": TABLE_STATUS_INPUT, "rows": normalize_rows(raw.get("rows"), columns)}
    if note:
        out["note"] = note
    return out


def canonical_table_answer(raw: dict, columns: Iterable) -> dict:
    """Write-side shape. ``raw`` must already have passed validation."""

    status = raw.get("status")
    rows = [] if status == TABLE_STATUS_NONE else normalize_rows(raw.get("rows"), columns)
    out = {"status": status, "rows": rows}
    note = str(raw.get("note") or "").strip()
    if note:
        out["note"] = note
    return out


def row_count(answer: Any) -> int:
    """Number of rows that count for reporting (NONE => 0)."""

    return len(normalize_table_answer(answer)["rows"])
