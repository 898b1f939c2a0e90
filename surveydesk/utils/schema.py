"""Survey field schema and answer validation.

Stored shape (Survey.fields_json / SurveyTemplate.fields_json):

[
  {"id": "q1", "label": "Counsellors", "kind": "number", "required": true},
  {"id": "q2", "label": "Programs", "kind": "multiSelect", "options": ["A", "B"]},
  {
    "id": "q3",
    "label": "Staff",
    "kind": "table",
    "tableSchema": {
      "columns": [
        {"id": "name", "label": "Name", "kind": "text", "required": true, "displayWidth": 150},
        {"id": "role", "label": "Role", "kind": "singleSelect", "options": ["doctor", "nurse"]}
      ],
      "minRows": 1,
      "maxRows": 100,
      "notApplicableDescription": "No staff assigned"
    }
  }
]

Older surveys used "type" instead of "kind" (textarea/select/multiselect) and
kept table columns/minRows/maxRows directly on the field; those are accepted on
read.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field as dc_field
from datetime import datetime
from typing import Any, Iterable

from surveydesk.utils.table_grid import (
    TABLE_STATUS_INPUT,
    TABLE_STATUS_NONE,
    TABLE_STATUSES,
    canonical_table_answer,
    normalize_table_answer,
    row_cells,
    row_count,
)


FIELD_KINDS = ("text", "longText", "number", "date", "singleSelect", "multiSelect", "table")
COLUMN_KINDS = ("text", "number", "date", "singleSelect")
SELECT_KINDS = ("singleSelect", "multiSelect")

DEFAULT_COLUMN_WIDTH = 150
DEFAULT_MIN_ROWS = 1
DEFAULT_MAX_ROWS = 100

# Reserved answer key holding the submitter's ownership token.
OWNERSHIP_KEY = "__system_user_id"

_KIND_ALIASES = {
    "text": "text",
    "textarea": "longText",
    "longtext": "longText",
    "number": "number",
    "date": "date",
    "select": "singleSelect",
    "singleselect": "singleSelect",
    "multiselect": "multiSelect",
    "table": "table",
}


@dataclass(frozen=True, slots=True)
class ColumnDefinition:
    id: str
    label: str
    kind: str = "text"
    required: bool = False
    options: tuple[str, ...] = ()
    display_width: int = DEFAULT_COLUMN_WIDTH

    def to_dict(self) -> dict:
        out = {
            "id": self.id,
            "label": self.label,
            "kind": self.kind,
            "required": self.required,
            "displayWidth": self.display_width,
        }
        if self.kind == "singleSelect":
            out["options"] = list(self.options)
        return out


@dataclass(frozen=True, slots=True)
class TableSchema:
    columns: tuple[ColumnDefinition, ...]
    min_rows: int = DEFAULT_MIN_ROWS
    max_rows: int = DEFAULT_MAX_ROWS
    not_applicable_description: str = ""

    def to_dict(self) -> dict:
        out = {
            "columns": [c.to_dict() for c in self.columns],
            "minRows": self.min_rows,
            "maxRows": self.max_rows,
        }
        if self.not_applicable_description:
            out["notApplicableDescription"] = self.not_applicable_description
        return out


@dataclass(frozen=True, slots=True)
class FieldDefinition:
    id: str
    label: str
    kind: str = "text"
    required: bool = False
    description: str = ""
    options: tuple[str, ...] = ()
    table_schema: TableSchema | None = None

    def to_dict(self) -> dict:
        out: dict[str, Any] = {
            "id": self.id,
            "label": self.label,
            "kind": self.kind,
            "required": self.required,
        }
        if self.description:
            out["description"] = self.description
        if self.kind in SELECT_KINDS:
            out["options"] = list(self.options)
        if self.kind == "table" and self.table_schema is not None:
            out["tableSchema"] = self.table_schema.to_dict()
        return out


@dataclass(frozen=True, slots=True)
class FieldViolation:
    field_id: str
    message: str
    row_id: str | None = dc_field(default=None)
    column_id: str | None = dc_field(default=None)

    def to_dict(self) -> dict:
        out = {"fieldId": self.field_id, "message": self.message}
        if self.row_id is not None:
            out["rowId"] = self.row_id
        if self.column_id is not None:
            out["columnId"] = self.column_id
        return out


# ----------------------------
# Parsing helpers
# ----------------------------


def _norm_bool(v: Any, default: bool = False) -> bool:
    if v is None:
        return default
    if isinstance(v, bool):
        return v
    if isinstance(v, (int, float)):
        return bool(v)
    s = str(v).strip().lower()
    if s in ("1", "true", "yes", "y", "on"):
        return True
    if s in ("0", "false", "no", "n", "off"):
        return False
    return default


def _norm_int(v: Any, default: int, minimum: int = 0) -> int:
    try:
        n = int(v)
    except Exception:
        return default
    return n if n >= minimum else minimum


def _norm_kind(raw: dict) -> str:
    k = raw.get("kind")
    if k is None:
        k = raw.get("type")
    return _KIND_ALIASES.get(str(k or "text").strip().lower(), "")


def _norm_options(v: Any) -> tuple[str, ...]:
    if not isinstance(v, list):
        return ()
    out: list[str] = []
    for o in v:
        s = str(o if o is not None else "").strip()
        if s and s not in out:
            out.append(s)
    return tuple(out)


def _raw_table_schema(raw: dict) -> dict:
    ts = raw.get("tableSchema")
    if isinstance(ts, dict):
        return ts
    # legacy: columns/minRows/maxRows directly on the field
    return {
        "columns": raw.get("columns"),
        "minRows": raw.get("minRows"),
        "maxRows": raw.get("maxRows"),
    }


def parse_column(raw: Any) -> ColumnDefinition | None:
    if not isinstance(raw, dict):
        return None
    cid = str(raw.get("id") or "").strip()
    if not cid:
        return None
    kind = _norm_kind(raw)
    if kind not in COLUMN_KINDS:
        kind = "text"
    width = raw.get("displayWidth")
    if width is None:
        width = raw.get("width")
    return ColumnDefinition(
        id=cid,
        label=str(raw.get("label") or cid),
        kind=kind,
        required=_norm_bool(raw.get("required"), False),
        options=_norm_options(raw.get("options")) if kind == "singleSelect" else (),
        display_width=_norm_int(width, DEFAULT_COLUMN_WIDTH, 1),
    )


def parse_table_schema(raw: dict) -> TableSchema:
    ts = _raw_table_schema(raw)
    columns: list[ColumnDefinition] = []
    seen: set[str] = set()
    for c in ts.get("columns") or []:
        col = parse_column(c)
        if col is None or col.id in seen:
            continue
        seen.add(col.id)
        columns.append(col)
    min_rows = _norm_int(ts.get("minRows"), DEFAULT_MIN_ROWS, 0)
    max_rows = _norm_int(ts.get("maxRows"), DEFAULT_MAX_ROWS, 1)
    if max_rows < min_rows:
        max_rows = min_rows
    return TableSchema(
        columns=tuple(columns),
        min_rows=min_rows,
        max_rows=max_rows,
        not_applicable_description=str(ts.get("notApplicableDescription") or "").strip(),
    )


def parse_fields(raw: Any) -> list[FieldDefinition]:
    """Parse stored field definitions.

    Lenient: entries without an id, with an unknown kind, or with a duplicate
    id are skipped instead of failing the whole survey.
    """

    if not isinstance(raw, list):
        return []

    out: list[FieldDefinition] = []
    seen: set[str] = set()
    for f in raw:
        if not isinstance(f, dict):
            continue
        fid = str(f.get("id") or "").strip()
        kind = _norm_kind(f)
        if not fid or fid in seen or kind not in FIELD_KINDS:
            continue
        seen.add(fid)
        out.append(
            FieldDefinition(
                id=fid,
                label=str(f.get("label") or fid),
                kind=kind,
                required=_norm_bool(f.get("required"), False),
                description=str(f.get("description") or "").strip(),
                options=_norm_options(f.get("options")) if kind in SELECT_KINDS else (),
                table_schema=parse_table_schema(f) if kind == "table" else None,
            )
        )
    return out


def check_fields(raw: Any) -> list[str]:
    """Strict checks applied when an administrator saves a field list."""

    if not isinstance(raw, list):
        return ["fields must be a list."]

    errors: list[str] = []
    seen: set[str] = set()
    for i, f in enumerate(raw, start=1):
        if not isinstance(f, dict):
            errors.append(f"Field #{i} is not an object.")
            continue
        fid = str(f.get("id") or "").strip()
        label = str(f.get("label") or fid or f"#{i}")
        if not fid:
            errors.append(f"Field #{i} has no id.")
            continue
        if fid == OWNERSHIP_KEY:
            errors.append(f"Field id '{fid}' is reserved.")
            continue
        if fid in seen:
            errors.append(f"Field id '{fid}' is used more than once.")
            continue
        seen.add(fid)

        kind = _norm_kind(f)
        if kind not in FIELD_KINDS:
            errors.append(f"Field '{label}' has an unknown kind.")
            continue
        if kind in SELECT_KINDS and not _norm_options(f.get("options")):
            errors.append(f"Field '{label}' needs at least one option.")
        if kind == "table":
            errors.extend(_check_table_schema(label, _raw_table_schema(f)))
    return errors


def _check_table_schema(label: str, ts: dict) -> list[str]:
    errors: list[str] = []
    cols = ts.get("columns")
    if not isinstance(cols, list) or not cols:
        return [f"Table '{label}' needs at least one column."]

    seen: set[str] = set()
    for j, c in enumerate(cols, start=1):
        if not isinstance(c, dict) or not str(c.get("id") or "").strip():
            errors.append(f"Table '{label}': column #{j} has no id.")
            continue
        cid = str(c["id"]).strip()
        if cid in seen:
            errors.append(f"Table '{label}': column id '{cid}' is used more than once.")
            continue
        seen.add(cid)
        kind = _norm_kind(c)
        if kind not in COLUMN_KINDS:
            errors.append(f"Table '{label}': column '{c.get('label') or cid}' has an unknown kind.")
        elif kind == "singleSelect" and not _norm_options(c.get("options")):
            errors.append(f"Table '{label}': column '{c.get('label') or cid}' needs at least one option.")

    min_rows = _norm_int(ts.get("minRows"), DEFAULT_MIN_ROWS, 0)
    max_rows = _norm_int(ts.get("maxRows"), DEFAULT_MAX_ROWS, 1)
    if max_rows < min_rows:
        errors.append(f"Table '{label}': maxRows must not be less than minRows.")
    return errors


def dump_fields(fields: Iterable[FieldDefinition]) -> list[dict]:
    return [f.to_dict() for f in fields]


# ----------------------------
# Answer validation
# ----------------------------


def is_empty(val: Any) -> bool:
    if val is None:
        return True
    if isinstance(val, str):
        return val.strip() == ""
    if isinstance(val, (list, tuple, dict)):
        return len(val) == 0
    return False


def parse_number(val: Any) -> float | None:
    """IEEE-754 double or None. Never coerces garbage to empty."""

    if isinstance(val, bool):
        return None
    try:
        if isinstance(val, (int, float)):
            n = float(val)
        elif isinstance(val, str):
            n = float(val.strip())
        else:
            return None
    except (ValueError, OverflowError):
        return None
    # NaN and Infinity are not storable as JSON
    return n if math.isfinite(n) else None


def _check_value(kind: str, options: tuple[str, ...], val: Any, label: str) -> str | None:
    """Kind check for a non-empty value. Returns an error message or None."""

    if kind == "number":
        if parse_number(val) is None:
            return f"'{label}' must be a number."
    elif kind == "date":
        if not isinstance(val, str):
            return f"'{label}' must be a date."
        try:
            datetime.strptime(val.strip(), "%Y-%m-%d")
        except ValueError:
            return f"'{label}' must be a date in YYYY-MM-DD format."
    elif kind == "singleSelect":
        if not isinstance(val, str):
            return f"'{label}' must be one of the defined options."
        if options and val not in options:
            return f"'{label}' must be one of the defined options."
    elif kind == "multiSelect":
        if not isinstance(val, list) or not all(isinstance(v, str) for v in val):
            return f"'{label}' must be a list of options."
        if options and any(v not in options for v in val):
            return f"'{label}' contains an undefined option."
    elif kind in ("text", "longText"):
        if isinstance(val, list):
            if not all(isinstance(v, str) for v in val):
                return f"'{label}' must be text."
        elif isinstance(val, bool) or not isinstance(val, (str, int, float)):
            return f"'{label}' must be text."
        elif isinstance(val, float) and not math.isfinite(val):
            return f"'{label}' must be text."
    return None


def _validate_table(f: FieldDefinition, val: Any) -> list[FieldViolation]:
    ts = f.table_schema or TableSchema(columns=())

    if not isinstance(val, dict) or val.get("status") not in TABLE_STATUSES:
        return [FieldViolation(f.id, f"'{f.label}' must be a table answer with status INPUT or NONE.")]

    # "not applicable" answers the field, whatever rows were left behind
    if val.get("status") == TABLE_STATUS_NONE:
        return []

    rows = val.get("rows")
    if not isinstance(rows, list):
        return [FieldViolation(f.id, f"'{f.label}' rows must be a list.")]
    if not rows:
        return [FieldViolation(f.id, f"Field '{f.label}' is required.")] if f.required else []
    if len(rows) > ts.max_rows:
        return [FieldViolation(f.id, f"'{f.label}' allows at most {ts.max_rows} rows.")]

    out: list[FieldViolation] = []
    for n, row in enumerate(rows, start=1):
        if not isinstance(row, dict):
            out.append(FieldViolation(f.id, f"'{f.label}' row {n} is not a valid row."))
            continue
        rid = str(row.get("id") or "") or None
        cells = row_cells(row)
        for col in ts.columns:
            cell = cells.get(col.id)
            if is_empty(cell):
                if col.required:
                    out.append(
                        FieldViolation(
                            f.id, f"'{f.label}' row {n}: '{col.label}' is required.", row_id=rid, column_id=col.id
                        )
                    )
                continue
            err = _check_value(col.kind, col.options, cell, f"{f.label} row {n}: {col.label}")
            if err:
                out.append(FieldViolation(f.id, err, row_id=rid, column_id=col.id))
    return out


def validate_answers(fields: Iterable[FieldDefinition], answers: Any) -> list[FieldViolation]:
    if not isinstance(answers, dict):
        answers = {}

    out: list[FieldViolation] = []
    for f in fields:
        val = answers.get(f.id)

        if f.kind == "table":
            if is_empty(val):
                if f.required:
                    out.append(FieldViolation(f.id, f"Field '{f.label}' is required."))
                continue
            out.extend(_validate_table(f, val))
            continue

        if is_empty(val):
            if f.required:
                out.append(FieldViolation(f.id, f"Field '{f.label}' is required."))
            continue

        err = _check_value(f.kind, f.options, val, f.label)
        if err:
            out.append(FieldViolation(f.id, err))
    return out


def validate(survey, answers: Any) -> list[FieldViolation]:
    """Validate an answer map against the survey's current fields.

    Violations come back in field order (rows, then columns, inside tables).
    An empty list means the answers can be stored as-is.
    """

    return validate_answers(survey.fields, answers)


# ----------------------------
# Write / read shapes
# ----------------------------


def canonical_answers(fields: Iterable[FieldDefinition], answers: dict, token: str | None = None) -> dict:
    """Answers as they are written: schema fields only, tables in canonical shape."""

    out: dict[str, Any] = {}
    for f in fields:
        if f.id not in answers:
            continue
        val = answers[f.id]
        if f.kind == "table" and val is not None:
            cols = f.table_schema.columns if f.table_schema else ()
            val = canonical_table_answer(val, cols)
        out[f.id] = val
    if token is not None:
        out[OWNERSHIP_KEY] = token
    return out


def normalize_answers(fields: Iterable[FieldDefinition], answers: Any) -> dict:
    """Answers as they are read back: legacy table values coerced, token removed."""

    if not isinstance(answers, dict):
        return {}
    out = {k: v for k, v in answers.items() if k != OWNERSHIP_KEY}
    for f in fields:
        if f.kind == "table" and f.id in out:
            out[f.id] = normalize_table_answer(out[f.id])
    return out


def table_row_counts(fields: Iterable[FieldDefinition], answers: Any) -> dict[str, int]:
    if not isinstance(answers, dict):
        answers = {}
    return {f.id: row_count(answers.get(f.id)) for f in fields if f.kind == "table"}


__all__ = [
    "FIELD_KINDS",
    "COLUMN_KINDS",
    "OWNERSHIP_KEY",
    "TABLE_STATUS_INPUT",
    "TABLE_STATUS_NONE",
    "ColumnDefinition",
    "TableSchema",
    "FieldDefinition",
    "FieldViolation",
    "parse_fields",
    "check_fields",
    "dump_fields",
    "is_empty",
    "parse_number",
    "validate",
    "validate_answers",
    "canonical_answers",
    "normalize_answers",
    "table_row_counts",
]
