"""Per-field statistics over the answers of a survey's submissions.

Input answers must be the read-side shape (``normalize_answers``), so a table
declared "not applicable" contributes zero rows whatever was left in it.

- number fields/columns: count, sum, average of values that parse as numbers
- singleSelect/multiSelect fields and singleSelect columns: count per option
- any other field: how many submissions answered it
- tables: total rows, submissions that marked the table NONE, plus the
  column statistics above over every INPUT row
"""

from __future__ import annotations

from typing import Any, Iterable

from surveydesk.utils.schema import FieldDefinition, is_empty, parse_number
from surveydesk.utils.table_grid import TABLE_STATUS_NONE, row_cells


class _NumberStat:
    __slots__ = ("count", "total")

    def __init__(self):
        self.count = 0
        self.total = 0.0

    def add(self, val: Any) -> None:
        n = parse_number(val)
        if n is None:
            return
        self.count += 1
        self.total += n

    def to_dict(self) -> dict:
        return {
            "count": self.count,
            "sum": self.total,
            "average": round(self.total / self.count, 2) if self.count else None,
        }


def _option_counts(options: tuple[str, ...]) -> dict[str, int]:
    return {o: 0 for o in options}


def _count_option(counts: dict[str, int], val: Any) -> None:
    if isinstance(val, str) and val:
        counts[val] = counts.get(val, 0) + 1


def _field_stat(f: FieldDefinition, answers_list: list[dict]) -> dict:
    out: dict = {"field_id": f.id, "label": f.label, "kind": f.kind}
    values = [a.get(f.id) for a in answers_list]
    out["answered"] = sum(1 for v in values if not is_empty(v))

    if f.kind == "number":
        stat = _NumberStat()
        for v in values:
            stat.add(v)
        out.update(stat.to_dict())

    elif f.kind == "singleSelect":
        counts = _option_counts(f.options)
        for v in values:
            _count_option(counts, v)
        out["options"] = counts

    elif f.kind == "multiSelect":
        counts = _option_counts(f.options)
        for v in values:
            for item in v if isinstance(v, list) else ():
                _count_option(counts, item)
        out["options"] = counts

    elif f.kind == "table":
        columns = f.table_schema.columns if f.table_schema else ()
        numbers = {c.id: _NumberStat() for c in columns if c.kind == "number"}
        selects = {c.id: _option_counts(c.options) for c in columns if c.kind == "singleSelect"}
        rows_total = 0
        not_applicable = 0
        for v in values:
            if not isinstance(v, dict):
                continue
            if v.get("status") == TABLE_STATUS_NONE:
                not_applicable += 1
            rows = v.get("rows") or []
            rows_total += len(rows)
            for row in rows:
                cells = row_cells(row)
                for cid, stat in numbers.items():
                    stat.add(cells.get(cid))
                for cid, counts in selects.items():
                    _count_option(counts, cells.get(cid))
        out["rows"] = rows_total
        out["not_applicable"] = not_applicable
        out["columns"] = {
            **{cid: stat.to_dict() for cid, stat in numbers.items()},
            **{cid: {"options": counts} for cid, counts in selects.items()},
        }

    return out


def answer_statistics(fields: Iterable[FieldDefinition], answers_list: Iterable[dict]) -> dict:
    answers_list = [a for a in answers_list if isinstance(a, dict)]
    return {
        "submissions": len(answers_list),
        "fields": [_field_stat(f, answers_list) for f in fields],
    }
