from __future__ import annotations

import datetime as dt
import json
import re
from collections import Counter
from typing import Any, Sequence

from app.schemas.imports import ColumnDescriptor, ColumnPatterns
from app.services.etl.errors import SchemaError
from app.services.etl.inference import classify, is_missing, parse_timestamp

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
URL_RE = re.compile(r"^(?:https?://|www\.)\S+$", re.IGNORECASE)
PHONE_RE = re.compile(r"^\+?[\d\s().-]{7,20}$")


def format_sample(v: Any) -> str:
    if is_missing(v):
        return ""
    if isinstance(v, bool):
        return "true" if v else "false"
    if isinstance(v, (dt.datetime, dt.date, dt.time)):
        return v.isoformat()
    if isinstance(v, (dict, list)):
        return json.dumps(v, ensure_ascii=False, default=str)
    return str(v)


def detect_patterns(sample: Any) -> ColumnPatterns:
    if not isinstance(sample, str):
        return ColumnPatterns()
    s = sample.strip()
    digits = sum(ch.isdigit() for ch in s)
    return ColumnPatterns(
        email=bool(EMAIL_RE.match(s)),
        url=bool(URL_RE.match(s)),
        # dates like 2024-01-31 fit the phone alphabet
        phone=bool(PHONE_RE.match(s)) and digits >= 7 and parse_timestamp(s) is None,
    )


def check_header(header: Sequence[Any]) -> list[str]:
    names: list[str] = []
    empty: list[int] = []
    for i, h in enumerate(header):
        name = format_sample(h).strip()
        if not name:
            empty.append(i + 1)
        names.append(name)
    if empty:
        raise SchemaError(f"Empty column name at position(s): {', '.join(map(str, empty))}")
    dupes = [n for n, c in Counter(names).items() if c > 1]
    if dupes:
        raise SchemaError(f"Duplicate column name(s): {', '.join(sorted(dupes))}")
    return names


def _cell(row: Sequence[Any], i: int) -> Any:
    return row[i] if i < len(row) else None


def _hashable(v: Any) -> Any:
    try:
        hash(v)
        return v
    except TypeError:
        return format_sample(v)


def extract(header: Sequence[Any], sample_rows: Sequence[Sequence[Any]]) -> list[ColumnDescriptor]:
    """One descriptor per header position, in header order.

    Statistics cover only ``sample_rows``; callers pass a bounded prefix of
    the data, never the whole file.
    """
    names = check_header(header)
    out: list[ColumnDescriptor] = []
    for i, name in enumerate(names):
        values = [_cell(r, i) for r in sample_rows]
        present = [v for v in values if not is_missing(v)]
        sample = present[0] if present else None
        out.append(
            ColumnDescriptor(
                name=name,
                type=classify(sample).value,
                sample=format_sample(sample),
                null_count=len(values) - len(present),
                unique_count=len({_hashable(v) for v in present}),
                patterns=detect_patterns(sample),
            )
        )
    return out
