"""Single-value semantic type classification."""
from __future__ import annotations

import datetime as dt
import math
import numbers
from enum import Enum
from typing import Any

import numpy as np


class ColumnType(str, Enum):
    text = "text"
    integer = "integer"
    numeric = "numeric"
    boolean = "boolean"
    timestamp = "timestamp"


_DATE_FORMATS = (
    "%d.%m.%Y",
    "%d.%m.%Y %H:%M",
    "%d.%m.%Y %H:%M:%S",
    "%d/%m/%Y",
    "%d/%m/%Y %H:%M",
    "%m/%d/%Y",
    "%m/%d/%Y %H:%M",
    "%Y/%m/%d",
    "%Y/%m/%d %H:%M",
    "%d-%m-%Y",
    "%Y-%m-%d %H:%M",
    "%d %b %Y",
    "%d %B %Y",
    "%b %d %Y",
    "%b %d, %Y",
    "%B %d, %Y",
)


def is_missing(v: Any) -> bool:
    if v is None:
        return True
    if isinstance(v, float) and math.isnan(v):
        return True
    if isinstance(v, str) and not v.strip():
        return True
    return False


def parse_timestamp(s: str) -> dt.datetime | None:
    s = s.strip()
    if not s or not any(ch.isdigit() for ch in s):
        return None
    try:
        return dt.datetime.fromisoformat(s.replace("Z", "+00:00"))
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return dt.datetime.strptime(s, fmt)
        except ValueError:
            continue
    return None


def classify(sample: Any) -> ColumnType:
    """Classify one sample value. Total: never raises.

    ``bool`` is tested before numbers because it is an ``int`` subclass.
    """
    if isinstance(sample, np.generic):
        sample = sample.item()
    if is_missing(sample):
        return ColumnType.text
    if isinstance(sample, bool):
        return ColumnType.boolean
    if isinstance(sample, numbers.Integral):
        return ColumnType.integer
    if isinstance(sample, numbers.Real):
        f = float(sample)
        if math.isfinite(f) and f.is_integer():
            return ColumnType.integer
        return ColumnType.numeric
    if isinstance(sample, (dt.datetime, dt.date, dt.time)):
        return ColumnType.timestamp
    if isinstance(sample, str) and parse_timestamp(sample) is not None:
        return ColumnType.timestamp
    return ColumnType.text
