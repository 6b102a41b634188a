import datetime as dt
import json
import math
import re
from pathlib import PurePath
from typing import Any

import numpy as np
import pandas as pd

from app.db.models.data_import import FileKind
from app.services.etl.errors import UnsupportedFormat

EXTENSION_KINDS = {
    "csv": FileKind.csv,
    "xls": FileKind.excel,
    "xlsx": FileKind.excel,
    "mdb": FileKind.access,
    "accdb": FileKind.access,
    "json": FileKind.json,
}

def safe_filename(filename: str) -> str:
    # drop any directory part a client may send, both / and \ separators
    name = PurePath(filename.replace("\\", "/")).name.strip()
    if not name or name in (".", ".."):
        raise UnsupportedFormat("File name is empty")
    return name

def file_kind_for(filename: str) -> FileKind:
    name = safe_filename(filename)
    ext = name.rsplit(".", 1)[-1].lower() if "." in name else ""
    kind = EXTENSION_KINDS.get(ext)
    if kind is None:
        raise UnsupportedFormat(f"Unsupported file type: .{ext}" if ext else "File has no extension")
    return kind

def table_name_for(filename: str) -> str:
    stem = re.sub(r"\.[^/.]+$", "", safe_filename(filename))
    return re.sub(r"\s+", "_", stem.lower())

def to_scalar(v: Any) -> Any:
    """Normalize a decoded cell to a plain Python scalar (or None)."""
    if v is None or v is pd.NaT:
        return None
    if isinstance(v, pd.Timestamp):
        return v.to_pydatetime()
    if isinstance(v, np.generic):
        v = v.item()
    if isinstance(v, float) and math.isnan(v):
        return None
    if isinstance(v, str):
        return v if v.strip() else None
    if isinstance(v, (dict, list)):
        return json.dumps(v, ensure_ascii=False, default=str)
    return v

def jsonable(v: Any) -> Any:
    """Form used when a cell is written to a JSON column."""
    if isinstance(v, (dt.datetime, dt.date, dt.time)):
        return v.isoformat()
    if isinstance(v, float) and not math.isfinite(v):
        return None
    return v

NUMBER_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")
# zip codes, account numbers, phones: the zeros are part of the value
LEADING_ZERO_RE = re.compile(r"^[+-]?0\d")
BOOL_TEXT = {"true": True, "false": False}

def from_text(v: Any) -> Any:
    """Typed value of a cell that was read as text (CSV)."""
    if not isinstance(v, str):
        return to_scalar(v)
    s = v.strip()
    if not s:
        return None
    if s.lower() in BOOL_TEXT:
        return BOOL_TEXT[s.lower()]
    if LEADING_ZERO_RE.match(s) or not NUMBER_RE.match(s):
        return v
    return to_scalar(pd.to_numeric(s))
