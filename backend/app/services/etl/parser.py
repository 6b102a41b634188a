"""Decode an uploaded byte buffer into a header row plus data rows."""
from __future__ import annotations

import io
import json
from dataclasses import dataclass, field
from typing import Any

import pandas as pd

from app.core.logging import logger
from app.db.models.data_import import FileKind
from app.services.etl.errors import DataImportError, EmptyFile, MalformedFile, UnsupportedFormat
from app.services.etl.utils import from_text, to_scalar


@dataclass
class ParsedTable:
    header: list[Any]
    rows: list[list[Any]] = field(default_factory=list)

    @property
    def width(self) -> int:
        return len(self.header)


def _rectangular(header: list[Any], rows: list[list[Any]]) -> ParsedTable:
    rows = [r for r in rows if any(v is not None for v in r)]
    width = max([len(header)] + [len(r) for r in rows])
    header = header + [None] * (width - len(header))
    rows = [r + [None] * (width - len(r)) for r in rows]

    # trailing columns with neither a header nor any value are padding
    while width and header[width - 1] is None and all(r[width - 1] is None for r in rows):
        width -= 1
    return ParsedTable(header=header[:width], rows=[r[:width] for r in rows])


def _frame_rows(df: pd.DataFrame) -> list[list[Any]]:
    return [[to_scalar(v) for v in row] for row in df.itertuples(index=False, name=None)]


def _parse_csv(content: bytes) -> ParsedTable:
    try:
        head = pd.read_csv(io.BytesIO(content), header=None, nrows=1, dtype=str, keep_default_na=False)
    except pd.errors.EmptyDataError:
        raise EmptyFile("File is empty")
    header = [to_scalar(v) for v in head.iloc[0].tolist()]
    try:
        df = pd.read_csv(io.BytesIO(content), header=None, skiprows=1, dtype=str, keep_default_na=False)
    except pd.errors.EmptyDataError:
        raise EmptyFile("File must contain at least a header row and one data row")
    rows = [[from_text(v) for v in row] for row in df.itertuples(index=False, name=None)]
    return _rectangular(header, rows)


def _parse_excel(content: bytes) -> ParsedTable:
    df = pd.read_excel(io.BytesIO(content), sheet_name=0, header=None, dtype=object)
    rows = _frame_rows(df)
    if not rows:
        raise EmptyFile("No sheet data found in the workbook")
    return _rectangular(rows[0], rows[1:])


def _parse_json(content: bytes) -> ParsedTable:
    doc = json.loads(content.decode("utf-8-sig"))
    if not isinstance(doc, list):
        raise MalformedFile("JSON document must be a list of objects or a list of rows")
    if not doc:
        raise EmptyFile("File must contain at least a header row and one data row")

    if all(isinstance(item, dict) for item in doc):
        header: list[Any] = []
        for item in doc:
            for k in item:
                if k not in header:
                    header.append(k)
        rows = [[to_scalar(item.get(k)) for k in header] for item in doc]
        return _rectangular(header, rows)

    if all(isinstance(item, list) for item in doc):
        rows = [[to_scalar(v) for v in item] for item in doc]
        return _rectangular(rows[0], rows[1:])

    raise MalformedFile("JSON rows must be all objects or all lists")


_DECODERS = {
    FileKind.csv.value: _parse_csv,
    FileKind.excel.value: _parse_excel,
    FileKind.json.value: _parse_json,
}


def parse(content: bytes, file_type: str) -> ParsedTable:
    """Row 0 is always the header; data starts at row 1."""
    kind = file_type.value if isinstance(file_type, FileKind) else str(file_type)
    decoder = _DECODERS.get(kind)
    if decoder is None:
        if kind == FileKind.access.value:
            raise UnsupportedFormat("Access databases are not supported yet")
        raise UnsupportedFormat(f"Unsupported file type: {kind}")

    try:
        table = decoder(content)
    except DataImportError:
        raise
    except Exception as e:
        logger.warning("decode_failed", file_type=kind, error=str(e))
        raise MalformedFile(str(e) or e.__class__.__name__) from e

    if not table.rows:
        raise EmptyFile("File must contain at least a header row and one data row")
    return table
