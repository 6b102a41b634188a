"""Paginated browsing of ingested rows and audited single-cell edits."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.context import RequestContext
from app.core.logging import logger
from app.crud import imports as crud_imports
from app.crud import rows as crud_rows
from app.db.models.data_file_change import DataFileChange
from app.db.models.data_import import DataImport, ImportStatus
from app.services.etl.errors import ImportStateConflict, NotFound, PersistenceFailure


@dataclass
class Page:
    rows: list[dict[str, Any]]
    page: int
    page_size: int
    start_index: int
    total_rows: int
    total_pages: int


def column_names(run: DataImport) -> list[str]:
    cols = (run.columns_metadata or {}).get("columns") or []
    return [c["name"] for c in cols]


def get_page(db: Session, ctx: RequestContext, import_id: int, page: int, page_size: int) -> Page:
    """1-based ``page``; a page past the end is empty, not an error."""
    if page < 1:
        raise ValueError("page must be >= 1")
    if page_size < 1:
        raise ValueError("page_size must be >= 1")

    run = crud_imports.get_import_for_org(db, ctx, import_id)
    names = column_names(run)
    total = crud_rows.count_rows(db, import_id)
    start = (page - 1) * page_size
    rows = crud_rows.page_rows(db, import_id, start, page_size) if start < total else []

    return Page(
        rows=[{n: r.data.get(n) for n in names} for r in rows],
        page=page,
        page_size=page_size,
        start_index=start,
        total_rows=total,
        total_pages=math.ceil(total / page_size),
    )


def edit_cell(
    db: Session,
    ctx: RequestContext,
    import_id: int,
    row_index: int,
    column_name: str,
    new_value: Any,
) -> DataFileChange:
    """Record the change, then apply it.

    The audit entry is committed before the row is touched: a failed audit
    write aborts the edit, a failed value write leaves the audit entry behind.
    Each commit ends a transaction, so the row lock taken to read the old
    value covers only the audit write; the row is locked again to apply the
    value.
    The value is not checked against the inferred column type.
    """
    run = crud_imports.get_import_for_org(db, ctx, import_id)
    if run.status != ImportStatus.editing.value:
        raise ImportStateConflict(f"Import {import_id} is not editable while {run.status}")
    if column_name not in column_names(run):
        raise NotFound(f"Column '{column_name}' not found")

    row = crud_rows.get_row(db, import_id, row_index, for_update=True)
    if row is None:
        raise NotFound(f"Row {row_index} not found")
    old_value = row.data.get(column_name)

    try:
        change = crud_rows.add_change(db, ctx, import_id, row_index, column_name, old_value, new_value)
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("cell_audit_failed", import_id=import_id, row_index=row_index, column=column_name)
        raise PersistenceFailure(f"Could not record the change: {e}") from e

    try:
        row = crud_rows.get_row(db, import_id, row_index, for_update=True)
        if row is None:
            raise PersistenceFailure(f"Change {change.id} was recorded but row {row_index} is gone")
        crud_rows.set_cell(db, row, column_name, new_value)
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("cell_update_failed", import_id=import_id, change_id=change.id)
        raise PersistenceFailure(f"Change {change.id} was recorded but not applied: {e}") from e

    logger.info("cell_edited", import_id=import_id, row_index=row_index, column=column_name, change_id=change.id)
    return change


def list_changes(db: Session, ctx: RequestContext, import_id: int) -> list[DataFileChange]:
    crud_imports.get_import_for_org(db, ctx, import_id)
    return crud_rows.list_changes(db, import_id)
