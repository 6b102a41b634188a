from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.core.context import RequestContext
from app.db.models.data_file_change import DataFileChange
from app.db.models.data_import_row import DataImportRow

def count_rows(db: Session, import_id: int) -> int:
    return db.scalar(select(func.count()).select_from(DataImportRow).where(DataImportRow.import_id == import_id)) or 0

def page_rows(db: Session, import_id: int, offset: int, limit: int) -> list[DataImportRow]:
    return list(db.scalars(
        select(DataImportRow)
        .where(DataImportRow.import_id == import_id)
        .order_by(DataImportRow.row_index)
        .offset(offset)
        .limit(limit)
    ))

def get_row(db: Session, import_id: int, row_index: int, for_update: bool = False) -> DataImportRow | None:
    stmt = select(DataImportRow).where(DataImportRow.import_id == import_id, DataImportRow.row_index == row_index)
    if for_update:
        stmt = stmt.with_for_update()
    return db.scalars(stmt.execution_options(populate_existing=True)).one_or_none()

def add_change(
    db: Session,
    ctx: RequestContext,
    import_id: int,
    row_index: int,
    column_name: str,
    old_value: Any,
    new_value: Any,
) -> DataFileChange:
    change = DataFileChange(
        file_id=import_id,
        organization_id=ctx.organization_id,
        created_by=ctx.user_id,
        row_index=row_index,
        column_name=column_name,
        old_value=old_value,
        new_value=new_value,
    )
    db.add(change)
    db.commit()
    db.refresh(change)
    return change

def set_cell(db: Session, row: DataImportRow, column_name: str, value: Any) -> None:
    # JSON columns are not mutation-tracked, assign a new dict
    row.data = {**row.data, column_name: value}
    db.commit()

def list_changes(db: Session, import_id: int) -> list[DataFileChange]:
    return list(db.scalars(
        select(DataFileChange).where(DataFileChange.file_id == import_id).order_by(DataFileChange.id)
    ))
