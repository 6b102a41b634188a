import datetime as dt
from typing import Any, Iterable

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from app.core.context import RequestContext
from app.db.models.data_import import DataImport, FileKind, ImportStatus
from app.db.models.data_file_change import DataFileChange
from app.db.models.data_import_column import DataImportColumn
from app.db.models.data_import_row import DataImportRow
from app.schemas.imports import ColumnDescriptor
from app.services.etl.errors import NotFound
from app.services.etl.utils import jsonable, table_name_for


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)

def get_import(db: Session, import_id: int) -> DataImport | None:
    return db.get(DataImport, import_id, populate_existing=True)

def get_import_for_org(db: Session, ctx: RequestContext, import_id: int) -> DataImport:
    run = get_import(db, import_id)
    if run is None or run.organization_id != ctx.organization_id:
        raise NotFound(f"Import {import_id} not found")
    return run

def list_imports(db: Session, organization_id: int) -> list[DataImport]:
    return list(db.scalars(
        select(DataImport)
        .where(DataImport.organization_id == organization_id)
        .order_by(DataImport.created_at.desc(), DataImport.id.desc())
    ))

def create_import(db: Session, ctx: RequestContext, filename: str, kind: FileKind) -> DataImport:
    run = DataImport(
        organization_id=ctx.organization_id,
        created_by=ctx.user_id,
        name=filename,
        original_filename=filename,
        table_name=table_name_for(filename),
        file_type=kind.value,
        status=ImportStatus.pending.value,
        version=1,
        columns_metadata={},
        column_analysis=[],
        data_quality={},
        data_validation={},
    )
    db.add(run)
    db.commit()
    db.refresh(run)
    return run

def set_import_status(
    db: Session,
    import_id: int,
    status: ImportStatus,
    *,
    from_statuses: Iterable[ImportStatus] | None = None,
    error_message: str | None = None,
    **values: Any,
) -> bool:
    """Write a status (and extra columns) in one UPDATE, bumping ``version``.

    With ``from_statuses`` the write is a compare-and-swap: it only applies
    when the current status is one of them. Returns whether a row changed.
    """
    stmt = update(DataImport).where(DataImport.id == import_id)
    if from_statuses is not None:
        stmt = stmt.where(DataImport.status.in_([s.value for s in from_statuses]))
    stmt = stmt.values(
        status=status.value,
        error_message=error_message if status == ImportStatus.error else None,
        version=DataImport.version + 1,
        **values,
    ).execution_options(synchronize_session=False)
    res = db.execute(stmt)
    db.commit()
    return res.rowcount == 1

def add_columns(db: Session, import_id: int, columns: list[ColumnDescriptor], start_position: int) -> None:
    db.add_all([
        DataImportColumn(
            import_id=import_id,
            position=start_position + i,
            name=c.name,
            type=c.type.value,
            sample=c.sample,
            null_count=c.null_count,
            unique_count=c.unique_count,
            is_email=c.patterns.email,
            is_url=c.patterns.url,
            is_phone=c.patterns.phone,
        )
        for i, c in enumerate(columns)
    ])
    db.commit()

def add_rows(db: Session, import_id: int, names: list[str], rows: list[list[Any]], start_index: int) -> None:
    db.add_all([
        DataImportRow(
            import_id=import_id,
            row_index=start_index + i,
            data={n: jsonable(v) for n, v in zip(names, r)},
        )
        for i, r in enumerate(rows)
    ])
    db.commit()

def list_columns(db: Session, import_id: int) -> list[DataImportColumn]:
    return list(db.scalars(
        select(DataImportColumn)
        .where(DataImportColumn.import_id == import_id)
        .order_by(DataImportColumn.position)
    ))

def count_columns(db: Session, import_id: int) -> int:
    return db.scalar(select(func.count()).select_from(DataImportColumn).where(DataImportColumn.import_id == import_id))

def stale_analyses(db: Session, older_than: dt.datetime) -> list[DataImport]:
    return list(db.scalars(
        select(DataImport).where(
            DataImport.status == ImportStatus.analyzing.value,
            DataImport.analysis_started_at < older_than,
        )
    ))

def delete_import(db: Session, import_id: int) -> None:
    # children first, so the delete does not rely on ON DELETE CASCADE support
    for model, col in (
        (DataFileChange, DataFileChange.file_id),
        (DataImportRow, DataImportRow.import_id),
        (DataImportColumn, DataImportColumn.import_id),
    ):
        db.execute(delete(model).where(col == import_id))
    db.execute(delete(DataImport).where(DataImport.id == import_id))
    db.commit()
