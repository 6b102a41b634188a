"""Upload and analysis of spreadsheet imports.

State machine of ``data_import.status``::

    pending -> processing -> analyzing -> editing -> completed
                   \\            \\
                    `------------`--> error   (terminal)

``begin_upload`` covers pending -> processing, ``analyze`` covers
processing -> analyzing -> editing|error and ``complete_import`` the final
confirmation. Nothing moves a record out of ``error``.
"""
from __future__ import annotations

import datetime as dt
import time
from dataclasses import dataclass, field
from typing import Any, BinaryIO, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.context import RequestContext
from app.core.logging import logger
from app.crud import imports as crud
from app.db.models.data_import import DataImport, ImportStatus
from app.schemas.imports import ColumnDescriptor, ColumnsMetadata
from app.services.etl.errors import (
    AnalysisTimeout,
    ImportStateConflict,
    NotFound,
    PersistenceFailure,
)
from app.services.etl.parser import parse
from app.services.etl.schema import extract
from app.services.etl.utils import file_kind_for, jsonable, safe_filename
from app.services.storage import BlobStore, blob_key

# a pending record has no stored bytes yet
CLAIMABLE = (ImportStatus.processing,)
PREVIEW_ROWS = 5


@dataclass
class AnalysisResult:
    import_id: int
    columns: list[ColumnDescriptor]
    preview_rows: list[list[Any]] = field(default_factory=list)
    total_rows: int = 0


class Deadline:
    def __init__(self, seconds: float, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self.expires_at = clock() + seconds

    def check(self, stage: str) -> None:
        if self._clock() >= self.expires_at:
            raise AnalysisTimeout(f"Analysis exceeded its time limit during {stage}")


def _batches(items: list, size: int):
    for start in range(0, len(items), size):
        yield start, items[start:start + size]


# -----------------------------
# Upload
# -----------------------------
def begin_upload(db: Session, ctx: RequestContext, filename: str, stream: BinaryIO, store: BlobStore) -> DataImport:
    """Create the record (pending), store the bytes, then mark it processing.

    Two separate writes: when storing the bytes fails the record stays
    ``pending`` without a storage path and the error propagates.
    """
    name = safe_filename(filename)
    kind = file_kind_for(name)

    run = crud.create_import(db, ctx, name, kind)
    logger.info("upload_started", import_id=run.id, organization_id=ctx.organization_id, file_type=kind.value)

    key = store.upload(blob_key(ctx.organization_id, run.id, name), stream)

    if not crud.set_import_status(db, run.id, ImportStatus.processing, from_statuses=(ImportStatus.pending,), storage_path=key):
        raise ImportStateConflict(f"Import {run.id} changed while uploading")
    logger.info("upload_stored", import_id=run.id, storage_path=key)
    return crud.get_import(db, run.id)


# -----------------------------
# Analysis
# -----------------------------
def _persist_columns(db: Session, import_id: int, columns: list[ColumnDescriptor], batch_size: int, deadline: Deadline) -> None:
    for start, batch in _batches(columns, batch_size):
        deadline.check("column persistence")
        try:
            crud.add_columns(db, import_id, batch, start_position=start)
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceFailure(f"Could not save columns {start + 1}-{start + len(batch)}: {e}") from e
        logger.debug("columns_batch_saved", import_id=import_id, start=start, size=len(batch))


def _persist_rows(db: Session, import_id: int, names: list[str], rows: list[list[Any]], batch_size: int, deadline: Deadline) -> None:
    for start, batch in _batches(rows, batch_size):
        deadline.check("row persistence")
        try:
            crud.add_rows(db, import_id, names, batch, start_index=start)
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceFailure(f"Could not save rows {start + 1}-{start + len(batch)}: {e}") from e


def _write_error(db: Session, import_id: int, message: str) -> bool:
    return crud.set_import_status(
        db, import_id, ImportStatus.error,
        from_statuses=(ImportStatus.analyzing,),
        error_message=message, analysis_finished_at=crud.utcnow(),
    )


def mark_failed(db: Session, import_id: int, message: str) -> bool:
    """Terminal error write for an import this worker still holds in ``analyzing``.

    Falls back to a fresh session on the same engine if ``db`` is unusable.
    Returns False when the record already left ``analyzing``.
    """
    try:
        db.rollback()
        return _write_error(db, import_id, message)
    except SQLAlchemyError as e:
        logger.exception("mark_failed_status_update_failed", import_id=import_id, error=str(e))
        with Session(bind=db.get_bind()) as db2:
            return _write_error(db2, import_id, message)


def analyze(
    db: Session,
    import_id: int,
    store: BlobStore,
    *,
    batch_size: int | None = None,
    row_batch_size: int | None = None,
    timeout_sec: float | None = None,
) -> AnalysisResult:
    """Decode the stored file, infer its columns and persist columns and rows.

    Claims the record with a compare-and-swap to ``analyzing``, so a second
    concurrent call gets ``ImportStateConflict`` and leaves the record alone.
    The closing ``editing`` write is a compare-and-swap from ``analyzing`` as
    well: if the record was moved meanwhile (e.g. expired to ``error``), the
    result is dropped with ``ImportStateConflict``. Every other failure ends
    with status ``error``; batches already written stay in place.
    """
    run = crud.get_import(db, import_id)
    if run is None:
        raise NotFound(f"Import {import_id} not found")

    claimed = crud.set_import_status(
        db, import_id, ImportStatus.analyzing,
        from_statuses=CLAIMABLE, analysis_started_at=crud.utcnow(),
    )
    if not claimed:
        current = crud.get_import(db, import_id)
        raise ImportStateConflict(f"Import {import_id} cannot be analyzed while {current.status if current else 'missing'}")

    batch_size = batch_size or settings.ANALYZE_BATCH_SIZE
    row_batch_size = row_batch_size or settings.ROW_BATCH_SIZE
    deadline = Deadline(settings.ANALYZE_TIMEOUT_SEC if timeout_sec is None else timeout_sec)
    log = logger.bind(import_id=import_id)
    log.info("analyze_started", file_type=run.file_type)

    finished = False
    try:
        content = store.download(run.storage_path)
        deadline.check("download")

        table = parse(content, run.file_type)
        columns = extract(table.header, table.rows[:settings.SAMPLE_ROWS])
        names = [c.name for c in columns]
        log.info("schema_extracted", columns=len(columns), rows=len(table.rows))

        _persist_columns(db, import_id, columns, batch_size, deadline)
        _persist_rows(db, import_id, names, table.rows, row_batch_size, deadline)

        metadata = ColumnsMetadata(columns=columns).model_dump(mode="json", by_alias=True)
        moved = crud.set_import_status(
            db, import_id, ImportStatus.editing,
            from_statuses=(ImportStatus.analyzing,),
            row_count=len(table.rows),
            columns_metadata=metadata,
            column_analysis=metadata["columns"],
            analysis_finished_at=crud.utcnow(),
        )
        finished = True
        if not moved:
            current = crud.get_import(db, import_id)
            log.warning("analyze_result_discarded", status=current.status if current else None)
            raise ImportStateConflict(
                f"Import {import_id} left analyzing before its result was saved "
                f"(now {current.status if current else 'missing'})"
            )
        log.info("analyze_finished", rows=len(table.rows), columns=len(columns))
        return AnalysisResult(
            import_id=import_id,
            columns=columns,
            preview_rows=[[jsonable(v) for v in r] for r in table.rows[:PREVIEW_ROWS]],
            total_rows=len(table.rows),
        )
    except ImportStateConflict:
        # another writer owns the status now
        finished = True
        raise
    except Exception as e:
        message = str(e) or e.__class__.__name__
        log.exception("analyze_failed", error=message)
        if not mark_failed(db, import_id, message):
            log.warning("analyze_error_not_recorded", reason="import already left analyzing")
        finished = True
        raise
    finally:
        if not finished:
            log.error("analyze_interrupted")
            mark_failed(db, import_id, "Analysis was interrupted")


# -----------------------------
# Lifecycle
# -----------------------------
def complete_import(db: Session, ctx: RequestContext, import_id: int) -> DataImport:
    crud.get_import_for_org(db, ctx, import_id)
    if not crud.set_import_status(db, import_id, ImportStatus.completed, from_statuses=(ImportStatus.editing,)):
        current = crud.get_import(db, import_id)
        raise ImportStateConflict(f"Import {import_id} cannot be completed while {current.status}")
    logger.info("import_completed", import_id=import_id)
    return crud.get_import(db, import_id)


def delete_import(db: Session, ctx: RequestContext, import_id: int, store: BlobStore) -> None:
    run = crud.get_import_for_org(db, ctx, import_id)
    if run.status == ImportStatus.analyzing.value:
        raise ImportStateConflict("Import is being analyzed; cannot delete")
    storage_path = run.storage_path
    crud.delete_import(db, import_id)
    if storage_path:
        store.delete(storage_path)
    logger.info("import_deleted", import_id=import_id)


def expire_stale_analyses(db: Session, now: dt.datetime | None = None) -> list[int]:
    """Move imports left in ``analyzing`` by a killed worker to ``error``."""
    now = now or crud.utcnow()
    cutoff = now - dt.timedelta(seconds=settings.STALE_ANALYSIS_SEC)
    expired = []
    for run in crud.stale_analyses(db, cutoff):
        if crud.set_import_status(
            db, run.id, ImportStatus.error,
            from_statuses=(ImportStatus.analyzing,),
            error_message="Analysis timed out",
            analysis_finished_at=now,
        ):
            expired.append(run.id)
    if expired:
        logger.warning("stale_analyses_expired", import_ids=expired)
    return expired
