import datetime as dt
import io

import pytest
from sqlalchemy.exc import OperationalError

from app.crud import imports as crud
from app.db.models.data_import import ImportStatus
from app.services.etl import pipeline
from app.services.etl.errors import (
    AnalysisTimeout,
    ImportStateConflict,
    NotFound,
    PersistenceFailure,
    SchemaError,
    StorageFailure,
    UnsupportedFormat,
)
from app.services.storage import BlobStore
from conftest import csv_bytes, people_csv


def _upload(db, ctx, store, content: bytes, filename: str = "People List.csv"):
    return pipeline.begin_upload(db, ctx, filename, io.BytesIO(content), store)


def test_upload_then_analyze_csv(db, ctx, store):
    run = _upload(db, ctx, store, people_csv(10))

    assert run.status == ImportStatus.processing.value
    assert run.storage_path == f"{ctx.organization_id}/{run.id}/People List.csv"
    assert run.table_name == "people_list"
    assert run.file_type == "csv"
    assert run.created_by == ctx.user_id
    assert store.download(run.storage_path) == people_csv(10)

    result = pipeline.analyze(db, run.id, store)

    run = crud.get_import(db, run.id)
    assert run.status == ImportStatus.editing.value
    assert run.error_message is None
    assert run.row_count == 10
    assert [c["name"] for c in run.columns_metadata["columns"]] == ["id", "name", "joined"]
    assert [c["type"] for c in run.columns_metadata["columns"]] == ["integer", "text", "timestamp"]
    assert run.column_analysis == run.columns_metadata["columns"]
    assert [c.name for c in crud.list_columns(db, run.id)] == ["id", "name", "joined"]
    assert result.total_rows == 10
    assert len(result.preview_rows) == 5
    assert result.preview_rows[0] == [1, "person1", "2024-01-01"]
    assert run.version == 4  # pending(1) -> processing -> analyzing -> editing


def test_upload_unsupported_extension_creates_nothing(db, ctx, store):
    with pytest.raises(UnsupportedFormat):
        _upload(db, ctx, store, b"%PDF", "report.pdf")
    assert crud.list_imports(db, ctx.organization_id) == []


def test_upload_storage_failure_leaves_pending_record(db, ctx, tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x")
    store = BlobStore(blocker)

    with pytest.raises(StorageFailure):
        _upload(db, ctx, store, people_csv(2))

    (run,) = crud.list_imports(db, ctx.organization_id)
    assert run.status == ImportStatus.pending.value
    assert run.storage_path is None
    assert run.error_message is None


def test_upload_strips_client_directories(db, ctx, store):
    run = _upload(db, ctx, store, people_csv(2), "../../etc/data.csv")
    assert run.original_filename == "data.csv"
    assert run.storage_path.endswith(f"/{run.id}/data.csv")


def test_access_upload_fails_analysis(db, ctx, store):
    run = _upload(db, ctx, store, b"\x00\x01Standard Jet DB", "legacy.accdb")
    assert run.file_type == "access"

    with pytest.raises(UnsupportedFormat):
        pipeline.analyze(db, run.id, store)

    run = crud.get_import(db, run.id)
    assert run.status == ImportStatus.error.value
    assert run.error_message == "Access databases are not supported yet"
    assert run.analysis_finished_at is not None


def test_analyze_schema_error_marks_error(db, ctx, store):
    run = _upload(db, ctx, store, csv_bytes([["a", "a"], [1, 2]]), "dupes.csv")
    with pytest.raises(SchemaError):
        pipeline.analyze(db, run.id, store)
    run = crud.get_import(db, run.id)
    assert run.status == ImportStatus.error.value
    assert "Duplicate column name" in run.error_message
    assert crud.count_columns(db, run.id) == 0


def test_analyze_missing_import(db, store):
    with pytest.raises(NotFound):
        pipeline.analyze(db, 999, store)


def test_analyze_is_exclusive(db, ctx, store):
    run = _upload(db, ctx, store, people_csv(3))
    assert crud.set_import_status(db, run.id, ImportStatus.analyzing, from_statuses=(ImportStatus.processing,))

    with pytest.raises(ImportStateConflict):
        pipeline.analyze(db, run.id, store)

    run = crud.get_import(db, run.id)
    assert run.status == ImportStatus.analyzing.value
    assert run.error_message is None


def test_analyze_rejects_pending_and_terminal_records(db, ctx, store):
    run = crud.create_import(db, ctx, "x.csv", pipeline.file_kind_for("x.csv"))
    with pytest.raises(ImportStateConflict):
        pipeline.analyze(db, run.id, store)
    assert crud.get_import(db, run.id).status == ImportStatus.pending.value

    done = _upload(db, ctx, store, people_csv(2))
    pipeline.analyze(db, done.id, store)
    with pytest.raises(ImportStateConflict):
        pipeline.analyze(db, done.id, store)
    assert crud.get_import(db, done.id).status == ImportStatus.editing.value


def test_columns_are_written_in_batches_in_header_order(db, ctx, store, monkeypatch):
    header = [f"c{i}" for i in range(7)]
    run = _upload(db, ctx, store, csv_bytes([header, list(range(7))]), "wide.csv")

    calls = []
    real = crud.add_columns

    def spy(db_, import_id, batch, start_position):
        calls.append((start_position, [c.name for c in batch]))
        return real(db_, import_id, batch, start_position)

    monkeypatch.setattr(crud, "add_columns", spy)
    pipeline.analyze(db, run.id, store, batch_size=3)

    assert calls == [(0, ["c0", "c1", "c2"]), (3, ["c3", "c4", "c5"]), (6, ["c6"])]
    assert [c.position for c in crud.list_columns(db, run.id)] == list(range(7))


def test_failed_row_batch_keeps_written_columns(db, ctx, store, monkeypatch):
    run = _upload(db, ctx, store, people_csv(10))

    def boom(*args, **kwargs):
        raise OperationalError("INSERT", {}, Exception("disk full"))

    monkeypatch.setattr(crud, "add_rows", boom)

    with pytest.raises(PersistenceFailure):
        pipeline.analyze(db, run.id, store)

    run = crud.get_import(db, run.id)
    assert run.status == ImportStatus.error.value
    assert "Could not save rows 1-10" in run.error_message
    assert crud.count_columns(db, run.id) == 3


def test_analyze_deadline(db, ctx, store):
    run = _upload(db, ctx, store, people_csv(3))

    with pytest.raises(AnalysisTimeout):
        pipeline.analyze(db, run.id, store, timeout_sec=0)

    run = crud.get_import(db, run.id)
    assert run.status == ImportStatus.error.value
    assert "time limit" in run.error_message


def test_interrupted_analysis_still_ends_in_error(db, ctx, store, monkeypatch):
    run = _upload(db, ctx, store, people_csv(3))

    def interrupt(*args, **kwargs):
        raise KeyboardInterrupt

    monkeypatch.setattr(pipeline, "parse", interrupt)
    with pytest.raises(KeyboardInterrupt):
        pipeline.analyze(db, run.id, store)

    run = crud.get_import(db, run.id)
    assert run.status == ImportStatus.error.value
    assert run.error_message == "Analysis was interrupted"


def test_complete_import(db, ctx, store):
    run = _upload(db, ctx, store, people_csv(2))
    with pytest.raises(ImportStateConflict):
        pipeline.complete_import(db, ctx, run.id)

    pipeline.analyze(db, run.id, store)
    run = pipeline.complete_import(db, ctx, run.id)
    assert run.status == ImportStatus.completed.value


def test_delete_import_removes_blob_and_children(db, ctx, store):
    run = _upload(db, ctx, store, people_csv(2))
    pipeline.analyze(db, run.id, store)
    path = run.storage_path

    pipeline.delete_import(db, ctx, run.id, store)

    assert crud.get_import(db, run.id) is None
    assert crud.count_columns(db, run.id) == 0
    with pytest.raises(StorageFailure):
        store.download(path)


def test_delete_import_refused_while_analyzing(db, ctx, store):
    run = _upload(db, ctx, store, people_csv(2))
    crud.set_import_status(db, run.id, ImportStatus.analyzing)
    with pytest.raises(ImportStateConflict):
        pipeline.delete_import(db, ctx, run.id, store)


def test_imports_are_scoped_to_organization(db, ctx, other_ctx, store):
    run = _upload(db, ctx, store, people_csv(2))
    with pytest.raises(NotFound):
        pipeline.complete_import(db, other_ctx, run.id)
    assert crud.list_imports(db, other_ctx.organization_id) == []


def test_expire_stale_analyses(db, ctx, store):
    now = dt.datetime(2026, 1, 1, 12, 0, tzinfo=dt.timezone.utc)
    stale = _upload(db, ctx, store, people_csv(2))
    fresh = _upload(db, ctx, store, people_csv(2))
    crud.set_import_status(db, stale.id, ImportStatus.analyzing, analysis_started_at=now - dt.timedelta(hours=2))
    crud.set_import_status(db, fresh.id, ImportStatus.analyzing, analysis_started_at=now - dt.timedelta(seconds=5))

    assert pipeline.expire_stale_analyses(db, now=now) == [stale.id]

    assert crud.get_import(db, stale.id).status == ImportStatus.error.value
    assert crud.get_import(db, stale.id).error_message == "Analysis timed out"
    assert crud.get_import(db, fresh.id).status == ImportStatus.analyzing.value


def _expire_during_row_writes(monkeypatch, then=None):
    real = crud.add_rows

    def add_rows(db_, import_id, *args, **kwargs):
        crud.set_import_status(
            db_, import_id, ImportStatus.error,
            from_statuses=(ImportStatus.analyzing,), error_message="Analysis timed out",
        )
        if then is not None:
            raise then
        return real(db_, import_id, *args, **kwargs)

    monkeypatch.setattr(crud, "add_rows", add_rows)


def test_result_is_dropped_when_import_was_expired_meanwhile(db, ctx, store, monkeypatch):
    run = _upload(db, ctx, store, people_csv(3))
    _expire_during_row_writes(monkeypatch)

    with pytest.raises(ImportStateConflict):
        pipeline.analyze(db, run.id, store)

    run = crud.get_import(db, run.id)
    assert run.status == ImportStatus.error.value
    assert run.error_message == "Analysis timed out"
    assert run.row_count is None


def test_failure_after_expiry_keeps_first_error(db, ctx, store, monkeypatch):
    run = _upload(db, ctx, store, people_csv(3))
    _expire_during_row_writes(monkeypatch, then=OperationalError("INSERT", {}, Exception("disk full")))

    with pytest.raises(PersistenceFailure):
        pipeline.analyze(db, run.id, store)

    assert crud.get_import(db, run.id).error_message == "Analysis timed out"


def test_mark_failed_only_touches_analyzing_imports(db, ctx, store):
    run = _upload(db, ctx, store, people_csv(2))
    pipeline.analyze(db, run.id, store)

    assert not pipeline.mark_failed(db, run.id, "late failure")

    run = crud.get_import(db, run.id)
    assert run.status == ImportStatus.editing.value
    assert run.error_message is None


def test_mark_failed_retries_on_a_fresh_session(db, ctx, store, monkeypatch):
    run = _upload(db, ctx, store, people_csv(2))
    crud.set_import_status(db, run.id, ImportStatus.analyzing)
    real = crud.set_import_status

    def broken_for_db(session, *args, **kwargs):
        if session is db:
            raise OperationalError("UPDATE", {}, Exception("connection lost"))
        return real(session, *args, **kwargs)

    monkeypatch.setattr(crud, "set_import_status", broken_for_db)
    assert pipeline.mark_failed(db, run.id, "boom")
    monkeypatch.undo()

    run = crud.get_import(db, run.id)
    assert run.status == ImportStatus.error.value
    assert run.error_message == "boom"
