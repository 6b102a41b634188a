from fastapi import APIRouter, Depends, UploadFile, File, Query

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.deps import get_db, get_blob_store, require_roles, context_for
from app.crud.imports import get_import_for_org, list_columns, list_imports
from app.db.models.user import Role
from app.schemas.imports import (
    AnalysisOut,
    CellEditIn,
    CellEditOut,
    ColumnDescriptor,
    ColumnPatterns,
    DataImportOut,
    PageOut,
)
from app.services import preview
from app.services.etl import pipeline
from app.services.storage import BlobStore
from app.worker.tasks import analyze_import_task

router = APIRouter()

ALLOWED_ROLES_VIEW = (Role.admin, Role.editor, Role.viewer)
ALLOWED_ROLES_EDIT = (Role.admin, Role.editor)


@router.get("", response_model=list[DataImportOut])
def get_imports(
    db: Session = Depends(get_db),
    user=Depends(require_roles(*ALLOWED_ROLES_VIEW)),
):
    return list_imports(db, user.organization_id)


@router.post("/upload", response_model=DataImportOut)
def upload_file(
    file: UploadFile = File(...),
    analyze: bool = Query(True, description="Queue the analysis right after the upload"),
    db: Session = Depends(get_db),
    store: BlobStore = Depends(get_blob_store),
    user=Depends(require_roles(*ALLOWED_ROLES_EDIT)),
):
    run = pipeline.begin_upload(db, context_for(user), file.filename or "", file.file, store)
    if analyze:
        analyze_import_task.delay(run.id)
    return run


@router.get("/{import_id}", response_model=DataImportOut)
def get_import(
    import_id: int,
    db: Session = Depends(get_db),
    user=Depends(require_roles(*ALLOWED_ROLES_VIEW)),
):
    return get_import_for_org(db, context_for(user), import_id)


@router.post("/{import_id}/analyze", response_model=AnalysisOut)
def analyze_import(
    import_id: int,
    sync: bool = Query(False, description="Run inline instead of queueing a worker task"),
    db: Session = Depends(get_db),
    store: BlobStore = Depends(get_blob_store),
    user=Depends(require_roles(*ALLOWED_ROLES_EDIT)),
):
    run = get_import_for_org(db, context_for(user), import_id)
    if sync:
        result = pipeline.analyze(db, run.id, store)
        return AnalysisOut(
            import_id=run.id,
            status="editing",
            columns=result.columns,
            preview_data=result.preview_rows,
            total_rows=result.total_rows,
        )
    task = analyze_import_task.delay(run.id)
    return AnalysisOut(import_id=run.id, status=run.status, task_id=task.id)


@router.get("/{import_id}/columns", response_model=list[ColumnDescriptor])
def get_columns(
    import_id: int,
    db: Session = Depends(get_db),
    user=Depends(require_roles(*ALLOWED_ROLES_VIEW)),
):
    run = get_import_for_org(db, context_for(user), import_id)
    return [
        ColumnDescriptor(
            name=c.name,
            type=c.type,
            sample=c.sample,
            null_count=c.null_count,
            unique_count=c.unique_count,
            patterns=ColumnPatterns(email=c.is_email, url=c.is_url, phone=c.is_phone),
        )
        for c in list_columns(db, run.id)
    ]


@router.get("/{import_id}/rows", response_model=PageOut)
def get_rows(
    import_id: int,
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    user=Depends(require_roles(*ALLOWED_ROLES_VIEW)),
):
    p = preview.get_page(db, context_for(user), import_id, page, page_size)
    return PageOut(
        rows=p.rows,
        page=p.page,
        page_size=p.page_size,
        start_index=p.start_index,
        total_rows=p.total_rows,
        total_pages=p.total_pages,
    )


@router.patch("/{import_id}/rows/{row_index}", response_model=CellEditOut)
def edit_cell(
    import_id: int,
    row_index: int,
    data: CellEditIn,
    db: Session = Depends(get_db),
    user=Depends(require_roles(*ALLOWED_ROLES_EDIT)),
):
    return preview.edit_cell(db, context_for(user), import_id, row_index, data.column, data.value)


@router.get("/{import_id}/changes", response_model=list[CellEditOut])
def get_changes(
    import_id: int,
    db: Session = Depends(get_db),
    user=Depends(require_roles(*ALLOWED_ROLES_VIEW)),
):
    return preview.list_changes(db, context_for(user), import_id)


@router.post("/{import_id}/complete", response_model=DataImportOut)
def complete_import(
    import_id: int,
    db: Session = Depends(get_db),
    user=Depends(require_roles(*ALLOWED_ROLES_EDIT)),
):
    return pipeline.complete_import(db, context_for(user), import_id)


@router.delete("/{import_id}")
def delete_import(
    import_id: int,
    db: Session = Depends(get_db),
    store: BlobStore = Depends(get_blob_store),
    user=Depends(require_roles(*ALLOWED_ROLES_EDIT)),
):
    pipeline.delete_import(db, context_for(user), import_id, store)
    return {"status": "ok"}
