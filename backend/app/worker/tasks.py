from sqlalchemy.orm import Session

from app.worker.celery_app import celery_app
from app.core.config import settings
from app.core.logging import logger
from app.db.session import SessionLocal
from app.services.etl.errors import DataImportError, ImportStateConflict
from app.services.etl.pipeline import analyze, expire_stale_analyses
from app.services.storage import BlobStore


@celery_app.task(name="imports.analyze", bind=True)
def analyze_import_task(self, import_id: int):
    db: Session = SessionLocal()
    try:
        result = analyze(db, import_id, BlobStore(settings.UPLOAD_DIR))
        return {"import_id": import_id, "status": "editing", "total_rows": result.total_rows}
    except ImportStateConflict as e:
        # the status belongs to another writer
        logger.warning("analyze_skipped", import_id=import_id, reason=str(e))
        return {"import_id": import_id, "status": "skipped", "error": str(e)}
    except DataImportError as e:
        # already recorded on the import as status=error
        return {"import_id": import_id, "status": "error", "error": str(e)}
    finally:
        db.close()


@celery_app.task(name="imports.expire_stale")
def expire_stale_task():
    db: Session = SessionLocal()
    try:
        return expire_stale_analyses(db)
    finally:
        db.close()
