from pathlib import Path
import shutil
from typing import BinaryIO

from app.core.logging import logger
from app.services.etl.errors import StorageFailure

def blob_key(organization_id: int, import_id: int, filename: str) -> str:
    return f"{organization_id}/{import_id}/{filename}"

class BlobStore:
    """Write-once byte objects under a local root directory."""

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def _resolve(self, key: str) -> Path:
        root = self.root.resolve()
        path = (root / key).resolve()
        if root != path and root not in path.parents:
            raise StorageFailure(f"Invalid storage path: {key}")
        return path

    def upload(self, key: str, stream: BinaryIO) -> str:
        path = self._resolve(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("wb") as f:
                shutil.copyfileobj(stream, f)
        except OSError as e:
            logger.error("blob_upload_failed", key=key, error=str(e))
            raise StorageFailure(f"Could not store file: {e.strerror or e}") from e
        return key

    def download(self, key: str) -> bytes:
        path = self._resolve(key)
        try:
            return path.read_bytes()
        except OSError as e:
            logger.error("blob_download_failed", key=key, error=str(e))
            raise StorageFailure(f"Could not read stored file: {e.strerror or e}") from e

    def delete(self, key: str) -> None:
        path = self._resolve(key)
        if path.exists():
            path.unlink()
