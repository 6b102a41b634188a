import io

import pytest

from app.services.etl.errors import StorageFailure
from app.services.storage import BlobStore, blob_key


def test_blob_key_layout():
    assert blob_key(7, 42, "sales.xlsx") == "7/42/sales.xlsx"


def test_upload_download_delete(tmp_path):
    store = BlobStore(tmp_path)
    key = store.upload("1/2/a.csv", io.BytesIO(b"a,b\n1,2\n"))
    assert key == "1/2/a.csv"
    assert (tmp_path / "1" / "2" / "a.csv").exists()
    assert store.download(key) == b"a,b\n1,2\n"

    store.delete(key)
    assert not (tmp_path / "1" / "2" / "a.csv").exists()
    store.delete(key)


@pytest.mark.parametrize("key", ["../escape.csv", "1/../../escape.csv", "/etc/passwd"])
def test_keys_cannot_leave_root(tmp_path, key):
    store = BlobStore(tmp_path / "root")
    with pytest.raises(StorageFailure):
        store.upload(key, io.BytesIO(b"x"))


def test_missing_blob(tmp_path):
    with pytest.raises(StorageFailure):
        BlobStore(tmp_path).download("1/1/none.csv")
