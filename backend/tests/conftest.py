import io
import os

os.environ.setdefault("ENV", "test")
os.environ.setdefault("SEED_DEMO", "false")
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

import openpyxl
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import app.db.models  # noqa: F401
from app.core.context import RequestContext
from app.db.base import Base
from app.db.models.organization import Organization
from app.db.models.user import Role, User
from app.services.storage import BlobStore


def csv_bytes(rows: list[list]) -> bytes:
    lines = [",".join("" if v is None else str(v) for v in r) for r in rows]
    return ("\n".join(lines) + "\n").encode("utf-8")


def xlsx_bytes(rows: list[list]) -> bytes:
    wb = openpyxl.Workbook()
    ws = wb.active
    for r in rows:
        ws.append(r)
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def people_csv(n_rows: int = 10) -> bytes:
    rows = [["id", "name", "joined"]]
    for i in range(1, n_rows + 1):
        rows.append([i, f"person{i}", f"2024-01-{i:02d}"])
    return csv_bytes(rows)


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    s = session_factory()
    yield s
    s.close()


@pytest.fixture
def user(db):
    org = Organization(name="Acme")
    db.add(org)
    db.commit()
    u = User(login="editor", password_hash="x", role=Role.editor.value, organization_id=org.id)
    db.add(u)
    db.commit()
    db.refresh(u)
    return u


@pytest.fixture
def ctx(user):
    return RequestContext(organization_id=user.organization_id, user_id=user.id)


@pytest.fixture
def other_ctx(db):
    org = Organization(name="Other")
    db.add(org)
    db.commit()
    return RequestContext(organization_id=org.id, user_id=None)


@pytest.fixture
def store(tmp_path):
    return BlobStore(tmp_path / "blobs")
