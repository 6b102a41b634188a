import datetime as dt
from enum import Enum
from typing import Any

from sqlalchemy import JSON, CheckConstraint, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.db.models._mixins import TimestampMixin


class ImportStatus(str, Enum):
    pending = "pending"
    processing = "processing"
    analyzing = "analyzing"
    editing = "editing"
    error = "error"
    completed = "completed"


class FileKind(str, Enum):
    csv = "csv"
    excel = "excel"
    json = "json"
    access = "access"


class DataImport(Base, TimestampMixin):
    __tablename__ = "data_import"
    __table_args__ = (
        CheckConstraint("(status = 'error') = (error_message IS NOT NULL)", name="ck_data_import_error_message"),
        CheckConstraint("status = 'pending' OR storage_path IS NOT NULL", name="ck_data_import_storage_path"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    organization_id: Mapped[int] = mapped_column(ForeignKey("organization.id", ondelete="CASCADE"), index=True)
    created_by: Mapped[int | None] = mapped_column(ForeignKey("user.id", ondelete="SET NULL"), nullable=True)

    name: Mapped[str] = mapped_column(String(512))
    original_filename: Mapped[str] = mapped_column(String(512))
    table_name: Mapped[str] = mapped_column(String(512), default="")
    file_type: Mapped[str] = mapped_column(String(16))
    # null until the blob is stored, i.e. while status is pending
    storage_path: Mapped[str | None] = mapped_column(String(1024), nullable=True)

    status: Mapped[str] = mapped_column(String(32), default=ImportStatus.pending.value, index=True)
    # non-null only when status == error
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    version: Mapped[int] = mapped_column(Integer, default=1)
    row_count: Mapped[int | None] = mapped_column(Integer, nullable=True)

    columns_metadata: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    column_analysis: Mapped[list[Any]] = mapped_column(JSON, default=list)
    column_suggestions: Mapped[str | None] = mapped_column(Text, nullable=True)
    data_quality: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    data_validation: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)

    analysis_started_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    analysis_finished_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    columns = relationship(
        "DataImportColumn",
        back_populates="data_import",
        order_by="DataImportColumn.position",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
