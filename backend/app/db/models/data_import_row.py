from typing import Any

from sqlalchemy import JSON, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base

class DataImportRow(Base):
    __tablename__ = "data_import_row"
    __table_args__ = (UniqueConstraint("import_id", "row_index", name="uq_import_row_index"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    import_id: Mapped[int] = mapped_column(ForeignKey("data_import.id", ondelete="CASCADE"), index=True)
    row_index: Mapped[int] = mapped_column(Integer)  # 0-based position among data rows
    data: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
