from sqlalchemy import Boolean, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.db.models._mixins import TimestampMixin

class DataImportColumn(Base, TimestampMixin):
    __tablename__ = "data_import_column"
    __table_args__ = (UniqueConstraint("import_id", "position", name="uq_import_column_position"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    import_id: Mapped[int] = mapped_column(ForeignKey("data_import.id", ondelete="CASCADE"), index=True)
    position: Mapped[int] = mapped_column(Integer)

    name: Mapped[str] = mapped_column(String(512))
    type: Mapped[str] = mapped_column(String(16))  # text|integer|numeric|boolean|timestamp
    sample: Mapped[str] = mapped_column(Text, default="")
    null_count: Mapped[int] = mapped_column(Integer, default=0)
    unique_count: Mapped[int] = mapped_column(Integer, default=0)
    is_email: Mapped[bool] = mapped_column(Boolean, default=False)
    is_url: Mapped[bool] = mapped_column(Boolean, default=False)
    is_phone: Mapped[bool] = mapped_column(Boolean, default=False)

    data_import = relationship("DataImport", back_populates="columns")
