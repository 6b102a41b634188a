import datetime as dt
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from app.services.etl.inference import ColumnType

Scalar = str | int | float | bool | None


class ColumnPatterns(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: bool = False
    url: bool = False
    phone: bool = False


class ColumnDescriptor(BaseModel):
    """Inferred metadata for one column; the JSON form uses camelCase counts."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    name: str
    type: ColumnType
    sample: str = ""
    null_count: int = Field(default=0, alias="nullCount", ge=0)
    unique_count: int = Field(default=0, alias="uniqueCount", ge=0)
    patterns: ColumnPatterns = Field(default_factory=ColumnPatterns)


class ColumnsMetadata(BaseModel):
    model_config = ConfigDict(extra="forbid")

    columns: list[ColumnDescriptor] = Field(default_factory=list)


class DataImportOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    organization_id: int
    created_by: int | None
    name: str
    original_filename: str
    table_name: str
    file_type: str
    storage_path: str | None
    status: str
    error_message: str | None
    version: int
    row_count: int | None
    columns_metadata: dict[str, Any]
    column_analysis: list[Any]
    column_suggestions: str | None
    data_quality: dict[str, Any]
    data_validation: dict[str, Any]
    analysis_started_at: dt.datetime | None
    analysis_finished_at: dt.datetime | None
    created_at: dt.datetime | None


class AnalysisOut(BaseModel):
    import_id: int
    status: str
    columns: list[ColumnDescriptor] = Field(default_factory=list)
    preview_data: list[list[Any]] = Field(default_factory=list, alias="previewData")
    total_rows: int | None = Field(default=None, alias="totalRows")
    task_id: str | None = None

    model_config = ConfigDict(populate_by_name=True)


class PageOut(BaseModel):
    rows: list[dict[str, Any]]
    page: int
    page_size: int
    start_index: int
    total_rows: int = Field(alias="totalRows")
    total_pages: int = Field(alias="totalPages")

    model_config = ConfigDict(populate_by_name=True)


class CellEditIn(BaseModel):
    column: str = Field(..., min_length=1)
    value: Scalar = None


class CellEditOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    file_id: int
    row_index: int
    column_name: str
    old_value: Any
    new_value: Any
    organization_id: int
    created_by: int | None
    created_at: dt.datetime | None
