"""
Backend records as seen by the front-end.

The backend speaks camelCase JSON with Mongo-style ``_id`` keys; every model
accepts that shape and also snake_case keyword arguments, so tests and pages
can build them directly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

DatasetType = Literal["text", "image", "audio", "multimodal"]
AccessType = Literal["private", "public", "shared"]
FieldType = Literal["text", "number", "markdown", "image", "audio"]
ColumnType = Literal["text", "number", "select", "selectrange", "multiselect"]
HeaderErrorType = Literal["MISSING_COLUMN", "EXTRA_COLUMN", "COLUMN_ORDER_MISMATCH", "COLUMN_NAME_MISMATCH"]

DATASET_TYPES: tuple[str, ...] = ("text", "image", "audio", "multimodal")
ACCESS_TYPES: tuple[str, ...] = ("private", "public", "shared")
FIELD_TYPES: tuple[str, ...] = ("text", "number", "markdown", "image", "audio")
COLUMN_TYPES: tuple[str, ...] = ("text", "number", "select", "selectrange", "multiselect")


@dataclass(frozen=True)
class ValidationResult:
    ok: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# ── Users ──────────────────────────────────────────────────


class User(ApiModel):
    id: str = Field(default="", alias="_id")
    email: str = ""
    first_name: str = ""
    last_name: str = ""
    role: str = "user"
    is_active: bool = True
    auth_provider: str = "local"
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def full_name(self) -> str:
        name = f"{self.first_name} {self.last_name}".strip()
        return name or self.email

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


# ── Datasets ───────────────────────────────────────────────


class SharedUser(ApiModel):
    user_id: str
    email: str = ""


class ImageAuthConfig(ApiModel):
    is_private: bool = False
    username: Optional[str] = None
    password: Optional[str] = None


class Dataset(ApiModel):
    id: str = Field(default="", alias="_id")
    name: str = ""
    description: str = ""
    dataset_type: Optional[str] = None
    access_type: str = "private"
    user_id: Any = None
    shared_with: list[SharedUser] = Field(default_factory=list)
    image_auth_config: Optional[ImageAuthConfig] = None
    available_columns: list[dict[str, Any]] = Field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def owner_id(self) -> str:
        # populated owner comes back as an object
        if isinstance(self.user_id, dict):
            return str(self.user_id.get("_id", ""))
        return str(self.user_id or "")

    @property
    def column_names(self) -> list[str]:
        return [str(c.get("name")) for c in self.available_columns if c.get("name")]


# ── CSV imports ────────────────────────────────────────────


class CSVImportMetadata(ApiModel):
    delimiter: str = ","
    encoding: str = "utf-8"
    has_header: bool = True
    total_columns: int = 0


class CSVImport(ApiModel):
    id: str = Field(default="", alias="_id")
    dataset_id: str = ""
    file_name: str = ""
    original_file_name: str = ""
    file_size: int = 0
    total_rows: int = 0
    processed_rows: int = 0
    status: str = ""
    columns: list[str] = Field(default_factory=list)
    metadata: Optional[CSVImportMetadata] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    completed_at: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.original_file_name or self.file_name or self.id


class CSVUploadResult(ApiModel):
    csv_import_id: str
    file_name: str = ""
    total_rows: int = 0
    columns: list[str] = Field(default_factory=list)
    status: str = ""


class HeaderValidationError(ApiModel):
    error_type: HeaderErrorType
    column_name: str
    message: str
    expected_column_name: Optional[str] = None


class HeaderValidationResult(ApiModel):
    is_valid: bool
    errors: list[HeaderValidationError] = Field(default_factory=list)
    expected_headers: list[str] = Field(default_factory=list)
    new_headers: list[str] = Field(default_factory=list)
    dataset_id: str = ""
    existing_import_count: int = 0


# ── Field configuration ────────────────────────────────────


class AnnotationField(ApiModel):
    csv_column_name: str
    field_name: str = ""
    field_type: FieldType = "text"
    is_required: bool = False
    is_annotation_field: bool = False
    is_primary_key: bool = False
    is_visible: bool = True
    options: list[str] = Field(default_factory=list)
    instructions: Optional[str] = None
    is_new_column: bool = False
    new_column_id: Optional[str] = None

    @property
    def panel(self) -> str:
        return "annotation" if (self.is_annotation_field or self.is_new_column) else "metadata"

    @property
    def label(self) -> str:
        return self.field_name or self.csv_column_name


class ColumnValidation(ApiModel):
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    min: Optional[float] = None
    max: Optional[float] = None
    pattern: Optional[str] = None


class NewColumn(ApiModel):
    id: str
    column_name: str = ""
    column_type: ColumnType = "text"
    is_required: bool = False
    default_value: str = ""
    options: list[str] = Field(default_factory=list)
    placeholder: str = ""
    validation: ColumnValidation = Field(default_factory=ColumnValidation)


class AnnotationLabel(ApiModel):
    name: str = ""
    color: str = "#ef4444"
    description: str = ""
    hotkey: str = ""


class FieldConfig(ApiModel):
    id: str = Field(default="", alias="_id")
    annotation_fields: list[AnnotationField] = Field(default_factory=list)
    annotation_labels: list[AnnotationLabel] = Field(default_factory=list)
    new_columns: list[NewColumn] = Field(default_factory=list)
    last_viewed_row: int = 0
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


# ── Annotation records ─────────────────────────────────────


class ImageMetadata(ApiModel):
    url: str
    caption: str = ""
    is_selected: bool = False
    order: int = 0


class AudioSegment(ApiModel):
    id: str
    start_time: float
    end_time: float
    transcription: str = ""
    label: str = ""

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time


class ImageAnnotation(ApiModel):
    id: str = Field(default="", alias="_id")
    dataset_id: str = ""
    row_index: int = 0
    field_name: str = ""
    images: list[ImageMetadata] = Field(default_factory=list)
    user_id: Optional[str] = None
    is_ai_generated: bool = False
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


# ── Merged rows & progress ─────────────────────────────────


class CSVInfo(ApiModel):
    csv_import_id: str = ""
    file_name: str = ""
    original_csv_row_index: int = 0


class MergedRow(ApiModel):
    row_index: int
    data: dict[str, Any] = Field(default_factory=dict)
    processed: bool = False
    completed: bool = False
    completed_at: Optional[str] = None
    csv_info: Optional[CSVInfo] = None


class MergedImportSummary(ApiModel):
    csv_import_id: str = ""
    file_name: str = ""
    total_rows: int = 0
    start_row_index: int = 0
    end_row_index: int = 0
    uploaded_at: Optional[str] = None


class DatasetMergedRows(ApiModel):
    id: str = Field(default="", alias="_id")
    dataset_id: str = ""
    merged_rows: Optional[list[MergedRow]] = None
    csv_imports: list[MergedImportSummary] = Field(default_factory=list)
    total_rows: int = 0
    total_csv_files: int = 0
    last_row_index: int = 0
    status: str = ""
    last_updated_at: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class CSVProgress(ApiModel):
    file_name: str = ""
    total_rows: int = 0
    completed_rows: int = 0
    progress_percentage: float = 0.0


class AnnotationProgress(ApiModel):
    total_rows: int = 0
    completed_rows: int = 0
    pending_rows: int = 0
    progress_percentage: float = 0.0
    csv_breakdown: list[CSVProgress] = Field(default_factory=list)


class RowStatus(ApiModel):
    row_index: int
    completed: bool = False
    completed_at: Optional[str] = None


class DetailedProgress(ApiModel):
    total_rows: int = 0
    completed_rows: int = 0
    pending_rows: int = 0
    progress_percentage: float = 0.0
    last_viewed_row: int = 0
    row_statuses: list[RowStatus] = Field(default_factory=list)


class CompletionStatus(ApiModel):
    all_completed: bool = False
    completed_count: int = 0
    total_count: int = 0
    completion_percentage: float = 0.0


class PatchRowDataResponse(ApiModel):
    success: bool = False
    data: Any = None
    updated_fields: int = 0
    changed_fields: list[str] = Field(default_factory=list)
    updated_at: Optional[str] = None
