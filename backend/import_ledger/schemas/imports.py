"""Pydantic schemas for import jobs, row results and progress reporting."""
import enum
import json
import math
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

from import_ledger.core.config import settings
from import_ledger.models.import_job import (
    ImportEntityType,
    ImportStatus,
    RowStatus,
    parse_entity_type,
    parse_import_status,
    parse_row_status,
)

T = TypeVar("T")


def page_count(total: int, limit: int) -> int:
    """Zero pages for an empty result, so "empty" never looks like one empty page."""
    return 0 if total == 0 else math.ceil(total / limit)


@dataclass
class Page(Generic[T]):
    items: list[T]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return page_count(self.total, self.limit)


# ─── Filters ───

class ImportFilter(BaseModel):
    status: ImportStatus | None = None
    entity_type: ImportEntityType | None = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=settings.IMPORT_PAGE_SIZE_DEFAULT, ge=1, le=settings.PAGE_SIZE_MAX)

    @field_validator("status", mode="before")
    @classmethod
    def _status(cls, v):
        return None if v is None else parse_import_status(v)

    @field_validator("entity_type", mode="before")
    @classmethod
    def _entity_type(cls, v):
        return None if v is None else parse_entity_type(v)


class RowFilter(BaseModel):
    status: RowStatus | None = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=settings.ROW_PAGE_SIZE_DEFAULT, ge=1, le=settings.PAGE_SIZE_MAX)

    @field_validator("status", mode="before")
    @classmethod
    def _status(cls, v):
        return None if v is None else parse_row_status(v)


# ─── Inputs ───

class ImportCreate(BaseModel):
    entity_type: ImportEntityType
    file_name: str = Field(min_length=1, max_length=255)
    file_size: int = Field(gt=0)

    @field_validator("entity_type", mode="before")
    @classmethod
    def _entity_type(cls, v):
        return parse_entity_type(v)


class ImportStatusUpdate(BaseModel):
    """Sparse patch: only fields present in ``model_fields_set`` are applied.

    Sending ``"error_message": null`` clears the message; leaving the key out
    keeps whatever is stored.
    """

    status: ImportStatus | None = None
    total_rows: int | None = Field(default=None, ge=0)
    processed_rows: int | None = Field(default=None, ge=0)
    success_count: int | None = Field(default=None, ge=0)
    warning_count: int | None = Field(default=None, ge=0)
    error_count: int | None = Field(default=None, ge=0)
    error_message: str | None = None

    @field_validator("status", mode="before")
    @classmethod
    def _status(cls, v):
        return None if v is None else parse_import_status(v)

    def present(self) -> dict[str, Any]:
        """Fields the caller actually supplied, with their values."""
        return self.model_dump(include=self.model_fields_set)


class ValidationStart(BaseModel):
    total_rows: int = Field(ge=0)


class CompletionCounts(BaseModel):
    success_count: int = Field(ge=0)
    warning_count: int = Field(ge=0)
    error_count: int = Field(ge=0)


class FailureReport(BaseModel):
    error_message: str = Field(min_length=1)


class RowSeed(BaseModel):
    row_number: int = Field(ge=1)
    raw_data: str


class RowBatchCreate(BaseModel):
    rows: list[RowSeed]


class RowOutcome(BaseModel):
    status: RowStatus
    entity_id: str | None = None
    message: str | None = None
    errors: list[str] | None = None

    @field_validator("status", mode="before")
    @classmethod
    def _status(cls, v):
        return parse_row_status(v)


class ProgressUpdate(RowOutcome):
    row_number: int = Field(ge=1)


class CounterDelta(BaseModel):
    processed_rows: int = Field(default=0, ge=0)
    success_count: int = Field(default=0, ge=0)
    warning_count: int = Field(default=0, ge=0)
    error_count: int = Field(default=0, ge=0)

    def non_zero(self) -> dict[str, int]:
        return {k: v for k, v in self.model_dump().items() if v}


# ─── Outputs ───

class ImportOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    organization_id: str
    entity_type: ImportEntityType
    file_name: str
    file_url: str
    file_size: int
    status: ImportStatus
    total_rows: int
    processed_rows: int
    success_count: int
    warning_count: int
    error_count: int
    error_message: str | None
    created_by: str
    started_at: datetime | None
    completed_at: datetime | None
    created_at: datetime
    updated_at: datetime


class RowResultOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    import_id: uuid.UUID
    row_number: int
    status: RowStatus
    raw_data: str
    entity_id: str | None
    message: str | None
    errors: list[str] | None
    created_at: datetime
    updated_at: datetime

    @field_validator("errors", mode="before")
    @classmethod
    def _decode_errors(cls, v):
        if isinstance(v, str):
            return json.loads(v)
        return v


class ImportListResponse(BaseModel):
    items: list[ImportOut]
    total: int
    page: int
    limit: int
    total_pages: int


class RowResultListResponse(BaseModel):
    items: list[RowResultOut]
    total: int
    page: int
    limit: int
    total_pages: int


class ImportWithResultsOut(ImportOut):
    results: RowResultListResponse


class RowBatchCreated(BaseModel):
    created: int


class RowUpdateResponse(BaseModel):
    row: RowResultOut | None


class ProgressPollResponse(BaseModel):
    import_id: uuid.UUID
    status: ImportStatus
    total_rows: int
    processed_rows: int
    success_count: int
    warning_count: int
    error_count: int
    rows: list[RowResultOut]
    cursor: datetime  # pass back as ?since= on the next poll


class ImportJob(BaseModel):
    """Everything the external worker is told about a new import."""

    import_id: uuid.UUID
    organization_id: str
    entity_type: ImportEntityType
    file_url: str
    created_by: str


class ProgressEventType(str, enum.Enum):
    CONNECTED = "connected"
    ROW_UPDATE = "row_update"
    STATUS_CHANGE = "status_change"
    COMPLETED = "completed"
    ERROR = "error"
    PING = "ping"


class ProgressEvent(BaseModel):
    type: ProgressEventType
    data: dict[str, Any] = {}
    timestamp: datetime


def list_response(page: Page, item_schema: type[BaseModel], response_cls: type[BaseModel]) -> Any:
    return response_cls(
        items=[item_schema.model_validate(item) for item in page.items],
        total=page.total,
        page=page.page,
        limit=page.limit,
        total_pages=page.total_pages,
    )
