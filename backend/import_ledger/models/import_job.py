import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from import_ledger.core.errors import InvalidEntityTypeError, InvalidStatusError
from import_ledger.db.base import Base, TimestampMixin, UUIDMixin


class ImportStatus(str, enum.Enum):
    PENDING = "PENDING"
    VALIDATING = "VALIDATING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (ImportStatus.COMPLETED, ImportStatus.FAILED)

    @property
    def is_started(self) -> bool:
        return self in (ImportStatus.VALIDATING, ImportStatus.PROCESSING)


class ImportEntityType(str, enum.Enum):
    CLIENT = "CLIENT"
    TRANSACTION = "TRANSACTION"


class RowStatus(str, enum.Enum):
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    WARNING = "WARNING"
    ERROR = "ERROR"
    SKIPPED = "SKIPPED"


# ─── Storage mapping ───

def _parse(enum_cls: type[enum.Enum], value: object) -> enum.Enum | None:
    if isinstance(value, enum_cls):
        return value
    if not isinstance(value, str):
        return None
    try:
        return enum_cls(value.strip().upper())
    except ValueError:
        return None


def parse_import_status(value: object) -> ImportStatus:
    status = _parse(ImportStatus, value)
    if status is None:
        raise InvalidStatusError(value, kind="import status")
    return status


def parse_entity_type(value: object) -> ImportEntityType:
    entity_type = _parse(ImportEntityType, value)
    if entity_type is None:
        raise InvalidEntityTypeError(value)
    return entity_type


def parse_row_status(value: object) -> RowStatus:
    row_status = _parse(RowStatus, value)
    if row_status is None:
        raise InvalidStatusError(value, kind="row status")
    return row_status


def _check_in(column: str, enum_cls: type[enum.Enum]) -> str:
    allowed = ",".join(f"'{member.value}'" for member in enum_cls)
    return f"{column} IN ({allowed})"


# ─── Tables ───

class Import(Base, UUIDMixin, TimestampMixin):
    """A bulk-upload job targeting one entity kind."""

    __tablename__ = "imports"
    __table_args__ = (
        CheckConstraint(_check_in("entity_type", ImportEntityType), name="ck_imports_entity_type"),
        CheckConstraint(_check_in("status", ImportStatus), name="ck_imports_status"),
        CheckConstraint(
            "total_rows >= 0 AND processed_rows >= 0 AND success_count >= 0 "
            "AND warning_count >= 0 AND error_count >= 0",
            name="ck_imports_counters_non_negative",
        ),
        Index("ix_imports_org_created_at", "organization_id", "created_at"),
    )

    organization_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    entity_type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_url: Mapped[str] = mapped_column(Text, nullable=False)  # object storage key
    file_size: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ImportStatus.PENDING.value, index=True
    )
    total_rows: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    processed_rows: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    success_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    warning_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)  # ERROR + SKIPPED rows
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    row_results: Mapped[list["ImportRowResult"]] = relationship(
        "ImportRowResult",
        back_populates="import_job",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="raise",
    )


class ImportRowResult(Base, UUIDMixin, TimestampMixin):
    """Outcome of one row of an import."""

    __tablename__ = "import_row_results"
    __table_args__ = (
        UniqueConstraint("import_id", "row_number", name="uq_import_row_results_import_row"),
        CheckConstraint(_check_in("status", RowStatus), name="ck_import_row_results_status"),
        CheckConstraint("row_number >= 1", name="ck_import_row_results_row_number"),
        Index("ix_import_row_results_import_updated_at", "import_id", "updated_at"),
    )

    import_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("imports.id", ondelete="CASCADE"), nullable=False, index=True
    )
    row_number: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=RowStatus.PENDING.value, index=True
    )
    raw_data: Mapped[str] = mapped_column(Text, nullable=False)  # opaque, never parsed here
    entity_id: Mapped[str | None] = mapped_column(String(64), nullable=True)  # created client/transaction
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    errors: Mapped[str | None] = mapped_column(Text, nullable=True)  # JSON array of strings

    import_job: Mapped["Import"] = relationship("Import", back_populates="row_results")
