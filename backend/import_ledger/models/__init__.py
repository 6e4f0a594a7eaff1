from import_ledger.models.import_job import (
    Import,
    ImportEntityType,
    ImportRowResult,
    ImportStatus,
    RowStatus,
)

__all__ = [
    "Import", "ImportRowResult",
    "ImportStatus", "ImportEntityType", "RowStatus",
]
