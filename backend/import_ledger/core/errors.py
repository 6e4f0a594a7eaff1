"""Domain errors raised by the import ledger services.

Routes translate these into HTTP responses; nothing below the API layer
knows about status codes.
"""
import uuid


class ImportLedgerError(Exception):
    code: str = "IMPORT_LEDGER_ERROR"


class ImportNotFoundError(ImportLedgerError):
    """Import is absent, or belongs to another organization."""

    code = "NOT_FOUND"

    def __init__(self, import_id: uuid.UUID | str):
        self.import_id = import_id
        super().__init__(f"Import {import_id} not found")


class InvalidEntityTypeError(ImportLedgerError, ValueError):
    code = "INVALID_ENTITY_TYPE"

    def __init__(self, value: object):
        self.value = value
        super().__init__(f"Invalid entity type: {value!r}")


class InvalidStatusError(ImportLedgerError, ValueError):
    code = "INVALID_STATUS"

    def __init__(self, value: object, kind: str = "import status"):
        self.value = value
        super().__init__(f"Invalid {kind}: {value!r}")


class TotalRowsLockedError(ImportLedgerError):
    code = "TOTAL_ROWS_LOCKED"

    def __init__(self, import_id: uuid.UUID, current: int, requested: int):
        self.import_id = import_id
        super().__init__(
            f"Import {import_id} already has total_rows={current}; refusing to change it to {requested}"
        )


class RowCountMismatchError(ImportLedgerError):
    code = "ROW_COUNT_MISMATCH"

    def __init__(self, import_id: uuid.UUID, expected: int, received: int):
        self.import_id = import_id
        super().__init__(
            f"Import {import_id} expects {expected} rows but {received} were supplied"
        )


class DuplicateRowNumberError(ImportLedgerError):
    code = "DUPLICATE_ROW_NUMBER"

    def __init__(self, import_id: uuid.UUID, row_numbers: list[int] | None = None):
        self.import_id = import_id
        self.row_numbers = row_numbers or []
        if self.row_numbers:
            detail = f"row numbers sent more than once: {self.row_numbers}"
        else:
            detail = "some of the supplied row numbers already exist"
        super().__init__(f"Import {import_id}: {detail}")
