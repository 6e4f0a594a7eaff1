"""Map ledger domain errors onto HTTP responses."""
from typing import NoReturn

from fastapi import HTTPException, status

from import_ledger.core.errors import (
    ImportLedgerError,
    ImportNotFoundError,
    InvalidEntityTypeError,
    InvalidStatusError,
)


def raise_http(exc: ImportLedgerError) -> NoReturn:
    if isinstance(exc, ImportNotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Import not found.") from exc
    if isinstance(exc, (InvalidEntityTypeError, InvalidStatusError)):
        code = status.HTTP_422_UNPROCESSABLE_ENTITY
    else:
        code = status.HTTP_409_CONFLICT
    raise HTTPException(status_code=code, detail={"code": exc.code, "message": str(exc)}) from exc
