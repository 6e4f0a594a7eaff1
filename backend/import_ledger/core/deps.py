from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Query, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from import_ledger.core.security import decode_token, verify_internal_token
from import_ledger.db.session import get_session
from import_ledger.services.dispatch import CeleryImportDispatcher
from import_ledger.services.ledger import ImportLedger
from import_ledger.services.storage import ImportFileStore

# Tokens come from the shared auth service; tokenUrl only feeds the docs UI.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")


@dataclass(frozen=True)
class Principal:
    user_id: str
    organization_id: str


def _principal_from_token(token: str | None) -> Principal:
    credentials_exc = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if not token:
        raise credentials_exc
    try:
        payload = decode_token(token)
    except JWTError:
        raise credentials_exc
    if payload.get("type") != "access" or not payload.get("sub"):
        raise credentials_exc

    organization_id = payload.get("org")
    if not organization_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="No organization context in token.",
        )
    return Principal(user_id=str(payload["sub"]), organization_id=str(organization_id))


async def get_current_principal(token: Annotated[str, Depends(oauth2_scheme)]) -> Principal:
    """Validate the bearer JWT and return who is calling, for which organization."""
    return _principal_from_token(token)


async def get_principal_from_query(
    token: Annotated[str | None, Query(description="Access token (EventSource cannot send headers)")] = None,
) -> Principal:
    return _principal_from_token(token)


async def require_internal_token(
    x_internal_token: Annotated[str | None, Header()] = None,
) -> None:
    """Guard for the worker callback routes."""
    if not verify_internal_token(x_internal_token):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid internal token.",
        )


# ─── Services ───

def get_ledger(db: Annotated[AsyncSession, Depends(get_session)]) -> ImportLedger:
    return ImportLedger(db)


def get_file_store(request: Request) -> ImportFileStore:
    return request.app.state.file_store


def get_dispatcher(request: Request) -> CeleryImportDispatcher:
    return request.app.state.dispatcher
