import hmac
from datetime import datetime, timedelta, timezone

from jose import jwt

from import_ledger.core.config import settings


# ─── JWT ──────────────────────────────────────────────────────────────────────
# Tokens are issued by the shared auth service; this service only verifies
# them. create_access_token exists for local tooling and tests.

def create_access_token(subject: str, organization_id: str | None, expires_minutes: int = 60) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    claims = {"sub": subject, "exp": expire, "type": "access"}
    if organization_id is not None:
        claims["org"] = organization_id
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    """Raises JWTError on invalid/expired token."""
    return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])


# ─── Internal (worker) API token ──────────────────────────────────────────────

def verify_internal_token(presented: str | None) -> bool:
    if not presented:
        return False
    return hmac.compare_digest(presented.encode(), settings.INTERNAL_API_TOKEN.encode())
