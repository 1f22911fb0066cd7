"""
Identifying the acting user.

Accounts live in the company identity provider, not here. A request may
carry a bearer JWT whose ``sub`` names the user; that name is what the audit
columns record. Requests without a token act as the configured system user.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional, Any

from jose import JWTError, jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from erp.core.config import settings

# The header is optional, so no automatic 403
security_scheme = HTTPBearer(auto_error=False)

ACTOR_MAX_LENGTH = 100


def unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def create_access_token(
    subject: str,
    expires_delta: Optional[timedelta] = None,
    additional_claims: Optional[dict[str, Any]] = None
) -> str:
    """
    Sign an access token for ``subject``.

    Used by scripts and tests; production tokens come from the identity
    provider and only need to share the secret and algorithm.
    """
    issued_at = datetime.now(timezone.utc)
    lifetime = expires_delta or timedelta(minutes=settings.jwt_access_token_expire_minutes)

    claims = {"sub": str(subject), "type": "access", "iat": issued_at, "exp": issued_at + lifetime}
    claims.update(additional_claims or {})

    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict[str, Any]:
    """Verify signature and expiry; any failure is a 401."""
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        raise unauthorized("Could not validate credentials")


async def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme)
) -> str:
    """Name to stamp on created_by/updated_by/deleted_by for this request."""
    if credentials is None:
        return settings.system_actor

    payload = decode_token(credentials.credentials)

    if payload.get("type", "access") != "access":
        raise unauthorized("Invalid token type. Access token required.")

    subject = payload.get("sub")
    if not subject:
        raise unauthorized("Invalid authentication credentials")

    return str(subject)[:ACTOR_MAX_LENGTH]
