"""Authentication utilities for the GigFlow backend."""

from datetime import datetime, timedelta, timezone
from typing import Annotated

from fastapi import Depends, HTTPException, Request, Response, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from gigflow.models import Account
from gigflow.storage import EntityStore

from .config import Settings, get_settings
from .dependencies import Store

# Cookie name for httpOnly auth
AUTH_COOKIE_NAME = "gigflow_auth"

# Bearer token scheme
# Make bearer optional to allow cookie fallback
security = HTTPBearer(auto_error=False)


def create_access_token(
    account_id: str,
    settings: Settings,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a JWT access token for an account."""
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.jwt_expire_minutes)

    to_encode = {
        "sub": account_id,
        "exp": expire,
        "iat": datetime.now(timezone.utc),
        "type": "access",
    }
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str, settings: Settings) -> dict:
    """Decode and validate a JWT token."""
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
        return payload
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )


def account_from_token(token: str | None, settings: Settings, store: EntityStore) -> Account | None:
    """Resolve a token to its account, or None if the token or account is invalid.

    Used where raising is not an option (the websocket join).
    """
    if not token:
        return None
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None
    account_id = payload.get("sub")
    if not account_id or payload.get("type") != "access":
        return None
    return store.get_account(account_id)


async def get_current_account(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    settings: Annotated[Settings, Depends(get_settings)],
    request: Request,
    store: Store,
) -> Account:
    """Get the authenticated account from the bearer token or auth cookie."""
    # Try Authorization header first, then fall back to cookie
    token = None
    if credentials:
        token = credentials.credentials
    else:
        token = request.cookies.get(AUTH_COOKIE_NAME)

    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated - provide Authorization header or auth cookie",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_token(token, settings)
    account_id = payload.get("sub")
    if not account_id or payload.get("type") != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    account = store.get_account(account_id)
    if account is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account no longer exists",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return account


# Type alias for dependency injection
CurrentAccount = Annotated[Account, Depends(get_current_account)]


# =============================================================================
# Cookie-based Auth Helpers
# =============================================================================

COOKIE_MAX_AGE = 7 * 24 * 60 * 60  # 7 days in seconds


def set_auth_cookie(response: Response, token: str, settings: Settings):
    """Set httpOnly auth cookie."""
    response.set_cookie(
        key=AUTH_COOKIE_NAME,
        value=token,
        max_age=COOKIE_MAX_AGE,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="strict",  # CSRF protection - block cross-site requests entirely
        path="/",
    )


def clear_auth_cookie(response: Response, settings: Settings):
    """Clear the auth cookie (logout)."""
    response.delete_cookie(
        key=AUTH_COOKIE_NAME,
        path="/",
        httponly=True,
        secure=settings.cookie_secure,
        samesite="strict",
    )
