"""Authentication routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response, status

from gigflow.errors import AuthenticationError

from ..auth import CurrentAccount, clear_auth_cookie, create_access_token, set_auth_cookie
from ..config import Settings, get_settings
from ..dependencies import Accounts
from ..logging_config import get_logger, log_auth_event
from ..models import LoginRequest, RegisterRequest
from ..rate_limit import AUTH_LIMIT, limiter

logger = get_logger("gigflow.api.auth")
router = APIRouter(prefix="/auth", tags=["auth"])


def _token_payload(account, token: str, settings: Settings) -> dict:
    return {
        "success": True,
        "data": {
            "account": account.to_dict(),
            "access_token": token,
            "token_type": "bearer",
            "expires_in": settings.jwt_expire_minutes * 60,
        },
    }


@router.post("/register", status_code=status.HTTP_201_CREATED)
@limiter.limit(AUTH_LIMIT)
async def register(
    request: Request,
    response: Response,
    register_request: RegisterRequest,
    accounts: Accounts,
    settings: Annotated[Settings, Depends(get_settings)],
):
    """
    Register a new account.

    Returns an access token and also sets an httpOnly cookie for browser-based auth.
    """
    logger.info(f"POST /auth/register | role={register_request.role or 'both'}")
    try:
        account = accounts.register(
            name=register_request.name,
            email=register_request.email,
            password=register_request.password,
            role=register_request.role,
            bio=register_request.bio,
            skills=register_request.skills,
        )
    except Exception as e:
        log_auth_event("register", register_request.email or "unknown", False, type(e).__name__)
        raise

    token = create_access_token(account.id, settings)
    log_auth_event("register", account.id, True)
    set_auth_cookie(response, token, settings)
    return _token_payload(account, token, settings)


@router.post("/login")
@limiter.limit(AUTH_LIMIT)
async def login(
    request: Request,
    response: Response,
    login_request: LoginRequest,
    accounts: Accounts,
    settings: Annotated[Settings, Depends(get_settings)],
):
    """Exchange email + password for an access token (and auth cookie)."""
    try:
        account = accounts.authenticate(login_request.email, login_request.password)
    except AuthenticationError:
        log_auth_event("login", login_request.email or "unknown", False, "bad credentials")
        raise

    token = create_access_token(account.id, settings)
    log_auth_event("login", account.id, True)
    set_auth_cookie(response, token, settings)
    return _token_payload(account, token, settings)


@router.post("/logout")
async def logout(
    response: Response,
    settings: Annotated[Settings, Depends(get_settings)],
):
    """Clear auth cookie and logout."""
    clear_auth_cookie(response, settings)
    return {"success": True, "data": {"status": "logged_out"}}


@router.get("/me")
async def me(account: CurrentAccount):
    """The authenticated account's profile."""
    return {"success": True, "data": account.to_dict()}
