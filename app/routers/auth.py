"""
Microsoft sign-in.

Two entry points converge on one sign-in callback:

- /login + /callback: server-side authorization code flow with PKCE. The
  pending flow travels in an encrypted cookie between the two requests.
- /token: a browser client that already holds a Graph token hands it over;
  the account is read from Graph /me.

Either way the account is resolved against the roster and, if admitted, a
session token is returned and set as a cookie.
"""
import logging

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.concurrency import run_in_threadpool

from app.adapters.ms365 import IdentityProvider, MS365AdapterError, fetch_account
from app.adapters.storage import StorageBackend
from app.core.config import settings
from app.core.exceptions import (
    AccountDisabledError,
    AccountNotRegisteredError,
    AuthenticationError,
)
from app.core.limiter import limiter
from app.core.security import open_json, seal_json
from app.dependencies import get_identity_provider, get_state, get_store
from app.routers.auth_deps import get_current_user
from app.schemas.auth import Account, LogoutResponse, Token, TokenExchangeRequest
from app.schemas.employee import Employee
from app.services import auth as auth_service
from app.services.identity import admit, resolve_identity_within
from app.services.state import AppState

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/auth",
    tags=["auth"]
)

# Seconds a started sign-in may take before the flow cookie is refused
FLOW_TTL_SECONDS = 600


def _secure_cookies() -> bool:
    return settings.environment not in ("development", "testing")


def _clear_session(response: Response) -> None:
    response.delete_cookie(settings.session_cookie_name, path="/")
    response.delete_cookie(settings.flow_cookie_name, path=f"{settings.api_prefix}/auth")


async def _sign_in(account: Account, response: Response, store: StorageBackend,
                   state: AppState, identity: IdentityProvider):
    try:
        resolution = await resolve_identity_within(store, account, settings.identity_timeout_seconds)
        user = admit(resolution, state, logout_url=identity.logout_url())
    except (AccountDisabledError, AccountNotRegisteredError) as e:
        denied = JSONResponse(status_code=e.status_code, content=e.to_content())
        _clear_session(denied)
        return denied

    access_token = auth_service.create_access_token(data={"sub": user.email, "role": user.role.value})
    response.set_cookie(
        settings.session_cookie_name,
        access_token,
        max_age=settings.access_token_expire_minutes * 60,
        httponly=True,
        secure=_secure_cookies(),
        samesite="lax",
        path="/",
    )
    response.delete_cookie(settings.flow_cookie_name, path=f"{settings.api_prefix}/auth")
    logger.info(f"{user.email} signed in as {user.role.value} ({resolution.outcome.value})")
    return Token(access_token=access_token, outcome=resolution.outcome.value, user=user)


@router.get("/login")
@limiter.limit(settings.login_rate_limit)
def login(request: Request, identity: IdentityProvider = Depends(get_identity_provider)):
    """Redirect the browser to Microsoft sign-in."""
    try:
        flow = identity.initiate_login()
    except MS365AdapterError as e:
        logger.error(f"Could not start sign-in: {e}")
        raise AuthenticationError("Microsoft sign-in is not configured")

    redirect = RedirectResponse(flow["auth_uri"], status_code=302)
    redirect.set_cookie(
        settings.flow_cookie_name,
        seal_json(flow),
        max_age=FLOW_TTL_SECONDS,
        httponly=True,
        secure=_secure_cookies(),
        samesite="lax",
        path=f"{settings.api_prefix}/auth",
    )
    return redirect


@router.get("/callback", response_model=Token)
@limiter.limit(settings.login_rate_limit)
async def callback(
    request: Request,
    response: Response,
    store: StorageBackend = Depends(get_store),
    state: AppState = Depends(get_state),
    identity: IdentityProvider = Depends(get_identity_provider),
):
    """Redirect target of the Microsoft sign-in."""
    sealed = request.cookies.get(settings.flow_cookie_name)
    flow = open_json(sealed, ttl=FLOW_TTL_SECONDS) if sealed else None
    if flow is None:
        raise AuthenticationError("Sign-in expired or was not started here. Please sign in again.")

    try:
        _, account = await run_in_threadpool(identity.complete_login, flow, dict(request.query_params))
    except MS365AdapterError as e:
        logger.warning(f"Sign-in callback rejected: {e}")
        raise AuthenticationError("Microsoft sign-in failed")

    return await _sign_in(account, response, store, state, identity)


@router.post("/token", response_model=Token)
@limiter.limit(settings.login_rate_limit)
async def exchange_token(
    request: Request,
    body: TokenExchangeRequest,
    response: Response,
    store: StorageBackend = Depends(get_store),
    state: AppState = Depends(get_state),
    identity: IdentityProvider = Depends(get_identity_provider),
):
    """Sign in with a Graph access token acquired by a browser client."""
    try:
        account = await run_in_threadpool(
            fetch_account, body.access_token, settings.graph.base_url, settings.graph.request_timeout
        )
    except MS365AdapterError as e:
        logger.warning(f"Token exchange rejected: {e}")
        raise AuthenticationError("Microsoft token was not accepted")

    return await _sign_in(account, response, store, state, identity)


@router.post("/logout", response_model=LogoutResponse)
def logout(response: Response, identity: IdentityProvider = Depends(get_identity_provider)):
    _clear_session(response)
    return LogoutResponse(message="Signed out", logout_url=identity.logout_url())


@router.get("/me", response_model=Employee)
def read_users_me(current_user: Employee = Depends(get_current_user)):
    return current_user
