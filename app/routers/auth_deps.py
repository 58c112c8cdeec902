"""
Role-based access dependencies.

The session token only says who signed in. Every request looks the employee up
in the state cache again, so a disabled or deleted account loses access
immediately regardless of the token it holds.
"""
import logging
from typing import Callable, List, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.config import settings
from app.core.exceptions import AccountDisabledError
from app.core.logging import user_email_var
from app.dependencies import get_state
from app.schemas.employee import Employee, Role
from app.services import auth as auth_service
from app.services.state import AppState

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def _session_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    if credentials is not None:
        return credentials.credentials
    return request.cookies.get(settings.session_cookie_name)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    state: AppState = Depends(get_state),
) -> Employee:
    """
    Extracts the signed-in employee from the session token.
    """
    token = _session_token(request, credentials)
    if not token:
        raise _unauthorized("Not signed in")

    payload = auth_service.decode_access_token(token)
    if payload is None:
        logger.warning("Authentication failed: Invalid token")
        raise _unauthorized("Could not validate credentials")

    if payload.get("error") == "TOKEN_EXPIRED":
        logger.info("Authentication failed: Token expired")
        raise _unauthorized("TOKEN_EXPIRED")

    if payload.get("type") != "access":
        logger.warning("Authentication failed: Invalid token type")
        raise _unauthorized("Invalid token type")

    email = payload.get("sub")
    if email is None:
        logger.warning("Authentication failed: Missing subject (email) in token")
        raise _unauthorized("Missing subject in token")

    employee = state.snapshot().find_employee(email)
    if employee is None:
        logger.warning(f"Authentication failed: {email} is no longer on the roster")
        raise _unauthorized("User not found")
    if employee.is_disabled:
        logger.warning(f"Authentication failed: {email} is disabled")
        identity = getattr(request.app.state, "identity", None)
        raise AccountDisabledError(email, identity.logout_url() if identity else None)
    user_email_var.set(employee.email)
    return employee


def require_role(allowed_roles: List[Role]) -> Callable:
    """
    Dependency factory that checks if the user has one of the allowed roles.

    Usage:
        @router.get("/roster")
        def roster(user: Employee = Depends(require_role([Role.HR]))):
            ...
    """
    def role_checker(current_user: Employee = Depends(get_current_user)) -> Employee:
        if current_user.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required roles: {[r.value for r in allowed_roles]}"
            )
        return current_user
    return role_checker


def require_hr():
    return require_role([Role.HR])


def require_manager():
    """Managers and HR."""
    return require_role([Role.MANAGER, Role.HR])


__all__ = [
    "bearer_scheme",
    "get_current_user",
    "require_role",
    "require_hr",
    "require_manager",
]
