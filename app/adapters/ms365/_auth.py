"""
MS365 authentication adapter.

Wraps MSAL for the two token flows the service needs:

- delegated sign-in: authorization code flow with PKCE, producing the user's
  bearer token and account (email, display name)
- app-only: client credentials token used for the drive store and mail
"""

import logging
from typing import Any, Dict, Optional, Tuple
from urllib.parse import quote

import msal

from app.core.config import MSALSettings
from app.schemas.auth import Account

logger = logging.getLogger(__name__)

GRAPH_DEFAULT_SCOPE = "https://graph.microsoft.com/.default"


class MS365AdapterError(Exception):
    """Base exception for MS365 adapter errors."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class MS365ConflictError(MS365AdapterError):
    """The resource changed since it was read (HTTP 412 on If-Match)."""


def build_msal_app(config: MSALSettings):
    """
    Create the MSAL client application.

    A confidential client is used when a client secret is configured; otherwise
    the registration is treated as a public client (PKCE only).
    """
    if not config.client_id:
        raise MS365AdapterError("MSAL_CLIENT_ID not configured")
    if config.client_secret:
        return msal.ConfidentialClientApplication(
            config.client_id,
            client_credential=config.client_secret,
            authority=config.authority,
        )
    return msal.PublicClientApplication(config.client_id, authority=config.authority)


def account_from_claims(claims: Dict[str, Any]) -> Account:
    email = claims.get("preferred_username") or claims.get("email") or claims.get("upn")
    if not email:
        raise MS365AdapterError("Identity token carries no email claim")
    return Account(email=email, name=claims.get("name"))


class IdentityProvider:
    """Sign-in and token acquisition against Microsoft identity."""

    def __init__(self, config: MSALSettings, app=None):
        self.config = config
        self._app = app

    @property
    def app(self):
        if self._app is None:
            self._app = build_msal_app(self.config)
        return self._app

    def initiate_login(self) -> Dict[str, Any]:
        """
        Start an authorization code flow.

        Returns:
            The MSAL flow dict. ``flow["auth_uri"]`` is where the browser goes;
            the whole dict must be handed back to complete_login.
        """
        return self.app.initiate_auth_code_flow(
            self.config.scopes,
            redirect_uri=self.config.redirect_uri,
        )

    def complete_login(self, flow: Dict[str, Any], auth_response: Dict[str, str]) -> Tuple[str, Account]:
        """
        Redeem the authorization response for tokens.

        Raises:
            MS365AdapterError: If the response does not match the flow or is an error
        """
        try:
            result = self.app.acquire_token_by_auth_code_flow(flow, auth_response)
        except ValueError as e:
            # State mismatch or missing code
            raise MS365AdapterError(f"Invalid authorization response: {e}") from e

        if "error" in result:
            raise MS365AdapterError(result.get("error_description") or result["error"])

        account = account_from_claims(result.get("id_token_claims") or {})
        logger.info(f"Identity provider signed in {account.email}")
        return result["access_token"], account

    def acquire_app_token(self) -> str:
        if not self.config.client_secret:
            raise MS365AdapterError("App-only Graph access requires MSAL_CLIENT_SECRET")
        result = self.app.acquire_token_for_client(scopes=[GRAPH_DEFAULT_SCOPE])
        if "access_token" not in result:
            raise MS365AdapterError(
                f"Client credentials token failed: {result.get('error_description') or result.get('error')}"
            )
        return result["access_token"]

    def logout_url(self) -> str:
        return (
            f"{self.config.authority.rstrip('/')}/oauth2/v2.0/logout"
            f"?post_logout_redirect_uri={quote(self.config.post_logout_redirect_uri, safe='')}"
        )
