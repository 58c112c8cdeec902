"""
Thin Microsoft Graph REST client.

Adds the bearer token, applies the timeout and turns HTTP failures into
MS365AdapterError. Callers decide what a 404 means.
"""

from typing import Callable, Dict, Iterable, Optional

import requests

from ._auth import MS365AdapterError, MS365ConflictError
from app.schemas.auth import Account


class GraphClient:
    def __init__(
        self,
        token_provider: Callable[[], str],
        base_url: str = "https://graph.microsoft.com/v1.0",
        timeout: float = 15.0,
        session: Optional[requests.Session] = None,
    ):
        self._token_provider = token_provider
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def url(self, path: str) -> str:
        if path.startswith("http"):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def request(
        self,
        method: str,
        path: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        allow: Iterable[int] = (),
        **kwargs,
    ) -> requests.Response:
        """
        Send an authenticated request.

        Args:
            allow: non-2xx status codes returned to the caller instead of raised

        Raises:
            MS365ConflictError: On 412 Precondition Failed
            MS365AdapterError: On transport errors and other non-2xx responses
        """
        request_headers = {"Authorization": f"Bearer {self._token_provider()}"}
        request_headers.update(headers or {})
        try:
            response = self.session.request(
                method, self.url(path), headers=request_headers, timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            raise MS365AdapterError(f"Graph request failed: {e}") from e

        if response.status_code in set(allow):
            return response
        if response.status_code == 412:
            raise MS365ConflictError("Resource changed since it was read", status_code=412)
        if not response.ok:
            raise MS365AdapterError(
                f"Graph API error {response.status_code}: {response.reason}",
                status_code=response.status_code,
            )
        return response


def fetch_account(access_token: str, base_url: str, timeout: float = 15.0,
                  session: Optional[requests.Session] = None) -> Account:
    """Resolve the signed-in account behind a delegated bearer token via /me."""
    client = GraphClient(lambda: access_token, base_url=base_url, timeout=timeout, session=session)
    profile = client.request("GET", "me", params={"$select": "mail,userPrincipalName,displayName"}).json()
    email = profile.get("mail") or profile.get("userPrincipalName")
    if not email:
        raise MS365AdapterError("Graph profile carries no email")
    return Account(email=email, name=profile.get("displayName"))
