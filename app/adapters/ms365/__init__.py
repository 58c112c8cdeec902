"""
Microsoft 365 adapter package.

Provides normalized interfaces for MS365 operations:
- _auth: MSAL sign-in and app-only tokens
- client: authenticated Graph REST calls
- drive: one JSON file on OneDrive
- mail: outbound mail
"""

from ._auth import IdentityProvider, MS365AdapterError, MS365ConflictError
from .client import GraphClient, fetch_account
from .drive import DriveFile
from . import mail

__all__ = [
    "IdentityProvider",
    "MS365AdapterError",
    "MS365ConflictError",
    "GraphClient",
    "fetch_account",
    "DriveFile",
    "mail",
]
