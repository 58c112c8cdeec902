"""
MS365 drive adapter.

Reads and writes one JSON file on OneDrive. Every download returns the
item's eTag; uploads can be made conditional on it (If-Match).
"""

import json
import logging
from typing import Any, Dict, Optional, Tuple
from urllib.parse import quote

from .client import GraphClient

logger = logging.getLogger(__name__)


class DriveFile:
    def __init__(self, client: GraphClient, path: str, owner: Optional[str] = None):
        """
        Args:
            client: Graph client carrying an app-only or delegated token
            path: file path relative to the drive root, e.g. "performance-review/db.json"
            owner: user whose drive holds the file; None means the token's own drive (/me)
        """
        self.client = client
        self.path = path.strip("/")
        drive = f"users/{quote(owner)}/drive" if owner else "me/drive"
        self._item = f"{drive}/root:/{quote(self.path)}:"

    def download(self) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
        """
        Fetch the file.

        Returns:
            (document, etag), or (None, None) if the file does not exist

        Raises:
            MS365AdapterError: On any other failure
        """
        meta = self.client.request("GET", self._item, params={"$select": "id,eTag"}, allow=(404,))
        if meta.status_code == 404:
            logger.info(f"Drive file {self.path} not found")
            return None, None
        etag = meta.json().get("eTag")

        content = self.client.request("GET", f"{self._item}/content")
        document = json.loads(content.content or b"{}")
        return document, etag

    def upload(self, document: Dict[str, Any], if_match: Optional[str] = None) -> Optional[str]:
        """
        Replace the file content.

        Args:
            if_match: eTag the file must still carry; None writes unconditionally

        Returns:
            The new eTag

        Raises:
            MS365ConflictError: If the file changed since ``if_match`` was read
        """
        headers = {"Content-Type": "application/json"}
        if if_match:
            headers["If-Match"] = if_match
        body = json.dumps(document, indent=2).encode("utf-8")
        response = self.client.request("PUT", f"{self._item}/content", data=body, headers=headers)
        logger.info(f"Saved drive file {self.path} ({len(body)} bytes)")
        return response.json().get("eTag")
