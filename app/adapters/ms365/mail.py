"""
MS365 mail adapter.

Sends HTML mail through Microsoft Graph on behalf of a configured sender.
"""

from typing import Any, Dict
from urllib.parse import quote

from .client import GraphClient


def build_message(to_email: str, subject: str, html_body: str) -> Dict[str, Any]:
    return {
        "message": {
            "subject": subject,
            "body": {"contentType": "HTML", "content": html_body},
            "toRecipients": [{"emailAddress": {"address": to_email}}],
        },
        "saveToSentItems": True,
    }


def send_message(client: GraphClient, sender: str, to_email: str, subject: str, html_body: str) -> None:
    """
    Send one message.

    Raises:
        MS365AdapterError: If Graph rejects the message
    """
    client.request(
        "POST",
        f"users/{quote(sender)}/sendMail",
        json=build_message(to_email, subject, html_body),
    )
