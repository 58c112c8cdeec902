import re
import html
import json
import logging
from typing import Any, Dict, Optional
from cryptography.fernet import Fernet, InvalidToken
from app.core.config import settings

logger = logging.getLogger(__name__)

def build_cipher(key: Optional[str]) -> Fernet:
    """Cipher for short-lived cookies (pending sign-in flow)."""
    if not key:
        logger.warning("ENCRYPTION_KEY not set; using a per-process key, pending sign-ins will not survive a restart.")
        return Fernet(Fernet.generate_key())
    return Fernet(key)

_cipher = build_cipher(settings.encryption_key)

def encrypt_data(data: str) -> str:
    """Encrypt sensitive string data."""
    if not data:
        return data
    try:
        return _cipher.encrypt(data.encode()).decode()
    except Exception as e:
        logger.error(f"Encryption failed: {e}")
        raise ValueError(f"Encryption failed, refusing to store plaintext: {e}") from e

def decrypt_data(encrypted_data: str, ttl: Optional[int] = None) -> Optional[str]:
    """Decrypt data produced by encrypt_data. Returns None when tampered or expired."""
    if not encrypted_data:
        return None
    try:
        return _cipher.decrypt(encrypted_data.encode(), ttl=ttl).decode()
    except InvalidToken:
        logger.warning("Decryption failed: token invalid or expired")
        return None

def seal_json(payload: Dict[str, Any]) -> str:
    return encrypt_data(json.dumps(payload))

def open_json(sealed: str, ttl: Optional[int] = None) -> Optional[Dict[str, Any]]:
    raw = decrypt_data(sealed, ttl=ttl)
    if raw is None:
        return None
    return json.loads(raw)

def sanitize_input(text: str) -> str:
    """Basic input sanitization to prevent XSS."""
    if not isinstance(text, str):
        return text
    # Strip script blocks first, then escape what is left
    stripped = re.sub(r'<script.*?>.*?</script>', '', text, flags=re.DOTALL | re.IGNORECASE)
    return html.escape(stripped, quote=True)
