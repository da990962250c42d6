"""Fernet encryption for notification channel secrets (bot tokens, webhook URLs)."""
from __future__ import annotations

import base64
import hashlib
import logging

from cryptography.fernet import Fernet, InvalidToken

from feedback_portal.config import get_settings

logger = logging.getLogger(__name__)

MASK = "••••••••"

_cipher: Fernet | None = None


def _get_cipher() -> Fernet:
    global _cipher
    if _cipher is None:
        settings = get_settings()
        # Derive a 32-byte key from SECRET_KEY using SHA-256
        key_bytes = hashlib.sha256(settings.SECRET_KEY.encode()).digest()
        _cipher = Fernet(base64.urlsafe_b64encode(key_bytes))
    return _cipher


def reset_cipher() -> None:
    """Forget the cached cipher so a changed SECRET_KEY takes effect."""
    global _cipher
    _cipher = None


def encrypt_value(plaintext: str) -> str:
    """Encrypt a string value. Returns a url-safe token string."""
    return _get_cipher().encrypt(plaintext.encode()).decode()


def decrypt_value(encrypted: str) -> str:
    """Decrypt a token produced by ``encrypt_value``."""
    try:
        return _get_cipher().decrypt(encrypted.encode()).decode()
    except InvalidToken:
        logger.error("Failed to decrypt value: invalid token or corrupted data")
        raise ValueError("Decryption failed: invalid key or corrupted data")


def mask_secret(value: str) -> str:
    """Return a masked version of a secret for display, keeping the last 4 chars."""
    if not value:
        return ""
    if len(value) <= 8:
        return MASK
    return f"{'•' * (len(value) - 4)}{value[-4:]}"


def is_masked(value: str) -> bool:
    """True for values produced by ``mask_secret`` (echoed back by the admin UI)."""
    return bool(value) and value.startswith("•")
