"""Anonymous access codes: the only identity a submitter ever has.

A code is 12 symbols drawn from a 32-symbol alphabet without look-alike
characters (no ``0/O/1/I``), shown as ``XXXX-XXXX-XXXX``.

Only ``hash_access_code(code)`` is stored. Lookup by code is lookup by hash.
"""
from __future__ import annotations

import hashlib
import re
import secrets

ACCESS_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
ACCESS_CODE_LENGTH = 12
GROUP_SIZE = 4
DELIMITER = "-"

_STRIP_RE = re.compile(r"[\s\-]+")


def generate_access_code() -> str:
    """Return a fresh code like ``K7QM-2XWD-HNP9``."""
    symbols = [secrets.choice(ACCESS_CODE_ALPHABET) for _ in range(ACCESS_CODE_LENGTH)]
    groups = [
        "".join(symbols[i : i + GROUP_SIZE])
        for i in range(0, ACCESS_CODE_LENGTH, GROUP_SIZE)
    ]
    return DELIMITER.join(groups)


def normalize_access_code(code: str) -> str:
    """Strip delimiters and whitespace and uppercase, so typed variants match."""
    return _STRIP_RE.sub("", code or "").upper()


def hash_access_code(code: str) -> str:
    """One-way SHA-256 digest (hex) of the normalized code."""
    return hashlib.sha256(normalize_access_code(code).encode("utf-8")).hexdigest()


def is_well_formed(code: str) -> bool:
    """Cheap shape check before touching the database."""
    normalized = normalize_access_code(code)
    return len(normalized) == ACCESS_CODE_LENGTH and all(
        ch in ACCESS_CODE_ALPHABET for ch in normalized
    )
