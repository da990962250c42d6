"""Shared request dependencies."""
from __future__ import annotations

import hmac
import logging

from fastapi import Depends, Header, HTTPException, status

from feedback_portal.config import Settings, get_settings

logger = logging.getLogger(__name__)

_open_access_warned = False


def require_api_key(
    x_api_key: str | None = Header(None),
    settings: Settings = Depends(get_settings),
) -> None:
    """Gate the integration and admin APIs behind ``X-API-Key``.

    With no ``FEEDBACK_API_KEY`` configured the API is open; that is logged
    once as a warning.
    """
    global _open_access_warned
    expected = settings.FEEDBACK_API_KEY
    if not expected:
        if not _open_access_warned:
            logger.warning("FEEDBACK_API_KEY not set - API access is open")
            _open_access_warned = True
        return
    if not x_api_key or not hmac.compare_digest(x_api_key.encode(), expected.encode()):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
