"""Startup housekeeping run from the FastAPI lifespan."""
from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


def ensure_notification_channels() -> int:
    """Make sure every channel type has a (disabled) settings row.

    Returns the number of rows created. A database error is logged and the
    app starts anyway; the admin API creates missing rows on first save.
    """
    from feedback_portal.database import SessionLocal
    from feedback_portal.services.config_repository import ConfigRepository

    db = SessionLocal()
    try:
        return ConfigRepository(db).ensure_channels()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning("Could not create notification channel rows: %s", exc)
        return 0
    finally:
        db.close()
