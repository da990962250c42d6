"""Aggregate API router: mounts all sub-routers."""
from fastapi import APIRouter, Depends

from feedback_portal.api import admin, feedback, portal, webhooks
from feedback_portal.api.deps import require_api_key

router = APIRouter(prefix="/api")

# Public: the anonymous submitter only ever holds an access code
router.include_router(portal.router, prefix="/portal", tags=["Portal"])

_keyed = [Depends(require_api_key)]
router.include_router(feedback.router, prefix="/feedback", tags=["Feedback"], dependencies=_keyed)
router.include_router(webhooks.router, prefix="/webhooks", tags=["Webhooks"], dependencies=_keyed)
router.include_router(admin.router, prefix="/admin", tags=["Admin"], dependencies=_keyed)
