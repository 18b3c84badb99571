"""
Internal endpoints for scheduled/cron operations.

Protected by X-Internal-Secret header.
Call from external cron (Render/Railway/GH Actions).
"""
from fastapi import APIRouter, Header, HTTPException

from clinic_api.core.config import settings
from clinic_api.db.session import SessionLocal
from clinic_api.services import scheduled_delivery_service
from clinic_api.services.scheduled_delivery_service import ScheduledRunResult


router = APIRouter(prefix="/internal/scheduled", tags=["internal"])


def verify_internal_secret(x_internal_secret: str = Header(...)):
    """Verify the internal secret header."""
    expected = settings.INTERNAL_SECRET
    if not expected:
        raise HTTPException(status_code=501, detail="INTERNAL_SECRET not configured")
    if x_internal_secret != expected:
        raise HTTPException(status_code=403, detail="Invalid internal secret")


@router.post("/workflow-jobs", response_model=ScheduledRunResult)
def run_workflow_jobs(x_internal_secret: str = Header(...)):
    """
    Run deferred workflow work that is due.

    - Pending jobs (delayed/recurring create_task)
    - WhatsApp messages in `scheduled` status whose time has come
    """
    verify_internal_secret(x_internal_secret)

    with SessionLocal() as db:
        return scheduled_delivery_service.run_scheduled_workflow_work(db)
