"""Runs deferred workflow work once it is due.

The engine never waits on a clock: delayed and recurring tasks become jobs and
delayed WhatsApp messages become `scheduled` rows. An external cron calls the
internal endpoint, which lands here. Enrollment steps are not touched; the
artifacts carry their own status.
"""

import logging
from datetime import datetime, timedelta

from pydantic import BaseModel
from sqlalchemy.orm import Session

from clinic_api.db.enums import JobType, WhatsAppMessageStatus
from clinic_api.db.models import Job, WhatsAppMessage
from clinic_api.db.types import utcnow
from clinic_api.services import job_service, task_service, whatsapp_service
from clinic_api.services.workflow_service import parse_uuid

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 50


class ScheduledRunResult(BaseModel):
    processed: int = 0
    succeeded: int = 0
    failed: int = 0

    def add(self, ok: bool) -> None:
        self.processed += 1
        if ok:
            self.succeeded += 1
        else:
            self.failed += 1


def _run_create_task_job(db: Session, job: Job, now: datetime) -> None:
    payload = job.payload or {}
    due_days = payload.get("due_days") or 0
    task = task_service.create_workflow_task(
        db,
        name=payload.get("name") or "",
        content=payload.get("content") or "",
        patient_id=parse_uuid(payload.get("patient_id")),
        activity_date=now + timedelta(days=due_days),
        candidate_user_ids=payload.get("candidate_user_ids") or [],
    )
    logger.info(f"Job {job.id} created task {task.id}")


JOB_HANDLERS = {
    JobType.WORKFLOW_CREATE_TASK.value: _run_create_task_job,
}


def process_due_jobs(
    db: Session,
    now: datetime | None = None,
    limit: int = DEFAULT_BATCH_SIZE,
) -> ScheduledRunResult:
    """Run pending jobs whose run_at has passed, oldest first."""
    now = now or utcnow()
    result = ScheduledRunResult()
    for job in job_service.get_pending_jobs(db, limit=limit, now=now):
        job_id = job.id
        handler = JOB_HANDLERS.get(job.job_type)
        if handler is None:
            job_service.mark_job_failed(db, job, f"Unknown job type: {job.job_type}")
            result.add(False)
            continue
        try:
            handler(db, job, now)
            job_service.mark_job_completed(db, job)
            result.add(True)
        except Exception as e:
            db.rollback()
            logger.exception(f"Scheduled job {job_id} failed")
            job = db.get(Job, job_id)
            if job:
                job_service.mark_job_failed(db, job, str(e) or e.__class__.__name__)
            result.add(False)
    return result


def get_due_whatsapp_messages(
    db: Session,
    now: datetime,
    limit: int = DEFAULT_BATCH_SIZE,
) -> list[WhatsAppMessage]:
    return (
        db.query(WhatsAppMessage)
        .filter(
            WhatsAppMessage.status == WhatsAppMessageStatus.SCHEDULED.value,
            WhatsAppMessage.scheduled_for <= now,
        )
        .order_by(WhatsAppMessage.scheduled_for)
        .limit(limit)
        .all()
    )


def process_scheduled_whatsapp(
    db: Session,
    now: datetime | None = None,
    limit: int = DEFAULT_BATCH_SIZE,
) -> ScheduledRunResult:
    """Send WhatsApp messages whose scheduled_for has passed."""
    now = now or utcnow()
    result = ScheduledRunResult()
    for message in get_due_whatsapp_messages(db, now, limit=limit):
        try:
            message_sid = whatsapp_service.send_message(
                patient_id=message.patient_id,
                to_number=message.to_number,
                message=message.body,
            )
        except whatsapp_service.ChatDeliveryError as e:
            logger.warning(f"Scheduled WhatsApp message {message.id} failed: {e}")
            message.status = WhatsAppMessageStatus.FAILED.value
            message.error_message = str(e)
            db.commit()
            result.add(False)
            continue

        message.status = WhatsAppMessageStatus.SENT.value
        message.sent_at = utcnow()
        message.message_sid = message_sid
        db.commit()
        result.add(True)
    return result


def run_scheduled_workflow_work(db: Session, now: datetime | None = None) -> ScheduledRunResult:
    """Run every kind of due workflow work and return combined counts."""
    now = now or utcnow()
    jobs = process_due_jobs(db, now=now)
    messages = process_scheduled_whatsapp(db, now=now)
    return ScheduledRunResult(
        processed=jobs.processed + messages.processed,
        succeeded=jobs.succeeded + messages.succeeded,
        failed=jobs.failed + messages.failed,
    )
