"""Job service - deferred workflow work the internal scheduler runs."""

from datetime import datetime

from sqlalchemy.orm import Session

from clinic_api.db.enums import JobStatus, JobType
from clinic_api.db.models import Job
from clinic_api.db.types import utcnow


def schedule_job(
    db: Session,
    job_type: JobType,
    payload: dict,
    run_at: datetime | None = None,
) -> Job:
    """
    Schedule a deferred job.

    If run_at is None, the job is due immediately. The caller owns the commit
    so the job and its audit step land together.
    """
    job = Job(
        job_type=job_type.value,
        payload=payload,
        run_at=run_at or utcnow(),
        status=JobStatus.PENDING.value,
    )
    db.add(job)
    db.flush()
    return job


def get_pending_jobs(db: Session, limit: int = 50, now: datetime | None = None) -> list[Job]:
    """
    Get pending jobs that are due to run.

    Returns jobs where status='pending' and run_at <= now, ordered by run_at.
    """
    now = now or utcnow()
    return (
        db.query(Job)
        .filter(
            Job.status == JobStatus.PENDING.value,
            Job.run_at <= now,
        )
        .order_by(Job.run_at)
        .limit(limit)
        .all()
    )


def mark_job_completed(db: Session, job: Job) -> None:
    job.status = JobStatus.COMPLETED.value
    job.attempts = (job.attempts or 0) + 1
    job.completed_at = utcnow()
    job.last_error = None
    db.commit()


def mark_job_failed(db: Session, job: Job, error: str) -> None:
    job.status = JobStatus.FAILED.value
    job.attempts = (job.attempts or 0) + 1
    job.last_error = error
    db.commit()
