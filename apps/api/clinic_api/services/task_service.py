"""Task service - workflow-created tasks and round-robin assignment."""

import logging
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from clinic_api.core.constants import ROUND_ROBIN_WINDOW_DAYS
from clinic_api.db.enums import TaskPriority, TaskStatus, TaskType
from clinic_api.db.models import Deal, Task, User
from clinic_api.db.types import utcnow
from clinic_api.services.workflow_service import parse_uuid

logger = logging.getLogger(__name__)


def build_task_content(deal: Deal) -> str:
    return f"Auto-created by workflow for deal: {deal.title or deal.id}"


def count_recent_tasks(db: Session, now: datetime | None = None) -> int:
    """Tasks created across all deals in the trailing round-robin window."""
    since = (now or utcnow()) - timedelta(days=ROUND_ROBIN_WINDOW_DAYS)
    return db.query(func.count(Task.id)).filter(Task.created_at >= since).scalar() or 0


def resolve_assignee(db: Session, candidate_ids: list[str]) -> User | None:
    """
    Pick the assignee for a workflow task.

    One known candidate is assigned directly. Several rotate on the global
    trailing-window task count, so concurrent workflows advance the same
    counter and two runs reading the same count land on the same user. That
    race is accepted; there is no per-workflow counter.
    """
    ids: list[UUID] = []
    for raw in candidate_ids:
        parsed = parse_uuid(raw)
        if parsed and parsed not in ids:
            ids.append(parsed)
    if not ids:
        return None

    found = {user.id: user for user in db.query(User).filter(User.id.in_(ids)).all()}
    users = [found[user_id] for user_id in ids if user_id in found]
    if not users:
        logger.warning(f"Configured assignees not found: {len(ids)} id(s)")
        return None
    if len(users) == 1:
        return users[0]

    index = count_recent_tasks(db) % len(users)
    return users[index]


def create_workflow_task(
    db: Session,
    *,
    name: str,
    content: str,
    patient_id: UUID | None,
    activity_date: datetime,
    candidate_user_ids: list[str],
) -> Task:
    """Create (and flush) a workflow task; the caller commits with its audit step."""
    assignee = resolve_assignee(db, candidate_user_ids)
    task = Task(
        name=name,
        content=content,
        status=TaskStatus.NOT_STARTED.value,
        priority=TaskPriority.MEDIUM.value,
        type=TaskType.TODO.value,
        activity_date=activity_date,
        assigned_user_id=assignee.id if assignee else None,
        assigned_user_name=assignee.display_name if assignee else None,
        patient_id=patient_id,
    )
    db.add(task)
    db.flush()
    return task
