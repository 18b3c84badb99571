"""SQLAlchemy ORM models."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import ForeignKey, Index, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from clinic_api.db.base import Base
from clinic_api.db.enums import TaskPriority, TaskStatus, TaskType
from clinic_api.db.types import utcnow


class Task(Base):
    """To-do item for clinic staff, optionally linked to a patient."""

    __tablename__ = "tasks"
    __table_args__ = (
        Index("idx_tasks_created", "created_at"),
        Index("idx_tasks_assignee", "assigned_user_id", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=TaskStatus.NOT_STARTED.value)
    priority: Mapped[str] = mapped_column(String(20), default=TaskPriority.MEDIUM.value)
    type: Mapped[str] = mapped_column(String(20), default=TaskType.TODO.value)
    activity_date: Mapped[datetime | None] = mapped_column(nullable=True)
    assigned_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    assigned_user_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    patient_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("patients.id", ondelete="CASCADE"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )
