"""SQLAlchemy ORM models."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Text, Uuid, func, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clinic_api.db.base import Base
from clinic_api.db.types import JsonColumn, utcnow


class Workflow(Base):
    """
    Automation workflow definition.

    Authored by the workflow builder; read-only to the engine. `config` holds
    either the legacy flat trigger keys (from_stage_id, to_stage_id, pipeline,
    trigger_on_creation) or the builder graph (`nodes`), or both.
    """

    __tablename__ = "workflows"
    __table_args__ = (Index("idx_workflows_trigger_active", "trigger_type", "active"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    trigger_type: Mapped[str] = mapped_column(String(50), nullable=False)
    active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=text("TRUE"), nullable=False
    )
    config: Mapped[dict] = mapped_column(JsonColumn, default=dict, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )

    actions: Mapped[list["WorkflowAction"]] = relationship(
        back_populates="workflow",
        cascade="all, delete-orphan",
        order_by="WorkflowAction.sort_order",
    )


class WorkflowAction(Base):
    """Legacy ordered action row, used when the workflow has no graph action nodes."""

    __tablename__ = "workflow_actions"
    __table_args__ = (Index("idx_workflow_actions_order", "workflow_id", "sort_order"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    workflow_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("workflows.id", ondelete="CASCADE"), nullable=False
    )
    action_type: Mapped[str] = mapped_column(String(50), nullable=False)
    config: Mapped[dict] = mapped_column(JsonColumn, default=dict, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    workflow: Mapped["Workflow"] = relationship(back_populates="actions")


class WorkflowEnrollment(Base):
    """
    Audit record of one workflow running against one event.

    `trigger_data` freezes the stages, deal and patient as they were at
    enrollment time.
    """

    __tablename__ = "workflow_enrollments"
    __table_args__ = (
        Index("idx_workflow_enrollments_workflow_id", "workflow_id"),
        Index("idx_workflow_enrollments_patient_id", "patient_id"),
        Index("idx_workflow_enrollments_status", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    workflow_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("workflows.id", ondelete="CASCADE"), nullable=False
    )
    patient_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("patients.id", ondelete="CASCADE"), nullable=False
    )
    deal_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("deals.id", ondelete="SET NULL"), nullable=True
    )
    status: Mapped[str] = mapped_column(String(20), default="active", nullable=False)
    trigger_data: Mapped[dict | None] = mapped_column(JsonColumn, nullable=True)
    enrolled_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )

    steps: Mapped[list["WorkflowEnrollmentStep"]] = relationship(
        back_populates="enrollment",
        cascade="all, delete-orphan",
        order_by="WorkflowEnrollmentStep.created_at",
    )


class WorkflowEnrollmentStep(Base):
    """One action outcome within an enrollment. Append-only."""

    __tablename__ = "workflow_enrollment_steps"
    __table_args__ = (
        Index("idx_workflow_enrollment_steps_enrollment_id", "enrollment_id"),
        Index("idx_workflow_enrollment_steps_status", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    enrollment_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("workflow_enrollments.id", ondelete="CASCADE"), nullable=False
    )
    step_type: Mapped[str] = mapped_column(String(20), nullable=False)
    step_action: Mapped[str | None] = mapped_column(String(50), nullable=True)
    step_config: Mapped[dict | None] = mapped_column(JsonColumn, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    executed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    result: Mapped[dict | None] = mapped_column(JsonColumn, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )

    enrollment: Mapped["WorkflowEnrollment"] = relationship(back_populates="steps")
