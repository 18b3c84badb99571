"""Enrollment/audit recorder for workflow runs.

One enrollment per (workflow, event) and one append-only step per action
outcome. Recording is best-effort: a failed audit write is logged and the
workflow keeps running.
"""

import logging
from datetime import datetime
from uuid import UUID

from pydantic_core import to_jsonable_python
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_api.core.structured_logging import build_log_context
from clinic_api.db.enums import EnrollmentStatus, EnrollmentStepStatus, EnrollmentStepType
from clinic_api.db.models import (
    Deal,
    DealStage,
    Patient,
    Workflow,
    WorkflowEnrollment,
    WorkflowEnrollmentStep,
)
from clinic_api.db.types import utcnow
from clinic_api.types import JsonObject

logger = logging.getLogger(__name__)

DEAL_SNAPSHOT_FIELDS = (
    "id",
    "patient_id",
    "stage_id",
    "service_id",
    "pipeline",
    "contact_label",
    "location",
    "title",
    "value",
    "notes",
)
PATIENT_SNAPSHOT_FIELDS = ("id", "first_name", "last_name", "email", "phone")


def _row_snapshot(row: object | None, fields: tuple[str, ...]) -> JsonObject | None:
    if row is None:
        return None
    return to_jsonable_python({name: getattr(row, name) for name in fields})


def build_trigger_snapshot(
    deal: Deal,
    patient: Patient,
    from_stage: DealStage | None,
    to_stage: DealStage | None,
) -> JsonObject:
    """Freeze the event's stages and entities as they were at enrollment time."""
    stage_fields = ("id", "name", "type")
    return {
        "from_stage": _row_snapshot(from_stage, stage_fields),
        "to_stage": _row_snapshot(to_stage, stage_fields),
        "deal": _row_snapshot(deal, DEAL_SNAPSHOT_FIELDS),
        "patient": _row_snapshot(patient, PATIENT_SNAPSHOT_FIELDS),
    }


def create_enrollment(
    db: Session,
    *,
    workflow: Workflow,
    deal: Deal,
    patient: Patient,
    trigger_data: JsonObject,
) -> WorkflowEnrollment | None:
    """Insert the enrollment row; None (logged) when the insert fails."""
    enrollment = WorkflowEnrollment(
        workflow_id=workflow.id,
        patient_id=patient.id,
        deal_id=deal.id,
        status=EnrollmentStatus.ACTIVE.value,
        trigger_data=trigger_data,
        enrolled_at=utcnow(),
    )
    try:
        db.add(enrollment)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception(
            "Failed to create workflow enrollment",
            extra=build_log_context(workflow_id=workflow.id, deal_id=deal.id),
        )
        return None
    return enrollment


def record_step(
    db: Session,
    *,
    enrollment_id: UUID | None,
    action_type: str,
    step_config: JsonObject,
    status: EnrollmentStepStatus,
    result: JsonObject | None = None,
    error_message: str | None = None,
    executed_at: datetime | None = None,
) -> bool:
    """
    Append one step and commit it together with any pending action rows.

    Without an enrollment there is nowhere to attach the step; pending rows
    are still committed. Returns False when the commit failed and everything
    pending was rolled back.
    """
    try:
        if enrollment_id:
            step = WorkflowEnrollmentStep(
                enrollment_id=enrollment_id,
                step_type=EnrollmentStepType.ACTION.value,
                step_action=action_type,
                step_config=to_jsonable_python(step_config),
                status=status.value,
                executed_at=executed_at or utcnow(),
                result=to_jsonable_python(result) if result is not None else None,
                error_message=error_message,
            )
            db.add(step)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception(
            "Failed to record workflow step",
            extra=build_log_context(enrollment_id=enrollment_id, action_type=action_type),
        )
        return False
    return True
