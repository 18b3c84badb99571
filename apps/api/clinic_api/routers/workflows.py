"""Workflow API router - event intake and enrollment audit reads."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from clinic_api.core.deps import get_db
from clinic_api.core.structured_logging import build_log_context
from clinic_api.schemas.workflow import (
    DealStageChangedEvent,
    EnrollmentListItem,
    EnrollmentRead,
    WorkflowRunSummary,
)
from clinic_api.services import workflow_service
from clinic_api.services.workflow_engine import (
    InvalidWorkflowEventError,
    WorkflowEntityNotFoundError,
    WorkflowLoadError,
    engine,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workflows", tags=["Workflows"])


# =============================================================================
# Events
# =============================================================================

@router.post("/deal-stage-changed", response_model=WorkflowRunSummary, response_model_by_alias=True)
def deal_stage_changed(
    event: DealStageChangedEvent,
    db: Session = Depends(get_db),
):
    """
    Run workflows for a deal that moved to a stage (or was created in one).

    Returns how many workflows matched and how many actions ran. No match is
    not an error.
    """
    try:
        return engine.handle_deal_stage_changed(db, event)
    except InvalidWorkflowEventError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except WorkflowEntityNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except WorkflowLoadError as e:
        raise HTTPException(status_code=500, detail=str(e))
    except Exception:
        logger.exception(
            "Unexpected error running workflows",
            extra=build_log_context(deal_id=event.deal_id, route="/workflows/deal-stage-changed"),
        )
        raise HTTPException(status_code=500, detail="Unexpected error running workflows")


# =============================================================================
# Enrollment Audit
# =============================================================================

@router.get("/enrollments/{enrollment_id}", response_model=EnrollmentRead)
def get_enrollment(
    enrollment_id: UUID,
    db: Session = Depends(get_db),
):
    """Get one enrollment with its steps in execution order."""
    enrollment = workflow_service.get_enrollment(db, enrollment_id)
    if not enrollment:
        raise HTTPException(status_code=404, detail="Enrollment not found")
    return EnrollmentRead.model_validate(enrollment)


@router.get("/{workflow_id}/enrollments", response_model=list[EnrollmentListItem])
def list_workflow_enrollments(
    workflow_id: UUID,
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
):
    """List a workflow's enrollments, newest first."""
    enrollments = workflow_service.list_enrollments(db, workflow_id, limit=limit)
    return [EnrollmentListItem.model_validate(e) for e in enrollments]
