"""Workflow engine - runs deal-stage-changed workflows end to end.

Load the deal and patient, narrow active workflows by trigger and conditions,
then for each match create an enrollment and dispatch its actions in order.
Everything runs sequentially; one failing action never stops the next.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_api.core.structured_logging import build_log_context
from clinic_api.db.enums import WorkflowTriggerType
from clinic_api.db.models import Deal, Patient, Workflow
from clinic_api.schemas.workflow import DealStageChangedEvent, WorkflowRunSummary
from clinic_api.services import workflow_enrollment_service, workflow_service
from clinic_api.services.template_service import build_template_context
from clinic_api.services.workflow_conditions import evaluate_conditions, extract_condition_nodes
from clinic_api.services.workflow_engine_adapters import (
    DefaultWorkflowActionDispatcher,
    WorkflowActionDispatcher,
    WorkflowRunContext,
)
from clinic_api.services.workflow_triggers import match_workflows

logger = logging.getLogger(__name__)


class WorkflowEventError(Exception):
    """Base error for events the engine refuses before running any workflow."""

    pass


class InvalidWorkflowEventError(WorkflowEventError):
    """Required event fields are missing."""

    pass


class WorkflowEntityNotFoundError(WorkflowEventError):
    """The event's deal or patient does not exist."""

    pass


class WorkflowLoadError(WorkflowEventError):
    """Active workflows could not be read."""

    pass


REQUIRED_EVENT_FIELDS = (
    ("deal_id", "dealId"),
    ("patient_id", "patientId"),
    ("to_stage_id", "toStageId"),
)


class WorkflowEngine:
    """
    Deal-stage-changed workflow orchestrator.

    Only validation, entity lookup and workflow loading abort an event; the
    per-workflow and per-action work is isolated and audited.
    """

    def __init__(self, dispatcher: WorkflowActionDispatcher | None = None) -> None:
        self.dispatcher = dispatcher or DefaultWorkflowActionDispatcher()

    def handle_deal_stage_changed(
        self,
        db: Session,
        event: DealStageChangedEvent,
    ) -> WorkflowRunSummary:
        """Process one stage-change (or creation) event and summarize what ran."""
        missing = [alias for name, alias in REQUIRED_EVENT_FIELDS if not getattr(event, name)]
        if missing:
            raise InvalidWorkflowEventError(f"Missing required fields: {', '.join(missing)}")

        deal, patient = self._load_entities(db, event)

        try:
            candidates = workflow_service.list_active_workflows(
                db, WorkflowTriggerType.DEAL_STAGE_CHANGED
            )
        except SQLAlchemyError as e:
            logger.exception(
                "Failed to load workflows",
                extra=build_log_context(deal_id=deal.id),
            )
            raise WorkflowLoadError("Failed to load workflows") from e

        triggered = match_workflows(candidates, event)
        if not triggered:
            logger.info(
                f"No workflows matched stage change to {event.to_stage_id}",
                extra=build_log_context(deal_id=deal.id),
            )
            return WorkflowRunSummary(workflows=0, actions_run=0)

        try:
            service_name = workflow_service.get_service_name(db, deal.service_id)
        except SQLAlchemyError:
            db.rollback()
            logger.warning("Service lookup failed; service left empty", extra=build_log_context(deal_id=deal.id))
            service_name = None

        try:
            stages = workflow_service.get_stages(db, [event.from_stage_id, event.to_stage_id])
        except SQLAlchemyError:
            db.rollback()
            logger.warning("Stage lookup failed; stage names left empty", extra=build_log_context(deal_id=deal.id))
            stages = {}
        from_stage = stages.get(event.from_stage_id) if event.from_stage_id else None
        to_stage = stages.get(event.to_stage_id)

        matched = [
            workflow
            for workflow in triggered
            if evaluate_conditions(
                extract_condition_nodes(workflow.config),
                deal,
                patient,
                service_name,
                to_stage,
            )
        ]

        template_context = build_template_context(deal, patient, from_stage, to_stage)
        trigger_data = workflow_enrollment_service.build_trigger_snapshot(
            deal, patient, from_stage, to_stage
        )

        actions_run = 0
        for workflow in matched:
            actions_run += self._execute_workflow(
                db,
                workflow,
                deal=deal,
                patient=patient,
                template_context=template_context,
                trigger_data=trigger_data,
            )

        return WorkflowRunSummary(workflows=len(matched), actions_run=actions_run)

    def _load_entities(self, db: Session, event: DealStageChangedEvent) -> tuple[Deal, Patient]:
        deal = workflow_service.get_deal(db, event.deal_id)
        if not deal:
            raise WorkflowEntityNotFoundError("Deal not found")
        patient = workflow_service.get_patient(db, event.patient_id)
        if not patient:
            raise WorkflowEntityNotFoundError("Patient not found")
        return deal, patient

    def _execute_workflow(
        self,
        db: Session,
        workflow: Workflow,
        *,
        deal: Deal,
        patient: Patient,
        template_context: dict,
        trigger_data: dict,
    ) -> int:
        """Enroll the event in one workflow and run its actions; returns actions run."""
        workflow_id = workflow.id
        enrollment = workflow_enrollment_service.create_enrollment(
            db,
            workflow=workflow,
            deal=deal,
            patient=patient,
            trigger_data=trigger_data,
        )
        enrollment_id = enrollment.id if enrollment else None
        log_extra = build_log_context(
            workflow_id=workflow_id,
            enrollment_id=enrollment_id,
            deal_id=deal.id,
        )

        try:
            entries = workflow_service.resolve_actions(db, workflow)
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Failed to resolve workflow actions", extra=log_extra)
            return 0

        if not entries:
            logger.info(f"Workflow {workflow_id} has no actions to run", extra=log_extra)
            return 0

        logger.info(f"Running {len(entries)} action(s) for workflow {workflow_id}", extra=log_extra)
        run = WorkflowRunContext(
            workflow=workflow,
            deal=deal,
            patient=patient,
            template_context=template_context,
            enrollment_id=enrollment_id,
        )

        actions_run = 0
        for entry in entries:
            actions_run += self.dispatcher.run_action(db, entry, run)
        return actions_run


# Singleton instance
engine = WorkflowEngine()
