"""Workflow action dispatchers.

Each action kind plans once per action (resolving recipients, templates and
skip conditions) and then runs once per timestamp of its send schedule.
Every run ends in exactly one enrollment step.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Protocol
from uuid import UUID

from pydantic import ValidationError
from sqlalchemy.orm import Session

from clinic_api.core.constants import DEFAULT_EMAIL_BODY_LINES, DEFAULT_EMAIL_SUBJECT
from clinic_api.core.structured_logging import build_log_context
from clinic_api.db.enums import (
    EmailStatus,
    EnrollmentStepStatus,
    JobType,
    MessageDirection,
    WhatsAppMessageStatus,
    WorkflowActionType,
    WorkflowEmailRecipient,
    WorkflowSendMode,
)
from clinic_api.db.models import Deal, Email, EmailTemplate, Patient, User, WhatsAppMessage, Workflow
from clinic_api.db.types import utcnow
from clinic_api.schemas.workflow import (
    ActionTiming,
    CreateTaskAction,
    ParsedAction,
    SendChatMessageAction,
    SendMessageAction,
    WorkflowActionEntry,
)
from clinic_api.services import (
    job_service,
    mailgun_service,
    task_service,
    whatsapp_service,
    workflow_enrollment_service,
)
from clinic_api.services.template_service import render_template, text_to_html
from clinic_api.services.workflow_service import parse_uuid
from clinic_api.types import JsonObject

logger = logging.getLogger(__name__)


@dataclass
class WorkflowRunContext:
    """Everything an action needs about the event it runs for."""

    workflow: Workflow
    deal: Deal
    patient: Patient
    template_context: JsonObject
    enrollment_id: UUID | None = None


@dataclass
class StepOutcome:
    """
    Result of one action attempt, written as one enrollment step.

    `deliver` runs after the step is committed; its failures are logged and
    never change the recorded outcome.
    """

    status: EnrollmentStepStatus
    result: JsonObject | None = None
    error: str | None = None
    deliver: Callable[[], None] | None = None

    @property
    def counts_as_run(self) -> bool:
        return self.status in (EnrollmentStepStatus.COMPLETED, EnrollmentStepStatus.SCHEDULED)


# Called once per scheduled timestamp: (scheduled_at, now) -> outcome
ActionRunner = Callable[[datetime, datetime], StepOutcome]


def build_send_schedule(timing: ActionTiming, now: datetime) -> list[datetime]:
    """
    Timestamps an action runs at.

    Recurring needs both an interval and a count and yields min(count, 30)
    timestamps starting at now; delay needs delay_minutes. Anything
    incomplete falls back to a single immediate run.
    """
    if timing.send_mode == WorkflowSendMode.RECURRING and timing.interval_days and timing.occurrences:
        interval = timedelta(days=timing.interval_days)
        return [now + interval * i for i in range(timing.occurrences)]
    if timing.send_mode == WorkflowSendMode.DELAY and timing.delay_minutes:
        return [now + timedelta(minutes=timing.delay_minutes)]
    return [now]


def _skipped(reason: str) -> StepOutcome:
    return StepOutcome(status=EnrollmentStepStatus.SKIPPED, error=reason)


class WorkflowActionDispatcher(Protocol):
    def run_action(
        self,
        db: Session,
        entry: WorkflowActionEntry,
        run: WorkflowRunContext,
    ) -> int: ...


class DefaultWorkflowActionDispatcher:
    """Dispatcher backed by the task, email and WhatsApp services."""

    def run_action(
        self,
        db: Session,
        entry: WorkflowActionEntry,
        run: WorkflowRunContext,
    ) -> int:
        """
        Run one configured action and record its steps.

        Returns how many runs completed or were scheduled. Failures never
        propagate: they are rolled back and recorded as failed steps. A run is
        only counted and delivered once its step and rows have committed.
        """
        action_type = WorkflowActionType.from_config(entry.action_type)
        step_action = action_type.value if action_type else (entry.action_type or "unknown")
        log_extra = build_log_context(
            workflow_id=run.workflow.id,
            enrollment_id=run.enrollment_id,
            deal_id=run.deal.id,
            action_type=step_action,
        )

        def record(outcome: StepOutcome) -> bool:
            return workflow_enrollment_service.record_step(
                db,
                enrollment_id=run.enrollment_id,
                action_type=step_action,
                step_config=entry.config,
                status=outcome.status,
                result=outcome.result,
                error_message=outcome.error,
            )

        if action_type is None:
            logger.warning(f"Skipping unknown workflow action type: {entry.action_type!r}", extra=log_extra)
            record(_skipped(f"Unknown action type: {entry.action_type or '(empty)'}"))
            return 0

        try:
            action = ParsedAction.model_validate(
                {"config": {**entry.config, "action_type": action_type.value}}
            ).config
            planned = self._plan(db, action, run)
        except ValidationError as e:
            logger.warning(f"Invalid {step_action} config: {e.error_count()} error(s)", extra=log_extra)
            record(StepOutcome(status=EnrollmentStepStatus.FAILED, error=f"Invalid action config: {e}"))
            return 0
        except Exception as e:
            db.rollback()
            logger.exception(f"Failed to prepare {step_action} action", extra=log_extra)
            record(StepOutcome(status=EnrollmentStepStatus.FAILED, error=str(e) or e.__class__.__name__))
            return 0

        if isinstance(planned, StepOutcome):
            logger.info(f"Skipping {step_action} action: {planned.error}", extra=log_extra)
            record(planned)
            return 0

        actions_run = 0
        now = utcnow()
        for scheduled_at in build_send_schedule(action, now):
            try:
                outcome = planned(scheduled_at, now)
            except Exception as e:
                db.rollback()
                logger.exception(f"Workflow action {step_action} failed", extra=log_extra)
                outcome = StepOutcome(
                    status=EnrollmentStepStatus.FAILED,
                    error=str(e) or e.__class__.__name__,
                )

            if not record(outcome):
                # The rollback discarded this run's rows; nothing may be delivered for it
                logger.error(f"Dropped {step_action} run after its step failed to commit", extra=log_extra)
                record(StepOutcome(status=EnrollmentStepStatus.FAILED, error="Failed to store action result"))
                continue

            if outcome.counts_as_run:
                actions_run += 1

            if outcome.deliver:
                try:
                    outcome.deliver()
                except Exception:
                    logger.exception(f"Delivery failed for {step_action} action", extra=log_extra)

        return actions_run

    def _plan(self, db: Session, action: ActionTiming, run: WorkflowRunContext) -> StepOutcome | ActionRunner:
        if isinstance(action, CreateTaskAction):
            return self._plan_create_task(db, action, run)
        if isinstance(action, SendMessageAction):
            return self._plan_send_message(db, action, run)
        if isinstance(action, SendChatMessageAction):
            return self._plan_send_chat_message(db, action, run)
        raise TypeError(f"Unhandled action config: {type(action).__name__}")

    # =========================================================================
    # create_task
    # =========================================================================

    def _plan_create_task(
        self,
        db: Session,
        action: CreateTaskAction,
        run: WorkflowRunContext,
    ) -> ActionRunner:
        name = render_template(action.title_template, run.template_context)
        content = task_service.build_task_content(run.deal)
        candidates = action.candidate_user_ids

        def run_at(scheduled_at: datetime, now: datetime) -> StepOutcome:
            if scheduled_at > now:
                # No provider clock for tasks: the internal scheduler creates it later
                job = job_service.schedule_job(
                    db,
                    JobType.WORKFLOW_CREATE_TASK,
                    payload={
                        "workflow_id": str(run.workflow.id),
                        "enrollment_id": str(run.enrollment_id) if run.enrollment_id else None,
                        "deal_id": str(run.deal.id),
                        "patient_id": str(run.patient.id),
                        "name": name,
                        "content": content,
                        "due_days": action.due_days,
                        "candidate_user_ids": candidates,
                    },
                    run_at=scheduled_at,
                )
                return StepOutcome(
                    status=EnrollmentStepStatus.SCHEDULED,
                    result={"job_id": str(job.id), "run_at": scheduled_at.isoformat(), "task_name": name},
                )

            task = task_service.create_workflow_task(
                db,
                name=name,
                content=content,
                patient_id=run.patient.id,
                activity_date=now + timedelta(days=action.due_days),
                candidate_user_ids=candidates,
            )
            logger.info(
                f"Created workflow task {task.id}",
                extra=build_log_context(workflow_id=run.workflow.id, deal_id=run.deal.id),
            )
            return StepOutcome(
                status=EnrollmentStepStatus.COMPLETED,
                result={
                    "task_id": str(task.id),
                    "task_name": task.name,
                    "assigned_user_id": str(task.assigned_user_id) if task.assigned_user_id else None,
                },
            )

        return run_at

    # =========================================================================
    # send_message (email)
    # =========================================================================

    def _resolve_recipient(self, db: Session, action: SendMessageAction, patient: Patient) -> str | None:
        if action.recipient == WorkflowEmailRecipient.SPECIFIC_USER.value and action.user_id:
            user_id = parse_uuid(action.user_id)
            user = db.query(User).filter(User.id == user_id).first() if user_id else None
            return user.email if user and user.email else None
        if action.recipient == WorkflowEmailRecipient.SPECIFIC_EMAIL.value and action.email_address:
            return action.email_address
        # TODO: resolve assigned_user from the deal owner once deals carry one; it goes to the patient for now
        return patient.email or None

    def _load_email_template(self, db: Session, template_id: str | None) -> EmailTemplate | None:
        parsed = parse_uuid(template_id) if template_id else None
        if not parsed:
            return None
        return db.query(EmailTemplate).filter(EmailTemplate.id == parsed).first()

    def _plan_send_message(
        self,
        db: Session,
        action: SendMessageAction,
        run: WorkflowRunContext,
    ) -> StepOutcome | ActionRunner:
        template = self._load_email_template(db, action.template_id)
        template_html = (template.html_content or template.body_template) if template else None
        template_subject = template.subject_template if template else None

        recipient = self._resolve_recipient(db, action, run.patient)
        if not recipient:
            return _skipped("No valid recipient email")

        context = run.template_context
        subject = render_template(
            action.subject or action.subject_template or template_subject or DEFAULT_EMAIL_SUBJECT,
            context,
        )
        if template_html:
            body_html = render_template(template_html, context)
        elif action.use_html and action.body_html_template and action.body_html_template.strip():
            body_html = render_template(action.body_html_template, context)
        else:
            body_template = action.body_template
            if body_template is None:
                body_template = "\n".join(DEFAULT_EMAIL_BODY_LINES)
            body_html = text_to_html(render_template(body_template, context))

        def run_at(scheduled_at: datetime, now: datetime) -> StepOutcome:
            is_future = scheduled_at > now
            email = Email(
                patient_id=run.patient.id,
                deal_id=run.deal.id,
                to_address=recipient,
                from_address=None,
                subject=subject,
                body=body_html,
                status=(EmailStatus.QUEUED if is_future else EmailStatus.SENT).value,
                direction=MessageDirection.OUTBOUND.value,
                sent_at=scheduled_at,
            )
            db.add(email)
            db.flush()

            def deliver() -> None:
                if not mailgun_service.mailgun_configured():
                    logger.info(
                        f"Mailgun not configured; email {email.id} stored without delivery",
                        extra=build_log_context(workflow_id=run.workflow.id, deal_id=run.deal.id),
                    )
                    return
                mailgun_service.send_email(
                    to_email=recipient,
                    subject=subject,
                    html=body_html,
                    reply_to=mailgun_service.build_reply_alias(email.id),
                    deliver_at=scheduled_at if is_future else None,
                )

            return StepOutcome(
                status=EnrollmentStepStatus.COMPLETED,
                result={"email_id": str(email.id), "subject": subject, "recipient": recipient},
                deliver=deliver,
            )

        return run_at

    # =========================================================================
    # send_chat_message (WhatsApp)
    # =========================================================================

    def _plan_send_chat_message(
        self,
        db: Session,
        action: SendChatMessageAction,
        run: WorkflowRunContext,
    ) -> StepOutcome | ActionRunner:
        to_number = (run.patient.phone or "").strip()
        if not to_number:
            return _skipped("Patient has no phone number")

        message = render_template(action.body_template, run.template_context).strip()
        if not message:
            return _skipped("Message template is empty")

        def run_at(scheduled_at: datetime, now: datetime) -> StepOutcome:
            row = WhatsAppMessage(
                patient_id=run.patient.id,
                deal_id=run.deal.id,
                enrollment_id=run.enrollment_id,
                to_number=to_number,
                body=message,
                direction=MessageDirection.OUTBOUND.value,
                metadata_={"workflow_id": str(run.workflow.id)},
            )

            if scheduled_at > now:
                row.status = WhatsAppMessageStatus.SCHEDULED.value
                row.scheduled_for = scheduled_at
                db.add(row)
                db.flush()
                return StepOutcome(
                    status=EnrollmentStepStatus.SCHEDULED,
                    result={
                        "whatsapp_message_id": str(row.id),
                        "scheduled_for": scheduled_at.isoformat(),
                    },
                )

            try:
                message_sid = whatsapp_service.send_message(
                    patient_id=run.patient.id,
                    to_number=to_number,
                    message=message,
                )
            except whatsapp_service.ChatDeliveryError as e:
                row.status = WhatsAppMessageStatus.FAILED.value
                row.error_message = str(e)
                db.add(row)
                db.flush()
                return StepOutcome(
                    status=EnrollmentStepStatus.FAILED,
                    result={"whatsapp_message_id": str(row.id)},
                    error=str(e),
                )

            row.status = WhatsAppMessageStatus.SENT.value
            row.sent_at = now
            row.message_sid = message_sid
            db.add(row)
            db.flush()
            return StepOutcome(
                status=EnrollmentStepStatus.COMPLETED,
                result={"whatsapp_message_id": str(row.id), "message_sid": message_sid},
            )

        return run_at
