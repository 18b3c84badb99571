"""Enum definitions for application constants."""

from clinic_api.db.enums.jobs import JobStatus, JobType
from clinic_api.db.enums.messaging import EmailStatus, MessageDirection, WhatsAppMessageStatus
from clinic_api.db.enums.tasks import TaskPriority, TaskStatus, TaskType
from clinic_api.db.enums.workflows import (
    ACTION_TYPE_ALIASES,
    EnrollmentStatus,
    EnrollmentStepStatus,
    EnrollmentStepType,
    WorkflowActionType,
    WorkflowConditionMatchMode,
    WorkflowConditionOperator,
    WorkflowEmailRecipient,
    WorkflowNodeType,
    WorkflowSendMode,
    WorkflowTriggerType,
)

__all__ = [
    "ACTION_TYPE_ALIASES",
    "EmailStatus",
    "EnrollmentStatus",
    "EnrollmentStepStatus",
    "EnrollmentStepType",
    "JobStatus",
    "JobType",
    "MessageDirection",
    "TaskPriority",
    "TaskStatus",
    "TaskType",
    "WhatsAppMessageStatus",
    "WorkflowActionType",
    "WorkflowConditionMatchMode",
    "WorkflowConditionOperator",
    "WorkflowEmailRecipient",
    "WorkflowNodeType",
    "WorkflowSendMode",
    "WorkflowTriggerType",
]
