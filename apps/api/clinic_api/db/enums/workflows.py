"""Workflow-related enums."""

from enum import Enum


class WorkflowTriggerType(str, Enum):
    """Events that can trigger a workflow."""

    DEAL_STAGE_CHANGED = "deal_stage_changed"


class WorkflowActionType(str, Enum):
    """Actions a workflow can execute."""

    CREATE_TASK = "create_task"
    SEND_MESSAGE = "send_message"  # email
    SEND_CHAT_MESSAGE = "send_chat_message"  # WhatsApp

    @classmethod
    def from_config(cls, value: str | None) -> "WorkflowActionType | None":
        """Resolve a stored action type, accepting the builder's older names."""
        if not value:
            return None
        value = ACTION_TYPE_ALIASES.get(value, value)
        try:
            return cls(value)
        except ValueError:
            return None


ACTION_TYPE_ALIASES = {
    "send_email": WorkflowActionType.SEND_MESSAGE.value,
    "draft_email_patient": WorkflowActionType.SEND_MESSAGE.value,
    "send_whatsapp": WorkflowActionType.SEND_CHAT_MESSAGE.value,
}


class WorkflowNodeType(str, Enum):
    """Node kinds in the builder graph (config.nodes)."""

    TRIGGER = "trigger"
    CONDITION = "condition"
    ACTION = "action"


class WorkflowSendMode(str, Enum):
    """Timing policy for an action."""

    IMMEDIATE = "immediate"
    DELAY = "delay"
    RECURRING = "recurring"


class WorkflowConditionOperator(str, Enum):
    """Operators for field-comparison conditions."""

    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    IS_EMPTY = "is_empty"
    IS_NOT_EMPTY = "is_not_empty"


class WorkflowConditionMatchMode(str, Enum):
    """Membership mode for service conditions."""

    INCLUDES = "includes"
    EXCLUDES = "excludes"


class WorkflowEmailRecipient(str, Enum):
    """Recipient discriminator for send_message actions."""

    DEAL_PATIENT = "deal_patient"
    SPECIFIC_USER = "specific_user"
    SPECIFIC_EMAIL = "specific_email"
    ASSIGNED_USER = "assigned_user"


class EnrollmentStatus(str, Enum):
    """Lifecycle of a workflow enrollment."""

    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class EnrollmentStepType(str, Enum):
    ACTION = "action"
    CONDITION = "condition"
    DELAY = "delay"


class EnrollmentStepStatus(str, Enum):
    """Outcome of one action attempt."""

    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"
    SCHEDULED = "scheduled"  # deferred artifact persisted for the scheduler
