"""Pydantic schemas for workflow events, builder config and enrollment audit."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Annotated, Literal, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from clinic_api.core.constants import (
    DEFAULT_TASK_DUE_DAYS,
    DEFAULT_TASK_TITLE,
    MAX_RECURRING_OCCURRENCES,
)
from clinic_api.db.enums import WorkflowSendMode


def _positive_number(value: object) -> float | None:
    """Builder configs store numbers loosely; anything not a positive number means unset."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value if value > 0 else None


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


# =============================================================================
# Event Schemas
# =============================================================================


class DealStageChangedEvent(BaseModel):
    """
    Inbound "deal moved to a stage" event.

    A missing from_stage_id means the deal was created directly into
    to_stage_id. Required fields are checked by the engine so the caller gets
    a single validation error shape.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    deal_id: str | None = Field(default=None, alias="dealId")
    patient_id: str | None = Field(default=None, alias="patientId")
    from_stage_id: str | None = Field(default=None, alias="fromStageId")
    to_stage_id: str | None = Field(default=None, alias="toStageId")
    pipeline: str | None = None

    @field_validator("deal_id", "patient_id", "from_stage_id", "to_stage_id", "pipeline", mode="before")
    @classmethod
    def strip_blank(cls, v: object) -> object:
        return _blank_to_none(v)

    @property
    def is_creation(self) -> bool:
        return not self.from_stage_id


class WorkflowRunSummary(BaseModel):
    """Result of processing one event."""

    model_config = ConfigDict(populate_by_name=True)

    ok: bool = True
    workflows: int = 0  # matched workflow count
    actions_run: int = Field(default=0, alias="actionsRun")


# =============================================================================
# Builder Graph Schemas
# =============================================================================


class ConditionNodeData(BaseModel):
    """Declarative predicate attached to a workflow (config.nodes[].data)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    field: str = ""
    operator: str | None = None
    value: object = None
    selected_values: list[str] = Field(default_factory=list, alias="selectedValues")
    match_mode: str | None = Field(default=None, alias="matchMode")

    @field_validator("selected_values", mode="before")
    @classmethod
    def normalize_selected(cls, v: object) -> list[str]:
        if not v:
            return []
        if isinstance(v, str):
            v = [v]
        if not isinstance(v, list):
            return []
        return [str(item).strip() for item in v if str(item).strip()]


@dataclass(frozen=True)
class WorkflowActionEntry:
    """One action in canonical order, before its config is parsed."""

    action_type: str
    config: dict = field(default_factory=dict)


# =============================================================================
# Action Config Schemas (tagged by action_type)
# =============================================================================


class ActionTiming(BaseModel):
    """Timing keys shared by every action kind."""

    model_config = ConfigDict(extra="allow")

    send_mode: WorkflowSendMode = WorkflowSendMode.IMMEDIATE
    delay_minutes: float | None = None
    recurring_days: float | None = None
    recurring_every_days: float | None = None
    recurring_times: float | None = None

    @field_validator("send_mode", mode="before")
    @classmethod
    def default_send_mode(cls, v: object) -> object:
        valid = {mode.value for mode in WorkflowSendMode}
        return v if isinstance(v, str) and v in valid else WorkflowSendMode.IMMEDIATE.value

    @field_validator(
        "delay_minutes",
        "recurring_days",
        "recurring_every_days",
        "recurring_times",
        mode="before",
    )
    @classmethod
    def positive_or_none(cls, v: object) -> float | None:
        return _positive_number(v)

    @property
    def interval_days(self) -> float | None:
        return self.recurring_days or self.recurring_every_days

    @property
    def occurrences(self) -> int | None:
        if self.recurring_times is None:
            return None
        return min(int(self.recurring_times), MAX_RECURRING_OCCURRENCES) or None


class CreateTaskAction(ActionTiming):
    action_type: Literal["create_task"] = "create_task"

    title: str | None = None
    due_days: float = DEFAULT_TASK_DUE_DAYS
    assigned_user_ids: list[str] = Field(default_factory=list)
    assign_to: list[str] = Field(default_factory=list)

    @field_validator("due_days", mode="before")
    @classmethod
    def numeric_due_days(cls, v: object) -> object:
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            return DEFAULT_TASK_DUE_DAYS
        return v

    @field_validator("assigned_user_ids", "assign_to", mode="before")
    @classmethod
    def id_list(cls, v: object) -> list[str]:
        if isinstance(v, str):
            v = [v]
        if not isinstance(v, list):
            return []
        return [str(item).strip() for item in v if item and str(item).strip()]

    @property
    def title_template(self) -> str:
        return self.title or DEFAULT_TASK_TITLE

    @property
    def candidate_user_ids(self) -> list[str]:
        """New-format list wins over the legacy assign_to field."""
        return self.assigned_user_ids or self.assign_to


class SendMessageAction(ActionTiming):
    action_type: Literal["send_message"] = "send_message"

    subject: str | None = None
    subject_template: str | None = None
    body_template: str | None = None
    body_html_template: str | None = None
    use_html: bool = False
    template_id: str | None = None
    recipient: str | None = None
    user_id: str | None = None
    email_address: str | None = None

    @field_validator("template_id", "user_id", "email_address", "subject", "subject_template", mode="before")
    @classmethod
    def strip_blank(cls, v: object) -> object:
        return _blank_to_none(v)

    @field_validator("use_html", mode="before")
    @classmethod
    def truthy(cls, v: object) -> bool:
        return bool(v)


class SendChatMessageAction(ActionTiming):
    action_type: Literal["send_chat_message"] = "send_chat_message"

    message: str | None = None
    message_template: str | None = None

    @property
    def body_template(self) -> str:
        return self.message_template or self.message or ""


WorkflowActionConfig = Annotated[
    Union[CreateTaskAction, SendMessageAction, SendChatMessageAction],
    Field(discriminator="action_type"),
]


class ParsedAction(BaseModel):
    """Wrapper so the tagged union can be validated from a plain dict."""

    config: WorkflowActionConfig


# =============================================================================
# Enrollment Read Schemas
# =============================================================================


class EnrollmentStepRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    step_type: str
    step_action: str | None
    step_config: dict | None
    status: str
    executed_at: datetime | None
    result: dict | None
    error_message: str | None


class EnrollmentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    workflow_id: UUID
    patient_id: UUID
    deal_id: UUID | None
    status: str
    trigger_data: dict | None
    enrolled_at: datetime
    steps: list[EnrollmentStepRead] = []


class EnrollmentListItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    workflow_id: UUID
    patient_id: UUID
    deal_id: UUID | None
    status: str
    enrolled_at: datetime
