"""Workflow condition evaluation.

Conditions are builder graph nodes of type "condition". All of them must pass
(AND, no grouping); a workflow without condition nodes always passes.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Any

from pydantic import ValidationError

from clinic_api.db.enums import (
    WorkflowConditionMatchMode,
    WorkflowConditionOperator,
    WorkflowNodeType,
)
from clinic_api.db.models import Deal, DealStage, Patient
from clinic_api.schemas.workflow import ConditionNodeData

logger = logging.getLogger(__name__)

SERVICE_FIELD = "deal.service"


def _stage_name(deal: Deal, patient: Patient, stage: DealStage | None) -> str | None:
    stage = stage or getattr(deal, "stage", None)
    return stage.name if stage else None


# Field-comparison conditions read these values; unknown fields compare as empty.
COMPARABLE_FIELDS = {
    "deal.pipeline": lambda deal, patient, stage: deal.pipeline,
    "deal.title": lambda deal, patient, stage: deal.title,
    "deal.location": lambda deal, patient, stage: deal.location,
    "deal.contact_label": lambda deal, patient, stage: deal.contact_label,
    "deal.notes": lambda deal, patient, stage: deal.notes,
    "deal.value": lambda deal, patient, stage: deal.value,
    "deal.stage": _stage_name,
    "patient.email": lambda deal, patient, stage: patient.email,
    "patient.phone": lambda deal, patient, stage: patient.phone,
    "patient.first_name": lambda deal, patient, stage: patient.first_name,
    "patient.last_name": lambda deal, patient, stage: patient.last_name,
    "patient.source": lambda deal, patient, stage: patient.source,
}


def extract_condition_nodes(config: dict | None) -> list[ConditionNodeData]:
    """Pull condition node data out of a workflow config, in declaration order."""
    nodes = (config or {}).get("nodes")
    if not isinstance(nodes, list):
        return []

    conditions = []
    for node in nodes:
        if not isinstance(node, dict) or node.get("type") != WorkflowNodeType.CONDITION.value:
            continue
        try:
            conditions.append(ConditionNodeData.model_validate(node.get("data") or {}))
        except ValidationError as exc:
            # An unreadable condition can never pass; keep it so the workflow is excluded
            logger.warning(f"Invalid condition node in workflow config: {exc}")
            conditions.append(ConditionNodeData(field="__invalid__", operator="__invalid__"))
    return conditions


def evaluate_conditions(
    conditions: list[ConditionNodeData],
    deal: Deal,
    patient: Patient,
    service_name: str | None,
    stage: DealStage | None = None,
) -> bool:
    """
    Evaluate condition nodes with AND semantics, stopping at the first failure.

    `stage` is the stage the deal moved into; "deal.stage" falls back to the
    deal's own stage when it is not given.
    """
    for condition in conditions:
        if condition.field == SERVICE_FIELD:
            passed = _evaluate_service_condition(condition, service_name)
        else:
            getter = COMPARABLE_FIELDS.get(condition.field)
            if getter is None:
                logger.warning(f"Unknown workflow condition field: {condition.field!r}")
                actual = None
            else:
                actual = getter(deal, patient, stage)
            passed = evaluate_field_condition(condition.operator, actual, condition.value)
        if not passed:
            return False
    return True


def _evaluate_service_condition(condition: ConditionNodeData, service_name: str | None) -> bool:
    """Service membership test against selectedValues (case-insensitive)."""
    if not condition.selected_values:
        return True

    excludes = condition.match_mode == WorkflowConditionMatchMode.EXCLUDES.value
    if not service_name:
        return excludes

    selected = {value.lower() for value in condition.selected_values}
    is_member = service_name.strip().lower() in selected
    return not is_member if excludes else is_member


def _to_number(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = Decimal(str(value).strip())
    except InvalidOperation:
        return None
    return number if number.is_finite() else None


def evaluate_field_condition(operator: str | None, actual: Any, expected: Any) -> bool:
    """
    Evaluate a single field comparison; absent values compare as "".

    Equality is numeric when the field holds a number (Decimal 1500 equals
    "1500.00"); text fields such as phone numbers keep string equality.
    greater_than and less_than need numbers on both sides and fail otherwise.
    """
    actual_text = "" if actual is None else str(actual).strip().lower()
    expected_text = "" if expected is None else str(expected).strip().lower()
    actual_number = _to_number(actual)
    expected_number = _to_number(expected)
    both_numeric = actual_number is not None and expected_number is not None
    numeric_field = both_numeric and isinstance(actual, (int, float, Decimal))

    if operator == WorkflowConditionOperator.EQUALS.value:
        if numeric_field:
            return actual_number == expected_number
        return actual_text == expected_text

    if operator == WorkflowConditionOperator.NOT_EQUALS.value:
        if numeric_field:
            return actual_number != expected_number
        return actual_text != expected_text

    if operator == WorkflowConditionOperator.GREATER_THAN.value:
        return both_numeric and actual_number > expected_number

    if operator == WorkflowConditionOperator.LESS_THAN.value:
        return both_numeric and actual_number < expected_number

    if operator == WorkflowConditionOperator.CONTAINS.value:
        return expected_text in actual_text

    if operator == WorkflowConditionOperator.IS_EMPTY.value:
        return actual_text == ""

    if operator == WorkflowConditionOperator.IS_NOT_EMPTY.value:
        return actual_text != ""

    return False
