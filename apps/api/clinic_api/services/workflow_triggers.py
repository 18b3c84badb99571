"""Workflow trigger matching for deal stage changes."""

from clinic_api.db.models import Workflow
from clinic_api.schemas.workflow import DealStageChangedEvent


def _config_value(config: dict, key: str) -> str | None:
    value = config.get(key)
    if value is None or value == "":
        return None
    return str(value)


def trigger_matches(workflow: Workflow, event: DealStageChangedEvent) -> bool:
    """
    Check if a workflow's trigger config matches a stage-change event.

    A creation event (no from stage) never matches a workflow that names a
    from_stage_id, unless the workflow opted into trigger_on_creation, in which
    case only the to stage is compared.
    """
    config = workflow.config or {}
    to_stage_id = _config_value(config, "to_stage_id")
    from_stage_id = _config_value(config, "from_stage_id")

    if to_stage_id and to_stage_id != event.to_stage_id:
        return False

    if config.get("trigger_on_creation") and event.is_creation:
        pass
    elif not event.is_creation:
        if from_stage_id and from_stage_id != event.from_stage_id:
            return False
    elif from_stage_id:
        return False

    pipeline = _config_value(config, "pipeline") or _config_value(config, "category")
    if pipeline and event.pipeline and pipeline.lower() != event.pipeline.lower():
        return False

    return True


def match_workflows(
    workflows: list[Workflow],
    event: DealStageChangedEvent,
) -> list[Workflow]:
    """Narrow candidate workflows to those whose trigger matches, keeping query order."""
    return [workflow for workflow in workflows if trigger_matches(workflow, event)]
