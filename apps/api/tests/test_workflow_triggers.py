"""Tests for deal-stage trigger matching."""

from clinic_api.db.models import Workflow
from clinic_api.schemas.workflow import DealStageChangedEvent
from clinic_api.services.workflow_triggers import match_workflows, trigger_matches


def _event(**kwargs) -> DealStageChangedEvent:
    values = {"dealId": "d1", "patientId": "p1", "toStageId": "S1"}
    values.update(kwargs)
    return DealStageChangedEvent.model_validate(values)


def _workflow(**config) -> Workflow:
    return Workflow(name="wf", trigger_type="deal_stage_changed", config=config)


def test_creation_event_matches_trigger_on_creation():
    event = _event(fromStageId=None)
    workflow = _workflow(trigger_on_creation=True, to_stage_id="S1")

    assert trigger_matches(workflow, event) is True


def test_creation_event_never_matches_named_from_stage():
    event = _event(fromStageId=None)

    assert trigger_matches(_workflow(from_stage_id="S0", to_stage_id="S1"), event) is False
    assert trigger_matches(_workflow(from_stage_id="S0"), event) is False


def test_trigger_on_creation_ignores_from_stage_for_creation_events():
    event = _event()
    workflow = _workflow(trigger_on_creation=True, from_stage_id="S0", to_stage_id="S1")

    assert trigger_matches(workflow, event) is True


def test_trigger_on_creation_still_checks_from_stage_on_moves():
    workflow = _workflow(trigger_on_creation=True, from_stage_id="S0", to_stage_id="S1")

    assert trigger_matches(workflow, _event(fromStageId="S0")) is True
    assert trigger_matches(workflow, _event(fromStageId="S9")) is False


def test_to_stage_mismatch_excludes_workflow():
    assert trigger_matches(_workflow(to_stage_id="S2"), _event(fromStageId="S0")) is False


def test_empty_config_matches_any_event():
    assert trigger_matches(_workflow(), _event(fromStageId="S0")) is True
    assert trigger_matches(_workflow(), _event()) is True


def test_blank_from_stage_is_a_creation_event():
    event = _event(fromStageId="   ")

    assert event.from_stage_id is None
    assert event.is_creation is True


def test_pipeline_compared_case_insensitively():
    workflow = _workflow(to_stage_id="S1", pipeline="Aesthetics")

    assert trigger_matches(workflow, _event(pipeline="aesthetics")) is True
    assert trigger_matches(workflow, _event(pipeline="Dental")) is False


def test_missing_pipeline_on_either_side_is_not_a_mismatch():
    assert trigger_matches(_workflow(pipeline="Aesthetics"), _event()) is True
    assert trigger_matches(_workflow(), _event(pipeline="Dental")) is True


def test_match_workflows_keeps_query_order():
    first = _workflow(to_stage_id="S1")
    skipped = _workflow(to_stage_id="S2")
    last = _workflow()

    assert match_workflows([first, skipped, last], _event()) == [first, last]
