import uuid

from clinic_api.core.structured_logging import build_log_context


def test_build_log_context_stringifies_ids_and_drops_empty():
    workflow_id = uuid.uuid4()

    context = build_log_context(workflow_id=workflow_id, enrollment_id=None, action_type="create_task")

    assert context == {"workflow_id": str(workflow_id), "action_type": "create_task"}


def test_build_log_context_route_only():
    assert build_log_context(route="/workflows/deal-stage-changed") == {
        "route": "/workflows/deal-stage-changed"
    }
