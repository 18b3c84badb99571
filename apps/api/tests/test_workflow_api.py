"""HTTP tests for the workflow router."""

import uuid

import pytest

from clinic_api.db.models import WorkflowEnrollment


def _payload(ctx, **overrides) -> dict:
    payload = {
        "dealId": str(ctx["deal"].id),
        "patientId": str(ctx["patient"].id),
        "fromStageId": str(ctx["from_stage"].id),
        "toStageId": str(ctx["to_stage"].id),
    }
    payload.update(overrides)
    return payload


@pytest.mark.asyncio
async def test_deal_stage_changed_returns_summary(client, db, deal_context, make_workflow):
    make_workflow(
        {
            "to_stage_id": str(deal_context["to_stage"].id),
            "nodes": [{"type": "action", "data": {"actionType": "create_task", "config": {}}}],
        }
    )

    response = await client.post("/workflows/deal-stage-changed", json=_payload(deal_context))

    assert response.status_code == 200
    assert response.json() == {"ok": True, "workflows": 1, "actionsRun": 1}


@pytest.mark.asyncio
async def test_deal_stage_changed_without_matches(client, deal_context):
    response = await client.post("/workflows/deal-stage-changed", json=_payload(deal_context))

    assert response.status_code == 200
    assert response.json() == {"ok": True, "workflows": 0, "actionsRun": 0}


@pytest.mark.asyncio
async def test_missing_fields_is_400(client, deal_context):
    response = await client.post(
        "/workflows/deal-stage-changed",
        json=_payload(deal_context, toStageId="   "),
    )

    assert response.status_code == 400
    assert "toStageId" in response.json()["detail"]


@pytest.mark.asyncio
async def test_unknown_patient_is_404(client, deal_context):
    response = await client.post(
        "/workflows/deal-stage-changed",
        json=_payload(deal_context, patientId=str(uuid.uuid4())),
    )

    assert response.status_code == 404
    assert response.json()["detail"] == "Patient not found"


@pytest.mark.asyncio
async def test_unexpected_error_is_500(client, deal_context, monkeypatch):
    from clinic_api.services.workflow_engine import engine

    def boom(*_args, **_kwargs):
        raise RuntimeError("kaboom")

    monkeypatch.setattr(engine, "handle_deal_stage_changed", boom)

    response = await client.post("/workflows/deal-stage-changed", json=_payload(deal_context))

    assert response.status_code == 500
    assert response.json()["detail"] == "Unexpected error running workflows"


@pytest.mark.asyncio
async def test_enrollment_read_includes_steps(client, db, deal_context, make_workflow):
    workflow = make_workflow(
        {
            "nodes": [
                {"type": "action", "data": {"actionType": "create_task", "config": {"title": "A"}}},
                {"type": "action", "data": {"actionType": "nope", "config": {}}},
            ]
        }
    )
    await client.post("/workflows/deal-stage-changed", json=_payload(deal_context))
    enrollment = db.query(WorkflowEnrollment).one()

    response = await client.get(f"/workflows/enrollments/{enrollment.id}")

    assert response.status_code == 200
    data = response.json()
    assert data["workflow_id"] == str(workflow.id)
    assert [s["status"] for s in data["steps"]] == ["completed", "skipped"]


@pytest.mark.asyncio
async def test_enrollment_not_found(client):
    response = await client.get(f"/workflows/enrollments/{uuid.uuid4()}")

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_list_workflow_enrollments(client, db, deal_context, make_workflow):
    workflow = make_workflow({})
    for _ in range(3):
        await client.post("/workflows/deal-stage-changed", json=_payload(deal_context))

    response = await client.get(f"/workflows/{workflow.id}/enrollments", params={"limit": 2})

    assert response.status_code == 200
    items = response.json()
    assert len(items) == 2
    assert all(item["workflow_id"] == str(workflow.id) for item in items)
    assert items[0]["enrolled_at"] >= items[1]["enrolled_at"]


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
