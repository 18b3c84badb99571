"""Tests for the enrollment/audit recorder."""

from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError

from clinic_api.db.enums import EnrollmentStepStatus
from clinic_api.db.models import WorkflowEnrollmentStep
from clinic_api.services import workflow_enrollment_service


def test_snapshot_is_json_safe(deal_context, db):
    deal = deal_context["deal"]
    deal.value = Decimal("1250.50")
    db.commit()

    snapshot = workflow_enrollment_service.build_trigger_snapshot(
        deal, deal_context["patient"], None, deal_context["to_stage"]
    )

    assert snapshot["from_stage"] is None
    assert snapshot["to_stage"]["id"] == str(deal_context["to_stage"].id)
    assert snapshot["deal"]["id"] == str(deal.id)
    assert snapshot["deal"]["value"] == "1250.50"
    assert snapshot["patient"]["email"] == "ana@example.com"


def test_record_step_appends_row(db, deal_context, make_workflow):
    workflow = make_workflow({})
    enrollment = workflow_enrollment_service.create_enrollment(
        db,
        workflow=workflow,
        deal=deal_context["deal"],
        patient=deal_context["patient"],
        trigger_data={},
    )

    committed = workflow_enrollment_service.record_step(
        db,
        enrollment_id=enrollment.id,
        action_type="create_task",
        step_config={"title": "x"},
        status=EnrollmentStepStatus.SKIPPED,
        error_message="nothing to do",
    )

    assert committed is True
    row = db.query(WorkflowEnrollmentStep).one()
    assert row.enrollment_id == enrollment.id
    assert row.step_type == "action"
    assert row.status == "skipped"
    assert row.executed_at is not None


def test_create_enrollment_failure_returns_none(db, deal_context, make_workflow, monkeypatch):
    workflow = make_workflow({})

    def boom():
        raise SQLAlchemyError("insert failed")

    monkeypatch.setattr(db, "commit", boom)

    enrollment = workflow_enrollment_service.create_enrollment(
        db,
        workflow=workflow,
        deal=deal_context["deal"],
        patient=deal_context["patient"],
        trigger_data={},
    )

    assert enrollment is None


def test_record_step_reports_failed_commit(db, deal_context, make_workflow, monkeypatch):
    workflow = make_workflow({})
    enrollment = workflow_enrollment_service.create_enrollment(
        db,
        workflow=workflow,
        deal=deal_context["deal"],
        patient=deal_context["patient"],
        trigger_data={},
    )

    def boom():
        raise SQLAlchemyError("commit failed")

    monkeypatch.setattr(db, "commit", boom)

    committed = workflow_enrollment_service.record_step(
        db,
        enrollment_id=enrollment.id,
        action_type="send_message",
        step_config={},
        status=EnrollmentStepStatus.COMPLETED,
    )

    assert committed is False
    monkeypatch.undo()
    assert db.query(WorkflowEnrollmentStep).count() == 0
