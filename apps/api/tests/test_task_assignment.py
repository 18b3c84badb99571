"""Tests for workflow task creation and round-robin assignment."""

from datetime import timedelta

from clinic_api.db.models import Task
from clinic_api.db.types import utcnow
from clinic_api.services import task_service


def _seed_tasks(db, count: int, days_ago: int = 1) -> None:
    created = utcnow() - timedelta(days=days_ago)
    for i in range(count):
        db.add(Task(name=f"seed {i}", created_at=created))
    db.commit()


def test_single_candidate_always_assigned(db, make_user):
    user = make_user("Dr. Keller")
    _seed_tasks(db, 7)

    assert task_service.resolve_assignee(db, [str(user.id)]).id == user.id


def test_round_robin_uses_trailing_task_count(db, make_user):
    first = make_user("First")
    second = make_user("Second")
    _seed_tasks(db, 7)

    assignee = task_service.resolve_assignee(db, [str(first.id), str(second.id)])

    # 7 % 2 == 1 -> second candidate
    assert assignee.id == second.id


def test_round_robin_ignores_tasks_outside_window(db, make_user):
    first = make_user("First")
    second = make_user("Second")
    _seed_tasks(db, 2)
    _seed_tasks(db, 5, days_ago=45)

    assert task_service.count_recent_tasks(db) == 2
    assert task_service.resolve_assignee(db, [str(first.id), str(second.id)]).id == first.id


def test_unknown_and_invalid_candidates_are_ignored(db, make_user):
    user = make_user()

    assignee = task_service.resolve_assignee(db, ["not-a-uuid", "00000000-0000-0000-0000-000000000001", str(user.id)])

    assert assignee.id == user.id


def test_no_candidates_leaves_task_unassigned(db, make_patient):
    patient = make_patient()

    task = task_service.create_workflow_task(
        db,
        name="Call back",
        content="Auto-created by workflow for deal: Lip filler",
        patient_id=patient.id,
        activity_date=utcnow() + timedelta(days=1),
        candidate_user_ids=[],
    )
    db.commit()

    assert task.assigned_user_id is None
    assert task.assigned_user_name is None
    assert task.status == "not_started"
    assert task.priority == "medium"
    assert task.type == "todo"


def test_assignee_name_falls_back_to_email(db, make_patient, make_user):
    patient = make_patient()
    user = make_user(full_name=None, email="nurse@clinic.test")

    task = task_service.create_workflow_task(
        db,
        name="Call back",
        content="x",
        patient_id=patient.id,
        activity_date=utcnow(),
        candidate_user_ids=[str(user.id)],
    )

    assert task.assigned_user_name == "nurse@clinic.test"
