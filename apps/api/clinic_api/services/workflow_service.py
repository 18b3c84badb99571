"""Workflow service - read-side queries the engine and audit endpoints rely on."""
from uuid import UUID

from sqlalchemy.orm import Session, selectinload

from clinic_api.db.enums import WorkflowNodeType, WorkflowTriggerType
from clinic_api.db.models import (
    Deal,
    DealStage,
    Patient,
    Service,
    Workflow,
    WorkflowAction,
    WorkflowEnrollment,
)
from clinic_api.schemas.workflow import WorkflowActionEntry


def parse_uuid(value: object) -> UUID | None:
    """Parse an id from an event payload; None when it is not a UUID."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        return None


# =============================================================================
# Entity Lookups
# =============================================================================

def get_deal(db: Session, deal_id: object) -> Deal | None:
    parsed = parse_uuid(deal_id)
    if not parsed:
        return None
    return db.query(Deal).filter(Deal.id == parsed).first()


def get_patient(db: Session, patient_id: object) -> Patient | None:
    parsed = parse_uuid(patient_id)
    if not parsed:
        return None
    return db.query(Patient).filter(Patient.id == parsed).first()


def get_stages(db: Session, stage_ids: list[str | None]) -> dict[str, DealStage]:
    """Fetch stages by id, keyed by the id string the event carried."""
    wanted = {str(sid): parse_uuid(sid) for sid in stage_ids if sid}
    ids = [parsed for parsed in wanted.values() if parsed]
    if not ids:
        return {}
    rows = db.query(DealStage).filter(DealStage.id.in_(ids)).all()
    by_id = {row.id: row for row in rows}
    return {raw: by_id[parsed] for raw, parsed in wanted.items() if parsed in by_id}


def get_service_name(db: Session, service_id: UUID | None) -> str | None:
    if not service_id:
        return None
    service = db.query(Service).filter(Service.id == service_id).first()
    return service.name if service else None


# =============================================================================
# Workflow Loading
# =============================================================================

def list_active_workflows(db: Session, trigger_type: WorkflowTriggerType) -> list[Workflow]:
    """Active workflows for a trigger type, in creation order."""
    return (
        db.query(Workflow)
        .filter(
            Workflow.trigger_type == trigger_type.value,
            Workflow.active.is_(True),
        )
        .order_by(Workflow.created_at)
        .all()
    )


def _graph_actions(config: dict | None) -> list[WorkflowActionEntry]:
    nodes = (config or {}).get("nodes")
    if not isinstance(nodes, list):
        return []

    entries = []
    for node in nodes:
        if not isinstance(node, dict) or node.get("type") != WorkflowNodeType.ACTION.value:
            continue
        data = node.get("data") or {}
        config = data.get("config")
        entries.append(
            WorkflowActionEntry(
                action_type=str(data.get("actionType") or ""),
                config=config if isinstance(config, dict) else {},
            )
        )
    return entries


def resolve_actions(db: Session, workflow: Workflow) -> list[WorkflowActionEntry]:
    """
    Resolve a workflow's ordered action list.

    Builder graph action nodes win; the legacy workflow_actions rows (by
    sort_order) are used only when the graph has none.
    """
    entries = _graph_actions(workflow.config)
    if entries:
        return entries

    rows = (
        db.query(WorkflowAction)
        .filter(WorkflowAction.workflow_id == workflow.id)
        .order_by(WorkflowAction.sort_order)
        .all()
    )
    return [
        WorkflowActionEntry(action_type=row.action_type, config=dict(row.config or {}))
        for row in rows
    ]


# =============================================================================
# Enrollment Queries
# =============================================================================

def get_enrollment(db: Session, enrollment_id: UUID) -> WorkflowEnrollment | None:
    return (
        db.query(WorkflowEnrollment)
        .options(selectinload(WorkflowEnrollment.steps))
        .filter(WorkflowEnrollment.id == enrollment_id)
        .first()
    )


def list_enrollments(
    db: Session,
    workflow_id: UUID,
    limit: int = 50,
) -> list[WorkflowEnrollment]:
    """Enrollments for one workflow, newest first."""
    return (
        db.query(WorkflowEnrollment)
        .filter(WorkflowEnrollment.workflow_id == workflow_id)
        .order_by(WorkflowEnrollment.enrolled_at.desc())
        .limit(limit)
        .all()
    )
