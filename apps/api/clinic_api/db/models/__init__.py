"""SQLAlchemy ORM models."""

from clinic_api.db.models.clinic import Deal, DealStage, Patient, Service, User
from clinic_api.db.models.jobs import Job
from clinic_api.db.models.messaging import Email, EmailTemplate, WhatsAppMessage
from clinic_api.db.models.tasks import Task
from clinic_api.db.models.workflows import (
    Workflow,
    WorkflowAction,
    WorkflowEnrollment,
    WorkflowEnrollmentStep,
)

__all__ = [
    "Deal",
    "DealStage",
    "Email",
    "EmailTemplate",
    "Job",
    "Patient",
    "Service",
    "Task",
    "User",
    "WhatsAppMessage",
    "Workflow",
    "WorkflowAction",
    "WorkflowEnrollment",
    "WorkflowEnrollmentStep",
]
