"""Job-related enums."""

from enum import Enum


class JobType(str, Enum):
    """Types of deferred workflow work."""

    WORKFLOW_CREATE_TASK = "workflow_create_task"


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
