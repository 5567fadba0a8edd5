"""
Job workflow: the finite-state model for service jobs.

This package decides whether a job may move between statuses.
It does NOT perform I/O; the registry is the only stateful piece.

Scope:
- Job and Appointment data models
- Explicit transition graph with per-edge policy
- Status labels, metadata and workflow progress
- In-memory job registry implementing the job store interface
"""

from .errors import (
    WorkflowError,
    JobNotFoundError,
    InvalidStateTransitionError,
    UnknownStatusError,
)
from .models import (
    JobStatus,
    JobPriority,
    Job,
    Appointment,
    TransitionDecision,
    TransitionMessage,
    coerce_status,
    resolve_bay_assignment,
)
from .state import (
    validate_transition,
    require_transition,
    is_transition_valid,
    get_valid_transitions,
    get_next_status,
    get_status_label,
    get_workflow_progress,
)
from .registry import JobRegistry, JobStore

__all__ = [
    # Errors
    "WorkflowError",
    "JobNotFoundError",
    "InvalidStateTransitionError",
    "UnknownStatusError",
    # Models
    "JobStatus",
    "JobPriority",
    "Job",
    "Appointment",
    "TransitionDecision",
    "TransitionMessage",
    "coerce_status",
    "resolve_bay_assignment",
    # Transition validation
    "validate_transition",
    "require_transition",
    "is_transition_valid",
    "get_valid_transitions",
    "get_next_status",
    "get_status_label",
    "get_workflow_progress",
    # Registry
    "JobRegistry",
    "JobStore",
]
