"""
Status transition validation for service jobs.

Job lifecycle (typical):
intake → incoming-call → scheduled → in-progress / in-bay → waiting-parts → completed

The legal graph is an explicit edge table. Each edge carries its own
policy (confirmation, success message, prerequisites, auto-actions),
so legality and side-effect hints are auditable per edge.

INVARIANT: COMPLETED is terminal. No edge leaves it.

Everything here is pure: no I/O, no clock, no shared state.
Identical inputs always produce identical decisions.
"""

from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, List, Optional, Tuple

from .errors import InvalidStateTransitionError
from .models import (
    Job,
    JobPriority,
    JobStatus,
    TransitionDecision,
    coerce_status,
)


# Returns a blocking reason when a job must not be completed yet, else None
CompletionGuard = Callable[[Job], Optional[str]]


TERMINAL_STATES: FrozenSet[JobStatus] = frozenset({JobStatus.COMPLETED})

# Canonical forward path, used for progress display and "next status"
CANONICAL_PATH: Tuple[JobStatus, ...] = (
    JobStatus.INTAKE,
    JobStatus.INCOMING_CALL,
    JobStatus.SCHEDULED,
    JobStatus.IN_PROGRESS,
    JobStatus.IN_BAY,
    JobStatus.WAITING_PARTS,
    JobStatus.COMPLETED,
)

NOTIFY_VEHICLE_READY = "Notify customer vehicle is ready"
EXPEDITE_PARTS = "Expedite parts order (high priority)"


@dataclass(frozen=True)
class EdgePolicy:
    """Per-edge policy for a legal transition."""

    success_message: str
    requires_confirmation: bool = False
    warning_message: Optional[str] = None
    prerequisites: Tuple[str, ...] = ()
    auto_actions: Tuple[str, ...] = ()


@dataclass(frozen=True)
class StatusMetadata:
    """Fixed presentation and business metadata for a status."""

    label: str
    description: str
    color: str
    allows_editing: bool
    requires_appointment: bool
    tracks_bay_time: bool


@dataclass(frozen=True)
class StatusTimeEstimate:
    """Typical dwell time in a status, in hours."""

    min_hours: float
    max_hours: float
    description: str


# ============================================================================
# EDGE TABLE
# ============================================================================
# Anything not listed here is illegal. Identity moves never reach this table.
# ============================================================================
_TRANSITIONS: Dict[Tuple[JobStatus, JobStatus], EdgePolicy] = {
    # Intake
    (JobStatus.INTAKE, JobStatus.INCOMING_CALL): EdgePolicy(
        success_message="Call logged for job",
        auto_actions=("Log customer call",),
    ),
    (JobStatus.INTAKE, JobStatus.SCHEDULED): EdgePolicy(
        success_message="Job scheduled successfully",
        prerequisites=("Customer information confirmed", "Service details documented"),
        auto_actions=("Create appointment slot", "Send customer confirmation"),
    ),

    # Incoming call
    (JobStatus.INCOMING_CALL, JobStatus.SCHEDULED): EdgePolicy(
        success_message="Job scheduled successfully",
        prerequisites=("Customer information confirmed", "Service details documented"),
        auto_actions=("Create appointment slot", "Send customer confirmation"),
    ),

    # Scheduled
    (JobStatus.SCHEDULED, JobStatus.IN_PROGRESS): EdgePolicy(
        success_message="Work started",
        prerequisites=("Technician assigned",),
        auto_actions=("Start time tracking",),
    ),
    (JobStatus.SCHEDULED, JobStatus.IN_BAY): EdgePolicy(
        success_message="Job started in bay",
        prerequisites=("Bay available", "Technician assigned"),
        auto_actions=("Start time tracking", "Update bay status"),
    ),
    (JobStatus.SCHEDULED, JobStatus.COMPLETED): EdgePolicy(
        success_message="Job marked as completed",
        requires_confirmation=True,
        warning_message="Are you sure you want to mark this job as completed without starting work?",
        auto_actions=("Free up scheduled slot", "Generate completion report", NOTIFY_VEHICLE_READY),
    ),

    # In progress
    (JobStatus.IN_PROGRESS, JobStatus.IN_BAY): EdgePolicy(
        success_message="Job moved into bay",
        prerequisites=("Bay available",),
        auto_actions=("Update bay status",),
    ),
    (JobStatus.IN_PROGRESS, JobStatus.WAITING_PARTS): EdgePolicy(
        success_message="Job moved to waiting for parts",
        prerequisites=("Parts order created",),
        auto_actions=("Create parts order", "Set follow-up reminder"),
    ),
    (JobStatus.IN_PROGRESS, JobStatus.COMPLETED): EdgePolicy(
        success_message="Job completed successfully",
        prerequisites=("Work completed", "Quality check passed"),
        auto_actions=("Stop time tracking", "Generate invoice", NOTIFY_VEHICLE_READY),
    ),

    # In bay
    (JobStatus.IN_BAY, JobStatus.WAITING_PARTS): EdgePolicy(
        success_message="Job moved to waiting for parts",
        prerequisites=("Parts order created",),
        auto_actions=("Free up bay", "Create parts order", "Set follow-up reminder"),
    ),
    (JobStatus.IN_BAY, JobStatus.COMPLETED): EdgePolicy(
        success_message="Job completed successfully",
        prerequisites=("Work completed", "Quality check passed"),
        auto_actions=("Free up bay", "Stop time tracking", "Generate invoice", NOTIFY_VEHICLE_READY),
    ),

    # Waiting parts (moving back into a bay is a workflow exception)
    (JobStatus.WAITING_PARTS, JobStatus.IN_BAY): EdgePolicy(
        success_message="Job resumed in bay",
        requires_confirmation=True,
        warning_message="Parts arrived? Resuming bay work moves this job back into a service bay.",
        prerequisites=("Parts received", "Bay available"),
        auto_actions=("Resume time tracking", "Update bay status"),
    ),
    (JobStatus.WAITING_PARTS, JobStatus.COMPLETED): EdgePolicy(
        success_message="Job completed",
        requires_confirmation=True,
        warning_message="Completing without returning to bay - is this correct?",
        auto_actions=("Generate completion report", NOTIFY_VEHICLE_READY),
    ),
}


STATUS_METADATA: Dict[JobStatus, StatusMetadata] = {
    JobStatus.INTAKE: StatusMetadata(
        label="Intake",
        description="New job request received",
        color="#94a3b8",
        allows_editing=True,
        requires_appointment=False,
        tracks_bay_time=False,
    ),
    JobStatus.INCOMING_CALL: StatusMetadata(
        label="Incoming Call",
        description="New customer inquiry",
        color="#64748b",
        allows_editing=True,
        requires_appointment=False,
        tracks_bay_time=False,
    ),
    JobStatus.SCHEDULED: StatusMetadata(
        label="Scheduled",
        description="Appointment booked",
        color="#2563eb",
        allows_editing=True,
        requires_appointment=True,
        tracks_bay_time=False,
    ),
    JobStatus.IN_PROGRESS: StatusMetadata(
        label="In Progress",
        description="Work started",
        color="#0d9488",
        allows_editing=True,
        requires_appointment=True,
        tracks_bay_time=False,
    ),
    JobStatus.IN_BAY: StatusMetadata(
        label="In Bay",
        description="Work in progress",
        color="#16a34a",
        allows_editing=False,
        requires_appointment=True,
        tracks_bay_time=True,
    ),
    JobStatus.WAITING_PARTS: StatusMetadata(
        label="Waiting Parts",
        description="Pending parts delivery",
        color="#ea580c",
        allows_editing=True,
        requires_appointment=False,
        tracks_bay_time=False,
    ),
    JobStatus.COMPLETED: StatusMetadata(
        label="Completed",
        description="Work finished",
        color="#64748b",
        allows_editing=False,
        requires_appointment=False,
        tracks_bay_time=False,
    ),
}


_WORKFLOW_PROGRESS: Dict[JobStatus, int] = {
    JobStatus.INTAKE: 0,
    JobStatus.INCOMING_CALL: 10,
    JobStatus.SCHEDULED: 25,
    JobStatus.IN_PROGRESS: 50,
    JobStatus.IN_BAY: 60,
    JobStatus.WAITING_PARTS: 75,  # Counted as progress even though blocked
    JobStatus.COMPLETED: 100,
}


_TIME_IN_STATUS: Dict[JobStatus, StatusTimeEstimate] = {
    JobStatus.INTAKE: StatusTimeEstimate(0, 4, "Typically triaged within a few hours"),
    JobStatus.INCOMING_CALL: StatusTimeEstimate(0, 24, "Typically scheduled within 24 hours"),
    JobStatus.SCHEDULED: StatusTimeEstimate(0, 168, "Waiting for appointment date"),
    JobStatus.IN_PROGRESS: StatusTimeEstimate(1, 16, "Diagnosis and prep work"),
    JobStatus.IN_BAY: StatusTimeEstimate(1, 8, "Active work in progress"),
    JobStatus.WAITING_PARTS: StatusTimeEstimate(24, 720, "Depends on parts availability"),
    JobStatus.COMPLETED: StatusTimeEstimate(0, 0, "Work finished"),
}


def is_terminal(status) -> bool:
    """Check if a status is terminal (no outgoing transitions)."""
    return coerce_status(status) in TERMINAL_STATES


def get_status_label(status) -> str:
    """Human-readable label for a status, e.g. "in-bay" -> "In Bay"."""
    return STATUS_METADATA[coerce_status(status)].label


def get_status_metadata(status) -> StatusMetadata:
    return STATUS_METADATA[coerce_status(status)]


def get_status_color(status) -> str:
    return STATUS_METADATA[coerce_status(status)].color


def get_workflow_progress(status) -> int:
    """
    Completion percentage for progress display.

    Monotonic along CANONICAL_PATH.
    """
    return _WORKFLOW_PROGRESS[coerce_status(status)]


def get_estimated_time_in_status(status) -> StatusTimeEstimate:
    return _TIME_IN_STATUS[coerce_status(status)]


def get_workflow_steps() -> List[Dict[str, str]]:
    """Canonical steps with labels and descriptions, in path order."""
    return [
        {
            "status": status.value,
            "label": STATUS_METADATA[status].label,
            "description": STATUS_METADATA[status].description,
        }
        for status in CANONICAL_PATH
    ]


def get_valid_transitions(status) -> List[JobStatus]:
    """
    All statuses directly reachable from `status`, in path order.

    Job-dependent policy (completion guard) is not applied here.
    """
    current = coerce_status(status)
    return [
        target
        for target in CANONICAL_PATH
        if (current, target) in _TRANSITIONS
    ]


def get_next_status(status) -> Optional[JobStatus]:
    """
    Most common next status: the earliest reachable one on the canonical path.

    Returns None for terminal statuses.
    """
    current = coerce_status(status)
    position = CANONICAL_PATH.index(current)
    forward = [
        target for target in get_valid_transitions(current)
        if CANONICAL_PATH.index(target) > position
    ]
    return forward[0] if forward else None


def is_transition_valid(from_status, to_status) -> bool:
    """
    Graph-only legality check.

    Identity moves are not transitions and are reported as invalid here;
    validate_transition() reports them as no-ops instead.
    """
    if coerce_status(from_status) == coerce_status(to_status):
        return False
    return validate_transition(from_status, to_status).is_valid


def _rejection_reason(from_status: JobStatus, to_status: JobStatus) -> str:
    if from_status in TERMINAL_STATES:
        return "completed jobs are closed and cannot be moved"
    if to_status == JobStatus.COMPLETED:
        return "work must be scheduled and started before a job can be completed"
    if CANONICAL_PATH.index(to_status) < CANONICAL_PATH.index(from_status):
        return "jobs cannot move backward to this stage"
    return "this move skips required workflow steps"


def validate_transition(
    from_status,
    to_status,
    job: Optional[Job] = None,
    completion_guard: Optional[CompletionGuard] = None,
) -> TransitionDecision:
    """
    Decide legality, confirmation and side-effect hints for a move.

    The edge table decides legality. When a job is supplied, its data
    refines the decision (priority, bay assignment, completion guard).

    Args:
        from_status: Current status (JobStatus or wire identifier)
        to_status: Proposed status (JobStatus or wire identifier)
        job: The job being moved, for data-dependent policy
        completion_guard: Optional hook returning a blocking reason for completion

    Returns:
        TransitionDecision (never raises for well-formed statuses)

    Raises:
        UnknownStatusError: If either status is not a known identifier
    """
    current = coerce_status(from_status)
    target = coerce_status(to_status)

    # Identity is not a transition
    if current == target:
        return TransitionDecision(
            from_status=current,
            to_status=target,
            is_valid=True,
            is_noop=True,
        )

    from_label = get_status_label(current)
    to_label = get_status_label(target)

    policy = _TRANSITIONS.get((current, target))
    if policy is None:
        return TransitionDecision(
            from_status=current,
            to_status=target,
            is_valid=False,
            warning_message=(
                f"Cannot move job from {from_label} to {to_label}: "
                f"{_rejection_reason(current, target)}"
            ),
        )

    requires_confirmation = policy.requires_confirmation
    warnings: List[str] = [policy.warning_message] if policy.warning_message else []
    auto_actions = list(policy.auto_actions)

    if job is not None:
        if target == JobStatus.COMPLETED:
            blocking = completion_guard(job) if completion_guard else None
            if blocking:
                return TransitionDecision(
                    from_status=current,
                    to_status=target,
                    is_valid=False,
                    warning_message=(
                        f"Cannot move job from {from_label} to {to_label}: {blocking}"
                    ),
                )
            if job.priority == JobPriority.HIGH and current != JobStatus.IN_BAY:
                requires_confirmation = True
                warnings.append("High priority job is being completed without bay work.")

        if target == JobStatus.IN_BAY and not job.bay_assignment:
            requires_confirmation = True
            warnings.append("No service bay is assigned to this job.")

        if target == JobStatus.WAITING_PARTS and job.priority == JobPriority.HIGH:
            auto_actions.append(EXPEDITE_PARTS)

    return TransitionDecision(
        from_status=current,
        to_status=target,
        is_valid=True,
        requires_confirmation=requires_confirmation,
        warning_message=" ".join(warnings) if warnings else None,
        success_message=policy.success_message,
        prerequisites=list(policy.prerequisites),
        auto_actions=auto_actions,
    )


def require_transition(
    from_status,
    to_status,
    job: Optional[Job] = None,
    completion_guard: Optional[CompletionGuard] = None,
) -> TransitionDecision:
    """
    Validate a transition, raising an exception if illegal.

    Raises:
        InvalidStateTransitionError: If the transition is not allowed
    """
    decision = validate_transition(from_status, to_status, job, completion_guard)
    if not decision.is_valid:
        raise InvalidStateTransitionError(
            decision.from_status.value,
            decision.to_status.value,
            decision.warning_message or "",
        )
    return decision
