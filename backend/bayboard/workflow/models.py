"""
Job, Appointment and transition data models.

Represents service jobs as they move across the shop board.
A job's status is mutated only through validated transitions
(see state.py); these models carry no transition logic themselves.

All models use Pydantic for validation.
Status values are stable wire identifiers ("in-bay", "waiting-parts", ...).
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, List, Optional
from pydantic import BaseModel, ConfigDict, Field

from .errors import UnknownStatusError


class JobStatus(str, Enum):
    """
    Job-level status.

    Ordered by typical progression. The legal graph is explicit
    in state.py and is NOT implied by this ordering.
    """

    INTAKE = "intake"  # Created from a walk-in or web request
    INCOMING_CALL = "incoming-call"  # Created from a phone call
    SCHEDULED = "scheduled"  # Appointment booked
    IN_PROGRESS = "in-progress"  # Work started, not yet in a bay
    IN_BAY = "in-bay"  # Occupying a physical service bay
    WAITING_PARTS = "waiting-parts"  # Blocked on parts delivery
    COMPLETED = "completed"  # Work finished (terminal)


class JobPriority(str, Enum):
    """Job priority as set at intake."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# Statuses a job may be created in
INITIAL_STATUSES = frozenset({JobStatus.INTAKE, JobStatus.INCOMING_CALL})


def coerce_status(value) -> JobStatus:
    """
    Convert a wire identifier to a JobStatus.

    Fails fast on anything outside the closed enumeration.

    Raises:
        UnknownStatusError: If value is not a known status identifier
    """
    if isinstance(value, JobStatus):
        return value
    try:
        return JobStatus(value)
    except ValueError:
        raise UnknownStatusError(value) from None


class Job(BaseModel):
    """
    A service job under workflow control.

    updated_at is restamped by the stores whenever status changes.
    """

    model_config = ConfigDict(extra="forbid")

    # Identity
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    title: str = ""
    customer_id: Optional[str] = None
    vehicle_id: Optional[str] = None

    # State
    status: JobStatus = JobStatus.INTAKE
    priority: JobPriority = JobPriority.MEDIUM

    # Work planning
    estimated_hours: float = 0.0
    bay_assignment: Optional[str] = None  # Bay id, filled from appointments when absent

    # Board filters
    notes: Optional[str] = None
    invoice_number: Optional[str] = None

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)


class Appointment(BaseModel):
    """A booked bay slot for a job."""

    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    job_id: str
    bay: str
    start_at: datetime
    end_at: datetime
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)


class TransitionDecision(BaseModel):
    """
    Outcome of validating a proposed (from, to, job) triple.

    Ephemeral: computed on demand, never persisted.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    from_status: JobStatus
    to_status: JobStatus
    is_valid: bool
    requires_confirmation: bool = False
    warning_message: Optional[str] = None
    success_message: Optional[str] = None
    prerequisites: List[str] = Field(default_factory=list)
    auto_actions: List[str] = Field(default_factory=list)

    # Identity moves are not transitions
    is_noop: bool = False


class TransitionMessage(BaseModel):
    """Human-facing title/body for a transition. UI feedback only."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    title: str
    message: str
    kind: str = "success"  # "success" | "warning"
    actions: List[str] = Field(default_factory=list)


def as_utc(value: datetime) -> datetime:
    """
    Aware UTC copy of a timestamp.

    Naive values are taken as local time, so naive and aware
    timestamps can be compared and sorted together.
    """
    return value.astimezone(timezone.utc)


def resolve_bay_assignment(
    job_id: str,
    appointments: Iterable[Appointment],
    at: Optional[datetime] = None,
) -> Optional[str]:
    """
    Derive a job's bay from its appointments.

    Prefers the appointment covering `at`, then the most recent one
    that has already started, then the earliest upcoming one.

    Args:
        job_id: The job to resolve
        appointments: Candidate appointments (any job)
        at: Reference time (defaults to now)

    Returns:
        Bay id, or None if the job has no appointments
    """
    at = as_utc(at or datetime.now())
    own = sorted(
        (appt for appt in appointments if appt.job_id == job_id),
        key=lambda appt: as_utc(appt.start_at),
    )
    if not own:
        return None

    for appt in own:
        if as_utc(appt.start_at) <= at < as_utc(appt.end_at):
            return appt.bay

    started = [appt for appt in own if as_utc(appt.start_at) <= at]
    if started:
        return started[-1].bay
    return own[0].bay
