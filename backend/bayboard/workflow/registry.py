"""
In-memory job registry.

The registry provides:
- Job and appointment storage and retrieval by ID
- The persistence-collaborator interface used by the board controller
  (async list_jobs / update_status)
- Explicit save/load operations against SQLite (no auto-persist),
  except status writes, which go through the database when configured

Status writes are conditional: the caller states the status it decided
against and the destination capacity, and the registry refuses the
write if either no longer holds.
"""

import asyncio
import functools
import logging
from typing import Dict, List, Optional, Protocol
from datetime import datetime

from .models import (
    Appointment,
    INITIAL_STATUSES,
    Job,
    JobStatus,
    as_utc,
    coerce_status,
    resolve_bay_assignment,
)
from .errors import JobNotFoundError
from .state import require_transition
from ..persistence.errors import CapacityConflictError, StaleStatusError

logger = logging.getLogger(__name__)


class JobStore(Protocol):
    """Persistence collaborator consumed by the board controller."""

    async def list_jobs(self) -> List[Job]:
        ...

    async def update_status(
        self,
        job_id: str,
        new_status: JobStatus,
        *,
        expected_status: Optional[JobStatus] = None,
        max_occupancy: Optional[int] = None,
    ) -> Job:
        ...


class JobRegistry:
    """
    In-memory registry for job tracking.

    Stores jobs and appointments and provides retrieval by ID.
    Optional SQLite backing via an explicit persistence_manager.
    """

    def __init__(self, persistence_manager=None):
        """
        Initialize registry.

        Args:
            persistence_manager: Optional PersistenceManager for save/load
        """
        # job_id -> Job
        self._jobs: Dict[str, Job] = {}
        # appointment_id -> Appointment
        self._appointments: Dict[str, Appointment] = {}
        self._persistence = persistence_manager

    def add_job(self, job: Job) -> None:
        """
        Add a job to the registry.

        Raises:
            ValueError: If a job with the same ID already exists
        """
        if job.id in self._jobs:
            raise ValueError(f"Job with ID '{job.id}' already exists")

        self._jobs[job.id] = job

    def create_job(self, **fields) -> Job:
        """
        Create and register a new job.

        Jobs start life in intake or incoming-call only.

        Raises:
            ValueError: If the initial status is not an intake status
        """
        job = Job(**fields)
        if job.status not in INITIAL_STATUSES:
            raise ValueError(
                f"Jobs must be created in one of "
                f"{sorted(status.value for status in INITIAL_STATUSES)}, "
                f"not '{job.status.value}'"
            )
        self.add_job(job)
        return job

    def get_job(self, job_id: str) -> Optional[Job]:
        """
        Retrieve a job by ID.

        Returns:
            The job if found, None otherwise
        """
        job = self._jobs.get(job_id)
        return self._with_bay(job) if job else None

    def get_job_or_raise(self, job_id: str) -> Job:
        """
        Retrieve a job by ID, raising an exception if not found.

        Raises:
            JobNotFoundError: If the job does not exist
        """
        job = self.get_job(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def add_appointment(self, appointment: Appointment) -> None:
        """
        Add an appointment.

        Raises:
            JobNotFoundError: If the appointment's job is unknown
        """
        if appointment.job_id not in self._jobs:
            raise JobNotFoundError(appointment.job_id)
        self._appointments[appointment.id] = appointment

    def list_appointments(self) -> List[Appointment]:
        return sorted(self._appointments.values(), key=lambda a: as_utc(a.start_at))

    def count(self) -> int:
        return len(self._jobs)

    def clear(self) -> None:
        """
        Clear all jobs and appointments from the registry.

        Useful for testing or resetting state.
        """
        self._jobs.clear()
        self._appointments.clear()

    def _with_bay(self, job: Job) -> Job:
        """Copy of the job with bay_assignment filled from appointments."""
        if job.bay_assignment:
            return job.model_copy()
        bay = resolve_bay_assignment(job.id, self._appointments.values())
        return job.model_copy(update={"bay_assignment": bay})

    # Persistence collaborator interface

    async def list_jobs(self) -> List[Job]:
        """
        Authoritative job list, ordered by creation time (oldest first).

        Returns copies; mutating them does not affect the registry.
        """
        jobs = [self._with_bay(job) for job in self._jobs.values()]
        jobs.sort(key=lambda j: as_utc(j.created_at))
        return jobs

    async def update_status(
        self,
        job_id: str,
        new_status: JobStatus,
        *,
        expected_status: Optional[JobStatus] = None,
        max_occupancy: Optional[int] = None,
    ) -> Job:
        """
        Conditionally commit a status change.

        Without persistence no await happens between the checks and the
        write, so the check-and-set is atomic with respect to other
        coroutines. With persistence the database write re-checks both
        conditions in one statement and runs off the event loop, so a
        commit timeout can interrupt it.

        Args:
            job_id: The job to update
            new_status: Destination status
            expected_status: Status the caller decided against
            max_occupancy: Capacity of the destination status

        Returns:
            The updated job

        Raises:
            JobNotFoundError: If the job does not exist
            StaleStatusError: If the job is no longer in expected_status
            CapacityConflictError: If the destination is already full
            InvalidStateTransitionError: If the edge is not in the workflow graph
            PersistenceError: If the database write fails
        """
        if job_id not in self._jobs:
            raise JobNotFoundError(job_id)
        job = self._jobs[job_id]
        target = coerce_status(new_status)

        if expected_status is not None:
            expected = coerce_status(expected_status)
            if job.status != expected:
                raise StaleStatusError(job_id, expected.value, job.status.value)

        require_transition(job.status, target)

        if max_occupancy is not None:
            occupied = sum(
                1 for other in self._jobs.values()
                if other.status == target and other.id != job_id
            )
            if occupied >= max_occupancy:
                raise CapacityConflictError(job_id, target.value, max_occupancy)

        now = datetime.now()
        if self._persistence:
            await self._write_status(job, target, now, max_occupancy)
        else:
            self._apply_status(job, target, now)
        return self._with_bay(self._jobs[job_id])

    async def _write_status(
        self,
        job: Job,
        target: JobStatus,
        now: datetime,
        max_occupancy: Optional[int],
    ) -> None:
        """
        Run the conditional database write on a worker thread.

        If the caller is cancelled (commit timeout, client gone) while the
        write is still running, the write is left to finish and a late
        success is applied to memory when it lands.
        """
        loop = asyncio.get_running_loop()
        write = loop.run_in_executor(
            None,
            functools.partial(
                self._persistence.update_job_status,
                job.id,
                target.value,
                now.isoformat(),
                expected_status=job.status.value,
                max_occupancy=max_occupancy,
            ),
        )
        try:
            await asyncio.shield(write)
        except asyncio.CancelledError:
            write.add_done_callback(functools.partial(self._apply_late_write, job, target, now))
            raise
        self._apply_status(job, target, now)

    def _apply_late_write(self, job: Job, target: JobStatus, now: datetime, write) -> None:
        if write.cancelled():
            return
        error = write.exception()
        if error is not None:
            logger.warning(f"[REGISTRY] abandoned write for job {job.id} failed: {error}")
            return
        logger.warning(f"[REGISTRY] job {job.id}: write landed after its caller gave up")
        self._apply_status(job, target, now)

    def _apply_status(self, job: Job, target: JobStatus, now: datetime) -> None:
        self._jobs[job.id] = job.model_copy(update={"status": target, "updated_at": now})
        logger.info(f"[REGISTRY] job {job.id}: {job.status.value} -> {target.value}")

    # Explicit persistence operations

    def save_job(self, job: Job) -> None:
        """
        Explicitly save a job to persistent storage.

        Raises:
            ValueError: If persistence_manager is not configured
        """
        if not self._persistence:
            raise ValueError("No persistence_manager configured for JobRegistry")

        self._persistence.save_job(self._jobs.get(job.id, job).model_dump(mode="json"))

    def save_appointment(self, appointment: Appointment) -> None:
        """
        Explicitly save an appointment to persistent storage.

        Raises:
            ValueError: If persistence_manager is not configured
        """
        if not self._persistence:
            raise ValueError("No persistence_manager configured for JobRegistry")

        self._persistence.save_appointment(appointment.model_dump(mode="json"))

    def load_all(self) -> None:
        """
        Load all jobs and appointments from persistent storage into memory.

        Called explicitly at startup to restore state.

        Raises:
            ValueError: If persistence_manager is not configured
        """
        if not self._persistence:
            raise ValueError("No persistence_manager configured for JobRegistry")

        for job_data in self._persistence.load_all_jobs():
            job = Job.model_validate(job_data)
            self._jobs[job.id] = job

        for appointment_data in self._persistence.load_all_appointments():
            appointment = Appointment.model_validate(appointment_data)
            self._appointments[appointment.id] = appointment

        logger.info(
            f"[REGISTRY] loaded {len(self._jobs)} job(s), "
            f"{len(self._appointments)} appointment(s)"
        )
