"""
Job Registry Tests

QC tests proving:
1. Jobs are created in intake statuses only
2. Status writes are conditional (expected status, capacity)
3. The workflow graph is enforced at the store as a backstop
4. Bay assignment is derived from appointments
5. Reads return copies

Runtime: <1s
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from bayboard.board.controller import BoardController, DropState
from bayboard.persistence.errors import (
    CapacityConflictError,
    CommitConflictError,
    StaleStatusError,
)
from bayboard.workflow.errors import InvalidStateTransitionError, JobNotFoundError
from bayboard.workflow.models import Appointment, Job, JobStatus, resolve_bay_assignment


class TestJobCreation:

    def test_create_job_in_intake(self, registry):
        job = registry.create_job(title="Brake squeal")

        assert job.status == JobStatus.INTAKE
        assert registry.get_job(job.id).title == "Brake squeal"
        assert registry.count() == 1

    def test_create_job_from_phone_call(self, registry):
        job = registry.create_job(title="Caller", status="incoming-call")

        assert job.status == JobStatus.INCOMING_CALL

    def test_create_job_mid_workflow_rejected(self, registry):
        with pytest.raises(ValueError):
            registry.create_job(status=JobStatus.IN_BAY)

        assert registry.count() == 0

    def test_duplicate_id_rejected(self, registry):
        registry.add_job(Job(id="job-1"))

        with pytest.raises(ValueError):
            registry.add_job(Job(id="job-1"))

    def test_get_job_or_raise(self, registry):
        with pytest.raises(JobNotFoundError) as exc_info:
            registry.get_job_or_raise("nope")

        assert exc_info.value.job_id == "nope"
        assert registry.get_job("nope") is None

    def test_clear(self, registry, add_job, book_bay):
        book_bay(add_job(JobStatus.SCHEDULED))
        registry.clear()

        assert registry.count() == 0
        assert registry.list_appointments() == []


class TestConditionalStatusWrites:
    """update_status is the only way a status changes."""

    def test_update_changes_status_and_timestamp(self, registry, add_job):
        stamp = datetime(2024, 1, 1, 9, 0)
        job = add_job(JobStatus.SCHEDULED, created_at=stamp, updated_at=stamp)

        updated = asyncio.run(registry.update_status(job.id, JobStatus.IN_PROGRESS))

        assert updated.status == JobStatus.IN_PROGRESS
        assert updated.updated_at > stamp
        assert registry.get_job(job.id).status == JobStatus.IN_PROGRESS

    def test_stale_expected_status_refused(self, registry, add_job):
        job = add_job(JobStatus.IN_PROGRESS)

        with pytest.raises(StaleStatusError) as exc_info:
            asyncio.run(registry.update_status(
                job.id, JobStatus.IN_BAY, expected_status=JobStatus.SCHEDULED
            ))

        assert exc_info.value.actual_status == "in-progress"
        assert registry.get_job(job.id).status == JobStatus.IN_PROGRESS

    def test_capacity_conflict_refused(self, registry, add_job):
        add_job(JobStatus.IN_BAY, bay="bay-1")
        job = add_job(JobStatus.SCHEDULED, bay="bay-2")

        with pytest.raises(CapacityConflictError) as exc_info:
            asyncio.run(registry.update_status(job.id, JobStatus.IN_BAY, max_occupancy=1))

        assert isinstance(exc_info.value, CommitConflictError)
        assert "already holding 1 job(s)" in str(exc_info.value)
        assert registry.get_job(job.id).status == JobStatus.SCHEDULED

    def test_capacity_with_room_accepts(self, registry, add_job):
        add_job(JobStatus.IN_BAY, bay="bay-1")
        job = add_job(JobStatus.SCHEDULED, bay="bay-2")

        updated = asyncio.run(registry.update_status(job.id, JobStatus.IN_BAY, max_occupancy=2))

        assert updated.status == JobStatus.IN_BAY

    def test_illegal_edge_refused_at_store(self, registry, add_job):
        job = add_job(JobStatus.COMPLETED)

        with pytest.raises(InvalidStateTransitionError):
            asyncio.run(registry.update_status(job.id, JobStatus.IN_BAY))

    def test_unknown_job_refused(self, registry):
        with pytest.raises(JobNotFoundError):
            asyncio.run(registry.update_status("missing", JobStatus.SCHEDULED))


class TestReads:

    def test_list_jobs_oldest_first(self, registry, add_job):
        now = datetime.now()
        newer = add_job(JobStatus.INTAKE, created_at=now)
        older = add_job(JobStatus.INTAKE, created_at=now - timedelta(days=1))

        jobs = asyncio.run(registry.list_jobs())

        assert [job.id for job in jobs] == [older.id, newer.id]

    def test_list_jobs_returns_copies(self, registry, add_job):
        job = add_job(JobStatus.SCHEDULED)

        listed = asyncio.run(registry.list_jobs())
        listed[0].status = JobStatus.COMPLETED

        assert registry.get_job(job.id).status == JobStatus.SCHEDULED

    def test_bay_resolved_from_appointment(self, registry, add_job, book_bay):
        job = add_job(JobStatus.SCHEDULED)
        book_bay(job, bay="bay-2")

        assert registry.get_job(job.id).bay_assignment == "bay-2"

    def test_explicit_bay_wins_over_appointment(self, registry, add_job, book_bay):
        job = add_job(JobStatus.SCHEDULED, bay="bay-1")
        book_bay(job, bay="bay-2")

        assert registry.get_job(job.id).bay_assignment == "bay-1"

    def test_appointment_for_unknown_job_rejected(self, registry):
        now = datetime.now()
        with pytest.raises(JobNotFoundError):
            registry.add_appointment(Appointment(
                job_id="ghost", bay="bay-1", start_at=now, end_at=now + timedelta(hours=1)
            ))

    def test_save_without_persistence_rejected(self, registry, add_job):
        with pytest.raises(ValueError):
            registry.save_job(add_job(JobStatus.INTAKE))


class TestBayResolution:
    """resolve_bay_assignment picks the most relevant appointment."""

    def _appt(self, bay, start, hours=1):
        return Appointment(job_id="job-1", bay=bay, start_at=start, end_at=start + timedelta(hours=hours))

    def test_covering_appointment_preferred(self):
        at = datetime(2024, 3, 1, 10, 30)
        appointments = [
            self._appt("bay-1", datetime(2024, 3, 1, 8)),
            self._appt("bay-2", datetime(2024, 3, 1, 10)),
            self._appt("bay-3", datetime(2024, 3, 1, 14)),
        ]

        assert resolve_bay_assignment("job-1", appointments, at=at) == "bay-2"

    def test_latest_started_when_none_cover(self):
        at = datetime(2024, 3, 1, 12)
        appointments = [
            self._appt("bay-1", datetime(2024, 3, 1, 8)),
            self._appt("bay-2", datetime(2024, 3, 1, 10)),
            self._appt("bay-3", datetime(2024, 3, 1, 14)),
        ]

        assert resolve_bay_assignment("job-1", appointments, at=at) == "bay-2"

    def test_earliest_upcoming_when_nothing_started(self):
        at = datetime(2024, 3, 1, 6)
        appointments = [
            self._appt("bay-3", datetime(2024, 3, 1, 14)),
            self._appt("bay-1", datetime(2024, 3, 1, 8)),
        ]

        assert resolve_bay_assignment("job-1", appointments, at=at) == "bay-1"

    def test_no_appointments(self):
        assert resolve_bay_assignment("job-1", []) is None

    def test_aware_and_naive_appointments_compare(self):
        at = datetime(2024, 3, 1, 10, 30, tzinfo=timezone.utc)
        local_start = datetime(2024, 3, 1, 8, tzinfo=timezone.utc).astimezone().replace(tzinfo=None)
        appointments = [
            self._appt("bay-1", local_start),
            self._appt("bay-2", datetime(2024, 3, 1, 10, tzinfo=timezone.utc)),
        ]

        assert resolve_bay_assignment("job-1", appointments, at=at) == "bay-2"


class TestTimezoneAwareAppointments:
    """Appointments stored with an offset still resolve against local time."""

    def test_aware_appointment_resolves_bay(self, registry, add_job):
        job = add_job(JobStatus.SCHEDULED)
        now = datetime.now(timezone.utc)
        registry.add_appointment(Appointment(
            job_id=job.id, bay="bay-2", start_at=now - timedelta(minutes=5), end_at=now + timedelta(hours=1)
        ))

        assert registry.get_job(job.id).bay_assignment == "bay-2"
        assert [a.bay for a in registry.list_appointments()] == ["bay-2"]

    def test_drop_with_aware_appointment(self, registry, add_job, book_bay):
        job = add_job(JobStatus.SCHEDULED)
        other = add_job(JobStatus.SCHEDULED)
        book_bay(other, bay="bay-1")
        registry.add_appointment(Appointment(
            job_id=job.id,
            bay="bay-2",
            start_at="2024-03-01T08:00:00Z",
            end_at="2024-03-01T09:00:00+00:00",
        ))
        controller = BoardController(registry)

        result = asyncio.run(controller.drop(job.id, JobStatus.IN_BAY))

        assert result.state == DropState.COMMITTED
        assert result.job.bay_assignment == "bay-2"
