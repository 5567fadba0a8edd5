"""
Pytest configuration for the bayboard test suite.
"""

import sys
from pathlib import Path
from datetime import datetime, timedelta

import pytest

# Add backend to Python path for test imports
backend_path = Path(__file__).parent.parent
sys.path.insert(0, str(backend_path))

from bayboard.workflow.models import Appointment, Job, JobPriority, JobStatus  # noqa: E402
from bayboard.workflow.registry import JobRegistry  # noqa: E402


@pytest.fixture
def registry():
    """Empty in-memory registry."""
    return JobRegistry()


@pytest.fixture
def add_job(registry):
    """
    Factory that registers a job in any status.

    Bypasses create_job() so tests can seed mid-workflow jobs.
    """
    def _add(status=JobStatus.INTAKE, priority=JobPriority.MEDIUM, bay=None, **fields):
        job = Job(status=status, priority=priority, bay_assignment=bay, **fields)
        registry.add_job(job)
        return job

    return _add


@pytest.fixture
def book_bay(registry):
    """Factory that books a job into a bay for the current hour."""
    def _book(job, bay="bay-1"):
        now = datetime.now()
        appointment = Appointment(
            job_id=job.id,
            bay=bay,
            start_at=now - timedelta(minutes=30),
            end_at=now + timedelta(minutes=30),
        )
        registry.add_appointment(appointment)
        return appointment

    return _book
