"""
Hard invariants for board state.

These invariants FAIL LOUDLY when violated.
They do not recover, retry, or mask errors.

Invariants:
1. CAPACITY INVARIANT: a capacity-limited lane never holds more jobs
   than its max_occupancy after a controller-mediated commit
"""

import logging
from typing import Iterable

from ..workflow.models import Job

logger = logging.getLogger(__name__)


# ============================================================================
# INVARIANT VIOLATION EXCEPTIONS
# ============================================================================
# These are INTENTIONALLY not recoverable. They indicate logic errors
# that must be fixed in code, not worked around at runtime.
# ============================================================================


class InvariantViolation(Exception):
    """
    Base class for invariant violations.

    Do NOT catch these and recover - fix the root cause.
    """
    pass


class CapacityInvariantViolation(InvariantViolation):
    """
    Raised when a lane holds more jobs than its configured capacity.

    INVARIANT: for every capacity-limited lane,
    count(jobs with status == lane.status) <= lane.max_occupancy
    """

    def __init__(self, status: str, occupancy: int, max_occupancy: int):
        self.status = status
        self.occupancy = occupancy
        self.max_occupancy = max_occupancy
        super().__init__(
            f"CAPACITY INVARIANT VIOLATED: lane '{status}' holds {occupancy} job(s), "
            f"capacity is {max_occupancy}. Capacity checks and commits are out of order."
        )


def assert_lane_capacity(lane, jobs: Iterable[Job]) -> None:
    """
    Assert a lane is within capacity for the given job set.

    Raises:
        CapacityInvariantViolation: If the lane is over capacity
    """
    if lane.max_occupancy is None:
        return

    occupied = sum(1 for job in jobs if job.status == lane.status)
    if occupied > lane.max_occupancy:
        logger.error(
            f"[INVARIANT] lane {lane.status.value}: {occupied}/{lane.max_occupancy}"
        )
        raise CapacityInvariantViolation(lane.status.value, occupied, lane.max_occupancy)


def assert_board_capacity(lanes, jobs: Iterable[Job]) -> None:
    """Assert every capacity-limited lane is within capacity."""
    jobs = list(jobs)
    for lane in lanes:
        assert_lane_capacity(lane, jobs)
