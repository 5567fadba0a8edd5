"""
Board lanes: one column per job status.

A lane may carry a maximum occupancy (physical capacity). The in-bay
lane is limited to the number of active service bays.

Occupancy is always computed from a job list handed in by the caller.
Nothing here caches board state.
"""

from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..settings import ShopSettings, DEFAULT_SHOP_SETTINGS
from ..workflow.errors import UnknownStatusError
from ..workflow.models import Job, JobPriority, JobStatus, coerce_status
from ..workflow.state import get_status_label, get_workflow_progress
from .errors import LaneConfigurationError, LaneNotFoundError


@dataclass(frozen=True)
class Lane:
    """A board column keyed by one status."""

    status: JobStatus
    title: str
    description: str = ""
    max_occupancy: Optional[int] = None  # None: unlimited

    @property
    def is_capacity_limited(self) -> bool:
        return self.max_occupancy is not None


DEFAULT_LANES = (
    Lane(JobStatus.INTAKE, "Intake", "New job requests"),
    Lane(JobStatus.INCOMING_CALL, "Incoming Calls", "New customer calls and inquiries"),
    Lane(JobStatus.SCHEDULED, "Scheduled", "Jobs scheduled for service"),
    Lane(JobStatus.IN_PROGRESS, "In Progress", "Work started outside a bay"),
    Lane(JobStatus.IN_BAY, "In Bay", "Currently being worked on"),
    Lane(JobStatus.WAITING_PARTS, "Waiting on Parts", "Pending parts delivery"),
    Lane(JobStatus.COMPLETED, "Completed", "Finished jobs"),
)


def build_lanes(settings: ShopSettings = DEFAULT_SHOP_SETTINGS) -> Dict[JobStatus, Lane]:
    """
    Lanes for a shop, in board order.

    The in-bay lane gets one slot per active bay; explicit
    lane_capacity entries override any lane's capacity.

    Raises:
        LaneConfigurationError: If lane_capacity names an unknown status
    """
    lanes = {lane.status: lane for lane in DEFAULT_LANES}
    lanes[JobStatus.IN_BAY] = replace(
        lanes[JobStatus.IN_BAY], max_occupancy=settings.bay_capacity
    )

    for key, capacity in settings.lane_capacity.items():
        try:
            status = coerce_status(key)
        except UnknownStatusError:
            raise LaneConfigurationError(f"capacity given for unknown status '{key}'") from None
        lanes[status] = replace(lanes[status], max_occupancy=capacity)

    return lanes


def get_lane(lanes: Dict[JobStatus, Lane], status) -> Lane:
    """
    Raises:
        LaneNotFoundError: If no lane is configured for the status
    """
    status = coerce_status(status)
    if status not in lanes:
        raise LaneNotFoundError(status.value)
    return lanes[status]


def occupancy(jobs: Iterable[Job], status, exclude_job_id: Optional[str] = None) -> int:
    """Number of jobs holding `status`, optionally not counting one job."""
    status = coerce_status(status)
    return sum(
        1 for job in jobs
        if job.status == status and job.id != exclude_job_id
    )


def group_by_lane(lanes: Dict[JobStatus, Lane], jobs: Iterable[Job]) -> Dict[JobStatus, List[Job]]:
    grouped: Dict[JobStatus, List[Job]] = {status: [] for status in lanes}
    for job in jobs:
        if job.status in grouped:
            grouped[job.status].append(job)
    return grouped


def filter_jobs(
    jobs: Iterable[Job],
    search: Optional[str] = None,
    priority: Optional[str] = None,
    invoice: Optional[str] = None,
) -> List[Job]:
    """
    Board filters: free-text search over title and notes, exact
    priority, and invoice-number substring. All case-insensitive.
    """
    needle = (search or "").strip().lower()
    invoice_needle = (invoice or "").strip().lower()
    wanted_priority = JobPriority(priority) if priority and priority != "all" else None

    matched = []
    for job in jobs:
        if needle and needle not in job.title.lower() and needle not in (job.notes or "").lower():
            continue
        if wanted_priority and job.priority != wanted_priority:
            continue
        if invoice_needle and invoice_needle not in (job.invoice_number or "").lower():
            continue
        matched.append(job)
    return matched


class BoardStats(BaseModel):
    """Header counts shown above the board."""

    model_config = ConfigDict(extra="forbid")

    total: int = 0
    completed: int = 0
    in_bay: int = 0
    waiting_parts: int = 0
    high_priority: int = 0


def board_stats(jobs: Iterable[Job]) -> BoardStats:
    jobs = list(jobs)
    return BoardStats(
        total=len(jobs),
        completed=occupancy(jobs, JobStatus.COMPLETED),
        in_bay=occupancy(jobs, JobStatus.IN_BAY),
        waiting_parts=occupancy(jobs, JobStatus.WAITING_PARTS),
        high_priority=sum(1 for job in jobs if job.priority == JobPriority.HIGH),
    )


class LaneView(BaseModel):
    """A lane and the jobs currently in it."""

    model_config = ConfigDict(extra="forbid")

    status: JobStatus
    title: str
    label: str
    description: str = ""
    max_occupancy: Optional[int] = None
    occupancy: int = 0
    is_full: bool = False
    progress: int = 0
    jobs: List[Job] = Field(default_factory=list)


class BoardView(BaseModel):
    """Full board: lanes in board order plus header stats."""

    model_config = ConfigDict(extra="forbid")

    lanes: List[LaneView] = Field(default_factory=list)
    stats: BoardStats = Field(default_factory=BoardStats)


def build_board_view(
    lanes: Dict[JobStatus, Lane],
    jobs: Iterable[Job],
    visible_jobs: Optional[Iterable[Job]] = None,
) -> BoardView:
    """
    Assemble the board.

    Occupancy and fullness always use the complete job list; filters
    only affect which jobs are shown (visible_jobs).
    """
    jobs = list(jobs)
    shown = group_by_lane(lanes, jobs if visible_jobs is None else visible_jobs)

    views = []
    for status, lane in lanes.items():
        occupied = occupancy(jobs, status)
        views.append(LaneView(
            status=status,
            title=lane.title,
            label=get_status_label(status),
            description=lane.description,
            max_occupancy=lane.max_occupancy,
            occupancy=occupied,
            is_full=lane.max_occupancy is not None and occupied >= lane.max_occupancy,
            progress=get_workflow_progress(status),
            jobs=shown[status],
        ))

    visible = [job for group in shown.values() for job in group]
    return BoardView(lanes=views, stats=board_stats(visible))
