"""
Board controller: drag-and-drop intents to validated status changes.

For a drop of job J onto lane B:
1. Same lane -> no-op (nothing fetched is written, no notices)
2. Transition validator rejects -> error notice, state unchanged
3. Lane B full -> capacity notice, state unchanged
4. Confirmation required -> warning notice (soft policy proceeds,
   strict policy waits for a confirmed drop)
5. Commit through the job store (conditional write, bounded by a timeout)
6. Success -> success notice + one info notice per auto-action
7. Failure -> error notice, displayed status reverts to the source lane

CONCURRENCY: steps 1-5 run under one lock per controller. The job
list is fetched inside the lock, immediately before deciding, so two
near-simultaneous drops into a one-slot lane cannot both pass the
capacity check. The store's conditional write is a second guard for
writers outside this controller.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..observability.invariants import assert_lane_capacity
from ..persistence.errors import PersistenceError
from ..settings import ConfirmationPolicy, ShopSettings, DEFAULT_SHOP_SETTINGS
from ..workflow.errors import JobNotFoundError, WorkflowError
from ..workflow.models import Job, JobStatus, TransitionDecision, coerce_status
from ..workflow.registry import JobStore
from ..workflow.state import CompletionGuard, validate_transition
from .lanes import (
    BoardView,
    Lane,
    build_board_view,
    build_lanes,
    filter_jobs,
    get_lane,
    occupancy,
)
from .notices import (
    Notice,
    auto_action_notices,
    capacity_notice,
    commit_failure_notice,
    confirmation_notice,
    invalid_transition_notice,
    success_notice,
)

logger = logging.getLogger(__name__)

# Store failures reported to the user as a reverted drop. Anything else
# is a bug in the store and propagates.
COMMIT_FAILURES = (PersistenceError, WorkflowError, OSError)


class DropState(str, Enum):
    """Lifecycle of a single drop intent."""

    NOOP = "noop"  # Dropped onto its own lane
    REJECTED = "rejected"  # Invalid transition or full lane; nothing committed
    AWAITING_CONFIRMATION = "awaiting_confirmation"  # Strict policy, not yet confirmed
    PENDING = "pending"  # Commit in flight, displayed optimistically
    COMMITTED = "committed"  # Store accepted the change
    REVERTED = "reverted"  # Store refused or failed; displayed status restored


class RejectionReason(str, Enum):
    INVALID_TRANSITION = "invalid_transition"
    CAPACITY_EXCEEDED = "capacity_exceeded"


class DropResult(BaseModel):
    """Outcome of one drop, with the notices it produced."""

    model_config = ConfigDict(extra="forbid")

    job_id: str
    from_status: JobStatus
    to_status: JobStatus
    state: DropState
    displayed_status: JobStatus
    rejection: Optional[RejectionReason] = None
    decision: Optional[TransitionDecision] = None
    notices: List[Notice] = Field(default_factory=list)
    job: Optional[Job] = None

    @property
    def committed(self) -> bool:
        return self.state == DropState.COMMITTED


@dataclass(frozen=True)
class InFlightDrop:
    """A commit that has been requested but not yet answered."""

    job_id: str
    from_status: JobStatus
    to_status: JobStatus


Notifier = Callable[[Notice], None]


class BoardController:
    """
    Orchestrates drops against the transition validator and lane capacity.

    Holds no board state beyond the last known status of each job
    (displayed_status) and the drops currently in flight.
    """

    def __init__(
        self,
        store: JobStore,
        lanes: Optional[Iterable[Lane]] = None,
        settings: ShopSettings = DEFAULT_SHOP_SETTINGS,
        notifier: Optional[Notifier] = None,
        completion_guard: Optional[CompletionGuard] = None,
    ):
        """
        Initialize controller.

        Args:
            store: Persistence collaborator (list_jobs / update_status)
            lanes: Lane configuration (defaults to lanes built from settings)
            settings: Shop settings (confirmation policy, commit timeout)
            notifier: Optional UI callback receiving every notice in order
            completion_guard: Optional hook blocking completion of a job
        """
        self.store = store
        self.settings = settings
        self.lanes: Dict[JobStatus, Lane] = (
            {lane.status: lane for lane in lanes} if lanes is not None else build_lanes(settings)
        )
        self.notifier = notifier
        self.completion_guard = completion_guard

        self._displayed: Dict[str, JobStatus] = {}
        self._in_flight: Dict[str, InFlightDrop] = {}
        self._lock: Optional[asyncio.Lock] = None
        self._lock_loop: Optional[asyncio.AbstractEventLoop] = None

    def _drop_lock(self) -> asyncio.Lock:
        """One lock per running event loop."""
        loop = asyncio.get_running_loop()
        if self._lock is None or self._lock_loop is not loop:
            self._lock = asyncio.Lock()
            self._lock_loop = loop
        return self._lock

    def displayed_status(self, job_id: str) -> Optional[JobStatus]:
        """
        Status the board should show for a job.

        While a commit is in flight this is the optimistic destination;
        otherwise the last status known to be committed.
        """
        return self._displayed.get(job_id)

    def pending_drops(self) -> List[InFlightDrop]:
        return list(self._in_flight.values())

    def _refresh_displayed(self, jobs: Iterable[Job]) -> None:
        for job in jobs:
            if job.id not in self._in_flight:
                self._displayed[job.id] = job.status

    def _finish(self, result: DropResult) -> DropResult:
        if self.notifier:
            for notice in result.notices:
                self.notifier(notice)
        return result

    async def board(
        self,
        search: Optional[str] = None,
        priority: Optional[str] = None,
        invoice: Optional[str] = None,
    ) -> BoardView:
        """Current board built from the authoritative job list."""
        jobs = await self.store.list_jobs()
        self._refresh_displayed(jobs)
        visible = filter_jobs(jobs, search=search, priority=priority, invoice=invoice)
        return build_board_view(self.lanes, jobs, visible)

    async def drop(self, job_id: str, target_status, confirmed: bool = False) -> DropResult:
        """
        Handle a drop of a job card onto a lane.

        Args:
            job_id: The dragged job
            target_status: Status of the lane it was dropped on
            confirmed: User already confirmed (only matters for strict policy)

        Returns:
            DropResult describing what happened

        Raises:
            UnknownStatusError: If target_status is not a known status
            LaneNotFoundError: If no lane is configured for target_status
            JobNotFoundError: If the job is not in the store
        """
        target = coerce_status(target_status)
        lane = get_lane(self.lanes, target)

        async with self._drop_lock():
            # Authoritative snapshot, read inside the critical section
            jobs = await self.store.list_jobs()
            self._refresh_displayed(jobs)

            job = next((j for j in jobs if j.id == job_id), None)
            if job is None:
                raise JobNotFoundError(job_id)
            source = job.status

            if source == target:
                logger.debug(f"[BOARD] job {job_id} dropped on its own lane ({target.value})")
                return self._finish(DropResult(
                    job_id=job_id,
                    from_status=source,
                    to_status=target,
                    state=DropState.NOOP,
                    displayed_status=source,
                    job=job,
                ))

            decision = validate_transition(source, target, job, self.completion_guard)
            if not decision.is_valid:
                logger.warning(
                    f"[BOARD] rejected job {job_id}: {source.value} -> {target.value} "
                    f"({decision.warning_message})"
                )
                return self._finish(DropResult(
                    job_id=job_id,
                    from_status=source,
                    to_status=target,
                    state=DropState.REJECTED,
                    displayed_status=source,
                    rejection=RejectionReason.INVALID_TRANSITION,
                    decision=decision,
                    notices=[invalid_transition_notice(job, decision)],
                    job=job,
                ))

            if lane.is_capacity_limited:
                occupied = occupancy(jobs, target, exclude_job_id=job_id)
                if occupied >= lane.max_occupancy:
                    logger.warning(
                        f"[BOARD] rejected job {job_id}: lane {target.value} full "
                        f"({occupied}/{lane.max_occupancy})"
                    )
                    return self._finish(DropResult(
                        job_id=job_id,
                        from_status=source,
                        to_status=target,
                        state=DropState.REJECTED,
                        displayed_status=source,
                        rejection=RejectionReason.CAPACITY_EXCEEDED,
                        decision=decision,
                        notices=[capacity_notice(lane)],
                        job=job,
                    ))

            notices: List[Notice] = []
            if decision.requires_confirmation:
                notices.append(confirmation_notice(job, decision))
                if self.settings.confirmation_policy == ConfirmationPolicy.STRICT and not confirmed:
                    logger.info(f"[BOARD] job {job_id}: {source.value} -> {target.value} awaiting confirmation")
                    return self._finish(DropResult(
                        job_id=job_id,
                        from_status=source,
                        to_status=target,
                        state=DropState.AWAITING_CONFIRMATION,
                        displayed_status=source,
                        decision=decision,
                        notices=notices,
                        job=job,
                    ))

            return self._finish(await self._commit(job, lane, decision, notices, jobs))

    async def _commit(
        self,
        job: Job,
        lane: Lane,
        decision: TransitionDecision,
        notices: List[Notice],
        jobs: List[Job],
    ) -> DropResult:
        source, target = job.status, lane.status
        timeout = self.settings.commit_timeout_seconds

        self._in_flight[job.id] = InFlightDrop(job.id, source, target)
        self._displayed[job.id] = target
        logger.info(f"[COMMIT] job {job.id}: {source.value} -> {target.value}")

        updated: Optional[Job] = None
        failure: Optional[str] = None
        try:
            updated = await asyncio.wait_for(
                self.store.update_status(
                    job.id,
                    target,
                    expected_status=source,
                    max_occupancy=lane.max_occupancy,
                ),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            failure = f"Timed out after {timeout:g}s waiting for the job store"
        except COMMIT_FAILURES as e:
            failure = str(e) or e.__class__.__name__
        except Exception:
            logger.exception(f"[COMMIT] job {job.id}: unexpected error from job store")
            raise
        finally:
            # Cancellation and unexpected errors propagate; the board must
            # still show the last committed status.
            self._in_flight.pop(job.id, None)
            if updated is None:
                self._displayed[job.id] = source

        if failure is not None:
            logger.warning(f"[COMMIT] job {job.id} reverted to {source.value}: {failure}")
            return DropResult(
                job_id=job.id,
                from_status=source,
                to_status=target,
                state=DropState.REVERTED,
                displayed_status=source,
                decision=decision,
                notices=notices + [commit_failure_notice(failure)],
                job=job,
            )

        self._displayed[job.id] = updated.status
        assert_lane_capacity(lane, [updated if j.id == job.id else j for j in jobs])

        return DropResult(
            job_id=job.id,
            from_status=source,
            to_status=target,
            state=DropState.COMMITTED,
            displayed_status=updated.status,
            decision=decision,
            notices=notices + [success_notice(updated, decision)] + auto_action_notices(decision),
            job=updated,
        )
