"""
Board endpoints.

Thin HTTP adapter over the board controller. The controller decides;
these handlers only translate requests and map programmer errors to
HTTP status codes. Rejected drops are normal 200 responses carrying
their notices.
"""

from typing import List, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, ConfigDict

from ..board.controller import DropResult
from ..board.errors import LaneNotFoundError
from ..board.lanes import BoardView
from ..workflow.errors import JobNotFoundError, UnknownStatusError
from ..workflow.models import JobPriority, JobStatus
from ..workflow.state import (
    get_next_status,
    get_status_label,
    get_valid_transitions,
    get_workflow_progress,
)

router = APIRouter(prefix="/board", tags=["board"])


class HealthResponse(BaseModel):
    status: str


class DropRequest(BaseModel):
    """Request body for a drop."""

    model_config = ConfigDict(extra="forbid")

    job_id: str
    target_status: str
    confirmed: bool = False


class TransitionOption(BaseModel):
    status: JobStatus
    label: str
    progress: int


class TransitionsResponse(BaseModel):
    status: JobStatus
    label: str
    next_status: Optional[JobStatus] = None
    transitions: List[TransitionOption]


@router.get("/health", response_model=HealthResponse)
async def health_check():
    return HealthResponse(status="ok")


@router.get("", response_model=BoardView)
async def get_board(
    request: Request,
    search: Optional[str] = None,
    priority: Optional[JobPriority] = None,
    invoice: Optional[str] = None,
):
    """
    Lanes with their jobs, occupancy and capacity, plus header stats.

    Filters narrow the jobs shown; occupancy always counts every job.
    """
    controller = request.app.state.board_controller
    return await controller.board(
        search=search,
        priority=priority.value if priority else None,
        invoice=invoice,
    )


@router.get("/transitions/{status}", response_model=TransitionsResponse)
async def list_transitions(status: str):
    """
    Statuses reachable from `status` in the workflow graph.

    Raises:
        422: If the status is not a known identifier
    """
    try:
        targets = get_valid_transitions(status)
        next_status = get_next_status(status)
        label = get_status_label(status)
    except UnknownStatusError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return TransitionsResponse(
        status=status,
        label=label,
        next_status=next_status,
        transitions=[
            TransitionOption(
                status=target,
                label=get_status_label(target),
                progress=get_workflow_progress(target),
            )
            for target in targets
        ],
    )


@router.post("/drops", response_model=DropResult)
async def drop_job(body: DropRequest, request: Request):
    """
    Move a job card onto a lane.

    Raises:
        404: If the job does not exist
        422: If the target status is unknown or has no lane
    """
    controller = request.app.state.board_controller
    try:
        return await controller.drop(body.job_id, body.target_status, confirmed=body.confirmed)
    except JobNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (UnknownStatusError, LaneNotFoundError) as e:
        raise HTTPException(status_code=422, detail=str(e))
