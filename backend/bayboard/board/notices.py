"""
UI notices for board actions.

Every drop outcome is reported as a sequence of notices
({kind, title, message}) for the UI collaborator to display.
Invalid transitions and capacity limits use distinct titles so the
user can tell a workflow rule from a resource limit.
"""

from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict

from ..workflow.models import Job, JobStatus, TransitionDecision, TransitionMessage
from ..workflow.state import get_status_label
from .lanes import Lane


class NoticeKind(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class Notice(BaseModel):
    """A single toast-style message."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: NoticeKind
    title: str
    message: str


INVALID_TRANSITION_TITLE = "Invalid Status Transition"
CAPACITY_TITLE = "Capacity Limit Reached"
COMMIT_FAILED_TITLE = "Failed to Update Job"
AUTO_ACTION_TITLE = "Automated Action"


def get_transition_message(
    job: Job,
    target_status: JobStatus,
    decision: TransitionDecision,
) -> TransitionMessage:
    """
    Title/body for a transition.

    Confirmation-requiring decisions produce a question-style warning;
    everything else a success message.
    """
    label = get_status_label(target_status)
    actions = list(decision.auto_actions)

    if decision.requires_confirmation and decision.warning_message:
        return TransitionMessage(
            title=f"Move to {label}?",
            message=decision.warning_message,
            kind="warning",
            actions=actions,
        )

    message = decision.success_message or f"Job moved to {label.lower()}"
    if job.title:
        message = f"{job.title}: {message}"
    return TransitionMessage(
        title=f"Moving to {label}",
        message=message,
        kind="success",
        actions=actions,
    )


def invalid_transition_notice(job: Job, decision: TransitionDecision) -> Notice:
    return Notice(
        kind=NoticeKind.ERROR,
        title=INVALID_TRANSITION_TITLE,
        message=decision.warning_message or (
            f"Cannot move job from {get_status_label(decision.from_status)} "
            f"to {get_status_label(decision.to_status)}"
        ),
    )


def capacity_notice(lane: Lane) -> Notice:
    return Notice(
        kind=NoticeKind.WARNING,
        title=CAPACITY_TITLE,
        message=f"{lane.title} can only hold {lane.max_occupancy} jobs",
    )


def confirmation_notice(job: Job, decision: TransitionDecision) -> Notice:
    message = get_transition_message(job, decision.to_status, decision)
    return Notice(kind=NoticeKind.WARNING, title=message.title, message=message.message)


def success_notice(job: Job, decision: TransitionDecision) -> Notice:
    # Confirmation text was already shown; report the completed move plainly
    plain = decision.model_copy(update={"requires_confirmation": False})
    message = get_transition_message(job, decision.to_status, plain)
    return Notice(kind=NoticeKind.SUCCESS, title=message.title, message=message.message)


def auto_action_notices(decision: TransitionDecision) -> List[Notice]:
    """One informational notice per auto-action hint."""
    return [
        Notice(kind=NoticeKind.INFO, title=AUTO_ACTION_TITLE, message=action)
        for action in decision.auto_actions
    ]


def commit_failure_notice(reason: str) -> Notice:
    return Notice(
        kind=NoticeKind.ERROR,
        title=COMMIT_FAILED_TITLE,
        message=reason or "An error occurred",
    )
