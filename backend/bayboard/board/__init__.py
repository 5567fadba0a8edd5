"""
Shop board: lanes, capacity and drag-and-drop orchestration.
"""

from .errors import BoardError, LaneNotFoundError, LaneConfigurationError
from .lanes import Lane, DEFAULT_LANES, build_lanes
from .notices import Notice, NoticeKind, get_transition_message
from .controller import BoardController, DropResult, DropState, RejectionReason

__all__ = [
    "BoardError",
    "LaneNotFoundError",
    "LaneConfigurationError",
    "Lane",
    "DEFAULT_LANES",
    "build_lanes",
    "Notice",
    "NoticeKind",
    "get_transition_message",
    "BoardController",
    "DropResult",
    "DropState",
    "RejectionReason",
]
