"""
Board-specific error types.

Rejected drops are NOT errors: invalid transitions and full lanes are
reported as DropResult values with notices. These exceptions cover
misconfiguration and programmer mistakes only.
"""


class BoardError(Exception):
    """Base exception for board failures."""
    pass


class LaneNotFoundError(BoardError):
    """Raised when a drop targets a status with no configured lane."""
    
    def __init__(self, status: str):
        self.status = status
        super().__init__(f"No lane configured for status: {status}")


class LaneConfigurationError(BoardError):
    """Raised when lane configuration is inconsistent."""
    
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid lane configuration: {reason}")
