"""
Workflow-specific error types.

All errors inherit from WorkflowError for easy catching.
Errors are explicit and provide actionable messages.
"""


class WorkflowError(Exception):
    """Base exception for all job workflow failures."""
    pass


class JobNotFoundError(WorkflowError):
    """Raised when a job cannot be found in the registry."""
    
    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job not found: {job_id}")


class InvalidStateTransitionError(WorkflowError):
    """Raised when attempting an illegal job status transition."""
    
    def __init__(self, current_state: str, target_state: str, reason: str = ""):
        self.current_state = current_state
        self.target_state = target_state
        self.reason = reason
        message = f"Invalid job status transition: {current_state} -> {target_state}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class UnknownStatusError(WorkflowError, ValueError):
    """
    Raised when a value is not one of the closed JobStatus identifiers.
    
    This is a caller programming error. Status strings are never coerced.
    """
    
    def __init__(self, value: object):
        self.value = value
        super().__init__(f"Unknown job status: {value!r}")
