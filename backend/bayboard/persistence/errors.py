"""
Persistence-specific errors.
"""


class PersistenceError(Exception):
    """Base exception for persistence operations."""
    
    pass


class SchemaError(PersistenceError):
    """Schema migration or validation failed."""
    
    pass


class LoadError(PersistenceError):
    """Failed to load state from storage."""
    
    pass


class SaveError(PersistenceError):
    """Failed to save state to storage."""
    
    pass


class CommitConflictError(PersistenceError):
    """
    A conditional status write was refused.
    
    The stored state no longer matches what the caller decided against.
    Callers treat this exactly like any other failed commit.
    """
    
    def __init__(self, job_id: str, message: str):
        self.job_id = job_id
        super().__init__(message)


class StaleStatusError(CommitConflictError):
    """The job's stored status changed since the caller read it."""
    
    def __init__(self, job_id: str, expected_status: str, actual_status: str):
        self.expected_status = expected_status
        self.actual_status = actual_status
        super().__init__(
            job_id,
            f"Job {job_id} is now '{actual_status}', expected '{expected_status}'",
        )


class CapacityConflictError(CommitConflictError):
    """The destination status is already at its maximum occupancy."""
    
    def __init__(self, job_id: str, status: str, max_occupancy: int):
        self.status = status
        self.max_occupancy = max_occupancy
        super().__init__(
            job_id,
            f"Cannot move job {job_id} to '{status}': "
            f"already holding {max_occupancy} job(s)",
        )
