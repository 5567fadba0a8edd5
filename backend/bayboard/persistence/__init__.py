"""
Persistence layer for board state.

SQLite-backed storage for jobs and appointments.
Status writes are conditional (expected status, lane capacity).
"""

from .manager import PersistenceManager
from .errors import PersistenceError, CommitConflictError

__all__ = ["PersistenceManager", "PersistenceError", "CommitConflictError"]
