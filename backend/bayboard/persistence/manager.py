"""
SQLite persistence manager for board state.

Single-file SQLite database.
Explicit save/load only - no auto-persistence.

Status changes go through update_job_status(), a single conditional
UPDATE, so expected-status and lane capacity are enforced by the
database itself rather than by a read-then-write in Python.
"""

import sqlite3
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional
from datetime import datetime
from contextlib import contextmanager

from .errors import (
    PersistenceError,
    SchemaError,
    LoadError,
    SaveError,
    StaleStatusError,
    CapacityConflictError,
)

logger = logging.getLogger(__name__)


# Database schema version for migrations
SCHEMA_VERSION = 1

_JOB_COLUMNS = (
    "id",
    "title",
    "customer_id",
    "vehicle_id",
    "status",
    "priority",
    "estimated_hours",
    "bay_assignment",
    "notes",
    "invoice_number",
    "created_at",
    "updated_at",
)

_APPOINTMENT_COLUMNS = (
    "id",
    "job_id",
    "bay",
    "start_at",
    "end_at",
    "created_at",
    "updated_at",
)


class PersistenceManager:
    """
    Manages SQLite persistence for jobs and appointments.

    Stores:
    - Jobs (status, priority, bay assignment, timestamps)
    - Appointments (job, bay, start/end)

    Does NOT store:
    - Transition decisions or notices (ephemeral)
    - Lane configuration (comes from ShopSettings)
    """

    def __init__(self, db_path: Optional[str] = None, busy_timeout: float = 5.0):
        """
        Initialize persistence manager.

        Args:
            db_path: Path to SQLite database file (defaults to ./bayboard.db)
            busy_timeout: Seconds to wait on a locked database before failing
        """
        if db_path is None:
            db_path = str(Path.cwd() / "bayboard.db")

        self.db_path = db_path
        self.busy_timeout = busy_timeout
        self._ensure_schema()

    @contextmanager
    def _connect(self):
        """Context manager for database connections."""
        conn = sqlite3.connect(self.db_path, timeout=self.busy_timeout)
        conn.row_factory = sqlite3.Row  # Access columns by name
        try:
            yield conn
            conn.commit()
        except PersistenceError:
            conn.rollback()
            raise
        except Exception as e:
            conn.rollback()
            raise PersistenceError(f"Database operation failed: {e}") from e
        finally:
            conn.close()

    def _ensure_schema(self):
        """Create schema if it doesn't exist."""
        with self._connect() as conn:
            cursor = conn.cursor()

            # Schema version tracking
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT NOT NULL
                )
            """)

            # Check current version
            cursor.execute("SELECT version FROM schema_version ORDER BY version DESC LIMIT 1")
            row = cursor.fetchone()
            current_version = row[0] if row else 0

            if current_version > SCHEMA_VERSION:
                raise SchemaError(
                    f"Database schema version {current_version} is newer than "
                    f"supported version {SCHEMA_VERSION}"
                )
            if current_version < SCHEMA_VERSION:
                self._migrate_schema(conn, current_version)

    def _migrate_schema(self, conn, from_version: int):
        """Apply schema migrations."""
        cursor = conn.cursor()

        if from_version < 1:
            # Initial schema
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS jobs (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL DEFAULT '',
                    customer_id TEXT,
                    vehicle_id TEXT,
                    status TEXT NOT NULL,
                    priority TEXT NOT NULL,
                    estimated_hours REAL NOT NULL DEFAULT 0,
                    bay_assignment TEXT,
                    notes TEXT,
                    invoice_number TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_jobs_status
                ON jobs (status)
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS appointments (
                    id TEXT PRIMARY KEY,
                    job_id TEXT NOT NULL,
                    bay TEXT NOT NULL,
                    start_at TEXT NOT NULL,
                    end_at TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    FOREIGN KEY (job_id) REFERENCES jobs (id) ON DELETE CASCADE
                )
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_appointments_job_id
                ON appointments (job_id)
            """)

        cursor.execute(
            "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
            (SCHEMA_VERSION, datetime.now().isoformat())
        )

    # Jobs

    def save_job(self, job_data: Dict[str, Any]) -> None:
        """
        Insert or replace a job row.

        Args:
            job_data: Serialized job (wire identifiers, ISO timestamps)

        Raises:
            SaveError: If the row cannot be written
        """
        placeholders = ", ".join("?" for _ in _JOB_COLUMNS)
        try:
            with self._connect() as conn:
                conn.execute(
                    f"INSERT OR REPLACE INTO jobs ({', '.join(_JOB_COLUMNS)}) "
                    f"VALUES ({placeholders})",
                    tuple(job_data.get(column) for column in _JOB_COLUMNS),
                )
        except PersistenceError as e:
            raise SaveError(f"Failed to save job {job_data.get('id')}: {e}") from e

    def load_all_jobs(self) -> List[Dict[str, Any]]:
        """
        Load all jobs, oldest first.

        Raises:
            LoadError: If the jobs table cannot be read
        """
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    f"SELECT {', '.join(_JOB_COLUMNS)} FROM jobs ORDER BY created_at"
                ).fetchall()
        except PersistenceError as e:
            raise LoadError(f"Failed to load jobs: {e}") from e
        return [dict(row) for row in rows]

    def update_job_status(
        self,
        job_id: str,
        new_status: str,
        updated_at: str,
        expected_status: Optional[str] = None,
        max_occupancy: Optional[int] = None,
    ) -> None:
        """
        Conditionally write a job's status.

        The write only happens when the job is still in expected_status
        (if given) and fewer than max_occupancy other jobs hold new_status
        (if given). Both conditions are evaluated inside one UPDATE.

        Args:
            job_id: The job to update
            new_status: Destination status identifier
            updated_at: ISO timestamp to stamp on the row
            expected_status: Status the caller decided against
            max_occupancy: Capacity of the destination status

        Raises:
            LoadError: If the job does not exist
            StaleStatusError: If the stored status differs from expected_status
            CapacityConflictError: If the destination is full
        """
        with self._connect() as conn:
            cursor = conn.execute(
                """
                UPDATE jobs SET status = ?, updated_at = ?
                WHERE id = ?
                  AND (? IS NULL OR status = ?)
                  AND (? IS NULL OR (
                        SELECT COUNT(*) FROM jobs WHERE status = ? AND id != ?
                      ) < ?)
                """,
                (
                    new_status, updated_at,
                    job_id,
                    expected_status, expected_status,
                    max_occupancy, new_status, job_id, max_occupancy,
                ),
            )
            if cursor.rowcount == 1:
                logger.debug(f"[PERSISTENCE] job {job_id} -> {new_status}")
                return

            row = conn.execute("SELECT status FROM jobs WHERE id = ?", (job_id,)).fetchone()

        if row is None:
            raise LoadError(f"Job not found: {job_id}")
        if expected_status is not None and row["status"] != expected_status:
            raise StaleStatusError(job_id, expected_status, row["status"])
        raise CapacityConflictError(job_id, new_status, max_occupancy)

    # Appointments

    def save_appointment(self, appointment_data: Dict[str, Any]) -> None:
        """
        Insert or replace an appointment row.

        Raises:
            SaveError: If the row cannot be written
        """
        placeholders = ", ".join("?" for _ in _APPOINTMENT_COLUMNS)
        try:
            with self._connect() as conn:
                conn.execute(
                    f"INSERT OR REPLACE INTO appointments ({', '.join(_APPOINTMENT_COLUMNS)}) "
                    f"VALUES ({placeholders})",
                    tuple(appointment_data.get(column) for column in _APPOINTMENT_COLUMNS),
                )
        except PersistenceError as e:
            raise SaveError(
                f"Failed to save appointment {appointment_data.get('id')}: {e}"
            ) from e

    def load_all_appointments(self) -> List[Dict[str, Any]]:
        """
        Load all appointments ordered by start time.

        Raises:
            LoadError: If the appointments table cannot be read
        """
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    f"SELECT {', '.join(_APPOINTMENT_COLUMNS)} FROM appointments ORDER BY start_at"
                ).fetchall()
        except PersistenceError as e:
            raise LoadError(f"Failed to load appointments: {e}") from e
        return [dict(row) for row in rows]
