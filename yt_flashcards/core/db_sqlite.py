"""
SQLite database layer for YT Flashcards.
Thread-safe via check_same_thread=False + explicit locking.
Holds job records, their flashcards and the pipeline message queue.
"""

import sqlite3
import threading
import uuid
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

from yt_flashcards.core.constants import DB_PATH, JobStatus
from yt_flashcards.core.error_codes import DuplicateError
from yt_flashcards.core.models_sqlite import Flashcard, JobRecord, PipelineMessage

logger = logging.getLogger(__name__)

_SCHEMA_VERSION = 1

_CREATE_TABLES = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS jobs (
    id TEXT PRIMARY KEY,
    owner_id TEXT NOT NULL,
    video_id TEXT NOT NULL,
    title TEXT,
    description TEXT,
    thumbnail_url TEXT,
    status TEXT NOT NULL DEFAULT 'pending',
    error_code TEXT,
    error_detail TEXT,
    transcript TEXT,
    created_at TEXT,
    updated_at TEXT,
    completed_at TEXT,
    UNIQUE (owner_id, video_id)
);

CREATE INDEX IF NOT EXISTS idx_jobs_owner_created ON jobs(owner_id, created_at DESC);

CREATE TABLE IF NOT EXISTS flashcards (
    job_id TEXT NOT NULL,
    idx INTEGER NOT NULL,
    content TEXT NOT NULL,
    PRIMARY KEY (job_id, idx),
    FOREIGN KEY (job_id) REFERENCES jobs(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS messages (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    owner_id TEXT NOT NULL,
    video_id TEXT NOT NULL,
    attempts INTEGER NOT NULL DEFAULT 0,
    available_at REAL NOT NULL,
    claimed_by TEXT,
    claimed_at REAL,
    enqueued_at REAL,
    UNIQUE (owner_id, video_id)
);

CREATE INDEX IF NOT EXISTS idx_messages_available ON messages(available_at);
"""

_JOB_COLUMNS = (
    "id, owner_id, video_id, title, description, thumbnail_url, status, "
    "error_code, error_detail, transcript, created_at, updated_at, completed_at"
)


class Database:
    """SQLite database wrapper for YT Flashcards."""

    def __init__(self, db_path: Path | None = None):
        self.db_path = db_path or DB_PATH
        self._ensure_dirs()
        self._lock = threading.RLock()
        self._depth = 0
        self.conn = sqlite3.connect(
            str(self.db_path),
            check_same_thread=False,
            timeout=30,
        )
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        self.conn.execute("PRAGMA foreign_keys=ON")
        self._migrate()

    def _ensure_dirs(self):
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def _migrate(self):
        cur = self.conn.cursor()
        cur.executescript(_CREATE_TABLES)
        # Set schema version
        cur.execute(
            "INSERT OR REPLACE INTO schema_version (version) VALUES (?)",
            (_SCHEMA_VERSION,),
        )
        self.conn.commit()

    def close(self):
        if self.conn:
            self.conn.close()

    @contextmanager
    def transaction(self):
        """
        Hold the lock for a unit of work. Nested blocks join the outer
        transaction; only the outermost one commits or rolls back.
        """
        with self._lock:
            self._depth += 1
            try:
                yield self.conn
            except BaseException:
                self._depth -= 1
                if self._depth == 0:
                    self.conn.rollback()
                raise
            self._depth -= 1
            if self._depth == 0:
                self.conn.commit()

    # ── Helpers ───────────────────────────────────────────────────────

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()

    @staticmethod
    def _row_to_job(row: sqlite3.Row) -> JobRecord:
        return JobRecord(**dict(row))

    @staticmethod
    def _row_to_message(row: sqlite3.Row) -> PipelineMessage:
        return PipelineMessage(**dict(row))

    def _attach_flashcards(self, jobs: list[JobRecord]) -> list[JobRecord]:
        if not jobs:
            return jobs
        by_id = {job.id: job for job in jobs}
        placeholders = ", ".join("?" for _ in by_id)
        rows = self.conn.execute(
            f"SELECT job_id, content FROM flashcards WHERE job_id IN ({placeholders}) "
            "ORDER BY job_id, idx",
            list(by_id),
        ).fetchall()
        for row in rows:
            by_id[row["job_id"]].flashcards.append(Flashcard(content=row["content"]))
        return jobs

    def _select_jobs(self, where: str, params: tuple, order: str = "") -> list[JobRecord]:
        with self._lock:
            rows = self.conn.execute(
                f"SELECT {_JOB_COLUMNS} FROM jobs WHERE {where} {order}", params
            ).fetchall()
            return self._attach_flashcards([self._row_to_job(r) for r in rows])

    # ── Job CRUD ──────────────────────────────────────────────────────

    def create_job(self, owner_id: str, video_id: str) -> JobRecord:
        """
        Create a pending job for (owner_id, video_id).
        A failed job for the same key is reset to pending instead.
        Raises DuplicateError for any other existing job.
        """
        with self.transaction() as conn:
            existing = self.get_job_by_key(owner_id, video_id)
            now = self._now()
            if existing is not None:
                if existing.status != JobStatus.FAILED:
                    raise DuplicateError(
                        f"Flashcards for video {video_id} already exist or are in progress",
                        job_id=existing.id, status=existing.status,
                    )
                self.reset_failed_job(existing.id)
                return self.get_job(existing.id)

            job = JobRecord(
                id=str(uuid.uuid4()),
                owner_id=owner_id,
                video_id=video_id,
                created_at=now,
                updated_at=now,
            )
            try:
                conn.execute(
                    """INSERT INTO jobs
                       (id, owner_id, video_id, status, created_at, updated_at)
                       VALUES (?, ?, ?, ?, ?, ?)""",
                    (job.id, job.owner_id, job.video_id, job.status,
                     job.created_at, job.updated_at),
                )
            except sqlite3.IntegrityError:
                # Another process inserted the same key first
                raise DuplicateError(
                    f"Flashcards for video {video_id} already exist or are in progress"
                )
            return job

    def reset_failed_job(self, job_id: str) -> bool:
        """Explicit retry-from-failed: the only backwards status transition."""
        with self.transaction() as conn:
            cur = conn.execute(
                """UPDATE jobs SET status = ?, error_code = NULL, error_detail = NULL,
                   completed_at = NULL, updated_at = ?
                   WHERE id = ? AND status = ?""",
                (JobStatus.PENDING, self._now(), job_id, JobStatus.FAILED),
            )
            conn.execute("DELETE FROM flashcards WHERE job_id = ?", (job_id,))
            return cur.rowcount > 0

    def get_job(self, job_id: str) -> JobRecord | None:
        jobs = self._select_jobs("id = ?", (job_id,))
        return jobs[0] if jobs else None

    def get_job_by_key(self, owner_id: str, video_id: str) -> JobRecord | None:
        jobs = self._select_jobs("owner_id = ? AND video_id = ?", (owner_id, video_id))
        return jobs[0] if jobs else None

    def list_jobs(self, owner_id: str) -> list[JobRecord]:
        return self._select_jobs(
            "owner_id = ?", (owner_id,),
            order="ORDER BY created_at DESC, rowid DESC",
        )

    def search_jobs(self, owner_id: str, query: str) -> list[JobRecord]:
        """Case-insensitive substring match on title, newest first."""
        return self._select_jobs(
            "owner_id = ? AND title IS NOT NULL AND instr(lower(title), lower(?)) > 0",
            (owner_id, query),
            order="ORDER BY created_at DESC, rowid DESC",
        )

    def update_job(self, job_id: str, **kwargs) -> bool:
        kwargs['updated_at'] = self._now()
        sets = ', '.join(f"{k} = ?" for k in kwargs)
        vals = list(kwargs.values()) + [job_id]
        with self.transaction() as conn:
            cur = conn.execute(
                f"UPDATE jobs SET {sets} WHERE id = ?", vals
            )
            return cur.rowcount > 0

    def update_job_status(self, job_id: str, status: str, **extra) -> bool:
        fields = {'status': status}
        if status in (JobStatus.COMPLETED, JobStatus.FAILED):
            fields['completed_at'] = self._now()
        fields.update(extra)
        return self.update_job(job_id, **fields)

    def set_metadata(self, job_id: str, title: str | None,
                     description: str | None, thumbnail_url: str | None) -> bool:
        """Write metadata once. Values already stored are never overwritten."""
        with self.transaction() as conn:
            cur = conn.execute(
                """UPDATE jobs SET title = COALESCE(title, ?),
                   description = COALESCE(description, ?),
                   thumbnail_url = COALESCE(thumbnail_url, ?),
                   updated_at = ?
                   WHERE id = ?""",
                (title, description, thumbnail_url, self._now(), job_id),
            )
            return cur.rowcount > 0

    def complete_job(self, job_id: str, flashcards: list[Flashcard],
                     title: str | None = None, description: str | None = None,
                     thumbnail_url: str | None = None) -> bool:
        """
        Write flashcards, metadata and COMPLETED status in one transaction.
        Returns False if the job was deleted while it was being processed.
        """
        with self.transaction() as conn:
            if not self.set_metadata(job_id, title, description, thumbnail_url):
                return False
            conn.execute("DELETE FROM flashcards WHERE job_id = ?", (job_id,))
            conn.executemany(
                "INSERT INTO flashcards (job_id, idx, content) VALUES (?, ?, ?)",
                [(job_id, idx, card.content) for idx, card in enumerate(flashcards)],
            )
            return self.update_job_status(job_id, JobStatus.COMPLETED,
                                          error_code=None, error_detail=None)

    def fail_job(self, job_id: str, error_code: str, error_detail: str) -> bool:
        return self.update_job_status(job_id, JobStatus.FAILED,
                                      error_code=error_code,
                                      error_detail=error_detail)

    def delete_job(self, owner_id: str, video_id: str) -> bool:
        """Delete a job, its flashcards and any queued message for it."""
        with self.transaction() as conn:
            job = self.get_job_by_key(owner_id, video_id)
            if job is None:
                return False
            conn.execute("DELETE FROM flashcards WHERE job_id = ?", (job.id,))
            conn.execute("DELETE FROM jobs WHERE id = ?", (job.id,))
            conn.execute(
                "DELETE FROM messages WHERE owner_id = ? AND video_id = ?",
                (owner_id, video_id),
            )
            return True

    # ── Message CRUD ──────────────────────────────────────────────────

    def insert_message(self, owner_id: str, video_id: str,
                       available_at: float, enqueued_at: float) -> bool:
        """Insert a message unless one already exists for this key."""
        with self.transaction() as conn:
            cur = conn.execute(
                """INSERT OR IGNORE INTO messages
                   (owner_id, video_id, attempts, available_at, enqueued_at)
                   VALUES (?, ?, 0, ?, ?)""",
                (owner_id, video_id, available_at, enqueued_at),
            )
            return cur.rowcount > 0

    def claim_message(self, worker_id: str, now: float,
                      stale_before: float) -> PipelineMessage | None:
        """
        Atomically claim the oldest available message.
        Claims older than stale_before are treated as abandoned.
        """
        with self.transaction() as conn:
            row = conn.execute(
                """SELECT id FROM messages
                   WHERE available_at <= ?
                     AND (claimed_by IS NULL OR claimed_at < ?)
                   ORDER BY available_at, id LIMIT 1""",
                (now, stale_before),
            ).fetchone()
            if row is None:
                return None
            cur = conn.execute(
                """UPDATE messages SET claimed_by = ?, claimed_at = ?,
                   attempts = attempts + 1
                   WHERE id = ? AND (claimed_by IS NULL OR claimed_at < ?)""",
                (worker_id, now, row["id"], stale_before),
            )
            if cur.rowcount == 0:
                return None
            claimed = conn.execute(
                "SELECT * FROM messages WHERE id = ?", (row["id"],)
            ).fetchone()
            return self._row_to_message(claimed)

    def touch_message(self, message_id: int, worker_id: str, now: float) -> bool:
        """Renew a claim. False if worker_id no longer holds the message."""
        with self.transaction() as conn:
            cur = conn.execute(
                "UPDATE messages SET claimed_at = ? WHERE id = ? AND claimed_by = ?",
                (now, message_id, worker_id),
            )
            return cur.rowcount > 0

    def release_message(self, message_id: int, worker_id: str,
                        available_at: float) -> bool:
        with self.transaction() as conn:
            cur = conn.execute(
                """UPDATE messages SET claimed_by = NULL, claimed_at = NULL,
                   available_at = ? WHERE id = ? AND claimed_by = ?""",
                (available_at, message_id, worker_id),
            )
            return cur.rowcount > 0

    def delete_message(self, message_id: int, worker_id: str) -> bool:
        with self.transaction() as conn:
            cur = conn.execute(
                "DELETE FROM messages WHERE id = ? AND claimed_by = ?",
                (message_id, worker_id),
            )
            return cur.rowcount > 0

    def count_messages(self) -> int:
        with self._lock:
            return self.conn.execute("SELECT COUNT(*) FROM messages").fetchone()[0]
