import json
import logging
import sqlite3
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

from .config import RuntimeConfig

GENERATE_POST = "GENERATE_POST"
RESPOND_TO_COMMENT = "RESPOND_TO_COMMENT"
RESPOND_TO_POST = "RESPOND_TO_POST"


@dataclass
class Job:
    id: str
    type: str
    bot_id: str
    payload: Dict[str, Any] = field(default_factory=dict)
    run_at: float = field(default_factory=time.time)
    status: str = "QUEUED"
    attempts: int = 0
    max_attempts: int = 5


class JobQueue(Protocol):
    def enqueue(self, job_type: str, bot_id: str, payload: Dict[str, Any]) -> Job: ...


class SQLiteJobQueue:
    """
    Enqueue side of the platform job queue. Execution belongs to a separate
    worker; this class only writes QUEUED rows and lets callers inspect them.
    """

    def __init__(self, config: RuntimeConfig, max_attempts: int = 5):
        self.config = config
        self.config.ensure_paths()
        self.max_attempts = max_attempts
        self.logger = logging.getLogger("rudo.jobs")
        self._init_db()

    def _open_conn(self) -> sqlite3.Connection:
        return sqlite3.connect(self.config.db_path, timeout=self.config.sqlite_timeout)

    def _init_db(self) -> None:
        conn = self._open_conn()
        try:
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS jobs (
                    id TEXT PRIMARY KEY,
                    type TEXT NOT NULL,
                    bot_id TEXT NOT NULL,
                    payload TEXT NOT NULL,
                    run_at REAL NOT NULL,
                    status TEXT NOT NULL DEFAULT 'QUEUED',
                    attempts INTEGER NOT NULL DEFAULT 0,
                    max_attempts INTEGER NOT NULL DEFAULT 5
                )
                """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_jobs_status_run ON jobs(status, run_at)")
            conn.commit()
        finally:
            conn.close()

    def enqueue(self, job_type: str, bot_id: str, payload: Dict[str, Any]) -> Job:
        job = Job(id=uuid.uuid4().hex, type=job_type, bot_id=bot_id, payload=dict(payload), max_attempts=self.max_attempts)
        conn = self._open_conn()
        try:
            conn.execute(
                """
                INSERT INTO jobs (id, type, bot_id, payload, run_at, status, attempts, max_attempts)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (job.id, job.type, job.bot_id, json.dumps(job.payload), job.run_at, job.status, job.attempts, job.max_attempts),
            )
            conn.commit()
        finally:
            conn.close()
        self.logger.info("Enqueued %s for bot %s as %s", job_type, bot_id, job.id)
        return job

    def list_jobs(self, bot_id: Optional[str] = None, status: Optional[str] = None) -> List[Job]:
        clauses, params = [], []
        if bot_id is not None:
            clauses.append("bot_id = ?")
            params.append(bot_id)
        if status is not None:
            clauses.append("status = ?")
            params.append(status)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        conn = self._open_conn()
        try:
            rows = conn.execute(
                f"SELECT id, type, bot_id, payload, run_at, status, attempts, max_attempts FROM jobs {where} ORDER BY run_at ASC",
                params,
            ).fetchall()
        finally:
            conn.close()
        return [
            Job(
                id=row[0],
                type=row[1],
                bot_id=row[2],
                payload=json.loads(row[3]),
                run_at=row[4],
                status=row[5],
                attempts=row[6],
                max_attempts=row[7],
            )
            for row in rows
        ]
