import json
import logging
import sqlite3
import time
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from .config import RuntimeConfig
from .life import MemoryCandidate


@dataclass(frozen=True)
class StoredMemory:
    id: int
    bot_id: str
    kind: str
    summary: str
    tags: Tuple[str, ...]
    emotion: Optional[str]
    importance: int
    created_at: float


def score_memory(memory: StoredMemory, query_tags: Iterable[str], now: float) -> int:
    """
    +3 per tag shared with the query (case-insensitive), plus the raw
    importance, plus a recency bonus of 2 (under 24h) or 1 (under 72h).
    """
    wanted = {tag.lower() for tag in query_tags}
    score = sum(3 for tag in memory.tags if tag.lower() in wanted)
    score += memory.importance
    age_hours = (now - memory.created_at) / 3600
    if age_hours < 24:
        score += 2
    elif age_hours < 72:
        score += 1
    return score


class MemoryStore:
    """
    Append-only episodic log per bot. Rows are never updated; retrieval scores
    the most recent `memory_window` entries.
    """

    def __init__(self, config: RuntimeConfig, clock: Callable[[], float] = time.time):
        self.config = config
        self.config.ensure_paths()
        self.clock = clock
        self.logger = logging.getLogger("rudo.memory")
        self._init_db()

    def _open_conn(self) -> sqlite3.Connection:
        return sqlite3.connect(self.config.db_path, timeout=self.config.sqlite_timeout)

    def _init_db(self) -> None:
        conn = self._open_conn()
        try:
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS bot_memory_log (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    bot_id TEXT NOT NULL,
                    kind TEXT NOT NULL,
                    summary TEXT NOT NULL,
                    tags TEXT NOT NULL,
                    emotion TEXT,
                    importance INTEGER NOT NULL,
                    created_at REAL NOT NULL
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_memory_bot_ts ON bot_memory_log(bot_id, created_at DESC)"
            )
            conn.commit()
        finally:
            conn.close()

    def write(self, bot_id: str, candidates: Sequence[MemoryCandidate]) -> int:
        if not candidates:
            return 0
        now = self.clock()
        conn = self._open_conn()
        try:
            conn.executemany(
                """
                INSERT INTO bot_memory_log (bot_id, kind, summary, tags, emotion, importance, created_at)
                VALUES (?, 'episodic', ?, ?, ?, ?, ?)
                """,
                [
                    (bot_id, c.summary, json.dumps(list(c.tags)), c.emotion, c.importance, now)
                    for c in candidates
                ],
            )
            conn.commit()
        finally:
            conn.close()
        return len(candidates)

    def recent(self, bot_id: str, limit: Optional[int] = None) -> List[StoredMemory]:
        limit = limit or self.config.memory_window
        conn = self._open_conn()
        try:
            rows = conn.execute(
                """
                SELECT id, kind, summary, tags, emotion, importance, created_at
                FROM bot_memory_log
                WHERE bot_id = ?
                ORDER BY created_at DESC, id DESC
                LIMIT ?
                """,
                (bot_id, limit),
            ).fetchall()
        finally:
            conn.close()
        return [
            StoredMemory(
                id=row[0],
                bot_id=bot_id,
                kind=row[1],
                summary=row[2],
                tags=tuple(json.loads(row[3])),
                emotion=row[4],
                importance=int(row[5]),
                created_at=float(row[6]),
            )
            for row in rows
        ]

    def retrieve(self, bot_id: str, query_tags: Sequence[str], limit: Optional[int] = None) -> List[StoredMemory]:
        limit = self.config.memory_retrieval_limit if limit is None else limit
        candidates = self.recent(bot_id)
        if not candidates or limit <= 0:
            return []
        now = self.clock()
        scored = [(score_memory(m, query_tags, now), m) for m in candidates]
        # sort is stable, so equal scores keep the newest-first fetch order
        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [m for _, m in scored[:limit]]
