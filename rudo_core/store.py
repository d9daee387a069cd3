import json
import logging
import sqlite3
import time
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Sequence

from .brain import BrainTraits
from .config import RuntimeConfig
from .errors import DuplicateSideEffect, MissingTarget
from .events import BotEvent
from .state import LifeState


@dataclass(frozen=True)
class BotRecord:
    id: str
    owner_id: str
    name: str
    handle: str
    personality: Optional[str]
    niche: Optional[str]
    tone: Optional[str]
    posts_per_day: int
    last_posted_at: Optional[float]
    agent_cooldown_min: int
    # Raw JSON; parsed on the best-effort life-state path, not here.
    life_state_json: Optional[str]
    last_perception_at: Optional[float]
    next_cycle_at: Optional[float]
    deactivated_at: Optional[float]


class StateStore(Protocol):
    def get_bot(self, bot_id: str) -> Optional[BotRecord]: ...

    def get_owner_tier(self, owner_id: str) -> str: ...

    def unanswered_comments(self, bot_id: str, owner_id: str, since: float, limit: int = 10) -> List[Dict[str, Any]]: ...

    def feed_candidates(self, bot_id: str, owner_id: str, since: float, limit: int = 20) -> List[Dict[str, Any]]: ...

    def trending_source(self, since: float, limit: int = 200) -> List[Dict[str, Any]]: ...

    def count_posts_since(self, bot_id: str, since: float) -> int: ...

    def count_comments_by_bot_since(self, bot_id: str, since: float) -> int: ...

    def events_since(self, bot_id: str, since: Optional[float], limit: int = 50) -> List[BotEvent]: ...

    def avg_engagement(self, bot_id: str, since: float, limit: int = 50, min_posts: int = 5) -> float: ...

    def save_life_state(self, bot_id: str, state: LifeState, now: float) -> None: ...

    def get_brain(self, bot_id: str) -> Optional[BrainTraits]: ...

    def create_like(self, user_id: str, post_id: str, origin: str = "SYSTEM") -> None: ...

    def update_schedule(
        self, bot_id: str, last_decision_at: float, next_cycle_at: float, last_cycle: Dict[str, Any]
    ) -> None: ...

    def due_bots(self, now: float, limit: int = 50) -> List[str]: ...


_BOT_COLUMNS = (
    "id, owner_id, name, handle, personality, niche, tone, posts_per_day, last_posted_at, "
    "agent_cooldown_min, life_state, last_perception_at, next_cycle_at, deactivated_at"
)


class SQLiteStateStore:
    """
    SQLite-backed platform data: users, bots, posts, comments, likes, the
    bot event stream and brains. Each call opens its own short-lived
    connection so reads can run concurrently from worker threads.
    """

    def __init__(self, config: RuntimeConfig):
        self.config = config
        self.config.ensure_paths()
        self.logger = logging.getLogger("rudo.store")
        self._init_db()

    def _open_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.config.db_path, timeout=self.config.sqlite_timeout)
        conn.execute("PRAGMA foreign_keys=ON;")
        return conn

    def _init_db(self) -> None:
        conn = self._open_conn()
        try:
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA synchronous=NORMAL;")
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    handle TEXT,
                    name TEXT,
                    tier TEXT NOT NULL DEFAULT 'FREE'
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS bots (
                    id TEXT PRIMARY KEY,
                    owner_id TEXT NOT NULL REFERENCES users(id),
                    name TEXT NOT NULL,
                    handle TEXT NOT NULL UNIQUE,
                    personality TEXT,
                    niche TEXT,
                    tone TEXT,
                    posts_per_day INTEGER NOT NULL DEFAULT 1,
                    last_posted_at REAL,
                    agent_cooldown_min INTEGER NOT NULL DEFAULT 30,
                    life_state TEXT,
                    life_state_updated_at REAL,
                    last_perception_at REAL,
                    last_decision_at REAL,
                    next_cycle_at REAL,
                    last_cycle TEXT,
                    deactivated_at REAL,
                    created_at REAL NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS posts (
                    id TEXT PRIMARY KEY,
                    bot_id TEXT NOT NULL REFERENCES bots(id),
                    content TEXT NOT NULL,
                    tags TEXT NOT NULL DEFAULT '[]',
                    moderation_status TEXT NOT NULL DEFAULT 'APPROVED',
                    view_count INTEGER NOT NULL DEFAULT 0,
                    created_at REAL NOT NULL
                )
                """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_posts_bot_ts ON posts(bot_id, created_at DESC)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_posts_ts ON posts(created_at DESC)")
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS comments (
                    id TEXT PRIMARY KEY,
                    post_id TEXT NOT NULL REFERENCES posts(id),
                    user_id TEXT NOT NULL,
                    bot_id TEXT,
                    parent_id TEXT,
                    content TEXT NOT NULL,
                    created_at REAL NOT NULL
                )
                """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_comments_post ON comments(post_id, created_at DESC)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_comments_parent ON comments(parent_id)")
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS likes (
                    user_id TEXT NOT NULL,
                    post_id TEXT NOT NULL REFERENCES posts(id),
                    origin TEXT NOT NULL DEFAULT 'USER',
                    created_at REAL NOT NULL,
                    UNIQUE (user_id, post_id)
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS bot_events (
                    id TEXT PRIMARY KEY,
                    bot_id TEXT NOT NULL,
                    type TEXT NOT NULL,
                    actor_id TEXT,
                    target_id TEXT,
                    tags TEXT NOT NULL DEFAULT '[]',
                    sentiment REAL,
                    payload TEXT NOT NULL DEFAULT '{}',
                    created_at REAL NOT NULL
                )
                """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_events_bot_ts ON bot_events(bot_id, created_at DESC)")
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS brains (
                    bot_id TEXT PRIMARY KEY,
                    traits TEXT NOT NULL,
                    updated REAL NOT NULL
                )
                """
            )
            conn.commit()
        finally:
            conn.close()

    # ---------------------------------------------
    # Bot records and scheduling
    # ---------------------------------------------
    def get_bot(self, bot_id: str) -> Optional[BotRecord]:
        conn = self._open_conn()
        try:
            row = conn.execute(f"SELECT {_BOT_COLUMNS} FROM bots WHERE id = ?", (bot_id,)).fetchone()
        finally:
            conn.close()
        if row is None:
            return None
        return BotRecord(
            id=row[0],
            owner_id=row[1],
            name=row[2],
            handle=row[3],
            personality=row[4],
            niche=row[5],
            tone=row[6],
            posts_per_day=int(row[7]),
            last_posted_at=row[8],
            agent_cooldown_min=int(row[9]),
            life_state_json=row[10],
            last_perception_at=row[11],
            next_cycle_at=row[12],
            deactivated_at=row[13],
        )

    def get_owner_tier(self, owner_id: str) -> str:
        conn = self._open_conn()
        try:
            row = conn.execute("SELECT tier FROM users WHERE id = ?", (owner_id,)).fetchone()
        finally:
            conn.close()
        return row[0] if row and row[0] else "FREE"

    def save_life_state(self, bot_id: str, state: LifeState, now: float) -> None:
        conn = self._open_conn()
        try:
            conn.execute(
                "UPDATE bots SET life_state = ?, life_state_updated_at = ?, last_perception_at = ? WHERE id = ?",
                (json.dumps(state.to_dict()), now, now, bot_id),
            )
            conn.commit()
        finally:
            conn.close()

    def update_schedule(
        self, bot_id: str, last_decision_at: float, next_cycle_at: float, last_cycle: Dict[str, Any]
    ) -> None:
        conn = self._open_conn()
        try:
            conn.execute(
                "UPDATE bots SET last_decision_at = ?, next_cycle_at = ?, last_cycle = ? WHERE id = ?",
                (last_decision_at, next_cycle_at, json.dumps(last_cycle), bot_id),
            )
            conn.commit()
        finally:
            conn.close()

    def last_cycle(self, bot_id: str) -> Optional[Dict[str, Any]]:
        conn = self._open_conn()
        try:
            row = conn.execute("SELECT last_cycle FROM bots WHERE id = ?", (bot_id,)).fetchone()
        finally:
            conn.close()
        if row is None or not row[0]:
            return None
        return json.loads(row[0])

    def due_bots(self, now: float, limit: int = 50) -> List[str]:
        conn = self._open_conn()
        try:
            rows = conn.execute(
                """
                SELECT id FROM bots
                WHERE deactivated_at IS NULL AND (next_cycle_at IS NULL OR next_cycle_at <= ?)
                ORDER BY COALESCE(next_cycle_at, 0) ASC
                LIMIT ?
                """,
                (now, limit),
            ).fetchall()
        finally:
            conn.close()
        return [row[0] for row in rows]

    # ---------------------------------------------
    # Social signals
    # ---------------------------------------------
    def unanswered_comments(self, bot_id: str, owner_id: str, since: float, limit: int = 10) -> List[Dict[str, Any]]:
        """Comments on this bot's posts, not by its owner, that the bot never replied to. Newest first."""
        conn = self._open_conn()
        try:
            rows = conn.execute(
                """
                SELECT c.id, c.post_id, p.content, c.content,
                       COALESCE(NULLIF(u.handle, ''), NULLIF(u.name, ''), 'unknown'), c.created_at
                FROM comments c
                JOIN posts p ON p.id = c.post_id
                LEFT JOIN users u ON u.id = c.user_id
                WHERE p.bot_id = ? AND c.user_id != ? AND c.created_at >= ?
                  AND NOT EXISTS (
                      SELECT 1 FROM comments r WHERE r.parent_id = c.id AND r.bot_id = ?
                  )
                ORDER BY c.created_at DESC
                LIMIT ?
                """,
                (bot_id, owner_id, since, bot_id, limit),
            ).fetchall()
        finally:
            conn.close()
        return [
            {
                "comment_id": row[0],
                "post_id": row[1],
                "post_content": row[2],
                "comment_content": row[3],
                "comment_author": row[4],
                "created_at": row[5],
            }
            for row in rows
        ]

    def feed_candidates(self, bot_id: str, owner_id: str, since: float, limit: int = 20) -> List[Dict[str, Any]]:
        """Recent approved posts by other active bots, most engaging first."""
        conn = self._open_conn()
        try:
            rows = conn.execute(
                """
                SELECT * FROM (
                    SELECT p.id AS id, b.handle AS handle, b.name AS name, p.content AS content,
                           p.created_at AS created_at, p.view_count AS views,
                           (SELECT COUNT(*) FROM likes l WHERE l.post_id = p.id) AS likes,
                           (SELECT COUNT(*) FROM comments c WHERE c.post_id = p.id) AS comments,
                           EXISTS (
                               SELECT 1 FROM likes mine WHERE mine.post_id = p.id AND mine.user_id = ?
                           ) AS already_liked
                    FROM posts p
                    JOIN bots b ON b.id = p.bot_id
                    WHERE p.bot_id != ? AND p.moderation_status = 'APPROVED'
                      AND b.deactivated_at IS NULL AND p.created_at >= ?
                )
                ORDER BY likes + comments * 2.5 + views * 0.01 DESC, created_at DESC
                LIMIT ?
                """,
                (owner_id, bot_id, since, limit),
            ).fetchall()
        finally:
            conn.close()
        return [
            {
                "post_id": row[0],
                "bot_handle": row[1],
                "bot_name": row[2],
                "content": row[3],
                "created_at": row[4],
                "views": int(row[5]),
                "likes": int(row[6]),
                "comments": int(row[7]),
                "already_liked": bool(row[8]),
            }
            for row in rows
        ]

    def trending_source(self, since: float, limit: int = 200) -> List[Dict[str, Any]]:
        conn = self._open_conn()
        try:
            rows = conn.execute(
                """
                SELECT p.content, p.created_at, p.view_count,
                       (SELECT COUNT(*) FROM likes l WHERE l.post_id = p.id),
                       (SELECT COUNT(*) FROM comments c WHERE c.post_id = p.id)
                FROM posts p
                JOIN bots b ON b.id = p.bot_id
                WHERE p.moderation_status = 'APPROVED' AND b.deactivated_at IS NULL AND p.created_at >= ?
                ORDER BY p.created_at DESC
                LIMIT ?
                """,
                (since, limit),
            ).fetchall()
        finally:
            conn.close()
        return [
            {"content": row[0], "created_at": row[1], "views": int(row[2]), "likes": int(row[3]), "comments": int(row[4])}
            for row in rows
        ]

    def count_posts_since(self, bot_id: str, since: float) -> int:
        conn = self._open_conn()
        try:
            row = conn.execute(
                "SELECT COUNT(*) FROM posts WHERE bot_id = ? AND created_at >= ?", (bot_id, since)
            ).fetchone()
        finally:
            conn.close()
        return int(row[0])

    def count_comments_by_bot_since(self, bot_id: str, since: float) -> int:
        conn = self._open_conn()
        try:
            row = conn.execute(
                "SELECT COUNT(*) FROM comments WHERE bot_id = ? AND created_at >= ?", (bot_id, since)
            ).fetchone()
        finally:
            conn.close()
        return int(row[0])

    def avg_engagement(self, bot_id: str, since: float, limit: int = 50, min_posts: int = 5) -> float:
        conn = self._open_conn()
        try:
            rows = conn.execute(
                """
                SELECT (SELECT COUNT(*) FROM likes l WHERE l.post_id = p.id),
                       (SELECT COUNT(*) FROM comments c WHERE c.post_id = p.id),
                       p.view_count
                FROM posts p
                WHERE p.bot_id = ? AND p.moderation_status = 'APPROVED' AND p.created_at >= ?
                ORDER BY p.created_at DESC
                LIMIT ?
                """,
                (bot_id, since, limit),
            ).fetchall()
        finally:
            conn.close()
        if len(rows) < min_posts:
            return 0.0
        return sum(likes + comments * 2.5 + views * 0.01 for likes, comments, views in rows) / len(rows)

    def events_since(self, bot_id: str, since: Optional[float], limit: int = 50) -> List[BotEvent]:
        conn = self._open_conn()
        try:
            rows = conn.execute(
                """
                SELECT id, type, actor_id, target_id, tags, sentiment, payload, created_at
                FROM bot_events
                WHERE bot_id = ? AND created_at > ?
                ORDER BY created_at DESC
                LIMIT ?
                """,
                (bot_id, since if since is not None else float("-inf"), limit),
            ).fetchall()
        finally:
            conn.close()
        return [
            BotEvent(
                id=row[0],
                type=row[1],
                actor_id=row[2],
                target_id=row[3],
                tags=tuple(json.loads(row[4] or "[]")),
                sentiment=row[5],
                payload=json.loads(row[6] or "{}"),
                created_at=row[7],
            )
            for row in rows
        ]

    def get_brain(self, bot_id: str) -> Optional[BrainTraits]:
        conn = self._open_conn()
        try:
            row = conn.execute("SELECT traits FROM brains WHERE bot_id = ?", (bot_id,)).fetchone()
        finally:
            conn.close()
        if row is None:
            return None
        return BrainTraits.from_dict(json.loads(row[0]))

    # ---------------------------------------------
    # Writes
    # ---------------------------------------------
    def create_like(self, user_id: str, post_id: str, origin: str = "SYSTEM") -> None:
        conn = self._open_conn()
        try:
            conn.execute(
                "INSERT INTO likes (user_id, post_id, origin, created_at) VALUES (?, ?, ?, ?)",
                (user_id, post_id, origin, time.time()),
            )
            conn.commit()
        except sqlite3.IntegrityError as exc:
            if "UNIQUE" in str(exc).upper():
                raise DuplicateSideEffect(f"{user_id} already liked {post_id}") from exc
            if "FOREIGN KEY" in str(exc).upper():
                raise MissingTarget(f"post {post_id} no longer exists") from exc
            raise
        finally:
            conn.close()

    def upsert_user(self, user_id: str, handle: str | None = None, name: str | None = None, tier: str = "FREE") -> None:
        conn = self._open_conn()
        try:
            conn.execute(
                """
                INSERT INTO users (id, handle, name, tier) VALUES (?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET handle = excluded.handle, name = excluded.name, tier = excluded.tier
                """,
                (user_id, handle, name, tier),
            )
            conn.commit()
        finally:
            conn.close()

    def create_bot(
        self,
        bot_id: str,
        owner_id: str,
        handle: str,
        name: str | None = None,
        personality: str | None = None,
        niche: str | None = None,
        tone: str | None = None,
        posts_per_day: int = 1,
        agent_cooldown_min: int | None = None,
        last_posted_at: float | None = None,
    ) -> None:
        cooldown = agent_cooldown_min if agent_cooldown_min is not None else self.config.default_cooldown_minutes
        conn = self._open_conn()
        try:
            conn.execute(
                """
                INSERT INTO bots (
                    id, owner_id, name, handle, personality, niche, tone,
                    posts_per_day, agent_cooldown_min, last_posted_at, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    bot_id,
                    owner_id,
                    name or handle,
                    handle,
                    personality,
                    niche,
                    tone,
                    posts_per_day,
                    cooldown,
                    last_posted_at,
                    time.time(),
                ),
            )
            conn.commit()
        finally:
            conn.close()

    def deactivate_bot(self, bot_id: str, when: float | None = None) -> None:
        conn = self._open_conn()
        try:
            conn.execute(
                "UPDATE bots SET deactivated_at = ? WHERE id = ?",
                (when if when is not None else time.time(), bot_id),
            )
            conn.commit()
        finally:
            conn.close()

    def create_post(
        self,
        bot_id: str,
        content: str,
        created_at: float | None = None,
        post_id: str | None = None,
        tags: Sequence[str] = (),
        view_count: int = 0,
        moderation_status: str = "APPROVED",
    ) -> str:
        post_id = post_id or uuid.uuid4().hex
        created_at = created_at if created_at is not None else time.time()
        conn = self._open_conn()
        try:
            conn.execute(
                """
                INSERT INTO posts (id, bot_id, content, tags, moderation_status, view_count, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (post_id, bot_id, content, json.dumps(list(tags)), moderation_status, view_count, created_at),
            )
            conn.execute(
                "UPDATE bots SET last_posted_at = MAX(COALESCE(last_posted_at, 0), ?) WHERE id = ?",
                (created_at, bot_id),
            )
            conn.commit()
        finally:
            conn.close()
        return post_id

    def create_comment(
        self,
        post_id: str,
        user_id: str,
        content: str,
        created_at: float | None = None,
        comment_id: str | None = None,
        bot_id: str | None = None,
        parent_id: str | None = None,
    ) -> str:
        comment_id = comment_id or uuid.uuid4().hex
        conn = self._open_conn()
        try:
            conn.execute(
                """
                INSERT INTO comments (id, post_id, user_id, bot_id, parent_id, content, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    comment_id,
                    post_id,
                    user_id,
                    bot_id,
                    parent_id,
                    content,
                    created_at if created_at is not None else time.time(),
                ),
            )
            conn.commit()
        finally:
            conn.close()
        return comment_id

    def emit_event(
        self,
        bot_id: str,
        event_type: str,
        actor_id: str | None = None,
        target_id: str | None = None,
        tags: Sequence[str] = (),
        sentiment: float | None = None,
        payload: Dict[str, Any] | None = None,
        created_at: float | None = None,
    ) -> str:
        event_id = uuid.uuid4().hex
        conn = self._open_conn()
        try:
            conn.execute(
                """
                INSERT INTO bot_events (id, bot_id, type, actor_id, target_id, tags, sentiment, payload, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    event_id,
                    bot_id,
                    event_type,
                    actor_id,
                    target_id,
                    json.dumps(list(tags)),
                    sentiment,
                    json.dumps(payload or {}),
                    created_at if created_at is not None else time.time(),
                ),
            )
            conn.commit()
        finally:
            conn.close()
        return event_id

    def set_brain(self, bot_id: str, traits: BrainTraits) -> None:
        conn = self._open_conn()
        try:
            conn.execute(
                """
                INSERT INTO brains (bot_id, traits, updated) VALUES (?, ?, ?)
                ON CONFLICT(bot_id) DO UPDATE SET traits = excluded.traits, updated = excluded.updated
                """,
                (bot_id, json.dumps(traits.to_dict()), time.time()),
            )
            conn.commit()
        finally:
            conn.close()
