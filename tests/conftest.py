"""
Shared fixtures. Every test gets its own SQLite file under tmp_path and a
fixed clock at 14:00 local time so waking-hour rules are deterministic.
"""

from datetime import datetime
from pathlib import Path

import pytest

from rudo_core.config import RuntimeConfig
from rudo_core.perception import NEVER_POSTED, PerceptionContext
from rudo_core.store import SQLiteStateStore

NOW = datetime(2026, 3, 10, 14, 0).timestamp()


@pytest.fixture
def now() -> float:
    return NOW


@pytest.fixture
def config(tmp_path: Path) -> RuntimeConfig:
    return RuntimeConfig(
        db_path=tmp_path / "rudo.db",
        audit_log_path=tmp_path / "audit.log",
        generation_timeout_seconds=0.2,
    )


@pytest.fixture
def store(config: RuntimeConfig) -> SQLiteStateStore:
    store = SQLiteStateStore(config)
    store.upsert_user("owner-1", handle="owner", name="Owner", tier="PRO")
    store.upsert_user("fan-1", handle="fan", name="Fan")
    store.create_bot("bot-1", "owner-1", "chefbot", name="Chef Bot", niche="food", posts_per_day=3)
    return store


@pytest.fixture
def make_context():
    def _make(**overrides) -> PerceptionContext:
        fields = dict(
            bot_id="bot-1",
            name="Chef Bot",
            handle="chefbot",
            personality="Cheerful home cook",
            niche="food",
            tone="playful",
            posts_per_day=3,
            last_posted_at=None,
            cooldown_minutes=30,
            owner_tier="FREE",
            hours_since_last_post=NEVER_POSTED,
            posts_today=0,
            current_hour=14,
        )
        fields.update(overrides)
        return PerceptionContext(**fields)

    return _make
