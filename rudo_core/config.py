import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, TypeVar

T = TypeVar("T")


def _parse(val: str | None, caster: Callable[[str], T], default: T) -> T:
    if val is None or not val.strip():
        return default
    try:
        return caster(val)
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class RuntimeConfig:
    db_path: Path = Path("rudo_core/data/rudo.db")
    audit_log_path: Path = Path("rudo_core/data/audit.log")
    # Waking window; the sleep hour itself is already outside it.
    wake_hour: int = 8
    sleep_hour: int = 23
    default_cooldown_minutes: int = 30
    jitter_fraction: float = 0.2
    generation_model: str = "gpt-4o"
    generation_base_url: str | None = None
    generation_timeout_seconds: float = 20.0
    generation_http_timeout_seconds: float = 20.0
    generation_max_tokens: int = 300
    generation_temperature: float = 0.7
    memory_window: int = 200
    memory_retrieval_limit: int = 5
    unanswered_window_hours: float = 24.0
    feed_window_hours: float = 12.0
    trending_window_hours: float = 48.0
    recent_comment_window_hours: float = 6.0
    event_fetch_limit: int = 50
    world_events_ttl_seconds: float = 4 * 60 * 60
    max_concurrent_cycles: int = 3
    perception_workers: int = 8
    worker_poll_seconds: float = 60.0
    sqlite_timeout: float = 5.0

    @classmethod
    def from_env(cls) -> "RuntimeConfig":
        """
        Build a config from RUDO_* environment variables. Unparseable values
        keep the default instead of failing the process.
        """
        default = cls()
        return cls(
            db_path=Path(os.getenv("RUDO_DB_PATH", default.db_path)),
            audit_log_path=Path(os.getenv("RUDO_AUDIT_LOG_PATH", default.audit_log_path)),
            wake_hour=_parse(os.getenv("RUDO_WAKE_HOUR"), int, default.wake_hour),
            sleep_hour=_parse(os.getenv("RUDO_SLEEP_HOUR"), int, default.sleep_hour),
            default_cooldown_minutes=_parse(
                os.getenv("RUDO_DEFAULT_COOLDOWN_MINUTES"), int, default.default_cooldown_minutes
            ),
            jitter_fraction=_parse(os.getenv("RUDO_JITTER_FRACTION"), float, default.jitter_fraction),
            generation_model=os.getenv("RUDO_GENERATION_MODEL", default.generation_model),
            generation_base_url=os.getenv("RUDO_GENERATION_BASE_URL") or default.generation_base_url,
            generation_timeout_seconds=_parse(
                os.getenv("RUDO_GENERATION_TIMEOUT_S"), float, default.generation_timeout_seconds
            ),
            generation_http_timeout_seconds=_parse(
                os.getenv("RUDO_GENERATION_HTTP_TIMEOUT_S"), float, default.generation_http_timeout_seconds
            ),
            generation_max_tokens=_parse(
                os.getenv("RUDO_GENERATION_MAX_TOKENS"), int, default.generation_max_tokens
            ),
            generation_temperature=_parse(
                os.getenv("RUDO_GENERATION_TEMPERATURE"), float, default.generation_temperature
            ),
            memory_window=_parse(os.getenv("RUDO_MEMORY_WINDOW"), int, default.memory_window),
            memory_retrieval_limit=_parse(
                os.getenv("RUDO_MEMORY_RETRIEVAL_LIMIT"), int, default.memory_retrieval_limit
            ),
            unanswered_window_hours=_parse(
                os.getenv("RUDO_UNANSWERED_WINDOW_HOURS"), float, default.unanswered_window_hours
            ),
            feed_window_hours=_parse(os.getenv("RUDO_FEED_WINDOW_HOURS"), float, default.feed_window_hours),
            trending_window_hours=_parse(
                os.getenv("RUDO_TRENDING_WINDOW_HOURS"), float, default.trending_window_hours
            ),
            recent_comment_window_hours=_parse(
                os.getenv("RUDO_RECENT_COMMENT_WINDOW_HOURS"), float, default.recent_comment_window_hours
            ),
            event_fetch_limit=_parse(os.getenv("RUDO_EVENT_FETCH_LIMIT"), int, default.event_fetch_limit),
            world_events_ttl_seconds=_parse(
                os.getenv("RUDO_WORLD_EVENTS_TTL_S"), float, default.world_events_ttl_seconds
            ),
            max_concurrent_cycles=_parse(
                os.getenv("RUDO_MAX_CONCURRENT_CYCLES"), int, default.max_concurrent_cycles
            ),
            perception_workers=_parse(os.getenv("RUDO_PERCEPTION_WORKERS"), int, default.perception_workers),
            worker_poll_seconds=_parse(os.getenv("RUDO_WORKER_POLL_S"), float, default.worker_poll_seconds),
            sqlite_timeout=_parse(os.getenv("RUDO_SQLITE_TIMEOUT"), float, default.sqlite_timeout),
        )

    def ensure_paths(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.audit_log_path.parent.mkdir(parents=True, exist_ok=True)

    def is_waking_hour(self, hour: int) -> bool:
        return self.wake_hour <= hour < self.sleep_hour
