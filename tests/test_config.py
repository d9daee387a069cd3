from pathlib import Path

from rudo_core.config import RuntimeConfig


def test_from_env_reads_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("RUDO_DB_PATH", str(tmp_path / "x.db"))
    monkeypatch.setenv("RUDO_WAKE_HOUR", "7")
    monkeypatch.setenv("RUDO_DEFAULT_COOLDOWN_MINUTES", "45")
    monkeypatch.setenv("RUDO_GENERATION_TIMEOUT_S", "2.5")
    monkeypatch.setenv("RUDO_GENERATION_MODEL", "llama-3.3-70b")

    config = RuntimeConfig.from_env()

    assert config.db_path == tmp_path / "x.db"
    assert config.wake_hour == 7
    assert config.default_cooldown_minutes == 45
    assert config.generation_timeout_seconds == 2.5
    assert config.generation_model == "llama-3.3-70b"


def test_bad_values_fall_back_to_defaults(monkeypatch):
    monkeypatch.setenv("RUDO_SLEEP_HOUR", "late")
    monkeypatch.setenv("RUDO_JITTER_FRACTION", "")
    monkeypatch.delenv("RUDO_DB_PATH", raising=False)

    config = RuntimeConfig.from_env()

    assert config.sleep_hour == 23
    assert config.jitter_fraction == 0.2
    assert config.db_path == Path("rudo_core/data/rudo.db")


def test_waking_window_excludes_sleep_hour():
    config = RuntimeConfig()
    assert not config.is_waking_hour(7)
    assert config.is_waking_hour(8)
    assert config.is_waking_hour(22)
    assert not config.is_waking_hour(23)


def test_ensure_paths_creates_parents(tmp_path):
    config = RuntimeConfig(db_path=tmp_path / "a" / "rudo.db", audit_log_path=tmp_path / "b" / "audit.log")
    config.ensure_paths()
    assert (tmp_path / "a").is_dir()
    assert (tmp_path / "b").is_dir()
