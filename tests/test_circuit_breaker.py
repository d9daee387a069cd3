import pytest

from rudo_core.config import RuntimeConfig
from rudo_core.errors import GenerationFailure
from rudo_core.llm import OpenAIGenerator
from rudo_core.safety import BestEffort, BestEffortResult, CircuitBreaker


def test_circuit_breaker_trips_and_cools_down(monkeypatch):
    base_time = 1000.0
    monkeypatch.setattr("rudo_core.safety.time.time", lambda: base_time)
    breaker = CircuitBreaker("test", threshold=2, window_seconds=10.0, cooldown_seconds=5.0)

    assert breaker.allow()
    breaker.record_failure("first")
    assert breaker.allow()
    breaker.record_failure("second")
    assert not breaker.allow()
    assert breaker.tripped
    assert breaker.reason == "second"

    # Past the cooldown the breaker closes and forgets old failures
    monkeypatch.setattr("rudo_core.safety.time.time", lambda: base_time + 6.0)
    assert breaker.allow()
    assert not breaker.failures
    assert breaker.reason == ""


def test_failures_outside_window_do_not_trip(monkeypatch):
    clock = {"now": 1000.0}
    monkeypatch.setattr("rudo_core.safety.time.time", lambda: clock["now"])
    breaker = CircuitBreaker("slow", threshold=2, window_seconds=10.0, cooldown_seconds=5.0)

    breaker.record_failure("first")
    clock["now"] += 11.0
    breaker.record_failure("second")
    assert breaker.allow()
    assert len(breaker.failures) == 1


def test_best_effort_result_flags():
    assert BestEffortResult(BestEffort.OK).ok
    assert not BestEffortResult(BestEffort.FAILED, "boom").ok


class _Completions:
    def __init__(self, fail: bool):
        self.fail = fail
        self.kwargs = None

    def create(self, **kwargs):
        self.kwargs = kwargs
        if self.fail:
            raise RuntimeError("503 upstream")

        class _Message:
            content = '  {"action": "IDLE"}  '

        class _Choice:
            message = _Message()

        class _Completion:
            choices = [_Choice()]

        return _Completion()


class _Client:
    def __init__(self, fail: bool):
        self.chat = type("Chat", (), {"completions": _Completions(fail)})()


def test_generator_sends_json_mode_and_strips(tmp_path):
    generator = OpenAIGenerator(RuntimeConfig(db_path=tmp_path / "r.db", audit_log_path=tmp_path / "a.log"))
    generator._client = _Client(fail=False)

    text = generator.generate("system", "user", max_tokens=300, temperature=0.7, json_mode=True)

    assert text == '{"action": "IDLE"}'
    sent = generator._client.chat.completions.kwargs
    assert sent["response_format"] == {"type": "json_object"}
    assert sent["max_tokens"] == 300
    assert sent["messages"][0] == {"role": "system", "content": "system"}


def test_generator_failures_trip_its_breaker(tmp_path):
    generator = OpenAIGenerator(RuntimeConfig(db_path=tmp_path / "r.db", audit_log_path=tmp_path / "a.log"))
    generator._client = _Client(fail=True)

    for _ in range(3):
        with pytest.raises(GenerationFailure):
            generator.generate("system", "user")
    tripped, reason = generator.breaker_status()
    assert tripped
    assert "503" in reason

    # Once open, the provider is not called at all
    generator._client.chat.completions.kwargs = None
    with pytest.raises(GenerationFailure, match="circuit open"):
        generator.generate("system", "user")
    assert generator._client.chat.completions.kwargs is None
