import asyncio
import random
import statistics

import pytest

from rudo_core import jobs
from rudo_core.actions import AgentAction, AgentDecision, Priority
from rudo_core.dispatcher import ActionDispatcher, calculate_next_cycle
from rudo_core.jobs import SQLiteJobQueue

NOW = 1_750_000_000.0


def _minutes(decision: AgentDecision, cooldown: float, rng: random.Random) -> float:
    return (calculate_next_cycle(decision, cooldown, now=NOW, rng=rng) - NOW) / 60


def test_medium_priority_averages_the_cooldown():
    rng = random.Random(42)
    decision = AgentDecision(AgentAction.CREATE_POST, "post", Priority.MEDIUM)
    samples = [_minutes(decision, 30, rng) for _ in range(200)]

    assert 25 <= statistics.mean(samples) <= 35
    assert all(24 <= s <= 36 for s in samples)


def test_priority_and_idle_scale_the_delay():
    rng = random.Random(1)

    def mean_for(action, priority):
        decision = AgentDecision(action, "x", priority)
        return statistics.mean(_minutes(decision, 30, rng) for _ in range(200))

    high = mean_for(AgentAction.CREATE_POST, Priority.HIGH)
    medium = mean_for(AgentAction.CREATE_POST, Priority.MEDIUM)
    low = mean_for(AgentAction.LIKE_POST, Priority.LOW)
    idle_low = mean_for(AgentAction.IDLE, Priority.LOW)

    assert high < medium < low
    assert idle_low >= 1.5 * low * 0.9


def test_next_cycle_without_jitter_is_exact():
    decision = AgentDecision(AgentAction.IDLE, "rest", Priority.HIGH)
    assert calculate_next_cycle(decision, 40, now=NOW, jitter_fraction=0.0) == NOW + 40 * 0.5 * 1.5 * 60


@pytest.fixture
def dispatcher(config, store, now):
    queue = SQLiteJobQueue(config)
    return ActionDispatcher(store, queue, config, clock=lambda: now, rng=random.Random(3)), queue


def test_create_post_enqueues_generation_job(dispatcher, store, now):
    disp, queue = dispatcher
    result = asyncio.run(disp.act("bot-1", AgentDecision(AgentAction.CREATE_POST, "First ever post", "high"), 30))

    [job] = queue.list_jobs(bot_id="bot-1")
    assert job.type == jobs.GENERATE_POST
    assert job.payload == {"owner_tier": "PRO", "handle": "chefbot", "source": "agent"}
    assert job.status == "QUEUED"
    assert result.enqueued_job_id == job.id
    assert now + 12 * 60 <= result.next_cycle_at <= now + 18 * 60

    saved = store.last_cycle("bot-1")
    assert saved["action"] == "CREATE_POST"
    assert saved["next_cycle_at"] == result.next_cycle_at
    assert store.get_bot("bot-1").next_cycle_at == result.next_cycle_at


def test_respond_actions_enqueue_with_targets(dispatcher):
    disp, queue = dispatcher
    asyncio.run(
        disp.act(
            "bot-1",
            AgentDecision(AgentAction.RESPOND_TO_COMMENT, "fans", target_id="c1", context_hint="be kind"),
            30,
        )
    )
    asyncio.run(disp.act("bot-1", AgentDecision(AgentAction.RESPOND_TO_POST, "nice", "low", target_id="p1"), 30))

    by_type = {job.type: job.payload for job in queue.list_jobs(bot_id="bot-1")}
    assert by_type[jobs.RESPOND_TO_COMMENT] == {"comment_id": "c1", "context_hint": "be kind"}
    assert by_type[jobs.RESPOND_TO_POST] == {"post_id": "p1", "context_hint": None}


def test_missing_target_and_idle_enqueue_nothing(dispatcher):
    disp, queue = dispatcher
    no_target = asyncio.run(disp.act("bot-1", AgentDecision(AgentAction.RESPOND_TO_COMMENT, "hmm"), 30))
    idle = asyncio.run(disp.act("bot-1", AgentDecision(AgentAction.IDLE, "zzz", "low"), 30))

    assert no_target.enqueued_job_id is None
    assert idle.enqueued_job_id is None
    assert queue.list_jobs() == []


def test_like_is_written_once_and_duplicate_is_ignored(dispatcher, store, now):
    disp, queue = dispatcher
    store.create_bot("bot-2", "fan-1", "bakerbot")
    post_id = store.create_post("bot-2", "Sourdough at dawn", created_at=now - 3600)
    decision = AgentDecision(AgentAction.LIKE_POST, "tasty", "low", target_id=post_id)

    first = asyncio.run(disp.act("bot-1", decision, 30))
    second = asyncio.run(disp.act("bot-1", decision, 30))

    assert first.enqueued_job_id is None and second.enqueued_job_id is None
    [row] = store.feed_candidates("bot-1", "owner-1", now - 7200)
    assert row["likes"] == 1
    assert row["already_liked"] is True
    assert queue.list_jobs() == []


def test_create_post_for_vanished_bot_is_a_noop(dispatcher):
    disp, queue = dispatcher
    result = asyncio.run(disp.act("ghost", AgentDecision(AgentAction.CREATE_POST, "post"), 30))
    assert result.enqueued_job_id is None
    assert queue.list_jobs() == []


def test_like_for_deleted_post_still_reschedules(dispatcher, store, now):
    disp, queue = dispatcher
    decision = AgentDecision(AgentAction.LIKE_POST, "tasty", "low", target_id="deleted-post")

    result = asyncio.run(disp.act("bot-1", decision, 30))

    assert result.enqueued_job_id is None
    assert store.get_bot("bot-1").next_cycle_at == result.next_cycle_at
    assert store.last_cycle("bot-1")["action"] == "LIKE_POST"
    assert queue.list_jobs() == []
