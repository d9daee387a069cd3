import random
from dataclasses import replace

from rudo_core import events as ev
from rudo_core.brain import BrainTraits
from rudo_core.events import BotEvent
from rudo_core.life import LifeSignals, life_state_prompt_block, update_life_state
from rudo_core.state import NEED_KEYS, LifeState, Needs, init_life_state

NOW = 1_750_000_000.0


def _event(kind: str, actor: str | None = None, ts: float = NOW) -> BotEvent:
    return BotEvent(id=f"{kind}-{actor}-{ts}", type=kind, actor_id=actor, created_at=ts)


def _assert_in_bounds(state: LifeState) -> None:
    for key in NEED_KEYS:
        assert 0.0 <= getattr(state.needs, key) <= 100.0, key
    assert -1.0 <= state.affect.mood <= 1.0
    assert 0.0 <= state.affect.intensity <= 1.0
    assert 0.0 <= state.affect.arousal <= 1.0
    for value in list(state.beliefs.salience.values()) + list(state.beliefs.confidence.values()):
        assert 0.0 <= value <= 1.0
    for rel in state.relationships.values():
        assert 0.0 <= rel.closeness <= 1.0
        assert 0.0 <= rel.trust <= 1.0
        assert 0.0 <= rel.friction <= 1.0


def test_random_walk_stays_in_bounds():
    rng = random.Random(7)
    kinds = [ev.RECEIVED_COMMENT, ev.REPLIED, ev.POST_PUBLISHED, "FOLLOWED"]
    state = init_life_state()
    for step in range(400):
        events = [_event(rng.choice(kinds), rng.choice(["a", "b", None])) for _ in range(rng.randint(0, 12))]
        signals = LifeSignals(
            now=NOW + step * 1800,
            events=events,
            hours_since_last_post=rng.choice([None, rng.uniform(0, 30)]),
            posts_today=rng.randint(0, 6),
            unanswered_comments_count=rng.randint(0, 10),
            trending_topics=rng.sample(["tacos", "gym", "jazz", "ai", "rain"], rng.randint(0, 5)),
            avg_engagement=rng.uniform(0, 20),
            brain=BrainTraits(assertiveness=rng.random()),
        )
        result = update_life_state(state, signals)
        _assert_in_bounds(result.next_state)
        assert len(result.memories) <= 3
        state = result.next_state


def test_out_of_range_input_is_clamped_before_use():
    state = LifeState(needs=Needs(connection=250.0, rest=-40.0))
    state.affect.mood = 9.0
    result = update_life_state(state, LifeSignals(now=NOW, hours_since_last_post=1.0))
    _assert_in_bounds(result.next_state)


def test_update_does_not_mutate_input_and_is_deterministic():
    state = init_life_state()
    before = state.to_dict()
    signals = LifeSignals(
        now=NOW,
        events=[_event(ev.RECEIVED_COMMENT, "fan"), _event(ev.POST_PUBLISHED)],
        hours_since_last_post=3.0,
        trending_topics=["tacos"],
    )

    first = update_life_state(state, signals)
    second = update_life_state(state, signals)

    assert state.to_dict() == before
    assert first.next_state.to_dict() == second.next_state.to_dict()
    assert first.memories == second.memories


def test_low_rest_maps_to_drained():
    state = LifeState(needs=Needs(rest=30.0))
    result = update_life_state(state, LifeSignals(now=NOW))

    assert result.next_state.needs.rest == 33.0
    assert result.next_state.affect.emotion == "drained"
    assert abs(result.next_state.affect.intensity - 0.67) < 1e-9


def test_low_connection_maps_to_lonely_and_remembers_quiet_cycle():
    state = LifeState(needs=Needs(connection=30.0))
    result = update_life_state(state, LifeSignals(now=NOW, hours_since_last_post=5.0))

    assert result.next_state.affect.emotion == "lonely"
    assert [m.emotion for m in result.memories] == ["lonely"]
    assert "loneliness" in result.memories[0].tags


def test_irritation_needs_an_assertive_brain():
    state = LifeState(needs=Needs(status=20.0, novelty=50.0))
    signals = LifeSignals(now=NOW, hours_since_last_post=1.0, trending_topics=["ai"])

    calm = update_life_state(state, signals)
    assertive = update_life_state(state, replace(signals, brain=BrainTraits(assertiveness=0.9)))

    assert calm.next_state.affect.emotion != "irritated"
    assert assertive.next_state.affect.emotion == "irritated"


def test_received_comments_update_relationships_and_social_clock():
    signals = LifeSignals(
        now=NOW,
        events=[_event(ev.RECEIVED_COMMENT, "fan", ts=NOW - 60)],
        hours_since_last_post=2.5,
    )
    result = update_life_state(init_life_state(), signals)

    rel = result.next_state.relationships["fan"]
    assert abs(rel.closeness - 0.15) < 1e-9
    assert rel.last_seen_at == NOW - 60
    assert result.next_state.time.last_social_at == NOW
    assert result.next_state.time.last_cycle_at == NOW
    assert result.memories[0].tags == ("social", "comments", "engagement")
    assert result.memories[0].importance == 3


def test_busy_cycle_caps_memories_at_three():
    state = LifeState(needs=Needs(rest=10.0, connection=10.0))
    events = [_event(ev.RECEIVED_COMMENT, f"fan{i}") for i in range(3)] + [_event(ev.POST_PUBLISHED)]
    result = update_life_state(state, LifeSignals(now=NOW, events=events, hours_since_last_post=0.5))

    assert len(result.memories) == 3
    assert result.memories[0].importance == 4
    assert result.next_state.time.last_post_at == NOW


def test_only_first_three_trending_topics_gain_salience():
    signals = LifeSignals(now=NOW, hours_since_last_post=1.0, trending_topics=["a", "b", "c", "d"])
    result = update_life_state(init_life_state(), signals)

    assert set(result.next_state.beliefs.salience) == {"a", "b", "c"}
    assert all(abs(v - 0.15) < 1e-9 for v in result.next_state.beliefs.salience.values())


def test_state_round_trips_through_json_form():
    result = update_life_state(
        init_life_state(),
        LifeSignals(now=NOW, events=[_event(ev.RECEIVED_COMMENT, "fan")], trending_topics=["tacos"]),
    )
    restored = LifeState.from_dict(result.next_state.to_dict())
    assert restored.to_dict() == result.next_state.to_dict()


def test_prompt_block_mentions_low_energy():
    block = life_state_prompt_block(LifeState(needs=Needs(rest=20.0)))
    assert block.startswith("LIFE STATE NOW:")
    assert "low on energy" in block
