import pytest

from rudo_core import events as ev
from rudo_core.brain import BrainTraits
from rudo_core.errors import DuplicateSideEffect, MissingTarget
from rudo_core.state import init_life_state

HOUR = 3600.0


def test_get_bot_and_owner_tier(store):
    bot = store.get_bot("bot-1")
    assert bot.handle == "chefbot"
    assert bot.agent_cooldown_min == 30
    assert bot.last_posted_at is None
    assert store.get_owner_tier(bot.owner_id) == "PRO"
    assert store.get_owner_tier("nobody") == "FREE"
    assert store.get_bot("ghost") is None


def test_avg_engagement_needs_five_posts(store, now):
    for idx in range(4):
        store.create_post("bot-1", f"post {idx}", created_at=now - idx * HOUR)
    assert store.avg_engagement("bot-1", now - 24 * HOUR) == 0.0

    fifth = store.create_post("bot-1", "post 4", created_at=now - 5 * HOUR, view_count=100)
    store.create_comment(fifth, "fan-1", "nice", created_at=now)
    store.create_like("fan-1", fifth)
    # (1 like + 2.5 + 100 views * 0.01) over five posts
    assert store.avg_engagement("bot-1", now - 24 * HOUR) == pytest.approx(4.5 / 5)


def test_duplicate_like_raises(store, now):
    post = store.create_post("bot-1", "hello", created_at=now)
    store.create_like("fan-1", post)
    with pytest.raises(DuplicateSideEffect):
        store.create_like("fan-1", post)


def test_like_on_missing_post_raises_missing_target(store):
    with pytest.raises(MissingTarget):
        store.create_like("fan-1", "no-such-post")


def test_due_bots_skip_deactivated_and_future(store, now):
    store.create_bot("bot-2", "fan-1", "later")
    store.create_bot("bot-3", "fan-1", "gone")
    store.update_schedule("bot-2", now, now + HOUR, {"action": "IDLE"})
    store.deactivate_bot("bot-3", now)

    assert store.due_bots(now) == ["bot-1"]
    assert set(store.due_bots(now + 2 * HOUR)) == {"bot-1", "bot-2"}
    assert store.last_cycle("bot-2") == {"action": "IDLE"}
    assert store.last_cycle("bot-1") is None


def test_deactivated_bots_leave_the_feed(store, now):
    store.create_bot("bot-2", "fan-1", "bakerbot")
    store.create_post("bot-2", "fresh bread", created_at=now - HOUR)
    assert len(store.feed_candidates("bot-1", "owner-1", now - 12 * HOUR)) == 1

    store.deactivate_bot("bot-2", now)
    assert store.feed_candidates("bot-1", "owner-1", now - 12 * HOUR) == []


def test_events_since_filters_and_orders(store, now):
    store.emit_event("bot-1", ev.RECEIVED_COMMENT, actor_id="fan-1", tags=["food"], created_at=now - 2 * HOUR)
    store.emit_event("bot-1", ev.POST_PUBLISHED, created_at=now - HOUR)
    store.emit_event("bot-2", ev.POST_PUBLISHED, created_at=now - HOUR)

    everything = store.events_since("bot-1", None)
    assert [e.type for e in everything] == [ev.POST_PUBLISHED, ev.RECEIVED_COMMENT]
    assert everything[1].tags == ("food",)
    assert [e.type for e in store.events_since("bot-1", now - 90 * 60)] == [ev.POST_PUBLISHED]


def test_brain_and_life_state_persist(store, now):
    assert store.get_brain("bot-1") is None
    store.set_brain("bot-1", BrainTraits(warmth=0.9))
    store.set_brain("bot-1", BrainTraits(warmth=0.2))
    assert store.get_brain("bot-1").warmth == 0.2

    store.save_life_state("bot-1", init_life_state(), now)
    bot = store.get_bot("bot-1")
    assert bot.last_perception_at == now
    assert '"version": 1' in bot.life_state_json


def test_counts_since(store, now):
    post = store.create_post("bot-1", "today", created_at=now - HOUR)
    store.create_post("bot-1", "yesterday", created_at=now - 30 * HOUR)
    store.create_comment(post, "owner-1", "reply", created_at=now - HOUR, bot_id="bot-1")

    assert store.count_posts_since("bot-1", now - 24 * HOUR) == 1
    assert store.count_comments_by_bot_since("bot-1", now - 6 * HOUR) == 1
