import pytest

from rudo_core.signals import (
    engagement_score,
    engagement_velocity,
    extract_trending_topics,
    score_niche_relevance,
)


def test_engagement_score_weights_comments_and_views():
    assert engagement_score(4, 2, 100) == 4 + 5 + 1
    assert engagement_score(0, 0) == 0


def test_velocity_floors_age():
    assert engagement_velocity(1, 0, 0, 0.0) == 10.0
    assert engagement_velocity(2, 0, 0, 2.0) == 1.0


def test_trending_topics_need_repeats_and_rank_by_velocity():
    posts = [
        ("Morning coffee ritual before the gym", 5.0),
        ("Morning coffee again, cannot function without it", 1.0),
        ("Spicy noodles tonight", 50.0),
        ("Spicy noodles challenge accepted", 40.0),
        ("A completely unique sentence appears once", 100.0),
    ]
    topics = extract_trending_topics(posts)

    assert topics[0] == "spicy noodles"
    assert "morning coffee" in topics
    assert "completely unique" not in topics
    assert extract_trending_topics(posts, limit=2) == topics[:2]


def test_trending_ignores_short_and_stop_words():
    assert extract_trending_topics([("the and with from", 10.0)] * 3) == []


def test_niche_relevance_tiers():
    assert score_niche_relevance("anything at all", None) == 0.5
    direct = score_niche_relevance("Leg day at the fitness studio", "fitness")
    assert direct == pytest.approx(1.0)
    partial = score_niche_relevance("Leg day at the fitness studio", "fitness, cooking")
    assert partial == pytest.approx(0.8)
    cluster = score_niche_relevance("Hit the gym for a heavy workout session this morning everyone", "fitness")
    assert cluster == pytest.approx(0.5)
    assert score_niche_relevance("Short unrelated note", "fitness") == 0.35
    assert score_niche_relevance("A long musing about the weather patterns over the northern coast", "fitness") == 0.25
