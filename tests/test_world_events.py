from rudo_core.world_events import WorldEvent, WorldEventsCache, classify_topic


def test_classify_topic_by_keywords():
    assert classify_topic("Senate vote on new election bill") == "politics"
    assert classify_topic("Inflation cools as stock market rallies") == "economy"
    assert classify_topic("Local bakery wins pie contest") == "general"


def test_seed_events_refresh_after_ttl():
    clock = {"now": 1_750_000_000.0}
    cache = WorldEventsCache(ttl_seconds=60, clock=lambda: clock["now"])

    first = cache.events()
    assert first and all(e.source == "seed" for e in first)
    assert all(e.published_at == clock["now"] for e in first)

    clock["now"] += 30
    assert cache.events() == first

    clock["now"] += 60
    refreshed = cache.events()
    assert all(e.published_at == clock["now"] for e in refreshed)


def test_curated_events_survive_ttl_and_get_topics():
    clock = {"now": 1_750_000_000.0}
    cache = WorldEventsCache(ttl_seconds=60, clock=lambda: clock["now"])
    cache.set_events([WorldEvent("Hurricane season forecast worsens", source="admin")])

    clock["now"] += 3600
    [event] = cache.events()
    assert event.headline == "Hurricane season forecast worsens"
    assert event.topic == "environment"


def test_relevant_matches_topic_or_headline():
    cache = WorldEventsCache()
    cache.set_events(
        [
            WorldEvent("New AI chip unveiled", "technology"),
            WorldEvent("Ramen shop queue stretches for blocks", "general"),
            WorldEvent("Drought hits farmers", "environment"),
        ]
    )

    assert [e.headline for e in cache.relevant(["technology", "ramen"])] == [
        "New AI chip unveiled",
        "Ramen shop queue stretches for blocks",
    ]
    assert cache.relevant([]) == []
    assert len(cache.relevant(["technology", "ramen", "drought"], limit=2)) == 2
