import datetime
import threading
import time
from dataclasses import dataclass, replace
from typing import Callable, Dict, Iterable, List, Optional

TOPIC_KEYWORDS: Dict[str, List[str]] = {
    "politics": [
        "president", "congress", "senate", "election", "vote", "democrat", "republican",
        "legislation", "bill", "governor", "policy", "white house", "supreme court",
        "campaign", "political", "conservative", "liberal", "progressive",
    ],
    "technology": [
        "ai", "artificial intelligence", "tech", "startup", "google", "apple", "microsoft",
        "openai", "crypto", "bitcoin", "blockchain", "software", "app", "cyber", "data",
        "robot", "automation",
    ],
    "environment": [
        "climate", "warming", "emissions", "carbon", "renewable", "solar", "wind energy",
        "pollution", "wildfire", "hurricane", "drought", "environmental", "sustainability",
    ],
    "economy": [
        "economy", "inflation", "recession", "stock", "market", "fed", "interest rate",
        "unemployment", "gdp", "trade", "tariff", "wall street", "housing", "debt", "budget",
    ],
    "culture": [
        "culture war", "cancel", "free speech", "censorship", "social media", "viral",
        "controversy", "boycott", "protest",
    ],
    "health": [
        "health", "vaccine", "pandemic", "fda", "drug", "mental health", "healthcare",
        "insurance", "hospital", "disease", "outbreak",
    ],
    "world": [
        "war", "peace", "nato", "united nations", "conflict", "refugee", "sanctions",
        "diplomatic", "treaty", "alliance",
    ],
}


@dataclass(frozen=True)
class WorldEvent:
    headline: str
    topic: str = ""
    source: str = "admin"
    published_at: Optional[float] = None


def classify_topic(headline: str) -> str:
    lowered = headline.lower()
    best_topic, best_score = "general", 0
    for topic, keywords in TOPIC_KEYWORDS.items():
        score = sum(1 for kw in keywords if kw in lowered)
        if score > best_score:
            best_topic, best_score = topic, score
    return best_topic


def seed_events(now: float) -> List[WorldEvent]:
    stamp = datetime.datetime.fromtimestamp(now)
    month, year = stamp.strftime("%B"), stamp.year
    return [
        WorldEvent(f"Political tensions continue as {year} policy debates heat up", "politics", "seed", now),
        WorldEvent("AI companies announce new capabilities amid growing regulation debate", "technology", "seed", now),
        WorldEvent(f"Climate report shows {month} {year} temperatures breaking records", "environment", "seed", now),
        WorldEvent("Social media platforms face scrutiny over content moderation policies", "culture", "seed", now),
        WorldEvent("Economic indicators show mixed signals as markets react", "economy", "seed", now),
        WorldEvent("New study reignites debate over public health policy approaches", "health", "seed", now),
        WorldEvent("International leaders meet to address ongoing global tensions", "world", "seed", now),
    ]


class WorldEventsCache:
    """
    Process-wide headline cache. Build one at startup and hand it to the
    perception builder. Curated events stay until replaced; seed events are
    regenerated once the TTL expires. All access goes through one lock.
    """

    def __init__(self, ttl_seconds: float = 4 * 60 * 60, clock: Callable[[], float] = time.time):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._lock = threading.Lock()
        self._events: List[WorldEvent] = []
        self._fetched_at: float = 0.0

    def events(self) -> List[WorldEvent]:
        with self._lock:
            now = self.clock()
            if self._events and now - self._fetched_at < self.ttl_seconds:
                return list(self._events)
            if not self._events or all(e.source == "seed" for e in self._events):
                self._events = seed_events(now)
            self._fetched_at = now
            return list(self._events)

    def set_events(self, events: Iterable[WorldEvent]) -> None:
        prepared = [e if e.topic else replace(e, topic=classify_topic(e.headline)) for e in events]
        with self._lock:
            self._events = prepared
            self._fetched_at = self.clock()

    def relevant(self, topics: Iterable[str], limit: int = 3) -> List[WorldEvent]:
        wanted = [t.lower() for t in topics if t]
        if not wanted:
            return []
        matches = [
            e for e in self.events()
            if any(e.topic == t or t in e.headline.lower() for t in wanted)
        ]
        return matches[:limit]
