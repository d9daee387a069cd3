"""
Perception: the read-only snapshot a bot decides from.

`PerceptionBuilder.perceive` loads the bot, fans the independent store reads
out to a thread pool, then advances the bot's life state and pulls relevant
memories. The life-state step is best effort; when it fails the context is
still returned, just without life state or memories.
"""

import asyncio
import concurrent.futures
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .brain import BrainTraits
from .config import RuntimeConfig
from .errors import BotNotFound
from .events import BotEvent
from .life import LifeSignals, update_life_state
from .memory import MemoryStore, StoredMemory
from .safety import BestEffort, BestEffortResult
from .signals import FEED_RELEVANCE_THRESHOLD, engagement_velocity, extract_trending_topics, score_niche_relevance
from .state import LifeState, init_life_state
from .store import BotRecord, StateStore
from .world_events import WorldEvent, WorldEventsCache

TRENDING_TOPIC_LIMIT = 5
UNANSWERED_LIMIT = 10
FEED_FETCH_LIMIT = 20
FEED_LIMIT = 10
ENGAGEMENT_WINDOW_DAYS = 30
SNIPPET_CHARS = 200


@dataclass(frozen=True)
class HoursSincePost:
    """Hours since the last post; `hours=None` means the bot has never posted."""

    hours: Optional[float] = None

    @property
    def never(self) -> bool:
        return self.hours is None

    def at_least(self, threshold: float) -> bool:
        return self.hours is None or self.hours >= threshold

    def exceeds(self, threshold: float) -> bool:
        return self.hours is None or self.hours > threshold

    def under(self, threshold: float) -> bool:
        return self.hours is not None and self.hours < threshold

    def describe(self) -> str:
        return "never posted" if self.hours is None else f"{self.hours:.1f}"


NEVER_POSTED = HoursSincePost(None)


@dataclass(frozen=True)
class UnansweredComment:
    comment_id: str
    post_id: str
    post_content: str
    comment_content: str
    comment_author: str
    age_minutes: int


@dataclass(frozen=True)
class FeedPost:
    post_id: str
    bot_handle: str
    bot_name: str
    content: str
    likes: int
    comments: int
    age_hours: float
    already_liked: bool = False


@dataclass(frozen=True)
class PerceptionContext:
    bot_id: str
    name: str
    handle: str
    personality: Optional[str]
    niche: Optional[str]
    tone: Optional[str]
    posts_per_day: int
    last_posted_at: Optional[float]
    cooldown_minutes: int
    owner_tier: str
    unanswered_comments: Tuple[UnansweredComment, ...] = ()
    feed_posts: Tuple[FeedPost, ...] = ()
    trending_topics: Tuple[str, ...] = ()
    world_events: Tuple[WorldEvent, ...] = ()
    avg_engagement: float = 0.0
    hours_since_last_post: HoursSincePost = NEVER_POSTED
    posts_today: int = 0
    current_hour: int = 12
    recent_comment_count: int = 0
    life_state: Optional[LifeState] = None
    recent_events: Tuple[BotEvent, ...] = ()
    memories: Tuple[StoredMemory, ...] = ()

    def comment_ids(self) -> List[str]:
        return [c.comment_id for c in self.unanswered_comments]

    def post_ids(self) -> List[str]:
        return [p.post_id for p in self.feed_posts]

    def summary(self) -> Dict[str, Any]:
        """Compact view for the audit log."""
        return {
            "hours_since_last_post": self.hours_since_last_post.hours,
            "posts_today": self.posts_today,
            "current_hour": self.current_hour,
            "unanswered_comments": len(self.unanswered_comments),
            "feed_posts": len(self.feed_posts),
            "trending_topics": list(self.trending_topics),
            "emotion": self.life_state.affect.emotion if self.life_state else None,
            "memories": len(self.memories),
        }


def local_midnight(now: float) -> float:
    lt = time.localtime(now)
    return time.mktime((lt.tm_year, lt.tm_mon, lt.tm_mday, 0, 0, 0, 0, 0, -1))


def memory_query_tags(
    trending_topics: Sequence[str],
    emotion: Optional[str],
    has_unanswered: bool,
    hours_since_last_post: HoursSincePost,
) -> List[str]:
    tags = list(trending_topics[:3])
    if emotion:
        tags.append(emotion)
    if has_unanswered:
        tags.extend(["social", "comments"])
    if hours_since_last_post.exceeds(8):
        tags.extend(["creative", "posting"])
    return tags


def rank_feed(rows: Iterable[Dict[str, Any]], niche: Optional[str], now: float, limit: int = FEED_LIMIT) -> List[FeedPost]:
    """Drop posts off the bot's niche and order the rest by relevance x engagement."""
    scored = []
    for row in rows:
        relevance = score_niche_relevance(row["content"], niche)
        if relevance < FEED_RELEVANCE_THRESHOLD:
            continue
        scored.append((relevance * (1 + row["likes"] + row["comments"]), row))
    scored.sort(key=lambda pair: pair[0], reverse=True)
    return [
        FeedPost(
            post_id=row["post_id"],
            bot_handle=row["bot_handle"],
            bot_name=row["bot_name"],
            content=row["content"][:SNIPPET_CHARS],
            likes=row["likes"],
            comments=row["comments"],
            age_hours=round(max(0.0, now - row["created_at"]) / 3600, 1),
            already_liked=row["already_liked"],
        )
        for _, row in scored[:limit]
    ]


class PerceptionBuilder:
    def __init__(
        self,
        config: RuntimeConfig,
        store: StateStore,
        memory: MemoryStore,
        world_events: Optional[WorldEventsCache] = None,
        clock: Callable[[], float] = time.time,
        executor: Optional[concurrent.futures.Executor] = None,
    ):
        self.config = config
        self.store = store
        self.memory = memory
        self.world_events = world_events
        self.clock = clock
        self.executor = executor or concurrent.futures.ThreadPoolExecutor(
            max_workers=max(1, config.perception_workers), thread_name_prefix="rudo-perception"
        )
        self.logger = logging.getLogger("rudo.perception")

    async def _run(self, fn: Callable[..., Any], *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.executor, fn, *args)

    async def perceive(self, bot_id: str, brain: Optional[BrainTraits] = None) -> PerceptionContext:
        now = self.clock()
        bot = await self._run(self.store.get_bot, bot_id)
        if bot is None:
            raise BotNotFound(bot_id)

        hour = 3600.0
        (
            owner_tier,
            comment_rows,
            feed_posts,
            trending_topics,
            posts_today,
            recent_events,
            recent_comment_count,
            avg_engagement,
        ) = await asyncio.gather(
            self._run(self.store.get_owner_tier, bot.owner_id),
            self._run(
                self.store.unanswered_comments,
                bot.id,
                bot.owner_id,
                now - self.config.unanswered_window_hours * hour,
                UNANSWERED_LIMIT,
            ),
            self._run(self._feed, bot, now),
            self._run(self._trending, now),
            self._run(self.store.count_posts_since, bot.id, local_midnight(now)),
            self._run(self._events, bot),
            self._run(
                self.store.count_comments_by_bot_since, bot.id, now - self.config.recent_comment_window_hours * hour
            ),
            self._run(self.store.avg_engagement, bot.id, now - ENGAGEMENT_WINDOW_DAYS * 24 * hour),
        )

        comments = tuple(
            UnansweredComment(
                comment_id=row["comment_id"],
                post_id=row["post_id"],
                post_content=row["post_content"][:SNIPPET_CHARS],
                comment_content=row["comment_content"][:SNIPPET_CHARS],
                comment_author=row["comment_author"],
                age_minutes=int(max(0.0, now - row["created_at"]) // 60),
            )
            for row in comment_rows
        )
        hours_since = (
            HoursSincePost(max(0.0, now - bot.last_posted_at) / hour) if bot.last_posted_at is not None else NEVER_POSTED
        )

        outcome, life_state, memories = await self._run(
            self._enrich_life,
            bot,
            brain,
            now,
            recent_events,
            hours_since,
            posts_today,
            len(comments),
            trending_topics,
            avg_engagement,
        )
        if not outcome.ok:
            self.logger.warning("Life state skipped for %s: %s", bot.id, outcome.detail)

        world = tuple(self.world_events.relevant(trending_topics)) if self.world_events else ()

        return PerceptionContext(
            bot_id=bot.id,
            name=bot.name,
            handle=bot.handle,
            personality=bot.personality,
            niche=bot.niche,
            tone=bot.tone,
            posts_per_day=bot.posts_per_day,
            last_posted_at=bot.last_posted_at,
            cooldown_minutes=bot.agent_cooldown_min,
            owner_tier=owner_tier,
            unanswered_comments=comments,
            feed_posts=tuple(feed_posts),
            trending_topics=tuple(trending_topics),
            world_events=world,
            avg_engagement=float(avg_engagement),
            hours_since_last_post=hours_since,
            posts_today=int(posts_today),
            current_hour=time.localtime(now).tm_hour,
            recent_comment_count=int(recent_comment_count),
            life_state=life_state,
            recent_events=tuple(recent_events),
            memories=tuple(memories),
        )

    def _feed(self, bot: BotRecord, now: float) -> List[FeedPost]:
        rows = self.store.feed_candidates(
            bot.id, bot.owner_id, now - self.config.feed_window_hours * 3600, FEED_FETCH_LIMIT
        )
        return rank_feed(rows, bot.niche, now)

    def _trending(self, now: float) -> List[str]:
        rows = self.store.trending_source(now - self.config.trending_window_hours * 3600)
        posts = [
            (
                row["content"],
                engagement_velocity(row["likes"], row["comments"], row["views"], (now - row["created_at"]) / 3600),
            )
            for row in rows
        ]
        return extract_trending_topics(posts, limit=TRENDING_TOPIC_LIMIT)

    def _events(self, bot: BotRecord) -> List[BotEvent]:
        try:
            return self.store.events_since(bot.id, bot.last_perception_at, self.config.event_fetch_limit)
        except Exception as exc:
            self.logger.warning("Event fetch failed for %s: %s", bot.id, exc)
            return []

    def _enrich_life(
        self,
        bot: BotRecord,
        brain: Optional[BrainTraits],
        now: float,
        events: Sequence[BotEvent],
        hours_since: HoursSincePost,
        posts_today: int,
        unanswered_count: int,
        trending_topics: Sequence[str],
        avg_engagement: float,
    ) -> Tuple[BestEffortResult, Optional[LifeState], List[StoredMemory]]:
        try:
            current = LifeState.from_dict(json.loads(bot.life_state_json)) if bot.life_state_json else init_life_state()
            result = update_life_state(
                current,
                LifeSignals(
                    now=now,
                    events=tuple(events),
                    hours_since_last_post=hours_since.hours,
                    posts_today=posts_today,
                    unanswered_comments_count=unanswered_count,
                    trending_topics=tuple(trending_topics),
                    avg_engagement=avg_engagement,
                    brain=brain,
                ),
            )
            self.store.save_life_state(bot.id, result.next_state, now)
            self.memory.write(bot.id, result.memories)
            tags = memory_query_tags(
                trending_topics, result.next_state.affect.emotion, unanswered_count > 0, hours_since
            )
            memories = self.memory.retrieve(bot.id, tags)
        except Exception as exc:
            return BestEffortResult(BestEffort.FAILED, str(exc)), None, []
        return BestEffortResult(BestEffort.OK), result.next_state, memories

    def close(self) -> None:
        self.executor.shutdown(wait=False)
