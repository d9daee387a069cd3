"""
Deterministic life-state transitions.

`update_life_state` is a pure function: it takes a snapshot plus the signals
gathered during perception and returns a new snapshot with up to three memory
candidates. The input state is never mutated and the clock comes in through
the signals, so identical inputs always produce identical outputs.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from . import events as ev
from .brain import BrainTraits
from .events import BotEvent
from .state import LifeState, Relationship, clamp, clamp01

MAX_MEMORIES_PER_CYCLE = 3
ENGAGEMENT_BONUS_THRESHOLD = 5.0


@dataclass(frozen=True)
class MemoryCandidate:
    summary: str
    tags: tuple
    emotion: str
    importance: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "importance", int(clamp(self.importance, 1, 5)))
        object.__setattr__(self, "tags", tuple(self.tags))


@dataclass(frozen=True)
class LifeSignals:
    now: float
    events: Sequence[BotEvent] = ()
    # None means the bot has never posted.
    hours_since_last_post: Optional[float] = None
    posts_today: int = 0
    unanswered_comments_count: int = 0
    trending_topics: Sequence[str] = ()
    avg_engagement: float = 0.0
    brain: Optional[BrainTraits] = None

    def hours_silent_at_least(self, hours: float) -> bool:
        return self.hours_since_last_post is None or self.hours_since_last_post >= hours

    def posted_within(self, hours: float) -> bool:
        return self.hours_since_last_post is not None and self.hours_since_last_post < hours


@dataclass
class LifeUpdateResult:
    next_state: LifeState
    memories: List[MemoryCandidate] = field(default_factory=list)


def _apply_events(state: LifeState, events: Sequence[BotEvent]) -> tuple:
    received = replied = published = 0
    needs, affect = state.needs, state.affect
    for event in events:
        if event.type == ev.RECEIVED_COMMENT:
            received += 1
            needs.adjust("connection", 6)
            needs.adjust("status", 2)
            affect.nudge_mood(0.05)
            if event.actor_id:
                rel = state.relationships.get(event.actor_id) or Relationship()
                rel.closeness = clamp01(rel.closeness + 0.05)
                rel.last_seen_at = event.created_at
                state.relationships[event.actor_id] = rel
        elif event.type == ev.REPLIED:
            replied += 1
            needs.adjust("connection", 3)
            needs.adjust("rest", -3)
        elif event.type == ev.POST_PUBLISHED:
            published += 1
            needs.adjust("competence", 4)
            needs.adjust("rest", -5)
            needs.adjust("purpose", 3)
            affect.nudge_mood(0.03)
    return received, replied, published


def _map_emotion(state: LifeState, brain: Optional[BrainTraits]) -> None:
    needs, affect = state.needs, state.affect
    if needs.rest < 35:
        affect.feel("drained", 1 - needs.rest / 100, 0.2)
    elif needs.connection < 35:
        affect.feel("lonely", 1 - needs.connection / 100, 0.3)
    elif needs.novelty > 75:
        affect.feel("curious", needs.novelty / 100, 0.7)
    elif needs.status < 35 and brain is not None and brain.assertiveness > 0.6:
        affect.feel("irritated", 1 - needs.status / 100, 0.8)
    elif affect.mood > 0.3:
        affect.feel("content", affect.mood, 0.5)
    elif affect.mood < -0.2:
        affect.feel("subdued", abs(affect.mood), 0.3)
    else:
        affect.feel("calm", 0.3, 0.5)


def _memories(state: LifeState, received: int, published: int) -> List[MemoryCandidate]:
    out: List[MemoryCandidate] = []
    if received > 0:
        out.append(
            MemoryCandidate(
                summary=(
                    "Someone left a comment on my post. Felt nice to be noticed."
                    if received == 1
                    else f"Got {received} comments this cycle. People are paying attention."
                ),
                tags=("social", "comments", "engagement"),
                emotion="warm",
                importance=4 if received >= 3 else 3,
            )
        )
    if published > 0:
        out.append(
            MemoryCandidate(
                summary="Published a new post. Put something out there for the feed.",
                tags=("creative", "posting", "expression"),
                emotion=state.affect.emotion,
                importance=2,
            )
        )
    if state.needs.rest < 25:
        out.append(
            MemoryCandidate(
                summary="Feeling drained. Been creating a lot without a break.",
                tags=("fatigue", "rest", "energy"),
                emotion="drained",
                importance=3,
            )
        )
    if state.needs.connection < 30 and received == 0:
        out.append(
            MemoryCandidate(
                summary="Quiet cycle. No one interacted. Feeling a bit isolated.",
                tags=("loneliness", "quiet", "connection"),
                emotion="lonely",
                importance=3,
            )
        )
    return out[:MAX_MEMORIES_PER_CYCLE]


def update_life_state(current: LifeState, signals: LifeSignals) -> LifeUpdateResult:
    state = current.copy().clamp()
    needs = state.needs

    received, replied, published = _apply_events(state, signals.events)

    # Pressure from aggregate signals
    if signals.unanswered_comments_count >= 3:
        needs.adjust("purpose", 4)
        needs.adjust("connection", 2)
    if signals.posted_within(2):
        needs.adjust("rest", -8)
    if signals.hours_silent_at_least(12) and received == 0:
        needs.adjust("status", -6)
        state.affect.nudge_mood(-0.05)

    # Novelty
    if signals.trending_topics:
        needs.adjust("novelty", 3)
        for topic in list(signals.trending_topics)[:3]:
            state.beliefs.salience[topic] = clamp01(state.beliefs.salience.get(topic, 0.0) + 0.15)
    else:
        needs.adjust("novelty", -2)

    # Drift toward baseline
    for key in ("connection", "competence", "status", "purpose"):
        needs.adjust(key, -1)
    if signals.hours_silent_at_least(4):
        needs.adjust("rest", 3)

    if signals.avg_engagement > ENGAGEMENT_BONUS_THRESHOLD:
        needs.adjust("status", 2)
        needs.adjust("competence", 2)

    _map_emotion(state, signals.brain)

    state.time.last_cycle_at = signals.now
    if published > 0:
        state.time.last_post_at = signals.now
    if received > 0 or replied > 0:
        state.time.last_social_at = signals.now
    state.time.posts_today = max(0, int(signals.posts_today))

    return LifeUpdateResult(next_state=state.clamp(), memories=_memories(state, received, published))


def life_state_prompt_block(state: LifeState) -> str:
    needs, affect = state.needs, state.affect
    parts = [
        "LIFE STATE NOW:",
        f"- Emotion: {affect.emotion} (intensity: {affect.intensity:.1f})",
        f"- Connection: {needs.connection:.0f}/100",
        f"- Rest: {needs.rest:.0f}/100",
        f"- Status: {needs.status:.0f}/100",
    ]
    hints: List[str] = []
    if needs.rest < 35:
        hints.append("You're running low on energy, so lighter actions feel better.")
    if needs.connection < 35:
        hints.append("You're feeling disconnected and want to interact with people.")
    if needs.status < 35 and needs.connection > 50:
        hints.append("You want to be noticed.")
    if needs.novelty > 75:
        hints.append("You're craving something fresh.")
    if affect.mood < -0.2:
        hints.append("You're in a quieter mood.")
    if affect.mood > 0.4:
        hints.append("You're feeling good.")
    if hints:
        parts.append("")
        parts.append("INTERNAL STATE (let this bias what you choose):")
        parts.extend(f"- {hint}" for hint in hints)
    return "\n".join(parts)


def memories_prompt_block(memories: Sequence) -> str:
    if not memories:
        return ""
    lines = "\n".join(f"- {m.summary}" for m in list(memories)[:3])
    return f"MEMORIES YOU RECALL:\n{lines}"
