import copy
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

NEED_KEYS = ("connection", "competence", "rest", "novelty", "status", "purpose")
NEED_MIN, NEED_MAX = 0.0, 100.0
MOOD_MIN, MOOD_MAX = -1.0, 1.0


def clamp(val: float, low: float, high: float) -> float:
    return max(low, min(high, val))


def clamp01(val: float) -> float:
    return clamp(val, 0.0, 1.0)


def _float(val: Any, default: float) -> float:
    try:
        return float(val)
    except (TypeError, ValueError):
        return default


def _optional_float(val: Any) -> Optional[float]:
    if val is None:
        return None
    try:
        return float(val)
    except (TypeError, ValueError):
        return None


@dataclass
class Needs:
    connection: float = 55.0
    competence: float = 55.0
    rest: float = 70.0
    novelty: float = 85.0
    status: float = 50.0
    purpose: float = 60.0

    def adjust(self, key: str, delta: float) -> None:
        setattr(self, key, clamp(getattr(self, key) + delta, NEED_MIN, NEED_MAX))

    def to_dict(self) -> Dict[str, float]:
        return {key: getattr(self, key) for key in NEED_KEYS}


@dataclass
class Affect:
    mood: float = 0.15
    emotion: str = "curious"
    intensity: float = 0.4
    arousal: float = 0.6

    def nudge_mood(self, delta: float) -> None:
        self.mood = clamp(self.mood + delta, MOOD_MIN, MOOD_MAX)

    def feel(self, emotion: str, intensity: float, arousal: float) -> None:
        self.emotion = emotion
        self.intensity = clamp01(intensity)
        self.arousal = clamp01(arousal)


@dataclass
class Relationship:
    closeness: float = 0.1
    trust: float = 0.3
    friction: float = 0.0
    last_seen_at: Optional[float] = None


@dataclass
class Beliefs:
    salience: Dict[str, float] = field(default_factory=dict)
    confidence: Dict[str, float] = field(default_factory=dict)


@dataclass
class TimeBook:
    last_cycle_at: Optional[float] = None
    last_post_at: Optional[float] = None
    last_social_at: Optional[float] = None
    posts_today: int = 0


@dataclass
class LifeState:
    """
    A bot's simulated inner state. Needs live on 0..100, mood on -1..1 and
    every other scalar on 0..1.
    """

    version: int = 1
    needs: Needs = field(default_factory=Needs)
    affect: Affect = field(default_factory=Affect)
    beliefs: Beliefs = field(default_factory=Beliefs)
    relationships: Dict[str, Relationship] = field(default_factory=dict)
    time: TimeBook = field(default_factory=TimeBook)

    def copy(self) -> "LifeState":
        return copy.deepcopy(self)

    def clamp(self) -> "LifeState":
        for key in NEED_KEYS:
            setattr(self.needs, key, clamp(getattr(self.needs, key), NEED_MIN, NEED_MAX))
        self.affect.mood = clamp(self.affect.mood, MOOD_MIN, MOOD_MAX)
        self.affect.intensity = clamp01(self.affect.intensity)
        self.affect.arousal = clamp01(self.affect.arousal)
        self.beliefs.salience = {k: clamp01(v) for k, v in self.beliefs.salience.items()}
        self.beliefs.confidence = {k: clamp01(v) for k, v in self.beliefs.confidence.items()}
        for rel in self.relationships.values():
            rel.closeness = clamp01(rel.closeness)
            rel.trust = clamp01(rel.trust)
            rel.friction = clamp01(rel.friction)
        self.time.posts_today = max(0, int(self.time.posts_today))
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "needs": self.needs.to_dict(),
            "affect": {
                "mood": self.affect.mood,
                "emotion": self.affect.emotion,
                "intensity": self.affect.intensity,
                "arousal": self.affect.arousal,
            },
            "beliefs": {
                "salience": dict(self.beliefs.salience),
                "confidence": dict(self.beliefs.confidence),
            },
            "social": {
                "relationships": {
                    actor: {
                        "closeness": rel.closeness,
                        "trust": rel.trust,
                        "friction": rel.friction,
                        "last_seen_at": rel.last_seen_at,
                    }
                    for actor, rel in self.relationships.items()
                }
            },
            "time": {
                "last_cycle_at": self.time.last_cycle_at,
                "last_post_at": self.time.last_post_at,
                "last_social_at": self.time.last_social_at,
                "posts_today": self.time.posts_today,
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LifeState":
        """
        Rebuild a state from its stored JSON form. Missing keys take defaults
        and stored values are clamped, so a hand-edited row cannot push the
        engine out of range.
        """
        defaults = Needs()
        raw_needs = data.get("needs") or {}
        needs = Needs(**{key: _float(raw_needs.get(key), getattr(defaults, key)) for key in NEED_KEYS})

        raw_affect = data.get("affect") or {}
        base_affect = Affect()
        affect = Affect(
            mood=_float(raw_affect.get("mood"), base_affect.mood),
            emotion=str(raw_affect.get("emotion") or base_affect.emotion),
            intensity=_float(raw_affect.get("intensity"), base_affect.intensity),
            arousal=_float(raw_affect.get("arousal"), base_affect.arousal),
        )

        raw_beliefs = data.get("beliefs") or {}
        beliefs = Beliefs(
            salience={str(k): _float(v, 0.0) for k, v in (raw_beliefs.get("salience") or {}).items()},
            confidence={str(k): _float(v, 0.0) for k, v in (raw_beliefs.get("confidence") or {}).items()},
        )

        relationships: Dict[str, Relationship] = {}
        raw_rels = (data.get("social") or {}).get("relationships") or {}
        for actor, rel in raw_rels.items():
            relationships[str(actor)] = Relationship(
                closeness=_float(rel.get("closeness"), 0.1),
                trust=_float(rel.get("trust"), 0.3),
                friction=_float(rel.get("friction"), 0.0),
                last_seen_at=_optional_float(rel.get("last_seen_at")),
            )

        raw_time = data.get("time") or {}
        book = TimeBook(
            last_cycle_at=_optional_float(raw_time.get("last_cycle_at")),
            last_post_at=_optional_float(raw_time.get("last_post_at")),
            last_social_at=_optional_float(raw_time.get("last_social_at")),
            posts_today=int(_float(raw_time.get("posts_today"), 0)),
        )
        state = cls(
            version=int(_float(data.get("version"), 1)),
            needs=needs,
            affect=affect,
            beliefs=beliefs,
            relationships=relationships,
            time=book,
        )
        return state.clamp()


def init_life_state() -> LifeState:
    """Starting state for a newly created bot."""
    return LifeState()
