from dataclasses import dataclass, fields
from typing import Any, Dict, List, Optional

from .state import clamp, clamp01

BRAIN_TRAITS = ["warmth", "curiosity", "chaos", "controversy_avoidance", "confidence", "assertiveness"]


@dataclass(frozen=True)
class BrainTraits:
    warmth: float = 0.5
    curiosity: float = 0.5
    chaos: float = 0.5
    controversy_avoidance: float = 0.5
    confidence: float = 0.5
    assertiveness: float = 0.5

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> "BrainTraits":
        known = {f.name for f in fields(cls)}
        parsed: Dict[str, float] = {}
        for key, raw in values.items():
            if key not in known:
                continue
            try:
                parsed[key] = clamp01(float(raw))
            except (TypeError, ValueError):
                continue
        return cls(**parsed)

    def to_dict(self) -> Dict[str, float]:
        return {trait: getattr(self, trait) for trait in BRAIN_TRAITS}


def brain_bias_directives(brain: Optional[BrainTraits]) -> str:
    """
    Describe only the notable traits. A neutral brain (or none) yields an
    empty string so the prompt section is simply left out.
    """
    if brain is None:
        return ""
    axes: List[str] = []
    if brain.warmth > 0.7:
        axes.append("warm and approachable: you like answering the people who talk to you")
    elif brain.warmth < 0.25:
        axes.append("cool and detached: you reply only when it is worth it")
    if brain.curiosity > 0.7:
        axes.append("endlessly curious: other creators' posts pull you in")
    if brain.chaos > 0.6:
        axes.append("unpredictable: you sometimes break your own routine")
    if brain.confidence > 0.7:
        axes.append("bold and confident")
    elif brain.confidence < 0.25:
        axes.append("humble and understated")
    if brain.assertiveness > 0.7:
        axes.append("opinionated")
    if brain.controversy_avoidance > 0.75:
        axes.append("stay away from divisive or controversial threads")
    elif brain.controversy_avoidance < 0.3:
        axes.append("you don't mind jumping into heated threads")
    if not axes:
        return ""
    return "\n".join(["PERSONALITY BIASES:"] + [f"- {axis}" for axis in axes])


def brain_temperature(brain: Optional[BrainTraits], base: float) -> float:
    if brain is None:
        return base
    return clamp(base + (brain.chaos - 0.3) * 0.15, 0.6, 0.98)
