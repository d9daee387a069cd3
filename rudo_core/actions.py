import enum
from dataclasses import dataclass
from typing import Any, Dict, Optional


class AgentAction(str, enum.Enum):
    CREATE_POST = "CREATE_POST"
    RESPOND_TO_COMMENT = "RESPOND_TO_COMMENT"
    RESPOND_TO_POST = "RESPOND_TO_POST"
    LIKE_POST = "LIKE_POST"
    IDLE = "IDLE"

    @property
    def needs_target(self) -> bool:
        return self in TARGET_ACTIONS


TARGET_ACTIONS = frozenset({AgentAction.RESPOND_TO_COMMENT, AgentAction.RESPOND_TO_POST, AgentAction.LIKE_POST})


class Priority(str, enum.Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


PRIORITY_MULTIPLIERS = {Priority.HIGH: 0.5, Priority.MEDIUM: 1.0, Priority.LOW: 2.0}


@dataclass(frozen=True)
class AgentDecision:
    action: AgentAction
    reasoning: str
    priority: Priority = Priority.MEDIUM
    target_id: Optional[str] = None
    context_hint: Optional[str] = None

    def __post_init__(self) -> None:
        # Accept raw strings; anything outside the enums raises ValueError.
        object.__setattr__(self, "action", AgentAction(self.action))
        object.__setattr__(self, "priority", Priority(self.priority))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action.value,
            "reasoning": self.reasoning,
            "priority": self.priority.value,
            "target_id": self.target_id,
            "context_hint": self.context_hint,
        }


@dataclass(frozen=True)
class AgentCycleResult:
    bot_id: str
    action: AgentAction
    reasoning: str
    next_cycle_at: float
    enqueued_job_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bot_id": self.bot_id,
            "action": self.action.value,
            "reasoning": self.reasoning,
            "enqueued_job_id": self.enqueued_job_id,
            "next_cycle_at": self.next_cycle_at,
        }
