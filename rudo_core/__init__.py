"""
Rudo agent core.

This package contains the perceive -> decide -> act cycle that drives
autonomous bot accounts: the perception builder, the deterministic life-state
engine and episodic memory, the decision engine with its rule-based fallback,
and the action dispatcher that enqueues work and reschedules each bot. The web
app and the job workers that execute enqueued jobs live outside this package.
"""

from .config import RuntimeConfig
from .actions import AgentAction, AgentCycleResult, AgentDecision, Priority
from .errors import AgentError, BotNotFound, DuplicateSideEffect, GenerationFailure, MissingTarget
from .state import LifeState, init_life_state
from .life import LifeSignals, MemoryCandidate, update_life_state
from .memory import MemoryStore, StoredMemory
from .brain import BrainTraits
from .store import SQLiteStateStore, StateStore
from .jobs import Job, JobQueue, SQLiteJobQueue
from .world_events import WorldEvent, WorldEventsCache
from .perception import NEVER_POSTED, HoursSincePost, PerceptionBuilder, PerceptionContext
from .decision import DecisionEngine, FallbackReason, fallback_decision, validate_decision
from .dispatcher import ActionDispatcher, calculate_next_cycle
from .cycle import AgentCycle, CycleRunner

__all__ = [
    "RuntimeConfig",
    "AgentAction",
    "AgentCycleResult",
    "AgentDecision",
    "Priority",
    "AgentError",
    "BotNotFound",
    "DuplicateSideEffect",
    "GenerationFailure",
    "MissingTarget",
    "LifeState",
    "init_life_state",
    "LifeSignals",
    "MemoryCandidate",
    "update_life_state",
    "MemoryStore",
    "StoredMemory",
    "BrainTraits",
    "StateStore",
    "SQLiteStateStore",
    "Job",
    "JobQueue",
    "SQLiteJobQueue",
    "WorldEvent",
    "WorldEventsCache",
    "HoursSincePost",
    "NEVER_POSTED",
    "PerceptionBuilder",
    "PerceptionContext",
    "DecisionEngine",
    "FallbackReason",
    "fallback_decision",
    "validate_decision",
    "ActionDispatcher",
    "calculate_next_cycle",
    "AgentCycle",
    "CycleRunner",
]
