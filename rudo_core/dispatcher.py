import asyncio
import logging
import random
import time
from typing import Any, Callable, Optional

from . import jobs
from .actions import PRIORITY_MULTIPLIERS, AgentAction, AgentCycleResult, AgentDecision
from .config import RuntimeConfig
from .errors import DuplicateSideEffect, MissingTarget
from .jobs import JobQueue
from .store import StateStore

IDLE_COOLDOWN_BONUS = 1.5


def calculate_next_cycle(
    decision: AgentDecision,
    cooldown_minutes: float,
    now: Optional[float] = None,
    rng: Optional[random.Random] = None,
    jitter_fraction: float = 0.2,
) -> float:
    """
    Epoch seconds for the next cycle. High priority halves the cooldown, low
    doubles it, IDLE adds half again, and the result is jittered by
    +/- `jitter_fraction` so bots do not wake in lockstep.
    """
    now = time.time() if now is None else now
    rng = rng or random
    minutes = cooldown_minutes * PRIORITY_MULTIPLIERS[decision.priority]
    if decision.action is AgentAction.IDLE:
        minutes *= IDLE_COOLDOWN_BONUS
    jitter = minutes * jitter_fraction * (rng.random() * 2 - 1)
    return now + (minutes + jitter) * 60


class ActionDispatcher:
    def __init__(
        self,
        store: StateStore,
        job_queue: JobQueue,
        config: RuntimeConfig,
        clock: Callable[[], float] = time.time,
        rng: Optional[random.Random] = None,
    ):
        self.store = store
        self.job_queue = job_queue
        self.config = config
        self.clock = clock
        self.rng = rng or random.Random()
        self.logger = logging.getLogger("rudo.dispatcher")

    async def _run(self, fn: Callable[..., Any], *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, fn, *args)

    async def act(self, bot_id: str, decision: AgentDecision, cooldown_minutes: float) -> AgentCycleResult:
        job_id = await self._run(self._side_effect, bot_id, decision)

        now = self.clock()
        next_cycle_at = calculate_next_cycle(
            decision, cooldown_minutes, now=now, rng=self.rng, jitter_fraction=self.config.jitter_fraction
        )
        result = AgentCycleResult(
            bot_id=bot_id,
            action=decision.action,
            reasoning=decision.reasoning,
            next_cycle_at=next_cycle_at,
            enqueued_job_id=job_id,
        )
        await self._run(self.store.update_schedule, bot_id, now, next_cycle_at, result.to_dict())
        return result

    def _side_effect(self, bot_id: str, decision: AgentDecision) -> Optional[str]:
        action = decision.action
        if action is AgentAction.IDLE:
            return None

        if action is AgentAction.CREATE_POST:
            bot = self.store.get_bot(bot_id)
            if bot is None:
                self.logger.warning("Bot %s vanished before CREATE_POST; nothing enqueued", bot_id)
                return None
            payload = {
                "owner_tier": self.store.get_owner_tier(bot.owner_id),
                "handle": bot.handle,
                "source": "agent",
            }
            return self.job_queue.enqueue(jobs.GENERATE_POST, bot_id, payload).id

        if action.needs_target and not decision.target_id:
            self.logger.info("%s for %s has no target; skipping side effect", action.value, bot_id)
            return None

        if action is AgentAction.RESPOND_TO_COMMENT:
            payload = {"comment_id": decision.target_id, "context_hint": decision.context_hint}
            return self.job_queue.enqueue(jobs.RESPOND_TO_COMMENT, bot_id, payload).id

        if action is AgentAction.RESPOND_TO_POST:
            payload = {"post_id": decision.target_id, "context_hint": decision.context_hint}
            return self.job_queue.enqueue(jobs.RESPOND_TO_POST, bot_id, payload).id

        if action is AgentAction.LIKE_POST:
            bot = self.store.get_bot(bot_id)
            if bot is None:
                self.logger.warning("Bot %s vanished before LIKE_POST; nothing liked", bot_id)
                return None
            try:
                self.store.create_like(bot.owner_id, decision.target_id, origin="SYSTEM")
            except DuplicateSideEffect:
                self.logger.info("Post %s already liked by %s", decision.target_id, bot_id)
            except MissingTarget:
                self.logger.info("Post %s is gone; %s skips the like", decision.target_id, bot_id)
        return None
