import asyncio
import logging
import time
from typing import Callable, List, Optional, Set

from .actions import AgentCycleResult
from .audit import log_cycle
from .brain import BrainTraits
from .config import RuntimeConfig
from .decision import DecisionEngine
from .dispatcher import ActionDispatcher
from .perception import PerceptionBuilder
from .store import StateStore


class AgentCycle:
    """One perceive -> decide -> act pass for a single bot."""

    def __init__(
        self,
        store: StateStore,
        perception: PerceptionBuilder,
        decision: DecisionEngine,
        dispatcher: ActionDispatcher,
        audit_logger: Optional[logging.Logger] = None,
    ):
        self.store = store
        self.perception = perception
        self.decision = decision
        self.dispatcher = dispatcher
        self.audit_logger = audit_logger
        self.logger = logging.getLogger("rudo.cycle")

    async def _load_brain(self, bot_id: str) -> Optional[BrainTraits]:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, self.store.get_brain, bot_id)
        except Exception as exc:
            self.logger.warning("Brain unavailable for %s; deciding without it: %s", bot_id, exc)
            return None

    async def run(self, bot_id: str) -> AgentCycleResult:
        brain = await self._load_brain(bot_id)
        context = await self.perception.perceive(bot_id, brain)
        decision = await self.decision.decide(context, brain)
        result = await self.dispatcher.act(bot_id, decision, context.cooldown_minutes)

        self.logger.info(
            "[CYCLE] @%s -> %s (%s): %s",
            context.handle,
            decision.action.value,
            decision.priority.value,
            decision.reasoning,
        )
        if self.audit_logger is not None:
            log_cycle(self.audit_logger, result, decision, context.summary())
        return result


class CycleRunner:
    """
    Runs cycles for bots whose next_cycle_at has elapsed. At most one cycle
    per bot is in flight; a failing bot is logged and the rest carry on.
    """

    def __init__(
        self,
        cycle: AgentCycle,
        store: StateStore,
        config: RuntimeConfig,
        clock: Callable[[], float] = time.time,
    ):
        self.cycle = cycle
        self.store = store
        self.config = config
        self.clock = clock
        self.running = False
        self._in_flight: Set[str] = set()
        self.logger = logging.getLogger("rudo.cycle")

    @property
    def in_flight(self) -> Set[str]:
        return set(self._in_flight)

    async def trigger(self, bot_id: str, semaphore: Optional[asyncio.Semaphore] = None) -> Optional[AgentCycleResult]:
        if bot_id in self._in_flight:
            self.logger.info("Cycle for %s already running; skipping", bot_id)
            return None
        self._in_flight.add(bot_id)
        try:
            if semaphore is None:
                return await self.cycle.run(bot_id)
            async with semaphore:
                return await self.cycle.run(bot_id)
        except Exception:
            self.logger.exception("Cycle failed for %s", bot_id)
            return None
        finally:
            self._in_flight.discard(bot_id)

    async def run_due(self, limit: int = 50) -> List[AgentCycleResult]:
        loop = asyncio.get_running_loop()
        due = await loop.run_in_executor(None, self.store.due_bots, self.clock(), limit)
        if not due:
            return []
        semaphore = asyncio.Semaphore(max(1, self.config.max_concurrent_cycles))
        results = await asyncio.gather(*(self.trigger(bot_id, semaphore) for bot_id in due))
        return [r for r in results if r is not None]

    async def serve(self) -> None:
        self.running = True
        self.logger.info("Cycle runner started; polling every %.0fs", self.config.worker_poll_seconds)
        while self.running:
            try:
                results = await self.run_due()
                if results:
                    self.logger.info("Completed %d cycle(s)", len(results))
            except asyncio.CancelledError:
                raise
            except Exception:
                self.logger.exception("Due-bot sweep failed; retrying next poll")
            await asyncio.sleep(self.config.worker_poll_seconds)

    def stop(self) -> None:
        self.running = False
