"""
Process entrypoint for the agent worker. Polls for bots whose next cycle is
due and runs perceive -> decide -> act for each of them.
"""

import asyncio
import logging

from rudo_core.audit import build_logger
from rudo_core.config import RuntimeConfig
from rudo_core.cycle import AgentCycle, CycleRunner
from rudo_core.decision import DecisionEngine
from rudo_core.dispatcher import ActionDispatcher
from rudo_core.jobs import SQLiteJobQueue
from rudo_core.llm import OpenAIGenerator
from rudo_core.memory import MemoryStore
from rudo_core.perception import PerceptionBuilder
from rudo_core.store import SQLiteStateStore
from rudo_core.world_events import WorldEventsCache


def build_runner(config: RuntimeConfig) -> CycleRunner:
    store = SQLiteStateStore(config)
    perception = PerceptionBuilder(
        config,
        store,
        MemoryStore(config),
        world_events=WorldEventsCache(ttl_seconds=config.world_events_ttl_seconds),
    )
    cycle = AgentCycle(
        store=store,
        perception=perception,
        decision=DecisionEngine(config, OpenAIGenerator(config)),
        dispatcher=ActionDispatcher(store, SQLiteJobQueue(config), config),
        audit_logger=build_logger(config),
    )
    return CycleRunner(cycle, store, config)


async def main() -> None:
    config = RuntimeConfig.from_env()
    runner = build_runner(config)
    try:
        await runner.serve()
    finally:
        runner.stop()
        runner.cycle.perception.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("[SHUTDOWN] Received interrupt; exiting cleanly.", flush=True)
