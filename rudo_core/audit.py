import json
import logging
from typing import Any, Dict, Optional

from .actions import AgentCycleResult, AgentDecision
from .config import RuntimeConfig


def build_logger(config: RuntimeConfig) -> logging.Logger:
    config.ensure_paths()
    logger = logging.getLogger("rudo.audit")
    if logger.handlers:
        return logger
    logger.setLevel(logging.INFO)
    handler = logging.FileHandler(config.audit_log_path, encoding="utf-8")
    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    return logger


def log_cycle(
    logger: logging.Logger,
    result: AgentCycleResult,
    decision: AgentDecision,
    perception: Optional[Dict[str, Any]] = None,
) -> None:
    payload = {
        "cycle": result.to_dict(),
        "decision": decision.to_dict(),
        "perception": perception or {},
    }
    logger.info(json.dumps(payload, default=str))
