import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

RECEIVED_COMMENT = "RECEIVED_COMMENT"
REPLIED = "REPLIED"
POST_PUBLISHED = "POST_PUBLISHED"


@dataclass(frozen=True)
class BotEvent:
    """
    One entry of a bot's append-only event stream. Types the life engine does
    not know about are carried through and ignored.
    """

    id: str
    type: str
    actor_id: Optional[str] = None
    target_id: Optional[str] = None
    tags: Tuple[str, ...] = ()
    sentiment: Optional[float] = None
    payload: Dict[str, Any] = field(default_factory=dict)
    created_at: float = field(default_factory=time.time)
