"""In-process event dispatch for gameplay events.

Handlers run in registration order after the triggering write has been
flushed. A handler that keeps failing is retried up to ``max_attempts`` times
and then logged; ``dispatch`` never raises, so the write that produced the
event is never failed retroactively.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

CHALLENGE_COMPLETED_CHANNEL = "pubsub:challenge_completed"
KING_CHANGED_CHANNEL = "pubsub:king_changed"

Handler = Callable[[Any], Awaitable[None]]


@dataclass(frozen=True)
class SessionCreated:
    """A capture session was persisted."""

    session_id: int
    user_id: int
    poi_id: int
    seconds_earned: int


class EventDispatcher:
    """Maps event classes to async handlers."""

    def __init__(self, max_attempts: int = 3) -> None:
        self.max_attempts = max(1, max_attempts)
        self._handlers: dict[type, list[Handler]] = defaultdict(list)

    def register(self, event_type: type, handler: Handler) -> None:
        self._handlers[event_type].append(handler)

    def handlers_for(self, event_type: type) -> list[Handler]:
        return list(self._handlers.get(event_type, []))

    async def dispatch(self, event: object) -> int:
        """Run every handler for the event. Returns the number that failed."""
        failed = 0
        for handler in self.handlers_for(type(event)):
            if not await self._run(handler, event):
                failed += 1
        return failed

    async def _run(self, handler: Handler, event: object) -> bool:
        name = getattr(handler, "__qualname__", repr(handler))
        for attempt in range(1, self.max_attempts + 1):
            try:
                await handler(event)
                return True
            except Exception:
                if attempt < self.max_attempts:
                    logger.warning(
                        "Handler %s failed for %s (attempt %d/%d), retrying",
                        name, type(event).__name__, attempt, self.max_attempts,
                    )
                else:
                    logger.exception(
                        "Handler %s gave up on %s after %d attempts",
                        name, event, self.max_attempts,
                    )
        return False
