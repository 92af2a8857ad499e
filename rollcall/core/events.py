"""Mutation lifecycle tracking and failure notification.

Every write goes pending -> committed | failed. Failures are published to the
observers registered on ``error_emitter`` so the outer layer can surface a
transient notification; the ledger never reports state that was not committed.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import AsyncIterator, Callable, Dict, List, Optional

from rollcall.core.enums import MutationState

logger = logging.getLogger(__name__)


@dataclass
class MutationEvent:
    operation: str  # e.g. "fees.record_payment"
    reference: str  # e.g. student id
    state: MutationState = MutationState.PENDING
    actor: Optional[str] = None
    error: Optional[str] = None
    details: Dict[str, str] = field(default_factory=dict)
    at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


Listener = Callable[[MutationEvent], None]


class ErrorEmitter:
    """Minimal observer registry for failed mutations."""

    def __init__(self) -> None:
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def emit(self, event: MutationEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                # A broken listener must not mask the original failure
                logger.exception("Error listener failed for %s", event.operation)


error_emitter = ErrorEmitter()


@asynccontextmanager
async def track_mutation(
    operation: str,
    reference: str,
    actor: Optional[str] = None,
) -> AsyncIterator[MutationEvent]:
    """Wrap a write. Re-raises whatever the body raises after marking the event failed."""
    event = MutationEvent(operation=operation, reference=reference, actor=actor)
    logger.debug("%s %s: %s", operation, reference, event.state.value)
    try:
        yield event
    except Exception as e:
        event.state = MutationState.FAILED
        event.error = getattr(e, "message", None) or str(e)
        logger.warning("%s %s failed: %s", operation, reference, event.error)
        error_emitter.emit(event)
        raise
    event.state = MutationState.COMMITTED
    logger.info("%s %s committed by %s", operation, reference, actor or "unknown")
