"""Best-effort group event fan-out.

The real-time relay subscribes here. Delivery is fire-and-forget: a
failing listener is logged and never affects the operation that
published the event.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

Listener = Callable[[int, str, Dict[str, Any]], None]


class GroupEventBroadcaster:
    """In-process publish/subscribe hub keyed by group id."""

    def __init__(self):
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener and return a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def publish(self, group_id: int, event: str, payload: Optional[Dict[str, Any]] = None) -> int:
        """
        Deliver an event to every listener.

        Returns:
            Number of listeners that accepted the event
        """
        delivered = 0
        for listener in list(self._listeners):
            try:
                listener(group_id, event, payload or {})
            except Exception:
                logger.warning(
                    "Listener %r failed for event %s on group %s",
                    listener, event, group_id, exc_info=True
                )
                continue
            delivered += 1
        return delivered


broadcaster = GroupEventBroadcaster()
