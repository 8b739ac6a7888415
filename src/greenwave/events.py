"""Minimal publish/subscribe stream for telematics and flow events."""

import logging
import threading
from typing import Any, Callable, List, Optional

logger = logging.getLogger(__name__)


class EventStream:
    """
    Synchronous observer list.

    Events are delivered in emission order, at most once per subscriber, on the
    emitting thread. The most recent event is kept in `last_event`.
    """

    def __init__(self, name: str = "events"):
        self.name = name
        self._subscribers: List[Callable[[Any], None]] = []
        self._lock = threading.Lock()
        self.last_event: Optional[Any] = None

    def subscribe(self, callback: Callable[[Any], None]) -> Callable[[], None]:
        """
        Register a callback.

        Returns:
            A function that removes the subscription when called.
        """
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def emit(self, event: Any) -> None:
        with self._lock:
            self.last_event = event
            subscribers = list(self._subscribers)

        for callback in subscribers:
            try:
                callback(event)
            except Exception as e:
                logger.warning(f"Subscriber on {self.name} failed for {type(event).__name__}: {e}", exc_info=True)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)
