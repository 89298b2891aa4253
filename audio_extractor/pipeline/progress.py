"""Progress channel between the orchestrator and its consumers."""

import logging
import threading
from typing import Callable, List

from .models import ProgressEvent

logger = logging.getLogger(__name__)

ProgressListener = Callable[[ProgressEvent], None]


class ProgressPublisher:
    """Fans batch-boundary progress events out to independent subscribers.

    A failing subscriber is logged and does not affect the run or the other
    subscribers.
    """

    def __init__(self):
        self._listeners: List[ProgressListener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: ProgressListener) -> Callable[[], None]:
        """Register ``listener``; returns a function that removes it again."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def publish(self, event: ProgressEvent) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Progress listener failed")

    @property
    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)
