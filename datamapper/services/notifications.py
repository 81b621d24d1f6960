"""Named notification channels."""
import logging
import threading
from typing import Any, Callable, List

logger = logging.getLogger(__name__)

Listener = Callable[..., Any]


class NotificationChannel:
    """
    Synchronous publish/subscribe channel with a fixed name.

    Listeners run on the publishing thread, in subscription order. A failing
    listener is logged and does not stop delivery to the others.
    """

    def __init__(self, name: str):
        self.name = name
        self._listeners: List[Listener] = []
        self._lock = threading.RLock()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a listener.

        Returns:
            Callable that removes the listener again
        """
        with self._lock:
            self._listeners.append(listener)
            logger.debug(f"Listener added to {self.name} (total: {len(self._listeners)})")

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def publish(self, *args: Any) -> None:
        # Copy under lock; listeners may unsubscribe while being notified
        with self._lock:
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(*args)
            except Exception:
                logger.exception(f"Listener on {self.name} failed")

    def __len__(self) -> int:
        return len(self._listeners)
