"""In-process message bus and user notices"""

import logging
from collections import defaultdict
from typing import Any, Callable


logger = logging.getLogger(__name__)

Listener = Callable[[Any], None]

DRAFT_ITEM_UPDATED = "draft-item-updated"
SELECTED_THEME_CHANGED = "selected-theme-changed"


class MessageService:
    """Named-channel broadcast between loosely coupled components."""

    def __init__(self):
        self._listeners: dict[str, list[Listener]] = defaultdict(list)

    def register(self, msg: str, listener: Listener) -> Callable[[], None]:
        """Subscribe listener to msg; returns a function that unsubscribes it."""
        self._listeners[msg].append(listener)
        return lambda: self.unregister(msg, listener)

    def unregister(self, msg: str, listener: Listener) -> None:
        listeners = self._listeners.get(msg)
        if not listeners:
            return
        remaining = [fn for fn in listeners if fn is not listener]
        if remaining:
            self._listeners[msg] = remaining
        else:
            del self._listeners[msg]

    def send(self, msg: str, data: Any = None) -> None:
        for listener in list(self._listeners.get(msg, ())):
            listener(data)


class Notifier:
    """User-facing notices; notify_once suppresses repeats of the same failure class."""

    def __init__(self, sink: Callable[[str], None] = None):
        self.sink = sink
        self.sent: list[str] = []
        self._once: set[str] = set()

    def notify(self, message: str) -> None:
        logger.info("notice: %s", message)
        self.sent.append(message)
        if self.sink:
            self.sink(message)

    def notify_once(self, key: str, message: str) -> bool:
        """Send message unless key was already notified; returns True when sent."""
        if key in self._once:
            return False
        self._once.add(key)
        self.notify(message)
        return True

    def reset(self) -> None:
        self._once.clear()
