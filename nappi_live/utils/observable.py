"""Single-writer observable values and swappable handler slots."""

import logging
from typing import Callable, Generic, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Observable(Generic[T]):
    """A value with one owner that writes it and any number of watchers.

    Watchers are called synchronously on change, in subscription order. A
    watcher that raises is logged and does not stop the others.
    """

    def __init__(self, initial: T):
        self._value = initial
        self._watchers: List[Callable[[T], None]] = []

    @property
    def value(self) -> T:
        return self._value

    # Used by: the owning component only
    def set(self, value: T) -> None:
        if value == self._value:
            return
        self._value = value
        for watcher in list(self._watchers):
            try:
                watcher(value)
            except Exception as e:
                logger.error(f"Observable watcher failed: {e}", exc_info=True)

    def subscribe(self, watcher: Callable[[T], None]) -> Callable[[], None]:
        """Returns an unsubscribe function."""
        self._watchers.append(watcher)

        def _unsubscribe() -> None:
            if watcher in self._watchers:
                self._watchers.remove(watcher)

        return _unsubscribe


class HandlerSlot(Generic[T]):
    """Holds the latest handler so it can be replaced without re-wiring its source."""

    def __init__(self, handler: Optional[Callable[[T], None]] = None):
        self._handler = handler

    def set(self, handler: Optional[Callable[[T], None]]) -> None:
        self._handler = handler

    def __call__(self, item: T) -> None:
        handler = self._handler
        if handler is not None:
            handler(item)
