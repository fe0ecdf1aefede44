"""Observer list with unsubscribe handles."""

from __future__ import annotations

import logging
from typing import Callable, List

logger = logging.getLogger(__name__)

Unsubscribe = Callable[[], None]


class SubscriberList:
    def __init__(self, name: str) -> None:
        self._name = name
        self._callbacks: List[Callable] = []

    def __len__(self) -> int:
        return len(self._callbacks)

    def subscribe(self, callback: Callable) -> Unsubscribe:
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    def notify(self, *args: object) -> None:
        """Call every subscriber; a failing subscriber never stops the others."""
        # Iterate a copy so callbacks may unsubscribe during dispatch.
        for callback in list(self._callbacks):
            try:
                callback(*args)
            except Exception:
                logger.exception("Error in %s subscriber", self._name)

    def clear(self) -> None:
        self._callbacks.clear()
