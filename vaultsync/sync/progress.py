"""Progress event registry for sync sessions."""

import logging
from typing import Callable

from .models import SyncProgressState

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[SyncProgressState], None]


class ProgressBroadcaster:
    """Delivers progress events to subscribed callbacks.

    Callbacks are invoked synchronously in subscription order, so an event
    is fully delivered before ``emit`` returns.
    """

    def __init__(self) -> None:
        self._callbacks: list[ProgressCallback] = []

    def subscribe(self, callback: ProgressCallback) -> Callable[[], None]:
        """Register a callback.

        Returns:
            A function that unsubscribes the callback
        """
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    def emit(self, state: SyncProgressState) -> None:
        logger.debug(f"Progress {state.current}/{state.total}: {state.message}")
        for callback in list(self._callbacks):
            callback(state)
