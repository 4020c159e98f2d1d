"""
Snapshot publishing for long-lived services.

The store and the gateway expose their observable fields two ways: a
`state` property returning an immutable pydantic snapshot (safe to poll),
and subscribe(listener) for push updates after every change.
"""

import logging
from typing import Callable, Generic, List, TypeVar

from pydantic import BaseModel

logger = logging.getLogger("DeepReview.Observable")

S = TypeVar("S", bound=BaseModel)


class StatePublisher(Generic[S]):
    """Mixin: subclasses implement `state` and call _publish() after changes."""

    def __init__(self) -> None:
        self._listeners: List[Callable[[S], None]] = []

    @property
    def state(self) -> S:
        raise NotImplementedError

    def subscribe(self, listener: Callable[[S], None]) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self) -> None:
        if not self._listeners:
            return
        snapshot = self.state
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:  # pylint: disable=broad-except
                logger.exception(f"State listener {listener!r} failed")
