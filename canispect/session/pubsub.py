"""Ordered publish/subscribe channel.

Delivery rules:

- listeners are called in subscription order, once per published value;
- unsubscribing never raises, takes effect immediately for the unsubscribed
  listener (it is skipped for the rest of the current pass) and never disturbs
  delivery to anyone else;
- subscriptions and publishes made from inside a listener are queued and only
  applied once the current pass has finished;
- a listener that raises is logged and delivery continues.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Listener = Callable[[T], None]
Unsubscribe = Callable[[], None]


class _Subscription(Generic[T]):
    __slots__ = ("listener", "active")

    def __init__(self, listener: Listener[T]) -> None:
        self.listener = listener
        self.active = True


class Channel(Generic[T]):
    """Publish/subscribe channel with re-entrancy queuing."""

    def __init__(self, name: str = "channel") -> None:
        self.name = name
        self._subscriptions: list[_Subscription[T]] = []
        self._pending_subscriptions: list[_Subscription[T]] = []
        self._pending_values: deque[T] = deque()
        self._delivering = False

    def __len__(self) -> int:
        return sum(1 for s in self._subscriptions + self._pending_subscriptions if s.active)

    def subscribe(self, listener: Listener[T]) -> Unsubscribe:
        """Register ``listener`` and return an idempotent unsubscribe callable."""
        subscription = _Subscription(listener)
        if self._delivering:
            self._pending_subscriptions.append(subscription)
        else:
            self._subscriptions.append(subscription)

        def unsubscribe() -> None:
            subscription.active = False
            if not self._delivering:
                self._compact()

        return unsubscribe

    def publish(self, value: T) -> None:
        """Deliver ``value`` to every active listener."""
        self._pending_values.append(value)
        if self._delivering:
            return

        self._delivering = True
        try:
            while self._pending_values:
                current = self._pending_values.popleft()
                for subscription in list(self._subscriptions):
                    if not subscription.active:
                        continue
                    try:
                        subscription.listener(current)
                    except Exception:
                        logger.exception("Listener %r on %s raised", subscription.listener, self.name)
                self._subscriptions.extend(self._pending_subscriptions)
                self._pending_subscriptions.clear()
                self._compact()
        finally:
            # a BaseException from a listener aborts the pass; drop what it left queued
            self._pending_values.clear()
            self._subscriptions.extend(self._pending_subscriptions)
            self._pending_subscriptions.clear()
            self._compact()
            self._delivering = False

    def _compact(self) -> None:
        self._subscriptions = [s for s in self._subscriptions if s.active]
