"""
Subscriber Notification Channel.

Minimal observer used by the stores to publish state snapshots, and by
the auth gateways to push identity and session-validity changes.

Delivery is synchronous and unbuffered: a subscriber attached in the
middle of an operation only sees values published after it subscribed.

Usage:
    channel: NotificationChannel[SessionSnapshot] = NotificationChannel("session")
    subscription = channel.subscribe(render)
    channel.publish(snapshot)
    subscription.unsubscribe()
"""

from collections.abc import Callable
from typing import Generic, TypeVar

from notesync.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class Subscription:
    """Handle returned by subscribe(). unsubscribe() is idempotent."""

    def __init__(self, channel: "NotificationChannel", callback: Callable) -> None:
        self._channel: NotificationChannel | None = channel
        self._callback = callback

    @property
    def active(self) -> bool:
        return self._channel is not None

    def unsubscribe(self) -> None:
        if self._channel is None:
            return
        self._channel._remove(self)
        self._channel = None

    def _deliver(self, value: object) -> None:
        self._callback(value)


class NotificationChannel(Generic[T]):
    """Publishes values to every current subscriber, in subscription order."""

    def __init__(self, name: str = "channel") -> None:
        self.name = name
        self._subscriptions: list[Subscription] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(self, callback: Callable[[T], None]) -> Subscription:
        subscription = Subscription(self, callback)
        self._subscriptions.append(subscription)
        return subscription

    def publish(self, value: T) -> None:
        """
        Deliver a value to all subscribers.

        A failing subscriber is logged and skipped; the others still
        receive the value.
        """
        for subscription in list(self._subscriptions):
            if not subscription.active:
                continue
            try:
                subscription._deliver(value)
            except Exception:
                logger.exception(
                    "Subscriber raised during publish",
                    extra={"channel": self.name},
                )

    def clear(self) -> None:
        """Detach every subscriber."""
        for subscription in list(self._subscriptions):
            subscription.unsubscribe()

    def _remove(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
