from __future__ import annotations
import logging
from typing import Any, Callable, Optional

from backoffice.datastore.changefeed import (
    ChangeFeed,
    Channel,
    ChangeEvent,
    EVENT_INSERT,
    EVENT_UPDATE,
    STATUS_SUBSCRIBED,
    STATUS_CHANNEL_ERROR,
)
from backoffice.orders.alerts import (
    NullNotifier,
    NullAudio,
    best_effort,
    PERMISSION_DEFAULT,
    PERMISSION_GRANTED,
)
from backoffice.orders.errors import SubscriptionError

logger = logging.getLogger(__name__)

CHANNEL_NAME = 'orders-realtime'
ORDERS_TABLE = 'orders'


class RealtimeListener:
    """Keeps one change-feed subscription for an owner and refetches on every change.

    The listener owns a single subscription slot: subscribing again first releases
    whatever the slot holds.
    """

    def __init__(self, feed: ChangeFeed, refetch: Callable[[], Any], notifier=None, audio=None,
                 channel_name: str = CHANNEL_NAME):
        self.feed = feed
        self.refetch = refetch
        self.notifier = notifier or NullNotifier()
        self.audio = audio or NullAudio()
        self.channel_name = channel_name
        self._channel: Optional[Channel] = None
        self._permission_requested = False
        self.last_status: Optional[str] = None

    @property
    def handle(self) -> Optional[Channel]:
        return self._channel

    @property
    def is_subscribed(self) -> bool:
        return self._channel is not None and self._channel.is_joined

    def subscribe(self) -> Channel:
        self.unsubscribe()
        channel = (
            self.feed.channel(self.channel_name)
            .on(EVENT_INSERT, ORDERS_TABLE, self._on_insert)
            .on(EVENT_UPDATE, ORDERS_TABLE, self._on_update)
        )
        try:
            channel.subscribe(self._on_status)
        except SubscriptionError:
            logger.error('Error subscribing to orders')
            raise
        self._channel = channel
        return channel

    def unsubscribe(self, handle: Optional[Channel] = None) -> bool:
        channel = handle if handle is not None else self._channel
        if channel is None:
            return False
        removed = self.feed.remove_channel(channel)
        if channel is self._channel:
            self._channel = None
        return removed

    def request_notification_permission(self) -> Optional[str]:
        """Ask once, and only while the user has not decided yet."""
        if self._permission_requested:
            return None
        self._permission_requested = True
        current = best_effort(self.notifier.current_permission, 'Notification permission query')
        if current != PERMISSION_DEFAULT:
            return current
        return best_effort(self.notifier.request_permission, 'Notification permission request')

    def _on_status(self, status: str):
        self.last_status = status
        if status == STATUS_SUBSCRIBED:
            logger.info('Successfully subscribed to orders')
        elif status == STATUS_CHANNEL_ERROR:
            logger.error('Error subscribing to orders')

    def _on_insert(self, event: ChangeEvent):
        order_id = event.new.get('id')
        best_effort(self.audio.play, 'New order sound')
        if best_effort(self.notifier.current_permission, 'Notification permission query') == PERMISSION_GRANTED:
            best_effort(lambda: self.notifier.notify('New order', f'Order #{order_id} received'), 'New order notification')
        self.refetch()

    def _on_update(self, event: ChangeEvent):
        self.refetch()
