"""In-process row change feed.

Writers publish one ChangeEvent per committed row mutation; subscribers group their
handlers in named channels, mirroring a hosted realtime service:

    channel = feed.channel('orders-realtime')
    channel.on('INSERT', 'orders', on_insert).on('UPDATE', 'orders', on_update)
    channel.subscribe(lambda status: print(status))   # SUBSCRIBED | CHANNEL_ERROR
    ...
    feed.remove_channel(channel)                     # idempotent

Callbacks run synchronously on the publishing thread, after the writer's commit.
A failing callback is logged and skipped; it never reaches the writer.
"""
from __future__ import annotations
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from backoffice.orders.errors import SubscriptionError

logger = logging.getLogger(__name__)

EVENT_INSERT = 'INSERT'
EVENT_UPDATE = 'UPDATE'
EVENT_DELETE = 'DELETE'
EVENT_TYPES = (EVENT_INSERT, EVENT_UPDATE, EVENT_DELETE)

STATUS_SUBSCRIBED = 'SUBSCRIBED'
STATUS_CHANNEL_ERROR = 'CHANNEL_ERROR'
STATUS_CLOSED = 'CLOSED'


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    event_type: str
    new: Dict[str, Any] = field(default_factory=dict)
    old: Optional[Dict[str, Any]] = None
    committed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class Channel:
    def __init__(self, feed: 'ChangeFeed', name: str):
        self.feed = feed
        self.name = name
        self.state = 'idle'
        self._handlers: List[Tuple[str, str, Callable[[ChangeEvent], Any]]] = []
        self._status_callback: Optional[Callable[[str], Any]] = None

    def on(self, event_type: str, table: str, callback: Callable[[ChangeEvent], Any]) -> 'Channel':
        if event_type not in EVENT_TYPES:
            raise ValueError(f'Unknown event type {event_type}')
        self._handlers.append((event_type, table, callback))
        return self

    def subscribe(self, status_callback: Optional[Callable[[str], Any]] = None) -> 'Channel':
        self._status_callback = status_callback
        try:
            self.feed._join(self)
        except SubscriptionError:
            self.state = 'errored'
            self._report(STATUS_CHANNEL_ERROR)
            raise
        self.state = 'joined'
        self._report(STATUS_SUBSCRIBED)
        return self

    @property
    def is_joined(self) -> bool:
        return self.state == 'joined'

    def handles(self, event: ChangeEvent):
        return [cb for ev, table, cb in self._handlers if ev == event.event_type and table == event.table]

    def _report(self, status: str):
        if self._status_callback is None:
            return
        try:
            self._status_callback(status)
        except Exception:
            logger.exception('Channel %s status callback failed', self.name)


class ChangeFeed:
    def __init__(self):
        self._lock = threading.Lock()
        self._channels: List[Channel] = []
        self._closed = False

    def channel(self, name: str) -> Channel:
        return Channel(self, name)

    def _join(self, channel: Channel):
        with self._lock:
            if self._closed:
                raise SubscriptionError('change feed is closed')
            if channel not in self._channels:
                self._channels.append(channel)

    def remove_channel(self, channel: Optional[Channel]) -> bool:
        """Detach a channel. Returns False when it was not attached (already removed)."""
        if channel is None:
            return False
        with self._lock:
            attached = channel in self._channels
            if attached:
                self._channels.remove(channel)
        if attached:
            channel.state = 'closed'
            channel._report(STATUS_CLOSED)
        return attached

    def active_channels(self) -> List[Channel]:
        with self._lock:
            return list(self._channels)

    def publish(self, table: str, event_type: str, new: Optional[Dict[str, Any]] = None,
                old: Optional[Dict[str, Any]] = None) -> int:
        """Deliver an event to every matching handler. Returns the number of handlers invoked."""
        event = ChangeEvent(table=table, event_type=event_type, new=dict(new or {}), old=old)
        delivered = 0
        for channel in self.active_channels():
            for callback in channel.handles(event):
                delivered += 1
                try:
                    callback(event)
                except Exception:
                    logger.exception('Change handler on channel %s failed for %s %s', channel.name, event_type, table)
        return delivered

    def close(self):
        with self._lock:
            self._closed = True
            channels = list(self._channels)
            self._channels.clear()
        for channel in channels:
            channel.state = 'closed'
            channel._report(STATUS_CLOSED)
