"""Optional desktop notification and audio capabilities.

Both are best effort: absence of support, a denied permission or a failing
device must never affect fetching or transitions.
"""
from __future__ import annotations
import logging
from typing import Any, Callable, Optional, Protocol

logger = logging.getLogger(__name__)

PERMISSION_DEFAULT = 'default'
PERMISSION_GRANTED = 'granted'
PERMISSION_DENIED = 'denied'


class NotificationCapability(Protocol):
    def request_permission(self) -> str: ...

    def current_permission(self) -> str: ...

    def notify(self, title: str, body: str) -> Any: ...


class AudioCapability(Protocol):
    def play(self) -> Any: ...


class NullNotifier:
    """Stand-in when the platform has no notification support."""

    def request_permission(self) -> str:
        return PERMISSION_DENIED

    def current_permission(self) -> str:
        return PERMISSION_DENIED

    def notify(self, title: str, body: str):
        return None


class NullAudio:
    def play(self):
        return None


def best_effort(action: Callable[[], Any], label: str) -> Optional[Any]:
    """Run action, logging and discarding any failure."""
    try:
        return action()
    except Exception as exc:
        logger.info('%s skipped: %s', label, exc)
        return None
