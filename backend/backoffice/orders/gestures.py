"""Drag-versus-click disambiguation for kanban cards.

Pure logic: callers feed pointer samples (position in px, time in ms) and read
back the recognised intent. Device detection only selects a PointerProfile; the
recognizer itself behaves the same for every device class.

Mouse:  a drag starts once the pointer travels `distance` px from the press.
Touch:  a drag starts once the press is held `delay` ms without drifting more
        than `tolerance` px; drifting earlier means the user is scrolling.
"""
from __future__ import annotations
import math
import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from backoffice.config.gestures import (
    DEFAULT_MOUSE_DISTANCE,
    DEFAULT_TOUCH_DELAY_MS,
    DEFAULT_TOUCH_TOLERANCE,
)

KIND_MOUSE = 'mouse'
KIND_TOUCH = 'touch'

MOBILE_UA_PATTERN = re.compile(r'Android|webOS|iPhone|iPad|iPod|BlackBerry|IEMobile|Opera Mini', re.IGNORECASE)

STATE_PENDING = 'pending'
STATE_DRAGGING = 'dragging'
STATE_CANCELLED = 'cancelled'

INTENT_CLICK = 'click'
INTENT_DROP = 'drop'
INTENT_NONE = 'none'


@dataclass(frozen=True)
class PointerProfile:
    kind: str
    distance: int = 0
    delay: int = 0
    tolerance: int = 0

    def as_dict(self):
        return {'kind': self.kind, 'distance': self.distance, 'delay': self.delay, 'tolerance': self.tolerance}


MOUSE_PROFILE = PointerProfile(KIND_MOUSE, distance=DEFAULT_MOUSE_DISTANCE)
TOUCH_PROFILE = PointerProfile(KIND_TOUCH, delay=DEFAULT_TOUCH_DELAY_MS, tolerance=DEFAULT_TOUCH_TOLERANCE)


def profiles_from_config(config: Mapping[str, Any]):
    mouse = PointerProfile(KIND_MOUSE, distance=int(config.get('GESTURE_MOUSE_DISTANCE', DEFAULT_MOUSE_DISTANCE)))
    touch = PointerProfile(
        KIND_TOUCH,
        delay=int(config.get('GESTURE_TOUCH_DELAY_MS', DEFAULT_TOUCH_DELAY_MS)),
        tolerance=int(config.get('GESTURE_TOUCH_TOLERANCE', DEFAULT_TOUCH_TOLERANCE)),
    )
    return mouse, touch


def is_touch_device(has_touch: bool = False, max_touch_points: int = 0, user_agent: Optional[str] = None) -> bool:
    if has_touch or (max_touch_points or 0) > 0:
        return True
    return bool(user_agent and MOBILE_UA_PATTERN.search(user_agent))


def detect_profile(has_touch: bool = False, max_touch_points: int = 0, user_agent: Optional[str] = None,
                   mouse: PointerProfile = MOUSE_PROFILE, touch: PointerProfile = TOUCH_PROFILE) -> PointerProfile:
    return touch if is_touch_device(has_touch, max_touch_points, user_agent) else mouse


class GestureRecognizer:
    """One press-move-release sequence on one card."""

    def __init__(self, profile: PointerProfile, x: float, y: float, t: float):
        self.profile = profile
        self.origin = (x, y)
        self.started_at = t
        self.state = STATE_PENDING

    def _travel(self, x: float, y: float) -> float:
        return math.hypot(x - self.origin[0], y - self.origin[1])

    def _held_long_enough(self, t: float) -> bool:
        return t - self.started_at >= self.profile.delay

    def move(self, x: float, y: float, t: float) -> str:
        if self.state != STATE_PENDING:
            return self.state
        travel = self._travel(x, y)
        if self.profile.kind == KIND_TOUCH:
            if self._held_long_enough(t):
                # earlier samples stayed within tolerance or we would be cancelled
                self.state = STATE_DRAGGING
            elif travel > self.profile.tolerance:
                self.state = STATE_CANCELLED
        elif travel >= self.profile.distance:
            self.state = STATE_DRAGGING
        return self.state

    def tick(self, t: float) -> str:
        """Time passing without movement; activates a held touch press."""
        if self.state == STATE_PENDING and self.profile.kind == KIND_TOUCH and self._held_long_enough(t):
            self.state = STATE_DRAGGING
        return self.state

    def release(self, t: float) -> str:
        if self.state == STATE_PENDING:
            self.tick(t)
        if self.state == STATE_DRAGGING:
            return INTENT_DROP
        if self.state == STATE_PENDING:
            return INTENT_CLICK
        return INTENT_NONE

    @property
    def is_dragging(self) -> bool:
        return self.state == STATE_DRAGGING
