from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from backoffice.models.order import Order
from backoffice.orders.errors import OrderWorkflowError
from backoffice.utils.fsm import ORDER_FSM
from backoffice.orders.gestures import (
    GestureRecognizer,
    PointerProfile,
    MOUSE_PROFILE,
    INTENT_CLICK,
    INTENT_DROP,
)

logger = logging.getLogger(__name__)

COLUMNS = [
    (Order.STATUS_RECIBIDO, 'Received'),
    (Order.STATUS_EN_PREPARACION, 'In Preparation'),
    (Order.STATUS_LISTO, 'Ready'),
    (Order.STATUS_ENTREGADO, 'Delivered'),
]
COLUMN_TITLES = dict(COLUMNS)

PLACEHOLDERS_PER_COLUMN = 3
CARD_ITEM_PREVIEW = 3
DRAGGING_OPACITY = 0.5

TOAST_DEFAULT = 'default'
TOAST_SUCCESS = 'success'
TOAST_DESTRUCTIVE = 'destructive'


@dataclass(frozen=True)
class Toast:
    title: str
    description: str
    variant: str = TOAST_DEFAULT

    def as_dict(self):
        return {'title': self.title, 'description': self.description, 'variant': self.variant}


# Fallback chain for the time shown on a card, most specific first
_CARD_TIMESTAMP_FIELDS = {
    Order.STATUS_RECIBIDO: ('created_at',),
    Order.STATUS_EN_PREPARACION: ('started_at', 'created_at'),
    Order.STATUS_LISTO: ('ready_at', 'started_at', 'created_at'),
    Order.STATUS_ENTREGADO: ('delivered_at', 'ready_at', 'started_at', 'created_at'),
}


def relevant_timestamp(order: Dict[str, Any]):
    for field in _CARD_TIMESTAMP_FIELDS.get(order.get('status'), ('created_at',)):
        if order.get(field):
            return order[field]
    return None


def customer_name(order: Dict[str, Any]) -> Optional[str]:
    user = order.get('user')
    if not user:
        return None
    name = f"{user.get('first_name') or ''} {user.get('last_name') or ''}".strip()
    return name or None


def card_view(order: Dict[str, Any]) -> Dict[str, Any]:
    details = order.get('details') or []
    items = []
    for d in details[:CARD_ITEM_PREVIEW]:
        product = d.get('product') or {}
        variant = product.get('variant')
        items.append({
            'quantity': d.get('quantity'),
            'name': product.get('name'),
            'variant': variant.get('name') if variant else None,
        })
    return {
        'id': order['id'],
        'status': order['status'],
        'timestamp': relevant_timestamp(order),
        'customer': customer_name(order),
        'items': items,
        'more_items': max(0, len(details) - CARD_ITEM_PREVIEW),
        'total': order.get('total'),
    }


def build_columns(orders: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Partition orders by status into the four fixed columns, preserving list order."""
    buckets: Dict[str, List[Dict[str, Any]]] = {status: [] for status, _ in COLUMNS}
    for order in orders:
        bucket = buckets.get(order.get('status'))
        if bucket is None:
            logger.warning('Order %s has unknown status %r; not placed on the board', order.get('id'), order.get('status'))
            continue
        bucket.append(order)
    return [
        {'status': status, 'title': title, 'count': len(buckets[status]), 'cards': buckets[status]}
        for status, title in COLUMNS
    ]


def placeholder_columns() -> List[Dict[str, Any]]:
    return [
        {'status': status, 'title': title, 'count': 0, 'placeholders': PLACEHOLDERS_PER_COLUMN, 'cards': []}
        for status, title in COLUMNS
    ]


class KanbanBoard:
    """Turns drag gestures over the four columns into store transitions."""

    def __init__(self, store, profile: PointerProfile = MOUSE_PROFILE):
        self.store = store
        self.profile = profile
        self.active_id: Optional[int] = None
        self._gesture: Optional[GestureRecognizer] = None
        self._gesture_order_id: Optional[int] = None

    @property
    def is_dragging(self) -> bool:
        return self.active_id is not None

    # --- drag protocol ---

    def drag_start(self, order_id: int):
        self.active_id = order_id

    def drag_cancel(self):
        self.active_id = None

    def drag_end(self, target_status: Optional[str]) -> Optional[Toast]:
        """Finish a drag. Returns the toast to show, or None for a no-op drop."""
        order_id = self.active_id
        self.active_id = None
        # None or any non-column target: dropped outside the board
        if order_id is None or target_status not in COLUMN_TITLES:
            return None
        order = self.store.find_order(order_id)
        if order is None or ORDER_FSM.is_noop(order['status'], target_status):
            return None
        try:
            self.store.update_order_status(order_id, target_status)
        except OrderWorkflowError as e:
            return Toast('Error', e.message or 'Error updating the order status', TOAST_DESTRUCTIVE)
        title = COLUMN_TITLES[target_status]
        return Toast('Status updated', f'Order #{order_id} moved to {title}', TOAST_SUCCESS)

    def click(self, order: Dict[str, Any]) -> bool:
        if self.is_dragging:
            return False
        self.store.select_order(order)
        self.store.set_detail_view_open(True)
        return True

    # --- raw pointer input ---

    def press(self, order_id: int, x: float, y: float, t: float):
        self._gesture = GestureRecognizer(self.profile, x, y, t)
        self._gesture_order_id = order_id

    def move(self, x: float, y: float, t: float):
        if self._gesture is None:
            return
        was_dragging = self._gesture.is_dragging
        self._gesture.move(x, y, t)
        if self._gesture.is_dragging and not was_dragging:
            self.drag_start(self._gesture_order_id)

    def tick(self, t: float):
        if self._gesture is None:
            return
        was_dragging = self._gesture.is_dragging
        self._gesture.tick(t)
        if self._gesture.is_dragging and not was_dragging:
            self.drag_start(self._gesture_order_id)

    def release(self, t: float, target_status: Optional[str] = None) -> Optional[Toast]:
        """End the pointer sequence over `target_status` (None when outside every column)."""
        gesture, order_id = self._gesture, self._gesture_order_id
        self._gesture = None
        self._gesture_order_id = None
        if gesture is None:
            return None
        was_dragging = gesture.is_dragging
        intent = gesture.release(t)
        if intent == INTENT_DROP:
            if not was_dragging:
                self.drag_start(order_id)
            return self.drag_end(target_status)
        if intent == INTENT_CLICK:
            order = self.store.find_order(order_id)
            if order is not None:
                self.click(order)
        return None

    # --- rendering ---

    def card_state(self, order_id: int) -> Dict[str, Any]:
        dragging = order_id == self.active_id
        return {'dragging': dragging, 'opacity': DRAGGING_OPACITY if dragging else 1.0}

    def overlay(self) -> Optional[Dict[str, Any]]:
        if self.active_id is None:
            return None
        order = self.store.find_order(self.active_id)
        return card_view(order) if order is not None else None

    def render(self) -> Dict[str, Any]:
        if self.store.loading:
            columns = placeholder_columns()
        else:
            columns = []
            for column in build_columns(self.store.orders):
                cards = [dict(card_view(o), **self.card_state(o['id'])) for o in column['cards']]
                columns.append(dict(column, cards=cards))
        return {
            'columns': columns,
            'error': self.store.error,
            'overlay': self.overlay(),
            'pointer': self.profile.as_dict(),
        }
