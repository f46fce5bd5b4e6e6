from __future__ import annotations
from typing import Any, Dict, List, Optional

from backoffice.orders.kanban import COLUMNS, customer_name
from backoffice.utils.fsm import ORDER_FSM

# every status is offered, not only forward-reachable ones
STATUS_OPTIONS = [{'value': status, 'label': label} for status, label in COLUMNS]

TIMELINE_STEPS = [
    ('created_at', 'Order received'),
    ('started_at', 'Preparation started'),
    ('ready_at', 'Order ready'),
    ('delivered_at', 'Order delivered'),
]


def build_timeline(order: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [
        {'field': field, 'label': label, 'at': order[field]}
        for field, label in TIMELINE_STEPS
        if order.get(field)
    ]


def _line_item(d: Dict[str, Any]) -> Dict[str, Any]:
    product = d.get('product') or {}
    variant = product.get('variant') or {}
    ingredients = d.get('ingredients') or []
    return {
        'quantity': d.get('quantity'),
        'product': product.get('name') or 'Product',
        'variant': variant.get('name') or 'Standard',
        'ingredients': ', '.join(i['name'] for i in ingredients if i.get('name')) or None,
        'unit_price': d.get('unit_price'),
        'subtotal': d.get('subtotal'),
    }


def describe_order(order: Dict[str, Any]) -> Dict[str, Any]:
    user = order.get('user')
    customer = None
    if user:
        customer = {'name': customer_name(order), 'faculty_id': user.get('faculty_id')}
    return {
        'id': order['id'],
        'status': order['status'],
        'status_options': STATUS_OPTIONS,
        'timeline': build_timeline(order),
        'customer': customer,
        'items': [_line_item(d) for d in order.get('details') or []],
        'total': order.get('total'),
    }


class OrderDetailView:
    """Drawer over the store's selected order."""

    def __init__(self, store):
        self.store = store

    @property
    def order(self) -> Optional[Dict[str, Any]]:
        return self.store.selected_order

    @property
    def is_open(self) -> bool:
        return self.store.is_detail_view_open and self.store.selected_order is not None

    def open(self, order: Dict[str, Any]):
        self.store.select_order(order)
        self.store.set_detail_view_open(True)

    def close(self):
        self.store.set_detail_view_open(False)
        self.store.select_order(None)

    def render(self) -> Optional[Dict[str, Any]]:
        if not self.is_open:
            return None
        return describe_order(self.order)

    def change_status(self, status: str) -> bool:
        """Same transition path as a drop. Returns False for the current status (no call made)."""
        order = self.order
        if order is None or ORDER_FSM.is_noop(order['status'], status):
            return False
        self.store.update_order_status(order['id'], status)
        refreshed = self.store.find_order(order['id'])
        if refreshed is not None:
            self.store.select_order(refreshed)
        return True
