from __future__ import annotations
from datetime import date, datetime, tzinfo
from typing import Any, Dict, List, Optional, Union
from zoneinfo import ZoneInfo

from backoffice.models.order import Order
from backoffice.orders.errors import InvalidDateFilterError
from backoffice.orders.kanban import customer_name

DEFAULT_LOCAL_TZ = 'America/Lima'

EMPTY_NONE_DELIVERED = 'No delivered orders have been recorded yet.'
EMPTY_NO_MATCH = 'No delivered orders were found for the selected date.'


def parse_date_filter(value: Union[None, str, date]) -> Optional[date]:
    """Accept a date, an ISO YYYY-MM-DD string, or an empty value (no filter)."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        raise InvalidDateFilterError()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            raise InvalidDateFilterError()
    raise InvalidDateFilterError()


def local_date(dt: datetime, tz: tzinfo) -> date:
    return dt.astimezone(tz).date()


def is_delivered(order: Dict[str, Any]) -> bool:
    return order.get('status') == Order.STATUS_ENTREGADO and order.get('delivered_at') is not None


def delivered_orders(orders: List[Dict[str, Any]], date_filter: Optional[date] = None,
                     tz: Optional[tzinfo] = None) -> List[Dict[str, Any]]:
    """Delivered orders in list order, optionally restricted to one local calendar date."""
    tz = tz or ZoneInfo(DEFAULT_LOCAL_TZ)
    out = [o for o in orders if is_delivered(o)]
    if date_filter is None:
        return out
    return [o for o in out if local_date(o['delivered_at'], tz) == date_filter]


class DeliveredHistoryView:
    """Read-only projection of the store's delivered orders."""

    def __init__(self, store, tz: Union[None, str, tzinfo] = None):
        self.store = store
        if tz is None or isinstance(tz, str):
            tz = ZoneInfo(tz or DEFAULT_LOCAL_TZ)
        self.tz = tz
        self.date_filter: Optional[date] = None

    def set_date_filter(self, value: Union[None, str, date]):
        self.date_filter = parse_date_filter(value)

    def clear_filter(self):
        self.date_filter = None

    def orders(self) -> List[Dict[str, Any]]:
        return delivered_orders(self.store.orders, self.date_filter, self.tz)

    def rows(self) -> List[Dict[str, Any]]:
        return [
            {
                'id': o['id'],
                'customer': customer_name(o) or 'Customer',
                'total': o.get('total'),
                'delivered_at': o['delivered_at'],
            }
            for o in self.orders()
        ]

    def empty_message(self) -> Optional[str]:
        if self.orders():
            return None
        if self.date_filter is not None:
            return EMPTY_NO_MATCH
        return EMPTY_NONE_DELIVERED

    def render(self) -> Dict[str, Any]:
        return {
            'date': self.date_filter.isoformat() if self.date_filter else None,
            'rows': self.rows(),
            'empty_message': self.empty_message(),
        }
