from __future__ import annotations
import logging
import threading
from typing import Any, Dict, List, Optional

from backoffice.datastore.changefeed import ChangeFeed
from backoffice.orders.errors import OrderWorkflowError, SubscriptionError
from backoffice.orders.listener import RealtimeListener
from backoffice.orders.repository import OrderRepository

logger = logging.getLogger(__name__)


class OrderStore:
    """Single owner of order state for one staff session.

    Local order state only ever holds what the server returned: a status change
    waits for the repository and then refetches, it never edits `orders` first.
    """

    def __init__(self, repository: OrderRepository, feed: Optional[ChangeFeed] = None,
                 notifier=None, audio=None):
        self.repository = repository
        self.orders: List[Dict[str, Any]] = []
        self.loading = False
        self.error: Optional[str] = None
        self.selected_order: Optional[Dict[str, Any]] = None
        self.is_detail_view_open = False
        self._lock = threading.RLock()
        self.listener = None
        if feed is not None:
            self.listener = RealtimeListener(feed, self.fetch_orders, notifier=notifier, audio=audio)

    # --- lifecycle ---

    @property
    def live(self) -> bool:
        return self.listener is not None and self.listener.is_subscribed

    def activate(self):
        """Mount: load, go live, then ask for notification permission."""
        self.fetch_orders()
        self.subscribe()
        if self.listener is not None:
            self.listener.request_notification_permission()

    def deactivate(self):
        self.unsubscribe()

    def subscribe(self) -> bool:
        if self.listener is None:
            return False
        try:
            self.listener.subscribe()
        except SubscriptionError as e:
            # pull-only mode: fetch_orders still works
            logger.warning('Realtime unavailable, falling back to manual refresh: %s', e)
            return False
        return True

    def unsubscribe(self) -> bool:
        if self.listener is None:
            return False
        return self.listener.unsubscribe()

    # --- reads ---

    def fetch_orders(self):
        with self._lock:
            self.loading = True
        try:
            orders = self.repository.fetch_all()
        except OrderWorkflowError as e:
            logger.error('Error fetching orders: %s', e.message)
            with self._lock:
                # keep the last known list on screen
                self.error = e.message
                self.loading = False
            return
        with self._lock:
            self.orders = orders
            self.error = None
            self.loading = False

    def find_order(self, order_id: int) -> Optional[Dict[str, Any]]:
        with self._lock:
            for order in self.orders:
                if order['id'] == order_id:
                    return order
        return None

    # --- writes ---

    def update_order_status(self, order_id: int, status: str):
        """The only status transition entry point. Raises on failure after recording `error`."""
        try:
            self.repository.update_status(order_id, status)
        except OrderWorkflowError as e:
            logger.error('Error updating order %s to %s: %s', order_id, status, e.message)
            with self._lock:
                self.error = e.message
            raise
        self.fetch_orders()

    def delete_all_orders(self, confirmed: bool = False) -> int:
        deleted = self.repository.delete_all(confirmed=confirmed)
        self.fetch_orders()
        return deleted

    # --- detail view state ---

    def select_order(self, order: Optional[Dict[str, Any]]):
        with self._lock:
            self.selected_order = order

    def set_detail_view_open(self, is_open: bool):
        with self._lock:
            self.is_detail_view_open = bool(is_open)

