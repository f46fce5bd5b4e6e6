from __future__ import annotations
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from backoffice.datastore.orders import OrderTable
from backoffice.models.order import Order, OrderDetail
from backoffice.orders.errors import (
    RepositoryError,
    NotFoundOrForbiddenError,
    TransitionTransportError,
    ConfirmationRequiredError,
)
from backoffice.utils.fsm import ORDER_FSM

logger = logging.getLogger(__name__)


def as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Naive values coming back from the database are UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _detail_record(d: OrderDetail) -> Dict[str, Any]:
    product = d.product
    return {
        'id': d.id,
        'product_id': d.product_id,
        'product_variant_id': d.product_variant_id,
        'quantity': d.quantity,
        'unit_price': d.unit_price,
        'subtotal': d.subtotal,
        'product': {
            'name': product.name if product else None,
            'variant': {'name': d.variant.name} if d.variant else None,
        },
        # flatten detail -> ingredient join rows
        'ingredients': [
            {'name': link.ingredient.name, 'extra_price': link.ingredient.extra_price}
            for link in d.ingredients if link.ingredient is not None
        ],
    }


def order_record(o: Order) -> Dict[str, Any]:
    user = o.user
    return {
        'id': o.id,
        'user_uuid': o.user_uuid,
        'status': o.status,
        'total': o.total,
        'created_at': as_utc(o.created_at),
        'started_at': as_utc(o.started_at),
        'ready_at': as_utc(o.ready_at),
        'delivered_at': as_utc(o.delivered_at),
        'updated_at': as_utc(o.updated_at),
        'user': {
            'uuid': user.uuid,
            'first_name': user.first_name,
            'last_name': user.last_name,
            'faculty_id': user.faculty_id,
        } if user else None,
        'details': [_detail_record(d) for d in o.details],
    }


def validate_order_status(status: Any) -> str:
    return ORDER_FSM.assert_known(status)


class OrderRepository:
    """Translates persisted orders to plain dict records and back."""

    def __init__(self, table: OrderTable):
        self.table = table

    def fetch_all(self) -> List[Dict[str, Any]]:
        try:
            rows = self.table.select_all()
        except SQLAlchemyError as e:
            logger.warning('Order list query failed: %s', e)
            raise RepositoryError(f'Error loading orders: {e.__class__.__name__}') from e
        return [order_record(o) for o in rows]

    def fetch_one(self, order_id: int) -> Optional[Dict[str, Any]]:
        try:
            row = self.table.select_one(order_id)
        except SQLAlchemyError as e:
            raise RepositoryError(f'Error loading order #{order_id}: {e.__class__.__name__}') from e
        return order_record(row) if row is not None else None

    def update_status(self, order_id: int, status: str) -> Dict[str, Any]:
        validate_order_status(status)
        try:
            affected = self.table.update_status(order_id, status)
        except SQLAlchemyError as e:
            logger.warning('Status update for order %s failed in transport: %s', order_id, e)
            raise TransitionTransportError(f'Error updating the order status: {e.__class__.__name__}') from e
        if not affected:
            raise NotFoundOrForbiddenError()
        try:
            updated = self.fetch_one(order_id)
        except RepositoryError as e:
            raise TransitionTransportError(e.message) from e
        if updated is None:
            # deleted between update and read-back
            raise NotFoundOrForbiddenError()
        return updated

    def delete_all(self, confirmed: bool = False) -> int:
        if confirmed is not True:
            raise ConfirmationRequiredError()
        try:
            return self.table.delete_all()
        except SQLAlchemyError as e:
            raise RepositoryError(f'Error deleting orders: {e.__class__.__name__}') from e
