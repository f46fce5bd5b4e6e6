from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import select, update, delete, func, true, false
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from backoffice.datastore.changefeed import ChangeFeed, EVENT_INSERT, EVENT_UPDATE, EVENT_DELETE
from backoffice.models.order import Order, OrderDetail, OrderDetailIngredient, utcnow

TABLE = 'orders'
WRITE_PERMISSION = 'ORDERS.UPDATE'


def _row_payload(o: Order) -> Dict[str, Any]:
    """Flat column snapshot of an orders row, as carried by change events."""
    return {
        'id': o.id,
        'user_uuid': o.user_uuid,
        'status': o.status,
        'total': o.total,
        'created_at': o.created_at,
        'started_at': o.started_at,
        'ready_at': o.ready_at,
        'delivered_at': o.delivered_at,
        'updated_at': o.updated_at,
    }


class OrderTable:
    """Query, update and bulk-delete interface over the orders collection.

    Every committed write is published on the change feed.
    """

    def __init__(self, session_factory, feed: ChangeFeed, perms: Optional[Iterable[str]] = None):
        self._session_factory = session_factory
        self.feed = feed
        self.perms = set(perms) if perms is not None else None

    def _session(self):
        return self._session_factory()

    def _write_scope(self):
        # Row-level policy: callers without the write permission match no rows
        if self.perms is None or WRITE_PERMISSION in self.perms:
            return true()
        return false()

    def _query(self):
        return (
            select(Order)
            .options(
                selectinload(Order.user),
                selectinload(Order.details).selectinload(OrderDetail.product),
                selectinload(Order.details).selectinload(OrderDetail.variant),
                selectinload(Order.details).selectinload(OrderDetail.ingredients).selectinload(OrderDetailIngredient.ingredient),
            )
            .execution_options(populate_existing=True)
        )

    def select_all(self) -> List[Order]:
        session = self._session()
        q = self._query().order_by(Order.created_at.desc(), Order.id.desc())
        return list(session.execute(q).scalars().unique().all())

    def select_one(self, order_id: int) -> Optional[Order]:
        session = self._session()
        return session.execute(self._query().where(Order.id == order_id)).scalars().unique().one_or_none()

    def update_status(self, order_id: int, status: str) -> int:
        """Single-row status update; returns the number of rows affected (0 or 1).

        The matching lifecycle timestamp is stamped in the same statement and only
        if it is still empty, so concurrent writers cannot overwrite it.
        """
        session = self._session()
        now = utcnow()
        values: Dict[str, Any] = {'status': status, 'updated_at': now}
        column = Order.TIMESTAMP_FOR_STATUS.get(status)
        if column:
            values[column] = func.coalesce(getattr(Order, column), now)
        stmt = (
            update(Order)
            .where(Order.id == order_id, self._write_scope())
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        try:
            result = session.execute(stmt)
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            raise
        affected = result.rowcount or 0
        if affected:
            row = self.select_one(order_id)
            if row is not None:
                self.feed.publish(TABLE, EVENT_UPDATE, new=_row_payload(row))
        return affected

    def delete_all(self) -> int:
        """Remove every order; details and detail ingredients go with them (ON DELETE CASCADE)."""
        session = self._session()
        try:
            ids = list(session.execute(select(Order.id)).scalars())
            session.execute(delete(Order).execution_options(synchronize_session=False))
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            raise
        for obj in list(session.identity_map.values()):
            if isinstance(obj, (Order, OrderDetail, OrderDetailIngredient)):
                session.expunge(obj)
        for order_id in ids:
            self.feed.publish(TABLE, EVENT_DELETE, new={}, old={'id': order_id})
        return len(ids)

    def insert_order(self, user_uuid: Optional[str], lines: Sequence[Dict[str, Any]],
                     status: str = Order.STATUS_RECIBIDO, created_at: Optional[datetime] = None) -> Order:
        """Insert an order with its line items.

        Each line: product_id, product_variant_id, quantity, unit_price,
        optional ingredient_option_ids. Subtotals and the total are computed here.
        """
        session = self._session()
        order = Order(user_uuid=user_uuid, status=status, created_at=created_at or utcnow())
        total = Decimal('0.00')
        for line in lines:
            unit_price = Decimal(str(line['unit_price']))
            quantity = int(line['quantity'])
            subtotal = unit_price * quantity
            total += subtotal
            detail = OrderDetail(
                product_id=line['product_id'],
                product_variant_id=line.get('product_variant_id'),
                quantity=quantity,
                unit_price=unit_price,
                subtotal=subtotal,
            )
            for ingredient_id in line.get('ingredient_option_ids') or []:
                detail.ingredients.append(OrderDetailIngredient(ingredient_option_id=ingredient_id))
            order.details.append(detail)
        order.total = total
        session.add(order)
        try:
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            raise
        self.feed.publish(TABLE, EVENT_INSERT, new=_row_payload(order))
        return order
