from __future__ import annotations
from datetime import datetime, timezone
from decimal import Decimal
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, Numeric, ForeignKey, DateTime
from typing import Optional

from .user import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Order(Base):
    __tablename__ = 'orders'
    # Lifecycle status constants (kanban column order)
    STATUS_RECIBIDO = 'Recibido'
    STATUS_EN_PREPARACION = 'EnPreparacion'
    STATUS_LISTO = 'Listo'
    STATUS_ENTREGADO = 'Entregado'
    ALL_STATUSES = (
        STATUS_RECIBIDO,
        STATUS_EN_PREPARACION,
        STATUS_LISTO,
        STATUS_ENTREGADO,
    )
    # Column stamped (first write only) when an order enters the status
    TIMESTAMP_FOR_STATUS = {
        STATUS_EN_PREPARACION: 'started_at',
        STATUS_LISTO: 'ready_at',
        STATUS_ENTREGADO: 'delivered_at',
    }
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_uuid: Mapped[Optional[str]] = mapped_column(ForeignKey('users.uuid', ondelete='SET NULL'), nullable=True, index=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=STATUS_RECIBIDO, index=True)
    total: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal('0.00'))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    ready_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    delivered_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    user = relationship('User', lazy='joined')
    details = relationship('OrderDetail', back_populates='order', cascade='all, delete-orphan',
                           passive_deletes=True, order_by='OrderDetail.id')


class OrderDetail(Base):
    __tablename__ = 'order_details'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    order_id: Mapped[int] = mapped_column(ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, index=True)
    product_id: Mapped[int] = mapped_column(ForeignKey('products.id'), nullable=False)
    product_variant_id: Mapped[Optional[int]] = mapped_column(ForeignKey('variant_options.id'), nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    order = relationship('Order', back_populates='details')
    product = relationship('Product')
    variant = relationship('VariantOption')
    ingredients = relationship('OrderDetailIngredient', back_populates='detail', cascade='all, delete-orphan',
                               passive_deletes=True, order_by='OrderDetailIngredient.id')


class OrderDetailIngredient(Base):
    __tablename__ = 'order_detail_ingredients'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    order_detail_id: Mapped[int] = mapped_column(ForeignKey('order_details.id', ondelete='CASCADE'), nullable=False, index=True)
    ingredient_option_id: Mapped[int] = mapped_column(ForeignKey('ingredient_options.id'), nullable=False)

    detail = relationship('OrderDetail', back_populates='ingredients')
    ingredient = relationship('IngredientOption')
