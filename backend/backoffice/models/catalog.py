from __future__ import annotations
from decimal import Decimal
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, Boolean, Numeric, ForeignKey

from .user import Base


class Product(Base):
    __tablename__ = 'products'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    base_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal('0.00'))
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    variants = relationship('VariantOption', back_populates='product', cascade='all, delete-orphan')
    ingredients = relationship('IngredientOption', back_populates='product', cascade='all, delete-orphan')


class VariantOption(Base):
    __tablename__ = 'variant_options'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    product_id: Mapped[int] = mapped_column(ForeignKey('products.id', ondelete='CASCADE'), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    additional_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal('0.00'))
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    product = relationship('Product', back_populates='variants')


class IngredientOption(Base):
    """Customizable extra for a product (e.g. extra cheese)."""
    __tablename__ = 'ingredient_options'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    product_id: Mapped[int] = mapped_column(ForeignKey('products.id', ondelete='CASCADE'), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    extra_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal('0.00'))
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    product = relationship('Product', back_populates='ingredients')
