"""Generator of realistic test orders from the active catalog.

Orders go through the order table gateway, so every one of them is published on
the change feed exactly like an order placed from the customer app.
"""
from __future__ import annotations
import logging
import random
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from backoffice.models.catalog import Product
from backoffice.models.order import Order
from backoffice.models.user import User
from backoffice.constants.permissions import ROLE_CUSTOMER
from backoffice.orders.errors import SeedDataError

logger = logging.getLogger(__name__)

MAX_TEST_ORDERS = 20
MAX_ITEMS_PER_ORDER = 3
MAX_QUANTITY = 2
INGREDIENT_PROBABILITY = 0.25
CUSTOMER_SAMPLE = 20


def load_catalog(session) -> List[Dict[str, Any]]:
    """Active products that have at least one active variant, with their active options."""
    q = select(Product).where(Product.active.is_(True)).options(
        selectinload(Product.variants), selectinload(Product.ingredients)
    ).order_by(Product.id)
    products = []
    for p in session.execute(q).scalars().all():
        variants = [v for v in p.variants if v.active]
        if not variants:
            continue
        products.append({
            'id': p.id,
            'name': p.name,
            'base_price': Decimal(p.base_price),
            'variants': variants,
            'ingredients': [i for i in p.ingredients if i.active],
        })
    return products


def load_customers(session) -> List[User]:
    q = select(User).where(User.role == ROLE_CUSTOMER).order_by(User.id).limit(CUSTOMER_SAMPLE)
    return list(session.execute(q).scalars().all())


def build_lines(products: List[Dict[str, Any]], rng: random.Random) -> List[Dict[str, Any]]:
    """1-3 picks; identical product/variant/ingredient picks merge into one line."""
    lines: Dict[tuple, Dict[str, Any]] = {}
    for _ in range(rng.randint(1, MAX_ITEMS_PER_ORDER)):
        product = rng.choice(products)
        variant = rng.choice(product['variants'])
        quantity = rng.randint(1, MAX_QUANTITY)
        chosen = [i for i in product['ingredients'] if rng.random() < INGREDIENT_PROBABILITY]
        unit_price = product['base_price'] + Decimal(variant.additional_price)
        unit_price += sum((Decimal(i.extra_price) for i in chosen), Decimal('0.00'))
        ingredient_ids = sorted(i.id for i in chosen)
        key = (product['id'], variant.id, tuple(ingredient_ids))
        if key in lines:
            lines[key]['quantity'] += quantity
            continue
        lines[key] = {
            'product_id': product['id'],
            'product_variant_id': variant.id,
            'quantity': quantity,
            'unit_price': unit_price,
            'ingredient_option_ids': ingredient_ids,
        }
    return list(lines.values())


def generate_test_orders(platform, count: int = 1, rng: Optional[random.Random] = None) -> List[int]:
    """Insert `count` orders in status Recibido; returns their ids."""
    if count < 1 or count > MAX_TEST_ORDERS:
        raise ValueError(f'count must be between 1 and {MAX_TEST_ORDERS}')
    rng = rng or random.Random()
    session = platform.session_factory()
    products = load_catalog(session)
    if not products:
        raise SeedDataError()
    customers = load_customers(session)
    table = platform.orders()
    created = []
    for _ in range(count):
        customer = rng.choice(customers) if customers else None
        order = table.insert_order(
            customer.uuid if customer else None,
            build_lines(products, rng),
            status=Order.STATUS_RECIBIDO,
        )
        created.append(order.id)
        logger.info('Test order #%s created (total %s)', order.id, order.total)
    return created
