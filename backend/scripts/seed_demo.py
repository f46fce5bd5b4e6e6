#!/usr/bin/env python
"""Idempotent seed script for staff accounts, demo customers, a demo catalog and test orders.

Usage:
    python backend/scripts/seed_demo.py                  # seed users + catalog
    python backend/scripts/seed_demo.py --orders 5       # also generate 5 test orders (Recibido)
    python backend/scripts/seed_demo.py --show-roles     # print role -> permission table
    python backend/scripts/seed_demo.py --dry-run        # run logic then rollback (no DB changes)
"""
from __future__ import annotations
import os, sys, argparse, textwrap
from decimal import Decimal
from sqlalchemy import select, inspect

# Allow running from repo root or from backend/
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from backoffice import create_app, get_db, get_platform  # noqa: E402
from backoffice.constants.permissions import ROLE_PRESETS, ROLE_STAFF, ROLE_ADMIN, ROLE_CUSTOMER  # noqa: E402
from backoffice.models.user import Base, User  # noqa: E402
from backoffice.models.catalog import Product, VariantOption, IngredientOption  # noqa: E402
from backoffice.services.policy import permissions_for_role  # noqa: E402
from backoffice.services.seed_orders import generate_test_orders, MAX_TEST_ORDERS  # noqa: E402

DEMO_CUSTOMERS = [
    ('Ana', 'Quispe', 'ana.quispe@example.com', 101),
    ('Luis', 'Ramos', 'luis.ramos@example.com', 102),
    ('Carla', 'Mendoza', 'carla.mendoza@example.com', None),
]

# name, base price, [(variant, additional)], [(ingredient, extra)]
DEMO_CATALOG = [
    ('Cheeseburger', '12.00', [('Regular', '0.00'), ('Double', '4.50')], [('Bacon', '2.00'), ('Extra cheese', '1.50')]),
    ('Chicken wrap', '10.50', [('Classic', '0.00'), ('Spicy', '0.50')], [('Avocado', '2.50')]),
    ('Lemonade', '4.00', [('Small', '0.00'), ('Large', '1.50')], []),
]


def ensure_schema(session):
    engine = session.get_bind()
    if not inspect(engine).has_table('orders'):
        # Lightweight fallback if migrations were not run; prefer `alembic upgrade head`
        import backoffice.models.order  # noqa: F401
        import backoffice.models.audit  # noqa: F401
        Base.metadata.create_all(engine)


def _ensure_user(session, email, first_name, last_name, role, password=None, faculty_id=None):
    user = session.execute(select(User).where(User.email==email)).scalar_one_or_none()
    if user:
        return user, False
    user = User(first_name=first_name, last_name=last_name, email=email, role=role, faculty_id=faculty_id)
    if password:
        user.set_password(password)
    session.add(user)
    return user, True


def ensure_staff_users(session):
    created = 0
    admin_email = os.getenv('SEED_ADMIN_EMAIL', 'admin@example.com')
    staff_email = os.getenv('SEED_STAFF_EMAIL', 'kitchen@example.com')
    password = os.getenv('SEED_PASSWORD', 'ChangeMe123!')
    for email, first, role in ((admin_email, 'Admin', ROLE_ADMIN), (staff_email, 'Kitchen', ROLE_STAFF)):
        _, was_created = _ensure_user(session, email, first, 'Staff', role, password=password)
        if was_created:
            print(f"[INFO] Created {role} user {email} with temporary password.")
            created += 1
    return created


def ensure_customers(session):
    created = 0
    for first, last, email, faculty in DEMO_CUSTOMERS:
        _, was_created = _ensure_user(session, email, first, last, ROLE_CUSTOMER, faculty_id=faculty)
        created += int(was_created)
    return created


def ensure_catalog(session):
    created = 0
    for name, base, variants, ingredients in DEMO_CATALOG:
        if session.execute(select(Product).where(Product.name==name)).scalar_one_or_none():
            continue
        product = Product(name=name, base_price=Decimal(base), active=True)
        product.variants = [VariantOption(name=v, additional_price=Decimal(p)) for v, p in variants]
        product.ingredients = [IngredientOption(name=i, extra_price=Decimal(p)) for i, p in ingredients]
        session.add(product)
        created += 1
    return created


def print_role_summary():
    name_w = max(len(r) for r in ROLE_PRESETS)
    print(f"{'Role'.ljust(name_w)} | Permissions")
    print('-' * (name_w + 40))
    for role in ROLE_PRESETS:
        print(f"{role.ljust(name_w)} | {', '.join(permissions_for_role(role)) or '-'}")


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        description="Seed staff users, demo catalog and test orders",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""Examples:\n  seed normally: seed_demo.py\n  with orders: seed_demo.py --orders 5\n  dry run: seed_demo.py --dry-run\n""")
    )
    p.add_argument('--orders', type=int, default=0, metavar='N', help=f'Generate N test orders (1-{MAX_TEST_ORDERS})')
    p.add_argument('--show-roles', action='store_true', help='Print role permission table')
    p.add_argument('--dry-run', action='store_true', help='Rollback after operations (no commit); skips --orders')
    args = p.parse_args(argv)
    if args.orders and not 1 <= args.orders <= MAX_TEST_ORDERS:
        p.error(f'--orders must be between 1 and {MAX_TEST_ORDERS}')
    return args


def main(argv=None):
    args = parse_args(argv)
    app = create_app()
    with app.app_context():
        session = get_db()
        try:
            ensure_schema(session)
            users = ensure_staff_users(session) + ensure_customers(session)
            products = ensure_catalog(session)
            if args.dry_run:
                session.rollback()
                print(f"[DRY-RUN] (rolled back) Users would create: {users}, Products would create: {products}")
            else:
                session.commit()
                print(f"[DONE] Users created: {users}, Products created: {products}")
                if args.orders:
                    ids = generate_test_orders(get_platform(), args.orders)
                    print(f"[DONE] Test orders created: {', '.join(f'#{i}' for i in ids)}")
            if args.show_roles:
                print('\nRole Permission Summary:')
                print_role_summary()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


if __name__ == '__main__':
    main()
