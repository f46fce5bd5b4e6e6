import pytest
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo
from backoffice.orders.errors import InvalidDateFilterError
from backoffice.orders.history import (
    DeliveredHistoryView,
    delivered_orders,
    parse_date_filter,
    EMPTY_NONE_DELIVERED,
    EMPTY_NO_MATCH,
)
from backoffice.orders.store import OrderStore
from tests.test_utils_fakes import FakeRepository, make_order

LIMA = ZoneInfo('America/Lima')


def _utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


def _history(records, tz='America/Lima'):
    store = OrderStore(FakeRepository(records))
    store.fetch_orders()
    return DeliveredHistoryView(store, tz=tz)


def test_only_delivered_with_timestamp_are_listed():
    orders = [
        make_order(1, 'Entregado', delivered_at=_utc(2024, 3, 1, 15)),
        make_order(2, 'Entregado'),  # no delivered_at
        make_order(3, 'Listo', delivered_at=_utc(2024, 3, 1, 15)),  # moved back
        make_order(4, 'Recibido'),
    ]
    assert [o['id'] for o in delivered_orders(orders, tz=LIMA)] == [1]


def test_date_filter_matches_local_calendar_date():
    orders = [
        make_order(10, 'Entregado', delivered_at=_utc(2024, 3, 15, 14)),
        make_order(11, 'Entregado', delivered_at=_utc(2024, 3, 16, 14)),
    ]
    assert [o['id'] for o in delivered_orders(orders, date(2024, 3, 15), LIMA)] == [10]


def test_late_evening_delivery_counts_for_local_day():
    # 2024-03-16 03:30 UTC is 2024-03-15 22:30 in Lima (UTC-5)
    orders = [make_order(1, 'Entregado', delivered_at=_utc(2024, 3, 16, 3, 30))]
    assert len(delivered_orders(orders, date(2024, 3, 15), LIMA)) == 1
    assert delivered_orders(orders, date(2024, 3, 16), LIMA) == []
    assert len(delivered_orders(orders, date(2024, 3, 16), timezone.utc)) == 1


@pytest.mark.parametrize('value,expected', [
    (None, None),
    ('', None),
    ('2024-03-15', date(2024, 3, 15)),
    (date(2024, 3, 15), date(2024, 3, 15)),
])
def test_parse_date_filter(value, expected):
    assert parse_date_filter(value) == expected


@pytest.mark.parametrize('value', ['15/03/2024', '2024-13-01', 'yesterday', _utc(2024, 3, 15), 20240315])
def test_parse_date_filter_rejects(value):
    with pytest.raises(InvalidDateFilterError):
        parse_date_filter(value)


def test_view_rows_and_filter_cycle():
    view = _history([
        make_order(10, 'Entregado', delivered_at=_utc(2024, 3, 15, 14), user=None, total='18.50'),
        make_order(11, 'Entregado', delivered_at=_utc(2024, 3, 16, 14)),
        make_order(12, 'Listo'),
    ])
    assert [r['id'] for r in view.rows()] == [11, 10]
    view.set_date_filter('2024-03-15')
    rows = view.rows()
    assert len(rows) == 1
    assert rows[0]['customer'] == 'Customer'
    assert str(rows[0]['total']) == '18.50'
    assert view.render()['date'] == '2024-03-15'
    view.clear_filter()
    assert len(view.rows()) == 2
    assert view.render()['date'] is None


def test_empty_messages():
    view = _history([make_order(1, 'Listo')])
    assert view.empty_message() == EMPTY_NONE_DELIVERED
    view = _history([make_order(2, 'Entregado', delivered_at=_utc(2024, 3, 15, 14))])
    assert view.empty_message() is None
    view.set_date_filter('2024-01-01')
    assert view.empty_message() == EMPTY_NO_MATCH
    assert view.render()['rows'] == []


def test_invalid_filter_keeps_previous_one():
    view = _history([])
    view.set_date_filter('2024-03-15')
    with pytest.raises(InvalidDateFilterError):
        view.set_date_filter('not-a-date')
    assert view.date_filter == date(2024, 3, 15)
