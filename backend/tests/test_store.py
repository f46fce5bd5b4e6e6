import copy
import pytest
from backoffice.datastore.changefeed import ChangeFeed
from backoffice.orders.errors import (
    RepositoryError,
    NotFoundOrForbiddenError,
    TransitionTransportError,
    ConfirmationRequiredError,
)
from backoffice.orders.repository import OrderRepository
from backoffice.orders.store import OrderStore
from tests.test_utils_fakes import FakeRepository, FakeNotifier, make_order
from tests.test_utils_seed import create_order


def test_fetch_replaces_orders_and_clears_error():
    repo = FakeRepository([make_order(1), make_order(2)])
    store = OrderStore(repo)
    store.error = 'stale'
    store.fetch_orders()
    assert [o['id'] for o in store.orders] == [2, 1]
    assert store.error is None
    assert store.loading is False


def test_fetch_failure_keeps_last_known_list():
    repo = FakeRepository([make_order(1)])
    store = OrderStore(repo)
    store.fetch_orders()
    before = copy.deepcopy(store.orders)
    repo.fail_fetch = RepositoryError('Error loading orders: OperationalError')
    store.fetch_orders()
    assert store.orders == before
    assert store.error == 'Error loading orders: OperationalError'
    assert store.loading is False


@pytest.mark.parametrize('failure', [NotFoundOrForbiddenError(), TransitionTransportError('socket closed')])
def test_rejected_transition_leaves_orders_untouched(failure):
    repo = FakeRepository([make_order(1), make_order(2, 'Listo')])
    store = OrderStore(repo)
    store.fetch_orders()
    before = copy.deepcopy(store.orders)
    repo.fail_update = failure
    with pytest.raises(type(failure)):
        store.update_order_status(1, 'Entregado')
    assert store.orders == before
    assert store.error == failure.message


def test_successful_transition_waits_then_refetches():
    repo = FakeRepository([make_order(1)])
    store = OrderStore(repo)
    store.fetch_orders()
    repo.calls.clear()
    store.update_order_status(1, 'EnPreparacion')
    assert repo.calls == [('update_status', 1, 'EnPreparacion'), ('fetch_all',)]
    assert store.find_order(1)['status'] == 'EnPreparacion'


def test_bulk_delete_is_confirmation_gated():
    repo = FakeRepository([make_order(1), make_order(2)])
    store = OrderStore(repo)
    store.fetch_orders()
    with pytest.raises(ConfirmationRequiredError):
        store.delete_all_orders()
    assert len(store.orders) == 2
    assert store.delete_all_orders(confirmed=True) == 2
    assert store.orders == []


def test_selection_setters_do_not_touch_orders():
    repo = FakeRepository([make_order(1)])
    store = OrderStore(repo)
    store.fetch_orders()
    store.select_order(store.orders[0])
    store.set_detail_view_open(True)
    assert store.selected_order['id'] == 1 and store.is_detail_view_open
    store.select_order(None)
    store.set_detail_view_open(False)
    assert store.selected_order is None and not store.is_detail_view_open
    assert len(store.orders) == 1


def test_activate_fetches_subscribes_and_asks_permission_once():
    feed = ChangeFeed()
    notifier = FakeNotifier()
    store = OrderStore(FakeRepository([make_order(1)]), feed=feed, notifier=notifier)
    store.activate()
    assert len(store.orders) == 1
    assert store.live
    assert notifier.requests == 1
    store.deactivate()
    store.activate()
    assert notifier.requests == 1
    assert len(feed.active_channels()) == 1
    store.deactivate()
    assert not store.live
    assert feed.active_channels() == []


def test_subscription_failure_degrades_to_pull():
    feed = ChangeFeed()
    feed.close()
    repo = FakeRepository([make_order(1)])
    store = OrderStore(repo, feed=feed)
    store.activate()
    assert not store.live
    assert len(store.orders) == 1
    repo.records[1]['status'] = 'Listo'
    store.fetch_orders()
    assert store.find_order(1)['status'] == 'Listo'
    store.update_order_status(1, 'Entregado')
    assert store.find_order(1)['status'] == 'Entregado'


def test_store_without_feed_has_no_subscription():
    store = OrderStore(FakeRepository())
    assert store.subscribe() is False
    assert store.unsubscribe() is False
    assert not store.live


def test_update_event_from_elsewhere_converges(platform):
    oid = create_order()
    store = OrderStore(OrderRepository(platform.orders()), feed=platform.feed)
    store.activate()
    assert store.find_order(oid)['status'] == 'Recibido'
    # another actor writes through its own gateway
    OrderRepository(platform.orders()).update_status(oid, 'Listo')
    assert store.find_order(oid)['status'] == 'Listo'
    store.deactivate()
