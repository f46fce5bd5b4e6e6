import pytest
from backoffice.datastore.changefeed import (
    ChangeFeed,
    EVENT_INSERT,
    EVENT_UPDATE,
    STATUS_SUBSCRIBED,
    STATUS_CHANNEL_ERROR,
    STATUS_CLOSED,
)
from backoffice.orders.errors import SubscriptionError


def test_publish_reaches_only_matching_handlers():
    feed = ChangeFeed()
    seen = []
    ch = feed.channel('c1').on(EVENT_INSERT, 'orders', lambda e: seen.append(('ins', e.new['id'])))
    ch.on(EVENT_UPDATE, 'orders', lambda e: seen.append(('upd', e.new['id'])))
    ch.on(EVENT_INSERT, 'products', lambda e: seen.append(('prod', e.new['id'])))
    ch.subscribe()
    assert feed.publish('orders', EVENT_INSERT, new={'id': 1}) == 1
    assert feed.publish('orders', EVENT_UPDATE, new={'id': 1}) == 1
    assert feed.publish('orders', 'DELETE', old={'id': 1}) == 0
    assert seen == [('ins', 1), ('upd', 1)]


def test_unsubscribed_channel_receives_nothing():
    feed = ChangeFeed()
    seen = []
    feed.channel('idle').on(EVENT_INSERT, 'orders', seen.append)  # never subscribed
    assert feed.publish('orders', EVENT_INSERT, new={'id': 5}) == 0
    assert seen == []


def test_status_reports_and_idempotent_remove():
    feed = ChangeFeed()
    statuses = []
    ch = feed.channel('c').on(EVENT_INSERT, 'orders', lambda e: None)
    ch.subscribe(statuses.append)
    assert ch.is_joined
    assert feed.active_channels() == [ch]
    assert feed.remove_channel(ch) is True
    assert feed.remove_channel(ch) is False
    assert feed.remove_channel(None) is False
    assert statuses == [STATUS_SUBSCRIBED, STATUS_CLOSED]
    assert not ch.is_joined
    assert feed.active_channels() == []


def test_failing_handler_does_not_reach_publisher(caplog):
    feed = ChangeFeed()
    seen = []

    def boom(event):
        raise RuntimeError('handler exploded')

    feed.channel('bad').on(EVENT_INSERT, 'orders', boom).subscribe()
    feed.channel('good').on(EVENT_INSERT, 'orders', seen.append).subscribe()
    assert feed.publish('orders', EVENT_INSERT, new={'id': 9}) == 2
    assert len(seen) == 1 and seen[0].new == {'id': 9}
    assert 'handler' in caplog.text.lower()


def test_closed_feed_refuses_subscription():
    feed = ChangeFeed()
    feed.close()
    statuses = []
    ch = feed.channel('late').on(EVENT_INSERT, 'orders', lambda e: None)
    with pytest.raises(SubscriptionError):
        ch.subscribe(statuses.append)
    assert statuses == [STATUS_CHANNEL_ERROR]
    assert not ch.is_joined


def test_close_detaches_existing_channels():
    feed = ChangeFeed()
    statuses = []
    feed.channel('c').on(EVENT_INSERT, 'orders', lambda e: None).subscribe(statuses.append)
    feed.close()
    assert feed.active_channels() == []
    assert statuses[-1] == STATUS_CLOSED


def test_unknown_event_type_rejected():
    with pytest.raises(ValueError):
        ChangeFeed().channel('c').on('TRUNCATE', 'orders', lambda e: None)


def test_event_carries_commit_time_and_payload_copy():
    feed = ChangeFeed()
    events = []
    feed.channel('c').on(EVENT_UPDATE, 'orders', events.append).subscribe()
    payload = {'id': 3, 'status': 'Listo'}
    feed.publish('orders', EVENT_UPDATE, new=payload)
    payload['status'] = 'mutated'
    assert events[0].new['status'] == 'Listo'
    assert events[0].committed_at.tzinfo is not None
    assert events[0].table == 'orders' and events[0].event_type == EVENT_UPDATE
