from __future__ import annotations
import json
import queue
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any

from flask import Blueprint, Response, request, abort, current_app
from backoffice import get_platform
from backoffice.datastore.changefeed import EVENT_TYPES, ChangeEvent
from backoffice.decorators.auth import require_permissions
from backoffice.decorators.audit import audit_log
from backoffice.services.policy import current_permissions
from backoffice.services.seed_orders import generate_test_orders, MAX_TEST_ORDERS
from backoffice.orders.errors import (
    OrderWorkflowError,
    RepositoryError,
    InvalidStatusError,
    NotFoundOrForbiddenError,
    NOT_FOUND_OR_FORBIDDEN_MESSAGE,
    TransitionTransportError,
    ConfirmationRequiredError,
    SubscriptionError,
    InvalidDateFilterError,
    SeedDataError,
)
from backoffice.orders.repository import OrderRepository, as_utc, validate_order_status
from backoffice.orders.store import OrderStore
from backoffice.orders.kanban import KanbanBoard
from backoffice.orders.gestures import detect_profile, profiles_from_config
from backoffice.orders.detail import describe_order
from backoffice.orders.history import DeliveredHistoryView
from backoffice.utils.fsm import ORDER_FSM
from backoffice.utils.listing import handle_conditional, make_cached_list_response
from backoffice.utils.validation import validate_int_range, require_json_field

orders_bp = Blueprint('orders', __name__)

ORDERS_TABLE = 'orders'

# core error -> HTTP status
_ERROR_STATUS = [
    (InvalidStatusError, 400),
    (ConfirmationRequiredError, 400),
    (InvalidDateFilterError, 400),
    (SeedDataError, 400),
    (NotFoundOrForbiddenError, 404),
    (TransitionTransportError, 503),
    (RepositoryError, 503),
    (SubscriptionError, 503),
]


def _abort_for(e: OrderWorkflowError):
    for cls, code in _ERROR_STATUS:
        if isinstance(e, cls):
            abort(code, description=e.message)
    abort(500, description=e.message)


def _jsonable(value: Any) -> Any:
    if isinstance(value, datetime):
        return as_utc(value).isoformat().replace('+00:00', 'Z')
    if isinstance(value, Decimal):
        return str(value.quantize(Decimal('0.01')))
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def _order_json(record: dict) -> dict:
    return _jsonable(record)


def _repository() -> OrderRepository:
    # the gateway applies the caller's row-level write scope
    return OrderRepository(get_platform().orders(perms=current_permissions()))


def _loaded_store() -> OrderStore:
    store = OrderStore(_repository())
    store.fetch_orders()
    if store.error:
        abort(503, description=store.error)
    return store


def _prefetch_status(order_id: int):
    record = _repository().fetch_one(order_id)
    return {'status': record['status']} if record else None


@orders_bp.get('')
@require_permissions('ORDERS.READ')
def list_orders():
    """Full order list, newest first. HEAD returns the validator headers only."""
    try:
        rows = _repository().fetch_all()
    except RepositoryError as e:
        current_app.logger.warning('Order list failed: %s', e.message)
        _abort_for(e)
    resp, etag, latest_ts = make_cached_list_response(rows, [_order_json(r) for r in rows])
    cond = handle_conditional(etag, latest_ts)
    if cond:
        return cond
    return resp


@orders_bp.get('/board')
@require_permissions('ORDERS.READ')
def order_board():
    mouse, touch = profiles_from_config(current_app.config)
    profile = detect_profile(
        has_touch=request.args.get('touch') in ('1', 'true'),
        max_touch_points=request.args.get('max_touch_points', 0, type=int) or 0,
        user_agent=request.headers.get('User-Agent'),
        mouse=mouse,
        touch=touch,
    )
    board = KanbanBoard(_loaded_store(), profile)
    return _jsonable(board.render())


@orders_bp.get('/<int:order_id>')
@require_permissions('ORDERS.READ')
def get_order(order_id: int):
    try:
        record = _repository().fetch_one(order_id)
    except RepositoryError as e:
        _abort_for(e)
    if record is None:
        abort(404, description=f'Order #{order_id} not found')
    payload = _order_json(record)
    payload['view'] = _jsonable(describe_order(record))
    return payload


@orders_bp.patch('/<int:order_id>/status')
@require_permissions('ORDERS.UPDATE')
@audit_log(
    'ORDER.STATUS.SET',
    entity='Order',
    entity_id_key='id',
    diff_keys=['status'],
    pre_fetch=lambda a, kw: _prefetch_status(kw.get('order_id')),
)
def set_order_status(order_id: int):
    """Move an order through the store; asking for its current status changes nothing."""
    status = require_json_field(request.get_json(silent=True), 'status')
    store = _loaded_store()
    try:
        validate_order_status(status)
        order = store.find_order(order_id)
        if order is None:
            raise NotFoundOrForbiddenError()
        if ORDER_FSM.is_noop(order['status'], status):
            return _order_json(order)
        store.update_order_status(order_id, status)
        updated = store.find_order(order_id) or store.repository.fetch_one(order_id)
    except OrderWorkflowError as e:
        current_app.logger.info('Status change of order %s to %s rejected: %s', order_id, status, e.message)
        _abort_for(e)
    if updated is None:
        abort(404, description=NOT_FOUND_OR_FORBIDDEN_MESSAGE)
    return _order_json(updated)


@orders_bp.delete('')
@require_permissions('ORDERS.DELETE')
@audit_log('ORDER.DELETE_ALL', entity='Order', meta_keys=['deleted'])
def delete_all_orders():
    confirmed = request.args.get('confirm', '').lower() == 'true'
    try:
        deleted = _repository().delete_all(confirmed=confirmed)
    except OrderWorkflowError as e:
        _abort_for(e)
    current_app.logger.warning('All orders deleted (%s rows)', deleted)
    return {'deleted': deleted}


@orders_bp.get('/delivered')
@require_permissions('ORDERS.READ')
def delivered_history():
    view = DeliveredHistoryView(_loaded_store(), current_app.config['ORDERS_LOCAL_TZ'])
    try:
        view.set_date_filter(request.args.get('date'))
    except InvalidDateFilterError as e:
        _abort_for(e)
    return _jsonable(view.render())


def _sse_message(event: ChangeEvent) -> str:
    payload = {
        'table': event.table,
        'type': event.event_type,
        'new': event.new,
        'old': event.old,
        'committed_at': event.committed_at,
    }
    return f"event: {event.event_type.lower()}\ndata: {json.dumps(_jsonable(payload))}\n\n"


@orders_bp.get('/changes')
@require_permissions('ORDERS.READ')
def order_changes():
    """Server-sent events of order inserts, updates and deletes.

    `max_events` ends the stream after that many change events (bounded clients, tests).
    """
    feed = get_platform().feed
    heartbeat = float(current_app.config['ORDERS_SSE_HEARTBEAT'])
    max_events = request.args.get('max_events', type=int)
    events: queue.Queue = queue.Queue()
    channel = feed.channel(f'sse-{uuid.uuid4().hex[:12]}')
    for event_type in EVENT_TYPES:
        channel.on(event_type, ORDERS_TABLE, events.put)
    try:
        channel.subscribe()
    except SubscriptionError as e:
        _abort_for(e)

    def stream():
        sent = 0
        try:
            yield 'event: subscribed\ndata: {}\n\n'
            while max_events is None or sent < max_events:
                try:
                    event = events.get(timeout=heartbeat)
                except queue.Empty:
                    yield ': keep-alive\n\n'
                    continue
                yield _sse_message(event)
                sent += 1
        finally:
            feed.remove_channel(channel)

    return Response(
        stream(),
        mimetype='text/event-stream',
        headers={'Cache-Control': 'no-cache', 'X-Accel-Buffering': 'no'},
    )


@orders_bp.post('/test-orders')
@require_permissions('ORDERS.SEED')
@audit_log('ORDER.TEST.CREATE', entity='Order', meta_keys=['count'])
def create_test_orders():
    data = request.get_json(silent=True) or {}
    count = validate_int_range(data.get('count'), 1, MAX_TEST_ORDERS, 'count', default=1)
    try:
        ids = generate_test_orders(get_platform(), count)
    except SeedDataError as e:
        _abort_for(e)
    return {'count': len(ids), 'ids': ids}, 201
