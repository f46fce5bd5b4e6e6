from datetime import datetime, timezone
from sqlalchemy import select
from backoffice import get_db
from backoffice.models.audit import AuditLog
from backoffice.services.policy import permissions_for_role
from tests.test_utils_seed import (
    ensure_user,
    create_order,
    catalog_disabled,
    default_product,
    jwt_headers,
    login_headers,
)

IPHONE_UA = 'Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 Mobile/15E148'


def _admin(app):
    return jwt_headers(app, 1, permissions_for_role('admin'))


def _staff(app):
    return jwt_headers(app, 2, permissions_for_role('staff'))


def _audits(action, entity_id=None):
    q = select(AuditLog).where(AuditLog.action == action)
    if entity_id is not None:
        q = q.where(AuditLog.entity_id == str(entity_id))
    return list(get_db().execute(q.order_by(AuditLog.id)).scalars())


def test_list_requires_token_and_permission(client, app_instance, platform):
    assert client.get('/orders').status_code == 401
    customer = jwt_headers(app_instance, 3, permissions_for_role('customer'))
    resp = client.get('/orders', headers=customer)
    assert resp.status_code == 403
    assert resp.get_json()['error']['status'] == 403


def test_list_shape_and_conditional_get(client, app_instance, platform):
    customer = ensure_user('api.list@example.com', 'Rosa', 'Flores')
    oid = create_order(customer)
    headers = _staff(app_instance)
    first = client.get('/orders', headers=headers)
    assert first.status_code == 200
    body = first.get_json()
    assert body['total'] == 1
    order = body['data'][0]
    assert order['id'] == oid
    assert order['status'] == 'Recibido'
    assert order['total'] == '20.00'
    assert order['created_at'].endswith('Z')
    assert order['user']['first_name'] == 'Rosa'
    etag = first.headers['ETag']
    again = client.get('/orders', headers={**headers, 'If-None-Match': etag})
    assert again.status_code == 304
    assert again.headers['ETag'] == etag
    head = client.head('/orders', headers=headers)
    assert head.status_code == 200
    assert head.headers['ETag'] == etag
    # a status change alters the validator
    client.patch(f'/orders/{oid}/status', json={'status': 'Listo'}, headers=headers)
    changed = client.get('/orders', headers={**headers, 'If-None-Match': etag})
    assert changed.status_code == 200
    assert changed.headers['ETag'] != etag


def test_patch_status_stamps_and_audits(client, app_instance, platform):
    oid = create_order()
    resp = client.patch(f'/orders/{oid}/status', json={'status': 'EnPreparacion'}, headers=_staff(app_instance))
    assert resp.status_code == 200, resp.get_json()
    body = resp.get_json()
    assert body['status'] == 'EnPreparacion'
    assert body['started_at'] is not None and body['ready_at'] is None
    logs = _audits('ORDER.STATUS.SET', oid)
    assert len(logs) == 1
    assert logs[0].meta['changes']['status'] == {'before': 'Recibido', 'after': 'EnPreparacion'}
    assert logs[0].actor_user_id == 2


def test_patch_to_current_status_changes_nothing(client, app_instance, platform):
    oid = create_order()
    before = client.get(f'/orders/{oid}', headers=_staff(app_instance)).get_json()
    events = []
    platform.feed.channel('same-status').on('UPDATE', 'orders', events.append).subscribe()
    resp = client.patch(f'/orders/{oid}/status', json={'status': 'Recibido'}, headers=_staff(app_instance))
    assert resp.status_code == 200
    body = resp.get_json()
    assert body['status'] == 'Recibido'
    assert body['updated_at'] == before['updated_at']
    assert events == []
    assert _audits('ORDER.STATUS.SET', oid) == []
    after = client.get(f'/orders/{oid}', headers=_staff(app_instance)).get_json()
    assert after['updated_at'] == before['updated_at']


def test_patch_status_errors(client, app_instance, platform):
    oid = create_order()
    headers = _staff(app_instance)
    missing = client.patch(f'/orders/{oid}/status', json={}, headers=headers)
    assert missing.status_code == 400
    invalid = client.patch(f'/orders/{oid}/status', json={'status': 'Cancelado'}, headers=headers)
    assert invalid.status_code == 400
    for malformed in (['Listo'], {'value': 'Listo'}, 3):
        resp = client.patch(f'/orders/{oid}/status', json={'status': malformed}, headers=headers)
        assert resp.status_code == 400, resp.get_json()
        assert resp.get_json()['error']['title'] == 'Bad Request'
    gone = client.patch('/orders/999999/status', json={'status': 'Listo'}, headers=headers)
    assert gone.status_code == 404
    assert 'permission' in gone.get_json()['error']['detail']
    readonly = jwt_headers(app_instance, 4, ['ORDERS.READ'])
    assert client.patch(f'/orders/{oid}/status', json={'status': 'Listo'}, headers=readonly).status_code == 403
    # rejected requests leave no audit entry
    assert _audits('ORDER.STATUS.SET', oid) == []


def test_order_detail_endpoint(client, app_instance, platform):
    customer = ensure_user('api.detail@example.com', 'Luis', 'Ramos', faculty_id=12)
    oid = create_order(customer)
    resp = client.get(f'/orders/{oid}', headers=_staff(app_instance))
    assert resp.status_code == 200
    view = resp.get_json()['view']
    assert view['customer'] == {'name': 'Luis Ramos', 'faculty_id': 12}
    assert [s['field'] for s in view['timeline']] == ['created_at']
    assert len(view['status_options']) == 4
    assert view['items'][0]['ingredients'] == 'Bacon, Extra cheese'
    assert client.get('/orders/999999', headers=_staff(app_instance)).status_code == 404


def test_board_columns_and_pointer_profile(client, app_instance, platform):
    create_order()
    create_order(status='Listo')
    desktop = client.get('/orders/board', headers=_staff(app_instance))
    assert desktop.status_code == 200
    body = desktop.get_json()
    assert [c['count'] for c in body['columns']] == [1, 0, 1, 0]
    assert body['pointer']['kind'] == 'mouse'
    assert body['overlay'] is None
    mobile = client.get('/orders/board', headers={**_staff(app_instance), 'User-Agent': IPHONE_UA})
    assert mobile.get_json()['pointer'] == {'kind': 'touch', 'distance': 0, 'delay': 250, 'tolerance': 10}
    hinted = client.get('/orders/board?touch=1', headers=_staff(app_instance))
    assert hinted.get_json()['pointer']['kind'] == 'touch'


def test_delivered_history_endpoint(client, app_instance, platform):
    # 22:30 on 15 March in Lima
    create_order(status='Entregado', delivered_at=datetime(2024, 3, 16, 3, 30, tzinfo=timezone.utc))
    create_order(status='Listo')
    headers = _staff(app_instance)
    everything = client.get('/orders/delivered', headers=headers).get_json()
    assert len(everything['rows']) == 1 and everything['empty_message'] is None
    day = client.get('/orders/delivered?date=2024-03-15', headers=headers).get_json()
    assert len(day['rows']) == 1
    assert day['date'] == '2024-03-15'
    assert day['rows'][0]['delivered_at'] == '2024-03-16T03:30:00Z'
    other = client.get('/orders/delivered?date=2024-03-16', headers=headers).get_json()
    assert other['rows'] == []
    assert other['empty_message'] == 'No delivered orders were found for the selected date.'
    bad = client.get('/orders/delivered?date=16-03-2024', headers=headers)
    assert bad.status_code == 400


def test_delete_all_requires_confirmation_and_permission(client, app_instance, platform):
    create_order()
    create_order()
    assert client.delete('/orders?confirm=true', headers=_staff(app_instance)).status_code == 403
    admin = _admin(app_instance)
    unconfirmed = client.delete('/orders', headers=admin)
    assert unconfirmed.status_code == 400
    assert len(client.get('/orders', headers=admin).get_json()['data']) == 2
    resp = client.delete('/orders?confirm=true', headers=admin)
    assert resp.status_code == 200
    assert resp.get_json() == {'deleted': 2}
    assert client.get('/orders', headers=admin).get_json()['total'] == 0
    assert _audits('ORDER.DELETE_ALL')[-1].meta == {'deleted': 2}


def test_generate_test_orders(client, app_instance, platform):
    default_product()
    ensure_user('api.seed.customer@example.com', 'Carla', 'Mendoza')
    admin = _admin(app_instance)
    resp = client.post('/orders/test-orders', json={'count': 3}, headers=admin)
    assert resp.status_code == 201, resp.get_json()
    body = resp.get_json()
    assert body['count'] == 3 and len(body['ids']) == 3
    listed = client.get('/orders', headers=admin).get_json()['data']
    assert {o['id'] for o in listed} == set(body['ids'])
    assert all(o['status'] == 'Recibido' and o['details'] for o in listed)
    assert client.post('/orders/test-orders', headers=admin).get_json()['count'] == 1
    assert _audits('ORDER.TEST.CREATE')[-1].meta == {'count': 1}


def test_generate_test_orders_rejections(client, app_instance, platform):
    default_product()
    admin = _admin(app_instance)
    assert client.post('/orders/test-orders', json={'count': 21}, headers=admin).status_code == 400
    assert client.post('/orders/test-orders', json={'count': 0}, headers=admin).status_code == 400
    assert client.post('/orders/test-orders', json={'count': 'many'}, headers=admin).status_code == 400
    assert client.post('/orders/test-orders', json={'count': 1}, headers=_staff(app_instance)).status_code == 403
    with catalog_disabled():
        resp = client.post('/orders/test-orders', json={'count': 1}, headers=admin)
    assert resp.status_code == 400
    assert 'No active products' in resp.get_json()['error']['detail']


def test_change_stream_delivers_insert(client, app_instance, platform):
    resp = client.get('/orders/changes?max_events=1', headers=_staff(app_instance), buffered=False)
    assert resp.status_code == 200
    assert resp.mimetype == 'text/event-stream'
    assert len(platform.feed.active_channels()) == 1
    oid = create_order()
    text = resp.get_data(as_text=True)
    assert text.startswith('event: subscribed\n')
    assert 'event: insert\n' in text
    assert f'"id": {oid}' in text
    assert platform.feed.active_channels() == []


def test_change_stream_heartbeat_and_release(client, app_instance, platform):
    resp = client.get('/orders/changes', headers=_staff(app_instance), buffered=False)
    chunks = iter(resp.response)
    first, second = next(chunks), next(chunks)
    if isinstance(first, bytes):
        first, second = first.decode(), second.decode()
    assert first.startswith('event: subscribed')
    assert second == ': keep-alive\n\n'
    resp.close()
    assert platform.feed.active_channels() == []


def test_staff_login_flow_end_to_end(client, platform):
    headers = login_headers(client, 'api.kitchen@example.com', 'staff')
    oid = create_order()
    assert client.patch(f'/orders/{oid}/status', json={'status': 'Listo'}, headers=headers).status_code == 200
    assert client.delete('/orders?confirm=true', headers=headers).status_code == 403
