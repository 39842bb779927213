from tailorshop import get_db
from tailorshop.models.delivery import Delivery
from tests.test_utils_seed import user_headers, create_order_via_api, ensure_deliverer, unique_email, login

ADDRESS = {'city': 'Bahir Dar', 'street': 'Lake Side', 'house_number': '7B'}


def _delivery_order(client, staff_headers):
    return create_order_via_api(client, staff_headers, delivery_required=True, delivery_address=ADDRESS)


def test_manage_deliverers(client):
    _, staff_headers = user_headers(client, 'staff')
    email = unique_email('newrunner')
    resp = client.post('/deliveries/deliverers', json={
        'email': email, 'password': 'secret1', 'full_name': 'Kebede Runner', 'phone': '0933000111',
    }, headers=staff_headers)
    assert resp.status_code == 201, resp.get_json()
    created = resp.get_json()
    assert created['is_active'] is True
    assert created['is_online'] is False
    # the new account can sign in through the deliverer portal
    login(client, email, 'secret1', portal='deliverer')

    listed = client.get('/deliveries/deliverers', query_string={'q': 'kebede runner'}, headers=staff_headers)
    assert any(d['id'] == created['id'] for d in listed.get_json()['data'])

    upd = client.put(f"/deliveries/deliverers/{created['id']}", json={'phone': '0933999888', 'is_active': False},
                     headers=staff_headers)
    assert upd.status_code == 200
    assert upd.get_json()['phone'] == '0933999888'
    assert upd.get_json()['is_active'] is False

    dup = client.post('/deliveries/deliverers', json={
        'email': email, 'password': 'secret1', 'full_name': 'Dup Runner', 'phone': '0933000111',
    }, headers=staff_headers)
    assert dup.status_code == 400


def test_available_deliverers_online_first(client):
    _, staff_headers = user_headers(client, 'staff')
    online, _ = ensure_deliverer(client, full_name='Zz Online', is_online=True)
    offline, _ = ensure_deliverer(client, full_name='Aa Offline')
    inactive, _ = ensure_deliverer(client, full_name='Inactive Runner', is_active=False)
    resp = client.get('/deliveries/deliverers/available', headers=staff_headers)
    ids = [d['id'] for d in resp.get_json()['data']]
    assert inactive.id not in ids
    assert ids.index(online.id) < ids.index(offline.id)
    data = resp.get_json()['data']
    flags = [d['is_online'] for d in data]
    assert flags == sorted(flags, reverse=True)


def test_assign_rejects_unknown_or_inactive(client):
    _, staff_headers = user_headers(client, 'staff')
    inactive, _ = ensure_deliverer(client, is_active=False)
    order = _delivery_order(client, staff_headers)
    assert client.put(f"/orders/{order['id']}/delivery", json={'deliverer_id': inactive.id},
                      headers=staff_headers).status_code == 400
    assert client.put(f"/orders/{order['id']}/delivery", json={'deliverer_id': 999999},
                      headers=staff_headers).status_code == 400
    assert client.put(f"/orders/{order['id']}/delivery", json={}, headers=staff_headers).status_code == 400


def test_delivery_lifecycle(client):
    _, staff_headers = user_headers(client, 'staff')
    deliverer, d_headers = ensure_deliverer(client)
    order = _delivery_order(client, staff_headers)
    assigned = client.put(f"/orders/{order['id']}/delivery", json={'deliverer_id': deliverer.id}, headers=staff_headers)
    assert assigned.status_code == 200, assigned.get_json()
    delivery_id = assigned.get_json()['id']
    assert assigned.get_json()['status'] == 'pending'

    mine = client.get('/deliveries/mine', headers=d_headers).get_json()
    assert mine['stats']['pending'] == 1
    assert mine['stats']['total'] == 1
    assert mine['is_online'] is False
    assert mine['data'][0]['order']['delivery_address'] == ADDRESS

    skip = client.post(f'/deliveries/{delivery_id}/status', json={'status': 'delivered'}, headers=d_headers)
    assert skip.status_code == 400
    assert skip.get_json()['error']['detail'] == 'Invalid status transition pending -> delivered'

    out = client.post(f'/deliveries/{delivery_id}/status', json={'status': 'out_for_delivery'}, headers=d_headers)
    assert out.status_code == 200
    assert out.get_json()['completed_at'] is None
    staff_view = client.get(f"/orders/{order['id']}", headers=staff_headers).get_json()
    assert staff_view['delivery_status'] == 'out_for_delivery'

    done = client.post(f'/deliveries/{delivery_id}/status', json={'status': 'delivered', 'notes': 'Left with guard'},
                       headers=d_headers)
    assert done.status_code == 200
    assert done.get_json()['completed_at'] is not None
    assert done.get_json()['notes'] == 'Left with guard'
    assert client.get(f"/orders/{order['id']}", headers=staff_headers).get_json()['delivery_status'] == 'delivered'

    again = client.post(f'/deliveries/{delivery_id}/status', json={'status': 'pending'}, headers=d_headers)
    assert again.status_code == 400

    history = client.get('/deliveries/mine/history', headers=d_headers).get_json()
    assert [h['id'] for h in history['data']] == [delivery_id]


def test_out_for_delivery_can_return_to_pending_and_cancel(client):
    _, staff_headers = user_headers(client, 'staff')
    deliverer, d_headers = ensure_deliverer(client)
    order = _delivery_order(client, staff_headers)
    delivery_id = client.put(f"/orders/{order['id']}/delivery", json={'deliverer_id': deliverer.id},
                             headers=staff_headers).get_json()['id']
    client.post(f'/deliveries/{delivery_id}/status', json={'status': 'out_for_delivery'}, headers=d_headers)
    back = client.post(f'/deliveries/{delivery_id}/status', json={'status': 'pending'}, headers=d_headers)
    assert back.status_code == 200
    cancelled = client.post(f'/deliveries/{delivery_id}/status', json={'status': 'cancelled'}, headers=d_headers)
    assert cancelled.status_code == 200
    assert cancelled.get_json()['completed_at'] is not None
    bogus = client.post(f'/deliveries/{delivery_id}/status', json={'status': 'lost'}, headers=d_headers)
    assert bogus.status_code == 400


def test_deliverer_cannot_touch_foreign_delivery(client):
    _, staff_headers = user_headers(client, 'staff')
    owner, _ = ensure_deliverer(client)
    _, other_headers = ensure_deliverer(client)
    order = _delivery_order(client, staff_headers)
    delivery_id = client.put(f"/orders/{order['id']}/delivery", json={'deliverer_id': owner.id},
                             headers=staff_headers).get_json()['id']
    assert client.get(f'/deliveries/{delivery_id}', headers=other_headers).status_code == 404
    assert client.post(f'/deliveries/{delivery_id}/status', json={'status': 'out_for_delivery'},
                       headers=other_headers).status_code == 404
    # staff do not hold DLV.WORK
    assert client.get(f'/deliveries/{delivery_id}', headers=staff_headers).status_code == 403


def test_toggle_online(client):
    deliverer, d_headers = ensure_deliverer(client)
    resp = client.put('/deliveries/mine/online', json={'is_online': True}, headers=d_headers)
    assert resp.status_code == 200
    assert resp.get_json() == {'id': deliverer.id, 'is_online': True}
    assert client.get('/deliveries/mine', headers=d_headers).get_json()['is_online'] is True
    assert client.put('/deliveries/mine/online', json={}, headers=d_headers).status_code == 400


def test_reassign_resets_status(client):
    _, staff_headers = user_headers(client, 'staff')
    first, first_headers = ensure_deliverer(client)
    second, _ = ensure_deliverer(client)
    order = _delivery_order(client, staff_headers)
    delivery_id = client.put(f"/orders/{order['id']}/delivery", json={'deliverer_id': first.id},
                             headers=staff_headers).get_json()['id']
    client.post(f'/deliveries/{delivery_id}/status', json={'status': 'out_for_delivery'}, headers=first_headers)
    moved = client.put(f"/orders/{order['id']}/delivery", json={'deliverer_id': second.id}, headers=staff_headers)
    assert moved.get_json()['id'] == delivery_id
    assert moved.get_json()['status'] == 'pending'
    assert moved.get_json()['deliverer_id'] == second.id


def test_delete_deliverer_releases_open_deliveries(client):
    _, staff_headers = user_headers(client, 'staff')
    deliverer, d_headers = ensure_deliverer(client)
    open_order = _delivery_order(client, staff_headers)
    done_order = _delivery_order(client, staff_headers)
    open_id = client.put(f"/orders/{open_order['id']}/delivery", json={'deliverer_id': deliverer.id},
                         headers=staff_headers).get_json()['id']
    done_id = client.put(f"/orders/{done_order['id']}/delivery", json={'deliverer_id': deliverer.id},
                         headers=staff_headers).get_json()['id']
    client.post(f'/deliveries/{open_id}/status', json={'status': 'out_for_delivery'}, headers=d_headers)
    client.post(f'/deliveries/{done_id}/status', json={'status': 'out_for_delivery'}, headers=d_headers)
    client.post(f'/deliveries/{done_id}/status', json={'status': 'delivered'}, headers=d_headers)

    resp = client.delete(f'/deliveries/deliverers/{deliverer.id}', headers=staff_headers)
    assert resp.status_code == 200
    assert resp.get_json() == {'status': 'deleted', 'released': 1}
    session = get_db()
    open_d = session.get(Delivery, open_id)
    done_d = session.get(Delivery, done_id)
    assert open_d.deliverer_id is None and open_d.status == 'pending'
    assert done_d.deliverer_id is None and done_d.status == 'delivered'
    assert client.get(f"/orders/{open_order['id']}", headers=staff_headers).get_json()['delivery_status'] == 'pending'
