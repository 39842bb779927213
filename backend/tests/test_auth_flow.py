from tailorshop import get_db
from tailorshop.models.authz import User
from tailorshop.services.policy import has_role
from tests.test_utils_seed import ensure_user, login, unique_email, user_headers


def test_signup_creates_customer_and_login_and_me(client):
    email = unique_email('signup')
    resp = client.post('/iam/auth/signup', json={
        'email': email, 'password': 'secret1', 'full_name': 'Hana Girma', 'phone': '0911555666',
    })
    assert resp.status_code == 201, resp.get_json()
    body = resp.get_json()
    assert body['role'] == 'customer'
    assert has_role(body['id'], 'customer')

    headers = login(client, email, 'secret1')
    me = client.get('/iam/auth/me', headers=headers)
    assert me.status_code == 200
    me_body = me.get_json()
    assert me_body['email'] == email
    assert me_body['role'] == 'customer'
    assert 'ORDERS.REQUEST' in me_body['perms']
    assert 'ORDERS.READ' not in me_body['perms']


def test_signup_validation(client):
    email = unique_email('dup')
    ok = client.post('/iam/auth/signup', json={'email': email, 'password': 'secret1', 'full_name': 'Dup User'})
    assert ok.status_code == 201
    dup = client.post('/iam/auth/signup', json={'email': email, 'password': 'secret1', 'full_name': 'Dup User'})
    assert dup.status_code == 400
    short_pw = client.post('/iam/auth/signup', json={'email': unique_email(), 'password': '123', 'full_name': 'Short'})
    assert short_pw.status_code == 400
    bad_email = client.post('/iam/auth/signup', json={'email': 'not-an-email', 'password': 'secret1', 'full_name': 'Bad'})
    assert bad_email.status_code == 400


def test_login_wrong_password_is_401(client):
    email = unique_email('wrongpw')
    ensure_user(email, 'staff')
    resp = client.post('/iam/auth/login', json={'email': email, 'password': 'nope'})
    assert resp.status_code == 401
    assert resp.get_json()['error']['status'] == 401


def test_login_portal_must_match_role(client):
    email = unique_email('portal')
    ensure_user(email, 'customer')
    resp = client.post('/iam/auth/login', json={'email': email, 'password': 'pw123456', 'portal': 'staff'})
    assert resp.status_code == 403
    assert resp.get_json()['error']['detail'] == 'This login is for staff only'
    login(client, email, portal='customer')


def test_inactive_user_cannot_login(client):
    email = unique_email('inactive')
    user = ensure_user(email, 'staff')
    session = get_db()
    session.get(User, user.id).is_active = False
    session.commit()
    resp = client.post('/iam/auth/login', json={'email': email, 'password': 'pw123456'})
    assert resp.status_code == 403


def test_update_profile(client):
    _, headers = user_headers(client, 'customer')
    resp = client.put('/iam/auth/me', json={'full_name': 'Selam Bekele', 'phone': '0922000111'}, headers=headers)
    assert resp.status_code == 200
    assert resp.get_json()['full_name'] == 'Selam Bekele'
    assert resp.get_json()['phone'] == '0922000111'
    bad = client.put('/iam/auth/me', json={'full_name': 'x'}, headers=headers)
    assert bad.status_code == 400


def test_me_requires_token(client):
    resp = client.get('/iam/auth/me')
    assert resp.status_code == 401
