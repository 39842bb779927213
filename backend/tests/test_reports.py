from tests.test_utils_seed import user_headers, create_order_via_api


def test_dashboard_totals_move_with_orders(client):
    _, staff_headers = user_headers(client, 'staff')
    before = client.get('/reports/dashboard', headers=staff_headers).get_json()
    create_order_via_api(client, staff_headers, customer_name='Report Unpaid', total_cents=10000, down_payment_cents=2500)
    create_order_via_api(client, staff_headers, customer_name='Report Paid', total_cents=4000, down_payment_cents=4000)
    after = client.get('/reports/dashboard', headers=staff_headers)
    assert after.status_code == 200
    body = after.get_json()
    assert body['total_orders'] == before['total_orders'] + 2
    assert body['pending_orders'] == before['pending_orders'] + 1
    assert body['total_revenue_cents'] == before['total_revenue_cents'] + 14000
    assert body['outstanding_cents'] == before['outstanding_cents'] + 7500
    assert len(body['recent_orders']) <= 5
    assert body['recent_orders'][0]['customer_name'] == 'Report Paid'
    assert sum(body['by_status'].values()) == body['total_orders']


def test_admin_report(client):
    _, staff_headers = user_headers(client, 'staff')
    _, admin_headers = user_headers(client, 'admin')
    before = client.get('/reports/admin', headers=admin_headers).get_json()
    create_order_via_api(client, staff_headers, customer_name='Admin Report', total_cents=9000, down_payment_cents=9000)
    body = client.get('/reports/admin', headers=admin_headers).get_json()
    assert body['completed_orders'] == before['completed_orders'] + 1
    assert body['total_sales_cents'] == before['total_sales_cents'] + 9000
    assert body['total_outstanding_cents'] == before['total_outstanding_cents']
    assert len(body['recent_payments']) <= 10
    assert body['recent_payments'][0]['customer_name'] == 'Admin Report'
    assert body['recent_payments'][0]['amount_cents'] == 9000


def test_report_permissions(client):
    _, staff_headers = user_headers(client, 'staff')
    _, guard_headers = user_headers(client, 'guard')
    assert client.get('/reports/dashboard', headers=guard_headers).status_code == 403
    assert client.get('/reports/admin', headers=staff_headers).status_code == 403
