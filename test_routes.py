"""
test_routes.py: JSON API: auth guards and result → status code mapping.
Run: pytest test_routes.py -v
"""
import pytest
from datetime import date
from decimal import Decimal

from studio import create_app, db
from studio.auth.models import User, RoleEnum
from studio.products.models import Product


@pytest.fixture(scope='function')
def client():
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        admin = User(username='admin', name='Admin', role=RoleEnum.admin)
        admin.set_password('admin123')
        operator = User(username='op', name='Operator', role=RoleEnum.operator)
        operator.set_password('op123')
        db.session.add_all([admin, operator])
        db.session.add(Product(product_code='PRD-20250101-0001', size='13x18', price=Decimal('60000.00')))
        db.session.commit()
        yield app.test_client()
        db.session.remove()
        db.drop_all()


def login(client, username='admin', password='admin123'):
    return client.post('/auth/login', json={'username': username, 'password': password})


def test_health(client):
    resp = client.get('/health')
    assert resp.status_code == 200
    assert resp.get_json()['details']['db'] == 'ok'


def test_login_required(client):
    assert client.get('/customers/search?q=a').status_code == 401
    assert login(client, password='wrong').status_code == 401
    assert login(client).status_code == 200
    assert client.get('/customers/search?q=a').status_code == 200


def test_admin_only_routes(client):
    login(client, 'op', 'op123')
    assert client.post('/products/', json={'size': '10x15', 'price': '1'}).status_code == 403
    assert client.post('/auth/operators', json={'name': 'X', 'username': 'x', 'password': 'xyz'}).status_code == 403


def test_register_operator(client):
    login(client)
    resp = client.post('/auth/operators', json={'name': 'New Op', 'username': 'newop', 'password': 'secret'})
    assert resp.status_code == 201
    dup = client.post('/auth/operators', json={'name': 'New Op', 'username': 'newop', 'password': 'secret'})
    assert dup.status_code == 400
    assert 'username' in dup.get_json()['errors']


def test_order_to_loyalty_over_http(client):
    login(client)

    resp = client.post('/customers/', json={'first_name': 'Ali', 'last_name': 'Rezai', 'phone': '09120000001'})
    assert resp.status_code == 201
    customer_id = resp.get_json()['customer_id']

    resp = client.post('/orders/', json={
        'customer_id': customer_id, 'order_date': date.today().isoformat(), 'delivery_days': 2,
        'payment': '10000', 'status': 'pending', 'items': [{'product_id': 1, 'quantity': 1}],
    })
    assert resp.status_code == 201
    body = resp.get_json()
    assert body['total'] == '60000.00'
    order_id = body['order_id']

    resp = client.post(f'/orders/{order_id}/complete')
    assert resp.status_code == 200
    assert resp.get_json()['points_awarded'] == 60

    again = client.post(f'/orders/{order_id}/complete')
    assert again.status_code == 200
    assert again.get_json()['points_awarded'] == 0

    detail = client.get(f'/customers/{customer_id}').get_json()
    assert detail['data']['points'] == 60

    history = client.get(f'/loyalty/customers/{customer_id}/history').get_json()
    assert [h['event_type'] for h in history] == ['order']


def test_error_kinds_map_to_status_codes(client):
    login(client)
    bad = client.post('/customers/', json={'first_name': 'Ali', 'last_name': 'Rezai', 'phone': '123'})
    assert bad.status_code == 400
    assert bad.get_json()['error_kind'] == 'validation'

    assert client.get('/orders/999').status_code == 404

    client.post('/customers/', json={'first_name': 'Ali', 'last_name': 'Rezai', 'phone': '09120000001'})
    client.post('/customers/', json={'first_name': 'Ali', 'last_name': 'Rezai', 'phone': '09120000002'})
    ambiguous = client.post('/customers/', json={
        'first_name': 'Sara', 'last_name': 'Ahmadi', 'phone': '09120000003',
        'referrer_first_name': 'Ali', 'referrer_last_name': 'Rezai',
    })
    assert ambiguous.status_code == 409


def test_manual_point_adjustment(client):
    login(client)
    customer_id = client.post('/customers/', json={
        'first_name': 'Ali', 'last_name': 'Rezai', 'phone': '09120000001',
    }).get_json()['customer_id']

    resp = client.post(f'/loyalty/customers/{customer_id}/points',
                       json={'delta': 1200, 'event_type': 'bonus', 'note': 'Opening gift'})
    assert resp.status_code == 200
    body = resp.get_json()
    assert body['points'] == 1200
    assert body['new_level'] == 'silver'

    assert client.post(f'/loyalty/customers/{customer_id}/points', json={'delta': 'x'}).status_code == 400


def test_dashboard(client):
    login(client)
    resp = client.get('/dashboard/?range_type=custom&start_date=2025-02-01&end_date=2025-01-01')
    assert resp.status_code == 200
    body = resp.get_json()
    assert body['range']['start'] == '2025-01-01'
    assert body['range']['warnings']
    assert body['kpis']['total_orders'] == 0
    assert client.get('/dashboard/due-soon').get_json() == []
