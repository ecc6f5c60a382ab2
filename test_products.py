import re
import pytest
from datetime import date
from decimal import Decimal

from studio import create_app, db
from studio.customers.models import Customer
from studio.orders.workflow import build_order_workflow
from studio.products.models import Product, generate_product_code
from studio.products.services import build_product_service


@pytest.fixture
def app():
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def service(app):
    return build_product_service()


def test_product_code_format():
    assert re.fullmatch(r'PRD-20250314-\d{4}', generate_product_code(date(2025, 3, 14)))


def test_register_product(service):
    result = service.register_product({'size': '13x18', 'type': 'Glossy', 'price': '45000',
                                       'default_discount': '', 'description': ' '})
    assert result.success, result.message
    assert re.fullmatch(r'PRD-\d{8}-\d{4}', result.product_code)

    p = db.session.get(Product, result.product_id)
    assert p.price == Decimal('45000.00')
    assert p.default_discount == Decimal('0.00')
    assert p.description is None
    assert p.label == '13x18 / Glossy'


def test_register_validation(service):
    result = service.register_product({'size': '', 'price': '-1', 'default_discount': 'abc'})
    assert not result.success
    assert set(result.errors) == {'size', 'price', 'default_discount'}
    assert Product.query.count() == 0


def test_update_product(service):
    created = service.register_product({'size': '10x15', 'price': '1000'})
    result = service.update_product(created.product_id, {'size': '10x15', 'color': 'Sepia', 'price': '1200'})
    assert result.success
    assert result.product_code == created.product_code
    p = db.session.get(Product, created.product_id)
    assert (p.price, p.color) == (Decimal('1200.00'), 'Sepia')

    assert service.update_product(999, {'size': 'x', 'price': '1'}).error_kind == 'not_found'


def test_delete_blocked_while_ordered(service):
    created = service.register_product({'size': '10x15', 'price': '1000'})
    customer = Customer(first_name='Ali', last_name='Rezai', phone='09120000001')
    db.session.add(customer)
    db.session.commit()
    order = build_order_workflow().create_order(
        {'customer_id': customer.id, 'order_date': date.today().isoformat(),
         'delivery_days': 2, 'payment': '0', 'status': 'pending'},
        [{'product_id': created.product_id, 'quantity': 1}],
    )

    blocked = service.delete_product(created.product_id)
    assert not blocked.success and blocked.error_kind == 'conflict'

    build_order_workflow().delete_order(order.order_id)
    assert service.delete_product(created.product_id).success
    assert Product.query.count() == 0


def test_search_products(service):
    service.register_product({'size': '10x15', 'type': 'Glossy', 'price': '1000'})
    service.register_product({'size': '30x40', 'type': 'Canvas', 'price': '9000'})

    assert [p['size'] for p in service.search_products('canvas')] == ['30x40']
    assert len(service.search_products()) == 2
