"""
test_dashboard.py: Date ranges and management aggregates.
Run: pytest test_dashboard.py -v
"""
import pytest
from datetime import date, timedelta
from decimal import Decimal

from studio import create_app, db
from studio.customers.models import Customer
from studio.dashboard.reports import build_dashboard, resolve_date_range
from studio.orders.workflow import build_order_workflow
from studio.products.models import Product

TODAY = date(2025, 6, 18)   # a Wednesday


# ── Date ranges ───────────────────────────────────────────────────

@pytest.mark.parametrize('range_type,start,end', [
    ('today',      date(2025, 6, 18), date(2025, 6, 18)),
    ('yesterday',  date(2025, 6, 17), date(2025, 6, 17)),
    ('this_week',  date(2025, 6, 16), date(2025, 6, 18)),
    ('last_week',  date(2025, 6, 9),  date(2025, 6, 15)),
    ('this_month', date(2025, 6, 1),  date(2025, 6, 18)),
    ('last_month', date(2025, 5, 1),  date(2025, 5, 31)),
    ('this_year',  date(2025, 1, 1),  date(2025, 6, 18)),
    ('last_year',  date(2024, 1, 1),  date(2024, 12, 31)),
])
def test_named_ranges(range_type, start, end):
    rng = resolve_date_range(range_type, today=TODAY)
    assert (rng.start, rng.end, rng.warnings) == (start, end, [])


def test_custom_range_swapped():
    rng = resolve_date_range('custom', '2025-06-10', '2025-06-01', today=TODAY)
    assert (rng.start, rng.end) == (date(2025, 6, 1), date(2025, 6, 10))
    assert len(rng.warnings) == 1


def test_custom_range_future_end_clamped():
    rng = resolve_date_range('custom', '2025-06-01', '2025-07-30', today=TODAY)
    assert rng.end == TODAY
    assert rng.warnings


def test_custom_range_invalid_falls_back():
    rng = resolve_date_range('custom', 'yesterday-ish', None, today=TODAY)
    assert rng.range_type == 'this_month'
    assert rng.start == date(2025, 6, 1)
    assert rng.warnings


# ── Aggregates ────────────────────────────────────────────────────

@pytest.fixture
def app():
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def seeded(app):
    ali = Customer(first_name='Ali', last_name='Rezai', phone='09120000001')
    sara = Customer(first_name='Sara', last_name='Ahmadi', phone='09120000002')
    small = Product(product_code='PRD-20250101-0001', size='10x15', price=Decimal('1000.00'))
    big = Product(product_code='PRD-20250101-0002', size='50x70', price=Decimal('20000.00'))
    db.session.add_all([ali, sara, small, big])
    db.session.commit()

    workflow = build_order_workflow()
    today = date.today()

    def order(customer, items, status, payment='0', order_date=today, delivery_days=3):
        result = workflow.create_order(
            {'customer_id': customer.id, 'order_date': order_date.isoformat(),
             'delivery_days': delivery_days, 'payment': payment, 'status': status},
            items,
        )
        assert result.success, result.message
        return result.order_id

    ids = {
        'ali_done_1': order(ali, [{'product_id': small.id, 'quantity': 5}], 'completed', payment='5000'),
        'ali_done_2': order(ali, [{'product_id': big.id, 'quantity': 1}], 'completed', payment='20000'),
        'sara_done':  order(sara, [{'product_id': small.id, 'quantity': 2}], 'completed', payment='1000'),
        'sara_open':  order(sara, [{'product_id': big.id, 'quantity': 1}], 'pending', payment='5000',
                            order_date=today - timedelta(days=1), delivery_days=3),
        'late':       order(ali, [{'product_id': small.id, 'quantity': 1}], 'in_progress',
                            order_date=today - timedelta(days=20), delivery_days=2),
    }
    return {'ali': ali.id, 'sara': sara.id, 'small': small.id, 'big': big.id, 'orders': ids,
            'start': today - timedelta(days=30), 'end': today}


def test_financial_overview(seeded):
    fin = build_dashboard().financial_overview(seeded['start'], seeded['end'])
    assert fin['revenue'] == Decimal('27000.00')
    assert fin['pending'] == Decimal('20000.00')
    assert fin['in_progress'] == Decimal('1000.00')
    assert fin['collected'] == Decimal('31000.00')
    assert fin['outstanding'] == Decimal('17000.00')


def test_order_stats(seeded):
    stats = build_dashboard().order_stats(seeded['start'], seeded['end'])
    assert stats['status_counts'] == {'pending': 1, 'in_progress': 1, 'completed': 3, 'canceled': 0}
    assert stats['total_orders'] == 5
    assert stats['new_customers'] == 2
    assert stats['pending_value'] == Decimal('16000.00')


def test_top_products_and_customers(seeded):
    reports = build_dashboard()
    products = reports.top_products(seeded['start'], seeded['end'])
    assert [p['product_id'] for p in products] == [seeded['small'], seeded['big']]
    assert products[0]['total_sold'] == 8
    assert products[0]['revenue'] == Decimal('8000.00')

    customers = reports.top_customers(seeded['start'], seeded['end'])
    assert [c['customer_id'] for c in customers] == [seeded['ali'], seeded['sara']]
    assert customers[0]['total_spent'] == Decimal('25000.00')
    assert customers[0]['order_count'] == 2


def test_kpis(seeded):
    kpis = build_dashboard().kpis(seeded['start'], seeded['end'])
    assert kpis['total_customers'] == 2
    assert kpis['total_orders'] == 3
    assert kpis['total_revenue'] == Decimal('27000.00')
    assert kpis['repeat_customers'] == 1
    assert kpis['return_rate'] == Decimal('50.00')
    assert kpis['aov'] == Decimal('9000.00')
    assert kpis['avg_items_per_order'] == Decimal('2.67')
    assert kpis['delayed_orders'] == 1


def test_open_and_due_orders(seeded):
    reports = build_dashboard()
    open_ids = {o['id'] for o in reports.non_completed_orders(seeded['start'], seeded['end'])}
    assert open_ids == {seeded['orders']['sara_open'], seeded['orders']['late']}

    due = reports.orders_due_in(days=2)
    assert [o['id'] for o in due] == [seeded['orders']['sara_open']]
