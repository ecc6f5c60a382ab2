"""
test_settlement.py: Settlement engine: point floor, history, levels, atomicity.
Run: pytest test_settlement.py -v
"""
import pytest
from datetime import date
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError

from studio import create_app, db
from studio.customers.models import Customer
from studio.loyalty.engine import build_engine
from studio.loyalty.models import PointHistory, LevelHistory, PointEvent
from studio.loyalty.policy import Tier
from studio.orders.models import Order, OrderStatus
from studio.orders.workflow import build_order_workflow
from studio.products.models import Product


# ── Fixtures ──────────────────────────────────────────────────────

@pytest.fixture(scope='function')
def app():
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


def make_customer(phone='09120000001', points=0, first='Ali', last='Rezai'):
    c = Customer(first_name=first, last_name=last, phone=phone,
                 points=points, level=Tier.bronze if points < 1000 else Tier.silver)
    db.session.add(c)
    db.session.commit()
    return c


def make_product(price='60000.00', code='PRD-20250101-0001', size='30x40'):
    p = Product(product_code=code, size=size, price=Decimal(price))
    db.session.add(p)
    db.session.commit()
    return p


def order_fields(customer, status='pending', **extra):
    fields = {
        'customer_id': customer.id,
        'order_date': date.today().isoformat(),
        'delivery_days': 3,
        'payment': '0',
        'status': status,
    }
    fields.update(extra)
    return fields


# ── Scenario: order completion crosses a tier ─────────────────────

def test_completion_awards_points_and_promotes(app):
    customer = make_customer(points=950)
    product = make_product('60000.00')
    workflow = build_order_workflow()

    saved = workflow.create_order(order_fields(customer), [{'product_id': product.id, 'quantity': 1}])
    assert saved.success, saved.message

    result = workflow.complete_order(saved.order_id)
    assert result.success
    assert result.points_awarded == 60
    assert result.new_level is Tier.silver
    assert result.level_changed is True

    customer = db.session.get(Customer, customer.id)
    assert customer.points == 1010
    assert customer.level is Tier.silver

    history = PointHistory.query.filter_by(customer_id=customer.id).all()
    assert len(history) == 1
    assert history[0].points == 60
    assert history[0].event_type is PointEvent.order
    assert history[0].related_id == saved.order_id

    levels = LevelHistory.query.filter_by(customer_id=customer.id).all()
    assert len(levels) == 1
    assert (levels[0].old_level, levels[0].new_level, levels[0].points) == (Tier.bronze, Tier.silver, 1010)


# ── Point floor ───────────────────────────────────────────────────

def test_adjustment_is_clamped_at_zero(app):
    customer = make_customer(points=30)
    engine = build_engine()

    result = engine.adjust_points(customer.id, -100, note='Correction')
    assert result.success
    assert result.points == 0
    assert result.points_delta == -30

    row = PointHistory.query.filter_by(customer_id=customer.id).one()
    assert row.points == -30
    assert row.event_type is PointEvent.adjustment
    assert row.note == 'Correction'


def test_history_sums_to_balance(app):
    customer = make_customer(points=0)
    engine = build_engine()
    for delta in (500, -200, 900, -5000, 40, 1200):
        assert engine.adjust_points(customer.id, delta).success

    customer = db.session.get(Customer, customer.id)
    total = sum(h.points for h in PointHistory.query.filter_by(customer_id=customer.id))
    assert customer.points >= 0
    assert total == customer.points == 1240
    assert customer.level is Tier.silver


def test_bonus_can_demote_and_promote(app):
    customer = make_customer(points=0)
    engine = build_engine()

    up = engine.adjust_points(customer.id, 5200, event_type='bonus')
    assert up.new_level is Tier.gold and up.level_changed
    down = engine.adjust_points(customer.id, -4500)
    assert down.new_level is Tier.bronze and down.level_changed

    trail = [(h.old_level, h.new_level) for h in LevelHistory.query.order_by(LevelHistory.id)]
    assert trail == [(Tier.bronze, Tier.gold), (Tier.gold, Tier.bronze)]


def test_adjust_rejects_bad_input(app):
    customer = make_customer()
    engine = build_engine()

    zero = engine.adjust_points(customer.id, 0)
    assert not zero.success and zero.error_kind == 'validation'

    wrong_event = engine.adjust_points(customer.id, 10, event_type='order')
    assert not wrong_event.success and wrong_event.error_kind == 'validation'

    missing = engine.adjust_points(9999, 10)
    assert not missing.success and missing.error_kind == 'not_found'

    assert PointHistory.query.count() == 0


def test_order_points_cannot_be_negative(app):
    from studio.errors import ValidationError
    customer = make_customer(points=100)
    with pytest.raises(ValidationError):
        build_engine().settle(customer.id, PointEvent.order, -10)


# ── Atomicity ─────────────────────────────────────────────────────

def test_failed_history_insert_rolls_back_everything(app, monkeypatch):
    customer = make_customer(points=950)
    product = make_product('60000.00')
    workflow = build_order_workflow()
    saved = workflow.create_order(order_fields(customer), [{'product_id': product.id, 'quantity': 1}])

    def broken_history(**kwargs):
        raise SQLAlchemyError('simulated history insert failure')

    monkeypatch.setattr('studio.loyalty.engine.PointHistory', broken_history)

    result = workflow.complete_order(saved.order_id)
    assert not result.success
    assert result.error_kind == 'store'

    customer = db.session.get(Customer, customer.id)
    assert customer.points == 950
    assert customer.level is Tier.bronze
    assert db.session.get(Order, saved.order_id).status is OrderStatus.pending
    assert LevelHistory.query.count() == 0


# ── Level drift repair ────────────────────────────────────────────

def test_reconcile_levels_repairs_drift(app):
    drifted = make_customer(points=5200)            # stored as silver
    fine = make_customer(phone='09120000002', points=10)

    fixed = build_engine().reconcile_levels()
    assert [r.customer_id for r in fixed] == [drifted.id]
    assert fixed[0].new_level is Tier.gold

    assert db.session.get(Customer, drifted.id).level is Tier.gold
    assert db.session.get(Customer, fine.id).level is Tier.bronze
    assert build_engine().reconcile_levels() == []
