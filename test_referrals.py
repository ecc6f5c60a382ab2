"""
test_referrals.py: Referral bonus on registration, reversal on referrer change.
Run: pytest test_referrals.py -v
"""
import pytest
from datetime import date
from decimal import Decimal

from studio import create_app, db
from studio.customers.models import Customer
from studio.customers.services import build_customer_service
from studio.loyalty.models import Referral, ReferralStatus, PointHistory, PointEvent
from studio.loyalty.policy import Tier
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


@pytest.fixture
def service(app):
    return build_customer_service()


def make_customer(first, last, phone, points=0):
    c = Customer(first_name=first, last_name=last, phone=phone, points=points,
                 level=Tier.silver if points >= 1000 else Tier.bronze)
    db.session.add(c)
    db.session.commit()
    return c


def points_of(customer_id):
    return db.session.get(Customer, customer_id).points


# ── Registration ──────────────────────────────────────────────────

def test_register_with_referrer_by_id(service):
    referrer = make_customer('Ali', 'Rezai', '09120000001', points=950)

    result = service.register_customer('Maryam', 'Karimi', '09120000002', referrer_id=referrer.id)
    assert result.success, result.message
    assert result.referrer_updated.referrer_id == referrer.id
    assert result.referrer_updated.points_added == 100
    assert result.referrer_updated.new_level is Tier.silver
    assert result.referrer_updated.level_changed is True

    assert points_of(referrer.id) == 1050
    referral = Referral.query.one()
    assert (referral.referrer_id, referral.referred_id) == (referrer.id, result.customer_id)
    assert referral.status is ReferralStatus.pending
    assert db.session.get(Customer, result.customer_id).referred_by == referrer.id

    row = PointHistory.query.filter_by(customer_id=referrer.id).one()
    assert (row.points, row.event_type, row.related_id) == (100, PointEvent.referral, result.customer_id)


def test_register_with_referrer_by_name(service):
    referrer = make_customer('Ali', 'Rezai', '09120000001')
    result = service.register_customer('Reza', 'Moradi', '09120000003',
                                       referrer_first_name='Ali', referrer_last_name='Rezai')
    assert result.success
    assert result.referrer_updated.referrer_id == referrer.id


def test_unknown_referrer_blocks_registration(service):
    result = service.register_customer('Reza', 'Moradi', '09120000003',
                                       referrer_first_name='Ali', referrer_last_name='Rezai')
    assert not result.success
    assert result.error_kind == 'validation'
    assert 'not found' in result.errors['referrer']
    assert Customer.query.count() == 0
    assert Referral.query.count() == 0


def test_ambiguous_referrer_name_is_a_conflict(service):
    make_customer('Ali', 'Rezai', '09120000001')
    make_customer('Ali', 'Rezai', '09120000002')
    result = service.register_customer('Reza', 'Moradi', '09120000003',
                                       referrer_first_name='Ali', referrer_last_name='Rezai')
    assert not result.success
    assert result.error_kind == 'conflict'
    assert Customer.query.count() == 2


def test_unknown_referrer_id(service):
    result = service.register_customer('Reza', 'Moradi', '09120000003', referrer_id=404)
    assert not result.success
    assert 'referrer' in result.errors


# ── Referrer change ───────────────────────────────────────────────

def test_change_referrer_moves_the_bonus(service):
    x = make_customer('Xavier', 'One', '09120000011', points=500)
    y = make_customer('Yasmin', 'Two', '09120000012', points=950)
    b = service.register_customer('Bahar', 'Three', '09120000013', referrer_id=x.id)
    assert points_of(x.id) == 600

    result = service.update_customer(b.customer_id, 'Bahar', 'Three', '09120000013', referrer_id=y.id)
    assert result.success, result.message
    assert result.referrer_updated.referrer_id == y.id
    assert result.referrer_updated.new_level is Tier.silver

    assert points_of(x.id) == 500
    assert points_of(y.id) == 1050
    assert db.session.get(Customer, y.id).level is Tier.silver

    x_events = [h.event_type for h in PointHistory.query.filter_by(customer_id=x.id).order_by(PointHistory.id)]
    assert x_events == [PointEvent.referral, PointEvent.referral_removed]
    y_events = [h.event_type for h in PointHistory.query.filter_by(customer_id=y.id)]
    assert y_events == [PointEvent.referral]

    referral = Referral.query.one()
    assert referral.referrer_id == y.id
    assert db.session.get(Customer, b.customer_id).referred_by == y.id


def test_referral_removal_is_clamped_at_zero(service):
    from studio.loyalty.engine import build_engine
    x = make_customer('Xavier', 'One', '09120000011', points=30)
    b = service.register_customer('Bahar', 'Three', '09120000013', referrer_id=x.id)
    build_engine().adjust_points(x.id, -100)          # 130 → 30
    assert points_of(x.id) == 30

    result = service.update_customer(b.customer_id, 'Bahar', 'Three', '09120000013')
    assert result.success
    assert result.referrer_updated is None
    assert points_of(x.id) == 0

    removed = PointHistory.query.filter_by(customer_id=x.id, event_type=PointEvent.referral_removed).one()
    assert removed.points == -30
    assert Referral.query.count() == 0
    assert db.session.get(Customer, b.customer_id).referred_by is None


def test_unchanged_referrer_is_a_noop(service):
    x = make_customer('Xavier', 'One', '09120000011')
    b = service.register_customer('Bahar', 'Three', '09120000013', referrer_id=x.id)

    result = service.update_customer(b.customer_id, 'Bahar', 'Three', '09120000099', referrer_id=x.id)
    assert result.success
    assert result.referrer_updated is None
    assert points_of(x.id) == 100
    assert PointHistory.query.count() == 1


def test_customer_cannot_refer_themselves(service):
    b = make_customer('Bahar', 'Three', '09120000013')
    result = service.update_customer(b.id, 'Bahar', 'Three', '09120000013', referrer_id=b.id)
    assert not result.success
    assert result.error_kind == 'validation'
    assert Referral.query.count() == 0


def test_customer_naming_themselves_as_referrer(service):
    b = make_customer('Bahar', 'Three', '09120000013')
    result = service.update_customer(b.id, 'Bahar', 'Three', '09120000013',
                                     referrer_first_name='Bahar', referrer_last_name='Three')
    assert not result.success
    assert result.errors['referrer'] == 'A customer cannot refer themselves.'

    namesake = make_customer('Bahar', 'Three', '09120000014')
    result = service.update_customer(b.id, 'Bahar', 'Three', '09120000013',
                                     referrer_first_name='Bahar', referrer_last_name='Three')
    assert result.success, result.message
    assert result.referrer_updated.referrer_id == namesake.id


# ── Referral completion ───────────────────────────────────────────

def test_first_completed_order_completes_the_referral(service):
    x = make_customer('Xavier', 'One', '09120000011')
    b = service.register_customer('Bahar', 'Three', '09120000013', referrer_id=x.id)
    product = Product(product_code='PRD-20250101-0001', size='10x15', price=Decimal('1000.00'))
    db.session.add(product)
    db.session.commit()

    workflow = build_order_workflow()
    order = workflow.create_order(
        {'customer_id': b.customer_id, 'order_date': date.today().isoformat(),
         'delivery_days': 1, 'payment': '0', 'status': 'pending'},
        [{'product_id': product.id, 'quantity': 1}],
    )
    workflow.complete_order(order.order_id)

    referral = Referral.query.one()
    assert referral.status is ReferralStatus.completed
    assert referral.order_id == order.order_id

    workflow.delete_order(order.order_id)
    assert Referral.query.one().order_id is None
