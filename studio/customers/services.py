"""
studio/customers/services.py
----------------------------
Customer registry: register / edit / delete / detail / search.

Registration and edits validate everything first, then write the customer
row and hand referrer changes to the ReferralManager, all in one
transaction. A referrer that cannot be resolved aborts the whole
operation, so no customer row exists without its requested referral.
"""
import logging
from typing import Optional

from flask import current_app
from sqlalchemy import func, or_

from studio.customers.models import Customer
from studio.customers.validators import (
    DEFAULT_PHONE_PATTERN, validate_customer_data, parse_customer_data,
)
from studio.errors import ConflictError, NotFoundError, ValidationError
from studio.loyalty.engine import SettlementEngine, build_engine
from studio.loyalty.models import Referral, PointHistory, LevelHistory
from studio.loyalty.policy import Tier
from studio.loyalty.referrals import ReferralManager
from studio.orders.models import Order, OrderStatus
from studio.results import (
    OperationResult, RegistrationResult, CustomerUpdateResult, DetailResult, ReferrerUpdate,
)
from studio.utils.transactions import run_atomic

logger = logging.getLogger(__name__)


def serialize_customer(customer: Customer) -> dict:
    return {
        'id':          customer.id,
        'first_name':  customer.first_name,
        'last_name':   customer.last_name,
        'full_name':   customer.full_name,
        'phone':       customer.phone,
        'birth_date':  customer.birth_date.isoformat() if customer.birth_date else None,
        'note':        customer.note,
        'points':      customer.points,
        'level':       customer.level.value,
        'referred_by': customer.referred_by,
        'created_at':  customer.created_at.isoformat() if customer.created_at else None,
    }


def _referrer_update(outcome) -> Optional[ReferrerUpdate]:
    if outcome is None:
        return None
    return ReferrerUpdate(
        referrer_id=outcome.customer_id,
        points_added=outcome.points_delta,
        new_level=outcome.new_level,
        level_changed=outcome.level_changed,
    )


class CustomerService:

    def __init__(self, session, engine: SettlementEngine, referrals: ReferralManager,
                 phone_pattern: str = DEFAULT_PHONE_PATTERN):
        self.session       = session
        self.engine        = engine
        self.referrals     = referrals
        self.phone_pattern = phone_pattern

    # ── Writes ────────────────────────────────────────────────────

    def register_customer(self, first_name, last_name, phone, birth_date=None, note=None,
                          referrer_id=None, referrer_first_name=None,
                          referrer_last_name=None) -> RegistrationResult:
        raw = {
            'first_name': first_name, 'last_name': last_name, 'phone': phone,
            'birth_date': birth_date, 'note': note,
        }

        def work():
            errors = self._validate(raw)
            referrer = self._resolve_referrer(errors, referrer_id, referrer_first_name, referrer_last_name)
            if errors:
                raise ValidationError(errors)

            customer = Customer(points=0, level=Tier.bronze, **parse_customer_data(raw))
            self.session.add(customer)
            self.session.flush()

            update = None
            if referrer is not None:
                update = _referrer_update(self.referrals.create_referral(referrer.id, customer.id))

            logger.info(f"Customer {customer.id} registered ({customer.phone})"
                        + (f", referred by {referrer.id}" if referrer is not None else ''))
            message = f'Customer {customer.full_name} registered.'
            if update is not None:
                message += f' Referrer {update.referrer_id} received {update.points_added} points.'
            return RegistrationResult(
                success=True,
                message=message,
                customer_id=customer.id,
                referrer_updated=update,
            )

        return run_atomic(self.session, 'Register Customer', RegistrationResult, work,
                          phone=phone, referrer_id=referrer_id,
                          referrer_name=f'{referrer_first_name or ""} {referrer_last_name or ""}'.strip())

    def update_customer(self, customer_id, first_name, last_name, phone, birth_date=None, note=None,
                        referrer_id=None, referrer_first_name=None,
                        referrer_last_name=None) -> CustomerUpdateResult:
        """
        Full edit: every field is replaced, including the referrer. Passing
        no referrer removes an existing one (and revokes its bonus).
        """
        raw = {
            'first_name': first_name, 'last_name': last_name, 'phone': phone,
            'birth_date': birth_date, 'note': note,
        }

        def work():
            customer = self.session.get(Customer, customer_id)
            if customer is None:
                raise NotFoundError(f'Customer {customer_id} not found.')

            errors = self._validate(raw, exclude_id=customer.id)
            referrer = self._resolve_referrer(errors, referrer_id, referrer_first_name,
                                              referrer_last_name, exclude_id=customer.id)
            if errors:
                raise ValidationError(errors)

            for column, value in parse_customer_data(raw).items():
                setattr(customer, column, value)

            old_referrer_id = customer.referred_by
            new_referrer_id = referrer.id if referrer is not None else None
            update = _referrer_update(
                self.referrals.change_referrer(customer.id, old_referrer_id, new_referrer_id)
            )
            self.session.flush()

            if old_referrer_id != new_referrer_id:
                logger.info(f"Customer {customer.id} referrer changed: {old_referrer_id} -> {new_referrer_id}")
            logger.info(f"Customer {customer.id} updated")
            return CustomerUpdateResult(
                success=True,
                message=f'Customer {customer.full_name} updated.',
                referrer_updated=update,
            )

        return run_atomic(self.session, 'Update Customer', CustomerUpdateResult, work,
                          customer_id=customer_id, phone=phone, referrer_id=referrer_id)

    def delete_customer(self, customer_id) -> OperationResult:
        """
        Blocked while the customer has orders or has referred anyone.
        An incoming referral is dropped without touching the referrer's points.
        """

        def work():
            customer = self.session.get(Customer, customer_id)
            if customer is None:
                raise NotFoundError(f'Customer {customer_id} not found.')

            order_count = (
                self.session.query(func.count(Order.id))
                .filter(Order.customer_id == customer.id).scalar()
            )
            referral_count = (
                self.session.query(func.count(Referral.id))
                .filter(Referral.referrer_id == customer.id).scalar()
            )
            if order_count or referral_count:
                raise ConflictError(
                    f'Cannot delete {customer.full_name}: '
                    f'{order_count} order(s) and {referral_count} referral(s) depend on this customer.'
                )

            self.referrals.remove_referral(customer.id, revoke=False)
            self.session.query(Customer).filter(Customer.referred_by == customer.id) \
                .update({Customer.referred_by: None}, synchronize_session=False)
            # point and level history stay; their customer_id is left dangling
            self.session.delete(customer)

            logger.info(f"Customer {customer_id} deleted")
            return OperationResult(success=True, message=f'Customer {customer.full_name} deleted.')

        return run_atomic(self.session, 'Delete Customer', OperationResult, work,
                          customer_id=customer_id)

    # ── Reads ─────────────────────────────────────────────────────

    def get_customer(self, customer_id) -> DetailResult:
        """Profile, order stats, referrals and the latest point history."""

        def work():
            customer = self.session.get(Customer, customer_id)
            if customer is None:
                raise NotFoundError(f'Customer {customer_id} not found.')

            stats = self.session.query(
                func.count(Order.id).label('order_count'),
                func.coalesce(func.sum(Order.total), 0).label('total_spent'),
                func.coalesce(func.sum(Order.balance), 0).label('balance_due'),
            ).filter(Order.customer_id == customer.id).first()
            completed = (
                self.session.query(func.count(Order.id))
                .filter(Order.customer_id == customer.id, Order.status == OrderStatus.completed)
                .scalar()
            )

            referrals = (
                self.session.query(Referral)
                .filter(Referral.referrer_id == customer.id)
                .order_by(Referral.created_at.desc()).all()
            )
            history = (
                self.session.query(PointHistory)
                .filter(PointHistory.customer_id == customer.id)
                .order_by(PointHistory.id.desc()).limit(50).all()
            )
            levels = (
                self.session.query(LevelHistory)
                .filter(LevelHistory.customer_id == customer.id)
                .order_by(LevelHistory.id.desc()).all()
            )

            data = serialize_customer(customer)
            data.update({
                'discount_percent': str(self.engine.tiers.discount_for(customer.level)),
                'referrer': serialize_customer(customer.referrer) if customer.referrer else None,
                'stats': {
                    'order_count':     stats.order_count,
                    'completed_count': completed,
                    'total_spent':     str(stats.total_spent),
                    'balance_due':     str(stats.balance_due),
                },
                'referrals': [{
                    'referred_id':   r.referred_id,
                    'referred_name': r.referred.full_name if r.referred else None,
                    'status':        r.status.value,
                    'created_at':    r.created_at.isoformat(),
                } for r in referrals],
                'point_history': [{
                    'points':     h.points,
                    'event_type': h.event_type.value,
                    'related_id': h.related_id,
                    'note':       h.note,
                    'created_at': h.created_at.isoformat(),
                } for h in history],
                'level_history': [{
                    'old_level':  h.old_level.value,
                    'new_level':  h.new_level.value,
                    'points':     h.points,
                    'changed_at': h.changed_at.isoformat(),
                } for h in levels],
            })
            return DetailResult(success=True, message='OK', data=data)

        return run_atomic(self.session, 'Get Customer', DetailResult, work, customer_id=customer_id)

    def search_customers(self, keyword: str = '', limit: int = 20, offset: int = 0) -> list:
        """Every whitespace-separated term must match a name part or the phone."""
        query = self.session.query(Customer)
        for term in (keyword or '').split():
            like = f'%{term}%'
            query = query.filter(or_(
                Customer.first_name.ilike(like),
                Customer.last_name.ilike(like),
                Customer.phone.ilike(like),
            ))
        rows = (
            query.order_by(Customer.last_name, Customer.first_name, Customer.id)
            .limit(max(1, min(int(limit), 100))).offset(max(0, int(offset))).all()
        )
        return [serialize_customer(c) for c in rows]

    # ── Internals ─────────────────────────────────────────────────

    def _validate(self, raw: dict, exclude_id: Optional[int] = None) -> dict:
        errors = validate_customer_data(raw, self.phone_pattern)
        if 'phone' not in errors:
            query = self.session.query(Customer.id).filter(Customer.phone == str(raw['phone']).strip())
            if exclude_id is not None:
                query = query.filter(Customer.id != exclude_id)
            if query.first() is not None:
                errors['phone'] = 'This phone number is already registered.'
        return errors

    def _resolve_referrer(self, errors: dict, referrer_id, first_name, last_name, exclude_id=None):
        """Referrer lookup failures join the other field errors."""
        try:
            return self.referrals.resolve_referrer(referrer_id, first_name, last_name, exclude_id=exclude_id)
        except ValidationError as exc:
            errors.update(exc.errors)
            return None


def build_customer_service(session=None, app_config=None) -> CustomerService:
    from studio import db
    cfg = app_config if app_config is not None else current_app.config
    session = session if session is not None else db.session
    engine = build_engine(session, cfg)
    return CustomerService(
        session,
        engine,
        ReferralManager(session, engine),
        cfg.get('CUSTOMER_PHONE_PATTERN', DEFAULT_PHONE_PATTERN),
    )
