"""
studio/loyalty/referrals.py
---------------------------
Referral links: at most one referrer per customer.

Every method runs inside the caller's transaction and never commits;
point effects go through the settlement engine so the referrer's tier
and history stay in step with the link itself.
"""
import logging
from typing import Optional

from studio.customers.models import Customer
from studio.errors import ConflictError, ValidationError
from studio.loyalty.engine import SettlementEngine, SettlementResult
from studio.loyalty.models import Referral, ReferralStatus

logger = logging.getLogger(__name__)


class ReferralManager:

    def __init__(self, session, engine: SettlementEngine):
        self.session = session
        self.engine  = engine

    # ── Lookup ────────────────────────────────────────────────────

    def resolve_referrer(self, referrer_id: Optional[int] = None,
                         first_name: Optional[str] = None, last_name: Optional[str] = None,
                         exclude_id: Optional[int] = None) -> Optional[Customer]:
        """
        Find the referrer a form points at.

        An id always wins over a name pair. A name pair must match exactly
        one customer: none is a validation error, several is a conflict the
        operator resolves by picking the referrer by id.
        Returns None when no referrer was given at all.
        """
        if referrer_id:
            try:
                referrer_id = int(referrer_id)
            except (TypeError, ValueError):
                raise ValidationError({'referrer': 'Referrer must be a valid customer id.'})
            referrer = self.session.get(Customer, referrer_id)
            if referrer is None:
                raise ValidationError({'referrer': 'Referrer not found.'})
            if exclude_id is not None and referrer.id == exclude_id:
                raise ValidationError({'referrer': 'A customer cannot refer themselves.'})
            return referrer

        first_name = (first_name or '').strip()
        last_name  = (last_name or '').strip()
        if not first_name and not last_name:
            return None
        if not first_name or not last_name:
            raise ValidationError({'referrer': "Both the referrer's first and last name are required."})

        found = self.session.query(Customer).filter(
            Customer.first_name == first_name,
            Customer.last_name == last_name,
        ).limit(3).all()
        matches = [c for c in found if c.id != exclude_id]

        if not matches and len(found) > len(matches):
            raise ValidationError({'referrer': 'A customer cannot refer themselves.'})
        if not matches:
            raise ValidationError({'referrer': f'Referrer "{first_name} {last_name}" not found.'})
        if len(matches) > 1:
            raise ConflictError(
                f'More than one customer is named "{first_name} {last_name}"; '
                f'select the referrer by id.'
            )
        return matches[0]

    # ── Mutations ─────────────────────────────────────────────────

    def create_referral(self, referrer_id: int, referred_id: int) -> SettlementResult:
        """Link referred → referrer and credit the referrer with the bonus."""
        if referrer_id == referred_id:
            raise ValidationError({'referrer': 'A customer cannot refer themselves.'})

        referred = self.session.get(Customer, referred_id)
        if self.session.get(Customer, referrer_id) is None:
            raise ValidationError({'referrer': 'Referrer not found.'})
        if referred is None:
            raise ValidationError({'customer': 'Referred customer not found.'})

        existing = self.session.query(Referral).filter_by(referred_id=referred_id).first()
        if existing is not None:
            raise ConflictError(f'Customer {referred_id} already has a referrer.')

        self.session.add(Referral(
            referrer_id=referrer_id,
            referred_id=referred_id,
            status=ReferralStatus.pending,
        ))
        referred.referred_by = referrer_id
        self.session.flush()

        logger.info(f"Referral created: {referrer_id} -> {referred_id}")
        return self.engine.award_referral(referrer_id, referred_id)

    def change_referrer(self, customer_id: int, old_referrer_id: Optional[int],
                        new_referrer_id: Optional[int]) -> Optional[SettlementResult]:
        """
        Swap a customer's referrer. The old referrer loses the bonus (clamped
        at zero), the new one gains it. Returns the new referrer's settlement,
        or None when nothing was credited.
        """
        if old_referrer_id == new_referrer_id:
            return None

        if old_referrer_id:
            self.remove_referral(customer_id, revoke=True)

        if new_referrer_id:
            return self.create_referral(new_referrer_id, customer_id)

        customer = self.session.get(Customer, customer_id)
        if customer is not None:
            customer.referred_by = None
        return None

    def remove_referral(self, referred_id: int, revoke: bool = True) -> Optional[SettlementResult]:
        """
        Drop the referral row pointing at `referred_id`.
        With revoke=True the referrer loses the bonus.
        """
        referral = self.session.query(Referral).filter_by(referred_id=referred_id).first()
        if referral is None:
            return None

        referrer_id = referral.referrer_id
        self.session.delete(referral)
        referred = self.session.get(Customer, referred_id)
        if referred is not None:
            referred.referred_by = None
        self.session.flush()

        logger.info(f"Referral removed: {referrer_id} -> {referred_id}")
        if not revoke:
            return None
        return self.engine.revoke_referral(referrer_id, referred_id)

    def mark_completed(self, referred_id: int, order_id: int) -> bool:
        """Flip a pending referral to completed on the referred customer's first completed order."""
        referral = (
            self.session.query(Referral)
            .filter_by(referred_id=referred_id, status=ReferralStatus.pending)
            .first()
        )
        if referral is None:
            return False
        referral.status   = ReferralStatus.completed
        referral.order_id = order_id
        logger.info(f"Referral {referral.referrer_id} -> {referred_id} completed by order {order_id}")
        return True
