"""
studio/loyalty/engine.py
------------------------
Settlement engine: the only code that writes Customer.points / level.

settle() steps, all inside the caller's open transaction:
  1. Lock the customer row with SELECT … FOR UPDATE
  2. Apply the delta. Order points only ever add; every other event
     is clamped so the balance never drops below zero
  3. Append a PointHistory row with the applied delta
  4. Re-derive the tier; on change update level + append LevelHistory
  5. Return a SettlementResult

Nothing here commits. The caller (order workflow, referral manager,
customer registry) decides where the transaction ends, so a status write
and its point award land together or not at all. adjust_points() and
reconcile_levels() are the two self-contained operations that own their
own transaction.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import List, Optional

from flask import current_app

from studio.customers.models import Customer
from studio.errors import NotFoundError, ValidationError
from studio.loyalty.models import PointEvent, PointHistory, LevelHistory
from studio.loyalty.policy import Tier, TierPolicy, PointsPolicy
from studio.results import AdjustmentResult
from studio.utils.transactions import run_atomic

logger = logging.getLogger(__name__)

MANUAL_EVENTS = (PointEvent.adjustment, PointEvent.bonus)


@dataclass
class SettlementResult:
    """Outcome of one settle() call."""
    customer_id:   int
    event_type:    PointEvent
    points_delta:  int           # applied delta (after clamping)
    points:        int           # new balance
    old_level:     Tier
    new_level:     Tier
    level_changed: bool


class SettlementEngine:

    def __init__(self, session, tier_policy: TierPolicy, points_policy: PointsPolicy):
        self.session = session
        self.tiers   = tier_policy
        self.points  = points_policy

    # ── Core step ─────────────────────────────────────────────────

    def settle(self, customer_id: int, event_type, delta: int,
               related_id: Optional[int] = None, note: Optional[str] = None) -> SettlementResult:
        event = PointEvent(event_type)
        delta = int(delta)
        if event is PointEvent.order and delta < 0:
            raise ValidationError({'points': 'Order points can only be added, never removed.'})

        customer = self._lock_customer(customer_id)

        old_points = customer.points
        new_points = max(old_points + delta, 0)
        applied    = new_points - old_points
        customer.points = new_points

        self.session.add(PointHistory(
            customer_id=customer.id,
            points=applied,
            event_type=event,
            related_id=related_id,
            note=note,
        ))

        old_level, new_level, changed = self._sync_level(customer)
        self.session.flush()

        if applied != delta:
            logger.info(f"Points clamped at zero for customer {customer.id}: "
                        f"requested {delta:+d}, applied {applied:+d}")
        logger.info(f"Settled {event.value} for customer {customer.id}: {applied:+d} → {new_points} pts"
                    + (f" | level {old_level.value}→{new_level.value}" if changed else ''))

        return SettlementResult(
            customer_id=customer.id,
            event_type=event,
            points_delta=applied,
            points=new_points,
            old_level=old_level,
            new_level=new_level,
            level_changed=changed,
        )

    # ── Event shortcuts used by the workflows ─────────────────────

    def award_order(self, order) -> SettlementResult:
        """Points for a completed order, related to the order id."""
        return self.settle(order.customer_id, PointEvent.order,
                           self.points.points_for_order(order.total),
                           related_id=order.id)

    def award_referral(self, referrer_id: int, referred_id: int) -> SettlementResult:
        return self.settle(referrer_id, PointEvent.referral,
                           self.points.referral_bonus(), related_id=referred_id)

    def revoke_referral(self, referrer_id: int, referred_id: int) -> SettlementResult:
        return self.settle(referrer_id, PointEvent.referral_removed,
                           -self.points.referral_bonus(), related_id=referred_id)

    # ── Self-contained operations ─────────────────────────────────

    def adjust_points(self, customer_id: int, delta: int,
                      event_type='adjustment', note: Optional[str] = None) -> AdjustmentResult:
        """Manual adjustment or bonus by an operator, committed on its own."""

        def work():
            try:
                event = PointEvent(event_type)
            except ValueError:
                event = None
            if event not in MANUAL_EVENTS:
                raise ValidationError({'event_type': 'Manual changes must be an adjustment or a bonus.'})
            if int(delta) == 0:
                raise ValidationError({'delta': 'Point change cannot be zero.'})

            outcome = self.settle(customer_id, event, delta, note=note)
            return AdjustmentResult(
                success=True,
                message=f"Customer {customer_id} now has {outcome.points} points ({outcome.new_level.value}).",
                customer_id=customer_id,
                points=outcome.points,
                points_delta=outcome.points_delta,
                new_level=outcome.new_level,
                level_changed=outcome.level_changed,
            )

        return run_atomic(self.session, 'Adjust Points', AdjustmentResult, work,
                          customer_id=customer_id, delta=delta, event_type=str(event_type), note=note)

    def reconcile_levels(self) -> List[SettlementResult]:
        """
        Re-derive every customer's level from their points and log each fix.
        Only rows written outside the engine can drift, so this is normally empty.
        """
        fixed = []
        try:
            for customer in self.session.query(Customer).order_by(Customer.id).with_for_update().all():
                old_level, new_level, changed = self._sync_level(customer)
                if changed:
                    fixed.append(SettlementResult(
                        customer_id=customer.id,
                        event_type=PointEvent.adjustment,
                        points_delta=0,
                        points=customer.points,
                        old_level=old_level,
                        new_level=new_level,
                        level_changed=True,
                    ))
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        if fixed:
            logger.warning(f"Level drift repaired for {len(fixed)} customer(s)")
        return fixed

    # ── Internals ─────────────────────────────────────────────────

    def _lock_customer(self, customer_id: int) -> Customer:
        customer = (
            self.session.query(Customer)
            .filter(Customer.id == customer_id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if customer is None:
            raise NotFoundError(f'Customer {customer_id} not found.')
        return customer

    def _sync_level(self, customer: Customer):
        old_level = customer.level
        new_level = self.tiers.tier_for(customer.points)
        if new_level == old_level:
            return old_level, new_level, False

        customer.level = new_level
        self.session.add(LevelHistory(
            customer_id=customer.id,
            old_level=old_level,
            new_level=new_level,
            points=customer.points,
        ))
        return old_level, new_level, True


def build_engine(session=None, app_config=None) -> SettlementEngine:
    """Wire an engine from config (defaults: db.session + current_app.config)."""
    from studio import db
    cfg = app_config if app_config is not None else current_app.config
    return SettlementEngine(
        session if session is not None else db.session,
        TierPolicy(cfg.get('LOYALTY_TIER_THRESHOLDS'), cfg.get('LOYALTY_TIER_DISCOUNTS')),
        PointsPolicy(cfg.get('LOYALTY_POINTS_RATE', '0.001'), cfg.get('LOYALTY_REFERRAL_BONUS', 100)),
    )
