"""
studio/loyalty/models.py
------------------------
Referral links and the two append-only audit trails.

Tables:
  referrals
  point_history
  level_history
"""
import enum
from datetime import datetime

from studio import db
from studio.loyalty.policy import Tier


class ReferralStatus(enum.Enum):
    pending   = 'pending'
    completed = 'completed'


class PointEvent(enum.Enum):
    order            = 'order'
    referral         = 'referral'
    referral_removed = 'referral_removed'
    bonus            = 'bonus'
    adjustment       = 'adjustment'


class Referral(db.Model):
    """
    referrer → referred link. A customer has at most one referrer,
    hence the unique referred_id. No ORM cascades between customers.
    """
    __tablename__ = 'referrals'

    id          = db.Column(db.Integer, primary_key=True)
    referrer_id = db.Column(db.Integer, db.ForeignKey('customers.id'), nullable=False, index=True)
    referred_id = db.Column(db.Integer, db.ForeignKey('customers.id'), nullable=False, unique=True)
    order_id    = db.Column(db.Integer, db.ForeignKey('orders.id', ondelete='SET NULL'), nullable=True)
    status      = db.Column(db.Enum(ReferralStatus), nullable=False, default=ReferralStatus.pending)
    created_at  = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        db.CheckConstraint('referrer_id <> referred_id', name='check_no_self_referral'),
    )

    referrer = db.relationship('Customer', foreign_keys=[referrer_id], lazy='select')
    referred = db.relationship('Customer', foreign_keys=[referred_id], lazy='select')

    def __repr__(self):
        return f"<Referral {self.referrer_id}->{self.referred_id} {self.status.value}>"


class PointHistory(db.Model):
    """
    Immutable record of one points change. `points` is the delta that
    was actually applied, so a customer's rows always sum to their balance.
    """
    __tablename__ = 'point_history'

    id          = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, nullable=False, index=True)      # kept after the customer is deleted
    points      = db.Column(db.Integer, nullable=False)
    event_type  = db.Column(db.Enum(PointEvent), nullable=False, index=True)
    related_id  = db.Column(db.Integer, nullable=True)      # order id or customer id, by event
    note        = db.Column(db.String(255), nullable=True)
    created_at  = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, index=True)

    def __repr__(self):
        return f"<PointHistory C:{self.customer_id} {self.points:+d} ({self.event_type.value})>"


class LevelHistory(db.Model):
    """Immutable record of a tier transition."""
    __tablename__ = 'level_history'

    id          = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, nullable=False, index=True)      # kept after the customer is deleted
    old_level   = db.Column(db.Enum(Tier), nullable=False)
    new_level   = db.Column(db.Enum(Tier), nullable=False)
    points      = db.Column(db.Integer, nullable=False)     # balance at the moment of change
    changed_at  = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, index=True)

    def __repr__(self):
        return f"<LevelHistory C:{self.customer_id} {self.old_level.value}->{self.new_level.value}>"
