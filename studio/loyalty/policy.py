"""
studio/loyalty/policy.py
------------------------
Pure loyalty rules: no DB access, no Flask.

    TierPolicy    points → Tier, Tier → discount percent
    PointsPolicy  order total → points earned, fixed referral bonus

Both take their constants in the constructor; build_engine() feeds them
from app.config.
"""
from __future__ import annotations
import enum
from decimal import Decimal, ROUND_FLOOR


class Tier(enum.Enum):
    bronze = 'bronze'
    silver = 'silver'
    gold   = 'gold'

    @property
    def rank(self) -> int:
        return _TIER_ORDER.index(self)

    def __lt__(self, other):
        if not isinstance(other, Tier):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, Tier):
            return NotImplemented
        return self.rank <= other.rank


_TIER_ORDER = [Tier.bronze, Tier.silver, Tier.gold]

DEFAULT_THRESHOLDS = {'silver': 1000, 'gold': 5000}
DEFAULT_DISCOUNTS  = {'bronze': Decimal('0.00'), 'silver': Decimal('5.00'), 'gold': Decimal('10.00')}


class TierPolicy:
    """Maps accumulated points to a tier."""

    def __init__(self, thresholds: dict | None = None, discounts: dict | None = None):
        thresholds = thresholds or DEFAULT_THRESHOLDS
        self.silver_from = int(thresholds['silver'])
        self.gold_from   = int(thresholds['gold'])
        if not 0 < self.silver_from < self.gold_from:
            raise ValueError('Tier thresholds must satisfy 0 < silver < gold.')
        discounts = discounts or DEFAULT_DISCOUNTS
        self.discounts = {Tier(name): Decimal(str(pct)) for name, pct in discounts.items()}

    def tier_for(self, points: int) -> Tier:
        if points >= self.gold_from:
            return Tier.gold
        if points >= self.silver_from:
            return Tier.silver
        return Tier.bronze

    def discount_for(self, tier: Tier) -> Decimal:
        """Discount percentage granted to a tier (e.g. Decimal('5.00'))."""
        return self.discounts.get(tier, Decimal('0.00'))


class PointsPolicy:
    """How many points an event is worth."""

    def __init__(self, rate: Decimal | str = Decimal('0.001'), referral_bonus: int = 100):
        self.rate = Decimal(str(rate))
        if self.rate < 0:
            raise ValueError('Points rate cannot be negative.')
        self.bonus = int(referral_bonus)

    def points_for_order(self, total) -> int:
        """floor(total × rate); zero or negative totals earn nothing."""
        total = Decimal(str(total))
        if total <= 0:
            return 0
        return int((total * self.rate).to_integral_value(rounding=ROUND_FLOOR))

    def referral_bonus(self) -> int:
        return self.bonus
