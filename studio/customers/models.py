from datetime import datetime
from studio import db
from studio.loyalty.policy import Tier


class Customer(db.Model):
    """A studio customer: identity, loyalty balance and optional referrer."""
    __tablename__ = 'customers'

    id          = db.Column(db.Integer, primary_key=True)
    first_name  = db.Column(db.String(100), nullable=False)
    last_name   = db.Column(db.String(100), nullable=False)
    phone       = db.Column(db.String(20), unique=True, nullable=False, index=True)
    birth_date  = db.Column(db.Date, nullable=True)
    note        = db.Column(db.Text, nullable=True)
    # points / level are written only by the settlement engine
    points      = db.Column(db.Integer, default=0, nullable=False)
    level       = db.Column(db.Enum(Tier), default=Tier.bronze, nullable=False)
    # Lookup only; deleting either side never cascades to the other
    referred_by = db.Column(db.Integer, db.ForeignKey('customers.id'), nullable=True, index=True)
    created_at  = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at  = db.Column(
        db.DateTime,
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow
    )

    __table_args__ = (
        db.CheckConstraint('points >= 0', name='check_points_non_negative'),
        db.Index('ix_customers_name', 'first_name', 'last_name'),
    )

    referrer = db.relationship('Customer', remote_side=[id], lazy='select')

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self):
        return f"<Customer {self.full_name} ({self.phone}) Pts:{self.points} {self.level.value}>"
