import random
from datetime import datetime, date
from studio import db


def generate_product_code(today: date = None) -> str:
    """PRD-YYYYMMDD-NNNN. Uniqueness is checked by the caller."""
    today = today or date.today()
    return f"PRD-{today:%Y%m%d}-{random.randint(1, 9999):04d}"


class Product(db.Model):
    """One entry of the studio price list (a print size / finish)."""
    __tablename__ = 'products'

    id               = db.Column(db.Integer, primary_key=True)
    product_code     = db.Column(db.String(20), unique=True, nullable=False, index=True)
    size             = db.Column(db.String(50), nullable=False, index=True)   # e.g. "13x18"
    type             = db.Column(db.String(100), nullable=True)
    color            = db.Column(db.String(50), nullable=True)
    price            = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    default_discount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    description      = db.Column(db.Text, nullable=True)
    created_at       = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        db.CheckConstraint('price >= 0', name='check_price_non_negative'),
        db.CheckConstraint('default_discount >= 0', name='check_default_discount_non_negative'),
    )

    @property
    def label(self) -> str:
        parts = [self.size, self.type, self.color]
        return ' / '.join(p for p in parts if p)

    def __repr__(self):
        return f"<Product {self.product_code!r} {self.label!r}>"
