import enum
from datetime import datetime, date, timedelta
from studio import db


class OrderStatus(enum.Enum):
    pending     = 'pending'
    in_progress = 'in_progress'
    completed   = 'completed'
    canceled    = 'canceled'


class OrderPriority(enum.Enum):
    normal = 'normal'
    high   = 'high'
    urgent = 'urgent'


class Order(db.Model):
    """
    One studio order. Owns its line items; totals are stored so reports
    never have to re-price historical orders.
    """
    __tablename__ = 'orders'

    id            = db.Column(db.Integer, primary_key=True)
    customer_id   = db.Column(db.Integer, db.ForeignKey('customers.id'), nullable=False, index=True)
    status        = db.Column(db.Enum(OrderStatus), nullable=False, default=OrderStatus.pending, index=True)
    priority      = db.Column(db.Enum(OrderPriority), nullable=False, default=OrderPriority.normal)
    subtotal      = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    discount      = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    total         = db.Column(db.Numeric(14, 2), nullable=False, default=0)   # max(subtotal - discount, 0)
    payment       = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    balance       = db.Column(db.Numeric(14, 2), nullable=False, default=0)   # total - payment, may be negative
    order_date    = db.Column(db.Date, nullable=False, default=date.today, index=True)
    delivery_days = db.Column(db.Integer, nullable=False, default=0)          # offset from order_date
    description   = db.Column(db.Text, nullable=True)
    created_at    = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at    = db.Column(
        db.DateTime,
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow
    )

    __table_args__ = (
        db.CheckConstraint('discount >= 0', name='check_discount_non_negative'),
        db.CheckConstraint('payment >= 0', name='check_payment_non_negative'),
        db.CheckConstraint('total >= 0', name='check_total_non_negative'),
    )

    # ── Relationships ─────────────────────────────────────────────
    customer = db.relationship('Customer', backref=db.backref('orders', lazy='dynamic'), lazy='select')
    items    = db.relationship('OrderItem', backref='order', lazy='select',
                               cascade='all, delete-orphan', order_by='OrderItem.id')
    history  = db.relationship('OrderStatusHistory', backref='order', lazy='select',
                               cascade='all, delete-orphan', order_by='OrderStatusHistory.id')

    # ── Computed helpers ──────────────────────────────────────────
    @property
    def due_date(self) -> date:
        return self.order_date + timedelta(days=self.delivery_days or 0)

    def is_delayed(self, today: date = None) -> bool:
        """Not completed and the delivery date has already passed."""
        today = today or date.today()
        return self.status != OrderStatus.completed and self.due_date < today

    def __repr__(self):
        return f"<Order {self.id} C:{self.customer_id} {self.status.value} total={self.total}>"


class OrderItem(db.Model):
    """
    One line of an order. unit_price is a snapshot of the list price at the
    time the product was put on the order.
    """
    __tablename__ = 'order_items'

    id         = db.Column(db.Integer, primary_key=True)
    order_id   = db.Column(db.Integer, db.ForeignKey('orders.id'), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey('products.id'), nullable=False, index=True)
    quantity   = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(14, 2), nullable=False)
    subtotal   = db.Column(db.Numeric(14, 2), nullable=False)   # quantity × unit_price

    __table_args__ = (
        db.CheckConstraint('quantity >= 1', name='check_quantity_positive'),
    )

    product = db.relationship('Product', lazy='select')

    def __repr__(self):
        return f"<OrderItem order={self.order_id} product={self.product_id} qty={self.quantity}>"


class OrderStatusHistory(db.Model):
    """Append-only trail of status changes."""
    __tablename__ = 'order_status_history'

    id         = db.Column(db.Integer, primary_key=True)
    order_id   = db.Column(db.Integer, db.ForeignKey('orders.id'), nullable=False, index=True)
    status     = db.Column(db.Enum(OrderStatus), nullable=False)
    changed_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    notes      = db.Column(db.String(255), nullable=True)
    changed_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self):
        return f"<OrderStatusHistory order={self.order_id} {self.status.value}>"
