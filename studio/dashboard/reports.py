"""
studio/dashboard/reports.py
---------------------------
Read-only management aggregates over a [start, end] order-date range.

Nothing in here writes; every figure is computed with SQL aggregates
(SUM / COUNT / AVG) except the due-date checks, which need
order_date + delivery_days and are evaluated in Python.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func, desc, distinct

from studio.customers.models import Customer
from studio.orders.models import Order, OrderItem, OrderStatus
from studio.orders.workflow import serialize_order
from studio.products.models import Product

logger = logging.getLogger(__name__)

RANGE_TYPES = (
    'today', 'yesterday', 'this_week', 'last_week', 'this_month',
    'last_month', 'this_year', 'last_year', 'all', 'custom',
)


@dataclass
class DateRange:
    start:      date
    end:        date
    range_type: str
    warnings:   List[str] = field(default_factory=list)


def _money(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(Decimal('0.01'))


def _ratio(part, whole) -> Decimal:
    if not whole:
        return Decimal('0.00')
    return (Decimal(str(part)) / Decimal(str(whole))).quantize(Decimal('0.01'))


def resolve_date_range(range_type: str = 'this_month', start=None, end=None,
                       today: Optional[date] = None) -> DateRange:
    """
    Turn a named range (or a custom start/end) into concrete dates.
    Custom ranges are repaired rather than rejected: swapped bounds are
    swapped back and an end in the future is pulled back to today, each
    with a warning.
    """
    today = today or date.today()
    range_type = range_type or 'this_month'

    if range_type == 'custom':
        warnings = []
        try:
            start_date = start if isinstance(start, date) else date.fromisoformat(str(start))
            end_date   = end if isinstance(end, date) else date.fromisoformat(str(end))
        except ValueError:
            logger.warning(f"Invalid custom date range: {start!r} .. {end!r}")
            return DateRange(today.replace(day=1), today, 'this_month',
                             ['Custom date format is invalid; showing this month.'])
        if start_date > end_date:
            start_date, end_date = end_date, start_date
            warnings.append('Start date was after end date; they were swapped.')
        if end_date > today:
            end_date = today
            warnings.append('End date cannot be in the future; it was set to today.')
            if start_date > end_date:
                start_date = end_date
        return DateRange(start_date, end_date, 'custom', warnings)

    if range_type == 'today':
        return DateRange(today, today, range_type)
    if range_type == 'yesterday':
        day = today - timedelta(days=1)
        return DateRange(day, day, range_type)
    if range_type == 'this_week':
        return DateRange(today - timedelta(days=today.weekday()), today, range_type)
    if range_type == 'last_week':
        monday = today - timedelta(days=today.weekday() + 7)
        return DateRange(monday, monday + timedelta(days=6), range_type)
    if range_type == 'this_month':
        return DateRange(today.replace(day=1), today, range_type)
    if range_type == 'last_month':
        last_day = today.replace(day=1) - timedelta(days=1)
        return DateRange(last_day.replace(day=1), last_day, range_type)
    if range_type == 'this_year':
        return DateRange(date(today.year, 1, 1), today, range_type)
    if range_type == 'last_year':
        return DateRange(date(today.year - 1, 1, 1), date(today.year - 1, 12, 31), range_type)

    # 'all' and anything unknown: the trailing year
    return DateRange(today - timedelta(days=365), today, 'all')


class DashboardReports:

    def __init__(self, session):
        self.session = session

    def _in_range(self, query, start: date, end: date):
        return query.filter(Order.order_date >= start, Order.order_date <= end)

    def _completed_in_range(self, query, start: date, end: date):
        return self._in_range(query, start, end).filter(Order.status == OrderStatus.completed)

    # ── Money ─────────────────────────────────────────────────────

    def financial_overview(self, start: date, end: date) -> dict:
        def total_for(*statuses):
            q = self.session.query(func.coalesce(func.sum(Order.total), 0))
            return _money(self._in_range(q, start, end).filter(Order.status.in_(statuses)).scalar())

        agg = self._in_range(self.session.query(
            func.coalesce(func.sum(Order.payment), 0).label('collected'),
            func.coalesce(func.sum(Order.discount), 0).label('discounts'),
        ), start, end).filter(Order.status != OrderStatus.canceled).first()

        outstanding = self._in_range(
            self.session.query(func.coalesce(func.sum(Order.balance), 0)), start, end
        ).filter(Order.status != OrderStatus.canceled, Order.balance > 0).scalar()

        return {
            'revenue':     total_for(OrderStatus.completed),
            'pending':     total_for(OrderStatus.pending),
            'in_progress': total_for(OrderStatus.in_progress),
            'collected':   _money(agg.collected),
            'discounts':   _money(agg.discounts),
            'outstanding': _money(outstanding),
        }

    # ── Orders ────────────────────────────────────────────────────

    def order_stats(self, start: date, end: date) -> dict:
        rows = self._in_range(
            self.session.query(Order.status, func.count(Order.id)), start, end
        ).group_by(Order.status).all()
        status_counts = {status.value: 0 for status in OrderStatus}
        status_counts.update({status.value: count for status, count in rows})

        new_customers = self.session.query(func.count(Customer.id)).filter(
            Customer.created_at >= datetime.combine(start, time.min),
            Customer.created_at < datetime.combine(end + timedelta(days=1), time.min),
        ).scalar()

        avg_delivery = self._completed_in_range(
            self.session.query(func.avg(Order.delivery_days)), start, end
        ).scalar()

        pending_value = self._in_range(
            self.session.query(func.coalesce(func.sum(Order.balance), 0)), start, end
        ).filter(Order.status.in_([OrderStatus.pending, OrderStatus.in_progress])).scalar()

        return {
            'status_counts':     status_counts,
            'total_orders':      sum(status_counts.values()),
            'new_customers':     new_customers or 0,
            'avg_delivery_days': _money(avg_delivery),
            'pending_value':     _money(pending_value),
        }

    def top_products(self, start: date, end: date, limit: int = 10) -> list:
        rows = self.session.query(
            Product.id.label('product_id'),
            Product.product_code.label('product_code'),
            Product.size.label('size'),
            Product.type.label('type'),
            func.sum(OrderItem.quantity).label('total_sold'),
            func.sum(OrderItem.subtotal).label('revenue'),
            func.count(distinct(Order.id)).label('order_count'),
            func.avg(OrderItem.quantity).label('avg_quantity'),
        ).join(
            OrderItem, OrderItem.product_id == Product.id
        ).join(
            Order, Order.id == OrderItem.order_id
        ).filter(
            Order.order_date >= start,
            Order.order_date <= end,
            Order.status != OrderStatus.canceled,
        ).group_by(
            Product.id, Product.product_code, Product.size, Product.type
        ).order_by(
            desc('total_sold')
        ).limit(limit).all()

        return [{
            'product_id':   r.product_id,
            'product_code': r.product_code,
            'label':        ' / '.join(p for p in (r.size, r.type) if p),
            'total_sold':   int(r.total_sold or 0),
            'revenue':      _money(r.revenue),
            'order_count':  r.order_count,
            'avg_quantity': _money(r.avg_quantity),
        } for r in rows]

    def top_customers(self, start: date, end: date, limit: int = 10) -> list:
        rows = self._completed_in_range(self.session.query(
            Customer.id.label('customer_id'),
            Customer.first_name,
            Customer.last_name,
            Customer.level,
            func.sum(Order.total).label('total_spent'),
            func.count(Order.id).label('order_count'),
            func.avg(Order.total).label('avg_order_value'),
        ).join(Order, Order.customer_id == Customer.id), start, end).group_by(
            Customer.id, Customer.first_name, Customer.last_name, Customer.level
        ).order_by(desc('total_spent')).limit(limit).all()

        return [{
            'customer_id':     r.customer_id,
            'name':            f'{r.first_name} {r.last_name}',
            'level':           r.level.value,
            'total_spent':     _money(r.total_spent),
            'order_count':     r.order_count,
            'avg_order_value': _money(r.avg_order_value),
        } for r in rows]

    def kpis(self, start: date, end: date, today: Optional[date] = None) -> dict:
        agg = self._completed_in_range(self.session.query(
            func.count(distinct(Order.customer_id)).label('customers'),
            func.count(Order.id).label('orders'),
            func.coalesce(func.sum(Order.total), 0).label('revenue'),
            func.avg(Order.delivery_days).label('avg_delivery'),
        ), start, end).first()

        repeat_customers = self._completed_in_range(
            self.session.query(Order.customer_id), start, end
        ).group_by(Order.customer_id).having(func.count(Order.id) > 1).count()

        items_per_order = self._completed_in_range(
            self.session.query(func.sum(OrderItem.quantity).label('qty'))
            .join(Order, Order.id == OrderItem.order_id), start, end
        ).group_by(Order.id).subquery()
        avg_items = self.session.query(func.avg(items_per_order.c.qty)).scalar()

        delayed = sum(1 for o in self._open_orders(start, end) if o.is_delayed(today))

        customers = agg.customers or 0
        orders    = agg.orders or 0
        revenue   = _money(agg.revenue)
        return {
            'total_customers':     customers,
            'total_orders':        orders,
            'total_revenue':       revenue,
            'repeat_customers':    repeat_customers,
            'return_rate':         _ratio(repeat_customers * 100, customers),
            'aov':                 _ratio(revenue, orders),
            'clv':                 _ratio(revenue, customers),
            'avg_items_per_order': _money(avg_items),
            'avg_delivery_days':   _money(agg.avg_delivery),
            'delayed_orders':      delayed,
        }

    def non_completed_orders(self, start: date, end: date) -> list:
        rows = self._in_range(self.session.query(Order), start, end).filter(
            Order.status != OrderStatus.completed
        ).order_by(Order.order_date.desc(), Order.id.desc()).all()
        return [serialize_order(o) for o in rows]

    def orders_due_in(self, days: int = 2, start: Optional[date] = None, end: Optional[date] = None,
                      today: Optional[date] = None) -> list:
        """Open orders whose delivery date is exactly `days` from today."""
        today = today or date.today()
        target = today + timedelta(days=days)
        return [
            serialize_order(o) for o in self._open_orders(start, end)
            if o.due_date == target
        ]

    def _open_orders(self, start: Optional[date], end: Optional[date]):
        query = self.session.query(Order).filter(
            Order.status.notin_([OrderStatus.completed, OrderStatus.canceled])
        )
        if start is not None:
            query = query.filter(Order.order_date >= start)
        if end is not None:
            query = query.filter(Order.order_date <= end)
        return query.order_by(Order.order_date, Order.id).all()


def build_dashboard(session=None) -> DashboardReports:
    from studio import db
    return DashboardReports(session if session is not None else db.session)
