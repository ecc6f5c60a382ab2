"""
studio/orders/validators.py
---------------------------
Pure-Python validation for order fields and line items.
Every problem is collected, so one failure reports all of them.
"""
from datetime import date
from decimal import Decimal, InvalidOperation

from studio.orders.models import OrderStatus, OrderPriority


def _parse_date(value):
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip())


def _parse_quantity(raw):
    """Whole number or None; 1.5 is rejected rather than truncated."""
    if isinstance(raw, bool):
        return None
    try:
        value = Decimal(str(raw).strip())
    except InvalidOperation:
        return None
    if not value.is_finite() or value != value.to_integral_value():
        return None
    return int(value)


def _parse_amount(errors: dict, data: dict, field: str, label: str, required: bool):
    raw = data.get(field)
    if raw is None or str(raw).strip() == '':
        if required:
            errors[field] = f'{label} is required.'
        return Decimal('0')
    try:
        amount = Decimal(str(raw).strip())
    except InvalidOperation:
        errors[field] = f'{label} must be a valid number.'
        return Decimal('0')
    if not amount.is_finite():
        errors[field] = f'{label} must be a valid number.'
        return Decimal('0')
    if amount < 0:
        errors[field] = f'{label} cannot be negative.'
    return amount


def validate_order_fields(data: dict) -> tuple:
    """
    Validate the order header.

    Args:
        data: customer_id, order_date, delivery_days | delivery_date,
              payment, discount, status, priority, description

    Returns:
        (errors, parsed). errors maps field -> message; parsed holds typed
        values for the fields that passed.
    """
    errors = {}
    parsed = {}

    if not isinstance(data, dict):
        errors['order'] = 'Order details must be an object.'
        return errors, parsed

    # ── customer ──────────────────────────────────────────────────
    customer_raw = data.get('customer_id')
    if customer_raw in (None, ''):
        errors['customer_id'] = 'Customer is required.'
    else:
        try:
            parsed['customer_id'] = int(customer_raw)
        except (TypeError, ValueError):
            errors['customer_id'] = 'Customer must be a valid id.'

    # ── order_date ────────────────────────────────────────────────
    order_date = None
    if data.get('order_date') in (None, ''):
        errors['order_date'] = 'Order date is required.'
    else:
        try:
            order_date = parsed['order_date'] = _parse_date(data['order_date'])
        except ValueError:
            errors['order_date'] = 'Order date must be a valid date (YYYY-MM-DD).'

    # ── delivery: day offset or literal date ──────────────────────
    days_raw = data.get('delivery_days')
    date_raw = data.get('delivery_date')
    if days_raw not in (None, ''):
        try:
            days = int(days_raw)
            if days < 0:
                errors['delivery'] = 'Delivery days cannot be negative.'
            else:
                parsed['delivery_days'] = days
        except (TypeError, ValueError):
            errors['delivery'] = 'Delivery days must be a whole number.'
    elif date_raw not in (None, ''):
        try:
            delivery_date = _parse_date(date_raw)
            if order_date is not None:
                if delivery_date < order_date:
                    errors['delivery'] = 'Delivery date cannot be before the order date.'
                else:
                    parsed['delivery_days'] = (delivery_date - order_date).days
        except ValueError:
            errors['delivery'] = 'Delivery date must be a valid date (YYYY-MM-DD).'
    else:
        errors['delivery'] = 'Delivery date or delivery days is required.'

    # ── money ─────────────────────────────────────────────────────
    parsed['payment']  = _parse_amount(errors, data, 'payment', 'Payment', required=True)
    parsed['discount'] = _parse_amount(errors, data, 'discount', 'Discount', required=False)

    # ── status / priority ─────────────────────────────────────────
    status_raw = data.get('status')
    if status_raw in (None, ''):
        errors['status'] = 'Status is required.'
    else:
        try:
            parsed['status'] = OrderStatus(status_raw)
        except ValueError:
            errors['status'] = f'Unknown status "{status_raw}".'

    try:
        parsed['priority'] = OrderPriority(data.get('priority') or OrderPriority.normal.value)
    except ValueError:
        errors['priority'] = f'Unknown priority "{data.get("priority")}".'

    description = (data.get('description') or '').strip()
    parsed['description'] = description or None

    return errors, parsed


def validate_order_items(items) -> tuple:
    """
    Validate submitted line items: [{'product_id': .., 'quantity': ..}, ...].

    Returns:
        (errors, lines). lines is a list of (product_id, quantity).
    """
    errors = {}
    lines = []

    if items is not None and not isinstance(items, (list, tuple)):
        errors['items'] = 'Items must be a list.'
        return errors, lines
    if not items:
        errors['items'] = 'An order needs at least one item.'
        return errors, lines

    for index, item in enumerate(items):
        try:
            product_id = int(item.get('product_id'))
        except (TypeError, ValueError, AttributeError):
            errors[f'items[{index}].product_id'] = 'Product is required.'
            continue
        quantity = _parse_quantity(item.get('quantity'))
        if quantity is None:
            errors[f'items[{index}].quantity'] = 'Quantity must be a whole number.'
            continue
        if quantity < 1:
            errors[f'items[{index}].quantity'] = 'Quantity must be at least 1.'
            continue
        lines.append((product_id, quantity))

    return errors, lines
