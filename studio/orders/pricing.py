"""
studio/orders/pricing.py
------------------------
Stateless order arithmetic. All money is Decimal, quantised to 0.01.

    subtotal = Σ quantity × unit_price
    total    = max(subtotal − discount, 0)
    balance  = total − payment        (negative = overpaid)
"""
from decimal import Decimal

CENT = Decimal('0.01')


def to_money(value) -> Decimal:
    """Decimal from str / int / Decimal (never via float repr drift)."""
    return Decimal(str(value if value not in (None, '') else 0)).quantize(CENT)


def line_subtotal(quantity: int, unit_price) -> Decimal:
    return (Decimal(int(quantity)) * to_money(unit_price)).quantize(CENT)


def order_totals(lines, discount=0, payment=0) -> dict:
    """
    Args:
        lines:    iterable of (quantity, unit_price) pairs
        discount: order-level discount amount (>= 0)
        payment:  amount already paid (>= 0)

    Returns:
        {'subtotal': Decimal, 'discount': Decimal, 'total': Decimal,
         'payment': Decimal, 'balance': Decimal}
    """
    subtotal = Decimal('0.00')
    for quantity, unit_price in lines:
        subtotal += line_subtotal(quantity, unit_price)

    discount = to_money(discount)
    payment  = to_money(payment)
    total    = max(subtotal - discount, Decimal('0.00'))

    return {
        'subtotal': subtotal,
        'discount': discount,
        'total':    total,
        'payment':  payment,
        'balance':  (total - payment).quantize(CENT),
    }
