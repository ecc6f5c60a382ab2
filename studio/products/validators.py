"""
studio/products/validators.py
-----------------------------
Pure-Python validation for price list entries.
Returns a dict of field -> error_message.
An empty dict means all fields are valid.
"""
from decimal import Decimal, InvalidOperation


def _money(errors: dict, form_data: dict, field: str, label: str, required: bool):
    raw = str(form_data.get(field) if form_data.get(field) is not None else '').strip()
    if not raw:
        if required:
            errors[field] = f'{label} is required.'
        return
    try:
        value = Decimal(raw)
    except InvalidOperation:
        errors[field] = f'{label} must be a valid number.'
        return
    if not value.is_finite():
        errors[field] = f'{label} must be a valid number.'
    elif value < 0:
        errors[field] = f'{label} cannot be negative.'


def validate_product_form(form_data: dict) -> dict:
    errors = {}

    # ── size ──────────────────────────────────────────────────────
    size = (form_data.get('size') or '').strip()
    if not size:
        errors['size'] = 'Size is required.'
    elif len(size) > 50:
        errors['size'] = 'Size must be 50 characters or fewer.'

    # ── type / color ──────────────────────────────────────────────
    if len((form_data.get('type') or '').strip()) > 100:
        errors['type'] = 'Type must be 100 characters or fewer.'
    if len((form_data.get('color') or '').strip()) > 50:
        errors['color'] = 'Color must be 50 characters or fewer.'

    # ── price / default_discount ──────────────────────────────────
    _money(errors, form_data, 'price', 'Price', required=True)
    _money(errors, form_data, 'default_discount', 'Default discount', required=False)

    return errors


def parse_product_form(form_data: dict) -> dict:
    """
    Convert validated raw values to column values.
    Call only after validate_product_form returns no errors.
    """
    discount = str(form_data.get('default_discount') or '0').strip()
    return {
        'size':             form_data.get('size', '').strip(),
        'type':             (form_data.get('type') or '').strip() or None,
        'color':            (form_data.get('color') or '').strip() or None,
        'price':            Decimal(str(form_data.get('price')).strip()).quantize(Decimal('0.01')),
        'default_discount': Decimal(discount or '0').quantize(Decimal('0.01')),
        'description':      (form_data.get('description') or '').strip() or None,
    }
