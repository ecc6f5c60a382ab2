"""
studio/customers/validators.py
------------------------------
Pure-Python validation for customer data.
Returns a dict of field -> error_message.
An empty dict means all fields are valid.
"""
import re
from datetime import date

DEFAULT_PHONE_PATTERN = r'^09\d{9}$'


def parse_date(value):
    """Accept a date or an ISO 'YYYY-MM-DD' string; '' / None → None. Raises ValueError."""
    if value is None or value == '':
        return None
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip())


def validate_customer_data(data: dict, phone_pattern: str = DEFAULT_PHONE_PATTERN) -> dict:
    """
    Validate registration / edit fields.

    Args:
        data:          first_name, last_name, phone, birth_date, note
        phone_pattern: regex the phone number must fully match

    Returns:
        dict of {field_name: error_message}, empty if all valid.
    """
    errors = {}

    # ── names ─────────────────────────────────────────────────────
    for field, label in (('first_name', 'First name'), ('last_name', 'Last name')):
        value = str(data.get(field) or '').strip()
        if not value:
            errors[field] = f'{label} is required.'
        elif len(value) > 100:
            errors[field] = f'{label} must be 100 characters or fewer.'

    # ── phone ─────────────────────────────────────────────────────
    phone = str(data.get('phone') or '').strip()
    if not phone:
        errors['phone'] = 'Phone number is required.'
    elif not re.fullmatch(phone_pattern, phone):
        errors['phone'] = 'Phone number format is invalid (e.g. 09123456789).'

    # ── birth_date ────────────────────────────────────────────────
    try:
        birth_date = parse_date(data.get('birth_date'))
        if birth_date is not None and birth_date > date.today():
            errors['birth_date'] = 'Birth date cannot be in the future.'
    except ValueError:
        errors['birth_date'] = 'Birth date must be a valid date (YYYY-MM-DD).'

    return errors


def parse_customer_data(data: dict) -> dict:
    """
    Convert validated raw values to column values.
    Call only after validate_customer_data returns no errors.
    """
    note = str(data.get('note') or '').strip()
    return {
        'first_name': str(data['first_name']).strip(),
        'last_name':  str(data['last_name']).strip(),
        'phone':      str(data['phone']).strip(),
        'birth_date': parse_date(data.get('birth_date')),
        'note':       note or None,
    }
