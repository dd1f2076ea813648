"""
Input validators for registration and payment requests
"""
import re
from decimal import Decimal, InvalidOperation

EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[A-Za-z]{2,}$')
TX_REF_RE = re.compile(r'^[A-Za-z0-9._\-]{1,255}$')
MIN_PASSWORD_LENGTH = 8


def validate_email(email):
    return bool(email) and len(email) <= 120 and EMAIL_RE.match(email) is not None


def validate_password(password):
    """Returns (is_valid, error_message)"""
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        return False, f'Password must be at least {MIN_PASSWORD_LENGTH} characters long.'
    if not any(c.isdigit() for c in password) or not any(c.isalpha() for c in password):
        return False, 'Password must contain both letters and numbers.'
    return True, None


def normalize_phone(phone):
    """Digits only, keeping a leading +"""
    if not phone:
        return ''
    phone = phone.strip()
    digits = ''.join(filter(str.isdigit, phone))
    return ('+' + digits) if phone.startswith('+') and digits else digits


def validate_tx_ref(tx_ref):
    return bool(tx_ref) and TX_REF_RE.match(tx_ref) is not None


def parse_amount(value):
    """Positive Decimal with two places, or None"""
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value)).quantize(Decimal('0.01'))
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite() or amount <= 0:
        return None
    return amount
