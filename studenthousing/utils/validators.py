import re
from urllib.parse import urlparse
from email_validator import validate_email as email_validator, EmailNotValidError


def validate_email(email):
    """Validate email address"""
    try:
        email_validator(email, check_deliverability=False)
        return True
    except EmailNotValidError:
        return False


def validate_phone(phone):
    """Validate an international or local phone number"""
    if not phone or len(phone) > 30:
        return False

    # Remove spaces, dashes and parentheses
    phone = re.sub(r'[\s\-()]', '', phone)
    return bool(re.match(r'^\+?\d{8,15}$', phone))


def validate_password(password):
    """Validate password strength"""
    if not password:
        return False

    # Minimum 8 characters
    if len(password) < 8:
        return False

    return True


def validate_url(url):
    """Validate an http(s) URL"""
    try:
        parsed = urlparse(url or '')
    except ValueError:
        return False
    return parsed.scheme in ('http', 'https') and bool(parsed.netloc)


def parse_int(value, default=None):
    try:
        return int(value) if value is not None and str(value).strip() != '' else default
    except (TypeError, ValueError):
        return default


def parse_float(value, default=None):
    try:
        return float(value) if value is not None and str(value).strip() != '' else default
    except (TypeError, ValueError):
        return default
