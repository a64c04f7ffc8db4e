# civicfix/helpers.py
from decimal import Decimal, InvalidOperation
from functools import wraps

from flask import request
from flask_login import current_user, login_required

from .auth import Principal
from .errors import AuthorizationError, ValidationError

MAX_AMOUNT = Decimal('100000000')


def get_json_body():
    """The request's JSON object, or an empty dict when there is no body."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


def parse_amount(value, field='amount'):
    """Converts a JSON number (or numeric string) to Decimal, None passes through."""
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        raise ValidationError(f'{field} must be a number')
    try:
        amount = Decimal(str(value))
        if not amount.is_finite():
            raise ValidationError(f'{field} must be a number')
        amount = amount.quantize(Decimal('0.01'))
    except (InvalidOperation, ValueError):
        raise ValidationError(f'{field} must be a number')
    # Numeric(10, 2) columns
    if abs(amount) >= MAX_AMOUNT:
        raise ValidationError(f'{field} must be less than {MAX_AMOUNT:,.0f}')
    return amount


def parse_int(value, field):
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        raise ValidationError(f'{field} must be an integer')
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be an integer')


def page_args():
    """page/limit query arguments; bad values fall back to the defaults."""
    try:
        page = int(request.args.get('page', 1))
    except ValueError:
        page = 1
    try:
        limit = int(request.args.get('limit', 10))
    except ValueError:
        limit = 10
    return page, limit


def page_response(key, page, serialize):
    return {
        key: [serialize(item) for item in page.items],
        'total': page.total,
        'page': page.page,
        'limit': page.limit,
    }


# --- Decorators for Authorization ---
def auth_required(f):
    """Requires a valid bearer token and hands the view a ``principal`` kwarg."""
    @wraps(f)
    @login_required
    def decorated_function(*args, **kwargs):
        return f(*args, principal=Principal.from_user(current_user), **kwargs)
    return decorated_function


def admin_required(f):
    @wraps(f)
    @auth_required
    def decorated_function(*args, principal, **kwargs):
        if not principal.is_admin:
            raise AuthorizationError('Admin access required')
        return f(*args, principal=principal, **kwargs)
    return decorated_function
