# civicfix/upi.py
"""UPI deep-link generation.

Links follow the ``upi://pay`` query format understood by every UPI app, with
provider-specific schemes for Google Pay, PhonePe, Paytm and BHIM.
"""
import re
from decimal import Decimal
from urllib.parse import quote

PROVIDERS = ('generic', 'googlepay', 'phonepe', 'paytm', 'bhim')

PROVIDER_SCHEMES = {
    'googlepay': 'tez://upi/pay',
    'phonepe': 'phonepe://pay',
    'paytm': 'paytmmp://pay',
    'bhim': 'bhim://pay',
}
GENERIC_SCHEME = 'upi://pay'

HANDLE_NAMES = {
    'paytm': 'Paytm',
    'ybl': 'PhonePe',
    'oksbi': 'SBI Pay',
    'okaxis': 'Axis Pay',
    'okhdfcbank': 'HDFC Pay',
    'okicici': 'ICICI Pay',
    'upi': 'Generic UPI',
}

UPI_ID_RE = re.compile(r'^[a-zA-Z0-9.\-_]{2,256}@[a-zA-Z]{2,64}$')


def _encode(value):
    # Same character set as JavaScript's encodeURIComponent
    return quote(str(value), safe="!~*'()")


def format_amount(amount):
    """Renders an amount without trailing zeros, so 100.00 becomes '100'."""
    if isinstance(amount, Decimal):
        return format(amount.normalize(), 'f')
    if isinstance(amount, float) and amount.is_integer():
        return str(int(amount))
    return str(amount)


def _query(upi_id, name, amount, currency='INR', note=None):
    note = note or f"Payment for {name}"
    return (
        f"pa={_encode(upi_id)}&pn={_encode(name)}&am={format_amount(amount)}"
        f"&cu={currency}&tn={_encode(note)}"
    )


def generate_upi_link(upi_id, name, amount, currency='INR', note=None):
    """Generic UPI payment link, opens in any UPI app."""
    return f"{GENERIC_SCHEME}?{_query(upi_id, name, amount, currency, note)}"


def generate_provider_upi_link(params, provider):
    """Link for one provider app. Unknown providers get the generic link.

    ``params`` holds ``upi_id``, ``name`` and ``amount``, and optionally
    ``currency`` and ``note``.
    """
    scheme = PROVIDER_SCHEMES.get(provider)
    if scheme is None:
        return generate_upi_link(**params)
    return f"{scheme}?{_query(**params)}"


def get_all_provider_links(params):
    return {provider: generate_provider_upi_link(params, provider) for provider in PROVIDERS}


def validate_upi_id(upi_id):
    if not isinstance(upi_id, str):
        return False
    return UPI_ID_RE.fullmatch(upi_id) is not None


def get_provider_from_upi_id(upi_id):
    """Display name of the bank/app behind a UPI handle, or None if malformed."""
    parts = upi_id.split('@')
    if len(parts) != 2:
        return None
    handle = parts[1].lower()
    return HANDLE_NAMES.get(handle, handle.upper())
