"""Human-facing identifiers for orders and payments."""

import secrets
import string
import time

_ALPHABET = string.digits + string.ascii_uppercase


def _base36(value: int) -> str:
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_ALPHABET[remainder])
    return "".join(reversed(digits)) or "0"


def _random_suffix(length: int) -> str:
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def generate_order_number(prefix: str = "VT") -> str:
    """Order number such as ``VT-M5XK9P2A-A3B7``.

    Millisecond timestamp in base 36 followed by a random suffix.
    """
    timestamp = _base36(time.time_ns() // 1_000_000)
    return f"{prefix}-{timestamp}-{_random_suffix(4)}"


def generate_payment_reference() -> str:
    """Payment reference such as ``PAY-M5XK9P2A-Q8Z1KD``."""
    timestamp = _base36(time.time_ns() // 1_000_000)
    return f"PAY-{timestamp}-{_random_suffix(6)}"
