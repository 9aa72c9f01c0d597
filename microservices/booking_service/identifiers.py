"""
Record identifiers: tracking numbers, receipt numbers, transaction ids.
"""

import secrets
import string
import time
import uuid

_UPPER = string.ascii_uppercase
_UPPER_DIGITS = string.ascii_uppercase + string.digits


def _random_chars(alphabet: str, length: int) -> str:
    return "".join(secrets.choice(alphabet) for _ in range(length))


def new_id() -> str:
    return str(uuid.uuid4())


def generate_tracking_number() -> str:
    """ZIM + low-order millisecond digits + three random letters, e.g. ZIM4418302KQD"""
    millis = str(int(time.time() * 1000))
    return f"ZIM{millis[6:]}{_random_chars(_UPPER, 3)}"


def generate_receipt_number() -> str:
    return f"RCT-{_random_chars(_UPPER_DIGITS, 8)}"


def generate_transaction_id() -> str:
    return f"TX-{uuid.uuid4().hex[:16].upper()}"
