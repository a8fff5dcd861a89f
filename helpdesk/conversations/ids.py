"""Opaque identifiers for conversations."""

import random
import string
import time

_BASE36 = string.digits + string.ascii_lowercase
_SUFFIX_LENGTH = 5


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def new_id() -> str:
    """Millisecond timestamp in base 36 followed by a short random suffix."""
    timestamp = _to_base36(time.time_ns() // 1_000_000)
    suffix = "".join(random.choices(_BASE36, k=_SUFFIX_LENGTH))
    return f"{timestamp}{suffix}"
