"""Rebuild the exact text a Node.js sender signed.

BarterPay and NOWPayments sign ``JSON.stringify`` output, so callback
bodies are re-serialized with JavaScript's number formatting: ``100.00``
renders as ``100`` and ``0.00005`` as ``0.00005``, where ``json.dumps``
would write ``100.0`` and ``5e-05``.
"""

from __future__ import annotations

import json
import math
from decimal import Decimal
from typing import Any

MAX_SAFE_INTEGER = 2**53


def js_number(value: Any) -> str:
    """Render a number like JavaScript's ``Number.prototype.toString``."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int) and abs(value) < MAX_SAFE_INTEGER:
        return str(value)

    number = float(value)
    if math.isnan(number) or math.isinf(number):
        return "null"
    if number == 0:
        return "0"
    if number < 0:
        return "-" + js_number(-number)

    # Shortest round-trip digits, as both Python and V8 pick them.
    _, digits, exponent = Decimal(repr(number)).normalize().as_tuple()
    digits_str = "".join(str(d) for d in digits)
    k = len(digits_str)
    n = k + exponent

    if k <= n <= 21:
        return digits_str + "0" * (n - k)
    if 0 < n <= 21:
        return f"{digits_str[:n]}.{digits_str[n:]}"
    if -6 < n <= 0:
        return "0." + "0" * (-n) + digits_str

    exp = n - 1
    exp_str = f"e+{exp}" if exp >= 0 else f"e-{-exp}"
    if k == 1:
        return digits_str + exp_str
    return f"{digits_str[0]}.{digits_str[1:]}{exp_str}"


def js_stringify(value: Any) -> str:
    """Compact ``JSON.stringify`` of already-parsed JSON, keeping key order."""
    if value is None:
        return "null"
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, (bool, int, float, Decimal)):
        return js_number(value)
    if isinstance(value, dict):
        members = (
            f"{json.dumps(str(key), ensure_ascii=False)}:{js_stringify(item)}"
            for key, item in value.items()
        )
        return "{" + ",".join(members) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(js_stringify(item) for item in value) + "]"
    raise TypeError(f"Cannot serialize {type(value).__name__} as JSON")
