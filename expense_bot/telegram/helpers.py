from __future__ import annotations

import re
from datetime import datetime, tzinfo
from decimal import Decimal, InvalidOperation

from ..schemas.expense import AMOUNT_DECIMAL_PLACES, MAX_AMOUNT

_NON_WORD_RE = re.compile(r"[^\w\s]", re.ASCII)
_AMOUNT_QUANTUM = Decimal(1).scaleb(-AMOUNT_DECIMAL_PLACES)


def normalise_command(text: str) -> str:
    """Lower-case, trim and drop a leading slash or ``@botname`` suffix."""
    token = " ".join(text.strip().lower().split())
    if token.startswith("/"):
        head, _, tail = token[1:].partition(" ")
        head = head.split("@", 1)[0]
        token = f"{head} {tail}".strip()
    return token


def parse_amount_token(raw: str) -> Decimal:
    """Parse user-supplied money text such as ``1,250.50``.

    The value must be positive, below ``MAX_AMOUNT`` and have at most four
    significant decimal places so it is stored exactly.
    """
    cleaned = raw.strip().replace(",", "")
    try:
        value = Decimal(cleaned)
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f"Invalid amount '{raw}'.") from exc
    if not value.is_finite() or value <= 0:
        raise ValueError(f"Amount must be greater than zero, got '{raw}'.")
    if value >= MAX_AMOUNT:
        raise ValueError(f"Amount is too large, got '{raw}'.")
    if value.quantize(_AMOUNT_QUANTUM) != value:
        raise ValueError(f"Amount has more than {AMOUNT_DECIMAL_PLACES} decimal places, got '{raw}'.")
    return value


def format_amount_for_display(amount: Decimal) -> str:
    quantized = Decimal(amount).quantize(Decimal("0.01"))
    s = f"{quantized:,}"
    if "." in s:
        s = s.rstrip("0").rstrip(".")
    return s


def strip_category_emoji(label: str) -> str:
    return _NON_WORD_RE.sub("", label).strip()


def format_local_timestamp(value: datetime, zone: tzinfo) -> str:
    return value.astimezone(zone).strftime("%d/%m %H:%M")
