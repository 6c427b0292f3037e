"""
Invoice number sequencing.

Invoice numbers look like ``SDS/007/2024-25``: a fixed prefix, a serial padded
to at least three digits, and the Indian financial-year label (April to March).
The serial is one running counter across financial years; it is never reset
when the label changes.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, Optional, Union

from skyup.errors import corrupt_sequence_state

FINANCIAL_YEAR_START_MONTH = 4
SERIAL_WIDTH = 3

ReceiptLike = Union[Mapping[str, Any], Any]


def financial_year_label(now: datetime) -> str:
    """Return the ``YYYY-YY`` label of the financial year containing ``now``."""
    if now.month >= FINANCIAL_YEAR_START_MONTH:
        start = now.year
    else:
        start = now.year - 1
    return f"{start}-{(start + 1) % 100:02d}"


def format_invoice_number(prefix: str, serial: int, fy_label: str) -> str:
    # Serials past 999 keep all their digits.
    return f"{prefix}/{serial:0{SERIAL_WIDTH}d}/{fy_label}"


def _invoice_number_of(receipt: ReceiptLike) -> Any:
    if isinstance(receipt, Mapping):
        return receipt.get("invoice_number")
    return getattr(receipt, "invoice_number", None)


def parse_serial(invoice_number: Any) -> int:
    """Extract the serial from ``PREFIX/SSS/YYYY-YY``.

    Raises a ``CORRUPT_SEQUENCE_STATE`` error rather than guessing, since a
    guessed serial could collide with one already issued.
    """
    if not isinstance(invoice_number, str):
        raise corrupt_sequence_state(invoice_number)
    parts = invoice_number.split("/")
    if len(parts) < 2:
        raise corrupt_sequence_state(invoice_number)
    middle = parts[1].strip()
    if not (middle.isascii() and middle.isdigit()):
        raise corrupt_sequence_state(invoice_number)
    serial = int(middle)
    if serial < 1:
        raise corrupt_sequence_state(invoice_number)
    return serial


def last_serial(last_receipt: Optional[ReceiptLike]) -> int:
    """Serial of the most recent receipt, or 0 when none exist."""
    if last_receipt is None:
        return 0
    return parse_serial(_invoice_number_of(last_receipt))


def next_serial(last_receipt: Optional[ReceiptLike]) -> int:
    return last_serial(last_receipt) + 1


def next_invoice_number(
    last_receipt: Optional[ReceiptLike],
    now: datetime,
    prefix: str = "SDS",
) -> str:
    """Compute the invoice number that follows ``last_receipt``.

    The financial-year label of the previous receipt is not consulted.
    """
    return format_invoice_number(prefix, next_serial(last_receipt), financial_year_label(now))
