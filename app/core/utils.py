"""Shared utilities used across the app."""
import time
import uuid
from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")


def to_money(amount: Decimal | int | float | str | None) -> Decimal:
    """Return amount as a Decimal with exactly two fractional digits. None becomes 0.00."""
    if amount is None:
        return Decimal("0.00")
    if not isinstance(amount, Decimal):
        amount = Decimal(str(amount))
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def generate_payment_reference() -> str:
    """
    Build a payment reference like ``PAY-1718000000000-1a2b3c4d``.

    Millisecond wall-clock time plus 8 hex characters of a uuid4. Collisions are
    possible but negligible; the unique index on payments is the final guard.
    """
    millis = time.time_ns() // 1_000_000
    return f"PAY-{millis}-{uuid.uuid4().hex[:8]}"
