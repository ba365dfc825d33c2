"""FeeAggregate arithmetic.

Pure helpers that parse monetary input and derive the denormalized fee
snapshot kept on each Student (admission fee, monthly fee, total, paid,
pending). Nothing here touches the ORM.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, Optional

from .exceptions import ValidationError

ZERO = Decimal('0.00')
CENT = Decimal('0.01')


def quantize(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def parse_amount(value: Any, field: str = 'amount', *, allow_none: bool = False,
                 allow_negative: bool = False) -> Optional[Decimal]:
    """Parse ``value`` into a two-place Decimal.

    Raises ``ValidationError`` for anything that is not a finite number, and
    for negatives unless ``allow_negative`` is set. Blank strings count as
    missing.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        if allow_none:
            return None
        raise ValidationError(f"{field} is required.", field=field)
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number.", field=field)
    try:
        if isinstance(value, float):
            # go through repr so 0.1 stays 0.1
            amount = Decimal(repr(value))
        else:
            amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"{field} must be a number.", field=field)
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number.", field=field)
    if amount < 0 and not allow_negative:
        raise ValidationError(f"{field} must not be negative.", field=field)
    return quantize(amount)


@dataclass(frozen=True)
class FeeAggregate:
    admission_fee: Decimal
    monthly_fee: Decimal
    total_fee: Decimal
    paid_fee: Decimal
    pending_fee: Decimal

    @property
    def credit_balance(self) -> Decimal:
        return -self.pending_fee if self.pending_fee < 0 else ZERO

    @property
    def is_overpaid(self) -> bool:
        return self.pending_fee < 0

    def as_dict(self):
        return {
            'admissionFee': self.admission_fee,
            'monthlyFee': self.monthly_fee,
            'totalFee': self.total_fee,
            'paidFee': self.paid_fee,
            'pendingFee': self.pending_fee,
            'creditBalance': self.credit_balance,
        }


def recompute_pending(total_fee: Decimal, paid_fee: Decimal) -> Decimal:
    # never clamped: a negative result is an overpayment and is surfaced as credit
    return quantize(total_fee - paid_fee)


def initial_pending_default(total_fee: Decimal, paid_fee: Optional[Decimal]) -> Decimal:
    """Calculated default shown on the admission form before staff confirm it."""
    if paid_fee is None:
        return total_fee
    return max(ZERO, recompute_pending(total_fee, paid_fee))


def compute_admission_aggregate(admission_fee: Any, monthly_fee: Any, paid_fee: Any = None) -> FeeAggregate:
    admission = parse_amount(admission_fee, 'admissionFee', allow_none=True) or ZERO
    monthly = parse_amount(monthly_fee, 'monthlyFee', allow_none=True) or ZERO
    paid = parse_amount(paid_fee, 'paidFee', allow_none=True) or ZERO
    total = quantize(admission + monthly)
    return FeeAggregate(
        admission_fee=admission,
        monthly_fee=monthly,
        total_fee=total,
        paid_fee=paid,
        pending_fee=recompute_pending(total, paid),
    )


def aggregate_from_totals(total_fee: Any, paid_fee: Any, *, admission_fee: Any = None,
                          monthly_fee: Any = None) -> FeeAggregate:
    total = parse_amount(total_fee, 'totalFee')
    paid = parse_amount(paid_fee, 'paidFee')
    return FeeAggregate(
        admission_fee=parse_amount(admission_fee, 'admissionFee', allow_none=True) or ZERO,
        monthly_fee=parse_amount(monthly_fee, 'monthlyFee', allow_none=True) or ZERO,
        total_fee=total,
        paid_fee=paid,
        pending_fee=recompute_pending(total, paid),
    )


def line_subtotal(items: Iterable[Any]) -> Decimal:
    total = ZERO
    for item in items:
        amount = _get(item, 'amount')
        quantity = _get(item, 'quantity') or 1
        total += Decimal(str(amount or 0)) * int(quantity)
    return quantize(total)


def invoice_totals(items: Iterable[Any], discount: Any = None, paid_amount: Any = None):
    """Return ``(subtotal, total_amount, pending_amount)`` for an invoice."""
    subtotal = line_subtotal(items)
    discount_value = parse_amount(discount, 'discount', allow_none=True) or ZERO
    total = quantize(subtotal - discount_value)
    if total < 0:
        raise ValidationError("discount must not exceed the invoice subtotal.", field='discount')
    paid = parse_amount(paid_amount, 'paidAmount', allow_none=True) or ZERO
    return subtotal, total, quantize(total - paid)


def payment_percentage(paid: Decimal, total: Decimal) -> int:
    if not total:
        return 0
    ratio = (Decimal(paid) * 100) / Decimal(total)
    return int(ratio.quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def _get(obj, name):
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)
