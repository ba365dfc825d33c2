"""Invoice status and payment timeliness classification.

``classify`` is the single source of truth for every "paid on time" /
"overdue" display and count. It is deterministic and side-effect free, and
accepts model instances, plain objects or dicts (snake_case or camelCase).
"""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, NamedTuple, Optional, Union

from django.utils import timezone

PENDING = 'pending'
PARTIAL = 'partial'
PAID = 'paid'

PAID_ON_TIME = 'paid_on_time'
PAID_LATE = 'paid_late'
OVERDUE = 'overdue'

INVOICE_STATUSES = (PENDING, PARTIAL, PAID)
TIMELINESS_VALUES = (PAID_ON_TIME, PAID_LATE, OVERDUE, PENDING)

DateLike = Union[date, datetime, str, None]


class Classification(NamedTuple):
    status: str
    timeliness: str

    @property
    def is_overdue(self) -> bool:
        return self.timeliness == OVERDUE

    @property
    def is_paid_on_time(self) -> bool:
        return self.timeliness == PAID_ON_TIME


_ALIASES = {
    'total_amount': ('total_amount', 'totalAmount'),
    'paid_amount': ('paid_amount', 'paidAmount'),
    'due_date': ('due_date', 'dueDate'),
    'payment_date': ('payment_date', 'paymentDate'),
}


def _field(invoice: Any, name: str):
    for key in _ALIASES[name]:
        if isinstance(invoice, dict):
            if key in invoice:
                return invoice[key]
        elif hasattr(invoice, key):
            return getattr(invoice, key)
    return None


def _local_day(moment: datetime) -> date:
    if timezone.is_aware(moment):
        moment = timezone.localtime(moment)
    return moment.date()


def as_date(value: DateLike) -> Optional[date]:
    """Reduce to a calendar day. Aware datetimes are read in the local TIME_ZONE."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return _local_day(value)
    if isinstance(value, date):
        return value
    text = str(value)
    try:
        return _local_day(datetime.fromisoformat(text.replace('Z', '+00:00')))
    except ValueError:
        return date.fromisoformat(text[:10])


def invoice_status(total_amount, paid_amount) -> str:
    total = Decimal(str(total_amount or 0))
    paid = Decimal(str(paid_amount or 0))
    if total - paid <= 0:
        return PAID
    if 0 < paid < total:
        return PARTIAL
    return PENDING


def classify(invoice: Any, now: DateLike) -> Classification:
    status = invoice_status(_field(invoice, 'total_amount'), _field(invoice, 'paid_amount'))
    due = as_date(_field(invoice, 'due_date'))
    today = as_date(now)

    if status == PAID:
        paid_on = as_date(_field(invoice, 'payment_date'))
        if due is None or paid_on is None or paid_on <= due:
            return Classification(status, PAID_ON_TIME)
        return Classification(status, PAID_LATE)
    if due is not None and today is not None and today > due:
        return Classification(status, OVERDUE)
    return Classification(status, PENDING)
