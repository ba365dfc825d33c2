"""Prefixed serial numbers (``INV-0001``, ``TXN-0042`` ...)."""
from django.conf import settings
from django.db import transaction

from .domain_fees import SerialCounter

STUDENT = 'STU'
ADMISSION = 'ADM'
INVOICE = 'INV'
TRANSACTION = 'TXN'
MONTHLY_PAYMENT = 'MPAY'
FEE_STRUCTURE = 'FEE'


def format_serial(prefix: str, count: int) -> str:
    padding = getattr(settings, 'FEES_SERIAL_PADDING', 4)
    return f"{prefix.upper()}-{count:0{padding}d}"


def generate_serial_number(prefix: str) -> str:
    """Increment the counter for ``prefix`` under a row lock and format it."""
    with transaction.atomic():
        counter, _ = SerialCounter.objects.select_for_update().get_or_create(prefix=prefix.upper())
        counter.count += 1
        counter.save(update_fields=['count'])
    return format_serial(prefix, counter.count)


def current_serial_number(prefix: str) -> str:
    counter = SerialCounter.objects.filter(prefix=prefix.upper()).first()
    return format_serial(prefix, counter.count if counter else 0)
