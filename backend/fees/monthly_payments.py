"""Month-by-month fee collection on top of the invoice ledger."""
from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

from django.conf import settings
from django.db import transaction

from .audit import record_audit
from .domain_fees import Invoice, MonthlyPayment
from .domain_logs import FeeAuditLog
from .exceptions import NotFoundError, ValidationError
from .ledger_engine import (
    active_invoice, add_invoice_item, as_datetime, create_invoice, get_student, lock_student,
    normalize_method, parse_payment_amount, record_payment,
)
from .serial_numbers import MONTHLY_PAYMENT, generate_serial_number

logger = logging.getLogger(__name__)


@dataclass
class MonthlyPaymentResult:
    payment: MonthlyPayment
    invoice: Invoice
    invoice_created: bool = False
    warnings: List[Any] = field(default_factory=list)


def month_label(month: int, year: int) -> str:
    base = getattr(settings, 'FEES_MONTHLY_FEE_LABEL', 'Monthly Fee')
    return f"{base} - {calendar.month_name[month]} {year}"


def _parse_period(month, year):
    try:
        month = int(month)
    except (TypeError, ValueError):
        raise ValidationError("month must be a number between 1 and 12.", field='month')
    if not 1 <= month <= 12:
        raise ValidationError("month must be a number between 1 and 12.", field='month')
    try:
        year = int(year)
    except (TypeError, ValueError):
        raise ValidationError("year must be a number.", field='year')
    if year < 1900 or year > 9999:
        raise ValidationError("year is out of range.", field='year')
    return month, year


def record_monthly_payment(student_id, month, year, amount, payment_method='cash', *, payment_date=None,
                           invoice_id=None, receipt_no='', notes='', collected_by=None) -> MonthlyPaymentResult:
    month, year = _parse_period(month, year)
    value = parse_payment_amount(amount)
    method = normalize_method(payment_method)
    paid_at = as_datetime(payment_date)
    label = month_label(month, year)

    with transaction.atomic():
        student = lock_student(student_id)
        if MonthlyPayment.objects.filter(student=student, month=month, year=year).exists():
            raise ValidationError(f"Payment for {calendar.month_name[month]} {year} is already recorded.",
                                  field='month')

        created = False
        if invoice_id not in (None, ''):
            invoice = Invoice.objects.filter(pk=invoice_id, student=student).first()
            if invoice is None:
                raise NotFoundError(f"Invoice {invoice_id} not found for this student.", field='invoiceId')
        else:
            invoice = active_invoice(student)

        if invoice is None:
            invoice = create_invoice(student.pk, [{'description': label, 'amount': value}], None, collected_by,
                                     payment_method=method, activate=True,
                                     notes=f"Monthly fee for {calendar.month_name[month]} {year}").invoice
            created = True
        elif not invoice.items.filter(description=label).exists():
            add_invoice_item(invoice, label, value)

        paid = record_payment(invoice.pk, value, method, paid_at, collected_by=collected_by,
                              receipt_no=receipt_no, notes=notes or label)
        payment = MonthlyPayment.objects.create(
            payment_no=generate_serial_number(MONTHLY_PAYMENT),
            student=student,
            invoice=paid.invoice,
            transaction=paid.transaction,
            month=month,
            year=year,
            amount=value,
            payment_method=method,
            payment_date=paid_at,
            receipt_no=receipt_no or '',
            notes=notes or '',
            collected_by=collected_by if getattr(collected_by, 'is_authenticated', False) else None,
        )
        record_audit(FeeAuditLog.MONTHLY_PAYMENT, student=student, invoice_ref=paid.invoice.pk, actor=collected_by,
                     payload={'paymentNo': payment.payment_no, 'month': month, 'year': year, 'amount': value,
                              'invoiceCreated': created},
                     warnings=paid.warnings)

    logger.info("Recorded monthly payment %s (%s) for student %s", payment.payment_no, label, student.pk)
    return MonthlyPaymentResult(payment=payment, invoice=paid.invoice, invoice_created=created,
                                warnings=list(paid.warnings))


def list_monthly_payments(student_id=None, *, year: Optional[int] = None):
    qs = MonthlyPayment.objects.select_related('student', 'invoice')
    if student_id not in (None, ''):
        qs = qs.filter(student=get_student(student_id))
    if year not in (None, ''):
        try:
            qs = qs.filter(year=int(year))
        except (TypeError, ValueError):
            raise ValidationError("year must be a number.", field='year')
    return qs.order_by('-year', '-month', '-payment_date')
