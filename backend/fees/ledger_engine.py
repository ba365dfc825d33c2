"""InvoiceLedger write path.

Every write locks the owning Student row, bumps ``version`` on the rows it
touches and mirrors the active invoice into the Student's FeeAggregate, all
inside one database transaction.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, List, Optional

from django.conf import settings
from django.db import transaction
from django.db.models import Sum
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from .audit import actor_display_name, record_audit
from .domain_fees import (
    PAYMENT_METHOD_CHOICES, FeeStructure, Invoice, InvoiceItem, PaymentTransaction,
)
from .domain_logs import FeeAuditLog
from .domain_students import Student
from .exceptions import (
    ConcurrencyConflict, InconsistencyWarning, InvalidAmountError, NotFoundError,
    OverpaymentWarning, ValidationError,
)
from .fee_math import ZERO, invoice_totals, parse_amount, quantize
from .payment_status import as_date
from .serial_numbers import INVOICE, TRANSACTION, generate_serial_number

logger = logging.getLogger(__name__)

PAYMENT_METHODS = {value for value, _ in PAYMENT_METHOD_CHOICES}


@dataclass
class LedgerResult:
    invoice: Invoice
    student: Student
    transaction: Optional[PaymentTransaction] = None
    warnings: List[Any] = field(default_factory=list)


@dataclass
class DeleteResult:
    invoice_id: int
    invoice_no: Optional[str]
    student: Student
    warnings: List[Any] = field(default_factory=list)


# --- lookups --------------------------------------------------------------

def lock_student(student_id) -> Student:
    """Fetch the Student under a row lock. Must run inside ``transaction.atomic``."""
    try:
        return Student.objects.select_for_update().get(pk=student_id)
    except (Student.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(f"Student {student_id} not found.", field='studentId')


def get_student(student_id) -> Student:
    try:
        return Student.objects.get(pk=student_id)
    except (Student.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(f"Student {student_id} not found.", field='studentId')


def get_invoice(invoice_id, *, for_update=False) -> Invoice:
    qs = Invoice.objects.select_for_update() if for_update else Invoice.objects.all()
    try:
        return qs.get(pk=invoice_id)
    except (Invoice.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(f"Invoice {invoice_id} not found.", field='invoiceId')


def resolve_fee_structure(fee_structure_id) -> Optional[FeeStructure]:
    if fee_structure_id in (None, ''):
        return None
    try:
        return FeeStructure.objects.get(pk=fee_structure_id)
    except (FeeStructure.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(f"Fee structure {fee_structure_id} not found.", field='feeStructureId')


def active_invoice(student: Student) -> Optional[Invoice]:
    """The explicit primary invoice, else the newest by created_at then invoice_date."""
    if student.primary_invoice_id:
        inv = Invoice.objects.filter(pk=student.primary_invoice_id, student=student).first()
        if inv is not None:
            return inv
    return student.invoices.order_by('-created_at', '-invoice_date', '-id').first()


def list_invoices(student_id, *, status: Optional[str] = None):
    student = get_student(student_id)
    qs = student.invoices.prefetch_related('items', 'transactions').order_by('-created_at', '-invoice_date', '-id')
    if status:
        qs = qs.filter(status=status)
    return qs


# --- input normalisation --------------------------------------------------

def normalize_items(items) -> List[dict]:
    if items is None:
        return []
    if not isinstance(items, (list, tuple)):
        raise ValidationError("items must be a list.", field='items')
    cleaned = []
    for index, raw in enumerate(items):
        if not isinstance(raw, dict):
            raise ValidationError("each item must be an object.", field=f'items[{index}]')
        description = str(raw.get('description') or '').strip()
        if not description:
            raise ValidationError("item description is required.", field=f'items[{index}].description')
        amount = parse_amount(raw.get('amount'), f'items[{index}].amount')
        quantity = raw.get('quantity', 1)
        try:
            quantity = int(quantity)
        except (TypeError, ValueError):
            raise ValidationError("item quantity must be a whole number.", field=f'items[{index}].quantity')
        if quantity < 1:
            raise ValidationError("item quantity must be at least 1.", field=f'items[{index}].quantity')
        cleaned.append({'description': description, 'amount': amount, 'quantity': quantity})
    return cleaned


def normalize_method(method, *, default='cash') -> str:
    value = (method or default or '').strip().lower()
    if value not in PAYMENT_METHODS:
        raise ValidationError(f"Unknown payment method '{method}'.", field='paymentMethod')
    return value


def as_datetime(value, field_name='paymentDate') -> datetime:
    if value in (None, ''):
        return timezone.now()
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, date):
        moment = datetime.combine(value, time.min)
    else:
        text = str(value).strip()
        moment = parse_datetime(text)
        if moment is None:
            day = parse_date(text)
            if day is None:
                raise ValidationError(f"{field_name} is not a valid date.", field=field_name)
            moment = datetime.combine(day, time.min)
    if timezone.is_naive(moment):
        moment = timezone.make_aware(moment)
    return moment


def as_due_date(value):
    if value in (None, ''):
        days = getattr(settings, 'FEES_DEFAULT_DUE_DAYS', None)
        if days is None:
            return None
        return timezone.localdate() + timedelta(days=int(days))
    try:
        return as_date(value)
    except ValueError:
        raise ValidationError("dueDate is not a valid date.", field='dueDate')


def parse_payment_amount(value, field_name='amount') -> Decimal:
    amount = parse_amount(value, field_name, allow_negative=True)
    if amount <= 0:
        raise InvalidAmountError(f"{field_name} must be greater than zero.", field=field_name)
    return amount


# --- aggregate mirroring ---------------------------------------------------

def sync_aggregate(student: Student, invoice: Invoice):
    student.total_fee = invoice.total_amount
    student.paid_fee = invoice.paid_amount
    student.calculate_pending_fee()
    return student


def aggregate_divergence(student: Student, invoice: Optional[Invoice]) -> List[InconsistencyWarning]:
    """Compare the Student's FeeAggregate against ``invoice`` (the active one)."""
    findings = []
    if invoice is None:
        if student.paid_fee and student.paid_fee > 0 and not student.invoices.exists():
            findings.append(InconsistencyWarning(
                "Paid fee has no backing invoice.",
                student_id=student.pk,
                details={'paidFee': student.paid_fee},
            ))
        return findings
    if student.total_fee != invoice.total_amount or student.paid_fee != invoice.paid_amount:
        findings.append(InconsistencyWarning(
            f"Fee summary differs from invoice {invoice.invoice_no or invoice.pk}.",
            student_id=student.pk,
            details={
                'invoiceId': invoice.pk,
                'aggregateTotal': student.total_fee,
                'invoiceTotal': invoice.total_amount,
                'aggregatePaid': student.paid_fee,
                'invoicePaid': invoice.paid_amount,
            },
        ))
    return findings


def overpayment_warnings(student_id, total, paid, *, invoice_id=None) -> List[OverpaymentWarning]:
    if paid <= total:
        return []
    details = {'creditBalance': quantize(paid - total)}
    if invoice_id is not None:
        details['invoiceId'] = invoice_id
    return [OverpaymentWarning("Paid amount exceeds the total; carried as credit.",
                               student_id=student_id, details=details)]


def _bump(student: Student):
    student.version += 1
    student.save()


def check_version(obj, expected_version):
    if expected_version in (None, ''):
        return
    try:
        expected = int(expected_version)
    except (TypeError, ValueError):
        raise ValidationError("expectedVersion must be an integer.", field='expectedVersion')
    if expected != obj.version:
        raise ConcurrencyConflict(
            f"{type(obj).__name__} {obj.pk} was modified (version {obj.version}, expected {expected})."
        )


# --- writes ----------------------------------------------------------------

def _append_transaction(invoice: Invoice, student: Student, amount: Decimal, method: str, paid_at: datetime,
                        *, collected_by=None, receipt_no='', notes='') -> PaymentTransaction:
    txn = PaymentTransaction.objects.create(
        transaction_no=generate_serial_number(TRANSACTION),
        student=student,
        invoice=invoice,
        amount=amount,
        payment_method=method,
        payment_date=paid_at,
        receipt_no=receipt_no or '',
        collected_by=collected_by if getattr(collected_by, 'is_authenticated', False) else None,
        collected_by_name=actor_display_name(collected_by),
        notes=notes or '',
    )
    invoice.paid_amount = quantize((invoice.paid_amount or ZERO) + amount)
    invoice.payment_method = method
    if invoice.payment_date is None or paid_at >= invoice.payment_date:
        invoice.payment_date = paid_at
    return txn


def create_invoice(student_id, items, discount=None, collected_by=None, *, due_date=None,
                   initial_payment=None, payment_method='cash', payment_date=None,
                   fee_structure_id=None, notes='', activate=None, invoice_date=None,
                   receipt_no='') -> LedgerResult:
    cleaned = normalize_items(items)
    discount_value = parse_amount(discount, 'discount', allow_none=True) or ZERO
    invoice_totals(cleaned, discount_value)
    opening = parse_amount(initial_payment, 'paidAmount', allow_none=True) or ZERO
    method = normalize_method(payment_method)
    due = as_due_date(due_date)
    paid_at = as_datetime(payment_date) if opening > 0 else None
    try:
        issued = as_date(invoice_date) if invoice_date else timezone.localdate()
    except ValueError:
        raise ValidationError("invoiceDate is not a valid date.", field='invoiceDate')

    with transaction.atomic():
        student = lock_student(student_id)
        structure = resolve_fee_structure(fee_structure_id)
        if activate is False and student.primary_invoice_id is None:
            # keep the recency-selected invoice active
            student.primary_invoice = active_invoice(student)

        invoice = Invoice(
            invoice_no=generate_serial_number(INVOICE),
            student=student,
            fee_structure=structure,
            invoice_date=issued,
            due_date=due,
            discount=discount_value,
            paid_amount=ZERO,
            payment_method=method,
            notes=notes or '',
            collected_by=collected_by if getattr(collected_by, 'is_authenticated', False) else None,
            collected_by_name=actor_display_name(collected_by),
        )
        rows = [
            InvoiceItem(description=it['description'], amount=it['amount'], quantity=it['quantity'], position=pos)
            for pos, it in enumerate(cleaned)
        ]
        invoice.recalculate(items=rows)
        invoice.save()
        for row in rows:
            row.invoice = invoice
        InvoiceItem.objects.bulk_create(rows)

        txn = None
        if opening > 0:
            txn = _append_transaction(invoice, student, opening, method, paid_at,
                                      collected_by=collected_by, receipt_no=receipt_no,
                                      notes='Opening payment')
        invoice.recalculate(items=rows)
        invoice.save()

        if activate or student.primary_invoice_id is None:
            student.primary_invoice = invoice
        if student.primary_invoice_id == invoice.pk:
            sync_aggregate(student, invoice)
        _bump(student)

        warnings = overpayment_warnings(student.pk, invoice.total_amount, invoice.paid_amount, invoice_id=invoice.pk)
        record_audit(
            FeeAuditLog.CREATE_INVOICE, student=student, invoice_ref=invoice.pk, actor=collected_by,
            payload={
                'invoiceNo': invoice.invoice_no,
                'subtotal': invoice.subtotal,
                'discount': invoice.discount,
                'totalAmount': invoice.total_amount,
                'paidAmount': invoice.paid_amount,
                'active': student.primary_invoice_id == invoice.pk,
            },
            warnings=warnings,
        )

    logger.info("Created invoice %s for student %s (total=%s paid=%s)",
                invoice.invoice_no, student.pk, invoice.total_amount, invoice.paid_amount)
    return LedgerResult(invoice=invoice, student=student, transaction=txn, warnings=warnings)


def record_payment(invoice_id, amount, method='cash', date=None, *, collected_by=None, receipt_no='',
                   notes='', expected_version=None) -> LedgerResult:
    value = parse_payment_amount(amount)
    method = normalize_method(method)
    paid_at = as_datetime(date)

    with transaction.atomic():
        student_id = get_invoice(invoice_id).student_id
        student = lock_student(student_id)
        invoice = get_invoice(invoice_id, for_update=True)
        check_version(invoice, expected_version)
        if (invoice.paid_amount or ZERO) + value < 0:
            raise InvalidAmountError("Payment would make the paid amount negative.", field='amount')

        txn = _append_transaction(invoice, student, value, method, paid_at,
                                  collected_by=collected_by, receipt_no=receipt_no, notes=notes)
        invoice.recalculate()
        invoice.version += 1
        invoice.save()

        is_active = student.primary_invoice_id == invoice.pk
        if not is_active and student.primary_invoice_id is None:
            current = active_invoice(student)
            is_active = current is not None and current.pk == invoice.pk
        if is_active:
            sync_aggregate(student, invoice)
        _bump(student)

        warnings = overpayment_warnings(student.pk, invoice.total_amount, invoice.paid_amount, invoice_id=invoice.pk)
        record_audit(
            FeeAuditLog.RECORD_PAYMENT, student=student, invoice_ref=invoice.pk, actor=collected_by,
            payload={
                'transactionNo': txn.transaction_no,
                'amount': value,
                'paymentMethod': method,
                'paidAmount': invoice.paid_amount,
                'status': invoice.status,
            },
            warnings=warnings,
        )

    logger.info("Recorded %s payment of %s on invoice %s (status=%s)",
                method, value, invoice.invoice_no, invoice.status)
    return LedgerResult(invoice=invoice, student=student, transaction=txn, warnings=warnings)


def delete_invoice(invoice_id, *, confirm=False, actor=None) -> DeleteResult:
    """Hard delete an invoice and its transactions.

    The FeeAggregate is left as it was; any divergence this causes is
    returned as an ``InconsistencyWarning`` rather than silently fixed.
    """
    if not confirm:
        raise ValidationError("Deleting an invoice requires confirm=true.", field='confirm')

    with transaction.atomic():
        student_id = get_invoice(invoice_id).student_id
        student = lock_student(student_id)
        invoice = get_invoice(invoice_id, for_update=True)
        snapshot = {
            'invoiceNo': invoice.invoice_no,
            'totalAmount': invoice.total_amount,
            'paidAmount': invoice.paid_amount,
            'transactions': invoice.transactions.count(),
            'wasActive': student.primary_invoice_id == invoice.pk,
        }
        pk, invoice_no = invoice.pk, invoice.invoice_no
        invoice.delete()

        student.refresh_from_db()
        _bump(student)
        warnings = aggregate_divergence(student, active_invoice(student))
        if snapshot['wasActive'] and not warnings:
            warnings.append(InconsistencyWarning(
                "Active invoice deleted; fee summary was not adjusted.",
                student_id=student.pk,
                details={'invoiceId': pk, 'aggregateTotal': student.total_fee, 'aggregatePaid': student.paid_fee},
            ))
        record_audit(FeeAuditLog.DELETE_INVOICE, student=student, invoice_ref=pk, actor=actor,
                     payload=snapshot, warnings=warnings)

    logger.warning("Deleted invoice %s for student %s (%d warnings)", invoice_no, student.pk, len(warnings))
    return DeleteResult(invoice_id=pk, invoice_no=invoice_no, student=student, warnings=warnings)


def transaction_total(invoice: Invoice) -> Decimal:
    return quantize(invoice.transactions.aggregate(total=Sum('amount'))['total'] or ZERO)


def add_invoice_item(invoice: Invoice, description: str, amount, quantity: int = 1) -> InvoiceItem:
    """Append a line item and recompute totals. Caller holds the Student lock."""
    position = invoice.items.count()
    item = InvoiceItem.objects.create(invoice=invoice, description=description,
                                      amount=parse_amount(amount), quantity=quantity, position=position)
    invoice.recalculate()
    invoice.version += 1
    invoice.save()
    return item


def resync_student(student: Student) -> Student:
    """Mirror the active invoice into the aggregate, or rebuild it from the fee inputs."""
    current = active_invoice(student)
    if current is not None:
        sync_aggregate(student, current)
    else:
        student.total_fee = quantize((student.admission_fee or ZERO) + (student.monthly_fee or ZERO))
        student.calculate_pending_fee()
    return student
