"""FeeSummaryProjector.

``compute_fee_summary_from_iterables`` is pure: it takes a student, its
invoices and transactions (model instances, plain objects or dicts) and a
``now`` and returns the read model served by the summary endpoint. The ORM
wrapper ``get_fee_summary`` only gathers rows and delegates.

Ledger figures come from the invoices; ``aggregate`` reflects the
FeeAggregate stored on the Student with ``pendingFee`` recomputed on read.
"""
from __future__ import annotations

from datetime import date, datetime, timezone as dt_timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from django.utils import timezone

from .domain_fees import PaymentTransaction
from .exceptions import InconsistencyWarning, OverpaymentWarning
from .fee_math import ZERO, payment_percentage, quantize, recompute_pending
from .payment_status import OVERDUE, PAID_LATE, PAID_ON_TIME, classify
from .ledger_engine import get_student

OVERALL_COMPLETE = 'complete'
OVERALL_OVERDUE = 'overdue'
OVERALL_PENDING = 'pending'


def _get(obj: Any, *names, default=None):
    for name in names:
        if isinstance(obj, dict):
            if name in obj:
                return obj[name]
        elif hasattr(obj, name):
            return getattr(obj, name)
    return default


def _money(value) -> Decimal:
    if value is None:
        return ZERO
    return quantize(Decimal(str(value)))


def _timestamp(value) -> float:
    if value is None:
        return float('-inf')
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace('Z', '+00:00'))
        except ValueError:
            return float('-inf')
    if isinstance(value, datetime):
        if timezone.is_naive(value):
            value = timezone.make_aware(value, dt_timezone.utc)
        return value.timestamp()
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=dt_timezone.utc).timestamp()
    return float('-inf')


def recency_key(invoice):
    return (
        _timestamp(_get(invoice, 'created_at', 'createdAt')),
        _timestamp(_get(invoice, 'invoice_date', 'invoiceDate')),
        _get(invoice, 'id', 'pk', default=0) or 0,
    )


def order_invoices(invoices: Iterable[Any]) -> List[Any]:
    """Newest first: created_at, falling back to invoice_date, then id."""
    return sorted(invoices, key=recency_key, reverse=True)


def select_active_invoice(invoices: Iterable[Any], primary_invoice_id=None):
    ordered = order_invoices(invoices)
    if primary_invoice_id is not None:
        for inv in ordered:
            if _get(inv, 'id', 'pk') == primary_invoice_id:
                return inv
    return ordered[0] if ordered else None


def _items(invoice) -> List[Any]:
    items = _get(invoice, 'items', default=None)
    if items is None:
        return []
    if hasattr(items, 'all'):
        items = items.all()
    return list(items)


def _item_dict(item) -> Dict[str, Any]:
    amount = _money(_get(item, 'amount'))
    quantity = int(_get(item, 'quantity', default=1) or 1)
    return {
        'description': _get(item, 'description', default=''),
        'amount': amount,
        'quantity': quantity,
        'lineTotal': quantize(amount * quantity),
    }


def _transaction_dict(txn) -> Dict[str, Any]:
    return {
        'id': _get(txn, 'id', 'pk'),
        'transactionNo': _get(txn, 'transaction_no', 'transactionNo'),
        'amount': _money(_get(txn, 'amount')),
        'paymentMethod': _get(txn, 'payment_method', 'paymentMethod', default=''),
        'paymentDate': _get(txn, 'payment_date', 'paymentDate'),
        'receiptNo': _get(txn, 'receipt_no', 'receiptNo', default=''),
        'collectedByName': _get(txn, 'collected_by_name', 'collectedByName', default=''),
        'notes': _get(txn, 'notes', default=''),
    }


def _newest_transactions(transactions: Iterable[Any]) -> List[Any]:
    return sorted(
        transactions,
        key=lambda t: (_timestamp(_get(t, 'payment_date', 'paymentDate')),
                       _timestamp(_get(t, 'created_at', 'createdAt')),
                       _get(t, 'id', 'pk', default=0) or 0),
        reverse=True,
    )


def compute_fee_summary_from_iterables(*, student: Any, invoices: Iterable[Any], transactions: Iterable[Any],
                                       now: Any, primary_invoice_id=None) -> Dict[str, Any]:
    invoices = order_invoices(invoices)
    transactions = list(transactions)
    if primary_invoice_id is None:
        primary_invoice_id = _get(student, 'primary_invoice_id', 'primaryInvoiceId')
    active = select_active_invoice(invoices, primary_invoice_id)
    active_id = _get(active, 'id', 'pk') if active is not None else None

    by_invoice: Dict[Any, List[Any]] = {}
    for txn in transactions:
        by_invoice.setdefault(_get(txn, 'invoice_id', 'invoiceId'), []).append(txn)

    total_fee = total_paid = total_pending = total_overdue = ZERO
    counts = {'paidOnTime': 0, 'paidLate': 0, 'overdue': 0, 'pending': 0}
    rows = []
    for inv in invoices:
        inv_id = _get(inv, 'id', 'pk')
        total = _money(_get(inv, 'total_amount', 'totalAmount'))
        paid = _money(_get(inv, 'paid_amount', 'paidAmount'))
        pending = recompute_pending(total, paid)
        result = classify(inv, now)

        total_fee += total
        total_paid += paid
        total_pending += max(pending, ZERO)
        if result.timeliness == PAID_ON_TIME:
            counts['paidOnTime'] += 1
        elif result.timeliness == PAID_LATE:
            counts['paidLate'] += 1
            counts['overdue'] += 1
        elif result.timeliness == OVERDUE:
            counts['overdue'] += 1
            total_overdue += max(pending, ZERO)
        else:
            counts['pending'] += 1

        rows.append({
            'id': inv_id,
            'invoiceNo': _get(inv, 'invoice_no', 'invoiceNo'),
            'invoiceDate': _get(inv, 'invoice_date', 'invoiceDate'),
            'dueDate': _get(inv, 'due_date', 'dueDate'),
            'paymentDate': _get(inv, 'payment_date', 'paymentDate'),
            'subtotal': _money(_get(inv, 'subtotal')),
            'discount': _money(_get(inv, 'discount')),
            'totalAmount': total,
            'paidAmount': paid,
            'pendingAmount': pending,
            'status': result.status,
            'paymentStatus': result.timeliness,
            'isOverdue': result.is_overdue,
            'isPaidOnTime': result.is_paid_on_time,
            'isActive': inv_id == active_id,
            'paymentMethod': _get(inv, 'payment_method', 'paymentMethod', default=''),
            'collectedByName': _get(inv, 'collected_by_name', 'collectedByName', default=''),
            'items': [_item_dict(it) for it in _items(inv)],
            'transactions': [_transaction_dict(t) for t in _newest_transactions(by_invoice.get(inv_id, []))],
        })

    student_id = _get(student, 'id', 'pk')
    agg_total = _money(_get(student, 'total_fee', 'totalFee'))
    agg_paid = _money(_get(student, 'paid_fee', 'paidFee'))
    agg_pending = recompute_pending(agg_total, agg_paid)

    if not invoices:
        # no ledger yet: the aggregate is all there is
        total_fee, total_paid, total_pending = agg_total, agg_paid, max(agg_pending, ZERO)

    if total_pending <= 0:
        overall = OVERALL_COMPLETE
    elif total_overdue > 0:
        overall = OVERALL_OVERDUE
    else:
        overall = OVERALL_PENDING

    warnings = []
    if active is not None:
        active_total = _money(_get(active, 'total_amount', 'totalAmount'))
        active_paid = _money(_get(active, 'paid_amount', 'paidAmount'))
        if agg_total != active_total or agg_paid != active_paid:
            warnings.append(InconsistencyWarning(
                "Fee summary differs from the active invoice.",
                student_id=student_id,
                details={'invoiceId': active_id, 'aggregateTotal': agg_total, 'invoiceTotal': active_total,
                         'aggregatePaid': agg_paid, 'invoicePaid': active_paid},
            ))
    if agg_pending < 0:
        warnings.append(OverpaymentWarning("Paid fee exceeds total fee.", student_id=student_id,
                                           details={'creditBalance': -agg_pending}))

    latest_payment = None
    if transactions:
        latest_payment = _get(_newest_transactions(transactions)[0], 'payment_date', 'paymentDate')

    latest = next((row for row in rows if row['isActive']), None)
    return {
        'studentId': student_id,
        'summary': {
            'totalFeeAmount': total_fee,
            'totalPaidAmount': total_paid,
            'totalPendingAmount': total_pending,
            'totalOverdueAmount': total_overdue,
            'paymentPercentage': payment_percentage(total_paid, total_fee),
            'overallStatus': overall,
        },
        'confirmation': {
            'totalPaidOverall': total_paid,
            'totalDueOverall': total_pending,
            'totalFeeOverall': total_fee,
            'paymentCount': len(transactions),
            'lastPaymentDate': latest_payment,
        },
        'paymentStatus': {
            'paidOnTime': counts['paidOnTime'],
            'paidLate': counts['paidLate'],
            'overdue': counts['overdue'],
            'pending': counts['pending'],
            'totalInvoices': len(rows),
        },
        'invoices': rows,
        'latestInvoice': latest,
        'aggregate': {
            'admissionFee': _money(_get(student, 'admission_fee', 'admissionFee')),
            'monthlyFee': _money(_get(student, 'monthly_fee', 'monthlyFee')),
            'totalFee': agg_total,
            'paidFee': agg_paid,
            'pendingFee': agg_pending,
            'creditBalance': -agg_pending if agg_pending < 0 else ZERO,
        },
        'warnings': [w.as_dict() for w in warnings],
    }


def get_fee_summary(student_id, now: Optional[Any] = None) -> Dict[str, Any]:
    student = get_student(student_id)
    invoices = list(student.invoices.prefetch_related('items'))
    transactions = list(PaymentTransaction.objects.filter(student=student))
    payload = compute_fee_summary_from_iterables(
        student=student,
        invoices=invoices,
        transactions=transactions,
        now=now or timezone.localdate(),
    )
    academic = student.academic_info or {}
    payload.update({
        'studentName': student.full_name,
        'srNo': student.sr_no,
        'admissionNo': student.admission_no,
        'course': academic.get('course') or academic.get('courseName') or '',
        'version': student.version,
    })
    return payload
