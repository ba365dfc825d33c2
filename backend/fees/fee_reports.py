"""Accountant read models: dashboard fee figures and per-student payment history.

``compute_dashboard_from_iterables`` and ``compute_payment_history_totals``
are pure and accept model instances, plain objects or dicts. ``get_dashboard``
and ``get_payment_history`` gather rows through the ORM and delegate.

Dashboard pending figures come from each student's FeeAggregate and count only
positive balances.
"""
from __future__ import annotations

from datetime import date
from typing import Any, Dict, Iterable, Optional

from django.utils import timezone

from .domain_fees import Invoice, MonthlyPayment, PaymentTransaction
from .domain_students import Student
from .fee_math import ZERO, recompute_pending
from .fee_summary import _get, _money
from .ledger_engine import get_student
from .payment_status import as_date

STUDENT_ACTIVE = 'active'


def is_active_student(student) -> bool:
    academic = _get(student, 'academic_info', 'academicInfo') or {}
    return (academic.get('status') or STUDENT_ACTIVE) == STUDENT_ACTIVE


def outstanding_balance(student):
    """Positive part of ``total - paid`` for one student; credit counts as zero."""
    pending = recompute_pending(_money(_get(student, 'total_fee', 'totalFee')),
                                _money(_get(student, 'paid_fee', 'paidFee')))
    return pending if pending > 0 else ZERO


def _same_month(value, today: date) -> bool:
    day = as_date(value)
    return day is not None and (day.year, day.month) == (today.year, today.month)


def compute_dashboard_from_iterables(
    *,
    students: Iterable[Any],
    invoices: Iterable[Any],
    monthly_payments: Iterable[Any],
    today: date,
    admitted_by_id=None,
) -> Dict[str, Any]:
    students = list(students)
    active = [s for s in students if is_active_student(s)]

    today_admissions = 0
    if admitted_by_id is not None:
        for student in students:
            if _get(student, 'admitted_by_id', 'admittedById') != admitted_by_id:
                continue
            if as_date(_get(student, 'created_at', 'createdAt')) == today:
                today_admissions += 1

    collected = sum((_money(_get(inv, 'paid_amount', 'paidAmount')) for inv in invoices), ZERO)
    this_month = sum(
        (_money(_get(p, 'amount')) for p in monthly_payments
         if _same_month(_get(p, 'payment_date', 'paymentDate'), today)),
        ZERO,
    )
    balances = [outstanding_balance(s) for s in active]

    return {
        'students': len(active),
        'todayAdmissions': today_admissions,
        'totalFeesCollected': collected,
        'pendingFees': sum(balances, ZERO),
        'thisMonthCollections': this_month,
        'studentsWithPendingFees': sum(1 for b in balances if b > 0),
    }


def get_dashboard(user=None, now: Optional[Any] = None) -> Dict[str, Any]:
    today = as_date(now) if now is not None else timezone.localdate()
    admitted_by_id = user.pk if getattr(user, 'is_authenticated', False) else None
    return compute_dashboard_from_iterables(
        students=Student.objects.only('academic_info', 'total_fee', 'paid_fee', 'admitted_by', 'created_at'),
        invoices=Invoice.objects.only('paid_amount'),
        monthly_payments=MonthlyPayment.objects.filter(
            payment_date__year=today.year, payment_date__month=today.month,
        ).only('amount', 'payment_date'),
        today=today,
        admitted_by_id=admitted_by_id,
    )


def compute_payment_history_totals(*, student, monthly_payments: Iterable[Any],
                                   transactions: Iterable[Any]) -> Dict[str, Any]:
    total = _money(_get(student, 'total_fee', 'totalFee'))
    paid = _money(_get(student, 'paid_fee', 'paidFee'))
    return {
        'totalFee': total,
        'paidFee': paid,
        'pendingFee': recompute_pending(total, paid),
        'totalMonthlyPayments': sum((_money(_get(p, 'amount')) for p in monthly_payments), ZERO),
        'totalTransactions': sum((_money(_get(t, 'amount')) for t in transactions), ZERO),
    }


def get_payment_history(student_id) -> Dict[str, Any]:
    """Invoices newest first, monthly payments by period, transactions by date."""
    student = get_student(student_id)
    invoices = list(
        student.invoices.select_related('fee_structure').prefetch_related('items', 'transactions')
        .order_by('-created_at', '-id')
    )
    monthly_payments = list(
        MonthlyPayment.objects.filter(student=student).select_related('student', 'invoice', 'transaction')
        .order_by('-year', '-month', '-payment_date')
    )
    transactions = list(
        PaymentTransaction.objects.filter(student=student).select_related('invoice')
        .order_by('-payment_date', '-id')
    )
    return {
        'student': student,
        'invoices': invoices,
        'monthlyPayments': monthly_payments,
        'transactions': transactions,
        'summary': compute_payment_history_totals(
            student=student, monthly_payments=monthly_payments, transactions=transactions,
        ),
    }
