"""ReconciliationCheck: compare FeeAggregates against the invoice ledger.

Findings are ``InconsistencyWarning`` objects. With ``fix=True`` the
aggregate is resynced from the active invoice (never the other way round;
the ledger is authoritative for money that moved).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from django.db import transaction

from .domain_logs import FeeAuditLog
from .domain_students import Student
from .audit import record_audit
from .exceptions import InconsistencyWarning
from .fee_math import ZERO, quantize, recompute_pending
from .ledger_engine import (
    active_invoice, aggregate_divergence, lock_student, resync_student, transaction_total,
)

logger = logging.getLogger(__name__)


@dataclass
class ReconcileReport:
    checked: int = 0
    fixed: int = 0
    findings: List[InconsistencyWarning] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            'checked': self.checked,
            'fixed': self.fixed,
            'inconsistent': len({w.student_id for w in self.findings}),
            'findings': [w.as_dict() for w in self.findings],
        }


def invoice_findings(student: Student) -> List[InconsistencyWarning]:
    findings = []
    for inv in student.invoices.all():
        txn_sum = transaction_total(inv)
        if txn_sum != quantize(inv.paid_amount or ZERO):
            findings.append(InconsistencyWarning(
                f"Invoice {inv.invoice_no or inv.pk}: transactions sum to {txn_sum}, paid amount is {inv.paid_amount}.",
                student_id=student.pk,
                details={'invoiceId': inv.pk, 'transactionTotal': txn_sum, 'paidAmount': inv.paid_amount},
            ))
        expected_total = quantize((inv.subtotal or ZERO) - (inv.discount or ZERO))
        expected_pending = quantize((inv.total_amount or ZERO) - (inv.paid_amount or ZERO))
        if expected_total != inv.total_amount or expected_pending != inv.pending_amount:
            findings.append(InconsistencyWarning(
                f"Invoice {inv.invoice_no or inv.pk}: stored totals do not add up.",
                student_id=student.pk,
                details={
                    'invoiceId': inv.pk,
                    'subtotal': inv.subtotal,
                    'discount': inv.discount,
                    'totalAmount': inv.total_amount,
                    'pendingAmount': inv.pending_amount,
                },
            ))
    return findings


def check_student(student: Student) -> List[InconsistencyWarning]:
    findings = aggregate_divergence(student, active_invoice(student))
    if student.pending_fee != recompute_pending(student.total_fee, student.paid_fee):
        findings.append(InconsistencyWarning(
            "Stored pending fee is stale.",
            student_id=student.pk,
            details={'pendingFee': student.pending_fee,
                     'expected': recompute_pending(student.total_fee, student.paid_fee)},
        ))
    findings.extend(invoice_findings(student))
    return findings


def reconcile_student(student_id, *, fix: bool = False, actor=None) -> List[InconsistencyWarning]:
    with transaction.atomic():
        student = lock_student(student_id)
        findings = check_student(student)
        if findings and fix:
            resync_student(student)
            student.version += 1
            student.save()
            record_audit(FeeAuditLog.RECONCILE, student=student, actor=actor,
                         payload={'totalFee': student.total_fee, 'paidFee': student.paid_fee},
                         warnings=findings)
    return findings


def reconcile_all(*, fix: bool = False, student_ids: Optional[List[int]] = None, actor=None) -> ReconcileReport:
    report = ReconcileReport()
    qs = Student.objects.order_by('id')
    if student_ids:
        qs = qs.filter(pk__in=student_ids)
    for student_id in qs.values_list('id', flat=True).iterator():
        findings = reconcile_student(student_id, fix=fix, actor=actor)
        report.checked += 1
        if findings:
            report.findings.extend(findings)
            if fix:
                report.fixed += 1
            logger.warning("Student %s has %d fee inconsistencies", student_id, len(findings))
    logger.info("Reconciled %d students (%d findings, %d fixed)",
                report.checked, len(report.findings), report.fixed)
    return report
