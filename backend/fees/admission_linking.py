"""Link a freshly admitted student to an opening invoice.

The link is idempotent per ``(student, event)`` through ``AdmissionLink``.
Write failures never undo the admission: they leave the link ``pending``
for ``retry_fee_links`` and come back as a ``LinkingFailure`` warning.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from django.conf import settings
from django.db import DatabaseError, transaction

from .audit import record_audit
from .domain_fees import AdmissionLink
from .domain_logs import FeeAuditLog
from .exceptions import FeeEngineError, LinkingFailure, ValidationError
from .fee_math import ZERO, parse_amount, quantize
from .ledger_engine import create_invoice, lock_student, resolve_fee_structure

logger = logging.getLogger(__name__)

ADMISSION_EVENT = 'admission'


@dataclass
class LinkResult:
    linked: bool
    invoice_id: Optional[int] = None
    created: bool = False
    warning: Optional[LinkingFailure] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            'linked': self.linked,
            'invoiceId': self.invoice_id,
            'created': self.created,
            'warning': self.warning.as_dict() if self.warning else None,
        }


def _pick(amounts: Mapping[str, Any], *keys):
    for key in keys:
        if key in amounts:
            return amounts[key]
    return None


def build_link_items(admission_fee, monthly_fee):
    labels = (
        (getattr(settings, 'FEES_ADMISSION_FEE_LABEL', 'Admission Fee'), admission_fee),
        (getattr(settings, 'FEES_MONTHLY_FEE_LABEL', 'Monthly Fee'), monthly_fee),
    )
    return [{'description': label, 'amount': amount, 'quantity': 1} for label, amount in labels if amount > 0]


def parse_link_amounts(amounts: Mapping[str, Any]):
    """Return ``(admission, monthly, discount, fee_structure_id)``."""
    amounts = amounts or {}
    admission = parse_amount(_pick(amounts, 'admissionFee', 'admission_fee'), 'admissionFee', allow_none=True) or ZERO
    monthly = parse_amount(_pick(amounts, 'monthlyFee', 'monthly_fee'), 'monthlyFee', allow_none=True) or ZERO
    subtotal = quantize(admission + monthly)
    total = parse_amount(_pick(amounts, 'totalAmount', 'total_amount'), 'totalAmount', allow_none=True)
    if total is None:
        total = subtotal
    if total > subtotal:
        raise ValidationError(
            f"totalAmount {total} exceeds admission + monthly fee ({subtotal}).", field='totalAmount'
        )
    return admission, monthly, quantize(subtotal - total), _pick(amounts, 'feeStructureId', 'fee_structure_id')


def link_admission_to_fees(student_id, amounts: Mapping[str, Any], *, collected_by=None,
                           event: str = ADMISSION_EVENT) -> LinkResult:
    admission, monthly, discount, structure_id = parse_link_amounts(amounts)

    with transaction.atomic():
        student = lock_student(student_id)
        structure = resolve_fee_structure(structure_id)
        link, _ = AdmissionLink.objects.select_for_update().get_or_create(student=student, event=event)
        if link.status == AdmissionLink.LINKED and link.invoice_id:
            return LinkResult(linked=True, invoice_id=link.invoice_id, created=False)

        existing = student.invoices.order_by('created_at', 'id').first()
        if existing is not None:
            link.status = AdmissionLink.LINKED
            link.invoice = existing
            link.last_error = ''
            link.save()
            return LinkResult(linked=True, invoice_id=existing.pk, created=False)

        link.attempts += 1
        link.admission_fee = admission
        link.monthly_fee = monthly
        link.total_amount = quantize(admission + monthly - discount)
        link.fee_structure = structure

        try:
            with transaction.atomic():
                student.admission_fee = admission
                student.monthly_fee = monthly
                if structure is not None:
                    student.fee_structure = structure
                student.save(update_fields=['admission_fee', 'monthly_fee', 'fee_structure', 'updated_at'])
                result = create_invoice(
                    student.pk,
                    build_link_items(admission, monthly),
                    discount,
                    collected_by,
                    initial_payment=student.paid_fee,
                    fee_structure_id=structure.pk if structure else None,
                    notes='Created on admission',
                    activate=True,
                )
        except (FeeEngineError, DatabaseError) as exc:
            logger.exception("Fee link failed for student %s (attempt %d)", student.pk, link.attempts)
            link.status = AdmissionLink.PENDING
            link.last_error = str(exc)
            link.save()
            warning = LinkingFailure(
                "Student admitted, but the fee invoice could not be created; linking is pending.",
                student_id=student.pk,
                details={'error': str(exc), 'attempts': link.attempts},
            )
            record_audit(FeeAuditLog.LINK_ADMISSION, student=student, actor=collected_by,
                         payload={'event': event, 'status': link.status}, warnings=[warning])
            return LinkResult(linked=False, warning=warning)

        link.status = AdmissionLink.LINKED
        link.invoice = result.invoice
        link.last_error = ''
        link.save()
        record_audit(FeeAuditLog.LINK_ADMISSION, student=student, invoice_ref=result.invoice.pk,
                     actor=collected_by, payload={'event': event, 'invoiceNo': result.invoice.invoice_no},
                     warnings=result.warnings)

    logger.info("Linked student %s to invoice %s", student_id, result.invoice.invoice_no)
    return LinkResult(linked=True, invoice_id=result.invoice.pk, created=True)


def mark_link_pending(student, error: str, *, amounts: Optional[Mapping[str, Any]] = None,
                      event: str = ADMISSION_EVENT) -> LinkingFailure:
    """Record a pending link for a failure raised before the link could start."""
    amounts = amounts or {}
    link, _ = AdmissionLink.objects.get_or_create(student=student, event=event)
    link.status = AdmissionLink.PENDING
    link.attempts += 1
    link.last_error = error
    link.admission_fee = student.admission_fee
    link.monthly_fee = student.monthly_fee
    total = _pick(amounts, 'totalAmount', 'total_amount')
    try:
        link.total_amount = parse_amount(total, 'totalAmount', allow_none=True)
    except ValidationError:
        link.total_amount = None
    link.save()
    logger.warning("Fee link for student %s left pending: %s", student.pk, error)
    return LinkingFailure(
        "Student admitted, but fee linking failed; linking is pending.",
        student_id=student.pk,
        details={'error': error, 'attempts': link.attempts},
    )


def retry_pending_links(*, limit: Optional[int] = None, collected_by=None):
    """Retry every pending AdmissionLink. Returns ``[(student_id, LinkResult)]``."""
    pending = AdmissionLink.objects.filter(status=AdmissionLink.PENDING).order_by('updated_at', 'id')
    if limit:
        pending = pending[:limit]
    outcomes = []
    for link in list(pending):
        amounts = {
            'admissionFee': link.admission_fee,
            'monthlyFee': link.monthly_fee,
            'feeStructureId': link.fee_structure_id,
        }
        if link.total_amount is not None:
            amounts['totalAmount'] = link.total_amount
        try:
            result = link_admission_to_fees(link.student_id, amounts, collected_by=collected_by, event=link.event)
        except FeeEngineError as exc:
            AdmissionLink.objects.filter(pk=link.pk).update(last_error=str(exc), attempts=link.attempts + 1)
            logger.warning("Retry for student %s rejected: %s", link.student_id, exc)
            result = LinkResult(linked=False, warning=LinkingFailure(str(exc), student_id=link.student_id))
        outcomes.append((link.student_id, result))
    return outcomes
