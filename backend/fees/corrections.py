"""Retroactive corrections to admission records and fee aggregates."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping

from django.db import transaction

from .audit import record_audit
from .domain_logs import FeeAuditLog
from .domain_students import Student
from .exceptions import ValidationError
from .fee_math import parse_amount, recompute_pending
from .ledger_engine import (
    active_invoice, aggregate_divergence, check_version, lock_student, overpayment_warnings,
    resolve_fee_structure,
)

logger = logging.getLogger(__name__)

ADMISSION = 'admission'
FEE = 'fee'
CORRECTION_TYPES = (ADMISSION, FEE)

# section attribute -> accepted payload keys
ADMISSION_SECTIONS = {
    'personal_info': ('personalInfo', 'personal_info'),
    'contact_info': ('contactInfo', 'contact_info'),
    'parent_info': ('parentInfo', 'parent_info'),
    'academic_info': ('academicInfo', 'academic_info'),
}

FEE_FIELDS = {
    'total_fee': ('totalFee', 'total_fee'),
    'paid_fee': ('paidFee', 'paid_fee'),
    'fee_structure_id': ('feeStructureId', 'fee_structure_id', 'feeStructure'),
}


@dataclass
class CorrectionResult:
    student: Student
    changed: Dict[str, Any]
    warnings: List[Any] = field(default_factory=list)


def _lookup(corrections: Mapping[str, Any], keys):
    for key in keys:
        if key in corrections:
            return True, corrections[key]
    return False, None


def correct_admission(student_id, corrections: Mapping[str, Any], *, expected_version=None,
                      actor=None) -> CorrectionResult:
    if not isinstance(corrections, Mapping):
        raise ValidationError("corrections must be an object.", field='corrections')
    updates = {}
    for attr, keys in ADMISSION_SECTIONS.items():
        present, value = _lookup(corrections, keys)
        if not present:
            continue
        if not isinstance(value, Mapping):
            raise ValidationError(f"{keys[0]} must be an object.", field=keys[0])
        updates[attr] = dict(value)
    if not updates:
        raise ValidationError("No admission sections to correct.", field='corrections')

    with transaction.atomic():
        student = lock_student(student_id)
        check_version(student, expected_version)
        for attr, patch in updates.items():
            merged = dict(getattr(student, attr) or {})
            merged.update(patch)
            setattr(student, attr, merged)
        student.version += 1
        student.save()
        record_audit(FeeAuditLog.CORRECT_ADMISSION, student=student, actor=actor,
                     payload={ADMISSION_SECTIONS[a][0]: p for a, p in updates.items()})

    logger.info("Corrected admission sections %s for student %s", sorted(updates), student.pk)
    return CorrectionResult(student=student, changed=updates)


def correct_fee(student_id, corrections: Mapping[str, Any], *, expected_version=None,
                actor=None) -> CorrectionResult:
    """Overwrite the FeeAggregate; the invoice ledger is left untouched.

    Divergence from the active invoice and overpayment come back as warnings
    and are stored on the audit row.
    """
    if not isinstance(corrections, Mapping):
        raise ValidationError("corrections must be an object.", field='corrections')
    found = {attr: _lookup(corrections, keys) for attr, keys in FEE_FIELDS.items()}
    if not any(present for present, _ in found.values()):
        raise ValidationError("Missing required correction fields (totalFee, paidFee or feeStructureId).",
                              field='corrections')

    total = parse_amount(found['total_fee'][1], 'totalFee') if found['total_fee'][0] else None
    paid = parse_amount(found['paid_fee'][1], 'paidFee') if found['paid_fee'][0] else None

    with transaction.atomic():
        student = lock_student(student_id)
        check_version(student, expected_version)
        before = {'totalFee': student.total_fee, 'paidFee': student.paid_fee,
                  'pendingFee': student.pending_fee, 'feeStructureId': student.fee_structure_id}
        if total is not None:
            student.total_fee = total
        if paid is not None:
            student.paid_fee = paid
        if found['fee_structure_id'][0]:
            student.fee_structure = resolve_fee_structure(found['fee_structure_id'][1])
        student.pending_fee = recompute_pending(student.total_fee, student.paid_fee)
        student.version += 1
        student.save()

        warnings = aggregate_divergence(student, active_invoice(student))
        warnings.extend(overpayment_warnings(student.pk, student.total_fee, student.paid_fee))
        after = {'totalFee': student.total_fee, 'paidFee': student.paid_fee,
                 'pendingFee': student.pending_fee, 'feeStructureId': student.fee_structure_id}
        record_audit(FeeAuditLog.CORRECT_FEE, student=student, actor=actor,
                     payload={'before': before, 'after': after}, warnings=warnings)

    if warnings:
        logger.warning("Fee correction for student %s left %d warnings", student.pk, len(warnings))
    else:
        logger.info("Corrected fee summary for student %s", student.pk)
    return CorrectionResult(student=student, changed=after, warnings=warnings)


def apply_correction(request: Mapping[str, Any], *, actor=None) -> CorrectionResult:
    if not isinstance(request, Mapping):
        raise ValidationError("Correction request must be an object.")
    kind = request.get('type')
    student_id = request.get('studentId', request.get('student_id'))
    corrections = request.get('corrections')
    expected_version = request.get('expectedVersion', request.get('expected_version'))
    if student_id in (None, ''):
        raise ValidationError("studentId is required.", field='studentId')
    if corrections is None:
        raise ValidationError("corrections is required.", field='corrections')
    if kind == ADMISSION:
        return correct_admission(student_id, corrections, expected_version=expected_version, actor=actor)
    if kind == FEE:
        return correct_fee(student_id, corrections, expected_version=expected_version, actor=actor)
    raise ValidationError(f"Unknown correction type '{kind}'.", field='type')
