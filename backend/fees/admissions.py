"""Student admission: create the record, seed its FeeAggregate, link fees."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional

from django.db import transaction

from .admission_linking import LinkResult, link_admission_to_fees, mark_link_pending
from .audit import actor_display_name, record_audit
from .domain_logs import FeeAuditLog
from .domain_students import Student
from .exceptions import FeeEngineError, ValidationError
from .fee_math import compute_admission_aggregate
from .ledger_engine import overpayment_warnings, resolve_fee_structure
from .serial_numbers import ADMISSION, STUDENT, generate_serial_number

logger = logging.getLogger(__name__)

SECTIONS = (
    ('personal_info', 'personalInfo'),
    ('contact_info', 'contactInfo'),
    ('parent_info', 'parentInfo'),
    ('academic_info', 'academicInfo'),
)


@dataclass
class AdmissionResult:
    student: Student
    link: Optional[LinkResult] = None
    warnings: List[Any] = field(default_factory=list)


def _section(data: Mapping[str, Any], attr: str, key: str) -> dict:
    value = data.get(key, data.get(attr)) or {}
    if not isinstance(value, Mapping):
        raise ValidationError(f"{key} must be an object.", field=key)
    return dict(value)


def admit_student(data: Mapping[str, Any], *, admitted_by=None, link_fees: bool = True) -> AdmissionResult:
    """Create a Student from admission-form data.

    The Student commits on its own. Fee linking then runs as a separate step
    whose failure is reported, never raised.
    """
    if not isinstance(data, Mapping):
        raise ValidationError("Admission data must be an object.")
    sections = {attr: _section(data, attr, key) for attr, key in SECTIONS}
    full_name = (sections['personal_info'].get('fullName') or sections['personal_info'].get('full_name') or '').strip()
    if not full_name:
        raise ValidationError("personalInfo.fullName is required.", field='personalInfo.fullName')

    fee_info = data.get('feeInfo', data.get('fee_info')) or {}
    if not isinstance(fee_info, Mapping):
        raise ValidationError("feeInfo must be an object.", field='feeInfo')
    aggregate = compute_admission_aggregate(
        fee_info.get('admissionFee'), fee_info.get('monthlyFee'), fee_info.get('paidFee'),
    )
    structure = resolve_fee_structure(fee_info.get('feeStructureId'))

    with transaction.atomic():
        student = Student(
            sr_no=generate_serial_number(STUDENT),
            admission_no=generate_serial_number(ADMISSION),
            admitted_by=admitted_by if getattr(admitted_by, 'is_authenticated', False) else None,
            admitted_by_name=actor_display_name(admitted_by),
            fee_structure=structure,
            **sections,
        )
        student.apply_aggregate(aggregate)
        student.save()
        warnings = overpayment_warnings(student.pk, aggregate.total_fee, aggregate.paid_fee)
        record_audit(FeeAuditLog.ADMIT_STUDENT, student=student, actor=admitted_by,
                     payload={'admissionNo': student.admission_no, 'feeInfo': aggregate.as_dict()},
                     warnings=warnings)
    logger.info("Admitted student %s (%s)", student.admission_no, full_name)

    link = None
    if link_fees:
        amounts = {
            'admissionFee': aggregate.admission_fee,
            'monthlyFee': aggregate.monthly_fee,
            'totalAmount': fee_info.get('totalAmount'),
            'feeStructureId': structure.pk if structure else None,
        }
        try:
            link = link_admission_to_fees(student.pk, amounts, collected_by=admitted_by)
        except FeeEngineError as exc:
            link = LinkResult(linked=False, warning=mark_link_pending(student, str(exc), amounts=amounts))
        if link.warning is not None:
            warnings.append(link.warning)
        student.refresh_from_db()

    return AdmissionResult(student=student, link=link, warnings=warnings)
