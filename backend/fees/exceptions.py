"""Error taxonomy for the fee ledger engine.

Errors derive from ``FeeEngineError`` and carry the HTTP status the API
layer answers with. ``LinkingFailure`` and ``InconsistencyWarning`` are
warnings: they are returned alongside successful results rather than raised
past the service boundary.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

__all__ = [
    'FeeEngineError', 'ValidationError', 'NotFoundError', 'InvalidAmountError',
    'ConcurrencyConflict', 'FeeWarning', 'LinkingFailure', 'InconsistencyWarning',
    'OverpaymentWarning',
]


class FeeEngineError(Exception):
    status_code = 400
    code = 'fee_error'

    def __init__(self, message: str, *, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def as_dict(self) -> Dict[str, Any]:
        payload = {'error': self.message, 'code': self.code}
        if self.field:
            payload['field'] = self.field
        return payload


class ValidationError(FeeEngineError):
    """Non-numeric or negative monetary input, or a missing required field."""
    code = 'validation_error'


class NotFoundError(FeeEngineError):
    status_code = 404
    code = 'not_found'


class InvalidAmountError(FeeEngineError):
    """Payment amount <= 0 or one that would drive paid_amount negative."""
    code = 'invalid_amount'


class ConcurrencyConflict(FeeEngineError):
    status_code = 409
    code = 'version_conflict'


@dataclass
class FeeWarning:
    code = 'warning'

    message: str
    student_id: Optional[int] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        return {
            'code': self.code,
            'message': self.message,
            'studentId': self.student_id,
            'details': self.details,
        }


class LinkingFailure(FeeWarning):
    """Admission succeeded but the automatic fee link did not."""
    code = 'linking_failure'


class InconsistencyWarning(FeeWarning):
    """The FeeAggregate and the active invoice disagree."""
    code = 'inconsistency'


class OverpaymentWarning(FeeWarning):
    """Paid exceeds total; the excess is carried as a credit balance."""
    code = 'overpayment'
