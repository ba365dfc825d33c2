"""Helpers for writing FeeAuditLog rows from inside engine transactions."""
from __future__ import annotations

from typing import Any, Iterable, Optional

from .domain_logs import FeeAuditLog


def actor_display_name(user) -> str:
    if user is None or not getattr(user, 'is_authenticated', False):
        return ''
    full = ''
    if hasattr(user, 'get_full_name'):
        full = (user.get_full_name() or '').strip()
    return full or getattr(user, 'username', '') or getattr(user, 'email', '') or ''


def audit_actor(user):
    if user is None or not getattr(user, 'is_authenticated', False):
        return None
    return user


def record_audit(action: str, *, student=None, invoice_ref: Optional[int] = None, actor=None,
                 payload: Optional[dict] = None, warnings: Iterable[Any] = ()) -> FeeAuditLog:
    return FeeAuditLog.objects.create(
        student=student,
        invoice_ref=invoice_ref,
        action=action,
        actor=audit_actor(actor),
        payload=payload or {},
        warnings=[w.as_dict() for w in warnings],
    )
