from django.contrib.auth.models import User
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from django.utils import timezone

__all__ = ['FeeAuditLog', 'UserActivityLog', 'ErrorLog']


class FeeAuditLog(models.Model):
    """Who changed which fee fact, and what the engine flagged while doing it.

    ``invoice_ref`` is a plain id so the row survives invoice deletion.
    """
    CREATE_INVOICE = 'create_invoice'
    RECORD_PAYMENT = 'record_payment'
    DELETE_INVOICE = 'delete_invoice'
    LINK_ADMISSION = 'link_admission'
    ADMIT_STUDENT = 'admit_student'
    CORRECT_FEE = 'correct_fee'
    CORRECT_ADMISSION = 'correct_admission'
    MONTHLY_PAYMENT = 'monthly_payment'
    RECONCILE = 'reconcile'
    ACTION_CHOICES = [
        (CREATE_INVOICE, 'Create invoice'),
        (RECORD_PAYMENT, 'Record payment'),
        (DELETE_INVOICE, 'Delete invoice'),
        (LINK_ADMISSION, 'Link admission'),
        (ADMIT_STUDENT, 'Admit student'),
        (CORRECT_FEE, 'Correct fee'),
        (CORRECT_ADMISSION, 'Correct admission'),
        (MONTHLY_PAYMENT, 'Monthly payment'),
        (RECONCILE, 'Reconcile'),
    ]

    id = models.BigAutoField(primary_key=True)
    student = models.ForeignKey('fees.Student', on_delete=models.SET_NULL, null=True, blank=True, related_name='audit_entries')
    invoice_ref = models.BigIntegerField(null=True, blank=True, db_index=True)
    action = models.CharField(max_length=30, choices=ACTION_CHOICES)
    actor = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='fee_audit_entries')
    payload = models.JSONField(blank=True, null=True, encoder=DjangoJSONEncoder)
    warnings = models.JSONField(blank=True, default=list, encoder=DjangoJSONEncoder)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'fee_audit_log'
        ordering = ['-created_at', '-id']

    def __str__(self):
        who = self.actor.username if self.actor else 'system'
        return f"{self.action} by {who} for student {self.student_id} @ {self.created_at}"


class UserActivityLog(models.Model):
    """Mutating API calls (POST/PUT/PATCH/DELETE) with their response status."""
    id = models.BigAutoField(primary_key=True)
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    view_name = models.CharField(max_length=200, blank=True, null=True)
    path = models.CharField(max_length=1000, blank=True, null=True)
    method = models.CharField(max_length=10, blank=True, null=True)
    payload = models.JSONField(blank=True, null=True)
    status_code = models.IntegerField(blank=True, null=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'user_activity_log'
        ordering = ['-created_at']

    def __str__(self):
        who = self.user.username if self.user else 'Anonymous'
        return f"{who} {self.method or ''} {self.path or ''} -> {self.status_code}"


class ErrorLog(models.Model):
    """Unhandled server exceptions raised while serving a request."""
    id = models.BigAutoField(primary_key=True)
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    path = models.CharField(max_length=1000, blank=True, null=True)
    method = models.CharField(max_length=10, blank=True, null=True)
    message = models.TextField(blank=True, null=True)
    stack = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'error_log'
        ordering = ['-created_at']

    def __str__(self):
        return f"Error on {self.path or 'unknown'} @ {self.created_at}"
