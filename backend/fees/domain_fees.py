"""Fee ledger domain models.

FeeStructure catalogue, the Invoice ledger (items + payment transactions),
monthly payment bookkeeping, admission-link tracking and serial counters.
"""
from __future__ import annotations

from django.contrib.auth import get_user_model
from django.db import models
from django.utils import timezone

from .fee_math import ZERO, line_subtotal, quantize
from .payment_status import INVOICE_STATUSES, PENDING, invoice_status

User = get_user_model()

__all__ = [
    'PAYMENT_METHOD_CHOICES', 'FeeStructure', 'FeeComponent', 'Invoice', 'InvoiceItem',
    'PaymentTransaction', 'MonthlyPayment', 'AdmissionLink', 'SerialCounter',
]

PAYMENT_METHOD_CHOICES = [
    ('cash', 'Cash'),
    ('bank_transfer', 'Bank Transfer'),
    ('online', 'Online'),
    ('cheque', 'Cheque'),
]


class FeeStructure(models.Model):
    """Named fee schedule, e.g. a course's admission + tuition components."""

    INSTITUTE_TYPE_CHOICES = [
        ('school', 'School'),
        ('college', 'College'),
        ('academy', 'Academy'),
        ('short_course', 'Short Course'),
    ]

    sr_no = models.CharField(max_length=30, unique=True, null=True, blank=True)
    name = models.CharField(max_length=255)
    institute_type = models.CharField(max_length=20, choices=INSTITUTE_TYPE_CHOICES)
    course_ref = models.CharField(max_length=64, blank=True, default='', db_index=True)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'fee_structure'
        ordering = ['-created_at', '-id']

    def __str__(self) -> str:  # pragma: no cover - repr helper
        return f"{self.sr_no or '-'} {self.name}"

    def recalculate_total(self):
        self.total_amount = quantize(sum((c.amount for c in self.components.all()), ZERO))
        return self.total_amount


class FeeComponent(models.Model):
    FREQUENCY_CHOICES = [
        ('one_time', 'One time'),
        ('monthly', 'Monthly'),
        ('quarterly', 'Quarterly'),
        ('yearly', 'Yearly'),
    ]

    structure = models.ForeignKey(FeeStructure, on_delete=models.CASCADE, related_name='components')
    name = models.CharField(max_length=255)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    frequency = models.CharField(max_length=12, choices=FREQUENCY_CHOICES, default='monthly')

    class Meta:
        db_table = 'fee_component'
        ordering = ['id']

    def __str__(self) -> str:  # pragma: no cover - repr helper
        return f"{self.name} ({self.amount})"


class Invoice(models.Model):
    STATUS_CHOICES = [(s, s.title()) for s in INVOICE_STATUSES]

    invoice_no = models.CharField(max_length=30, unique=True, null=True, blank=True, db_index=True)
    student = models.ForeignKey('fees.Student', on_delete=models.CASCADE, related_name='invoices')
    fee_structure = models.ForeignKey(
        FeeStructure,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='invoices'
    )
    invoice_date = models.DateField(default=timezone.localdate)
    due_date = models.DateField(null=True, blank=True)

    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    discount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    paid_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    pending_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=PENDING)

    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHOD_CHOICES, blank=True, default='')
    payment_date = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True, default='')

    collected_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='collected_invoices'
    )
    collected_by_name = models.CharField(max_length=150, blank=True, default='')

    version = models.PositiveIntegerField(default=1)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'invoice'
        ordering = ['-created_at', '-invoice_date', '-id']
        indexes = [
            models.Index(fields=['student', 'created_at'], name='invoice_student_created_idx'),
            models.Index(fields=['status'], name='invoice_status_idx'),
        ]

    def __str__(self) -> str:  # pragma: no cover - repr helper
        return f"{self.invoice_no or '-'} | {self.total_amount} | {self.status}"

    def recalculate(self, items=None):
        """Recompute subtotal, total, pending and status from line items."""
        if items is None:
            items = list(self.items.all())
        self.subtotal = line_subtotal(items)
        self.total_amount = quantize(self.subtotal - (self.discount or ZERO))
        self.pending_amount = quantize(self.total_amount - (self.paid_amount or ZERO))
        self.status = invoice_status(self.total_amount, self.paid_amount)
        return self


class InvoiceItem(models.Model):
    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name='items')
    description = models.CharField(max_length=255)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    quantity = models.PositiveIntegerField(default=1)
    position = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = 'invoice_item'
        ordering = ['position', 'id']

    def __str__(self) -> str:  # pragma: no cover - repr helper
        return f"{self.description} x{self.quantity} @ {self.amount}"

    @property
    def line_total(self):
        return quantize(self.amount * self.quantity)


class PaymentTransaction(models.Model):
    """Append-only payment applied against an invoice."""

    transaction_no = models.CharField(max_length=30, unique=True, null=True, blank=True)
    student = models.ForeignKey('fees.Student', on_delete=models.CASCADE, related_name='payment_transactions')
    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name='transactions')
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHOD_CHOICES)
    payment_date = models.DateTimeField(default=timezone.now)
    receipt_no = models.CharField(max_length=50, blank=True, default='')
    collected_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='collected_transactions'
    )
    collected_by_name = models.CharField(max_length=150, blank=True, default='')
    notes = models.TextField(blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'payment_transaction'
        ordering = ['-payment_date', '-created_at', '-id']
        indexes = [
            models.Index(fields=['student', 'payment_date'], name='paytxn_student_date_idx'),
        ]

    def __str__(self) -> str:  # pragma: no cover - repr helper
        return f"{self.transaction_no or '-'} | {self.amount}"


class MonthlyPayment(models.Model):
    payment_no = models.CharField(max_length=30, unique=True, null=True, blank=True)
    student = models.ForeignKey('fees.Student', on_delete=models.CASCADE, related_name='monthly_payments')
    invoice = models.ForeignKey(Invoice, on_delete=models.SET_NULL, null=True, blank=True, related_name='monthly_payments')
    transaction = models.ForeignKey(
        PaymentTransaction,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='monthly_payments'
    )
    month = models.PositiveSmallIntegerField()
    year = models.PositiveIntegerField()
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHOD_CHOICES)
    payment_date = models.DateTimeField(default=timezone.now)
    receipt_no = models.CharField(max_length=50, blank=True, default='')
    notes = models.TextField(blank=True, default='')
    collected_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'monthly_payment'
        ordering = ['-year', '-month', '-payment_date']
        constraints = [
            models.UniqueConstraint(fields=['student', 'year', 'month'], name='uq_monthly_payment_student_month'),
        ]

    def __str__(self) -> str:  # pragma: no cover - repr helper
        return f"{self.payment_no or '-'} {self.month:02d}/{self.year} {self.amount}"


class AdmissionLink(models.Model):
    """Tracks the admission -> invoice link so it happens exactly once per event."""

    LINKED = 'linked'
    PENDING = 'pending'
    STATUS_CHOICES = [(LINKED, 'Linked'), (PENDING, 'Pending')]

    student = models.ForeignKey('fees.Student', on_delete=models.CASCADE, related_name='admission_links')
    event = models.CharField(max_length=50, default='admission')
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=PENDING)
    invoice = models.ForeignKey(Invoice, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    admission_fee = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    monthly_fee = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    fee_structure = models.ForeignKey(FeeStructure, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    attempts = models.PositiveIntegerField(default=0)
    last_error = models.TextField(blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'admission_link'
        constraints = [
            models.UniqueConstraint(fields=['student', 'event'], name='uq_admission_link_student_event'),
        ]

    def __str__(self) -> str:  # pragma: no cover - repr helper
        return f"{self.student_id}:{self.event} {self.status}"


class SerialCounter(models.Model):
    prefix = models.CharField(max_length=10, unique=True)
    count = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = 'serial_counter'

    def __str__(self) -> str:  # pragma: no cover - repr helper
        return f"{self.prefix}={self.count}"
