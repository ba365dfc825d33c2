"""Domain Student model.

The Student row carries the denormalized FeeAggregate (``*_fee`` columns)
next to the admission profile blobs.
"""
from django.contrib.auth.models import User
from django.db import models

from .fee_math import FeeAggregate, recompute_pending

__all__ = ['Student']


class Student(models.Model):
    id = models.BigAutoField(primary_key=True)
    sr_no = models.CharField(max_length=30, unique=True, null=True, blank=True)
    admission_no = models.CharField(max_length=30, unique=True, null=True, blank=True)

    # Admission profile (no fee invariants live here)
    personal_info = models.JSONField(default=dict, blank=True)
    contact_info = models.JSONField(default=dict, blank=True)
    parent_info = models.JSONField(default=dict, blank=True)
    academic_info = models.JSONField(default=dict, blank=True)

    admitted_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='admitted_students'
    )
    admitted_by_name = models.CharField(max_length=150, blank=True, default='')

    # FeeAggregate
    admission_fee = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    monthly_fee = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    total_fee = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    paid_fee = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    pending_fee = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    fee_structure = models.ForeignKey(
        'fees.FeeStructure',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='students'
    )
    # Explicit "active invoice" pointer; the aggregate mirrors this invoice once set
    primary_invoice = models.ForeignKey(
        'fees.Invoice',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )

    version = models.PositiveIntegerField(default=1)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'student'
        ordering = ['-created_at', '-id']

    def __str__(self):
        return f"{self.full_name or 'Unknown'} - {self.admission_no or self.sr_no or self.pk}"

    @property
    def full_name(self):
        info = self.personal_info or {}
        return info.get('fullName') or info.get('full_name') or ''

    def calculate_pending_fee(self):
        self.pending_fee = recompute_pending(self.total_fee, self.paid_fee)
        return self.pending_fee

    def fee_aggregate(self) -> FeeAggregate:
        return FeeAggregate(
            admission_fee=self.admission_fee,
            monthly_fee=self.monthly_fee,
            total_fee=self.total_fee,
            paid_fee=self.paid_fee,
            pending_fee=recompute_pending(self.total_fee, self.paid_fee),
        )

    def apply_aggregate(self, aggregate: FeeAggregate):
        self.admission_fee = aggregate.admission_fee
        self.monthly_fee = aggregate.monthly_fee
        self.total_fee = aggregate.total_fee
        self.paid_fee = aggregate.paid_fee
        self.pending_fee = aggregate.pending_fee
