from django.contrib import admin

from .domain_fees import (
    AdmissionLink, FeeComponent, FeeStructure, Invoice, InvoiceItem, MonthlyPayment, PaymentTransaction,
)
from .domain_logs import ErrorLog, FeeAuditLog, UserActivityLog
from .domain_students import Student

# Amounts below are owned by the ledger engine; staff corrections go through
# the correct-error endpoint so the aggregate and the audit log stay in step.
STUDENT_FEE_FIELDS = ('admission_fee', 'monthly_fee', 'total_fee', 'paid_fee', 'pending_fee',
                      'fee_structure', 'primary_invoice')
INVOICE_LEDGER_FIELDS = ('invoice_no', 'student', 'fee_structure', 'invoice_date', 'due_date', 'subtotal',
                         'discount', 'total_amount', 'paid_amount', 'pending_amount', 'status',
                         'payment_method', 'payment_date', 'collected_by', 'collected_by_name', 'version')


class ReadOnlyInline(admin.TabularInline):
    extra = 0
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False


class FeeComponentInline(admin.TabularInline):
    model = FeeComponent
    extra = 0


@admin.register(FeeStructure)
class FeeStructureAdmin(admin.ModelAdmin):
    list_display = ('sr_no', 'name', 'institute_type', 'course_ref', 'total_amount', 'is_active')
    search_fields = ('sr_no', 'name', 'course_ref')
    list_filter = ('institute_type', 'is_active')
    readonly_fields = ('sr_no', 'total_amount', 'created_at', 'updated_at')
    inlines = [FeeComponentInline]

    def save_related(self, request, form, formsets, change):  # type: ignore[override]
        super().save_related(request, form, formsets, change)
        structure = form.instance
        structure.recalculate_total()
        structure.save(update_fields=['total_amount', 'updated_at'])


@admin.register(Student)
class StudentAdmin(admin.ModelAdmin):
    list_display = ('admission_no', 'sr_no', 'full_name', 'total_fee', 'paid_fee', 'pending_fee',
                    'primary_invoice', 'version')
    search_fields = ('admission_no', 'sr_no')
    readonly_fields = STUDENT_FEE_FIELDS + ('version', 'created_at', 'updated_at')

    def save_model(self, request, obj, form, change):  # type: ignore[override]
        if change:
            obj.version += 1
        super().save_model(request, obj, form, change)


class InvoiceItemInline(ReadOnlyInline):
    model = InvoiceItem
    fields = ('position', 'description', 'amount', 'quantity')
    readonly_fields = fields


class PaymentTransactionInline(ReadOnlyInline):
    model = PaymentTransaction
    # append-only ledger
    fields = ('transaction_no', 'amount', 'payment_method', 'payment_date', 'receipt_no',
              'collected_by_name', 'notes')
    readonly_fields = fields


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ('invoice_no', 'student', 'invoice_date', 'due_date', 'total_amount', 'paid_amount',
                    'pending_amount', 'status')
    search_fields = ('invoice_no', 'student__admission_no')
    list_filter = ('status', 'payment_method')
    readonly_fields = INVOICE_LEDGER_FIELDS + ('created_at', 'updated_at')
    inlines = [InvoiceItemInline, PaymentTransactionInline]

    def has_add_permission(self, request):
        return False

    def save_model(self, request, obj, form, change):  # type: ignore[override]
        obj.version += 1
        super().save_model(request, obj, form, change)


@admin.register(MonthlyPayment)
class MonthlyPaymentAdmin(admin.ModelAdmin):
    list_display = ('payment_no', 'student', 'month', 'year', 'amount', 'payment_method', 'payment_date')
    list_filter = ('year', 'month', 'payment_method')
    search_fields = ('payment_no', 'student__admission_no')
    readonly_fields = ('payment_no', 'student', 'invoice', 'transaction', 'month', 'year', 'amount',
                       'payment_method', 'payment_date', 'collected_by', 'created_at')

    def has_add_permission(self, request):
        return False


@admin.register(AdmissionLink)
class AdmissionLinkAdmin(admin.ModelAdmin):
    list_display = ('student', 'event', 'status', 'invoice', 'attempts', 'updated_at')
    list_filter = ('status', 'event')


@admin.register(FeeAuditLog)
class FeeAuditLogAdmin(admin.ModelAdmin):
    list_display = ('created_at', 'action', 'student', 'invoice_ref', 'actor')
    list_filter = ('action',)
    readonly_fields = ('student', 'invoice_ref', 'action', 'actor', 'payload', 'warnings', 'created_at')


@admin.register(UserActivityLog)
class UserActivityLogAdmin(admin.ModelAdmin):
    list_display = ('created_at', 'user', 'method', 'path', 'status_code')
    list_filter = ('method', 'status_code')


@admin.register(ErrorLog)
class ErrorLogAdmin(admin.ModelAdmin):
    list_display = ('created_at', 'user', 'method', 'path', 'message')
