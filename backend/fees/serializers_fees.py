"""Serializers for fee structures, invoices, transactions and monthly payments.

Engine writes go through the service layer; these serializers shape reads
(camelCase) and create/update FeeStructure rows.
"""
from django.db import transaction
from rest_framework import serializers

from .domain_fees import FeeComponent, FeeStructure, Invoice, InvoiceItem, MonthlyPayment, PaymentTransaction
from .payment_status import classify
from .serial_numbers import FEE_STRUCTURE, generate_serial_number


class FeeComponentSerializer(serializers.ModelSerializer):
    class Meta:
        model = FeeComponent
        fields = ['id', 'name', 'amount', 'frequency']
        read_only_fields = ['id']

    def validate_amount(self, value):
        if value < 0:
            raise serializers.ValidationError("Amount must not be negative.")
        return value


class FeeStructureSerializer(serializers.ModelSerializer):
    """Fee structure with nested components; ``totalAmount`` is the component sum."""
    srNo = serializers.CharField(source='sr_no', read_only=True)
    instituteType = serializers.ChoiceField(source='institute_type', choices=FeeStructure.INSTITUTE_TYPE_CHOICES)
    courseRef = serializers.CharField(source='course_ref', required=False, allow_blank=True)
    totalAmount = serializers.DecimalField(source='total_amount', max_digits=12, decimal_places=2, read_only=True)
    isActive = serializers.BooleanField(source='is_active', required=False)
    components = FeeComponentSerializer(many=True, required=False)

    class Meta:
        model = FeeStructure
        fields = ['id', 'srNo', 'name', 'instituteType', 'courseRef', 'totalAmount', 'isActive',
                  'components', 'created_at', 'updated_at']
        read_only_fields = ['id', 'srNo', 'totalAmount', 'created_at', 'updated_at']

    def _write_components(self, structure, components):
        FeeComponent.objects.bulk_create([FeeComponent(structure=structure, **c) for c in components])
        structure.recalculate_total()
        structure.save(update_fields=['total_amount', 'updated_at'])

    @transaction.atomic
    def create(self, validated_data):
        components = validated_data.pop('components', [])
        structure = FeeStructure.objects.create(sr_no=generate_serial_number(FEE_STRUCTURE), **validated_data)
        self._write_components(structure, components)
        return structure

    @transaction.atomic
    def update(self, instance, validated_data):
        components = validated_data.pop('components', None)
        for attr, value in validated_data.items():
            setattr(instance, attr, value)
        instance.save()
        if components is not None:
            instance.components.all().delete()
            self._write_components(instance, components)
        return instance


class InvoiceItemSerializer(serializers.ModelSerializer):
    lineTotal = serializers.DecimalField(source='line_total', max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = InvoiceItem
        fields = ['id', 'description', 'amount', 'quantity', 'lineTotal']


class PaymentTransactionSerializer(serializers.ModelSerializer):
    transactionNo = serializers.CharField(source='transaction_no', read_only=True)
    invoiceId = serializers.IntegerField(source='invoice_id', read_only=True)
    invoiceNo = serializers.CharField(source='invoice.invoice_no', read_only=True, default=None)
    studentId = serializers.IntegerField(source='student_id', read_only=True)
    paymentMethod = serializers.CharField(source='payment_method', read_only=True)
    paymentDate = serializers.DateTimeField(source='payment_date', read_only=True)
    receiptNo = serializers.CharField(source='receipt_no', read_only=True)
    collectedByName = serializers.CharField(source='collected_by_name', read_only=True)

    class Meta:
        model = PaymentTransaction
        fields = ['id', 'transactionNo', 'invoiceId', 'invoiceNo', 'studentId', 'amount', 'paymentMethod',
                  'paymentDate', 'receiptNo', 'collectedByName', 'notes']
        read_only_fields = fields


class InvoiceSerializer(serializers.ModelSerializer):
    invoiceNo = serializers.CharField(source='invoice_no', read_only=True)
    studentId = serializers.IntegerField(source='student_id', read_only=True)
    feeStructureId = serializers.IntegerField(source='fee_structure_id', read_only=True)
    invoiceDate = serializers.DateField(source='invoice_date', read_only=True)
    dueDate = serializers.DateField(source='due_date', read_only=True)
    totalAmount = serializers.DecimalField(source='total_amount', max_digits=12, decimal_places=2, read_only=True)
    paidAmount = serializers.DecimalField(source='paid_amount', max_digits=12, decimal_places=2, read_only=True)
    pendingAmount = serializers.DecimalField(source='pending_amount', max_digits=12, decimal_places=2, read_only=True)
    paymentMethod = serializers.CharField(source='payment_method', read_only=True)
    paymentDate = serializers.DateTimeField(source='payment_date', read_only=True)
    collectedByName = serializers.CharField(source='collected_by_name', read_only=True)
    paymentStatus = serializers.SerializerMethodField()
    isOverdue = serializers.SerializerMethodField()
    items = InvoiceItemSerializer(many=True, read_only=True)
    transactions = serializers.SerializerMethodField()

    class Meta:
        model = Invoice
        fields = ['id', 'invoiceNo', 'studentId', 'feeStructureId', 'invoiceDate', 'dueDate', 'subtotal',
                  'discount', 'totalAmount', 'paidAmount', 'pendingAmount', 'status', 'paymentStatus',
                  'isOverdue', 'paymentMethod', 'paymentDate', 'collectedByName', 'notes', 'version',
                  'items', 'transactions', 'created_at']
        read_only_fields = fields

    def _classification(self, obj):
        now = self.context.get('now')
        return classify(obj, now)

    def get_paymentStatus(self, obj):
        return self._classification(obj).timeliness

    def get_isOverdue(self, obj):
        return self._classification(obj).is_overdue

    def get_transactions(self, obj):
        rows = sorted(obj.transactions.all(), key=lambda t: (t.payment_date, t.id), reverse=True)
        return PaymentTransactionSerializer(rows, many=True).data


class MonthlyPaymentSerializer(serializers.ModelSerializer):
    paymentNo = serializers.CharField(source='payment_no', read_only=True)
    studentId = serializers.IntegerField(source='student_id', read_only=True)
    studentName = serializers.CharField(source='student.full_name', read_only=True)
    invoiceId = serializers.IntegerField(source='invoice_id', read_only=True)
    transactionId = serializers.IntegerField(source='transaction_id', read_only=True)
    paymentMethod = serializers.CharField(source='payment_method', read_only=True)
    paymentDate = serializers.DateTimeField(source='payment_date', read_only=True)
    receiptNo = serializers.CharField(source='receipt_no', read_only=True)

    class Meta:
        model = MonthlyPayment
        fields = ['id', 'paymentNo', 'studentId', 'studentName', 'invoiceId', 'transactionId', 'month',
                  'year', 'amount', 'paymentMethod', 'paymentDate', 'receiptNo', 'notes']
        read_only_fields = fields
