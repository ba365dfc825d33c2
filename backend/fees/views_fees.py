"""Views for fee structures, the invoice ledger and the fee summary.

Endpoints:
- GET/POST /api/fees/structures/
- GET/POST /api/fees/invoices/ (?student_id=&status=)
- GET /api/fees/invoices/{id}/
- PUT /api/fees/invoices/{id}/pay/
- DELETE /api/fees/invoices/{id}/?confirm=true
- GET /api/fees/students/{id}/summary/
"""
from django.utils import timezone
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .domain_fees import FeeStructure, Invoice
from .exceptions import FeeEngineError
from .fee_summary import get_fee_summary
from .ledger_engine import create_invoice, delete_invoice, record_payment
from .serializers_fees import FeeStructureSerializer, InvoiceSerializer, PaymentTransactionSerializer

TRUTHY = ('1', 'true', 'yes', 'on')


class FeeEngineErrorMixin:
    """Render FeeEngineError as ``{"error", "code"}`` with its mapped status."""

    def handle_exception(self, exc):
        if isinstance(exc, FeeEngineError):
            return Response(exc.as_dict(), status=exc.status_code)
        return super().handle_exception(exc)


def warnings_payload(warnings):
    return [w.as_dict() for w in warnings]


def fee_info_payload(student):
    info = student.fee_aggregate().as_dict()
    info['version'] = student.version
    return info


def is_truthy(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or '').strip().lower() in TRUTHY


class FeeStructureViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, mixins.CreateModelMixin,
                          mixins.UpdateModelMixin, viewsets.GenericViewSet):
    serializer_class = FeeStructureSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        qs = FeeStructure.objects.prefetch_related('components').order_by('name', 'id')
        params = self.request.query_params
        if params.get('active') is not None:
            qs = qs.filter(is_active=is_truthy(params.get('active')))
        if params.get('course'):
            qs = qs.filter(course_ref=params.get('course'))
        return qs


class InvoiceViewSet(FeeEngineErrorMixin, mixins.ListModelMixin, mixins.RetrieveModelMixin,
                     viewsets.GenericViewSet):
    serializer_class = InvoiceSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        qs = Invoice.objects.prefetch_related('items', 'transactions').order_by('-created_at', '-invoice_date', '-id')
        params = self.request.query_params
        student_id = params.get('student_id') or params.get('studentId')
        if student_id:
            qs = qs.filter(student_id=student_id)
        if params.get('status'):
            qs = qs.filter(status=params.get('status'))
        return qs

    def get_serializer_context(self):
        context = super().get_serializer_context()
        context['now'] = timezone.localdate()
        return context

    def create(self, request, *args, **kwargs):
        data = request.data
        student_id = data.get('studentId', data.get('student_id'))
        if student_id in (None, ''):
            return Response({'error': 'studentId is required.', 'code': 'validation_error', 'field': 'studentId'},
                            status=status.HTTP_400_BAD_REQUEST)
        activate = data.get('activate')
        result = create_invoice(
            student_id,
            data.get('items') or [],
            data.get('discount'),
            request.user,
            due_date=data.get('dueDate'),
            initial_payment=data.get('paidAmount'),
            payment_method=data.get('paymentMethod') or 'cash',
            payment_date=data.get('paymentDate'),
            fee_structure_id=data.get('feeStructureId'),
            notes=data.get('notes') or '',
            activate=None if activate is None else is_truthy(activate),
            invoice_date=data.get('invoiceDate'),
            receipt_no=data.get('receiptNo') or '',
        )
        return Response({
            'invoice': self.get_serializer(result.invoice).data,
            'feeInfo': fee_info_payload(result.student),
            'warnings': warnings_payload(result.warnings),
        }, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['put'], url_path='pay')
    def pay(self, request, pk=None):
        data = request.data
        result = record_payment(
            pk,
            data.get('amount'),
            data.get('paymentMethod') or data.get('method') or 'cash',
            data.get('paymentDate') or data.get('date'),
            collected_by=request.user,
            receipt_no=data.get('receiptNo') or '',
            notes=data.get('notes') or '',
            expected_version=data.get('expectedVersion'),
        )
        return Response({
            'invoice': self.get_serializer(result.invoice).data,
            'transaction': PaymentTransactionSerializer(result.transaction).data,
            'feeInfo': fee_info_payload(result.student),
            'warnings': warnings_payload(result.warnings),
        })

    def destroy(self, request, *args, **kwargs):
        confirm = is_truthy(request.query_params.get('confirm')) or is_truthy(
            request.data.get('confirm') if hasattr(request.data, 'get') else None
        )
        result = delete_invoice(kwargs.get('pk'), confirm=confirm, actor=request.user)
        return Response({
            'deleted': True,
            'invoiceId': result.invoice_id,
            'invoiceNo': result.invoice_no,
            'feeInfo': fee_info_payload(result.student),
            'warnings': warnings_payload(result.warnings),
        })


class StudentFeeSummaryView(FeeEngineErrorMixin, APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, student_id):
        return Response(get_fee_summary(student_id))
