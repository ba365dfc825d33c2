"""Accountant tools: fee linking, error correction, monthly payments, fee reports."""
from django.utils import timezone
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .admission_linking import link_admission_to_fees
from .corrections import apply_correction
from .fee_reports import get_dashboard, get_payment_history
from .monthly_payments import list_monthly_payments, record_monthly_payment
from .serializers_fees import InvoiceSerializer, MonthlyPaymentSerializer, PaymentTransactionSerializer
from .serializers_students import StudentSerializer
from .views_fees import FeeEngineErrorMixin, fee_info_payload, warnings_payload


class LinkAdmissionFeesView(FeeEngineErrorMixin, APIView):
    """POST /api/accountant/admissions/{id}/link-fees/"""
    permission_classes = [IsAuthenticated]

    def post(self, request, student_id):
        result = link_admission_to_fees(student_id, request.data, collected_by=request.user)
        payload = result.as_dict()
        payload['warnings'] = warnings_payload([result.warning] if result.warning else [])
        code = status.HTTP_201_CREATED if result.created else status.HTTP_200_OK
        return Response(payload, status=code)


class CorrectErrorView(FeeEngineErrorMixin, APIView):
    """PUT /api/accountant/correct-error/ with ``{type, studentId, corrections, expectedVersion?}``."""
    permission_classes = [IsAuthenticated]

    def put(self, request):
        result = apply_correction(request.data, actor=request.user)
        return Response({
            'student': StudentSerializer(result.student).data,
            'feeInfo': fee_info_payload(result.student),
            'warnings': warnings_payload(result.warnings),
        })


class MonthlyPaymentView(FeeEngineErrorMixin, APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        params = request.query_params
        qs = list_monthly_payments(params.get('student_id') or params.get('studentId'), year=params.get('year'))
        return Response(MonthlyPaymentSerializer(qs, many=True).data)

    def post(self, request):
        data = request.data
        result = record_monthly_payment(
            data.get('studentId', data.get('student_id')),
            data.get('month'),
            data.get('year'),
            data.get('amount'),
            data.get('paymentMethod') or 'cash',
            payment_date=data.get('paymentDate'),
            invoice_id=data.get('invoiceId'),
            receipt_no=data.get('receiptNo') or '',
            notes=data.get('notes') or '',
            collected_by=request.user,
        )
        return Response({
            'payment': MonthlyPaymentSerializer(result.payment).data,
            'invoiceId': result.invoice.pk,
            'invoiceCreated': result.invoice_created,
            'warnings': warnings_payload(result.warnings),
        }, status=status.HTTP_201_CREATED)


class AccountantDashboardView(FeeEngineErrorMixin, APIView):
    """GET /api/accountant/dashboard/"""
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return Response(get_dashboard(request.user))


class PaymentHistoryView(FeeEngineErrorMixin, APIView):
    """GET /api/accountant/students/{id}/payment-history/"""
    permission_classes = [IsAuthenticated]

    def get(self, request, student_id):
        history = get_payment_history(student_id)
        context = {'request': request, 'now': timezone.localdate()}
        return Response({
            'student': StudentSerializer(history['student']).data,
            'invoices': InvoiceSerializer(history['invoices'], many=True, context=context).data,
            'monthlyPayments': MonthlyPaymentSerializer(history['monthlyPayments'], many=True).data,
            'transactions': PaymentTransactionSerializer(history['transactions'], many=True).data,
            'summary': history['summary'],
        })
