"""
File: backend/fees/urls.py
API routing configuration.
"""
from django.urls import include, path
from rest_framework.routers import DefaultRouter
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from .views_accountant import (
    AccountantDashboardView, CorrectErrorView, LinkAdmissionFeesView, MonthlyPaymentView, PaymentHistoryView,
)
from .views_fees import FeeStructureViewSet, InvoiceViewSet, StudentFeeSummaryView
from .views_students import StudentViewSet

router = DefaultRouter()
router.register(r'fees/structures', FeeStructureViewSet, basename='fee-structure')
router.register(r'fees/invoices', InvoiceViewSet, basename='invoice')
router.register(r'students', StudentViewSet, basename='student')

urlpatterns = [
    path('token/', TokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),

    # --- FEE SUMMARY ---
    path('fees/students/<int:student_id>/summary/', StudentFeeSummaryView.as_view(), name='student-fee-summary'),

    # --- ACCOUNTANT ---
    path('accountant/dashboard/', AccountantDashboardView.as_view(), name='accountant-dashboard'),
    path('accountant/admissions/<int:student_id>/link-fees/', LinkAdmissionFeesView.as_view(), name='link-fees'),
    path('accountant/correct-error/', CorrectErrorView.as_view(), name='correct-error'),
    path('accountant/monthly-payments/', MonthlyPaymentView.as_view(), name='monthly-payments'),
    path('accountant/students/<int:student_id>/payment-history/', PaymentHistoryView.as_view(),
         name='payment-history'),

    path('', include(router.urls)),
]
