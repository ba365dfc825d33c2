"""API wiring tests for the fee endpoints.

Run with: python manage.py test fees.tests.test_api_fees -v 2
"""
from decimal import Decimal
from unittest import mock

from django.contrib.auth import get_user_model
from django.db import DatabaseError
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from ..domain_fees import FeeStructure, Invoice
from ..domain_logs import UserActivityLog
from ..domain_students import Student

User = get_user_model()


class FeeApiTests(APITestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="cashier", email="cashier@example.com", password="pass12345")

    def auth(self):
        resp = self.client.post(reverse('token_obtain_pair'), {"username": "cashier", "password": "pass12345"},
                                format='json')
        self.assertEqual(resp.status_code, status.HTTP_200_OK, resp.content)
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {resp.data['access']}")

    def admit(self, **fee_info):
        payload = {
            "personalInfo": {"fullName": "Zoya Khan"},
            "academicInfo": {"course": "Class 9"},
            "feeInfo": fee_info or {"admissionFee": "500", "monthlyFee": "1500"},
        }
        resp = self.client.post(reverse('student-list'), payload, format='json')
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED, resp.content)
        return resp.data

    def test_requires_authentication(self):
        resp = self.client.get(reverse('invoice-list'))
        self.assertIn(resp.status_code, (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN))

    def test_admit_pay_and_summarise(self):
        self.auth()
        data = self.admit()
        self.assertTrue(data["fees"]["linked"])
        student_id = data["student"]["id"]
        invoice_id = data["fees"]["invoiceId"]
        self.assertEqual(data["student"]["feeInfo"]["totalFee"], Decimal("2000.00"))

        pay = self.client.put(reverse('invoice-pay', args=[invoice_id]),
                              {"amount": "800", "paymentMethod": "cash"}, format='json')
        self.assertEqual(pay.status_code, status.HTTP_200_OK, pay.content)
        self.assertEqual(pay.data["invoice"]["status"], "partial")
        self.assertEqual(pay.data["invoice"]["pendingAmount"], "1200.00")
        self.assertEqual(pay.data["feeInfo"]["pendingFee"], Decimal("1200.00"))

        summary = self.client.get(reverse('student-fee-summary', args=[student_id]))
        self.assertEqual(summary.status_code, status.HTTP_200_OK)
        self.assertEqual(summary.data["summary"]["paymentPercentage"], 40)
        self.assertEqual(summary.data["paymentStatus"]["totalInvoices"], 1)
        self.assertEqual(summary.data["latestInvoice"]["id"], invoice_id)
        self.assertEqual(summary.data["studentName"], "Zoya Khan")
        self.assertEqual(summary.data["course"], "Class 9")

        self.assertTrue(UserActivityLog.objects.filter(method="PUT", status_code=200).exists())

    def test_engine_errors_are_rendered(self):
        self.auth()
        student_id = self.admit()["student"]["id"]
        invoice_id = Invoice.objects.get(student_id=student_id).pk

        resp = self.client.put(reverse('invoice-pay', args=[invoice_id]), {"amount": "0"}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.data["code"], "invalid_amount")
        self.assertIn("error", resp.data)

        resp = self.client.get(reverse('student-fee-summary', args=[999999]))
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(resp.data["code"], "not_found")

    def test_create_list_and_delete_invoice(self):
        self.auth()
        student = Student.objects.create(personal_info={"fullName": "Ishaan"})
        resp = self.client.post(reverse('invoice-list'), {
            "studentId": student.pk,
            "items": [{"description": "Lab Fee", "amount": "750", "quantity": 2}],
            "discount": "100",
            "paidAmount": "400",
            "dueDate": "2030-01-31",
        }, format='json')
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED, resp.content)
        invoice_id = resp.data["invoice"]["id"]
        self.assertEqual(resp.data["invoice"]["totalAmount"], "1400.00")
        self.assertEqual(len(resp.data["invoice"]["transactions"]), 1)

        listing = self.client.get(reverse('invoice-list'), {"student_id": student.pk, "status": "partial"})
        self.assertEqual([row["id"] for row in listing.data], [invoice_id])

        resp = self.client.delete(reverse('invoice-detail', args=[invoice_id]))
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.data["field"], "confirm")

        resp = self.client.delete(reverse('invoice-detail', args=[invoice_id]) + "?confirm=true")
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertTrue(resp.data["deleted"])
        self.assertEqual(resp.data["warnings"][0]["code"], "inconsistency")

    def test_admission_survives_link_failure(self):
        self.auth()
        with mock.patch("fees.admission_linking.create_invoice", side_effect=DatabaseError("boom")):
            data = self.admit()
        self.assertFalse(data["fees"]["linked"])
        self.assertEqual(data["warnings"][0]["code"], "linking_failure")
        student_id = data["student"]["id"]

        resp = self.client.post(reverse('link-fees', args=[student_id]),
                                {"admissionFee": "500", "monthlyFee": "1500"}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED, resp.content)
        self.assertTrue(resp.data["created"])

        again = self.client.post(reverse('link-fees', args=[student_id]),
                                 {"admissionFee": "500", "monthlyFee": "1500"}, format='json')
        self.assertEqual(again.status_code, status.HTTP_200_OK)
        self.assertEqual(again.data["invoiceId"], resp.data["invoiceId"])
        self.assertEqual(Invoice.objects.filter(student_id=student_id).count(), 1)

    def test_correct_error(self):
        self.auth()
        data = self.admit(admissionFee="2000", monthlyFee="8000")
        student_id = data["student"]["id"]
        version = Student.objects.get(pk=student_id).version

        resp = self.client.put(reverse('correct-error'), {
            "type": "fee", "studentId": student_id, "corrections": {"totalFee": 8000, "paidFee": 2000},
            "expectedVersion": version,
        }, format='json')
        self.assertEqual(resp.status_code, status.HTTP_200_OK, resp.content)
        self.assertEqual(resp.data["feeInfo"]["pendingFee"], Decimal("6000.00"))
        self.assertEqual(resp.data["warnings"][0]["code"], "inconsistency")
        self.assertEqual(Invoice.objects.get(student_id=student_id).total_amount, Decimal("10000.00"))

        stale = self.client.put(reverse('correct-error'), {
            "type": "fee", "studentId": student_id, "corrections": {"paidFee": 1}, "expectedVersion": version,
        }, format='json')
        self.assertEqual(stale.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(stale.data["code"], "version_conflict")

    def test_monthly_payments(self):
        self.auth()
        student_id = self.admit()["student"]["id"]
        payload = {"studentId": student_id, "month": 7, "year": 2024, "amount": "1500", "paymentMethod": "online"}
        resp = self.client.post(reverse('monthly-payments'), payload, format='json')
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED, resp.content)
        self.assertEqual(resp.data["payment"]["month"], 7)

        dup = self.client.post(reverse('monthly-payments'), payload, format='json')
        self.assertEqual(dup.status_code, status.HTTP_400_BAD_REQUEST)

        listing = self.client.get(reverse('monthly-payments'), {"student_id": student_id})
        self.assertEqual(len(listing.data), 1)

    def test_fee_structures(self):
        self.auth()
        resp = self.client.post(reverse('fee-structure-list'), {
            "name": "Class 9 Regular",
            "instituteType": "school",
            "components": [
                {"name": "Admission", "amount": "500", "frequency": "one_time"},
                {"name": "Tuition", "amount": "1500", "frequency": "monthly"},
            ],
        }, format='json')
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED, resp.content)
        self.assertEqual(resp.data["totalAmount"], "2000.00")
        self.assertEqual(resp.data["srNo"], "FEE-0001")
        self.assertEqual(FeeStructure.objects.get().components.count(), 2)

    def test_payment_history_and_dashboard(self):
        self.auth()
        data = self.admit()
        student_id = data["student"]["id"]
        invoice_id = data["fees"]["invoiceId"]
        self.client.put(reverse('invoice-pay', args=[invoice_id]), {"amount": "500"}, format='json')
        self.client.post(reverse('monthly-payments'), {"studentId": student_id, "month": 1, "year": 2024,
                                                       "amount": "1500"}, format='json')

        resp = self.client.get(reverse('payment-history', args=[student_id]))
        self.assertEqual(resp.status_code, status.HTTP_200_OK, resp.content)
        self.assertEqual(resp.data["student"]["id"], student_id)
        self.assertEqual([row["id"] for row in resp.data["invoices"]], [invoice_id])
        self.assertEqual(len(resp.data["monthlyPayments"]), 1)
        self.assertEqual(len(resp.data["transactions"]), 2)
        self.assertEqual(resp.data["transactions"][0]["invoiceNo"], resp.data["invoices"][0]["invoiceNo"])
        self.assertEqual(resp.data["summary"]["totalTransactions"], Decimal("2000.00"))
        self.assertEqual(resp.data["summary"]["pendingFee"], Decimal("1500.00"))

        missing = self.client.get(reverse('payment-history', args=[999999]))
        self.assertEqual(missing.status_code, status.HTTP_404_NOT_FOUND)

        dashboard = self.client.get(reverse('accountant-dashboard'))
        self.assertEqual(dashboard.status_code, status.HTTP_200_OK)
        self.assertEqual(dashboard.data["students"], 1)
        self.assertEqual(dashboard.data["todayAdmissions"], 1)
        self.assertEqual(dashboard.data["totalFeesCollected"], Decimal("2000.00"))
        self.assertEqual(dashboard.data["pendingFees"], Decimal("1500.00"))
        self.assertEqual(dashboard.data["thisMonthCollections"], Decimal("1500.00"))
        self.assertEqual(dashboard.data["studentsWithPendingFees"], 1)
