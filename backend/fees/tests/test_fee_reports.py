from datetime import date, datetime, timezone
from decimal import Decimal
from types import SimpleNamespace

from django.contrib.auth import get_user_model
from django.test import SimpleTestCase, TestCase

from ..domain_students import Student
from ..exceptions import NotFoundError
from ..fee_reports import (
    compute_dashboard_from_iterables, compute_payment_history_totals, get_dashboard, get_payment_history,
)
from ..ledger_engine import create_invoice, record_payment
from ..monthly_payments import record_monthly_payment

User = get_user_model()


class DashboardFiguresTests(SimpleTestCase):
    today = date(2024, 3, 15)

    def test_figures(self):
        students = [
            SimpleNamespace(total_fee=Decimal("1000"), paid_fee=Decimal("400"), admitted_by_id=7,
                            created_at=datetime(2024, 3, 15, 9, 0, tzinfo=timezone.utc)),
            # credit on one student does not offset another's balance
            SimpleNamespace(total_fee=Decimal("500"), paid_fee=Decimal("700"), admitted_by_id=7,
                            created_at=datetime(2024, 3, 14, 9, 0, tzinfo=timezone.utc)),
            SimpleNamespace(total_fee=Decimal("900"), paid_fee=Decimal("0"), academic_info={"status": "left"}),
            {"totalFee": "300", "paidFee": "300", "admittedById": 8, "createdAt": "2024-03-15T08:00:00Z"},
        ]
        invoices = [{"paidAmount": "400"}, SimpleNamespace(paid_amount=Decimal("700")), {"paid_amount": 300}]
        monthly = [
            SimpleNamespace(amount=Decimal("1500"), payment_date=date(2024, 3, 5)),
            SimpleNamespace(amount=Decimal("1000"), payment_date=datetime(2024, 2, 28, 12, 0)),
            {"amount": "500", "paymentDate": "2024-03-20T10:00:00Z"},
        ]
        result = compute_dashboard_from_iterables(students=students, invoices=invoices, monthly_payments=monthly,
                                                  today=self.today, admitted_by_id=7)
        self.assertEqual(result, {
            'students': 3,
            'todayAdmissions': 1,
            'totalFeesCollected': Decimal("1400.00"),
            'pendingFees': Decimal("600.00"),
            'thisMonthCollections': Decimal("2000.00"),
            'studentsWithPendingFees': 1,
        })

    def test_empty(self):
        result = compute_dashboard_from_iterables(students=[], invoices=[], monthly_payments=[], today=self.today)
        self.assertEqual(result["pendingFees"], Decimal("0"))
        self.assertEqual(result["todayAdmissions"], 0)


def test_history_totals_keep_credit():
    student = SimpleNamespace(total_fee=Decimal("2000"), paid_fee=Decimal("2500"))
    totals = compute_payment_history_totals(
        student=student,
        monthly_payments=[{"amount": "1500"}, SimpleNamespace(amount=Decimal("1000"))],
        transactions=[{"amount": "1500"}, {"amount": "1000"}, {"amount": "0"}],
    )
    assert totals["pendingFee"] == Decimal("-500.00")
    assert totals["totalMonthlyPayments"] == Decimal("2500.00")
    assert totals["totalTransactions"] == Decimal("2500.00")


class FeeReportQueryTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="accounts", password="pass12345")
        self.first = Student.objects.create(personal_info={"fullName": "Kiran"}, admitted_by=self.user)
        invoice = create_invoice(self.first.pk, [{"description": "Tuition", "amount": "1000"}]).invoice
        record_payment(invoice.pk, "400", "cash", "2024-03-02")

        self.second = Student.objects.create(personal_info={"fullName": "Noor"})
        record_monthly_payment(self.second.pk, 2, 2024, "1500", payment_date="2024-02-10")
        record_monthly_payment(self.second.pk, 3, 2024, "500", payment_date="2024-03-05")

        Student.objects.create(personal_info={"fullName": "Dev"}, academic_info={"status": "left"},
                               total_fee=Decimal("900"), pending_fee=Decimal("900"))

    def test_dashboard(self):
        result = get_dashboard(now=date(2024, 3, 20))
        self.assertEqual(result["students"], 2)
        self.assertEqual(result["totalFeesCollected"], Decimal("2400.00"))
        self.assertEqual(result["pendingFees"], Decimal("600.00"))
        self.assertEqual(result["thisMonthCollections"], Decimal("500.00"))
        self.assertEqual(result["studentsWithPendingFees"], 1)

    def test_today_admissions_count_the_requesting_user(self):
        self.assertEqual(get_dashboard(self.user)["todayAdmissions"], 1)
        self.assertEqual(get_dashboard()["todayAdmissions"], 0)

    def test_payment_history(self):
        history = get_payment_history(self.second.pk)
        self.assertEqual(history["student"].pk, self.second.pk)
        self.assertEqual(len(history["invoices"]), 1)
        self.assertEqual([(p.month, p.year) for p in history["monthlyPayments"]], [(3, 2024), (2, 2024)])
        self.assertEqual([t.amount for t in history["transactions"]], [Decimal("500.00"), Decimal("1500.00")])
        self.assertEqual(history["summary"]["totalMonthlyPayments"], Decimal("2000.00"))
        self.assertEqual(history["summary"]["totalTransactions"], Decimal("2000.00"))
        self.assertEqual(history["summary"]["pendingFee"], Decimal("0.00"))

    def test_payment_history_unknown_student(self):
        with self.assertRaises(NotFoundError):
            get_payment_history(999999)
