from decimal import Decimal
from io import StringIO

from django.core.management import call_command
from django.test import TestCase

from ..corrections import correct_fee
from ..domain_fees import Invoice
from ..domain_logs import FeeAuditLog
from ..domain_students import Student
from ..ledger_engine import create_invoice, record_payment
from ..reconciliation import check_student, reconcile_all, reconcile_student


class ReconciliationTests(TestCase):
    def setUp(self):
        self.student = Student.objects.create(personal_info={"fullName": "Tara"})
        self.invoice = create_invoice(self.student.pk, [{"description": "Annual Fee", "amount": "10000"}]).invoice
        record_payment(self.invoice.pk, "2000")
        self.student.refresh_from_db()

    def test_consistent_student_has_no_findings(self):
        self.assertEqual(check_student(self.student), [])

    def test_corrected_aggregate_is_reported_then_fixed(self):
        correct_fee(self.student.pk, {"totalFee": "8000"})
        findings = reconcile_student(self.student.pk)
        self.assertEqual([f.code for f in findings], ["inconsistency"])

        reconcile_student(self.student.pk, fix=True)
        self.student.refresh_from_db()
        self.assertEqual(self.student.total_fee, Decimal("10000.00"))
        self.assertEqual(self.student.pending_fee, Decimal("8000.00"))
        self.assertTrue(FeeAuditLog.objects.filter(action=FeeAuditLog.RECONCILE).exists())
        self.assertEqual(check_student(self.student), [])

    def test_transaction_drift_is_reported(self):
        Invoice.objects.filter(pk=self.invoice.pk).update(paid_amount=Decimal("2500"), pending_amount=Decimal("7500"))
        messages = [f.message for f in check_student(Student.objects.get(pk=self.student.pk))]
        self.assertTrue(any("transactions sum to 2000.00" in m for m in messages))

    def test_report_counts(self):
        other = Student.objects.create(personal_info={"fullName": "Omar"}, paid_fee=Decimal("300"),
                                       total_fee=Decimal("1000"), pending_fee=Decimal("700"))
        report = reconcile_all()
        self.assertEqual(report.checked, 2)
        self.assertEqual(report.as_dict()["inconsistent"], 1)
        self.assertEqual(report.findings[0].student_id, other.pk)


class ReconcileCommandTests(TestCase):
    def test_command_output(self):
        student = Student.objects.create(personal_info={"fullName": "Lee"})
        invoice = create_invoice(student.pk, [{"description": "Fee", "amount": "1000"}]).invoice
        Student.objects.filter(pk=student.pk).update(total_fee=Decimal("1"))
        out = StringIO()
        call_command("reconcile_fees", stdout=out)
        self.assertIn(f"student {student.pk}", out.getvalue())
        self.assertIn("Checked 1 students, 2 findings", out.getvalue())

        out = StringIO()
        call_command("reconcile_fees", "--fix", stdout=out)
        self.assertIn("1 resynced", out.getvalue())
        student.refresh_from_db()
        self.assertEqual(student.total_fee, invoice.total_amount)
