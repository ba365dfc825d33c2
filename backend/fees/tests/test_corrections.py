from decimal import Decimal

from django.test import TestCase

from ..corrections import apply_correction, correct_admission, correct_fee
from ..domain_fees import FeeStructure, Invoice
from ..domain_logs import FeeAuditLog
from ..domain_students import Student
from ..exceptions import ConcurrencyConflict, NotFoundError, ValidationError
from ..ledger_engine import create_invoice, record_payment


class FeeCorrectionTests(TestCase):
    def setUp(self):
        self.student = Student.objects.create(personal_info={"fullName": "Kiran"})
        self.invoice = create_invoice(self.student.pk, [{"description": "Annual Fee", "amount": "10000"}]).invoice
        record_payment(self.invoice.pk, "2000")
        self.student.refresh_from_db()

    def test_correction_recomputes_pending_and_leaves_invoice(self):
        self.assertEqual((self.student.total_fee, self.student.paid_fee), (Decimal("10000.00"), Decimal("2000.00")))

        result = correct_fee(self.student.pk, {"totalFee": 8000, "paidFee": 2000})
        self.assertEqual(result.student.pending_fee, Decimal("6000.00"))

        invoice = Invoice.objects.get(pk=self.invoice.pk)
        self.assertEqual(invoice.total_amount, Decimal("10000.00"))
        self.assertEqual(invoice.paid_amount, Decimal("2000.00"))
        self.assertEqual([w.code for w in result.warnings], ["inconsistency"])

        log = FeeAuditLog.objects.get(action=FeeAuditLog.CORRECT_FEE)
        self.assertEqual(log.warnings[0]["code"], "inconsistency")
        self.assertEqual(log.payload["after"]["pendingFee"], "6000.00")

    def test_overpaid_correction_is_flagged_not_clamped(self):
        result = correct_fee(self.student.pk, {"totalFee": "1000", "paidFee": "1500"})
        self.assertEqual(result.student.pending_fee, Decimal("-500.00"))
        self.assertIn("overpayment", [w.code for w in result.warnings])

    def test_partial_correction_keeps_other_fields(self):
        result = correct_fee(self.student.pk, {"paidFee": "2500"})
        self.assertEqual(result.student.total_fee, Decimal("10000.00"))
        self.assertEqual(result.student.pending_fee, Decimal("7500.00"))

    def test_fee_structure_can_be_reassigned(self):
        structure = FeeStructure.objects.create(name="Science", institute_type="college")
        result = correct_fee(self.student.pk, {"feeStructureId": structure.pk})
        self.assertEqual(result.student.fee_structure_id, structure.pk)

    def test_invalid_amounts(self):
        for bad in ({"totalFee": "abc"}, {"paidFee": -1}, {"totalFee": "Infinity"}, {}):
            with self.subTest(corrections=bad):
                with self.assertRaises(ValidationError):
                    correct_fee(self.student.pk, bad)

    def test_unknown_student(self):
        with self.assertRaises(NotFoundError):
            correct_fee(123456, {"totalFee": "1"})

    def test_stale_version_conflicts(self):
        version = self.student.version
        correct_fee(self.student.pk, {"totalFee": "9000"}, expected_version=version)
        with self.assertRaises(ConcurrencyConflict):
            correct_fee(self.student.pk, {"totalFee": "8000"}, expected_version=version)
        self.student.refresh_from_db()
        self.assertEqual(self.student.total_fee, Decimal("9000.00"))


class AdmissionCorrectionTests(TestCase):
    def setUp(self):
        self.student = Student.objects.create(
            personal_info={"fullName": "Kiran", "dob": "2011-02-03"},
            contact_info={"phone": "111"},
        )

    def test_sections_are_shallow_merged(self):
        result = correct_admission(self.student.pk, {"personalInfo": {"fullName": "Kiran Patel"},
                                                     "contactInfo": {"email": "k@example.com"}})
        student = Student.objects.get(pk=self.student.pk)
        self.assertEqual(student.personal_info, {"fullName": "Kiran Patel", "dob": "2011-02-03"})
        self.assertEqual(student.contact_info, {"phone": "111", "email": "k@example.com"})
        self.assertEqual(sorted(result.changed), ["contact_info", "personal_info"])
        self.assertEqual(student.version, 2)

    def test_section_must_be_an_object(self):
        with self.assertRaises(ValidationError):
            correct_admission(self.student.pk, {"personalInfo": "Kiran"})

    def test_nothing_to_correct(self):
        with self.assertRaises(ValidationError):
            correct_admission(self.student.pk, {"unknown": {}})


class ApplyCorrectionTests(TestCase):
    def setUp(self):
        self.student = Student.objects.create(personal_info={"fullName": "Dev"}, total_fee=Decimal("100"))

    def test_dispatches_by_type(self):
        result = apply_correction({"type": "fee", "studentId": self.student.pk, "corrections": {"paidFee": "40"}})
        self.assertEqual(result.student.pending_fee, Decimal("60.00"))
        result = apply_correction({"type": "admission", "student_id": self.student.pk,
                                   "corrections": {"academicInfo": {"course": "BSc"}}})
        self.assertEqual(result.student.academic_info, {"course": "BSc"})

    def test_unknown_type_and_missing_fields(self):
        with self.assertRaises(ValidationError):
            apply_correction({"type": "refund", "studentId": self.student.pk, "corrections": {}})
        with self.assertRaises(ValidationError):
            apply_correction({"type": "fee", "corrections": {"paidFee": "1"}})
        with self.assertRaises(ValidationError):
            apply_correction({"type": "fee", "studentId": self.student.pk})
