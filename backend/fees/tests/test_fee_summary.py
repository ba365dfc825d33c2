from datetime import date, datetime, timezone
from decimal import Decimal
from types import SimpleNamespace

from django.test import SimpleTestCase

from ..fee_summary import compute_fee_summary_from_iterables, order_invoices, select_active_invoice


def _ts(day, hour=9):
    return datetime(2024, 1, day, hour, 0, tzinfo=timezone.utc)


class FeeSummaryProjectionTests(SimpleTestCase):
    now = date(2024, 3, 1)

    def _student(self, **kw):
        base = dict(id=7, total_fee=Decimal("2000"), paid_fee=Decimal("800"), admission_fee=Decimal("500"),
                    monthly_fee=Decimal("1500"), primary_invoice_id=None)
        base.update(kw)
        return SimpleNamespace(**base)

    def _invoice(self, inv_id, **kw):
        base = dict(
            id=inv_id,
            invoice_no=f"INV-{inv_id:04d}",
            invoice_date=date(2024, 1, 1),
            due_date=None,
            payment_date=None,
            subtotal=Decimal("2000"),
            discount=Decimal("0"),
            total_amount=Decimal("2000"),
            paid_amount=Decimal("0"),
            payment_method="cash",
            collected_by_name="",
            created_at=_ts(1),
            items=[SimpleNamespace(description="Admission Fee", amount=Decimal("500"), quantity=1),
                   SimpleNamespace(description="Monthly Fee", amount=Decimal("1500"), quantity=1)],
        )
        base.update(kw)
        return SimpleNamespace(**base)

    def _txn(self, txn_id, invoice_id, amount, day):
        return SimpleNamespace(id=txn_id, invoice_id=invoice_id, transaction_no=f"TXN-{txn_id:04d}",
                               amount=Decimal(amount), payment_method="cash", payment_date=_ts(day),
                               receipt_no="", collected_by_name="", notes="", created_at=_ts(day))

    def test_partial_invoice_summary(self):
        inv = self._invoice(1, paid_amount=Decimal("800"), payment_date=_ts(5))
        txns = [self._txn(1, 1, "300", 3), self._txn(2, 1, "500", 5)]
        out = compute_fee_summary_from_iterables(student=self._student(), invoices=[inv], transactions=txns,
                                                 now=self.now)

        summary = out["summary"]
        self.assertEqual(summary["totalFeeAmount"], Decimal("2000.00"))
        self.assertEqual(summary["totalPaidAmount"], Decimal("800.00"))
        self.assertEqual(summary["totalPendingAmount"], Decimal("1200.00"))
        self.assertEqual(summary["paymentPercentage"], 40)
        self.assertEqual(summary["overallStatus"], "pending")

        row = out["invoices"][0]
        self.assertEqual(row["status"], "partial")
        self.assertEqual(row["paymentStatus"], "pending")
        self.assertTrue(row["isActive"])
        self.assertEqual([t["transactionNo"] for t in row["transactions"]], ["TXN-0002", "TXN-0001"])
        self.assertEqual(out["latestInvoice"]["id"], 1)
        self.assertEqual(out["confirmation"]["paymentCount"], 2)
        self.assertEqual(out["confirmation"]["lastPaymentDate"], _ts(5))
        self.assertEqual(out["warnings"], [])

    def test_counts_use_the_classifier(self):
        on_time = self._invoice(1, paid_amount=Decimal("2000"), due_date=date(2024, 1, 10), payment_date=_ts(5))
        late = self._invoice(2, paid_amount=Decimal("2000"), due_date=date(2024, 1, 10), payment_date=_ts(15),
                             created_at=_ts(2))
        overdue = self._invoice(3, paid_amount=Decimal("400"), due_date=date(2024, 2, 1), created_at=_ts(3))
        pending = self._invoice(4, due_date=date(2024, 4, 1), created_at=_ts(4))
        out = compute_fee_summary_from_iterables(
            student=self._student(total_fee=Decimal("2000"), paid_fee=Decimal("0")),
            invoices=[on_time, late, overdue, pending], transactions=[], now=self.now,
        )
        status = out["paymentStatus"]
        self.assertEqual(status["paidOnTime"], 1)
        self.assertEqual(status["paidLate"], 1)
        self.assertEqual(status["overdue"], 2)
        self.assertEqual(status["pending"], 1)
        self.assertEqual(status["totalInvoices"], 4)
        self.assertEqual(out["summary"]["totalOverdueAmount"], Decimal("1600.00"))
        self.assertEqual(out["summary"]["overallStatus"], "overdue")

    def test_zero_total_has_zero_percentage(self):
        student = self._student(total_fee=Decimal("0"), paid_fee=Decimal("0"),
                                admission_fee=Decimal("0"), monthly_fee=Decimal("0"))
        out = compute_fee_summary_from_iterables(student=student, invoices=[], transactions=[], now=self.now)
        self.assertEqual(out["summary"]["paymentPercentage"], 0)
        self.assertIsNone(out["latestInvoice"])
        self.assertEqual(out["summary"]["overallStatus"], "complete")

    def test_no_invoices_falls_back_to_aggregate(self):
        out = compute_fee_summary_from_iterables(student=self._student(), invoices=[], transactions=[], now=self.now)
        self.assertEqual(out["summary"]["totalFeeAmount"], Decimal("2000.00"))
        self.assertEqual(out["summary"]["totalPendingAmount"], Decimal("1200.00"))

    def test_aggregate_pending_is_recomputed_and_divergence_reported(self):
        student = self._student(total_fee=Decimal("8000"), paid_fee=Decimal("2000"))
        student.pending_fee = Decimal("123")  # stale, must be ignored
        inv = self._invoice(1, total_amount=Decimal("10000"), subtotal=Decimal("10000"), paid_amount=Decimal("2000"))
        out = compute_fee_summary_from_iterables(student=student, invoices=[inv], transactions=[], now=self.now)
        self.assertEqual(out["aggregate"]["pendingFee"], Decimal("6000.00"))
        self.assertEqual([w["code"] for w in out["warnings"]], ["inconsistency"])

    def test_overpaid_aggregate_reports_credit(self):
        student = self._student(total_fee=Decimal("1000"), paid_fee=Decimal("1200"))
        out = compute_fee_summary_from_iterables(student=student, invoices=[], transactions=[], now=self.now)
        self.assertEqual(out["aggregate"]["creditBalance"], Decimal("200.00"))
        self.assertIn("overpayment", [w["code"] for w in out["warnings"]])


class ActiveInvoiceSelectionTests(SimpleTestCase):
    def test_newest_created_wins_then_invoice_date(self):
        a = SimpleNamespace(id=1, created_at=_ts(1), invoice_date=date(2024, 1, 20))
        b = SimpleNamespace(id=2, created_at=_ts(2), invoice_date=date(2024, 1, 1))
        c = SimpleNamespace(id=3, created_at=None, invoice_date=date(2024, 2, 1))
        self.assertEqual([i.id for i in order_invoices([a, c, b])], [2, 1, 3])
        self.assertEqual(select_active_invoice([a, b, c]).id, 2)

    def test_explicit_primary_overrides_recency(self):
        a = SimpleNamespace(id=1, created_at=_ts(1), invoice_date=date(2024, 1, 1))
        b = SimpleNamespace(id=2, created_at=_ts(2), invoice_date=date(2024, 1, 1))
        self.assertEqual(select_active_invoice([a, b], primary_invoice_id=1).id, 1)

    def test_empty(self):
        self.assertIsNone(select_active_invoice([]))
