from decimal import Decimal

from django.test import SimpleTestCase

from ..exceptions import ValidationError
from ..fee_math import (
    aggregate_from_totals,
    compute_admission_aggregate,
    initial_pending_default,
    invoice_totals,
    line_subtotal,
    parse_amount,
    payment_percentage,
    recompute_pending,
)


class ParseAmountTests(SimpleTestCase):
    def test_accepts_strings_ints_and_floats(self):
        self.assertEqual(parse_amount("1500"), Decimal("1500.00"))
        self.assertEqual(parse_amount(500), Decimal("500.00"))
        self.assertEqual(parse_amount(0.1), Decimal("0.10"))
        self.assertEqual(parse_amount(" 12.345 "), Decimal("12.35"))

    def test_rejects_garbage(self):
        for bad in ("abc", "NaN", "Infinity", True, [1]):
            with self.subTest(value=bad):
                with self.assertRaises(ValidationError):
                    parse_amount(bad, "totalFee")

    def test_rejects_negative_unless_allowed(self):
        with self.assertRaises(ValidationError) as ctx:
            parse_amount("-5", "paidFee")
        self.assertEqual(ctx.exception.field, "paidFee")
        self.assertEqual(parse_amount("-5", allow_negative=True), Decimal("-5.00"))

    def test_missing_values(self):
        self.assertIsNone(parse_amount(None, allow_none=True))
        self.assertIsNone(parse_amount("  ", allow_none=True))
        with self.assertRaises(ValidationError):
            parse_amount(None)


class AggregateTests(SimpleTestCase):
    def test_admission_aggregate_sums_fee_inputs(self):
        agg = compute_admission_aggregate("500", "1500", "300")
        self.assertEqual(agg.total_fee, Decimal("2000.00"))
        self.assertEqual(agg.pending_fee, Decimal("1700.00"))
        self.assertFalse(agg.is_overpaid)

    def test_blank_fee_inputs_count_as_zero(self):
        agg = compute_admission_aggregate(None, "", None)
        self.assertEqual(agg.total_fee, Decimal("0.00"))
        self.assertEqual(agg.paid_fee, Decimal("0.00"))

    def test_overpayment_is_not_clamped(self):
        agg = aggregate_from_totals("1000", "1200")
        self.assertEqual(agg.pending_fee, Decimal("-200.00"))
        self.assertEqual(agg.credit_balance, Decimal("200.00"))
        self.assertTrue(agg.is_overpaid)
        self.assertEqual(agg.as_dict()["creditBalance"], Decimal("200.00"))

    def test_recompute_pending(self):
        self.assertEqual(recompute_pending(Decimal("8000"), Decimal("2000")), Decimal("6000.00"))

    def test_initial_pending_default_clamps_only_the_form_default(self):
        self.assertEqual(initial_pending_default(Decimal("2000"), None), Decimal("2000"))
        self.assertEqual(initial_pending_default(Decimal("2000"), Decimal("2500")), Decimal("0.00"))


class InvoiceTotalsTests(SimpleTestCase):
    def test_subtotal_uses_quantity(self):
        items = [{"amount": "500", "quantity": 1}, {"amount": "250", "quantity": 2}]
        self.assertEqual(line_subtotal(items), Decimal("1000.00"))

    def test_totals_with_discount_and_paid(self):
        subtotal, total, pending = invoice_totals([{"amount": "2000"}], "200", "800")
        self.assertEqual((subtotal, total, pending), (Decimal("2000.00"), Decimal("1800.00"), Decimal("1000.00")))

    def test_discount_larger_than_subtotal_is_rejected(self):
        with self.assertRaises(ValidationError):
            invoice_totals([{"amount": "100"}], "150")


def test_payment_percentage_zero_total():
    assert payment_percentage(Decimal("0"), Decimal("0")) == 0
    assert payment_percentage(Decimal("500"), Decimal("0")) == 0


def test_payment_percentage_rounds_half_up():
    assert payment_percentage(Decimal("800"), Decimal("2000")) == 40
    assert payment_percentage(Decimal("1"), Decimal("8")) == 13
    assert payment_percentage(Decimal("2000"), Decimal("2000")) == 100
