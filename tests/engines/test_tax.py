"""
Tests for the GST tax engine.

Covers:
- Intra-jurisdiction CGST/SGST split
- Cross-jurisdiction IGST
- Export and zero-rated lines
- Step-wise rounding (odd raw tax)
- Line discounts
- Input validation
"""

from decimal import Decimal

import pytest

from books_engines.tax import TaxCalculator, TaxSplit
from books_kernel.domain.dtos import LineInput
from books_kernel.domain.jurisdiction import Jurisdiction
from books_kernel.exceptions import ValidationError

HOME = "Maharashtra"


@pytest.fixture
def calculator():
    return TaxCalculator(Jurisdiction(HOME))


def _tax(calculator, quantity, rate, tax_rate, place_of_supply=HOME, is_export=False, **kwargs):
    return calculator.compute_line_tax(
        quantity=Decimal(quantity),
        rate=Decimal(rate),
        tax_rate=Decimal(tax_rate),
        place_of_supply=place_of_supply,
        is_export=is_export,
        **kwargs,
    )


class TestIntraJurisdiction:
    """Place of supply equals the home jurisdiction."""

    def test_split_into_cgst_and_sgst(self, calculator):
        result = _tax(calculator, "500", "250", "5")

        assert result.amount == Decimal("125000.00")
        assert result.igst == Decimal("0")
        assert result.cgst == Decimal("3125.00")
        assert result.sgst == Decimal("3125.00")
        assert result.total_tax == Decimal("6250.00")
        assert result.split is TaxSplit.INTRA

    def test_name_comparison_ignores_case_and_whitespace(self, calculator):
        result = _tax(calculator, "1", "1000", "18", place_of_supply="  maharashtra ")

        assert result.cgst == result.sgst == Decimal("90.00")
        assert result.igst == Decimal("0")

    def test_party_gstin_resolves_missing_place_of_supply(self, calculator):
        result = _tax(
            calculator, "1", "1000", "18",
            place_of_supply=None, party_gstin="29ABCDE1234F1Z5",
        )

        assert result.split is TaxSplit.CROSS
        assert result.igst == Decimal("180.00")

    def test_unresolvable_place_of_supply_is_intra(self, calculator):
        result = _tax(calculator, "1", "1000", "18", place_of_supply=None)

        assert result.split is TaxSplit.INTRA

    def test_odd_raw_tax_total_exceeds_by_one_cent(self, calculator):
        # amount 0.10 at 5% -> raw tax 0.01, each half rounds up to 0.01
        result = _tax(calculator, "1", "0.10", "5")

        assert result.cgst == Decimal("0.01")
        assert result.sgst == Decimal("0.01")
        assert result.total_tax == Decimal("0.02")


class TestCrossJurisdiction:
    """Place of supply differs from the home jurisdiction."""

    def test_full_rate_as_igst(self, calculator):
        result = _tax(calculator, "500", "250", "5", place_of_supply="Karnataka")

        assert result.amount == Decimal("125000.00")
        assert result.igst == Decimal("6250.00")
        assert result.cgst == Decimal("0")
        assert result.sgst == Decimal("0")
        assert result.total_tax == Decimal("6250.00")
        assert result.split is TaxSplit.CROSS

    def test_odd_raw_tax_is_not_split(self, calculator):
        result = _tax(calculator, "1", "0.10", "5", place_of_supply="Goa")

        assert result.igst == Decimal("0.01")
        assert result.total_tax == Decimal("0.01")


class TestZeroRated:
    """Exports and zero-rate lines carry no tax."""

    @pytest.mark.parametrize("place_of_supply", [HOME, "Karnataka", "Other Territory"])
    def test_export_has_no_tax(self, calculator, place_of_supply):
        result = _tax(calculator, "500", "250", "18", place_of_supply=place_of_supply, is_export=True)

        assert result.amount == Decimal("125000.00")
        assert result.total_tax == Decimal("0")
        assert result.igst == result.cgst == result.sgst == Decimal("0")
        assert result.split is TaxSplit.NONE

    def test_zero_rate_has_no_tax(self, calculator):
        result = _tax(calculator, "3", "999.99", "0", place_of_supply="Karnataka")

        assert result.amount == Decimal("2999.97")
        assert result.total_tax == Decimal("0")
        assert result.gross == Decimal("2999.97")


class TestRounding:
    """Every step rounds half-up to two places."""

    def test_line_amount_rounded(self, calculator):
        result = _tax(calculator, "0.333", "10", "0")

        assert result.amount == Decimal("3.33")

    def test_half_cent_rounds_up(self, calculator):
        result = _tax(calculator, "1", "0.125", "0")

        assert result.amount == Decimal("0.13")

    def test_discount_applied_before_tax(self, calculator):
        result = _tax(calculator, "1", "1000", "18", discount_percent=Decimal("10"))

        assert result.amount == Decimal("900.00")
        assert result.cgst == Decimal("81.00")
        assert result.total_tax == Decimal("162.00")

    def test_gross_adds_tax(self, calculator):
        result = _tax(calculator, "2", "500", "18", place_of_supply="Karnataka")

        assert result.gross == Decimal("1180.00")


class TestValidation:
    """Invalid inputs are rejected before any computation."""

    @pytest.mark.parametrize(
        ("field", "kwargs"),
        [
            ("quantity", {"quantity": "-1", "rate": "10", "tax_rate": "5"}),
            ("rate", {"quantity": "1", "rate": "-0.01", "tax_rate": "5"}),
            ("tax_rate", {"quantity": "1", "rate": "10", "tax_rate": "100.01"}),
            ("tax_rate", {"quantity": "1", "rate": "10", "tax_rate": "-5"}),
        ],
    )
    def test_out_of_range(self, calculator, field, kwargs):
        with pytest.raises(ValidationError) as exc_info:
            _tax(calculator, **kwargs)

        assert exc_info.value.field == field

    def test_discount_over_hundred(self, calculator):
        with pytest.raises(ValidationError):
            _tax(calculator, "1", "10", "5", discount_percent=Decimal("101"))

    def test_non_numeric_rejected(self, calculator):
        with pytest.raises(ValidationError):
            calculator.compute_line_tax(
                quantity="abc", rate=Decimal("1"), tax_rate=Decimal("5"),
                place_of_supply=HOME, is_export=False,
            )

    def test_boundaries_accepted(self, calculator):
        result = _tax(calculator, "0", "0", "100", place_of_supply="Goa")

        assert result.amount == Decimal("0.00")
        assert result.total_tax == Decimal("0.00")


class TestComputeLines:
    """Document-level line taxation."""

    def test_preserves_order_and_positions(self, calculator):
        lines = [
            LineInput(item_reference="A", quantity=Decimal("1"), rate=Decimal("100"), tax_rate=Decimal("18")),
            LineInput(item_reference="B", quantity=Decimal("2"), rate=Decimal("50"), tax_rate=Decimal("5")),
        ]

        computed = calculator.compute_lines(lines, place_of_supply=HOME, is_export=False)

        assert [c.line.item_reference for c in computed] == ["A", "B"]
        assert [c.sort_order for c in computed] == [0, 1]
        assert computed[0].tax.cgst == Decimal("9.00")
        assert computed[1].tax.cgst == Decimal("2.50")

    def test_emits_engine_trace(self, calculator, captured_logs):
        _tax(calculator, "1", "100", "18")

        traces = [r for r in captured_logs() if r["message"] == "BOOKS_ENGINE_TRACE"]
        assert traces
        assert traces[0]["engine_name"] == "tax"
        assert len(traces[0]["input_fingerprint"]) == 16
