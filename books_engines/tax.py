"""
Tax Engine - GST determination for a single line.

Pure functions with no I/O.  Given quantity, rate, tax rate, place of supply
and the export flag, produces the taxable amount and the IGST / CGST / SGST
split.

Rounding happens at every step, exactly as stored documents expect:

    amount    = round2(quantity * rate)            (less any line discount)
    raw_tax   = round2(amount * tax_rate / 100)
    intra:      half = round2(raw_tax / 2); cgst = sgst = half
                total_tax = round2(half * 2)
    cross:      igst = total_tax = raw_tax

For an odd raw_tax the intra-jurisdiction total can exceed raw_tax by one
cent.  That is the expected result, not an error.

Usage:
    from books_engines.tax import TaxCalculator
    from books_kernel.domain.jurisdiction import Jurisdiction

    calculator = TaxCalculator(Jurisdiction("Maharashtra"))
    result = calculator.compute_line_tax(
        quantity=Decimal("500"), rate=Decimal("250"), tax_rate=Decimal("5"),
        place_of_supply="Maharashtra", is_export=False,
    )
    result.cgst  # Decimal("3125.00")
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Sequence

from books_kernel.domain.dtos import LineInput
from books_kernel.domain.jurisdiction import Jurisdiction
from books_kernel.domain.money import HUNDRED, ZERO, round2, to_decimal
from books_kernel.exceptions import ValidationError
from books_kernel.logging_config import get_logger
from books_engines.tracer import traced_engine

logger = get_logger("engines.tax")

TWO = Decimal("2")
NIL = Decimal("0.00")


class TaxSplit(str, Enum):
    """Which GST components apply to a line."""

    NONE = "none"  # export or zero-rated
    INTRA = "intra"  # CGST + SGST
    CROSS = "cross"  # IGST


@dataclass(frozen=True)
class TaxBreakdown:
    """
    Result of tax determination for one line.

    Guarantees:
        - All fields are rounded to two decimal places.
        - INTRA: cgst == sgst, igst == 0, total_tax == cgst + sgst.
        - CROSS: cgst == sgst == 0, total_tax == igst.
    """

    amount: Decimal
    igst: Decimal
    cgst: Decimal
    sgst: Decimal
    total_tax: Decimal
    split: TaxSplit = TaxSplit.NONE

    @property
    def gross(self) -> Decimal:
        return round2(self.amount + self.total_tax)

    def as_dict(self) -> dict[str, Decimal]:
        return {
            "amount": self.amount,
            "igst": self.igst,
            "cgst": self.cgst,
            "sgst": self.sgst,
            "total_tax": self.total_tax,
        }


@dataclass(frozen=True)
class ComputedLine:
    """A caller's line together with its tax breakdown and position."""

    line: LineInput
    tax: TaxBreakdown
    sort_order: int


def _check_range(name: str, value: Decimal, low: Decimal, high: Decimal | None) -> None:
    if value < low or (high is not None and value > high):
        bound = f"between {low} and {high}" if high is not None else f"at least {low}"
        raise ValidationError(f"{name} must be {bound}, got {value}", field=name, value=value)


class TaxCalculator:
    """
    GST calculator for a seller in one home jurisdiction.

    Contract:
        Pure -- no I/O, no clock.  Invalid inputs raise ValidationError
        before any computation; nothing is clamped.
    """

    def __init__(self, home: Jurisdiction):
        self.home = home

    def is_intra(self, place_of_supply: str | None, party_gstin: str | None = None) -> bool:
        return self.home.is_home(place_of_supply, party_gstin)

    @traced_engine(
        "tax", "1.0",
        fingerprint_fields=("quantity", "rate", "tax_rate", "place_of_supply", "is_export"),
    )
    def compute_line_tax(
        self,
        quantity: Decimal,
        rate: Decimal,
        tax_rate: Decimal,
        place_of_supply: str | None,
        is_export: bool,
        discount_percent: Decimal = ZERO,
        party_gstin: str | None = None,
    ) -> TaxBreakdown:
        """
        Compute the taxable amount and GST split for one line.

        Raises:
            ValidationError: quantity or rate negative; tax_rate or
                discount_percent outside [0, 100].
        """
        quantity = to_decimal(quantity, "quantity")
        rate = to_decimal(rate, "rate")
        tax_rate = to_decimal(tax_rate, "tax_rate")
        discount_percent = to_decimal(discount_percent, "discount_percent")

        _check_range("quantity", quantity, ZERO, None)
        _check_range("rate", rate, ZERO, None)
        _check_range("tax_rate", tax_rate, ZERO, HUNDRED)
        _check_range("discount_percent", discount_percent, ZERO, HUNDRED)

        amount = round2(quantity * rate)
        if discount_percent > 0:
            amount = round2(amount - round2(amount * discount_percent / HUNDRED))

        if is_export or tax_rate == 0:
            return TaxBreakdown(amount=amount, igst=NIL, cgst=NIL, sgst=NIL, total_tax=NIL)

        raw_tax = round2(amount * tax_rate / HUNDRED)

        if self.is_intra(place_of_supply, party_gstin):
            half = round2(raw_tax / TWO)
            return TaxBreakdown(
                amount=amount,
                igst=NIL,
                cgst=half,
                sgst=half,
                total_tax=round2(half * TWO),
                split=TaxSplit.INTRA,
            )

        return TaxBreakdown(
            amount=amount,
            igst=raw_tax,
            cgst=NIL,
            sgst=NIL,
            total_tax=raw_tax,
            split=TaxSplit.CROSS,
        )

    def compute_lines(
        self,
        lines: Sequence[LineInput],
        place_of_supply: str | None,
        is_export: bool,
        party_gstin: str | None = None,
    ) -> tuple[ComputedLine, ...]:
        """Tax every line of a document, preserving order."""
        computed = tuple(
            ComputedLine(
                line=line,
                tax=self.compute_line_tax(
                    quantity=line.quantity,
                    rate=line.rate,
                    tax_rate=line.tax_rate,
                    place_of_supply=place_of_supply,
                    is_export=is_export,
                    discount_percent=line.discount_percent,
                    party_gstin=party_gstin,
                ),
                sort_order=index,
            )
            for index, line in enumerate(lines)
        )
        logger.debug(
            "document_lines_taxed",
            extra={
                "line_count": len(computed),
                "place_of_supply": place_of_supply,
                "is_export": is_export,
                "intra": self.is_intra(place_of_supply, party_gstin),
            },
        )
        return computed
