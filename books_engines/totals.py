"""
Module: books_engines.totals
Responsibility:
    Roll tax-computed lines up into document totals and derive the
    balance due from the amount paid.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - sub_total and each tax component are sums of the per-line values.
    - total_tax = round2(igst + cgst + sgst).
    - total_amount = round2(sub_total - discount_amount + total_tax
      + shipping_charge + round_off).
    - balance_due = round2(total_amount - amount_paid), never below
      -tolerance.

Failure modes:
    - ValidationError for negative discount_amount or shipping_charge.
    - NegativeBalanceError when amount_paid exceeds total_amount by more
      than the rounding tolerance.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence

from books_kernel.domain.money import (
    DEFAULT_ROUNDING_TOLERANCE,
    ZERO,
    round2,
    round_to_whole,
    to_decimal,
)
from books_kernel.exceptions import NegativeBalanceError, ValidationError
from books_kernel.logging_config import get_logger
from books_engines.tax import TaxBreakdown
from books_engines.tracer import traced_engine

logger = get_logger("engines.totals")


@dataclass(frozen=True)
class DocumentTotals:
    """
    Header totals of one document.

    Guarantees:
        - Every field is rounded to two decimal places.
        - total_amount satisfies the roll-up formula above.
    """

    sub_total: Decimal
    discount_amount: Decimal
    igst_amount: Decimal
    cgst_amount: Decimal
    sgst_amount: Decimal
    total_tax: Decimal
    shipping_charge: Decimal
    round_off: Decimal
    total_amount: Decimal

    def as_dict(self) -> dict[str, Decimal]:
        return {
            "sub_total": self.sub_total,
            "discount_amount": self.discount_amount,
            "igst_amount": self.igst_amount,
            "cgst_amount": self.cgst_amount,
            "sgst_amount": self.sgst_amount,
            "total_tax": self.total_tax,
            "shipping_charge": self.shipping_charge,
            "round_off": self.round_off,
            "total_amount": self.total_amount,
        }


class TotalsCalculator:
    """
    Document totals and balance calculator.

    Contract:
        Pure functions; callers persist the results.
    """

    def __init__(self, rounding_tolerance: Decimal = DEFAULT_ROUNDING_TOLERANCE):
        self.rounding_tolerance = to_decimal(rounding_tolerance, "rounding_tolerance")

    @traced_engine(
        "totals", "1.0",
        fingerprint_fields=("lines", "discount_amount", "shipping_charge", "round_off"),
    )
    def compute_document_totals(
        self,
        lines: Sequence[TaxBreakdown],
        discount_amount: Decimal = ZERO,
        shipping_charge: Decimal = ZERO,
        round_off: Decimal = ZERO,
        auto_round_off: bool = False,
    ) -> DocumentTotals:
        """
        Roll up line breakdowns into header totals.

        With ``auto_round_off`` the supplied round_off is ignored and
        replaced by the adjustment that lands total_amount on a whole unit.
        """
        discount_amount = round2(discount_amount)
        shipping_charge = round2(shipping_charge)
        round_off = round2(round_off)
        if discount_amount < 0:
            raise ValidationError(
                f"discount_amount cannot be negative, got {discount_amount}",
                field="discount_amount",
                value=discount_amount,
            )
        if shipping_charge < 0:
            raise ValidationError(
                f"shipping_charge cannot be negative, got {shipping_charge}",
                field="shipping_charge",
                value=shipping_charge,
            )

        sub_total = round2(sum((line.amount for line in lines), ZERO))
        igst = round2(sum((line.igst for line in lines), ZERO))
        cgst = round2(sum((line.cgst for line in lines), ZERO))
        sgst = round2(sum((line.sgst for line in lines), ZERO))
        total_tax = round2(igst + cgst + sgst)

        before_round_off = round2(sub_total - discount_amount + total_tax + shipping_charge)
        if auto_round_off:
            _, round_off = round_to_whole(before_round_off)

        total_amount = round2(before_round_off + round_off)

        logger.debug(
            "document_totals_computed",
            extra={
                "line_count": len(lines),
                "sub_total": str(sub_total),
                "total_tax": str(total_tax),
                "total_amount": str(total_amount),
            },
        )

        return DocumentTotals(
            sub_total=sub_total,
            discount_amount=discount_amount,
            igst_amount=igst,
            cgst_amount=cgst,
            sgst_amount=sgst,
            total_tax=total_tax,
            shipping_charge=shipping_charge,
            round_off=round_off,
            total_amount=total_amount,
        )

    def compute_balance_due(self, total_amount: Decimal, amount_paid: Decimal) -> Decimal:
        """
        balance_due = round2(total_amount - amount_paid).

        Raises:
            NegativeBalanceError: result below -rounding_tolerance.
        """
        total_amount = round2(total_amount)
        amount_paid = round2(amount_paid)
        balance_due = round2(total_amount - amount_paid)
        if balance_due < -self.rounding_tolerance:
            logger.warning(
                "negative_balance_rejected",
                extra={
                    "total_amount": str(total_amount),
                    "amount_paid": str(amount_paid),
                    "balance_due": str(balance_due),
                },
            )
            raise NegativeBalanceError(total_amount, amount_paid, balance_due)
        return balance_due
