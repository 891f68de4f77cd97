"""
Module: books_engines.dashboard
Responsibility:
    Compute the dashboard KPI summary from document, payment, expense and
    bank-account snapshots, plus the per-type document stats and the
    expense breakdown by category.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The reporting service
    selects the snapshots; this module applies the inclusion rules.

Invariants enforced:
    - Receivables exclude Paid, Cancelled and Draft invoices; payables
      exclude only Paid bills.  Current plus overdue equals the total on
      both sides.
    - Overdue uses the dual check: stored Overdue OR past due with a
      positive balance in an open status.
    - Period income and expenses use inclusive date bounds.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Mapping, Sequence
from uuid import UUID

from books_kernel.domain.document_status import (
    DocumentType,
    ExpenseStatus,
    PaymentDirection,
    PaymentStatus,
    is_effectively_overdue,
)
from books_kernel.domain.dtos import (
    BankAccountSnapshot,
    DocumentSnapshot,
    ExpenseSnapshot,
    PaymentSnapshot,
)
from books_kernel.domain.money import ZERO, round2, sum_money
from books_kernel.logging_config import get_logger
from books_engines.tracer import traced_engine

logger = get_logger("engines.dashboard")

RECEIVABLE_EXCLUDED = frozenset({"Paid", "Cancelled", "Draft"})
UNCATEGORIZED = "Uncategorized"


@dataclass(frozen=True)
class DashboardSummary:
    """Flat KPI figures for one reporting window."""

    start_date: date
    end_date: date
    as_of_date: date
    total_receivables: Decimal
    current_receivables: Decimal
    overdue_receivables: Decimal
    overdue_invoice_count: int
    total_payables: Decimal
    current_payables: Decimal
    overdue_payables: Decimal
    overdue_bill_count: int
    bank_balance: Decimal
    period_income: Decimal
    period_expenses: Decimal

    @property
    def net_income(self) -> Decimal:
        return round2(self.period_income - self.period_expenses)

    def as_dict(self) -> dict:
        return {
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "as_of_date": self.as_of_date.isoformat(),
            "total_receivables": self.total_receivables,
            "current_receivables": self.current_receivables,
            "overdue_receivables": self.overdue_receivables,
            "overdue_invoice_count": self.overdue_invoice_count,
            "total_payables": self.total_payables,
            "current_payables": self.current_payables,
            "overdue_payables": self.overdue_payables,
            "overdue_bill_count": self.overdue_bill_count,
            "bank_balance": self.bank_balance,
            "period_income": self.period_income,
            "period_expenses": self.period_expenses,
            "net_income": self.net_income,
        }


@dataclass(frozen=True)
class DocumentStats:
    """Totals over the non-cancelled documents of one type."""

    document_type: str
    as_of_date: date
    document_count: int
    total_amount: Decimal
    total_paid: Decimal
    total_balance: Decimal
    total_overdue: Decimal
    overdue_count: int

    def as_dict(self) -> dict:
        return {
            "document_type": self.document_type,
            "as_of_date": self.as_of_date.isoformat(),
            "document_count": self.document_count,
            "total_amount": self.total_amount,
            "total_paid": self.total_paid,
            "total_balance": self.total_balance,
            "total_overdue": self.total_overdue,
            "overdue_count": self.overdue_count,
        }


@dataclass(frozen=True)
class PaymentStats:
    """Count and amount of non-void payments, overall and this month."""

    direction: str | None
    as_of_date: date
    total_count: int
    total_amount: Decimal
    this_month_count: int
    this_month_amount: Decimal

    def as_dict(self) -> dict:
        return {
            "direction": self.direction,
            "as_of_date": self.as_of_date.isoformat(),
            "total_count": self.total_count,
            "total_amount": self.total_amount,
            "this_month_count": self.this_month_count,
            "this_month_amount": self.this_month_amount,
        }


@dataclass(frozen=True)
class ActivityItem:
    """One row of the recent-activity feed."""

    activity_type: str
    id: UUID
    number: str
    party_name: str | None
    amount: Decimal
    status: str
    created_at: datetime | None

    def as_dict(self) -> dict:
        return {
            "type": self.activity_type,
            "id": str(self.id),
            "number": self.number,
            "party_name": self.party_name,
            "amount": self.amount,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


def _in_range(day: date, start: date, end: date) -> bool:
    return start <= day <= end


class DashboardCalculator:
    """Pure KPI calculator."""

    @traced_engine("dashboard", "1.0", fingerprint_fields=("start_date", "end_date", "as_of_date"))
    def summarize(
        self,
        *,
        invoices: Sequence[DocumentSnapshot],
        bills: Sequence[DocumentSnapshot],
        payments: Sequence[PaymentSnapshot],
        expenses: Sequence[ExpenseSnapshot],
        bank_accounts: Sequence[BankAccountSnapshot],
        start_date: date,
        end_date: date,
        as_of_date: date,
    ) -> DashboardSummary:
        """
        Build the summary.

        ``invoices`` and ``bills`` are every document of that type; the
        payment, expense and bill-expense figures are restricted here to
        [start_date, end_date].
        """
        receivables = [d for d in invoices if d.status not in RECEIVABLE_EXCLUDED]
        overdue_invoices = [
            d for d in invoices
            if d.status not in ("Paid", "Cancelled")
            and is_effectively_overdue(
                DocumentType.INVOICE, d.status, d.due_date, d.balance_due, as_of_date
            )
        ]
        overdue_ids = {d.id for d in overdue_invoices}
        current_invoices = [d for d in receivables if d.id not in overdue_ids]

        payables = [d for d in bills if d.status != "Paid"]
        overdue_bills = [
            d for d in bills
            if d.status not in ("Paid", "Cancelled")
            and is_effectively_overdue(
                DocumentType.BILL, d.status, d.due_date, d.balance_due, as_of_date
            )
        ]
        overdue_bill_ids = {d.id for d in overdue_bills}
        current_bills = [d for d in payables if d.id not in overdue_bill_ids]

        income = sum_money(
            p.amount for p in payments
            if p.direction == PaymentDirection.RECEIVED.value
            and p.status == PaymentStatus.RECEIVED.value
            and _in_range(p.payment_date, start_date, end_date)
        )
        bill_expenses = sum_money(
            d.total_amount for d in bills
            if d.status != "Cancelled" and _in_range(d.document_date, start_date, end_date)
        )
        direct_expenses = sum_money(
            e.total_amount for e in expenses
            if e.status != ExpenseStatus.REJECTED.value
            and _in_range(e.expense_date, start_date, end_date)
        )

        summary = DashboardSummary(
            start_date=start_date,
            end_date=end_date,
            as_of_date=as_of_date,
            total_receivables=sum_money(d.balance_due for d in receivables),
            current_receivables=sum_money(d.balance_due for d in current_invoices),
            overdue_receivables=sum_money(d.balance_due for d in overdue_invoices),
            overdue_invoice_count=len(overdue_invoices),
            total_payables=sum_money(d.balance_due for d in payables),
            current_payables=sum_money(d.balance_due for d in current_bills),
            overdue_payables=sum_money(d.balance_due for d in overdue_bills),
            overdue_bill_count=len(overdue_bills),
            bank_balance=sum_money(a.current_balance for a in bank_accounts if a.is_active),
            period_income=income,
            period_expenses=round2(bill_expenses + direct_expenses),
        )

        logger.info(
            "dashboard_summary_computed",
            extra={
                "start_date": start_date.isoformat(),
                "end_date": end_date.isoformat(),
                "invoice_count": len(invoices),
                "bill_count": len(bills),
                "overdue_invoice_count": summary.overdue_invoice_count,
            },
        )
        return summary

    @traced_engine("expense_breakdown", "1.0", fingerprint_fields=("expenses",))
    def expense_breakdown(
        self,
        expenses: Sequence[ExpenseSnapshot],
    ) -> list[dict]:
        """
        Totals per category, largest first, ties by category name.

        Rejected expenses are skipped; a missing category is reported as
        "Uncategorized".
        """
        totals: dict[str, Decimal] = {}
        for expense in expenses:
            if expense.status == ExpenseStatus.REJECTED.value:
                continue
            category = expense.category or UNCATEGORIZED
            totals[category] = totals.get(category, ZERO) + expense.total_amount
        rows = [
            {"category": category, "total": round2(total)}
            for category, total in totals.items()
        ]
        rows.sort(key=lambda row: (-row["total"], row["category"]))
        return rows

    @traced_engine(
        "document_stats", "1.0", fingerprint_fields=("documents", "document_type", "as_of_date"),
    )
    def document_stats(
        self,
        *,
        documents: Sequence[DocumentSnapshot],
        document_type: str,
        as_of_date: date,
    ) -> DocumentStats:
        """Roll-up of non-cancelled documents of one type."""
        live = [
            d for d in documents
            if d.document_type == document_type and d.status != "Cancelled"
        ]
        overdue = [
            d for d in live
            if d.status != "Paid"
            and is_effectively_overdue(
                document_type, d.status, d.due_date, d.balance_due, as_of_date
            )
        ]
        return DocumentStats(
            document_type=document_type,
            as_of_date=as_of_date,
            document_count=len(live),
            total_amount=sum_money(d.total_amount for d in live),
            total_paid=sum_money(d.amount_paid for d in live),
            total_balance=sum_money(d.balance_due for d in live),
            total_overdue=sum_money(d.balance_due for d in overdue),
            overdue_count=len(overdue),
        )

    @traced_engine("payment_stats", "1.0", fingerprint_fields=("payments", "as_of_date"))
    def payment_stats(
        self,
        *,
        payments: Sequence[PaymentSnapshot],
        as_of_date: date,
        direction: str | None = None,
    ) -> PaymentStats:
        """
        Totals over non-void payments; "this month" runs from the first of
        as_of_date's month through as_of_date.
        """
        live = [
            p for p in payments
            if p.status != PaymentStatus.VOID.value
            and (direction is None or p.direction == direction)
        ]
        month = [
            p for p in live
            if _in_range(p.payment_date, as_of_date.replace(day=1), as_of_date)
        ]
        return PaymentStats(
            direction=direction,
            as_of_date=as_of_date,
            total_count=len(live),
            total_amount=sum_money(p.amount for p in live),
            this_month_count=len(month),
            this_month_amount=sum_money(p.amount for p in month),
        )

    @traced_engine("recent_activity", "1.0", fingerprint_fields=("limit",))
    def recent_activity(
        self,
        *,
        documents: Sequence[DocumentSnapshot],
        payments: Sequence[PaymentSnapshot],
        expenses: Sequence[ExpenseSnapshot],
        party_names: Mapping[UUID, str],
        limit: int,
    ) -> list[ActivityItem]:
        """
        Newest-first feed of documents, payments and expenses, cut to limit.

        Expenses carry their category in place of a party name.  Rows
        without a creation time sort last.
        """
        items = [
            ActivityItem(
                activity_type=d.document_type.lower(),
                id=d.id,
                number=d.document_number,
                party_name=party_names.get(d.party_id),
                amount=d.total_amount,
                status=d.status,
                created_at=d.created_at,
            )
            for d in documents
        ]
        items.extend(
            ActivityItem(
                activity_type=f"payment_{p.direction.lower()}",
                id=p.id,
                number=p.payment_number,
                party_name=party_names.get(p.party_id),
                amount=p.amount,
                status=p.status,
                created_at=p.created_at,
            )
            for p in payments
        )
        items.extend(
            ActivityItem(
                activity_type="expense",
                id=e.id,
                number=e.expense_number or "",
                party_name=e.category,
                amount=e.total_amount,
                status=e.status,
                created_at=e.created_at,
            )
            for e in expenses
        )
        items.sort(
            key=lambda i: (
                i.created_at is not None,
                i.created_at.timestamp() if i.created_at else 0.0,
                i.number,
            ),
            reverse=True,
        )
        return items[:limit]
