"""
Payment, expense and bank-account query selectors.

These feed the cash-flow and income/expense series and the dashboard.
Amounts come back rounded to two places.
"""

from collections.abc import Iterable
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, or_, select

from books_kernel.domain.dtos import (
    AllocationSnapshot,
    BankAccountSnapshot,
    ExpenseSnapshot,
    PaymentSnapshot,
)
from books_kernel.domain.money import round2
from books_kernel.models.expense import BankAccount, Expense
from books_kernel.models.payment import Payment, PaymentAllocation
from books_kernel.selectors.base import BaseSelector


def payment_snapshot(payment: Payment) -> PaymentSnapshot:
    return PaymentSnapshot(
        id=payment.id,
        payment_number=payment.payment_number,
        direction=payment.direction,
        party_id=payment.party_id,
        amount=round2(payment.amount),
        payment_date=payment.payment_date,
        status=payment.status,
        currency_code=payment.currency_code,
        mode=payment.mode,
        created_at=payment.created_at,
    )


def expense_snapshot(expense: Expense) -> ExpenseSnapshot:
    return ExpenseSnapshot(
        id=expense.id,
        expense_date=expense.expense_date,
        category=expense.category,
        total_amount=round2(expense.total_amount),
        status=expense.status,
        expense_number=expense.expense_number,
        created_at=expense.created_at,
    )


def allocation_snapshot(allocation: PaymentAllocation) -> AllocationSnapshot:
    return AllocationSnapshot(
        id=allocation.id,
        payment_id=allocation.payment_id,
        document_id=allocation.document_id,
        allocated_amount=round2(allocation.allocated_amount),
        reversed_at=allocation.reversed_at,
    )


class PaymentSelector(BaseSelector[Payment]):
    """Read-only queries over payments and allocations."""

    def get(self, payment_id: UUID) -> PaymentSnapshot | None:
        payment = self.session.get(Payment, payment_id)
        return payment_snapshot(payment) if payment is not None else None

    def list_payments(
        self,
        direction: str | None,
        *,
        statuses: Iterable[str] | None = None,
        exclude_statuses: Iterable[str] | None = None,
        party_id: UUID | None = None,
        mode: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[PaymentSnapshot]:
        """Payments ordered by date then number; a None direction means both."""
        stmt = select(Payment)
        if direction is not None:
            stmt = stmt.where(Payment.direction == direction)
        if statuses is not None:
            stmt = stmt.where(Payment.status.in_(list(statuses)))
        if exclude_statuses is not None:
            stmt = stmt.where(Payment.status.not_in(list(exclude_statuses)))
        if party_id is not None:
            stmt = stmt.where(or_(Payment.customer_id == party_id, Payment.vendor_id == party_id))
        if mode is not None:
            stmt = stmt.where(Payment.mode == mode)
        if start_date is not None:
            stmt = stmt.where(Payment.payment_date >= start_date)
        if end_date is not None:
            stmt = stmt.where(Payment.payment_date <= end_date)
        stmt = stmt.order_by(Payment.payment_date, Payment.payment_number)
        return [payment_snapshot(p) for p in self.session.scalars(stmt)]

    def recent(self, direction: str, limit: int) -> list[PaymentSnapshot]:
        stmt = (
            select(Payment)
            .where(Payment.direction == direction)
            .order_by(Payment.created_at.desc(), Payment.payment_number.desc())
            .limit(limit)
        )
        return [payment_snapshot(p) for p in self.session.scalars(stmt)]

    def allocations_for_payment(
        self, payment_id: UUID, live_only: bool = True
    ) -> list[AllocationSnapshot]:
        stmt = select(PaymentAllocation).where(PaymentAllocation.payment_id == payment_id)
        if live_only:
            stmt = stmt.where(PaymentAllocation.reversed_at.is_(None))
        stmt = stmt.order_by(PaymentAllocation.created_at, PaymentAllocation.id)
        return [allocation_snapshot(a) for a in self.session.scalars(stmt)]

    def allocations_for_document(
        self, document_id: UUID, live_only: bool = True
    ) -> list[AllocationSnapshot]:
        stmt = select(PaymentAllocation).where(PaymentAllocation.document_id == document_id)
        if live_only:
            stmt = stmt.where(PaymentAllocation.reversed_at.is_(None))
        stmt = stmt.order_by(PaymentAllocation.created_at, PaymentAllocation.id)
        return [allocation_snapshot(a) for a in self.session.scalars(stmt)]

    def allocated_total(self, payment_id: UUID) -> Decimal:
        """Sum of a payment's live allocations."""
        total = self.session.execute(
            select(func.coalesce(func.sum(PaymentAllocation.allocated_amount), 0))
            .where(PaymentAllocation.payment_id == payment_id)
            .where(PaymentAllocation.reversed_at.is_(None))
        ).scalar_one()
        return round2(total)

    def document_paid_total(self, document_id: UUID) -> Decimal:
        """Sum of a document's live allocations."""
        total = self.session.execute(
            select(func.coalesce(func.sum(PaymentAllocation.allocated_amount), 0))
            .where(PaymentAllocation.document_id == document_id)
            .where(PaymentAllocation.reversed_at.is_(None))
        ).scalar_one()
        return round2(total)


class ExpenseSelector(BaseSelector[Expense]):
    """Read-only queries over direct expenses."""

    def list_expenses(
        self,
        *,
        include_statuses: Iterable[str] | None = None,
        exclude_statuses: Iterable[str] | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[ExpenseSnapshot]:
        stmt = select(Expense)
        if include_statuses is not None:
            stmt = stmt.where(Expense.status.in_(list(include_statuses)))
        if exclude_statuses is not None:
            stmt = stmt.where(Expense.status.not_in(list(exclude_statuses)))
        if start_date is not None:
            stmt = stmt.where(Expense.expense_date >= start_date)
        if end_date is not None:
            stmt = stmt.where(Expense.expense_date <= end_date)
        stmt = stmt.order_by(Expense.expense_date, Expense.expense_number)
        return [expense_snapshot(e) for e in self.session.scalars(stmt)]

    def recent(self, limit: int) -> list[ExpenseSnapshot]:
        stmt = (
            select(Expense)
            .order_by(Expense.created_at.desc(), Expense.expense_number.desc())
            .limit(limit)
        )
        return [expense_snapshot(e) for e in self.session.scalars(stmt)]


class BankAccountSelector(BaseSelector[BankAccount]):
    """Read-only queries over bank accounts."""

    def list_accounts(self, active_only: bool = True) -> list[BankAccountSnapshot]:
        stmt = select(BankAccount)
        if active_only:
            stmt = stmt.where(BankAccount.is_active.is_(True))
        stmt = stmt.order_by(BankAccount.name)
        return [
            BankAccountSnapshot(
                id=a.id,
                name=a.name,
                current_balance=round2(a.current_balance),
                is_active=a.is_active,
            )
            for a in self.session.scalars(stmt)
        ]
