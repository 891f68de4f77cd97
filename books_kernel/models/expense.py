"""
Module: books_kernel.models.expense
Responsibility: ORM persistence for direct expenses and bank accounts, the
    two sources that feed outflow series and the dashboard bank balance
    without going through the document/payment pipeline.
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from books_kernel.db.base import TrackedBase


class Expense(TrackedBase):
    """A direct expense (Pending, Paid or Rejected)."""

    __tablename__ = "expenses"

    __table_args__ = (
        UniqueConstraint("expense_number", name="uq_expense_number"),
        Index("idx_expense_date", "expense_date"),
        Index("idx_expense_status", "status"),
    )

    expense_number: Mapped[str] = mapped_column(String(50), nullable=False)

    expense_date: Mapped[date] = mapped_column(nullable=False)

    category: Mapped[str | None] = mapped_column(String(100), nullable=True)

    total_amount: Mapped[Decimal] = mapped_column(nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="Pending")

    vendor_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("parties.id"), nullable=True,
    )

    description: Mapped[str | None] = mapped_column(Text, nullable=True)


class BankAccount(TrackedBase):
    """A bank account with its current balance."""

    __tablename__ = "bank_accounts"

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    current_balance: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
