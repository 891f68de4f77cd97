"""
Module: books_kernel.models.payment
Responsibility: ORM persistence for payments (received and made) and the
    allocations that apply them to documents.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Exactly one of customer_id / vendor_id is set.
    - amount > 0 and allocated_amount > 0.
    - Payments are immutable after creation except for status.
    - Allocations are never deleted; a reversal stamps reversed_at and the
      row stops counting towards amount_paid.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from books_kernel.db.base import TrackedBase, UUIDString


class Payment(TrackedBase):
    """A payment received from a customer or made to a vendor."""

    __tablename__ = "payments"

    __table_args__ = (
        UniqueConstraint("payment_number", name="uq_payment_number"),
        CheckConstraint(
            "(customer_id IS NULL) <> (vendor_id IS NULL)",
            name="ck_payment_one_party",
        ),
        CheckConstraint("amount > 0", name="ck_payment_amount_positive"),
        CheckConstraint("direction IN ('Received', 'Made')", name="ck_payment_direction"),
        Index("idx_payment_direction_status", "direction", "status"),
        Index("idx_payment_date", "payment_date"),
    )

    payment_number: Mapped[str] = mapped_column(String(50), nullable=False)

    direction: Mapped[str] = mapped_column(String(10), nullable=False)

    customer_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("parties.id"), nullable=True,
    )

    vendor_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("parties.id"), nullable=True,
    )

    # Home-currency amount
    amount: Mapped[Decimal] = mapped_column(nullable=False)

    payment_date: Mapped[date] = mapped_column(nullable=False)

    mode: Mapped[str | None] = mapped_column(String(30), nullable=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False)

    currency_code: Mapped[str] = mapped_column(String(3), nullable=False, default="INR")

    exchange_rate: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("1"))

    # Amount in the payment currency before conversion
    original_amount: Mapped[Decimal | None] = mapped_column(nullable=True)

    reference_number: Mapped[str | None] = mapped_column(String(100), nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    allocations: Mapped[list["PaymentAllocation"]] = relationship(
        back_populates="payment",
        lazy="selectin",
    )

    @property
    def party_id(self) -> UUID:
        return self.customer_id if self.customer_id is not None else self.vendor_id

    def __repr__(self) -> str:
        return f"<Payment {self.payment_number} {self.direction} {self.amount} [{self.status}]>"


class PaymentAllocation(TrackedBase):
    """The portion of a payment applied to one document."""

    __tablename__ = "payment_allocations"

    __table_args__ = (
        CheckConstraint("allocated_amount > 0", name="ck_allocation_amount_positive"),
        Index("idx_allocation_payment", "payment_id"),
        Index("idx_allocation_document", "document_id"),
    )

    payment_id: Mapped[UUID] = mapped_column(
        ForeignKey("payments.id"), nullable=False,
    )

    document_id: Mapped[UUID] = mapped_column(
        ForeignKey("financial_documents.id"), nullable=False,
    )

    allocated_amount: Mapped[Decimal] = mapped_column(nullable=False)

    reversed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    reversed_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    payment: Mapped[Payment] = relationship(back_populates="allocations")

    @property
    def is_live(self) -> bool:
        return self.reversed_at is None
