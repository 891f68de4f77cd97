"""
Module: books_kernel.models.document
Responsibility: ORM persistence for financial documents (invoices, bills,
    credit notes, debit notes, quotations, purchase orders) and their lines.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Exactly one of customer_id / vendor_id is set (ck_document_one_party).
    - document_number is unique per document_type.
    - Lines are owned by their document: replacing the line set deletes the
      orphans inside the same transaction.
    - total_amount = round2(sub_total - discount_amount + total_tax
      + shipping_charge + round_off) and balance_due = round2(total_amount
      - amount_paid).  Both are maintained by the services, never by SQL.

Failure modes:
    - IntegrityError on duplicate (document_type, document_number).
    - IntegrityError when both or neither party columns are set.

Audit relevance:
    Documents are never deleted once committed; cancellation sets status
    Cancelled and cancelled_at.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from books_kernel.db.base import TrackedBase


class FinancialDocument(TrackedBase):
    """
    Header of any financial document.

    Totals and settlement figures are stored, recomputed by the totals
    calculator on line edits and by the allocation engine on payments.
    """

    __tablename__ = "financial_documents"

    __table_args__ = (
        UniqueConstraint("document_type", "document_number", name="uq_document_type_number"),
        CheckConstraint(
            "(customer_id IS NULL) <> (vendor_id IS NULL)",
            name="ck_document_one_party",
        ),
        CheckConstraint("exchange_rate >= 0", name="ck_document_exchange_rate"),
        Index("idx_document_type_status", "document_type", "status"),
        Index("idx_document_due_date", "due_date"),
        Index("idx_document_date", "document_date"),
        Index("idx_document_customer", "customer_id"),
        Index("idx_document_vendor", "vendor_id"),
    )

    document_type: Mapped[str] = mapped_column(String(20), nullable=False)

    document_number: Mapped[str] = mapped_column(String(50), nullable=False)

    customer_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("parties.id"), nullable=True,
    )

    vendor_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("parties.id"), nullable=True,
    )

    document_date: Mapped[date] = mapped_column(nullable=False)

    due_date: Mapped[date | None] = mapped_column(nullable=True)

    place_of_supply: Mapped[str | None] = mapped_column(String(100), nullable=True)

    currency_code: Mapped[str] = mapped_column(String(3), nullable=False, default="INR")

    exchange_rate: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("1"))

    is_export: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="Draft")

    # Totals
    sub_total: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    discount_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    igst_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    cgst_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    sgst_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    total_tax: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    shipping_charge: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    round_off: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    total_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    # Settlement
    amount_paid: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    balance_due: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    reference_number: Mapped[str | None] = mapped_column(String(100), nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Set when the document first leaves Draft through finalize or send
    committed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    cancelled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    lines: Mapped[list["DocumentLine"]] = relationship(
        back_populates="document",
        cascade="all, delete-orphan",
        order_by="DocumentLine.sort_order",
        lazy="selectin",
    )

    @property
    def party_id(self) -> UUID:
        return self.customer_id if self.customer_id is not None else self.vendor_id

    def __repr__(self) -> str:
        return f"<FinancialDocument {self.document_type} {self.document_number} [{self.status}]>"


class DocumentLine(TrackedBase):
    """A tax-computed line owned by one document."""

    __tablename__ = "document_lines"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_line_quantity_positive"),
        CheckConstraint("rate >= 0", name="ck_line_rate_non_negative"),
        CheckConstraint("tax_rate >= 0 AND tax_rate <= 100", name="ck_line_tax_rate_range"),
        Index("idx_line_document", "document_id"),
    )

    document_id: Mapped[UUID] = mapped_column(
        ForeignKey("financial_documents.id", ondelete="CASCADE"), nullable=False,
    )

    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    item_reference: Mapped[str | None] = mapped_column(String(100), nullable=True)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    rate: Mapped[Decimal] = mapped_column(nullable=False)
    discount_percent: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    tax_rate: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    # Computed by the tax engine
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    igst_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    cgst_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    sgst_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    document: Mapped[FinancialDocument] = relationship(back_populates="lines")
