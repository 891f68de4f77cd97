"""
Module: books_kernel.models.party
Responsibility: ORM persistence for customers and vendors.  A party's state
    and GSTIN drive the place-of-supply default on its documents; its
    payment terms drive the default due date.
Architecture position: Kernel > Models.  May import from db/base.py only.

Failure modes:
    - IntegrityError on duplicate party_code (uq_party_code constraint).
"""

from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from books_kernel.db.base import TrackedBase


class Party(TrackedBase):
    """
    Customer or vendor the business transacts with.

    party_type is "customer" or "vendor" and is fixed at creation.
    """

    __tablename__ = "parties"

    __table_args__ = (
        UniqueConstraint("party_code", name="uq_party_code"),
        CheckConstraint("party_type IN ('customer', 'vendor')", name="ck_party_type"),
        Index("idx_party_type", "party_type"),
        Index("idx_party_active", "is_active"),
    )

    party_code: Mapped[str] = mapped_column(String(50), nullable=False)

    party_type: Mapped[str] = mapped_column(String(20), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Jurisdiction used as the default place of supply
    state: Mapped[str | None] = mapped_column(String(100), nullable=True)

    gstin: Mapped[str | None] = mapped_column(String(15), nullable=True)

    currency_code: Mapped[str] = mapped_column(String(3), nullable=False, default="INR")

    payment_terms_days: Mapped[int | None] = mapped_column(nullable=True)

    # Balance carried in from before the books started; positive means the
    # customer owes us or we owe the vendor
    opening_balance: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Party {self.party_code}: {self.name} ({self.party_type})>"
