"""
Data transfer objects for the books core.

Immutable snapshots handed from selectors to the pure engines, plus the
line input accepted from document CRUD.  No ORM, no I/O.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from books_kernel.domain.money import HUNDRED, ZERO, to_decimal
from books_kernel.exceptions import ValidationError


@dataclass(frozen=True)
class LineInput:
    """
    One line as submitted by the caller, before tax computation.

    Numeric fields are converted to Decimal on construction.  Quantity must
    be positive; rate, tax_rate and discount_percent are range-checked again
    by the tax engine.
    """

    item_reference: str | None
    quantity: Decimal
    rate: Decimal
    tax_rate: Decimal = ZERO
    discount_percent: Decimal = ZERO
    description: str | None = None

    def __post_init__(self) -> None:
        for name in ("quantity", "rate", "tax_rate", "discount_percent"):
            object.__setattr__(self, name, to_decimal(getattr(self, name), field=name))
        if self.quantity <= 0:
            raise ValidationError(
                f"quantity must be positive, got {self.quantity}",
                field="quantity",
                value=self.quantity,
            )
        if not ZERO <= self.discount_percent <= HUNDRED:
            raise ValidationError(
                f"discount_percent must be between 0 and 100, got {self.discount_percent}",
                field="discount_percent",
                value=self.discount_percent,
            )

    @classmethod
    def from_dict(cls, data: dict) -> "LineInput":
        return cls(
            item_reference=data.get("item_reference") or data.get("item_id"),
            quantity=data["quantity"],
            rate=data["rate"],
            tax_rate=data.get("tax_rate", ZERO) or ZERO,
            discount_percent=data.get("discount_percent", ZERO) or ZERO,
            description=data.get("description"),
        )


@dataclass(frozen=True)
class DocumentSnapshot:
    """Read-model view of a financial document header."""

    id: UUID
    document_type: str
    document_number: str
    party_id: UUID
    status: str
    document_date: date
    due_date: date | None
    currency_code: str
    total_amount: Decimal
    amount_paid: Decimal
    balance_due: Decimal
    created_at: datetime | None = None


@dataclass(frozen=True)
class PaymentSnapshot:
    """Read-model view of a payment."""

    id: UUID
    payment_number: str
    direction: str
    party_id: UUID
    amount: Decimal
    payment_date: date
    status: str
    currency_code: str
    mode: str | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class AllocationSnapshot:
    """Read-model view of one payment-to-document allocation."""

    id: UUID
    payment_id: UUID
    document_id: UUID
    allocated_amount: Decimal
    reversed_at: datetime | None = None

    @property
    def is_live(self) -> bool:
        return self.reversed_at is None


@dataclass(frozen=True)
class ExpenseSnapshot:
    """Read-model view of a direct expense."""

    id: UUID
    expense_date: date
    category: str | None
    total_amount: Decimal
    status: str
    expense_number: str | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class BankAccountSnapshot:
    """Read-model view of a bank account balance."""

    id: UUID
    name: str
    current_balance: Decimal
    is_active: bool


@dataclass(frozen=True)
class PartySnapshot:
    """Read-model view of a customer or vendor."""

    id: UUID
    party_code: str
    party_type: str
    name: str
    currency_code: str
    opening_balance: Decimal = ZERO
    gstin: str | None = None
