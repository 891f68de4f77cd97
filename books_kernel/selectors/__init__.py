"""Read-only selectors returning frozen snapshots."""

from books_kernel.selectors.document_selector import DocumentSelector, document_snapshot
from books_kernel.selectors.party_selector import PartySelector, party_snapshot
from books_kernel.selectors.payment_selector import (
    BankAccountSelector,
    ExpenseSelector,
    PaymentSelector,
)

__all__ = [
    "BankAccountSelector",
    "DocumentSelector",
    "ExpenseSelector",
    "PartySelector",
    "PaymentSelector",
    "document_snapshot",
    "party_snapshot",
]
