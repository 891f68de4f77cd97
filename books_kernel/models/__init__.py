"""ORM models for the books core."""

from books_kernel.models.document import DocumentLine, FinancialDocument
from books_kernel.models.expense import BankAccount, Expense
from books_kernel.models.party import Party
from books_kernel.models.payment import Payment, PaymentAllocation
from books_kernel.models.sequence import SequenceCounter

__all__ = [
    "BankAccount",
    "DocumentLine",
    "Expense",
    "FinancialDocument",
    "Party",
    "Payment",
    "PaymentAllocation",
    "SequenceCounter",
]
