"""
Pure domain layer.

Money rounding, jurisdiction resolution, payment terms, document state
machines and immutable snapshots.  No ORM, no database, no wall clock.
"""

from books_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from books_kernel.domain.document_status import (
    DocumentStatus,
    DocumentType,
    ExpenseStatus,
    PartyType,
    PaymentDirection,
    PaymentStatus,
    is_effectively_overdue,
)
from books_kernel.domain.dtos import (
    AllocationSnapshot,
    BankAccountSnapshot,
    DocumentSnapshot,
    ExpenseSnapshot,
    LineInput,
    PartySnapshot,
    PaymentSnapshot,
)
from books_kernel.domain.jurisdiction import Jurisdiction
from books_kernel.domain.money import ZERO, round2, round_to_whole, to_decimal

__all__ = [
    "AllocationSnapshot",
    "BankAccountSnapshot",
    "Clock",
    "DeterministicClock",
    "DocumentSnapshot",
    "DocumentStatus",
    "DocumentType",
    "ExpenseSnapshot",
    "ExpenseStatus",
    "Jurisdiction",
    "LineInput",
    "PartySnapshot",
    "PartyType",
    "PaymentDirection",
    "PaymentSnapshot",
    "PaymentStatus",
    "SystemClock",
    "ZERO",
    "is_effectively_overdue",
    "round2",
    "round_to_whole",
    "to_decimal",
]
