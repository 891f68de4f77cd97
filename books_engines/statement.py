"""
Module: books_engines.statement
Responsibility:
    Build a customer or vendor statement: the balance carried into a date
    window, every posted document and payment inside it with a running
    balance, and the closing balance.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - opening_balance + sum of signed entries == closing_balance, and the
      last running_balance equals the closing balance.
    - Cancelled documents and Void payments never appear and never move
      the balance.
    - Customer balances grow with debits (invoices, refunds paid out);
      vendor balances grow with credits (bills, refunds received).

Usage:
    statement = StatementBuilder().build(
        party=party, documents=docs, payments=payments,
        start_date=date(2024, 1, 1), end_date=date(2024, 3, 31),
    )
    statement.closing_balance
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Sequence

from books_kernel.domain.document_status import (
    DocumentStatus,
    DocumentType,
    PartyType,
    PaymentDirection,
    PaymentStatus,
)
from books_kernel.domain.dtos import DocumentSnapshot, PartySnapshot, PaymentSnapshot
from books_kernel.domain.money import ZERO, round2, sum_money
from books_kernel.logging_config import get_logger
from books_engines.tracer import traced_engine

logger = get_logger("engines.statement")

DEBIT = "debit"
CREDIT = "credit"

# document type -> (entry type, description, side)
_DOCUMENT_ENTRIES: dict[str, tuple[str, str, str]] = {
    DocumentType.INVOICE.value: ("invoice", "Invoice", DEBIT),
    DocumentType.CREDIT_NOTE.value: ("credit-note", "Credit Note", CREDIT),
    DocumentType.BILL.value: ("bill", "Bill", CREDIT),
    DocumentType.DEBIT_NOTE.value: ("debit-note", "Debit Note", DEBIT),
}

_PAYMENT_SIDE = {
    PaymentDirection.RECEIVED.value: CREDIT,
    PaymentDirection.MADE.value: DEBIT,
}


@dataclass(frozen=True)
class StatementLine:
    """One dated entry on a statement."""

    entry_date: date
    entry_type: str
    document_number: str
    description: str
    debit: Decimal
    credit: Decimal
    running_balance: Decimal

    def as_dict(self) -> dict:
        return {
            "date": self.entry_date.isoformat(),
            "type": self.entry_type,
            "document_number": self.document_number,
            "description": self.description,
            "debit": self.debit,
            "credit": self.credit,
            "running_balance": self.running_balance,
        }


@dataclass(frozen=True)
class PartyStatement:
    """Statement of account for one party over [start_date, end_date]."""

    party: PartySnapshot
    start_date: date
    end_date: date
    opening_balance: Decimal
    lines: tuple[StatementLine, ...]
    closing_balance: Decimal

    @property
    def total_debit(self) -> Decimal:
        return sum_money(line.debit for line in self.lines)

    @property
    def total_credit(self) -> Decimal:
        return sum_money(line.credit for line in self.lines)

    def as_dict(self) -> dict:
        return {
            "party": {
                "id": str(self.party.id),
                "party_code": self.party.party_code,
                "party_type": self.party.party_type,
                "name": self.party.name,
                "gstin": self.party.gstin,
                "currency_code": self.party.currency_code,
            },
            "period": {
                "start_date": self.start_date.isoformat(),
                "end_date": self.end_date.isoformat(),
            },
            "opening_balance": self.opening_balance,
            "transactions": [line.as_dict() for line in self.lines],
            "closing_balance": self.closing_balance,
            "summary": {
                "total_debit": self.total_debit,
                "total_credit": self.total_credit,
                "transaction_count": len(self.lines),
            },
        }


@dataclass(frozen=True)
class _Entry:
    entry_date: date
    rank: int
    document_number: str
    entry_type: str
    description: str
    side: str
    amount: Decimal


class StatementBuilder:
    """
    Pure statement builder.

    Contract:
        ``documents`` and ``payments`` are everything on the party's
        account up to ``end_date``; entries dated before ``start_date``
        fold into the opening balance.
    """

    @traced_engine(
        "statement", "1.0", fingerprint_fields=("party", "start_date", "end_date"),
    )
    def build(
        self,
        *,
        party: PartySnapshot,
        documents: Sequence[DocumentSnapshot],
        payments: Sequence[PaymentSnapshot],
        start_date: date,
        end_date: date,
    ) -> PartyStatement:
        if start_date > end_date:
            raise ValueError(f"start_date {start_date} is after end_date {end_date}")

        grows_with = DEBIT if party.party_type == PartyType.CUSTOMER.value else CREDIT

        def signed(entry: _Entry) -> Decimal:
            return entry.amount if entry.side == grows_with else -entry.amount

        entries = sorted(
            self._entries(documents, payments, end_date),
            key=lambda e: (e.entry_date, e.rank, e.document_number),
        )

        opening = round2(
            party.opening_balance
            + sum((signed(e) for e in entries if e.entry_date < start_date), ZERO)
        )
        balance = opening
        lines: list[StatementLine] = []
        for entry in entries:
            if entry.entry_date < start_date:
                continue
            balance = round2(balance + signed(entry))
            lines.append(StatementLine(
                entry_date=entry.entry_date,
                entry_type=entry.entry_type,
                document_number=entry.document_number,
                description=entry.description,
                debit=entry.amount if entry.side == DEBIT else ZERO,
                credit=entry.amount if entry.side == CREDIT else ZERO,
                running_balance=balance,
            ))

        logger.info("party_statement_built", extra={
            "party_id": str(party.id),
            "start_date": start_date.isoformat(),
            "end_date": end_date.isoformat(),
            "line_count": len(lines),
        })
        return PartyStatement(
            party=party,
            start_date=start_date,
            end_date=end_date,
            opening_balance=opening,
            lines=tuple(lines),
            closing_balance=balance,
        )

    def _entries(
        self,
        documents: Sequence[DocumentSnapshot],
        payments: Sequence[PaymentSnapshot],
        end_date: date,
    ) -> list[_Entry]:
        entries = []
        for doc in documents:
            kind = _DOCUMENT_ENTRIES.get(doc.document_type)
            if (
                kind is None
                or doc.status == DocumentStatus.CANCELLED.value
                or doc.document_date > end_date
            ):
                continue
            entry_type, description, side = kind
            entries.append(_Entry(
                doc.document_date, 0, doc.document_number,
                entry_type, description, side, round2(doc.total_amount),
            ))
        for payment in payments:
            if payment.status == PaymentStatus.VOID.value or payment.payment_date > end_date:
                continue
            entries.append(_Entry(
                payment.payment_date, 1, payment.payment_number,
                "payment", payment.mode or f"Payment {payment.direction}",
                _PAYMENT_SIDE[payment.direction], round2(payment.amount),
            ))
        return entries
