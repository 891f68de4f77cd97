"""
Document query selector.

Read-only access to document headers as frozen DocumentSnapshot objects.
Filtering by type, status, party and date range happens in SQL; the
overdue rule and bucketing happen in the engines.
"""

from collections.abc import Iterable
from datetime import date
from uuid import UUID

from sqlalchemy import or_, select

from books_kernel.domain.dtos import DocumentSnapshot
from books_kernel.domain.money import round2
from books_kernel.models.document import FinancialDocument
from books_kernel.selectors.base import BaseSelector


def _values(items: Iterable) -> list[str]:
    return [getattr(i, "value", i) for i in items]


def document_snapshot(doc: FinancialDocument) -> DocumentSnapshot:
    """Freeze an ORM document into a snapshot."""
    return DocumentSnapshot(
        id=doc.id,
        document_type=doc.document_type,
        document_number=doc.document_number,
        party_id=doc.party_id,
        status=doc.status,
        document_date=doc.document_date,
        due_date=doc.due_date,
        currency_code=doc.currency_code,
        total_amount=round2(doc.total_amount),
        amount_paid=round2(doc.amount_paid),
        balance_due=round2(doc.balance_due),
        created_at=doc.created_at,
    )


class DocumentSelector(BaseSelector[FinancialDocument]):
    """Read-only queries over financial documents."""

    def get(self, document_id: UUID) -> DocumentSnapshot | None:
        doc = self.session.get(FinancialDocument, document_id)
        return document_snapshot(doc) if doc is not None else None

    def list_documents(
        self,
        document_types: Iterable[str],
        *,
        include_statuses: Iterable[str] | None = None,
        exclude_statuses: Iterable[str] | None = None,
        party_id: UUID | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[DocumentSnapshot]:
        """
        Documents of the given types, ordered by date then number.

        Date bounds apply to document_date and are inclusive.
        """
        stmt = select(FinancialDocument).where(
            FinancialDocument.document_type.in_(_values(document_types))
        )
        if include_statuses is not None:
            stmt = stmt.where(FinancialDocument.status.in_(_values(include_statuses)))
        if exclude_statuses is not None:
            stmt = stmt.where(FinancialDocument.status.not_in(_values(exclude_statuses)))
        if party_id is not None:
            stmt = stmt.where(
                or_(
                    FinancialDocument.customer_id == party_id,
                    FinancialDocument.vendor_id == party_id,
                )
            )
        if start_date is not None:
            stmt = stmt.where(FinancialDocument.document_date >= start_date)
        if end_date is not None:
            stmt = stmt.where(FinancialDocument.document_date <= end_date)
        stmt = stmt.order_by(
            FinancialDocument.document_date, FinancialDocument.document_number
        )
        return [document_snapshot(d) for d in self.session.scalars(stmt)]

    def open_with_balance(self, document_types: Iterable[str]) -> list[DocumentSnapshot]:
        """Documents not Paid/Cancelled with a positive balance due."""
        stmt = (
            select(FinancialDocument)
            .where(FinancialDocument.document_type.in_(_values(document_types)))
            .where(FinancialDocument.status.not_in(["Paid", "Cancelled"]))
            .where(FinancialDocument.balance_due > 0)
            .order_by(FinancialDocument.due_date, FinancialDocument.document_number)
        )
        return [document_snapshot(d) for d in self.session.scalars(stmt)]

    def recent(self, document_types: Iterable[str], limit: int) -> list[DocumentSnapshot]:
        """The most recently created documents of the given types, newest first."""
        stmt = (
            select(FinancialDocument)
            .where(FinancialDocument.document_type.in_(_values(document_types)))
            .order_by(FinancialDocument.created_at.desc(), FinancialDocument.document_number.desc())
            .limit(limit)
        )
        return [document_snapshot(d) for d in self.session.scalars(stmt)]
