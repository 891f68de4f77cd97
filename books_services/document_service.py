"""
Document lifecycle service - creates documents, edits drafts and drives
the non-settlement status transitions.

Thin glue layer that:
1. Calls TaxCalculator for every line and TotalsCalculator for the header
2. Issues document numbers from the SequenceService
3. Applies Workflow transitions (finalize, send, accept, receive, cancel,
   mark_overdue)

All computation lives in engines.  This service owns the transaction
boundary: it commits on success and rolls back on failure.

Usage:
    service = DocumentService(session, config, clock, actor_id=actor_id)
    invoice = service.create_document(
        document_type=DocumentType.INVOICE,
        party_id=customer.id,
        lines=[LineInput("SKU-1", Decimal("2"), Decimal("500"), Decimal("18"))],
    )
    service.finalize(invoice.id)
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from books_config import BooksConfig
from books_kernel.domain.clock import Clock, SystemClock
from books_kernel.domain.document_status import (
    DOCUMENT_PARTY_TYPE,
    DocumentStatus,
    DocumentType,
    PartyType,
    is_effectively_overdue,
    is_settleable,
    transition,
    workflow_for,
)
from books_kernel.domain.dtos import LineInput
from books_kernel.domain.jurisdiction import Jurisdiction, state_from_gstin
from books_kernel.domain.money import ZERO, round2, to_decimal, to_money
from books_kernel.domain.payment_terms import days_until_due, due_date_for
from books_kernel.exceptions import (
    DocumentNotEditableError,
    DocumentNotFoundError,
    PartyNotFoundError,
    ValidationError,
)
from books_kernel.logging_config import LogContext, get_logger
from books_kernel.models.document import DocumentLine, FinancialDocument
from books_kernel.models.party import Party
from books_kernel.selectors.payment_selector import PaymentSelector
from books_kernel.services.sequence_service import SequenceService, format_number
from books_engines.tax import ComputedLine, TaxBreakdown, TaxCalculator
from books_engines.totals import TotalsCalculator

logger = get_logger("services.document")

_PARTY_CODE_PREFIX = {
    PartyType.CUSTOMER: "CUST",
    PartyType.VENDOR: "VEND",
}


def parse_document_type(value: DocumentType | str) -> DocumentType:
    try:
        return DocumentType(value)
    except ValueError:
        raise ValidationError(
            f"Unknown document type: {value!r}", field="document_type", value=value,
        ) from None


def _line_input(line: LineInput | dict[str, Any]) -> LineInput:
    return line if isinstance(line, LineInput) else LineInput.from_dict(line)


def _stored_breakdown(line: DocumentLine) -> TaxBreakdown:
    igst = round2(line.igst_amount)
    cgst = round2(line.cgst_amount)
    sgst = round2(line.sgst_amount)
    return TaxBreakdown(
        amount=round2(line.amount),
        igst=igst,
        cgst=cgst,
        sgst=sgst,
        total_tax=round2(igst + cgst + sgst),
    )


class DocumentService:
    """
    Owns document creation, draft edits and lifecycle transitions.

    Engine composition:
    - TaxCalculator: per-line GST split for the configured home jurisdiction
    - TotalsCalculator: header roll-up and balance due

    Transaction boundary: every public mutator commits on success and rolls
    back on any exception.
    """

    def __init__(
        self,
        session: Session,
        config: BooksConfig | None = None,
        clock: Clock | None = None,
        actor_id: UUID | None = None,
    ):
        if actor_id is None:
            raise ValueError("actor_id is required for document mutations")
        self._session = session
        self._config = config or BooksConfig.with_defaults()
        self._clock = clock or SystemClock()
        self._actor_id = actor_id
        self._sequences = SequenceService(session)
        self._payments = PaymentSelector(session)
        self._tax = TaxCalculator(
            Jurisdiction(self._config.home_jurisdiction, self._config.home_gstin)
        )
        self._totals = TotalsCalculator(self._config.rounding_tolerance)

    # =========================================================================
    # Parties
    # =========================================================================

    def create_party(
        self,
        party_type: PartyType | str,
        name: str,
        party_code: str | None = None,
        state: str | None = None,
        gstin: str | None = None,
        currency_code: str | None = None,
        payment_terms_days: int | None = None,
        opening_balance: Decimal | str | int = ZERO,
    ) -> Party:
        """Register a customer or vendor with an optional carried-in balance."""
        try:
            try:
                kind = PartyType(party_type)
            except ValueError:
                raise ValidationError(
                    f"party_type must be customer or vendor, got {party_type!r}",
                    field="party_type",
                    value=party_type,
                ) from None
            if not name or not name.strip():
                raise ValidationError("party name cannot be empty", field="name")
            if (
                payment_terms_days is not None
                and payment_terms_days not in self._config.payment_terms_days
            ):
                raise ValidationError(
                    f"payment_terms_days must be one of "
                    f"{list(self._config.payment_terms_days)}, got {payment_terms_days}",
                    field="payment_terms_days",
                    value=payment_terms_days,
                )

            if party_code is None:
                value = self._sequences.next_value(f"party.{kind.value}")
                party_code = format_number(_PARTY_CODE_PREFIX[kind], value)

            party = Party(
                party_code=party_code,
                party_type=kind.value,
                name=name.strip(),
                state=state,
                gstin=gstin,
                currency_code=currency_code or self._config.home_currency,
                payment_terms_days=payment_terms_days,
                opening_balance=to_money(opening_balance, field="opening_balance"),
                is_active=True,
                created_by_id=self._actor_id,
            )
            self._session.add(party)
            self._session.flush()
            self._session.commit()
            logger.info("party_created", extra={
                "party_id": str(party.id),
                "party_code": party.party_code,
                "party_type": party.party_type,
            })
            return party
        except Exception:
            self._session.rollback()
            raise

    # =========================================================================
    # Creation and draft edits
    # =========================================================================

    def create_document(
        self,
        document_type: DocumentType | str,
        party_id: UUID,
        lines: Sequence[LineInput | dict[str, Any]],
        document_date: date | None = None,
        due_date: date | None = None,
        place_of_supply: str | None = None,
        is_export: bool = False,
        currency_code: str | None = None,
        exchange_rate: Decimal | str | int = Decimal("1"),
        discount_amount: Decimal | str | int = ZERO,
        shipping_charge: Decimal | str | int = ZERO,
        round_off: Decimal | str | int = ZERO,
        reference_number: str | None = None,
        notes: str | None = None,
    ) -> FinancialDocument:
        """
        Create a Draft document with computed lines and totals.

        The place of supply defaults to the party's state (or the state in
        its GSTIN); exports default to the configured export territory.
        Settlement documents get a due date from the party's payment terms
        when none is given.

        Raises:
            ValidationError: bad document type, wrong party kind, no lines,
                or invalid amounts.
            PartyNotFoundError: unknown party.
        """
        try:
            doc_type = parse_document_type(document_type)
            party = self._get_party(party_id)
            expected = DOCUMENT_PARTY_TYPE[doc_type]
            if party.party_type != expected.value:
                raise ValidationError(
                    f"{doc_type.value} requires a {expected.value}, "
                    f"got {party.party_type} {party.party_code}",
                    field="party_id",
                    value=str(party_id),
                )
            line_inputs = [_line_input(line) for line in lines]
            if not line_inputs:
                raise ValidationError("a document needs at least one line", field="lines")

            exchange_rate = to_decimal(exchange_rate, "exchange_rate")
            if exchange_rate < 0:
                raise ValidationError(
                    f"exchange_rate cannot be negative, got {exchange_rate}",
                    field="exchange_rate",
                    value=exchange_rate,
                )

            document_date = document_date or self._clock.today()
            if place_of_supply is None:
                place_of_supply = party.state or state_from_gstin(party.gstin)
                if place_of_supply is None and is_export:
                    place_of_supply = self._config.export_place_of_supply
            if due_date is None and is_settleable(doc_type):
                due_date = due_date_for(
                    document_date,
                    party.payment_terms_days,
                    self._config.default_payment_terms_days,
                )

            fmt = self._config.number_format(doc_type.value)
            number = format_number(
                fmt.prefix,
                self._sequences.next_value(f"document.{doc_type.value}"),
                padding=fmt.padding,
                separator=fmt.separator,
            )

            doc = FinancialDocument(
                document_type=doc_type.value,
                document_number=number,
                customer_id=party.id if party.party_type == PartyType.CUSTOMER.value else None,
                vendor_id=party.id if party.party_type == PartyType.VENDOR.value else None,
                document_date=document_date,
                due_date=due_date,
                place_of_supply=place_of_supply,
                currency_code=currency_code or party.currency_code or self._config.home_currency,
                exchange_rate=exchange_rate,
                is_export=is_export,
                status=workflow_for(doc_type).initial_state,
                amount_paid=ZERO,
                reference_number=reference_number,
                notes=notes,
                created_by_id=self._actor_id,
            )
            computed = self._tax.compute_lines(
                line_inputs, place_of_supply, is_export, party_gstin=party.gstin,
            )
            self._set_lines(doc, computed)
            self._apply_totals(
                doc,
                [c.tax for c in computed],
                discount_amount=to_decimal(discount_amount, "discount_amount"),
                shipping_charge=to_decimal(shipping_charge, "shipping_charge"),
                round_off=to_decimal(round_off, "round_off"),
            )
            self._session.add(doc)
            self._session.flush()
            self._session.commit()

            logger.info("document_created", extra={
                "document_id": str(doc.id),
                "document_type": doc.document_type,
                "document_number": doc.document_number,
                "line_count": len(doc.lines),
                "total_amount": str(doc.total_amount),
            })
            return doc
        except Exception:
            self._session.rollback()
            raise

    def replace_lines(
        self,
        document_id: UUID,
        lines: Sequence[LineInput | dict[str, Any]],
    ) -> FinancialDocument:
        """
        Replace the whole line set of a Draft document and recompute totals.

        The old lines are deleted and the new ones inserted in one
        transaction.

        Raises:
            DocumentNotEditableError: the document is not Draft.
        """
        try:
            doc = self._lock_draft(document_id)
            line_inputs = [_line_input(line) for line in lines]
            if not line_inputs:
                raise ValidationError("a document needs at least one line", field="lines")
            party = self._get_party(doc.party_id)
            computed = self._tax.compute_lines(
                line_inputs, doc.place_of_supply, doc.is_export, party_gstin=party.gstin,
            )
            self._set_lines(doc, computed)
            self._apply_totals(
                doc,
                [c.tax for c in computed],
                discount_amount=doc.discount_amount,
                shipping_charge=doc.shipping_charge,
                round_off=doc.round_off,
            )
            doc.updated_by_id = self._actor_id
            self._session.flush()
            self._session.commit()
            logger.info("document_lines_replaced", extra={
                "document_id": str(doc.id),
                "line_count": len(doc.lines),
                "total_amount": str(doc.total_amount),
            })
            return doc
        except Exception:
            self._session.rollback()
            raise

    def update_charges(
        self,
        document_id: UUID,
        discount_amount: Decimal | str | int | None = None,
        shipping_charge: Decimal | str | int | None = None,
        round_off: Decimal | str | int | None = None,
    ) -> FinancialDocument:
        """Change header charges on a Draft document; omitted values are kept."""
        try:
            doc = self._lock_draft(document_id)
            self._apply_totals(
                doc,
                [_stored_breakdown(line) for line in doc.lines],
                discount_amount=(
                    doc.discount_amount if discount_amount is None
                    else to_decimal(discount_amount, "discount_amount")
                ),
                shipping_charge=(
                    doc.shipping_charge if shipping_charge is None
                    else to_decimal(shipping_charge, "shipping_charge")
                ),
                round_off=(
                    doc.round_off if round_off is None else to_decimal(round_off, "round_off")
                ),
            )
            doc.updated_by_id = self._actor_id
            self._session.flush()
            self._session.commit()
            logger.info("document_charges_updated", extra={
                "document_id": str(doc.id),
                "total_amount": str(doc.total_amount),
            })
            return doc
        except Exception:
            self._session.rollback()
            raise

    # =========================================================================
    # Lifecycle transitions
    # =========================================================================

    def finalize(self, document_id: UUID) -> FinancialDocument:
        """Draft -> the type's committed status (Final, Pending, Issued, Sent)."""
        return self._apply_action(document_id, "finalize", "document_finalized")

    def send(self, document_id: UUID) -> FinancialDocument:
        return self._apply_action(document_id, "send", "document_sent")

    def accept_quotation(self, document_id: UUID) -> FinancialDocument:
        return self._apply_action(document_id, "accept", "quotation_accepted")

    def mark_po_received(self, document_id: UUID, fully: bool = True) -> FinancialDocument:
        """Record goods receipt on a purchase order: Received, or Partial when not ``fully``."""
        target = DocumentStatus.RECEIVED.value if fully else DocumentStatus.PARTIAL.value
        return self._apply_action(
            document_id, "receive", "purchase_order_received", target=target,
        )

    def cancel(self, document_id: UUID) -> FinancialDocument:
        """
        Cancel any document that is not Paid or already Cancelled.

        Live allocations are left in place; reverse them explicitly through
        the allocation service if the money should be released.
        """
        return self._apply_action(document_id, "cancel", "document_cancelled")

    def mark_overdue_documents(self, as_of: date | None = None) -> list[FinancialDocument]:
        """
        Move past-due settlement documents with a positive balance to Overdue.

        Only documents whose workflow defines ``mark_overdue`` from their
        current status are touched; Draft documents stay Draft.
        """
        as_of = as_of or self._clock.today()
        try:
            candidates = self._session.scalars(
                select(FinancialDocument)
                .where(FinancialDocument.due_date < as_of)
                .where(FinancialDocument.balance_due > 0)
                .where(FinancialDocument.status.not_in([
                    DocumentStatus.PAID.value,
                    DocumentStatus.CANCELLED.value,
                    DocumentStatus.OVERDUE.value,
                ]))
                .order_by(FinancialDocument.document_number)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).all()

            marked: list[FinancialDocument] = []
            for doc in candidates:
                workflow = workflow_for(doc.document_type)
                if not workflow.settles or not workflow.targets(doc.status, "mark_overdue"):
                    continue
                doc.status = transition(doc.document_type, doc.status, "mark_overdue")
                doc.updated_by_id = self._actor_id
                marked.append(doc)

            self._session.flush()
            self._session.commit()
            logger.info("documents_marked_overdue", extra={
                "as_of_date": as_of.isoformat(),
                "candidate_count": len(candidates),
                "marked_count": len(marked),
            })
            return marked
        except Exception:
            self._session.rollback()
            raise

    # =========================================================================
    # Read
    # =========================================================================

    def get_document(self, document_id: UUID) -> FinancialDocument:
        doc = self._session.get(FinancialDocument, document_id)
        if doc is None:
            raise DocumentNotFoundError(str(document_id))
        return doc

    def render_document(self, document_id: UUID, as_of: date | None = None) -> dict[str, Any]:
        """Header totals, ordered lines and live allocations of one document."""
        doc = self.get_document(document_id)
        as_of = as_of or self._clock.today()
        allocations = self._payments.allocations_for_document(doc.id)
        overdue = (
            is_settleable(doc.document_type)
            and doc.status not in (DocumentStatus.PAID.value, DocumentStatus.CANCELLED.value)
            and is_effectively_overdue(
                doc.document_type, doc.status, doc.due_date, doc.balance_due, as_of,
            )
        )
        return {
            "id": str(doc.id),
            "document_type": doc.document_type,
            "document_number": doc.document_number,
            "party_id": str(doc.party_id),
            "status": doc.status,
            "is_overdue": overdue,
            "document_date": doc.document_date.isoformat(),
            "due_date": doc.due_date.isoformat() if doc.due_date else None,
            "days_until_due": days_until_due(doc.due_date, as_of),
            "place_of_supply": doc.place_of_supply,
            "is_export": doc.is_export,
            "currency_code": doc.currency_code,
            "exchange_rate": doc.exchange_rate,
            "sub_total": round2(doc.sub_total),
            "discount_amount": round2(doc.discount_amount),
            "igst_amount": round2(doc.igst_amount),
            "cgst_amount": round2(doc.cgst_amount),
            "sgst_amount": round2(doc.sgst_amount),
            "total_tax": round2(doc.total_tax),
            "shipping_charge": round2(doc.shipping_charge),
            "round_off": round2(doc.round_off),
            "total_amount": round2(doc.total_amount),
            "amount_paid": round2(doc.amount_paid),
            "balance_due": round2(doc.balance_due),
            "lines": [
                {
                    "sort_order": line.sort_order,
                    "item_reference": line.item_reference,
                    "description": line.description,
                    "quantity": line.quantity,
                    "rate": round2(line.rate),
                    "discount_percent": round2(line.discount_percent),
                    "tax_rate": round2(line.tax_rate),
                    "amount": round2(line.amount),
                    "igst_amount": round2(line.igst_amount),
                    "cgst_amount": round2(line.cgst_amount),
                    "sgst_amount": round2(line.sgst_amount),
                }
                for line in doc.lines
            ],
            "allocations": [
                {
                    "id": str(a.id),
                    "payment_id": str(a.payment_id),
                    "allocated_amount": a.allocated_amount,
                }
                for a in allocations
            ],
        }

    # =========================================================================
    # Internals
    # =========================================================================

    def _get_party(self, party_id: UUID) -> Party:
        party = self._session.get(Party, party_id)
        if party is None:
            raise PartyNotFoundError(str(party_id))
        return party

    def _lock(self, document_id: UUID) -> FinancialDocument:
        doc = self._session.execute(
            select(FinancialDocument)
            .where(FinancialDocument.id == document_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if doc is None:
            raise DocumentNotFoundError(str(document_id))
        return doc

    def _lock_draft(self, document_id: UUID) -> FinancialDocument:
        doc = self._lock(document_id)
        if doc.status != DocumentStatus.DRAFT.value:
            raise DocumentNotEditableError(str(doc.id), doc.status)
        return doc

    def _set_lines(self, doc: FinancialDocument, computed: Sequence[ComputedLine]) -> None:
        doc.lines = [
            DocumentLine(
                sort_order=c.sort_order,
                item_reference=c.line.item_reference,
                description=c.line.description,
                quantity=c.line.quantity,
                rate=c.line.rate,
                discount_percent=c.line.discount_percent,
                tax_rate=c.line.tax_rate,
                amount=c.tax.amount,
                igst_amount=c.tax.igst,
                cgst_amount=c.tax.cgst,
                sgst_amount=c.tax.sgst,
                created_by_id=self._actor_id,
            )
            for c in computed
        ]

    def _apply_totals(
        self,
        doc: FinancialDocument,
        breakdowns: Sequence[TaxBreakdown],
        discount_amount: Decimal,
        shipping_charge: Decimal,
        round_off: Decimal,
    ) -> None:
        totals = self._totals.compute_document_totals(
            lines=breakdowns,
            discount_amount=discount_amount,
            shipping_charge=shipping_charge,
            round_off=round_off,
            auto_round_off=self._config.auto_round_off,
        )
        doc.sub_total = totals.sub_total
        doc.discount_amount = totals.discount_amount
        doc.igst_amount = totals.igst_amount
        doc.cgst_amount = totals.cgst_amount
        doc.sgst_amount = totals.sgst_amount
        doc.total_tax = totals.total_tax
        doc.shipping_charge = totals.shipping_charge
        doc.round_off = totals.round_off
        doc.total_amount = totals.total_amount
        if is_settleable(doc.document_type):
            doc.balance_due = self._totals.compute_balance_due(
                totals.total_amount, doc.amount_paid or ZERO,
            )
        else:
            doc.balance_due = ZERO

    def _apply_action(
        self,
        document_id: UUID,
        action: str,
        event: str,
        target: str | None = None,
    ) -> FinancialDocument:
        try:
            with LogContext.bind(document_id=str(document_id)):
                doc = self._lock(document_id)
                previous = doc.status
                doc.status = transition(doc.document_type, previous, action, target=target)
                doc.updated_by_id = self._actor_id
                if previous == DocumentStatus.DRAFT.value and action in ("finalize", "send"):
                    doc.committed_at = self._clock.now_utc()
                if doc.status == DocumentStatus.CANCELLED.value:
                    doc.cancelled_at = self._clock.now_utc()
                self._session.flush()
                self._session.commit()
                logger.info(event, extra={
                    "document_type": doc.document_type,
                    "document_number": doc.document_number,
                    "from_status": previous,
                    "to_status": doc.status,
                })
                return doc
        except Exception:
            self._session.rollback()
            raise
