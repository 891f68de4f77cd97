"""
Tests for DocumentService.

Covers:
- Party registration and numbering
- Document creation with GST lines and totals
- Draft-only edits
- Lifecycle transitions per document type
- Marking overdue documents and rendering
"""

from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from books_config import BooksConfig
from books_kernel.domain.document_status import DocumentType, PartyType
from books_kernel.exceptions import (
    DocumentNotEditableError,
    DocumentNotFoundError,
    InvalidStatusTransitionError,
    PartyNotFoundError,
    ValidationError,
)
from books_services.document_service import DocumentService
from tests.conftest import TODAY, line


class TestParties:

    def test_codes_are_sequential_per_type(self, documents):
        first = documents.create_party(PartyType.CUSTOMER, "One")
        second = documents.create_party("customer", "Two")
        vendor = documents.create_party(PartyType.VENDOR, "Three")

        assert first.party_code == "CUST-0001"
        assert second.party_code == "CUST-0002"
        assert vendor.party_code == "VEND-0001"
        assert first.currency_code == "INR"

    def test_explicit_code_kept(self, documents):
        party = documents.create_party(PartyType.VENDOR, "Steel", party_code="V-STEEL")

        assert party.party_code == "V-STEEL"

    def test_unknown_payment_terms_rejected(self, documents):
        with pytest.raises(ValidationError) as exc_info:
            documents.create_party(PartyType.CUSTOMER, "Odd Terms", payment_terms_days=20)

        assert exc_info.value.field == "payment_terms_days"

    @pytest.mark.parametrize(("party_type", "name"), [("supplier", "X"), ("customer", "  ")])
    def test_invalid_party(self, documents, party_type, name):
        with pytest.raises(ValidationError):
            documents.create_party(party_type, name)

    def test_actor_required(self, session):
        with pytest.raises(ValueError):
            DocumentService(session, actor_id=None)


class TestCreateDocument:

    def test_intra_jurisdiction_invoice(self, documents, customer):
        doc = documents.create_document(
            DocumentType.INVOICE, customer.id, [line("500", "250", "5")],
        )

        assert doc.document_number == "INV-0001"
        assert doc.status == "Draft"
        assert doc.place_of_supply == "Maharashtra"
        assert doc.sub_total == Decimal("125000.00")
        assert doc.cgst_amount == Decimal("3125.00")
        assert doc.sgst_amount == Decimal("3125.00")
        assert doc.igst_amount == Decimal("0")
        assert doc.total_tax == Decimal("6250.00")
        assert doc.total_amount == Decimal("131250.00")
        assert doc.balance_due == Decimal("131250.00")
        assert doc.amount_paid == Decimal("0")
        assert doc.due_date == TODAY + timedelta(days=30)

    def test_cross_jurisdiction_invoice(self, documents, other_customer):
        doc = documents.create_document(
            DocumentType.INVOICE, other_customer.id, [line("500", "250", "5")],
        )

        assert doc.igst_amount == Decimal("6250.00")
        assert doc.cgst_amount == Decimal("0")
        assert doc.due_date == TODAY + timedelta(days=15)

    def test_export_carries_no_tax(self, documents):
        foreign = documents.create_party(PartyType.CUSTOMER, "Overseas Buyer", currency_code="USD")

        doc = documents.create_document(
            DocumentType.INVOICE, foreign.id, [line("10", "100", "18")],
            is_export=True, exchange_rate="83.25",
        )

        assert doc.place_of_supply == "Other Territory"
        assert doc.currency_code == "USD"
        assert doc.total_tax == Decimal("0")
        assert doc.total_amount == Decimal("1000.00")

    def test_place_of_supply_from_gstin(self, documents):
        party = documents.create_party(PartyType.CUSTOMER, "Gujarat Co", gstin="24AAAAA0000A1Z5")

        doc = documents.create_document(DocumentType.INVOICE, party.id, [line("1", "100", "18")])

        assert doc.place_of_supply == "Gujarat"
        assert doc.igst_amount == Decimal("18.00")

    def test_header_charges(self, documents, customer):
        doc = documents.create_document(
            DocumentType.INVOICE, customer.id, [line("1", "1000", "18")],
            discount_amount="100", shipping_charge="50", round_off="0.25",
        )

        assert doc.total_amount == Decimal("1130.25")

    def test_lines_accept_dicts_and_keep_order(self, documents, customer):
        doc = documents.create_document(
            DocumentType.INVOICE, customer.id,
            [
                {"item_reference": "B", "quantity": "2", "rate": "10", "tax_rate": "12"},
                {"item_reference": "A", "quantity": "1", "rate": "5"},
            ],
        )

        assert [ln.item_reference for ln in doc.lines] == ["B", "A"]
        assert [ln.sort_order for ln in doc.lines] == [0, 1]
        assert doc.total_amount == Decimal("27.40")

    def test_numbers_per_type(self, documents, customer, vendor):
        a = documents.create_document(DocumentType.INVOICE, customer.id, [line()])
        b = documents.create_document(DocumentType.INVOICE, customer.id, [line()])
        bill = documents.create_document(DocumentType.BILL, vendor.id, [line()])
        quote = documents.create_document(DocumentType.QUOTATION, customer.id, [line()])

        assert (a.document_number, b.document_number) == ("INV-0001", "INV-0002")
        assert bill.document_number == "BILL-0001"
        assert quote.document_number == "QT-0001"

    def test_quotation_has_no_balance(self, documents, customer):
        quote = documents.create_document(DocumentType.QUOTATION, customer.id, [line()])

        assert quote.total_amount == Decimal("1180.00")
        assert quote.balance_due == Decimal("0")
        assert quote.due_date is None

    def test_auto_round_off(self, session, clock, actor_id, customer):
        service = DocumentService(
            session, BooksConfig(auto_round_off=True), clock, actor_id=actor_id,
        )

        doc = service.create_document(DocumentType.INVOICE, customer.id, [line("1", "99.40", "0")])

        assert doc.round_off == Decimal("-0.40")
        assert doc.total_amount == Decimal("99.00")

    def test_wrong_party_type(self, documents, vendor):
        with pytest.raises(ValidationError) as exc_info:
            documents.create_document(DocumentType.INVOICE, vendor.id, [line()])

        assert exc_info.value.field == "party_id"

    def test_requires_lines(self, documents, customer):
        with pytest.raises(ValidationError):
            documents.create_document(DocumentType.INVOICE, customer.id, [])

    def test_unknown_party(self, documents):
        with pytest.raises(PartyNotFoundError):
            documents.create_document(DocumentType.INVOICE, uuid4(), [line()])

    def test_unknown_type(self, documents, customer):
        with pytest.raises(ValidationError):
            documents.create_document("Receipt", customer.id, [line()])

    def test_failure_leaves_no_document(self, documents, customer, session):
        with pytest.raises(ValidationError):
            documents.create_document(
                DocumentType.INVOICE, customer.id, [line()], shipping_charge="-5",
            )

        ok = documents.create_document(DocumentType.INVOICE, customer.id, [line()])
        assert ok.document_number == "INV-0001"

    def test_logs_creation(self, documents, customer, captured_logs):
        doc = documents.create_document(DocumentType.INVOICE, customer.id, [line()])

        created = [r for r in captured_logs() if r["message"] == "document_created"]
        assert created[0]["document_number"] == doc.document_number


class TestDraftEdits:

    def test_replace_lines_recomputes(self, documents, customer):
        doc = documents.create_document(DocumentType.INVOICE, customer.id, [line("1", "1000", "18")])

        doc = documents.replace_lines(doc.id, [line("2", "1000", "18"), line("1", "500", "0")])

        assert len(doc.lines) == 2
        assert doc.sub_total == Decimal("2500.00")
        assert doc.total_tax == Decimal("360.00")
        assert doc.balance_due == Decimal("2860.00")

    def test_update_charges_keeps_lines(self, documents, customer):
        doc = documents.create_document(
            DocumentType.INVOICE, customer.id, [line("1", "1000", "18")], shipping_charge="20",
        )

        doc = documents.update_charges(doc.id, discount_amount="80")

        assert doc.shipping_charge == Decimal("20.00")
        assert doc.total_amount == Decimal("1120.00")

    def test_edits_rejected_after_finalize(self, documents, make_invoice):
        invoice = make_invoice()

        with pytest.raises(DocumentNotEditableError):
            documents.replace_lines(invoice.id, [line()])
        with pytest.raises(DocumentNotEditableError):
            documents.update_charges(invoice.id, shipping_charge="5")

    def test_missing_document(self, documents):
        with pytest.raises(DocumentNotFoundError):
            documents.replace_lines(uuid4(), [line()])


class TestTransitions:

    def test_invoice_finalize_then_send(self, documents, make_invoice):
        invoice = make_invoice(finalize=False)

        assert documents.finalize(invoice.id).status == "Final"
        assert documents.send(invoice.id).status == "Sent"

    def test_invoice_send_from_draft(self, documents, make_invoice):
        invoice = make_invoice(finalize=False)

        assert documents.send(invoice.id).status == "Sent"

    def test_bill_finalizes_to_pending(self, make_bill):
        assert make_bill().status == "Pending"

    def test_finalize_twice_rejected(self, documents, make_invoice):
        invoice = make_invoice()

        with pytest.raises(InvalidStatusTransitionError):
            documents.finalize(invoice.id)

    def test_quotation_accepted(self, documents, customer):
        quote = documents.create_document(DocumentType.QUOTATION, customer.id, [line()])

        documents.send(quote.id)

        assert documents.accept_quotation(quote.id).status == "Accepted"

    def test_purchase_order_receipt(self, documents, vendor):
        po = documents.create_document(DocumentType.PURCHASE_ORDER, vendor.id, [line()])
        documents.finalize(po.id)

        assert documents.mark_po_received(po.id, fully=False).status == "Partial"
        assert documents.mark_po_received(po.id).status == "Received"

    def test_credit_note_issued(self, documents, customer):
        note = documents.create_document(DocumentType.CREDIT_NOTE, customer.id, [line()])

        assert documents.finalize(note.id).status == "Issued"
        assert note.document_number == "CN-0001"

    def test_cancel(self, documents, make_invoice, clock):
        invoice = make_invoice()

        cancelled = documents.cancel(invoice.id)

        assert cancelled.status == "Cancelled"
        assert cancelled.cancelled_at == clock.now_utc()

    def test_cancel_twice_rejected(self, documents, make_invoice):
        invoice = make_invoice()
        documents.cancel(invoice.id)

        with pytest.raises(InvalidStatusTransitionError):
            documents.cancel(invoice.id)

    def test_transition_logged_with_document_context(self, documents, make_invoice, captured_logs):
        invoice = make_invoice(finalize=False)

        documents.finalize(invoice.id)

        record = next(r for r in captured_logs() if r["message"] == "document_finalized")
        assert record["document_id"] == str(invoice.id)
        assert record["from_status"] == "Draft"
        assert record["to_status"] == "Final"


class TestMarkOverdue:

    def test_marks_past_due_committed_documents(self, documents, make_invoice, make_bill):
        past = TODAY - timedelta(days=5)
        overdue_invoice = make_invoice(due_date=past)
        draft_invoice = make_invoice(due_date=past, finalize=False)
        future_invoice = make_invoice(due_date=TODAY + timedelta(days=5))
        overdue_bill = make_bill(due_date=past)

        marked = documents.mark_overdue_documents()

        assert {d.id for d in marked} == {overdue_invoice.id, overdue_bill.id}
        assert documents.get_document(overdue_invoice.id).status == "Overdue"
        assert documents.get_document(draft_invoice.id).status == "Draft"
        assert documents.get_document(future_invoice.id).status == "Final"

    def test_due_today_is_not_overdue(self, documents, make_invoice):
        make_invoice(due_date=TODAY)

        assert documents.mark_overdue_documents() == []

    def test_idempotent(self, documents, make_invoice):
        make_invoice(due_date=TODAY - timedelta(days=1))

        assert len(documents.mark_overdue_documents()) == 1
        assert documents.mark_overdue_documents() == []


class TestRender:

    def test_render_payload(self, documents, customer):
        doc = documents.create_document(
            DocumentType.INVOICE, customer.id,
            [line("2", "500", "18", ref="A"), line("1", "100", "0", ref="B")],
            due_date=date(2024, 3, 1),
        )

        payload = documents.render_document(doc.id)

        assert payload["document_number"] == "INV-0001"
        assert payload["status"] == "Draft"
        assert payload["is_overdue"] is True
        assert payload["days_until_due"] == -14
        assert payload["total_amount"] == Decimal("1280.00")
        assert [ln["item_reference"] for ln in payload["lines"]] == ["A", "B"]
        assert payload["lines"][0]["cgst_amount"] == Decimal("90.00")
        assert payload["allocations"] == []

    def test_render_not_overdue_before_due(self, documents, make_invoice):
        invoice = make_invoice(due_date=TODAY + timedelta(days=1))

        payload = documents.render_document(invoice.id)

        assert payload["is_overdue"] is False
        assert payload["days_until_due"] == 1

    def test_render_missing(self, documents):
        with pytest.raises(DocumentNotFoundError):
            documents.render_document(uuid4())
