"""
Tests for the party statement builder.

Covers:
- Customer and vendor sign conventions
- Opening balance folding entries before the window
- Running balance and closing balance agreement
- Cancelled documents and void payments
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from books_engines.statement import StatementBuilder
from books_kernel.domain.dtos import DocumentSnapshot, PartySnapshot, PaymentSnapshot

START = date(2024, 3, 1)
END = date(2024, 3, 31)


def _party(party_type="customer", opening="0"):
    return PartySnapshot(
        id=uuid4(),
        party_code="CUST-0001" if party_type == "customer" else "VEND-0001",
        party_type=party_type,
        name="Acme Traders",
        currency_code="INR",
        opening_balance=Decimal(opening),
    )


def _doc(document_type, number, total, document_date, status="Final"):
    return DocumentSnapshot(
        id=uuid4(),
        document_type=document_type,
        document_number=number,
        party_id=uuid4(),
        status=status,
        document_date=document_date,
        due_date=None,
        currency_code="INR",
        total_amount=Decimal(total),
        amount_paid=Decimal("0"),
        balance_due=Decimal(total),
    )


def _payment(number, amount, payment_date, direction="Received", status="Received", mode=None):
    return PaymentSnapshot(
        id=uuid4(),
        payment_number=number,
        direction=direction,
        party_id=uuid4(),
        amount=Decimal(amount),
        payment_date=payment_date,
        status=status,
        currency_code="INR",
        mode=mode,
    )


def _build(party, documents=(), payments=(), start=START, end=END):
    return StatementBuilder().build(
        party=party,
        documents=list(documents),
        payments=list(payments),
        start_date=start,
        end_date=end,
    )


class TestCustomerStatement:

    def test_running_balance(self):
        statement = _build(
            _party(opening="100"),
            documents=[
                _doc("Invoice", "INV-0001", "1000", date(2024, 3, 5)),
                _doc("CreditNote", "CN-0001", "200", date(2024, 3, 10)),
            ],
            payments=[_payment("PR-0001", "500", date(2024, 3, 12), mode="UPI")],
        )

        assert statement.opening_balance == Decimal("100.00")
        assert [(ln.entry_type, ln.debit, ln.credit, ln.running_balance) for ln in statement.lines] == [
            ("invoice", Decimal("1000.00"), Decimal("0"), Decimal("1100.00")),
            ("credit-note", Decimal("0"), Decimal("200.00"), Decimal("900.00")),
            ("payment", Decimal("0"), Decimal("500.00"), Decimal("400.00")),
        ]
        assert statement.lines[2].description == "UPI"
        assert statement.closing_balance == Decimal("400.00")
        assert statement.total_debit == Decimal("1000.00")
        assert statement.total_credit == Decimal("700.00")

    def test_entries_before_window_fold_into_opening(self):
        statement = _build(
            _party(),
            documents=[
                _doc("Invoice", "INV-0001", "800", date(2024, 2, 10)),
                _doc("Invoice", "INV-0002", "300", date(2024, 3, 2)),
            ],
            payments=[_payment("PR-0001", "500", date(2024, 2, 20))],
        )

        assert statement.opening_balance == Decimal("300.00")
        assert [ln.document_number for ln in statement.lines] == ["INV-0002"]
        assert statement.closing_balance == Decimal("600.00")

    def test_refund_paid_out_is_a_debit(self):
        statement = _build(
            _party(),
            documents=[_doc("CreditNote", "CN-0001", "150", date(2024, 3, 3))],
            payments=[_payment("PM-0001", "150", date(2024, 3, 4), direction="Made", status="Paid")],
        )

        assert statement.lines[1].debit == Decimal("150.00")
        assert statement.lines[1].description == "Payment Made"
        assert statement.closing_balance == Decimal("0.00")

    def test_cancelled_void_and_later_entries_skipped(self):
        statement = _build(
            _party(),
            documents=[
                _doc("Invoice", "INV-0001", "1000", date(2024, 3, 5), status="Cancelled"),
                _doc("Invoice", "INV-0002", "400", date(2024, 4, 2)),
                _doc("Quotation", "QT-0001", "900", date(2024, 3, 5), status="Sent"),
            ],
            payments=[_payment("PR-0001", "250", date(2024, 3, 6), status="Void")],
        )

        assert statement.lines == ()
        assert statement.closing_balance == Decimal("0.00")

    def test_same_day_documents_before_payments(self):
        day = date(2024, 3, 8)
        statement = _build(
            _party(),
            documents=[_doc("Invoice", "INV-0002", "100", day), _doc("Invoice", "INV-0001", "50", day)],
            payments=[_payment("PR-0001", "150", day)],
        )

        assert [ln.document_number for ln in statement.lines] == ["INV-0001", "INV-0002", "PR-0001"]
        assert statement.lines[-1].running_balance == Decimal("0.00")


class TestVendorStatement:

    def test_bills_credit_payments_debit(self):
        statement = _build(
            _party("vendor", opening="50"),
            documents=[
                _doc("Bill", "BILL-0001", "700", date(2024, 3, 5)),
                _doc("DebitNote", "DN-0001", "100", date(2024, 3, 6)),
            ],
            payments=[
                _payment("PM-0001", "400", date(2024, 3, 7), direction="Made", status="Paid"),
                _payment("PR-0001", "20", date(2024, 3, 8)),
            ],
        )

        assert [ln.running_balance for ln in statement.lines] == [
            Decimal("750.00"), Decimal("650.00"), Decimal("250.00"), Decimal("270.00"),
        ]
        assert statement.closing_balance == Decimal("270.00")


class TestPayload:

    def test_as_dict(self):
        party = _party()
        payload = _build(
            party, documents=[_doc("Invoice", "INV-0001", "10", date(2024, 3, 5))],
        ).as_dict()

        assert payload["party"]["id"] == str(party.id)
        assert payload["period"] == {"start_date": "2024-03-01", "end_date": "2024-03-31"}
        assert payload["transactions"][0]["date"] == "2024-03-05"
        assert payload["summary"]["transaction_count"] == 1
        assert payload["closing_balance"] == Decimal("10.00")

    def test_inverted_window_rejected(self):
        with pytest.raises(ValueError):
            _build(_party(), start=END, end=START)
