"""
Typed exception hierarchy for the books core.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from BooksCoreError:

    BooksCoreError (base)
    |
    +-- ValidationError
    |   +-- CounterpartyMismatchError
    |   +-- CurrencyMismatchError
    |   +-- InvalidReportQueryError
    |
    +-- InvariantViolationError
    |   +-- NegativeBalanceError
    |   +-- InsufficientBalanceError
    |   +-- AllocationExceedsPaymentError
    |
    +-- NotFoundError
    |   +-- DocumentNotFoundError
    |   +-- PaymentNotFoundError
    |   +-- AllocationNotFoundError
    |   +-- PartyNotFoundError
    |
    +-- StateConflictError
        +-- DocumentNotOpenError
        +-- DocumentNotEditableError
        +-- DocumentNotSettleableError
        +-- InvalidStatusTransitionError
        +-- PaymentVoidedError
        +-- AllocationAlreadyReversedError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                          | When Raised
----------------|-------------------------------|-----------------------------------
Validation      | VALIDATION_ERROR              | Bad input (negative qty, bad rate)
                | COUNTERPARTY_MISMATCH         | Payment and document parties differ
                | CURRENCY_MISMATCH             | Payment and document currencies differ
                | INVALID_REPORT_QUERY          | Bad dates / period in a report query
----------------|-------------------------------|-----------------------------------
Invariant       | INVARIANT_VIOLATION           | A numeric invariant would break
                | NEGATIVE_BALANCE              | balance_due below -tolerance
                | INSUFFICIENT_BALANCE          | Allocation exceeds balance_due
                | ALLOCATION_EXCEEDS_PAYMENT    | Allocations exceed payment amount
----------------|-------------------------------|-----------------------------------
Not found       | DOCUMENT_NOT_FOUND            | Document ID doesn't exist
                | PAYMENT_NOT_FOUND             | Payment ID doesn't exist
                | ALLOCATION_NOT_FOUND          | Allocation ID doesn't exist
                | PARTY_NOT_FOUND               | Customer/vendor ID doesn't exist
----------------|-------------------------------|-----------------------------------
State conflict  | DOCUMENT_NOT_OPEN             | Allocating to Paid/Cancelled doc
                | DOCUMENT_NOT_EDITABLE         | Editing a non-Draft document
                | DOCUMENT_NOT_SETTLEABLE       | Allocating to a quotation or PO
                | INVALID_STATUS_TRANSITION     | Undefined workflow transition
                | PAYMENT_VOIDED                | Allocating from a voided payment
                | ALLOCATION_ALREADY_REVERSED   | Reversing twice

Validation and state-conflict errors carry enough structured data for the
caller to correct the request.  Invariant violations abort the unit of work;
amounts are never clamped to make an operation succeed.
"""

from decimal import Decimal


class BooksCoreError(Exception):
    """
    Base exception for all books core errors.

    All subclasses carry a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "BOOKS_CORE_ERROR"


# Validation


class ValidationError(BooksCoreError):
    """Input failed validation before any computation took place."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None, value: object = None):
        self.field = field
        self.value = value
        super().__init__(message)


class CounterpartyMismatchError(ValidationError):
    """Payment counterparty differs from the document counterparty."""

    code: str = "COUNTERPARTY_MISMATCH"

    def __init__(self, payment_party_id: str, document_party_id: str):
        self.payment_party_id = payment_party_id
        self.document_party_id = document_party_id
        super().__init__(
            f"Payment party {payment_party_id} does not match "
            f"document party {document_party_id}",
            field="party_id",
        )


class CurrencyMismatchError(ValidationError):
    """Payment currency differs from the document currency."""

    code: str = "CURRENCY_MISMATCH"

    def __init__(self, payment_currency: str, document_currency: str):
        self.payment_currency = payment_currency
        self.document_currency = document_currency
        super().__init__(
            f"Payment currency {payment_currency} does not match "
            f"document currency {document_currency}",
            field="currency_code",
        )


class InvalidReportQueryError(ValidationError):
    """Report query parameters are malformed or inconsistent."""

    code: str = "INVALID_REPORT_QUERY"


# Invariants


class InvariantViolationError(BooksCoreError):
    """A numeric invariant would be broken by the requested operation."""

    code: str = "INVARIANT_VIOLATION"


class NegativeBalanceError(InvariantViolationError):
    """balance_due fell below the configured rounding tolerance."""

    code: str = "NEGATIVE_BALANCE"

    def __init__(self, total_amount: Decimal, amount_paid: Decimal, balance_due: Decimal):
        self.total_amount = total_amount
        self.amount_paid = amount_paid
        self.balance_due = balance_due
        super().__init__(
            f"Balance due {balance_due} is negative "
            f"(total {total_amount}, paid {amount_paid})"
        )


class InsufficientBalanceError(InvariantViolationError):
    """Allocation amount is larger than the document's balance due."""

    code: str = "INSUFFICIENT_BALANCE"

    def __init__(self, document_id: str, requested: Decimal, balance_due: Decimal):
        self.document_id = document_id
        self.requested = requested
        self.balance_due = balance_due
        super().__init__(
            f"Cannot allocate {requested} to document {document_id}: "
            f"balance due is {balance_due}"
        )


class AllocationExceedsPaymentError(InvariantViolationError):
    """Allocations from one payment would exceed the payment amount."""

    code: str = "ALLOCATION_EXCEEDS_PAYMENT"

    def __init__(
        self,
        payment_id: str,
        payment_amount: Decimal,
        already_allocated: Decimal,
        requested: Decimal,
    ):
        self.payment_id = payment_id
        self.payment_amount = payment_amount
        self.already_allocated = already_allocated
        self.requested = requested
        super().__init__(
            f"Payment {payment_id} of {payment_amount} already has "
            f"{already_allocated} allocated; cannot allocate {requested} more"
        )


# Not found


class NotFoundError(BooksCoreError):
    """A referenced record does not exist."""

    code: str = "NOT_FOUND"


class DocumentNotFoundError(NotFoundError):
    """Document with given ID was not found."""

    code: str = "DOCUMENT_NOT_FOUND"

    def __init__(self, document_id: str):
        self.document_id = document_id
        super().__init__(f"Document not found: {document_id}")


class PaymentNotFoundError(NotFoundError):
    """Payment with given ID was not found."""

    code: str = "PAYMENT_NOT_FOUND"

    def __init__(self, payment_id: str):
        self.payment_id = payment_id
        super().__init__(f"Payment not found: {payment_id}")


class AllocationNotFoundError(NotFoundError):
    """Allocation with given ID was not found."""

    code: str = "ALLOCATION_NOT_FOUND"

    def __init__(self, allocation_id: str):
        self.allocation_id = allocation_id
        super().__init__(f"Allocation not found: {allocation_id}")


class PartyNotFoundError(NotFoundError):
    """Customer or vendor with given ID was not found."""

    code: str = "PARTY_NOT_FOUND"

    def __init__(self, party_id: str):
        self.party_id = party_id
        super().__init__(f"Party not found: {party_id}")


# State conflicts


class StateConflictError(BooksCoreError):
    """The record's current state does not allow the requested operation."""

    code: str = "STATE_CONFLICT"


class DocumentNotOpenError(StateConflictError):
    """Document is Paid or Cancelled and cannot accept allocations."""

    code: str = "DOCUMENT_NOT_OPEN"

    def __init__(self, document_id: str, status: str):
        self.document_id = document_id
        self.status = status
        super().__init__(f"Document {document_id} is {status} and not open for settlement")


class DocumentNotEditableError(StateConflictError):
    """Lines and header charges may only change while a document is Draft."""

    code: str = "DOCUMENT_NOT_EDITABLE"

    def __init__(self, document_id: str, status: str):
        self.document_id = document_id
        self.status = status
        super().__init__(f"Document {document_id} is {status}; only Draft documents can be edited")


class DocumentNotSettleableError(StateConflictError):
    """Quotations and purchase orders never carry settlement."""

    code: str = "DOCUMENT_NOT_SETTLEABLE"

    def __init__(self, document_id: str, document_type: str):
        self.document_id = document_id
        self.document_type = document_type
        super().__init__(f"{document_type} {document_id} does not accept payments")


class InvalidStatusTransitionError(StateConflictError):
    """The workflow has no transition for the requested action."""

    code: str = "INVALID_STATUS_TRANSITION"

    def __init__(self, document_type: str, from_status: str, action: str):
        self.document_type = document_type
        self.from_status = from_status
        self.action = action
        super().__init__(
            f"{document_type} in status {from_status} does not allow '{action}'"
        )


class PaymentVoidedError(StateConflictError):
    """Voided payments cannot be allocated or voided again."""

    code: str = "PAYMENT_VOIDED"

    def __init__(self, payment_id: str):
        self.payment_id = payment_id
        super().__init__(f"Payment {payment_id} is void")


class AllocationAlreadyReversedError(StateConflictError):
    """Allocation was already reversed."""

    code: str = "ALLOCATION_ALREADY_REVERSED"

    def __init__(self, allocation_id: str):
        self.allocation_id = allocation_id
        super().__init__(f"Allocation {allocation_id} is already reversed")
