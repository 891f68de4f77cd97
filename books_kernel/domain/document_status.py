"""
Document lifecycle state machines.

One Workflow per document type.  Settlement documents (invoices, bills,
credit and debit notes) move through Partial/Paid as allocations are
applied and reversed; quotations and purchase orders carry no settlement.

Overdue has two representations that are never merged:
- the stored ``Overdue`` status, set explicitly by ``mark_overdue``;
- the derived condition ``is_effectively_overdue``, evaluated at read time
  from the due date, the balance and the stored status.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum

from books_kernel.domain.money import is_settled
from books_kernel.exceptions import InvalidStatusTransitionError
from books_kernel.logging_config import get_logger

logger = get_logger("domain.document_status")


class DocumentType(str, Enum):
    INVOICE = "Invoice"
    BILL = "Bill"
    CREDIT_NOTE = "CreditNote"
    DEBIT_NOTE = "DebitNote"
    QUOTATION = "Quotation"
    PURCHASE_ORDER = "PurchaseOrder"


class DocumentStatus(str, Enum):
    DRAFT = "Draft"
    FINAL = "Final"
    SENT = "Sent"
    PENDING = "Pending"
    ISSUED = "Issued"
    PARTIAL = "Partial"
    PAID = "Paid"
    OVERDUE = "Overdue"
    ACCEPTED = "Accepted"
    RECEIVED = "Received"
    CANCELLED = "Cancelled"


class PartyType(str, Enum):
    CUSTOMER = "customer"
    VENDOR = "vendor"


class PaymentDirection(str, Enum):
    RECEIVED = "Received"
    MADE = "Made"


class PaymentStatus(str, Enum):
    RECEIVED = "Received"
    PAID = "Paid"
    VOID = "Void"


class ExpenseStatus(str, Enum):
    PENDING = "Pending"
    PAID = "Paid"
    REJECTED = "Rejected"


@dataclass(frozen=True)
class Transition:
    """A valid state transition."""
    from_state: str
    to_state: str
    action: str


@dataclass(frozen=True)
class Workflow:
    """A state machine definition."""
    name: str
    description: str
    initial_state: str
    committed_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    settles: bool = True

    def targets(self, from_state: str, action: str) -> tuple[str, ...]:
        return tuple(
            t.to_state for t in self.transitions
            if t.from_state == from_state and t.action == action
        )

    def allows(self, from_state: str, action: str, to_state: str) -> bool:
        return to_state in self.targets(from_state, action)


S = DocumentStatus

DRAFT = S.DRAFT.value
PARTIAL = S.PARTIAL.value
PAID = S.PAID.value
OVERDUE = S.OVERDUE.value
CANCELLED = S.CANCELLED.value


def _settlement_transitions(
    committed: str,
    payable_states: tuple[str, ...],
    overdue_from: tuple[str, ...],
) -> tuple[Transition, ...]:
    """apply/reverse payment, mark_overdue and cancel rows shared by settlement types."""
    rows: list[Transition] = []
    for state in payable_states + (PARTIAL,):
        rows.append(Transition(state, PARTIAL, "apply_payment"))
        rows.append(Transition(state, PAID, "apply_payment"))
    for state in (PARTIAL, PAID):
        rows.append(Transition(state, PARTIAL, "reverse_payment"))
        rows.append(Transition(state, committed, "reverse_payment"))
        # settled while still a draft
        rows.append(Transition(state, DRAFT, "reverse_payment"))
    rows.append(Transition(OVERDUE, OVERDUE, "reverse_payment"))
    for state in overdue_from:
        rows.append(Transition(state, OVERDUE, "mark_overdue"))
    for state in payable_states + (PARTIAL,):
        if state != CANCELLED:
            rows.append(Transition(state, CANCELLED, "cancel"))
    return tuple(rows)


INVOICE_WORKFLOW = Workflow(
    name="invoice",
    description="Customer invoice lifecycle",
    initial_state=DRAFT,
    committed_state=S.FINAL.value,
    states=(DRAFT, S.FINAL.value, S.SENT.value, PARTIAL, PAID, OVERDUE, CANCELLED),
    transitions=(
        Transition(DRAFT, S.FINAL.value, "finalize"),
        Transition(DRAFT, S.SENT.value, "send"),
        Transition(S.FINAL.value, S.SENT.value, "send"),
    ) + _settlement_transitions(
        committed=S.FINAL.value,
        payable_states=(DRAFT, S.FINAL.value, S.SENT.value, OVERDUE),
        overdue_from=(S.FINAL.value, S.SENT.value, PARTIAL),
    ),
)

BILL_WORKFLOW = Workflow(
    name="bill",
    description="Vendor bill lifecycle",
    initial_state=DRAFT,
    committed_state=S.PENDING.value,
    states=(DRAFT, S.PENDING.value, PARTIAL, PAID, OVERDUE, CANCELLED),
    transitions=(
        Transition(DRAFT, S.PENDING.value, "finalize"),
    ) + _settlement_transitions(
        committed=S.PENDING.value,
        payable_states=(DRAFT, S.PENDING.value, OVERDUE),
        overdue_from=(S.PENDING.value, PARTIAL),
    ),
)


def _note_workflow(name: str, description: str) -> Workflow:
    return Workflow(
        name=name,
        description=description,
        initial_state=DRAFT,
        committed_state=S.ISSUED.value,
        states=(DRAFT, S.ISSUED.value, PARTIAL, PAID, OVERDUE, CANCELLED),
        transitions=(
            Transition(DRAFT, S.ISSUED.value, "finalize"),
        ) + _settlement_transitions(
            committed=S.ISSUED.value,
            payable_states=(DRAFT, S.ISSUED.value, OVERDUE),
            overdue_from=(S.ISSUED.value, PARTIAL),
        ),
    )


CREDIT_NOTE_WORKFLOW = _note_workflow("credit_note", "Credit note issued to a customer")
DEBIT_NOTE_WORKFLOW = _note_workflow("debit_note", "Debit note raised on a vendor")

QUOTATION_WORKFLOW = Workflow(
    name="quotation",
    description="Customer quotation; never settled",
    initial_state=DRAFT,
    committed_state=S.SENT.value,
    states=(DRAFT, S.SENT.value, S.ACCEPTED.value, CANCELLED),
    transitions=(
        Transition(DRAFT, S.SENT.value, "finalize"),
        Transition(DRAFT, S.SENT.value, "send"),
        Transition(S.SENT.value, S.ACCEPTED.value, "accept"),
        Transition(DRAFT, CANCELLED, "cancel"),
        Transition(S.SENT.value, CANCELLED, "cancel"),
    ),
    settles=False,
)

PURCHASE_ORDER_WORKFLOW = Workflow(
    name="purchase_order",
    description="Purchase order; receipt-tracked, never settled",
    initial_state=DRAFT,
    committed_state=S.ISSUED.value,
    states=(DRAFT, S.ISSUED.value, PARTIAL, S.RECEIVED.value, CANCELLED),
    transitions=(
        Transition(DRAFT, S.ISSUED.value, "finalize"),
        Transition(S.ISSUED.value, PARTIAL, "receive"),
        Transition(S.ISSUED.value, S.RECEIVED.value, "receive"),
        Transition(PARTIAL, S.RECEIVED.value, "receive"),
        Transition(DRAFT, CANCELLED, "cancel"),
        Transition(S.ISSUED.value, CANCELLED, "cancel"),
        Transition(PARTIAL, CANCELLED, "cancel"),
    ),
    settles=False,
)

WORKFLOWS: dict[DocumentType, Workflow] = {
    DocumentType.INVOICE: INVOICE_WORKFLOW,
    DocumentType.BILL: BILL_WORKFLOW,
    DocumentType.CREDIT_NOTE: CREDIT_NOTE_WORKFLOW,
    DocumentType.DEBIT_NOTE: DEBIT_NOTE_WORKFLOW,
    DocumentType.QUOTATION: QUOTATION_WORKFLOW,
    DocumentType.PURCHASE_ORDER: PURCHASE_ORDER_WORKFLOW,
}

# Counterparty kind per document type
DOCUMENT_PARTY_TYPE: dict[DocumentType, PartyType] = {
    DocumentType.INVOICE: PartyType.CUSTOMER,
    DocumentType.CREDIT_NOTE: PartyType.CUSTOMER,
    DocumentType.QUOTATION: PartyType.CUSTOMER,
    DocumentType.BILL: PartyType.VENDOR,
    DocumentType.DEBIT_NOTE: PartyType.VENDOR,
    DocumentType.PURCHASE_ORDER: PartyType.VENDOR,
}

# Payment direction that settles each document type.  Credit notes are
# refunded to the customer; debit notes are refunded by the vendor.
SETTLING_DIRECTION: dict[DocumentType, PaymentDirection] = {
    DocumentType.INVOICE: PaymentDirection.RECEIVED,
    DocumentType.DEBIT_NOTE: PaymentDirection.RECEIVED,
    DocumentType.BILL: PaymentDirection.MADE,
    DocumentType.CREDIT_NOTE: PaymentDirection.MADE,
}

logger.debug(
    "document_workflows_registered",
    extra={
        "workflows": [w.name for w in WORKFLOWS.values()],
        "transition_count": sum(len(w.transitions) for w in WORKFLOWS.values()),
    },
)


def workflow_for(document_type: DocumentType | str) -> Workflow:
    return WORKFLOWS[DocumentType(document_type)]


def transition(
    document_type: DocumentType | str,
    current: str,
    action: str,
    target: str | None = None,
) -> str:
    """
    Resolve the status reached by ``action`` from ``current``.

    When the action has several possible targets (apply_payment, receive)
    the caller names the target; it must be one the workflow defines.

    Raises:
        InvalidStatusTransitionError: no matching transition.
    """
    doc_type = DocumentType(document_type)
    workflow = WORKFLOWS[doc_type]
    targets = workflow.targets(current, action)
    if target is None and len(targets) == 1:
        return targets[0]
    if target is not None and target in targets:
        return target
    raise InvalidStatusTransitionError(doc_type.value, current, action)


def is_settleable(document_type: DocumentType | str) -> bool:
    return workflow_for(document_type).settles


def open_statuses(document_type: DocumentType | str) -> frozenset[str]:
    """Statuses in which a past-due balance counts as overdue."""
    workflow = workflow_for(document_type)
    if not workflow.settles:
        return frozenset()
    states = {DRAFT, workflow.committed_state, PARTIAL}
    if DocumentType(document_type) is DocumentType.INVOICE:
        states.add(S.SENT.value)
    return frozenset(states)


def is_effectively_overdue(
    document_type: DocumentType | str,
    status: str,
    due_date: date | None,
    balance_due: Decimal,
    as_of: date,
) -> bool:
    """Stored Overdue, or past due with a positive balance in an open status."""
    if status == OVERDUE:
        return True
    if due_date is None or balance_due <= 0:
        return False
    return due_date < as_of and status in open_statuses(document_type)


def settlement_target(
    workflow: Workflow,
    current: str,
    action: str,
    amount_paid: Decimal,
    balance_due: Decimal,
    committed: bool = True,
) -> str:
    """
    Status a settlement document lands in after its paid amount changes.

    Paid when nothing remains, Partial while something has been paid,
    otherwise back to the committed status, or to Draft for a document
    that was never finalized or sent.  Reversing a payment on an
    explicitly Overdue document leaves it Overdue.
    """
    if amount_paid > 0 and is_settled(balance_due):
        return PAID
    if action == "reverse_payment" and current == OVERDUE:
        return OVERDUE
    if amount_paid > 0:
        return PARTIAL
    return workflow.committed_state if committed else DRAFT
