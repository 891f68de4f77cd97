"""
Payment allocation service - records payments and applies them to
outstanding documents.

Locking:
    Every mutation locks the payment row first and then the document row
    with ``SELECT ... FOR UPDATE`` and holds both until commit.  Two
    concurrent allocations against one document serialize on the document
    lock, so the second one re-reads the reduced balance and fails the
    ``amount <= balance_due`` check instead of overdrawing it.  Multi-document
    requests (allocate_many, record_payment, void_payment) take document
    locks in document_id order.

Invariants enforced:
    - allocated_amount > 0 and <= the document's balance_due at the time
      of allocation.
    - Payment and document share counterparty and currency; the payment
      direction is the one that settles the document type.
    - The live allocations of a payment never exceed its amount (unless
      ``enforce_payment_allocation_limit`` is switched off).
    - document.amount_paid is the sum of its live allocations and
      balance_due = round2(total_amount - amount_paid).

Transaction boundary: public methods commit on success and roll back on
any exception, so a rejected allocation leaves no partial writes.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from books_config import BooksConfig
from books_kernel.domain.clock import Clock, SystemClock
from books_kernel.domain.document_status import (
    SETTLING_DIRECTION,
    DocumentStatus,
    DocumentType,
    PartyType,
    PaymentDirection,
    PaymentStatus,
    is_settleable,
    settlement_target,
    transition,
    workflow_for,
)
from books_kernel.domain.dtos import AllocationSnapshot, DocumentSnapshot, PaymentSnapshot
from books_kernel.domain.money import ZERO, round2, to_decimal, to_money
from books_kernel.exceptions import (
    AllocationAlreadyReversedError,
    AllocationExceedsPaymentError,
    AllocationNotFoundError,
    CounterpartyMismatchError,
    CurrencyMismatchError,
    DocumentNotFoundError,
    DocumentNotOpenError,
    DocumentNotSettleableError,
    InsufficientBalanceError,
    PartyNotFoundError,
    PaymentNotFoundError,
    PaymentVoidedError,
    ValidationError,
)
from books_kernel.logging_config import LogContext, get_logger
from books_kernel.models.document import FinancialDocument
from books_kernel.models.party import Party
from books_kernel.models.payment import Payment, PaymentAllocation
from books_kernel.selectors.document_selector import document_snapshot
from books_kernel.selectors.payment_selector import (
    PaymentSelector,
    allocation_snapshot,
    payment_snapshot,
)
from books_kernel.services.sequence_service import SequenceService, format_number
from books_engines.totals import TotalsCalculator

logger = get_logger("services.allocation")

_NUMBER_FORMAT_KEY = {
    PaymentDirection.RECEIVED: "PaymentReceived",
    PaymentDirection.MADE: "PaymentMade",
}

_INITIAL_PAYMENT_STATUS = {
    PaymentDirection.RECEIVED: PaymentStatus.RECEIVED.value,
    PaymentDirection.MADE: PaymentStatus.PAID.value,
}


@dataclass(frozen=True)
class AllocationResult:
    """Outcome of applying or reversing one allocation."""

    allocation: AllocationSnapshot
    document: DocumentSnapshot
    previous_status: str

    @property
    def status_changed(self) -> bool:
        return self.previous_status != self.document.status


@dataclass(frozen=True)
class PaymentResult:
    """A recorded payment and the allocations applied with it."""

    payment: PaymentSnapshot
    allocations: tuple[AllocationResult, ...]

    @property
    def allocated_amount(self) -> Decimal:
        return round2(sum((r.allocation.allocated_amount for r in self.allocations), ZERO))


@dataclass(frozen=True)
class PaymentSummary:
    """
    Allocated and unallocated totals of one payment.

    excess_amount is what remains available for further allocation.
    """

    payment: PaymentSnapshot
    allocated_amount: Decimal
    excess_amount: Decimal
    allocations: tuple[AllocationSnapshot, ...]

    def as_dict(self) -> dict:
        return {
            "payment_id": str(self.payment.id),
            "payment_number": self.payment.payment_number,
            "direction": self.payment.direction,
            "status": self.payment.status,
            "amount": self.payment.amount,
            "allocated_amount": self.allocated_amount,
            "excess_amount": self.excess_amount,
            "allocations": [
                {
                    "id": str(a.id),
                    "document_id": str(a.document_id),
                    "allocated_amount": a.allocated_amount,
                }
                for a in self.allocations
            ],
        }


def parse_direction(value: PaymentDirection | str) -> PaymentDirection:
    try:
        return PaymentDirection(value)
    except ValueError:
        raise ValidationError(
            f"direction must be Received or Made, got {value!r}",
            field="direction",
            value=value,
        ) from None


class AllocationService:
    """
    Records payments, applies them to documents and reverses allocations.

    Engine composition:
    - TotalsCalculator: balance due after every change in amount_paid
    - Workflow / settlement_target: document status after settlement
    """

    def __init__(
        self,
        session: Session,
        config: BooksConfig | None = None,
        clock: Clock | None = None,
        actor_id: UUID | None = None,
    ):
        if actor_id is None:
            raise ValueError("actor_id is required for payment mutations")
        self._session = session
        self._config = config or BooksConfig.with_defaults()
        self._clock = clock or SystemClock()
        self._actor_id = actor_id
        self._sequences = SequenceService(session)
        self._payments = PaymentSelector(session)
        self._totals = TotalsCalculator(self._config.rounding_tolerance)

    # =========================================================================
    # Payments
    # =========================================================================

    def record_payment(
        self,
        direction: PaymentDirection | str,
        party_id: UUID,
        amount: Decimal | str | int | None = None,
        payment_date: date | None = None,
        mode: str | None = None,
        currency_code: str | None = None,
        exchange_rate: Decimal | str | int = Decimal("1"),
        original_amount: Decimal | str | int | None = None,
        reference_number: str | None = None,
        notes: str | None = None,
        allocations: Iterable[tuple[UUID, Decimal | str | int]] = (),
    ) -> PaymentResult:
        """
        Create a payment and apply the listed allocations atomically.

        When ``amount`` is omitted it is derived as
        round2(original_amount * exchange_rate).  Any failed allocation rolls
        back the payment as well.

        Raises:
            ValidationError: missing or non-positive amount, bad direction.
            PartyNotFoundError: unknown party.
            Any allocation error raised by ``allocate``.
        """
        try:
            kind = parse_direction(direction)
            party = self._session.get(Party, party_id)
            if party is None:
                raise PartyNotFoundError(str(party_id))

            exchange_rate = to_decimal(exchange_rate, "exchange_rate")
            if exchange_rate <= 0:
                raise ValidationError(
                    f"exchange_rate must be positive, got {exchange_rate}",
                    field="exchange_rate",
                    value=exchange_rate,
                )
            if original_amount is not None:
                original_amount = round2(to_decimal(original_amount, "original_amount"))
            if amount is None:
                if original_amount is None:
                    raise ValidationError(
                        "either amount or original_amount is required", field="amount",
                    )
                amount = round2(original_amount * exchange_rate)
            else:
                amount = to_money(amount)
            if amount <= 0:
                raise ValidationError(
                    f"payment amount must be positive, got {amount}",
                    field="amount",
                    value=amount,
                )

            fmt = self._config.number_format(_NUMBER_FORMAT_KEY[kind])
            number = format_number(
                fmt.prefix,
                self._sequences.next_value(f"payment.{kind.value}"),
                padding=fmt.padding,
                separator=fmt.separator,
            )
            is_customer = party.party_type == PartyType.CUSTOMER.value
            payment = Payment(
                payment_number=number,
                direction=kind.value,
                customer_id=party.id if is_customer else None,
                vendor_id=None if is_customer else party.id,
                amount=amount,
                payment_date=payment_date or self._clock.today(),
                mode=mode,
                status=_INITIAL_PAYMENT_STATUS[kind],
                currency_code=currency_code or party.currency_code or self._config.home_currency,
                exchange_rate=exchange_rate,
                original_amount=original_amount,
                reference_number=reference_number,
                notes=notes,
                created_by_id=self._actor_id,
            )
            self._session.add(payment)
            self._session.flush()

            with LogContext.bind(payment_id=str(payment.id)):
                logger.info("payment_recorded", extra={
                    "payment_number": payment.payment_number,
                    "direction": payment.direction,
                    "amount": str(payment.amount),
                    "party_id": str(party.id),
                })
                results = self._allocate_in_lock_order(payment.id, allocations)

            self._session.commit()
            return PaymentResult(payment=payment_snapshot(payment), allocations=results)
        except Exception:
            self._session.rollback()
            raise

    def void_payment(self, payment_id: UUID) -> tuple[AllocationResult, ...]:
        """
        Void a payment and reverse every live allocation it has.

        The payment row is kept with status Void.

        Raises:
            PaymentNotFoundError, PaymentVoidedError.
        """
        try:
            with LogContext.bind(payment_id=str(payment_id)):
                payment = self._lock_payment(payment_id)
                if payment.status == PaymentStatus.VOID.value:
                    raise PaymentVoidedError(str(payment_id))

                live = sorted(
                    self._payments.allocations_for_payment(payment.id),
                    key=lambda a: (str(a.document_id), str(a.id)),
                )
                results = tuple(self._reverse(payment, a.id) for a in live)

                payment.status = PaymentStatus.VOID.value
                payment.updated_by_id = self._actor_id
                self._session.flush()
                self._session.commit()
                logger.info("payment_voided", extra={
                    "payment_number": payment.payment_number,
                    "reversed_count": len(results),
                })
                return results
        except Exception:
            self._session.rollback()
            raise

    def payment_summary(self, payment_id: UUID) -> PaymentSummary:
        payment = self._session.get(Payment, payment_id)
        if payment is None:
            raise PaymentNotFoundError(str(payment_id))
        allocations = tuple(self._payments.allocations_for_payment(payment.id))
        allocated = round2(sum((a.allocated_amount for a in allocations), ZERO))
        snapshot = payment_snapshot(payment)
        return PaymentSummary(
            payment=snapshot,
            allocated_amount=allocated,
            excess_amount=round2(snapshot.amount - allocated),
            allocations=allocations,
        )

    # =========================================================================
    # Allocations
    # =========================================================================

    def allocate(
        self,
        payment_id: UUID,
        document_id: UUID,
        amount: Decimal | str | int,
    ) -> AllocationResult:
        """
        Apply part of a payment to one document.

        Raises:
            ValidationError: amount not positive or wrong payment direction.
            PaymentNotFoundError, DocumentNotFoundError.
            PaymentVoidedError: the payment is Void.
            DocumentNotSettleableError: quotation or purchase order.
            DocumentNotOpenError: the document is Paid or Cancelled.
            CounterpartyMismatchError, CurrencyMismatchError.
            InsufficientBalanceError: amount exceeds the balance due.
            AllocationExceedsPaymentError: the payment is fully allocated.
        """
        try:
            with LogContext.bind(payment_id=str(payment_id), document_id=str(document_id)):
                result = self._allocate(payment_id, document_id, amount)
            self._session.commit()
            return result
        except Exception:
            self._session.rollback()
            raise

    def allocate_many(
        self,
        payment_id: UUID,
        allocations: Sequence[tuple[UUID, Decimal | str | int]],
    ) -> tuple[AllocationResult, ...]:
        """Split one payment across several documents in one transaction."""
        try:
            with LogContext.bind(payment_id=str(payment_id)):
                results = self._allocate_in_lock_order(payment_id, allocations)
            self._session.commit()
            return results
        except Exception:
            self._session.rollback()
            raise

    def reverse_allocation(self, allocation_id: UUID) -> AllocationResult:
        """
        Reverse one allocation and restore the document's balance and status.

        Raises:
            AllocationNotFoundError, AllocationAlreadyReversedError.
        """
        try:
            allocation = self._session.get(PaymentAllocation, allocation_id)
            if allocation is None:
                raise AllocationNotFoundError(str(allocation_id))
            with LogContext.bind(payment_id=str(allocation.payment_id)):
                payment = self._lock_payment(allocation.payment_id)
                result = self._reverse(payment, allocation_id)
            self._session.commit()
            return result
        except Exception:
            self._session.rollback()
            raise

    # =========================================================================
    # Internals (flush only; callers own the commit)
    # =========================================================================

    def _lock_payment(self, payment_id: UUID) -> Payment:
        payment = self._session.execute(
            select(Payment)
            .where(Payment.id == payment_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if payment is None:
            raise PaymentNotFoundError(str(payment_id))
        return payment

    def _lock_document(self, document_id: UUID) -> FinancialDocument:
        doc = self._session.execute(
            select(FinancialDocument)
            .where(FinancialDocument.id == document_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if doc is None:
            raise DocumentNotFoundError(str(document_id))
        return doc

    def _allocate(
        self,
        payment_id: UUID,
        document_id: UUID,
        amount: Decimal | str | int,
    ) -> AllocationResult:
        amount = to_money(amount)
        if amount <= 0:
            raise ValidationError(
                f"allocation amount must be positive, got {amount}",
                field="amount",
                value=amount,
            )

        payment = self._lock_payment(payment_id)
        if payment.status == PaymentStatus.VOID.value:
            raise PaymentVoidedError(str(payment_id))
        doc = self._lock_document(document_id)

        doc_type = DocumentType(doc.document_type)
        if not is_settleable(doc_type):
            raise DocumentNotSettleableError(str(doc.id), doc.document_type)
        expected = SETTLING_DIRECTION[doc_type]
        if payment.direction != expected.value:
            raise ValidationError(
                f"{doc.document_type} is settled by {expected.value} payments, "
                f"got a {payment.direction} payment",
                field="direction",
                value=payment.direction,
            )
        if doc.status in (DocumentStatus.PAID.value, DocumentStatus.CANCELLED.value):
            raise DocumentNotOpenError(str(doc.id), doc.status)
        if payment.party_id != doc.party_id:
            raise CounterpartyMismatchError(str(payment.party_id), str(doc.party_id))
        if payment.currency_code != doc.currency_code:
            raise CurrencyMismatchError(payment.currency_code, doc.currency_code)

        balance_due = round2(doc.balance_due)
        if amount > balance_due:
            logger.warning("allocation_rejected_insufficient_balance", extra={
                "document_number": doc.document_number,
                "requested": str(amount),
                "balance_due": str(balance_due),
            })
            raise InsufficientBalanceError(str(doc.id), amount, balance_due)

        if self._config.enforce_payment_allocation_limit:
            already = self._payments.allocated_total(payment.id)
            if already + amount > round2(payment.amount):
                logger.warning("allocation_rejected_payment_exhausted", extra={
                    "payment_number": payment.payment_number,
                    "payment_amount": str(payment.amount),
                    "already_allocated": str(already),
                    "requested": str(amount),
                })
                raise AllocationExceedsPaymentError(
                    str(payment.id), round2(payment.amount), already, amount,
                )

        allocation = PaymentAllocation(
            payment_id=payment.id,
            document_id=doc.id,
            allocated_amount=amount,
            created_by_id=self._actor_id,
        )
        self._session.add(allocation)
        self._session.flush()

        previous = doc.status
        self._settle(doc, "apply_payment")

        logger.info("allocation_applied", extra={
            "allocation_id": str(allocation.id),
            "document_number": doc.document_number,
            "allocated_amount": str(amount),
            "balance_due": str(doc.balance_due),
            "from_status": previous,
            "to_status": doc.status,
        })
        return AllocationResult(
            allocation=allocation_snapshot(allocation),
            document=document_snapshot(doc),
            previous_status=previous,
        )

    def _allocate_in_lock_order(
        self,
        payment_id: UUID,
        allocations: Iterable[tuple[UUID, Decimal | str | int]],
    ) -> tuple[AllocationResult, ...]:
        """
        Apply several allocations, locking documents in document_id order.

        Results come back in the order the caller listed them.
        """
        requested = list(allocations)
        order = sorted(range(len(requested)), key=lambda i: str(requested[i][0]))
        results: dict[int, AllocationResult] = {}
        for index in order:
            document_id, amount = requested[index]
            results[index] = self._allocate(payment_id, document_id, amount)
        return tuple(results[index] for index in range(len(requested)))

    def _reverse(self, payment: Payment, allocation_id: UUID) -> AllocationResult:
        allocation = self._session.execute(
            select(PaymentAllocation)
            .where(PaymentAllocation.id == allocation_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if allocation is None:
            raise AllocationNotFoundError(str(allocation_id))
        if allocation.reversed_at is not None:
            raise AllocationAlreadyReversedError(str(allocation_id))

        doc = self._lock_document(allocation.document_id)
        allocation.reversed_at = self._clock.now_utc()
        allocation.reversed_by_id = self._actor_id
        allocation.updated_by_id = self._actor_id
        self._session.flush()

        previous = doc.status
        self._settle(doc, "reverse_payment")

        logger.info("allocation_reversed", extra={
            "allocation_id": str(allocation.id),
            "payment_number": payment.payment_number,
            "document_number": doc.document_number,
            "allocated_amount": str(allocation.allocated_amount),
            "balance_due": str(doc.balance_due),
            "from_status": previous,
            "to_status": doc.status,
        })
        return AllocationResult(
            allocation=allocation_snapshot(allocation),
            document=document_snapshot(doc),
            previous_status=previous,
        )

    def _settle(self, doc: FinancialDocument, action: str) -> None:
        """Recompute amount_paid from live allocations and move the status."""
        amount_paid = self._payments.document_paid_total(doc.id)
        balance_due = self._totals.compute_balance_due(doc.total_amount, amount_paid)
        doc.amount_paid = amount_paid
        doc.balance_due = balance_due
        doc.updated_by_id = self._actor_id

        # A cancelled document keeps its status when allocations are released
        if doc.status != DocumentStatus.CANCELLED.value:
            target = settlement_target(
                workflow_for(doc.document_type), doc.status, action, amount_paid, balance_due,
                committed=doc.committed_at is not None,
            )
            doc.status = transition(doc.document_type, doc.status, action, target=target)
        self._session.flush()
