"""
Module: books_engines.aging
Responsibility:
    Classify open documents into aging buckets by days past due.  Used for
    receivables (invoices) and payables (bills).

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Purity: no clock access; ``as_of_date`` is always a parameter.
    - Every aged document lands in exactly one bucket, so the bucket totals
      sum to the total open balance.
    - No due date, or a due date on/after ``as_of_date``, means Current.

Failure modes:
    - ValueError when bucket thresholds are not strictly increasing.

Usage:
    from books_engines.aging import AgingCalculator

    report = AgingCalculator().age_documents(
        documents=open_invoices, as_of_date=date(2024, 3, 31),
    )
    report.totals()  # {"current": ..., "overdue_1_30": ..., ...}
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Sequence
from uuid import UUID

from books_kernel.domain.dtos import DocumentSnapshot
from books_kernel.domain.money import ZERO, round2
from books_kernel.logging_config import get_logger
from books_engines.tracer import traced_engine

logger = get_logger("engines.aging")

CLOSED_STATUSES = frozenset({"Paid", "Cancelled"})


@dataclass(frozen=True)
class AgeBucket:
    """
    A contiguous range of days past due.

    Guarantees:
        - min_days >= 0.
        - max_days >= min_days (when bounded).
    """

    name: str
    min_days: int
    max_days: int | None  # None = unbounded (e.g., 90+)

    def __post_init__(self) -> None:
        if self.min_days < 0:
            raise ValueError("min_days cannot be negative")
        if self.max_days is not None and self.max_days < self.min_days:
            raise ValueError("max_days cannot be less than min_days")

    def contains(self, age_days: int) -> bool:
        """Check if age falls within this bucket."""
        if age_days < self.min_days:
            return False
        if self.max_days is None:
            return True
        return age_days <= self.max_days

    @property
    def is_unbounded(self) -> bool:
        return self.max_days is None


def buckets_from_thresholds(thresholds: Sequence[int]) -> tuple[AgeBucket, ...]:
    """
    Build Current + overdue buckets from ascending day thresholds.

    (30, 60, 90) gives current, overdue_1_30, overdue_31_60, overdue_61_90
    and overdue_90_plus.
    """
    if not thresholds:
        raise ValueError("at least one aging threshold is required")
    if any(t <= 0 for t in thresholds) or list(thresholds) != sorted(set(thresholds)):
        raise ValueError(f"aging thresholds must be positive and strictly increasing: {thresholds}")

    buckets = [AgeBucket("current", 0, 0)]
    low = 1
    for high in thresholds:
        buckets.append(AgeBucket(f"overdue_{low}_{high}", low, high))
        low = high + 1
    buckets.append(AgeBucket(f"overdue_{thresholds[-1]}_plus", low, None))
    return tuple(buckets)


STANDARD_BUCKETS: tuple[AgeBucket, ...] = buckets_from_thresholds((30, 60, 90))


@dataclass(frozen=True)
class AgedItem:
    """
    A document with its age classification.

    age_days is None when the document has no due date.
    """

    document_id: UUID
    document_number: str
    document_type: str
    party_id: UUID
    due_date: date | None
    amount: Decimal
    age_days: int | None
    bucket: AgeBucket

    @property
    def is_overdue(self) -> bool:
        return self.age_days is not None and self.age_days > 0

    @property
    def days_past_due(self) -> int:
        """Days past due (0 if not overdue or no due date)."""
        return max(0, self.age_days or 0)


@dataclass(frozen=True)
class AgingReport:
    """
    Point-in-time aging snapshot.

    Guarantees:
        - ``totals()`` has one entry per bucket, in bucket order, and its
          values sum to ``total_amount()``.
    """

    as_of_date: date
    buckets: tuple[AgeBucket, ...]
    items: tuple[AgedItem, ...]
    report_type: str = "receivables"

    @property
    def item_count(self) -> int:
        return len(self.items)

    def total_amount(self) -> Decimal:
        return round2(sum((i.amount for i in self.items), ZERO))

    def totals(self) -> dict[str, Decimal]:
        """Sum of balances per bucket; empty buckets are zero."""
        result = {bucket.name: ZERO for bucket in self.buckets}
        for item in self.items:
            result[item.bucket.name] += item.amount
        return {name: round2(total) for name, total in result.items()}

    def counts(self) -> dict[str, int]:
        result = {bucket.name: 0 for bucket in self.buckets}
        for item in self.items:
            result[item.bucket.name] += 1
        return result

    def items_in_bucket(self, bucket_name: str) -> tuple[AgedItem, ...]:
        return tuple(i for i in self.items if i.bucket.name == bucket_name)

    def totals_by_party(self) -> dict[UUID, dict[str, Decimal]]:
        """Bucket totals per counterparty."""
        result: dict[UUID, dict[str, Decimal]] = {}
        for item in self.items:
            party = result.setdefault(item.party_id, {b.name: ZERO for b in self.buckets})
            party[item.bucket.name] = round2(party[item.bucket.name] + item.amount)
        return result


class AgingCalculator:
    """
    Ages documents as of a given date.

    Contract:
        Pure functions -- no I/O, no database access.
    """

    def __init__(self, buckets: Sequence[AgeBucket] | None = None):
        self.buckets = tuple(buckets) if buckets is not None else STANDARD_BUCKETS

    def calculate_age(self, due_date: date | None, as_of_date: date) -> int | None:
        """Days past due; negative when not yet due, None without a due date."""
        if due_date is None:
            return None
        return (as_of_date - due_date).days

    def classify(self, age_days: int | None) -> AgeBucket:
        """
        Pick the bucket for an age.

        None and non-positive ages map to the first (current) bucket.

        Raises:
            ValueError: If age doesn't fit any bucket.
        """
        if age_days is None or age_days <= 0:
            return self.buckets[0]

        for bucket in self.buckets:
            if bucket.contains(age_days):
                return bucket

        logger.warning("age_classification_no_bucket", extra={
            "age_days": age_days,
            "bucket_count": len(self.buckets),
        })
        raise ValueError(f"Age {age_days} does not fit any bucket")

    def age_item(self, document: DocumentSnapshot, as_of_date: date) -> AgedItem:
        age_days = self.calculate_age(document.due_date, as_of_date)
        return AgedItem(
            document_id=document.id,
            document_number=document.document_number,
            document_type=document.document_type,
            party_id=document.party_id,
            due_date=document.due_date,
            amount=round2(document.balance_due),
            age_days=age_days,
            bucket=self.classify(age_days),
        )

    @traced_engine("aging", "1.0", fingerprint_fields=("documents", "as_of_date", "report_type"))
    def age_documents(
        self,
        documents: Sequence[DocumentSnapshot],
        as_of_date: date,
        report_type: str = "receivables",
    ) -> AgingReport:
        """
        Age every open document with a positive balance.

        Paid and Cancelled documents and zero balances are skipped, so the
        report covers exactly the outstanding amount.
        """
        items = tuple(
            self.age_item(doc, as_of_date)
            for doc in documents
            if doc.status not in CLOSED_STATUSES and doc.balance_due > 0
        )

        logger.info("aging_report_generated", extra={
            "as_of_date": as_of_date.isoformat(),
            "report_type": report_type,
            "document_count": len(documents),
            "item_count": len(items),
            "bucket_count": len(self.buckets),
        })

        return AgingReport(
            as_of_date=as_of_date,
            buckets=self.buckets,
            items=items,
            report_type=report_type,
        )
