"""Payment terms and due-date helpers."""

from dataclasses import dataclass
from datetime import date, timedelta

from books_kernel.exceptions import ValidationError

STANDARD_TERM_DAYS: tuple[int, ...] = (15, 30, 45, 60, 90)


@dataclass(frozen=True)
class PaymentTerm:
    """A net-N payment term."""

    days: int

    def __post_init__(self) -> None:
        if self.days < 0:
            raise ValidationError("payment term days cannot be negative", field="days", value=self.days)

    @property
    def label(self) -> str:
        return f"{self.days} Days"

    def due_date(self, document_date: date) -> date:
        return document_date + timedelta(days=self.days)


STANDARD_TERMS: tuple[PaymentTerm, ...] = tuple(PaymentTerm(d) for d in STANDARD_TERM_DAYS)


def due_date_for(
    document_date: date,
    terms_days: int | None,
    default_days: int,
) -> date:
    """Due date from the party's terms, else the configured default."""
    days = terms_days if terms_days is not None else default_days
    return PaymentTerm(days).due_date(document_date)


def days_until_due(due_date: date | None, as_of: date) -> int | None:
    """Positive = days remaining, negative = days overdue, None = no due date."""
    if due_date is None:
        return None
    return (due_date - as_of).days
