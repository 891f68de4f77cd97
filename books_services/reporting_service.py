"""
Reporting service - read-only aggregation over documents, payments,
expenses and bank accounts.

Every method selects fresh snapshots through the selectors and hands them
to a pure engine; nothing is cached and nothing is written.  Reports
never raise on an empty book: they return zero-filled structures.

Usage:
    reports = ReportingService(session, config, clock)
    reports.party_statement(customer_id, start_date=date(2024, 1, 1))
    query = ReportQuery.from_params(request_args, clock, kind="series")
    chart = reports.cash_flow_series(query.start_date, query.end_date, query.period)
    to_json(chart.to_chart())
"""

from __future__ import annotations

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable
from uuid import UUID

from sqlalchemy.orm import Session

from books_config import BooksConfig
from books_kernel.domain.clock import Clock, SystemClock
from books_kernel.domain.document_status import (
    DOCUMENT_PARTY_TYPE,
    DocumentStatus,
    DocumentType,
    ExpenseStatus,
    PaymentDirection,
    PaymentStatus,
)
from books_kernel.exceptions import InvalidReportQueryError, PartyNotFoundError, ValidationError
from books_kernel.logging_config import get_logger
from books_kernel.selectors.document_selector import DocumentSelector
from books_kernel.selectors.party_selector import PartySelector
from books_kernel.selectors.payment_selector import (
    BankAccountSelector,
    ExpenseSelector,
    PaymentSelector,
)
from books_engines.aging import AgingCalculator, AgingReport, buckets_from_thresholds
from books_engines.dashboard import (
    ActivityItem,
    DashboardCalculator,
    DashboardSummary,
    DocumentStats,
    PaymentStats,
)
from books_engines.periods import Period, PeriodSeries, bucket_amounts, merge_period_maps, merge_sum
from books_engines.statement import PartyStatement, StatementBuilder
from books_services.allocation_service import parse_direction
from books_services.document_service import parse_document_type

logger = get_logger("services.reporting")


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def to_json(payload: Any) -> str:
    """Canonical JSON: sorted keys, Decimals as numbers, dates as ISO strings."""
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), default=_json_default)


def aging_payload(report: AgingReport, detail: bool = False) -> dict[str, Any]:
    """
    Bucket totals and counts; with ``detail`` also per-party bucket totals
    and the aged documents listed under each bucket.
    """
    payload: dict[str, Any] = {
        "as_of_date": report.as_of_date.isoformat(),
        "report_type": report.report_type,
        "buckets": report.totals(),
        "counts": report.counts(),
        "total": report.total_amount(),
    }
    if detail:
        payload["by_party"] = {
            str(party_id): totals for party_id, totals in report.totals_by_party().items()
        }
        payload["items"] = {
            bucket.name: [
                {
                    "document_id": str(item.document_id),
                    "document_number": item.document_number,
                    "party_id": str(item.party_id),
                    "due_date": item.due_date.isoformat() if item.due_date else None,
                    "amount": item.amount,
                    "days_past_due": item.days_past_due,
                }
                for item in report.items_in_bucket(bucket.name)
            ]
            for bucket in report.buckets
        }
    return payload


class ReportingService:
    """
    Read-only report builder.

    Engine composition:
    - DashboardCalculator: KPI summary, document stats, expense breakdown
    - AgingCalculator: receivables and payables aging
    - StatementBuilder: customer and vendor statements
    - merge_period_maps: outer join of period-bucketed sources
    """

    def __init__(
        self,
        session: Session,
        config: BooksConfig | None = None,
        clock: Clock | None = None,
    ):
        self._config = config or BooksConfig.with_defaults()
        self._clock = clock or SystemClock()
        self._documents = DocumentSelector(session)
        self._payments = PaymentSelector(session)
        self._expenses = ExpenseSelector(session)
        self._bank_accounts = BankAccountSelector(session)
        self._parties = PartySelector(session)
        self._dashboard = DashboardCalculator()
        self._aging = AgingCalculator(buckets_from_thresholds(self._config.aging_bucket_days))
        self._statements = StatementBuilder()

    # =========================================================================
    # Dashboard
    # =========================================================================

    def dashboard_summary(
        self,
        start_date: date,
        end_date: date,
        as_of_date: date | None = None,
    ) -> DashboardSummary:
        as_of_date = as_of_date or self._clock.today()
        return self._dashboard.summarize(
            invoices=self._documents.list_documents([DocumentType.INVOICE]),
            bills=self._documents.list_documents([DocumentType.BILL]),
            payments=self._payments.list_payments(
                PaymentDirection.RECEIVED.value,
                statuses=[PaymentStatus.RECEIVED.value],
                start_date=start_date,
                end_date=end_date,
            ),
            expenses=self._expenses.list_expenses(
                exclude_statuses=[ExpenseStatus.REJECTED.value],
                start_date=start_date,
                end_date=end_date,
            ),
            bank_accounts=self._bank_accounts.list_accounts(active_only=True),
            start_date=start_date,
            end_date=end_date,
            as_of_date=as_of_date,
        )

    def document_stats(
        self,
        document_type: DocumentType | str,
        *,
        party_id: UUID | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        statuses: Iterable[str] | None = None,
        as_of_date: date | None = None,
    ) -> DocumentStats:
        doc_type = parse_document_type(document_type)
        documents = self._documents.list_documents(
            [doc_type],
            include_statuses=statuses,
            exclude_statuses=[DocumentStatus.CANCELLED],
            party_id=party_id,
            start_date=start_date,
            end_date=end_date,
        )
        return self._dashboard.document_stats(
            documents=documents,
            document_type=doc_type.value,
            as_of_date=as_of_date or self._clock.today(),
        )

    def expense_breakdown(self, start_date: date, end_date: date) -> list[dict]:
        expenses = self._expenses.list_expenses(
            exclude_statuses=[ExpenseStatus.REJECTED.value],
            start_date=start_date,
            end_date=end_date,
        )
        return self._dashboard.expense_breakdown(expenses=expenses)

    # =========================================================================
    # Aging
    # =========================================================================

    def receivables_aging(self, as_of_date: date | None = None) -> AgingReport:
        return self._aging.age_documents(
            documents=self._documents.open_with_balance([DocumentType.INVOICE]),
            as_of_date=as_of_date or self._clock.today(),
            report_type="receivables",
        )

    def payables_aging(self, as_of_date: date | None = None) -> AgingReport:
        return self._aging.age_documents(
            documents=self._documents.open_with_balance([DocumentType.BILL]),
            as_of_date=as_of_date or self._clock.today(),
            report_type="payables",
        )

    # =========================================================================
    # Statements, payment stats and activity
    # =========================================================================

    def party_statement(
        self,
        party_id: UUID,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> PartyStatement:
        """
        Statement of account for one customer or vendor.

        end_date defaults to today.  start_date defaults to the party's
        earliest document or payment, so the default window covers the
        whole account.

        Raises:
            PartyNotFoundError: unknown party.
            InvalidReportQueryError: start_date after end_date.
        """
        party = self._parties.get(party_id)
        if party is None:
            raise PartyNotFoundError(str(party_id))
        end_date = end_date or self._clock.today()

        documents = self._documents.list_documents(
            [t for t in DocumentType if DOCUMENT_PARTY_TYPE[t].value == party.party_type],
            exclude_statuses=[DocumentStatus.CANCELLED],
            party_id=party.id,
            end_date=end_date,
        )
        payments = self._payments.list_payments(
            None,
            exclude_statuses=[PaymentStatus.VOID.value],
            party_id=party.id,
            end_date=end_date,
        )
        if start_date is None:
            dates = [d.document_date for d in documents] + [p.payment_date for p in payments]
            start_date = min(dates, default=end_date)
        if start_date > end_date:
            raise InvalidReportQueryError(
                f"start_date {start_date} is after end_date {end_date}",
                field="start_date",
                value=start_date.isoformat(),
            )
        return self._statements.build(
            party=party,
            documents=documents,
            payments=payments,
            start_date=start_date,
            end_date=end_date,
        )

    def payment_stats(
        self,
        direction: PaymentDirection | str,
        *,
        party_id: UUID | None = None,
        mode: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        as_of_date: date | None = None,
    ) -> PaymentStats:
        direction = parse_direction(direction)
        payments = self._payments.list_payments(
            direction.value,
            exclude_statuses=[PaymentStatus.VOID.value],
            party_id=party_id,
            mode=mode,
            start_date=start_date,
            end_date=end_date,
        )
        return self._dashboard.payment_stats(
            payments=payments,
            as_of_date=as_of_date or self._clock.today(),
            direction=direction.value,
        )

    def recent_activity(self, limit: int = 20) -> list[ActivityItem]:
        """Latest invoices, bills, expenses and received payments, newest first."""
        if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
            raise ValidationError(
                f"limit must be a positive integer, got {limit!r}",
                field="limit",
                value=limit,
            )
        documents = self._documents.recent([DocumentType.INVOICE, DocumentType.BILL], limit)
        payments = self._payments.recent(PaymentDirection.RECEIVED.value, limit)
        return self._dashboard.recent_activity(
            documents=documents,
            payments=payments,
            expenses=self._expenses.recent(limit),
            party_names=self._parties.names(
                [d.party_id for d in documents] + [p.party_id for p in payments]
            ),
            limit=limit,
        )

    # =========================================================================
    # Period series
    # =========================================================================

    def cash_flow_series(
        self,
        start_date: date,
        end_date: date,
        period: Period | str = Period.MONTHLY,
    ) -> PeriodSeries:
        """
        Inflow (received payments) against outflow (payments made plus paid
        expenses) per period.
        """
        period = Period.parse(period)
        received = self._payments.list_payments(
            PaymentDirection.RECEIVED.value,
            statuses=[PaymentStatus.RECEIVED.value],
            start_date=start_date,
            end_date=end_date,
        )
        made = self._payments.list_payments(
            PaymentDirection.MADE.value,
            statuses=[PaymentStatus.PAID.value],
            start_date=start_date,
            end_date=end_date,
        )
        paid_expenses = self._expenses.list_expenses(
            include_statuses=[ExpenseStatus.PAID.value],
            start_date=start_date,
            end_date=end_date,
        )

        inflow = bucket_amounts(((p.payment_date, p.amount) for p in received), period)
        outflow = merge_sum(
            bucket_amounts(((p.payment_date, p.amount) for p in made), period),
            bucket_amounts(((e.expense_date, e.total_amount) for e in paid_expenses), period),
        )
        series = merge_period_maps(sources={"inflow": inflow, "outflow": outflow}, period=period)
        logger.info("cash_flow_series_built", extra={
            "start_date": start_date.isoformat(),
            "end_date": end_date.isoformat(),
            "period": period.value,
            "period_count": len(series.periods),
        })
        return series

    def income_expense_series(
        self,
        start_date: date,
        end_date: date,
        period: Period | str = Period.MONTHLY,
    ) -> PeriodSeries:
        """
        Income (received payments) against expenses (bills plus direct
        expenses) per period.
        """
        period = Period.parse(period)
        received = self._payments.list_payments(
            PaymentDirection.RECEIVED.value,
            statuses=[PaymentStatus.RECEIVED.value],
            start_date=start_date,
            end_date=end_date,
        )
        bills = self._documents.list_documents(
            [DocumentType.BILL],
            exclude_statuses=[DocumentStatus.CANCELLED],
            start_date=start_date,
            end_date=end_date,
        )
        expenses = self._expenses.list_expenses(
            exclude_statuses=[ExpenseStatus.REJECTED.value],
            start_date=start_date,
            end_date=end_date,
        )

        income = bucket_amounts(((p.payment_date, p.amount) for p in received), period)
        expense = merge_sum(
            bucket_amounts(((b.document_date, b.total_amount) for b in bills), period),
            bucket_amounts(((e.expense_date, e.total_amount) for e in expenses), period),
        )
        series = merge_period_maps(sources={"income": income, "expense": expense}, period=period)
        logger.info("income_expense_series_built", extra={
            "start_date": start_date.isoformat(),
            "end_date": end_date.isoformat(),
            "period": period.value,
            "period_count": len(series.periods),
        })
        return series
