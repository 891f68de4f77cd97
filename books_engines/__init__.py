"""
Module: books_engines
Responsibility:
    Package entrypoint re-exporting the pure calculation engines: tax
    determination, document totals, aging, period bucketing, the
    dashboard summary and party statements.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import books_kernel.domain, books_kernel.exceptions and
    books_kernel.logging_config.  MUST NOT import books_services.

Invariants enforced:
    - Purity: engines never read the clock; dates are parameters.
    - Decimal-only arithmetic, rounded through ``round2`` at every step.
    - Determinism: identical inputs always produce identical outputs.

Every engine entry point is wrapped by ``@traced_engine`` and emits a
BOOKS_ENGINE_TRACE record.
"""

from books_engines.aging import (
    STANDARD_BUCKETS,
    AgeBucket,
    AgedItem,
    AgingCalculator,
    AgingReport,
    buckets_from_thresholds,
)
from books_engines.dashboard import (
    ActivityItem,
    DashboardCalculator,
    DashboardSummary,
    DocumentStats,
    PaymentStats,
)
from books_engines.periods import (
    Period,
    PeriodSeries,
    bucket_amounts,
    merge_period_maps,
    merge_sum,
    period_label,
    truncate_to_period,
)
from books_engines.statement import PartyStatement, StatementBuilder, StatementLine
from books_engines.tax import ComputedLine, TaxBreakdown, TaxCalculator, TaxSplit
from books_engines.totals import DocumentTotals, TotalsCalculator

__all__ = [
    "STANDARD_BUCKETS",
    "ActivityItem",
    "AgeBucket",
    "AgedItem",
    "AgingCalculator",
    "AgingReport",
    "ComputedLine",
    "DashboardCalculator",
    "DashboardSummary",
    "DocumentStats",
    "DocumentTotals",
    "PartyStatement",
    "PaymentStats",
    "Period",
    "PeriodSeries",
    "StatementBuilder",
    "StatementLine",
    "TaxBreakdown",
    "TaxCalculator",
    "TaxSplit",
    "TotalsCalculator",
    "bucket_amounts",
    "buckets_from_thresholds",
    "merge_period_maps",
    "merge_sum",
    "period_label",
    "truncate_to_period",
]
