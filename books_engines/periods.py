"""
Module: books_engines.periods
Responsibility:
    Group dated amounts into daily / weekly / monthly buckets and merge
    several independently-bucketed sources onto one period axis.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - The merged axis is the sorted union of every source's period keys
      (an outer join on the period key).  No source period is dropped.
    - A series has a value at every axis position; periods a source never
      saw are zero.
    - Weekly buckets start on the ISO Monday; monthly on the 1st.

Usage:
    inflow = bucket_amounts(received, Period.MONTHLY)
    outflow = merge_sum(bucket_amounts(made, Period.MONTHLY),
                        bucket_amounts(expenses, Period.MONTHLY))
    series = merge_period_maps({"inflow": inflow, "outflow": outflow}, Period.MONTHLY)
    series.to_chart()  # {"labels": [...], "periods": [...], "inflow": [...], ...}
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum

from books_kernel.domain.money import ZERO, round2
from books_kernel.exceptions import ValidationError
from books_kernel.logging_config import get_logger
from books_engines.tracer import traced_engine

logger = get_logger("engines.periods")


class Period(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @classmethod
    def parse(cls, value: "str | Period") -> "Period":
        try:
            return cls(value)
        except ValueError:
            raise ValidationError(
                f"period must be one of daily, weekly, monthly; got {value!r}",
                field="period",
                value=value,
            ) from None


def truncate_to_period(day: date, period: Period) -> date:
    """Start date of the bucket that contains ``day``."""
    if period is Period.DAILY:
        return day
    if period is Period.WEEKLY:
        return day - timedelta(days=day.weekday())
    return day.replace(day=1)


def period_label(start: date, period: Period) -> str:
    """Display label: "Jan 24" for months, "01 Jan 24" otherwise."""
    if period is Period.MONTHLY:
        return start.strftime("%b %y")
    return start.strftime("%d %b %y")


def bucket_amounts(
    records: Iterable[tuple[date, Decimal]],
    period: Period,
) -> dict[date, Decimal]:
    """Sum (date, amount) pairs per period start."""
    buckets: dict[date, Decimal] = {}
    for day, amount in records:
        key = truncate_to_period(day, period)
        buckets[key] = buckets.get(key, ZERO) + amount
    return {key: round2(total) for key, total in buckets.items()}


def merge_sum(*maps: Mapping[date, Decimal]) -> dict[date, Decimal]:
    """Add several period maps into one (union of keys, values summed)."""
    merged: dict[date, Decimal] = {}
    for mapping in maps:
        for key, amount in mapping.items():
            merged[key] = merged.get(key, ZERO) + amount
    return {key: round2(total) for key, total in merged.items()}


@dataclass(frozen=True)
class PeriodSeries:
    """
    Several named series aligned on one sorted period axis.

    Guarantees:
        - len(values[name]) == len(periods) for every series.
    """

    period: Period
    periods: tuple[date, ...]
    values: dict[str, tuple[Decimal, ...]]

    @property
    def labels(self) -> tuple[str, ...]:
        return tuple(period_label(p, self.period) for p in self.periods)

    def series(self, name: str) -> tuple[Decimal, ...]:
        return self.values[name]

    def total(self, name: str) -> Decimal:
        return round2(sum(self.values[name], ZERO))

    def to_chart(self) -> dict[str, list]:
        chart: dict[str, list] = {
            "labels": list(self.labels),
            "periods": [p.isoformat() for p in self.periods],
        }
        for name, values in self.values.items():
            chart[name] = list(values)
        return chart


@traced_engine("periods", "1.0", fingerprint_fields=("sources", "period"))
def merge_period_maps(
    sources: Mapping[str, Mapping[date, Decimal]],
    period: Period,
) -> PeriodSeries:
    """
    Outer-join named period maps on their period key.

    The axis is the sorted union of all keys; each series reads zero at
    periods it has no entry for.
    """
    axis = tuple(sorted({key for mapping in sources.values() for key in mapping}))
    values = {
        name: tuple(round2(mapping.get(key, ZERO)) for key in axis)
        for name, mapping in sources.items()
    }
    logger.debug(
        "period_series_merged",
        extra={
            "period": period.value,
            "period_count": len(axis),
            "series": sorted(sources),
        },
    )
    return PeriodSeries(period=period, periods=axis, values=values)
