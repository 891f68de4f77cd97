"""Report request parameters: date window and period granularity."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Mapping

from books_config.loader import parse_date
from books_engines.periods import Period
from books_kernel.domain.clock import Clock, SystemClock
from books_kernel.exceptions import InvalidReportQueryError, ValidationError

DASHBOARD = "dashboard"
SERIES = "series"


def month_start(day: date, months_back: int = 0) -> date:
    """First day of the month ``months_back`` calendar months before ``day``."""
    index = day.year * 12 + (day.month - 1) - months_back
    return date(index // 12, index % 12 + 1, 1)


def _date_param(params: Mapping[str, Any], name: str) -> date | None:
    value = params.get(name)
    if value is None or value == "":
        return None
    try:
        return parse_date(value)
    except ValueError:
        raise InvalidReportQueryError(
            f"{name} must be an ISO date (YYYY-MM-DD), got {value!r}",
            field=name,
            value=value,
        ) from None


@dataclass(frozen=True)
class ReportQuery:
    """
    Inclusive [start_date, end_date] window plus period granularity.

    Defaults when a bound is omitted:
        dashboard -- first day of the current month through today;
        series    -- first day of the month ``series_months - 1`` months
                     back through today.
    A defaulted start never lands after an explicit end_date: it moves back
    to the same window measured from end_date.
    """

    start_date: date
    end_date: date
    period: Period = Period.MONTHLY

    def __post_init__(self) -> None:
        if self.start_date > self.end_date:
            raise InvalidReportQueryError(
                f"start_date {self.start_date} is after end_date {self.end_date}",
                field="start_date",
                value=self.start_date.isoformat(),
            )

    @classmethod
    def from_params(
        cls,
        params: Mapping[str, Any],
        clock: Clock | None = None,
        kind: str = DASHBOARD,
        series_months: int = 6,
    ) -> "ReportQuery":
        """
        Parse ``start_date``, ``end_date`` and ``period`` from request params.

        Raises:
            InvalidReportQueryError: malformed date, unknown period, or
                start_date after end_date.
        """
        if kind not in (DASHBOARD, SERIES):
            raise ValueError(f"kind must be {DASHBOARD!r} or {SERIES!r}, got {kind!r}")
        today = (clock or SystemClock()).today()

        end_date = _date_param(params, "end_date") or today
        start_date = _date_param(params, "start_date")
        if start_date is None:
            months_back = 0 if kind == DASHBOARD else series_months - 1
            start_date = min(month_start(today, months_back), month_start(end_date, months_back))

        raw_period = params.get("period") or Period.MONTHLY.value
        try:
            period = Period.parse(raw_period)
        except ValidationError as exc:
            raise InvalidReportQueryError(str(exc), field="period", value=raw_period) from None

        return cls(start_date=start_date, end_date=end_date, period=period)

    def as_dict(self) -> dict[str, str]:
        return {
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "period": self.period.value,
        }
