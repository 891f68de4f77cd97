#!/usr/bin/env python3
"""
Print the dashboard summary, aging and cash-flow payloads as JSON.

Run from project root.  Uses $DATABASE_URL unless --database-url is given.

Usage:
  python3 scripts/view_dashboard.py [--database-url ...] [--start-date 2024-01-01]
                                    [--end-date 2024-03-31] [--period monthly]
                                    [--detail]
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

DB_URL = os.environ.get("DATABASE_URL", "sqlite:///books.db")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Dashboard, aging and cash-flow report as JSON.")
    parser.add_argument("--database-url", type=str, default=DB_URL)
    parser.add_argument("--start-date", type=str, default=None, help="YYYY-MM-DD, inclusive")
    parser.add_argument("--end-date", type=str, default=None, help="YYYY-MM-DD, inclusive")
    parser.add_argument("--period", type=str, default=None, help="daily | weekly | monthly")
    parser.add_argument("--config", type=Path, default=None, help="Company override YAML")
    parser.add_argument(
        "--detail", action="store_true", help="Include per-party and per-document aging",
    )
    args = parser.parse_args(argv)

    from books_config import get_active_config
    from books_kernel.db.engine import get_session, init_engine_from_url
    from books_kernel.domain.clock import SystemClock
    from books_kernel.exceptions import ValidationError
    from books_kernel.logging_config import configure_logging
    from books_services.report_query import DASHBOARD, SERIES, ReportQuery
    from books_services.reporting_service import ReportingService, aging_payload, to_json

    configure_logging(level=logging.WARNING, stream=sys.stderr)
    config = get_active_config(args.config)
    clock = SystemClock()
    params = {"start_date": args.start_date, "end_date": args.end_date, "period": args.period}

    try:
        dashboard_query = ReportQuery.from_params(params, clock, kind=DASHBOARD)
        series_query = ReportQuery.from_params(
            params, clock, kind=SERIES, series_months=config.series_default_months,
        )
    except ValidationError as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 2

    try:
        init_engine_from_url(args.database_url)
    except Exception as exc:
        print(f"  ERROR: Could not connect to DB: {exc}", file=sys.stderr)
        return 1

    session = get_session()
    try:
        reports = ReportingService(session, config, clock)
        summary = reports.dashboard_summary(
            dashboard_query.start_date, dashboard_query.end_date,
        )
        payload = {
            "query": dashboard_query.as_dict(),
            "dashboard": summary.as_dict(),
            "aging": {
                "receivables": aging_payload(reports.receivables_aging(), detail=args.detail),
                "payables": aging_payload(reports.payables_aging(), detail=args.detail),
            },
            "cash_flow": reports.cash_flow_series(
                series_query.start_date, series_query.end_date, series_query.period,
            ).to_chart(),
        }
    finally:
        session.close()

    print(to_json(payload))
    return 0


if __name__ == "__main__":
    sys.exit(main())
