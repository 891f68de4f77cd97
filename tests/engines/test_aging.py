"""
Tests for the aging calculator.

Covers:
- Bucket construction from thresholds
- Age calculation and classification
- Report completeness (bucket totals sum to open balances)
"""

from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from books_engines.aging import (
    STANDARD_BUCKETS,
    AgeBucket,
    AgingCalculator,
    buckets_from_thresholds,
)
from books_kernel.domain.dtos import DocumentSnapshot

AS_OF = date(2024, 6, 30)


def _doc(balance, days_past_due, status="Final", party_id=None, due=True):
    return DocumentSnapshot(
        id=uuid4(),
        document_type="Invoice",
        document_number=f"INV-{uuid4().hex[:6]}",
        party_id=party_id or uuid4(),
        status=status,
        document_date=AS_OF - timedelta(days=120),
        due_date=AS_OF - timedelta(days=days_past_due) if due else None,
        currency_code="INR",
        total_amount=Decimal(balance),
        amount_paid=Decimal("0"),
        balance_due=Decimal(balance),
    )


class TestBuckets:
    """Tests for bucket definitions."""

    def test_standard_buckets(self):
        assert [b.name for b in STANDARD_BUCKETS] == [
            "current", "overdue_1_30", "overdue_31_60", "overdue_61_90", "overdue_90_plus",
        ]
        assert STANDARD_BUCKETS[-1].is_unbounded

    def test_custom_thresholds(self):
        buckets = buckets_from_thresholds((15, 45))

        assert [(b.min_days, b.max_days) for b in buckets] == [
            (0, 0), (1, 15), (16, 45), (46, None),
        ]

    @pytest.mark.parametrize("thresholds", [(), (0, 30), (60, 30), (30, 30)])
    def test_invalid_thresholds(self, thresholds):
        with pytest.raises(ValueError):
            buckets_from_thresholds(thresholds)

    def test_bucket_bounds_validated(self):
        with pytest.raises(ValueError):
            AgeBucket("bad", 10, 5)
        with pytest.raises(ValueError):
            AgeBucket("bad", -1, 5)


class TestClassification:
    """Tests for age calculation and bucket selection."""

    def setup_method(self):
        self.calculator = AgingCalculator()

    def test_age_is_days_past_due(self):
        assert self.calculator.calculate_age(date(2024, 6, 1), AS_OF) == 29

    def test_not_yet_due_is_negative(self):
        assert self.calculator.calculate_age(date(2024, 7, 10), AS_OF) == -10

    def test_no_due_date(self):
        assert self.calculator.calculate_age(None, AS_OF) is None

    @pytest.mark.parametrize(
        ("age", "bucket"),
        [
            (None, "current"),
            (-5, "current"),
            (0, "current"),
            (1, "overdue_1_30"),
            (30, "overdue_1_30"),
            (31, "overdue_31_60"),
            (60, "overdue_31_60"),
            (61, "overdue_61_90"),
            (90, "overdue_61_90"),
            (91, "overdue_90_plus"),
            (400, "overdue_90_plus"),
        ],
    )
    def test_boundaries(self, age, bucket):
        assert self.calculator.classify(age).name == bucket


class TestAgingReport:
    """Tests for the report over document snapshots."""

    def setup_method(self):
        self.calculator = AgingCalculator()

    def test_each_bucket_populated(self):
        docs = [
            _doc("100.00", -3),
            _doc("200.00", 10),
            _doc("300.00", 45),
            _doc("400.00", 75),
            _doc("500.00", 120),
        ]

        report = self.calculator.age_documents(documents=docs, as_of_date=AS_OF)

        assert report.totals() == {
            "current": Decimal("100.00"),
            "overdue_1_30": Decimal("200.00"),
            "overdue_31_60": Decimal("300.00"),
            "overdue_61_90": Decimal("400.00"),
            "overdue_90_plus": Decimal("500.00"),
        }
        assert report.counts()["overdue_90_plus"] == 1

    def test_totals_sum_to_open_balances(self):
        docs = [
            _doc("120.50", 5),
            _doc("99.99", 5),
            _doc("0.00", 40),
            _doc("500.00", 100, status="Paid"),
            _doc("75.00", 100, status="Cancelled"),
            _doc("10.01", 0, due=False),
            _doc("33.33", 61, status="Overdue"),
        ]

        report = self.calculator.age_documents(documents=docs, as_of_date=AS_OF)

        assert report.item_count == 4
        assert sum(report.totals().values()) == report.total_amount()
        assert report.total_amount() == Decimal("263.83")

    def test_empty_report_is_zero_filled(self):
        report = self.calculator.age_documents(documents=[], as_of_date=AS_OF)

        assert set(report.totals()) == {b.name for b in STANDARD_BUCKETS}
        assert all(v == Decimal("0") for v in report.totals().values())
        assert report.total_amount() == Decimal("0.00")

    def test_totals_by_party(self):
        party = uuid4()
        docs = [_doc("10.00", 5, party_id=party), _doc("15.00", 50, party_id=party)]

        report = self.calculator.age_documents(documents=docs, as_of_date=AS_OF)

        by_party = report.totals_by_party()[party]
        assert by_party["overdue_1_30"] == Decimal("10.00")
        assert by_party["overdue_31_60"] == Decimal("15.00")

    def test_items_in_bucket(self):
        docs = [_doc("10.00", 5), _doc("15.00", 5), _doc("20.00", 0)]

        report = self.calculator.age_documents(documents=docs, as_of_date=AS_OF)

        assert len(report.items_in_bucket("overdue_1_30")) == 2
        assert report.items_in_bucket("current")[0].days_past_due == 0
