"""
Property-based tests for the pure calculation layer.

Properties:
- Intra-jurisdiction lines split evenly; cross-jurisdiction lines are all IGST
- Document totals equal the roll-up of their lines
- Sequential allocations leave balance_due == round2(total - allocated)
- Aging buckets cover every open balance exactly once
- Merged period series keep every source period
"""

from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from books_engines.aging import AgingCalculator
from books_engines.periods import Period, bucket_amounts, merge_period_maps
from books_engines.tax import TaxCalculator
from books_engines.totals import TotalsCalculator
from books_kernel.domain.document_status import (
    DocumentType,
    settlement_target,
    transition,
    workflow_for,
)
from books_kernel.domain.dtos import DocumentSnapshot
from books_kernel.domain.jurisdiction import Jurisdiction
from books_kernel.domain.money import round2, round_to_whole

HOME = "Maharashtra"
CALCULATOR = TaxCalculator(Jurisdiction(HOME))
TOTALS = TotalsCalculator()

quantities = st.decimals(min_value="0.001", max_value="10000", places=3)
rates = st.decimals(min_value="0", max_value="100000", places=2)
tax_rates = st.sampled_from([Decimal(r) for r in ("0", "0.25", "3", "5", "12", "18", "28")])
amounts = st.decimals(min_value="0.01", max_value="1000000", places=2)
days = st.dates(min_value=date(2023, 1, 1), max_value=date(2024, 12, 31))

FAST = settings(max_examples=150, deadline=None, suppress_health_check=[HealthCheck.too_slow])


def _line(quantity, rate, tax_rate, place_of_supply, is_export=False):
    return CALCULATOR.compute_line_tax(
        quantity=quantity,
        rate=rate,
        tax_rate=tax_rate,
        place_of_supply=place_of_supply,
        is_export=is_export,
    )


class TestTaxProperties:

    @FAST
    @given(quantity=quantities, rate=rates, tax_rate=tax_rates)
    def test_intra_split_is_even(self, quantity, rate, tax_rate):
        result = _line(quantity, rate, tax_rate, HOME)
        raw_tax = round2(result.amount * tax_rate / 100)

        assert result.cgst == result.sgst
        assert result.igst == 0
        assert result.total_tax == result.cgst + result.sgst
        assert result.total_tax - raw_tax in (Decimal("0"), Decimal("0.01"))

    @FAST
    @given(quantity=quantities, rate=rates, tax_rate=tax_rates)
    def test_cross_is_all_igst(self, quantity, rate, tax_rate):
        result = _line(quantity, rate, tax_rate, "Tamil Nadu")

        assert result.cgst == result.sgst == 0
        assert result.igst == result.total_tax == round2(result.amount * tax_rate / 100)

    @FAST
    @given(quantity=quantities, rate=rates, tax_rate=tax_rates, place=st.sampled_from([HOME, "Goa"]))
    def test_export_has_no_tax(self, quantity, rate, tax_rate, place):
        result = _line(quantity, rate, tax_rate, place, is_export=True)

        assert result.total_tax == 0
        assert result.amount == round2(quantity * rate)

    @FAST
    @given(
        lines=st.lists(
            st.tuples(quantities, rates, tax_rates, st.sampled_from([HOME, "Kerala"])),
            min_size=1,
            max_size=8,
        ),
        shipping=st.decimals(min_value="0", max_value="5000", places=2),
    )
    def test_totals_roll_up(self, lines, shipping):
        breakdowns = [_line(*args) for args in lines]

        totals = TOTALS.compute_document_totals(lines=breakdowns, shipping_charge=shipping)

        assert totals.sub_total == sum(b.amount for b in breakdowns)
        assert totals.total_tax == totals.igst_amount + totals.cgst_amount + totals.sgst_amount
        assert totals.total_amount == totals.sub_total + totals.total_tax + totals.shipping_charge


class TestMoneyProperties:

    @FAST
    @given(value=st.decimals(min_value="-1000000", max_value="1000000", places=4))
    def test_round2_idempotent(self, value):
        assert round2(round2(value)) == round2(value)

    @FAST
    @given(value=amounts)
    def test_round_off_lands_on_whole_unit(self, value):
        rounded, round_off = round_to_whole(value)

        assert value + round_off == rounded
        assert rounded == rounded.to_integral_value()
        assert abs(round_off) <= Decimal("0.50")


@st.composite
def allocation_plans(draw):
    """A document total in cents and the increasing cut points that split it."""
    total_cents = draw(st.integers(min_value=1, max_value=100_000_000))
    cuts = draw(st.sets(st.integers(min_value=1, max_value=total_cents), max_size=10))
    if draw(st.booleans()):
        cuts.add(total_cents)
    ordered = sorted(cuts)
    parts = [b - a for a, b in zip([0] + ordered, ordered)]
    return total_cents, parts


class TestSettlementProperties:

    @FAST
    @given(plan=allocation_plans())
    def test_sequential_allocations(self, plan):
        total_cents, part_cents = plan
        total = Decimal(total_cents) / 100
        parts = [Decimal(p) / 100 for p in part_cents]
        workflow = workflow_for(DocumentType.INVOICE)

        status = workflow.committed_state
        paid = Decimal("0")
        balance = total
        for part in parts:
            assert part <= balance
            paid += part
            balance = TOTALS.compute_balance_due(total, paid)
            target = settlement_target(workflow, status, "apply_payment", paid, balance)
            status = transition(DocumentType.INVOICE, status, "apply_payment", target=target)

        assert balance == round2(total - sum(parts, Decimal("0")))
        assert balance >= 0
        if not parts:
            assert status == workflow.committed_state
        elif sum(parts) == total:
            assert status == "Paid"
        else:
            assert status == "Partial"


def _snapshot(balance, due, status):
    return DocumentSnapshot(
        id=uuid4(),
        document_type="Invoice",
        document_number="INV",
        party_id=uuid4(),
        status=status,
        document_date=date(2023, 1, 1),
        due_date=due,
        currency_code="INR",
        total_amount=balance,
        amount_paid=Decimal("0"),
        balance_due=balance,
    )


class TestAggregationProperties:

    @FAST
    @given(
        docs=st.lists(
            st.tuples(
                st.decimals(min_value="0", max_value="100000", places=2),
                st.one_of(st.none(), days),
                st.sampled_from(["Draft", "Final", "Sent", "Partial", "Overdue", "Paid", "Cancelled"]),
            ),
            max_size=25,
        ),
        as_of=days,
    )
    def test_aging_is_complete(self, docs, as_of):
        snapshots = [_snapshot(*args) for args in docs]

        report = AgingCalculator().age_documents(documents=snapshots, as_of_date=as_of)

        expected = sum(
            (s.balance_due for s in snapshots
             if s.status not in ("Paid", "Cancelled") and s.balance_due > 0),
            Decimal("0"),
        )
        assert sum(report.totals().values()) == expected
        assert sum(report.counts().values()) == report.item_count

    @FAST
    @given(
        sources=st.lists(
            st.lists(st.tuples(days, amounts), max_size=15),
            min_size=1,
            max_size=4,
        ),
        period=st.sampled_from(list(Period)),
    )
    def test_series_keeps_every_period(self, sources, period):
        maps = {f"s{i}": bucket_amounts(records, period) for i, records in enumerate(sources)}

        series = merge_period_maps(sources=maps, period=period)

        union = set()
        for mapping in maps.values():
            union |= set(mapping)
        assert set(series.periods) == union
        assert list(series.periods) == sorted(union)
        for name, mapping in maps.items():
            assert len(series.series(name)) == len(series.periods)
            assert series.total(name) == round2(sum(mapping.values(), Decimal("0")))
            for key, value in zip(series.periods, series.series(name)):
                assert value == mapping.get(key, Decimal("0"))

    @FAST
    @given(day=days)
    def test_weekly_bucket_starts_monday(self, day):
        (key,) = bucket_amounts([(day, Decimal("1"))], Period.WEEKLY)

        assert key.weekday() == 0
        assert day - key < timedelta(days=7)
