"""Tests for payroll aggregation.

Several fixtures reproduce figures of earlier ledger exports so the
reference code table keeps producing the same totals.
"""

from datetime import date
from decimal import Decimal

import pytest

from fiscal_core.aggregation import DEFAULT_CODE_TABLE, AggregationEngine, CodeRule, aggregate_workers
from fiscal_core.config import PayrollConfig
from fiscal_core.models import (
    AggregatedWorkerRecord,
    Dependent,
    EntryOrigin,
    IncomeCategory,
    LeaveEvent,
    LeavePeriod,
    Paycheck,
    PaycheckEntry,
    Worker,
)


def entry(code: str, amount) -> PaycheckEntry:
    return PaycheckEntry(code=code, amount=amount)


def make_worker(*paychecks: Paycheck, **kwargs) -> Worker:
    return Worker(worker_id="12345", name="JOAO DA SILVA", paychecks=list(paychecks), **kwargs)


def leave(payout: date, *entries: PaycheckEntry, **kwargs) -> LeavePeriod:
    return LeavePeriod(events=[LeaveEvent(payout_date=payout, entries=list(entries), **kwargs)])


def assert_consistent(record: AggregatedWorkerRecord) -> None:
    for category, bucket in record.categories.items():
        assert bucket.is_consistent, category


@pytest.fixture
def engine() -> AggregationEngine:
    return AggregationEngine()


class TestCodeTable:
    """Test suite for code to category mapping."""

    def test_taxable_income_codes_add_up(self, engine: AggregationEngine):
        """8781, 9380 and 931 are all taxable income."""
        worker = make_worker(
            Paycheck(year=2025, entries=[entry("8781", "1.000,50"), entry("9380", 500), entry("931", "100,00")])
        )
        record = engine.aggregate_worker(worker, 2025)

        assert record.taxable_income == Decimal("1600.50")
        assert len(record.bucket(IncomeCategory.TAXABLE_INCOME).details) == 3

    def test_categories_and_subtractions(self, engine: AggregationEngine):
        """Reimbursements subtract and other years are ignored."""
        worker = make_worker(
            Paycheck(
                year=2025,
                entries=[
                    entry("999", 200),
                    entry("12", 1200),
                    entry("8111", 300),
                    entry("8917", 50),
                    entry("873", 1000),
                    entry("874", 150),
                ],
            ),
            Paycheck(year=2024, entries=[entry("998", 999)]),
        )
        record = engine.aggregate_worker(worker, 2025)

        assert record.total(IncomeCategory.INCOME_TAX) == Decimal("200")
        assert record.thirteenth_net == Decimal("1200")
        assert record.total(IncomeCategory.HEALTH_PLAN_DISCOUNT) == Decimal("250")
        assert record.total(IncomeCategory.PROFIT_SHARE) == Decimal("1000")
        assert record.total(IncomeCategory.PROFIT_SHARE_INCOME_TAX) == Decimal("150")
        assert record.total(IncomeCategory.OFFICIAL_SOCIAL_SECURITY) == Decimal("0")
        assert_consistent(record)

    def test_social_security_correction(self, engine: AggregationEngine):
        """8919 corrects social security downwards."""
        worker = make_worker(Paycheck(year=2025, entries=[entry("998", 500), entry("843", 100), entry("8919", 30)]))
        record = engine.aggregate_worker(worker, 2025)
        assert record.total(IncomeCategory.OFFICIAL_SOCIAL_SECURITY) == Decimal("570")

    def test_thirteenth_withholdings_leave_the_net(self, engine: AggregationEngine):
        """13th salary income tax and social security come out of the 13th net."""
        worker = make_worker(Paycheck(year=2025, entries=[entry("12", 5000), entry("804", 200), entry("825", 150)]))
        record = engine.aggregate_worker(worker, 2025)

        assert record.thirteenth_net == Decimal("4650")
        assert record.total(IncomeCategory.THIRTEENTH_INCOME_TAX) == Decimal("200")
        assert record.total(IncomeCategory.THIRTEENTH_SOCIAL_SECURITY) == Decimal("150")

        details = record.bucket(IncomeCategory.THIRTEENTH_NET).details
        assert [d.amount for d in details] == [Decimal("5000"), Decimal("-200"), Decimal("-150")]
        assert details[1].description.startswith("Dedução")
        assert details[2].description.startswith("Dedução")

    def test_exempt_income(self, engine: AggregationEngine):
        worker = make_worker(Paycheck(year=2025, entries=[entry("9390", 80)]))
        assert engine.aggregate_worker(worker, 2025).total(IncomeCategory.EXEMPT_INCOME) == Decimal("80")

    def test_unknown_codes_are_ignored(self, engine: AggregationEngine):
        """Codes outside the table do not reach any bucket."""
        worker = make_worker(Paycheck(year=2025, entries=[entry("4242", 1000), entry("8781", 10)]))
        record = engine.aggregate_worker(worker, 2025)

        assert record.taxable_income == Decimal("10")
        assert sum(len(b.details) for b in record.categories.values()) == 1

    def test_custom_code_table(self):
        """The table can be replaced."""
        engine = AggregationEngine(code_table={"1": CodeRule("1", IncomeCategory.EXEMPT_INCOME)})
        worker = make_worker(Paycheck(year=2025, entries=[entry("1", 5), entry("8781", 10)]))
        record = engine.aggregate_worker(worker, 2025)

        assert record.total(IncomeCategory.EXEMPT_INCOME) == Decimal("5")
        assert record.taxable_income == Decimal("0")

    def test_default_table_covers_every_category(self):
        """Every income category except the base is fed by some code."""
        fed = {rule.category for rule in DEFAULT_CODE_TABLE.values()}
        assert fed == set(IncomeCategory) - {IncomeCategory.INCOME_TAX_BASE}


class TestYearFiltering:
    """Test suite for target year selection."""

    def test_multiple_paychecks_sum(self, engine: AggregationEngine):
        worker = make_worker(
            Paycheck(year=2025, entries=[entry("8781", 1000)]),
            Paycheck(year=2025, entries=[entry("8781", 1000)]),
        )
        assert engine.aggregate_worker(worker, 2025).taxable_income == Decimal("2000")

    def test_income_tax_base(self, engine: AggregationEngine):
        """The printed calculation base is summed per paycheck of the year."""
        worker = make_worker(
            Paycheck(year=2025, base_calc_income_tax="3.726,19"),
            Paycheck(year=2025, base_calc_income_tax=4000),
            Paycheck(year=2024, base_calc_income_tax=999),
        )
        bucket = engine.aggregate_worker(worker, 2025).bucket(IncomeCategory.INCOME_TAX_BASE)

        assert bucket.total == Decimal("7726.19")
        assert len(bucket.details) == 2

    def test_worker_without_activity_in_year(self, engine: AggregationEngine):
        """No paycheck or payout in the year means no record."""
        worker = make_worker(Paycheck(year=2024, entries=[entry("8781", 1000)]))

        assert engine.aggregate_worker(worker, 2025) is None
        assert engine.aggregate([worker], 2025) == []

    def test_paycheck_without_year_counts_for_any_year(self, engine: AggregationEngine):
        """Lines with no year are folded into whichever year is requested."""
        worker = make_worker(
            Paycheck(year=None, entries=[entry("8781", 1000)]),
            Paycheck(year=2024, entries=[entry("8781", 50)]),
        )

        assert engine.aggregate_worker(worker, 2025).taxable_income == Decimal("1000")
        assert engine.aggregate_worker(worker, 2024).taxable_income == Decimal("1050")

    def test_leave_payout_alone_makes_a_record(self, engine: AggregationEngine):
        """A worker paid only leave in the year still appears."""
        worker = make_worker(leave_periods=[leave(date(2025, 7, 1), entry("8781", 3000))])
        record = engine.aggregate_worker(worker, 2025)

        assert record is not None
        assert record.taxable_income == Decimal("3000")
        assert record.bucket(IncomeCategory.TAXABLE_INCOME).details[0].origin is EntryOrigin.LEAVE_PAYOUT

    def test_leave_payout_in_other_year_is_ignored(self, engine: AggregationEngine):
        worker = make_worker(
            Paycheck(year=2025, entries=[entry("8781", 100)]),
            leave_periods=[leave(date(2024, 12, 20), entry("8781", 3000))],
        )
        assert engine.aggregate_worker(worker, 2025).taxable_income == Decimal("100")


class TestLeaveWithholding:
    """Test suite for the two withholding methods of leave payouts."""

    def test_withheld_on_payout_is_added(self, engine: AggregationEngine):
        """Payout withholding belongs in the yearly totals."""
        worker = make_worker(
            leave_periods=[
                leave(
                    date(2025, 7, 1),
                    entry("8781", 3000),
                    income_tax_withheld="100,00",
                    social_security_withheld="50,00",
                    withheld_on_payout=True,
                )
            ]
        )
        record = engine.aggregate_worker(worker, 2025)

        assert record.total(IncomeCategory.INCOME_TAX) == Decimal("100.00")
        assert record.total(IncomeCategory.OFFICIAL_SOCIAL_SECURITY) == Decimal("50.00")
        assert record.bucket(IncomeCategory.INCOME_TAX).details[0].origin is EntryOrigin.LEAVE_PAYOUT

    def test_withheld_with_payroll_is_not_added_twice(self, engine: AggregationEngine):
        """Withholding computed with the monthly payroll is already in the paychecks."""
        worker = make_worker(
            Paycheck(year=2025, entries=[entry("999", 100)]),
            leave_periods=[
                leave(date(2025, 7, 1), income_tax_withheld="100,00", withheld_on_payout=False)
            ],
        )
        record = engine.aggregate_worker(worker, 2025)
        assert record.total(IncomeCategory.INCOME_TAX) == Decimal("100")


class TestDependentDeduction:
    """Test suite for the per-dependent deduction."""

    def test_deduction_from_thirteenth_net(self, engine: AggregationEngine):
        """One counting dependent takes 189.59 off the 13th net."""
        worker = make_worker(
            Paycheck(year=2025, entries=[entry("12", 2000)]),
            dependents=[Dependent(name="ANA", counts_for_deduction=True), Dependent(name="RUI")],
        )
        record = engine.aggregate_worker(worker, 2025)

        assert record.thirteenth_net == Decimal("1810.41")
        last = record.bucket(IncomeCategory.THIRTEENTH_NET).details[-1]
        assert last.amount == Decimal("-189.59")
        assert last.origin is EntryOrigin.ANNUAL_ADJUSTMENT
        assert record.dependent_deduction_applied

    def test_applied_once_with_several_leave_payouts(self, engine: AggregationEngine):
        """Several payouts in the year still deduct only once."""
        worker = make_worker(
            Paycheck(year=2025, entries=[entry("12", 2000)]),
            dependents=[Dependent(name="ANA", counts_for_deduction=True)] * 2,
            leave_periods=[
                leave(date(2025, 2, 1), entry("8781", 100)),
                leave(date(2025, 8, 1), entry("8781", 100)),
            ],
        )
        record = engine.aggregate_worker(worker, 2025)

        deductions = [d for d in record.bucket(IncomeCategory.THIRTEENTH_NET).details if d.amount < 0]
        assert len(deductions) == 1
        assert deductions[0].amount == Decimal("-379.18")
        assert deductions[0].origin is EntryOrigin.LEAVE_PAYOUT
        assert record.thirteenth_net == Decimal("1620.82")
        assert_consistent(record)

    def test_skipped_without_thirteenth(self, engine: AggregationEngine):
        """Nothing is deducted when there is no 13th salary."""
        worker = make_worker(
            Paycheck(year=2025, entries=[entry("8781", 2000)]),
            dependents=[Dependent(name="ANA", counts_for_deduction=True)],
        )
        record = engine.aggregate_worker(worker, 2025)

        assert record.thirteenth_net == Decimal("0")
        assert record.bucket(IncomeCategory.THIRTEENTH_NET).details == []
        assert not record.dependent_deduction_applied

    def test_deduction_amount_from_config(self):
        engine = AggregationEngine(config=PayrollConfig(dependent_deduction=Decimal("100")))
        worker = make_worker(
            Paycheck(year=2025, entries=[entry("12", 1000)]),
            dependents=[Dependent(name="ANA", counts_for_deduction=True)],
        )
        assert engine.aggregate_worker(worker, 2025).thirteenth_net == Decimal("900")

    def test_each_run_starts_fresh(self, engine: AggregationEngine):
        """The applied flag belongs to one pass over one worker."""
        worker = make_worker(
            Paycheck(year=2025, entries=[entry("12", 2000)]),
            dependents=[Dependent(name="ANA", counts_for_deduction=True)],
        )
        first = engine.aggregate_worker(worker, 2025)
        second = engine.aggregate_worker(worker, 2025)
        assert first.thirteenth_net == second.thirteenth_net == Decimal("1810.41")


class TestBucketInvariant:
    """Test suite for the total/details invariant."""

    def test_totals_match_details_after_every_rule(self):
        """Adds, subtractions, offsets and deductions keep buckets consistent."""
        worker = make_worker(
            Paycheck(
                year=2025,
                base_calc_income_tax=100,
                entries=[entry(code, 10) for code in DEFAULT_CODE_TABLE] + [entry("12", 5000)],
            ),
            dependents=[Dependent(name="ANA", counts_for_deduction=True)],
            leave_periods=[
                leave(date(2025, 1, 5), entry("8781", 1), income_tax_withheld=3, withheld_on_payout=True)
            ],
        )
        records = aggregate_workers([worker], 2025)

        assert len(records) == 1
        assert_consistent(records[0])
