"""Payroll aggregation into annual income report categories.

Each ledger code maps to one category through a ``CodeRule``. A rule adds
(or, for corrections and reimbursements, subtracts) the line amount from
its category, and may also take the same amount off a second category:
13th salary withholdings are reported separately, so they come out of
the 13th salary net.

Every contribution is recorded as a ``DetailEntry`` in its bucket, so a
worker's totals can always be traced back to the lines that produced them.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Mapping, Optional

import structlog

from .config import PayrollConfig
from .models.payroll import (
    AggregatedWorkerRecord,
    DetailEntry,
    EntryOrigin,
    IncomeCategory,
    LeaveEvent,
    PaycheckEntry,
    Worker,
)
from .values import ZERO

logger = structlog.get_logger()


@dataclass(frozen=True)
class CodeRule:
    """How one ledger code feeds the report.

    Args:
        code: Ledger code as printed on the paycheck.
        category: Category the amount goes to.
        sign: +1 to add the amount, -1 to subtract it.
        offset_category: Category the same amount is taken off, if any.
        offset_description: Description of the offsetting detail.
    """

    code: str
    category: IncomeCategory
    sign: int = 1
    offset_category: Optional[IncomeCategory] = None
    offset_description: Optional[str] = None


def _rules(*rules: CodeRule) -> dict[str, CodeRule]:
    return {rule.code: rule for rule in rules}


C = IncomeCategory

DEFAULT_CODE_TABLE: Mapping[str, CodeRule] = _rules(
    CodeRule("8781", C.TAXABLE_INCOME),
    CodeRule("9380", C.TAXABLE_INCOME),
    CodeRule("931", C.TAXABLE_INCOME),
    CodeRule("998", C.OFFICIAL_SOCIAL_SECURITY),
    CodeRule("843", C.OFFICIAL_SOCIAL_SECURITY),
    CodeRule("812", C.OFFICIAL_SOCIAL_SECURITY),
    CodeRule("8919", C.OFFICIAL_SOCIAL_SECURITY, sign=-1),
    CodeRule("999", C.INCOME_TAX),
    CodeRule("12", C.THIRTEENTH_NET),
    CodeRule("804", C.THIRTEENTH_INCOME_TAX, offset_category=C.THIRTEENTH_NET, offset_description="Dedução IRRF 13º"),
    CodeRule("827", C.THIRTEENTH_INCOME_TAX, offset_category=C.THIRTEENTH_NET, offset_description="Dedução IRRF 13º"),
    CodeRule("825", C.THIRTEENTH_SOCIAL_SECURITY, offset_category=C.THIRTEENTH_NET, offset_description="Dedução INSS 13º"),
    CodeRule("873", C.PROFIT_SHARE),
    CodeRule("874", C.PROFIT_SHARE_INCOME_TAX),
    CodeRule("8111", C.HEALTH_PLAN_DISCOUNT),
    CodeRule("8917", C.HEALTH_PLAN_DISCOUNT, sign=-1),
    CodeRule("9390", C.EXEMPT_INCOME),
)

del C


class AggregationEngine:
    """Aggregates workers' payroll ledgers for one calendar year.

    The dependent deduction is applied at most once per worker and only
    when there is a 13th salary to deduct from. It is attempted after each
    leave payout and once more at the end of the worker's pass.

    Example:
        engine = AggregationEngine()
        records = engine.aggregate(workers, 2024)
        for record in records:
            print(record.worker_id, record.taxable_income)
    """

    def __init__(
        self,
        code_table: Optional[Mapping[str, CodeRule]] = None,
        config: Optional[PayrollConfig] = None,
    ):
        self.code_table = dict(DEFAULT_CODE_TABLE if code_table is None else code_table)
        self.config = config or PayrollConfig()

    def aggregate(self, workers: Iterable[Worker], year: int) -> list[AggregatedWorkerRecord]:
        """Aggregate every worker with activity in ``year``."""
        records = []
        skipped = 0
        for worker in workers:
            record = self.aggregate_worker(worker, year)
            if record is None:
                skipped += 1
            else:
                records.append(record)
        logger.info("payroll_aggregated", year=year, workers=len(records), without_activity=skipped)
        return records

    def aggregate_worker(self, worker: Worker, year: int) -> Optional[AggregatedWorkerRecord]:
        """Aggregate one worker.

        Returns None when no paycheck or leave payout falls in ``year``.
        Paychecks without a year belong to every year.
        """
        record = AggregatedWorkerRecord(
            worker_id=worker.worker_id,
            name=worker.name,
            tax_id=worker.tax_id,
            year=year,
        )
        active = False

        for paycheck in worker.paychecks:
            if paycheck.year is not None and paycheck.year != year:
                continue
            active = True
            for entry in paycheck.entries:
                self._apply(record, entry, EntryOrigin.REGULAR_PAYCHECK)
            if paycheck.base_calc_income_tax is not None:
                record.bucket(IncomeCategory.INCOME_TAX_BASE).record(
                    DetailEntry(
                        origin=EntryOrigin.REGULAR_PAYCHECK,
                        description=paycheck.source_label or "Base de cálculo IRRF",
                        amount=paycheck.base_calc_income_tax,
                    )
                )

        for period in worker.leave_periods:
            for event in period.events:
                if event.payout_date is None or event.payout_date.year != year:
                    continue
                active = True
                self._apply_leave(record, event)
                self._apply_dependent_deduction(record, worker, EntryOrigin.LEAVE_PAYOUT)

        if not active:
            logger.debug("worker_without_activity", worker_id=worker.worker_id, year=year)
            return None

        self._apply_dependent_deduction(record, worker, EntryOrigin.ANNUAL_ADJUSTMENT)
        logger.debug(
            "worker_aggregated",
            worker_id=worker.worker_id,
            year=year,
            taxable_income=str(record.taxable_income),
            thirteenth_net=str(record.thirteenth_net),
        )
        return record

    def _apply(self, record: AggregatedWorkerRecord, entry: PaycheckEntry, origin: EntryOrigin) -> None:
        rule = self.code_table.get(entry.code)
        if rule is None:
            logger.debug("ledger_code_ignored", worker_id=record.worker_id, code=entry.code)
            return

        record.bucket(rule.category).record(
            DetailEntry(
                origin=origin,
                code=entry.code,
                description=entry.description,
                amount=entry.amount * rule.sign,
            )
        )
        if rule.offset_category is not None:
            record.bucket(rule.offset_category).record(
                DetailEntry(
                    origin=origin,
                    code=entry.code,
                    description=rule.offset_description,
                    amount=-entry.amount * rule.sign,
                )
            )

    def _apply_leave(self, record: AggregatedWorkerRecord, event: LeaveEvent) -> None:
        for entry in event.entries:
            self._apply(record, entry, EntryOrigin.LEAVE_PAYOUT)
        if not event.withheld_on_payout:
            return
        # Withholding computed with the monthly payroll is already in the
        # paycheck lines; only payout withholding is added here.
        if event.income_tax_withheld:
            record.bucket(IncomeCategory.INCOME_TAX).record(
                DetailEntry(
                    origin=EntryOrigin.LEAVE_PAYOUT,
                    description="IRRF férias",
                    amount=event.income_tax_withheld,
                )
            )
        if event.social_security_withheld:
            record.bucket(IncomeCategory.OFFICIAL_SOCIAL_SECURITY).record(
                DetailEntry(
                    origin=EntryOrigin.LEAVE_PAYOUT,
                    description="INSS férias",
                    amount=event.social_security_withheld,
                )
            )

    def _apply_dependent_deduction(
        self,
        record: AggregatedWorkerRecord,
        worker: Worker,
        origin: EntryOrigin,
    ) -> None:
        if record.dependent_deduction_applied:
            return
        dependents = worker.counting_dependents
        if dependents == 0 or record.thirteenth_net == ZERO:
            return

        deduction = self.config.dependent_deduction * dependents
        record.bucket(IncomeCategory.THIRTEENTH_NET).record(
            DetailEntry(
                origin=origin,
                description=f"Dedução dependentes ({dependents})",
                amount=-deduction,
            )
        )
        record.dependent_deduction_applied = True
        logger.info(
            "dependent_deduction_applied",
            worker_id=worker.worker_id,
            dependents=dependents,
            amount=str(deduction),
            origin=origin.value,
        )


def aggregate_workers(
    workers: Iterable[Worker],
    year: int,
    config: Optional[PayrollConfig] = None,
) -> list[AggregatedWorkerRecord]:
    return AggregationEngine(config=config).aggregate(workers, year)


__all__ = [
    "DEFAULT_CODE_TABLE",
    "AggregationEngine",
    "CodeRule",
    "aggregate_workers",
]
