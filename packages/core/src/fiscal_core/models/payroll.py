"""Payroll ledger input and aggregated per-worker output.

Input models (``Worker`` and what it contains) come from the canonical
row schema built by ``fiscal_core.rows``. Output models hold one running
total per income category along with the ordered entries that produced it.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, computed_field, field_validator

from ..values import parse_value


class EntryOrigin(str, Enum):
    """Where a detail entry came from."""

    REGULAR_PAYCHECK = "regular_paycheck"
    LEAVE_PAYOUT = "leave_payout"
    ANNUAL_ADJUSTMENT = "annual_adjustment"


class IncomeCategory(str, Enum):
    """Semantic categories of the annual income report."""

    TAXABLE_INCOME = "taxable_income"
    OFFICIAL_SOCIAL_SECURITY = "official_social_security"
    INCOME_TAX = "income_tax"
    INCOME_TAX_BASE = "income_tax_base"
    THIRTEENTH_NET = "thirteenth_net"
    THIRTEENTH_INCOME_TAX = "thirteenth_income_tax"
    THIRTEENTH_SOCIAL_SECURITY = "thirteenth_social_security"
    PROFIT_SHARE = "profit_share"
    PROFIT_SHARE_INCOME_TAX = "profit_share_income_tax"
    HEALTH_PLAN_DISCOUNT = "health_plan_discount"
    EXEMPT_INCOME = "exempt_income"


def _coerce_amount(v: Any) -> Any:
    if v is None or isinstance(v, (str, int, float)):
        return parse_value(v)
    return v


class PaycheckEntry(BaseModel):
    """A single ledger line (lançamento)."""

    code: str
    amount: Decimal = Decimal("0")
    description: Optional[str] = None

    @field_validator("code", mode="before")
    @classmethod
    def coerce_code(cls, v):
        """Codes arrive as numbers from some spreadsheets."""
        return str(v).strip() if v is not None else ""

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount(cls, v):
        """Accept locale formatted strings such as "10.000,00"."""
        return _coerce_amount(v)


class Paycheck(BaseModel):
    """One payroll run (contracheque) of a worker."""

    year: Optional[int] = None
    entries: list[PaycheckEntry] = Field(default_factory=list)
    base_calc_income_tax: Optional[Decimal] = Field(
        default=None,
        description="Income tax calculation base printed on the paycheck",
    )
    source_label: str = ""

    @field_validator("base_calc_income_tax", mode="before")
    @classmethod
    def coerce_base(cls, v):
        if v is None or v == "":
            return None
        return _coerce_amount(v)


class Dependent(BaseModel):
    name: str = ""
    counts_for_deduction: bool = False


class LeaveEvent(BaseModel):
    """A vacation payout.

    ``withheld_on_payout`` selects the withholding method: when True the
    income tax and social security were withheld on the payout itself and
    belong in the totals; when False they were computed with the monthly
    payroll and are already in the paycheck lines.
    """

    payout_date: Optional[date] = None
    entries: list[PaycheckEntry] = Field(default_factory=list)
    income_tax_withheld: Decimal = Decimal("0")
    social_security_withheld: Decimal = Decimal("0")
    withheld_on_payout: bool = False

    @field_validator("income_tax_withheld", "social_security_withheld", mode="before")
    @classmethod
    def coerce_withheld(cls, v):
        return _coerce_amount(v)


class LeavePeriod(BaseModel):
    """A vesting period with the payouts made against it."""

    start: Optional[date] = None
    end: Optional[date] = None
    events: list[LeaveEvent] = Field(default_factory=list)


class Worker(BaseModel):
    worker_id: str
    name: str = ""
    tax_id: str = ""
    paychecks: list[Paycheck] = Field(default_factory=list)
    dependents: list[Dependent] = Field(default_factory=list)
    leave_periods: list[LeavePeriod] = Field(default_factory=list)

    @property
    def counting_dependents(self) -> int:
        return sum(1 for d in self.dependents if d.counts_for_deduction)


class DetailEntry(BaseModel):
    """One signed contribution to a category total."""

    origin: EntryOrigin
    code: Optional[str] = None
    description: Optional[str] = None
    amount: Decimal


class CategoryBucket(BaseModel):
    """A running total and the ordered entries that add up to it."""

    total: Decimal = Decimal("0")
    details: list[DetailEntry] = Field(default_factory=list)

    def record(self, entry: DetailEntry) -> None:
        """Append an entry and move the total by its signed amount."""
        self.details.append(entry)
        self.total += entry.amount

    @property
    def is_consistent(self) -> bool:
        return self.total == sum((d.amount for d in self.details), Decimal("0"))


def _empty_buckets() -> dict[IncomeCategory, CategoryBucket]:
    return {category: CategoryBucket() for category in IncomeCategory}


class AggregatedWorkerRecord(BaseModel):
    """One worker's categorized totals for one calendar year."""

    worker_id: str
    name: str = ""
    tax_id: str = ""
    year: int
    categories: dict[IncomeCategory, CategoryBucket] = Field(default_factory=_empty_buckets)
    dependent_deduction_applied: bool = False

    def bucket(self, category: IncomeCategory) -> CategoryBucket:
        return self.categories[category]

    def total(self, category: IncomeCategory) -> Decimal:
        return self.categories[category].total

    @computed_field
    @property
    def taxable_income(self) -> Decimal:
        return self.total(IncomeCategory.TAXABLE_INCOME)

    @computed_field
    @property
    def thirteenth_net(self) -> Decimal:
        return self.total(IncomeCategory.THIRTEENTH_NET)
