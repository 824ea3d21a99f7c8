"""Tax computation inputs and results.

All rates are fractions (0.015 for 1.5%). Amounts are Decimal and every
computed amount is rounded to cents with ``round2``.
"""

import re
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, computed_field, field_validator

from ..values import parse_value

_INVOICE_NUMBER_RE = re.compile(r"\d+")


class TaxType(str, Enum):
    """The five taxes computed per invoice."""

    IRPJ = "irpj"
    CSLL = "csll"
    COFINS = "cofins"
    PIS = "pis"
    ISS = "iss"


class SchemeMatch(str, Enum):
    """How an invoice's withholding scheme was found."""

    EXACT_NAME = "exact_name"
    NORMALIZED_NAME = "normalized_name"
    CLOSEST_PERCENTAGE = "closest_percentage"
    NONE = "none"


class TaxSchemeMapping(BaseModel):
    """A named set of withholding rates."""

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "name": "11 | IR 1,5% + CSLL",
                    "retention_percentage": "2.5",
                    "irpj": "0.015",
                    "csll": "0.01",
                }
            ]
        }
    }

    name: str
    retention_percentage: Decimal = Field(
        default=Decimal("0"),
        description="Total withholding, as a percent or as a fraction below 1",
    )
    irpj: Decimal = Decimal("0")
    csll: Decimal = Decimal("0")
    cofins: Decimal = Decimal("0")
    pis: Decimal = Decimal("0")
    iss: Decimal = Decimal("0")

    def rate(self, tax_type: TaxType) -> Decimal:
        return getattr(self, tax_type.value)


class InvoiceRow(BaseModel):
    """One invoice line of the billing export, in canonical form."""

    number: str
    issue_date: Optional[date] = None
    status: str = ""
    customer_name: str = ""
    total: Decimal = Decimal("0")
    item_tax: str = Field(default="", description="Name of the withholding scheme")
    item_tax_amount: Decimal = Field(
        default=Decimal("0"),
        description="Tax amount withheld by the customer",
    )
    project_name: str = ""
    team: str = ""

    @field_validator("total", "item_tax_amount", mode="before")
    @classmethod
    def coerce_amount(cls, v):
        if v is None or isinstance(v, (str, int, float)):
            return parse_value(v)
        return v

    @property
    def is_billable(self) -> bool:
        """Void and draft invoices do not count."""
        return self.status.strip().lower() not in {"void", "draft"}


class AnticipatedCharge(BaseModel):
    """An ISS bill paid in advance for one or more invoices.

    The invoices are referenced by number inside ``identifier``, e.g.
    "NF 1203/1204 ISS".
    """

    identifier: str
    amount: Decimal = Decimal("0")
    issue_date: Optional[date] = None

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount(cls, v):
        if v is None or isinstance(v, (str, int, float)):
            return parse_value(v)
        return v

    @property
    def referenced_numbers(self) -> list[str]:
        return _INVOICE_NUMBER_RE.findall(self.identifier)


class TaxBreakdown(BaseModel):
    due: Decimal = Decimal("0")
    retained: Decimal = Decimal("0")

    @computed_field
    @property
    def pending(self) -> Decimal:
        return self.due - self.retained


class InvoiceTaxResult(BaseModel):
    """Per-invoice tax figures."""

    number: str
    customer_name: str = ""
    issue_date: Optional[date] = None
    total: Decimal = Decimal("0")
    scheme_name: Optional[str] = None
    scheme_match: SchemeMatch = SchemeMatch.NONE
    special_rule_applied: bool = False
    taxes: dict[TaxType, TaxBreakdown] = Field(default_factory=dict)
    anticipated_iss: Decimal = Decimal("0")
    total_retained: Decimal = Decimal("0")
    other_retained: Decimal = Field(
        default=Decimal("0"),
        description="Retained amount not explained by the declared item tax",
    )
    irpj_quarterly: Optional[Decimal] = None
    csll_quarterly: Optional[Decimal] = None

    def tax(self, tax_type: TaxType) -> TaxBreakdown:
        return self.taxes[tax_type]

    @computed_field
    @property
    def iss_pending(self) -> Decimal:
        """ISS still to pay after retention and anticipated bills."""
        iss = self.taxes.get(TaxType.ISS)
        if iss is None:
            return Decimal("0")
        return iss.pending - self.anticipated_iss


class TaxSummary(BaseModel):
    """Totals across all invoices of a computation.

    Quarterly fields stay None unless the quarterly basis was computed.
    """

    invoice_count: int = 0
    total_invoiced: Decimal = Decimal("0")
    due: dict[TaxType, Decimal] = Field(default_factory=dict)
    retained: dict[TaxType, Decimal] = Field(default_factory=dict)
    pending: dict[TaxType, Decimal] = Field(default_factory=dict)
    anticipated_iss: Decimal = Decimal("0")

    presumed_profit: Optional[Decimal] = None
    investment_result: Optional[Decimal] = None
    computation_base: Optional[Decimal] = None
    income_tax_due: Optional[Decimal] = None
    surcharge: Optional[Decimal] = None
    irpj_retained_total: Optional[Decimal] = None
    irpj_due: Optional[Decimal] = None
    csll_due_gross: Optional[Decimal] = None
    csll_retained: Optional[Decimal] = None
    csll_due: Optional[Decimal] = None


class TaxComputationResult(BaseModel):
    invoices: list[InvoiceTaxResult] = Field(default_factory=list)
    summary: TaxSummary = Field(default_factory=TaxSummary)
    warnings: list[str] = Field(default_factory=list)

    def find(self, number: str) -> Optional[InvoiceTaxResult]:
        for invoice in self.invoices:
            if invoice.number == number:
                return invoice
        return None
