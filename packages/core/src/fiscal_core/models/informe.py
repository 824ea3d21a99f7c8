"""Annual income statement (informe de rendimentos) records."""

from decimal import Decimal

from pydantic import BaseModel, Field, computed_field


class HealthPlanEntry(BaseModel):
    """One health plan line: who benefited and how much was paid."""

    beneficiary: str
    amount: Decimal = Decimal("0")


class IncomeStatementRecord(BaseModel):
    """One worker block of an income statement.

    Amounts are the yearly figures printed on the statement.
    """

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "worker_id": "000155",
                    "name": "AGNALDO CORREIA DOS SANTOS",
                    "total_taxable_income": "78609.11",
                    "official_social_security": "8934.37",
                    "income_tax_withheld": "0",
                }
            ]
        }
    }

    worker_id: str = Field(description="Worker registration number (matrícula)")
    name: str = ""
    total_taxable_income: Decimal = Decimal("0")
    official_social_security: Decimal = Decimal("0")
    income_tax_withheld: Decimal = Decimal("0")
    thirteenth_salary: Decimal = Decimal("0")
    thirteenth_income_tax: Decimal = Decimal("0")
    profit_share: Decimal = Decimal("0")
    health_plan: list[HealthPlanEntry] = Field(default_factory=list)
    raw_text: str = ""

    @computed_field
    @property
    def health_plan_total(self) -> Decimal:
        return sum((entry.amount for entry in self.health_plan), Decimal("0"))

    @property
    def has_amounts(self) -> bool:
        """True if any amount is non-zero or a health plan line exists."""
        amounts = (
            self.total_taxable_income,
            self.official_social_security,
            self.income_tax_withheld,
            self.thirteenth_salary,
            self.thirteenth_income_tax,
            self.profit_share,
        )
        return any(amount != 0 for amount in amounts) or bool(self.health_plan)
