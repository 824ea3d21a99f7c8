"""Configuration for fiscal-core.

Pydantic Settings based, with environment variable and .env support. Every
engine accepts an optional config section and falls back to the defaults
below, which carry the statutory values currently in force.

Usage:
    from fiscal_core.config import FiscalConfig

    config = FiscalConfig()
    print(config.tax.irpj_rate)
    print(config.payroll.dependent_deduction)
"""

from decimal import Decimal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ExtractionConfig(BaseSettings):
    """Text extraction settings.

    Environment Variables:
        FISCAL_EXTRACTION_RELAXED_WINDOW: Characters searched around a label
        FISCAL_EXTRACTION_CONTEXT_WINDOW: Characters inspected before an anchor
        FISCAL_EXTRACTION_COLLAPSE_BLANK_LINES: Fold blank lines in income statements
    """

    model_config = SettingsConfigDict(
        env_prefix="FISCAL_EXTRACTION_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    relaxed_window: int = Field(
        default=100,
        gt=0,
        le=1000,
        description="Maximum distance in characters between a label and its value",
    )
    context_window: int = Field(
        default=50,
        ge=0,
        le=500,
        description="Characters before an anchor checked for header markers",
    )
    collapse_blank_lines: bool = Field(
        default=True,
        description="Collapse blank lines when normalizing income statements",
    )


class TaxRateConfig(BaseSettings):
    """Statutory rates and thresholds.

    Rates are fractions (0.048 means 4.8%).

    Environment Variables:
        FISCAL_TAX_IRPJ_RATE, FISCAL_TAX_CSLL_RATE, FISCAL_TAX_COFINS_RATE,
        FISCAL_TAX_PIS_RATE, FISCAL_TAX_ISS_RATE: Due rates per tax type
        FISCAL_TAX_PRESUMPTION_RATE: Presumed profit rate for services
        FISCAL_TAX_PRESUMPTION_EXCESS_RATE: Rate above the annual tier limit
        FISCAL_TAX_PRESUMPTION_TIER_LIMIT: Annual revenue where the tier starts
        FISCAL_TAX_TIER_CUTOVER_YEAR: Tier applies to invoices after this year
        FISCAL_TAX_INCOME_TAX_RATE: Quarterly income tax rate
        FISCAL_TAX_SURCHARGE_RATE: Surcharge rate above the threshold
        FISCAL_TAX_SURCHARGE_THRESHOLD: Quarterly base exempt from surcharge
        FISCAL_TAX_SOCIAL_CONTRIBUTION_RATE: Quarterly CSLL rate
    """

    model_config = SettingsConfigDict(
        env_prefix="FISCAL_TAX_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    irpj_rate: Decimal = Field(default=Decimal("0.048"), ge=0, le=1)
    csll_rate: Decimal = Field(default=Decimal("0.0288"), ge=0, le=1)
    cofins_rate: Decimal = Field(default=Decimal("0.03"), ge=0, le=1)
    pis_rate: Decimal = Field(default=Decimal("0.0065"), ge=0, le=1)
    iss_rate: Decimal = Field(default=Decimal("0.02"), ge=0, le=1)

    presumption_rate: Decimal = Field(default=Decimal("0.32"), ge=0, le=1)
    presumption_excess_rate: Decimal = Field(default=Decimal("0.352"), ge=0, le=1)
    presumption_tier_limit: Decimal = Field(default=Decimal("1250000"), ge=0)
    tier_cutover_year: int = Field(
        default=2025,
        description="The tiered presumption applies when an invoice is dated after this year",
    )
    income_tax_rate: Decimal = Field(default=Decimal("0.15"), ge=0, le=1)
    surcharge_rate: Decimal = Field(default=Decimal("0.10"), ge=0, le=1)
    surcharge_threshold: Decimal = Field(default=Decimal("60000"), ge=0)
    social_contribution_rate: Decimal = Field(default=Decimal("0.09"), ge=0, le=1)


class PayrollConfig(BaseSettings):
    """Payroll aggregation settings.

    Environment Variables:
        FISCAL_PAYROLL_DEPENDENT_DEDUCTION: Amount deducted per dependent
    """

    model_config = SettingsConfigDict(
        env_prefix="FISCAL_PAYROLL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    dependent_deduction: Decimal = Field(
        default=Decimal("189.59"),
        ge=0,
        description="Monthly income tax deduction per qualifying dependent",
    )


class FiscalConfig(BaseSettings):
    """Root configuration.

    Environment Variables:
        FISCAL_ENV: Environment name (development, staging, production, test)
        FISCAL_LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)
        FISCAL_LOG_FORMAT: Log renderer (console, json)

    Example:
        config = FiscalConfig(
            tax=TaxRateConfig(iss_rate=Decimal("0.05")),
            payroll=PayrollConfig(dependent_deduction=Decimal("200")),
        )
    """

    model_config = SettingsConfigDict(
        env_prefix="FISCAL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    env: str = Field(
        default="development",
        description="Environment name (development, staging, production, test)",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_format: str = Field(
        default="console",
        description="Log renderer: console or json",
    )

    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    tax: TaxRateConfig = Field(default_factory=TaxRateConfig)
    payroll: PayrollConfig = Field(default_factory=PayrollConfig)

    @field_validator("env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment name."""
        valid_envs = {"development", "staging", "production", "test"}
        v_lower = v.lower().strip()
        if v_lower not in valid_envs:
            raise ValueError(f"Invalid environment: {v}. Must be one of: {valid_envs}")
        return v_lower

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper().strip()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of: {valid_levels}")
        return v_upper

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v_lower = v.lower().strip()
        if v_lower not in {"console", "json"}:
            raise ValueError(f"Invalid log format: {v}. Must be console or json")
        return v_lower

    @property
    def is_production(self) -> bool:
        return self.env == "production"

    @property
    def is_debug(self) -> bool:
        return self.log_level == "DEBUG"
