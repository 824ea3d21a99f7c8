"""Data models for fiscal-core.

- Service invoice extraction records (invoice.py)
- Income statement records (informe.py)
- Payroll ledger input and aggregated output (payroll.py)
- Tax computation input and results (tax.py)
"""

from fiscal_core.models.informe import HealthPlanEntry, IncomeStatementRecord
from fiscal_core.models.invoice import (
    ExtractedInvoiceRecord,
    InvoiceBatchResult,
    ProcessingError,
)
from fiscal_core.models.payroll import (
    AggregatedWorkerRecord,
    CategoryBucket,
    Dependent,
    DetailEntry,
    EntryOrigin,
    IncomeCategory,
    LeaveEvent,
    LeavePeriod,
    Paycheck,
    PaycheckEntry,
    Worker,
)
from fiscal_core.models.tax import (
    AnticipatedCharge,
    InvoiceRow,
    InvoiceTaxResult,
    SchemeMatch,
    TaxBreakdown,
    TaxComputationResult,
    TaxSchemeMapping,
    TaxSummary,
    TaxType,
)

__all__ = [
    # Invoices
    "ExtractedInvoiceRecord",
    "InvoiceBatchResult",
    "ProcessingError",
    # Income statements
    "HealthPlanEntry",
    "IncomeStatementRecord",
    # Payroll
    "AggregatedWorkerRecord",
    "CategoryBucket",
    "Dependent",
    "DetailEntry",
    "EntryOrigin",
    "IncomeCategory",
    "LeaveEvent",
    "LeavePeriod",
    "Paycheck",
    "PaycheckEntry",
    "Worker",
    # Taxes
    "AnticipatedCharge",
    "InvoiceRow",
    "InvoiceTaxResult",
    "SchemeMatch",
    "TaxBreakdown",
    "TaxComputationResult",
    "TaxSchemeMapping",
    "TaxSummary",
    "TaxType",
]
