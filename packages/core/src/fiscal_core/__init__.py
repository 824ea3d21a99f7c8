"""Fiscal Core - Document extraction, payroll aggregation and tax computation."""

__version__ = "0.1.0"

from .aggregation import AggregationEngine
from .config import FiscalConfig
from .informe_extractor import InformeExtractor, parse_income_statements
from .invoice_extractor import InvoiceExtractor, extract_invoice, process_invoice_batch
from .models import (
    AggregatedWorkerRecord,
    ExtractedInvoiceRecord,
    IncomeCategory,
    IncomeStatementRecord,
    TaxComputationResult,
    TaxType,
)
from .tax_engine import TaxComputationEngine
from .values import parse_value, round2

__all__ = [
    "AggregatedWorkerRecord",
    "AggregationEngine",
    "ExtractedInvoiceRecord",
    "FiscalConfig",
    "IncomeCategory",
    "IncomeStatementRecord",
    "InformeExtractor",
    "InvoiceExtractor",
    "TaxComputationEngine",
    "TaxComputationResult",
    "TaxType",
    "extract_invoice",
    "parse_income_statements",
    "parse_value",
    "process_invoice_batch",
    "round2",
]
