"""Service invoice (NFS-e) records."""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, computed_field


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ExtractedInvoiceRecord(BaseModel):
    """Fields extracted from one NFS-e.

    Every field is extracted independently, so ``net_value`` is not
    guaranteed to equal ``service_value - deductions - total_taxes``;
    ``net_value_matches`` reports whether it does.
    """

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "nfs_number": "1234",
                    "issuer_tax_id": "12.345.678/0001-90",
                    "taker_tax_id": "98.765.432/0001-10",
                    "service_value": "10000.00",
                    "net_value": "9385.00",
                    "extraction_confidence": 1.0,
                }
            ]
        }
    }

    # Identification
    nfs_number: str = ""
    access_key: str = ""
    series_number: str = ""
    emission_date: str = ""
    emission_time: str = ""
    is_cancelled: bool = Field(
        default=False,
        description="Document carries the CANCELADA stamp",
    )

    # Issuer (prestador)
    issuer_name: str = ""
    issuer_tax_id: str = Field(default="", description="CNPJ or CPF of the issuer")
    issuer_address: str = ""
    issuer_city: str = ""
    issuer_state: str = ""
    issuer_postal_code: str = ""
    issuer_phone: str = ""
    issuer_email: str = ""

    # Taker (tomador)
    taker_name: str = ""
    taker_tax_id: str = Field(default="", description="CNPJ or CPF of the taker")
    taker_address: str = ""
    taker_city: str = ""
    taker_state: str = ""
    taker_postal_code: str = ""
    taker_phone: str = ""
    taker_email: str = ""

    # Service
    service_code: str = ""
    service_description: str = ""

    # Amounts
    service_value: Decimal = Decimal("0")
    deductions: Decimal = Decimal("0")
    irrf: Decimal = Decimal("0")
    pis: Decimal = Decimal("0")
    cofins: Decimal = Decimal("0")
    csll: Decimal = Decimal("0")
    issqn_base: Decimal = Decimal("0")
    issqn_assessed: Decimal = Decimal("0")
    issqn_social_security: Decimal = Decimal("0")
    issqn_withheld: Decimal = Decimal("0")
    net_value: Decimal = Decimal("0")

    # ISSQN descriptors
    issqn_rate: str = ""
    issqn_suspension: str = ""
    issqn_municipality: str = ""
    issqn_taxation: str = ""

    # Provenance
    filename: str = ""
    extraction_confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    extraction_errors: list[str] = Field(default_factory=list)
    raw_text: str = ""

    @computed_field
    @property
    def total_taxes(self) -> Decimal:
        """Sum of the federal retentions and the withheld ISSQN."""
        return self.irrf + self.pis + self.cofins + self.csll + self.issqn_withheld

    @property
    def net_value_matches(self) -> bool:
        return self.net_value == self.service_value - self.deductions - self.total_taxes


class ProcessingError(BaseModel):
    """A document that failed extraction in a batch."""

    filename: str
    error: str
    timestamp: datetime = Field(default_factory=_utc_now)


class InvoiceBatchResult(BaseModel):
    """Outcome of extracting a batch of invoice documents.

    ``invoices`` always has one record per input, failed ones included.
    """

    invoices: list[ExtractedInvoiceRecord] = Field(default_factory=list)
    success_count: int = 0
    error_count: int = 0
    errors: list[ProcessingError] = Field(default_factory=list)

    @computed_field
    @property
    def total_processed(self) -> int:
        return len(self.invoices)

    def find(self, nfs_number: str) -> Optional[ExtractedInvoiceRecord]:
        """Return the first invoice with the given number, if any."""
        for invoice in self.invoices:
            if invoice.nfs_number == nfs_number:
                return invoice
        return None
