"""Tests for NFS-e extraction."""

from decimal import Decimal

import pytest

from fiscal_core.invoice_extractor import (
    InvoiceExtractor,
    extract_invoice,
    extract_invoices,
    process_invoice_batch,
)
from fiscal_core.models import ExtractedInvoiceRecord

from documents import ACCESS_KEY, INVOICE_TEXT


@pytest.fixture
def extractor() -> InvoiceExtractor:
    return InvoiceExtractor()


@pytest.fixture
def record(extractor: InvoiceExtractor, invoice_text: str) -> ExtractedInvoiceRecord:
    return extractor.extract(invoice_text, "nota_1234.pdf")


class TestInvoiceFields:
    """Test suite for the fields of a complete DANFSe."""

    def test_identification(self, record: ExtractedInvoiceRecord):
        """Number, series, access key and emission are read."""
        assert record.nfs_number == "1234"
        assert record.series_number == "900"
        assert record.access_key == ACCESS_KEY
        assert record.emission_date == "05/03/2025"
        assert record.emission_time == "14:22:10"
        assert record.is_cancelled is False

    def test_issuer(self, record: ExtractedInvoiceRecord):
        """Issuer fields come from the issuer section only."""
        assert record.issuer_tax_id == "12.345.678/0001-90"
        assert record.issuer_name == "ACME CONSULTORIA LTDA"
        assert record.issuer_email == "contato@acme.com.br"
        assert record.issuer_address == "RUA DAS FLORES, 100"
        assert record.issuer_city == "São Paulo"
        assert record.issuer_state == "SP"
        assert record.issuer_postal_code == "01310-100"
        assert record.issuer_phone == "(11) 3333-4444"

    def test_taker(self, record: ExtractedInvoiceRecord):
        """Taker fields come from the taker section only."""
        assert record.taker_tax_id == "98.765.432/0001-10"
        assert record.taker_name == "CLIENTE EXEMPLO S.A."
        assert record.taker_address == "AV PAULISTA, 1000"
        assert record.taker_city == "Rio de Janeiro"
        assert record.taker_state == "RJ"
        assert record.taker_postal_code == "20040-020"
        assert record.taker_phone == ""
        assert record.taker_email == ""

    def test_service(self, record: ExtractedInvoiceRecord):
        """Service code and multi-line description are read."""
        assert record.service_code == "01.07.01 - Suporte técnico em informática"
        assert record.service_description == "Consultoria em sistemas referente a março"

    def test_amounts(self, record: ExtractedInvoiceRecord):
        """Money fields are parsed from their R$ values."""
        assert record.service_value == Decimal("10000.00")
        assert record.deductions == Decimal("0")
        assert record.irrf == Decimal("150.00")
        assert record.pis == Decimal("65.00")
        assert record.cofins == Decimal("300.00")
        assert record.csll == Decimal("100.00")
        assert record.issqn_base == Decimal("10000.00")
        assert record.issqn_assessed == Decimal("200.00")
        assert record.issqn_withheld == Decimal("0")
        assert record.net_value == Decimal("9385.00")

    def test_issqn_descriptors(self, record: ExtractedInvoiceRecord):
        assert record.issqn_rate == "2,00%"
        assert record.issqn_suspension == "Não"
        assert record.issqn_municipality == "São Paulo - SP"
        assert record.issqn_taxation == "Tributável"

    def test_net_value_is_consistent(self, record: ExtractedInvoiceRecord):
        """Net value equals service value minus deductions and taxes."""
        assert record.total_taxes == Decimal("615.00")
        assert record.net_value == record.service_value - record.deductions - record.total_taxes
        assert record.net_value_matches

    def test_full_confidence(self, record: ExtractedInvoiceRecord):
        """All essential fields present means confidence 1 and no errors."""
        assert record.extraction_confidence == 1.0
        assert record.extraction_errors == []
        assert record.filename == "nota_1234.pdf"
        assert record.raw_text == INVOICE_TEXT

    def test_cancelled_stamp(self, extractor: InvoiceExtractor):
        """A CANCELADA stamp in the municipal section marks the invoice."""
        text = INVOICE_TEXT.replace(
            "Regime Especial de Tributação\nNenhum",
            "Regime Especial de Tributação\nCANCELADA",
        )
        assert extractor.extract(text).is_cancelled is True


class TestConfidenceAndFailures:
    """Test suite for partial and unreadable input."""

    def test_missing_essential_fields(self, extractor: InvoiceExtractor):
        """Each missing essential field lowers the confidence by a quarter."""
        record = extractor.extract("DANFSe\nNúmero da NFS-e\n77\n", "parcial.pdf")

        assert record.nfs_number == "77"
        assert record.extraction_confidence == 0.25
        assert record.extraction_errors == [
            "Missing essential fields: issuer_tax_id, taker_tax_id, net_value"
        ]

    def test_unreadable_document(self, extractor: InvoiceExtractor):
        """None stands for a document that could not be decoded."""
        record = extractor.extract(None, "quebrado.pdf")

        assert record.extraction_confidence == 0.0
        assert record.extraction_errors == ["Document could not be read"]
        assert record.filename == "quebrado.pdf"
        assert record.nfs_number == ""

    def test_document_without_text(self, extractor: InvoiceExtractor):
        """Scanned PDFs have an empty text layer."""
        record = extractor.extract(" \n ", "scan.pdf")
        assert record.extraction_errors == ["Document has no text layer"]

    def test_unexpected_failure_is_contained(self, extractor: InvoiceExtractor, monkeypatch):
        """Extraction never raises, even on internal errors."""

        def explode(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(extractor.fields, "extract_all", explode)
        record = extractor.extract(INVOICE_TEXT, "nota.pdf")

        assert record.extraction_confidence == 0.0
        assert record.extraction_errors == ["Unexpected extraction failure: boom"]


class TestBatch:
    """Test suite for batch processing."""

    def test_one_record_per_input(self):
        """N documents always give N records."""
        result = process_invoice_batch(
            [("a.pdf", INVOICE_TEXT), ("b.pdf", None), ("c.pdf", "")]
        )

        assert result.total_processed == 3
        assert len(result.invoices) == 3
        assert result.success_count == 1
        assert result.error_count == 2
        assert [e.filename for e in result.errors] == ["b.pdf", "c.pdf"]
        assert result.find("1234").filename == "a.pdf"

    def test_incomplete_invoice_is_not_an_error(self):
        """Low confidence is reported on the record, not as a batch error."""
        result = process_invoice_batch([("x.pdf", "DANFSe\nNúmero da NFS-e\n77\n")])
        assert result.success_count == 1
        assert result.errors == []


class TestMultipleInvoices:
    """Test suite for documents holding several DANFSe."""

    def test_each_danfse_is_extracted(self):
        """Every header starts a new invoice."""
        second = INVOICE_TEXT.replace("Número da NFS-e\n1234", "Número da NFS-e\n5678")
        records = extract_invoices(INVOICE_TEXT + second, "lote.pdf")

        assert [r.nfs_number for r in records] == ["1234", "5678"]
        assert all(r.extraction_confidence == 1.0 for r in records)

    def test_single_document(self):
        """A document with one header gives one record."""
        records = extract_invoices(INVOICE_TEXT, "nota.pdf")
        assert len(records) == 1
        assert records[0].nfs_number == extract_invoice(INVOICE_TEXT).nfs_number
