"""Service invoice (NFS-e) extraction.

Reads the text layer of a DANFSe into an ``ExtractedInvoiceRecord``.
Extraction never raises: missing essential fields lower the confidence
and add an error message, and unreadable input yields an empty record
with confidence 0, so a batch of N documents always gives N records.
"""

from datetime import datetime, timezone
from typing import Iterable, Optional

import structlog

from .config import ExtractionConfig
from .exceptions import ExtractionError
from .field_extractor import FieldExtractor
from .models.invoice import ExtractedInvoiceRecord, InvoiceBatchResult, ProcessingError
from .patterns import (
    CANCELLATION_RE,
    ESSENTIAL_INVOICE_FIELDS,
    INVOICE_PATTERNS,
    ISSUER_SECTION_RE,
    PARTY_PATTERNS,
    SECTION_END_RE,
    TAKER_SECTION_RE,
)
from .segmentation import invoice_segmenter
from .text import normalize_text

logger = structlog.get_logger()

DOCUMENT_TYPE = "nfse"


class InvoiceExtractor:
    """Extracts NFS-e fields from DANFSe text.

    Example:
        extractor = InvoiceExtractor()
        record = extractor.extract(text, "nota_1234.pdf")
        if record.extraction_confidence < 1:
            print(record.extraction_errors)
    """

    def __init__(self, config: Optional[ExtractionConfig] = None):
        self.config = config or ExtractionConfig()
        self.fields = FieldExtractor(self.config)
        self.segmenter = invoice_segmenter()

    def extract(self, text: Optional[str], filename: str = "") -> ExtractedInvoiceRecord:
        """Extract a single invoice. Never raises."""
        record, _ = self._extract_safely(text, filename)
        return record

    def extract_many(self, text: Optional[str], filename: str = "") -> list[ExtractedInvoiceRecord]:
        """Extract every DANFSe found in one document.

        A document without a DANFSe header is read as a single invoice.
        """
        if not isinstance(text, str) or not text.strip():
            return [self.extract(text, filename)]
        normalized = normalize_text(text)
        spans = self.segmenter.segment(normalized)
        if len(spans) <= 1:
            return [self.extract(text, filename)]
        # Header material before the first DANFSe belongs to the first invoice.
        chunks = [normalized[:spans[1].start_offset]] + [span.text for span in spans[1:]]
        return [self.extract(chunk, filename) for chunk in chunks]

    def process_batch(self, documents: Iterable[tuple[str, Optional[str]]]) -> InvoiceBatchResult:
        """Extract a batch of ``(filename, text)`` documents.

        ``text`` is None when the document could not be decoded upstream.
        """
        result = InvoiceBatchResult()
        for filename, text in documents:
            record, fatal = self._extract_safely(text, filename)
            result.invoices.append(record)
            if fatal is None:
                result.success_count += 1
            else:
                result.error_count += 1
                result.errors.append(
                    ProcessingError(filename=filename, error=fatal, timestamp=datetime.now(timezone.utc))
                )
        logger.info(
            "invoice_batch_processed",
            total=result.total_processed,
            succeeded=result.success_count,
            failed=result.error_count,
        )
        return result

    def _extract_safely(
        self, text: Optional[str], filename: str
    ) -> tuple[ExtractedInvoiceRecord, Optional[str]]:
        try:
            return self._extract(text, filename), None
        except ExtractionError as e:
            logger.warning("invoice_unreadable", filename=filename, error=e.message, **e.details)
            return self._failed_record(filename, e.message), e.message
        except Exception as e:
            logger.exception("invoice_extraction_failed", filename=filename)
            message = f"Unexpected extraction failure: {e}"
            return self._failed_record(filename, message), message

    def _extract(self, text: Optional[str], filename: str) -> ExtractedInvoiceRecord:
        if text is None or not isinstance(text, str):
            raise ExtractionError(
                "Document could not be read",
                source=filename,
                document_type=DOCUMENT_TYPE,
            )
        normalized = normalize_text(text)
        if not normalized:
            raise ExtractionError(
                "Document has no text layer",
                source=filename,
                document_type=DOCUMENT_TYPE,
            )

        values = self.fields.extract_all(normalized, INVOICE_PATTERNS)
        issuer, taker = self._party_sections(normalized)
        for prefix, section in (("issuer", issuer), ("taker", taker)):
            for name, value in self.fields.extract_all(section, PARTY_PATTERNS).items():
                values[f"{prefix}_{name}"] = value

        record = ExtractedInvoiceRecord(
            **values,
            is_cancelled=CANCELLATION_RE.search(normalized) is not None,
            filename=filename,
            raw_text=text,
        )
        self._score(record)
        logger.info(
            "invoice_extracted",
            filename=filename,
            nfs_number=record.nfs_number,
            confidence=record.extraction_confidence,
            cancelled=record.is_cancelled,
        )
        return record

    def _party_sections(self, text: str) -> tuple[str, str]:
        """Return the issuer (emitente) and taker (tomador) blocks."""
        issuer = taker = ""
        issuer_start = ISSUER_SECTION_RE.search(text)
        taker_start = TAKER_SECTION_RE.search(text)
        if issuer_start:
            end = taker_start.start() if taker_start and taker_start.start() > issuer_start.end() else None
            if end is None:
                end_match = SECTION_END_RE.search(text, issuer_start.end())
                end = end_match.start() if end_match else len(text)
            issuer = text[issuer_start.end():end]
        if taker_start:
            end_match = SECTION_END_RE.search(text, taker_start.end())
            taker = text[taker_start.end():end_match.start() if end_match else len(text)]
        return issuer, taker

    @staticmethod
    def _score(record: ExtractedInvoiceRecord) -> None:
        missing = [name for name in ESSENTIAL_INVOICE_FIELDS if not getattr(record, name)]
        filled = len(ESSENTIAL_INVOICE_FIELDS) - len(missing)
        record.extraction_confidence = filled / len(ESSENTIAL_INVOICE_FIELDS)
        if missing:
            record.extraction_errors.append(f"Missing essential fields: {', '.join(missing)}")

    @staticmethod
    def _failed_record(filename: str, message: str) -> ExtractedInvoiceRecord:
        return ExtractedInvoiceRecord(
            filename=filename,
            extraction_confidence=0.0,
            extraction_errors=[message],
        )


def extract_invoice(
    text: Optional[str],
    filename: str = "",
    config: Optional[ExtractionConfig] = None,
) -> ExtractedInvoiceRecord:
    return InvoiceExtractor(config).extract(text, filename)


def extract_invoices(
    text: Optional[str],
    filename: str = "",
    config: Optional[ExtractionConfig] = None,
) -> list[ExtractedInvoiceRecord]:
    return InvoiceExtractor(config).extract_many(text, filename)


def process_invoice_batch(
    documents: Iterable[tuple[str, Optional[str]]],
    config: Optional[ExtractionConfig] = None,
) -> InvoiceBatchResult:
    return InvoiceExtractor(config).process_batch(documents)
