"""Income statement (informe de rendimentos) extraction.

One PDF usually carries the statements of every worker of a company. The
text is normalized, cut into one span per worker and each span is read
with ``INFORME_PATTERNS``. Spans without a single non-zero amount or health
plan line are template blocks and are dropped.
"""

from typing import Optional

import structlog

from .config import ExtractionConfig
from .field_extractor import FieldExtractor
from .models.informe import HealthPlanEntry, IncomeStatementRecord
from .patterns import HEALTH_PLAN_RE, INFORME_PATTERNS
from .segmentation import TextSpan, worker_segmenter
from .text import clean_string, normalize_text
from .values import parse_value

logger = structlog.get_logger()


class InformeExtractor:
    """Extracts one ``IncomeStatementRecord`` per worker block."""

    def __init__(self, config: Optional[ExtractionConfig] = None):
        self.config = config or ExtractionConfig()
        self.fields = FieldExtractor(self.config)
        self.segmenter = worker_segmenter(
            context_window=self.config.context_window,
            evidence=self._has_evidence,
        )

    def parse(self, text: str) -> list[IncomeStatementRecord]:
        """Parse raw statement text.

        Returns an empty list when no worker block is found.
        """
        normalized = normalize_text(text or "", collapse_blank_lines=self.config.collapse_blank_lines)
        records = [self._build_record(span) for span in self.segmenter.segment(normalized)]
        logger.info("informes_parsed", workers=len(records))
        return records

    def _build_record(self, span: TextSpan) -> IncomeStatementRecord:
        values = self.fields.extract_all(span.text, INFORME_PATTERNS)
        return IncomeStatementRecord(
            worker_id=span.identifier,
            name=span.name,
            health_plan=self._health_plan(span.text),
            raw_text=span.text,
            **values,
        )

    def _health_plan(self, text: str) -> list[HealthPlanEntry]:
        return [
            HealthPlanEntry(beneficiary=clean_string(m.group(1)), amount=parse_value(m.group(2)))
            for m in HEALTH_PLAN_RE.finditer(text)
        ]

    def _has_evidence(self, span: TextSpan) -> bool:
        return self._build_record(span).has_amounts


def parse_income_statements(
    text: str,
    config: Optional[ExtractionConfig] = None,
) -> list[IncomeStatementRecord]:
    """Extract every worker's income statement from raw text."""
    return InformeExtractor(config).parse(text)
