"""Tests for income statement extraction."""

from decimal import Decimal

import pytest

from fiscal_core.config import ExtractionConfig
from fiscal_core.informe_extractor import InformeExtractor, parse_income_statements
from fiscal_core.models import IncomeStatementRecord

from documents import INFORME_HEADER, INFORME_JOAO


@pytest.fixture
def extractor() -> InformeExtractor:
    return InformeExtractor(ExtractionConfig())


class TestInformeExtractor:
    """Test suite for InformeExtractor."""

    def test_one_record_per_worker(self, extractor: InformeExtractor, informe_text: str):
        """Each worker block becomes a record, the payer header does not."""
        records = extractor.parse(informe_text)

        assert [(r.worker_id, r.name) for r in records] == [
            ("12345", "JOAO DA SILVA"),
            ("67890", "MARIA SOUZA"),
        ]

    def test_amounts(self, extractor: InformeExtractor, informe_text: str):
        """All six amounts of a full block are read."""
        joao = extractor.parse(informe_text)[0]

        assert joao.total_taxable_income == Decimal("10000.00")
        assert joao.official_social_security == Decimal("1100.00")
        assert joao.income_tax_withheld == Decimal("500.00")
        assert joao.thirteenth_salary == Decimal("2000.00")
        assert joao.thirteenth_income_tax == Decimal("150.00")
        assert joao.profit_share == Decimal("3000.00")

    def test_missing_amounts_default_to_zero(self, extractor: InformeExtractor, informe_text: str):
        """A block without a line leaves that amount at zero."""
        maria = extractor.parse(informe_text)[1]

        assert maria.total_taxable_income == Decimal("5000.00")
        assert maria.official_social_security == Decimal("550.00")
        assert maria.income_tax_withheld == Decimal("0")
        assert maria.health_plan == []

    def test_health_plan_lines(self, extractor: InformeExtractor, informe_text: str):
        """Health plan beneficiaries and amounts are listed."""
        joao = extractor.parse(informe_text)[0]

        assert len(joao.health_plan) == 1
        assert joao.health_plan[0].beneficiary == "JOAO DA SILVA"
        assert joao.health_plan[0].amount == Decimal("1200.00")
        assert joao.health_plan_total == Decimal("1200.00")

    def test_blocks_without_amounts_are_dropped(self, extractor: InformeExtractor):
        """Template blocks with only zeros carry no statement."""
        text = (
            INFORME_JOAO
            + "Nome Completo: FULANO DE TAL - 99999\n"
            + "1. Total dos rendimentos (inclusive férias) 0,00\n"
        )
        records = extractor.parse(text)
        assert [r.worker_id for r in records] == ["12345"]

    def test_header_only_text_has_no_records(self, extractor: InformeExtractor):
        """The payer header alone yields nothing."""
        assert extractor.parse(INFORME_HEADER) == []

    def test_empty_text(self, extractor: InformeExtractor):
        """Empty input is not an error."""
        assert extractor.parse("") == []

    def test_raw_text_is_the_worker_span(self, extractor: InformeExtractor, informe_text: str):
        """Each record keeps its own block of text."""
        joao, maria = extractor.parse(informe_text)

        assert joao.raw_text.startswith("Nome Completo: JOAO DA SILVA")
        assert "MARIA" not in joao.raw_text
        assert maria.raw_text.startswith("Nome Completo: MARIA SOUZA")

    def test_module_function(self, informe_text: str):
        """parse_income_statements wraps the extractor."""
        records = parse_income_statements(informe_text)
        assert all(isinstance(r, IncomeStatementRecord) for r in records)
        assert len(records) == 2


class TestIncomeStatementRecord:
    """Test suite for the record model."""

    def test_has_amounts(self):
        assert not IncomeStatementRecord(worker_id="1").has_amounts
        assert IncomeStatementRecord(worker_id="1", profit_share=Decimal("1")).has_amounts
