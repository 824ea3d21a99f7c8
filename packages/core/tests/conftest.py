"""Shared fixtures."""

import pytest
import structlog

from documents import INFORME_HEADER, INFORME_JOAO, INFORME_MARIA, INVOICE_TEXT


@pytest.fixture(autouse=True)
def reset_structlog():
    """Leave structlog unconfigured between tests."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def invoice_text() -> str:
    return INVOICE_TEXT


@pytest.fixture
def informe_text() -> str:
    return INFORME_HEADER + INFORME_JOAO + INFORME_MARIA
