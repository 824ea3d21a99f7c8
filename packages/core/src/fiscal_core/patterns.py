"""Extraction pattern tables.

Each document type has a static table of ``ExtractionPattern``. A pattern
pairs a label regex with a value regex (one capture group) and lists the
strategies ``FieldExtractor`` should try, in order.

Labels are matched case-insensitively. Value regexes carry their own
boundaries so a window search never starts in the middle of a number.
"""

import re
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Optional, Union

from .text import clean_string
from .values import parse_value


class Strategy(str, Enum):
    """Where to look for a value relative to its label."""

    SAME_LINE_BEFORE = "same_line_before"
    SAME_LINE_AFTER = "same_line_after"
    WINDOW_BEFORE = "window_before"
    WINDOW_AFTER = "window_after"
    RELAXED = "relaxed"


class FieldKind(str, Enum):
    TEXT = "text"
    MONEY = "money"


ALL_STRATEGIES: tuple[Strategy, ...] = (
    Strategy.SAME_LINE_BEFORE,
    Strategy.SAME_LINE_AFTER,
    Strategy.WINDOW_BEFORE,
    Strategy.WINDOW_AFTER,
    Strategy.RELAXED,
)

# DANFSe tables print every label above or left of its value.
AFTER_ONLY: tuple[Strategy, ...] = (
    Strategy.SAME_LINE_AFTER,
    Strategy.WINDOW_AFTER,
    Strategy.RELAXED,
)

# Separator allowed between a label and a value on the same line.
SEPARATOR = r"[ \t]*[:;.\-]?[ \t]*"

# Brazilian money: "1.234,56", "1234,56", "0,00".
BRL_AMOUNT = r"(?<![\d.,])(-?\d{1,3}(?:\.\d{3})+,\d{2}|-?\d+,\d{2})(?![\d,])"
# Invoice money is always printed with the currency symbol.
BRL_CURRENCY = r"R\$[ \t]*(\d{1,3}(?:\.\d{3})+,\d{2}|\d+,\d{2})(?![\d,])"
TAX_ID = r"(\d{2}\.\d{3}\.\d{3}/\d{4}-\d{2}|\d{3}\.\d{3}\.\d{3}-\d{2})"
INTEGER = r"(?<![\d./-])(\d+)(?![\d./-])"


@dataclass(frozen=True)
class ExtractionPattern:
    """A named field and how to find it.

    Attributes:
        name: Field name on the output record.
        label: Regex for the printed label.
        value: Regex for the value, with exactly one capture group.
        kind: TEXT values are whitespace-collapsed, MONEY values parsed.
        relaxed: Regex with one capture group searched over the whole span
            as the last resort.
        processor: Replaces the default post-processing for the kind.
        strategies: Tiers to try, in order. First match wins.
    """

    name: str
    label: str
    value: str
    kind: FieldKind = FieldKind.TEXT
    relaxed: Optional[str] = None
    processor: Optional[Callable[[str], Any]] = None
    strategies: tuple[Strategy, ...] = ALL_STRATEGIES
    flags: int = re.IGNORECASE

    @property
    def primary(self) -> str:
        """Label immediately followed by its value on the same line."""
        return rf"(?:{self.label}){SEPARATOR}(?:R\$[ \t]*)?{self.value}"

    @property
    def default(self) -> Union[str, Decimal]:
        return Decimal("0") if self.kind is FieldKind.MONEY else ""

    def process(self, raw: str) -> Union[str, Decimal, Any]:
        if self.processor is not None:
            return self.processor(raw)
        if self.kind is FieldKind.MONEY:
            return parse_value(raw)
        return clean_string(raw)


def money(name: str, label: str, **kwargs) -> ExtractionPattern:
    return ExtractionPattern(name=name, label=label, value=BRL_AMOUNT, kind=FieldKind.MONEY, **kwargs)


def invoice_money(name: str, label: str, **kwargs) -> ExtractionPattern:
    kwargs.setdefault("strategies", AFTER_ONLY)
    return ExtractionPattern(
        name=name,
        label=label,
        value=BRL_CURRENCY,
        kind=FieldKind.MONEY,
        relaxed=rf"(?:{label})[\s\S]{{0,200}}?{BRL_CURRENCY}",
        **kwargs,
    )


def invoice_text(name: str, label: str, value: str, **kwargs) -> ExtractionPattern:
    kwargs.setdefault("strategies", AFTER_ONLY)
    return ExtractionPattern(name=name, label=label, value=value, **kwargs)


# Income statement (informe de rendimentos), one table per worker block.
INFORME_PATTERNS: tuple[ExtractionPattern, ...] = (
    money(
        "total_taxable_income",
        r"1\.\s*Total\s+dos\s+rendimentos(?:\s*\(inclusive\s+f[ée]rias\))?",
    ),
    money(
        "official_social_security",
        r"2\.\s*Contribui[çc][ãa]o\s+previdenci[áa]ria\s+oficial",
    ),
    money(
        "income_tax_withheld",
        r"5\.\s*Imposto\s+sobre\s+a\s+Renda\s+Retido\s+na\s+Fonte(?:\s*\(IRRF\))?",
    ),
    money(
        "thirteenth_salary",
        r"1\.\s*13\s*[ºo°]?\s*\(d[ée]cimo\s+terceiro\)\s*sal[áa]rio",
    ),
    money(
        "thirteenth_income_tax",
        r"2\.\s*Imposto\s+sobre\s+a\s+Renda\s+Retido\s+na\s+Fonte\s+sobre\s+13\s*[ºo°]?"
        r"\s*\(d[ée]cimo\s+terceiro\)\s*sal[áa]rio",
    ),
    money(
        "profit_share",
        r"3\.\s*Outros\s*\.?\s*-?\s*Participa[çc][ãa]o\s+(?:de|nos)\s+lucros(?:\s+ou\s+resultados)?",
    ),
)

HEALTH_PLAN_RE = re.compile(
    r"Benefici[áa]rio\s+do\s+Plano\s+de\s+Sa[úu]de\s*[:;]?\s*(.*?)\s*"
    r"Valor\s+Pago\s*[:;]?\s*(?:R\$\s*)?([\d.,]+\d)",
    re.IGNORECASE | re.DOTALL,
)

# Service invoice (DANFSe), applied to the whole document.
INVOICE_PATTERNS: tuple[ExtractionPattern, ...] = (
    invoice_text("nfs_number", r"N[úu]mero\s+da\s+NFS-e", INTEGER),
    invoice_text("series_number", r"S[ée]rie\s+da\s+DPS", INTEGER),
    invoice_text("access_key", r"Chave\s+de\s+Acesso\s+da\s+NFS-e", r"(\d{44}|\d[\d ]{42,}\d)"),
    invoice_text(
        "emission_date",
        r"Data\s+e\s+Hora\s+da\s+emiss[ãa]o\s+da\s+NFS-e",
        r"(\d{2}/\d{2}/\d{4})",
    ),
    invoice_text(
        "emission_time",
        r"Data\s+e\s+Hora\s+da\s+emiss[ãa]o\s+da\s+NFS-e",
        r"\d{2}/\d{2}/\d{4}\s+(\d{2}:\d{2}(?::\d{2})?)",
    ),
    invoice_text(
        "service_code",
        r"C[óo]digo\s+de\s+Tributa[çc][ãa]o\s+Nacional",
        r"([^\n]+?)(?=\s*C[óo]digo\s+de\s+Tributa[çc][ãa]o\s+Municipal|\n|$)",
    ),
    invoice_text(
        "service_description",
        r"Descri[çc][ãa]o\s+do\s+Servi[çc]o",
        r"([\s\S]+?)(?=\s*TRIBUTA[ÇC][ÃA]O\s+MUNICIPAL|$)",
        strategies=(Strategy.SAME_LINE_AFTER, Strategy.RELAXED),
        relaxed=r"Descri[çc][ãa]o\s+do\s+Servi[çc]o\s*[:;]?\s*([\s\S]+?)(?=\s*TRIBUTA[ÇC][ÃA]O\s+MUNICIPAL|$)",
    ),
    invoice_money("service_value", r"Valor\s+do\s+Servi[çc]o"),
    invoice_money("deductions", r"Total\s+Dedu[çc][õo]es\s*/\s*Redu[çc][õo]es"),
    invoice_money("irrf", r"\bIRRF\b"),
    invoice_money("pis", r"\bPIS\b(?!\s*/)"),
    invoice_money("cofins", r"\bCOFINS\b"),
    invoice_money("csll", r"\bCSLL\b"),
    invoice_money("issqn_base", r"Base\s+de\s+C[áa]lculo\s+do\s+ISSQN"),
    invoice_money("issqn_assessed", r"ISSQN\s+Apurado"),
    invoice_money("issqn_social_security", r"Reten[çc][ãa]o\s+do\s+ISSQN"),
    invoice_money("issqn_withheld", r"ISSQN\s+Retido"),
    invoice_money("net_value", r"Valor\s+L[íi]quido\s+da\s+NFS-e"),
    invoice_text(
        "issqn_rate",
        r"Al[íi]quota\s+Aplicada",
        r"(\d+[.,]\d{1,2}\s*%)",
        processor=lambda raw: raw.replace(" ", ""),
    ),
    invoice_text(
        "issqn_suspension",
        r"Suspens[ãa]o\s+da\s+Exigibilidade\s+do\s+ISSQN",
        r"(Sim|N[ãa]o)\b",
    ),
    invoice_text(
        "issqn_municipality",
        r"Munic[íi]pio\s+de\s+Incid[êe]ncia\s+do\s+ISSQN",
        r"([^\n\-]+?\s*-\s*[A-Z]{2})\b",
    ),
    invoice_text(
        "issqn_taxation",
        r"Tributa[çc][ãa]o\s+do\s+ISSQN",
        r"(N[ãa]o\s+Tribut[áa]vel|Tribut[áa]vel|Imune|Isen[çc][ãa]o|Exporta[çc][ãa]o)",
    ),
)

# Applied separately to the issuer and to the taker section of an invoice.
PARTY_PATTERNS: tuple[ExtractionPattern, ...] = (
    invoice_text("name", r"Nome\s*/\s*Nome\s+Empresarial", r"([^\n]+?)(?=\s*E-mail|\n|$)"),
    invoice_text("tax_id", r"CNPJ\s*/\s*CPF(?:\s*/\s*NIF)?", TAX_ID),
    invoice_text("address", r"Endere[çc]o", r"([^\n]+?)(?=\s*Munic[íi]pio|\n|$)"),
    invoice_text("city", r"Munic[íi]pio", r"([^\n\-]+?)\s*-\s*[A-Z]{2}\b"),
    invoice_text("state", r"Munic[íi]pio", r"[^\n\-]+?\s*-\s*([A-Z]{2})\b"),
    invoice_text("postal_code", r"\bCEP\b", r"(\d{5}-?\d{3})"),
    invoice_text("phone", r"Telefone", r"(\(?\d{2}\)?\s*\d{4,5}-?\d{4})"),
    invoice_text("email", r"E-mail", r"([\w.+-]+@[\w-]+(?:\.[\w-]+)+)"),
)

ISSUER_SECTION_RE = re.compile(r"EMITENTE\s+DA\s+NFS-e", re.IGNORECASE)
TAKER_SECTION_RE = re.compile(r"TOMADOR\s+DO\s+SERVI[ÇC]O", re.IGNORECASE)
SECTION_END_RE = re.compile(
    r"INTERMEDI[ÁA]RIO\s+DO\s+SERVI[ÇC]O|SERVI[ÇC]O\s+PRESTADO|TRIBUTA[ÇC][ÃA]O\s+MUNICIPAL",
    re.IGNORECASE,
)
CANCELLATION_RE = re.compile(
    r"Regime\s+Especial\s+de\s+Tributa[çc][ãa]o[\s\S]*?\b(CANCELADA)\b[\s\S]*?Suspens[ãa]o\s+da\s+Exigibilidade",
)

ESSENTIAL_INVOICE_FIELDS: tuple[str, ...] = (
    "nfs_number",
    "issuer_tax_id",
    "taker_tax_id",
    "net_value",
)
