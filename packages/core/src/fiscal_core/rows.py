"""Canonicalization of spreadsheet and JSON rows.

Upstream collaborators hand over rows as string-keyed mappings whose
headers changed over the years ("Invoice Number", "invoice_number",
"Item Tax1 %_1"...). Every row is mapped onto a typed model here, before
any business logic runs; the engines only ever see the models.

Rows that cannot be mapped are skipped with a warning.
"""

import re
from collections import defaultdict
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional

import structlog

from .exceptions import ValidationError
from .models.payroll import Dependent, LeaveEvent, LeavePeriod, Paycheck, PaycheckEntry, Worker
from .models.tax import AnticipatedCharge, InvoiceRow, TaxSchemeMapping
from .text import strip_accents
from .values import parse_percentage, parse_value

logger = structlog.get_logger()

_KEY_NOISE_RE = re.compile(r"[._\s\-]")
_ISS_BILL_RE = re.compile(r"\bISS\b")


def canonical_key(key: Any) -> str:
    """Lowercase, strip accents and drop separators.

    Example:
        >>> canonical_key("Invoice_Number ")
        'invoicenumber'
    """
    return _KEY_NOISE_RE.sub("", strip_accents(str(key)).lower())


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


class RowReader:
    """Looks up row values by any of several header spellings."""

    def __init__(self, row: Mapping[str, Any]):
        self.row = row
        self._index: dict[str, Any] = {}
        for key, value in row.items():
            canonical = canonical_key(key)
            if canonical not in self._index or _is_empty(self._index[canonical]):
                self._index[canonical] = value

    def get(self, *aliases: str, default: Any = None) -> Any:
        """Return the first non-empty value among the aliases."""
        for alias in aliases:
            value = self.row.get(alias)
            if _is_empty(value):
                value = self._index.get(canonical_key(alias))
            if not _is_empty(value):
                return value
        return default

    def text(self, *aliases: str) -> str:
        value = self.get(*aliases)
        return "" if value is None else str(value).strip()

    def amount(self, *aliases: str) -> Decimal:
        return parse_value(self.get(*aliases))

    def keys(self) -> list[str]:
        return list(self.row.keys())


def parse_date(value: Any) -> Optional[date]:
    """Read ISO (2025-01-31) or Brazilian (31/01/2025) dates."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if _is_empty(value):
        return None
    text = str(value).strip()
    for fmt in ("%Y-%m-%d", "%d/%m/%Y", "%Y/%m/%d", "%d-%m-%Y"):
        try:
            return datetime.strptime(text[:10], fmt).date()
        except ValueError:
            continue
    return None


def parse_year(value: Any) -> Optional[int]:
    if _is_empty(value):
        return None
    try:
        return int(str(value).strip()[:4])
    except ValueError:
        return None


def parse_rate(value: Any) -> Decimal:
    """Read a tax rate as a fraction.

    "1,5%" and "1.5" are both 1.5 percent; 0.015 is already a fraction.
    """
    rate = parse_percentage(value)
    return rate / 100 if rate > 1 else rate


def parse_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if _is_empty(value):
        return False
    return str(value).strip().lower() in {"true", "1", "sim", "s", "yes", "y", "x"}


def _mappings(rows: Any, kind: str) -> Iterable[tuple[int, Mapping[str, Any]]]:
    for index, row in enumerate(rows or []):
        if isinstance(row, Mapping):
            yield index, row
        else:
            logger.warning("row_skipped", kind=kind, index=index, reason="not a mapping")


# Invoices


def invoice_row(row: Mapping[str, Any]) -> InvoiceRow:
    reader = RowReader(row)
    number = reader.text("Invoice Number", "Número", "Numero", "NF")
    if not number:
        raise ValidationError("Invoice row has no number", field="number", constraint="non-empty invoice number")
    return InvoiceRow(
        number=number,
        issue_date=parse_date(reader.get("Invoice Date", "Data", "Date")),
        status=reader.text("Invoice Status", "Status"),
        customer_name=reader.text("Customer Name", "Cliente"),
        total=reader.amount("Total", "Invoice Total"),
        item_tax=reader.text("Item Tax", "Item Tax1"),
        item_tax_amount=reader.amount("Item Tax Amount"),
        project_name=reader.text("Project Name", "Projeto"),
        team=reader.text("Equipe", "Team"),
    )


def canonicalize_invoice_rows(rows: Iterable[Mapping[str, Any]]) -> list[InvoiceRow]:
    invoices = []
    for index, row in _mappings(rows, "invoice"):
        try:
            invoices.append(invoice_row(row))
        except ValidationError as e:
            logger.warning("row_skipped", kind="invoice", index=index, reason=e.message, **e.details)
    return invoices


# Withholding schemes

RETENTION_ALIASES = ("Item Tax1 %_1", "Item Tax1 %2", "Item Tax1 %", "Item Tax %", "Retention %", "Percentual")


def scheme_row(row: Mapping[str, Any]) -> TaxSchemeMapping:
    reader = RowReader(row)
    name = reader.text("Item Tax", "Item Tax1", "Scheme", "Esquema")
    if not name:
        raise ValidationError("Scheme row has no name", field="name", constraint="non-empty scheme name")
    raw_retention = reader.get(*RETENTION_ALIASES)
    return TaxSchemeMapping(
        name=name,
        retention_percentage=parse_value(str(raw_retention).replace("%", "")) if raw_retention is not None else Decimal("0"),
        irpj=parse_rate(reader.get("IRPJ")),
        csll=parse_rate(reader.get("CSLL")),
        cofins=parse_rate(reader.get("COFINS")),
        pis=parse_rate(reader.get("PIS")),
        iss=parse_rate(reader.get("ISS")),
    )


def canonicalize_scheme_rows(rows: Iterable[Mapping[str, Any]]) -> list[TaxSchemeMapping]:
    schemes = []
    for index, row in _mappings(rows, "scheme"):
        try:
            schemes.append(scheme_row(row))
        except ValidationError as e:
            logger.warning("row_skipped", kind="scheme", index=index, reason=e.message, **e.details)
    return schemes


# Anticipated ISS bills


def canonicalize_charge_rows(
    rows: Iterable[Mapping[str, Any]],
    *,
    iss_only: bool = True,
) -> list[AnticipatedCharge]:
    """Map bill rows onto charges.

    With ``iss_only`` only bills whose number mentions "ISS" (upper case,
    as a word) are kept, the way anticipated ISS bills are named in the
    ledger.
    """
    charges = []
    for index, row in _mappings(rows, "charge"):
        reader = RowReader(row)
        identifier = reader.text("Bill Number", "Identifier", "Cobrança")
        if not identifier:
            logger.warning("row_skipped", kind="charge", index=index, reason="Bill row has no number")
            continue
        if iss_only and not _ISS_BILL_RE.search(identifier):
            continue
        charges.append(
            AnticipatedCharge(
                identifier=identifier,
                amount=reader.amount("Rate", "Amount", "Valor", "Total"),
                issue_date=parse_date(reader.get("Bill Date", "Data")),
            )
        )
    return charges


# Per-client ISS rates


def canonicalize_iss_overrides(rows: Iterable[Mapping[str, Any]]) -> dict[str, Decimal]:
    """Map client allocation rows onto ``{CLIENT NAME: iss rate}``.

    The client is read from "Cliente"/"Customer Name" or the first column,
    the rate from "ISS" or the fifth column.
    """
    overrides: dict[str, Decimal] = {}
    for _, row in _mappings(rows, "iss_override"):
        reader = RowReader(row)
        keys = reader.keys()
        client = reader.text("Cliente", "Customer Name")
        if not client and keys:
            client = str(row[keys[0]] or "").strip()
        raw = reader.get("ISS")
        if _is_empty(raw) and len(keys) >= 5:
            raw = row[keys[4]]
        if client and not _is_empty(raw):
            overrides[client.upper()] = parse_rate(raw)
    return overrides


# Payroll

WORKER_ID_ALIASES = ("matricula", "Matrícula", "worker_id", "id")
ENTRY_LIST_ALIASES = ("lancamentos", "lançamentos", "entries", "proventos")


def paycheck_entry(row: Mapping[str, Any]) -> PaycheckEntry:
    reader = RowReader(row)
    code = reader.text("codigo", "código", "code")
    if not code:
        raise ValidationError("Ledger line has no code", field="code", constraint="non-empty code")
    return PaycheckEntry(
        code=code,
        amount=reader.amount("valor", "amount", "value"),
        description=reader.text("descricao", "descrição", "description") or None,
    )


def _entries(rows: Any) -> list[PaycheckEntry]:
    entries = []
    for index, row in _mappings(rows, "ledger_line"):
        try:
            entries.append(paycheck_entry(row))
        except ValidationError as e:
            logger.warning("row_skipped", kind="ledger_line", index=index, reason=e.message)
    return entries


def paycheck(row: Mapping[str, Any]) -> Paycheck:
    reader = RowReader(row)
    base = reader.get("baseCalculoIrrf", "base_calc_income_tax")
    return Paycheck(
        year=parse_year(reader.get("ano", "year")),
        entries=_entries(reader.get(*ENTRY_LIST_ALIASES)),
        base_calc_income_tax=None if _is_empty(base) else parse_value(base),
        source_label=reader.text("nomeFolha", "folha", "source_label"),
    )


def _legacy_paychecks(items: Any) -> list[Paycheck]:
    """Group the flat ``contracheque`` line list by year."""
    by_year: dict[Optional[int], list[PaycheckEntry]] = defaultdict(list)
    for index, row in _mappings(items, "ledger_line"):
        try:
            entry = paycheck_entry(row)
        except ValidationError as e:
            logger.warning("row_skipped", kind="ledger_line", index=index, reason=e.message)
            continue
        by_year[parse_year(RowReader(row).get("ano", "year"))].append(entry)
    return [
        Paycheck(year=year, entries=entries, source_label="contracheque")
        for year, entries in by_year.items()
    ]


def leave_event(row: Mapping[str, Any]) -> LeaveEvent:
    reader = RowReader(row)
    return LeaveEvent(
        payout_date=parse_date(reader.get("dataPagamento", "payout_date", "pagamento")),
        entries=_entries(reader.get(*ENTRY_LIST_ALIASES)),
        income_tax_withheld=reader.amount("irrf", "income_tax_withheld"),
        social_security_withheld=reader.amount("inss", "previdencia", "social_security_withheld"),
        withheld_on_payout=parse_flag(reader.get("retidoNoPagamento", "withheld_on_payout")),
    )


def leave_period(row: Mapping[str, Any]) -> LeavePeriod:
    reader = RowReader(row)
    return LeavePeriod(
        start=parse_date(reader.get("inicio", "start")),
        end=parse_date(reader.get("fim", "end")),
        events=[leave_event(event) for _, event in _mappings(reader.get("gozos", "events"), "leave_event")],
    )


def worker(row: Mapping[str, Any]) -> Worker:
    reader = RowReader(row)
    worker_id = reader.text(*WORKER_ID_ALIASES)
    if not worker_id:
        raise ValidationError("Worker has no registration number", field="worker_id", constraint="non-empty id")

    nested = reader.get("contracheques", "paychecks")
    if nested is not None:
        paychecks = [paycheck(p) for _, p in _mappings(nested, "paycheck")]
    else:
        paychecks = _legacy_paychecks(reader.get("contracheque"))

    dependents = [
        Dependent(
            name=RowReader(d).text("nome", "name"),
            counts_for_deduction=parse_flag(RowReader(d).get("criterioFiscal", "counts_for_deduction")),
        )
        for _, d in _mappings(reader.get("dependentes", "dependents"), "dependent")
    ]
    periods = [
        leave_period(p)
        for _, p in _mappings(reader.get("periodosAquisitivos", "ferias", "leave_periods"), "leave_period")
    ]
    return Worker(
        worker_id=worker_id,
        name=reader.text("nome", "name"),
        tax_id=reader.text("cpf", "tax_id"),
        paychecks=paychecks,
        dependents=dependents,
        leave_periods=periods,
    )


def canonicalize_workers(rows: Iterable[Mapping[str, Any]]) -> list[Worker]:
    """Map worker JSON objects onto ``Worker`` models.

    Accepts both the nested ``contracheques``/``lancamentos`` shape and the
    flat ``contracheque`` line list of older exports.
    """
    workers = []
    for index, row in _mappings(rows, "worker"):
        try:
            workers.append(worker(row))
        except ValidationError as e:
            logger.warning("row_skipped", kind="worker", index=index, reason=e.message, **e.details)
    return workers
