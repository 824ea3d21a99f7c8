"""Tax computation over billed invoices.

For each invoice the engine finds the withholding scheme the customer
applied, then computes per tax type what is due at the statutory rate,
what the customer retained at the scheme rate, and what is still pending.
ISS bills paid in advance are apportioned across the invoices they name.

``compute_quarterly`` adds the presumed-profit basis for IRPJ and CSLL and
spreads the quarter's net amounts back over the invoices.

All amounts are rounded to cents with ``round2``.
"""

from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional, Sequence

import structlog

from .config import TaxRateConfig
from .models.tax import (
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
from .text import normalize_name
from .values import ZERO, parse_value, round2

logger = structlog.get_logger()


@dataclass(frozen=True)
class SchemeResolution:
    scheme: Optional[TaxSchemeMapping]
    method: SchemeMatch


@dataclass(frozen=True)
class ClientSchemeRule:
    """A customer that, under one scheme, does not owe some taxes."""

    customer_name: str
    scheme_name: str
    exempt_taxes: tuple[TaxType, ...]

    def applies(self, invoice: InvoiceRow, scheme: Optional[TaxSchemeMapping] = None) -> bool:
        if normalize_name(invoice.customer_name) != normalize_name(self.customer_name):
            return False
        wanted = normalize_name(self.scheme_name)
        names = [invoice.item_tax] + ([scheme.name] if scheme else [])
        return any(normalize_name(name) == wanted for name in names)


ITAIPU_RULE = ClientSchemeRule(
    customer_name="Itaipu Binacional",
    scheme_name="11 | IR 1,5% + CSLL",
    exempt_taxes=(TaxType.COFINS, TaxType.PIS, TaxType.ISS),
)

SPECIAL_RULES: tuple[ClientSchemeRule, ...] = (ITAIPU_RULE,)


def observed_retention(invoice: InvoiceRow) -> Decimal:
    """Percent of the invoice total the customer withheld."""
    if invoice.total == ZERO:
        return ZERO
    return invoice.item_tax_amount * 100 / invoice.total


class TaxComputationEngine:
    """Computes due, retained and pending taxes for a batch of invoices.

    Example:
        engine = TaxComputationEngine()
        result = engine.compute(invoices, schemes, charges=bills)
        print(result.summary.pending[TaxType.ISS])
    """

    def __init__(
        self,
        config: Optional[TaxRateConfig] = None,
        special_rules: Sequence[ClientSchemeRule] = SPECIAL_RULES,
    ):
        self.config = config or TaxRateConfig()
        self.special_rules = tuple(special_rules)
        self.rates: dict[TaxType, Decimal] = {
            TaxType.IRPJ: self.config.irpj_rate,
            TaxType.CSLL: self.config.csll_rate,
            TaxType.COFINS: self.config.cofins_rate,
            TaxType.PIS: self.config.pis_rate,
            TaxType.ISS: self.config.iss_rate,
        }

    # Scheme lookup

    def resolve_scheme(
        self,
        invoice: InvoiceRow,
        schemes: Sequence[TaxSchemeMapping],
    ) -> SchemeResolution:
        """Find the scheme for an invoice.

        Tried in order: exact name (case-insensitive), name with accents
        and punctuation removed, then the scheme whose retention percentage
        is closest to what was actually withheld. Ties keep the earlier row.
        """
        if not schemes:
            return SchemeResolution(None, SchemeMatch.NONE)

        name = invoice.item_tax.strip().lower()
        if name:
            for scheme in schemes:
                if scheme.name.strip().lower() == name:
                    return SchemeResolution(scheme, SchemeMatch.EXACT_NAME)
            normalized = normalize_name(invoice.item_tax)
            if normalized:
                for scheme in schemes:
                    if normalize_name(scheme.name) == normalized:
                        return SchemeResolution(scheme, SchemeMatch.NORMALIZED_NAME)

        observed = observed_retention(invoice)
        best: Optional[TaxSchemeMapping] = None
        best_distance: Optional[Decimal] = None
        for scheme in schemes:
            percentage = scheme.retention_percentage
            # Some sheets store the percentage as a fraction.
            if percentage != ZERO and percentage < 1 and observed > 1:
                percentage *= 100
            distance = abs(percentage - observed)
            if best_distance is None or distance < best_distance:
                best, best_distance = scheme, distance
        return SchemeResolution(best, SchemeMatch.CLOSEST_PERCENTAGE)

    # Per-invoice computation

    def compute(
        self,
        invoices: Iterable[InvoiceRow],
        schemes: Sequence[TaxSchemeMapping],
        charges: Iterable[AnticipatedCharge] = (),
        iss_overrides: Optional[Mapping[str, Decimal]] = None,
    ) -> TaxComputationResult:
        """Compute per-invoice taxes and their totals.

        Void and draft invoices are left out. ``iss_overrides`` maps
        customer names (any case) to the ISS rate agreed with that client.
        """
        billable = [invoice for invoice in invoices if invoice.is_billable]
        overrides = {name.strip().upper(): rate for name, rate in (iss_overrides or {}).items()}
        result = TaxComputationResult()
        if not schemes:
            result.warnings.append("No withholding schemes given; retained amounts are zero")

        anticipated, charge_warnings = self._apportion(billable, charges)
        result.warnings.extend(charge_warnings)

        for invoice in billable:
            item = self._compute_invoice(invoice, schemes, overrides)
            item.anticipated_iss = anticipated.get(invoice.number.strip(), Decimal("0.00"))
            result.invoices.append(item)

        result.summary = self._summarize(result.invoices)
        logger.info(
            "taxes_computed",
            invoices=result.summary.invoice_count,
            total_invoiced=str(result.summary.total_invoiced),
            anticipated_iss=str(result.summary.anticipated_iss),
            warnings=len(result.warnings),
        )
        return result

    def _compute_invoice(
        self,
        invoice: InvoiceRow,
        schemes: Sequence[TaxSchemeMapping],
        overrides: Mapping[str, Decimal],
    ) -> InvoiceTaxResult:
        resolution = self.resolve_scheme(invoice, schemes)
        scheme = resolution.scheme
        logger.debug(
            "scheme_resolved",
            invoice=invoice.number,
            scheme=scheme.name if scheme else None,
            method=resolution.method.value,
        )

        rule = next((r for r in self.special_rules if r.applies(invoice, scheme)), None)
        taxes = {}
        for tax_type, rate in self.rates.items():
            if tax_type is TaxType.ISS:
                rate = overrides.get(invoice.customer_name.strip().upper(), rate)
            due = round2(invoice.total * rate)
            if rule is not None and tax_type in rule.exempt_taxes:
                due = Decimal("0.00")
            retained = round2(invoice.total * scheme.rate(tax_type)) if scheme else Decimal("0.00")
            taxes[tax_type] = TaxBreakdown(due=due, retained=retained)

        total_retained = sum((t.retained for t in taxes.values()), Decimal("0.00"))
        return InvoiceTaxResult(
            number=invoice.number,
            customer_name=invoice.customer_name,
            issue_date=invoice.issue_date,
            total=invoice.total,
            scheme_name=scheme.name if scheme else None,
            scheme_match=resolution.method,
            special_rule_applied=rule is not None,
            taxes=taxes,
            total_retained=total_retained,
            other_retained=round2(total_retained - invoice.item_tax_amount),
        )

    def _summarize(self, items: Sequence[InvoiceTaxResult]) -> TaxSummary:
        summary = TaxSummary(
            invoice_count=len(items),
            total_invoiced=round2(sum((i.total for i in items), ZERO)),
            anticipated_iss=round2(sum((i.anticipated_iss for i in items), ZERO)),
        )
        for tax_type in TaxType:
            due = round2(sum((i.tax(tax_type).due for i in items), ZERO))
            retained = round2(sum((i.tax(tax_type).retained for i in items), ZERO))
            summary.due[tax_type] = due
            summary.retained[tax_type] = retained
            summary.pending[tax_type] = due - retained
        return summary

    # Anticipated ISS

    def apportion_charges(
        self,
        invoices: Iterable[InvoiceRow],
        charges: Iterable[AnticipatedCharge],
    ) -> dict[str, Decimal]:
        """Split anticipated ISS bills over the invoices they name.

        A bill naming one invoice goes to it in full. A bill naming several
        is split in proportion to the invoice totals. Bills naming no known
        invoice, or only invoices totalling zero, are not attributed.
        """
        amounts, _ = self._apportion(list(invoices), charges)
        return amounts

    def _apportion(
        self,
        invoices: Sequence[InvoiceRow],
        charges: Iterable[AnticipatedCharge],
    ) -> tuple[dict[str, Decimal], list[str]]:
        by_number = {invoice.number.strip(): invoice for invoice in invoices}
        amounts: dict[str, Decimal] = defaultdict(lambda: ZERO)
        warnings = []

        for charge in charges:
            numbers = list(dict.fromkeys(charge.referenced_numbers))
            related = [by_number[n] for n in numbers if n in by_number]
            if not related:
                warnings.append(f"Charge '{charge.identifier}' references no known invoice")
                logger.warning("charge_unresolved", charge=charge.identifier, numbers=numbers)
                continue

            if len(numbers) == 1:
                amounts[related[0].number.strip()] += charge.amount
                continue

            referenced_total = sum((invoice.total for invoice in related), ZERO)
            if referenced_total <= ZERO:
                warnings.append(f"Charge '{charge.identifier}' references invoices totalling zero")
                logger.warning("charge_unresolved", charge=charge.identifier, numbers=numbers)
                continue
            for invoice in related:
                amounts[invoice.number.strip()] += invoice.total * charge.amount / referenced_total

        return {number: round2(amount) for number, amount in amounts.items()}, warnings

    # Quarterly basis

    def compute_quarterly(
        self,
        invoices: Iterable[InvoiceRow],
        schemes: Sequence[TaxSchemeMapping],
        investment_result: Any = 0,
        investment_retention: Any = 0,
        charges: Iterable[AnticipatedCharge] = (),
        iss_overrides: Optional[Mapping[str, Decimal]] = None,
    ) -> TaxComputationResult:
        """Compute the quarter's IRPJ and CSLL on the presumed-profit basis.

        The net amounts due are spread over the invoices by their share of
        the total invoiced, the last invoice taking the rounding remainder.
        """
        invoices = [invoice for invoice in invoices if invoice.is_billable]
        result = self.compute(invoices, schemes, charges=charges, iss_overrides=iss_overrides)
        summary = result.summary
        cfg = self.config
        total = summary.total_invoiced

        tiered = any(
            invoice.issue_date is not None and invoice.issue_date.year > cfg.tier_cutover_year
            for invoice in invoices
        )
        if tiered:
            presumed = (
                min(total, cfg.presumption_tier_limit) * cfg.presumption_rate
                + max(ZERO, total - cfg.presumption_tier_limit) * cfg.presumption_excess_rate
            )
        else:
            presumed = total * cfg.presumption_rate

        # Totals combine unrounded figures; only the reported values are rounded.
        investment = parse_value(investment_result)
        base = presumed + investment
        income_tax = base * cfg.income_tax_rate
        surcharge = max(ZERO, base - cfg.surcharge_threshold) * cfg.surcharge_rate
        irpj_retained = summary.retained[TaxType.IRPJ] + parse_value(investment_retention)
        csll_gross = base * cfg.social_contribution_rate
        csll_retained = summary.retained[TaxType.CSLL]

        summary.presumed_profit = round2(presumed)
        summary.investment_result = round2(investment)
        summary.computation_base = round2(base)
        summary.income_tax_due = round2(income_tax)
        summary.surcharge = round2(surcharge)
        summary.irpj_retained_total = round2(irpj_retained)
        summary.irpj_due = round2(income_tax + surcharge - irpj_retained)
        summary.csll_due_gross = round2(csll_gross)
        summary.csll_retained = round2(csll_retained)
        summary.csll_due = round2(csll_gross - csll_retained)

        irpj_shares = self._split(summary.irpj_due, result.invoices)
        csll_shares = self._split(summary.csll_due, result.invoices)
        for item, irpj, csll in zip(result.invoices, irpj_shares, csll_shares):
            item.irpj_quarterly = irpj
            item.csll_quarterly = csll

        logger.info(
            "quarterly_computed",
            tiered=tiered,
            computation_base=str(summary.computation_base),
            irpj_due=str(summary.irpj_due),
            csll_due=str(summary.csll_due),
        )
        return result

    @staticmethod
    def _split(amount: Decimal, items: Sequence[InvoiceTaxResult]) -> list[Decimal]:
        """Spread ``amount`` by invoice total; the last item gets the remainder."""
        if not items:
            return []
        total = sum((item.total for item in items), ZERO)
        shares = []
        for item in items[:-1]:
            shares.append(round2(amount * item.total / total) if total else Decimal("0.00"))
        shares.append(amount - sum(shares, ZERO))
        return shares


def compute_taxes(
    invoices: Iterable[InvoiceRow],
    schemes: Sequence[TaxSchemeMapping],
    charges: Iterable[AnticipatedCharge] = (),
    iss_overrides: Optional[Mapping[str, Decimal]] = None,
    config: Optional[TaxRateConfig] = None,
) -> TaxComputationResult:
    return TaxComputationEngine(config).compute(invoices, schemes, charges, iss_overrides)


__all__ = [
    "ITAIPU_RULE",
    "SPECIAL_RULES",
    "ClientSchemeRule",
    "SchemeResolution",
    "TaxComputationEngine",
    "compute_taxes",
    "observed_retention",
]
