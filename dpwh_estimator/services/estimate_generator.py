"""Two-pass estimate generation over the BOQ lines of a takeoff version.

Pass 1 prices every line and accumulates the aggregate direct cost. Only
once that aggregate is known are the OCM/CP percentages fixed and pass 2
applies the markup chain. The two passes communicate through the frozen
``PricedBatch`` value.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from dpwh_estimator.services.markup import (
    LineMarkup,
    MarkupRates,
    aggregate_direct_cost,
    apply_markup,
    markup_rates_for,
    round_currency,
)
from dpwh_estimator.services.pricing import PricedBreakdown, item_to_dict, resolve_template
from dpwh_estimator.services.rate_book import RateBook

logger = logging.getLogger(__name__)

_ZERO_MARKUP = LineMarkup(0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0)


@dataclass(frozen=True)
class BoqInput:
    pay_item_number: str
    quantity: float
    description: Optional[str] = None
    unit: Optional[str] = None


@dataclass(frozen=True)
class LineIssue:
    position: int
    pay_item_number: str
    code: str  # dupa_not_found | template_invalid | line_failed | labor | equipment | material
    message: str


@dataclass(frozen=True)
class PricedLine:
    position: int
    boq: BoqInput
    breakdown: Optional[PricedBreakdown]
    part: Optional[str] = None
    dupa_not_found: bool = False

    @property
    def quantity(self) -> float:
        return self.boq.quantity

    @property
    def direct_cost(self) -> float:
        return self.breakdown.direct_cost if self.breakdown else 0.0


@dataclass(frozen=True)
class PricedBatch:
    lines: tuple[PricedLine, ...]
    total_direct_cost: float
    unmapped_pay_items: tuple[str, ...] = ()
    errors: tuple[LineIssue, ...] = ()
    warnings: tuple[LineIssue, ...] = ()


@dataclass(frozen=True)
class GeneratedLine:
    priced: PricedLine
    markup: LineMarkup

    @property
    def quantity(self) -> float:
        return self.priced.quantity

    @property
    def direct_cost(self) -> float:
        return self.markup.direct_cost

    def to_row(self) -> dict:
        """Column values for an ``EstimateLine`` row."""
        b = self.priced.breakdown
        return {
            "position": self.priced.position,
            "pay_item_number": self.priced.boq.pay_item_number,
            "description": self.priced.boq.description,
            "unit": self.priced.boq.unit,
            "quantity": self.priced.quantity,
            "part": self.priced.part,
            "labor_items": [item_to_dict(i) for i in b.labor_items] if b else [],
            "equipment_items": [item_to_dict(i) for i in b.equipment_items] if b else [],
            "material_items": [item_to_dict(i) for i in b.material_items] if b else [],
            "labor_cost": b.labor_cost if b else 0.0,
            "equipment_cost": b.equipment_cost if b else 0.0,
            "material_cost": b.material_cost if b else 0.0,
            "minor_tools_cost": b.minor_tools_cost if b else 0.0,
            "direct_cost": self.markup.direct_cost,
            "ocm_cost": self.markup.ocm_cost,
            "cp_cost": self.markup.cp_cost,
            "subtotal": self.markup.subtotal,
            "vat_cost": self.markup.vat_cost,
            "unit_price": self.markup.unit_price,
            "total_amount": self.markup.total_amount,
            "dupa_not_found": self.priced.dupa_not_found,
            "requires_canvass": bool(b and b.requires_canvass),
        }


@dataclass(frozen=True)
class CostSummary:
    total_direct_cost: float
    total_ocm: float
    total_cp: float
    subtotal_with_markup: float
    total_vat: float
    grand_total: float
    rate_items_count: int
    processed_count: int = 0
    unmapped_count: int = 0

    def rounded(self) -> dict:
        return {
            "total_direct_cost": round_currency(self.total_direct_cost),
            "total_ocm": round_currency(self.total_ocm),
            "total_cp": round_currency(self.total_cp),
            "subtotal_with_markup": round_currency(self.subtotal_with_markup),
            "total_vat": round_currency(self.total_vat),
            "grand_total": round_currency(self.grand_total),
            "rate_items_count": self.rate_items_count,
            "processed_count": self.processed_count,
            "unmapped_count": self.unmapped_count,
        }


@dataclass(frozen=True)
class GenerationResult:
    lines: tuple[GeneratedLine, ...]
    summary: CostSummary
    rates: MarkupRates
    unmapped_pay_items: tuple[str, ...] = ()
    errors: tuple[LineIssue, ...] = ()
    warnings: tuple[LineIssue, ...] = ()


def price_lines(
    boq_lines: Iterable[BoqInput], book: RateBook, hauling_per_cum: float = 0.0
) -> PricedBatch:
    """Pass 1: resolve every line's direct cost."""
    lines: list[PricedLine] = []
    unmapped: list[str] = []
    errors: list[LineIssue] = []
    warnings: list[LineIssue] = []

    for position, boq in enumerate(boq_lines):
        template = book.template_for(boq.pay_item_number)
        if template is None:
            broken = book.template_error_for(boq.pay_item_number)
            if broken:
                errors.append(LineIssue(position, boq.pay_item_number, "template_invalid", broken))
                lines.append(PricedLine(position, boq, None))
                continue
            if boq.pay_item_number not in unmapped:
                unmapped.append(boq.pay_item_number)
            errors.append(
                LineIssue(
                    position,
                    boq.pay_item_number,
                    "dupa_not_found",
                    f"No rate template for pay item {boq.pay_item_number}",
                )
            )
            lines.append(PricedLine(position, boq, None, dupa_not_found=True))
            continue

        try:
            breakdown = resolve_template(template, book, hauling_per_cum)
        except (ArithmeticError, TypeError, ValueError) as exc:
            logger.warning("Pricing failed for line %d (%s): %s", position, boq.pay_item_number, exc)
            errors.append(LineIssue(position, boq.pay_item_number, "line_failed", str(exc)))
            lines.append(PricedLine(position, boq, None, part=template.part))
            continue

        for gap in breakdown.gaps:
            warnings.append(LineIssue(position, boq.pay_item_number, gap.kind, gap.message))
        lines.append(PricedLine(position, boq, breakdown, part=template.part))

    return PricedBatch(
        lines=tuple(lines),
        total_direct_cost=aggregate_direct_cost(lines),
        unmapped_pay_items=tuple(unmapped),
        errors=tuple(errors),
        warnings=tuple(warnings),
    )


def apply_markups(batch: PricedBatch, rates: MarkupRates) -> tuple[GeneratedLine, ...]:
    """Pass 2: one shared set of percentages for every priced line."""
    out = []
    for line in batch.lines:
        if line.breakdown is None:
            out.append(GeneratedLine(line, _ZERO_MARKUP))
        else:
            out.append(GeneratedLine(line, apply_markup(line.direct_cost, line.quantity, rates)))
    return tuple(out)


def summarize(lines: Iterable[GeneratedLine]) -> CostSummary:
    lines = list(lines)
    direct = aggregate_direct_cost(lines)
    ocm = sum(l.markup.ocm_cost * l.quantity for l in lines)
    cp = sum(l.markup.cp_cost * l.quantity for l in lines)
    vat = sum(l.markup.vat_cost * l.quantity for l in lines)
    subtotal = direct + ocm + cp
    processed = sum(1 for l in lines if l.priced.breakdown is not None)
    return CostSummary(
        total_direct_cost=direct,
        total_ocm=ocm,
        total_cp=cp,
        subtotal_with_markup=subtotal,
        total_vat=vat,
        grand_total=subtotal + vat,
        rate_items_count=len(lines),
        processed_count=processed,
        unmapped_count=sum(1 for l in lines if l.priced.dupa_not_found),
    )


def run_generation(
    boq_lines: Iterable[BoqInput],
    book: RateBook,
    *,
    hauling_per_cum: float = 0.0,
    ocm_pct: Optional[float] = None,
    cp_pct: Optional[float] = None,
    vat_pct: Optional[float] = None,
) -> GenerationResult:
    batch = price_lines(boq_lines, book, hauling_per_cum)
    rates = markup_rates_for(batch.total_direct_cost, ocm_pct, cp_pct, vat_pct)
    lines = apply_markups(batch, rates)
    summary = summarize(lines)
    logger.info(
        "Generated %d lines (%d unmapped), direct=%.2f ocm=%s%% cp=%s%% grand=%.2f",
        summary.rate_items_count,
        summary.unmapped_count,
        summary.total_direct_cost,
        rates.ocm_pct,
        rates.cp_pct,
        summary.grand_total,
    )
    return GenerationResult(
        lines=lines,
        summary=summary,
        rates=rates,
        unmapped_pay_items=batch.unmapped_pay_items,
        errors=batch.errors,
        warnings=batch.warnings,
    )
