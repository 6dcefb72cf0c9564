"""DPWH indirect-cost (OCM / CP) brackets and the per-line markup chain.

Percentages are whole numbers throughout (15 means 15%).
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from dpwh_estimator.core.config import settings


@dataclass(frozen=True)
class MarkupBracket:
    upper_bound: Optional[float]  # inclusive; None for the open-ended top bracket
    ocm_pct: float
    cp_pct: float
    description: str


COST_BRACKETS: tuple[MarkupBracket, ...] = (
    MarkupBracket(1_000_000, 15, 10, "Up to ₱1M"),
    MarkupBracket(5_000_000, 12, 8, "₱1M - ₱5M"),
    MarkupBracket(15_000_000, 10, 7, "₱5M - ₱15M"),
    MarkupBracket(50_000_000, 8, 6, "₱15M - ₱50M"),
    MarkupBracket(None, 5, 5, "Above ₱50M"),
)


@dataclass(frozen=True)
class MarkupRates:
    ocm_pct: float
    cp_pct: float
    vat_pct: float
    overridden: bool = False


@dataclass(frozen=True)
class LineMarkup:
    direct_cost: float
    ocm_cost: float
    cp_cost: float
    subtotal: float
    vat_cost: float
    unit_price: float
    total_amount: float


def round_currency(value: float) -> float:
    return round(float(value or 0.0), 2)


def bracket_for(estimated_direct_cost: float) -> MarkupBracket:
    for bracket in COST_BRACKETS:
        if bracket.upper_bound is None or estimated_direct_cost <= bracket.upper_bound:
            return bracket
    return COST_BRACKETS[-1]


def markup_rates_for(
    estimated_direct_cost: float,
    ocm_pct: Optional[float] = None,
    cp_pct: Optional[float] = None,
    vat_pct: Optional[float] = None,
) -> MarkupRates:
    """Bracket percentages for an aggregate direct cost, with optional overrides."""
    bracket = bracket_for(estimated_direct_cost)
    return MarkupRates(
        ocm_pct=bracket.ocm_pct if ocm_pct is None else float(ocm_pct),
        cp_pct=bracket.cp_pct if cp_pct is None else float(cp_pct),
        vat_pct=settings.DEFAULT_VAT_PCT if vat_pct is None else float(vat_pct),
        overridden=any(v is not None for v in (ocm_pct, cp_pct, vat_pct)),
    )


def apply_markup(direct_cost: float, quantity: float, rates: MarkupRates) -> LineMarkup:
    """Layer OCM, CP and VAT over one line's per-unit direct cost.

    OCM and CP are both taken off the direct cost; VAT is taken off the
    OCM/CP-inclusive subtotal. Nothing is rounded here.
    """
    ocm = direct_cost * rates.ocm_pct / 100
    cp = direct_cost * rates.cp_pct / 100
    subtotal = direct_cost + ocm + cp
    vat = subtotal * rates.vat_pct / 100
    unit_price = subtotal + vat
    return LineMarkup(
        direct_cost=direct_cost,
        ocm_cost=ocm,
        cp_cost=cp,
        subtotal=subtotal,
        vat_cost=vat,
        unit_price=unit_price,
        total_amount=unit_price * quantity,
    )


def aggregate_direct_cost(lines: Iterable) -> float:
    """Sum of per-unit direct cost times quantity.

    Accepts anything with ``direct_cost`` and ``quantity`` attributes so the
    generator and the diagnostics report share one definition.
    """
    return sum(float(l.direct_cost or 0.0) * float(l.quantity or 0.0) for l in lines)


def bracket_description(estimated_direct_cost: float, rates: MarkupRates) -> Optional[str]:
    """Bracket name, or None when overridden rates replaced the bracket's."""
    if rates.overridden:
        return None
    return bracket_for(estimated_direct_cost).description


def indirect_cost_breakdown(
    estimated_direct_cost: float, rates: Optional[MarkupRates] = None
) -> dict:
    """OCM/CP amounts on an EDC; bracket rates unless applied ``rates`` are given."""
    if rates is None:
        rates = markup_rates_for(estimated_direct_cost)
    ocm_amount = estimated_direct_cost * rates.ocm_pct / 100
    cp_amount = estimated_direct_cost * rates.cp_pct / 100
    total_indirect = ocm_amount + cp_amount
    return {
        "estimated_direct_cost": round_currency(estimated_direct_cost),
        "bracket": bracket_description(estimated_direct_cost, rates),
        "ocm_pct": rates.ocm_pct,
        "ocm_amount": round_currency(ocm_amount),
        "cp_pct": rates.cp_pct,
        "cp_amount": round_currency(cp_amount),
        "total_indirect_pct": rates.ocm_pct + rates.cp_pct,
        "total_indirect_cost": round_currency(total_indirect),
        "total_project_cost": round_currency(estimated_direct_cost + total_indirect),
    }
