"""Consistency check of a stored cost estimate against its own lines.

Nothing here writes: mismatches are reported, never corrected.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from dpwh_estimator.core.config import settings
from dpwh_estimator.models.tables import CostEstimate, EstimateLine
from dpwh_estimator.services.errors import NotFoundError
from dpwh_estimator.services.markup import aggregate_direct_cost, round_currency

logger = logging.getLogger(__name__)

_SUMMARY_FIELDS = (
    "total_direct_cost",
    "total_ocm",
    "total_cp",
    "subtotal_with_markup",
    "total_vat",
    "grand_total",
)


def _f(value: Any) -> float:
    return float(value or 0.0)


def recompute_totals(lines: list[EstimateLine]) -> dict[str, float]:
    direct = aggregate_direct_cost(lines)
    ocm = sum(_f(l.ocm_cost) * _f(l.quantity) for l in lines)
    cp = sum(_f(l.cp_cost) * _f(l.quantity) for l in lines)
    vat = sum(_f(l.vat_cost) * _f(l.quantity) for l in lines)
    return {
        "total_direct_cost": direct,
        "total_ocm": ocm,
        "total_cp": cp,
        "subtotal_with_markup": direct + ocm + cp,
        "total_vat": vat,
        "grand_total": sum(_f(l.total_amount) for l in lines),
    }


def _line_ref(line: EstimateLine) -> dict[str, Any]:
    return {
        "position": line.position,
        "pay_item_number": line.pay_item_number,
        "description": line.description,
    }


def check_line(line: EstimateLine, tol: float) -> list[str]:
    """Names of the broken links in one line's cost chain."""
    problems = []
    buckets = _f(line.labor_cost) + _f(line.equipment_cost) + _f(line.material_cost)
    if abs(buckets - _f(line.direct_cost)) > tol:
        problems.append("direct_cost")
    subtotal = _f(line.direct_cost) + _f(line.ocm_cost) + _f(line.cp_cost)
    if abs(subtotal - _f(line.subtotal)) > tol:
        problems.append("subtotal")
    if abs(_f(line.subtotal) + _f(line.vat_cost) - _f(line.unit_price)) > tol:
        problems.append("unit_price")
    if abs(_f(line.unit_price) * _f(line.quantity) - _f(line.total_amount)) > tol:
        problems.append("total_amount")
    return problems


def run_diagnostics(
    db: Session, estimate_id: int, tolerance: Optional[float] = None
) -> dict[str, Any]:
    estimate = db.get(CostEstimate, estimate_id)
    if estimate is None:
        raise NotFoundError(f"Cost estimate {estimate_id} not found")
    tol = settings.DIAGNOSTICS_TOLERANCE if tolerance is None else tolerance
    lines = list(estimate.lines)

    computed = recompute_totals(lines)
    stored = {name: _f(getattr(estimate, name)) for name in _SUMMARY_FIELDS}
    deltas = {name: stored[name] - computed[name] for name in _SUMMARY_FIELDS}
    # The stored summary must also hold together on its own.
    stored_subtotal = stored["total_direct_cost"] + stored["total_ocm"] + stored["total_cp"]
    summary_chain_ok = (
        abs(stored_subtotal - stored["subtotal_with_markup"]) <= tol
        and abs(stored["subtotal_with_markup"] + stored["total_vat"] - stored["grand_total"]) <= tol
    )

    mismatched, zero_cost, missing_rates, not_found = [], [], [], []
    for line in lines:
        problems = check_line(line, tol)
        if problems:
            mismatched.append({**_line_ref(line), "fields": problems})
        if line.dupa_not_found:
            not_found.append(_line_ref(line))
            continue
        if not (_f(line.labor_cost) or _f(line.equipment_cost) or _f(line.material_cost)):
            zero_cost.append(_line_ref(line))
        labor_missing = sum(1 for i in line.labor_items or [] if not _f(i.get("hourly_rate")))
        equipment_missing = sum(
            1 for i in line.equipment_items or [] if not _f(i.get("hourly_rate"))
        )
        material_missing = sum(1 for i in line.material_items or [] if not _f(i.get("unit_cost")))
        if labor_missing or equipment_missing or material_missing:
            missing_rates.append(
                {
                    **_line_ref(line),
                    "labor_missing": labor_missing,
                    "equipment_missing": equipment_missing,
                    "material_missing": material_missing,
                }
            )

    consistent = (
        summary_chain_ok
        and all(abs(d) <= tol for d in deltas.values())
        and not mismatched
    )
    if not consistent:
        logger.warning("Cost estimate %s failed consistency check", estimate.id)

    return {
        "estimate_id": estimate.id,
        "consistent": consistent,
        "tolerance": tol,
        "line_count": len(lines),
        "stored": {k: round_currency(v) for k, v in stored.items()},
        "computed": {k: round_currency(v) for k, v in computed.items()},
        "deltas": {k: round(v, 6) for k, v in deltas.items()},
        "mismatched_lines": mismatched,
        "zero_cost_lines": zero_cost,
        "missing_rate_lines": missing_rates,
        "dupa_not_found_lines": not_found,
    }
