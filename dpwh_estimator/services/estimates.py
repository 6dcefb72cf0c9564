"""Generation, regeneration and bookkeeping of persisted cost estimates.

A generated estimate (header, summary and every line) is written in a single
transaction: readers see it either fully generated or not at all.
"""
from __future__ import annotations

import logging
import re
from dataclasses import asdict, dataclass
from typing import Any, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from dpwh_estimator.core.config import settings
from dpwh_estimator.models.tables import CostEstimate, EstimateLine, Project, TakeoffVersion
from dpwh_estimator.services.errors import (
    ConcurrencyError,
    InvalidInputError,
    NotFoundError,
    StateError,
)
from dpwh_estimator.services.estimate_generator import (
    BoqInput,
    GenerationResult,
    run_generation,
)
from dpwh_estimator.services.hauling import HaulingResult, hauling_cost_per_cum
from dpwh_estimator.services.lifecycle import compare_and_set, utcnow
from dpwh_estimator.services.markup import round_currency
from dpwh_estimator.services.rate_book import load_rate_book

logger = logging.getLogger(__name__)

_NUMBER_RE = re.compile(r"(\d+)$")


@dataclass(frozen=True)
class PricingContext:
    location: str
    district: str
    price_book_version: str
    hauling_config: Optional[dict[str, Any]] = None
    distance_km: Optional[float] = None
    hauling_cost_per_km: Optional[float] = None


@dataclass(frozen=True)
class MarkupOverrides:
    ocm_pct: Optional[float] = None
    cp_pct: Optional[float] = None
    vat_pct: Optional[float] = None


def resolve_context(
    project: Project,
    *,
    location: Optional[str] = None,
    district: Optional[str] = None,
    price_book_version: Optional[str] = None,
    hauling_config: Optional[dict[str, Any]] = None,
    distance_km: Optional[float] = None,
    hauling_cost_per_km: Optional[float] = None,
) -> PricingContext:
    """Request values first, then the project's stored defaults."""
    ctx = PricingContext(
        location=(location or project.location or "").strip(),
        district=(district or project.district or "").strip(),
        price_book_version=(price_book_version or project.price_book_version or "").strip(),
        hauling_config=hauling_config if hauling_config is not None else project.hauling_config,
        distance_km=distance_km if distance_km is not None else project.distance_from_office,
        hauling_cost_per_km=(
            hauling_cost_per_km if hauling_cost_per_km is not None else project.hauling_cost_per_km
        ),
    )
    missing = [
        name
        for name in ("location", "district", "price_book_version")
        if not getattr(ctx, name)
    ]
    if missing:
        raise InvalidInputError(f"Pricing context is missing: {', '.join(missing)}")
    return ctx


def _validate_overrides(overrides: MarkupOverrides) -> None:
    for name in ("ocm_pct", "cp_pct", "vat_pct"):
        value = getattr(overrides, name)
        if value is not None and not 0 <= value <= 100:
            raise InvalidInputError(f"{name} must be between 0 and 100")


def next_estimate_number(db: Session, project_id: int) -> str:
    numbers = (
        db.query(CostEstimate.estimate_number)
        .filter(CostEstimate.project_id == project_id)
        .all()
    )
    highest = 0
    for (number,) in numbers:
        match = _NUMBER_RE.search(number or "")
        if match:
            highest = max(highest, int(match.group(1)))
    return f"{settings.ESTIMATE_NUMBER_PREFIX}-{highest + 1:03d}"


def _boq_inputs(version: TakeoffVersion) -> list[BoqInput]:
    return [
        BoqInput(
            pay_item_number=line.pay_item_number,
            quantity=float(line.quantity or 0.0),
            description=line.description,
            unit=line.unit,
        )
        for line in version.boq_lines
    ]


def _run(
    db: Session,
    version: TakeoffVersion,
    ctx: PricingContext,
    overrides: MarkupOverrides,
) -> tuple[GenerationResult, HaulingResult]:
    hauling = hauling_cost_per_cum(ctx.hauling_config, ctx.distance_km, ctx.hauling_cost_per_km)
    book = load_rate_book(
        db,
        location=ctx.location,
        district=ctx.district,
        price_book_version=ctx.price_book_version,
    )
    result = run_generation(
        _boq_inputs(version),
        book,
        hauling_per_cum=hauling.cost_per_cum,
        ocm_pct=overrides.ocm_pct,
        cp_pct=overrides.cp_pct,
        vat_pct=overrides.vat_pct,
    )
    return result, hauling


def _issues(result: GenerationResult) -> tuple[list[dict], list[dict]]:
    errors = [asdict(e) for e in result.errors]
    warnings = [asdict(w) for w in result.warnings]
    return errors, warnings


def _apply_result(
    estimate: CostEstimate,
    result: GenerationResult,
    ctx: PricingContext,
    hauling: HaulingResult,
) -> None:
    summary = result.summary
    errors, warnings = _issues(result)
    estimate.location = ctx.location
    estimate.district = ctx.district
    estimate.price_book_version = ctx.price_book_version
    estimate.hauling_cost_per_cum = hauling.cost_per_cum
    estimate.hauling_params = {
        "method": hauling.method,
        "config": ctx.hauling_config,
        "distance_km": ctx.distance_km,
        "cost_per_km": ctx.hauling_cost_per_km,
    }
    estimate.ocm_pct = result.rates.ocm_pct
    estimate.cp_pct = result.rates.cp_pct
    estimate.vat_pct = result.rates.vat_pct
    estimate.markup_overridden = result.rates.overridden
    estimate.total_direct_cost = summary.total_direct_cost
    estimate.total_ocm = summary.total_ocm
    estimate.total_cp = summary.total_cp
    estimate.subtotal_with_markup = summary.subtotal_with_markup
    estimate.total_vat = summary.total_vat
    estimate.grand_total = summary.grand_total
    estimate.rate_items_count = summary.rate_items_count
    estimate.unmapped_pay_items = list(result.unmapped_pay_items)
    estimate.warnings = errors + warnings
    estimate.generated_at = utcnow()
    estimate.lines = [EstimateLine(**line.to_row()) for line in result.lines]


def _priceable_version(db: Session, version_id: int) -> TakeoffVersion:
    version = db.get(TakeoffVersion, version_id)
    if version is None:
        raise NotFoundError(f"Takeoff version {version_id} not found")
    if version.status == "superseded":
        raise StateError(
            f"Takeoff version {version.id} is superseded; estimates cannot be generated from it"
        )
    return version


def generate_estimate(
    db: Session,
    version_id: int,
    *,
    location: Optional[str] = None,
    district: Optional[str] = None,
    price_book_version: Optional[str] = None,
    hauling_config: Optional[dict[str, Any]] = None,
    distance_km: Optional[float] = None,
    hauling_cost_per_km: Optional[float] = None,
    overrides: Optional[MarkupOverrides] = None,
    name: Optional[str] = None,
    estimate_type: Optional[str] = None,
    base_estimate_id: Optional[int] = None,
    actor: Optional[str] = None,
) -> tuple[CostEstimate, GenerationResult]:
    version = _priceable_version(db, version_id)
    project = db.get(Project, version.project_id)
    if project is None:
        raise NotFoundError(f"Project {version.project_id} not found")
    ctx = resolve_context(
        project,
        location=location,
        district=district,
        price_book_version=price_book_version,
        hauling_config=hauling_config,
        distance_km=distance_km,
        hauling_cost_per_km=hauling_cost_per_km,
    )
    overrides = overrides or MarkupOverrides()
    _validate_overrides(overrides)
    if base_estimate_id is not None:
        base = db.get(CostEstimate, base_estimate_id)
        if base is None or base.project_id != project.id:
            raise InvalidInputError(
                f"Base estimate {base_estimate_id} does not belong to project {project.id}"
            )

    logger.info(
        "Generating estimate for takeoff version %s (%d BOQ lines) at %s/%s/%s",
        version.id,
        len(version.boq_lines),
        ctx.location,
        ctx.district,
        ctx.price_book_version,
    )
    result, hauling = _run(db, version, ctx, overrides)

    estimate = CostEstimate(
        project_id=project.id,
        takeoff_version_id=version.id,
        base_estimate_id=base_estimate_id,
        estimate_number=next_estimate_number(db, project.id),
        name=name,
        estimate_type=estimate_type,
        status="draft",
        created_by=actor,
    )
    _apply_result(estimate, result, ctx, hauling)
    db.add(estimate)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConcurrencyError(
            f"Estimate number {estimate.estimate_number} was taken concurrently; retry"
        ) from exc
    except Exception:
        db.rollback()
        logger.warning("Estimate write for takeoff version %s rolled back", version.id)
        raise
    db.refresh(estimate)
    return estimate, result


def regenerate_estimate(
    db: Session, estimate_id: int, overrides: Optional[MarkupOverrides] = None
) -> tuple[CostEstimate, GenerationResult]:
    """Re-run generation for a draft estimate and replace its line set."""
    estimate = get_estimate(db, estimate_id)
    if estimate.status != "draft":
        raise StateError(
            f"Cost estimate {estimate.id} is '{estimate.status}'; only drafts can be regenerated"
        )
    version = _priceable_version(db, estimate.takeoff_version_id)
    params =estimate.hauling_params or {}
    ctx = PricingContext(
        location=estimate.location,
        district=estimate.district,
        price_book_version=estimate.price_book_version,
        hauling_config=params.get("config"),
        distance_km=params.get("distance_km"),
        hauling_cost_per_km=params.get("cost_per_km"),
    )
    if overrides is None:
        overrides = (
            MarkupOverrides(estimate.ocm_pct, estimate.cp_pct, estimate.vat_pct)
            if estimate.markup_overridden
            else MarkupOverrides()
        )
    _validate_overrides(overrides)
    result, hauling = _run(db, version, ctx, overrides)

    # status guard and line replacement commit together
    compare_and_set(db, CostEstimate, estimate.id, "draft", {"status": "draft"})
    _apply_result(estimate, result, ctx, hauling)
    try:
        db.commit()
    except Exception:
        db.rollback()
        logger.warning("Regeneration of estimate %s rolled back", estimate.id)
        raise
    db.refresh(estimate)
    logger.info("Regenerated estimate %s (%d lines)", estimate.id, len(estimate.lines))
    return estimate, result


def get_estimate(db: Session, estimate_id: int) -> CostEstimate:
    estimate = db.get(CostEstimate, estimate_id)
    if estimate is None:
        raise NotFoundError(f"Cost estimate {estimate_id} not found")
    return estimate


def list_estimates(db: Session, project_id: int) -> list[CostEstimate]:
    if db.get(Project, project_id) is None:
        raise NotFoundError(f"Project {project_id} not found")
    return (
        db.query(CostEstimate)
        .filter(CostEstimate.project_id == project_id)
        .order_by(CostEstimate.id)
        .all()
    )


def delete_estimate(db: Session, estimate_id: int) -> None:
    estimate = get_estimate(db, estimate_id)
    if estimate.status == "approved":
        raise StateError(f"Cost estimate {estimate.id} is approved and cannot be deleted")
    dependents = (
        db.query(func.count(CostEstimate.id))
        .filter(CostEstimate.base_estimate_id == estimate.id)
        .scalar()
    )
    if dependents:
        raise StateError(
            f"Cost estimate {estimate.id} is the base of {dependents} other estimate(s)"
        )
    db.delete(estimate)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Deleted cost estimate %s", estimate_id)


def price_delta(db: Session, estimate_id: int, base_estimate_id: Optional[int] = None) -> dict:
    """Grand-total difference against the estimate's base (or an explicit one)."""
    estimate = get_estimate(db, estimate_id)
    base_id = base_estimate_id if base_estimate_id is not None else estimate.base_estimate_id
    if base_id is None:
        raise InvalidInputError(f"Cost estimate {estimate.id} has no base estimate to compare")
    base = get_estimate(db, base_id)
    delta = float(estimate.grand_total) - float(base.grand_total)
    pct = delta / float(base.grand_total) * 100 if base.grand_total else 0.0
    return {
        "estimate_id": estimate.id,
        "base_estimate_id": base.id,
        "grand_total": round_currency(estimate.grand_total),
        "base_grand_total": round_currency(base.grand_total),
        "delta": round_currency(delta),
        "delta_percentage": round(pct, 2),
    }
