from dataclasses import asdict
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from dpwh_estimator.api.errors import actor_from, http_error
from dpwh_estimator.db.deps import get_db
from dpwh_estimator.models.tables import CostEstimate, EstimateLine
from dpwh_estimator.security import auth
from dpwh_estimator.services import estimates as estimates_svc
from dpwh_estimator.services.diagnostics import run_diagnostics
from dpwh_estimator.services.errors import EstimatorError
from dpwh_estimator.services.estimate_generator import GenerationResult
from dpwh_estimator.services.lifecycle import transition_estimate
from dpwh_estimator.services.markup import (
    MarkupRates,
    bracket_description,
    indirect_cost_breakdown,
    round_currency,
)

router = APIRouter(tags=["cost-estimates"])

_LINE_MONEY_FIELDS = (
    "labor_cost",
    "equipment_cost",
    "material_cost",
    "minor_tools_cost",
    "direct_cost",
    "ocm_cost",
    "cp_cost",
    "subtotal",
    "vat_cost",
    "unit_price",
    "total_amount",
)


class RouteSegmentIn(BaseModel):
    distance_km: float = Field(ge=0)
    speed_unloaded_kmh: float = Field(gt=0)
    speed_loaded_kmh: float = Field(gt=0)


class HaulingConfigIn(BaseModel):
    total_distance_km: float = Field(ge=0)
    free_hauling_distance_km: float = Field(default=0, ge=0)
    route_segments: List[RouteSegmentIn] = Field(default_factory=list)
    equipment_rental_rate: Optional[float] = Field(default=None, gt=0)
    equipment_capacity_cum: Optional[float] = Field(default=None, gt=0)


class MarkupOverridesIn(BaseModel):
    ocm_pct: Optional[float] = Field(default=None, ge=0, le=100)
    cp_pct: Optional[float] = Field(default=None, ge=0, le=100)
    vat_pct: Optional[float] = Field(default=None, ge=0, le=100)


class GenerateRequest(MarkupOverridesIn):
    location: Optional[str] = None
    district: Optional[str] = None
    price_book_version: Optional[str] = None
    hauling_config: Optional[HaulingConfigIn] = None
    distance_km: Optional[float] = Field(default=None, ge=0)
    hauling_cost_per_km: Optional[float] = Field(default=None, ge=0)
    name: Optional[str] = None
    estimate_type: Optional[str] = None
    base_estimate_id: Optional[int] = None

    model_config = ConfigDict(extra="ignore")


class EstimateStatusChange(BaseModel):
    action: Literal["submit", "approve"]
    actor: Optional[str] = None


class GenerateResponse(BaseModel):
    estimate: Dict[str, Any]
    unmapped_pay_items: List[str] = Field(default_factory=list)
    errors: List[Dict[str, Any]] = Field(default_factory=list)
    warnings: List[Dict[str, Any]] = Field(default_factory=list)


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


def _line_to_dict(line: EstimateLine) -> dict[str, Any]:
    out: dict[str, Any] = {
        "position": line.position,
        "pay_item_number": line.pay_item_number,
        "description": line.description,
        "unit": line.unit,
        "quantity": line.quantity,
        "part": line.part,
        "labor_items": line.labor_items or [],
        "equipment_items": line.equipment_items or [],
        "material_items": line.material_items or [],
        "dupa_not_found": bool(line.dupa_not_found),
        "requires_canvass": bool(line.requires_canvass),
    }
    for name in _LINE_MONEY_FIELDS:
        out[name] = round_currency(getattr(line, name))
    return out


def _applied_rates(estimate: CostEstimate) -> MarkupRates:
    return MarkupRates(
        ocm_pct=estimate.ocm_pct,
        cp_pct=estimate.cp_pct,
        vat_pct=estimate.vat_pct,
        overridden=bool(estimate.markup_overridden),
    )


def estimate_to_dict(estimate: CostEstimate, include_lines: bool = True) -> dict[str, Any]:
    edc = estimate.total_direct_cost or 0.0
    rates = _applied_rates(estimate)
    out: dict[str, Any] = {
        "id": estimate.id,
        "estimate_number": estimate.estimate_number,
        "project_id": estimate.project_id,
        "takeoff_version_id": estimate.takeoff_version_id,
        "base_estimate_id": estimate.base_estimate_id,
        "name": estimate.name,
        "estimate_type": estimate.estimate_type,
        "status": estimate.status,
        "location": estimate.location,
        "district": estimate.district,
        "price_book_version": estimate.price_book_version,
        "hauling_cost_per_cum": round_currency(estimate.hauling_cost_per_cum),
        "hauling_params": estimate.hauling_params,
        "markup": {
            "ocm_pct": estimate.ocm_pct,
            "cp_pct": estimate.cp_pct,
            "vat_pct": estimate.vat_pct,
            "overridden": rates.overridden,
            "bracket": bracket_description(edc, rates),
        },
        "summary": {
            "total_direct_cost": round_currency(estimate.total_direct_cost),
            "total_ocm": round_currency(estimate.total_ocm),
            "total_cp": round_currency(estimate.total_cp),
            "subtotal_with_markup": round_currency(estimate.subtotal_with_markup),
            "total_vat": round_currency(estimate.total_vat),
            "grand_total": round_currency(estimate.grand_total),
            "rate_items_count": estimate.rate_items_count,
        },
        "unmapped_pay_items": estimate.unmapped_pay_items or [],
        "generated_at": _iso(estimate.generated_at),
        "created_by": estimate.created_by,
        "submitted_by": estimate.submitted_by,
        "submitted_at": _iso(estimate.submitted_at),
        "approved_by": estimate.approved_by,
        "approved_at": _iso(estimate.approved_at),
    }
    if include_lines:
        out["lines"] = [_line_to_dict(line) for line in estimate.lines]
    return out


def _generate_response(estimate: CostEstimate, result: GenerationResult) -> GenerateResponse:
    return GenerateResponse(
        estimate=estimate_to_dict(estimate),
        unmapped_pay_items=list(result.unmapped_pay_items),
        errors=[asdict(e) for e in result.errors],
        warnings=[asdict(w) for w in result.warnings],
    )


@router.post(
    "/takeoff-versions/{version_id}/cost-estimates/generate",
    response_model=GenerateResponse,
    status_code=201,
)
def generate_cost_estimate(
    version_id: int,
    req: GenerateRequest,
    db: Session = Depends(get_db),
    auth_payload: dict = Depends(auth.require),
):
    try:
        estimate, result = estimates_svc.generate_estimate(
            db,
            version_id,
            location=req.location,
            district=req.district,
            price_book_version=req.price_book_version,
            hauling_config=req.hauling_config.model_dump() if req.hauling_config else None,
            distance_km=req.distance_km,
            hauling_cost_per_km=req.hauling_cost_per_km,
            overrides=estimates_svc.MarkupOverrides(req.ocm_pct, req.cp_pct, req.vat_pct),
            name=req.name,
            estimate_type=req.estimate_type,
            base_estimate_id=req.base_estimate_id,
            actor=actor_from(None, auth_payload),
        )
    except EstimatorError as exc:
        raise http_error(exc) from exc
    return _generate_response(estimate, result)


@router.post("/cost-estimates/{estimate_id}/regenerate", response_model=GenerateResponse)
def regenerate_cost_estimate(
    estimate_id: int,
    req: Optional[MarkupOverridesIn] = None,
    db: Session = Depends(get_db),
):
    overrides = None
    if req is not None and any(
        v is not None for v in (req.ocm_pct, req.cp_pct, req.vat_pct)
    ):
        overrides = estimates_svc.MarkupOverrides(req.ocm_pct, req.cp_pct, req.vat_pct)
    try:
        estimate, result = estimates_svc.regenerate_estimate(db, estimate_id, overrides)
    except EstimatorError as exc:
        raise http_error(exc) from exc
    return _generate_response(estimate, result)


@router.get("/projects/{project_id}/cost-estimates")
def list_cost_estimates(project_id: int, db: Session = Depends(get_db)):
    try:
        items = estimates_svc.list_estimates(db, project_id)
    except EstimatorError as exc:
        raise http_error(exc) from exc
    return {"items": [estimate_to_dict(e, include_lines=False) for e in items]}


@router.get("/cost-estimates/{estimate_id}")
def get_cost_estimate(estimate_id: int, db: Session = Depends(get_db)):
    try:
        estimate = estimates_svc.get_estimate(db, estimate_id)
    except EstimatorError as exc:
        raise http_error(exc) from exc
    return estimate_to_dict(estimate)


@router.patch("/cost-estimates/{estimate_id}/status")
def change_cost_estimate_status(
    estimate_id: int,
    req: EstimateStatusChange,
    db: Session = Depends(get_db),
    auth_payload: dict = Depends(auth.require),
):
    try:
        estimate = transition_estimate(
            db, estimate_id, req.action, actor_from(req.actor, auth_payload)
        )
    except EstimatorError as exc:
        raise http_error(exc) from exc
    return estimate_to_dict(estimate, include_lines=False)


@router.delete("/cost-estimates/{estimate_id}", status_code=204)
def delete_cost_estimate(estimate_id: int, db: Session = Depends(get_db)):
    try:
        estimates_svc.delete_estimate(db, estimate_id)
    except EstimatorError as exc:
        raise http_error(exc) from exc
    return Response(status_code=204)


@router.get("/cost-estimates/{estimate_id}/diagnostics")
def cost_estimate_diagnostics(estimate_id: int, db: Session = Depends(get_db)):
    try:
        return run_diagnostics(db, estimate_id)
    except EstimatorError as exc:
        raise http_error(exc) from exc


@router.get("/cost-estimates/{estimate_id}/indirect-costs")
def cost_estimate_indirect_costs(estimate_id: int, db: Session = Depends(get_db)):
    try:
        estimate = estimates_svc.get_estimate(db, estimate_id)
    except EstimatorError as exc:
        raise http_error(exc) from exc
    out = indirect_cost_breakdown(estimate.total_direct_cost or 0.0, _applied_rates(estimate))
    out["estimate_id"] = estimate.id
    out["vat_pct"] = estimate.vat_pct
    return out


@router.get("/cost-estimates/{estimate_id}/delta")
def cost_estimate_delta(
    estimate_id: int,
    base_estimate_id: Optional[int] = None,
    db: Session = Depends(get_db),
):
    try:
        return estimates_svc.price_delta(db, estimate_id, base_estimate_id)
    except EstimatorError as exc:
        raise http_error(exc) from exc
