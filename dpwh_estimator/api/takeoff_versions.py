from typing import Any, List, Literal, Optional

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from dpwh_estimator.api.errors import actor_from, http_error
from dpwh_estimator.db.deps import get_db
from dpwh_estimator.models.tables import TakeoffVersion
from dpwh_estimator.security import auth
from dpwh_estimator.services import takeoff_versions as versions_svc
from dpwh_estimator.services.errors import EstimatorError
from dpwh_estimator.services.lifecycle import transition_version
from dpwh_estimator.services.pay_items import normalize_unit, trade_for_pay_item

router = APIRouter(tags=["takeoff-versions"])


class BoqLineIn(BaseModel):
    pay_item_number: str = Field(min_length=1)
    description: Optional[str] = None
    unit: Optional[str] = None
    quantity: float = Field(ge=0)


class VersionCreate(BaseModel):
    label: Optional[str] = None
    description: Optional[str] = None
    boq_lines: List[BoqLineIn] = Field(default_factory=list)


class VersionUpdate(BaseModel):
    label: Optional[str] = None
    description: Optional[str] = None
    boq_lines: Optional[List[BoqLineIn]] = None


class DuplicateRequest(BaseModel):
    label: Optional[str] = None


class StatusChange(BaseModel):
    action: Literal["submit", "approve", "reject", "supersede"]
    actor: Optional[str] = None
    reason: Optional[str] = None


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


def version_to_dict(version: TakeoffVersion, include_lines: bool = True) -> dict[str, Any]:
    out: dict[str, Any] = {
        "id": version.id,
        "project_id": version.project_id,
        "version_number": version.version_number,
        "label": version.label,
        "description": version.description,
        "status": version.status,
        "parent_version_id": version.parent_version_id,
        "created_by": version.created_by,
        "created_at": _iso(version.created_at),
        "updated_at": _iso(version.updated_at),
        "submitted_by": version.submitted_by,
        "submitted_at": _iso(version.submitted_at),
        "approved_by": version.approved_by,
        "approved_at": _iso(version.approved_at),
        "rejected_by": version.rejected_by,
        "rejected_at": _iso(version.rejected_at),
        "rejection_reason": version.rejection_reason,
        "boq_line_count": len(version.boq_lines),
    }
    if include_lines:
        out["boq_lines"] = [
            {
                "position": line.position,
                "pay_item_number": line.pay_item_number,
                "description": line.description,
                "unit": line.unit,
                "unit_normalized": normalize_unit(line.unit),
                "trade": trade_for_pay_item(line.pay_item_number),
                "quantity": line.quantity,
            }
            for line in version.boq_lines
        ]
    return out


@router.post("/projects/{project_id}/takeoff-versions", status_code=201)
def create_takeoff_version(
    project_id: int,
    req: VersionCreate,
    db: Session = Depends(get_db),
    auth_payload: dict = Depends(auth.require),
):
    try:
        version = versions_svc.create_version(
            db,
            project_id,
            boq_lines=[line.model_dump() for line in req.boq_lines],
            label=req.label,
            description=req.description,
            actor=actor_from(None, auth_payload),
        )
    except EstimatorError as exc:
        raise http_error(exc) from exc
    return version_to_dict(version)


@router.get("/projects/{project_id}/takeoff-versions")
def list_takeoff_versions(
    project_id: int,
    include_superseded: bool = False,
    db: Session = Depends(get_db),
):
    try:
        versions = versions_svc.list_versions(db, project_id, include_superseded)
    except EstimatorError as exc:
        raise http_error(exc) from exc
    return {"items": [version_to_dict(v, include_lines=False) for v in versions]}


@router.get("/projects/{project_id}/takeoff-versions/active")
def get_active_takeoff_version(project_id: int, db: Session = Depends(get_db)):
    try:
        version = versions_svc.get_active_version(db, project_id)
    except EstimatorError as exc:
        raise http_error(exc) from exc
    return version_to_dict(version)


@router.get("/takeoff-versions/{version_id}")
def get_takeoff_version(version_id: int, db: Session = Depends(get_db)):
    try:
        version = versions_svc.get_version(db, version_id)
    except EstimatorError as exc:
        raise http_error(exc) from exc
    return version_to_dict(version)


@router.patch("/takeoff-versions/{version_id}")
def update_takeoff_version(
    version_id: int, req: VersionUpdate, db: Session = Depends(get_db)
):
    try:
        version = versions_svc.update_version(
            db,
            version_id,
            label=req.label,
            description=req.description,
            boq_lines=(
                [line.model_dump() for line in req.boq_lines]
                if req.boq_lines is not None
                else None
            ),
        )
    except EstimatorError as exc:
        raise http_error(exc) from exc
    return version_to_dict(version)


@router.delete("/takeoff-versions/{version_id}", status_code=204)
def delete_takeoff_version(version_id: int, db: Session = Depends(get_db)):
    try:
        versions_svc.delete_version(db, version_id)
    except EstimatorError as exc:
        raise http_error(exc) from exc
    return Response(status_code=204)


@router.post("/takeoff-versions/{version_id}/duplicate", status_code=201)
def duplicate_takeoff_version(
    version_id: int,
    req: Optional[DuplicateRequest] = None,
    db: Session = Depends(get_db),
    auth_payload: dict = Depends(auth.require),
):
    try:
        version = versions_svc.duplicate_version(
            db,
            version_id,
            actor=actor_from(None, auth_payload),
            label=req.label if req else None,
        )
    except EstimatorError as exc:
        raise http_error(exc) from exc
    return version_to_dict(version)


@router.patch("/takeoff-versions/{version_id}/status")
def change_takeoff_version_status(
    version_id: int,
    req: StatusChange,
    db: Session = Depends(get_db),
    auth_payload: dict = Depends(auth.require),
):
    try:
        version = transition_version(
            db,
            version_id,
            req.action,
            actor_from(req.actor, auth_payload),
            reason=req.reason,
        )
    except EstimatorError as exc:
        raise http_error(exc) from exc
    return version_to_dict(version, include_lines=False)
