from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from dpwh_estimator.models.tables import BoqLine, CostEstimate, Project, TakeoffVersion
from dpwh_estimator.services.errors import ConcurrencyError, InvalidInputError, NotFoundError, StateError
from dpwh_estimator.services.lifecycle import compare_and_set, ensure_version_editable, utcnow

logger = logging.getLogger(__name__)


def get_project(db: Session, project_id: int) -> Project:
    project = db.get(Project, project_id)
    if project is None:
        raise NotFoundError(f"Project {project_id} not found")
    return project


def get_version(db: Session, version_id: int) -> TakeoffVersion:
    version = db.get(TakeoffVersion, version_id)
    if version is None:
        raise NotFoundError(f"Takeoff version {version_id} not found")
    return version


def _boq_rows(lines: Iterable[dict[str, Any]]) -> list[BoqLine]:
    rows = []
    for position, line in enumerate(lines):
        pay_item = str(line.get("pay_item_number") or "").strip()
        if not pay_item:
            raise InvalidInputError(f"BOQ line {position} has no pay item number")
        quantity = float(line.get("quantity") or 0.0)
        if quantity < 0:
            raise InvalidInputError(f"BOQ line {position} has a negative quantity")
        rows.append(
            BoqLine(
                position=position,
                pay_item_number=pay_item,
                description=line.get("description"),
                unit=line.get("unit"),
                quantity=quantity,
            )
        )
    return rows


def _next_version_number(db: Session, project_id: int) -> int:
    current = (
        db.query(func.max(TakeoffVersion.version_number))
        .filter(TakeoffVersion.project_id == project_id)
        .scalar()
    )
    return int(current or 0) + 1


def _save_new_version(db: Session, version: TakeoffVersion) -> TakeoffVersion:
    db.add(version)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConcurrencyError(
            f"Version number {version.version_number} was taken concurrently; retry"
        ) from exc
    except Exception:
        db.rollback()
        raise
    db.refresh(version)
    return version


def create_version(
    db: Session,
    project_id: int,
    *,
    boq_lines: Iterable[dict[str, Any]],
    label: Optional[str] = None,
    description: Optional[str] = None,
    actor: Optional[str] = None,
) -> TakeoffVersion:
    get_project(db, project_id)
    number = _next_version_number(db, project_id)
    now = utcnow()
    version = TakeoffVersion(
        project_id=project_id,
        version_number=number,
        label=label or f"Version {number}",
        description=description,
        status="draft",
        created_by=actor,
        created_at=now,
        updated_at=now,
        boq_lines=_boq_rows(boq_lines),
    )
    version = _save_new_version(db, version)
    logger.info("Created takeoff version %s (v%d) for project %s", version.id, number, project_id)
    return version


def duplicate_version(
    db: Session,
    version_id: int,
    *,
    actor: Optional[str] = None,
    label: Optional[str] = None,
) -> TakeoffVersion:
    source = get_version(db, version_id)
    number = _next_version_number(db, source.project_id)
    now = utcnow()
    copy = TakeoffVersion(
        project_id=source.project_id,
        version_number=number,
        label=label or f"{source.label or f'Version {source.version_number}'} (copy)",
        description=source.description,
        status="draft",
        parent_version_id=source.id,
        created_by=actor,
        created_at=now,
        updated_at=now,
        boq_lines=[
            BoqLine(
                position=line.position,
                pay_item_number=line.pay_item_number,
                description=line.description,
                unit=line.unit,
                quantity=line.quantity,
            )
            for line in source.boq_lines
        ],
    )
    copy = _save_new_version(db, copy)
    logger.info("Duplicated takeoff version %s into %s", source.id, copy.id)
    return copy


def update_version(
    db: Session,
    version_id: int,
    *,
    label: Optional[str] = None,
    description: Optional[str] = None,
    boq_lines: Optional[Iterable[dict[str, Any]]] = None,
) -> TakeoffVersion:
    version = get_version(db, version_id)
    ensure_version_editable(version)
    current = version.status
    values: dict[str, Any] = {"updated_at": utcnow()}
    if label is not None:
        values["label"] = label
    if description is not None:
        values["description"] = description
    new_lines = _boq_rows(boq_lines) if boq_lines is not None else None

    compare_and_set(db, TakeoffVersion, version.id, current, values)
    if new_lines is not None:
        version.boq_lines = new_lines
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(version)
    return version


def delete_version(db: Session, version_id: int) -> None:
    version = get_version(db, version_id)
    ensure_version_editable(version)
    referenced = (
        db.query(func.count(CostEstimate.id))
        .filter(CostEstimate.takeoff_version_id == version.id)
        .scalar()
    )
    if referenced:
        raise StateError(
            f"Takeoff version {version.id} is referenced by {referenced} cost estimate(s)"
        )
    db.delete(version)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Deleted takeoff version %s", version_id)


def list_versions(
    db: Session, project_id: int, include_superseded: bool = False
) -> list[TakeoffVersion]:
    get_project(db, project_id)
    q = db.query(TakeoffVersion).filter(TakeoffVersion.project_id == project_id)
    if not include_superseded:
        q = q.filter(TakeoffVersion.status != "superseded")
    return q.order_by(TakeoffVersion.version_number.desc()).all()


def get_active_version(db: Session, project_id: int) -> TakeoffVersion:
    project = get_project(db, project_id)
    if project.active_takeoff_version_id is None:
        raise NotFoundError(f"Project {project_id} has no active takeoff version")
    return get_version(db, project.active_takeoff_version_id)
