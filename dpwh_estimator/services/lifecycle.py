"""Status state machines for takeoff versions and cost estimates.

Transitions are table-driven: ``(current status, action) -> Transition``.
Every write is a compare-and-set on the persisted status, so two
concurrent requests acting on the same document cannot both succeed.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from dpwh_estimator.models.tables import CostEstimate, Project, TakeoffVersion
from dpwh_estimator.services.errors import (
    ConcurrencyError,
    InvalidInputError,
    NotFoundError,
    StateError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Transition:
    next_status: str
    required: tuple[str, ...] = ()


VERSION_TRANSITIONS: Mapping[tuple[str, str], Transition] = {
    ("draft", "submit"): Transition("submitted"),
    ("rejected", "submit"): Transition("submitted"),
    ("submitted", "approve"): Transition("approved"),
    ("submitted", "reject"): Transition("rejected", ("reason",)),
    ("approved", "supersede"): Transition("superseded"),
}

ESTIMATE_TRANSITIONS: Mapping[tuple[str, str], Transition] = {
    ("draft", "submit"): Transition("submitted"),
    ("submitted", "approve"): Transition("approved"),
}

EDITABLE_VERSION_STATUSES = frozenset({"draft", "rejected"})


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def validate_transition(
    table: Mapping[tuple[str, str], Transition],
    entity: str,
    current: str,
    action: str,
    fields: Optional[Mapping[str, Any]] = None,
) -> Transition:
    transition = table.get((current, action))
    if transition is None:
        allowed = sorted(a for (state, a) in table if state == current)
        hint = f"allowed: {', '.join(allowed)}" if allowed else "no further transitions"
        raise StateError(f"Cannot {action} a {entity} in status '{current}' ({hint})")
    fields = fields or {}
    for name in transition.required:
        value = fields.get(name)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise StateError(f"A {name} is required to {action} a {entity}")
    return transition


def compare_and_set(
    db: Session, model, entity_id: int, expected_status: str, values: dict
) -> None:
    """UPDATE ... WHERE status = expected; zero rows means someone got there first."""
    result = db.execute(
        update(model)
        .where(model.id == entity_id, model.status == expected_status)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        current = db.get(model, entity_id)
        seen = current.status if current is not None else "deleted"
        raise ConcurrencyError(
            f"{model.__tablename__} {entity_id} changed from '{expected_status}' "
            f"to '{seen}' during the update; reload and retry"
        )


def _commit(db: Session) -> None:
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise


def _require_actor(actor: Optional[str]) -> str:
    if not actor or not actor.strip():
        raise InvalidInputError("An actor is required for status transitions")
    return actor.strip()


def ensure_version_editable(version: TakeoffVersion) -> None:
    if version.status not in EDITABLE_VERSION_STATUSES:
        raise StateError(
            f"Takeoff version {version.id} is '{version.status}'; "
            "only draft or rejected versions can be edited or deleted"
        )


def transition_version(
    db: Session,
    version_id: int,
    action: str,
    actor: Optional[str],
    reason: Optional[str] = None,
) -> TakeoffVersion:
    version = db.get(TakeoffVersion, version_id)
    if version is None:
        raise NotFoundError(f"Takeoff version {version_id} not found")
    actor = _require_actor(actor)
    current = version.status
    transition = validate_transition(
        VERSION_TRANSITIONS, "takeoff version", current, action, {"reason": reason}
    )

    now = utcnow()
    values: dict[str, Any] = {"status": transition.next_status, "updated_at": now}
    if action == "submit":
        values.update(submitted_by=actor, submitted_at=now)
    elif action == "approve":
        values.update(approved_by=actor, approved_at=now)
    elif action == "reject":
        values.update(rejected_by=actor, rejected_at=now, rejection_reason=reason.strip())

    compare_and_set(db, TakeoffVersion, version.id, current, values)

    # The active pointer moves in the same transaction as the approval.
    if action == "approve":
        db.execute(
            update(Project)
            .where(Project.id == version.project_id)
            .values(active_takeoff_version_id=version.id)
            .execution_options(synchronize_session=False)
        )
    elif action == "supersede":
        db.execute(
            update(Project)
            .where(
                Project.id == version.project_id,
                Project.active_takeoff_version_id == version.id,
            )
            .values(active_takeoff_version_id=None)
            .execution_options(synchronize_session=False)
        )

    _commit(db)
    db.refresh(version)
    logger.info(
        "Takeoff version %s: %s -> %s by %s", version.id, current, version.status, actor
    )
    return version


def transition_estimate(
    db: Session, estimate_id: int, action: str, actor: Optional[str]
) -> CostEstimate:
    estimate = db.get(CostEstimate, estimate_id)
    if estimate is None:
        raise NotFoundError(f"Cost estimate {estimate_id} not found")
    actor = _require_actor(actor)
    current = estimate.status
    transition = validate_transition(ESTIMATE_TRANSITIONS, "cost estimate", current, action)

    now = utcnow()
    values: dict[str, Any] = {"status": transition.next_status}
    if action == "submit":
        values.update(submitted_by=actor, submitted_at=now)
    elif action == "approve":
        values.update(approved_by=actor, approved_at=now)

    compare_and_set(db, CostEstimate, estimate.id, current, values)
    _commit(db)
    db.refresh(estimate)
    logger.info(
        "Cost estimate %s: %s -> %s by %s", estimate.id, current, estimate.status, actor
    )
    return estimate
