"""Hauling surcharge per cubic metre of delivered material."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from dpwh_estimator.core.config import settings
from dpwh_estimator.services.errors import InvalidInputError


@dataclass(frozen=True)
class RouteSegment:
    distance_km: float
    speed_unloaded_kmh: float
    speed_loaded_kmh: float


@dataclass(frozen=True)
class HaulingRoute:
    total_distance_km: float
    free_hauling_distance_km: float = 0.0
    route_segments: tuple[RouteSegment, ...] = field(default_factory=tuple)
    equipment_rental_rate: float = settings.DEFAULT_EQUIPMENT_RENTAL_RATE
    equipment_capacity_cum: float = settings.DEFAULT_EQUIPMENT_CAPACITY

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> "HaulingRoute":
        segments = tuple(
            RouteSegment(
                distance_km=float(seg.get("distance_km") or 0.0),
                speed_unloaded_kmh=float(seg.get("speed_unloaded_kmh") or 0.0),
                speed_loaded_kmh=float(seg.get("speed_loaded_kmh") or 0.0),
            )
            for seg in config.get("route_segments") or []
        )
        return cls(
            total_distance_km=float(config.get("total_distance_km") or 0.0),
            free_hauling_distance_km=float(config.get("free_hauling_distance_km") or 0.0),
            route_segments=segments,
            equipment_rental_rate=float(
                config.get("equipment_rental_rate") or settings.DEFAULT_EQUIPMENT_RENTAL_RATE
            ),
            equipment_capacity_cum=float(
                config.get("equipment_capacity_cum") or settings.DEFAULT_EQUIPMENT_CAPACITY
            ),
        )


@dataclass(frozen=True)
class HaulingResult:
    cost_per_cum: float
    method: str  # none | simple | route
    chargeable_distance_km: float = 0.0
    cycle_hours: float = 0.0


def route_hauling_cost(route: HaulingRoute) -> HaulingResult:
    """Cost per cu.m. for a truck cycling over the route segments.

    Only the distance beyond the free-hauling allowance is charged; the
    cycle time of the route is scaled to that chargeable share.
    """
    if route.equipment_capacity_cum <= 0:
        raise InvalidInputError("Hauling equipment capacity must be positive")
    chargeable = max(route.total_distance_km - route.free_hauling_distance_km, 0.0)
    if chargeable == 0 or not route.route_segments:
        return HaulingResult(cost_per_cum=0.0, method="route")

    cycle_hours = 0.0
    segment_distance = 0.0
    for seg in route.route_segments:
        if seg.speed_unloaded_kmh <= 0 or seg.speed_loaded_kmh <= 0:
            raise InvalidInputError("Route segment speeds must be positive")
        cycle_hours += seg.distance_km / seg.speed_unloaded_kmh
        cycle_hours += seg.distance_km / seg.speed_loaded_kmh
        segment_distance += seg.distance_km

    if segment_distance <= 0:
        return HaulingResult(cost_per_cum=0.0, method="route")

    scale = chargeable / route.total_distance_km if route.total_distance_km else 0.0
    charged_hours = cycle_hours * scale
    cost_per_trip = charged_hours * route.equipment_rental_rate
    return HaulingResult(
        cost_per_cum=cost_per_trip / route.equipment_capacity_cum,
        method="route",
        chargeable_distance_km=chargeable,
        cycle_hours=charged_hours,
    )


def hauling_cost_per_cum(
    hauling_config: Optional[dict[str, Any]] = None,
    distance_km: Optional[float] = None,
    cost_per_km: Optional[float] = None,
) -> HaulingResult:
    """Route model when a config is given, else distance x cost per km, else zero."""
    if hauling_config:
        return route_hauling_cost(HaulingRoute.from_config(hauling_config))
    if distance_km and cost_per_km:
        if distance_km < 0 or cost_per_km < 0:
            raise InvalidInputError("Hauling distance and cost per km cannot be negative")
        return HaulingResult(
            cost_per_cum=float(distance_km) * float(cost_per_km),
            method="simple",
            chargeable_distance_km=float(distance_km),
        )
    return HaulingResult(cost_per_cum=0.0, method="none")
