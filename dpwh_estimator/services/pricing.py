"""Resolve a rate template into currency amounts for one pricing context.

Missing rates and prices never raise: the affected item is priced at zero
and a ``PricingGap`` is recorded so the caller can warn without aborting.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Literal, Optional, Union

from dpwh_estimator.core.config import settings
from dpwh_estimator.services.rate_book import RateBook, DupaTemplate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LaborItem:
    designation: str
    persons: float
    hours: float
    hourly_rate: float
    amount: float
    kind: Literal["labor"] = "labor"


@dataclass(frozen=True)
class EquipmentItem:
    description: str
    units: float
    hours: float
    hourly_rate: float
    amount: float
    equipment_code: Optional[str] = None
    kind: Literal["equipment"] = "equipment"


@dataclass(frozen=True)
class MaterialItem:
    code: str
    description: Optional[str]
    unit: Optional[str]
    quantity: float
    base_price: float
    hauling_cost: float
    unit_cost: float
    amount: float
    price_source: str  # price-book | canvass | missing
    requires_canvass: bool = False
    kind: Literal["material"] = "material"


CostItem = Union[LaborItem, EquipmentItem, MaterialItem]


@dataclass(frozen=True)
class PricingGap:
    kind: str
    key: str
    message: str


@dataclass(frozen=True)
class PricedBreakdown:
    labor_items: tuple[LaborItem, ...]
    equipment_items: tuple[EquipmentItem, ...]
    material_items: tuple[MaterialItem, ...]
    labor_cost: float
    equipment_cost: float  # includes minor_tools_cost
    material_cost: float
    minor_tools_cost: float
    gaps: tuple[PricingGap, ...] = ()

    @property
    def direct_cost(self) -> float:
        return self.labor_cost + self.equipment_cost + self.material_cost

    @property
    def requires_canvass(self) -> bool:
        return any(m.requires_canvass for m in self.material_items)


def item_to_dict(item: CostItem) -> dict:
    return asdict(item)


def resolve_labor(template: DupaTemplate, book: RateBook) -> tuple[list[LaborItem], list[PricingGap]]:
    items: list[LaborItem] = []
    gaps: list[PricingGap] = []
    for line in template.labor:
        rate = book.labor_rate(line.designation)
        if rate is None:
            gaps.append(
                PricingGap(
                    "labor",
                    line.designation,
                    f"No labor rate for '{line.designation}' in {book.location}",
                )
            )
            rate = 0.0
        items.append(
            LaborItem(
                designation=line.designation,
                persons=line.persons,
                hours=line.hours,
                hourly_rate=rate,
                amount=line.persons * line.hours * rate,
            )
        )
    return items, gaps


def resolve_equipment(
    template: DupaTemplate, book: RateBook
) -> tuple[list[EquipmentItem], list[PricingGap]]:
    items: list[EquipmentItem] = []
    gaps: list[PricingGap] = []
    for line in template.equipment:
        rate = book.equipment_rate(line.equipment_code, line.description)
        if rate is None:
            gaps.append(
                PricingGap(
                    "equipment",
                    line.equipment_code or line.description,
                    f"No equipment rate for '{line.description}'",
                )
            )
            rate = 0.0
        items.append(
            EquipmentItem(
                description=line.description,
                units=line.units,
                hours=line.hours,
                hourly_rate=rate,
                amount=line.units * line.hours * rate,
                equipment_code=line.equipment_code,
            )
        )
    return items, gaps


def resolve_materials(
    template: DupaTemplate, book: RateBook, hauling_per_cum: float = 0.0
) -> tuple[list[MaterialItem], list[PricingGap]]:
    items: list[MaterialItem] = []
    gaps: list[PricingGap] = []
    for line in template.materials:
        quote = book.material_quote(line.code)
        description = line.description or book.material_descriptions.get(line.code)
        if quote is None:
            gaps.append(
                PricingGap(
                    "material",
                    line.code,
                    f"No price-book or canvass price for material {line.code} "
                    f"({book.district}, {book.price_book_version})",
                )
            )
            items.append(
                MaterialItem(
                    code=line.code,
                    description=description,
                    unit=line.unit,
                    quantity=line.quantity,
                    base_price=0.0,
                    hauling_cost=0.0,
                    unit_cost=0.0,
                    amount=0.0,
                    price_source="missing",
                    requires_canvass=True,
                )
            )
            continue
        hauling = 0.0 if book.is_hauling_exempt(line.code) else hauling_per_cum
        unit_cost = quote.unit_cost + hauling
        items.append(
            MaterialItem(
                code=line.code,
                description=description,
                unit=line.unit,
                quantity=line.quantity,
                base_price=quote.unit_cost,
                hauling_cost=hauling,
                unit_cost=unit_cost,
                amount=line.quantity * unit_cost,
                price_source=quote.source,
            )
        )
    return items, gaps


def resolve_template(
    template: DupaTemplate, book: RateBook, hauling_per_cum: float = 0.0
) -> PricedBreakdown:
    """Price one unit of a pay item."""
    labor, labor_gaps = resolve_labor(template, book)
    equipment, equipment_gaps = resolve_equipment(template, book)
    materials, material_gaps = resolve_materials(template, book, hauling_per_cum)

    labor_cost = sum(i.amount for i in labor)
    minor_tools = 0.0
    if template.include_minor_tools:
        pct = (
            template.minor_tools_pct
            if template.minor_tools_pct is not None
            else settings.DEFAULT_MINOR_TOOLS_PCT
        )
        minor_tools = labor_cost * pct / 100

    gaps = tuple(labor_gaps + equipment_gaps + material_gaps)
    if gaps:
        logger.debug("%s: %d pricing gaps", template.pay_item_number, len(gaps))

    return PricedBreakdown(
        labor_items=tuple(labor),
        equipment_items=tuple(equipment),
        material_items=tuple(materials),
        labor_cost=labor_cost,
        equipment_cost=sum(i.amount for i in equipment) + minor_tools,
        material_cost=sum(i.amount for i in materials),
        minor_tools_cost=minor_tools,
        gaps=gaps,
    )
