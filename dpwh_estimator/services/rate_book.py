"""Read-only snapshot of the reference data needed for one generation run.

Templates, labor/equipment rates and material prices are read once and held
in plain lookup maps so pricing never touches the database per line.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dpwh_estimator.models.tables import (
    EquipmentRate,
    LaborRate,
    Material,
    MaterialPrice,
    RateTemplate,
)
from dpwh_estimator.services.errors import GenerationAborted
from dpwh_estimator.services.pay_items import normalize_pay_item

logger = logging.getLogger(__name__)

PRICE_BOOK = "price-book"
CANVASS = "canvass"
_SOURCE_ALIASES = {"cmpd": PRICE_BOOK, "price-book": PRICE_BOOK, "canvass": CANVASS}


@dataclass(frozen=True)
class LaborLine:
    designation: str
    persons: float
    hours: float


@dataclass(frozen=True)
class EquipmentLine:
    description: str
    units: float
    hours: float
    equipment_code: Optional[str] = None


@dataclass(frozen=True)
class MaterialLine:
    code: str
    quantity: float
    unit: Optional[str] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class DupaTemplate:
    pay_item_number: str
    description: Optional[str]
    unit: Optional[str]
    part: Optional[str]
    labor: tuple[LaborLine, ...] = ()
    equipment: tuple[EquipmentLine, ...] = ()
    materials: tuple[MaterialLine, ...] = ()
    include_minor_tools: bool = False
    minor_tools_pct: Optional[float] = None

    @classmethod
    def from_row(cls, row: RateTemplate) -> "DupaTemplate":
        return cls(
            pay_item_number=row.pay_item_number,
            description=row.description,
            unit=row.unit,
            part=row.part,
            labor=tuple(
                LaborLine(
                    designation=str(item.get("designation") or ""),
                    persons=float(item.get("persons") or 0),
                    hours=float(item.get("hours") or 0),
                )
                for item in row.labor_lines or []
            ),
            equipment=tuple(
                EquipmentLine(
                    description=str(item.get("description") or ""),
                    units=float(item.get("units") or 0),
                    hours=float(item.get("hours") or 0),
                    equipment_code=item.get("equipment_code"),
                )
                for item in row.equipment_lines or []
            ),
            materials=tuple(
                MaterialLine(
                    code=str(item.get("code") or ""),
                    quantity=float(item.get("quantity") or 0),
                    unit=item.get("unit"),
                    description=item.get("description"),
                )
                for item in row.material_lines or []
            ),
            include_minor_tools=bool(row.include_minor_tools),
            minor_tools_pct=row.minor_tools_pct,
        )


@dataclass(frozen=True)
class MaterialQuote:
    code: str
    unit_cost: float
    source: str
    effective_date: Optional[date] = None


def _key(value: Optional[str]) -> str:
    return " ".join((value or "").split()).casefold()


@dataclass(frozen=True)
class RateBook:
    location: str
    district: str
    price_book_version: str
    templates: Mapping[str, DupaTemplate] = field(default_factory=dict)
    template_errors: Mapping[str, str] = field(default_factory=dict)
    labor_rates: Mapping[str, float] = field(default_factory=dict)
    equipment_by_code: Mapping[str, float] = field(default_factory=dict)
    equipment_by_description: Mapping[str, float] = field(default_factory=dict)
    material_quotes: Mapping[tuple[str, str], MaterialQuote] = field(default_factory=dict)
    material_descriptions: Mapping[str, str] = field(default_factory=dict)
    hauling_exempt: frozenset = frozenset()

    def template_for(self, pay_item_number: str) -> Optional[DupaTemplate]:
        return self.templates.get(normalize_pay_item(pay_item_number))

    def template_error_for(self, pay_item_number: str) -> Optional[str]:
        return self.template_errors.get(normalize_pay_item(pay_item_number))

    def labor_rate(self, designation: str) -> Optional[float]:
        return self.labor_rates.get(_key(designation))

    def equipment_rate(
        self, equipment_code: Optional[str], description: Optional[str]
    ) -> Optional[float]:
        if equipment_code and equipment_code in self.equipment_by_code:
            return self.equipment_by_code[equipment_code]
        return self.equipment_by_description.get(_key(description))

    def material_quote(self, code: str) -> Optional[MaterialQuote]:
        """Price-book entry first, then a canvass entry, else None."""
        return self.material_quotes.get((code, PRICE_BOOK)) or self.material_quotes.get(
            (code, CANVASS)
        )

    def is_hauling_exempt(self, code: str) -> bool:
        return code in self.hauling_exempt


def _source_of(row: MaterialPrice) -> Optional[str]:
    return _SOURCE_ALIASES.get((row.source or "").strip().lower())


def _latest_first_seen(rows, key_fn) -> dict:
    # Later effective dates overwrite earlier ones; undated rows rank lowest.
    ordered = sorted(rows, key=lambda r: (r.effective_date or date.min, r.id or 0))
    out: dict = {}
    for row in ordered:
        out[key_fn(row)] = row
    return out


def load_rate_book(
    db: Session, *, location: str, district: str, price_book_version: str
) -> RateBook:
    try:
        template_rows = (
            db.query(RateTemplate)
            .filter(RateTemplate.is_active.is_(True))
            .order_by(RateTemplate.id)
            .all()
        )
        labor_rows = db.query(LaborRate).filter(LaborRate.location == location).all()
        equipment_rows = db.query(EquipmentRate).order_by(EquipmentRate.id).all()
        material_rows = db.query(Material).all()
        price_rows = (
            db.query(MaterialPrice)
            .filter(
                MaterialPrice.district == district,
                MaterialPrice.price_book_version == price_book_version,
                MaterialPrice.is_active.is_(True),
            )
            .all()
        )
    except SQLAlchemyError as exc:
        logger.exception("Reference data load failed for %s/%s", location, district)
        raise GenerationAborted("Reference data store unavailable") from exc

    templates: dict[str, DupaTemplate] = {}
    template_errors: dict[str, str] = {}
    for row in template_rows:
        normalized = normalize_pay_item(row.normalized_pay_item_number or row.pay_item_number)
        # first active template per pay item wins
        if not normalized or normalized in templates or normalized in template_errors:
            continue
        try:
            templates[normalized] = DupaTemplate.from_row(row)
        except (AttributeError, TypeError, ValueError) as exc:
            logger.warning("Rate template %s is malformed: %s", row.id, exc)
            template_errors[normalized] = f"Rate template {row.pay_item_number} is malformed: {exc}"

    labor = {
        k: float(r.hourly_rate)
        for k, r in _latest_first_seen(labor_rows, lambda r: _key(r.designation)).items()
    }

    by_code: dict[str, float] = {}
    by_description: dict[str, float] = {}
    for row in equipment_rows:
        if row.equipment_code and row.equipment_code not in by_code:
            by_code[row.equipment_code] = float(row.hourly_rate)
        by_description.setdefault(_key(row.description), float(row.hourly_rate))

    tagged = []
    for row in price_rows:
        if _source_of(row) is None:
            logger.warning(
                "Material price %s for %s has unknown source %r; skipped",
                row.id,
                row.material_code,
                row.source,
            )
            continue
        tagged.append(row)

    quotes: dict[tuple[str, str], MaterialQuote] = {}
    latest = _latest_first_seen(tagged, lambda r: (r.material_code, _source_of(r)))
    for (code, source), row in latest.items():
        quotes[(code, source)] = MaterialQuote(
            code=code,
            unit_cost=float(row.unit_cost),
            source=source,
            effective_date=row.effective_date,
        )

    if not labor:
        logger.warning("No labor rates for location %s; labor will price at 0", location)
    logger.debug(
        "Rate book loaded: %d templates, %d labor, %d equipment, %d material quotes",
        len(templates),
        len(labor),
        len(by_description),
        len(quotes),
    )

    return RateBook(
        location=location,
        district=district,
        price_book_version=price_book_version,
        templates=templates,
        template_errors=template_errors,
        labor_rates=labor,
        equipment_by_code=by_code,
        equipment_by_description=by_description,
        material_quotes=quotes,
        material_descriptions={m.code: m.description for m in material_rows if m.description},
        hauling_exempt=frozenset(m.code for m in material_rows if m.hauling_exempt),
    )
