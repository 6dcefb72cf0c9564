from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from dpwh_estimator.models.base import Base, JSONType

VERSION_STATUSES = ("draft", "submitted", "approved", "rejected", "superseded")
ESTIMATE_STATUSES = ("draft", "submitted", "approved")


def _status_check(statuses) -> str:
    return "status IN (" + ", ".join(f"'{s}'" for s in statuses) + ")"


class Project(Base):
    __tablename__ = "project"

    id = Column(Integer, primary_key=True)
    name = Column(String(256), nullable=False)
    location = Column(String(128))
    district = Column(String(128))
    price_book_version = Column(String(64))
    distance_from_office = Column(Float)
    hauling_cost_per_km = Column(Float)
    hauling_config = Column(JSONType)
    # Pointer only; swapped inside the approval transaction
    active_takeoff_version_id = Column(Integer)
    created_at = Column(DateTime(timezone=True))


class TakeoffVersion(Base):
    __tablename__ = "takeoff_version"
    __table_args__ = (
        UniqueConstraint("project_id", "version_number"),
        CheckConstraint(_status_check(VERSION_STATUSES), name="ck_takeoff_version_status"),
    )

    id = Column(Integer, primary_key=True)
    project_id = Column(Integer, ForeignKey("project.id"), nullable=False, index=True)
    version_number = Column(Integer, nullable=False)
    label = Column(String(256))
    description = Column(Text)
    status = Column(String(16), nullable=False, default="draft")
    parent_version_id = Column(Integer)
    created_by = Column(String(128))
    created_at = Column(DateTime(timezone=True))
    updated_at = Column(DateTime(timezone=True))
    submitted_by = Column(String(128))
    submitted_at = Column(DateTime(timezone=True))
    approved_by = Column(String(128))
    approved_at = Column(DateTime(timezone=True))
    rejected_by = Column(String(128))
    rejected_at = Column(DateTime(timezone=True))
    rejection_reason = Column(Text)

    boq_lines = relationship(
        "BoqLine",
        order_by="BoqLine.position",
        cascade="all, delete-orphan",
    )


class BoqLine(Base):
    __tablename__ = "boq_line"

    id = Column(Integer, primary_key=True)
    takeoff_version_id = Column(
        Integer, ForeignKey("takeoff_version.id"), nullable=False, index=True
    )
    position = Column(Integer, nullable=False)
    pay_item_number = Column(String(64), nullable=False)
    description = Column(Text)
    unit = Column(String(32))
    quantity = Column(Float, nullable=False, default=0.0)


class RateTemplate(Base):
    """Unit-price analysis (DUPA) for one pay item."""

    __tablename__ = "rate_template"

    id = Column(Integer, primary_key=True)
    pay_item_number = Column(String(64), nullable=False)
    normalized_pay_item_number = Column(String(64), nullable=False, index=True)
    description = Column(Text)
    unit = Column(String(32))
    part = Column(String(64))
    labor_lines = Column(JSONType)  # [{designation, persons, hours}]
    equipment_lines = Column(JSONType)  # [{equipment_code?, description, units, hours}]
    material_lines = Column(JSONType)  # [{code, description?, unit, quantity}]
    include_minor_tools = Column(Boolean, nullable=False, default=False)
    minor_tools_pct = Column(Float)
    is_active = Column(Boolean, nullable=False, default=True)


class LaborRate(Base):
    __tablename__ = "labor_rate"

    id = Column(Integer, primary_key=True)
    location = Column(String(128), nullable=False, index=True)
    designation = Column(String(128), nullable=False)
    hourly_rate = Column(Float, nullable=False)
    effective_date = Column(Date)


class EquipmentRate(Base):
    __tablename__ = "equipment_rate"

    id = Column(Integer, primary_key=True)
    equipment_code = Column(String(64), index=True)
    description = Column(String(256), nullable=False)
    hourly_rate = Column(Float, nullable=False)


class Material(Base):
    __tablename__ = "material"

    code = Column(String(32), primary_key=True)
    description = Column(String(256))
    unit = Column(String(32))
    hauling_exempt = Column(Boolean, nullable=False, default=False)


class MaterialPrice(Base):
    __tablename__ = "material_price"

    id = Column(Integer, primary_key=True)
    material_code = Column(String(32), nullable=False, index=True)
    location = Column(String(128))
    district = Column(String(128), nullable=False)
    price_book_version = Column(String(64), nullable=False)
    unit_cost = Column(Float, nullable=False)
    source = Column(String(16), nullable=False, default="price-book")  # price-book | canvass
    is_active = Column(Boolean, nullable=False, default=True)
    effective_date = Column(Date)


class CostEstimate(Base):
    __tablename__ = "cost_estimate"
    __table_args__ = (
        UniqueConstraint("project_id", "estimate_number"),
        CheckConstraint(_status_check(ESTIMATE_STATUSES), name="ck_cost_estimate_status"),
    )

    id = Column(Integer, primary_key=True)
    project_id = Column(Integer, ForeignKey("project.id"), nullable=False, index=True)
    takeoff_version_id = Column(
        Integer, ForeignKey("takeoff_version.id"), nullable=False, index=True
    )
    base_estimate_id = Column(Integer, ForeignKey("cost_estimate.id"))
    estimate_number = Column(String(32), nullable=False)
    name = Column(String(256))
    estimate_type = Column(String(32))
    status = Column(String(16), nullable=False, default="draft")

    # pricing context
    location = Column(String(128), nullable=False)
    district = Column(String(128), nullable=False)
    price_book_version = Column(String(64), nullable=False)
    hauling_cost_per_cum = Column(Float, nullable=False, default=0.0)
    hauling_params = Column(JSONType)

    # applied markups, whole-number percents
    ocm_pct = Column(Float, nullable=False)
    cp_pct = Column(Float, nullable=False)
    vat_pct = Column(Float, nullable=False)
    markup_overridden = Column(Boolean, nullable=False, default=False)

    # summary, unrounded
    total_direct_cost = Column(Float, nullable=False, default=0.0)
    total_ocm = Column(Float, nullable=False, default=0.0)
    total_cp = Column(Float, nullable=False, default=0.0)
    subtotal_with_markup = Column(Float, nullable=False, default=0.0)
    total_vat = Column(Float, nullable=False, default=0.0)
    grand_total = Column(Float, nullable=False, default=0.0)
    rate_items_count = Column(Integer, nullable=False, default=0)
    unmapped_pay_items = Column(JSONType)
    warnings = Column(JSONType)

    generated_at = Column(DateTime(timezone=True))
    created_by = Column(String(128))
    submitted_by = Column(String(128))
    submitted_at = Column(DateTime(timezone=True))
    approved_by = Column(String(128))
    approved_at = Column(DateTime(timezone=True))

    lines = relationship(
        "EstimateLine",
        order_by="EstimateLine.position",
        cascade="all, delete-orphan",
    )


class EstimateLine(Base):
    __tablename__ = "estimate_line"

    id = Column(Integer, primary_key=True)
    cost_estimate_id = Column(
        Integer, ForeignKey("cost_estimate.id"), nullable=False, index=True
    )
    position = Column(Integer, nullable=False)
    pay_item_number = Column(String(64), nullable=False)
    description = Column(Text)
    unit = Column(String(32))
    quantity = Column(Float, nullable=False, default=0.0)
    part = Column(String(64))
    labor_items = Column(JSONType)
    equipment_items = Column(JSONType)
    material_items = Column(JSONType)
    labor_cost = Column(Float, nullable=False, default=0.0)
    equipment_cost = Column(Float, nullable=False, default=0.0)
    material_cost = Column(Float, nullable=False, default=0.0)
    minor_tools_cost = Column(Float, nullable=False, default=0.0)
    direct_cost = Column(Float, nullable=False, default=0.0)
    ocm_cost = Column(Float, nullable=False, default=0.0)
    cp_cost = Column(Float, nullable=False, default=0.0)
    subtotal = Column(Float, nullable=False, default=0.0)
    vat_cost = Column(Float, nullable=False, default=0.0)
    unit_price = Column(Float, nullable=False, default=0.0)
    total_amount = Column(Float, nullable=False, default=0.0)
    dupa_not_found = Column(Boolean, nullable=False, default=False)
    requires_canvass = Column(Boolean, nullable=False, default=False)
