"""initial schema: projects, takeoff versions, rate books, cost estimates"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None

_JSON = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")
_TS = sa.DateTime(timezone=True)


def upgrade() -> None:
    op.create_table(
        "project",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("name", sa.String(length=256), nullable=False),
        sa.Column("location", sa.String(length=128)),
        sa.Column("district", sa.String(length=128)),
        sa.Column("price_book_version", sa.String(length=64)),
        sa.Column("distance_from_office", sa.Float),
        sa.Column("hauling_cost_per_km", sa.Float),
        sa.Column("hauling_config", _JSON),
        sa.Column("active_takeoff_version_id", sa.Integer),
        sa.Column("created_at", _TS),
    )

    op.create_table(
        "takeoff_version",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("project_id", sa.Integer, sa.ForeignKey("project.id"), nullable=False),
        sa.Column("version_number", sa.Integer, nullable=False),
        sa.Column("label", sa.String(length=256)),
        sa.Column("description", sa.Text),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="draft"),
        sa.Column("parent_version_id", sa.Integer),
        sa.Column("created_by", sa.String(length=128)),
        sa.Column("created_at", _TS),
        sa.Column("updated_at", _TS),
        sa.Column("submitted_by", sa.String(length=128)),
        sa.Column("submitted_at", _TS),
        sa.Column("approved_by", sa.String(length=128)),
        sa.Column("approved_at", _TS),
        sa.Column("rejected_by", sa.String(length=128)),
        sa.Column("rejected_at", _TS),
        sa.Column("rejection_reason", sa.Text),
        sa.UniqueConstraint("project_id", "version_number"),
        sa.CheckConstraint(
            "status IN ('draft', 'submitted', 'approved', 'rejected', 'superseded')",
            name="ck_takeoff_version_status",
        ),
    )
    op.create_index("ix_takeoff_version_project_id", "takeoff_version", ["project_id"])

    op.create_table(
        "boq_line",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column(
            "takeoff_version_id",
            sa.Integer,
            sa.ForeignKey("takeoff_version.id"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer, nullable=False),
        sa.Column("pay_item_number", sa.String(length=64), nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("unit", sa.String(length=32)),
        sa.Column("quantity", sa.Float, nullable=False),
    )
    op.create_index("ix_boq_line_takeoff_version_id", "boq_line", ["takeoff_version_id"])

    op.create_table(
        "rate_template",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("pay_item_number", sa.String(length=64), nullable=False),
        sa.Column("normalized_pay_item_number", sa.String(length=64), nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("unit", sa.String(length=32)),
        sa.Column("part", sa.String(length=64)),
        sa.Column("labor_lines", _JSON),
        sa.Column("equipment_lines", _JSON),
        sa.Column("material_lines", _JSON),
        sa.Column("include_minor_tools", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("minor_tools_pct", sa.Float),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
    )
    op.create_index(
        "ix_rate_template_normalized_pay_item_number",
        "rate_template",
        ["normalized_pay_item_number"],
    )

    op.create_table(
        "labor_rate",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("location", sa.String(length=128), nullable=False),
        sa.Column("designation", sa.String(length=128), nullable=False),
        sa.Column("hourly_rate", sa.Float, nullable=False),
        sa.Column("effective_date", sa.Date),
    )
    op.create_index("ix_labor_rate_location", "labor_rate", ["location"])

    op.create_table(
        "equipment_rate",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("equipment_code", sa.String(length=64)),
        sa.Column("description", sa.String(length=256), nullable=False),
        sa.Column("hourly_rate", sa.Float, nullable=False),
    )
    op.create_index("ix_equipment_rate_equipment_code", "equipment_rate", ["equipment_code"])

    op.create_table(
        "material",
        sa.Column("code", sa.String(length=32), primary_key=True),
        sa.Column("description", sa.String(length=256)),
        sa.Column("unit", sa.String(length=32)),
        sa.Column("hauling_exempt", sa.Boolean, nullable=False, server_default=sa.false()),
    )

    op.create_table(
        "material_price",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("material_code", sa.String(length=32), nullable=False),
        sa.Column("location", sa.String(length=128)),
        sa.Column("district", sa.String(length=128), nullable=False),
        sa.Column("price_book_version", sa.String(length=64), nullable=False),
        sa.Column("unit_cost", sa.Float, nullable=False),
        sa.Column("source", sa.String(length=16), nullable=False, server_default="price-book"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("effective_date", sa.Date),
    )
    op.create_index(
        "ix_material_price_lookup",
        "material_price",
        ["district", "price_book_version", "material_code"],
    )

    op.create_table(
        "cost_estimate",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("project_id", sa.Integer, sa.ForeignKey("project.id"), nullable=False),
        sa.Column(
            "takeoff_version_id",
            sa.Integer,
            sa.ForeignKey("takeoff_version.id"),
            nullable=False,
        ),
        sa.Column("base_estimate_id", sa.Integer, sa.ForeignKey("cost_estimate.id")),
        sa.Column("estimate_number", sa.String(length=32), nullable=False),
        sa.Column("name", sa.String(length=256)),
        sa.Column("estimate_type", sa.String(length=32)),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="draft"),
        sa.Column("location", sa.String(length=128), nullable=False),
        sa.Column("district", sa.String(length=128), nullable=False),
        sa.Column("price_book_version", sa.String(length=64), nullable=False),
        sa.Column("hauling_cost_per_cum", sa.Float, nullable=False, server_default="0"),
        sa.Column("hauling_params", _JSON),
        sa.Column("ocm_pct", sa.Float, nullable=False),
        sa.Column("cp_pct", sa.Float, nullable=False),
        sa.Column("vat_pct", sa.Float, nullable=False),
        sa.Column("markup_overridden", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("total_direct_cost", sa.Float, nullable=False, server_default="0"),
        sa.Column("total_ocm", sa.Float, nullable=False, server_default="0"),
        sa.Column("total_cp", sa.Float, nullable=False, server_default="0"),
        sa.Column("subtotal_with_markup", sa.Float, nullable=False, server_default="0"),
        sa.Column("total_vat", sa.Float, nullable=False, server_default="0"),
        sa.Column("grand_total", sa.Float, nullable=False, server_default="0"),
        sa.Column("rate_items_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("unmapped_pay_items", _JSON),
        sa.Column("warnings", _JSON),
        sa.Column("generated_at", _TS),
        sa.Column("created_by", sa.String(length=128)),
        sa.Column("submitted_by", sa.String(length=128)),
        sa.Column("submitted_at", _TS),
        sa.Column("approved_by", sa.String(length=128)),
        sa.Column("approved_at", _TS),
        sa.UniqueConstraint("project_id", "estimate_number"),
        sa.CheckConstraint(
            "status IN ('draft', 'submitted', 'approved')",
            name="ck_cost_estimate_status",
        ),
    )
    op.create_index("ix_cost_estimate_project_id", "cost_estimate", ["project_id"])
    op.create_index(
        "ix_cost_estimate_takeoff_version_id", "cost_estimate", ["takeoff_version_id"]
    )

    money = [
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
    ]
    op.create_table(
        "estimate_line",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column(
            "cost_estimate_id",
            sa.Integer,
            sa.ForeignKey("cost_estimate.id"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer, nullable=False),
        sa.Column("pay_item_number", sa.String(length=64), nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("unit", sa.String(length=32)),
        sa.Column("quantity", sa.Float, nullable=False),
        sa.Column("part", sa.String(length=64)),
        sa.Column("labor_items", _JSON),
        sa.Column("equipment_items", _JSON),
        sa.Column("material_items", _JSON),
        *[sa.Column(name, sa.Float, nullable=False, server_default="0") for name in money],
        sa.Column("dupa_not_found", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("requires_canvass", sa.Boolean, nullable=False, server_default=sa.false()),
    )
    op.create_index(
        "ix_estimate_line_cost_estimate_id", "estimate_line", ["cost_estimate_id"]
    )


def downgrade() -> None:
    for table in (
        "estimate_line",
        "cost_estimate",
        "material_price",
        "material",
        "equipment_rate",
        "labor_rate",
        "rate_template",
        "boq_line",
        "takeoff_version",
        "project",
    ):
        op.drop_table(table)
