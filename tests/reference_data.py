"""Small DPWH rate book shared by the service and API tests.

Per unit of pay item 900 (1) c:
  labor      1 x 2 x 100 + 2 x 8 x 80              = 1480
  minor tools 10% of labor                         =  148
  equipment  1 x 4 x 500 + minor tools             = 2148
  material   9 x 250 (price book) + 0.5 x 1200 (canvass) = 2850
  direct                                           = 6478
"""
from datetime import date

from dpwh_estimator.models.tables import (
    EquipmentRate,
    LaborRate,
    Material,
    MaterialPrice,
    Project,
    RateTemplate,
)
from dpwh_estimator.services.pay_items import normalize_pay_item
from dpwh_estimator.services.rate_book import (
    EquipmentLine,
    LaborLine,
    MaterialLine,
    RateBook,
    MaterialQuote,
    DupaTemplate,
)

LOCATION = "Malaybalay City"
DISTRICT = "Bukidnon 1st DEO"
PRICE_BOOK = "2024-Q1"

CONCRETE_DIRECT = 6478.0

CONCRETE_TEMPLATE = DupaTemplate(
    pay_item_number="900 (1) c",
    description="Structural Concrete, Class A",
    unit="cu.m",
    part="Part C",
    labor=(LaborLine("Foreman", 1, 2), LaborLine("Skilled Labor", 2, 8)),
    equipment=(EquipmentLine("Concrete Mixer", 1, 4, equipment_code="EQ-001"),),
    materials=(MaterialLine("CM01", 9, unit="bag"), MaterialLine("AG01", 0.5, unit="cu.m")),
    include_minor_tools=True,
    minor_tools_pct=10,
)

EXCAVATION_TEMPLATE = DupaTemplate(
    pay_item_number="800 (1)",
    description="Structure Excavation",
    unit="cu.m",
    part="Part C",
    labor=(LaborLine("Foreman", 1, 1),),
)


def make_rate_book(**overrides) -> RateBook:
    values = dict(
        location=LOCATION,
        district=DISTRICT,
        price_book_version=PRICE_BOOK,
        templates={
            normalize_pay_item(CONCRETE_TEMPLATE.pay_item_number): CONCRETE_TEMPLATE,
            normalize_pay_item(EXCAVATION_TEMPLATE.pay_item_number): EXCAVATION_TEMPLATE,
        },
        labor_rates={"foreman": 100.0, "skilled labor": 80.0},
        equipment_by_code={"EQ-001": 500.0},
        equipment_by_description={"concrete mixer": 500.0},
        material_quotes={
            ("CM01", "price-book"): MaterialQuote("CM01", 250.0, "price-book"),
            ("AG01", "canvass"): MaterialQuote("AG01", 1200.0, "canvass"),
        },
        material_descriptions={"CM01": "Portland Cement", "AG01": "Gravel"},
        hauling_exempt=frozenset({"CM01"}),
    )
    values.update(overrides)
    return RateBook(**values)


def seed_reference_data(db) -> Project:
    project = Project(
        name="Two-Storey School Building",
        location=LOCATION,
        district=DISTRICT,
        price_book_version=PRICE_BOOK,
    )
    db.add(project)
    db.add_all(
        [
            LaborRate(location=LOCATION, designation="Foreman", hourly_rate=90.0,
                      effective_date=date(2023, 1, 1)),
            LaborRate(location=LOCATION, designation="Foreman", hourly_rate=100.0,
                      effective_date=date(2024, 1, 1)),
            LaborRate(location=LOCATION, designation="Skilled Labor", hourly_rate=80.0,
                      effective_date=date(2024, 1, 1)),
            LaborRate(location="Cagayan de Oro City", designation="Foreman",
                      hourly_rate=150.0, effective_date=date(2024, 1, 1)),
            EquipmentRate(equipment_code="EQ-001", description="Concrete Mixer",
                          hourly_rate=500.0),
            Material(code="CM01", description="Portland Cement", unit="bag",
                     hauling_exempt=True),
            Material(code="AG01", description="Gravel", unit="cu.m"),
            MaterialPrice(material_code="CM01", district=DISTRICT,
                          price_book_version=PRICE_BOOK, unit_cost=250.0,
                          source="price-book", is_active=True),
            MaterialPrice(material_code="CM01", district=DISTRICT,
                          price_book_version=PRICE_BOOK, unit_cost=999.0,
                          source="price-book", is_active=False),
            MaterialPrice(material_code="AG01", district=DISTRICT,
                          price_book_version=PRICE_BOOK, unit_cost=1200.0,
                          source="canvass", is_active=True),
            RateTemplate(
                pay_item_number="900 (1) c",
                normalized_pay_item_number=normalize_pay_item("900 (1) c"),
                description="Structural Concrete, Class A",
                unit="cu.m",
                part="Part C",
                labor_lines=[
                    {"designation": "Foreman", "persons": 1, "hours": 2},
                    {"designation": "Skilled Labor", "persons": 2, "hours": 8},
                ],
                equipment_lines=[
                    {"equipment_code": "EQ-001", "description": "Concrete Mixer",
                     "units": 1, "hours": 4},
                ],
                material_lines=[
                    {"code": "CM01", "unit": "bag", "quantity": 9},
                    {"code": "AG01", "unit": "cu.m", "quantity": 0.5},
                ],
                include_minor_tools=True,
                minor_tools_pct=10,
                is_active=True,
            ),
            RateTemplate(
                pay_item_number="800 (1)",
                normalized_pay_item_number=normalize_pay_item("800 (1)"),
                description="Structure Excavation",
                unit="cu.m",
                part="Part C",
                labor_lines=[{"designation": "Foreman", "persons": 1, "hours": 1}],
                equipment_lines=[],
                material_lines=[],
                is_active=True,
            ),
        ]
    )
    db.commit()
    db.refresh(project)
    return project


BOQ_LINES = [
    {"pay_item_number": "900(1)c", "description": "Footing concrete", "unit": "cu.m",
     "quantity": 10},
    {"pay_item_number": "800 (1)", "description": "Excavation", "unit": "cu.m",
     "quantity": 50},
    {"pay_item_number": "999(9)", "description": "Unknown item", "unit": "l.s.",
     "quantity": 1},
]
