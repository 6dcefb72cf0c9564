from dataclasses import replace

import pytest

from dpwh_estimator.services.pricing import resolve_template
from dpwh_estimator.services.rate_book import MaterialQuote
from tests.reference_data import CONCRETE_DIRECT, CONCRETE_TEMPLATE, make_rate_book


def test_concrete_template_breakdown():
    priced = resolve_template(CONCRETE_TEMPLATE, make_rate_book())

    assert priced.labor_cost == 1480.0
    assert priced.minor_tools_cost == 148.0
    assert priced.equipment_cost == 2148.0
    assert priced.material_cost == 2850.0
    assert priced.direct_cost == CONCRETE_DIRECT
    assert priced.direct_cost == priced.labor_cost + priced.equipment_cost + priced.material_cost
    assert priced.gaps == ()
    assert [i.kind for i in priced.labor_items] == ["labor", "labor"]
    assert priced.equipment_items[0].kind == "equipment"


def test_material_sources_are_recorded():
    priced = resolve_template(CONCRETE_TEMPLATE, make_rate_book())
    sources = {m.code: m.price_source for m in priced.material_items}
    assert sources == {"CM01": "price-book", "AG01": "canvass"}
    assert not priced.requires_canvass


def test_price_book_wins_over_canvass():
    book = make_rate_book(
        material_quotes={
            ("CM01", "price-book"): MaterialQuote("CM01", 250.0, "price-book"),
            ("CM01", "canvass"): MaterialQuote("CM01", 180.0, "canvass"),
            ("AG01", "canvass"): MaterialQuote("AG01", 1200.0, "canvass"),
        }
    )
    cement = resolve_template(CONCRETE_TEMPLATE, book).material_items[0]
    assert cement.unit_cost == 250.0
    assert cement.price_source == "price-book"


def test_missing_material_requires_canvass():
    book = make_rate_book(
        material_quotes={("AG01", "canvass"): MaterialQuote("AG01", 1200.0, "canvass")}
    )
    priced = resolve_template(CONCRETE_TEMPLATE, book)
    cement = priced.material_items[0]

    assert cement.code == "CM01"
    assert cement.unit_cost == 0.0
    assert cement.amount == 0.0
    assert cement.requires_canvass is True
    assert cement.price_source == "missing"
    assert priced.requires_canvass
    assert len(priced.material_items) == 2
    assert [g.kind for g in priced.gaps] == ["material"]


def test_hauling_added_unless_exempt():
    priced = resolve_template(CONCRETE_TEMPLATE, make_rate_book(), hauling_per_cum=100.0)
    cement, gravel = priced.material_items

    assert cement.hauling_cost == 0.0
    assert cement.unit_cost == 250.0
    assert gravel.base_price == 1200.0
    assert gravel.hauling_cost == 100.0
    assert gravel.unit_cost == 1300.0
    assert gravel.amount == 650.0


def test_missing_labor_designation_prices_at_zero():
    book = make_rate_book(labor_rates={"foreman": 100.0})
    priced = resolve_template(CONCRETE_TEMPLATE, book)
    skilled = priced.labor_items[1]

    assert skilled.hourly_rate == 0.0
    assert skilled.amount == 0.0
    assert priced.labor_cost == 200.0
    assert [g.kind for g in priced.gaps] == ["labor"]


def test_equipment_falls_back_to_description():
    book = make_rate_book(equipment_by_code={})
    priced = resolve_template(CONCRETE_TEMPLATE, book)
    assert priced.equipment_items[0].hourly_rate == 500.0


def test_unknown_equipment_prices_at_zero():
    book = make_rate_book(equipment_by_code={}, equipment_by_description={})
    priced = resolve_template(CONCRETE_TEMPLATE, book)
    assert priced.equipment_items[0].amount == 0.0
    # minor tools still land in the equipment bucket
    assert priced.equipment_cost == pytest.approx(148.0)


def test_minor_tools_default_percentage():
    template = replace(CONCRETE_TEMPLATE, minor_tools_pct=None)
    priced = resolve_template(template, make_rate_book())
    assert priced.minor_tools_cost == pytest.approx(148.0)


def test_minor_tools_disabled():
    template = replace(CONCRETE_TEMPLATE, include_minor_tools=False)
    priced = resolve_template(template, make_rate_book())
    assert priced.minor_tools_cost == 0.0
    assert priced.equipment_cost == 2000.0
