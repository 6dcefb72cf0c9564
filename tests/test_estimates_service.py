import pytest

from dpwh_estimator.models.tables import EstimateLine, LaborRate, Project, TakeoffVersion
from dpwh_estimator.services import takeoff_versions as versions_svc
from dpwh_estimator.services.errors import (
    ConcurrencyError,
    InvalidInputError,
    NotFoundError,
    StateError,
)
from dpwh_estimator.services.estimates import (
    MarkupOverrides,
    delete_estimate,
    generate_estimate,
    list_estimates,
    price_delta,
    regenerate_estimate,
)
from dpwh_estimator.services.lifecycle import transition_estimate, transition_version
from tests.reference_data import BOQ_LINES, CONCRETE_DIRECT, seed_reference_data


@pytest.fixture()
def version(db):
    project = seed_reference_data(db)
    return versions_svc.create_version(db, project.id, boq_lines=BOQ_LINES)


def test_generate_persists_summary_and_lines(db, version):
    estimate, result = generate_estimate(db, version.id, name="Detailed estimate")

    assert estimate.estimate_number == "EST-001"
    assert estimate.status == "draft"
    assert (estimate.location, estimate.district, estimate.price_book_version) == (
        "Malaybalay City",
        "Bukidnon 1st DEO",
        "2024-Q1",
    )
    assert (estimate.ocm_pct, estimate.cp_pct, estimate.vat_pct) == (15, 10, 12)
    assert estimate.total_direct_cost == pytest.approx(CONCRETE_DIRECT * 10 + 100 * 50)
    assert estimate.grand_total == pytest.approx(sum(l.total_amount for l in estimate.lines))
    assert estimate.rate_items_count == 3
    assert estimate.unmapped_pay_items == ["999(9)"]
    assert [w["code"] for w in estimate.warnings] == ["dupa_not_found"]
    assert [l.dupa_not_found for l in estimate.lines] == [False, False, True]
    assert result.summary.grand_total == pytest.approx(estimate.grand_total)


def test_estimate_numbers_increment(db, version):
    first, _ = generate_estimate(db, version.id)
    second, _ = generate_estimate(db, version.id)
    assert (first.estimate_number, second.estimate_number) == ("EST-001", "EST-002")
    assert [e.id for e in list_estimates(db, version.project_id)] == [first.id, second.id]


def test_request_context_overrides_project(db, version):
    estimate, _ = generate_estimate(db, version.id, price_book_version="2023-Q4")
    # no prices exist for that version
    concrete = estimate.lines[0]
    assert concrete.requires_canvass is True
    assert concrete.material_cost == 0.0


def test_missing_context_is_input_error(db, version):
    project = db.get(Project, version.project_id)
    project.district = None
    db.commit()
    with pytest.raises(InvalidInputError, match="district"):
        generate_estimate(db, version.id)


def test_unknown_version(db, version):
    with pytest.raises(NotFoundError):
        generate_estimate(db, 4242)


def test_superseded_version_cannot_generate(db, version):
    for action in ("submit", "approve", "supersede"):
        transition_version(db, version.id, action, "dir.santos")
    with pytest.raises(StateError, match="superseded"):
        generate_estimate(db, version.id)


def test_superseded_version_cannot_regenerate(db, version):
    estimate, _ = generate_estimate(db, version.id)
    generated_at = estimate.generated_at
    for action in ("submit", "approve", "supersede"):
        transition_version(db, version.id, action, "dir.santos")

    with pytest.raises(StateError, match="superseded"):
        regenerate_estimate(db, estimate.id)

    db.refresh(estimate)
    assert estimate.status == "draft"
    assert estimate.generated_at == generated_at


def test_duplicate_estimate_number_is_a_concurrency_error(db, version, monkeypatch):
    first, _ = generate_estimate(db, version.id)
    monkeypatch.setattr(
        "dpwh_estimator.services.estimates.next_estimate_number",
        lambda db, project_id: first.estimate_number,
    )

    with pytest.raises(ConcurrencyError, match="taken concurrently"):
        generate_estimate(db, version.id)

    assert [e.estimate_number for e in list_estimates(db, version.project_id)] == ["EST-001"]


def test_hauling_context_applies_to_non_exempt_materials(db, version):
    estimate, _ = generate_estimate(db, version.id, distance_km=4, hauling_cost_per_km=25)
    gravel = estimate.lines[0].material_items[1]
    cement = estimate.lines[0].material_items[0]

    assert estimate.hauling_cost_per_cum == 100.0
    assert estimate.hauling_params["method"] == "simple"
    assert gravel["hauling_cost"] == 100.0
    assert cement["hauling_cost"] == 0.0


def test_markup_overrides_are_recorded(db, version):
    estimate, _ = generate_estimate(
        db, version.id, overrides=MarkupOverrides(ocm_pct=8, cp_pct=6)
    )
    assert (estimate.ocm_pct, estimate.cp_pct, estimate.vat_pct) == (8, 6, 12)
    assert estimate.markup_overridden is True


def test_out_of_range_override_rejected(db, version):
    with pytest.raises(InvalidInputError):
        generate_estimate(db, version.id, overrides=MarkupOverrides(ocm_pct=150))


def test_regenerate_replaces_line_set(db, version):
    estimate, _ = generate_estimate(db, version.id)
    old_ids = {l.id for l in estimate.lines}
    version_row = db.get(TakeoffVersion, version.id)

    # reference data change between runs
    db.query(LaborRate).filter(LaborRate.designation == "Foreman").delete()
    db.add(LaborRate(location="Malaybalay City", designation="Foreman", hourly_rate=200.0))
    db.commit()

    regenerated, _ = regenerate_estimate(db, estimate.id)
    assert regenerated.id == estimate.id
    assert len(regenerated.lines) == len(version_row.boq_lines)
    assert not old_ids & {l.id for l in regenerated.lines}
    assert db.query(EstimateLine).count() == 3
    assert regenerated.lines[1].direct_cost == 200.0


def test_regenerate_only_drafts(db, version):
    estimate, _ = generate_estimate(db, version.id)
    transition_estimate(db, estimate.id, "submit", "engr.cruz")
    with pytest.raises(StateError, match="only drafts"):
        regenerate_estimate(db, estimate.id)


def test_price_delta_against_base(db, version):
    base, _ = generate_estimate(db, version.id)
    revised, _ = generate_estimate(
        db, version.id, base_estimate_id=base.id, overrides=MarkupOverrides(vat_pct=0)
    )
    delta = price_delta(db, revised.id)

    expected = revised.grand_total - base.grand_total
    assert delta["delta"] == round(expected, 2)
    assert delta["delta_percentage"] == round(expected / base.grand_total * 100, 2)
    assert delta["delta"] < 0


def test_price_delta_without_base(db, version):
    estimate, _ = generate_estimate(db, version.id)
    with pytest.raises(InvalidInputError):
        price_delta(db, estimate.id)


def test_delete_rules(db, version):
    base, _ = generate_estimate(db, version.id)
    dependent, _ = generate_estimate(db, version.id, base_estimate_id=base.id)

    with pytest.raises(StateError, match="base of"):
        delete_estimate(db, base.id)

    transition_estimate(db, dependent.id, "submit", "engr.cruz")
    transition_estimate(db, dependent.id, "approve", "dir.santos")
    with pytest.raises(StateError, match="approved"):
        delete_estimate(db, dependent.id)

    lone, _ = generate_estimate(db, version.id)
    delete_estimate(db, lone.id)
    assert db.query(EstimateLine).filter(EstimateLine.cost_estimate_id == lone.id).count() == 0
