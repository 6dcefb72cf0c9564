from tests.reference_data import BOQ_LINES, seed_reference_data


def _create(client, project_id, lines=BOQ_LINES):
    resp = client.post(
        f"/v1/projects/{project_id}/takeoff-versions",
        json={"label": "Design v1", "boq_lines": lines},
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


def _status(client, version_id, action, **extra):
    return client.patch(
        f"/v1/takeoff-versions/{version_id}/status", json={"action": action, **extra}
    )


def test_create_and_fetch_version(client, db):
    project = seed_reference_data(db)
    created = _create(client, project.id)

    assert created["version_number"] == 1
    assert created["status"] == "draft"
    assert created["created_by"] == "anonymous"
    first = created["boq_lines"][0]
    assert first["unit_normalized"] == "Cubic Meter"
    assert first["trade"] == "Concrete"

    fetched = client.get(f"/v1/takeoff-versions/{created['id']}").json()
    assert fetched["boq_line_count"] == 3


def test_create_rejects_negative_quantity(client, db):
    project = seed_reference_data(db)
    resp = client.post(
        f"/v1/projects/{project.id}/takeoff-versions",
        json={"boq_lines": [{"pay_item_number": "800 (1)", "quantity": -1}]},
    )
    assert resp.status_code == 422


def test_unknown_project_is_404(client):
    resp = client.post("/v1/projects/77/takeoff-versions", json={"boq_lines": []})
    assert resp.status_code == 404
    assert "Project 77" in resp.json()["detail"]


def test_approval_flow_and_active_version(client, db):
    project = seed_reference_data(db)
    v = _create(client, project.id)

    assert client.get(f"/v1/projects/{project.id}/takeoff-versions/active").status_code == 404
    assert _status(client, v["id"], "submit", actor="engr.cruz").json()["submitted_by"] == "engr.cruz"
    approved = _status(client, v["id"], "approve", actor="dir.santos")
    assert approved.status_code == 200
    assert approved.json()["status"] == "approved"

    active = client.get(f"/v1/projects/{project.id}/takeoff-versions/active")
    assert active.json()["id"] == v["id"]


def test_illegal_transition_is_409_with_reason(client, db):
    project = seed_reference_data(db)
    v = _create(client, project.id)

    resp = _status(client, v["id"], "approve")
    assert resp.status_code == 409
    assert "Cannot approve" in resp.json()["detail"]

    _status(client, v["id"], "submit")
    resp = _status(client, v["id"], "reject")
    assert resp.status_code == 409
    assert "reason" in resp.json()["detail"]

    resp = _status(client, v["id"], "reject", reason="Quantities off")
    assert resp.json()["rejection_reason"] == "Quantities off"


def test_unknown_action_is_validation_error(client, db):
    project = seed_reference_data(db)
    v = _create(client, project.id)
    assert _status(client, v["id"], "publish").status_code == 422


def test_edit_duplicate_delete(client, db):
    project = seed_reference_data(db)
    v = _create(client, project.id)

    edited = client.patch(
        f"/v1/takeoff-versions/{v['id']}",
        json={"boq_lines": [{"pay_item_number": "800 (1)", "quantity": 3}]},
    )
    assert edited.status_code == 200
    assert edited.json()["boq_line_count"] == 1

    dup = client.post(f"/v1/takeoff-versions/{v['id']}/duplicate", json={"label": "Alt"})
    assert dup.status_code == 201
    assert dup.json()["parent_version_id"] == v["id"]
    assert dup.json()["label"] == "Alt"

    _status(client, v["id"], "submit")
    locked = client.patch(f"/v1/takeoff-versions/{v['id']}", json={"label": "x"})
    assert locked.status_code == 409

    assert client.delete(f"/v1/takeoff-versions/{dup.json()['id']}").status_code == 204
    assert client.get(f"/v1/takeoff-versions/{dup.json()['id']}").status_code == 404


def test_list_versions(client, db):
    project = seed_reference_data(db)
    v1 = _create(client, project.id)
    v2 = _create(client, project.id)
    for action in ("submit", "approve", "supersede"):
        _status(client, v1["id"], action)

    items = client.get(f"/v1/projects/{project.id}/takeoff-versions").json()["items"]
    assert [i["id"] for i in items] == [v2["id"]]
    everything = client.get(
        f"/v1/projects/{project.id}/takeoff-versions", params={"include_superseded": True}
    ).json()["items"]
    assert [i["version_number"] for i in everything] == [2, 1]
