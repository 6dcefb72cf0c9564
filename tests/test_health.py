from fastapi.testclient import TestClient

from dpwh_estimator.main import app


def test_health() -> None:
    client = TestClient(app)
    response = client.get("/health")
    v1_response = client.get("/v1/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert v1_response.status_code == 200
    assert v1_response.json()["status"] == "ok"


def test_ready_uses_database(client) -> None:
    response = client.get("/v1/health/ready")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "database": "ok"}
