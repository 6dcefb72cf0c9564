from fastapi import HTTPException

from dpwh_estimator.services.errors import EstimatorError


def http_error(exc: EstimatorError) -> HTTPException:
    """Translate a service-layer error into the HTTP response it stands for."""
    return HTTPException(status_code=exc.status_code, detail=exc.message)


def actor_from(explicit: str | None, auth_payload: dict | None) -> str | None:
    if explicit and explicit.strip():
        return explicit.strip()
    return (auth_payload or {}).get("sub")
