from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dpwh_estimator.api.estimates import router as estimates_router
from dpwh_estimator.api.health import router as health_router
from dpwh_estimator.api.takeoff_versions import router as versions_router
from dpwh_estimator.core.config import settings
from dpwh_estimator.security.auth import MODE as AUTH_MODE
from dpwh_estimator.security.auth import require as auth_require
from dpwh_estimator.telemetry import setup_otel_if_configured

app = FastAPI(title="DPWH Cost Estimator API", version="0.1.0")
setup_otel_if_configured(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router, prefix="")  # public
deps: list = [Depends(auth_require)] if AUTH_MODE != "disabled" else []

app.include_router(versions_router, prefix="/v1", dependencies=deps)
app.include_router(estimates_router, prefix="/v1", dependencies=deps)
