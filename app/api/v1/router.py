from fastapi import APIRouter

from app.api.v1.health import router as health_router
from app.api.v1.auth import router as auth_router

from app.api.v1.contracts import router as contracts_router
from app.api.v1.signing import router as signing_router
from app.api.v1.access import router as access_router
from app.api.v1.notifications import router as notifications_router
from app.api.v1.stats import router as stats_router
from app.api.v1.chat import router as chat_router


v1_router = APIRouter()

# ------------------------------------------------------------------
# SYSTEM / CORE
# ------------------------------------------------------------------
v1_router.include_router(health_router, tags=["health"])
v1_router.include_router(auth_router, tags=["auth"])

# ------------------------------------------------------------------
# CONTRACT LIFECYCLE
# ------------------------------------------------------------------
v1_router.include_router(contracts_router, tags=["contracts"])
v1_router.include_router(signing_router, tags=["signing"])
v1_router.include_router(access_router, tags=["access"])

# ------------------------------------------------------------------
# NOTIFICATIONS / DASHBOARD
# ------------------------------------------------------------------
v1_router.include_router(notifications_router, tags=["notifications"])
v1_router.include_router(stats_router, tags=["stats"])

# ------------------------------------------------------------------
# ASSISTANT (external)
# ------------------------------------------------------------------
v1_router.include_router(chat_router, tags=["chat"])
