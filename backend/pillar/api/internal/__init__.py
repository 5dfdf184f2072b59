"""Internal API for schedulers (cron-invoked)."""
from fastapi import APIRouter

from pillar.api.internal import routes_sweep

router = APIRouter()

router.include_router(routes_sweep.router, prefix="/internal/notifications", tags=["internal"])
