"""Task action API (snooze, complete)."""
from fastapi import APIRouter

from pillar.api.tasks import routes_tasks

router = APIRouter()

router.include_router(routes_tasks.router, prefix="/tasks", tags=["tasks"])
