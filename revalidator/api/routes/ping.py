from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from revalidator.dependencies.validation import get_health_check
from revalidator.services.database import DatabaseHealthCheck

router = APIRouter(prefix="/ping", tags=["health"])


@router.get("", summary="Public health probe")
async def ping() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/ready", summary="History database readiness probe")
async def ready(
    health_check: Annotated[DatabaseHealthCheck | None, Depends(get_health_check)],
) -> dict[str, str]:
    if health_check is None or not await health_check.test_connection():
        raise HTTPException(status_code=503, detail="Validation history database is unavailable")
    return {"status": "ready"}
