"""Root API routers."""

from fastapi import APIRouter

from surf_report.core.spots import list_spots

health_router = APIRouter(tags=["system"])


@health_router.get("/health", summary="Service health probe")
async def healthcheck() -> dict[str, str]:
    """Return a simple heartbeat for orchestration layers."""

    return {"status": "ok"}


@health_router.get("/spots", summary="Configured surf spots")
def spots() -> dict[str, list[dict]]:
    return {"spots": [spot.model_dump() for spot in list_spots()]}
