from fastapi import APIRouter, Depends

from ..cache import MetricsCache
from ..deps import get_cache
from ..schemas import HealthResponse


router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
def health(cache: MetricsCache = Depends(get_cache)):
    return {"status": "ok", "cache": cache.status()}
