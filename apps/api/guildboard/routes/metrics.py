from fastapi import APIRouter, Depends, Query

from ..auth_utils import CurrentUser, current_user
from ..deps import get_metrics_service
from ..metrics import TOP_N_DEFAULT, MetricsService


router = APIRouter(prefix="/metrics", tags=["metrics"])


def _clean(value: str | None) -> str | None:
    text = (value or "").strip()
    return text or None


@router.get("/individual")
def individual_metrics(
    season_name: str | None = Query(None),
    start_date: str | None = Query(None),
    end_date: str | None = Query(None),
    user: CurrentUser = Depends(current_user),
    service: MetricsService = Depends(get_metrics_service),
):
    return service.individual(_clean(season_name), _clean(start_date), _clean(end_date))


@router.get("/kvk")
def kvk_metrics(
    season_name: str | None = Query(None),
    start_date: str | None = Query(None),
    user: CurrentUser = Depends(current_user),
    service: MetricsService = Depends(get_metrics_service),
):
    return service.kvk(_clean(season_name), _clean(start_date))


@router.get("/kvk/season")
def kvk_season_metrics(
    season_name: str | None = Query(None),
    start_date: str | None = Query(None),
    end_date: str | None = Query(None),
    user: CurrentUser = Depends(current_user),
    service: MetricsService = Depends(get_metrics_service),
):
    return service.kvk_season(_clean(season_name), _clean(start_date), _clean(end_date))


@router.get("/kvk/season/detailed")
def kvk_season_detailed_metrics(
    season_name: str | None = Query(None),
    start_date: str | None = Query(None),
    end_date: str | None = Query(None),
    user: CurrentUser = Depends(current_user),
    service: MetricsService = Depends(get_metrics_service),
):
    return service.kvk_season_detailed(_clean(season_name), _clean(start_date), _clean(end_date))


@router.get("/kvk/season/summary")
def kvk_season_summary(
    season_name: str | None = Query(None),
    start_date: str | None = Query(None),
    end_date: str | None = Query(None),
    top_n: int = Query(TOP_N_DEFAULT, ge=1, le=1000),
    user: CurrentUser = Depends(current_user),
    service: MetricsService = Depends(get_metrics_service),
):
    return service.kvk_season_summary(_clean(season_name), _clean(start_date), _clean(end_date), top_n)


@router.get("/kvk/overview")
def kvk_overview(
    season_name: str | None = Query(None),
    user: CurrentUser = Depends(current_user),
    service: MetricsService = Depends(get_metrics_service),
):
    return service.kvk_overview(_clean(season_name))
