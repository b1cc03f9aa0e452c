from fastapi import Depends

from .cache import MetricsCache
from .config import HOME_SERVER
from .db import SessionLocal
from .metrics import MetricsService
from .season_writer import SeasonWriteCoordinator
from .store import DocumentStore


document_store = DocumentStore(SessionLocal)
metrics_cache = MetricsCache()


def get_store() -> DocumentStore:
    return document_store


def get_cache() -> MetricsCache:
    return metrics_cache


def get_metrics_service(
    store: DocumentStore = Depends(get_store),
    cache: MetricsCache = Depends(get_cache),
) -> MetricsService:
    return MetricsService(store, cache, home_server=HOME_SERVER)


def get_coordinator(
    store: DocumentStore = Depends(get_store),
    cache: MetricsCache = Depends(get_cache),
) -> SeasonWriteCoordinator:
    return SeasonWriteCoordinator(store, cache, home_server=HOME_SERVER)
