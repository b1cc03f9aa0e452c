import logging

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

from ..auth_utils import CurrentUser, require_role
from ..cache import MetricsCache
from ..deps import get_cache, get_coordinator, get_store
from ..schemas import SeasonNamesResponse, SeasonServersRequest, SeasonServersResponse, UploadResponse
from ..season_writer import SeasonWriteCoordinator, UploadedFile
from ..seasons import default_valid_servers, parse_server_list, season_dates, season_names, set_season_servers
from ..store import DocumentStore


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/season", tags=["season"])


@router.post("/upload", response_model=UploadResponse)
def upload_season_files(
    season_name: str = Form(""),
    title: str = Form(""),
    files: list[UploadFile] | None = File(None),
    valid_servers: str | None = Form(None),
    user: CurrentUser = Depends(require_role("admin")),
    store: DocumentStore = Depends(get_store),
    coordinator: SeasonWriteCoordinator = Depends(get_coordinator),
):
    servers = parse_server_list(valid_servers)
    if not servers and season_name:
        servers = default_valid_servers(store, season_name.strip(), coordinator.home_server)
    uploads = [UploadedFile(filename=item.filename or "", content=item.file.read()) for item in files or []]
    logger.info("Upload by %s: season=%s title=%s files=%s", user.email or user.uid, season_name, title, len(uploads))
    summary = coordinator.upload(uploads, season_name, title, servers)
    return summary.as_response()


@router.post("/servers", response_model=SeasonServersResponse)
def update_season_servers(
    payload: SeasonServersRequest,
    user: CurrentUser = Depends(require_role("admin")),
    store: DocumentStore = Depends(get_store),
    cache: MetricsCache = Depends(get_cache),
):
    return set_season_servers(store, payload.seasonName.strip(), payload.allies, payload.enemies, cache=cache)


@router.get("/names", response_model=SeasonNamesResponse)
def list_season_names(store: DocumentStore = Depends(get_store)):
    return season_names(store)


@router.get("/dates")
def list_season_dates(
    season_name: str = Query(""),
    store: DocumentStore = Depends(get_store),
):
    return season_dates(store, season_name.strip())
