from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional

from .cache import MetricsCache
from .config import HOME_SERVER
from .errors import BadRequestError, NotFoundError
from .metrics.diff import server_set
from .store import SEASONS_COLLECTION, USERS_COLLECTION, DocumentStore


logger = logging.getLogger(__name__)

ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _parse_end(value: object) -> Optional[datetime]:
    text = str(value or "").strip()
    if not text:
        return None
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).replace(tzinfo=None)
    except ValueError:
        return None


def season_names(store: DocumentStore) -> dict:
    """All season ids plus the one whose ``season_end`` is latest."""
    seasons = store.list_documents(SEASONS_COLLECTION)
    current = None
    latest = None
    for season_id, data in seasons.items():
        ends_at = _parse_end(data.get("season_end"))
        if ends_at is not None and (latest is None or ends_at > latest):
            latest = ends_at
            current = data.get("season_name") or season_id
    return {"sheetIds": list(seasons.keys()), "current_season": current}


def season_dates(store: DocumentStore, season_name: str) -> Dict[str, str]:
    if not season_name:
        raise BadRequestError("Missing required parameter: season_name")
    if store.get(SEASONS_COLLECTION, season_name) is None:
        raise NotFoundError("No sheet found with the provided season name")
    dates = sorted(
        name for name in store.list_subcollections(SEASONS_COLLECTION, season_name) if ISO_DATE_RE.match(name)
    )
    return {date: f"Week {index}" for index, date in enumerate(dates, start=1)}


def set_season_servers(
    store: DocumentStore,
    season_name: str,
    allies: Iterable[object],
    enemies: Iterable[object],
    cache: Optional[MetricsCache] = None,
) -> dict:
    """Store the KvK server lists on the season doc.

    Cached KvK payloads are split by these lists, so the season's metrics
    cache is dropped afterwards.
    """
    if not season_name or "/" in season_name:
        raise BadRequestError("Missing or invalid seasonName")
    ally_list = sorted(server_set(allies))
    enemy_list = sorted(server_set(enemies) - set(ally_list))
    store.set(
        SEASONS_COLLECTION,
        season_name,
        {"seasonName": season_name, "allies": ally_list, "enemies": enemy_list},
        merge=True,
    )
    logger.info("Season %s servers set: allies=%s enemies=%s", season_name, ally_list, enemy_list)
    if cache is not None:
        try:
            cache.invalidate_season_metrics(season_name)
        except Exception as exc:
            logger.warning("Cache invalidation failed for season %s: %s", season_name, exc)
    return {"seasonName": season_name, "allies": ally_list, "enemies": enemy_list}


def default_valid_servers(store: DocumentStore, season_name: str, home_server: int = HOME_SERVER) -> List[int]:
    season = store.get(SEASONS_COLLECTION, season_name) or {}
    servers = server_set(season.get("allies")) | server_set(season.get("enemies"))
    return sorted(servers) or [int(home_server)]


def parse_server_list(raw: Optional[str]) -> List[int]:
    if raw is None or not str(raw).strip():
        return []
    servers = []
    for part in str(raw).split(","):
        clean = part.strip()
        if not clean:
            continue
        try:
            servers.append(int(clean))
        except ValueError as exc:
            raise BadRequestError(f"Invalid server id '{clean}'") from exc
    return servers


def profile_projection(roster: Mapping[str, Mapping[str, object]]) -> Dict[str, dict]:
    return {
        user_id: {
            "nationality": data.get("nationality") or None,
            "mainTroops": data.get("mainTroops") or None,
            "nickname": data.get("nickname") or None,
            "highestPower": data.get("highestPower") or None,
            "unitsKilled": data.get("unitsKilled") or None,
            "unitsDead": data.get("unitsDead") or None,
            "manaSpent": data.get("manaSpent") or None,
            "isInfantryGroup": data.get("isInfantryGroup") or False,
            "labels": data.get("labels") or [],
        }
        for user_id, data in roster.items()
    }


def all_users(store: DocumentStore) -> Dict[str, dict]:
    return profile_projection(store.list_documents(USERS_COLLECTION))
