from __future__ import annotations

import logging
from typing import Callable, Dict, Optional

from apps.api.guildboard.cache import MetricsCache, generate_cache_key
from apps.api.guildboard.config import HOME_SERVER
from apps.api.guildboard.errors import BadRequestError, NotFoundError
from apps.api.guildboard.ingestion.rows import TITLE_PRESEASON, TITLE_START
from apps.api.guildboard.store import SEASONS_COLLECTION, TOTAL_DOC_ID, DocumentStore, season_collection

from .aggregate import (
    KVK_TOTAL_METRICS,
    aggregate_server_totals,
    bucket_charts,
    metric_charts,
    power_distribution,
    totals_delta,
)
from .diff import (
    PartitionMode,
    diff_snapshots,
    diff_two_snapshots,
    filter_home_server,
    parsed_values,
    partition_snapshot,
    player_documents,
    restrict_to_servers,
)
from .formatting import format_all_types
from .ranking import TOP_N_DEFAULT, rank_top_n, server_pie


logger = logging.getLogger(__name__)

SUMMARY_METRICS = ("merits", "manaSpent", "unitsDead")
SUMMARY_CHART_METRICS = ("merits", "manaSpent", "unitsDead", "highestPower", "powerLoss")


class MetricsService:
    """Read side: loads dated snapshots from the store and shapes metrics payloads."""

    def __init__(
        self,
        store: DocumentStore,
        cache: Optional[MetricsCache] = None,
        home_server: int = HOME_SERVER,
    ) -> None:
        self.store = store
        self.cache = cache
        self.home_server = int(home_server)

    def _cached(self, prefix: str, params: Dict[str, object], compute: Callable[[], dict]) -> dict:
        if self.cache is None:
            return compute()
        key = generate_cache_key(prefix, params)
        hit = self.cache.get(key)
        if hit is not None:
            logger.debug("Cache hit %s", key)
            return hit
        payload = compute()
        self.cache.set(key, payload)
        return payload

    def season_document(self, season_name: str) -> dict:
        doc = self.store.get(SEASONS_COLLECTION, season_name)
        if doc is None:
            raise NotFoundError("Season document not found")
        return doc

    def date_documents(self, season_name: str, date: str) -> Optional[Dict[str, dict]]:
        docs = self.store.list_documents(season_collection(season_name, date))
        return docs or None

    def require_date(self, season_name: str, date: str) -> Dict[str, dict]:
        docs = self.date_documents(season_name, date)
        if docs is None:
            raise NotFoundError(f"No data found for date: {date}")
        return player_documents(docs)

    def _servers(self, season_name: str) -> tuple[list, list]:
        season = self.season_document(season_name)
        return list(season.get("allies") or []), list(season.get("enemies") or [])

    def individual(self, season_name: str, start_date: str, end_date: Optional[str] = None) -> dict:
        _require(season_name, start_date)
        return self._cached(
            "metrics-individual",
            {"seasonName": season_name, "startDate": start_date, "endDate": end_date or "single"},
            lambda: self._individual(season_name, start_date, end_date),
        )

    def _home_snapshot(self, season_name: str, date: str) -> Dict[str, dict]:
        docs = self.date_documents(season_name, date) or {}
        home = filter_home_server(player_documents(docs), self.home_server)
        if not home:
            raise NotFoundError(f"No data found for date: {date}")
        return home

    def _individual(self, season_name: str, start_date: str, end_date: Optional[str]) -> dict:
        data = self._home_snapshot(season_name, start_date)
        if end_date:
            data = diff_snapshots(data, self._home_snapshot(season_name, end_date))
        charts, grids = format_all_types(data, start_date, end_date)
        return {
            "id": season_name,
            "startDate": start_date,
            "endDate": end_date or None,
            "formattedChartData": charts,
            "formattedGridData": grids,
        }

    def kvk(self, season_name: str, start_date: str) -> dict:
        _require(season_name, start_date)
        allies, enemies = self._servers(season_name)
        snapshot = self.require_date(season_name, start_date)
        players, distribution, totals = power_distribution(snapshot, allies + enemies)
        return {
            "id": season_name,
            "data": players,
            "powerChartData": bucket_charts(distribution),
            "totals": totals,
            "totalsChartData": metric_charts(totals, KVK_TOTAL_METRICS),
            "allies": allies,
            "enemies": enemies,
            "startDate": start_date,
        }

    def kvk_season(self, season_name: str, start_date: str, end_date: Optional[str] = None) -> dict:
        _require(season_name, start_date)
        return self._cached(
            "metrics-kvk-season",
            {"seasonName": season_name, "startDate": start_date, "endDate": end_date or "single"},
            lambda: self._kvk_season(season_name, start_date, end_date),
        )

    def _kvk_season(self, season_name: str, start_date: str, end_date: Optional[str]) -> dict:
        allies, enemies = self._servers(season_name)
        start = self.require_date(season_name, start_date)
        if not end_date:
            return {
                "id": season_name,
                "data": partition_snapshot(start, allies, enemies),
                "startDate": start_date,
            }
        end = self.require_date(season_name, end_date)
        return {
            "id": season_name,
            "data": diff_two_snapshots(start, end, allies, enemies, PartitionMode.ENEMIES_BY_DEFAULT),
            "startDate": start_date,
            "endDate": end_date,
        }

    def kvk_season_detailed(self, season_name: str, start_date: str, end_date: Optional[str] = None) -> dict:
        _require(season_name, start_date)
        return self._cached(
            "metrics-kvk-season-detailed",
            {"seasonName": season_name, "startDate": start_date, "endDate": end_date or "single"},
            lambda: self._kvk_season_detailed(season_name, start_date, end_date),
        )

    def _kvk_season_detailed(self, season_name: str, start_date: str, end_date: Optional[str]) -> dict:
        allies, enemies = self._servers(season_name)
        valid_servers = allies + enemies
        start = self.require_date(season_name, start_date)
        if end_date:
            end = self.require_date(season_name, end_date)
            differences = restrict_to_servers(diff_snapshots(start, end), valid_servers)
        else:
            differences = parsed_values(start, valid_servers)
        return {"id": season_name, "data": {"differences": differences, "validServers": valid_servers}}

    def kvk_season_summary(
        self, season_name: str, start_date: str, end_date: str, top_n: int = TOP_N_DEFAULT
    ) -> dict:
        _require(season_name, start_date)
        if not end_date:
            raise BadRequestError("Missing required parameter: end_date")
        return self._cached(
            "metrics-kvk-season-summary",
            {"seasonName": season_name, "startDate": start_date, "endDate": end_date, "topN": top_n},
            lambda: self._kvk_season_summary(season_name, start_date, end_date, top_n),
        )

    def _kvk_season_summary(self, season_name: str, start_date: str, end_date: str, top_n: int) -> dict:
        allies, enemies = self._servers(season_name)
        start_docs = self.date_documents(season_name, start_date)
        end_docs = self.date_documents(season_name, end_date)
        if start_docs is None:
            raise NotFoundError(f"No data found for date: {start_date}")
        if end_docs is None:
            raise NotFoundError(f"No data found for date: {end_date}")

        groups = diff_two_snapshots(
            player_documents(start_docs),
            player_documents(end_docs),
            allies,
            enemies,
            PartitionMode.LISTED_ONLY,
        )
        rankings: Dict[str, Dict[str, list]] = {}
        server_counts: Dict[str, Dict[str, dict]] = {}
        for group, deltas in groups.items():
            rankings[group] = {}
            server_counts[group] = {}
            for metric in SUMMARY_METRICS:
                top = rank_top_n(deltas, metric, top_n)
                rankings[group][metric] = top
                server_counts[group][metric] = server_pie(top)

        all_deltas = {**groups["allies"], **groups["enemies"]}
        aggregates = aggregate_server_totals(
            start_docs.get(TOTAL_DOC_ID) or {},
            end_docs.get(TOTAL_DOC_ID) or {},
            all_deltas,
        )
        return {
            "id": season_name,
            "startDate": start_date,
            "endDate": end_date,
            "topN": top_n,
            "rankings": rankings,
            "serverCounts": server_counts,
            "serverTotals": aggregates,
            "serverTotalsChartData": metric_charts(aggregates, SUMMARY_CHART_METRICS),
        }

    def kvk_overview(self, season_name: str) -> dict:
        if not season_name:
            raise BadRequestError("Missing required parameter: season_name")
        self.season_document(season_name)
        names = self.store.list_subcollections(SEASONS_COLLECTION, season_name)
        data_names = [name for name in names if name not in (TITLE_PRESEASON, TITLE_START)]
        if not data_names:
            raise BadRequestError("No data to show - no subcollections found besides preseason and start")

        start_total = self.store.get(season_collection(season_name, TITLE_START), TOTAL_DOC_ID)
        if start_total is None:
            raise NotFoundError("Start total document not found")

        results: Dict[str, Dict[str, dict]] = {}
        for name in data_names:
            total = self.store.get(season_collection(season_name, name), TOTAL_DOC_ID)
            if total is not None:
                results[name] = totals_delta(start_total, total)
        return {"data": results}


def _require(season_name: Optional[str], start_date: Optional[str]) -> None:
    if not season_name or not start_date:
        raise BadRequestError("Missing required parameters: season_name and start_date")
