from __future__ import annotations

import logging
import math
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional

from apps.api.guildboard.config import HOME_SERVER, WORKBOOK_PARSE_TIMEOUT_SECONDS
from apps.api.guildboard.utils.numeric import as_int_if_whole, parse_delta

from .formats import detect_sheet_format
from .rows import TITLE_PRESEASON, PlayerSnapshot, SkipReason, read_row
from .workbook import Workbook, read_workbook_with_timeout


logger = logging.getLogger(__name__)

# Players at or below this highest power are ignored for server totals and
# for foreign-server records.
POWER_THRESHOLD = 50_000_000

TOTAL_FIELDS = ("merits", "mana_spent", "units_dead")
TOTAL_KEYS = {"merits": "merits", "mana_spent": "manaSpent", "units_dead": "unitsDead"}

# Roster fields that only ever move up: (document key, snapshot attribute).
RATCHET_FIELDS = (
    ("highestPower", "highest_power"),
    ("unitsKilled", "units_killed"),
    ("unitsDead", "units_dead"),
    ("manaSpent", "mana_spent"),
)


@dataclass
class IngestionResult:
    player_records: Dict[str, PlayerSnapshot] = field(default_factory=dict)
    server_totals: Dict[int, Dict[str, float]] = field(default_factory=dict)
    roster_updates: Dict[str, Dict[str, object]] = field(default_factory=dict)
    sheets_processed: List[str] = field(default_factory=list)
    skipped_sheets: List[Dict[str, str]] = field(default_factory=list)
    skipped: Counter = field(default_factory=Counter)

    @property
    def record_count(self) -> int:
        return len(self.player_records)

    def add_totals(self, totals: Mapping[int, Mapping[str, float]]) -> None:
        """Add per-server sums into this result; totals never overwrite."""
        for server, values in totals.items():
            current = self.server_totals.setdefault(server, {name: 0.0 for name in TOTAL_FIELDS})
            for name in TOTAL_FIELDS:
                current[name] += values.get(name, 0.0)

    def totals_document(self) -> Dict[str, Dict[str, object]]:
        return {
            str(server): {TOTAL_KEYS[name]: as_int_if_whole(values.get(name, 0.0)) for name in TOTAL_FIELDS}
            for server, values in self.server_totals.items()
        }


def ratchet_updates(current: Optional[Mapping[str, object]], snapshot: PlayerSnapshot) -> Dict[str, object]:
    """Fields to write on a roster document: nickname always, counters only upward."""
    current = current or {}
    updates: Dict[str, object] = {}
    if snapshot.name:
        updates["nickname"] = snapshot.name
    for key, attr in RATCHET_FIELDS:
        incoming = getattr(snapshot, attr)
        existing = parse_delta(current.get(key))
        if math.isnan(existing) or not existing or incoming > existing:
            updates[key] = as_int_if_whole(incoming)
    return updates


class UploadIngestor:
    def __init__(
        self,
        *,
        home_server: int = HOME_SERVER,
        power_threshold: float = POWER_THRESHOLD,
        parse_timeout_seconds: float = WORKBOOK_PARSE_TIMEOUT_SECONDS,
    ) -> None:
        self.home_server = int(home_server)
        self.power_threshold = power_threshold
        self.parse_timeout_seconds = parse_timeout_seconds

    def ingest(
        self,
        raw: bytes,
        filename: str,
        title: str,
        valid_servers: Iterable[int],
        roster: Mapping[str, Mapping[str, object]],
    ) -> IngestionResult:
        workbook = read_workbook_with_timeout(raw, filename, self.parse_timeout_seconds)
        logger.info("Workbook %s: sheets=%s", filename, list(workbook.keys()))
        return self.ingest_workbook(workbook, title, valid_servers, roster)

    def ingest_workbook(
        self,
        workbook: Workbook,
        title: str,
        valid_servers: Iterable[int],
        roster: Mapping[str, Mapping[str, object]],
    ) -> IngestionResult:
        servers = {int(s) for s in valid_servers}
        result = IngestionResult()

        for sheet_name, rows in workbook.items():
            if not rows:
                logger.info("Skipping sheet %s - empty", sheet_name)
                result.skipped[SkipReason.EMPTY_SHEET.value] += 1
                result.skipped_sheets.append({"sheet": sheet_name, "reason": SkipReason.EMPTY_SHEET.value})
                continue

            detected = detect_sheet_format(rows[0])
            if detected is None:
                logger.warning("Skipping sheet %s - no valid format detected", sheet_name)
                result.skipped[SkipReason.UNRECOGNIZED_FORMAT.value] += 1
                result.skipped_sheets.append(
                    {"sheet": sheet_name, "reason": SkipReason.UNRECOGNIZED_FORMAT.value}
                )
                continue

            logger.info("Sheet %s uses %s (%s columns matched)", sheet_name, detected.format.value, detected.matched)
            result.sheets_processed.append(sheet_name)
            for row in rows[1:]:
                self._accept_row(row, detected, title, servers, roster, result)

        logger.info(
            "Records parsed: %s, roster updates staged: %s, skipped: %s",
            result.record_count,
            len(result.roster_updates),
            dict(result.skipped),
        )
        return result

    def _accept_row(self, row, detected, title, servers, roster, result: IngestionResult) -> None:
        outcome = read_row(row, detected.format, title, detected.absent)
        if not outcome.ok:
            result.skipped[outcome.skip.value] += 1
            logger.debug("Row skipped (%s): %s", outcome.skip.value, outcome.detail)
            return

        snapshot = outcome.snapshot
        server = snapshot.server
        if server not in servers:
            result.skipped[SkipReason.INVALID_SERVER.value] += 1
            return

        above_threshold = snapshot.highest_power > self.power_threshold
        if title != TITLE_PRESEASON and above_threshold:
            result.add_totals({server: {name: getattr(snapshot, name) for name in TOTAL_FIELDS}})

        if server == self.home_server:
            current = roster.get(snapshot.lord_id)
            if current is None:
                result.skipped[SkipReason.NOT_IN_ROSTER.value] += 1
                return
            result.player_records[snapshot.lord_id] = snapshot
            staged = result.roster_updates.get(snapshot.lord_id, {})
            updates = ratchet_updates({**current, **staged}, snapshot)
            if updates:
                result.roster_updates[snapshot.lord_id] = {**staged, **updates}
        elif above_threshold:
            result.player_records[snapshot.lord_id] = snapshot
        else:
            result.skipped[SkipReason.BELOW_POWER_THRESHOLD.value] += 1
