from __future__ import annotations

import math
from enum import Enum
from typing import Dict, Iterable, Mapping, Optional

from apps.api.guildboard.store import TOTAL_DOC_ID
from apps.api.guildboard.utils.numeric import as_int_if_whole, parse_delta


TRACKED_ATTRIBUTES = ("merits", "unitsKilled", "unitsDead", "manaSpent", "t5KillCount")
PROFILE_KEYS = ("name", "currentPower", "highestPower", "homeServer")

Snapshot = Mapping[str, Mapping[str, object]]


class PartitionMode(str, Enum):
    # Everyone not on the ally list counts as an enemy.
    ENEMIES_BY_DEFAULT = "enemies_by_default"
    # Players on neither list are dropped.
    LISTED_ONLY = "listed_only"


def server_id(value: object) -> Optional[int]:
    number = parse_delta(value)
    if math.isnan(number) or not number.is_integer():
        return None
    return int(number)


def server_set(values: Iterable[object] | None) -> set[int]:
    out = set()
    for value in values or ():
        server = server_id(value)
        if server is not None:
            out.add(server)
    return out


def player_documents(docs: Mapping[str, Mapping[str, object]]) -> Dict[str, Mapping[str, object]]:
    return {doc_id: data for doc_id, data in docs.items() if doc_id != TOTAL_DOC_ID}


def filter_home_server(snapshot: Snapshot, home_server: int) -> Dict[str, Mapping[str, object]]:
    return {
        doc_id: data
        for doc_id, data in snapshot.items()
        if server_id(data.get("homeServer")) == int(home_server)
    }


def attribute_delta(start_value: object, end_value: object) -> int | float | None:
    """``end - start`` after stripping thousands separators; None when either side is unparsable."""
    return as_int_if_whole(parse_delta(end_value) - parse_delta(start_value))


def compute_player_delta(start_doc: Mapping[str, object], end_doc: Mapping[str, object]) -> Dict[str, object]:
    delta: Dict[str, object] = {key: end_doc.get(key) for key in PROFILE_KEYS}
    for attr in TRACKED_ATTRIBUTES:
        delta[attr] = attribute_delta(start_doc.get(attr), end_doc.get(attr))
    return delta


def diff_snapshots(start: Snapshot, end: Snapshot) -> Dict[str, Dict[str, object]]:
    """Per-player deltas for players present in both snapshots, in end order."""
    return {
        player_id: compute_player_delta(start[player_id], end_doc)
        for player_id, end_doc in end.items()
        if player_id in start
    }


def classify(server: object, allies: set[int], enemies: set[int], mode: PartitionMode) -> Optional[str]:
    key = server_id(server)
    if key in allies:
        return "allies"
    if mode is PartitionMode.ENEMIES_BY_DEFAULT or key in enemies:
        return "enemies"
    return None


def diff_two_snapshots(
    start: Snapshot,
    end: Snapshot,
    allies: Iterable[object],
    enemies: Iterable[object],
    mode: PartitionMode = PartitionMode.ENEMIES_BY_DEFAULT,
) -> Dict[str, Dict[str, Dict[str, object]]]:
    ally_set, enemy_set = server_set(allies), server_set(enemies)
    out: Dict[str, Dict[str, Dict[str, object]]] = {"allies": {}, "enemies": {}}
    for player_id, delta in diff_snapshots(start, end).items():
        group = classify(delta.get("homeServer"), ally_set, enemy_set, mode)
        if group is not None:
            out[group][player_id] = delta
    return out


def partition_snapshot(
    snapshot: Snapshot,
    allies: Iterable[object],
    enemies: Iterable[object],
) -> Dict[str, Dict[str, Mapping[str, object]]]:
    """Single-date split: raw documents of players on either list."""
    ally_set, enemy_set = server_set(allies), server_set(enemies)
    out: Dict[str, Dict[str, Mapping[str, object]]] = {"allies": {}, "enemies": {}}
    for player_id, doc in snapshot.items():
        group = classify(doc.get("homeServer"), ally_set, enemy_set, PartitionMode.LISTED_ONLY)
        if group is not None:
            out[group][player_id] = doc
    return out


def restrict_to_servers(
    deltas: Mapping[str, Mapping[str, object]], servers: Iterable[object]
) -> Dict[str, Mapping[str, object]]:
    valid = server_set(servers)
    return {
        player_id: delta
        for player_id, delta in deltas.items()
        if server_id(delta.get("homeServer")) in valid
    }


def parsed_values(snapshot: Snapshot, servers: Iterable[object]) -> Dict[str, Dict[str, object]]:
    """Single-date counterpart of a diff: tracked attributes parsed, listed servers only."""
    valid = server_set(servers)
    out: Dict[str, Dict[str, object]] = {}
    for player_id, doc in snapshot.items():
        if server_id(doc.get("homeServer")) not in valid:
            continue
        values: Dict[str, object] = {key: doc.get(key) for key in PROFILE_KEYS}
        for attr in TRACKED_ATTRIBUTES:
            values[attr] = as_int_if_whole(parse_delta(doc.get(attr)))
        out[player_id] = values
    return out
