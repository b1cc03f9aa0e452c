from __future__ import annotations

import math
import numbers
from typing import Dict, List, Mapping

from .diff import server_id


TOP_N_DEFAULT = 300


def _rankable(value: object) -> bool:
    if value is None or isinstance(value, bool) or not isinstance(value, numbers.Real):
        return False
    return math.isfinite(value) and value != 0


def rank_top_n(deltas: Mapping[str, Mapping[str, object]], metric: str, n: int = TOP_N_DEFAULT) -> List[Dict[str, object]]:
    """Top ``n`` players by ``metric``, descending.

    Missing, NaN, infinite and zero values are left out. Ties keep the
    input order.
    """
    entries = [
        {"userId": player_id, "server": server_id(delta.get("homeServer")), metric: delta.get(metric)}
        for player_id, delta in deltas.items()
        if _rankable(delta.get(metric))
    ]
    entries.sort(key=lambda entry: entry[metric], reverse=True)
    return entries[: max(0, int(n))]


def count_by_server(entries: List[Mapping[str, object]]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for entry in entries:
        key = str(entry.get("server"))
        counts[key] = counts.get(key, 0) + 1
    return counts


def server_pie(entries: List[Mapping[str, object]]) -> Dict[str, list]:
    counts = count_by_server(entries)
    ordered = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return {
        "labels": [label for label, _ in ordered],
        "series": [count for _, count in ordered],
    }
