from __future__ import annotations

import math
from typing import Dict, Iterable, List, Mapping

from apps.api.guildboard.utils.numeric import as_int_if_whole, parse_delta

from .diff import server_id, server_set


TOTAL_METRICS = ("merits", "manaSpent", "unitsDead")
KVK_TOTAL_METRICS = ("merits", "unitsKilled", "unitsDead", "manaSpent")
AGGREGATE_METRICS = ("merits", "manaSpent", "unitsDead", "highestPower", "powerLoss")

DISTRIBUTION_FLOOR = 15_000_000
# Upper bound in millions for every bucket but the last, which is open-ended.
POWER_BUCKETS = (100, 150, 200, 250, 300)


def _num(value: object) -> float:
    number = parse_delta(value)
    return 0.0 if math.isnan(number) else number


def _clean(values: Mapping[str, float]) -> Dict[str, object]:
    return {key: as_int_if_whole(value) for key, value in values.items()}


def totals_delta(
    start_total: Mapping[str, Mapping[str, object]],
    end_total: Mapping[str, Mapping[str, object]],
) -> Dict[str, Dict[str, object]]:
    """Per-server ``end - start`` of the stored total documents."""
    out: Dict[str, Dict[str, object]] = {}
    for server, end_values in end_total.items():
        start_values = start_total.get(server)
        if not start_values or not end_values:
            continue
        out[server] = _clean(
            {metric: _num(end_values.get(metric)) - _num(start_values.get(metric)) for metric in TOTAL_METRICS}
        )
    return out


def aggregate_server_totals(
    start_totals: Mapping[str, object],
    end_totals: Mapping[str, object],
    deltas: Mapping[str, Mapping[str, object]],
) -> Dict[str, Dict[str, object]]:
    """Per-server sums over player deltas.

    Only servers present in both total documents and among the players
    contribute. ``powerLoss`` sums ``currentPower - highestPower``.
    """
    eligible = server_set(start_totals.keys()) & server_set(end_totals.keys())
    sums: Dict[int, Dict[str, float]] = {}
    for delta in deltas.values():
        server = server_id(delta.get("homeServer"))
        if server is None or server not in eligible:
            continue
        bucket = sums.setdefault(server, {metric: 0.0 for metric in AGGREGATE_METRICS})
        for metric in TOTAL_METRICS:
            bucket[metric] += _num(delta.get(metric))
        highest = _num(delta.get("highestPower"))
        bucket["highestPower"] += highest
        bucket["powerLoss"] += _num(delta.get("currentPower")) - highest
    return {str(server): _clean(sums[server]) for server in sorted(sums)}


def power_bucket(highest_power: float) -> int:
    millions = highest_power / 1_000_000
    for bound in POWER_BUCKETS[:-1]:
        if millions < bound:
            return bound
    return POWER_BUCKETS[-1]


def power_distribution(
    snapshot: Mapping[str, Mapping[str, object]],
    valid_servers: Iterable[object],
    floor: float = DISTRIBUTION_FLOOR,
) -> tuple[Dict[str, Mapping[str, object]], Dict[str, Dict[str, int]], Dict[str, Dict[str, object]]]:
    """Listed players above ``floor`` with per-server power buckets and totals."""
    valid = server_set(valid_servers)
    players: Dict[str, Mapping[str, object]] = {}
    buckets: Dict[int, Dict[str, int]] = {}
    totals: Dict[int, Dict[str, float]] = {}
    for player_id, doc in snapshot.items():
        server = server_id(doc.get("homeServer"))
        highest = _num(doc.get("highestPower"))
        if not server or server not in valid or highest <= floor:
            continue
        players[player_id] = doc
        counts = buckets.setdefault(server, {str(bound): 0 for bound in POWER_BUCKETS})
        counts[str(power_bucket(highest))] += 1
        server_totals = totals.setdefault(server, {metric: 0.0 for metric in KVK_TOTAL_METRICS})
        for metric in KVK_TOTAL_METRICS:
            server_totals[metric] += _num(doc.get(metric))
    return (
        players,
        {str(server): buckets[server] for server in sorted(buckets)},
        {str(server): _clean(totals[server]) for server in sorted(totals)},
    )


def bucket_charts(distribution: Mapping[str, Mapping[str, int]]) -> Dict[str, Dict[str, List]]:
    servers = list(distribution.keys())
    return {
        str(bound): {
            "categories": servers,
            "series": [distribution[server].get(str(bound), 0) for server in servers],
        }
        for bound in POWER_BUCKETS
    }


def metric_charts(
    per_server: Mapping[str, Mapping[str, object]], metrics: Iterable[str]
) -> Dict[str, Dict[str, List]]:
    servers = list(per_server.keys())
    return {
        metric: {
            "categories": servers,
            "series": [per_server[server].get(metric) or 0 for server in servers],
        }
        for metric in metrics
    }
