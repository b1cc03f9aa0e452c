from __future__ import annotations

import math
import numbers
from typing import Dict, List, Mapping, Optional


METRIC_SERIES = {
    "MERITS": {"name": "metrics.dataGrid.merits", "key": "merits"},
    "UNITS_KILLED": {"name": "metrics.series.unitsKilled", "key": "unitsKilled"},
    "UNITS_DEAD": {"name": "metrics.series.unitsDead", "key": "unitsDead"},
    "MANA_SPENT": {"name": "metrics.series.manaSpent", "key": "manaSpent"},
    "T5_KILL_COUNT": {"name": "metrics.series.t5KillCount", "key": "t5KillCount"},
}

# Tabs rendered by the dashboard.
METRIC_TYPES = ("MERITS", "UNITS_KILLED", "UNITS_DEAD", "MANA_SPENT")


def _value(value: object) -> float:
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        return 0
    return value if math.isfinite(value) else 0


def format_number(value: object) -> str:
    number = _value(value)
    if float(number).is_integer():
        return f"{int(number):,}"
    return f"{number:,.3f}".rstrip("0").rstrip(".")


def _sorted_entries(data: Mapping[str, Mapping[str, object]], key: str):
    return sorted(data.items(), key=lambda item: _value(item[1].get(key)), reverse=True)


def format_grid(data: Mapping[str, Mapping[str, object]], metric_type: str = "MERITS") -> List[Dict[str, object]]:
    key = METRIC_SERIES[metric_type]["key"]
    rows = []
    for rank, (user_id, user) in enumerate(_sorted_entries(data, key), start=1):
        rows.append(
            {
                "id": user_id,
                "icon": "",
                "rank": rank,
                "name": user.get("name"),
                "value": format_number(user.get(key)),
                "highestPower": format_number(user.get("highestPower")),
                "currentPower": format_number(user.get("currentPower") or user.get("power")),
            }
        )
    return rows


def format_chart(
    data: Mapping[str, Mapping[str, object]],
    start_date: str,
    end_date: Optional[str] = None,
    metric_type: str = "MERITS",
) -> Dict[str, object]:
    series = METRIC_SERIES[metric_type]
    entries = _sorted_entries(data, series["key"])
    return {
        "title": "Metrics Comparison" if end_date else "Metrics Overview",
        "subheader": (
            f"Comparing data from {start_date} to {end_date}" if end_date else f"Data for {start_date}"
        ),
        "categories": [user.get("name") for _, user in entries],
        "series": [
            {
                "name": series["name"],
                "data": [_value(user.get(series["key"])) for _, user in entries],
            }
        ],
    }


def format_all_types(
    data: Mapping[str, Mapping[str, object]], start_date: str, end_date: Optional[str] = None
) -> tuple[Dict[str, object], Dict[str, object]]:
    charts = {}
    grids = {}
    for metric_type in METRIC_TYPES:
        charts[metric_type] = format_chart(data, start_date, end_date, metric_type)
        grids[metric_type] = format_grid(data, metric_type)
    return charts, grids
