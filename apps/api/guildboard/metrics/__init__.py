from .aggregate import aggregate_server_totals, power_distribution, totals_delta
from .diff import (
    TRACKED_ATTRIBUTES,
    PartitionMode,
    compute_player_delta,
    diff_snapshots,
    diff_two_snapshots,
)
from .formatting import format_all_types
from .ranking import TOP_N_DEFAULT, rank_top_n
from .service import MetricsService

__all__ = [
    "aggregate_server_totals",
    "power_distribution",
    "totals_delta",
    "TRACKED_ATTRIBUTES",
    "PartitionMode",
    "compute_player_delta",
    "diff_snapshots",
    "diff_two_snapshots",
    "format_all_types",
    "TOP_N_DEFAULT",
    "rank_top_n",
    "MetricsService",
]
