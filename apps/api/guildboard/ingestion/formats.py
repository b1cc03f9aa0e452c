from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Mapping, Optional, Sequence


class SheetFormat(str, Enum):
    # Player-stats export with gems spent.
    F1 = "format1"
    # Player-stats export, snake_case headers, no gems spent.
    F2 = "format2"
    # Map-scan export, carries home_server.
    F3 = "format3"


# Expected header name per column index. The exporters evolved these layouts
# independently, so each table stays separate even where they overlap.
EXPECTED_COLUMNS: Dict[SheetFormat, Dict[int, str]] = {
    SheetFormat.F1: {
        0: "Lord ID",
        1: "Name",
        5: "Current Power",
        6: "Power",
        7: "Merits",
        8: "Units Killed",
        9: "Units Dead",
        10: "Units Healed",
        15: "T5 Kill Count",
        32: "Mana Spent",
        34: "Gems Spent",
    },
    SheetFormat.F2: {
        0: "lord_id",
        1: "name",
        7: "power",
        9: "units_killed",
        11: "merits",
        12: "highest_power",
        17: "units_dead",
        18: "units_healed",
        34: "mana_spent",
        36: "killcount_t5",
    },
    SheetFormat.F3: {
        0: "lord_id",
        1: "name",
        6: "power",
        7: "units_killed",
        10: "home_server",
        11: "merits",
        12: "highest_power",
        17: "units_dead",
        18: "units_healed",
        34: "mana_spent",
        36: "killcount_t5",
    },
}

DETECTION_ORDER = (SheetFormat.F1, SheetFormat.F2, SheetFormat.F3)

# Renamed or missing columns tolerated per layout.
MAX_MISSING_COLUMNS = 1


@dataclass(frozen=True)
class DetectedFormat:
    format: SheetFormat
    columns: Mapping[int, str]
    matched: int
    # Expected column indexes with no header cell at all.
    absent: frozenset = frozenset()


def _header_at(headers: Sequence[object], index: int) -> object:
    if index < len(headers):
        return headers[index]
    return None


def count_matches(headers: Sequence[object], expected: Mapping[int, str]) -> int:
    return sum(1 for index, name in expected.items() if _header_at(headers, index) == name)


def absent_columns(headers: Sequence[object], expected: Mapping[int, str]) -> frozenset:
    absent = set()
    for index in expected:
        cell = _header_at(headers, index)
        if cell is None or not str(cell).strip():
            absent.add(index)
    return frozenset(absent)


def detect_sheet_format(headers: Optional[Sequence[object]]) -> Optional[DetectedFormat]:
    """Return the first layout whose expected headers match, tolerating one miss."""
    if not headers:
        return None
    for sheet_format in DETECTION_ORDER:
        expected = EXPECTED_COLUMNS[sheet_format]
        matched = count_matches(headers, expected)
        if matched >= len(expected) - MAX_MISSING_COLUMNS:
            return DetectedFormat(
                format=sheet_format,
                columns=expected,
                matched=matched,
                absent=absent_columns(headers, expected),
            )
    return None
