from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import AbstractSet, Dict, Optional, Sequence

from apps.api.guildboard.utils.numeric import as_int_if_whole, normalize_identifier, to_number

from .formats import SheetFormat


TITLE_START = "start"
TITLE_FINAL = "final"
TITLE_PRESEASON = "preseason"


class SkipReason(str, Enum):
    UNRECOGNIZED_FORMAT = "unrecognized_format"
    EMPTY_SHEET = "empty_sheet"
    MISSING_ID = "missing_id"
    INVALID_NUMBER = "invalid_number"
    INVALID_SERVER = "invalid_server"
    NOT_IN_ROSTER = "not_in_roster"
    BELOW_POWER_THRESHOLD = "below_power_threshold"


NUMERIC_FIELDS = (
    "home_server",
    "current_power",
    "highest_power",
    "merits",
    "units_killed",
    "units_dead",
    "units_healed",
    "t5_kill_count",
    "mana_spent",
    "gems_spent",
)

DOCUMENT_KEYS = {
    "lord_id": "lordId",
    "name": "name",
    "home_server": "homeServer",
    "current_power": "currentPower",
    "highest_power": "highestPower",
    "merits": "merits",
    "units_killed": "unitsKilled",
    "units_dead": "unitsDead",
    "units_healed": "unitsHealed",
    "t5_kill_count": "t5KillCount",
    "mana_spent": "manaSpent",
    "gems_spent": "gemsSpent",
}


# Column index per snapshot field, one table per layout. ``None`` means the
# layout has no such column and the field is zero.
FIELD_COLUMNS: Dict[SheetFormat, Dict[str, Optional[int]]] = {
    SheetFormat.F1: {
        "name": 1,
        "home_server": 2,
        "current_power": 5,
        "highest_power": 6,
        "merits": 7,
        "units_killed": 8,
        "units_dead": 9,
        "units_healed": 10,
        "t5_kill_count": 15,
        "mana_spent": 32,
        "gems_spent": 34,
    },
    SheetFormat.F2: {
        "name": 1,
        "home_server": 5,
        "current_power": 7,
        "highest_power": 12,
        "merits": 11,
        "units_killed": 9,
        "units_dead": 17,
        "units_healed": 18,
        "t5_kill_count": 36,
        "mana_spent": 34,
        "gems_spent": None,
    },
    SheetFormat.F3: {
        "name": 1,
        "home_server": 10,
        "current_power": 6,
        "highest_power": 12,
        "merits": 11,
        "units_killed": 7,
        "units_dead": 17,
        "units_healed": 18,
        "t5_kill_count": 36,
        "mana_spent": 34,
        "gems_spent": None,
    },
}


@dataclass(frozen=True)
class PlayerSnapshot:
    lord_id: str
    name: str
    home_server: float
    current_power: float
    highest_power: float
    merits: float
    units_killed: float
    units_dead: float
    units_healed: float
    t5_kill_count: float
    mana_spent: float
    gems_spent: float

    def invalid_fields(self) -> list[str]:
        bad = []
        for name in NUMERIC_FIELDS:
            value = getattr(self, name)
            if math.isnan(value) or value < 0:
                bad.append(name)
        return bad

    @property
    def server(self) -> int:
        return int(self.home_server)

    def to_document(self) -> dict:
        out: Dict[str, object] = {}
        for attr, key in DOCUMENT_KEYS.items():
            value = getattr(self, attr)
            out[key] = value if attr in ("lord_id", "name") else as_int_if_whole(value)
        return out


@dataclass(frozen=True)
class RowResult:
    snapshot: Optional[PlayerSnapshot] = None
    skip: Optional[SkipReason] = None
    detail: Dict[str, object] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.snapshot is not None and self.skip is None


def _cell(row: Sequence[object], index: Optional[int]) -> object:
    if index is None or index >= len(row):
        return None
    return row[index]


def extract_row(
    row: Sequence[object],
    sheet_format: SheetFormat,
    title: str,
    absent_columns: AbstractSet[int] = frozenset(),
) -> Optional[PlayerSnapshot]:
    """Map a raw row onto a PlayerSnapshot, or None when it has no identifier.

    Columns the sheet does not carry at all (no header cell, or past the end
    of the row) read as zero. Cells that exist but do not parse stay NaN.
    """
    lord_id = normalize_identifier(_cell(row, 0))
    if lord_id is None:
        return None

    columns = FIELD_COLUMNS[sheet_format]
    values: Dict[str, float] = {}
    for name in NUMERIC_FIELDS:
        index = columns[name]
        if index is None or index in absent_columns or index >= len(row):
            values[name] = 0.0
        else:
            values[name] = to_number(row[index])

    # The game's own season-start merit counter is unreliable.
    if title == TITLE_START:
        values["merits"] = 0.0

    raw_name = _cell(row, columns["name"])
    name = "" if raw_name is None else str(raw_name).strip()
    return PlayerSnapshot(lord_id=lord_id, name=name, **values)


def read_row(
    row: Sequence[object],
    sheet_format: SheetFormat,
    title: str,
    absent_columns: AbstractSet[int] = frozenset(),
) -> RowResult:
    snapshot = extract_row(row, sheet_format, title, absent_columns)
    if snapshot is None:
        return RowResult(skip=SkipReason.MISSING_ID)
    bad = snapshot.invalid_fields()
    if bad:
        return RowResult(skip=SkipReason.INVALID_NUMBER, detail={"lordId": snapshot.lord_id, "fields": bad})
    if not float(snapshot.home_server).is_integer():
        return RowResult(skip=SkipReason.INVALID_NUMBER, detail={"lordId": snapshot.lord_id, "fields": ["home_server"]})
    return RowResult(snapshot=snapshot)

