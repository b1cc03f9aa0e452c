import math
import numbers
import re


_CSV_NUMBER_RE = re.compile(r"^[+-]?(\d{1,3}(,\d{3})+|\d+)(\.\d+)?([eE][+-]?\d+)?$")


def parse_delta(raw: object) -> float:
    """Parse a stored metric value that may carry thousands separators.

    ``"1,234,567"`` -> ``1234567.0``. Anything that does not end up as a
    finite number returns NaN; callers decide whether NaN degrades or rejects.
    """
    if raw is None or isinstance(raw, bool):
        return math.nan
    if isinstance(raw, numbers.Real):
        value = float(raw)
        return value if math.isfinite(value) else math.nan
    text = str(raw).replace(",", "").strip()
    if not text:
        return math.nan
    try:
        value = float(text)
    except ValueError:
        return math.nan
    return value if math.isfinite(value) else math.nan


def to_number(cell: object) -> float:
    """Strict cell conversion used by row extraction: no separator stripping."""
    if cell is None or isinstance(cell, bool):
        return math.nan
    if isinstance(cell, numbers.Real):
        value = float(cell)
        return value if math.isfinite(value) else math.nan
    text = str(cell).strip()
    if not text:
        return math.nan
    try:
        value = float(text)
    except ValueError:
        return math.nan
    return value if math.isfinite(value) else math.nan


def is_valid_number(value: object) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool) and math.isfinite(value)


def as_int_if_whole(value: float) -> int | float | None:
    if not is_valid_number(value):
        return None
    if float(value).is_integer():
        return int(value)
    return float(value)


def coerce_text_cell(raw: str) -> object:
    """Type a CSV text cell the way a spreadsheet would: numbers become numbers."""
    text = str(raw).strip()
    if not text:
        return None
    if _CSV_NUMBER_RE.match(text):
        number = float(text.replace(",", ""))
        return int(number) if number.is_integer() and "." not in text and "e" not in text.lower() else number
    return text


def normalize_identifier(cell: object) -> str | None:
    """Player identifiers arrive as ints, floats (``12345.0``) or strings."""
    if cell is None or isinstance(cell, bool):
        return None
    if isinstance(cell, float):
        if not math.isfinite(cell):
            return None
        if cell.is_integer():
            return str(int(cell))
        return str(cell)
    text = str(cell).strip()
    return text or None
