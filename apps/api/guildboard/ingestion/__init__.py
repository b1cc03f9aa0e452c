from .formats import SheetFormat, detect_sheet_format
from .ingestor import POWER_THRESHOLD, IngestionResult, UploadIngestor, ratchet_updates
from .rows import PlayerSnapshot, RowResult, SkipReason, extract_row, read_row
from .workbook import SUPPORTED_EXTENSIONS, decode_csv_bytes, read_workbook

__all__ = [
    "SheetFormat",
    "detect_sheet_format",
    "POWER_THRESHOLD",
    "IngestionResult",
    "UploadIngestor",
    "ratchet_updates",
    "PlayerSnapshot",
    "RowResult",
    "SkipReason",
    "extract_row",
    "read_row",
    "SUPPORTED_EXTENSIONS",
    "decode_csv_bytes",
    "read_workbook",
]
