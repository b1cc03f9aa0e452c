from __future__ import annotations

import csv
import io
import logging
import math
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from pathlib import PurePath
from typing import Dict, List

import pandas as pd

from apps.api.guildboard.errors import UnsupportedFileError, WorkbookReadError
from apps.api.guildboard.utils.numeric import coerce_text_cell


logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = {".xlsx", ".xls", ".csv"}
CSV_SHEET_NAME = "Sheet1"
UTF8_BOM = b"\xef\xbb\xbf"

Workbook = Dict[str, List[List[object]]]


def file_extension(filename: str) -> str:
    return PurePath(str(filename or "")).suffix.lower()


def ensure_supported(filename: str) -> str:
    ext = file_extension(filename)
    if ext not in SUPPORTED_EXTENSIONS:
        raise UnsupportedFileError(
            f"Unsupported file '{filename}': must be an Excel or CSV file (.xlsx, .xls, .csv)"
        )
    return ext


def decode_csv_bytes(raw: bytes) -> str:
    if raw.startswith(UTF8_BOM):
        return raw[len(UTF8_BOM) :].decode("utf-8", errors="replace")
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        logger.warning("Strict UTF-8 decoding failed, falling back to replacement decoding")
        return raw.decode("utf-8", errors="replace")


def _native(value: object) -> object:
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    if isinstance(value, pd.Timestamp):
        return value.isoformat()
    if hasattr(value, "item") and not isinstance(value, (str, bytes)):
        value = value.item()
        if isinstance(value, float) and math.isnan(value):
            return None
    return value


def _frame_rows(frame: pd.DataFrame) -> List[List[object]]:
    rows: List[List[object]] = []
    for raw in frame.astype(object).values.tolist():
        row = [_native(cell) for cell in raw]
        while row and row[-1] is None:
            row.pop()
        rows.append(row)
    while rows and not rows[-1]:
        rows.pop()
    return rows


def _read_csv(raw: bytes) -> Workbook:
    text = decode_csv_bytes(raw)
    reader = csv.reader(io.StringIO(text))
    rows: List[List[object]] = []
    for index, record in enumerate(reader):
        if index == 0:
            rows.append([cell.strip() for cell in record])
        else:
            rows.append([coerce_text_cell(cell) for cell in record])
    return {CSV_SHEET_NAME: rows}


def _read_excel(raw: bytes, ext: str) -> Workbook:
    engine = "xlrd" if ext == ".xls" else "openpyxl"
    sheets = pd.read_excel(io.BytesIO(raw), sheet_name=None, header=None, engine=engine)
    return {str(name): _frame_rows(frame) for name, frame in sheets.items()}


def read_workbook(raw: bytes, filename: str) -> Workbook:
    """Parse workbook bytes into ``{sheet name: rows}``, header row first."""
    ext = ensure_supported(filename)
    try:
        if ext == ".csv":
            return _read_csv(raw)
        return _read_excel(raw, ext)
    except Exception as exc:
        raise WorkbookReadError(f"Unable to read workbook '{filename}': {exc}") from exc


def read_workbook_with_timeout(raw: bytes, filename: str, timeout_seconds: float) -> Workbook:
    ensure_supported(filename)
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="workbook-parse")
    try:
        future = executor.submit(read_workbook, raw, filename)
        try:
            return future.result(timeout=timeout_seconds)
        except FutureTimeout as exc:
            # A running thread cannot be stopped: the request fails now but the
            # parse finishes in the background. MAX_UPLOAD_BYTES bounds that work.
            future.cancel()
            raise WorkbookReadError(
                f"Parsing '{filename}' exceeded {timeout_seconds}s"
            ) from exc
    finally:
        executor.shutdown(wait=False)
