import time

import pytest
from factories import csv_bytes, f1_header, f1_row, xlsx_bytes

from apps.api.guildboard.errors import UnsupportedFileError, WorkbookReadError
from apps.api.guildboard.ingestion import workbook as workbook_module
from apps.api.guildboard.ingestion.workbook import (
    CSV_SHEET_NAME,
    decode_csv_bytes,
    read_workbook,
    read_workbook_with_timeout,
)


def test_decode_strips_utf8_bom():
    assert decode_csv_bytes(b"\xef\xbb\xbfLord ID,Name") == "Lord ID,Name"


def test_decode_falls_back_to_replacement_characters():
    text = decode_csv_bytes(b"Lord ID,\xffName")
    assert text.startswith("Lord ID,")
    assert "�" in text


def test_csv_with_bom_reads_header_and_typed_cells():
    raw = csv_bytes([f1_header(), f1_row(101, merits="1,234")], bom=True)
    book = read_workbook(raw, "export.csv")
    rows = book[CSV_SHEET_NAME]
    assert rows[0][0] == "Lord ID"
    assert rows[1][0] == 101
    assert rows[1][7] == 1234
    assert rows[1][3] is None


def test_xlsx_reads_every_sheet_without_header_inference():
    raw = xlsx_bytes({"Intro": [["notes"]], "Data": [f1_header(), f1_row(101), f1_row(102)]})
    book = read_workbook(raw, "export.xlsx")
    assert list(book.keys()) == ["Intro", "Data"]
    assert book["Data"][0][0] == "Lord ID"
    assert len(book["Data"]) == 3
    assert book["Data"][1][0] == 101
    assert book["Data"][1][6] == 80_000_000


def test_unsupported_extension_is_rejected():
    with pytest.raises(UnsupportedFileError):
        read_workbook(b"data", "export.txt")


def test_corrupt_excel_bytes_raise_read_error():
    with pytest.raises(WorkbookReadError):
        read_workbook(b"this is not a zip archive", "broken.xlsx")


def test_parse_timeout_raises_read_error(monkeypatch):
    def _slow(raw, filename):
        time.sleep(0.5)
        return {}

    monkeypatch.setattr(workbook_module, "read_workbook", _slow)
    with pytest.raises(WorkbookReadError):
        read_workbook_with_timeout(b"x", "slow.csv", 0.05)
