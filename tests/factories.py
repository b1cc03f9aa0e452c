import csv
import io

from openpyxl import Workbook

from apps.api.guildboard.db import build_engine, build_session_factory
from apps.api.guildboard.ingestion.formats import EXPECTED_COLUMNS, SheetFormat
from apps.api.guildboard.store import DocumentStore


F1_WIDTH = 35
F2_WIDTH = 37
F3_WIDTH = 37


def build_store() -> DocumentStore:
    return DocumentStore(build_session_factory(build_engine("sqlite:///:memory:")))


def header(sheet_format: SheetFormat, width: int) -> list:
    cells = [f"extra_{i}" for i in range(width)]
    for index, name in EXPECTED_COLUMNS[sheet_format].items():
        cells[index] = name
    return cells


def f1_header() -> list:
    return header(SheetFormat.F1, F1_WIDTH)


def f2_header() -> list:
    return header(SheetFormat.F2, F2_WIDTH)


def f3_header() -> list:
    return header(SheetFormat.F3, F3_WIDTH)


def f1_row(
    lord_id,
    name="Player",
    server=249,
    current=60_000_000,
    highest=80_000_000,
    merits=1000,
    killed=500,
    dead=200,
    healed=100,
    t5=50,
    mana=3000,
    gems=10,
) -> list:
    row = [None] * F1_WIDTH
    row[0] = lord_id
    row[1] = name
    row[2] = server
    row[5] = current
    row[6] = highest
    row[7] = merits
    row[8] = killed
    row[9] = dead
    row[10] = healed
    row[15] = t5
    row[32] = mana
    row[34] = gems
    return row


def f2_row(
    lord_id,
    name="Veteran",
    server=249,
    current=55_000_000,
    highest=75_000_000,
    merits=1500,
    killed=600,
    dead=250,
    healed=120,
    t5=30,
    mana=3500,
) -> list:
    row = [None] * F2_WIDTH
    row[0] = lord_id
    row[1] = name
    row[5] = server
    row[7] = current
    row[9] = killed
    row[11] = merits
    row[12] = highest
    row[17] = dead
    row[18] = healed
    row[34] = mana
    row[36] = t5
    return row


def f3_row(
    lord_id,
    name="Scout",
    server=300,
    current=60_000_000,
    highest=90_000_000,
    merits=2000,
    killed=700,
    dead=300,
    healed=100,
    t5=20,
    mana=4000,
) -> list:
    row = [None] * F3_WIDTH
    row[0] = lord_id
    row[1] = name
    row[6] = current
    row[7] = killed
    row[10] = server
    row[11] = merits
    row[12] = highest
    row[17] = dead
    row[18] = healed
    row[34] = mana
    row[36] = t5
    return row


def csv_bytes(rows, bom: bool = False) -> bytes:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    for row in rows:
        writer.writerow(["" if cell is None else cell for cell in row])
    raw = buffer.getvalue().encode("utf-8")
    return (b"\xef\xbb\xbf" + raw) if bom else raw


def xlsx_bytes(sheets: dict) -> bytes:
    workbook = Workbook()
    workbook.remove(workbook.active)
    for name, rows in sheets.items():
        sheet = workbook.create_sheet(title=name)
        for row in rows:
            sheet.append(list(row))
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()
