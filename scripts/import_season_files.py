from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from apps.api.guildboard.config import DATABASE_URL  # noqa: E402
from apps.api.guildboard.db import build_engine, build_session_factory  # noqa: E402
from apps.api.guildboard.errors import BadRequestError, StorageError, WorkbookReadError  # noqa: E402
from apps.api.guildboard.season_writer import SeasonWriteCoordinator, UploadedFile  # noqa: E402
from apps.api.guildboard.seasons import default_valid_servers, parse_server_list  # noqa: E402
from apps.api.guildboard.store import DocumentStore  # noqa: E402


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Import season spreadsheet exports into the document store")
    parser.add_argument("--season", required=True, help="Season name, e.g. S5")
    parser.add_argument("--title", required=True, help="start, final, preseason or YYYY-MM-DD")
    parser.add_argument("--valid-servers", default=None, help="Comma separated server ids")
    parser.add_argument("--database-url", default=DATABASE_URL, help="Defaults to DATABASE_URL")
    parser.add_argument("--dry-run", action="store_true", help="Parse and report without writing")
    parser.add_argument("--verbose", action="store_true")
    parser.add_argument("files", nargs="+", help=".xlsx, .xls or .csv exports")
    return parser


def main() -> int:
    parser = _build_parser()
    args = parser.parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    store = DocumentStore(build_session_factory(build_engine(args.database_url)))
    coordinator = SeasonWriteCoordinator(store)

    uploads = [UploadedFile(filename=Path(path).name, content=Path(path).read_bytes()) for path in args.files]

    try:
        servers = parse_server_list(args.valid_servers) or default_valid_servers(store, args.season)
        summary = coordinator.upload(uploads, args.season, args.title, servers, dry_run=args.dry_run)
    except (BadRequestError, WorkbookReadError, StorageError) as exc:
        print(json.dumps({"error": str(exc)}, ensure_ascii=False), file=sys.stderr)
        return 1

    payload = summary.as_response()
    payload.update({"rosterUpdates": summary.roster_updates, "batches": summary.batches, "written": summary.written})
    print(json.dumps(payload, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
