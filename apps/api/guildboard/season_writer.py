from __future__ import annotations

import logging
import re
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from .cache import MetricsCache
from .config import (
    BATCH_COMMIT_WORKERS,
    HOME_SERVER,
    MAX_UPLOAD_BYTES,
    WRITE_BATCH_SIZE,
)
from .errors import NoRecordsError, StorageError, UploadValidationError
from .ingestion import IngestionResult, UploadIngestor
from .ingestion.rows import TITLE_FINAL, TITLE_PRESEASON, TITLE_START
from .ingestion.workbook import ensure_supported
from .store import (
    MAX_BATCH_OPERATIONS,
    SEASONS_COLLECTION,
    TOTAL_DOC_ID,
    USERS_COLLECTION,
    DocumentStore,
    WriteOp,
    season_collection,
)


logger = logging.getLogger(__name__)

FIXED_TITLES = {TITLE_START, TITLE_FINAL, TITLE_PRESEASON}
ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


@dataclass(frozen=True)
class UploadedFile:
    filename: str
    content: bytes


@dataclass
class UploadSummary:
    season_name: str
    title: str
    record_count: int
    files: List[str] = field(default_factory=list)
    skipped: Dict[str, int] = field(default_factory=dict)
    skipped_sheets: List[Dict[str, str]] = field(default_factory=list)
    roster_updates: int = 0
    batches: int = 0
    written: bool = True

    def as_response(self) -> dict:
        return {
            "seasonName": self.season_name,
            "title": self.title,
            "recordCount": self.record_count,
            "files": list(self.files),
            "skipped": dict(self.skipped),
            "skippedSheets": list(self.skipped_sheets),
        }


def validate_title(title: str) -> str:
    clean = str(title or "").strip()
    if not clean:
        raise UploadValidationError("Missing required metadata (seasonName or title)")
    if clean in FIXED_TITLES:
        return clean
    if ISO_DATE_RE.match(clean):
        try:
            date.fromisoformat(clean)
        except ValueError as exc:
            raise UploadValidationError(f"Invalid date title '{clean}'") from exc
        return clean
    raise UploadValidationError(
        f"Invalid title '{clean}': expected start, final, preseason or a YYYY-MM-DD date"
    )


def chunked(items: Sequence[WriteOp], size: int) -> List[List[WriteOp]]:
    size = max(1, min(int(size), MAX_BATCH_OPERATIONS))
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


class SeasonWriteCoordinator:
    """Ingests every uploaded file for one season/title and persists the merge.

    All files are parsed before anything is written: one unreadable file
    fails the whole upload with no side effects.
    """

    def __init__(
        self,
        store: DocumentStore,
        cache: Optional[MetricsCache] = None,
        *,
        home_server: int = HOME_SERVER,
        batch_size: int = WRITE_BATCH_SIZE,
        max_workers: int = BATCH_COMMIT_WORKERS,
        max_upload_bytes: int = MAX_UPLOAD_BYTES,
        ingestor: Optional[UploadIngestor] = None,
    ) -> None:
        self.store = store
        self.cache = cache
        self.home_server = int(home_server)
        self.batch_size = batch_size
        self.max_workers = max(1, int(max_workers))
        self.max_upload_bytes = int(max_upload_bytes)
        self.ingestor = ingestor or UploadIngestor(home_server=self.home_server)

    def _validate(self, files: Sequence[UploadedFile], season_name: str, title: str) -> tuple[str, str]:
        season = str(season_name or "").strip()
        if not season or not str(title or "").strip():
            raise UploadValidationError("Missing required metadata (seasonName or title)")
        if "/" in season:
            raise UploadValidationError("Season name must not contain '/'")
        clean_title = validate_title(title)
        if not files:
            raise UploadValidationError("No files provided")
        for upload in files:
            ensure_supported(upload.filename)
            if not upload.content:
                raise UploadValidationError(f"File '{upload.filename}' is empty")
            if len(upload.content) > self.max_upload_bytes:
                raise UploadValidationError(
                    f"File '{upload.filename}' exceeds {self.max_upload_bytes} bytes"
                )
        return season, clean_title

    def ingest_all(
        self,
        files: Sequence[UploadedFile],
        title: str,
        valid_servers: Iterable[int],
        roster: Mapping[str, Mapping[str, object]],
    ) -> IngestionResult:
        servers = {int(s) for s in valid_servers}
        merged = IngestionResult()
        # Staged roster updates are applied to this view so later files ratchet
        # against what earlier files already raised.
        roster_view: Dict[str, Dict[str, object]] = {key: dict(value) for key, value in roster.items()}

        for upload in files:
            logger.info("Ingesting %s (%s bytes)", upload.filename, len(upload.content))
            result = self.ingestor.ingest(upload.content, upload.filename, title, servers, roster_view)
            merged.player_records.update(result.player_records)
            merged.add_totals(result.server_totals)
            for lord_id, updates in result.roster_updates.items():
                merged.roster_updates[lord_id] = {**merged.roster_updates.get(lord_id, {}), **updates}
                roster_view.setdefault(lord_id, {}).update(updates)
            merged.sheets_processed.extend(f"{upload.filename}:{name}" for name in result.sheets_processed)
            merged.skipped_sheets.extend(
                {"file": upload.filename, **entry} for entry in result.skipped_sheets
            )
            merged.skipped.update(result.skipped)
        return merged

    def upload(
        self,
        files: Sequence[UploadedFile],
        season_name: str,
        title: str,
        valid_servers: Iterable[int],
        *,
        dry_run: bool = False,
    ) -> UploadSummary:
        season, clean_title = self._validate(files, season_name, title)
        servers = sorted({int(s) for s in valid_servers}) or [self.home_server]
        logger.info("Processing upload for season=%s title=%s servers=%s", season, clean_title, servers)

        roster = self.store.list_documents(USERS_COLLECTION)
        merged = self.ingest_all(files, clean_title, servers, roster)
        if merged.record_count == 0:
            raise NoRecordsError("No valid records found in the uploaded files")

        summary = UploadSummary(
            season_name=season,
            title=clean_title,
            record_count=merged.record_count,
            files=[upload.filename for upload in files],
            skipped=dict(Counter(merged.skipped)),
            skipped_sheets=merged.skipped_sheets,
            roster_updates=len(merged.roster_updates),
            written=not dry_run,
        )
        if dry_run:
            return summary

        summary.batches = self._write(season, clean_title, merged)
        self._invalidate(season)
        return summary

    def _write(self, season: str, title: str, merged: IngestionResult) -> int:
        collection = season_collection(season, title)
        now = datetime.now(timezone.utc).isoformat()
        try:
            self.store.set(
                SEASONS_COLLECTION,
                season,
                {"seasonName": season, "lastUpdatedAt": now},
                merge=True,
            )
        except Exception as exc:
            raise StorageError(f"Unable to update season '{season}': {exc}") from exc

        ops: List[WriteOp] = [WriteOp(collection, TOTAL_DOC_ID, merged.totals_document(), False)]
        ops.extend(
            WriteOp(collection, lord_id, snapshot.to_document(), False)
            for lord_id, snapshot in merged.player_records.items()
        )
        batches = chunked(ops, self.batch_size)
        roster_batches = chunked(
            [WriteOp(USERS_COLLECTION, lord_id, updates, True) for lord_id, updates in merged.roster_updates.items()],
            self.batch_size,
        )

        self._commit_parallel(batches + roster_batches)
        logger.info(
            "Upload written: %s records, %s roster updates, %s batches",
            merged.record_count,
            len(merged.roster_updates),
            len(batches) + len(roster_batches),
        )
        return len(batches) + len(roster_batches)

    def _commit_parallel(self, groups: List[List[WriteOp]]) -> None:
        if not groups:
            return

        def _commit(group: List[WriteOp]) -> int:
            batch = self.store.batch()
            for op in group:
                if op.merge:
                    batch.update(op.collection, op.doc_id, op.data)
                else:
                    batch.set(op.collection, op.doc_id, op.data)
            return batch.commit()

        failures: List[BaseException] = []
        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="batch-commit") as pool:
            futures = [pool.submit(_commit, group) for group in groups]
            for future in futures:
                exc = future.exception()
                if exc is not None:
                    failures.append(exc)
        if failures:
            raise StorageError(
                f"{len(failures)} of {len(groups)} write batches failed: {failures[0]}"
            ) from failures[0]

    def _invalidate(self, season: str) -> None:
        if self.cache is None:
            return
        try:
            self.cache.invalidate_season_metrics(season)
        except Exception:
            logger.warning("Cache invalidation failed for season %s", season, exc_info=True)
