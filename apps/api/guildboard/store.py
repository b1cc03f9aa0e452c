from __future__ import annotations

import copy
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from .models import Document, utc_now


logger = logging.getLogger(__name__)

MAX_BATCH_OPERATIONS = 500

SEASONS_COLLECTION = "sheets"
USERS_COLLECTION = "users"
TOTAL_DOC_ID = "total"


def season_collection(season_name: str, title: str) -> str:
    return f"{SEASONS_COLLECTION}/{season_name}/{title}"


@dataclass(frozen=True)
class WriteOp:
    collection: str
    doc_id: str
    data: dict
    merge: bool


class WriteBatch:
    def __init__(self, store: "DocumentStore") -> None:
        self._store = store
        self.ops: List[WriteOp] = []

    def __len__(self) -> int:
        return len(self.ops)

    def _add(self, op: WriteOp) -> "WriteBatch":
        if len(self.ops) >= MAX_BATCH_OPERATIONS:
            raise ValueError(f"A batch holds at most {MAX_BATCH_OPERATIONS} operations")
        self.ops.append(op)
        return self

    def set(self, collection: str, doc_id: str, data: dict, merge: bool = False) -> "WriteBatch":
        return self._add(WriteOp(collection, str(doc_id), dict(data), merge))

    def update(self, collection: str, doc_id: str, fields: dict) -> "WriteBatch":
        return self._add(WriteOp(collection, str(doc_id), dict(fields), True))

    def commit(self) -> int:
        return self._store.commit(self)


class DocumentStore:
    """Collections of JSON documents addressed by slash paths.

    Season data lives under ``sheets/<season>/<title>``; the roster under
    ``users``. Every write method opens and commits its own session.
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory
        self._write_lock: Optional[threading.Lock] = None
        bind = getattr(session_factory, "kw", {}).get("bind")
        if bind is not None and bind.dialect.name == "sqlite":
            self._write_lock = threading.Lock()

    def _find(self, db: Session, collection: str, doc_id: str) -> Optional[Document]:
        return (
            db.query(Document)
            .filter(Document.collection == collection, Document.doc_id == str(doc_id))
            .first()
        )

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        db = self._session_factory()
        try:
            record = self._find(db, collection, doc_id)
            return copy.deepcopy(record.data) if record is not None else None
        finally:
            db.close()

    def list_documents(self, collection: str) -> Dict[str, dict]:
        db = self._session_factory()
        try:
            rows = (
                db.query(Document)
                .filter(Document.collection == collection)
                .order_by(Document.id.asc())
                .all()
            )
            return {row.doc_id: copy.deepcopy(row.data) for row in rows}
        finally:
            db.close()

    def list_subcollections(self, collection: str, doc_id: str) -> List[str]:
        prefix = f"{collection}/{doc_id}/"
        db = self._session_factory()
        try:
            rows = (
                db.query(Document.collection)
                .filter(Document.collection.startswith(prefix, autoescape=True))
                .distinct()
                .all()
            )
        finally:
            db.close()
        names = {row[0][len(prefix) :] for row in rows}
        return sorted(name for name in names if name and "/" not in name)

    def where(self, collection: str, field: str, value: object) -> Dict[str, dict]:
        return {
            doc_id: data
            for doc_id, data in self.list_documents(collection).items()
            if data.get(field) == value
        }

    def set(self, collection: str, doc_id: str, data: dict, merge: bool = False) -> None:
        self.batch().set(collection, doc_id, data, merge=merge).commit()

    def batch(self) -> WriteBatch:
        return WriteBatch(self)

    def commit(self, batch: WriteBatch) -> int:
        if not batch.ops:
            return 0
        if self._write_lock is None:
            return self._apply(batch.ops)
        with self._write_lock:
            return self._apply(batch.ops)

    def _apply(self, ops: List[WriteOp]) -> int:
        db = self._session_factory()
        try:
            now = utc_now()
            for op in ops:
                record = self._find(db, op.collection, op.doc_id)
                if record is None:
                    record = Document(collection=op.collection, doc_id=op.doc_id, data={})
                    db.add(record)
                    record.data = dict(op.data)
                elif op.merge:
                    record.data = {**(record.data or {}), **op.data}
                else:
                    record.data = dict(op.data)
                record.updated_at = now
                db.flush()
            db.commit()
            return len(ops)
        except Exception:
            db.rollback()
            logger.error("Batch commit failed (%s operations)", len(ops), exc_info=True)
            raise
        finally:
            db.close()
