from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Iterable

from pydantic import ValidationError

from schemas.invoice_schema import InvoiceRecord

logger = logging.getLogger(__name__)


class StorageError(RuntimeError):
    pass


class RecordStore:
    """Every invoice record, persisted as one JSON array under a named slot.

    The whole document is rewritten on each change; other slots in the same
    file are left as they were.
    """

    def __init__(self, path: str | Path = "data/records.json", slot: str = "invoice_records") -> None:
        self._path = Path(path)
        self._slot = slot
        self._lock = threading.Lock()
        self._records: tuple[InvoiceRecord, ...] = ()
        self.load()

    def load(self) -> None:
        with self._lock:
            self._records = self._read_slot()

    def _read_slot(self) -> tuple[InvoiceRecord, ...]:
        if not self._path.exists():
            logger.info("No saved records at %s, starting empty", self._path)
            return ()
        try:
            document = json.loads(self._path.read_text(encoding="utf-8"))
            raw_records = document.get(self._slot, []) if isinstance(document, dict) else None
            if not isinstance(raw_records, list):
                raise ValueError(f"Slot {self._slot!r} does not hold a list of records")
            return tuple(InvoiceRecord.model_validate(item) for item in raw_records)
        except (OSError, ValueError, ValidationError):
            logger.exception("Failed to load stored records from %s, starting empty", self._path)
            return ()

    def snapshot(self) -> tuple[InvoiceRecord, ...]:
        return self._records

    def __len__(self) -> int:
        return len(self._records)

    def prepend(self, records: Iterable[InvoiceRecord]) -> tuple[InvoiceRecord, ...]:
        incoming = tuple(records)
        if not incoming:
            return self._records
        with self._lock:
            updated = incoming + self._records
            self._write(updated)
            self._records = updated
        logger.info("Stored %d new record(s), %d total", len(incoming), len(updated))
        return updated

    def _write(self, records: tuple[InvoiceRecord, ...]) -> None:
        document: dict[str, Any] = {}
        if self._path.exists():
            try:
                existing = json.loads(self._path.read_text(encoding="utf-8"))
                if isinstance(existing, dict):
                    document = existing
            except (OSError, ValueError):
                logger.warning("Overwriting unreadable store file %s", self._path)
        document[self._slot] = [rec.to_json_dict() for rec in records]

        tmp_path = self._path.with_name(self._path.name + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(document, ensure_ascii=True), encoding="utf-8")
            os.replace(tmp_path, self._path)
        except OSError as exc:
            raise StorageError(f"Failed to persist records to {self._path}: {exc}") from exc
