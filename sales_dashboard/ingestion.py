from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Iterable, Sequence

from pydantic import ValidationError

from sales_dashboard.config import DEFAULT_MIME_TYPES
from sales_dashboard.extraction_service import ExtractionError
from sales_dashboard.logger import log_file_event
from sales_dashboard.metrics import MetricsCollector
from sales_dashboard.record_store import RecordStore
from sales_dashboard.uploads import FileBlob, is_supported_mime_type
from schemas.invoice_schema import InvoiceRecord

logger = logging.getLogger(__name__)

Extractor = Callable[[FileBlob], InvoiceRecord | None]
ProgressCallback = Callable[[int, int], None]


class NoSupportedFilesError(ValueError):
    def __init__(self, total_files: int) -> None:
        super().__init__(f"None of the {total_files} uploaded file(s) has a supported type")
        self.total_files = total_files


@dataclass
class IngestionResult:
    new_records: list[InvoiceRecord] = field(default_factory=list)
    total: int = 0
    attempted: int = 0
    no_invoice: int = 0
    date_mismatch: int = 0
    duplicates: int = 0
    failed: int = 0

    @property
    def errors_ignored(self) -> int:
        return self.failed


def ingest(
    files: Sequence[FileBlob],
    existing_records: Iterable[InvoiceRecord],
    analysis_date: date,
    *,
    extractor: Extractor,
    allowed_mime_types: tuple[str, ...] = DEFAULT_MIME_TYPES,
    on_progress: ProgressCallback | None = None,
    metrics: MetricsCollector | None = None,
) -> IngestionResult:
    """Extract, filter and deduplicate a batch of uploads.

    Files are processed one after another; the first record seen for an
    invoice number wins, whether it is already stored or earlier in the batch.
    Nothing is written here, see ``ingest_into_store``.
    """
    accepted = [f for f in files if is_supported_mime_type(f.mime_type, allowed_mime_types)]
    if not accepted:
        raise NoSupportedFilesError(len(files))

    if metrics is None:
        metrics = MetricsCollector()
    seen_numbers = {rec.invoice_number for rec in existing_records}
    result = IngestionResult(total=len(accepted))

    for index, blob in enumerate(accepted):
        if on_progress is not None:
            on_progress(index + 1, len(accepted))
        result.attempted += 1
        metrics.increment("files_attempted_total")

        started = time.monotonic()
        try:
            record = extractor(blob)
        except (ExtractionError, ValidationError):
            result.failed += 1
            metrics.increment("extraction_failed_total")
            log_file_event(
                logger,
                logging.ERROR,
                "Extraction failed, skipping file",
                file_name=blob.name,
                stage="extraction",
                outcome="failed",
                exc_info=True,
            )
            continue
        except Exception:  # noqa: BLE001
            result.failed += 1
            metrics.increment("extraction_failed_total")
            logger.exception("Unexpected extraction error for file=%s", blob.name)
            continue
        finally:
            metrics.observe_latency(int((time.monotonic() - started) * 1000))

        if record is None:
            result.no_invoice += 1
            metrics.increment("no_invoice_total")
            log_file_event(logger, logging.DEBUG, "No invoice detected", file_name=blob.name, outcome="no_invoice")
            continue

        if record.date != analysis_date:
            result.date_mismatch += 1
            metrics.increment("date_mismatch_total")
            log_file_event(
                logger,
                logging.DEBUG,
                "Invoice date differs from analysis date",
                file_name=blob.name,
                invoice_number=record.invoice_number,
                outcome="date_mismatch",
            )
            continue

        if record.invoice_number in seen_numbers:
            result.duplicates += 1
            metrics.increment("duplicate_total")
            log_file_event(
                logger,
                logging.DEBUG,
                "Duplicate invoice number",
                file_name=blob.name,
                invoice_number=record.invoice_number,
                outcome="duplicate",
            )
            continue

        seen_numbers.add(record.invoice_number)
        result.new_records.append(record)
        log_file_event(
            logger,
            logging.INFO,
            "Invoice accepted",
            file_name=blob.name,
            invoice_number=record.invoice_number,
            stage="ingestion",
            outcome="accepted",
        )

    return result


def ingest_into_store(
    store: RecordStore,
    files: Sequence[FileBlob],
    analysis_date: date,
    *,
    extractor: Extractor,
    allowed_mime_types: tuple[str, ...] = DEFAULT_MIME_TYPES,
    on_progress: ProgressCallback | None = None,
    metrics: MetricsCollector | None = None,
) -> IngestionResult:
    if metrics is None:
        metrics = MetricsCollector()
    result = ingest(
        files,
        store.snapshot(),
        analysis_date,
        extractor=extractor,
        allowed_mime_types=allowed_mime_types,
        on_progress=on_progress,
        metrics=metrics,
    )
    if result.new_records:
        store.prepend(result.new_records)
        metrics.increment("records_stored_total", len(result.new_records))
    return result
