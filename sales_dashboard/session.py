from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Sequence

from sales_dashboard.aggregation import build_stats_bundle, daily_invoices
from sales_dashboard.baseline import HistoricalBaseline
from sales_dashboard.config import Settings
from sales_dashboard.ingestion import (
    Extractor,
    IngestionResult,
    NoSupportedFilesError,
    ingest_into_store,
)
from sales_dashboard.metrics import MetricsCollector
from sales_dashboard.record_store import RecordStore
from sales_dashboard.uploads import FileBlob
from schemas.invoice_schema import InvoiceRecord
from schemas.stats_schema import StatsBundle

logger = logging.getLogger(__name__)

VIEWS = ("dashboard", "history", "customers", "annual")

UNSUPPORTED_FILE_MESSAGE = "Unsupported file."


@dataclass
class ProcessingProgress:
    current: int = 0
    total: int = 0


class DashboardSession:
    """User-facing state of one dashboard client.

    Statistics are always computed from a store snapshot taken at call time.
    """

    def __init__(
        self,
        store: RecordStore,
        *,
        extractor: Extractor,
        settings: Settings | None = None,
        baseline: HistoricalBaseline | None = None,
        analysis_date: date | None = None,
    ) -> None:
        self.store = store
        self.settings = settings or Settings()
        self.baseline = baseline or HistoricalBaseline()
        self.analysis_date = analysis_date or date.today()
        self.active_view = "dashboard"
        self.is_processing = False
        self.progress = ProcessingProgress()
        self.upload_error: str | None = None
        self.metrics = MetricsCollector()
        self._extractor = extractor

    def select_view(self, view: str) -> None:
        if view not in VIEWS:
            raise ValueError(f"Unknown view: {view}")
        self.active_view = view

    def set_analysis_date(self, analysis_date: date) -> None:
        self.analysis_date = analysis_date

    def _on_progress(self, current: int, total: int) -> None:
        self.progress = ProcessingProgress(current=current, total=total)

    def upload(self, files: Sequence[FileBlob]) -> IngestionResult | None:
        if not files:
            return None
        self.upload_error = None
        self.is_processing = True
        try:
            result = ingest_into_store(
                self.store,
                files,
                self.analysis_date,
                extractor=self._extractor,
                allowed_mime_types=self.settings.allowed_mime_types,
                on_progress=self._on_progress,
                metrics=self.metrics,
            )
        except NoSupportedFilesError as exc:
            logger.warning("Upload rejected: %s", exc)
            self.upload_error = UNSUPPORTED_FILE_MESSAGE
            return None
        finally:
            self.is_processing = False

        if result.new_records:
            self.active_view = "dashboard"
        logger.info(
            "Upload processed %d of %d file(s), stored=%d",
            result.attempted,
            result.total,
            len(result.new_records),
        )
        return result

    def stats(self) -> StatsBundle:
        return build_stats_bundle(
            self.store.snapshot(),
            self.analysis_date,
            self.baseline,
            unspecified_seller=self.settings.unspecified_seller_label,
        )

    def invoices(self) -> list[InvoiceRecord]:
        return daily_invoices(self.store.snapshot(), self.analysis_date)
