from __future__ import annotations

import argparse
import json
import logging
from datetime import date
from typing import Any

from sales_dashboard.aggregation import find_customer, payment_breakdown
from sales_dashboard.baseline import HistoricalBaseline
from sales_dashboard.config import Settings, load_dotenv
from sales_dashboard.extraction_service import InvoiceExtractor
from sales_dashboard.logger import configure_logging
from sales_dashboard.metrics import JsonlMetricsSink
from sales_dashboard.record_store import RecordStore
from sales_dashboard.session import DashboardSession
from sales_dashboard.uploads import FileBlob, mime_for_path


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def _build_session(settings: Settings, analysis_date: date) -> DashboardSession:
    baseline = (
        HistoricalBaseline.from_path(settings.historical_baseline_path)
        if settings.historical_baseline_path
        else HistoricalBaseline()
    )
    return DashboardSession(
        RecordStore(settings.store_path, settings.store_slot),
        extractor=InvoiceExtractor(
            provider=settings.extraction_provider,
            model_name=settings.extraction_model,
        ),
        settings=settings,
        baseline=baseline,
        analysis_date=analysis_date,
    )


def _load_blobs(paths: list[str]) -> list[FileBlob]:
    blobs: list[FileBlob] = []
    for path in paths:
        try:
            blobs.append(FileBlob.from_path(path))
        except OSError:
            logging.getLogger(__name__).exception("Cannot read upload %s", path)
            # keep it in the batch so the media-type filter still sees it
            blobs.append(FileBlob(name=path, mime_type=mime_for_path(path), content=b""))
    return blobs


def run_ingest(session: DashboardSession, paths: list[str], metrics_path: str) -> int:
    logger = logging.getLogger(__name__)
    result = session.upload(_load_blobs(paths))
    if result is None:
        logger.error("Upload rejected: %s", session.upload_error)
        return 1

    sink = JsonlMetricsSink(metrics_path)
    sink.emit_snapshot(session.metrics.snapshot(), stage="ingest")
    _print_json(
        {
            "processed": result.attempted,
            "total": result.total,
            "stored": [rec.invoice_number for rec in result.new_records],
            "noInvoice": result.no_invoice,
            "dateMismatch": result.date_mismatch,
            "duplicates": result.duplicates,
            "errorsIgnored": result.errors_ignored,
            "activeView": session.active_view,
        }
    )
    return 0


def run_invoices(session: DashboardSession) -> int:
    rows = []
    for rec in session.invoices():
        row = rec.to_json_dict()
        row["paymentBreakdown"] = [
            entry.model_dump(mode="json", by_alias=True, exclude_none=True)
            for entry in payment_breakdown(rec, default_label=session.settings.default_payment_label)
        ]
        rows.append(row)
    _print_json(rows)
    return 0


def run_customers(session: DashboardSession, tax_id: str | None) -> int:
    daily = session.stats().daily
    if tax_id is not None:
        customer = find_customer(daily, tax_id)
        if customer is None:
            logging.getLogger(__name__).error("No customer with tax id %s on %s", tax_id, daily.analysis_date)
            return 1
        _print_json(customer.model_dump(mode="json", by_alias=True, exclude_none=True))
        return 0
    _print_json([c.model_dump(mode="json", by_alias=True, exclude_none=True) for c in daily.customers])
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Invoice Sales Dashboard")
    subparsers = parser.add_subparsers(dest="command", required=True)

    def _with_date(sub: argparse.ArgumentParser) -> argparse.ArgumentParser:
        sub.add_argument(
            "--date",
            type=date.fromisoformat,
            default=date.today(),
            help="Analysis date (YYYY-MM-DD), defaults to today",
        )
        return sub

    ingest = _with_date(subparsers.add_parser("ingest", help="Upload invoice files"))
    ingest.add_argument("files", nargs="+")

    _with_date(subparsers.add_parser("stats", help="Daily summary statistics"))
    _with_date(subparsers.add_parser("invoices", help="Invoices of the analysis date"))
    customers = _with_date(subparsers.add_parser("customers", help="Customer directory of the analysis date"))
    customers.add_argument("--tax-id", default=None)
    subparsers.add_parser("annual", help="Monthly comparison 2023-2025")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    load_dotenv()
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    session = _build_session(settings, getattr(args, "date", date.today()))

    if args.command == "ingest":
        return run_ingest(session, args.files, settings.metrics_path)
    if args.command == "stats":
        session.select_view("dashboard")
        _print_json(session.stats().daily.model_dump(mode="json", by_alias=True, exclude_none=True))
        return 0
    if args.command == "invoices":
        session.select_view("history")
        return run_invoices(session)
    if args.command == "customers":
        session.select_view("customers")
        return run_customers(session, args.tax_id)
    if args.command == "annual":
        session.select_view("annual")
        _print_json([m.model_dump(mode="json", by_alias=True) for m in session.stats().annual])
        return 0
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
