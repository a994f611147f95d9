from __future__ import annotations

import json
from datetime import date
from pathlib import Path
from typing import Any

import pytest

from sales_dashboard.aggregation import build_stats_bundle, compute_annual_comparison
from sales_dashboard.baseline import DEFAULT_MONTHLY_SALES, HistoricalBaseline
from schemas.invoice_schema import InvoiceRecord


def _record(invoice_number: str, day: str, total: float) -> InvoiceRecord:
    payload: dict[str, Any] = {
        "id": invoice_number.lower(),
        "invoiceNumber": invoice_number,
        "date": day,
        "timestamp": 0,
        "customerName": "Acme",
        "customerTaxId": "1-9",
        "totalExclVAT": total,
    }
    return InvoiceRecord.model_validate(payload)


def test_series_has_twelve_months_with_baseline_values() -> None:
    series = compute_annual_comparison([], HistoricalBaseline())

    assert len(series) == 12
    assert series[0].month == "Jan"
    assert series[11].month == "Dec"
    assert [m.year_2023 for m in series] == [float(x) for x in DEFAULT_MONTHLY_SALES[2023]]
    assert [m.year_2024 for m in series] == [float(x) for x in DEFAULT_MONTHLY_SALES[2024]]
    assert [m.year_2025 for m in series] == [float(x) for x in DEFAULT_MONTHLY_SALES[2025]]


def test_2025_records_are_added_to_their_month() -> None:
    series = compute_annual_comparison([_record("M1", "2025-03-15", 1000.0)], HistoricalBaseline())

    assert series[2].year_2025 == pytest.approx(40100.0)
    assert series[3].year_2025 == pytest.approx(33974.687)


def test_records_of_other_years_do_not_change_the_series() -> None:
    records = [_record("X1", "2024-03-15", 500.0), _record("X2", "2026-03-15", 700.0)]
    series = compute_annual_comparison(records, HistoricalBaseline())
    assert series[2].year_2024 == pytest.approx(46864.61)
    assert series[2].year_2025 == pytest.approx(39100.0)


def test_annual_series_uses_all_records_not_only_the_analysis_day() -> None:
    records = [_record("M1", "2025-03-15", 1000.0), _record("M2", "2025-03-16", 250.0)]
    bundle = build_stats_bundle(records, date(2025, 3, 15), HistoricalBaseline())

    assert bundle.daily.total_sales == pytest.approx(1000.0)
    assert bundle.annual[2].year_2025 == pytest.approx(39100.0 + 1250.0)


def test_baseline_from_path_overrides_one_year(tmp_path: Path) -> None:
    path = tmp_path / "baseline.json"
    path.write_text(json.dumps({"2023": [1] * 12}), encoding="utf-8")

    baseline = HistoricalBaseline.from_path(path)
    assert baseline.amount(2023, 5) == 1.0
    assert baseline.amount(2024, 0) == pytest.approx(24053.81)


def test_baseline_rejects_wrong_month_count(tmp_path: Path) -> None:
    path = tmp_path / "baseline.json"
    path.write_text(json.dumps({"2024": [1, 2, 3]}), encoding="utf-8")
    with pytest.raises(ValueError, match="12 monthly figures"):
        HistoricalBaseline.from_path(path)


@pytest.mark.parametrize(
    ("content", "message"),
    [
        ([[1] * 12], "JSON object keyed by year"),
        ({"last-year": [1] * 12}, "must be numeric"),
    ],
)
def test_baseline_rejects_malformed_file(tmp_path: Path, content: Any, message: str) -> None:
    path = tmp_path / "baseline.json"
    path.write_text(json.dumps(content), encoding="utf-8")
    with pytest.raises(ValueError, match=message):
        HistoricalBaseline.from_path(path)
