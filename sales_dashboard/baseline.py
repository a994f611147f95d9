from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

MONTH_LABELS = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)

COMPARISON_YEARS = (2023, 2024, 2025)
LIVE_YEAR = 2025

DEFAULT_MONTHLY_SALES: dict[int, tuple[float, ...]] = {
    2023: (
        11588, 16959, 22744, 19377, 18150, 34948,
        27631, 31368, 46220, 34691, 37323, 56573,
    ),
    2024: (
        24053.81, 29824.9, 46864.61, 29174.39, 23567.47, 33548,
        35546.94, 39585.97, 32083.62, 40845.41, 36009.6, 66273.31,
    ),
    2025: (
        29353.24, 29143.16, 39100, 33974.687, 50492.431, 42986.1575,
        50007.7, 52563.337, 60771.15, 39950.799, 68875.53, 70396.592,
    ),
}


@dataclass(frozen=True)
class HistoricalBaseline:
    """Monthly sales figures recorded before invoices were digitized."""

    monthly_sales: dict[int, tuple[float, ...]] = field(
        default_factory=lambda: dict(DEFAULT_MONTHLY_SALES)
    )

    def __post_init__(self) -> None:
        for year in COMPARISON_YEARS:
            figures = self.monthly_sales.get(year)
            if figures is None:
                raise ValueError(f"Historical baseline is missing year {year}")
            if len(figures) != 12:
                raise ValueError(f"Historical baseline for {year} must have 12 monthly figures")

    def amount(self, year: int, month_index: int) -> float:
        return float(self.monthly_sales[year][month_index])

    @classmethod
    def from_path(cls, path: str | Path) -> "HistoricalBaseline":
        payload: Any = json.loads(Path(path).read_text(encoding="utf-8"))
        if not isinstance(payload, dict):
            raise ValueError(f"Historical baseline file must hold a JSON object keyed by year: {path}")
        monthly: dict[int, tuple[float, ...]] = dict(DEFAULT_MONTHLY_SALES)
        for year, figures in payload.items():
            if not str(year).isdigit():
                raise ValueError(f"Historical baseline year must be numeric, got {year!r}")
            if not isinstance(figures, list) or not all(
                isinstance(x, (int, float)) for x in figures
            ):
                raise ValueError(f"Historical baseline for {year} must be a list of numbers")
            monthly[int(year)] = tuple(float(x) for x in figures)
        return cls(monthly_sales=monthly)
