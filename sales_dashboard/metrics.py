from __future__ import annotations

import json
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

INGESTION_COUNTERS = (
    "files_attempted_total",
    "records_stored_total",
    "no_invoice_total",
    "date_mismatch_total",
    "duplicate_total",
    "extraction_failed_total",
)


def _percentile(values: list[int], fraction: float) -> int:
    if not values:
        return 0
    ordered = sorted(values)
    return ordered[int(fraction * (len(ordered) - 1))]


@dataclass
class MetricsCollector:
    """Per-session ingestion counters plus extraction latencies."""

    counters: Counter[str] = field(default_factory=Counter)
    latencies_ms: list[int] = field(default_factory=list)

    def increment(self, name: str, value: int = 1) -> None:
        if name not in INGESTION_COUNTERS:
            raise ValueError(f"Unknown ingestion counter: {name}")
        self.counters[name] += value

    def observe_latency(self, value_ms: int) -> None:
        self.latencies_ms.append(value_ms)

    def snapshot(self) -> dict[str, Any]:
        values: dict[str, Any] = {name: self.counters[name] for name in INGESTION_COUNTERS}
        values["extraction_latency_p95_ms"] = _percentile(self.latencies_ms, 0.95)
        return values


class JsonlMetricsSink:
    """Appends one JSON line per metric to a local file."""

    def __init__(self, path: str | Path = "logs/metrics.jsonl") -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def emit_snapshot(self, snapshot: dict[str, Any], *, stage: str) -> None:
        recorded_at = datetime.now(timezone.utc).isoformat()
        with self._path.open("a", encoding="utf-8") as fh:
            for name, value in snapshot.items():
                line = {"recorded_at_utc": recorded_at, "stage": stage, "metric": name, "value": value}
                fh.write(json.dumps(line, ensure_ascii=True) + "\n")
