from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

SUPPORTED_PROVIDERS = ("auto", "gemini", "openai", "mistral")

DEFAULT_MIME_TYPES = (
    "image/jpeg",
    "image/png",
    "image/webp",
    "application/pdf",
)


@dataclass(frozen=True)
class Settings:
    store_path: str = "data/records.json"
    store_slot: str = "invoice_records"
    allowed_mime_types: tuple[str, ...] = DEFAULT_MIME_TYPES
    log_level: str = "INFO"
    extraction_provider: str = "gemini"
    extraction_model: str = "auto"
    unspecified_seller_label: str = "Unspecified"
    default_payment_label: str = "Cash"
    historical_baseline_path: str | None = None
    metrics_path: str = "logs/metrics.jsonl"

    @classmethod
    def from_env(cls) -> "Settings":
        provider = os.getenv("EXTRACTION_PROVIDER", "gemini").strip().lower()
        if provider not in SUPPORTED_PROVIDERS:
            raise ValueError(
                f"EXTRACTION_PROVIDER must be one of: {', '.join(SUPPORTED_PROVIDERS)}"
            )

        mime_env = os.getenv("ALLOWED_MIME_TYPES", ",".join(DEFAULT_MIME_TYPES))
        allowed_mimes = tuple(v.strip().lower() for v in mime_env.split(",") if v.strip())
        if not allowed_mimes:
            raise ValueError("ALLOWED_MIME_TYPES must contain at least one mime type")

        store_slot = os.getenv("STORE_SLOT", "invoice_records").strip()
        if not store_slot:
            raise ValueError("STORE_SLOT must not be empty")

        baseline_path = os.getenv("HISTORICAL_BASELINE_PATH")
        if baseline_path and not Path(baseline_path).exists():
            raise ValueError(f"HISTORICAL_BASELINE_PATH not found: {baseline_path}")

        unspecified = os.getenv("UNSPECIFIED_SELLER_LABEL", "Unspecified").strip()
        if not unspecified:
            raise ValueError("UNSPECIFIED_SELLER_LABEL must not be empty")

        return cls(
            store_path=os.getenv("STORE_PATH", "data/records.json"),
            store_slot=store_slot,
            allowed_mime_types=allowed_mimes,
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            extraction_provider=provider,
            extraction_model=os.getenv("EXTRACTION_MODEL", "auto").strip() or "auto",
            unspecified_seller_label=unspecified,
            default_payment_label=os.getenv("DEFAULT_PAYMENT_LABEL", "Cash").strip() or "Cash",
            historical_baseline_path=baseline_path or None,
            metrics_path=os.getenv("METRICS_PATH", "logs/metrics.jsonl"),
        )


def load_dotenv(path: str | Path = ".env") -> None:
    env_path = Path(path)
    if not env_path.exists():
        return
    for line in env_path.read_text(encoding="utf-8").splitlines():
        entry = line.strip()
        if not entry or entry.startswith("#") or "=" not in entry:
            continue
        key, value = entry.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        os.environ.setdefault(key, value)
