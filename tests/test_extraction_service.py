from __future__ import annotations

import pytest

from sales_dashboard.extraction_service import (
    CORRECTIVE_PROMPT,
    USER_EXTRACTION_PROMPT,
    ExtractionError,
    InvoiceExtractor,
    MultiProviderVisionClient,
    extract_invoice,
)
from sales_dashboard.uploads import FileBlob

_VALID_INVOICE = (
    '{"invoiceNumber":"F-100","date":"2024-05-01","customerName":"Acme",'
    '"customerTaxId":"1-9","products":[],"totalExclVAT":100,"totalVAT":19}'
)


class _FakeVisionClient:
    def __init__(self, outputs: list[str]) -> None:
        self._outputs = outputs
        self.calls: list[tuple[str, str, str]] = []

    def extract_json(self, content: bytes, mime_type: str, model_name: str, prompt: str) -> str:
        self.calls.append((mime_type, model_name, prompt))
        if not self._outputs:
            raise RuntimeError("No outputs configured")
        return self._outputs.pop(0)


class _AlwaysFailClient:
    def extract_json(self, content: bytes, mime_type: str, model_name: str, prompt: str) -> str:
        _ = (content, mime_type, model_name, prompt)
        raise RuntimeError("provider down")


def _blob(mime_type: str = "image/jpeg") -> FileBlob:
    return FileBlob(name="invoice.jpg", mime_type=mime_type, content=b"img")


def test_extract_invoice_success_first_try() -> None:
    client = _FakeVisionClient(outputs=[_VALID_INVOICE])

    payload = extract_invoice(_blob(), model_name="gemini-2.5-flash", client=client)
    assert payload["invoiceNumber"] == "F-100"
    assert payload["_provider"] == "auto"
    assert client.calls == [("image/jpeg", "gemini-2.5-flash", USER_EXTRACTION_PROMPT)]


def test_extract_invoice_retries_once_on_invalid_json() -> None:
    client = _FakeVisionClient(outputs=["not json", _VALID_INVOICE])

    payload = extract_invoice(_blob("application/pdf"), client=client)
    assert payload["customerName"] == "Acme"
    assert [call[2] for call in client.calls] == [USER_EXTRACTION_PROMPT, CORRECTIVE_PROMPT]


def test_extract_invoice_fails_after_corrective_retry() -> None:
    client = _FakeVisionClient(outputs=["nope", "[1, 2]"])

    with pytest.raises(ExtractionError) as excinfo:
        extract_invoice(_blob(), client=client)
    assert excinfo.value.code == "invalid_json_shape"
    assert len(client.calls) == 2


def test_extract_invoice_rejects_empty_file() -> None:
    client = _FakeVisionClient(outputs=[_VALID_INVOICE])
    with pytest.raises(ExtractionError, match="File is empty"):
        extract_invoice(FileBlob(name="x.png", mime_type="image/png", content=b""), client=client)
    assert client.calls == []


def test_multi_provider_client_falls_back_to_next_provider() -> None:
    client = MultiProviderVisionClient(
        providers=[
            ("gemini", _AlwaysFailClient(), "gemini-2.5-flash"),
            ("openai", _FakeVisionClient(outputs=[_VALID_INVOICE]), "gpt-4o-mini"),
        ]
    )
    payload = extract_invoice(_blob(), client=client)
    assert payload["invoiceNumber"] == "F-100"


def test_multi_provider_client_reports_all_failures() -> None:
    client = MultiProviderVisionClient(
        providers=[("gemini", _AlwaysFailClient(), ""), ("mistral", _AlwaysFailClient(), "")]
    )
    with pytest.raises(ExtractionError, match="All configured providers failed") as excinfo:
        extract_invoice(_blob(), client=client)
    assert excinfo.value.code == "all_providers_failed"


def test_auto_provider_requires_any_key(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in ("GEMINI_API_KEY", "GOOGLE_API_KEY", "OPENAI_API_KEY", "MISTRAL_API_KEY"):
        monkeypatch.delenv(key, raising=False)

    with pytest.raises(ExtractionError, match="No provider API key found"):
        extract_invoice(_blob(), provider="auto")


def test_named_provider_without_key_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("MISTRAL_API_KEY", raising=False)
    with pytest.raises(ExtractionError) as excinfo:
        extract_invoice(_blob(), provider="mistral")
    assert excinfo.value.code == "missing_api_key"


def test_invoice_extractor_builds_record() -> None:
    extractor = InvoiceExtractor(client=_FakeVisionClient(outputs=[_VALID_INVOICE]))
    record = extractor(_blob())

    assert record is not None
    assert record.invoice_number == "F-100"
    assert record.total_vat == 19.0
    assert record.id


def test_invoice_extractor_returns_none_without_invoice_number() -> None:
    extractor = InvoiceExtractor(
        client=_FakeVisionClient(outputs=['{"invoiceNumber":"","customerName":"Acme"}'])
    )
    assert extractor(_blob()) is None
