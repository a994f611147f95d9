from __future__ import annotations

import json
import logging
import os
from typing import Any, Protocol

import requests

from sales_dashboard.normalization import build_record
from sales_dashboard.uploads import FileBlob
from schemas.invoice_schema import InvoiceRecord

logger = logging.getLogger(__name__)


class VisionClient(Protocol):
    def extract_json(self, content: bytes, mime_type: str, model_name: str, prompt: str) -> str:
        """Return raw model text output intended to be valid JSON."""


class ExtractionError(RuntimeError):
    def __init__(self, message: str, code: str = "extraction_failed") -> None:
        super().__init__(message)
        self.code = code


SYSTEM_PROMPT = "Return strict JSON only. No markdown or prose."

USER_EXTRACTION_PROMPT = (
    "Analyze this sales invoice and return one JSON object. "
    "Locate the line that names the SELLER or CASHIER and copy that name exactly into sellerName. "
    "If the invoice was paid with MIXED payment, split the amounts into "
    "amountPaidCash, amountPaidCard and amountPaidCredit. "
    "Extract every customer field and every product line. "
    "Compute amounts excluding VAT when they are not printed. "
    "Use the keys invoiceNumber, date (YYYY-MM-DD), customerName, customerTaxId, "
    "customerEmail, customerAddress, customerPhone, sellerName, paymentMethod, "
    "amountPaidCash, amountPaidCard, amountPaidCredit, "
    "products (name, quantity, unitPriceExclVAT, totalExclVAT), "
    "totalExclVAT, totalVAT and currency. Use null for unknown values."
)

CORRECTIVE_PROMPT = (
    "Your previous output was invalid. Return only one valid JSON object "
    "with no extra text."
)

INVOICE_RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "invoiceNumber": {"type": "STRING", "description": "Invoice number"},
        "date": {"type": "STRING", "description": "Invoice date (YYYY-MM-DD)"},
        "customerName": {"type": "STRING", "description": "Customer full name"},
        "customerTaxId": {"type": "STRING", "description": "Customer tax identifier"},
        "customerEmail": {"type": "STRING", "description": "Customer email if present"},
        "customerAddress": {"type": "STRING", "description": "Customer full address"},
        "customerPhone": {"type": "STRING", "description": "Customer phone number"},
        "sellerName": {"type": "STRING", "description": "Exact seller or cashier name"},
        "paymentMethod": {"type": "STRING", "description": "Payment method (mixed, cash, card)"},
        "amountPaidCash": {"type": "NUMBER", "description": "Amount paid in cash"},
        "amountPaidCard": {"type": "NUMBER", "description": "Amount paid by card"},
        "amountPaidCredit": {"type": "NUMBER", "description": "Amount left on credit"},
        "products": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "name": {"type": "STRING", "description": "Product or service name"},
                    "quantity": {"type": "NUMBER", "description": "Quantity"},
                    "unitPriceExclVAT": {"type": "NUMBER", "description": "Unit price excluding VAT"},
                    "totalExclVAT": {"type": "NUMBER", "description": "Line total excluding VAT"},
                },
                "required": ["name", "quantity", "unitPriceExclVAT", "totalExclVAT"],
            },
        },
        "totalExclVAT": {"type": "NUMBER", "description": "Invoice total excluding VAT"},
        "totalVAT": {"type": "NUMBER", "description": "Total VAT amount"},
        "currency": {"type": "STRING", "description": "Currency (USD, EUR, CLP, MXN)"},
    },
    "required": [
        "invoiceNumber",
        "date",
        "customerName",
        "customerTaxId",
        "products",
        "totalExclVAT",
    ],
}


def _parse_json_payload(raw_text: str) -> dict[str, Any]:
    try:
        payload = json.loads(raw_text)
    except json.JSONDecodeError as exc:
        raise ExtractionError("Model returned invalid JSON", code="invalid_json") from exc
    if not isinstance(payload, dict):
        raise ExtractionError("Model output must be a JSON object", code="invalid_json_shape")
    return payload


def _data_uri(content: bytes, mime_type: str) -> str:
    return FileBlob(name="", mime_type=mime_type, content=content).data_uri()


class GeminiVisionClient:
    provider_name = "gemini"

    def __init__(self, api_key: str) -> None:
        try:
            from google import genai
        except ImportError as exc:
            raise RuntimeError("google-genai package is required for Gemini extraction") from exc
        self._client = genai.Client(api_key=api_key)

    def extract_json(self, content: bytes, mime_type: str, model_name: str, prompt: str) -> str:
        from google.genai import types

        response = self._client.models.generate_content(
            model=model_name,
            contents=[
                prompt,
                types.Part.from_bytes(data=content, mime_type=mime_type),
            ],
            config=types.GenerateContentConfig(
                response_mime_type="application/json",
                response_schema=INVOICE_RESPONSE_SCHEMA,
            ),
        )
        text = getattr(response, "text", None)
        if not text:
            raise ExtractionError("Gemini returned empty response", code="empty_response")
        return text


class OpenAIVisionClient:
    provider_name = "openai"

    def __init__(self, api_key: str) -> None:
        try:
            from openai import OpenAI
        except ImportError as exc:
            raise RuntimeError("openai package is required for OpenAI extraction") from exc
        self._client = OpenAI(api_key=api_key)

    def extract_json(self, content: bytes, mime_type: str, model_name: str, prompt: str) -> str:
        if mime_type == "application/pdf":
            document: dict[str, Any] = {
                "type": "file",
                "file": {"filename": "invoice.pdf", "file_data": _data_uri(content, mime_type)},
            }
        else:
            document = {"type": "image_url", "image_url": {"url": _data_uri(content, mime_type)}}
        response = self._client.chat.completions.create(
            model=model_name,
            response_format={"type": "json_object"},
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": [{"type": "text", "text": prompt}, document]},
            ],
        )
        text = response.choices[0].message.content
        if not text:
            raise ExtractionError("OpenAI returned empty response", code="empty_response")
        return text


class MistralVisionClient:
    provider_name = "mistral"

    def __init__(self, api_key: str, base_url: str = "https://api.mistral.ai/v1") -> None:
        self._api_key = api_key
        self._base_url = base_url

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    def _ocr_text(self, content: bytes, mime_type: str) -> str:
        doc_type = "document_url" if mime_type == "application/pdf" else "image_url"
        response = requests.post(
            f"{self._base_url}/ocr",
            headers=self._headers(),
            json={
                "model": "mistral-ocr-latest",
                "document": {"type": doc_type, doc_type: _data_uri(content, mime_type)},
            },
            timeout=60,
        )
        if response.status_code >= 400:
            raise ExtractionError(
                f"Mistral OCR failed with status {response.status_code}: {response.text[:300]}",
                code="provider_request_failed",
            )
        pages = response.json().get("pages", [])
        chunks = [
            page["markdown"]
            for page in pages
            if isinstance(page.get("markdown"), str) and page["markdown"].strip()
        ]
        if not chunks:
            raise ExtractionError("Mistral OCR returned no text", code="empty_response")
        return "\n\n".join(chunks)

    def extract_json(self, content: bytes, mime_type: str, model_name: str, prompt: str) -> str:
        ocr_text = self._ocr_text(content, mime_type)
        response = requests.post(
            f"{self._base_url}/chat/completions",
            headers=self._headers(),
            json={
                "model": model_name,
                "response_format": {"type": "json_object"},
                "messages": [
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": f"{prompt}\n\nInvoice OCR text:\n{ocr_text}"},
                ],
            },
            timeout=60,
        )
        if response.status_code >= 400:
            raise ExtractionError(
                f"Mistral chat failed with status {response.status_code}: {response.text[:300]}",
                code="provider_request_failed",
            )
        choices = response.json().get("choices", [])
        if not choices:
            raise ExtractionError("Mistral chat returned no choices", code="empty_response")
        text = choices[0].get("message", {}).get("content")
        if not isinstance(text, str) or not text.strip():
            raise ExtractionError("Mistral chat returned empty content", code="empty_response")
        return text


class MultiProviderVisionClient:
    provider_name = "auto"

    def __init__(self, providers: list[tuple[str, VisionClient, str]]) -> None:
        self._providers = providers

    def extract_json(self, content: bytes, mime_type: str, model_name: str, prompt: str) -> str:
        errors: list[str] = []
        for provider_name, client, provider_model in self._providers:
            active_model = provider_model or model_name
            try:
                return client.extract_json(content, mime_type, active_model, prompt)
            except Exception as exc:  # noqa: BLE001
                logger.warning("Provider %s failed, trying next: %s", provider_name, exc)
                errors.append(f"{provider_name}: {exc}")
        raise ExtractionError(
            "All configured providers failed: " + "; ".join(errors),
            code="all_providers_failed",
        )


def _provider_model(provider: str, model_name: str) -> str:
    if model_name and model_name != "auto":
        return model_name
    defaults = {
        "gemini": os.getenv("GEMINI_MODEL", "gemini-2.5-flash"),
        "openai": os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
        "mistral": os.getenv("MISTRAL_MODEL", "pixtral-large-latest"),
    }
    return defaults.get(provider.strip().lower(), "gemini-2.5-flash")


def _client_for_provider(provider: str) -> VisionClient | None:
    normalized = provider.strip().lower()
    if normalized == "gemini":
        api_key = os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")
        return GeminiVisionClient(api_key=api_key) if api_key else None
    if normalized == "openai":
        api_key = os.getenv("OPENAI_API_KEY")
        return OpenAIVisionClient(api_key=api_key) if api_key else None
    if normalized == "mistral":
        api_key = os.getenv("MISTRAL_API_KEY")
        return MistralVisionClient(api_key=api_key) if api_key else None
    raise ExtractionError(f"Unsupported provider: {provider}", code="unsupported_provider")


def build_default_client(provider: str, model_name: str) -> tuple[VisionClient, str]:
    normalized = provider.strip().lower()
    if normalized == "auto":
        order = os.getenv("EXTRACTION_PROVIDER_ORDER", "gemini,openai,mistral").split(",")
        providers: list[tuple[str, VisionClient, str]] = []
        for name in [x.strip().lower() for x in order if x.strip()]:
            client = _client_for_provider(name)
            if client is None:
                continue
            providers.append((name, client, _provider_model(name, "auto")))
        if not providers:
            raise ExtractionError(
                "No provider API key found for configured fallback chain",
                code="missing_api_key",
            )
        return MultiProviderVisionClient(providers), "auto"

    client = _client_for_provider(normalized)
    if client is None:
        raise ExtractionError(f"Missing API key for provider: {normalized}", code="missing_api_key")
    return client, _provider_model(normalized, model_name)


def extract_invoice(
    blob: FileBlob,
    model_name: str = "auto",
    provider: str = "auto",
    client: VisionClient | None = None,
) -> dict[str, Any]:
    """Send one file to the vision model and return its JSON object.

    An invalid-JSON answer gets one corrective re-prompt before giving up.
    """
    if not blob.content:
        raise ExtractionError(f"File is empty: {blob.name}", code="empty_file")

    if client is None:
        active_client, active_model = build_default_client(provider, model_name)
    else:
        active_client, active_model = client, model_name

    first_text = active_client.extract_json(blob.content, blob.mime_type, active_model, USER_EXTRACTION_PROMPT)
    try:
        payload = _parse_json_payload(first_text)
    except ExtractionError as exc:
        if exc.code not in {"invalid_json", "invalid_json_shape"}:
            raise
        corrective_text = active_client.extract_json(
            blob.content, blob.mime_type, active_model, CORRECTIVE_PROMPT
        )
        payload = _parse_json_payload(corrective_text)

    payload["_provider"] = getattr(active_client, "provider_name", provider)
    return payload


class InvoiceExtractor:
    """Callable turning an uploaded file into an ``InvoiceRecord``.

    Returns ``None`` when the model finds no invoice number in the document.
    """

    def __init__(
        self,
        provider: str = "gemini",
        model_name: str = "auto",
        client: VisionClient | None = None,
    ) -> None:
        self._provider = provider
        self._model_name = model_name
        self._client = client

    def _active_client(self) -> tuple[VisionClient, str]:
        if self._client is None:
            self._client, self._model_name = build_default_client(self._provider, self._model_name)
        return self._client, self._model_name

    def __call__(self, blob: FileBlob) -> InvoiceRecord | None:
        client, model_name = self._active_client()
        raw = extract_invoice(blob, model_name=model_name, provider=self._provider, client=client)
        logger.info("Extraction provider=%s file=%s", raw.get("_provider"), blob.name)
        return build_record(raw)
