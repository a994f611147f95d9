from __future__ import annotations

import re
import time
from datetime import datetime
from typing import Any
from uuid import uuid4

from schemas.invoice_schema import InvoiceRecord

_DATE_FORMATS = ("%Y-%m-%d", "%d-%m-%Y", "%d/%m/%Y", "%m/%d/%Y")
_COMMA_GROUPED = re.compile(r"-?\d{1,3}(,\d{3})+(\.\d+)?")
_DOT_GROUPED = re.compile(r"-?\d{1,3}(\.\d{3})+(,\d+)?")
_DECIMAL_COMMA = re.compile(r"-?\d+,\d{1,2}")


def _pick(data: dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data and data[key] not in (None, ""):
            return data[key]
    return default


def _clean_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _safe_float(value: Any, default: float | None = 0.0) -> float | None:
    if value is None or value == "":
        return default
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip()
    try:
        return float(text)
    except ValueError:
        pass
    # "1,250.50" groups with commas; "1.250,50" and "59,5" use a decimal comma
    if _COMMA_GROUPED.fullmatch(text):
        text = text.replace(",", "")
    elif _DOT_GROUPED.fullmatch(text):
        text = text.replace(".", "").replace(",", ".")
    elif _DECIMAL_COMMA.fullmatch(text):
        text = text.replace(",", ".")
    else:
        return default
    return float(text)


def normalize_date(value: Any) -> str | None:
    if not value:
        return None
    text = str(value).strip()
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).strftime("%Y-%m-%d")
        except ValueError:
            continue
    return None


def _normalize_products(raw: Any) -> list[dict[str, Any]]:
    if not isinstance(raw, list):
        return []
    products: list[dict[str, Any]] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        name = _clean_text(_pick(item, "name", "description"))
        quantity = _safe_float(_pick(item, "quantity", "qty"), None)
        unit_price = _safe_float(_pick(item, "unitPriceExclVAT", "unit_price_excl_vat"), None)
        line_total = _safe_float(_pick(item, "totalExclVAT", "total_excl_vat"), None)
        # name, quantity and both prices are mandatory per line
        if name is None or quantity is None or unit_price is None or line_total is None:
            continue
        products.append(
            {
                "name": name,
                "quantity": max(quantity, 0.0),
                "unitPriceExclVAT": unit_price,
                "totalExclVAT": line_total,
            }
        )
    return products


def invoice_number_of(raw: dict[str, Any]) -> str | None:
    return _clean_text(_pick(raw, "invoiceNumber", "invoice_number"))


def build_record(
    raw: dict[str, Any],
    *,
    record_id: str | None = None,
    timestamp_ms: int | None = None,
) -> InvoiceRecord | None:
    """Coerce a raw extraction payload into a validated ``InvoiceRecord``.

    Returns ``None`` when no invoice number was detected. Missing required
    fields surface as a pydantic ``ValidationError``.
    """
    invoice_number = invoice_number_of(raw)
    if invoice_number is None:
        return None

    raw_date = _pick(raw, "date", "invoiceDate", "invoice_date")
    payload: dict[str, Any] = {
        "id": record_id or uuid4().hex,
        "invoiceNumber": invoice_number,
        "date": normalize_date(raw_date) or raw_date,
        "timestamp": timestamp_ms if timestamp_ms is not None else int(time.time() * 1000),
        "customerName": _clean_text(_pick(raw, "customerName", "customer_name")),
        "customerTaxId": _clean_text(_pick(raw, "customerTaxId", "customer_tax_id")),
        "customerEmail": _clean_text(_pick(raw, "customerEmail", "customer_email")),
        "customerAddress": _clean_text(_pick(raw, "customerAddress", "customer_address")),
        "customerPhone": _clean_text(_pick(raw, "customerPhone", "customer_phone")),
        "sellerName": _clean_text(_pick(raw, "sellerName", "seller_name")),
        "paymentMethod": _clean_text(_pick(raw, "paymentMethod", "payment_method")),
        "amountPaidCash": _safe_float(_pick(raw, "amountPaidCash", "amount_paid_cash"), None),
        "amountPaidCard": _safe_float(_pick(raw, "amountPaidCard", "amount_paid_card"), None),
        "amountPaidCredit": _safe_float(_pick(raw, "amountPaidCredit", "amount_paid_credit"), None),
        "products": _normalize_products(_pick(raw, "products", default=[])),
        "totalExclVAT": _safe_float(_pick(raw, "totalExclVAT", "total_excl_vat"), None),
        "totalVAT": _safe_float(_pick(raw, "totalVAT", "total_vat"), 0.0),
        "currency": (_clean_text(_pick(raw, "currency")) or "").upper(),
    }
    return InvoiceRecord.model_validate(payload)
