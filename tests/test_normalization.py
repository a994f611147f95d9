from __future__ import annotations

from datetime import date

import pytest
from pydantic import ValidationError

from sales_dashboard.normalization import build_record, normalize_date


def _raw(**overrides: object) -> dict[str, object]:
    raw: dict[str, object] = {
        "invoiceNumber": " F-100 ",
        "date": "2024-05-01",
        "customerName": "Acme Ltda",
        "customerTaxId": "76.111.222-3",
        "products": [
            {"name": "Cable", "quantity": 2, "unitPriceExclVAT": 10, "totalExclVAT": 20},
        ],
        "totalExclVAT": 100,
        "totalVAT": 19,
        "currency": "clp",
    }
    raw.update(overrides)
    return raw


def test_build_record_returns_none_without_invoice_number() -> None:
    assert build_record(_raw(invoiceNumber=None)) is None
    assert build_record(_raw(invoiceNumber="   ")) is None


def test_build_record_assigns_identity_and_normalizes_fields() -> None:
    record = build_record(_raw(customerEmail="", sellerName=" Ana "), record_id="abc", timestamp_ms=42)

    assert record is not None
    assert record.id == "abc"
    assert record.timestamp == 42
    assert record.invoice_number == "F-100"
    assert record.date == date(2024, 5, 1)
    assert record.customer_email is None
    assert record.seller_name == "Ana"
    assert record.currency == "CLP"
    assert record.products[0].total_excl_vat == 20.0


def test_build_record_generates_unique_ids() -> None:
    first = build_record(_raw())
    second = build_record(_raw())
    assert first is not None and second is not None
    assert first.id != second.id


def test_build_record_coerces_numeric_strings() -> None:
    record = build_record(_raw(totalExclVAT="1,250.50", amountPaidCash="500", totalVAT=None))

    assert record is not None
    assert record.total_excl_vat == pytest.approx(1250.5)
    assert record.amount_paid_cash == 500.0
    assert record.total_vat == 0.0


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("59,5", 59.5),
        ("1.250,50", 1250.5),
        ("1,250.50", 1250.5),
        ("1.250.000", 1250000.0),
        ("1,250", 1250.0),
    ],
)
def test_build_record_reads_grouped_and_decimal_comma_amounts(value: str, expected: float) -> None:
    record = build_record(_raw(totalExclVAT=value, amountPaidCash=value))

    assert record is not None
    assert record.total_excl_vat == pytest.approx(expected)
    assert record.amount_paid_cash == pytest.approx(expected)


def test_build_record_rejects_ambiguous_amount() -> None:
    with pytest.raises(ValidationError):
        build_record(_raw(totalExclVAT="12,34,5"))


def test_build_record_skips_incomplete_products() -> None:
    record = build_record(
        _raw(products=[{"name": "Cable", "quantity": 1}, "junk", {"name": "Plug", "quantity": 1,
                                                                 "unitPriceExclVAT": 5, "totalExclVAT": 5}])
    )
    assert record is not None
    assert [p.name for p in record.products] == ["Plug"]


def test_build_record_requires_total_and_customer() -> None:
    with pytest.raises(ValidationError):
        build_record(_raw(totalExclVAT=None))
    with pytest.raises(ValidationError):
        build_record(_raw(customerTaxId=None))


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("2024-05-01", "2024-05-01"),
        ("01-05-2024", "2024-05-01"),
        ("01/05/2024", "2024-05-01"),
        ("garbage", None),
        (None, None),
    ],
)
def test_normalize_date(value: object, expected: str | None) -> None:
    assert normalize_date(value) == expected
