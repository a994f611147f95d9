from __future__ import annotations

import datetime as dt

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class Product(CamelModel):
    name: str
    quantity: float = Field(ge=0)
    unit_price_excl_vat: float = Field(alias="unitPriceExclVAT")
    total_excl_vat: float = Field(alias="totalExclVAT")


class InvoiceRecord(CamelModel):
    id: str = Field(min_length=1)
    invoice_number: str = Field(min_length=1)
    date: dt.date
    timestamp: int = Field(ge=0)
    customer_name: str
    customer_tax_id: str
    customer_email: str | None = None
    customer_address: str | None = None
    customer_phone: str | None = None
    seller_name: str | None = None
    payment_method: str | None = None
    amount_paid_cash: float | None = None
    amount_paid_card: float | None = None
    amount_paid_credit: float | None = None
    products: list[Product] = Field(default_factory=list)
    total_excl_vat: float = Field(ge=0, alias="totalExclVAT")
    total_vat: float = Field(default=0.0, alias="totalVAT")
    currency: str = ""

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
