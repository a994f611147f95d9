from __future__ import annotations

from datetime import date

from pydantic import Field

from schemas.invoice_schema import CamelModel


class Customer(CamelModel):
    name: str
    tax_id: str
    email: str | None = None
    address: str | None = None
    phone: str | None = None
    total_spent_excl_vat: float = Field(alias="totalSpentExclVAT")
    purchase_count: int
    total_items_bought: float


class ProductSales(CamelModel):
    name: str
    qty: float
    total: float


class SellerSales(CamelModel):
    name: str
    total: float
    share_pct: float = 0.0


class PaymentBreakdownEntry(CamelModel):
    label: str
    amount: float | None = None


class MonthlyComparison(CamelModel):
    month: str
    year_2023: float = Field(alias="year2023Amount")
    year_2024: float = Field(alias="year2024Amount")
    year_2025: float = Field(alias="year2025Amount")


class DailyStats(CamelModel):
    analysis_date: date
    total_sales: float = 0.0
    total_contado: float = 0.0
    total_credito: float = 0.0
    daily_items_sold: float = 0.0
    customer_count: int = 0
    best_seller: str = ""
    total_items: int = 0
    customers: list[Customer] = Field(default_factory=list)
    products: list[ProductSales] = Field(default_factory=list)
    sales_by_seller: list[SellerSales] = Field(default_factory=list)


class StatsBundle(CamelModel):
    daily: DailyStats
    annual: list[MonthlyComparison] = Field(default_factory=list)
