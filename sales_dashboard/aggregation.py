"""Pure reductions from the invoice record set to dashboard statistics.

Every function here takes the records and the analysis date explicitly and
returns fresh models; input records are never modified.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable, Sequence

from sales_dashboard.baseline import LIVE_YEAR, MONTH_LABELS, HistoricalBaseline
from schemas.invoice_schema import InvoiceRecord
from schemas.stats_schema import (
    Customer,
    DailyStats,
    MonthlyComparison,
    PaymentBreakdownEntry,
    ProductSales,
    SellerSales,
    StatsBundle,
)

DEFAULT_UNSPECIFIED_SELLER = "Unspecified"


@dataclass
class _CustomerTotals:
    name: str
    tax_id: str
    email: str | None
    address: str | None
    phone: str | None
    total_spent: float = 0.0
    purchase_count: int = 0
    items_bought: float = 0.0


@dataclass
class _ProductTotals:
    qty: float = 0.0
    total: float = 0.0


def daily_invoices(records: Iterable[InvoiceRecord], analysis_date: date) -> list[InvoiceRecord]:
    return [rec for rec in records if rec.date == analysis_date]


def net_factor(record: InvoiceRecord) -> float:
    total_with_vat = record.total_excl_vat + (record.total_vat or 0.0)
    if total_with_vat > 0:
        return record.total_excl_vat / total_with_vat
    return 1.0


def _items_in(record: InvoiceRecord) -> float:
    return sum(p.quantity for p in record.products)


def seller_key(record: InvoiceRecord, unspecified: str = DEFAULT_UNSPECIFIED_SELLER) -> str:
    return (record.seller_name or "").strip() or unspecified


def compute_daily_stats(
    records: Sequence[InvoiceRecord],
    analysis_date: date,
    *,
    unspecified_seller: str = DEFAULT_UNSPECIFIED_SELLER,
) -> DailyStats:
    daily = daily_invoices(records, analysis_date)

    total_sales = 0.0
    total_contado = 0.0
    total_credito = 0.0
    items_sold = 0.0
    customers: dict[str, _CustomerTotals] = {}
    products: dict[str, _ProductTotals] = {}
    sellers: dict[str, float] = {}

    for rec in daily:
        items = _items_in(rec)
        items_sold += items
        total_sales += rec.total_excl_vat

        factor = net_factor(rec)
        total_contado += (rec.amount_paid_cash or 0.0) * factor
        total_credito += ((rec.amount_paid_card or 0.0) + (rec.amount_paid_credit or 0.0)) * factor

        acc = customers.get(rec.customer_tax_id)
        if acc is None:
            acc = _CustomerTotals(
                name=rec.customer_name,
                tax_id=rec.customer_tax_id,
                email=rec.customer_email,
                address=rec.customer_address,
                phone=rec.customer_phone,
            )
            customers[rec.customer_tax_id] = acc
        acc.total_spent += rec.total_excl_vat
        acc.purchase_count += 1
        acc.items_bought += items
        # absence never clears a known contact field
        if rec.customer_email:
            acc.email = rec.customer_email
        if rec.customer_address:
            acc.address = rec.customer_address
        if rec.customer_phone:
            acc.phone = rec.customer_phone

        for product in rec.products:
            line = products.setdefault(product.name, _ProductTotals())
            line.qty += product.quantity
            line.total += product.total_excl_vat

        seller = seller_key(rec, unspecified_seller)
        sellers[seller] = sellers.get(seller, 0.0) + rec.total_excl_vat

    customer_list = sorted(
        (
            Customer(
                name=c.name,
                tax_id=c.tax_id,
                email=c.email,
                address=c.address,
                phone=c.phone,
                total_spent_excl_vat=c.total_spent,
                purchase_count=c.purchase_count,
                total_items_bought=c.items_bought,
            )
            for c in customers.values()
        ),
        key=lambda c: c.total_spent_excl_vat,
        reverse=True,
    )
    product_list = sorted(
        (ProductSales(name=name, qty=p.qty, total=p.total) for name, p in products.items()),
        key=lambda p: p.qty,
        reverse=True,
    )
    seller_list = sorted(
        (
            SellerSales(
                name=name,
                total=total,
                share_pct=(total / total_sales * 100) if total_sales > 0 else 0.0,
            )
            for name, total in sellers.items()
        ),
        key=lambda s: s.total,
        reverse=True,
    )

    return DailyStats(
        analysis_date=analysis_date,
        total_sales=total_sales,
        total_contado=total_contado,
        total_credito=total_credito,
        daily_items_sold=items_sold,
        customer_count=len(customers),
        best_seller=product_list[0].name if product_list else "",
        total_items=len(daily),
        customers=customer_list,
        products=product_list,
        sales_by_seller=seller_list,
    )


def compute_annual_comparison(
    records: Iterable[InvoiceRecord],
    baseline: HistoricalBaseline,
) -> list[MonthlyComparison]:
    live_sales = [0.0] * 12
    for rec in records:
        if rec.date.year == LIVE_YEAR:
            live_sales[rec.date.month - 1] += rec.total_excl_vat

    return [
        MonthlyComparison(
            month=label[:3],
            year_2023=baseline.amount(2023, index),
            year_2024=baseline.amount(2024, index),
            year_2025=baseline.amount(LIVE_YEAR, index) + live_sales[index],
        )
        for index, label in enumerate(MONTH_LABELS)
    ]


def build_stats_bundle(
    records: Sequence[InvoiceRecord],
    analysis_date: date,
    baseline: HistoricalBaseline,
    *,
    unspecified_seller: str = DEFAULT_UNSPECIFIED_SELLER,
) -> StatsBundle:
    return StatsBundle(
        daily=compute_daily_stats(records, analysis_date, unspecified_seller=unspecified_seller),
        annual=compute_annual_comparison(records, baseline),
    )


def payment_breakdown(record: InvoiceRecord, *, default_label: str = "Cash") -> list[PaymentBreakdownEntry]:
    entries: list[PaymentBreakdownEntry] = []
    if record.amount_paid_cash and record.amount_paid_cash > 0:
        entries.append(PaymentBreakdownEntry(label="cash", amount=record.amount_paid_cash))
    if record.amount_paid_card and record.amount_paid_card > 0:
        entries.append(PaymentBreakdownEntry(label="card", amount=record.amount_paid_card))
    if entries:
        return entries
    return [PaymentBreakdownEntry(label=record.payment_method or default_label)]


def find_customer(stats: DailyStats, tax_id: str) -> Customer | None:
    for customer in stats.customers:
        if customer.tax_id == tax_id:
            return customer
    return None
