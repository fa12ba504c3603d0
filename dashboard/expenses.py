"""
Expense and profit report derived from products, services and bookings.

Costs follow a fixed heuristic rather than recorded cost data:

* product cost = unit cost x total stock
* service cost = listed price x ``CostModel.service_cost_ratio``
* appointment cost = completed booking amount x ``CostModel.booking_cost_ratio``

Revenue is the sum of completed bookings. Yearly product and service cost is
spread evenly over the twelve month buckets; it is not attributed to actual
purchase dates, so the month view is an approximation kept for compatibility.

Every breakdown row is rounded to cents on its own, like the totals, so the
branch-wise rows can differ from the total by up to one cent per row.
"""
from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass, field

from .config import BOOKING_COST_RATIO, SERVICE_COST_RATIO
from .firestore_db import DocumentStore
from .models import (Booking, BranchExpense, CategoryExpense, ExpenseSummary,
                     MonthExpense, Product, Service)

logger = logging.getLogger(__name__)

MONTHS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
          "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
ALL = "all"


@dataclass(frozen=True)
class CostModel:
    service_cost_ratio: float = SERVICE_COST_RATIO
    booking_cost_ratio: float = BOOKING_COST_RATIO

    def product_cost(self, product: Product) -> float:
        return product.cost * product.total_stock

    def service_cost(self, service: Service) -> float:
        return service.price * self.service_cost_ratio

    def booking_cost(self, booking: Booking) -> float:
        return booking.total_amount * self.booking_cost_ratio


DEFAULT_COST_MODEL = CostModel()


@dataclass
class ExpenseData:
    products: list[Product] = field(default_factory=list)
    services: list[Service] = field(default_factory=list)
    bookings: list[Booking] = field(default_factory=list)


def load_expense_data(db: DocumentStore, previous: ExpenseData | None = None) -> ExpenseData:
    """Fetch the three collections independently.

    A failing collection keeps its previous value (empty on first load); the
    others are still refreshed.
    """
    previous = previous or ExpenseData()
    data = ExpenseData(previous.products, previous.services, previous.bookings)
    try:
        docs = db.get("products", where=[("status", "==", "active")])
        data.products = [Product.from_document(d.id, d.data) for d in docs]
    except Exception:
        logger.exception("Error fetching products")
    try:
        docs = db.get("services", where=[("status", "==", "active")])
        data.services = [Service.from_document(d.id, d.data) for d in docs]
    except Exception:
        logger.exception("Error fetching services")
    try:
        docs = db.get("bookings", order_by="createdAt", descending=True)
        data.bookings = [Booking.from_document(d.id, d.data) for d in docs]
    except Exception:
        logger.exception("Error fetching bookings")
    return data


def _round(value: float) -> float:
    return round(value, 2)


def _unique(values) -> list:
    # insertion-ordered de-duplication
    return list(dict.fromkeys(values))


def branch_options(products: list[Product], services: list[Service]) -> list[str]:
    return _unique([b for p in products for b in p.branch_names] +
                   [b for s in services for b in s.branch_names])


def _booking_in_branch(booking: Booking, services_by_id: dict[str, Service], branch: str) -> bool:
    service = services_by_id.get(booking.service_id)
    # bookings of deleted services have no branch
    return service is not None and branch in service.branch_names


def _completed(bookings):
    return [b for b in bookings if b.status == "completed"]


def _month_wise(products_cost: float, services_cost: float, bookings: list[Booking],
                year: int, cost_model: CostModel) -> list[MonthExpense]:
    rows = []
    per_month_products = products_cost / 12
    per_month_services = services_cost / 12
    for index, month in enumerate(MONTHS, start=1):
        month_bookings = [
            b for b in _completed(bookings)
            if b.created_at is not None
            and b.created_at.year == year and b.created_at.month == index
        ]
        appointments_cost = sum(cost_model.booking_cost(b) for b in month_bookings)
        revenue = sum(b.total_amount for b in month_bookings)
        total_cost = per_month_products + per_month_services + appointments_cost
        rows.append(MonthExpense(
            month=month,
            products_cost=_round(per_month_products),
            services_cost=_round(per_month_services),
            appointments_cost=_round(appointments_cost),
            total_cost=_round(total_cost),
            revenue=_round(revenue),
            profit=_round(revenue - total_cost),
        ))
    return rows


def _branch_wise(products: list[Product], services: list[Service], bookings: list[Booking],
                 cost_model: CostModel) -> list[BranchExpense]:
    services_by_id = {s.id: s for s in services}
    rows = []
    for branch in branch_options(products, services):
        products_cost = sum(cost_model.product_cost(p) for p in products if branch in p.branch_names)
        services_cost = sum(cost_model.service_cost(s) for s in services if branch in s.branch_names)
        appointments_cost = sum(
            cost_model.booking_cost(b) for b in _completed(bookings)
            if _booking_in_branch(b, services_by_id, branch)
        )
        rows.append(BranchExpense(
            branch=branch,
            products_cost=_round(products_cost),
            services_cost=_round(services_cost),
            appointments_cost=_round(appointments_cost),
            total_cost=_round(products_cost + services_cost + appointments_cost),
        ))
    return rows


def _category_wise(products: list[Product], services: list[Service],
                   cost_model: CostModel) -> list[CategoryExpense]:
    categories = _unique([p.category for p in products] + [s.category for s in services])
    rows = []
    for category in filter(None, categories):
        products_cost = sum(cost_model.product_cost(p) for p in products if p.category == category)
        services_cost = sum(cost_model.service_cost(s) for s in services if s.category == category)
        rows.append(CategoryExpense(
            category=category,
            products_cost=_round(products_cost),
            services_cost=_round(services_cost),
            total_cost=_round(products_cost + services_cost),
        ))
    return rows


def calculate_expense_summary(products: list[Product], services: list[Service],
                              bookings: list[Booking], branch: str = ALL, month: str = ALL,
                              year: int | None = None,
                              cost_model: CostModel = DEFAULT_COST_MODEL) -> ExpenseSummary:
    """Recompute the whole report from scratch.

    `branch` narrows the totals, month-wise and category-wise views; the
    branch-wise view always covers every branch. `month` (``Jan``..``Dec``)
    replaces the totals with that month's bucket.
    """
    if month != ALL and month not in MONTHS:
        raise ValueError(f"Unknown month: {month!r}")
    year = year or datetime.date.today().year

    if branch == ALL:
        f_products, f_services, f_bookings = products, services, bookings
    else:
        services_by_id = {s.id: s for s in services}
        f_products = [p for p in products if branch in p.branch_names]
        f_services = [s for s in services if branch in s.branch_names]
        f_bookings = [b for b in bookings if _booking_in_branch(b, services_by_id, branch)]

    completed = _completed(f_bookings)
    products_cost = sum(cost_model.product_cost(p) for p in f_products)
    services_cost = sum(cost_model.service_cost(s) for s in f_services)
    appointments_cost = sum(cost_model.booking_cost(b) for b in completed)
    revenue = sum(b.total_amount for b in completed)

    month_wise = _month_wise(products_cost, services_cost, f_bookings, year, cost_model)

    if month != ALL:
        index = MONTHS.index(month) + 1
        in_month = [b for b in completed
                    if b.created_at is not None
                    and b.created_at.year == year and b.created_at.month == index]
        products_cost /= 12
        services_cost /= 12
        appointments_cost = sum(cost_model.booking_cost(b) for b in in_month)
        revenue = sum(b.total_amount for b in in_month)

    expenses = products_cost + services_cost + appointments_cost
    profit = revenue - expenses
    margin = (profit / revenue) * 100 if revenue > 0 else 0.0

    return ExpenseSummary(
        total_products_cost=_round(products_cost),
        total_services_cost=_round(services_cost),
        total_appointments_cost=_round(appointments_cost),
        total_expenses=_round(expenses),
        total_revenue=_round(revenue),
        total_profit=_round(profit),
        profit_margin=margin,
        month_wise=month_wise,
        branch_wise=_branch_wise(products, services, bookings, cost_model),
        category_wise=_category_wise(f_products, f_services, cost_model),
    )
