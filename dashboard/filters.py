from __future__ import annotations

import datetime

from .models import Customer, Order

ALL = "all"


def _matches_search(order: Order, customer: Customer | None, needle: str) -> bool:
    if not needle:
        return True
    haystack = [order.customer_name, order.customer_email, customer.phone if customer else ""]
    haystack.extend(p.product_name for p in order.products)
    return any(needle in value.lower() for value in haystack)


def filter_orders(orders: list[Order], customers: dict[str, Customer], search: str = "",
                  status: str = ALL, payment_method: str = ALL,
                  date: datetime.date | None = None) -> list[Order]:
    """Case-insensitive search plus exact status/payment/creation-day filters."""
    needle = search.strip().lower()
    result = []
    for order in orders:
        if status != ALL and order.status != status:
            continue
        if payment_method != ALL and order.payment_method != payment_method:
            continue
        if date is not None and order.created_at.date() != date:
            continue
        if not _matches_search(order, customers.get(order.customer_id), needle):
            continue
        result.append(order)
    return result


def payment_methods(orders: list[Order]) -> list[str]:
    return list(dict.fromkeys(o.payment_method for o in orders))
