"""
In-memory order cache with derived statistics.

`OrdersStore` owns the orders/customers state for the admin dashboard. Reads
replace the whole state; every read, push or local status update takes a ticket
when it starts. Results older than the last applied ticket are dropped and only
the newest read may report a failure, so a slow fetch can never overwrite
fresher data or put an error over it.
"""
from __future__ import annotations

import datetime
import logging
from collections.abc import Iterable
from threading import Lock

from pydantic import BaseModel, Field

from .errors import InvalidStatusError, OrderUpdateError
from .events import EventStream, Subscription
from .firestore_db import Document, DocumentStore
from .models import Customer, Order, OrderStats, OrderStatus, utcnow

logger = logging.getLogger(__name__)

ORDERS = "orders"
CUSTOMERS = "customers"

LOAD_ERROR_MESSAGE = "Failed to load orders. Please try again."


def _local_day(dt: datetime.datetime) -> datetime.date:
    return dt.astimezone().date()


def calculate_stats(orders: Iterable[Order], today: datetime.date | None = None,
                    active_customers: int = 0) -> OrderStats:
    """Per-status counts, delivered revenue and today's order count."""
    today = today or datetime.date.today()
    stats = OrderStats(active_customers=active_customers)
    for order in orders:
        stats.total += 1
        status = OrderStatus(order.status).value
        setattr(stats, status, getattr(stats, status) + 1)
        if status == OrderStatus.DELIVERED.value:
            stats.total_revenue += order.total_amount
        if _local_day(order.created_at) == today:
            stats.today_orders += 1
    return stats


class OrdersState(BaseModel):
    orders: list[Order] = Field(default_factory=list)
    customers: dict[str, Customer] = Field(default_factory=dict)
    is_loading: bool = False
    error: str | None = None
    stats: OrderStats = Field(default_factory=OrderStats)


class OrdersStore:
    def __init__(self, db: DocumentStore):
        self._db = db
        self._state = OrdersState()
        self._lock = Lock()
        self._issued = 0
        self._applied = 0
        self._in_flight = 0
        self._customers_issued = 0
        self._customers_applied = 0
        self.changes = EventStream("orders")

    # -- reads -------------------------------------------------------------

    @property
    def state(self) -> OrdersState:
        with self._lock:
            return self._state.model_copy()

    @property
    def orders(self) -> list[Order]:
        return self.state.orders

    @property
    def customers(self) -> dict[str, Customer]:
        return self.state.customers

    @property
    def stats(self) -> OrderStats:
        return self.state.stats

    def customer_for(self, order: Order) -> Customer | None:
        return self.customers.get(order.customer_id)

    # -- operations --------------------------------------------------------

    def _ticket(self) -> int:
        with self._lock:
            self._issued += 1
            return self._issued

    def fetch_orders(self) -> None:
        ticket = self._ticket()
        with self._lock:
            self._in_flight += 1
            self._state.is_loading = True
            self._state.error = None
        try:
            docs = self._db.get(ORDERS, order_by="createdAt", descending=True)
            orders = [Order.from_document(d.id, d.data) for d in docs]
        except Exception:
            logger.exception("Error fetching orders")
            with self._lock:
                self._finish_fetch()
                if ticket < self._issued:
                    # a newer read or update has been issued since
                    logger.debug("Ignoring failure of stale orders read %d", ticket)
                    return
                self._state.error = LOAD_ERROR_MESSAGE
            self._publish()
            return
        self._apply_orders(ticket, orders, from_fetch=True)
        self.fetch_customers()

    def fetch_customers(self) -> None:
        with self._lock:
            self._customers_issued += 1
            ticket = self._customers_issued
        try:
            docs = self._db.get(CUSTOMERS, order_by="createdAt", descending=True)
            customers = {d.id: Customer.from_document(d.id, d.data) for d in docs}
        except Exception:
            logger.exception("Error fetching customers")
            return
        active = sum(1 for c in customers.values() if c.status == "active")
        with self._lock:
            if ticket < self._customers_applied:
                logger.debug("Dropping stale customers result %d", ticket)
                return
            self._customers_applied = ticket
            self._state.customers = customers
            self._state.stats = self._state.stats.model_copy(update={"active_customers": active})
        self._publish()

    def update_order_status(self, order_id: str, new_status: OrderStatus | str) -> None:
        try:
            status = OrderStatus(new_status)
        except ValueError:
            raise InvalidStatusError(new_status) from None

        now = utcnow()
        try:
            self._db.update(ORDERS, order_id, {"status": status.value, "updatedAt": now})
        except Exception as exc:
            logger.exception("Error updating order %s status", order_id)
            raise OrderUpdateError(order_id, exc) from exc

        with self._lock:
            # reads issued before this write must not bring back the old status
            self._issued += 1
            self._applied = self._issued
            self._state.orders = [
                o.model_copy(update={"status": status, "updated_at": now}) if o.id == order_id else o
                for o in self._state.orders
            ]
            self._recalculate()
        logger.info("Order %s moved to %s", order_id, status.value)
        self._publish()

    def calculate_stats(self) -> OrderStats:
        with self._lock:
            self._recalculate()
            stats = self._state.stats
        return stats

    def setup_realtime_updates(self) -> Subscription:
        """Keep the order list in sync with the backend; cancel the returned token to stop."""
        try:
            return self._db.subscribe(
                ORDERS,
                on_change=self._on_orders_snapshot,
                on_error=self._on_subscription_error,
                order_by="createdAt",
                descending=True,
            )
        except Exception:
            logger.exception("Error setting up real-time updates")
            return Subscription.inactive()

    # -- internals ---------------------------------------------------------

    def _on_orders_snapshot(self, docs: list[Document]) -> None:
        ticket = self._ticket()
        orders = [Order.from_document(d.id, d.data) for d in docs]
        self._apply_orders(ticket, orders)
        self.fetch_customers()

    def _on_subscription_error(self, exc: Exception) -> None:
        logger.error("Error in real-time update: %s", exc)

    def _finish_fetch(self) -> None:
        # caller holds the lock; loading stays on while any fetch is running
        self._in_flight -= 1
        self._state.is_loading = self._in_flight > 0

    def _apply_orders(self, ticket: int, orders: list[Order], from_fetch: bool = False) -> None:
        with self._lock:
            if from_fetch:
                self._finish_fetch()
            if ticket < self._applied:
                logger.debug("Dropping stale orders result %d (applied %d)", ticket, self._applied)
                return
            self._applied = ticket
            self._state.orders = orders
            self._recalculate()
        self._publish()

    def _recalculate(self) -> None:
        # caller holds the lock
        self._state.stats = calculate_stats(
            self._state.orders, active_customers=self._state.stats.active_customers,
        )

    def _publish(self) -> None:
        self.changes.publish(self.state)
