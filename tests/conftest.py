"""Shared fixtures: an in-memory stand-in for the Firestore document layer."""
from datetime import datetime, timedelta, timezone

import pytest

from dashboard.events import Subscription
from dashboard.firestore_db import Document

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class FakeDocumentStore:
    """Implements the DocumentStore surface over plain dicts."""

    def __init__(self, collections=None):
        self.collections = {name: dict(docs) for name, docs in (collections or {}).items()}
        self.failing_reads = set()
        self.fail_updates = False
        self.updates = []
        self.watchers = []

    def _check(self, collection):
        if collection in self.failing_reads:
            raise RuntimeError(f"{collection} unavailable")

    def get(self, collection, where=None, order_by=None, descending=False):
        self._check(collection)
        docs = [Document(doc_id, dict(data)) for doc_id, data in self.collections.get(collection, {}).items()]
        for field_path, op, value in where or ():
            assert op == "=="
            docs = [d for d in docs if d.data.get(field_path) == value]
        if order_by:
            docs.sort(key=lambda d: d.data.get(order_by) or EPOCH, reverse=descending)
        return docs

    def get_document(self, collection, doc_id):
        self._check(collection)
        data = self.collections.get(collection, {}).get(doc_id)
        return None if data is None else Document(doc_id, dict(data))

    def update(self, collection, doc_id, fields):
        if self.fail_updates:
            raise RuntimeError("write rejected")
        docs = self.collections.setdefault(collection, {})
        if doc_id not in docs:
            raise KeyError(doc_id)
        docs[doc_id] = {**docs[doc_id], **fields}
        self.updates.append((collection, doc_id, fields))

    def set(self, collection, doc_id, data):
        self.collections.setdefault(collection, {})[doc_id] = dict(data)

    def subscribe(self, collection, on_change, on_error=None, where=None,
                  order_by=None, descending=False):
        watcher = (collection, on_change, on_error, where, order_by, descending)
        self.watchers.append(watcher)
        # Firestore delivers the current result set right away
        on_change(self.get(collection, where, order_by, descending))
        return Subscription(lambda: self.watchers.remove(watcher))

    def push(self, collection):
        for name, on_change, on_error, where, order_by, descending in list(self.watchers):
            if name != collection:
                continue
            try:
                on_change(self.get(name, where, order_by, descending))
            except Exception as exc:
                if on_error is not None:
                    on_error(exc)


def ts(days_ago=0, hours=0):
    return datetime.now(timezone.utc) - timedelta(days=days_ago, hours=hours)


def order_doc(status="pending", total=0.0, created_at=None, **extra):
    doc = {
        "customerId": extra.pop("customerId", "c1"),
        "customerName": "Ada Lovelace",
        "customerEmail": "ada@example.com",
        "products": [{"productId": "p1", "productName": "Beard Oil", "price": total, "quantity": 1}],
        "totalAmount": total,
        "paymentMethod": "card",
        "status": status,
        "createdAt": created_at or ts(days_ago=3),
    }
    doc.update(extra)
    return doc


@pytest.fixture
def fake_db():
    return FakeDocumentStore()


@pytest.fixture
def orders_db():
    return FakeDocumentStore({
        "orders": {
            "o1": order_doc("delivered", 100.0, created_at=ts(days_ago=2)),
            "o2": order_doc("pending", 50.0, created_at=ts(days_ago=1)),
        },
        "customers": {
            "c1": {"name": "Ada Lovelace", "phone": "+1 555 0100", "status": "active", "createdAt": ts(10)},
            "c2": {"name": "Alan Turing", "status": "inactive", "createdAt": ts(9)},
        },
    })
