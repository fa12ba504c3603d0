"""
Thin document-query layer over Firestore.

Everything above this module sees plain `Document(id, data)` records, so the
stores can be exercised against an in-memory double in tests.
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from .config import resolve_project
from .events import Subscription

logger = logging.getLogger(__name__)

# (field, op, value) triples, e.g. ("status", "==", "active")
Where = Iterable[tuple[str, str, Any]]


@dataclass
class Document:
    id: str
    data: dict = field(default_factory=dict)


class DocumentStore:
    """Snapshot reads, live subscriptions and partial updates on collections."""

    def __init__(self, client: firestore.Client | None = None):
        self._client = client or firestore.Client(project=resolve_project())

    def _query(self, collection: str, where: Where | None = None,
               order_by: str | None = None, descending: bool = False):
        query = self._client.collection(collection)
        for field_path, op, value in where or ():
            query = query.where(filter=FieldFilter(field_path, op, value))
        if order_by:
            direction = firestore.Query.DESCENDING if descending else firestore.Query.ASCENDING
            query = query.order_by(order_by, direction=direction)
        return query

    def get(self, collection: str, where: Where | None = None,
            order_by: str | None = None, descending: bool = False) -> list[Document]:
        docs = self._query(collection, where, order_by, descending).stream()
        return [Document(d.id, d.to_dict() or {}) for d in docs]

    def get_document(self, collection: str, doc_id: str) -> Document | None:
        snap = self._client.collection(collection).document(doc_id).get()
        if not snap.exists:
            return None
        return Document(snap.id, snap.to_dict() or {})

    def update(self, collection: str, doc_id: str, fields: dict) -> None:
        self._client.collection(collection).document(doc_id).update(fields)

    def set(self, collection: str, doc_id: str, data: dict) -> None:
        self._client.collection(collection).document(doc_id).set(data)

    def subscribe(self, collection: str,
                  on_change: Callable[[list[Document]], None],
                  on_error: Callable[[Exception], None] | None = None,
                  where: Where | None = None,
                  order_by: str | None = None,
                  descending: bool = False) -> Subscription:
        """Live-subscribe to a query; `on_change` receives the full result set.

        Firestore delivers snapshots on its own watch thread.
        """
        def _on_snapshot(snapshots, changes, read_time):
            try:
                on_change([Document(s.id, s.to_dict() or {}) for s in snapshots])
            except Exception as exc:
                if on_error is None:
                    logger.exception("Unhandled error in %s snapshot listener", collection)
                else:
                    on_error(exc)

        watch = self._query(collection, where, order_by, descending).on_snapshot(_on_snapshot)
        return Subscription(watch.unsubscribe)
