"""Unit tests for the Firestore wrapper, using a mocked client."""
from unittest.mock import MagicMock, Mock

import pytest
from google.cloud import firestore

from dashboard.firestore_db import Document, DocumentStore


def _snap(doc_id, data, exists=True):
    snap = Mock(id=doc_id, exists=exists)
    snap.to_dict.return_value = data
    return snap


@pytest.fixture
def client():
    return MagicMock()


class TestGet:
    def test_builds_query_and_wraps_documents(self, client):
        collection = client.collection.return_value
        filtered = collection.where.return_value
        ordered = filtered.order_by.return_value
        ordered.stream.return_value = [_snap("a", {"x": 1}), _snap("b", None)]

        docs = DocumentStore(client).get("products", where=[("status", "==", "active")],
                                         order_by="createdAt", descending=True)

        assert docs == [Document("a", {"x": 1}), Document("b", {})]
        client.collection.assert_called_once_with("products")
        field_filter = collection.where.call_args.kwargs["filter"]
        assert field_filter.field_path == "status"
        assert field_filter.value == "active"
        filtered.order_by.assert_called_once_with("createdAt", direction=firestore.Query.DESCENDING)

    def test_plain_collection_read(self, client):
        client.collection.return_value.stream.return_value = []

        assert DocumentStore(client).get("orders") == []


class TestDocuments:
    def test_get_document_missing(self, client):
        client.collection.return_value.document.return_value.get.return_value = _snap("x", None, exists=False)

        assert DocumentStore(client).get_document("users", "x") is None

    def test_get_document(self, client):
        client.collection.return_value.document.return_value.get.return_value = _snap("u1", {"role": "admin"})

        assert DocumentStore(client).get_document("users", "u1") == Document("u1", {"role": "admin"})

    def test_update_is_partial(self, client):
        DocumentStore(client).update("orders", "o1", {"status": "shipped"})

        client.collection.assert_called_with("orders")
        client.collection.return_value.document.assert_called_with("o1")
        client.collection.return_value.document.return_value.update.assert_called_once_with({"status": "shipped"})


class TestSubscribe:
    def test_snapshot_callback_and_unsubscribe(self, client):
        query = client.collection.return_value
        watch = query.on_snapshot.return_value
        received = []

        subscription = DocumentStore(client).subscribe("orders", on_change=received.append)
        callback = query.on_snapshot.call_args.args[0]
        callback([_snap("o1", {"status": "pending"})], [], None)
        subscription.cancel()

        assert received == [[Document("o1", {"status": "pending"})]]
        watch.unsubscribe.assert_called_once()

    def test_listener_errors_go_to_on_error(self, client):
        query = client.collection.return_value
        errors = []

        def boom(docs):
            raise RuntimeError("bad snapshot")

        DocumentStore(client).subscribe("orders", on_change=boom, on_error=errors.append)
        query.on_snapshot.call_args.args[0]([], [], None)

        assert len(errors) == 1
        assert isinstance(errors[0], RuntimeError)
