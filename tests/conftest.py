"""Shared fixtures: an in-memory stand-in for the Firestore pantry collection."""

import base64
import io
from unittest.mock import MagicMock

import pytest
from PIL import Image

from inventory_store import Subscription, normalize_inventory_item
from sync_controller import InventorySyncController


class FakeInventoryStore:
    """Implements the store interface in memory and records every call."""

    def __init__(self, docs=None):
        self.docs = dict(docs or {})
        self.calls = []
        self.fail = set()
        self.query_results = None
        self.on_change = None
        self.on_error = None
        self.subscription = None
        self._counter = 0

    def _maybe_fail(self, op):
        if op in self.fail:
            raise RuntimeError(f"{op} rejected: permission denied")

    def create(self, record):
        self.calls.append(("create", record))
        self._maybe_fail("create")
        self._counter += 1
        item_id = f"doc-{self._counter:03d}"
        self.docs[item_id] = dict(record)
        return item_id

    def update(self, item_id, fields):
        self.calls.append(("update", item_id, fields))
        self._maybe_fail("update")
        self.docs[item_id].update(fields)

    def delete(self, item_id):
        self.calls.append(("delete", item_id))
        self._maybe_fail("delete")
        self.docs.pop(item_id, None)

    def query_equals(self, field, value):
        self.calls.append(("query", field, value))
        self._maybe_fail("query")
        if self.query_results is not None:
            return self.query_results
        return [
            normalize_inventory_item(doc_id, data)
            for doc_id, data in self.docs.items()
            if data.get(field) == value
        ]

    def subscribe(self, on_change, on_error):
        self.calls.append(("subscribe",))
        self.on_change = on_change
        self.on_error = on_error
        if "subscribe" in self.fail:
            on_error(RuntimeError("listen rejected"))
            self.subscription = Subscription()
        else:
            self.subscription = Subscription(MagicMock())
        return self.subscription

    def emit(self):
        """Deliver a snapshot of the current documents to the listener."""
        self.on_change([normalize_inventory_item(doc_id, data) for doc_id, data in self.docs.items()])

    def store_calls(self, op):
        return [call for call in self.calls if call[0] == op]


def make_record(name, quantity=1, weight=1.0, unit="kg"):
    return {
        "item": name,
        "quantity": quantity,
        "weight": weight,
        "weightUnit": unit,
        "dateAdded": "01/02/2026",
        "photoUrl": None,
        "classification": "Unknown",
    }


@pytest.fixture
def store():
    return FakeInventoryStore()


@pytest.fixture
def controller(store):
    controller = InventorySyncController(store=store)
    controller.start()
    return controller


@pytest.fixture
def photo_data_uri():
    buffer = io.BytesIO()
    Image.new("RGB", (640, 480), (240, 200, 40)).save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode("ascii")
