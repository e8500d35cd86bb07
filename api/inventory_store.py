"""
Firestore access for pantry inventory records.
Every method talks to the `pantry` collection directly and lets Firestore
errors propagate; the sync controller decides what the user sees.
"""
import threading
import traceback

from google.cloud.firestore_v1.base_query import FieldFilter

from firebase_config import get_pantry_collection

WEIGHT_UNITS = ['kg', 'pound', 'litre', 'milliliter', 'gram', 'tablespoon', 'serving size']


def normalize_inventory_item(doc_id, data):
    """Turn a stored document into the inventory item dict used by the UI."""
    data = data or {}
    return {
        'id': doc_id,
        'item': data.get('item', ''),
        'quantity': data.get('quantity', 0),
        'weight': data.get('weight', 0),
        'weightUnit': data.get('weightUnit', WEIGHT_UNITS[0]),
        'dateAdded': data.get('dateAdded', ''),
        'photoUrl': data.get('photoUrl'),
        'classification': data.get('classification'),
    }


def _items_from_documents(docs):
    return [normalize_inventory_item(doc.id, doc.to_dict()) for doc in docs]


class Subscription:
    """Handle for a live snapshot listener. unsubscribe() only acts once."""

    def __init__(self, watch=None):
        self._watch = watch
        self._lock = threading.Lock()
        self.closed = watch is None

    def unsubscribe(self):
        with self._lock:
            if self.closed:
                return False
            self.closed = True
            watch, self._watch = self._watch, None
        watch.unsubscribe()
        return True


class FirestoreInventoryStore:
    """Remote inventory store backed by a Firestore collection."""

    def __init__(self, collection=None):
        self._collection = collection

    @property
    def collection(self):
        # Resolved lazily so importing the app never needs credentials
        if self._collection is None:
            self._collection = get_pantry_collection()
        return self._collection

    def create(self, record):
        """Add a new document and return its generated id."""
        _, doc_ref = self.collection.add(record)
        return doc_ref.id

    def update(self, item_id, fields):
        self.collection.document(item_id).update(fields)

    def delete(self, item_id):
        self.collection.document(item_id).delete()

    def query_equals(self, field, value):
        """Exact-match query on a single field."""
        docs = self.collection.where(filter=FieldFilter(field, '==', value)).stream()
        return _items_from_documents(docs)

    def subscribe(self, on_change, on_error):
        """
        Listen to the whole collection. on_change receives the full item list
        on every snapshot; on_error receives any exception raised while
        opening the listener or handling a snapshot.
        """
        def _on_snapshot(col_snapshot, changes, read_time):
            try:
                on_change(_items_from_documents(col_snapshot))
            except Exception as e:
                traceback.print_exc()
                on_error(e)

        try:
            watch = self.collection.on_snapshot(_on_snapshot)
        except Exception as e:
            print(f"❌ Error opening inventory listener: {e}")
            on_error(e)
            return Subscription()
        return Subscription(watch)
