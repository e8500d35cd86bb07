"""
Sync controller: keeps the view state's inventory mirror in step with the
Firestore listener and maps the page actions (add, update quantity, delete,
search, reset) onto store calls.

Optimistic patches from update_quantity and delete_item are applied to the
local lists right away; the next snapshot may deliver the same change again,
which is harmless because a snapshot always replaces the mirror wholesale.
"""
import os
import re
import threading
import traceback
from datetime import datetime

from inventory_state import InventoryViewModel
from inventory_store import FirestoreInventoryStore

VERBOSE_LOGGING = os.getenv("VERBOSE_LOGGING", "false").lower() == "true"
DATE_ADDED_FORMAT = os.getenv("DATE_ADDED_FORMAT", "%m/%d/%Y")

REQUIRED_FIELDS_ERROR = "Item, quantity, weight, and weight unit are required."
ITEM_NOT_FOUND_ERROR = "Item not found."
FETCH_ERROR = "Failed to fetch inventory."
ADD_ERROR = "Failed to add item."
UPDATE_ERROR = "Failed to update item."
DELETE_ERROR = "Failed to delete item."
SEARCH_ERROR = "Failed to search inventory."

_INT_PREFIX = re.compile(r'^\s*[+-]?\d+')
_FLOAT_PREFIX = re.compile(r'^\s*[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?')


def parse_quantity(text):
    """Leading integer of text; 0 when there is none."""
    match = _INT_PREFIX.match(str(text))
    return int(match.group(0)) if match else 0


def parse_weight(text):
    """Leading decimal of text; nan when there is none."""
    match = _FLOAT_PREFIX.match(str(text))
    return float(match.group(0)) if match else float('nan')


def format_date_added(when=None):
    return (when or datetime.now()).strftime(DATE_ADDED_FORMAT)


def _sort_newest_first(items):
    return sorted(items, key=lambda entry: str(entry.get('id', '')), reverse=True)


class InventorySyncController:
    """Single owner of an InventoryViewModel; every transition takes the lock."""

    def __init__(self, store=None, state=None):
        self.store = store or FirestoreInventoryStore()
        self.state = state or InventoryViewModel()
        self.lock = threading.RLock()
        self._subscription = None

    # ==================== SUBSCRIPTION ====================

    def start(self):
        """Open the live listener unless one is already open."""
        with self.lock:
            if self._subscription is not None and not self._subscription.closed:
                return self._subscription
            print("🔄 Subscribing to pantry inventory...")
            self._subscription = self.store.subscribe(self._on_snapshot, self._on_snapshot_error)
            return self._subscription

    def close(self):
        """Tear the listener down. Returns True only for the call that closed it."""
        with self.lock:
            subscription = self._subscription
        if subscription is None:
            return False
        closed = subscription.unsubscribe()
        if closed:
            print("✅ Pantry inventory listener closed")
        return closed

    def _on_snapshot(self, items):
        with self.lock:
            self.state.inventory = _sort_newest_first(items)
            self.state.error = None
        if VERBOSE_LOGGING:
            print(f"   Snapshot received: {len(items)} items")

    def _on_snapshot_error(self, error):
        print(f"❌ Error fetching inventory: {error}")
        with self.lock:
            self.state.error = FETCH_ERROR

    # ==================== MUTATIONS ====================

    def add_item(self, item, quantity, weight, weight_unit, photo=None, classification=None):
        """Validate the form values and create one record. Returns the new id or None."""
        with self.lock:
            state = self.state
            state.item, state.quantity, state.weight = item or '', quantity or '', weight or ''
            state.weight_unit = weight_unit or ''

            if any(not str(value or '').strip() for value in (item, quantity, weight, weight_unit)):
                state.error = REQUIRED_FIELDS_ERROR
                return None

            photo = photo if photo is not None else state.photo
            classification = classification or state.classification
            new_item = {
                'item': item,
                'quantity': parse_quantity(quantity),
                'weight': parse_weight(weight),
                'weightUnit': weight_unit,
                'dateAdded': format_date_added(),
                'photoUrl': photo,
                'classification': classification or 'Unknown',
            }

            try:
                item_id = self.store.create(new_item)
            except Exception as e:
                print(f"❌ Error adding inventory item: {e}")
                traceback.print_exc()
                state.error = ADD_ERROR
                return None

            state.clear_form()
            state.error = None
            print(f"✅ Added '{item}' to pantry (ID: {item_id})")
            return item_id

    def update_quantity(self, item_id, new_quantity):
        """Write a new quantity and patch the displayed lists. Returns True on success."""
        with self.lock:
            state = self.state
            if state.find_active(item_id) is None:
                state.error = ITEM_NOT_FOUND_ERROR
                return False

            try:
                self.store.update(item_id, {'quantity': new_quantity})
            except Exception as e:
                print(f"❌ Error updating inventory item {item_id}: {e}")
                traceback.print_exc()
                state.error = UPDATE_ERROR
                return False

            def _patch(entry):
                if entry.get('id') != item_id:
                    return entry
                patched = dict(entry, quantity=new_quantity)
                if state.photo is not None:
                    patched['photoUrl'] = state.photo
                if state.classification:
                    patched['classification'] = state.classification
                return patched

            state.inventory = [_patch(entry) for entry in state.inventory]
            if state.is_searching:
                state.search_results = [_patch(entry) for entry in state.search_results]
            state.error = None
            return True

    def delete_item(self, item_id):
        """Delete at the store and drop the row from the displayed list."""
        with self.lock:
            state = self.state
            try:
                self.store.delete(item_id)
            except Exception as e:
                print(f"❌ Error deleting inventory item {item_id}: {e}")
                traceback.print_exc()
                state.error = DELETE_ERROR
                return False

            if state.is_searching:
                state.search_results = [entry for entry in state.search_results if entry.get('id') != item_id]
            else:
                state.inventory = [entry for entry in state.inventory if entry.get('id') != item_id]
            state.error = None
            print(f"✅ Deleted inventory item {item_id}")
            return True

    # ==================== SEARCH & PAGING ====================

    def search(self, term):
        """Exact-match search on the item name. The search flag stays up on failure."""
        with self.lock:
            state = self.state
            state.is_searching = True
            state.search_term = term or ''
            state.current_page = 1
            try:
                results = self.store.query_equals('item', state.search_term)
            except Exception as e:
                print(f"❌ Error searching inventory: {e}")
                traceback.print_exc()
                state.error = SEARCH_ERROR
                return False

            state.search_results = list(results)
            state.error = None
            if VERBOSE_LOGGING:
                print(f"   Search '{state.search_term}' matched {len(state.search_results)} items")
            return True

    def reset_search(self):
        with self.lock:
            self.state.is_searching = False
            self.state.search_term = ''
            self.state.current_page = 1

    def set_page(self, page):
        with self.lock:
            self.state.current_page = max(1, int(page))
            return self.state.current_page
