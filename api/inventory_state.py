"""
In-memory view state for the pantry page: the mirrored inventory, the last
search result, the form fields and the page/camera/error flags.
"""
import math
from typing import Dict, List, NamedTuple, Optional

from inventory_store import WEIGHT_UNITS

PAGE_SIZE = 5


class Page(NamedTuple):
    items: List[Dict]
    page: int
    total_pages: int


def paginate(items: List[Dict], page: int, page_size: int = PAGE_SIZE) -> Page:
    """Slice one page out of items. Pages past the end come back empty."""
    total_pages = math.ceil(len(items) / page_size)
    start = (page - 1) * page_size
    if start < 0:
        return Page([], page, total_pages)
    return Page(items[start:start + page_size], page, total_pages)


def total_weight(item: Dict) -> str:
    """weight x quantity with two decimals, as shown in the table."""
    try:
        return f"{float(item.get('weight', 0)) * float(item.get('quantity', 0)):.2f}"
    except (TypeError, ValueError):
        return "nan"


class InventoryViewModel:
    """Mutable page state. Only the sync controller and capture pipeline write to it."""

    def __init__(self):
        # Form fields
        self.item = ''
        self.quantity = ''
        self.weight = ''
        self.weight_unit = WEIGHT_UNITS[0]
        self.search_term = ''

        # Lists
        self.inventory: List[Dict] = []
        self.search_results: List[Dict] = []
        self.is_searching = False

        # UI flags
        self.current_page = 1
        self.is_camera_open = False
        self.is_loading = False
        self.photo: Optional[str] = None
        self.classification: Optional[str] = None
        self.error: Optional[str] = None

    @property
    def active_items(self) -> List[Dict]:
        return self.search_results if self.is_searching else self.inventory

    def find_active(self, item_id) -> Optional[Dict]:
        for entry in self.active_items:
            if entry.get('id') == item_id:
                return entry
        return None

    def current_page_items(self) -> Page:
        return paginate(self.active_items, self.current_page)

    def clear_form(self):
        self.item = ''
        self.quantity = ''
        self.weight = ''
        self.weight_unit = WEIGHT_UNITS[0]
        self.photo = None
        self.classification = None

    def to_dict(self) -> Dict:
        """Snapshot of the state for JSON responses and templates."""
        page = self.current_page_items()
        return {
            'items': page.items,
            'page': page.page,
            'total_pages': page.total_pages,
            'total_items': len(self.active_items),
            'is_searching': self.is_searching,
            'search_term': self.search_term,
            'form': {
                'item': self.item,
                'quantity': self.quantity,
                'weight': self.weight,
                'weightUnit': self.weight_unit,
            },
            'is_camera_open': self.is_camera_open,
            'is_loading': self.is_loading,
            'photo': self.photo,
            'classification': self.classification,
            'error': self.error,
        }
