"""
Inventory catalog lookup used to resolve the category of a sold item

The catalog is the hierarchy stored in inventory_items:
main (رئيسي) -> level 1 (مستوى أول) -> level 2 (مستوى ثاني).
Documents reference catalog entries by name, by item code or by id, so each
entry is indexed under all three keys.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from utils.dates_numbers import normalize_text, to_number

logger = logging.getLogger(__name__)

TYPE_MAIN = 'main'
TYPE_LEVEL_ONE = 'level1'
TYPE_LEVEL_TWO = 'level2'

CATALOG_TYPES = {
    'رئيسي': TYPE_MAIN,
    'main': TYPE_MAIN,
    'مستوى أول': TYPE_LEVEL_ONE,
    'level1': TYPE_LEVEL_ONE,
    'level 1': TYPE_LEVEL_ONE,
    'مستوى ثاني': TYPE_LEVEL_TWO,
    'level2': TYPE_LEVEL_TWO,
    'level 2': TYPE_LEVEL_TWO,
}

# Category report: group under the level-1 ancestor
VARIANT_LEVEL_ONE = 'level_one'
# Sold-items and profit reports: group under the direct parent
VARIANT_PARENT = 'parent'

UNCATEGORIZED = 'بدون فئة'


@dataclass(frozen=True)
class CatalogEntry:
    id: str
    name: str
    type: Optional[str] = None
    parent_id: Optional[str] = None
    item_code: Optional[str] = None
    cost: float = 0.0


def _key(value: Any) -> Optional[str]:
    text = normalize_text(value)
    if not text:
        return None
    # numeric ids arrive as 7, 7.0 or "7"
    if text.endswith('.0') and text[:-2].isdigit():
        return text[:-2]
    return text


class CatalogMap:
    """In-memory catalog keyed by name, item code and id-as-string"""

    def __init__(self, entries: Iterable[CatalogEntry] = ()):
        self._by_alias: Dict[str, CatalogEntry] = {}
        self._by_id: Dict[str, CatalogEntry] = {}
        self._entries: List[CatalogEntry] = []
        for entry in entries:
            self.add(entry)

    def __len__(self):
        return len(self._entries)

    def add(self, entry: CatalogEntry) -> None:
        self._entries.append(entry)
        self._by_id.setdefault(entry.id, entry)
        # later entries win on a shared alias, as in the source lookups
        for alias in (entry.name, entry.item_code, entry.id):
            key = _key(alias)
            if key:
                self._by_alias[key] = entry

    def lookup(self, value: Any) -> Optional[CatalogEntry]:
        """Find an entry by name, code or id"""
        key = _key(value)
        if key is None:
            return None
        return self._by_alias.get(key)

    def by_id(self, entry_id: Any) -> Optional[CatalogEntry]:
        key = _key(entry_id)
        if key is None:
            return None
        return self._by_id.get(key)

    def parent_of(self, entry: CatalogEntry) -> Optional[CatalogEntry]:
        if not entry.parent_id:
            return None
        return self.by_id(entry.parent_id)

    def resolve_category(self, item_name: Any, variant: str = VARIANT_LEVEL_ONE,
                         fallback: str = UNCATEGORIZED) -> str:
        """
        Resolve the category name of a sold item

        Level-1 and main entries are their own category. A level-2 entry
        takes its parent's name when the parent is a level-1 or main entry;
        the parent variant takes the direct parent's name whatever its type.
        Anything else resolves to the fallback.
        """
        entry = self.lookup(item_name)
        if entry is None:
            return fallback

        if entry.type in (TYPE_LEVEL_ONE, TYPE_MAIN):
            return entry.name

        if variant == VARIANT_PARENT:
            parent = self.parent_of(entry)
            if parent is not None and parent.name:
                return parent.name
            return fallback

        if entry.type == TYPE_LEVEL_TWO:
            parent = self.parent_of(entry)
            if parent is not None and parent.type in (TYPE_LEVEL_ONE, TYPE_MAIN):
                return parent.name

        return fallback

    def item_cost(self, value: Any) -> float:
        entry = self.lookup(value)
        return entry.cost if entry else 0.0


def catalog_entry_from_document(document: Dict[str, Any]) -> Optional[CatalogEntry]:
    """Build a catalog entry from an inventory_items document; None when unusable"""
    name = normalize_text(document.get('name'))
    entry_id = _key(document.get('id'))
    if not name or entry_id is None:
        return None

    raw_type = normalize_text(document.get('type'))
    return CatalogEntry(
        id=entry_id,
        name=name,
        type=CATALOG_TYPES.get(raw_type, CATALOG_TYPES.get(raw_type.lower())),
        parent_id=_key(document.get('parentId')),
        item_code=_key(document.get('itemCode')),
        cost=to_number(document.get('purchasePrice')) or to_number(document.get('cost')),
    )


def build_catalog_map(documents: Iterable[Dict[str, Any]]) -> CatalogMap:
    """Build the lookup map once per report run"""
    catalog = CatalogMap()
    skipped = 0
    for document in documents:
        entry = catalog_entry_from_document(document)
        if entry is None:
            skipped += 1
            continue
        catalog.add(entry)

    if skipped:
        logger.debug(f"Skipped {skipped} catalog documents without name or id")
    logger.info(f"Catalog map built with {len(catalog)} entries")
    return catalog
