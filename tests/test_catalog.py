# tests/test_catalog.py

from etl.catalog import (
    TYPE_LEVEL_ONE, TYPE_LEVEL_TWO, TYPE_MAIN, UNCATEGORIZED, VARIANT_LEVEL_ONE, VARIANT_PARENT,
    CatalogEntry, CatalogMap, build_catalog_map, catalog_entry_from_document,
)


def test_entries_are_indexed_by_name_code_and_id(catalog):
    by_name = catalog.lookup('مكيف سبليت')
    assert by_name is not None
    assert catalog.lookup('X1') is by_name
    assert catalog.lookup('3') is by_name
    assert catalog.lookup(3) is by_name
    assert catalog.lookup(3.0) is by_name
    assert catalog.lookup('missing') is None
    assert catalog.lookup(None) is None


def test_later_entry_wins_on_shared_alias():
    catalog = CatalogMap([
        CatalogEntry(id='1', name='Shared', type=TYPE_MAIN),
        CatalogEntry(id='2', name='Shared', type=TYPE_LEVEL_ONE, parent_id='1'),
    ])
    assert catalog.lookup('Shared').id == '2'
    assert catalog.by_id('1').type == TYPE_MAIN


def test_main_and_level_one_short_circuit_to_own_name():
    catalog = build_catalog_map([
        {'id': 1, 'type': 'main', 'name': 'Electronics'},
        {'id': 2, 'parentId': 1, 'type': 'level1', 'name': 'Electronics'},
    ])
    assert catalog.resolve_category('Electronics') == 'Electronics'
    assert catalog.resolve_category('Electronics', VARIANT_PARENT) == 'Electronics'


def test_level_two_resolves_to_level_one_parent(catalog):
    assert catalog.resolve_category('مكيف سبليت', VARIANT_LEVEL_ONE) == 'مكيفات'
    assert catalog.resolve_category('X2', VARIANT_LEVEL_ONE) == 'مكيفات'


def test_level_two_without_valid_parent_is_uncategorized():
    catalog = build_catalog_map([
        {'id': 5, 'type': 'مستوى ثاني', 'name': 'يتيم'},
        {'id': 6, 'parentId': 99, 'type': 'مستوى ثاني', 'name': 'مفقود الأب'},
    ])
    assert catalog.resolve_category('يتيم') == UNCATEGORIZED
    assert catalog.resolve_category('مفقود الأب') == UNCATEGORIZED
    assert catalog.resolve_category('غير موجود') == UNCATEGORIZED


def test_parent_variant_takes_direct_parent_name():
    catalog = build_catalog_map([
        {'id': 1, 'type': 'مستوى ثاني', 'name': 'أب'},
        {'id': 2, 'parentId': 1, 'type': 'مستوى ثاني', 'name': 'ابن'},
    ])
    assert catalog.resolve_category('ابن', VARIANT_PARENT) == 'أب'
    assert catalog.resolve_category('ابن', VARIANT_LEVEL_ONE) == UNCATEGORIZED


def test_catalog_entry_from_document():
    entry = catalog_entry_from_document({
        'id': 3, 'parentId': 2.0, 'type': 'مستوى ثاني', 'name': ' مكيف ', 'itemCode': 'X1', 'cost': '45',
    })
    assert entry == CatalogEntry(id='3', name='مكيف', type=TYPE_LEVEL_TWO, parent_id='2', item_code='X1', cost=45.0)
    assert catalog_entry_from_document({'id': 3}) is None
    assert catalog_entry_from_document({'name': 'بدون معرف'}) is None


def test_item_cost(catalog):
    assert catalog.item_cost('X1') == 60
    assert catalog.item_cost('X2') == 0.0
    assert catalog.item_cost('missing') == 0.0
