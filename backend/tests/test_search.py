from hoor.services.search_service import search_variants
from hoor.services.stock_service import post_opening_stock


def _ids(results):
    return [r["id"] for r in results]


def test_exact_barcode_wins(db_session, variant, second_variant):
    results = search_variants("6281000000011")
    assert _ids(results) == [variant.id]
    assert results[0]["model"]["name"] == "Silk Abaya"
    assert results[0]["brand"]["name"] == "Hoor Classics"


def test_sku_prefix_is_case_insensitive(db_session, variant, second_variant):
    assert _ids(search_variants("aby-nv")) == [second_variant.id]
    assert _ids(search_variants("ABY-")) == [variant.id, second_variant.id]


def test_name_search(db_session, variant, second_variant):
    second_variant.is_active = False
    db_session.commit()

    assert _ids(search_variants("silk")) == [variant.id]
    assert _ids(search_variants("حرير")) == [variant.id]


def test_results_carry_ledger_stock(db_session, variant):
    post_opening_stock(variant.id, 7)
    assert search_variants("ABY-BLK")[0]["stock"] == 7


def test_like_wildcards_are_literal(db_session, variant):
    assert search_variants("%") == []
    assert search_variants("   ") == []
