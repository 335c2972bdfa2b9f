from core.schemas.products import ProductRecord
from core.scraping.dedup import ProductDeduplicator


def _product(item_id, title="Phone case"):
    return ProductRecord(item_id=item_id, title=title, link=f"https://item.taobao.com/item.htm?id={item_id}")


def test_add_new_keeps_first_sighting_in_order():
    dedup = ProductDeduplicator()

    first = dedup.add_new([_product("1"), _product("2"), _product("1", title="Repeat")])
    second = dedup.add_new([_product("2"), _product("3")])

    assert [p.item_id for p in first] == ["1", "2"]
    assert first[0].title == "Phone case"
    assert [p.item_id for p in second] == ["3"]
    assert len(dedup) == 3
    assert "2" in dedup
    assert "9" not in dedup


def test_seeded_ids_are_treated_as_seen():
    dedup = ProductDeduplicator(seen=["5"])
    assert dedup.add_new([_product("5"), _product("6")])[0].item_id == "6"
