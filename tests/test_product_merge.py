import pydantic
import pytest

from core.products.merge import apply_extraction, merge_product
from core.schemas.messages import ExtractionResult
from core.schemas.products import ProductDetails, ProductRecord


def _listing(item_id="100", **overrides):
    values = dict(
        item_id=item_id,
        title="Phone case",
        price="19.90",
        link=f"https://item.taobao.com/item.htm?id={item_id}",
        search_keyword="phone case",
        page_number=1,
    )
    values.update(overrides)
    return ProductRecord(**values)


def _detailed(quality, title="Full title", **overrides):
    product = _listing(**overrides)
    product.details = ProductDetails(full_title=title)
    product.details_scraped = True
    product.extraction_quality = quality
    return product


def test_quality_gate_rejects_below_threshold():
    product = _listing()
    accepted = apply_extraction(
        product, ExtractionResult(fields={"fullTitle": "x"}, completeness_score=49), min_quality=50
    )

    assert not accepted
    assert product.details is None
    assert product.details_scraped is False


def test_quality_gate_accepts_at_threshold():
    product = _listing()
    accepted = apply_extraction(
        product,
        ExtractionResult(fields={"fullTitle": "Full", "brand": "Acme"}, completeness_score=50),
        min_quality=50,
    )

    assert accepted
    assert product.details_scraped is True
    assert product.details.full_title == "Full"
    assert product.details.brand == "Acme"
    assert product.extraction_quality == 50
    assert product.details_scraped_at is not None


def test_weaker_extraction_never_replaces_stronger_one():
    existing = _detailed(80, title="Rich title")
    incoming = _detailed(40, title="Poor title")

    merge_product(existing, incoming)

    assert existing.extraction_quality == 80
    assert existing.details.full_title == "Rich title"


def test_equal_or_better_extraction_replaces_details():
    existing = _detailed(60, title="Old")
    merge_product(existing, _detailed(90, title="New"))

    assert existing.extraction_quality == 90
    assert existing.details.full_title == "New"


def test_listing_refresh_keeps_details_and_updates_listing_fields():
    existing = _detailed(70)
    incoming = _listing(title="Phone case v2", price="17.50", page_number=3)

    merge_product(existing, incoming)

    assert existing.title == "Phone case v2"
    assert existing.price == "17.50"
    assert existing.page_number == 3
    assert existing.details_scraped is True
    assert existing.extraction_quality == 70


def test_missing_incoming_values_do_not_erase_stored_ones():
    existing = _listing(image="https://img/a.jpg", category_name="Phones")
    merge_product(existing, _listing(image=None, category_name=None))

    assert existing.image == "https://img/a.jpg"
    assert existing.category_name == "Phones"


def test_forced_rescrape_may_replace_with_lower_quality():
    existing = _detailed(90, title="Old")
    merge_product(existing, _detailed(55, title="Fresh"), allow_detail_downgrade=True)

    assert existing.extraction_quality == 55
    assert existing.details.full_title == "Fresh"


def test_details_flag_requires_detail_record():
    with pytest.raises(pydantic.ValidationError):
        ProductRecord(item_id="1", title="abc", link="https://x", details_scraped=True)


def test_detail_fields_map_variants_and_specs():
    details = ProductDetails.from_fields({
        "fullTitle": "Case",
        "specifications": {"Material": "TPU", "": "dropped"},
        "variants": {
            "Color": [{"value": "Red", "image": "https://img/red.jpg", "variantId": "v1"}, {"value": ""}],
            "Size": ["S", "M"],
            "Empty": [],
        },
        "additionalImages": ["https://img/1.jpg"],
        "inStock": True,
    })

    assert details.specifications == {"Material": "TPU"}
    assert [v.label for v in details.variants] == ["Color", "Size"]
    assert details.variants[0].options[0].variant_id == "v1"
    assert [o.value for o in details.variants[1].options] == ["S", "M"]
    assert details.in_stock is True
