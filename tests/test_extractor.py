from core.extraction.dom_extractor import DETAIL_JS, SELECTORS, DomDetailExtractor, completeness_score
from core.schemas.enums import Platform

from fakes import run


FULL_FIELDS = {
    "fullTitle": "Shockproof phone case",
    "price": "19.90",
    "additionalImages": ["https://img/1.jpg"],
    "variants": {"Color": [{"value": "Red"}]},
    "specifications": {"Material": "TPU"},
    "salesVolume": "1200",
    "shopName": "Acme Store",
    "brand": "Acme",
    "reviewCount": "350",
    "fullDescription": "A long description " * 5,
}


def test_completeness_counts_ten_key_fields():
    assert completeness_score(FULL_FIELDS) == 100
    assert completeness_score({}) == 0

    half = {k: v for k, v in list(FULL_FIELDS.items())[:5]}
    assert completeness_score(half) == 50


def test_empty_collections_do_not_count():
    fields = dict(FULL_FIELDS, additionalImages=[], variants={}, specifications={})
    assert completeness_score(fields) == 70


class _DetailPage:
    def __init__(self, fields):
        self.fields = fields
        self.calls = []

    async def evaluate(self, script, arg=None):
        self.calls.append((script, arg))
        return self.fields


def test_dom_extractor_scores_page_fields():
    page = _DetailPage(dict(FULL_FIELDS, brand=None, reviewCount=None))

    result = run(DomDetailExtractor().extract(page, Platform.TAOBAO))

    assert result.completeness_score == 80
    assert result.fields["shopName"] == "Acme Store"
    script, selectors = page.calls[0]
    assert script == DETAIL_JS
    assert selectors is SELECTORS


def test_dom_extractor_handles_empty_page():
    result = run(DomDetailExtractor().extract(_DetailPage(None), Platform.TMALL))
    assert result.completeness_score == 0
    assert result.fields == {}
