import pytest

from photozip.extractor import (
    ExtractionRule,
    absolutize,
    collect_candidates,
    extract_image_urls,
    filter_candidates,
    first_srcset_candidate,
)

from .conftest import PRODUCT_HTML, PRODUCT_IMAGES, PRODUCT_PAGE

BASE = "https://shop.example/catalog/item"


def test_junk_only_page_yields_nothing():
    html = """
    <a href="/img/logo-big.png" data-zoom-image="/img/facebook-share.jpg"></a>
    <a data-large-image="https://vk.com/images/badge.png"></a>
    <img src="/img/icons/cart.png" data-src="/img/sprite.webp">
    <img data-lazy="/img/payment-visa.png" data-original="/img/Mastercard.JPG">
    <img data-url="/img/instagram.png" data-srcset="/img/telegram.png 1x">
    <img src="/img/placeholder.jpg">
    """
    assert extract_image_urls(BASE, html) == []


@pytest.mark.parametrize(
    "url",
    [
        "https://a.example/p.jpg",
        "https://a.example/p.jpeg",
        "https://a.example/p.PNG",
        "https://a.example/p.webp?w=100",
        "https://a.example/p.avif?x=1&y=2",
    ],
)
def test_format_filter_accepts_raster_extensions(url):
    assert filter_candidates([url]) == [url]


@pytest.mark.parametrize(
    "url",
    [
        "https://a.example/p.gif",
        "https://a.example/p.svg",
        "https://a.example/product-page",
        "https://a.example/p.jpg.html",
        "https://a.example/p.jpg#zoom",
    ],
)
def test_format_filter_rejects_other_extensions(url):
    assert filter_candidates([url]) == []


def test_first_srcset_candidate_takes_url_of_first_entry():
    assert first_srcset_candidate(" /a-300.jpg 1x, /a-600.jpg 2x") == "/a-300.jpg"
    assert first_srcset_candidate("/only.png") == "/only.png"
    assert first_srcset_candidate(" , /b.png 2x") is None


def test_absolutize_resolves_relative_and_drops_malformed():
    assert absolutize(BASE, "../media/a.jpg") == "https://shop.example/media/a.jpg"
    assert absolutize(BASE, "//cdn.example/a.jpg") == "https://cdn.example/a.jpg"
    assert absolutize(BASE, "   ") is None
    assert absolutize(BASE, "http://[broken/a.jpg") is None


def test_collect_candidates_keeps_document_order_and_dedupes():
    html = """
    <a href="/m/one.jpg" data-image="/m/two.jpg"></a>
    <a href="/m/one.jpg"></a>
    <img src="/m/three.png" data-srcset="/m/four.png 1x, /m/five.png 2x">
    """
    assert collect_candidates(BASE, html) == [
        "https://shop.example/m/one.jpg",
        "https://shop.example/m/two.jpg",
        "https://shop.example/m/three.png",
        "https://shop.example/m/four.png",
    ]


def test_malformed_attribute_is_ignored():
    html = '<img src="http://[broken/x.jpg"><img src="/ok.jpg">'
    assert extract_image_urls(BASE, html) == ["https://shop.example/ok.jpg"]


def test_extra_rules_extend_extraction():
    html = '<div class="zoom" data-hires="/m/big.jpg"></div>'
    rules = (ExtractionRule("div.zoom", "data-hires"),)
    assert extract_image_urls(BASE, html, rules=rules) == ["https://shop.example/m/big.jpg"]
    assert extract_image_urls(BASE, html) == []


def test_product_page_pipeline():
    assert extract_image_urls(PRODUCT_PAGE, PRODUCT_HTML) == PRODUCT_IMAGES


def test_kalyancity_page_keeps_only_product_images():
    page = "https://kalyancity.in.ua/nabir-chaser-lab/nabir-chaser-7-years-30ml"
    html = """
    <img src="/image/cache/catalog/chaser-7-years-30ml-48x48.jpg?width=48">
    <img src="/image/cache/catalog/chaser-7-years-30ml-520x520.jpg?width=520">
    <img src="/image/cache/catalog/unrelated-product-520x520.jpg?width=520">
    """
    assert extract_image_urls(page, html) == [
        "https://kalyancity.in.ua/image/cache/catalog/chaser-7-years-30ml-1000x1000.jpg?width=1000",
    ]
