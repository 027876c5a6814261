from photozip.normalizer import (
    SiteProfile,
    filter_relevant,
    normalize_url,
    normalize_urls,
    slug_candidates,
)


def test_generic_size_rewrite_is_idempotent():
    once = normalize_url("https://cdn.example/img/photo-600x600.jpg")
    assert once == "https://cdn.example/img/photo-1000x1000.jpg"
    assert normalize_url(once) == once


def test_generic_rewrite_keeps_query_and_only_touches_filename_suffix():
    assert normalize_url("https://cdn.example/800x600/a-600X400.PNG?v=2") == "https://cdn.example/800x600/a-1000x1000.PNG?v=2"
    assert normalize_url("https://cdn.example/a-600x600-front.jpg") == "https://cdn.example/a-600x600-front.jpg"


def test_known_site_width_param_is_maximized():
    url = "https://kalyancity.in.ua/image/catalog/a.jpg?width=520&height=520"
    assert normalize_url(url) == "https://kalyancity.in.ua/image/catalog/a.jpg?width=1000&height=520"


def test_known_site_duplicate_width_params_collapse():
    url = "https://img.kalyancity.in.ua/a.jpg?width=48&x=1&width=96"
    assert normalize_url(url) == "https://img.kalyancity.in.ua/a.jpg?width=1000&x=1"


def test_known_site_without_width_is_untouched():
    url = "https://kalyancity.in.ua/a.jpg?height=520"
    assert normalize_url(url) == url


def test_width_param_on_other_hosts_is_untouched():
    url = "https://other.example/a.jpg?width=520"
    assert normalize_url(url) == url


def test_custom_profile():
    profile = SiteProfile(host_suffix="cdn.example", resize_param="w", resize_value="2048")
    assert normalize_url("https://img.cdn.example/a.jpg?w=10", profiles=(profile,)) == "https://img.cdn.example/a.jpg?w=2048"


def test_malformed_url_is_kept_unchanged():
    url = "http://[broken/a-600x600.jpg"
    assert normalize_urls([url]) == [url]


def test_slug_candidates():
    assert slug_candidates("https://kalyancity.in.ua/nabir-chaser-lab/nabir-chaser-7-years-30ml") == [
        "nabir-chaser-7-years-30ml",
        "chaser-7-years-30ml",
        "chaser-7-years",
        "nabir-chaser-lab",
        "chaser-lab",
    ]


def test_slug_candidates_drop_short_values():
    assert slug_candidates("https://kalyancity.in.ua/ab/x-yz") == ["x-yz"]
    assert slug_candidates("https://kalyancity.in.ua/") == []


def test_relevance_filter_on_known_domain():
    page = "https://kalyancity.in.ua/brand/nabir-chaser-7-years-30ml"
    urls = [
        "https://kalyancity.in.ua/image/cache/catalog/chaser-7-years-1000x1000.jpg",
        "https://kalyancity.in.ua/image/cache/catalog/unrelated-product-1000x1000.jpg",
    ]
    assert filter_relevant(urls, page) == urls[:1]


def test_relevance_filter_matches_case_insensitively():
    page = "https://kalyancity.in.ua/brand/nabir-chaser-7-years-30ml"
    urls = ["https://kalyancity.in.ua/image/Chaser-7-Years.jpg"]
    assert filter_relevant(urls, page) == urls


def test_relevance_filter_skipped_without_slugs_or_on_other_hosts():
    urls = ["https://kalyancity.in.ua/image/anything.jpg"]
    assert filter_relevant(urls, "https://kalyancity.in.ua/") == urls
    assert filter_relevant(urls, "https://shop.example/brand/nabir-chaser-7-years-30ml") == urls
