from photozip.dedupe import base_name_key, dedupe_by_base_name, uniq
from photozip.normalizer import normalize_urls


def test_renditions_collapse_to_one_url_per_base():
    urls = [
        "https://shop.example/img/a-600x600.jpg",
        "https://shop.example/img/a-1000x1000.jpg",
        "https://shop.example/img/b-30ml.png",
    ]
    result = dedupe_by_base_name(uniq(normalize_urls(urls)))
    assert result == [
        "https://shop.example/img/a-1000x1000.jpg",
        "https://shop.example/img/b-30ml.png",
    ]


def test_base_name_key_strips_suffixes_in_sequence():
    assert base_name_key("https://x.example/p/A-30ml-600x600.JPG") == "a"
    assert base_name_key("https://x.example/p/pill-50mg.webp?x=1") == "pill"
    assert base_name_key("https://x.example/p/photo.avif") == "photo"
    assert base_name_key("https://x.example/p/photo-2.jpg") == "photo-2"


def test_first_occurrence_wins():
    urls = [
        "https://x.example/b-60ml.jpg",
        "https://x.example/a.jpg",
        "https://x.example/b-30ml.jpg",
        "https://cdn.example/other/A.png",
    ]
    assert dedupe_by_base_name(urls) == urls[:2]


def test_unparseable_urls_are_always_kept():
    broken = "http://[broken/x.jpg"
    assert dedupe_by_base_name([broken, broken, "https://x.example/x.jpg"]) == [
        broken,
        broken,
        "https://x.example/x.jpg",
    ]


def test_uniq_drops_empty_values_and_keeps_order():
    assert uniq(["b", None, "a", "", "b"]) == ["b", "a"]
