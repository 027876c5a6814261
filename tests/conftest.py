import io

import pytest
from PIL import Image

from photozip.config import Settings
from photozip.fetcher import FetchResult


def make_image(size=(300, 300), color=(200, 30, 30), fmt="PNG", mode="RGB") -> bytes:
    buffer = io.BytesIO()
    Image.new(mode, size, color).save(buffer, format=fmt)
    return buffer.getvalue()


class FakeFetcher:
    """네트워크 없이 미리 등록한 응답을 돌려주는 fetcher"""

    def __init__(self, pages=None, images=None):
        self.pages = pages or {}
        self.images = images or {}
        self.requested = []
        self.closed = False

    def _lookup(self, table, url):
        self.requested.append(url)
        value = table.get(url)
        if isinstance(value, Exception):
            raise value
        if isinstance(value, FetchResult):
            return value
        if value is None:
            return FetchResult(url=url, status=404, content=b"")
        if isinstance(value, tuple):
            status, body = value
        else:
            status, body = 200, value
        if isinstance(body, str):
            body = body.encode("utf-8")
        return FetchResult(url=url, status=status, content=body, encoding="utf-8")

    def fetch_page(self, url):
        return self._lookup(self.pages, url)

    def fetch_image(self, url, referer=None):
        return self._lookup(self.images, url)

    def close(self):
        self.closed = True


PRODUCT_PAGE = "https://shop.example/catalog/green-tea-set"

PRODUCT_HTML = """
<html><body>
  <header><img src="/static/logo.png" alt="Shop"></header>
  <div class="gallery">
    <a href="/media/green-tea-set-front-600x600.jpg" data-zoom-image="/media/green-tea-set-front-1000x1000.jpg">
      <img src="/media/green-tea-set-front-200x200.jpg">
    </a>
    <img data-src="https://cdn.shop.example/media/green-tea-set-side.webp?v=3">
    <img data-srcset="/media/green-tea-set-box-300x300.png 1x, /media/green-tea-set-box-600x600.png 2x">
  </div>
  <a href="/catalog/other-product">Other product</a>
</body></html>
"""

PRODUCT_IMAGES = [
    "https://shop.example/media/green-tea-set-front-1000x1000.jpg",
    "https://cdn.shop.example/media/green-tea-set-side.webp?v=3",
    "https://shop.example/media/green-tea-set-box-1000x1000.png",
]


@pytest.fixture
def settings(tmp_path):
    return Settings(watermark_path=tmp_path / "missing-watermark.png", fetch_retries=0)


@pytest.fixture
def product_fetcher():
    return FakeFetcher(
        pages={PRODUCT_PAGE: PRODUCT_HTML},
        images={url: make_image() for url in PRODUCT_IMAGES},
    )
