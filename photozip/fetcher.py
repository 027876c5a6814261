"""
페이지/이미지 다운로드 모듈

requests 세션(타임아웃 + 제한된 재시도)으로 가져오며,
필요하면 Playwright로 자바스크립트 렌더링 후의 HTML을 가져옵니다.
"""

import codecs
import logging
from dataclasses import dataclass

import requests
from playwright.sync_api import Error as PlaywrightError, sync_playwright
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .config import Settings, get_settings


@dataclass
class FetchResult:
    url: str
    status: int
    content: bytes
    encoding: str | None = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def text(self) -> str:
        encoding = self.encoding or "utf-8"
        try:
            codecs.lookup(encoding)
        except LookupError:
            # 알 수 없는 charset 선언은 무시
            encoding = "utf-8"
        return self.content.decode(encoding, errors="replace")


def declared_encoding(headers) -> str | None:
    """Content-Type 헤더에 charset이 명시된 경우에만 그 값을 반환합니다."""
    content_type = headers.get("content-type", "")
    if "charset=" not in content_type.lower():
        return None
    return requests.utils.get_encoding_from_headers(headers)


class PageFetcher:
    """
    순차 다운로드용 HTTP 클라이언트

    상태 코드가 2xx가 아니어도 예외를 던지지 않고 FetchResult로 돌려줍니다.
    네트워크 오류는 requests.RequestException으로 전파됩니다.
    """

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": self.settings.user_agent})

        retry = Retry(
            total=self.settings.fetch_retries,
            connect=self.settings.fetch_retries,
            read=self.settings.fetch_retries,
            status=self.settings.fetch_retries,
            backoff_factor=0.5,
            status_forcelist=(502, 503, 504),
            allowed_methods=frozenset({"GET"}),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    def _get(self, url: str, headers: dict[str, str] | None = None) -> FetchResult:
        resp = self.session.get(url, headers=headers, timeout=self.settings.fetch_timeout)
        logging.info("[fetch] %s -> HTTP %s", url, resp.status_code)
        return FetchResult(
            url=resp.url,
            status=resp.status_code,
            content=resp.content,
            encoding=declared_encoding(resp.headers) or "utf-8",
        )

    def fetch_page(self, url: str) -> FetchResult:
        if self.settings.render_js:
            return self.render_page(url)
        return self._get(url)

    def fetch_image(self, url: str, referer: str | None = None) -> FetchResult:
        headers = {"Referer": referer} if referer else None
        return self._get(url, headers=headers)

    def render_page(self, url: str) -> FetchResult:
        """헤드리스 Chromium으로 페이지를 열고 렌더링된 HTML을 반환합니다."""
        timeout_ms = int(self.settings.fetch_timeout * 1000)
        try:
            with sync_playwright() as p:
                browser = p.chromium.launch(headless=True)
                try:
                    context = browser.new_context(user_agent=self.settings.user_agent)
                    page = context.new_page()
                    response = page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
                    # 지연 로딩 이미지 속성이 채워질 때까지 대기
                    page.wait_for_timeout(2000)
                    html = page.content()
                    status = response.status if response else 200
                    final_url = page.url
                finally:
                    browser.close()
        except PlaywrightError as exc:
            raise requests.ConnectionError(f"render failed for {url}: {exc}") from exc

        logging.info("[render] %s -> HTTP %s", url, status)
        return FetchResult(url=final_url, status=status, content=html.encode("utf-8"), encoding="utf-8")

    def close(self) -> None:
        self.session.close()
