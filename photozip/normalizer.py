"""
URL 정규화 및 관련성 필터 모듈

이미지 URL을 최대 해상도 버전으로 바꾸고, 특정 사이트에서는
현재 상품 페이지와 관련된 이미지만 남깁니다.
"""

import re
from dataclasses import dataclass
from typing import Iterable, Sequence
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from .dedupe import uniq

FULL_SIZE = "1000x1000"

# ...-600x600.jpg 형태의 파일명 크기 토큰
FILENAME_SIZE_RE = re.compile(r"-\d+x\d+(\.[a-z]+)$", re.IGNORECASE)

MIN_SLUG_LENGTH = 3


@dataclass(frozen=True)
class SiteProfile:
    """사이트별 규칙 (리사이즈 쿼리 파라미터, 슬러그 필터 여부)"""

    host_suffix: str
    resize_param: str | None = None
    resize_value: str = "1000"
    slug_filter: bool = False

    def matches(self, host: str) -> bool:
        return host.lower().endswith(self.host_suffix)

    def rewrite_query(self, query: str) -> str:
        """resize_param 값을 최대값으로 바꿉니다. 파라미터가 없으면 원본 유지."""
        if not self.resize_param:
            return query
        pairs = parse_qsl(query, keep_blank_values=True)
        if not any(key == self.resize_param for key, _ in pairs):
            return query

        rewritten = []
        replaced = False
        for key, value in pairs:
            if key == self.resize_param:
                if replaced:
                    continue
                value = self.resize_value
                replaced = True
            rewritten.append((key, value))
        return urlencode(rewritten)


DEFAULT_PROFILES: tuple[SiteProfile, ...] = (
    SiteProfile(
        host_suffix="kalyancity.in.ua",
        resize_param="width",
        resize_value="1000",
        slug_filter=True,
    ),
)


def upgrade_filename_size(path: str, size: str = FULL_SIZE) -> str:
    return FILENAME_SIZE_RE.sub(lambda m: f"-{size}{m.group(1)}", path)


def normalize_url(
    url: str,
    profiles: Sequence[SiteProfile] = DEFAULT_PROFILES,
    size: str = FULL_SIZE,
) -> str:
    """
    이미지 URL을 최대 해상도 요청 URL로 변환합니다.

    1) 사이트 규칙: 호스트가 일치하면 리사이즈 쿼리 파라미터를 최대값으로 변경
    2) 공통 규칙: 파일명 끝의 -WxH 토큰을 -1000x1000으로 변경

    해석할 수 없는 URL은 원본 그대로 반환합니다 (버리지 않음).
    """
    try:
        parts = urlsplit(url)
        host = parts.hostname or ""
    except ValueError:
        return url

    query = parts.query
    for profile in profiles:
        if profile.matches(host):
            query = profile.rewrite_query(query)

    path = upgrade_filename_size(parts.path, size)
    return urlunsplit(parts._replace(path=path, query=query))


def normalize_urls(
    urls: Iterable[str],
    profiles: Sequence[SiteProfile] = DEFAULT_PROFILES,
) -> list[str]:
    return [normalize_url(url, profiles) for url in urls]


def slug_candidates(page_url: str) -> list[str]:
    """
    페이지 경로의 마지막 두 세그먼트(상품 슬러그, 브랜드 슬러그)에서 매칭 후보를 만듭니다.

    예: /nabir-chaser-lab/nabir-chaser-7-years-30ml
        -> nabir-chaser-7-years-30ml, chaser-7-years-30ml, chaser-7-years,
           nabir-chaser-lab, chaser-lab
    """
    try:
        path = urlsplit(page_url).path
    except ValueError:
        return []

    segments = [segment for segment in path.split("/") if segment]
    product_slug = (segments[-1] if segments else "").lower()
    brand_slug = (segments[-2] if len(segments) > 1 else "").lower()

    candidates = []
    if product_slug:
        candidates.append(product_slug)
        words = product_slug.split("-")
        if len(words) > 1:
            candidates.append("-".join(words[1:]))
        if len(words) > 2:
            candidates.append("-".join(words[1:-1]))

    if brand_slug:
        candidates.append(brand_slug)
        words = brand_slug.split("-")
        if len(words) > 1:
            candidates.append("-".join(words[1:]))

    return [slug for slug in uniq(candidates) if len(slug) >= MIN_SLUG_LENGTH]


def filter_relevant(
    urls: Iterable[str],
    page_url: str,
    profiles: Sequence[SiteProfile] = DEFAULT_PROFILES,
) -> list[str]:
    """
    슬러그 필터가 켜진 사이트의 페이지라면 슬러그 후보를 하나라도 포함하는 URL만 남깁니다.

    부분 문자열 매칭이라 관련 없는 상품이 섞이거나 놓칠 수 있습니다 (휴리스틱).
    """
    urls = list(urls)
    try:
        page_host = (urlsplit(page_url).hostname or "").lower()
    except ValueError:
        return urls

    if not any(profile.slug_filter and profile.matches(page_host) for profile in profiles):
        return urls

    slugs = slug_candidates(page_url)
    if not slugs:
        return urls

    return [url for url in urls if any(slug in url.lower() for slug in slugs)]
