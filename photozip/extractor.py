"""
이미지 후보 추출 모듈

상품 페이지 HTML에서 고해상도 이미지일 가능성이 있는 속성을 모두 모아
포맷/잡음 필터, 해상도 정규화, 관련성 필터, 중복 제거를 거친 URL 목록을 만듭니다.
"""

import re
from dataclasses import dataclass
from typing import Callable, Iterable, Sequence
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from .dedupe import dedupe_by_base_name, uniq
from .normalizer import DEFAULT_PROFILES, SiteProfile, filter_relevant, normalize_urls

IMAGE_URL_RE = re.compile(r"\.(jpe?g|png|webp|avif)(\?.*)?$", re.IGNORECASE)

# 로고, 아이콘, SNS/결제 배지 등 상품 사진이 아닌 것
JUNK_TOKENS = (
    "logo",
    "sprite",
    "icon",
    "placeholder",
    "payment",
    "visa",
    "mastercard",
    "facebook",
    "instagram",
    "vk.com",
    "telegram",
)


def absolutize(base: str, url: str) -> str | None:
    """상대 URL을 페이지 기준 절대 URL로 바꿉니다. 실패하면 None."""
    url = url.strip()
    if not url:
        return None
    try:
        return urljoin(base, url)
    except ValueError:
        return None


def first_srcset_candidate(value: str) -> str | None:
    """srcset 목록의 첫 번째 후보에서 URL 부분만 꺼냅니다."""
    first = value.split(",")[0].strip()
    if not first:
        return None
    return first.split()[0]


@dataclass(frozen=True)
class ExtractionRule:
    """(선택자, 속성, 후처리) 규칙 하나"""

    selector: str
    attribute: str
    transform: Callable[[str], str | None] | None = None

    def read(self, element) -> str | None:
        value = element.get(self.attribute)
        if not value or not isinstance(value, str):
            return None
        if self.transform is not None:
            return self.transform(value)
        return value


ANCHOR_ATTRIBUTES = (
    "href",
    "data-zoom-image",
    "data-image",
    "data-src",
    "data-original",
    "data-large-image",
)
IMG_ATTRIBUTES = (
    "src",
    "data-src",
    "data-original",
    "data-lazy",
    "data-url",
)

DEFAULT_RULES: tuple[ExtractionRule, ...] = (
    *(ExtractionRule("a", attr) for attr in ANCHOR_ATTRIBUTES),
    *(ExtractionRule("img", attr) for attr in IMG_ATTRIBUTES),
    ExtractionRule("img", "data-srcset", first_srcset_candidate),
)


def collect_candidates(
    page_url: str,
    html: str,
    rules: Sequence[ExtractionRule] = DEFAULT_RULES,
) -> list[str]:
    """
    규칙 목록을 순서대로 적용해 절대 URL 후보를 모읍니다.

    요소 순서를 유지하기 위해 같은 선택자의 규칙은 요소 단위로 묶어서 적용합니다.
    """
    soup = BeautifulSoup(html, "html.parser")
    candidates: list[str | None] = []

    grouped: dict[str, list[ExtractionRule]] = {}
    for rule in rules:
        grouped.setdefault(rule.selector, []).append(rule)

    for selector, selector_rules in grouped.items():
        for element in soup.select(selector):
            for rule in selector_rules:
                value = rule.read(element)
                if value:
                    candidates.append(absolutize(page_url, value))

    return uniq(candidates)


def is_junk(url: str) -> bool:
    lower = url.lower()
    return any(token in lower for token in JUNK_TOKENS)


def is_image_url(url: str) -> bool:
    return bool(IMAGE_URL_RE.search(url.lower()))


def filter_candidates(urls: Iterable[str]) -> list[str]:
    """래스터 이미지 확장자만 남기고 잡음 토큰이 들어간 URL은 버립니다."""
    return [url for url in urls if url and is_image_url(url) and not is_junk(url)]


def extract_image_urls(
    page_url: str,
    html: str,
    rules: Sequence[ExtractionRule] = DEFAULT_RULES,
    profiles: Sequence[SiteProfile] = DEFAULT_PROFILES,
) -> list[str]:
    """
    페이지에서 최종 다운로드 대상 이미지 URL 목록을 추출합니다.

    후보 수집 -> 포맷/잡음 필터 -> 해상도 정규화 -> (사이트 한정) 관련성 필터
    -> 중복 제거 -> 파일명 기준 중복 제거 -> 중복 제거

    Args:
        page_url: 상품 페이지 URL (상대 경로 해석 기준)
        html: 페이지 HTML
        rules: 추출 규칙 목록
        profiles: 사이트별 규칙 목록

    Returns:
        처음 등장 순서를 유지한 이미지 URL 리스트
    """
    images = filter_candidates(collect_candidates(page_url, html, rules))
    images = normalize_urls(images, profiles)
    images = filter_relevant(images, page_url, profiles)
    images = uniq(images)
    images = dedupe_by_base_name(images)
    return uniq(images)
