"""
중복 제거 모듈

같은 사진의 다른 해상도/용량 버전 URL을 하나로 합칩니다.
"""

import re
from typing import Iterable
from urllib.parse import urlsplit

IMAGE_EXT_RE = re.compile(r"\.(jpe?g|png|webp|avif)$", re.IGNORECASE)

# 파일명 끝의 해상도, 용량(ml), 함량(mg) 접미사
SIZE_SUFFIX_RE = re.compile(r"-\d+x\d+$", re.IGNORECASE)
VOLUME_SUFFIX_RE = re.compile(r"-\d+ml$", re.IGNORECASE)
DOSE_SUFFIX_RE = re.compile(r"-\d+mg$", re.IGNORECASE)


def uniq(items: Iterable[str | None]) -> list[str]:
    """빈 값을 버리고 처음 등장 순서를 유지한 채 중복을 제거합니다."""
    seen = set()
    out = []
    for item in items:
        if item and item not in seen:
            seen.add(item)
            out.append(item)
    return out


def base_name_key(url: str) -> str | None:
    """
    URL 파일명에서 중복 판단용 키를 만듭니다.

    확장자를 떼고 -600x600, -30ml, -50mg 접미사를 차례로 제거한 뒤 소문자로 바꿉니다.
    URL을 해석할 수 없으면 None을 반환합니다.

    Args:
        url: 이미지 URL

    Returns:
        중복 판단 키 또는 None
    """
    try:
        path = urlsplit(url).path
    except ValueError:
        return None

    filename = path.split("/")[-1]
    base = IMAGE_EXT_RE.sub("", filename)
    base = SIZE_SUFFIX_RE.sub("", base)
    base = VOLUME_SUFFIX_RE.sub("", base)
    base = DOSE_SUFFIX_RE.sub("", base)
    return base.lower()


def dedupe_by_base_name(urls: Iterable[str]) -> list[str]:
    """키가 같은 URL 중 처음 것만 남깁니다. 해석 불가한 URL은 항상 유지합니다."""
    seen = set()
    out = []
    for url in urls:
        key = base_name_key(url)
        if key is None:
            out.append(url)
            continue
        if key in seen:
            continue
        seen.add(key)
        out.append(url)
    return out
