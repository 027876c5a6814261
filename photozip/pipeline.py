"""
페이지 파이프라인 모듈

페이지마다 HTML 다운로드 -> 이미지 URL 추출 -> 이미지 다운로드/변환 -> zip 저장을
입력 순서대로 하나씩 처리하고 진행 상황을 기록합니다.
"""

import re
import traceback
from dataclasses import dataclass, field
from typing import Callable, IO, Protocol, Sequence
from urllib.parse import urlsplit

import requests
from PIL import Image

from .archive import ZipArchiveWriter
from .config import Settings
from .extractor import extract_image_urls
from .fetcher import FetchResult
from .image_processor import IMAGE_ERRORS, PatchGeometry, load_watermark, process_image
from .jobs import ProgressReporter

UNSAFE_CHARS_RE = re.compile(r'[<>:"/\\|?*]+')


class Fetcher(Protocol):
    def fetch_page(self, url: str) -> FetchResult: ...

    def fetch_image(self, url: str, referer: str | None = None) -> FetchResult: ...

    def close(self) -> None: ...


Reporter = Callable[[str], None]


@dataclass
class PageResult:
    """페이지 하나의 처리 결과"""

    page_url: str
    folder: str | None = None
    image_urls: list[str] = field(default_factory=list)
    saved: list[str] = field(default_factory=list)
    error: str | None = None


def split_urls(raw: str) -> list[str]:
    """공백/줄바꿈으로 구분된 URL 입력을 리스트로 나눕니다."""
    return [url.strip() for url in raw.split() if url.strip()]


def folder_name_for(page_url: str, index: int) -> str:
    """페이지 URL 마지막 경로 세그먼트로 폴더명을 만듭니다. 비어 있으면 순번 사용."""
    try:
        segments = [segment for segment in urlsplit(page_url).path.split("/") if segment]
    except ValueError:
        segments = []
    name = segments[-1] if segments else ""
    if not name:
        name = f"{index:02d}"
    return UNSAFE_CHARS_RE.sub("_", name)


def resolve_watermark(
    custom: bytes | None,
    settings: Settings,
    report: Reporter,
) -> Image.Image | None:
    """
    사용할 워터마크를 결정합니다.

    사용자 업로드 PNG -> 기본 워터마크 파일 -> 없음 순서입니다.
    업로드된 파일을 이미지로 읽을 수 없으면 예외가 그대로 전파됩니다 (작업 전체 실패).
    """
    if custom:
        report("Watermark: custom PNG")
        return load_watermark(custom, settings.canvas_size)

    path = settings.watermark_path
    try:
        data = path.read_bytes()
    except OSError:
        report(f"Watermark: {path} not found, no logo overlay")
        return None
    report(f"Watermark: default {path}")
    return load_watermark(data, settings.canvas_size)


class PagePipeline:
    """
    한 작업의 페이지들을 순차 처리합니다.

    이미지 하나의 실패는 건너뛰고, 페이지 하나의 실패는 진단용 텍스트 항목으로 대체합니다.
    그 밖의 예외(아카이브 쓰기 실패 등)는 호출자에게 전파되어 작업 전체가 중단됩니다.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        writer: ZipArchiveWriter,
        report: Reporter,
        settings: Settings,
        remove_watermark: bool = False,
        watermark: Image.Image | None = None,
    ):
        self.fetcher = fetcher
        self.writer = writer
        self.report = report
        self.settings = settings
        self.remove_watermark = remove_watermark
        self.watermark = watermark
        self.geometry = PatchGeometry(
            width=settings.patch_width,
            height=settings.patch_height,
            margin=settings.patch_margin,
        )

    def run(self, page_urls: Sequence[str]) -> list[PageResult]:
        return [self.process_page(index, url) for index, url in enumerate(page_urls, start=1)]

    def process_page(self, index: int, page_url: str) -> PageResult:
        result = PageResult(page_url=page_url)
        prefix = f"{index:02d}"
        self.report(f"[page {index}] {page_url}")

        try:
            page = self.fetcher.fetch_page(page_url)
        except requests.RequestException as exc:
            self.report(f"  [error] page fetch failed: {exc}")
            result.error = f"Error: {exc}"
            self.writer.append(f"{prefix}_error.txt", result.error)
            return result

        if not page.ok:
            self.report(f"  [error] page fetch failed: HTTP {page.status}")
            result.error = f"Error: {page.status}"
            self.writer.append(f"{prefix}_error.txt", result.error)
            return result

        self.report("  HTML received, extracting images...")
        result.image_urls = extract_image_urls(page_url, page.text)
        self.report(f"  [found] {len(result.image_urls)} images after filters")

        if not result.image_urls:
            result.error = "No images found"
            self.writer.append(f"{prefix}_no_img.txt", result.error)
            return result

        folder = result.folder = folder_name_for(page_url, index)
        self.report(f"  [folder] {folder}")
        self.report(f"  Saving {len(result.image_urls)} file(s)")

        total = len(result.image_urls)
        for position, image_url in enumerate(result.image_urls, start=1):
            self.report(f"    [img {position}/{total}] {image_url}")
            data = self.process_image_url(image_url, page_url)
            if data is None:
                continue
            name = f"{folder}/{position:02d}.png"
            self.writer.append(name, data)
            result.saved.append(name)

        self.writer.append(f"{folder}/source.txt", f"{page_url}\n")
        return result

    def process_image_url(self, image_url: str, page_url: str) -> bytes | None:
        """이미지 하나를 받아 변환합니다. 실패하면 기록 후 None."""
        try:
            resp = self.fetcher.fetch_image(image_url, referer=page_url)
        except requests.RequestException as exc:
            self.report(f"      [error] image fetch failed: {exc}")
            return None

        if not resp.ok:
            self.report(f"      [error] image fetch failed: HTTP {resp.status}")
            return None

        try:
            return process_image(
                resp.content,
                self.settings.canvas_size,
                remove=self.remove_watermark,
                geometry=self.geometry,
                watermark=self.watermark,
            )
        except IMAGE_ERRORS as exc:
            self.report(f"      [error] image processing failed: {exc}")
            return None


def run_download_job(
    page_urls: Sequence[str],
    fetcher: Fetcher,
    fileobj: IO[bytes],
    report: Reporter,
    settings: Settings,
    remove_watermark: bool = False,
    custom_watermark: bytes | None = None,
) -> list[PageResult]:
    """
    다운로드 작업 하나를 처음부터 끝까지 실행하고 zip을 fileobj에 기록합니다.

    Args:
        page_urls: 상품 페이지 URL 목록 (입력 순서대로 처리)
        fetcher: 페이지/이미지 다운로드 객체
        fileobj: zip 출력 대상 (스트림 또는 파일)
        report: 진행 줄 기록 함수
        settings: 서비스 설정
        remove_watermark: 모서리 워터마크 제거 여부
        custom_watermark: 사용자 업로드 워터마크 PNG 바이트

    Returns:
        페이지별 처리 결과 리스트

    Raises:
        Exception: 페이지/이미지 단위로 처리되지 않는 오류 (작업 전체 실패)
    """
    report(f"START. URLs: {len(page_urls)}")
    for index, url in enumerate(page_urls, start=1):
        report(f"  [{index}] {url}")
    report(f"Remove WM: {'YES' if remove_watermark else 'NO'}")

    watermark = resolve_watermark(custom_watermark, settings, report)

    writer = ZipArchiveWriter(fileobj, compresslevel=settings.zip_level)
    pipeline = PagePipeline(
        fetcher,
        writer,
        report,
        settings,
        remove_watermark=remove_watermark,
        watermark=watermark,
    )
    results = pipeline.run(page_urls)
    report("=== END ===")
    writer.finalize()
    return results


def run_reported_job(
    page_urls: Sequence[str],
    fetcher: Fetcher,
    fileobj: IO[bytes],
    reporter: ProgressReporter,
    settings: Settings,
    remove_watermark: bool = False,
    custom_watermark: bytes | None = None,
) -> list[PageResult]:
    """run_download_job을 실행하고 치명적 오류를 FATAL 줄로 남긴 뒤 작업을 완료 처리합니다."""
    try:
        return run_download_job(
            page_urls,
            fetcher,
            fileobj,
            reporter,
            settings,
            remove_watermark=remove_watermark,
            custom_watermark=custom_watermark,
        )
    except Exception as exc:
        reporter.fatal(exc, traceback.format_exc().rstrip())
        raise
    finally:
        reporter.finish()
