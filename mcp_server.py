"""
MCP 서버 엔트리포인트.

photozip의 이미지 URL 추출과 zip 생성 파이프라인을 MCP Tool 형태로 노출한다.
"""

from __future__ import annotations

from pathlib import Path

import anyio
import requests
from mcp import types
from mcp.server import stdio
from mcp.server.lowlevel import Server

from photozip.config import get_settings
from photozip.extractor import extract_image_urls
from photozip.fetcher import PageFetcher
from photozip.jobs import ProgressReporter
from photozip.pipeline import run_reported_job, split_urls

SERVER_INSTRUCTIONS = (
    "1) 상품 페이지에서 상품 사진 URL을 추출하고 "
    "2) 사진을 받아 워터마크 제거/합성 후 zip 파일로 저장합니다."
)

server = Server(
    name="photozip",
    version="1.0.0",
    instructions=SERVER_INSTRUCTIONS,
)


TOOL_DEFINITIONS = {
    "extract_image_urls": types.Tool(
        name="extract_image_urls",
        description="상품 페이지에서 고해상도 상품 사진 URL 목록을 추출합니다 (다운로드하지 않음).",
        inputSchema={
            "type": "object",
            "properties": {
                "page_url": {
                    "type": "string",
                    "description": "상품 페이지 URL",
                }
            },
            "required": ["page_url"],
        },
        outputSchema={
            "type": "object",
            "properties": {
                "page_url": {"type": "string"},
                "status": {"type": "integer"},
                "image_count": {"type": "integer"},
                "images": {"type": "array", "items": {"type": "string"}},
            },
            "required": ["page_url", "status", "image_count", "images"],
        },
    ),
    "build_photo_archive": types.Tool(
        name="build_photo_archive",
        description="여러 상품 페이지의 사진을 받아 처리한 뒤 로컬 zip 파일로 저장합니다.",
        inputSchema={
            "type": "object",
            "properties": {
                "page_urls": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "상품 페이지 URL 리스트",
                    "minItems": 1,
                },
                "output_path": {
                    "type": "string",
                    "description": "저장할 zip 파일 경로",
                },
                "remove_watermark": {
                    "type": "boolean",
                    "description": "오른쪽 아래 워터마크 제거 여부",
                    "default": False,
                },
            },
            "required": ["page_urls", "output_path"],
        },
        outputSchema={
            "type": "object",
            "properties": {
                "output_path": {"type": "string"},
                "entries": {"type": "array", "items": {"type": "string"}},
                "pages": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "page_url": {"type": "string"},
                            "folder": {"type": ["string", "null"]},
                            "saved": {"type": "integer"},
                            "error": {"type": ["string", "null"]},
                        },
                    },
                },
                "log": {"type": "array", "items": {"type": "string"}},
            },
            "required": ["output_path", "entries", "pages", "log"],
        },
    ),
}


def _extract(page_url: str) -> dict[str, object]:
    cleaned = page_url.strip()
    if not cleaned:
        raise ValueError("상품 페이지 URL을 입력해주세요.")

    fetcher = PageFetcher(get_settings())
    try:
        page = fetcher.fetch_page(cleaned)
    except requests.RequestException as e:
        raise ValueError(f"페이지를 가져오지 못했습니다: {e}") from e
    finally:
        fetcher.close()

    images = extract_image_urls(cleaned, page.text) if page.ok else []
    return {
        "page_url": cleaned,
        "status": page.status,
        "image_count": len(images),
        "images": images,
    }


def _build_archive(page_urls: list[str], output_path: str, remove_watermark: bool) -> dict[str, object]:
    if not page_urls:
        raise ValueError("최소 1개 이상의 페이지 URL을 입력해주세요.")
    if not output_path.strip():
        raise ValueError("output_path를 입력해주세요.")

    target = Path(output_path).expanduser().resolve()
    target.parent.mkdir(parents=True, exist_ok=True)

    settings = get_settings()
    reporter = ProgressReporter()
    fetcher = PageFetcher(settings)
    try:
        with target.open("wb") as fileobj:
            results = run_reported_job(
                page_urls,
                fetcher,
                fileobj,
                reporter,
                settings,
                remove_watermark=remove_watermark,
            )
    finally:
        fetcher.close()

    entries = []
    for result in results:
        entries.extend(result.saved)

    return {
        "output_path": str(target),
        "entries": entries,
        "pages": [
            {
                "page_url": result.page_url,
                "folder": result.folder,
                "saved": len(result.saved),
                "error": result.error,
            }
            for result in results
        ],
        "log": reporter.lines,
    }


@server.list_tools()
async def handle_list_tools():
    return list(TOOL_DEFINITIONS.values())


@server.call_tool()
async def handle_call_tool(tool_name: str, arguments: dict[str, object]):
    if tool_name not in TOOL_DEFINITIONS:
        raise ValueError(f"알 수 없는 도구: {tool_name}")

    if tool_name == "extract_image_urls":
        page_url = str(arguments.get("page_url", ""))
        return await anyio.to_thread.run_sync(_extract, page_url)

    if tool_name == "build_photo_archive":
        page_urls_raw = arguments.get("page_urls", [])
        if isinstance(page_urls_raw, str):
            page_urls = split_urls(page_urls_raw)
        elif isinstance(page_urls_raw, list):
            page_urls = [str(url).strip() for url in page_urls_raw if str(url).strip()]
        else:
            raise ValueError("page_urls는 리스트여야 합니다.")
        output_path = str(arguments.get("output_path", ""))
        remove_watermark = bool(arguments.get("remove_watermark", False))
        return await anyio.to_thread.run_sync(_build_archive, page_urls, output_path, remove_watermark)

    raise ValueError(f"핸들링되지 않은 도구: {tool_name}")


async def main():
    """STDIO 기반 MCP 서버 실행."""
    async with stdio.stdio_server() as (read_stream, write_stream):
        await server.run(
            read_stream,
            write_stream,
            server.create_initialization_options(),
        )


if __name__ == "__main__":
    anyio.run(main)
