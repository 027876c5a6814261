import asyncio
import logging
import threading
from contextlib import asynccontextmanager, suppress
from typing import Callable

import requests
from fastapi import Depends, FastAPI, File, Form, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse, StreamingResponse
from fastapi.staticfiles import StaticFiles

from . import schemas
from .archive import QueueStream, StreamClosedError, ZipArchiveWriter
from .config import PROJECT_ROOT, Settings, get_settings
from .extractor import extract_image_urls
from .fetcher import PageFetcher
from .image_processor import IMAGE_ERRORS, white_background
from .jobs import JobLogStore, ProgressReporter
from .pipeline import Fetcher, run_reported_job, split_urls

settings = get_settings()
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


async def _sweep_jobs(store: JobLogStore, interval: float) -> None:
    while True:
        await asyncio.sleep(interval)
        store.sweep()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # 폴러가 떠나서 끝까지 읽히지 않은 작업 정리
    task = asyncio.create_task(_sweep_jobs(app.state.job_store, settings.sweep_interval))
    try:
        yield
    finally:
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task


app = FastAPI(
    title="상품 사진 일괄 다운로드 서비스",
    version="1.0.0",
    description="상품 페이지 이미지 추출, 워터마크 제거/합성, zip 스트리밍 다운로드",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.state.job_store = JobLogStore(ttl=settings.job_ttl)

# 정적 파일 서빙 (웹페이지)
WEB_DIR = PROJECT_ROOT / "web"
if WEB_DIR.exists():
    app.mount("/static", StaticFiles(directory=str(WEB_DIR)), name="static")


def get_job_store(request: Request) -> JobLogStore:
    return request.app.state.job_store


def get_fetcher() -> Fetcher:
    return PageFetcher(get_settings())


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def stream_archive(build: Callable[[QueueStream], None], filename: str):
    """
    별도 스레드에서 zip을 만들면서 응답으로 스트리밍합니다.

    첫 바이트가 나오기 전에 작업이 실패하면 500 JSON 응답을 반환하고,
    스트리밍이 시작된 뒤의 실패는 스트림을 끊는 것으로 끝납니다.
    """
    stream = QueueStream()

    def worker() -> None:
        try:
            build(stream)
            stream.close()
        except StreamClosedError:
            logging.warning("[archive] client disconnected, %s aborted", filename)
        except Exception as exc:
            logging.error("[archive] %s failed: %s", filename, exc)
            stream.fail(exc)

    threading.Thread(target=worker, name=f"archive-{filename}", daemon=True).start()

    try:
        first = stream.next_chunk()
    except Exception as exc:
        stream.abandon()
        return _error(500, str(exc))

    return StreamingResponse(
        stream.iter_chunks(first),
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.get("/")
def root():
    """루트 엔드포인트 - 웹페이지 제공"""
    web_index = WEB_DIR / "index.html"
    if web_index.exists():
        return FileResponse(str(web_index))
    return {"message": "Welcome to photozip - 웹페이지를 찾을 수 없습니다."}


@app.get("/health", tags=["system"])
def health_check() -> dict[str, str]:
    """상태 확인 엔드포인트"""
    return {"status": "ok"}


@app.post("/api/download", responses={400: {"model": schemas.ErrorResponse}, 500: {"model": schemas.ErrorResponse}})
def download_photos(
    urls: str = Form(""),
    url: str = Form(""),
    remove_wm: str = Form("false", alias="removeWm"),
    debug: str = Form("false"),
    job_id: str | None = Form(None, alias="jobId"),
    wm: UploadFile | None = File(None),
    store: JobLogStore = Depends(get_job_store),
    fetcher: Fetcher = Depends(get_fetcher),
    settings: Settings = Depends(get_settings),
):
    """
    상품 페이지들의 이미지를 받아 zip으로 스트리밍합니다.

    Args:
        urls: 공백/줄바꿈으로 구분된 페이지 URL (url 필드도 허용)
        remove_wm: "true"이면 오른쪽 아래 워터마크 제거
        debug: "true"이고 jobId가 있으면 /api/debug-log로 진행 로그를 볼 수 있음
        wm: 합성할 워터마크 PNG (없으면 기본 watermark.png)

    Returns:
        photos.zip 스트리밍 응답
    """
    page_urls = split_urls(urls or url)
    if not page_urls:
        return _error(400, "No urls")

    reporter = ProgressReporter(store, job_id if debug == "true" and job_id else None)
    custom_watermark = wm.file.read() if wm is not None else None
    should_remove = remove_wm == "true"

    def build(stream: QueueStream) -> None:
        try:
            run_reported_job(
                page_urls,
                fetcher,
                stream,
                reporter,
                settings,
                remove_watermark=should_remove,
                custom_watermark=custom_watermark or None,
            )
        finally:
            fetcher.close()

    return stream_archive(build, "photos.zip")


@app.get("/api/debug-log", response_model=schemas.DebugLogResponse)
def debug_log(
    job_id: str | None = Query(None, alias="jobId"),
    offset: int = Query(0, alias="from", ge=0),
    store: JobLogStore = Depends(get_job_store),
):
    """offset 이후의 작업 로그 줄을 반환합니다."""
    chunk = store.poll(job_id, offset)
    return schemas.DebugLogResponse(lines=chunk.lines, finished=chunk.finished, next=chunk.next)


@app.post("/api/white-bg", responses={400: {"model": schemas.ErrorResponse}})
def white_bg(
    images: list[UploadFile] | None = File(None),
    settings: Settings = Depends(get_settings),
):
    """업로드한 이미지들을 흰 배경 + 정사각형 캔버스로 맞춰 zip으로 돌려줍니다."""
    if not images:
        return _error(400, "No files")

    uploads = [
        (image.filename or f"image_{index:02d}.png", image.file.read())
        for index, image in enumerate(images, start=1)
    ]

    def build(stream: QueueStream) -> None:
        writer = ZipArchiveWriter(stream, compresslevel=settings.zip_level)
        for name, data in uploads:
            try:
                output = white_background(data, settings.canvas_size)
            except IMAGE_ERRORS as exc:
                logging.warning("[white-bg] skipping %s: %s", name, exc)
                continue
            writer.append(f"white_{name}", output)
        writer.finalize()

    return stream_archive(build, "white_bg_ready.zip")


@app.post("/api/extract", response_model=schemas.ExtractResponse, responses={502: {"model": schemas.ErrorResponse}})
def extract_preview(
    request: schemas.ExtractRequest,
    fetcher: Fetcher = Depends(get_fetcher),
):
    """이미지는 받지 않고 페이지에서 추출될 이미지 URL 목록만 미리 봅니다."""
    page_url = request.url.strip()
    if not page_url:
        return _error(400, "No url")

    try:
        page = fetcher.fetch_page(page_url)
    except requests.RequestException as exc:
        logging.warning("[extract] %s failed: %s", page_url, exc)
        return _error(502, f"page fetch failed: {exc}")
    finally:
        fetcher.close()

    images = extract_image_urls(page_url, page.text) if page.ok else []
    return schemas.ExtractResponse(url=page_url, status=page.status, image_count=len(images), images=images)
