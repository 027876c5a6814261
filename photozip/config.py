"""
설정 모듈

.env 파일과 환경 변수에서 서비스 설정을 읽어옵니다.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parent.parent

DEFAULT_UA = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120 Safari/537.36"


def load_env() -> Path | None:
    """프로젝트 루트 또는 현재 디렉토리의 .env 파일을 로드합니다."""
    env_locations = [
        PROJECT_ROOT / ".env",
        Path.cwd() / ".env",
    ]
    for env_file in env_locations:
        if env_file.exists():
            load_dotenv(env_file, override=False)
            logging.info("[config] .env loaded: %s", env_file)
            return env_file
    return None


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    canvas_size: int = 1000
    patch_width: int = 400
    patch_height: int = 200
    patch_margin: int = 0
    watermark_path: Path = field(default_factory=lambda: Path("watermark.png"))
    user_agent: str = DEFAULT_UA
    fetch_timeout: float = 30.0
    fetch_retries: int = 2
    render_js: bool = False
    job_ttl: float = 3600.0
    sweep_interval: float = 300.0
    zip_level: int = 9
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            canvas_size=int(os.getenv("PHOTOZIP_CANVAS_SIZE", "1000")),
            patch_width=int(os.getenv("PHOTOZIP_PATCH_WIDTH", "400")),
            patch_height=int(os.getenv("PHOTOZIP_PATCH_HEIGHT", "200")),
            patch_margin=int(os.getenv("PHOTOZIP_PATCH_MARGIN", "0")),
            watermark_path=Path(os.getenv("PHOTOZIP_WATERMARK_PATH", "watermark.png")),
            user_agent=os.getenv("PHOTOZIP_USER_AGENT", DEFAULT_UA),
            fetch_timeout=float(os.getenv("PHOTOZIP_FETCH_TIMEOUT", "30")),
            fetch_retries=int(os.getenv("PHOTOZIP_FETCH_RETRIES", "2")),
            render_js=_env_bool("PHOTOZIP_RENDER_JS", False),
            job_ttl=float(os.getenv("PHOTOZIP_JOB_TTL", "3600")),
            sweep_interval=float(os.getenv("PHOTOZIP_SWEEP_INTERVAL", "300")),
            zip_level=int(os.getenv("PHOTOZIP_ZIP_LEVEL", "9")),
            log_level=os.getenv("PHOTOZIP_LOG_LEVEL", "INFO").upper(),
        )


_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        load_env()
        _settings = Settings.from_env()
    return _settings
