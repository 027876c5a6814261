"""
이미지 처리 모듈

정사각형 캔버스 맞춤, 모서리 워터마크 제거(가장자리 늘이기 + 부드러운 마스크),
새 워터마크 합성, 흰 배경 처리를 제공합니다.
"""

import io
from dataclasses import dataclass
from functools import lru_cache

from PIL import Image, ImageChops, ImageFilter, ImageOps

RESAMPLE_FILTER = Image.Resampling.LANCZOS if hasattr(Image, "Resampling") else Image.LANCZOS

WHITE = (255, 255, 255, 255)

STRIP_WIDTH = 2
STRIP_BLUR_RADIUS = 20
OVERLAY_OPACITY = 0.5
# 마스크가 투명 -> 불투명으로 바뀌는 구간 (패치 대각선 방향 비율)
FADE_EXTENT = 0.2

# 다운로드한 이미지 하나의 디코딩/변환 실패로 취급하는 예외
IMAGE_ERRORS = (OSError, ValueError, Image.DecompressionBombError)


@dataclass(frozen=True)
class PatchGeometry:
    """캔버스 오른쪽 아래에 붙은 워터마크 영역"""

    width: int = 400
    height: int = 200
    margin: int = 0

    def origin(self, canvas_width: int, canvas_height: int) -> tuple[int, int]:
        return (
            canvas_width - self.width - self.margin,
            canvas_height - self.height - self.margin,
        )


def open_image(data: bytes) -> Image.Image:
    image = Image.open(io.BytesIO(data))
    image.load()
    return image


def encode_png(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def fit_to_canvas(image: Image.Image, size: int) -> Image.Image:
    """비율을 유지한 채 size x size 캔버스 가운데에 맞추고 남는 부분은 흰색으로 채웁니다."""
    return ImageOps.pad(image.convert("RGBA"), (size, size), method=RESAMPLE_FILTER, color=WHITE)


@lru_cache(maxsize=8)
def fade_mask(width: int, height: int, extent: float = FADE_EXTENT) -> Image.Image:
    """
    왼쪽 위는 투명(0), 오른쪽 아래 방향으로 빠르게 불투명(255)해지는 대각선 그라디언트 마스크.

    반환된 이미지는 캐시되므로 수정하지 말 것.
    """
    gradient = Image.linear_gradient("L")
    vertical = gradient.resize((width, height), Image.Resampling.NEAREST)
    horizontal = gradient.transpose(Image.Transpose.ROTATE_90).resize((width, height), Image.Resampling.NEAREST)
    # (x/w + y/h) / (2 * extent), 255에서 잘림
    return ImageChops.add(horizontal, vertical, scale=2 * extent)


def _stretched_strip(canvas: Image.Image, box: tuple[int, int, int, int], size: tuple[int, int]) -> Image.Image:
    strip = canvas.crop(box).resize(size, RESAMPLE_FILTER)
    return strip.filter(ImageFilter.GaussianBlur(STRIP_BLUR_RADIUS))


def remove_watermark(canvas: Image.Image, geometry: PatchGeometry) -> Image.Image:
    """
    오른쪽 아래 고정 영역의 워터마크를 주변 픽셀로 덮어씁니다.

    1. 패치 왼쪽 2px 세로 띠를 가로로 늘임
    2. 패치 위쪽 2px 가로 띠를 세로로 늘임
    3. 두 띠를 overlay 방식으로 50% 섞어 채움 패치 생성
    4. 대각선 페이드 마스크를 알파로 적용
    5. 원래 위치에 합성

    캔버스 맞춤 이후에만 호출해야 합니다 (좌표가 캔버스 기준).

    Args:
        canvas: fit_to_canvas 결과 (RGBA)
        geometry: 패치 크기와 여백

    Returns:
        워터마크 영역이 교체된 새 이미지

    Raises:
        ValueError: 패치가 캔버스 안에 들어가지 않는 경우
    """
    canvas = canvas.convert("RGBA")
    width, height = geometry.width, geometry.height
    x, y = geometry.origin(canvas.width, canvas.height)
    if x < STRIP_WIDTH or y < STRIP_WIDTH or width <= 0 or height <= 0:
        raise ValueError(
            f"patch {width}x{height} (margin {geometry.margin}) does not fit canvas {canvas.width}x{canvas.height}"
        )

    left = _stretched_strip(canvas, (x - STRIP_WIDTH, y, x, y + height), (width, height))
    top = _stretched_strip(canvas, (x, y - STRIP_WIDTH, x + width, y), (width, height))

    left_rgb = left.convert("RGB")
    blended = ImageChops.overlay(left_rgb, top.convert("RGB"))
    clean = Image.blend(left_rgb, blended, OVERLAY_OPACITY).convert("RGBA")

    clean.putalpha(ImageChops.multiply(left.getchannel("A"), fade_mask(width, height)))

    result = canvas.copy()
    result.alpha_composite(clean, (x, y))
    return result


def load_watermark(data: bytes, size: int) -> Image.Image:
    """워터마크 PNG를 캔버스 크기로 늘려서(fill) 한 번만 준비합니다."""
    return open_image(data).convert("RGBA").resize((size, size), RESAMPLE_FILTER)


def overlay_watermark(image: Image.Image, watermark: Image.Image) -> Image.Image:
    """워터마크를 가운데에 그대로 덮어 합성합니다."""
    image = image.convert("RGBA")
    layer = Image.new("RGBA", image.size, (0, 0, 0, 0))
    offset = ((image.width - watermark.width) // 2, (image.height - watermark.height) // 2)
    layer.paste(watermark, offset)
    return Image.alpha_composite(image, layer)


def process_image(
    data: bytes,
    canvas_size: int,
    remove: bool = False,
    geometry: PatchGeometry | None = None,
    watermark: Image.Image | None = None,
) -> bytes:
    """다운로드한 이미지 바이트를 캔버스 맞춤 -> (워터마크 제거) -> (워터마크 합성) 후 PNG로 반환합니다."""
    image = fit_to_canvas(open_image(data), canvas_size)
    if remove:
        image = remove_watermark(image, geometry or PatchGeometry())
    if watermark is not None:
        image = overlay_watermark(image, watermark)
    return encode_png(image)


def white_background(data: bytes, canvas_size: int) -> bytes:
    """투명 영역을 흰색으로 채우고 캔버스 크기에 맞춘 PNG를 반환합니다."""
    image = open_image(data).convert("RGBA")
    background = Image.new("RGBA", image.size, WHITE)
    background.alpha_composite(image)
    flattened = background.convert("RGB")
    return encode_png(ImageOps.pad(flattened, (canvas_size, canvas_size), method=RESAMPLE_FILTER, color=WHITE[:3]))
