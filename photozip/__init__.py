"""상품 페이지 사진 일괄 다운로드 서비스 (추출, 워터마크 제거/합성, zip 스트리밍)."""

__version__ = "1.0.0"
