from pydantic import BaseModel


class ErrorResponse(BaseModel):
    error: str


class DebugLogResponse(BaseModel):
    """작업 로그 폴링 응답"""
    lines: list[str]
    finished: bool
    next: int


class ExtractRequest(BaseModel):
    url: str


class ExtractResponse(BaseModel):
    """이미지 URL 추출 미리보기 결과"""
    url: str
    status: int
    image_count: int
    images: list[str]
