"""
ZIP 스트리밍 모듈

작업 스레드가 zip 항목을 추가하면 그 바이트를 큐를 통해 응답 스트림으로 흘려보냅니다.
전체 아카이브를 메모리에 모으지 않습니다.
"""

import logging
import queue
import threading
import zipfile
from typing import IO, Iterator

CHUNK_SIZE = 64 * 1024
QUEUE_SIZE = 32

_EOF = object()


class StreamClosedError(RuntimeError):
    """클라이언트가 연결을 끊어 더 이상 쓸 수 없는 경우"""


class QueueStream:
    """
    쓰기 전용 파일 객체 (zipfile 출력 대상)

    tell()을 제공하지 않으므로 zipfile은 데이터 디스크립터 방식의 스트리밍 모드로 동작합니다.
    큐가 가득 차면 소비자가 읽을 때까지 쓰기가 대기합니다.
    """

    def __init__(self, chunk_size: int = CHUNK_SIZE, maxsize: int = QUEUE_SIZE):
        self.chunk_size = chunk_size
        self._queue: queue.Queue = queue.Queue(maxsize=maxsize)
        self._buffer = bytearray()
        self._abandoned = threading.Event()
        self._closed = False

    def _put(self, item) -> None:
        while True:
            if self._abandoned.is_set():
                raise StreamClosedError("client disconnected")
            try:
                self._queue.put(item, timeout=0.5)
                return
            except queue.Full:
                continue

    def write(self, data) -> int:
        if self._closed:
            raise StreamClosedError("stream already closed")
        self._buffer.extend(data)
        if len(self._buffer) >= self.chunk_size:
            self._put(bytes(self._buffer))
            self._buffer.clear()
        return len(data)

    def flush(self) -> None:
        pass

    def close(self) -> None:
        """남은 버퍼를 내보내고 스트림 끝을 알립니다."""
        if self._closed:
            return
        if self._buffer:
            self._put(bytes(self._buffer))
            self._buffer.clear()
        self._closed = True
        self._put(_EOF)

    def fail(self, exc: BaseException) -> None:
        """작업 실패를 소비자 쪽에 전달합니다. 소비자가 이미 떠났다면 무시."""
        self._closed = True
        try:
            self._put(exc)
        except StreamClosedError:
            pass

    def abandon(self) -> None:
        self._abandoned.set()

    def next_chunk(self) -> bytes | None:
        """
        다음 청크를 기다려 반환합니다. 끝이면 None.

        Raises:
            작업 스레드에서 발생한 예외
        """
        item = self._queue.get()
        if item is _EOF:
            return None
        if isinstance(item, BaseException):
            raise item
        return item

    def iter_chunks(self, first: bytes | None = None) -> Iterator[bytes]:
        try:
            if first is not None:
                yield first
            while True:
                try:
                    chunk = self.next_chunk()
                except Exception as exc:
                    # 응답이 이미 시작됐으므로 스트림을 끊는 것으로 끝낸다
                    logging.warning("[archive] stream aborted: %s", exc)
                    return
                if chunk is None:
                    return
                yield chunk
        finally:
            self.abandon()


class ZipArchiveWriter:
    """이름 있는 항목을 순서대로 추가하고 마지막에 finalize하는 zip 작성기"""

    def __init__(self, fileobj: IO[bytes], compresslevel: int = 9):
        self._zip = zipfile.ZipFile(
            fileobj,
            mode="w",
            compression=zipfile.ZIP_DEFLATED,
            compresslevel=compresslevel,
        )
        self.names: list[str] = []

    def append(self, name: str, data: bytes | str) -> None:
        self._zip.writestr(name, data)
        self.names.append(name)

    def finalize(self) -> None:
        self._zip.close()
