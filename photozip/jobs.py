"""
작업 로그 저장소

jobId별로 진행 로그 줄과 완료 여부를 보관하고, 오프셋 기반 폴링으로 새 줄만 돌려줍니다.
"""

import logging
import threading
import time
from dataclasses import dataclass, field


@dataclass
class Job:
    lines: list[str] = field(default_factory=list)
    finished: bool = False
    updated_at: float = field(default_factory=time.monotonic)


@dataclass
class LogChunk:
    lines: list[str]
    finished: bool
    next: int


class JobLogStore:
    """
    프로세스 내 작업 로그 저장소

    각 작업은 자신의 작업 스레드만 기록하고, 폴러는 읽기만 합니다.
    완료된 작업의 로그를 끝까지 읽어가면 삭제되며, 오래 방치된 작업은 sweep()으로 정리합니다.
    """

    def __init__(self, ttl: float = 3600.0):
        self.ttl = ttl
        self._jobs: dict[str, Job] = {}
        self._lock = threading.Lock()

    def __contains__(self, job_id: str) -> bool:
        with self._lock:
            return job_id in self._jobs

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def open(self, job_id: str) -> Job:
        """작업을 가져오고, 없거나 이전 작업이 이미 끝났으면 새로 만듭니다."""
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.finished:
                job = Job()
                self._jobs[job_id] = job
            return job

    def append(self, job_id: str, line: str) -> None:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                job = self._jobs[job_id] = Job()
            job.lines.append(line)
            job.updated_at = time.monotonic()

    def finish(self, job_id: str) -> None:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is not None:
                job.finished = True
                job.updated_at = time.monotonic()

    def poll(self, job_id: str | None, offset: int = 0) -> LogChunk:
        """
        offset 이후의 새 로그 줄을 반환합니다.

        알 수 없는 jobId는 빈 완료 상태를 돌려줍니다. 완료된 작업의 마지막 줄까지
        전달하면 작업을 삭제합니다.

        Args:
            job_id: 작업 식별자
            offset: 이미 받은 줄 수

        Returns:
            LogChunk(lines, finished, next)
        """
        offset = max(0, offset)
        with self._lock:
            job = self._jobs.get(job_id) if job_id else None
            if job is None:
                return LogChunk(lines=[], finished=True, next=offset)

            lines = job.lines[offset:]
            next_offset = offset + len(lines)
            finished = job.finished
            if finished and next_offset >= len(job.lines):
                del self._jobs[job_id]
            return LogChunk(lines=lines, finished=finished, next=next_offset)

    def sweep(self, now: float | None = None) -> int:
        """ttl 동안 갱신되지 않은 작업을 삭제하고 삭제 개수를 반환합니다."""
        now = time.monotonic() if now is None else now
        with self._lock:
            stale = [job_id for job_id, job in self._jobs.items() if now - job.updated_at > self.ttl]
            for job_id in stale:
                del self._jobs[job_id]
        if stale:
            logging.info("[jobs] swept %d idle job(s)", len(stale))
        return len(stale)


class ProgressReporter:
    """작업 진행 줄을 로그와 작업 로그 저장소에 함께 기록합니다."""

    def __init__(self, store: JobLogStore | None = None, job_id: str | None = None):
        self.store = store if job_id else None
        self.job_id = job_id
        self.lines: list[str] = []
        if self.store is not None:
            self.store.open(job_id)

    def __call__(self, message: str) -> None:
        line = str(message)
        self.lines.append(line)
        logging.info("[job %s] %s", self.job_id or "-", line)
        if self.store is not None:
            self.store.append(self.job_id, line)

    def fatal(self, exc: BaseException, detail: str | None = None) -> None:
        logging.error("[job %s] fatal error", self.job_id or "-", exc_info=exc)
        line = f"FATAL: {detail or repr(exc)}"
        self.lines.append(line)
        if self.store is not None:
            self.store.append(self.job_id, line)

    def finish(self) -> None:
        if self.store is not None:
            self.store.finish(self.job_id)
