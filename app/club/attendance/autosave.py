"""
출석 자동 저장 (debounce)

마지막 수정 후 일정 시간 조용하면 저장. 수정이 들어올 때마다 타이머 재시작.
실패 시 status = "error", 자동 재시도 없음 (수동 저장 필요).
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional

from loguru import logger

from ..models import now_iso


class AutoSaver:
    """asyncio 기반 자동 저장 타이머"""

    def __init__(self, save: Callable[[], Awaitable[Any]], delay: float = 2.0, label: str = "attendance"):
        self._save = save
        self.delay = delay
        self.label = label
        self._task: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()
        self._suppress = False
        self._closed = False

        self.status = "idle"    # idle | pending | saving | saved | error
        self.last_error: Optional[BaseException] = None
        self.last_saved_at: Optional[str] = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def suppress_next(self) -> None:
        """다음 touch() 1회 무시 (초기 데이터 채우기용)"""
        self._suppress = True

    def touch(self) -> None:
        """수정 발생 → 타이머 (재)시작"""
        if self._closed:
            return
        if self._suppress:
            self._suppress = False
            return

        self._cancel_timer()
        self.status = "pending"
        self._task = asyncio.get_running_loop().create_task(self._save_after_delay())

    async def flush(self) -> Any:
        """즉시 저장 (대기 중 타이머 취소). 실패하면 예외 재발생"""
        self._cancel_timer()
        return await self._run_save(raise_errors=True)

    async def close(self) -> None:
        """타이머 취소, 이후 touch() 무시"""
        self._closed = True
        task = self._task
        self._cancel_timer()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    def _cancel_timer(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _save_after_delay(self) -> None:
        await asyncio.sleep(self.delay)
        # 저장 시작 후에는 touch()가 진행 중 저장을 취소하지 않음
        self._task = None
        await self._run_save(raise_errors=False)

    async def _run_save(self, raise_errors: bool) -> Any:
        # 타이머 저장과 수동 저장은 한 번에 하나씩
        async with self._lock:
            self.status = "saving"
            try:
                result = await self._save()
            except Exception as e:
                self.status = "error"
                self.last_error = e
                logger.error(f"[{self.label}] 자동 저장 실패: {e}")
                if raise_errors:
                    raise
                return None

        # 저장 중 들어온 수정은 다음 타이머에서 저장
        self.status = "pending" if self.pending else "saved"
        self.last_error = None
        self.last_saved_at = now_iso()
        logger.debug(f"[{self.label}] 저장 완료")
        return result
