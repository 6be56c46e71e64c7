"""
출석 입력 초안

열린 출석 화면 1개 = 초안 1개. 수정마다 AutoSaver 타이머 재시작.
일정 시간 사용하지 않은 초안은 정리.
"""

import time
import uuid
from typing import Dict, List, Optional

from loguru import logger

from ..errors import ClubError, ErrorCode
from ..models import AttendanceDay, AttendanceRecord, AttendanceSession, AttendanceType, User
from .autosave import AutoSaver
from .sessions import AttendanceSessionManager

AUTO_SAVE_DESCRIPTION = "자동 저장"

# 저장 결과에서 편집 중인 세션으로 가져오는 필드
SAVED_FIELDS = ("id", "statistics", "cross_check", "event_title", "edit_history", "created_by", "created_at", "updated_at")


class AttendanceDraft:
    """편집 중인 출석 세션"""

    def __init__(
        self,
        draft_id: str,
        manager: AttendanceSessionManager,
        day: AttendanceDay,
        editor: User,
        delay: float
    ):
        self.id = draft_id
        self.manager = manager
        self.day = day
        self.editor = editor
        self.session: AttendanceSession = day.session.model_copy(deep=True)
        self.description = AUTO_SAVE_DESCRIPTION
        self.saver = AutoSaver(self._save, delay=delay, label=f"draft {draft_id}")
        self.revision = 0
        self.last_active = time.monotonic()

        # 불러온 데이터 채우기는 저장 대상 아님
        self.saver.suppress_next()
        self.saver.touch()

    def _record(self, user_id: str) -> AttendanceRecord:
        for record in self.session.records:
            if record.user_id == user_id:
                return record
        raise ClubError(ErrorCode.ATTENDANCE_NOT_FOUND, user_id)

    def _changed(self) -> None:
        self.revision += 1
        self.mark_active()
        self.saver.touch()

    def mark_active(self) -> None:
        self.last_active = time.monotonic()

    def idle_for(self) -> float:
        return time.monotonic() - self.last_active

    async def _save(self) -> AttendanceSession:
        revision = self.revision
        snapshot = self.session.model_copy(deep=True)
        saved = await self.manager.save(snapshot, self.editor, self.description)

        # 저장 중 수정된 기록은 유지하고 저장 결과만 반영
        self.session = self.session.model_copy(update={name: getattr(saved, name) for name in SAVED_FIELDS})
        self.description = AUTO_SAVE_DESCRIPTION
        if self.revision != revision:
            logger.debug(f"[draft {self.id}] 저장 중 수정 발생, 다시 저장 예약")
            self.saver.touch()
        return saved

    # =============================================
    # 수정
    # =============================================

    def toggle_presence(self, user_id: str) -> AttendanceRecord:
        record = self._record(user_id)
        record.present = not record.present
        self._changed()
        return record

    def set_presence(self, user_id: str, present: bool) -> AttendanceRecord:
        record = self._record(user_id)
        record.present = present
        self._changed()
        return record

    def set_comment(self, user_id: str, comment: str) -> AttendanceRecord:
        record = self._record(user_id)
        record.comment = comment
        self._changed()
        return record

    def set_custom_status(self, user_id: str, key: str, value: bool) -> AttendanceRecord:
        record = self._record(user_id)
        record.custom_statuses[key] = value
        self._changed()
        return record

    def set_details(
        self,
        type: Optional[AttendanceType] = None,
        custom_type: Optional[str] = None,
        session_name: Optional[str] = None
    ) -> AttendanceSession:
        if type is not None:
            self.session.type = type
        if custom_type is not None:
            self.session.custom_type = custom_type
        if session_name is not None:
            self.session.session_name = session_name
        self._changed()
        return self.session

    async def save_now(self, description: str = "") -> AttendanceSession:
        """수동 저장"""
        self.mark_active()
        if description:
            self.description = description
        return await self.saver.flush()

    def to_dict(self) -> dict:
        return {
            "draft_id": self.id,
            "status": self.saver.status,
            "error": str(self.saver.last_error) if self.saver.last_error else None,
            "last_saved_at": self.saver.last_saved_at,
            "session": self.session.model_dump(mode="json"),
        }


class DraftRegistry:
    """프로세스 내 열린 초안 목록"""

    def __init__(
        self,
        manager: AttendanceSessionManager,
        delay: float = 2.0,
        idle_timeout: float = 1800.0
    ):
        self.manager = manager
        self.delay = delay
        self.idle_timeout = idle_timeout
        self._drafts: Dict[str, AttendanceDraft] = {}

    def __len__(self) -> int:
        return len(self._drafts)

    async def open(
        self,
        club_id: str,
        team_id: str,
        day: str,
        editor: User,
        session_id: Optional[str] = None
    ) -> AttendanceDraft:
        await self.evict_idle()

        loaded = await self.manager.load_day(club_id, team_id, day, session_id=session_id)
        draft_id = uuid.uuid4().hex
        draft = AttendanceDraft(draft_id, self.manager, loaded, editor, self.delay)
        self._drafts[draft_id] = draft
        logger.debug(f"출석 초안 열기: {draft_id} ({team_id} {day}, {loaded.mode})")
        return draft

    def get(self, draft_id: str) -> AttendanceDraft:
        draft = self._drafts.get(draft_id)
        if not draft:
            raise ClubError(ErrorCode.ATTENDANCE_NOT_FOUND, draft_id)
        draft.mark_active()
        return draft

    async def close(self, draft_id: str) -> None:
        draft = self._drafts.pop(draft_id, None)
        if draft:
            await draft.saver.close()

    async def evict_idle(self) -> List[str]:
        """
        오래 사용하지 않은 초안 정리

        저장 대기/진행 중인 초안은 남겨둠.
        """
        expired = [
            draft_id for draft_id, draft in self._drafts.items()
            if draft.idle_for() > self.idle_timeout
            and not draft.saver.pending
            and draft.saver.status != "saving"
        ]
        for draft_id in expired:
            await self.close(draft_id)
        if expired:
            logger.info(f"사용하지 않은 출석 초안 {len(expired)}개 정리")
        return expired

    async def close_all(self) -> None:
        ids: List[str] = list(self._drafts)
        for draft_id in ids:
            await self.close(draft_id)
        if ids:
            logger.info(f"출석 초안 {len(ids)}개 정리")
