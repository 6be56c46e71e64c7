"""
Club Context

프로세스 수명 동안 유지되는 저장소 + 서비스 묶음.
앱 시작 시 생성, 종료 시 close() (대기 중 자동 저장 취소).
"""

from typing import Optional

from loguru import logger

from app.config import ClubSettings, get_club_settings
from database import DocumentStore, create_document_store

from .attendance import AttendanceRepository, AttendanceSessionManager, DraftRegistry
from .directory import ClubDirectory
from .family import FamilyService
from .notifications import ActionRequiredService, NotificationSettingsService


class ClubContext:
    """클럽 서비스 컨텍스트"""

    def __init__(self, store: DocumentStore, settings: Optional[ClubSettings] = None):
        self.settings = settings or get_club_settings()
        self.store = store

        self.directory = ClubDirectory(store)
        self.family = FamilyService(store, self.directory, self.settings)
        self.attendance_repository = AttendanceRepository(store)
        self.attendance = AttendanceSessionManager(self.directory, self.attendance_repository)
        self.drafts = DraftRegistry(
            self.attendance,
            delay=self.settings.autosave_debounce_seconds,
            idle_timeout=self.settings.draft_idle_seconds
        )
        self.notifications = NotificationSettingsService(store, self.directory)
        self.actions = ActionRequiredService(store)

    @classmethod
    def from_settings(cls, settings: Optional[ClubSettings] = None) -> "ClubContext":
        settings = settings or get_club_settings()
        return cls(create_document_store(settings.store_backend), settings)

    async def close(self) -> None:
        await self.drafts.close_all()
        await self.store.close()
        logger.info("클럽 컨텍스트 종료")
