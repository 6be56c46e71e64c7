"""
Notification Settings

클럽 / 팀 단위 알림 설정 (push, email, 응답 필요 알림)
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Union

from loguru import logger
from pydantic import BaseModel, ConfigDict

from database import DocumentStore, StoreError

from ..directory import ClubDirectory
from ..models import now_iso

NOTIFICATION_SETTINGS = "notificationSettings"


class Channel(str, Enum):
    push = "push"
    email = "email"


class ActionType(str, Enum):
    event_attendance = "event_attendance"
    order_response = "order_response"


class EventToggles(BaseModel):
    model_config = ConfigDict(extra="forbid")

    created: bool = False
    updated: bool = False
    deleted: bool = False


class OrderToggles(BaseModel):
    model_config = ConfigDict(extra="forbid")

    created: bool = False
    deadline: bool = False


class ChannelSettings(BaseModel):
    """채널별 알림 (일정 / 주문)"""
    model_config = ConfigDict(extra="forbid")

    enabled: bool = False
    events: EventToggles = EventToggles()
    orders: OrderToggles = OrderToggles()


class ActionRequiredSettings(BaseModel):
    """응답이 필요한 알림"""
    model_config = ConfigDict(extra="forbid", use_enum_values=True)

    enabled: bool = False
    types: List[ActionType] = [ActionType.event_attendance, ActionType.order_response]


class NotificationSettings(BaseModel):
    """알림 설정 (기본값 전부 꺼짐)"""
    model_config = ConfigDict(extra="ignore")

    push: ChannelSettings = ChannelSettings()
    email: ChannelSettings = ChannelSettings()
    action_required: ActionRequiredSettings = ActionRequiredSettings()
    updated_at: Optional[str] = None

    def is_enabled(self, channel: Union[Channel, str], category: str, event: str) -> bool:
        """예: is_enabled("push", "events", "created")"""
        settings: ChannelSettings = getattr(self, Channel(channel).value)
        if not settings.enabled:
            return False
        toggles = getattr(settings, category, None)
        if not isinstance(toggles, (EventToggles, OrderToggles)):
            return False
        return bool(getattr(toggles, event, False))


class ClubNotificationSettings(BaseModel):
    """클럽 + 소속 팀 전체 설정"""
    club: NotificationSettings
    teams: Dict[str, NotificationSettings] = {}


def settings_doc_id(club_id: str, team_id: Optional[str] = None) -> str:
    if team_id:
        return f"team:{club_id}:{team_id}"
    return f"club:{club_id}"


def _deep_merge(base: Dict[str, Any], patch: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in patch.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class NotificationSettingsService:
    """알림 설정 저장소"""

    def __init__(self, store: DocumentStore, directory: ClubDirectory):
        self.store = store
        self.directory = directory

    async def _load(self, club_id: str, team_id: Optional[str] = None) -> Optional[NotificationSettings]:
        doc = await self.store.get(NOTIFICATION_SETTINGS, settings_doc_id(club_id, team_id))
        return NotificationSettings(**doc) if doc else None

    async def get(self, club_id: str, team_id: Optional[str] = None) -> NotificationSettings:
        """저장된 설정 또는 기본값 (조회 오류 시 기본값)"""
        try:
            settings = await self._load(club_id, team_id)
        except StoreError as e:
            logger.error(f"알림 설정 조회 오류 ({settings_doc_id(club_id, team_id)}): {e}")
            return NotificationSettings()
        return settings or NotificationSettings()

    async def update(
        self,
        club_id: str,
        team_id: Optional[str],
        settings: Union[NotificationSettings, Dict[str, Any]]
    ) -> NotificationSettings:
        """
        설정 병합 저장

        dict는 부분 수정 (예: {"push": {"events": {"created": True}}})
        """
        if isinstance(settings, NotificationSettings):
            patch = settings.model_dump(mode="json", exclude={"updated_at"})
        else:
            patch = {k: v for k, v in settings.items() if k not in ("id", "updated_at")}

        current = await self._load(club_id, team_id) or NotificationSettings()
        merged = _deep_merge(current.model_dump(mode="json", exclude={"updated_at"}), patch)
        result = NotificationSettings(**merged, updated_at=now_iso())

        doc_id = settings_doc_id(club_id, team_id)
        await self.store.set(NOTIFICATION_SETTINGS, doc_id, {
            **result.model_dump(mode="json"),
            "club_id": club_id,
            "team_id": team_id,
        })
        logger.info(f"알림 설정 저장: {doc_id}")
        return result

    async def get_all_for_club(self, club_id: str) -> ClubNotificationSettings:
        club_settings = await self.get(club_id)
        club = await self.directory.get_club(club_id)
        if not club:
            return ClubNotificationSettings(club=club_settings)

        teams = {}
        for team in club.teams:
            teams[team.id] = await self.get(club_id, team.id)
        return ClubNotificationSettings(club=club_settings, teams=teams)

    async def effective(self, club_id: str, team_id: Optional[str] = None) -> NotificationSettings:
        """팀 설정 문서가 있으면 팀, 없으면 클럽, 둘 다 없으면 기본값"""
        if team_id:
            team_settings = await self._load(club_id, team_id)
            if team_settings:
                return team_settings
        return await self.get(club_id)

    async def is_enabled(
        self,
        club_id: str,
        team_id: Optional[str],
        channel: Union[Channel, str],
        category: str,
        event: str
    ) -> bool:
        settings = await self.effective(club_id, team_id)
        return settings.is_enabled(channel, category, event)
