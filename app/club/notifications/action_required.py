"""
Action-Required Notifications

사용자 응답이 필요한 알림 (일정 참석 확인, 주문 응답)
- 생성 시 pending, 대상 사용자가 수락/거절
- 만료 시각이 지난 알림은 조회 시 expired 처리
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from database import DocumentStore, where

from ..errors import ClubError, ErrorCode
from ..models import now_iso
from .settings import ActionType

ACTION_REQUIRED_NOTIFICATIONS = "actionRequiredNotifications"


class ActionStatus(str, Enum):
    pending = "pending"
    accepted = "accepted"
    declined = "declined"
    expired = "expired"


class ActionRequiredNotification(BaseModel):
    """응답 필요 알림 문서"""
    model_config = ConfigDict(extra="ignore", use_enum_values=True)

    id: str
    club_id: str
    user_id: str
    type: ActionType
    title: str = ""
    message: str = ""
    reference_id: Optional[str] = None     # 일정 / 주문 ID
    status: ActionStatus = ActionStatus.pending
    created_at: Optional[str] = None
    expires_at: Optional[str] = None
    responded_by: Optional[str] = None
    responded_at: Optional[str] = None

    def is_expired(self, now: datetime) -> bool:
        return bool(self.expires_at) and datetime.fromisoformat(self.expires_at) <= now


class ActionRequiredCreate(BaseModel):
    """응답 필요 알림 생성 요청"""
    user_id: str
    type: ActionType
    title: str = Field(default="", max_length=200)
    message: str = ""
    reference_id: Optional[str] = None
    expires_at: Optional[datetime] = None


class ActionRequiredService:
    """응답 필요 알림 저장소"""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def _get(self, notification_id: str) -> ActionRequiredNotification:
        doc = await self.store.get(ACTION_REQUIRED_NOTIFICATIONS, notification_id)
        if not doc:
            raise ClubError(ErrorCode.NOTIFICATION_NOT_FOUND, notification_id)
        return ActionRequiredNotification(**doc)

    async def create(self, club_id: str, data: ActionRequiredCreate) -> ActionRequiredNotification:
        expires_at = data.expires_at
        if expires_at is not None and expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)

        notification = ActionRequiredNotification(
            id=f"action_{uuid.uuid4().hex[:16]}",
            club_id=club_id,
            user_id=data.user_id,
            type=data.type,
            title=data.title,
            message=data.message,
            reference_id=data.reference_id,
            created_at=now_iso(),
            expires_at=expires_at.isoformat() if expires_at else None
        )
        await self.store.set(ACTION_REQUIRED_NOTIFICATIONS, notification.id, notification.model_dump(mode="json"))
        logger.info(f"응답 필요 알림 생성: {notification.id} ({notification.type} → {data.user_id})")
        return notification

    async def get_pending(self, user_id: str) -> List[ActionRequiredNotification]:
        """대기 중 알림 (만료 건은 expired 처리 후 제외)"""
        docs = await self.store.query(
            ACTION_REQUIRED_NOTIFICATIONS,
            where("user_id", "==", user_id),
            where("status", "==", ActionStatus.pending.value),
            order_by="created_at"
        )

        now = datetime.now(timezone.utc)
        pending = []
        for doc in docs:
            notification = ActionRequiredNotification(**doc)
            if not notification.is_expired(now):
                pending.append(notification)
                continue
            await self.store.update(ACTION_REQUIRED_NOTIFICATIONS, notification.id, {
                "status": ActionStatus.expired.value
            })
            logger.debug(f"응답 필요 알림 만료: {notification.id}")
        return pending

    async def respond(
        self,
        notification_id: str,
        user_id: str,
        accepted: bool
    ) -> ActionRequiredNotification:
        """알림 대상자만 응답, pending 상태에서 1회"""
        notification = await self._get(notification_id)
        if notification.user_id != user_id:
            raise ClubError(ErrorCode.NOT_AUTHORIZED, user_id)

        if notification.status == ActionStatus.pending.value and notification.is_expired(datetime.now(timezone.utc)):
            await self.store.update(ACTION_REQUIRED_NOTIFICATIONS, notification_id, {
                "status": ActionStatus.expired.value
            })
            raise ClubError(ErrorCode.NOTIFICATION_CLOSED, notification_id)

        if notification.status != ActionStatus.pending.value:
            raise ClubError(ErrorCode.NOTIFICATION_CLOSED, notification_id)

        updates = {
            "status": (ActionStatus.accepted if accepted else ActionStatus.declined).value,
            "responded_by": user_id,
            "responded_at": now_iso()
        }
        await self.store.update(ACTION_REQUIRED_NOTIFICATIONS, notification_id, updates)
        logger.info(f"응답 필요 알림 응답: {notification_id} → {updates['status']}")
        return notification.model_copy(update=updates)


class ActionRequiredDecision(BaseModel):
    """응답 필요 알림 수락/거절"""
    accepted: bool
