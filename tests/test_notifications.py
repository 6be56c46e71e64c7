"""
Notification Settings Tests - 알림 설정 테스트
"""
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError
from unittest.mock import AsyncMock, patch

from app.club.errors import ClubError, ErrorCode
from app.club.notifications import (
    ACTION_REQUIRED_NOTIFICATIONS,
    ActionRequiredCreate,
    ActionRequiredService,
    NOTIFICATION_SETTINGS,
    NotificationSettings,
    NotificationSettingsService,
    settings_doc_id,
)
from database import StoreError

from conftest import CLUB_ID, TEAM_A, TEAM_B


@pytest.fixture
def service(store, directory):
    return NotificationSettingsService(store, directory)


class TestNotificationModel:
    """설정 모델"""

    def test_defaults_all_off(self):
        settings = NotificationSettings()
        assert settings.push.enabled is False
        assert settings.email.events.created is False
        assert settings.email.orders.deadline is False
        assert settings.action_required.enabled is False
        assert settings.action_required.types == ["event_attendance", "order_response"]

    def test_is_enabled_requires_channel(self):
        settings = NotificationSettings(push={"enabled": False, "events": {"created": True}})
        assert settings.is_enabled("push", "events", "created") is False

        settings = NotificationSettings(push={"enabled": True, "events": {"created": True}})
        assert settings.is_enabled("push", "events", "created") is True
        assert settings.is_enabled("push", "events", "deleted") is False
        assert settings.is_enabled("push", "orders", "created") is False
        assert settings.is_enabled("email", "events", "created") is False

    def test_unknown_category(self):
        settings = NotificationSettings(push={"enabled": True})
        assert settings.is_enabled("push", "enabled", "created") is False
        assert settings.is_enabled("push", "chats", "created") is False

    def test_unknown_toggle_rejected(self):
        with pytest.raises(ValidationError):
            NotificationSettings(push={"events": {"renamed": True}})

    def test_doc_ids(self):
        assert settings_doc_id("c1") == "club:c1"
        assert settings_doc_id("c1", "t1") == "team:c1:t1"


@pytest.mark.asyncio
class TestNotificationService:
    """설정 저장소"""

    async def test_missing_returns_defaults(self, service):
        settings = await service.get(CLUB_ID)
        assert settings == NotificationSettings()

    async def test_update_merges(self, service, store):
        await service.update(CLUB_ID, None, {"push": {"enabled": True}})
        await service.update(CLUB_ID, None, {"push": {"events": {"created": True}}})

        settings = await service.get(CLUB_ID)
        assert settings.push.enabled is True
        assert settings.push.events.created is True
        assert settings.updated_at is not None

        doc = await store.get(NOTIFICATION_SETTINGS, f"club:{CLUB_ID}")
        assert doc["club_id"] == CLUB_ID

    async def test_update_with_model(self, service):
        model = NotificationSettings(email={"enabled": True, "orders": {"deadline": True}})
        await service.update(CLUB_ID, TEAM_A, model)

        settings = await service.get(CLUB_ID, TEAM_A)
        assert settings.email.orders.deadline is True
        assert (await service.get(CLUB_ID)).email.enabled is False

    async def test_invalid_update_rejected(self, service):
        with pytest.raises(ValidationError):
            await service.update(CLUB_ID, None, {"push": {"events": {"bogus": True}}})

    async def test_read_error_returns_defaults(self, service, store):
        with patch.object(store, "get", AsyncMock(side_effect=StoreError("offline"))):
            settings = await service.get(CLUB_ID)
        assert settings == NotificationSettings()

    async def test_all_for_club(self, service):
        await service.update(CLUB_ID, TEAM_A, {"push": {"enabled": True}})

        result = await service.get_all_for_club(CLUB_ID)

        assert set(result.teams) == {TEAM_A, TEAM_B}
        assert result.teams[TEAM_A].push.enabled is True
        assert result.teams[TEAM_B].push.enabled is False
        assert result.club.push.enabled is False

    async def test_all_for_unknown_club(self, service):
        result = await service.get_all_for_club("ghost")
        assert result.teams == {}

    async def test_team_overrides_club(self, service):
        await service.update(CLUB_ID, None, {"push": {"enabled": True, "events": {"created": True}}})
        await service.update(CLUB_ID, TEAM_A, {"push": {"enabled": False}})

        assert await service.is_enabled(CLUB_ID, TEAM_A, "push", "events", "created") is False
        # 팀 설정 없는 팀은 클럽 설정
        assert await service.is_enabled(CLUB_ID, TEAM_B, "push", "events", "created") is True
        assert await service.is_enabled(CLUB_ID, None, "push", "events", "created") is True

    async def test_effective_defaults(self, service):
        assert await service.effective("ghost", "t9") == NotificationSettings()


@pytest.fixture
def actions(store):
    return ActionRequiredService(store)


def attendance_request(user_id="kid", **kwargs):
    return ActionRequiredCreate(
        user_id=user_id,
        type="event_attendance",
        title="토요일 훈련 참석 확인",
        reference_id="e1",
        **kwargs
    )


@pytest.mark.asyncio
class TestActionRequired:
    """응답 필요 알림"""

    async def test_create_and_list(self, actions, store):
        created = await actions.create(CLUB_ID, attendance_request())
        assert created.status == "pending"
        assert created.club_id == CLUB_ID

        doc = await store.get(ACTION_REQUIRED_NOTIFICATIONS, created.id)
        assert doc["type"] == "event_attendance"

        pending = await actions.get_pending("kid")
        assert [n.id for n in pending] == [created.id]
        assert await actions.get_pending("p2") == []

    async def test_accept(self, actions, store):
        created = await actions.create(CLUB_ID, attendance_request())

        result = await actions.respond(created.id, "kid", accepted=True)
        assert result.status == "accepted"
        assert result.responded_by == "kid"

        doc = await store.get(ACTION_REQUIRED_NOTIFICATIONS, created.id)
        assert doc["status"] == "accepted"
        assert doc["responded_at"]
        assert await actions.get_pending("kid") == []

    async def test_decline(self, actions):
        created = await actions.create(CLUB_ID, attendance_request())
        result = await actions.respond(created.id, "kid", accepted=False)
        assert result.status == "declined"

    async def test_only_target_can_respond(self, actions):
        created = await actions.create(CLUB_ID, attendance_request())
        with pytest.raises(ClubError) as exc:
            await actions.respond(created.id, "p1", accepted=True)
        assert exc.value.code == ErrorCode.NOT_AUTHORIZED

    async def test_respond_twice(self, actions):
        created = await actions.create(CLUB_ID, attendance_request())
        await actions.respond(created.id, "kid", accepted=True)
        with pytest.raises(ClubError) as exc:
            await actions.respond(created.id, "kid", accepted=False)
        assert exc.value.code == ErrorCode.NOTIFICATION_CLOSED

    async def test_unknown_notification(self, actions):
        with pytest.raises(ClubError) as exc:
            await actions.respond("ghost", "kid", accepted=True)
        assert exc.value.code == ErrorCode.NOTIFICATION_NOT_FOUND

    async def test_expired_marked_on_read(self, actions, store):
        past = datetime.now(timezone.utc) - timedelta(hours=1)
        expired = await actions.create(CLUB_ID, attendance_request(expires_at=past))
        live = await actions.create(CLUB_ID, attendance_request(expires_at=datetime.now(timezone.utc) + timedelta(days=1)))

        pending = await actions.get_pending("kid")
        assert [n.id for n in pending] == [live.id]

        doc = await store.get(ACTION_REQUIRED_NOTIFICATIONS, expired.id)
        assert doc["status"] == "expired"

    async def test_expired_cannot_be_answered(self, actions, store):
        past = datetime.now(timezone.utc) - timedelta(minutes=1)
        created = await actions.create(CLUB_ID, attendance_request(expires_at=past))

        with pytest.raises(ClubError) as exc:
            await actions.respond(created.id, "kid", accepted=True)
        assert exc.value.code == ErrorCode.NOTIFICATION_CLOSED
        assert (await store.get(ACTION_REQUIRED_NOTIFICATIONS, created.id))["status"] == "expired"

    async def test_naive_expiry_treated_as_utc(self, actions):
        created = await actions.create(CLUB_ID, attendance_request(expires_at=datetime(2020, 1, 1, 9, 0)))
        assert created.expires_at == "2020-01-01T09:00:00+00:00"
