"""
알림 설정 / 응답 필요 알림
"""
from .action_required import (
    ACTION_REQUIRED_NOTIFICATIONS,
    ActionRequiredCreate,
    ActionRequiredDecision,
    ActionRequiredNotification,
    ActionRequiredService,
    ActionStatus,
)
from .settings import (
    NOTIFICATION_SETTINGS,
    ActionRequiredSettings,
    ActionType,
    Channel,
    ChannelSettings,
    ClubNotificationSettings,
    NotificationSettings,
    NotificationSettingsService,
    settings_doc_id,
)

__all__ = [
    "ACTION_REQUIRED_NOTIFICATIONS",
    "ActionRequiredCreate",
    "ActionRequiredDecision",
    "ActionRequiredNotification",
    "ActionRequiredService",
    "ActionStatus",
    "NOTIFICATION_SETTINGS",
    "ActionRequiredSettings",
    "ActionType",
    "Channel",
    "ChannelSettings",
    "ClubNotificationSettings",
    "NotificationSettings",
    "NotificationSettingsService",
    "settings_doc_id",
]
