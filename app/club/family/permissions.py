"""
자녀 계정 권한 체크
"""

from ..models import User

# 자녀 계정 허용 동작
ALLOWED_CHILD_ACTIONS = frozenset([
    "view_calendar",
    "view_events",
    "respond_to_event",
    "view_chat",
    "send_chat_message",
    "receive_notification",
    "view_own_profile",
    "view_team",
    "view_club",
])

# 자녀 계정 금지 동작 (허용 목록보다 우선)
DENIED_CHILD_ACTIONS = frozenset([
    "create_event",
    "delete_event",
    "edit_event",
    "create_chat",
    "create_team",
    "manage_users",
    "purchase_subscription",   # 부모 승인 필요
    "change_own_password",     # 연결 계정만 가능
    "delete_own_account",      # 연결 계정만 가능
    "create_club",
    "edit_club",
    "delete_club",
])


def check_child_permissions(user: User, action: str) -> bool:
    """
    자녀 계정 동작 허용 여부

    부모 통제 대상이 아니면 모두 허용.
    통제 대상이면 금지 목록 → 거부, 허용 목록 → 허용, 그 외 → 거부.
    """
    if not user.is_under_parental_control:
        return True

    if action in DENIED_CHILD_ACTIONS:
        return False

    return action in ALLOWED_CHILD_ACTIONS
