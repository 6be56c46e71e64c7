"""
부모-자녀 계정 관리
"""
from .permissions import ALLOWED_CHILD_ACTIONS, DENIED_CHILD_ACTIONS, check_child_permissions
from .service import RELATIONSHIPS, SUBSCRIPTION_APPROVALS, FamilyService, ReconcileReport

__all__ = [
    "ALLOWED_CHILD_ACTIONS",
    "DENIED_CHILD_ACTIONS",
    "check_child_permissions",
    "FamilyService",
    "ReconcileReport",
    "RELATIONSHIPS",
    "SUBSCRIPTION_APPROVALS",
]
