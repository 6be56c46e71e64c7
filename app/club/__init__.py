"""
Club Management Module

클럽/팀 회원 관리
- 부모-자녀 계정 연결 및 승인
- 팀 출석 입력 / 교차 확인 / 통계
- 클럽·팀 알림 설정
"""

from .context import ClubContext
from .errors import ClubError, ErrorCode
from .router import router as club_router

__all__ = [
    "club_router",
    "ClubContext",
    "ClubError",
    "ErrorCode",
]
