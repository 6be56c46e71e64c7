"""
Club Management Dependencies

컨텍스트 주입 및 인증 의존성
"""

from fastapi import Depends, HTTPException, Request, status
from loguru import logger

from .context import ClubContext
from .models import User, UserRole

TEST_USER_HEADER = "X-Test-User-Id"


def get_context(request: Request) -> ClubContext:
    """앱 시작 시 생성된 ClubContext"""
    context = getattr(request.app.state, "club", None)
    if context is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="서비스가 준비되지 않았습니다"
        )
    return context


async def get_current_user_id(
    request: Request,
    context: ClubContext = Depends(get_context)
) -> str:
    """
    현재 로그인한 사용자 ID

    테스트 모드 (CLUB_TEST_MODE=1):
    - X-Test-User-Id 헤더의 사용자로 로그인
    그 외:
    - Authorization: Bearer <Supabase access token>
    """
    if context.settings.test_mode:
        test_user_id = request.headers.get(TEST_USER_HEADER)
        if test_user_id:
            return test_user_id

    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="인증이 필요합니다"
        )

    token = auth_header.split(" ")[1]

    try:
        from database.supabase_client import get_supabase_client

        supabase = get_supabase_client()
        user_response = supabase.auth.get_user(token)

        if not user_response or not user_response.user:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="유효하지 않은 토큰입니다"
            )

        return user_response.user.id

    except HTTPException:
        raise
    except Exception as e:
        logger.warning(f"인증 오류: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"인증 오류: {str(e)}"
        )


async def get_current_user(
    user_id: str = Depends(get_current_user_id),
    context: ClubContext = Depends(get_context)
) -> User:
    """현재 사용자 문서"""
    user = await context.directory.get_user(user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="사용자 등록이 필요합니다"
        )
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    """관리자 권한 필요"""
    if user.role != UserRole.admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="관리자 권한이 필요합니다"
        )
    return user


def require_staff(user: User = Depends(get_current_user)) -> User:
    """코치 이상 권한 필요 (출석 입력)"""
    if user.role not in (UserRole.admin, UserRole.trainer, UserRole.assistant):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="코치 이상 권한이 필요합니다"
        )
    return user
