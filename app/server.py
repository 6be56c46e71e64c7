"""
Club Management - FastAPI 웹 서버

클럽 / 팀 / 부모-자녀 계정 / 출석 / 알림 설정 API
데이터 소스: Supabase (개발/테스트: 메모리 저장소)
"""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger

from app.club import ClubContext, ClubError, club_router
from app.config import get_club_settings

from database import StoreError


def create_app(context: Optional[ClubContext] = None) -> FastAPI:
    """
    앱 생성

    Args:
        context: 미리 만든 컨텍스트 (테스트용). 없으면 설정에 따라 시작 시 생성
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        club = context or ClubContext.from_settings(get_club_settings())
        app.state.club = club
        logger.info(f"✅ 서버 시작 완료 - 저장소: {club.settings.store_backend}")
        try:
            yield
        finally:
            await club.close()
            app.state.club = None
            logger.info("서버 종료됨")

    app = FastAPI(
        title="Club Management",
        description="클럽/팀 회원, 부모-자녀 계정, 출석 관리 API",
        version="1.0.0",
        lifespan=lifespan
    )

    @app.exception_handler(ClubError)
    async def club_error_handler(request: Request, exc: ClubError):
        logger.info(f"{request.method} {request.url.path} → {exc.code} ({exc.detail})")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError):
        logger.error(f"{request.method} {request.url.path} 저장소 오류: {exc}")
        return JSONResponse(
            status_code=503,
            content={"code": "STORE_ERROR", "message": "저장소 오류가 발생했습니다", "detail": str(exc)}
        )

    @app.get("/api/status")
    async def api_status(request: Request):
        """서버 상태"""
        club = getattr(request.app.state, "club", None)
        return {
            "status": "ok" if club else "starting",
            "store_backend": club.settings.store_backend if club else None,
        }

    # Club Management 라우터 등록
    app.include_router(club_router, prefix="/api")

    return app


app = create_app()
