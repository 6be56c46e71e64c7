"""
클럽 관리 서버 메인
"""
import asyncio
import sys

import uvicorn
from loguru import logger

from app.club import ClubContext
from app.config import get_club_settings
from app.logging_setup import setup_logging


async def run_reconcile() -> int:
    """끊어진 참조 정리 1회 실행"""
    context = ClubContext.from_settings()
    try:
        report = await context.family.reconcile()
    finally:
        await context.close()

    print("\n=== 정합성 복구 결과 ===")
    print(f"  관계 정리: {len(report.orphaned_relationships)}건")
    print(f"  클럽/팀 명단 정리: {len(report.removed_memberships)}건")
    print(f"  child_ids 정리: {len(report.dangling_child_refs)}건")
    print(f"  parent_ids 정리: {len(report.dangling_parent_refs)}건")
    return 0


def main():
    """메인 함수"""
    import argparse

    parser = argparse.ArgumentParser(description="클럽 관리 서버")
    parser.add_argument(
        "--mode",
        choices=["serve", "reconcile"],
        default="serve",
        help="실행 모드"
    )
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=7171)
    parser.add_argument("--reload", action="store_true", help="코드 변경 시 재시작 (개발용)")

    args = parser.parse_args()

    settings = get_club_settings()
    setup_logging(settings.log_level, settings.log_dir)

    if args.mode == "reconcile":
        sys.exit(asyncio.run(run_reconcile()))

    logger.info(f"서버 시작: {args.host}:{args.port} (저장소: {settings.store_backend})")
    uvicorn.run("app.server:app", host=args.host, port=args.port, reload=args.reload)


if __name__ == "__main__":
    main()
