"""
Attendance Repository

출석 세션 문서 저장/조회 및 팀 누적 통계
"""

from typing import List, Optional, Union

from loguru import logger

from database import DocumentStore, where

from ..errors import ClubError, ErrorCode
from ..models import (
    AttendanceSession,
    TeamAttendanceStats,
    UserAttendanceStats,
    now_iso,
)

ATTENDANCE = "attendance"


def _to_doc(data: Union[AttendanceSession, dict]) -> dict:
    if isinstance(data, AttendanceSession):
        return data.model_dump(mode="json", exclude={"id"})
    return {k: v for k, v in data.items() if k != "id"}


class AttendanceRepository:
    """출석 세션 저장소 façade"""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def create_attendance(self, data: Union[AttendanceSession, dict]) -> str:
        timestamp = now_iso()
        doc = _to_doc(data)
        doc["created_at"] = doc.get("created_at") or timestamp
        doc["updated_at"] = timestamp
        attendance_id = await self.store.add(ATTENDANCE, doc)
        logger.info(f"출석 생성: {attendance_id} (team={doc.get('team_id')}, date={doc.get('date')})")
        return attendance_id

    async def get_attendance(self, attendance_id: str) -> Optional[AttendanceSession]:
        doc = await self.store.get(ATTENDANCE, attendance_id)
        return AttendanceSession(**doc) if doc else None

    async def get_attendance_by_date(self, team_id: str, day: str) -> List[AttendanceSession]:
        """해당 날짜 세션 전체 (최신순)"""
        docs = await self.store.query(
            ATTENDANCE,
            where("team_id", "==", team_id),
            where("date", "==", day),
            order_by="created_at",
            descending=True
        )
        return [AttendanceSession(**doc) for doc in docs]

    async def update_attendance(self, attendance_id: str, data: Union[AttendanceSession, dict]) -> None:
        if not await self.store.get(ATTENDANCE, attendance_id):
            raise ClubError(ErrorCode.ATTENDANCE_NOT_FOUND, attendance_id)
        doc = _to_doc(data)
        doc["updated_at"] = now_iso()
        await self.store.update(ATTENDANCE, attendance_id, doc)
        logger.info(f"출석 수정: {attendance_id}")

    async def delete_attendance(self, attendance_id: str) -> None:
        await self.store.delete(ATTENDANCE, attendance_id)
        logger.info(f"출석 삭제: {attendance_id}")

    async def get_team_attendance(self, team_id: str) -> List[AttendanceSession]:
        """팀 출석 기록 (최신 날짜순)"""
        docs = await self.store.query(
            ATTENDANCE,
            where("team_id", "==", team_id),
            order_by="date",
            descending=True
        )
        return [AttendanceSession(**doc) for doc in docs]

    async def get_team_attendance_stats(
        self,
        team_id: str,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None
    ) -> TeamAttendanceStats:
        """
        팀 누적 출석 통계

        Args:
            start_date, end_date: YYYY-MM-DD (둘 다 있을 때만 기간 필터)
        """
        filters = [where("team_id", "==", team_id)]
        if start_date and end_date:
            filters.append(where("date", ">=", start_date))
            filters.append(where("date", "<=", end_date))

        sessions = [AttendanceSession(**doc) for doc in await self.store.query(ATTENDANCE, *filters)]

        stats = TeamAttendanceStats(total_sessions=len(sessions))
        for session in sessions:
            stats.total_present += session.statistics.present
            stats.total_absent += session.statistics.absent

            for record in session.records:
                user = stats.user_stats.setdefault(record.user_id, UserAttendanceStats())
                user.total += 1
                if record.present:
                    user.present += 1
                else:
                    user.absent += 1

        counted = stats.total_present + stats.total_absent
        if stats.total_sessions and counted:
            stats.average_attendance = round(100 * stats.total_present / counted, 1)

        return stats
