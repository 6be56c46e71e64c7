"""
Attendance Session Manager

팀 + 날짜 단위 출석 입력
- 명단 구성, 기존 세션 조회, 당일 일정 RSVP 기반 사전 입력
- 저장 시 통계 / 참석 응답 교차 집계 재계산, 수정 이력 누적
"""

from typing import Dict, Iterable, List, Mapping, Optional, Union

from loguru import logger

from ..directory import ClubDirectory, find_team, team_roster_ids
from ..errors import ClubError, ErrorCode
from ..models import (
    AttendanceDay,
    AttendanceRecord,
    AttendanceSession,
    AttendanceStatistics,
    AttendanceType,
    CrossCheck,
    EditHistoryEntry,
    EventResponse,
    RsvpAnswer,
    SessionMode,
    TeamEvent,
    User,
    now_iso,
)
from .repository import AttendanceRepository

ResponseValue = Union[EventResponse, dict, str]

YES_STATUSES = ("attending", "confirmed")
NO_STATUSES = ("declined",)
MAYBE_STATUSES = ("maybe", "tentative")

# 사전 입력 시 출석 처리하는 응답
PRESENT_STATUSES = ("confirmed", "attending")
# 사전 입력 시 코멘트만 남기는 응답
ANNOTATE_STATUSES = ("declined", "tentative", "maybe")


# =============================================
# 순수 함수
# =============================================

def _status_of(value: Optional[ResponseValue]) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, EventResponse):
        return value.status
    if isinstance(value, dict):
        return value.get("status")
    return str(value)


def classify_response(status: Optional[str]) -> RsvpAnswer:
    """RSVP 상태 → yes / no / maybe / none"""
    if not status:
        return RsvpAnswer.none
    status = status.strip().lower()
    if status in YES_STATUSES:
        return RsvpAnswer.yes
    if status in NO_STATUSES:
        return RsvpAnswer.no
    if status in MAYBE_STATUSES:
        return RsvpAnswer.maybe
    return RsvpAnswer.none


def compute_statistics(records: Iterable[AttendanceRecord]) -> AttendanceStatistics:
    records = list(records)
    total = len(records)
    present = sum(1 for r in records if r.present)
    percentage = round(100 * present / total, 1) if total else 0.0
    return AttendanceStatistics(
        total=total,
        present=present,
        absent=total - present,
        percentage=percentage
    )


def cross_check(
    records: Iterable[AttendanceRecord],
    responses: Mapping[str, ResponseValue]
) -> CrossCheck:
    """
    참석 응답 × 실제 출석 8칸 집계

    대상 = 출석 명단 ∪ 응답자. 명단에 없는 응답자는 불참으로 분류.
    """
    records = list(records)
    present_ids = {r.user_id for r in records if r.present}

    people: List[str] = []
    for user_id in [*(r.user_id for r in records), *responses.keys()]:
        if user_id not in people:
            people.append(user_id)

    buckets: Dict[str, List[str]] = {name: [] for name in CrossCheck.model_fields}
    for user_id in people:
        answer = classify_response(_status_of(responses.get(user_id)))
        came = "came" if user_id in present_ids else "missed"
        buckets[f"{answer.value}_{came}"].append(user_id)

    return CrossCheck(**buckets)


def prefill_from_responses(
    records: Iterable[AttendanceRecord],
    responses: Mapping[str, ResponseValue]
) -> List[AttendanceRecord]:
    """일정 RSVP로 출석 사전 입력 (원본 목록은 변경하지 않음)"""
    filled = []
    for record in records:
        record = record.model_copy(deep=True)
        response = responses.get(record.user_id)
        status = (_status_of(response) or "").strip().lower()

        if status in PRESENT_STATUSES:
            record.present = True
        elif status in ANNOTATE_STATUSES and not record.comment:
            message = response.get("message") if isinstance(response, dict) else getattr(response, "message", None)
            record.comment = f"RSVP: {status}" + (f" - {message}" if message else "")

        filled.append(record)
    return filled


def validate_session(session: AttendanceSession, existing_sessions: Iterable[AttendanceSession]) -> None:
    """
    저장 전 검증

    - custom 유형은 custom_type 필요
    - 같은 팀/날짜에 다른 세션이 있으면 비어있지 않고 겹치지 않는 session_name 필요
    """
    if session.type == AttendanceType.custom and not session.custom_type.strip():
        raise ClubError(ErrorCode.CUSTOM_TYPE_REQUIRED)

    others = [
        s for s in existing_sessions
        if s.id != session.id and s.team_id == session.team_id and s.date == session.date
    ]
    if not others:
        return

    name = session.session_name.strip()
    if not name:
        raise ClubError(ErrorCode.SESSION_NAME_REQUIRED, f"{session.team_id}/{session.date}")

    taken = {s.session_name.strip().lower() for s in others}
    if name.lower() in taken:
        raise ClubError(ErrorCode.SESSION_NAME_REQUIRED, f"중복된 세션 이름: {name}")


def record_for(user: User) -> AttendanceRecord:
    return AttendanceRecord(
        user_id=user.id,
        username=user.username or user.email,
        email=user.email,
        role=user.role
    )


# =============================================
# 세션 관리
# =============================================

class AttendanceSessionManager:
    """팀 + 날짜 출석 입력 흐름"""

    def __init__(self, directory: ClubDirectory, repository: AttendanceRepository):
        self.directory = directory
        self.repository = repository

    async def build_roster(self, club_id: str, team_id: str) -> List[AttendanceRecord]:
        """팀 명단 (코치 → 보조 → 선수)"""
        club = await self.directory.get_club(club_id)
        if not club:
            raise ClubError(ErrorCode.CLUB_NOT_FOUND, club_id)
        team = find_team(club, team_id)
        if not team:
            raise ClubError(ErrorCode.TEAM_NOT_FOUND, team_id)

        roster_ids = team_roster_ids(team)
        users = await self.directory.get_user_map(roster_ids)
        missing = [uid for uid in roster_ids if uid not in users]
        if missing:
            logger.warning(f"팀 {team_id} 명단에 없는 사용자 {len(missing)}명 제외")

        return [record_for(users[uid]) for uid in roster_ids if uid in users]

    async def load_day(
        self,
        club_id: str,
        team_id: str,
        day: str,
        session_id: Optional[str] = None
    ) -> AttendanceDay:
        """
        출석 화면 상태 구성

        기존 세션이 있어도 기본은 새 세션 모드, session_id를 주면 해당 세션 수정 모드.
        당일 일정이 하나면 자동 선택 후 RSVP로 사전 입력.
        """
        roster = await self.build_roster(club_id, team_id)
        existing = await self.repository.get_attendance_by_date(team_id, day)
        events = await self.directory.get_events_on(team_id, day)
        selected: Optional[TeamEvent] = events[0] if len(events) == 1 else None

        if session_id:
            session = next((s for s in existing if s.id == session_id), None)
            if not session:
                raise ClubError(ErrorCode.ATTENDANCE_NOT_FOUND, session_id)
            return AttendanceDay(
                club_id=club_id,
                team_id=team_id,
                date=day,
                roster=roster,
                existing_sessions=existing,
                events=events,
                selected_event_id=session.event_id,
                mode=SessionMode.edit,
                session=session
            )

        records = roster
        if selected:
            records = prefill_from_responses(roster, selected.responses)
            logger.debug(f"일정 {selected.id} 응답으로 사전 입력 ({len(selected.responses)}건)")

        session = AttendanceSession(
            team_id=team_id,
            club_id=club_id,
            date=day,
            event_id=selected.id if selected else None,
            event_title=selected.title if selected else None,
            records=records,
            statistics=compute_statistics(records)
        )

        return AttendanceDay(
            club_id=club_id,
            team_id=team_id,
            date=day,
            roster=roster,
            existing_sessions=existing,
            events=events,
            selected_event_id=selected.id if selected else None,
            mode=SessionMode.new,
            session=session
        )

    async def save(
        self,
        session: AttendanceSession,
        editor: User,
        description: str = ""
    ) -> AttendanceSession:
        """
        세션 저장 (생성 또는 수정)

        통계 / 교차 집계를 다시 계산하고 수정 이력 1건 추가.
        수정 시 이력과 생성 정보는 저장된 문서 기준 (요청 값 무시).
        """
        stored: Optional[AttendanceSession] = None
        if session.id:
            stored = await self.repository.get_attendance(session.id)
            if not stored:
                raise ClubError(ErrorCode.ATTENDANCE_NOT_FOUND, session.id)

        existing = await self.repository.get_attendance_by_date(session.team_id, session.date)
        validate_session(session, existing)

        timestamp = now_iso()
        session = session.model_copy(deep=True)
        session.custom_type = session.custom_type.strip() if session.type == AttendanceType.custom else ""
        session.session_name = session.session_name.strip()
        session.statistics = compute_statistics(session.records)
        session.cross_check = None

        if session.event_id:
            event = await self.directory.get_event(session.event_id)
            if event:
                session.event_title = session.event_title or event.title
                session.cross_check = cross_check(session.records, event.responses)
            else:
                logger.warning(f"연결된 일정 없음: {session.event_id}")

        entry = EditHistoryEntry(
            editor_id=editor.id,
            editor_name=editor.display_name,
            timestamp=timestamp,
            description=description
        )

        if stored:
            session.edit_history = [*stored.edit_history, entry]
            session.created_by = stored.created_by
            session.created_at = stored.created_at
            session.updated_at = timestamp
            await self.repository.update_attendance(session.id, session)
        else:
            session.edit_history = [entry]
            session.created_by = editor.id
            session.created_at = timestamp
            session.updated_at = timestamp
            session.id = await self.repository.create_attendance(session)

        stats = session.statistics
        logger.info(
            f"출석 저장: {session.id} ({session.date}) {stats.present}/{stats.total} ({stats.percentage}%)"
        )
        return session

    async def delete(self, attendance_id: str) -> None:
        if not await self.repository.get_attendance(attendance_id):
            raise ClubError(ErrorCode.ATTENDANCE_NOT_FOUND, attendance_id)
        await self.repository.delete_attendance(attendance_id)
