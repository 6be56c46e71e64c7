"""
User / Club / Team Directory

사용자, 클럽(팀 포함), 일정 문서 조회 및 팀 명단 수정
"""

from typing import Dict, List, Optional, Sequence, Tuple

from loguru import logger

from database import DocumentStore, where
from .models import Club, Team, TeamEvent, User, now_iso

USERS = "users"
CLUBS = "clubs"
EVENTS = "events"
REQUESTS = "requests"


def is_team_member(team: Team, user_id: str) -> bool:
    """members ∪ trainers ∪ assistants 포함 여부"""
    return (
        user_id in team.members
        or user_id in team.trainers
        or user_id in team.assistants
    )


def team_roster_ids(team: Team) -> List[str]:
    """팀 명단 (코치 → 보조 → 선수 순, 중복 제거)"""
    roster: List[str] = []
    for user_id in [*team.trainers, *team.assistants, *team.members]:
        if user_id not in roster:
            roster.append(user_id)
    return roster


def find_team(club: Club, team_id: str) -> Optional[Team]:
    for team in club.teams:
        if team.id == team_id:
            return team
    return None


class ClubDirectory:
    """사용자/클럽 디렉터리"""

    def __init__(self, store: DocumentStore):
        self.store = store

    # =============================================
    # 사용자
    # =============================================

    async def get_user(self, user_id: str) -> Optional[User]:
        doc = await self.store.get(USERS, user_id)
        return User(**doc) if doc else None

    async def find_user_by_email(self, email: str) -> Optional[User]:
        """
        이메일 조회 (대소문자 무시)

        User 모델로 쓴 문서는 소문자로 저장됨. 외부에서 들어온 대소문자 혼합 문서는 전체 조회로 확인.
        """
        normalized = email.strip().lower()
        docs = await self.store.query(USERS, where("email", "==", normalized))
        if docs:
            return User(**docs[0])

        for doc in await self.store.query(USERS):
            if (doc.get("email") or "").strip().lower() == normalized:
                logger.debug(f"이메일 대소문자 불일치 문서: {doc['id']}")
                return User(**doc)
        return None

    async def get_all_users(self) -> List[User]:
        return [User(**doc) for doc in await self.store.query(USERS)]

    async def get_users_by_ids(self, user_ids: Sequence[str]) -> List[User]:
        """ID 목록 순서대로 조회 (없는 사용자 제외)"""
        users = []
        for user_id in user_ids:
            user = await self.get_user(user_id)
            if user:
                users.append(user)
        return users

    # =============================================
    # 클럽 / 팀
    # =============================================

    async def get_club(self, club_id: str) -> Optional[Club]:
        doc = await self.store.get(CLUBS, club_id)
        return Club(**doc) if doc else None

    async def get_all_clubs(self) -> List[Club]:
        return [Club(**doc) for doc in await self.store.query(CLUBS)]

    async def find_club_for_team(
        self,
        club_ids: Sequence[str],
        team_id: str
    ) -> Optional[Tuple[Club, Team]]:
        """club_ids 중 team_id를 포함하는 첫 클럽"""
        for club_id in club_ids:
            club = await self.get_club(club_id)
            if not club:
                continue
            team = find_team(club, team_id)
            if team:
                return club, team
        return None

    async def _write_teams(self, club: Club) -> None:
        await self.store.update(CLUBS, club.id, {
            "teams": [t.model_dump() for t in club.teams],
            "updated_at": now_iso()
        })

    async def add_team_member(self, club_id: str, team_id: str, user_id: str) -> bool:
        """
        팀 members에 추가 (포함된 teams 배열 전체를 다시 씀)

        Returns:
            실제로 추가됐으면 True
        """
        club = await self.get_club(club_id)
        if not club:
            return False
        team = find_team(club, team_id)
        if not team or user_id in team.members:
            return False
        team.members.append(user_id)
        await self._write_teams(club)
        return True

    async def remove_user_from_club(self, club_id: str, user_id: str) -> bool:
        """클럽 members 및 모든 팀 명단에서 제거"""
        club = await self.get_club(club_id)
        if not club:
            return False

        for team in club.teams:
            team.members = [m for m in team.members if m != user_id]
            team.trainers = [m for m in team.trainers if m != user_id]
            team.assistants = [m for m in team.assistants if m != user_id]

        await self.store.update(CLUBS, club_id, {
            "members": [m for m in club.members if m != user_id],
            "teams": [t.model_dump() for t in club.teams],
            "updated_at": now_iso()
        })
        logger.debug(f"클럽 {club_id}에서 {user_id} 제거")
        return True

    async def record_membership(self, user_id: str, club_id: str, team_id: str) -> None:
        """사용자 문서에 club/team ID 추가"""
        await self.store.array_union(USERS, user_id, "club_ids", club_id)
        await self.store.array_union(USERS, user_id, "team_ids", team_id)
        await self.store.update(USERS, user_id, {"updated_at": now_iso()})

    # =============================================
    # 가입 요청
    # =============================================

    async def create_join_request(
        self,
        user_id: str,
        club_id: str,
        team_id: str,
        requested_by: str
    ) -> str:
        """코치 승인용 팀 가입 요청 생성"""
        timestamp = now_iso()
        return await self.store.add(REQUESTS, {
            "user_id": user_id,
            "club_id": club_id,
            "team_id": team_id,
            "status": "pending",
            "requested_by": requested_by,
            "request_type": "child_account",
            "created_at": timestamp,
            "updated_at": timestamp
        })

    # =============================================
    # 일정 (읽기 전용)
    # =============================================

    async def get_team_events(self, team_id: str) -> List[TeamEvent]:
        docs = await self.store.query(EVENTS, where("team_id", "==", team_id))
        return [TeamEvent(**doc) for doc in docs]

    async def get_event(self, event_id: str) -> Optional[TeamEvent]:
        doc = await self.store.get(EVENTS, event_id)
        return TeamEvent(**doc) if doc else None

    async def get_events_on(self, team_id: str, day: str) -> List[TeamEvent]:
        """특정 날짜 팀 일정"""
        docs = await self.store.query(
            EVENTS,
            where("team_id", "==", team_id),
            where("date", "==", day)
        )
        return [TeamEvent(**doc) for doc in docs]

    async def get_user_map(self, user_ids: Sequence[str]) -> Dict[str, User]:
        return {u.id: u for u in await self.get_users_by_ids(user_ids)}
