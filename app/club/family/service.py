"""
Parent-Child Relationship Service

부모-자녀 계정 연결 / 승인 / 삭제 워크플로우
- 자녀 서브계정 생성 (부모가 직접 관리, 즉시 활성)
- 기존 계정 연결 (부모 + 자녀 양쪽 승인)
- 추가 부모 연결 (같은 팀 소속 필요, 새 부모 승인)
- 자녀 구독 승인
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

from loguru import logger
from pydantic import BaseModel

from app.config import ClubSettings
from database import DocumentStore, StoreError, StorePermissionError, where

from ..directory import USERS, ClubDirectory, find_team, is_team_member
from ..errors import ClubError, ErrorCode
from ..models import (
    AccountType,
    ApprovalStatus,
    ChildAccountCreate,
    ChildAccountResult,
    ChildProfileUpdate,
    Club,
    DeleteChildResult,
    ParentChildRelationship,
    RelationshipStatus,
    RelationshipType,
    StepWarningModel,
    SubscriptionApproval,
    SubscriptionDetails,
    SubscriptionRequestResult,
    Team,
    TeamAssignmentResult,
    TeamPlacement,
    User,
    UserRole,
    now_iso,
)
from ..steps import MutationPipeline, StepWarning
from .permissions import check_child_permissions

RELATIONSHIPS = "parentChildRelationships"
SUBSCRIPTION_APPROVALS = "subscriptionApprovals"


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:16]}"


def _warnings(items: List[StepWarning]) -> List[StepWarningModel]:
    return [StepWarningModel(**w.to_dict()) for w in items]


class ReconcileReport(BaseModel):
    """정합성 복구 결과"""
    orphaned_relationships: List[str] = []
    removed_memberships: List[str] = []     # "club_id:user_id"
    dangling_child_refs: List[str] = []     # "parent_id:child_id"
    dangling_parent_refs: List[str] = []    # "child_id:parent_id"

    @property
    def total(self) -> int:
        return (
            len(self.orphaned_relationships)
            + len(self.removed_memberships)
            + len(self.dangling_child_refs)
            + len(self.dangling_parent_refs)
        )


class FamilyService:
    """부모-자녀 관계 관리"""

    def __init__(self, store: DocumentStore, directory: ClubDirectory, settings: ClubSettings):
        self.store = store
        self.directory = directory
        self.max_parents = settings.max_parents_per_child
        self.approval_days = settings.subscription_approval_days
        self.default_currency = settings.default_currency
        self.default_billing_cycle = settings.default_billing_cycle

    # =============================================
    # 내부 헬퍼
    # =============================================

    async def _require_user(self, user_id: str, missing_code: str) -> User:
        user = await self.directory.get_user(user_id)
        if not user:
            raise ClubError(missing_code, user_id)
        return user

    async def _get_relationship(self, relationship_id: str) -> ParentChildRelationship:
        doc = await self.store.get(RELATIONSHIPS, relationship_id)
        if not doc:
            raise ClubError(ErrorCode.RELATIONSHIP_NOT_FOUND, relationship_id)
        return ParentChildRelationship(**doc)

    async def _relationships_between(self, parent_id: str, child_id: str) -> List[dict]:
        return await self.store.query(
            RELATIONSHIPS,
            where("child_id", "==", child_id),
            where("parent_id", "==", parent_id)
        )

    async def _place_child_in_team(
        self,
        child_id: str,
        club: Club,
        team: Team,
        parent_id: str
    ) -> Tuple[bool, TeamPlacement]:
        """
        부모가 팀 소속이면 바로 추가, 아니면 가입 요청 생성

        Returns:
            (자동 승인 여부, 배정 정보)
        """
        if is_team_member(team, parent_id):
            logger.info(f"자녀 {child_id} 팀 {team.id} 자동 승인 (부모가 팀 소속)")
            await self.directory.add_team_member(club.id, team.id, child_id)
            await self.directory.record_membership(child_id, club.id, team.id)
            return True, TeamPlacement(
                club_id=club.id,
                team_id=team.id,
                team_name=team.name,
                reason="parent_is_member"
            )

        request_id = await self.directory.create_join_request(child_id, club.id, team.id, parent_id)
        logger.info(f"자녀 {child_id} 팀 {team.id} 가입 요청 생성: {request_id}")
        return False, TeamPlacement(
            club_id=club.id,
            team_id=team.id,
            team_name=team.name,
            request_id=request_id
        )

    async def _link_accounts(self, parent_id: str, child_id: str, child_patch: dict) -> None:
        """부모 child_ids ↔ 자녀 parent_ids 상호 참조 기록"""
        parent = await self.directory.get_user(parent_id)
        child = await self.directory.get_user(child_id)
        if not parent or not child:
            logger.warning(f"상호 참조 생략: 계정 없음 (parent={parent_id}, child={child_id})")
            return

        timestamp = now_iso()
        await self.store.array_union(USERS, parent_id, "child_ids", child_id)
        await self.store.update(USERS, parent_id, {"updated_at": timestamp})
        await self.store.array_union(USERS, child_id, "parent_ids", parent_id)
        await self.store.update(USERS, child_id, {**child_patch, "updated_at": timestamp})

    async def _ensure_parent_capacity(self, relationship: ParentChildRelationship) -> None:
        """승인 시점 부모 수 상한 재확인"""
        child = await self.directory.get_user(relationship.child_id)
        if not child or relationship.parent_id in child.parent_ids:
            return
        if len(child.parent_ids) >= self.max_parents:
            raise ClubError(ErrorCode.MAX_PARENTS_REACHED, relationship.child_id)

    # =============================================
    # 자녀 서브계정 생성
    # =============================================

    async def create_child_account(
        self,
        parent_id: str,
        child_data: ChildAccountCreate
    ) -> ChildAccountResult:
        """
        부모가 관리하는 자녀 서브계정 생성

        - 부모 이메일 공유, 관계는 즉시 active
        - 요청한 팀마다 부모가 팀 소속이면 자동 추가, 아니면 코치 승인 요청
        - 사용자 문서 → 관계 → 팀 순서로 기록, 팀 배정 실패는 경고로 반환
        """
        parent = await self._require_user(parent_id, ErrorCode.PARENT_NOT_FOUND)
        if parent.role != UserRole.parent:
            raise ClubError(ErrorCode.USER_NOT_PARENT, parent_id)

        child_id = _new_id("child")
        timestamp = now_iso()

        child = User(
            id=child_id,
            email=parent.email,
            username=f"{child_data.first_name} {child_data.last_name}".strip(),
            first_name=child_data.first_name,
            last_name=child_data.last_name,
            role=UserRole.user,
            account_type=AccountType.subaccount,
            is_sub_account=True,
            managed_by_parent_id=parent_id,
            password_managed_by_parent=True,
            parent_ids=[parent_id],
            child_ids=[],
            club_ids=list(child_data.club_ids),
            team_ids=[],
            profile_picture=child_data.profile_picture,
            birthdate=child_data.birthdate.isoformat() if child_data.birthdate else None,
            allow_birthdate_tracking=child_data.allow_birthdate_tracking,
            created_at=timestamp,
            updated_at=timestamp
        )

        relationship = ParentChildRelationship(
            id=_new_id("rel"),
            parent_id=parent_id,
            child_id=child_id,
            relationship_type=RelationshipType.subaccount,
            status=RelationshipStatus.active,
            requested_by=parent_id,
            parent_approved=True,
            child_approved=True,
            all_parent_ids=[parent_id],
            created_at=timestamp,
            updated_at=timestamp,
            approved_at=timestamp
        )

        join_requests: List[TeamPlacement] = []
        auto_approved: List[TeamPlacement] = []

        async def save_child():
            await self.store.set(USERS, child_id, child.model_dump(mode="json"))

        async def update_parent():
            await self.store.array_union(USERS, parent_id, "child_ids", child_id)
            await self.store.update(USERS, parent_id, {"updated_at": now_iso()})

        async def save_relationship():
            await self.store.set(RELATIONSHIPS, relationship.id, relationship.model_dump(mode="json"))

        def assign(team_id: str):
            async def _assign():
                found = await self.directory.find_club_for_team(child_data.club_ids, team_id)
                if not found:
                    raise ClubError(ErrorCode.TEAM_NOT_FOUND, team_id)
                club, team = found
                auto, placement = await self._place_child_in_team(child_id, club, team, parent_id)
                (auto_approved if auto else join_requests).append(placement)
            return _assign

        pipeline = MutationPipeline(f"자녀 계정 생성 {child_id}")
        pipeline.critical("자녀 사용자 문서 생성", save_child)
        pipeline.critical("부모 child_ids 갱신", update_parent)
        pipeline.critical("관계 문서 생성", save_relationship)
        for team_id in child_data.team_ids:
            pipeline.best_effort(f"팀 배정 {team_id}", assign(team_id))

        warnings = await pipeline.run()

        logger.info(
            f"자녀 계정 생성 완료: {child_id} (자동 승인 {len(auto_approved)}, 승인 대기 {len(join_requests)})"
        )

        return ChildAccountResult(
            child_id=child_id,
            child=await self.directory.get_user(child_id) or child,
            join_requests=join_requests,
            auto_approved=auto_approved,
            warnings=_warnings(warnings)
        )

    # =============================================
    # 기존 계정 연결
    # =============================================

    async def request_parent_child_link(
        self,
        parent_id: str,
        child_email: str
    ) -> ParentChildRelationship:
        """
        이메일로 기존 계정 연결 요청

        요청한 부모는 자동 승인, 자녀 승인 대기 상태로 생성.
        """
        child = await self.directory.find_user_by_email(child_email)
        if not child:
            raise ClubError(ErrorCode.ACCOUNT_NOT_FOUND, child_email)

        if parent_id in child.parent_ids:
            raise ClubError(ErrorCode.ALREADY_LINKED, child.id)

        if len(child.parent_ids) >= self.max_parents:
            raise ClubError(ErrorCode.MAX_PARENTS_REACHED, child.id)

        timestamp = now_iso()
        relationship = ParentChildRelationship(
            id=_new_id("rel"),
            parent_id=parent_id,
            child_id=child.id,
            relationship_type=RelationshipType.linked,
            status=RelationshipStatus.pending,
            requested_by=parent_id,
            parent_approved=True,
            child_approved=False,
            all_parent_ids=[parent_id],
            created_at=timestamp,
            updated_at=timestamp
        )
        await self.store.set(RELATIONSHIPS, relationship.id, relationship.model_dump(mode="json"))

        logger.info(f"계정 연결 요청: parent={parent_id} child={child.id} ({relationship.id})")
        return relationship

    async def approve_parent_child_link(
        self,
        relationship_id: str,
        approving_user_id: str
    ) -> ParentChildRelationship:
        """
        연결 요청 승인

        - additional_parent: 초대받은 부모만 승인, 즉시 active
        - linked: 부모/자녀 각자 승인, 양쪽 모두 승인되면 active
        """
        relationship = await self._get_relationship(relationship_id)
        if relationship.is_closed:
            raise ClubError(ErrorCode.RELATIONSHIP_CLOSED, relationship_id)

        timestamp = now_iso()
        updates: dict = {"updated_at": timestamp}

        if relationship.relationship_type == RelationshipType.additional_parent:
            if approving_user_id != relationship.parent_id:
                raise ClubError(ErrorCode.INVALID_USER, approving_user_id)

            await self._ensure_parent_capacity(relationship)

            updates.update({
                "new_parent_approved": True,
                "status": RelationshipStatus.active.value,
                "approved_at": relationship.approved_at or timestamp
            })
            await self._link_accounts(relationship.parent_id, relationship.child_id, {})

        else:
            if approving_user_id == relationship.parent_id:
                updates["parent_approved"] = True
            elif approving_user_id == relationship.child_id:
                updates["child_approved"] = True
            else:
                raise ClubError(ErrorCode.INVALID_USER, approving_user_id)

            both_approved = (
                updates.get("parent_approved", relationship.parent_approved)
                and updates.get("child_approved", relationship.child_approved)
            )

            if both_approved:
                await self._ensure_parent_capacity(relationship)
                updates["status"] = RelationshipStatus.active.value
                updates["approved_at"] = relationship.approved_at or timestamp
                await self._link_accounts(
                    relationship.parent_id,
                    relationship.child_id,
                    {"account_type": AccountType.linked.value}
                )

        await self.store.update(RELATIONSHIPS, relationship_id, updates)
        logger.info(f"연결 승인: {relationship_id} by {approving_user_id} → {updates.get('status', relationship.status)}")

        return relationship.model_copy(update=updates)

    async def decline_parent_child_link(
        self,
        relationship_id: str,
        declining_user_id: Optional[str] = None
    ) -> ParentChildRelationship:
        """
        연결 요청 거절 (종료 상태)

        active 관계는 거절 대상이 아님 → delete_child_account로 해제
        """
        relationship = await self._get_relationship(relationship_id)

        if declining_user_id is not None and declining_user_id not in (
            relationship.parent_id, relationship.child_id, relationship.requested_by
        ):
            raise ClubError(ErrorCode.INVALID_USER, declining_user_id)

        if relationship.status in (RelationshipStatus.active.value, RelationshipStatus.removed.value):
            raise ClubError(ErrorCode.RELATIONSHIP_CLOSED, relationship_id)

        updates = {"status": RelationshipStatus.declined.value, "updated_at": now_iso()}
        await self.store.update(RELATIONSHIPS, relationship_id, updates)
        logger.info(f"연결 거절: {relationship_id}")

        return relationship.model_copy(update=updates)

    # =============================================
    # 추가 부모
    # =============================================

    async def find_shared_teams(self, child: User, other_user_id: str) -> List[str]:
        """자녀 소속 클럽 전체에서 두 사용자가 함께 속한 팀 ID"""
        shared: List[str] = []
        for club_id in child.club_ids:
            club = await self.directory.get_club(club_id)
            if not club:
                continue
            for team in club.teams:
                if is_team_member(team, child.id) and is_team_member(team, other_user_id):
                    shared.append(team.id)
        return shared

    async def request_additional_parent_link(
        self,
        requesting_parent_id: str,
        child_id: str,
        new_parent_id: str
    ) -> ParentChildRelationship:
        """
        기존 부모가 다른 부모를 자녀 계정에 초대

        새 부모는 자녀와 최소 1개 팀을 공유해야 함.
        """
        child = await self._require_user(child_id, ErrorCode.CHILD_NOT_FOUND)

        if requesting_parent_id not in child.parent_ids:
            raise ClubError(ErrorCode.NOT_AUTHORIZED, requesting_parent_id)

        if len(child.parent_ids) >= self.max_parents:
            raise ClubError(ErrorCode.MAX_PARENTS_REACHED, child_id)

        if new_parent_id in child.parent_ids:
            raise ClubError(ErrorCode.ALREADY_LINKED, new_parent_id)

        new_parent = await self._require_user(new_parent_id, ErrorCode.PARENT_NOT_FOUND)
        if new_parent.role != UserRole.parent:
            raise ClubError(ErrorCode.USER_NOT_PARENT, new_parent_id)

        shared_teams = await self.find_shared_teams(child, new_parent_id)
        if not shared_teams:
            raise ClubError(ErrorCode.NO_SHARED_TEAMS, new_parent_id)

        # 중복 대기 요청 확인 - 권한 거부 시 중복 없음으로 간주
        try:
            existing = await self.store.query(
                RELATIONSHIPS,
                where("child_id", "==", child_id),
                where("parent_id", "==", new_parent_id),
                where("status", "==", RelationshipStatus.pending.value)
            )
        except StorePermissionError as e:
            logger.info(f"기존 요청 확인 불가 (권한 없음), 계속 진행: {e}")
            existing = []

        if existing:
            raise ClubError(ErrorCode.REQUEST_ALREADY_EXISTS, existing[0]["id"])

        timestamp = now_iso()
        relationship = ParentChildRelationship(
            id=_new_id("rel"),
            parent_id=new_parent_id,
            child_id=child_id,
            relationship_type=RelationshipType.additional_parent,
            status=RelationshipStatus.pending,
            requested_by=requesting_parent_id,
            requesting_parent_approved=True,
            new_parent_approved=False,
            all_parent_ids=[*child.parent_ids, new_parent_id],
            shared_teams=shared_teams,
            created_at=timestamp,
            updated_at=timestamp
        )
        await self.store.set(RELATIONSHIPS, relationship.id, relationship.model_dump(mode="json"))

        logger.info(
            f"추가 부모 요청: child={child_id} new_parent={new_parent_id} 공유 팀 {len(shared_teams)}개"
        )
        return relationship

    # =============================================
    # 조회
    # =============================================

    async def get_parent_children(self, parent_id: str) -> List[User]:
        """부모의 자녀 목록 (활성 연결만 child_ids에 기록됨)"""
        parent = await self.directory.get_user(parent_id)
        if not parent or not parent.child_ids:
            return []
        return await self.directory.get_users_by_ids(parent.child_ids)

    async def get_pending_link_requests(self, user_id: str) -> List[ParentChildRelationship]:
        """부모 또는 자녀 쪽으로 대기 중인 연결 요청"""
        pending = RelationshipStatus.pending.value
        as_parent = await self.store.query(
            RELATIONSHIPS,
            where("parent_id", "==", user_id),
            where("status", "==", pending)
        )
        as_child = await self.store.query(
            RELATIONSHIPS,
            where("child_id", "==", user_id),
            where("status", "==", pending)
        )

        seen = set()
        results = []
        for doc in as_parent + as_child:
            if doc["id"] in seen:
                continue
            seen.add(doc["id"])
            results.append(ParentChildRelationship(**doc))
        return results

    # =============================================
    # 삭제 / 연결 해제
    # =============================================

    async def delete_child_account(self, parent_id: str, child_id: str) -> DeleteChildResult:
        """
        자녀 계정 삭제 또는 연결 해제

        - 이 부모가 관리하는 서브계정: 클럽/팀에서 제거 → 사용자 문서 삭제 → 이 부모의 관계 삭제
        - 그 외 (연결 계정, 관리 부모가 아닌 공동 부모): 이 부모만 연결 해제
        """
        child = await self._require_user(child_id, ErrorCode.CHILD_NOT_FOUND)

        if parent_id not in child.parent_ids and child.managed_by_parent_id != parent_id:
            raise ClubError(ErrorCode.NOT_AUTHORIZED, parent_id)

        logger.info(
            f"자녀 계정 삭제 요청: parent={parent_id} child={child_id} "
            f"(type={child.account_type}, managed_by={child.managed_by_parent_id})"
        )

        async def detach_from_parent():
            await self.store.array_remove(USERS, parent_id, "child_ids", child_id)
            await self.store.update(USERS, parent_id, {"updated_at": now_iso()})

        pipeline = MutationPipeline(f"자녀 계정 삭제 {child_id}")
        pipeline.critical("부모 child_ids에서 제거", detach_from_parent)

        is_owner = (
            child.account_type == AccountType.subaccount
            and child.managed_by_parent_id == parent_id
        )

        if is_owner:
            def leave_club(club_id: str):
                async def _leave():
                    await self.directory.remove_user_from_club(club_id, child_id)
                return _leave

            async def delete_user():
                await self.store.delete(USERS, child_id)

            async def delete_relationships():
                relationships = await self._relationships_between(parent_id, child_id)
                logger.debug(f"삭제할 관계 {len(relationships)}건")
                for rel in relationships:
                    await self.store.delete(RELATIONSHIPS, rel["id"])

            for club_id in child.club_ids:
                pipeline.best_effort(f"클럽 {club_id}에서 제거", leave_club(club_id))
            pipeline.critical("자녀 사용자 문서 삭제", delete_user)
            pipeline.best_effort("관계 문서 삭제", delete_relationships)

            warnings = await pipeline.run()
            return DeleteChildResult(deleted=True, warnings=_warnings(warnings))

        remaining = [p for p in child.parent_ids if p != parent_id]
        if not remaining:
            account_type = AccountType.independent
        elif child.account_type == AccountType.subaccount:
            account_type = AccountType.subaccount
        else:
            account_type = AccountType.linked

        async def unlink_child():
            await self.store.array_remove(USERS, child_id, "parent_ids", parent_id)
            await self.store.update(USERS, child_id, {
                "account_type": account_type.value,
                "updated_at": now_iso()
            })

        async def mark_removed():
            for rel in await self._relationships_between(parent_id, child_id):
                await self.store.update(RELATIONSHIPS, rel["id"], {
                    "status": RelationshipStatus.removed.value,
                    "updated_at": now_iso()
                })

        pipeline.critical("자녀 parent_ids 갱신", unlink_child)
        pipeline.best_effort("관계 상태 removed 처리", mark_removed)

        warnings = await pipeline.run()
        return DeleteChildResult(unlinked=True, warnings=_warnings(warnings))

    # =============================================
    # 프로필 / 팀 배정
    # =============================================

    async def update_child_profile(
        self,
        parent_id: str,
        child_id: str,
        updates: ChildProfileUpdate
    ) -> User:
        """자녀 프로필 수정 (연결된 부모만)"""
        child = await self._require_user(child_id, ErrorCode.CHILD_NOT_FOUND)
        if parent_id not in child.parent_ids:
            raise ClubError(ErrorCode.NOT_AUTHORIZED, parent_id)

        patch = updates.model_dump(exclude_unset=True, mode="json")
        if "first_name" in patch or "last_name" in patch:
            first = patch.get("first_name", child.first_name)
            last = patch.get("last_name", child.last_name)
            patch["username"] = f"{first} {last}".strip()

        patch["updated_at"] = now_iso()
        await self.store.update(USERS, child_id, patch)

        return child.model_copy(update=patch)

    async def assign_child_to_team(
        self,
        child_id: str,
        club_id: str,
        team_id: str,
        parent_id: str
    ) -> TeamAssignmentResult:
        """
        기존 서브계정 자녀를 팀에 배정

        부모가 팀 소속이면 자동 승인, 아니면 코치 승인 요청.
        """
        child = await self._require_user(child_id, ErrorCode.CHILD_NOT_FOUND)
        if not child.is_sub_account or child.managed_by_parent_id != parent_id:
            raise ClubError(ErrorCode.NOT_AUTHORIZED, parent_id)

        club = await self.directory.get_club(club_id)
        if not club:
            raise ClubError(ErrorCode.CLUB_NOT_FOUND, club_id)

        team = find_team(club, team_id)
        if not team:
            raise ClubError(ErrorCode.TEAM_NOT_FOUND, team_id)

        if child_id in team.members:
            return TeamAssignmentResult(
                already_member=True,
                team_name=team.name,
                club_name=club.name
            )

        auto, placement = await self._place_child_in_team(child_id, club, team, parent_id)

        return TeamAssignmentResult(
            auto_approved=auto,
            needs_approval=not auto,
            request_id=placement.request_id,
            team_name=team.name,
            club_name=club.name
        )

    # =============================================
    # 구독 승인
    # =============================================

    async def request_child_subscription(
        self,
        child_id: str,
        details: SubscriptionDetails
    ) -> SubscriptionRequestResult:
        """자녀 구독 요청 (부모가 있으면 승인 요청 생성)"""
        child = await self._require_user(child_id, ErrorCode.CHILD_NOT_FOUND)

        if not child.parent_ids:
            return SubscriptionRequestResult(requires_approval=False)

        now = datetime.now(timezone.utc)
        approval = SubscriptionApproval(
            id=_new_id("approval"),
            child_id=child_id,
            parent_ids=list(child.parent_ids),
            subscription_details=SubscriptionDetails(
                plan_id=details.plan_id,
                plan_name=details.plan_name,
                price=details.price,
                currency=details.currency or self.default_currency,
                billing_cycle=details.billing_cycle or self.default_billing_cycle
            ),
            status=ApprovalStatus.pending,
            expires_at=(now + timedelta(days=self.approval_days)).isoformat(),
            created_at=now.isoformat()
        )
        await self.store.set(SUBSCRIPTION_APPROVALS, approval.id, approval.model_dump(mode="json"))

        logger.info(f"구독 승인 요청: child={child_id} plan={details.plan_id} ({approval.id})")
        return SubscriptionRequestResult(requires_approval=True, approval_id=approval.id)

    async def process_subscription_approval(
        self,
        approval_id: str,
        parent_id: str,
        approved: bool
    ) -> SubscriptionApproval:
        """구독 승인/거절"""
        doc = await self.store.get(SUBSCRIPTION_APPROVALS, approval_id)
        if not doc:
            raise ClubError(ErrorCode.APPROVAL_NOT_FOUND, approval_id)

        approval = SubscriptionApproval(**doc)
        if parent_id not in approval.parent_ids:
            raise ClubError(ErrorCode.NOT_AUTHORIZED, parent_id)

        if approved:
            updates = {
                "status": ApprovalStatus.approved.value,
                "approved_by": parent_id,
                "responded_at": now_iso()
            }
        else:
            updates = {
                "status": ApprovalStatus.declined.value,
                "declined_by": parent_id,
                "responded_at": now_iso()
            }

        await self.store.update(SUBSCRIPTION_APPROVALS, approval_id, updates)
        return approval.model_copy(update=updates)

    async def get_parent_pending_approvals(self, parent_id: str) -> List[SubscriptionApproval]:
        """대기 중 구독 승인 목록 (만료 건은 expired 처리)"""
        docs = await self.store.query(
            SUBSCRIPTION_APPROVALS,
            where("parent_ids", "array_contains", parent_id),
            where("status", "==", ApprovalStatus.pending.value)
        )

        now = datetime.now(timezone.utc)
        valid = []
        for doc in docs:
            approval = SubscriptionApproval(**doc)
            if datetime.fromisoformat(approval.expires_at) > now:
                valid.append(approval)
                continue
            await self.store.update(SUBSCRIPTION_APPROVALS, approval.id, {
                "status": ApprovalStatus.expired.value,
                "updated_at": now_iso()
            })
            logger.debug(f"구독 승인 만료 처리: {approval.id}")

        return valid

    # =============================================
    # 권한
    # =============================================

    def check_child_permissions(self, user: User, action: str) -> bool:
        return check_child_permissions(user, action)

    async def check_parent_permission(self, parent_id: str, child_id: str) -> bool:
        """부모가 자녀를 관리할 수 있는지"""
        try:
            child = await self.directory.get_user(child_id)
        except StoreError as e:
            logger.error(f"부모 권한 확인 오류: {e}")
            return False
        return bool(child and parent_id in child.parent_ids)

    # =============================================
    # 정합성 복구
    # =============================================

    async def reconcile(self) -> ReconcileReport:
        """
        고아 참조 정리

        - 삭제된 사용자를 가리키는 대기/활성 관계 → removed
        - 클럽/팀 명단의 삭제된 사용자 ID 제거
        - 부모 child_ids / 자녀 parent_ids 의 끊어진 참조 제거
        """
        report = ReconcileReport()
        users = {u.id: u for u in await self.directory.get_all_users()}

        for doc in await self.store.query(RELATIONSHIPS):
            rel = ParentChildRelationship(**doc)
            if rel.is_closed:
                continue
            if rel.parent_id in users and rel.child_id in users:
                continue
            await self.store.update(RELATIONSHIPS, rel.id, {
                "status": RelationshipStatus.removed.value,
                "updated_at": now_iso()
            })
            report.orphaned_relationships.append(rel.id)

        for club in await self.directory.get_all_clubs():
            referenced = set(club.members)
            for team in club.teams:
                referenced.update(team.members, team.trainers, team.assistants)
            for user_id in sorted(referenced - users.keys()):
                await self.directory.remove_user_from_club(club.id, user_id)
                report.removed_memberships.append(f"{club.id}:{user_id}")

        for user in users.values():
            missing_children = [c for c in user.child_ids if c not in users]
            if missing_children:
                await self.store.array_remove(USERS, user.id, "child_ids", *missing_children)
                report.dangling_child_refs.extend(f"{user.id}:{c}" for c in missing_children)

            missing_parents = [p for p in user.parent_ids if p not in users]
            if missing_parents:
                await self.store.array_remove(USERS, user.id, "parent_ids", *missing_parents)
                report.dangling_parent_refs.extend(f"{user.id}:{p}" for p in missing_parents)

        if report.total:
            logger.warning(f"정합성 복구: {report.total}건 처리")
        else:
            logger.info("정합성 복구: 문제 없음")
        return report
