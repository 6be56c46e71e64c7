"""
Club Management Router

클럽 관리 API
- 자녀 계정 / 부모 연결 / 구독 승인
- 팀 출석 입력 및 기록
- 알림 설정
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from pydantic import ValidationError

from .attendance import AttendanceDraft
from .context import ClubContext
from .dependencies import get_context, get_current_user, get_current_user_id, require_admin, require_staff
from .family import ReconcileReport
from .models import (
    AdditionalParentCreate,
    AttendanceDay,
    AttendanceSaveRequest,
    AttendanceSession,
    ChildAccountCreate,
    ChildAccountResult,
    ChildProfileUpdate,
    DeleteChildResult,
    DraftDetailsPatch,
    DraftOpenRequest,
    DraftRecordPatch,
    DraftSaveRequest,
    LinkRequestCreate,
    ParentChildRelationship,
    SubscriptionApproval,
    SubscriptionDecision,
    SubscriptionDetails,
    SubscriptionRequestResult,
    TeamAssignmentResult,
    TeamAssignRequest,
    TeamAttendanceStats,
    TeamEvent,
    User,
)
from .notifications import (
    ActionRequiredCreate,
    ActionRequiredDecision,
    ActionRequiredNotification,
    ClubNotificationSettings,
    NotificationSettings,
)

router = APIRouter(prefix="/club", tags=["Club Management"])


# =============================================
# 자녀 계정
# =============================================

@router.get("/children", response_model=List[User])
async def list_children(
    user_id: str = Depends(get_current_user_id),
    context: ClubContext = Depends(get_context)
):
    """내 자녀 목록"""
    return await context.family.get_parent_children(user_id)


@router.post("/children", response_model=ChildAccountResult, status_code=status.HTTP_201_CREATED)
async def create_child(
    data: ChildAccountCreate,
    user_id: str = Depends(get_current_user_id),
    context: ClubContext = Depends(get_context)
):
    """
    자녀 서브계정 생성

    부모가 소속된 팀은 바로 배정, 그 외 팀은 코치 승인 요청이 생성됩니다.
    """
    return await context.family.create_child_account(user_id, data)


@router.patch("/children/{child_id}", response_model=User)
async def update_child(
    child_id: str,
    data: ChildProfileUpdate,
    user_id: str = Depends(get_current_user_id),
    context: ClubContext = Depends(get_context)
):
    """자녀 프로필 수정"""
    return await context.family.update_child_profile(user_id, child_id, data)


@router.delete("/children/{child_id}", response_model=DeleteChildResult)
async def delete_child(
    child_id: str,
    user_id: str = Depends(get_current_user_id),
    context: ClubContext = Depends(get_context)
):
    """자녀 계정 삭제 (관리 부모) 또는 연결 해제"""
    return await context.family.delete_child_account(user_id, child_id)


@router.post("/children/{child_id}/teams", response_model=TeamAssignmentResult)
async def assign_child_team(
    child_id: str,
    data: TeamAssignRequest,
    user_id: str = Depends(get_current_user_id),
    context: ClubContext = Depends(get_context)
):
    """자녀 팀 배정"""
    return await context.family.assign_child_to_team(child_id, data.club_id, data.team_id, user_id)


@router.get("/children/{child_id}/permission")
async def check_parent_permission(
    child_id: str,
    user_id: str = Depends(get_current_user_id),
    context: ClubContext = Depends(get_context)
):
    """이 자녀를 관리할 수 있는지"""
    allowed = await context.family.check_parent_permission(user_id, child_id)
    return {"child_id": child_id, "allowed": allowed}


@router.post("/children/{child_id}/subscriptions", response_model=SubscriptionRequestResult)
async def request_subscription(
    child_id: str,
    details: SubscriptionDetails,
    user_id: str = Depends(get_current_user_id),
    context: ClubContext = Depends(get_context)
):
    """자녀 구독 요청 (자녀 본인 또는 부모)"""
    if user_id != child_id and not await context.family.check_parent_permission(user_id, child_id):
        raise HTTPException(status_code=403, detail="권한이 없습니다")
    return await context.family.request_child_subscription(child_id, details)


# =============================================
# 부모-자녀 연결
# =============================================

@router.get("/links/pending", response_model=List[ParentChildRelationship])
async def pending_links(
    user_id: str = Depends(get_current_user_id),
    context: ClubContext = Depends(get_context)
):
    """승인 대기 중인 연결 요청"""
    return await context.family.get_pending_link_requests(user_id)


@router.post("/links", response_model=ParentChildRelationship, status_code=status.HTTP_201_CREATED)
async def request_link(
    data: LinkRequestCreate,
    user_id: str = Depends(get_current_user_id),
    context: ClubContext = Depends(get_context)
):
    """기존 계정 연결 요청 (자녀 승인 필요)"""
    return await context.family.request_parent_child_link(user_id, data.child_email)


@router.post("/links/additional", response_model=ParentChildRelationship, status_code=status.HTTP_201_CREATED)
async def request_additional_parent(
    data: AdditionalParentCreate,
    user_id: str = Depends(get_current_user_id),
    context: ClubContext = Depends(get_context)
):
    """추가 부모 초대 (같은 팀 소속 필요)"""
    return await context.family.request_additional_parent_link(user_id, data.child_id, data.new_parent_id)


@router.post("/links/{relationship_id}/approve", response_model=ParentChildRelationship)
async def approve_link(
    relationship_id: str,
    user_id: str = Depends(get_current_user_id),
    context: ClubContext = Depends(get_context)
):
    return await context.family.approve_parent_child_link(relationship_id, user_id)


@router.post("/links/{relationship_id}/decline", response_model=ParentChildRelationship)
async def decline_link(
    relationship_id: str,
    user_id: str = Depends(get_current_user_id),
    context: ClubContext = Depends(get_context)
):
    return await context.family.decline_parent_child_link(relationship_id, user_id)


# =============================================
# 구독 승인
# =============================================

@router.get("/subscriptions/pending", response_model=List[SubscriptionApproval])
async def pending_subscriptions(
    user_id: str = Depends(get_current_user_id),
    context: ClubContext = Depends(get_context)
):
    """대기 중인 자녀 구독 승인"""
    return await context.family.get_parent_pending_approvals(user_id)


@router.post("/subscriptions/{approval_id}", response_model=SubscriptionApproval)
async def decide_subscription(
    approval_id: str,
    decision: SubscriptionDecision,
    user_id: str = Depends(get_current_user_id),
    context: ClubContext = Depends(get_context)
):
    return await context.family.process_subscription_approval(approval_id, user_id, decision.approved)


# =============================================
# 권한 / 관리
# =============================================

@router.get("/permissions/{action}")
async def check_permission(
    action: str,
    user: User = Depends(get_current_user),
    context: ClubContext = Depends(get_context)
):
    """현재 사용자가 동작을 수행할 수 있는지 (자녀 계정 제한)"""
    return {"action": action, "allowed": context.family.check_child_permissions(user, action)}


@router.post("/admin/reconcile", response_model=ReconcileReport)
async def reconcile(
    admin: User = Depends(require_admin),
    context: ClubContext = Depends(get_context)
):
    """끊어진 관계 / 명단 참조 정리"""
    return await context.family.reconcile()


# =============================================
# 출석
# =============================================

@router.get("/teams/{team_id}/events", response_model=List[TeamEvent])
async def team_events(
    team_id: str,
    user_id: str = Depends(get_current_user_id),
    context: ClubContext = Depends(get_context)
):
    """팀 일정 및 참석 응답 (날짜순)"""
    events = await context.directory.get_team_events(team_id)
    return sorted(events, key=lambda e: e.date)


@router.get(
    "/attendance/clubs/{club_id}/teams/{team_id}/days/{day}",
    response_model=AttendanceDay
)
async def load_attendance_day(
    club_id: str,
    team_id: str,
    day: str,
    session_id: Optional[str] = Query(None, description="수정할 기존 세션"),
    staff: User = Depends(require_staff),
    context: ClubContext = Depends(get_context)
):
    """팀 + 날짜 출석 화면 (명단, 기존 세션, 당일 일정)"""
    return await context.attendance.load_day(club_id, team_id, day, session_id=session_id)


@router.post("/attendance", response_model=AttendanceSession)
async def save_attendance(
    data: AttendanceSaveRequest,
    staff: User = Depends(require_staff),
    context: ClubContext = Depends(get_context)
):
    """출석 저장 (생성/수정)"""
    return await context.attendance.save(data.session, staff, data.description)


@router.delete("/attendance/{attendance_id}")
async def delete_attendance(
    attendance_id: str,
    staff: User = Depends(require_staff),
    context: ClubContext = Depends(get_context)
):
    await context.attendance.delete(attendance_id)
    return {"success": True}


@router.get("/attendance/teams/{team_id}/sessions", response_model=List[AttendanceSession])
async def team_attendance_history(
    team_id: str,
    staff: User = Depends(require_staff),
    context: ClubContext = Depends(get_context)
):
    """팀 출석 기록 (최신순)"""
    return await context.attendance_repository.get_team_attendance(team_id)


@router.get("/attendance/teams/{team_id}/stats", response_model=TeamAttendanceStats)
async def team_attendance_stats(
    team_id: str,
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    staff: User = Depends(require_staff),
    context: ClubContext = Depends(get_context)
):
    return await context.attendance_repository.get_team_attendance_stats(team_id, start_date, end_date)


# =============================================
# 출석 입력 초안 (자동 저장)
# =============================================

def _get_draft(context: ClubContext, draft_id: str, staff: User) -> AttendanceDraft:
    draft = context.drafts.get(draft_id)
    if draft.editor.id != staff.id:
        raise HTTPException(status_code=403, detail="다른 사용자의 출석 입력입니다")
    return draft


@router.post("/attendance/drafts", status_code=status.HTTP_201_CREATED)
async def open_draft(
    data: DraftOpenRequest,
    staff: User = Depends(require_staff),
    context: ClubContext = Depends(get_context)
):
    """출석 입력 시작 (수정 후 일정 시간 지나면 자동 저장)"""
    draft = await context.drafts.open(data.club_id, data.team_id, data.date, staff, session_id=data.session_id)
    return draft.to_dict()


@router.get("/attendance/drafts/{draft_id}")
async def get_draft(
    draft_id: str,
    staff: User = Depends(require_staff),
    context: ClubContext = Depends(get_context)
):
    return _get_draft(context, draft_id, staff).to_dict()


@router.patch("/attendance/drafts/{draft_id}")
async def update_draft_details(
    draft_id: str,
    data: DraftDetailsPatch,
    staff: User = Depends(require_staff),
    context: ClubContext = Depends(get_context)
):
    draft = _get_draft(context, draft_id, staff)
    draft.set_details(type=data.type, custom_type=data.custom_type, session_name=data.session_name)
    return draft.to_dict()


@router.patch("/attendance/drafts/{draft_id}/records/{member_id}")
async def update_draft_record(
    draft_id: str,
    member_id: str,
    data: DraftRecordPatch,
    staff: User = Depends(require_staff),
    context: ClubContext = Depends(get_context)
):
    """회원 출석/코멘트/사용자 정의 상태 수정"""
    draft = _get_draft(context, draft_id, staff)
    if data.toggle:
        draft.toggle_presence(member_id)
    elif data.present is not None:
        draft.set_presence(member_id, data.present)
    if data.comment is not None:
        draft.set_comment(member_id, data.comment)
    for key, value in data.custom_statuses.items():
        draft.set_custom_status(member_id, key, value)
    return draft.to_dict()


@router.post("/attendance/drafts/{draft_id}/save", response_model=AttendanceSession)
async def save_draft(
    draft_id: str,
    data: DraftSaveRequest,
    staff: User = Depends(require_staff),
    context: ClubContext = Depends(get_context)
):
    """지금 저장"""
    return await _get_draft(context, draft_id, staff).save_now(data.description)


@router.delete("/attendance/drafts/{draft_id}")
async def close_draft(
    draft_id: str,
    staff: User = Depends(require_staff),
    context: ClubContext = Depends(get_context)
):
    _get_draft(context, draft_id, staff)
    await context.drafts.close(draft_id)
    return {"success": True}


# =============================================
# 응답 필요 알림
# =============================================

@router.get("/notifications/action-required", response_model=List[ActionRequiredNotification])
async def pending_action_notifications(
    user_id: str = Depends(get_current_user_id),
    context: ClubContext = Depends(get_context)
):
    """내 대기 중 응답 필요 알림"""
    return await context.actions.get_pending(user_id)


@router.post("/notifications/action-required/{notification_id}", response_model=ActionRequiredNotification)
async def respond_action_notification(
    notification_id: str,
    data: ActionRequiredDecision,
    user_id: str = Depends(get_current_user_id),
    context: ClubContext = Depends(get_context)
):
    return await context.actions.respond(notification_id, user_id, data.accepted)


@router.post(
    "/notifications/{club_id}/action-required",
    response_model=ActionRequiredNotification,
    status_code=status.HTTP_201_CREATED
)
async def create_action_notification(
    club_id: str,
    data: ActionRequiredCreate,
    staff: User = Depends(require_staff),
    context: ClubContext = Depends(get_context)
):
    """참석 확인 / 주문 응답 요청 알림 생성"""
    return await context.actions.create(club_id, data)


# =============================================
# 알림 설정
# =============================================

@router.get("/notifications/{club_id}", response_model=NotificationSettings)
async def get_notification_settings(
    club_id: str,
    team_id: Optional[str] = Query(None),
    user_id: str = Depends(get_current_user_id),
    context: ClubContext = Depends(get_context)
):
    return await context.notifications.get(club_id, team_id)


@router.get("/notifications/{club_id}/all", response_model=ClubNotificationSettings)
async def get_all_notification_settings(
    club_id: str,
    user_id: str = Depends(get_current_user_id),
    context: ClubContext = Depends(get_context)
):
    """클럽 + 전체 팀 알림 설정"""
    return await context.notifications.get_all_for_club(club_id)


@router.get("/notifications/{club_id}/effective", response_model=NotificationSettings)
async def get_effective_notification_settings(
    club_id: str,
    team_id: Optional[str] = Query(None),
    user_id: str = Depends(get_current_user_id),
    context: ClubContext = Depends(get_context)
):
    """팀 설정 → 클럽 설정 → 기본값 순 적용 결과"""
    return await context.notifications.effective(club_id, team_id)


@router.put("/notifications/{club_id}", response_model=NotificationSettings)
async def update_notification_settings(
    club_id: str,
    settings: Dict[str, Any] = Body(...),
    team_id: Optional[str] = Query(None),
    staff: User = Depends(require_staff),
    context: ClubContext = Depends(get_context)
):
    """알림 설정 부분 수정 (예: {"push": {"enabled": true}})"""
    try:
        return await context.notifications.update(club_id, team_id, settings)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))
