"""
Club Management Models

Pydantic 모델 정의 (저장소 문서 + 요청/응답)
"""

from datetime import date, datetime, timezone
from typing import Optional, List, Dict
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, field_validator


def now_iso() -> str:
    """UTC ISO-8601 타임스탬프"""
    return datetime.now(timezone.utc).isoformat()


# =============================================
# Enums
# =============================================

class UserRole(str, Enum):
    """사용자 역할"""
    admin = "admin"
    trainer = "trainer"
    assistant = "assistant"
    user = "user"
    parent = "parent"


class AccountType(str, Enum):
    """계정 유형"""
    normal = "normal"             # 일반 계정
    subaccount = "subaccount"     # 부모가 관리하는 자녀 계정
    linked = "linked"             # 독립 계정 + 부모 연결
    independent = "independent"   # 마지막 부모 연결 해제됨


class RelationshipType(str, Enum):
    """부모-자녀 관계 유형"""
    subaccount = "subaccount"
    linked = "linked"
    additional_parent = "additional_parent"


class RelationshipStatus(str, Enum):
    """관계 상태"""
    pending = "pending"
    active = "active"
    declined = "declined"   # 종료 상태
    removed = "removed"     # 종료 상태


class ApprovalStatus(str, Enum):
    """구독 승인 상태"""
    pending = "pending"
    approved = "approved"
    declined = "declined"
    expired = "expired"


class AttendanceType(str, Enum):
    """출석 세션 유형"""
    training = "training"
    game = "game"
    tournament = "tournament"
    custom = "custom"


class RsvpAnswer(str, Enum):
    """참석 응답 분류"""
    yes = "yes"
    no = "no"
    maybe = "maybe"
    none = "none"


class SessionMode(str, Enum):
    """출석 입력 모드"""
    new = "new"
    edit = "edit"


# =============================================
# Directory Documents
# =============================================

class User(BaseModel):
    """사용자 문서"""
    model_config = ConfigDict(extra="ignore", use_enum_values=True)

    id: str
    email: str = ""
    username: str = ""
    first_name: str = ""
    last_name: str = ""
    role: UserRole = UserRole.user
    account_type: AccountType = AccountType.normal
    is_sub_account: bool = False
    managed_by_parent_id: Optional[str] = None
    password_managed_by_parent: bool = False
    parent_ids: List[str] = []
    child_ids: List[str] = []
    club_ids: List[str] = []
    team_ids: List[str] = []

    profile_picture: Optional[str] = None
    birthdate: Optional[str] = None
    allow_birthdate_tracking: bool = False

    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()

    @property
    def display_name(self) -> str:
        return self.username or self.email or self.id

    @property
    def is_under_parental_control(self) -> bool:
        return self.is_sub_account or len(self.parent_ids) > 0


class Team(BaseModel):
    """팀 (클럽 문서에 포함)"""
    model_config = ConfigDict(extra="allow")

    id: str
    name: str = ""
    members: List[str] = []
    trainers: List[str] = []
    assistants: List[str] = []


class Club(BaseModel):
    """클럽 문서"""
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str = ""
    members: List[str] = []
    trainers: List[str] = []
    assistants: List[str] = []
    teams: List[Team] = []


class EventResponse(BaseModel):
    """이벤트 참석 응답"""
    model_config = ConfigDict(extra="ignore")

    status: str
    message: Optional[str] = None


class TeamEvent(BaseModel):
    """팀 일정 (읽기 전용)"""
    model_config = ConfigDict(extra="ignore")

    id: str
    team_id: str
    title: str = ""
    date: str
    responses: Dict[str, EventResponse] = {}


# =============================================
# Parent-Child Models
# =============================================

class ParentChildRelationship(BaseModel):
    """부모-자녀 관계 문서"""
    model_config = ConfigDict(extra="ignore", use_enum_values=True)

    id: str
    parent_id: str
    child_id: str
    relationship_type: RelationshipType
    status: RelationshipStatus = RelationshipStatus.pending
    requested_by: str

    # linked: 양쪽 승인, additional_parent: 새 부모 승인
    parent_approved: bool = False
    child_approved: bool = False
    requesting_parent_approved: Optional[bool] = None
    new_parent_approved: Optional[bool] = None

    all_parent_ids: List[str] = []
    shared_teams: List[str] = []

    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    approved_at: Optional[str] = None

    @property
    def is_closed(self) -> bool:
        return self.status in (RelationshipStatus.declined.value, RelationshipStatus.removed.value)


class ChildAccountCreate(BaseModel):
    """자녀 계정 생성 요청"""
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(default="", max_length=100)
    birthdate: Optional[date] = None
    allow_birthdate_tracking: bool = False
    profile_picture: Optional[str] = None
    club_ids: List[str] = []
    team_ids: List[str] = []


class ChildProfileUpdate(BaseModel):
    """자녀 프로필 수정 (프로필 필드만)"""
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    birthdate: Optional[date] = None
    allow_birthdate_tracking: Optional[bool] = None
    profile_picture: Optional[str] = None


class LinkRequestCreate(BaseModel):
    """기존 계정 연결 요청"""
    child_email: str = Field(..., min_length=3)


class AdditionalParentCreate(BaseModel):
    """추가 부모 연결 요청"""
    child_id: str
    new_parent_id: str


class TeamAssignRequest(BaseModel):
    """자녀 팀 배정 요청"""
    club_id: str
    team_id: str


class TeamPlacement(BaseModel):
    """팀 배정 결과 (자동 승인 또는 가입 요청)"""
    club_id: str
    team_id: str
    team_name: str = ""
    request_id: Optional[str] = None
    reason: Optional[str] = None


class StepWarningModel(BaseModel):
    """부분 실패 경고"""
    step: str
    error: str


class ChildAccountResult(BaseModel):
    """자녀 계정 생성 결과"""
    child_id: str
    child: User
    join_requests: List[TeamPlacement] = []
    auto_approved: List[TeamPlacement] = []
    warnings: List[StepWarningModel] = []

    @property
    def needs_approval(self) -> bool:
        return len(self.join_requests) > 0


class DeleteChildResult(BaseModel):
    """자녀 삭제/연결 해제 결과"""
    deleted: bool = False
    unlinked: bool = False
    warnings: List[StepWarningModel] = []


class TeamAssignmentResult(BaseModel):
    """팀 배정 결과"""
    auto_approved: bool = False
    needs_approval: bool = False
    already_member: bool = False
    request_id: Optional[str] = None
    team_name: str = ""
    club_name: str = ""


# =============================================
# Subscription Approval Models
# =============================================

class SubscriptionDetails(BaseModel):
    """구독 플랜 정보"""
    plan_id: str
    plan_name: str = ""
    price: float = 0
    currency: Optional[str] = None
    billing_cycle: Optional[str] = None


class SubscriptionApproval(BaseModel):
    """자녀 구독 승인 요청 문서"""
    model_config = ConfigDict(extra="ignore", use_enum_values=True)

    id: str
    child_id: str
    parent_ids: List[str]
    subscription_details: SubscriptionDetails
    status: ApprovalStatus = ApprovalStatus.pending
    expires_at: str
    approved_by: Optional[str] = None
    declined_by: Optional[str] = None
    responded_at: Optional[str] = None
    created_at: Optional[str] = None


class SubscriptionRequestResult(BaseModel):
    """구독 요청 결과"""
    requires_approval: bool
    approval_id: Optional[str] = None


class SubscriptionDecision(BaseModel):
    """구독 승인/거절"""
    approved: bool


# =============================================
# Attendance Models
# =============================================

class AttendanceRecord(BaseModel):
    """회원별 출석 기록"""
    model_config = ConfigDict(extra="ignore")

    user_id: str
    username: str = ""
    email: str = ""
    role: Optional[str] = None
    present: bool = False
    comment: str = ""
    custom_statuses: Dict[str, bool] = {}


class AttendanceStatistics(BaseModel):
    """출석 통계"""
    total: int = 0
    present: int = 0
    absent: int = 0
    percentage: float = 0.0


class CrossCheck(BaseModel):
    """참석 응답 × 실제 출석 교차 집계 (user_id 목록)"""
    yes_came: List[str] = []
    yes_missed: List[str] = []
    no_came: List[str] = []
    no_missed: List[str] = []
    maybe_came: List[str] = []
    maybe_missed: List[str] = []
    none_came: List[str] = []
    none_missed: List[str] = []

    def counts(self) -> Dict[str, int]:
        return {name: len(ids) for name, ids in self.model_dump().items()}


class EditHistoryEntry(BaseModel):
    """수정 이력"""
    editor_id: str
    editor_name: str = ""
    timestamp: str
    description: str = ""


class AttendanceSession(BaseModel):
    """출석 세션 문서"""
    model_config = ConfigDict(extra="ignore", use_enum_values=True)

    id: Optional[str] = None
    team_id: str
    club_id: str
    date: str  # YYYY-MM-DD
    type: AttendanceType = AttendanceType.training
    custom_type: str = ""
    session_name: str = ""
    event_id: Optional[str] = None
    event_title: Optional[str] = None
    records: List[AttendanceRecord] = []
    statistics: AttendanceStatistics = AttendanceStatistics()
    cross_check: Optional[CrossCheck] = None
    edit_history: List[EditHistoryEntry] = []
    created_by: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class AttendanceDay(BaseModel):
    """팀 + 날짜 단위 출석 화면 상태"""
    club_id: str
    team_id: str
    date: str
    roster: List[AttendanceRecord]
    existing_sessions: List[AttendanceSession] = []
    events: List[TeamEvent] = []
    selected_event_id: Optional[str] = None
    mode: SessionMode = SessionMode.new
    session: AttendanceSession


class AttendanceSaveRequest(BaseModel):
    """출석 저장 요청"""
    session: AttendanceSession
    description: str = ""


class UserAttendanceStats(BaseModel):
    """회원별 누적 출석"""
    present: int = 0
    absent: int = 0
    total: int = 0


class TeamAttendanceStats(BaseModel):
    """팀 누적 출석 통계"""
    total_sessions: int = 0
    total_present: int = 0
    total_absent: int = 0
    average_attendance: float = 0.0
    user_stats: Dict[str, UserAttendanceStats] = {}


class DraftOpenRequest(BaseModel):
    """출석 입력 초안 열기"""
    club_id: str
    team_id: str
    date: str = Field(..., pattern=r"^\d{4}-\d{2}-\d{2}$")
    session_id: Optional[str] = None


class DraftRecordPatch(BaseModel):
    """초안 회원별 수정"""
    present: Optional[bool] = None
    toggle: bool = False
    comment: Optional[str] = None
    custom_statuses: Dict[str, bool] = {}


class DraftDetailsPatch(BaseModel):
    """초안 세션 정보 수정"""
    type: Optional[AttendanceType] = None
    custom_type: Optional[str] = None
    session_name: Optional[str] = None


class DraftSaveRequest(BaseModel):
    """수동 저장"""
    description: str = ""
