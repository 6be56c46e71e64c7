"""
Club Management Errors

서비스 계층 오류 코드 정의
"""

from typing import Optional


class ErrorCode:
    """기계 판독용 오류 코드"""
    USER_NOT_PARENT = "USER_NOT_PARENT"
    PARENT_NOT_FOUND = "PARENT_NOT_FOUND"
    ALREADY_LINKED = "ALREADY_LINKED"
    MAX_PARENTS_REACHED = "MAX_PARENTS_REACHED"
    NO_SHARED_TEAMS = "NO_SHARED_TEAMS"
    NOT_AUTHORIZED = "NOT_AUTHORIZED"
    CHILD_NOT_FOUND = "CHILD_NOT_FOUND"
    ACCOUNT_NOT_FOUND = "ACCOUNT_NOT_FOUND"
    RELATIONSHIP_NOT_FOUND = "RELATIONSHIP_NOT_FOUND"
    RELATIONSHIP_CLOSED = "RELATIONSHIP_CLOSED"
    INVALID_USER = "INVALID_USER"
    REQUEST_ALREADY_EXISTS = "REQUEST_ALREADY_EXISTS"
    CLUB_NOT_FOUND = "CLUB_NOT_FOUND"
    TEAM_NOT_FOUND = "TEAM_NOT_FOUND"
    APPROVAL_NOT_FOUND = "APPROVAL_NOT_FOUND"
    ATTENDANCE_NOT_FOUND = "ATTENDANCE_NOT_FOUND"
    SESSION_NAME_REQUIRED = "SESSION_NAME_REQUIRED"
    CUSTOM_TYPE_REQUIRED = "CUSTOM_TYPE_REQUIRED"
    NOTIFICATION_NOT_FOUND = "NOTIFICATION_NOT_FOUND"
    NOTIFICATION_CLOSED = "NOTIFICATION_CLOSED"


ERROR_MESSAGES = {
    ErrorCode.USER_NOT_PARENT: "학부모 계정이 아닙니다",
    ErrorCode.PARENT_NOT_FOUND: "학부모 계정을 찾을 수 없습니다",
    ErrorCode.ALREADY_LINKED: "이미 연결된 계정입니다",
    ErrorCode.MAX_PARENTS_REACHED: "자녀 계정에 연결할 수 있는 부모 수(3명)를 초과했습니다",
    ErrorCode.NO_SHARED_TEAMS: "자녀와 같은 팀에 소속된 학부모만 추가할 수 있습니다",
    ErrorCode.NOT_AUTHORIZED: "권한이 없습니다",
    ErrorCode.CHILD_NOT_FOUND: "자녀 계정을 찾을 수 없습니다",
    ErrorCode.ACCOUNT_NOT_FOUND: "해당 이메일의 계정을 찾을 수 없습니다",
    ErrorCode.RELATIONSHIP_NOT_FOUND: "연결 요청을 찾을 수 없습니다",
    ErrorCode.RELATIONSHIP_CLOSED: "더 이상 변경할 수 없는 연결입니다 (거절/해제/활성)",
    ErrorCode.INVALID_USER: "이 요청을 승인할 수 없는 사용자입니다",
    ErrorCode.REQUEST_ALREADY_EXISTS: "이미 대기 중인 요청이 있습니다",
    ErrorCode.CLUB_NOT_FOUND: "클럽을 찾을 수 없습니다",
    ErrorCode.TEAM_NOT_FOUND: "팀을 찾을 수 없습니다",
    ErrorCode.APPROVAL_NOT_FOUND: "승인 요청을 찾을 수 없습니다",
    ErrorCode.ATTENDANCE_NOT_FOUND: "출석 기록을 찾을 수 없습니다",
    ErrorCode.SESSION_NAME_REQUIRED: "같은 날 출석 세션이 이미 있습니다. 세션 이름을 입력하세요",
    ErrorCode.CUSTOM_TYPE_REQUIRED: "사용자 정의 유형 이름을 입력하세요",
    ErrorCode.NOTIFICATION_NOT_FOUND: "알림을 찾을 수 없습니다",
    ErrorCode.NOTIFICATION_CLOSED: "이미 응답했거나 만료된 알림입니다",
}

GENERIC_ERROR_MESSAGE = "요청을 처리하는 중 오류가 발생했습니다"

ERROR_STATUS = {
    ErrorCode.USER_NOT_PARENT: 403,
    ErrorCode.NOT_AUTHORIZED: 403,
    ErrorCode.INVALID_USER: 403,
    ErrorCode.PARENT_NOT_FOUND: 404,
    ErrorCode.CHILD_NOT_FOUND: 404,
    ErrorCode.ACCOUNT_NOT_FOUND: 404,
    ErrorCode.RELATIONSHIP_NOT_FOUND: 404,
    ErrorCode.CLUB_NOT_FOUND: 404,
    ErrorCode.TEAM_NOT_FOUND: 404,
    ErrorCode.APPROVAL_NOT_FOUND: 404,
    ErrorCode.ATTENDANCE_NOT_FOUND: 404,
    ErrorCode.NOTIFICATION_NOT_FOUND: 404,
    ErrorCode.ALREADY_LINKED: 409,
    ErrorCode.MAX_PARENTS_REACHED: 409,
    ErrorCode.NO_SHARED_TEAMS: 409,
    ErrorCode.RELATIONSHIP_CLOSED: 409,
    ErrorCode.REQUEST_ALREADY_EXISTS: 409,
    ErrorCode.NOTIFICATION_CLOSED: 409,
    ErrorCode.SESSION_NAME_REQUIRED: 400,
    ErrorCode.CUSTOM_TYPE_REQUIRED: 400,
}


class ClubError(Exception):
    """클럽 서비스 오류 (code로 분기)"""

    def __init__(self, code: str, detail: Optional[str] = None):
        super().__init__(code)
        self.code = code
        self.detail = detail

    @property
    def message(self) -> str:
        return ERROR_MESSAGES.get(self.code, GENERIC_ERROR_MESSAGE)

    @property
    def status_code(self) -> int:
        return ERROR_STATUS.get(self.code, 400)

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "detail": self.detail}
