"""
팀 출석 관리
"""
from .autosave import AutoSaver
from .drafts import AttendanceDraft, DraftRegistry
from .repository import ATTENDANCE, AttendanceRepository
from .sessions import (
    AttendanceSessionManager,
    classify_response,
    compute_statistics,
    cross_check,
    prefill_from_responses,
    validate_session,
)

__all__ = [
    "ATTENDANCE",
    "AttendanceDraft",
    "AttendanceRepository",
    "AttendanceSessionManager",
    "AutoSaver",
    "DraftRegistry",
    "classify_response",
    "compute_statistics",
    "cross_check",
    "prefill_from_responses",
    "validate_session",
]
