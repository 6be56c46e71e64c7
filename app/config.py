"""
클럽 관리 설정
"""
from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings

load_dotenv()


class SupabaseConfig(BaseSettings):
    """Supabase 설정"""

    supabase_url: str = Field(default="", description="Supabase Project URL")
    supabase_key: str = Field(default="", description="Supabase anon key")

    class Config:
        env_prefix = ""
        case_sensitive = False


class ClubSettings(BaseSettings):
    """클럽 관리 서비스 설정"""

    # 저장소: supabase | memory
    store_backend: str = Field(default="supabase", description="문서 저장소 백엔드")

    # 부모-자녀 관계
    max_parents_per_child: int = Field(default=3, description="자녀 1명당 최대 부모 수")

    # 출석 자동 저장
    autosave_debounce_seconds: float = Field(default=2.0, description="자동 저장 대기 시간 (초)")
    draft_idle_seconds: float = Field(default=1800.0, description="사용하지 않은 출석 입력 초안 정리 시간 (초)")

    # 구독 승인
    subscription_approval_days: int = Field(default=7, description="구독 승인 요청 유효 기간 (일)")
    default_currency: str = "EUR"
    default_billing_cycle: str = "monthly"

    # X-Test-User-Id 헤더로 로그인 (로컬 개발용)
    test_mode: bool = Field(default=False, description="테스트 모드")

    # 로깅
    log_level: str = "INFO"
    log_dir: str = "logs"

    class Config:
        env_prefix = "CLUB_"
        env_file = ".env"
        extra = "ignore"


# 전역 설정 인스턴스
supabase_config = SupabaseConfig()


@lru_cache()
def get_club_settings() -> ClubSettings:
    return ClubSettings()
