"""
Supabase 데이터베이스 클라이언트
"""
from typing import Any, Dict, List, Optional

from postgrest.exceptions import APIError
from supabase import Client, create_client

from app.config import supabase_config
from database.document_store import (
    DocumentNotFound,
    DocumentStore,
    Filter,
    StoreError,
    StorePermissionError,
)

# PostgreSQL insufficient_privilege / RLS 거부
PERMISSION_DENIED_CODES = {"42501", "PGRST301", "401", "403"}


# 싱글톤 클라이언트
_supabase_client: Optional[Client] = None


def get_supabase_client() -> Client:
    """
    Supabase 클라이언트 인스턴스 반환 (싱글톤)
    """
    global _supabase_client
    if _supabase_client is None:
        if not supabase_config.supabase_url or not supabase_config.supabase_key:
            raise ValueError("SUPABASE_URL과 SUPABASE_KEY 환경변수를 설정해주세요")
        _supabase_client = create_client(
            supabase_config.supabase_url,
            supabase_config.supabase_key
        )
    return _supabase_client


def _translate_error(error: APIError, action: str) -> StoreError:
    """postgrest 오류 → 저장소 오류 변환"""
    code = str(getattr(error, "code", "") or "")
    if code in PERMISSION_DENIED_CODES:
        return StorePermissionError(f"{action}: 권한 없음 ({error.message})")
    return StoreError(f"{action}: {error.message}")


class SupabaseDocumentStore(DocumentStore):
    """
    Supabase 테이블 기반 문서 저장소

    컬렉션 1개 = 테이블 1개, 기본키는 text 타입 id 컬럼.
    배열 컬럼은 text[] / jsonb, 중첩 객체는 jsonb 컬럼으로 저장.
    """

    def __init__(self, client: Client):
        self.client = client

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        try:
            result = self.client.table(collection).select("*").eq(
                "id", doc_id
            ).limit(1).execute()
        except APIError as e:
            raise _translate_error(e, f"{collection} 조회") from e

        if result.data:
            return result.data[0]
        return None

    async def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        try:
            self.client.table(collection).upsert(
                {**data, "id": doc_id},
                on_conflict="id"
            ).execute()
        except APIError as e:
            raise _translate_error(e, f"{collection} 저장") from e

    async def update(self, collection: str, doc_id: str, patch: Dict[str, Any]) -> None:
        try:
            result = self.client.table(collection).update(patch).eq("id", doc_id).execute()
        except APIError as e:
            raise _translate_error(e, f"{collection} 수정") from e

        if not result.data:
            raise DocumentNotFound(collection, doc_id)

    async def delete(self, collection: str, doc_id: str) -> None:
        try:
            self.client.table(collection).delete().eq("id", doc_id).execute()
        except APIError as e:
            raise _translate_error(e, f"{collection} 삭제") from e

    async def query(
        self,
        collection: str,
        *filters: Filter,
        order_by: Optional[str] = None,
        descending: bool = False
    ) -> List[Dict[str, Any]]:
        query = self.client.table(collection).select("*")

        for f in filters:
            if f.op == "==":
                query = query.eq(f.field, f.value)
            elif f.op == "array_contains":
                query = query.contains(f.field, [f.value])
            elif f.op == ">=":
                query = query.gte(f.field, f.value)
            elif f.op == "<=":
                query = query.lte(f.field, f.value)

        if order_by:
            query = query.order(order_by, desc=descending)

        try:
            result = query.execute()
        except APIError as e:
            raise _translate_error(e, f"{collection} 쿼리") from e

        return result.data or []
