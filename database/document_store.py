"""
문서 저장소 인터페이스

컬렉션 + 문서 ID 기반 get/set/update/delete/query 프리미티브.
- MemoryDocumentStore: 로컬 개발/테스트용
- SupabaseDocumentStore: 호스팅 저장소 (supabase_client.py)
"""
import copy
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from loguru import logger


class StoreError(Exception):
    """저장소 오류"""


class StorePermissionError(StoreError):
    """저장소 권한 거부 (permission-denied)"""


class DocumentNotFound(StoreError):
    """존재하지 않는 문서 수정 시도"""

    def __init__(self, collection: str, doc_id: str):
        super().__init__(f"{collection}/{doc_id} 문서가 없습니다")
        self.collection = collection
        self.doc_id = doc_id


SUPPORTED_OPS = ("==", "array_contains", ">=", "<=")


@dataclass(frozen=True)
class Filter:
    """쿼리 조건 (field op value)"""
    field: str
    op: str
    value: Any

    def __post_init__(self):
        if self.op not in SUPPORTED_OPS:
            raise ValueError(f"지원하지 않는 연산자: {self.op}")

    def matches(self, doc: Dict[str, Any]) -> bool:
        actual = doc.get(self.field)
        if self.op == "==":
            return actual == self.value
        if self.op == "array_contains":
            return isinstance(actual, list) and self.value in actual
        if actual is None:
            return False
        if self.op == ">=":
            return actual >= self.value
        return actual <= self.value


def where(field: str, op: str, value: Any) -> Filter:
    return Filter(field, op, value)


class DocumentStore(ABC):
    """문서 저장소 추상 인터페이스"""

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """문서 조회 (없으면 None). 반환 dict에는 항상 id 포함"""

    @abstractmethod
    async def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        """문서 생성/덮어쓰기"""

    @abstractmethod
    async def update(self, collection: str, doc_id: str, patch: Dict[str, Any]) -> None:
        """부분 수정 (문서 없으면 DocumentNotFound)"""

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> None:
        """문서 삭제 (없어도 오류 아님)"""

    @abstractmethod
    async def query(
        self,
        collection: str,
        *filters: Filter,
        order_by: Optional[str] = None,
        descending: bool = False
    ) -> List[Dict[str, Any]]:
        """조건 조회"""

    async def add(self, collection: str, data: Dict[str, Any]) -> str:
        """자동 ID로 문서 생성"""
        doc_id = data.get("id") or uuid.uuid4().hex
        await self.set(collection, doc_id, {**data, "id": doc_id})
        return doc_id

    async def array_union(self, collection: str, doc_id: str, field: str, *values: Any) -> None:
        """배열 필드에 값 추가 (중복 제외)"""
        doc = await self.get(collection, doc_id)
        if doc is None:
            raise DocumentNotFound(collection, doc_id)
        current = list(doc.get(field) or [])
        for value in values:
            if value not in current:
                current.append(value)
        await self.update(collection, doc_id, {field: current})

    async def array_remove(self, collection: str, doc_id: str, field: str, *values: Any) -> None:
        """배열 필드에서 값 제거"""
        doc = await self.get(collection, doc_id)
        if doc is None:
            raise DocumentNotFound(collection, doc_id)
        current = [v for v in (doc.get(field) or []) if v not in values]
        await self.update(collection, doc_id, {field: current})

    async def close(self) -> None:
        """연결 정리"""


class MemoryDocumentStore(DocumentStore):
    """프로세스 메모리 저장소 (개발/테스트용)"""

    def __init__(self, initial: Optional[Dict[str, Dict[str, Dict[str, Any]]]] = None):
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        for collection, docs in (initial or {}).items():
            for doc_id, data in docs.items():
                self._collections.setdefault(collection, {})[doc_id] = {
                    **copy.deepcopy(data), "id": doc_id
                }

    def _docs(self, collection: str) -> Dict[str, Dict[str, Any]]:
        return self._collections.setdefault(collection, {})

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        doc = self._docs(collection).get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        self._docs(collection)[doc_id] = {**copy.deepcopy(data), "id": doc_id}

    async def update(self, collection: str, doc_id: str, patch: Dict[str, Any]) -> None:
        docs = self._docs(collection)
        if doc_id not in docs:
            raise DocumentNotFound(collection, doc_id)
        docs[doc_id].update(copy.deepcopy(patch))

    async def delete(self, collection: str, doc_id: str) -> None:
        self._docs(collection).pop(doc_id, None)

    async def query(
        self,
        collection: str,
        *filters: Filter,
        order_by: Optional[str] = None,
        descending: bool = False
    ) -> List[Dict[str, Any]]:
        results = [
            copy.deepcopy(doc)
            for doc in self._docs(collection).values()
            if all(f.matches(doc) for f in filters)
        ]
        if order_by:
            results.sort(key=lambda d: (d.get(order_by) is None, d.get(order_by) or ""), reverse=descending)
        return results


def create_document_store(backend: str) -> DocumentStore:
    """설정에 따라 저장소 생성"""
    if backend == "memory":
        logger.info("메모리 문서 저장소 사용")
        return MemoryDocumentStore()
    if backend == "supabase":
        from database.supabase_client import SupabaseDocumentStore, get_supabase_client
        logger.info("Supabase 문서 저장소 사용")
        return SupabaseDocumentStore(get_supabase_client())
    raise ValueError(f"알 수 없는 저장소 백엔드: {backend}")
