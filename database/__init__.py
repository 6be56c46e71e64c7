"""
저장소 계층
"""

from .document_store import (
    DocumentStore,
    MemoryDocumentStore,
    DocumentNotFound,
    StoreError,
    StorePermissionError,
    Filter,
    where,
    create_document_store,
)

__all__ = [
    "DocumentStore",
    "MemoryDocumentStore",
    "DocumentNotFound",
    "StoreError",
    "StorePermissionError",
    "Filter",
    "where",
    "create_document_store",
]
