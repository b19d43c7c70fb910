"""
Módulo de cache dos documentos em andamento.
Suporta tanto InMemoryDocumentCache quanto RedisDocumentCache.
"""

from .redis_document_cache import RedisDocumentCache
from ..core.document_cache import InMemoryDocumentCache

__all__ = ["RedisDocumentCache", "InMemoryDocumentCache"]
