import logging
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class InMemoryDocumentCache:
    """
    Cache chave-valor simples em memória para os documentos em andamento.
    Em produção, isso seria substituído pelo RedisDocumentCache.
    """

    def __init__(self) -> None:
        self._values: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        value = self._values.get(key)
        logger.debug(f"Cache em memória: get key={key}, hit={value is not None}")
        return value

    def set(self, key: str, value: str) -> None:
        self._values[key] = value
        logger.debug(f"Cache em memória: set key={key}, size={len(value)}")

    def remove(self, key: str) -> None:
        self._values.pop(key, None)
        logger.debug(f"Cache em memória: remove key={key}")


class ScopedDocumentCache:
    """
    Prefixa as chaves de outro cache com o escopo do usuário.

    O wizard usa sempre a mesma chave fixa; o escopo evita que usuários
    diferentes compartilhem o mesmo conjunto no servidor.
    """

    def __init__(self, cache, scope: str) -> None:
        self._cache = cache
        self._scope = scope

    def _key(self, key: str) -> str:
        return f"{self._scope}:{key}"

    def get(self, key: str) -> Optional[str]:
        return self._cache.get(self._key(key))

    def set(self, key: str, value: str) -> None:
        self._cache.set(self._key(key), value)

    def remove(self, key: str) -> None:
        self._cache.remove(self._key(key))
