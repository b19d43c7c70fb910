"""
Cache dos documentos em andamento usando Redis como backend.
Armazena o conjunto serializado em JSON com TTL configurável.
"""
import logging
from typing import Optional
from redis import Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


class RedisDocumentCache:
    """
    Cache chave-valor sobre Redis.

    Armazena cada valor em uma chave: documents:{key}
    Com TTL configurável para expiração automática de envios abandonados.
    """

    def __init__(
        self,
        client: Redis,
        ttl_seconds: int = 604800,  # 7 dias padrão
    ) -> None:
        self._redis = client
        self._ttl_seconds = ttl_seconds

    @classmethod
    def from_url(cls, redis_url: str, ttl_seconds: int = 604800) -> "RedisDocumentCache":
        """
        Cria o cache a partir de uma URL (ex: redis://localhost:6379/0).
        Testa a conexão e relança o erro se o Redis estiver indisponível.
        """
        client = Redis.from_url(redis_url, decode_responses=False)
        try:
            client.ping()
            logger.info(
                f"RedisDocumentCache inicializado: redis_url={redis_url}, "
                f"ttl={ttl_seconds}s"
            )
        except RedisError as e:
            logger.error(f"Erro ao conectar ao Redis: {e}")
            raise
        return cls(client, ttl_seconds=ttl_seconds)

    def ping(self) -> bool:
        try:
            return bool(self._redis.ping())
        except RedisError as e:
            logger.error(f"Redis não respondeu ao ping: {e}")
            return False

    def get(self, key: str) -> Optional[str]:
        redis_key = f"documents:{key}"
        try:
            data = self._redis.get(redis_key)
        except RedisError as e:
            logger.error(f"Erro ao ler documentos do Redis: key={redis_key}, error={e}")
            # Sem cache, o usuário apenas seleciona os arquivos novamente
            return None
        if data is None:
            return None
        logger.debug(f"Documentos recuperados do Redis: key={redis_key}, size={len(data)}")
        return data.decode("utf-8") if isinstance(data, bytes) else data

    def set(self, key: str, value: str) -> None:
        redis_key = f"documents:{key}"
        try:
            self._redis.setex(redis_key, self._ttl_seconds, value.encode("utf-8"))
            logger.debug(
                f"Documentos salvos no Redis: key={redis_key}, "
                f"size={len(value)}, ttl={self._ttl_seconds}s"
            )
        except RedisError as e:
            logger.error(f"Erro ao salvar documentos no Redis: key={redis_key}, error={e}")
            # Não relançar erro para não quebrar o fluxo
            # O conjunto continua válido em memória

    def remove(self, key: str) -> None:
        redis_key = f"documents:{key}"
        try:
            self._redis.delete(redis_key)
            logger.debug(f"Documentos removidos do Redis: key={redis_key}")
        except RedisError as e:
            logger.error(f"Erro ao remover documentos do Redis: key={redis_key}, error={e}")
