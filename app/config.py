from dataclasses import dataclass
import os
import logging
from dotenv import load_dotenv

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppConfig:
    """
    Configurações principais da aplicação.

    Segue a ideia de centralizar parâmetros críticos
    para facilitar revisão, testes e mudanças futuras.
    """
    database_url: str = "sqlite:///./cadastro.db"
    redis_url: str = ""
    bot_api_key: str = ""
    env: str = "dev"  # "dev" ou "prod"
    document_cache_key: str = "hapvida-documents"
    document_cache_ttl_seconds: int = 604800  # 7 dias
    wizard_idle_ttl_seconds: int = 3600  # wizards ociosos são descartados
    storage_dir: str = "./storage"
    public_base_url: str = "http://localhost:8000"
    max_upload_bytes: int = 5 * 1024 * 1024  # limite por documento (5MB)
    max_document_base64_chars: int = 8_000_000  # limite de caracteres no base64
    min_password_length: int = 6

    @classmethod
    def load_from_env(cls) -> "AppConfig":
        """
        Carrega configuração a partir de variáveis de ambiente.
        Primeiro tenta carregar do arquivo .env, depois do ambiente do sistema.
        Levanta erro explícito se algo crítico faltar.
        """
        # Carrega variáveis do arquivo .env se existir
        load_dotenv()

        database_url = os.getenv("DATABASE_URL", "sqlite:///./cadastro.db")
        redis_url = os.getenv("REDIS_URL", "")
        bot_api_key = os.getenv("BOT_API_KEY", "")

        # Carregar ambiente (dev ou prod)
        env = os.getenv("ENV", "dev").lower()
        if env not in ("dev", "prod"):
            logger.warning(f"ENV inválido '{env}', usando 'dev' como padrão")
            env = "dev"

        # Validação: em produção, BOT_API_KEY é obrigatório
        if env == "prod":
            if not bot_api_key or not bot_api_key.strip():
                raise RuntimeError(
                    "ENV=prod requer BOT_API_KEY definida. "
                    "Configure BOT_API_KEY no ambiente de produção."
                )
            logger.info("Modo PRODUÇÃO: BOT_API_KEY validada")
        else:
            if not bot_api_key or not bot_api_key.strip():
                logger.warning(
                    "⚠️  MODO DEV: BOT_API_KEY não configurada. "
                    "Endpoints de cadastro e perfil aceitarão requisições sem API key. "
                    "Configure BOT_API_KEY para produção."
                )

        document_cache_key = os.getenv("DOCUMENT_CACHE_KEY", "hapvida-documents")
        document_cache_ttl_seconds = int(os.getenv("DOCUMENT_CACHE_TTL_SECONDS", "604800"))
        wizard_idle_ttl_seconds = int(os.getenv("WIZARD_IDLE_TTL_SECONDS", "3600"))
        storage_dir = os.getenv("STORAGE_DIR", "./storage")
        public_base_url = os.getenv("PUBLIC_BASE_URL", "http://localhost:8000").rstrip("/")
        max_upload_bytes = int(os.getenv("MAX_UPLOAD_BYTES", str(5 * 1024 * 1024)))
        max_document_base64_chars = int(os.getenv("MAX_DOCUMENT_BASE64_CHARS", "8000000"))
        min_password_length = int(os.getenv("MIN_PASSWORD_LENGTH", "6"))

        if min_password_length < 1:
            raise RuntimeError("MIN_PASSWORD_LENGTH deve ser maior que zero.")

        return cls(
            database_url=database_url,
            redis_url=redis_url,
            bot_api_key=bot_api_key,
            env=env,
            document_cache_key=document_cache_key,
            document_cache_ttl_seconds=document_cache_ttl_seconds,
            wizard_idle_ttl_seconds=wizard_idle_ttl_seconds,
            storage_dir=storage_dir,
            public_base_url=public_base_url,
            max_upload_bytes=max_upload_bytes,
            max_document_base64_chars=max_document_base64_chars,
            min_password_length=min_password_length,
        )
