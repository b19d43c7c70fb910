import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional
from uuid import uuid4
from .document_cache import InMemoryDocumentCache, ScopedDocumentCache
from .models import SessionHandle
from .notifier import CollectingNotifier
from .profile_manager import ProfileWizard
from .registration_manager import RegistrationWizard
from ..cache.redis_document_cache import RedisDocumentCache
from ..config import AppConfig
from ..infra.account_service import LocalAccountService
from ..infra.document_store import LocalDocumentStore
from ..storage.database import check_database, create_session_factory
from ..storage.record_store import SqlRecordStore

logger = logging.getLogger(__name__)


@dataclass
class WizardEntry:
    wizard: Any
    notifier: CollectingNotifier
    last_seen: float = field(default=0.0)


class PlatformEngine:
    """
    Núcleo da aplicação de cadastro e perfil.

    - Cria os colaboradores externos (contas, registros, documentos, cache)
    - Mantém um RegistrationWizard por formulário de cadastro aberto
    - Mantém um ProfileWizard por sessão autenticada
    - Descarta wizards ociosos há mais de wizard_idle_ttl_seconds
    """

    def __init__(self, config: AppConfig, clock: Callable[[], float] = time.monotonic) -> None:
        self._config = config
        self._clock = clock

        # Em produção, não criar tabelas automaticamente (usar Alembic)
        create_tables = config.env == "dev"
        self._db_session_factory = create_session_factory(
            config.database_url, create_tables=create_tables, env=config.env
        )
        self.accounts = LocalAccountService(
            self._db_session_factory,
            min_password_length=config.min_password_length,
        )
        self.document_store = LocalDocumentStore(config.storage_dir, config.public_base_url)
        self.record_store = SqlRecordStore(self._db_session_factory)

        # Escolher cache: Redis se configurado, senão InMemory
        if config.redis_url and config.redis_url.strip():
            try:
                self._cache = RedisDocumentCache.from_url(
                    config.redis_url,
                    ttl_seconds=config.document_cache_ttl_seconds,
                )
                logger.info(f"Cache de documentos usando Redis: url={config.redis_url}")
            except Exception as e:
                logger.error(f"Erro ao inicializar RedisDocumentCache: {e}, usando InMemory como fallback")
                self._cache = InMemoryDocumentCache()
        else:
            self._cache = InMemoryDocumentCache()
            logger.info("Cache de documentos em memória (REDIS_URL não configurado)")

        self._registrations: Dict[str, WizardEntry] = {}
        self._profiles: Dict[str, WizardEntry] = {}

        db_type = "sqlite" if "sqlite" in config.database_url else "postgres" if "postgres" in config.database_url else "unknown"
        logger.info(
            f"PlatformEngine inicializado: database_type={db_type}, "
            f"storage_dir={config.storage_dir}, env={config.env}"
        )

    @property
    def config(self) -> AppConfig:
        return self._config

    # Wizards ociosos

    def evict_idle_wizards(self) -> None:
        """
        Fecha e remove wizards sem acesso há mais de wizard_idle_ttl_seconds.
        Fechar um ProfileWizard libera sua assinatura de sessão.
        """
        deadline = self._clock() - self._config.wizard_idle_ttl_seconds
        for wizard_id in [k for k, e in self._registrations.items() if e.last_seen < deadline]:
            self.discard_registration_wizard(wizard_id)
        idle_tokens = [k for k, e in self._profiles.items() if e.last_seen < deadline]
        for token in idle_tokens:
            self.close_profile_wizard(token)
        if idle_tokens:
            logger.info(f"ProfileWizards ociosos descartados: count={len(idle_tokens)}")

    def _touch(self, entry: WizardEntry) -> WizardEntry:
        entry.last_seen = self._clock()
        return entry

    # Cadastro

    def create_registration_wizard(self) -> str:
        self.evict_idle_wizards()
        wizard_id = uuid4().hex
        notifier = CollectingNotifier()
        self._registrations[wizard_id] = self._touch(
            WizardEntry(
                wizard=RegistrationWizard(self.accounts, notifier),
                notifier=notifier,
            )
        )
        logger.debug(f"RegistrationWizard criado: wizard_id={wizard_id}")
        return wizard_id

    def get_registration_wizard(self, wizard_id: str) -> Optional[WizardEntry]:
        self.evict_idle_wizards()
        entry = self._registrations.get(wizard_id)
        return self._touch(entry) if entry is not None else None

    def discard_registration_wizard(self, wizard_id: str) -> None:
        entry = self._registrations.pop(wizard_id, None)
        if entry is not None:
            entry.wizard.close()
            logger.debug(f"RegistrationWizard descartado: wizard_id={wizard_id}")

    # Perfil

    async def get_profile_wizard(self, session: SessionHandle) -> WizardEntry:
        """
        Recupera o ProfileWizard da sessão ou cria e abre um novo.
        """
        self.evict_idle_wizards()
        entry = self._profiles.get(session.token)
        if entry is not None:
            return self._touch(entry)

        notifier = CollectingNotifier()
        wizard = ProfileWizard(
            account_service=self.accounts,
            document_store=self.document_store,
            record_store=self.record_store,
            cache=ScopedDocumentCache(self._cache, f"user:{session.user_id}"),
            notifier=notifier,
            cache_key=self._config.document_cache_key,
            max_upload_bytes=self._config.max_upload_bytes,
        )
        entry = self._touch(WizardEntry(wizard=wizard, notifier=notifier))
        self._profiles[session.token] = entry
        await wizard.open(session)
        logger.debug(f"ProfileWizard aberto: user_id={session.user_id}")
        return entry

    def close_profile_wizard(self, token: str) -> None:
        entry = self._profiles.pop(token, None)
        if entry is not None:
            entry.wizard.close()

    def resolve_file(self, path: str):
        return self.document_store.resolve(path)

    def health(self) -> Dict[str, bool]:
        status = {"database": check_database(self._db_session_factory)}
        if isinstance(self._cache, RedisDocumentCache):
            status["redis"] = self._cache.ping()
        return status

    def shutdown(self) -> None:
        for wizard_id in list(self._registrations):
            self.discard_registration_wizard(wizard_id)
        for token in list(self._profiles):
            self.close_profile_wizard(token)
        logger.info("PlatformEngine encerrado: wizards liberados")
