import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel

from .documents import (
    DOCUMENT_GROUPS,
    DOCUMENT_LABELS,
    DocumentKey,
    DocumentSet,
    deserialize_documents,
    empty_document_set,
    missing_documents,
    required_documents_missing,
    serialize_documents,
)
from .errors import ExternalServiceError, PartialFailure, PreconditionError, StorageError, ValidationError, WizardError
from .interfaces import AccountService, DocumentStore, DurableLocalCache, Notifier, RecordStore, Unsubscribe
from .models import Notification, SessionHandle, UploadedFile
from .profile_forms import FinancialInfo, PersonalInfo, ProfessionalInfo
from .results import WizardResult
from .validators import MAX_FILE_BYTES, check_file, file_guard

logger = logging.getLogger(__name__)


USERS_COLLECTION = "users"
DEFAULT_CACHE_KEY = "hapvida-documents"


def document_path(user_id: str, key: DocumentKey) -> str:
    return f"documents/{user_id}/{key.value}"


def _labels(keys: List[DocumentKey]) -> str:
    return ", ".join(DOCUMENT_LABELS[key] for key in keys)


class ProfileWizard:
    """
    Gerencia o perfil do usuário autenticado.

    - Três formulários independentes (pessoal, profissional, financeiro)
    - Checklist de documentos em três passos, com bloqueio por grupo obrigatório
    - Envio dos documentos ao DocumentStore e gravação de um único registro

    O conjunto de documentos em andamento é persistido no DurableLocalCache
    para sobreviver a um recarregamento. open() adquire o cache e a
    assinatura de sessão; close() libera ambos.
    """

    def __init__(
        self,
        account_service: AccountService,
        document_store: DocumentStore,
        record_store: RecordStore,
        cache: DurableLocalCache,
        notifier: Notifier,
        cache_key: str = DEFAULT_CACHE_KEY,
        max_upload_bytes: int = MAX_FILE_BYTES,
    ) -> None:
        self._accounts = account_service
        self._store = document_store
        self._records = record_store
        self._cache = cache
        self._notifier = notifier
        self._cache_key = cache_key
        self._max_upload_bytes = max_upload_bytes

        self.step = 0
        self.documents: DocumentSet = empty_document_set()
        self.personal_info = PersonalInfo()
        self.professional_info = ProfessionalInfo()
        self.financial_info = FinancialInfo()
        self.is_loading_profile = True

        self._session: Optional[SessionHandle] = None
        self._token = ""
        self._unsubscribe: Optional[Unsubscribe] = None
        self._in_flight = False
        self._closed = False

    @property
    def session(self) -> Optional[SessionHandle]:
        return self._session

    @property
    def is_loading(self) -> bool:
        return self._in_flight

    @property
    def last_step(self) -> int:
        return len(DOCUMENT_GROUPS) - 1

    # ------------------------------------------------------------------
    # Ciclo de vida
    # ------------------------------------------------------------------

    async def open(self, session: Optional[SessionHandle]) -> None:
        """
        Restaura os documentos do cache, assina mudanças de sessão e
        carrega os dados do usuário para preencher os formulários.
        """
        self._restore_documents()
        # O wizard fica preso ao token recebido aqui, mesmo após logout
        self._token = session.token if session else ""
        self._unsubscribe = self._accounts.subscribe_session_changes(self._on_session_changed)
        self._session = session
        await self._on_session_changed(self._token, session)

    def close(self) -> None:
        self._closed = True
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        logger.debug("ProfileWizard encerrado: assinatura de sessão liberada")

    def _restore_documents(self) -> None:
        raw = self._cache.get(self._cache_key)
        if not raw:
            return
        try:
            restored = deserialize_documents(raw)
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(
                f"Cache de documentos ilegível, descartando: key={self._cache_key}, "
                f"error={type(e).__name__}: {e}"
            )
            self._cache.remove(self._cache_key)
            return

        for key, file in restored.items():
            if file is not None and not file_guard(file, self._max_upload_bytes):
                logger.warning(f"Documento do cache recusado pela validação: key={key.value}")
                restored[key] = None
        self.documents = restored
        filled = sum(1 for file in restored.values() if file is not None)
        logger.info(f"Documentos restaurados do cache: key={self._cache_key}, filled={filled}")

    def _persist_documents(self) -> None:
        self._cache.set(self._cache_key, serialize_documents(self.documents))

    async def _on_session_changed(self, token: str, session: Optional[SessionHandle]) -> None:
        if self._closed:
            return
        if token != self._token:
            return

        if session is None:
            self._session = None
            self.is_loading_profile = False
            self._notifier.notify(
                PreconditionError(
                    "Usuário não autenticado",
                    "Por favor, faça login para acessar seu perfil.",
                ).to_notification()
            )
            return

        self._session = session
        await self._load_profile(session)

    async def _load_profile(self, session: SessionHandle) -> None:
        try:
            record = await self._accounts.fetch_user_record(session.user_id)
        except Exception as e:
            if self._closed:
                return
            logger.error(
                f"Erro ao buscar dados do usuário: user_id={session.user_id}, "
                f"error={type(e).__name__}: {e}",
                exc_info=True,
            )
            self._notifier.notify(
                ExternalServiceError(
                    "Erro ao carregar perfil",
                    "Não foi possível carregar seus dados. Tente novamente.",
                ).to_notification()
            )
            self.is_loading_profile = False
            return

        if self._closed:
            return
        if record is not None:
            self.personal_info = self.personal_info.model_copy(
                update={"name": record.name or "", "email": record.email or ""}
            )
            self.professional_info = self.professional_info.model_copy(
                update={"crm": record.crm or "", "cnpj": record.cnpj or ""}
            )
            logger.debug(f"Perfil preenchido com dados do cadastro: user_id={session.user_id}")
        self.is_loading_profile = False

    # ------------------------------------------------------------------
    # Formulários independentes
    # ------------------------------------------------------------------

    def _fail(self, error: WizardError) -> WizardResult:
        self._notifier.notify(error.to_notification())
        return WizardResult(ok=False, step=self.step, error=error)

    async def _save_section(
        self,
        session: Optional[SessionHandle],
        section: str,
        info: BaseModel,
        title: str,
        description: str,
    ) -> WizardResult:
        if self._in_flight:
            logger.debug(f"Envio ignorado: outra ação em andamento, section={section}")
            return WizardResult(ok=False, step=self.step, suppressed=True)
        if session is None:
            return self._fail(
                PreconditionError(
                    "Usuário não autenticado",
                    "Por favor, faça login para salvar suas informações.",
                )
            )

        self._in_flight = True
        try:
            await self._records.create_record(
                USERS_COLLECTION,
                {
                    section: info.model_dump(mode="json"),
                    "uid": session.user_id,
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                },
            )
        except Exception as e:
            if self._closed:
                return WizardResult(ok=False, step=self.step)
            logger.error(
                f"Erro ao salvar informações: section={section}, user_id={session.user_id}, "
                f"error={type(e).__name__}: {e}",
                exc_info=not isinstance(e, StorageError),
            )
            return self._fail(
                ExternalServiceError(
                    "Erro ao salvar",
                    "Ocorreu um erro ao salvar suas informações.",
                )
            )
        finally:
            self._in_flight = False

        if self._closed:
            return WizardResult(ok=True, step=self.step)
        setattr(self, f"{section}_info", info)
        logger.info(f"Informações salvas: section={section}, user_id={session.user_id}")
        self._notifier.notify(Notification(title=title, description=description))
        return WizardResult(ok=True, step=self.step)

    async def save_personal_info(
        self,
        session: Optional[SessionHandle],
        info: Optional[PersonalInfo] = None,
    ) -> WizardResult:
        return await self._save_section(
            session,
            "personal",
            info if info is not None else self.personal_info,
            "Informações pessoais salvas",
            "Suas informações pessoais foram atualizadas com sucesso.",
        )

    async def save_professional_info(
        self,
        session: Optional[SessionHandle],
        info: Optional[ProfessionalInfo] = None,
    ) -> WizardResult:
        return await self._save_section(
            session,
            "professional",
            info if info is not None else self.professional_info,
            "Informações profissionais salvas",
            "Suas informações profissionais foram atualizadas com sucesso.",
        )

    async def save_financial_info(
        self,
        session: Optional[SessionHandle],
        info: Optional[FinancialInfo] = None,
    ) -> WizardResult:
        return await self._save_section(
            session,
            "financial",
            info if info is not None else self.financial_info,
            "Informações financeiras salvas",
            "Suas informações financeiras foram atualizadas com sucesso.",
        )

    # ------------------------------------------------------------------
    # Checklist de documentos
    # ------------------------------------------------------------------

    def set_document(self, key: Union[DocumentKey, str], file: UploadedFile) -> WizardResult:
        """
        Valida o arquivo e o guarda no slot, substituindo o anterior.
        Arquivos recusados nunca entram no conjunto. Durante um envio o
        conjunto fica congelado e a seleção é ignorada.
        """
        if self._in_flight:
            logger.debug(f"Seleção de documento ignorada: envio em andamento, key={key}")
            return WizardResult(ok=False, step=self.step, suppressed=True)
        try:
            key = DocumentKey(key)
        except ValueError:
            return self._fail(ValidationError("Documento desconhecido", f"Slot inválido: {key}."))

        error = check_file(file, self._max_upload_bytes)
        if error is not None:
            logger.warning(
                f"Arquivo recusado: key={key.value}, name={file.name}, "
                f"size={file.size}, content_type={file.content_type}"
            )
            return self._fail(error)

        self.documents[key] = file
        self._persist_documents()
        logger.debug(f"Documento selecionado: key={key.value}, name={file.name}, size={file.size}")
        return WizardResult(ok=True, step=self.step)

    def advance(self) -> WizardResult:
        """
        Avança um passo se os obrigatórios do grupo ATUAL estiverem presentes.
        No último passo não faz nada.
        """
        if self.step >= self.last_step:
            return WizardResult(ok=True, step=self.step)

        group = DOCUMENT_GROUPS[self.step]
        missing = missing_documents(self.documents, group)
        if missing:
            kind = "pessoais" if group.name == "personal" else "profissionais"
            return self._fail(
                ValidationError(
                    "Documentos obrigatórios",
                    f"Por favor, envie todos os documentos {kind} obrigatórios antes de prosseguir. "
                    f"Pendentes: {_labels(missing)}.",
                )
            )

        self.step += 1
        return WizardResult(ok=True, step=self.step)

    def retreat(self) -> WizardResult:
        if self.step > 0:
            self.step -= 1
        return WizardResult(ok=True, step=self.step)

    async def finish_early(self, session: Optional[SessionHandle]) -> WizardResult:
        """
        Finaliza sem os documentos de especialista, desde que todos os
        obrigatórios estejam presentes.
        """
        missing = required_documents_missing(self.documents)
        if missing:
            return self._fail(
                ValidationError(
                    "Documentos obrigatórios",
                    "Por favor, envie todos os documentos obrigatórios antes de finalizar. "
                    f"Pendentes: {_labels(missing)}.",
                )
            )
        return await self.submit(session)

    async def submit(self, session: Optional[SessionHandle]) -> WizardResult:
        """
        Envia cada documento presente, em sequência, e grava um único
        registro com as URLs. Qualquer falha cancela a gravação e mantém
        os documentos selecionados para nova tentativa.
        """
        if self._in_flight:
            logger.debug("Envio de documentos ignorado: já existe um envio em andamento")
            return WizardResult(ok=False, step=self.step, suppressed=True)
        if session is None:
            return self._fail(
                PreconditionError(
                    "Usuário não autenticado",
                    "Por favor, faça login para enviar seus documentos.",
                )
            )

        self._in_flight = True
        snapshot = dict(self.documents)
        file_urls: Dict[str, str] = {}
        uploaded: List[str] = []
        try:
            for key in DocumentKey:
                file = snapshot.get(key)
                if file is None:
                    continue
                path = document_path(session.user_id, key)
                await self._store.upload(path, file.content, file.content_type)
                uploaded.append(key.value)
                file_urls[key.value] = await self._store.get_retrieval_url(path)

            record: Dict[str, Any] = {
                "documents": file_urls,
                "uid": session.user_id,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
            await self._records.create_record(USERS_COLLECTION, record)
        except Exception as e:
            if self._closed:
                logger.debug("Falha de envio ignorada: wizard já encerrado")
                return WizardResult(ok=False, step=self.step)
            logger.error(
                f"Erro ao salvar documentos: user_id={session.user_id}, "
                f"uploaded={uploaded}, error={type(e).__name__}: {e}",
                exc_info=not isinstance(e, StorageError),
            )
            if uploaded:
                error: ExternalServiceError = PartialFailure(
                    "Erro ao salvar",
                    "Ocorreu um erro ao salvar seus documentos.",
                    uploaded_keys=uploaded,
                )
            else:
                error = ExternalServiceError(
                    "Erro ao salvar",
                    "Ocorreu um erro ao salvar seus documentos.",
                )
            return self._fail(error)
        finally:
            self._in_flight = False

        if self._closed:
            logger.debug(f"Envio concluído após encerramento do wizard: user_id={session.user_id}")
            return WizardResult(ok=True, step=self.step, completed=True)

        logger.info(
            f"Documentos salvos: user_id={session.user_id}, count={len(file_urls)}"
        )
        self._notifier.notify(
            Notification(
                title="Documentos salvos",
                description="Seus documentos foram enviados com sucesso.",
            )
        )
        self.step = 0
        self.documents = empty_document_set()
        self._cache.remove(self._cache_key)
        return WizardResult(ok=True, step=self.step, completed=True)

    def checklist_status(self) -> List[Dict[str, Any]]:
        """
        Situação de cada passo do checklist para a camada de apresentação.
        """
        status = []
        for index, group in enumerate(DOCUMENT_GROUPS):
            status.append({
                "step": index,
                "label": group.label,
                "required": group.required,
                "current": index == self.step,
                "filled": [
                    {"key": key.value, "name": self.documents[key].name}
                    for key in group.keys
                    if self.documents.get(key) is not None
                ],
                "missing": [key.value for key in missing_documents(self.documents, group)],
            })
        return status
