import logging

from .errors import AccountErrorCode, AccountServiceError, ExternalServiceError, ValidationError, WizardError
from .interfaces import AccountService, Notifier
from .models import Notification, Role
from .registration_state import (
    Credentials,
    Done,
    RegistrationDraft,
    RegistrationState,
    RoleSelect,
    STEP_LABELS,
    advance,
    begin_submit,
    retreat,
    select_role,
    submit_failed,
    submit_succeeded,
)
from .results import WizardResult

logger = logging.getLogger(__name__)


ACCOUNT_ERROR_MESSAGES = {
    AccountErrorCode.EMAIL_IN_USE: "Este email já está registrado.",
    AccountErrorCode.INVALID_EMAIL: "Email inválido.",
    AccountErrorCode.WEAK_PASSWORD: "A senha deve ter pelo menos 6 caracteres.",
}
GENERIC_ACCOUNT_ERROR = "Verifique os dados e tente novamente."

EDITABLE_FIELDS = ("name", "email", "password", "confirm_password", "cnpj", "crm")


def map_account_error(error: Exception) -> ExternalServiceError:
    """
    Traduz a falha do AccountService para a mensagem exibida ao usuário.
    Códigos não mapeados caem na mensagem genérica.
    """
    code = error.code if isinstance(error, AccountServiceError) else None
    description = ACCOUNT_ERROR_MESSAGES.get(code, GENERIC_ACCOUNT_ERROR)
    return ExternalServiceError(
        "Erro no cadastro",
        description,
        code=code.value if code else None,
    )


class RegistrationWizard:
    """
    Conduz o cadastro em três passos: tipo, dados do tipo e credenciais.

    Faz exatamente uma chamada de criação de conta ao final. Cada instância
    pertence a um único formulário; o rascunho vive só em memória.
    """

    def __init__(self, account_service: AccountService, notifier: Notifier) -> None:
        self._accounts = account_service
        self._notifier = notifier
        self._state: RegistrationState = RoleSelect()
        self._closed = False
        self.draft = RegistrationDraft()

    @property
    def state(self) -> RegistrationState:
        return self._state

    @property
    def step(self) -> int:
        return self._state.step

    @property
    def step_labels(self):
        return STEP_LABELS

    @property
    def is_submitting(self) -> bool:
        return isinstance(self._state, Credentials) and self._state.submitting

    @property
    def is_done(self) -> bool:
        return isinstance(self._state, Done)

    def update_draft(self, **fields: str) -> None:
        """
        Atualiza campos do rascunho. O tipo de cadastro não é editável aqui.
        """
        for key, value in fields.items():
            if key not in EDITABLE_FIELDS:
                raise ValueError(f"Campo não editável no rascunho: {key}")
            setattr(self.draft, key, value if value is not None else "")

    def _fail(self, error: WizardError) -> WizardResult:
        self._notifier.notify(error.to_notification())
        return WizardResult(ok=False, step=self.step, error=error)

    def select_role(self, role: Role) -> WizardResult:
        try:
            new_state = select_role(self._state, role)
        except ValidationError as e:
            return self._fail(e)

        self._state = new_state
        self.draft.role = new_state.role
        logger.info(f"Tipo de cadastro selecionado: role={new_state.role.value}")
        return WizardResult(ok=True, step=self.step)

    def advance(self) -> WizardResult:
        try:
            new_state = advance(self._state, self.draft)
        except ValidationError as e:
            logger.warning(
                f"Identificador inválido no cadastro: role={self.draft.role}, "
                f"error={e.title}"
            )
            return self._fail(e)

        self._state = new_state
        logger.debug(f"Cadastro avançou para o passo {self.step}")
        return WizardResult(ok=True, step=self.step)

    def retreat(self) -> WizardResult:
        self._state = retreat(self._state)
        return WizardResult(ok=True, step=self.step)

    async def submit(self) -> WizardResult:
        """
        Cria a conta no AccountService.

        Enquanto a chamada está pendente, novos envios são ignorados
        (protege contra duplo clique). Em caso de falha permanece no passo
        de credenciais para o usuário corrigir e tentar novamente.
        """
        if self.is_submitting:
            logger.debug("Envio de cadastro ignorado: já existe um envio em andamento")
            return WizardResult(ok=False, step=self.step, suppressed=True)

        try:
            submitting = begin_submit(self._state, self.draft)
        except ValidationError as e:
            return self._fail(e)

        self._state = submitting
        draft = self.draft
        logger.info(f"Enviando cadastro: role={draft.role.value}, email={draft.email}")

        try:
            user_id = await self._accounts.register(
                draft.email,
                draft.password,
                draft.name,
                draft.role,
                draft.role_fields(),
            )
        except Exception as e:
            if self._closed:
                logger.debug("Falha de cadastro ignorada: wizard já encerrado")
                return WizardResult(ok=False, step=submitting.step)
            if isinstance(e, AccountServiceError):
                logger.warning(f"Cadastro recusado: email={draft.email}, code={e.code.value}")
            else:
                logger.error(
                    f"Erro inesperado no cadastro: email={draft.email}, "
                    f"error={type(e).__name__}: {e}",
                    exc_info=True,
                )
            self._state = submit_failed(submitting)
            return self._fail(map_account_error(e))

        if self._closed:
            logger.debug(f"Cadastro concluído após encerramento do wizard: user_id={user_id}")
            return WizardResult(ok=True, step=submitting.step, completed=True, user_id=user_id)

        self._state = submit_succeeded(submitting, user_id)
        logger.info(f"Cadastro concluído: user_id={user_id}, role={draft.role.value}")
        self._notifier.notify(
            Notification(
                title="Cadastro realizado com sucesso",
                description="Redirecionando para o dashboard...",
            )
        )
        return WizardResult(ok=True, step=self.step, completed=True, user_id=user_id)

    def close(self) -> None:
        """
        Encerra o wizard. Resultados de envios ainda pendentes são ignorados.
        """
        self._closed = True
