"""
Estados do fluxo de cadastro (médico ou empresa) e transições puras.

O estado é uma união de tipos: RoleSelect | RoleDetails | Credentials | Done.
As transições recebem o estado atual e devolvem o novo estado, sem efeitos
colaterais; falhas de validação levantam ValidationError e não alteram nada.
"""
from dataclasses import dataclass, replace
from typing import Optional, Union, Dict

from .errors import ValidationError
from .models import Role
from .validators import is_valid_cnpj, is_valid_crm


STEP_LABELS = ("Seleção", "Dados", "Credenciais")


@dataclass
class RegistrationDraft:
    """
    Dados coletados durante o fluxo de cadastro.
    Vive apenas em memória enquanto o formulário existe.
    """
    name: str = ""
    email: str = ""
    password: str = ""
    confirm_password: str = ""
    role: Optional[Role] = None
    cnpj: str = ""
    crm: str = ""

    def role_fields(self) -> Dict[str, str]:
        """
        Campos extras enviados ao AccountService, conforme o tipo de cadastro.
        """
        if self.role == Role.HOSPITAL:
            return {"cnpj": self.cnpj}
        if self.role == Role.DOCTOR:
            return {"crm": self.crm}
        return {}


@dataclass(frozen=True)
class RoleSelect:
    step = 0


@dataclass(frozen=True)
class RoleDetails:
    role: Role
    step = 1


@dataclass(frozen=True)
class Credentials:
    role: Role
    submitting: bool = False
    step = 2


@dataclass(frozen=True)
class Done:
    role: Role
    user_id: str
    step = 2


RegistrationState = Union[RoleSelect, RoleDetails, Credentials, Done]


def select_role(state: RegistrationState, role: Role) -> RegistrationState:
    if not isinstance(state, RoleSelect):
        raise ValidationError(
            "Erro",
            "O tipo de cadastro só pode ser escolhido no primeiro passo.",
        )
    return RoleDetails(role=Role(role))


def validate_role_identifier(role: Role, draft: RegistrationDraft) -> None:
    if role == Role.HOSPITAL and not is_valid_cnpj(draft.cnpj):
        raise ValidationError(
            "CNPJ inválido",
            "Por favor, insira um CNPJ válido no formato 00.000.000/0000-00.",
        )
    if role == Role.DOCTOR and not is_valid_crm(draft.crm):
        raise ValidationError(
            "CRM inválido",
            "Por favor, insira um CRM válido (ex.: CRM 12345).",
        )


def advance(state: RegistrationState, draft: RegistrationDraft) -> RegistrationState:
    """
    RoleDetails -> Credentials, se o identificador do tipo (CNPJ/CRM) for válido.
    """
    if not isinstance(state, RoleDetails):
        raise ValidationError("Erro", "Não há próximo passo disponível.")
    validate_role_identifier(state.role, draft)
    return Credentials(role=state.role)


def retreat(state: RegistrationState) -> RegistrationState:
    if isinstance(state, Credentials) and not state.submitting:
        return RoleDetails(role=state.role)
    if isinstance(state, RoleDetails):
        return RoleSelect()
    return state


def begin_submit(state: RegistrationState, draft: RegistrationDraft) -> Credentials:
    """
    Verifica as pré-condições do envio e entra no sub-estado Submitting.
    """
    if not isinstance(state, Credentials):
        raise ValidationError("Erro", "Preencha as credenciais antes de finalizar.")
    if draft.password != draft.confirm_password:
        raise ValidationError(
            "Senhas não coincidem",
            "Verifique se as senhas digitadas são iguais.",
        )
    if draft.role is None:
        raise ValidationError("Erro", "Tipo de usuário não selecionado.")
    return replace(state, submitting=True)


def submit_succeeded(state: Credentials, user_id: str) -> Done:
    return Done(role=state.role, user_id=user_id)


def submit_failed(state: Credentials) -> Credentials:
    return replace(state, submitting=False)
