"""
Taxonomia de erros dos wizards de cadastro e perfil.

Toda falha de ação carrega título e descrição prontos para o Notifier.
"""
from enum import Enum
from typing import List, Optional

from .models import Notification, Severity


class WizardError(Exception):
    """
    Base dos erros reportados ao usuário.
    """

    def __init__(self, title: str, description: str) -> None:
        super().__init__(f"{title}: {description}")
        self.title = title
        self.description = description

    def to_notification(self) -> Notification:
        return Notification(
            title=self.title,
            description=self.description,
            severity=Severity.DESTRUCTIVE,
        )


class ValidationError(WizardError):
    """Campo inválido; bloqueia a transição, o usuário corrige e tenta de novo."""


class PreconditionError(WizardError):
    """Pré-condição ausente (ex.: sem sessão ativa). Fatal apenas para a ação."""


class ExternalServiceError(WizardError):
    """Falha no backend externo (rede, banco, storage). Nunca retentada automaticamente."""

    def __init__(self, title: str, description: str, code: Optional[str] = None) -> None:
        super().__init__(title, description)
        self.code = code


class PartialFailure(ExternalServiceError):
    """
    Parte dos documentos foi enviada mas o registro agregado não foi gravado.
    """

    def __init__(self, title: str, description: str, uploaded_keys: List[str]) -> None:
        super().__init__(title, description, code="partial-upload")
        self.uploaded_keys = uploaded_keys


class AccountErrorCode(str, Enum):
    EMAIL_IN_USE = "auth/email-already-in-use"
    INVALID_EMAIL = "auth/invalid-email"
    WEAK_PASSWORD = "auth/weak-password"
    INVALID_CREDENTIALS = "auth/invalid-credential"
    OTHER = "auth/other"


class AccountServiceError(Exception):
    """
    Erro levantado pelo AccountService, identificado por código.
    """

    def __init__(self, code: AccountErrorCode, message: str = "") -> None:
        super().__init__(message or code.value)
        self.code = code


class StorageError(Exception):
    """
    Erro de I/O do DocumentStore ou do RecordStore.
    """
