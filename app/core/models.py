from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class Role(str, Enum):
    """
    Tipo de cadastro escolhido no primeiro passo.
    """
    DOCTOR = "doctor"
    HOSPITAL = "hospital"


class Severity(str, Enum):
    DEFAULT = "default"
    DESTRUCTIVE = "destructive"


@dataclass
class Notification:
    """
    Feedback para o usuário (toast na camada de apresentação).
    """
    title: str
    description: str
    severity: Severity = Severity.DEFAULT


@dataclass
class UploadedFile:
    """
    Arquivo selecionado pelo usuário para um slot de documento.
    """
    name: str
    size: int
    content_type: str
    content: bytes = field(default=b"", repr=False)

    @classmethod
    def from_bytes(cls, name: str, content_type: str, content: bytes) -> "UploadedFile":
        return cls(name=name, size=len(content), content_type=content_type, content=content)


@dataclass(frozen=True)
class SessionHandle:
    """
    Sessão autenticada. Passada explicitamente para toda ação que precisa dela.
    """
    user_id: str
    token: str
    email: str = ""


@dataclass
class UserRecord:
    """
    Dados básicos do usuário gravados no cadastro.
    """
    user_id: str
    name: str
    email: str
    role: Role
    crm: Optional[str] = None
    cnpj: Optional[str] = None
