"""
Funções para validar dados de entrada do cadastro e dos documentos.

CNPJ e CRM são validados apenas pelo formato (sem dígito verificador).
"""
import re
from typing import Optional

from .errors import ValidationError
from .models import UploadedFile


CNPJ_PATTERN = re.compile(r"\d{2}\.\d{3}\.\d{3}/\d{4}-\d{2}", re.ASCII)
CRM_PATTERN = re.compile(r"CRM ?\d{4,6}", re.ASCII)

MAX_FILE_BYTES = 5 * 1024 * 1024
ALLOWED_CONTENT_TYPES = ("application/pdf", "image/jpeg", "image/png")


def is_valid_cnpj(value: str) -> bool:
    """
    Valida CNPJ no formato 00.000.000/0000-00.
    """
    return CNPJ_PATTERN.fullmatch(value or "") is not None


def is_valid_crm(value: str) -> bool:
    """
    Aceita "CRM" seguido (opcionalmente de um espaço) de 4 a 6 dígitos.

    Exemplos:
        "CRM12345" -> True
        "CRM 12345" -> True
        "CRM123" -> False
    """
    return CRM_PATTERN.fullmatch(value or "") is not None


def check_file(file: UploadedFile, max_bytes: int = MAX_FILE_BYTES) -> Optional[ValidationError]:
    """
    Retorna o erro de validação do arquivo, ou None se ele for aceito.

    Tamanho e formato são verificados de forma independente, cada um
    com sua própria mensagem.
    """
    if file.size > max_bytes:
        limit_mb = max_bytes / (1024 * 1024)
        return ValidationError(
            "Arquivo muito grande",
            f"O arquivo deve ter menos de {limit_mb:g}MB.",
        )
    if file.content_type not in ALLOWED_CONTENT_TYPES:
        return ValidationError(
            "Formato inválido",
            "Por favor, envie um arquivo PDF, JPEG ou PNG.",
        )
    return None


def file_guard(file: UploadedFile, max_bytes: int = MAX_FILE_BYTES) -> bool:
    return check_file(file, max_bytes) is None
