"""
Catálogo de documentos do perfil e serialização do conjunto em andamento.

São 14 slots fixos divididos em três grupos: pessoais e profissionais
(obrigatórios) e de especialista (opcionais).
"""
import base64
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

from .models import UploadedFile

logger = logging.getLogger(__name__)


class DocumentKey(str, Enum):
    RG = "rg"
    CPF = "cpf"
    PHOTO = "photo"
    PROOF_OF_RESIDENCE = "proofOfResidence"
    CRM = "crm"
    CURRICULUM = "curriculum"
    CRIMINAL_RECORD = "criminalRecord"
    ETHICAL_RECORD = "ethicalRecord"
    DEBT_RECORD = "debtRecord"
    GRADUATION_CERTIFICATE = "graduationCertificate"
    RQE = "rqe"
    POST_GRAD_CERTIFICATE = "postGradCertificate"
    SPECIALIST_TITLE = "specialistTitle"
    RECOMMENDATION_LETTER = "recommendationLetter"


DOCUMENT_LABELS = {
    DocumentKey.RG: "RG",
    DocumentKey.CPF: "CPF",
    DocumentKey.PHOTO: "Foto 3x4",
    DocumentKey.PROOF_OF_RESIDENCE: "Comprovante de Residência",
    DocumentKey.CRM: "CRM",
    DocumentKey.CURRICULUM: "Currículo",
    DocumentKey.CRIMINAL_RECORD: "Certidão de Antecedentes Criminais",
    DocumentKey.ETHICAL_RECORD: "Certidão Ético Profissional",
    DocumentKey.DEBT_RECORD: "Certidão Negativa de Débitos",
    DocumentKey.GRADUATION_CERTIFICATE: "Certificado de Graduação",
    DocumentKey.RQE: "RQE",
    DocumentKey.POST_GRAD_CERTIFICATE: "Certificado de Pós-Graduação",
    DocumentKey.SPECIALIST_TITLE: "Título de Especialista",
    DocumentKey.RECOMMENDATION_LETTER: "Carta de Recomendação",
}


@dataclass(frozen=True)
class DocumentGroup:
    name: str
    label: str
    required: bool
    keys: Tuple[DocumentKey, ...]


DOCUMENT_GROUPS: Tuple[DocumentGroup, ...] = (
    DocumentGroup(
        name="personal",
        label="Documentos Pessoais",
        required=True,
        keys=(
            DocumentKey.RG,
            DocumentKey.CPF,
            DocumentKey.PHOTO,
            DocumentKey.PROOF_OF_RESIDENCE,
        ),
    ),
    DocumentGroup(
        name="professional",
        label="Documentos Profissionais",
        required=True,
        keys=(
            DocumentKey.CRM,
            DocumentKey.CURRICULUM,
            DocumentKey.CRIMINAL_RECORD,
            DocumentKey.ETHICAL_RECORD,
            DocumentKey.DEBT_RECORD,
            DocumentKey.GRADUATION_CERTIFICATE,
        ),
    ),
    DocumentGroup(
        name="specialist",
        label="Documentos de Especialista",
        required=False,
        keys=(
            DocumentKey.RQE,
            DocumentKey.POST_GRAD_CERTIFICATE,
            DocumentKey.SPECIALIST_TITLE,
            DocumentKey.RECOMMENDATION_LETTER,
        ),
    ),
)

DocumentSet = Dict[DocumentKey, Optional[UploadedFile]]


def empty_document_set() -> DocumentSet:
    return {key: None for key in DocumentKey}


def missing_documents(documents: DocumentSet, group: DocumentGroup) -> List[DocumentKey]:
    """
    Slots obrigatórios do grupo que ainda não têm arquivo.
    Grupos opcionais nunca têm pendências.
    """
    if not group.required:
        return []
    return [key for key in group.keys if documents.get(key) is None]


def required_documents_missing(documents: DocumentSet) -> List[DocumentKey]:
    missing: List[DocumentKey] = []
    for group in DOCUMENT_GROUPS:
        missing.extend(missing_documents(documents, group))
    return missing


def serialize_documents(documents: DocumentSet) -> str:
    """
    Serializa o conjunto de documentos para JSON (conteúdo em base64).
    """
    data = {}
    for key in DocumentKey:
        file = documents.get(key)
        if file is None:
            data[key.value] = None
            continue
        data[key.value] = {
            "name": file.name,
            "size": file.size,
            "content_type": file.content_type,
            "content": base64.b64encode(file.content).decode("ascii"),
        }
    return json.dumps(data, ensure_ascii=False)


def deserialize_documents(raw: str) -> DocumentSet:
    """
    Reconstrói o conjunto a partir do JSON salvo. Chaves desconhecidas
    são ignoradas; slots ausentes ficam vazios.
    """
    documents = empty_document_set()
    data = json.loads(raw)
    for key_value, file_data in data.items():
        try:
            key = DocumentKey(key_value)
        except ValueError:
            logger.warning(f"Slot de documento desconhecido no cache: key={key_value}")
            continue
        if not file_data:
            continue
        documents[key] = UploadedFile(
            name=file_data["name"],
            size=int(file_data["size"]),
            content_type=file_data["content_type"],
            content=base64.b64decode(file_data["content"]),
        )
    return documents
