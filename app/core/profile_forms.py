"""
Formulários independentes do perfil: pessoal, profissional e financeiro.

Cada um é salvo como um registro próprio, em qualquer ordem e quantas
vezes o usuário quiser.
"""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"
    PREFER_NOT_TO_SAY = "prefer-not-to-say"


class Specialty(str, Enum):
    CLINICA_MEDICA = "clinica-medica"
    CARDIOLOGIA = "cardiologia"
    PNEUMOLOGIA = "pneumologia"
    NEFROLOGIA = "nefrologia"
    INFECTOLOGIA = "infectologia"
    REUMATOLOGIA = "reumatologia"
    HEMATOLOGIA = "hematologia"
    ONCOLOGIA_CLINICA = "oncologia-clinica"
    TERAPIA_INTENSIVA = "terapia-intensiva"


class ServiceType(str, Enum):
    PRESENCIAL = "presencial"
    TELEMEDICINA = "telemedicina"
    AMBOS = "ambos"


class AccountType(str, Enum):
    CORRENTE = "corrente"
    POUPANCA = "poupanca"


class PersonalInfo(BaseModel):
    name: str = ""
    email: str = ""
    phone: str = ""
    cpf: str = ""
    rg: str = ""
    birthdate: str = ""
    gender: Optional[Gender] = None
    address: str = ""
    complement: str = ""
    neighborhood: str = ""
    city_state: str = ""
    cep: str = ""


class ProfessionalInfo(BaseModel):
    crm: str = ""
    cnpj: str = ""  # para hospitais
    graduation: str = ""
    graduation_year: str = ""
    specialty: Optional[Specialty] = None
    rqe: str = ""
    service_type: Optional[ServiceType] = None
    experience: int = Field(default=0, ge=0)
    bio: str = ""


class FinancialInfo(BaseModel):
    hourly_rate: float = Field(default=0, ge=0)
    bank: str = ""
    agency: str = ""
    account: str = ""
    account_type: Optional[AccountType] = None
    pix: str = ""
