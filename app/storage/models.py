from sqlalchemy import Column, Integer, String, DateTime, JSON
from datetime import datetime
from .database import Base


class User(Base):
    """
    Conta criada pelo cadastro (médico ou empresa).
    """
    __tablename__ = "users"

    id = Column(String(32), primary_key=True)
    name = Column(String(200), nullable=False)
    email = Column(String(200), nullable=False, unique=True, index=True)
    password_hash = Column(String(200), nullable=False)
    role = Column(String(20), nullable=False)
    crm = Column(String(20), nullable=True)
    cnpj = Column(String(18), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class ProfileRecord(Base):
    """
    Registro independente do perfil (pessoal, profissional, financeiro ou documentos).
    Cada envio gera uma nova linha; nada é sobrescrito.
    """
    __tablename__ = "profile_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    collection = Column(String(50), nullable=False, index=True)
    uid = Column(String(32), nullable=False, index=True)
    payload = Column(JSON, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
