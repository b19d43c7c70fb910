import asyncio
import hashlib
import hmac
import logging
import os
import secrets
from typing import Dict, List, Optional
from uuid import uuid4
from sqlalchemy.orm import sessionmaker
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from ..core.errors import AccountErrorCode, AccountServiceError
from ..core.interfaces import SessionListener, Unsubscribe
from ..core.models import Role, SessionHandle, UserRecord
from ..storage.repository import UserRepository

logger = logging.getLogger(__name__)

PBKDF2_ITERATIONS = 200_000


def hash_password(password: str, salt: Optional[bytes] = None) -> str:
    salt = salt or os.urandom(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, PBKDF2_ITERATIONS)
    return f"pbkdf2_sha256${PBKDF2_ITERATIONS}${salt.hex()}${digest.hex()}"


def verify_password(password: str, encoded: str) -> bool:
    try:
        _, iterations, salt_hex, digest_hex = encoded.split("$")
    except ValueError:
        return False
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), bytes.fromhex(salt_hex), int(iterations)
    )
    return hmac.compare_digest(digest.hex(), digest_hex)


def is_valid_email(email: str) -> bool:
    """
    Validação simples de e-mail.
    """
    if email.count("@") != 1:
        return False
    local, domain = email.split("@")
    return bool(local) and "." in domain and not domain.startswith(".") and not domain.endswith(".")


class LocalAccountService:
    """
    AccountService local: contas no banco via SQLAlchemy e sessões em memória.

    Substitui o backend gerenciado em desenvolvimento e nos testes de
    integração. Mudanças de sessão (login/logout) são avisadas a todos os
    assinantes com o token afetado.
    """

    def __init__(self, db_session_factory: sessionmaker, min_password_length: int = 6) -> None:
        self._db_session_factory = db_session_factory
        self._min_password_length = min_password_length
        self._sessions: Dict[str, SessionHandle] = {}
        self._listeners: List[SessionListener] = []

    def _create_user_sync(
        self,
        user_id: str,
        name: str,
        email: str,
        password_hash: str,
        role: Role,
        extra_fields: Dict[str, str],
    ) -> None:
        db = self._db_session_factory()
        try:
            UserRepository(db).create_user(
                user_id=user_id,
                name=name,
                email=email,
                password_hash=password_hash,
                role=role.value,
                crm=extra_fields.get("crm"),
                cnpj=extra_fields.get("cnpj"),
            )
        finally:
            db.close()

    async def register(
        self,
        email: str,
        password: str,
        name: str,
        role: Role,
        extra_fields: Dict[str, str],
    ) -> str:
        email = (email or "").strip()
        if not is_valid_email(email):
            raise AccountServiceError(AccountErrorCode.INVALID_EMAIL)
        if len(password or "") < self._min_password_length:
            raise AccountServiceError(AccountErrorCode.WEAK_PASSWORD)

        user_id = uuid4().hex
        try:
            await asyncio.to_thread(
                self._create_user_sync,
                user_id,
                name,
                email,
                hash_password(password),
                Role(role),
                extra_fields,
            )
        except IntegrityError as e:
            raise AccountServiceError(AccountErrorCode.EMAIL_IN_USE) from e
        except SQLAlchemyError as e:
            raise AccountServiceError(AccountErrorCode.OTHER, str(e)) from e

        logger.info(f"Conta criada: user_id={user_id}, role={Role(role).value}")
        return user_id

    def _find_by_email_sync(self, email: str):
        db = self._db_session_factory()
        try:
            return UserRepository(db).find_by_email(email)
        finally:
            db.close()

    async def sign_in(self, email: str, password: str) -> SessionHandle:
        user = await asyncio.to_thread(self._find_by_email_sync, (email or "").strip())
        if user is None or not verify_password(password or "", user.password_hash):
            logger.warning(f"Login recusado: email={email}")
            raise AccountServiceError(AccountErrorCode.INVALID_CREDENTIALS)

        session = SessionHandle(user_id=user.id, token=secrets.token_urlsafe(32), email=user.email)
        self._sessions[session.token] = session
        logger.info(f"Sessão aberta: user_id={user.id}")
        await self._publish(session.token, session)
        return session

    async def sign_out(self, token: str) -> None:
        session = self._sessions.pop(token, None)
        if session is None:
            return
        logger.info(f"Sessão encerrada: user_id={session.user_id}")
        await self._publish(token, None)

    def current_session(self, token: str) -> Optional[SessionHandle]:
        return self._sessions.get(token)

    def subscribe_session_changes(self, callback: SessionListener) -> Unsubscribe:
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    async def _publish(self, token: str, session: Optional[SessionHandle]) -> None:
        for listener in list(self._listeners):
            try:
                await listener(token, session)
            except Exception as e:
                logger.error(
                    f"Erro em assinante de sessão: error={type(e).__name__}: {e}",
                    exc_info=True,
                )

    def _find_by_id_sync(self, user_id: str):
        db = self._db_session_factory()
        try:
            return UserRepository(db).find_by_id(user_id)
        finally:
            db.close()

    async def fetch_user_record(self, user_id: str) -> Optional[UserRecord]:
        user = await asyncio.to_thread(self._find_by_id_sync, user_id)
        if user is None:
            return None
        return UserRecord(
            user_id=user.id,
            name=user.name,
            email=user.email,
            role=Role(user.role),
            crm=user.crm,
            cnpj=user.cnpj,
        )
