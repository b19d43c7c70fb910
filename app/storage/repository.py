import logging
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from .models import User, ProfileRecord

logger = logging.getLogger(__name__)


class UserRepository:
    """
    Repositório para operações de persistência de contas.
    """

    def __init__(self, db: Session) -> None:
        self._db = db

    def create_user(
        self,
        user_id: str,
        name: str,
        email: str,
        password_hash: str,
        role: str,
        crm: Optional[str] = None,
        cnpj: Optional[str] = None,
    ) -> User:
        """
        Cria uma nova conta no banco de dados.
        Levanta IntegrityError se o e-mail já estiver cadastrado.
        """
        logger.debug(f"Criando usuário: email={email}, role={role}")

        try:
            user = User(
                id=user_id,
                name=name,
                email=email,
                password_hash=password_hash,
                role=role,
                crm=crm,
                cnpj=cnpj,
            )
            self._db.add(user)
            self._db.commit()
            self._db.refresh(user)
            logger.debug(f"Usuário criado com sucesso: id={user.id}, email={user.email}")
            return user
        except IntegrityError as e:
            logger.warning(
                f"Erro de integridade ao criar usuário: email={email}, "
                f"error={type(e).__name__}"
            )
            self._db.rollback()
            raise
        except SQLAlchemyError as e:
            logger.error(
                f"Erro de banco de dados ao criar usuário: email={email}, "
                f"error={type(e).__name__}: {e}",
                exc_info=True,
            )
            self._db.rollback()
            raise

    def find_by_email(self, email: str) -> Optional[User]:
        return self._db.query(User).filter(User.email == email).first()

    def find_by_id(self, user_id: str) -> Optional[User]:
        return self._db.get(User, user_id)


class RecordRepository:
    """
    Repositório dos registros de perfil.
    """

    def __init__(self, db: Session) -> None:
        self._db = db

    def create_record(self, collection: str, uid: str, payload: Dict[str, Any]) -> ProfileRecord:
        try:
            record = ProfileRecord(collection=collection, uid=uid, payload=payload)
            self._db.add(record)
            self._db.commit()
            self._db.refresh(record)

            # ASSERT: garantir que o registro foi persistido com ID
            assert record.id is not None, (
                "ProfileRecord persisted without id! "
                "This indicates a persistence error."
            )

            logger.debug(
                f"Registro criado: id={record.id}, collection={collection}, uid={uid}"
            )
            return record
        except SQLAlchemyError as e:
            logger.error(
                f"Erro de banco de dados ao criar registro: collection={collection}, "
                f"uid={uid}, error={type(e).__name__}: {e}",
                exc_info=True,
            )
            self._db.rollback()
            raise

    def list_by_uid(self, collection: str, uid: str) -> List[ProfileRecord]:
        return (
            self._db.query(ProfileRecord)
            .filter(ProfileRecord.collection == collection, ProfileRecord.uid == uid)
            .order_by(ProfileRecord.id)
            .all()
        )
