import asyncio
import logging
from typing import Any, Dict
from sqlalchemy.orm import sessionmaker
from sqlalchemy.exc import SQLAlchemyError
from .repository import RecordRepository
from ..core.errors import StorageError

logger = logging.getLogger(__name__)


class SqlRecordStore:
    """
    RecordStore sobre SQLAlchemy.

    As chamadas ao banco são síncronas e rodam em uma thread de apoio
    para não bloquear o event loop.
    """

    def __init__(self, db_session_factory: sessionmaker) -> None:
        self._db_session_factory = db_session_factory

    def _create_record_sync(self, collection: str, payload: Dict[str, Any]) -> int:
        db = self._db_session_factory()
        try:
            record = RecordRepository(db).create_record(
                collection=collection,
                uid=str(payload.get("uid", "")),
                payload=payload,
            )
            return record.id
        finally:
            db.close()

    async def create_record(self, collection: str, payload: Dict[str, Any]) -> None:
        try:
            record_id = await asyncio.to_thread(self._create_record_sync, collection, payload)
        except SQLAlchemyError as e:
            raise StorageError(f"Falha ao gravar registro em {collection}: {e}") from e
        logger.info(f"Registro gravado: collection={collection}, id={record_id}")
