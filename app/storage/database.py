import logging
from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

Base = declarative_base()


def create_engine_from_url(database_url: str):
    """
    Cria um engine SQLAlchemy a partir de uma URL de banco de dados.

    Para PostgreSQL, usa pool_pre_ping=True para detectar conexões perdidas.
    SQLite em memória usa um único pool estático, compartilhado entre threads.
    """
    is_postgres = "postgres" in database_url.lower()

    if is_postgres:
        engine = create_engine(
            database_url,
            echo=False,
            pool_pre_ping=True,  # Verifica conexões antes de usar
            pool_size=5,
            max_overflow=10,
        )
        logger.info("Engine PostgreSQL criado com pool_pre_ping=True")
    elif database_url.startswith("sqlite") and ":memory:" in database_url:
        engine = create_engine(
            database_url,
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        logger.info("Engine SQLite em memória criado")
    else:
        # Chamadas ao banco rodam em threads de apoio (asyncio.to_thread)
        engine = create_engine(
            database_url,
            echo=False,
            connect_args={"check_same_thread": False} if database_url.startswith("sqlite") else {},
        )
        logger.info("Engine SQLite criado")

    return engine


def create_session_factory(database_url: str, create_tables: bool = False, env: str = "dev"):
    """
    Cria uma factory de sessões SQLAlchemy.

    Args:
        database_url: URL de conexão do banco
        create_tables: Se True, cria tabelas automaticamente (apenas para dev/test)
                      Em produção, use migrações Alembic!
        env: Ambiente atual ("dev" ou "prod")
    """
    # Registrar os modelos no metadata antes de criar tabelas
    from . import models  # noqa: F401

    engine = create_engine_from_url(database_url)

    if create_tables:
        if env == "prod":
            logger.warning(
                "⚠️  create_tables=True em produção! "
                "Use migrações Alembic ao invés de criar tabelas automaticamente."
            )
        else:
            logger.info("Criando tabelas automaticamente (modo dev/test)")
            Base.metadata.create_all(bind=engine)

    return sessionmaker(bind=engine, expire_on_commit=False)


def check_database(session_factory) -> bool:
    """
    Executa um SELECT 1 para o health check.
    """
    db = session_factory()
    try:
        db.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as e:
        logger.error(f"Banco de dados indisponível: error={type(e).__name__}: {e}")
        return False
    finally:
        db.close()
