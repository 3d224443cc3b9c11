"""
Engine e sessões do PostgreSQL (SQLAlchemy async).

Não há sessão por request: cada operação de circulação abre a sua via
SqlAlchemyUnitOfWork, que usa async_session_factory e comita (ou desfaz)
uma única transação.
"""

import asyncio

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from circulation.core.config import Settings, get_settings


def build_engine(settings: Settings) -> AsyncEngine:
    """Engine async com pool dimensionado pela configuração."""
    return create_async_engine(
        settings.DATABASE_URL,
        echo=settings.DEBUG,
        pool_pre_ping=True,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
    )


engine = build_engine(get_settings())

# Objetos continuam utilizáveis após o commit (são convertidos em schemas)
async_session_factory = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    """Classe base para todos os modelos SQLAlchemy."""
    pass


async def check_database_connection(timeout: float = 3.0) -> tuple[bool, str | None]:
    """
    Executa SELECT 1 com timeout.

    Returns:
        Tupla (sucesso, mensagem_erro)
    """
    async def ping() -> None:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    try:
        await asyncio.wait_for(ping(), timeout=timeout)
    except asyncio.TimeoutError:
        return False, f"Sem resposta em {timeout}s"
    except (SQLAlchemyError, OSError) as e:
        return False, str(e)
    return True, None
