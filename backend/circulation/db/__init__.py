"""
Módulo de banco de dados - PostgreSQL e Redis.

Exports:
    - Base: Classe base para modelos SQLAlchemy
    - engine / async_session_factory: Usados pelas unidades de trabalho
    - init_redis / close_redis: Ciclo de vida do cliente da fila de notificações
"""

from circulation.db.session import Base, engine, async_session_factory
from circulation.db.redis import init_redis, close_redis

__all__ = [
    "Base",
    "engine",
    "async_session_factory",
    "init_redis",
    "close_redis",
]
