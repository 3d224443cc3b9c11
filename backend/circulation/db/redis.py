"""
Cliente Redis compartilhado pela fila de notificações e pelo rate limiting.

O cliente é criado no startup (API ou worker) e fica em redis_client; o
rate limiter lê o valor corrente do módulo a cada requisição.
"""

import logging
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from circulation.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

# Cliente Redis (será inicializado no startup)
redis_client: Optional[redis.Redis] = None


async def init_redis(settings: Optional[Settings] = None) -> redis.Redis:
    """
    Cria o cliente Redis a partir de REDIS_URL.

    Sem socket_timeout: o BRPOP da fila bloqueia por mais tempo que
    qualquer timeout de leitura razoável.
    """
    global redis_client
    settings = settings or get_settings()
    redis_client = redis.from_url(
        settings.REDIS_URL,
        encoding="utf-8",
        decode_responses=True,
        socket_connect_timeout=settings.REDIS_CONNECT_TIMEOUT_SECONDS,
        health_check_interval=30,
    )
    return redis_client


async def close_redis() -> None:
    """Fecha a conexão com o Redis."""
    global redis_client
    if redis_client is not None:
        await redis_client.aclose()
        redis_client = None


async def check_redis_connection() -> bool:
    """True se o Redis respondeu ao PING."""
    if redis_client is None:
        return False
    try:
        await redis_client.ping()
    except (RedisError, OSError) as e:
        logger.warning(f"Redis não respondeu ao PING: {e}")
        return False
    return True
