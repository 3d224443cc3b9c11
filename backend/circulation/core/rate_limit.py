"""
Rate limiting usando Redis com janela fixa por cliente.

Limita por IP do cliente (respeitando X-Forwarded-For).
Configurável via variáveis de ambiente:
    - RATE_LIMIT_ENABLED: bool (default: True) - Habilita/desabilita rate limiting
    - RATE_LIMIT_REQUESTS: int (default: 60) - Número de requests permitidos
    - RATE_LIMIT_WINDOW_SECONDS: int (default: 60) - Janela de tempo em segundos

Uso:
    @router.post("/endpoint", dependencies=[Depends(RateLimiter(requests=30, window=60))])
    async def endpoint():
        ...
"""

from typing import Optional

from fastapi import HTTPException, Request, status
from redis.exceptions import RedisError

from circulation.core.config import get_settings
from circulation.core.logging import get_logger
from circulation.db import redis as redis_module

settings = get_settings()
logger = get_logger(__name__)


class RateLimiter:
    """
    Dependency para rate limiting usando Redis.

    Usa INCR + EXPIRE: o primeiro request da janela cria a chave com TTL.

    Args:
        requests: Número máximo de requests permitidos (default: config)
        window: Janela de tempo em segundos (default: config)
        key_prefix: Prefixo para a chave no Redis (default: "rate_limit")
    """

    def __init__(
        self,
        requests: Optional[int] = None,
        window: Optional[int] = None,
        key_prefix: str = "rate_limit",
    ):
        self.requests = requests
        self.window = window
        self.key_prefix = key_prefix

    async def __call__(self, request: Request) -> None:
        """
        Verifica rate limit.

        Raises:
            HTTPException 429: Rate limit excedido
        """
        # Se rate limit desabilitado, retorna sem verificar
        if not settings.RATE_LIMIT_ENABLED:
            return

        # Se Redis não disponível, permite passagem (fail-open)
        client = redis_module.redis_client
        if client is None:
            return

        limit = self.requests or settings.RATE_LIMIT_REQUESTS
        window = self.window or settings.RATE_LIMIT_WINDOW_SECONDS
        key = f"{self.key_prefix}:{self._get_identifier(request)}"

        try:
            current = await client.incr(key)

            # Se é o primeiro request, definir TTL
            if current == 1:
                await client.expire(key, window)

            if current > limit:
                ttl = await client.ttl(key)
                raise HTTPException(
                    status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                    detail=f"Rate limit excedido. Tente novamente em {ttl} segundos.",
                    headers={"Retry-After": str(ttl)},
                )
        except RedisError as exc:
            # Em caso de erro no Redis, permite passagem (fail-open)
            logger.warning(f"Rate limit ignorado, Redis indisponível: {exc}")

    @staticmethod
    def _get_identifier(request: Request) -> str:
        """
        Obtém identificador do cliente.

        Prioridade:
            1. Primeiro IP de X-Forwarded-For
            2. IP da conexão
        """
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return f"ip:{forwarded.split(',')[0].strip()}"

        client_ip = request.client.host if request.client else "unknown"
        return f"ip:{client_ip}"


# Instância pré-configurada para escritas sensíveis
rate_limit_strict = RateLimiter(requests=30, window=60)  # 30 req/min
