"""
Aplicação FastAPI do serviço de circulação.

Uso:
    uvicorn circulation.main:app
    python -m circulation.main

No startup os services de circulação são montados sobre PostgreSQL e
Redis e guardados em app.state.services. Os workers de notificação sobem
junto com a API, a menos que NOTIFICATION_WORKERS_ENABLED=false (quando
o worker roda como processo próprio, ver circulation.workers.notifications).
"""

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from circulation.api.errors import register_exception_handlers
from circulation.api.v1.router import api_router
from circulation.core.config import get_settings
from circulation.core.logging import setup_logging, get_logger
from circulation.db.session import check_database_connection, engine
from circulation.db.redis import init_redis, close_redis, check_redis_connection
from circulation.schemas.health import HealthResponse
from circulation.services.container import build_sql_services

settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(component="api")
    logger.info(f"Iniciando {settings.APP_NAME} em ambiente {settings.ENVIRONMENT}")

    # Dependências indisponíveis não impedem o startup: as operações
    # respondem 503 até que voltem.
    redis = await init_redis(settings)
    if not await check_redis_connection():
        logger.warning("Redis não disponível - notificações ficarão em erro até reconectar")

    database_ok, error = await check_database_connection()
    if not database_ok:
        logger.warning(f"PostgreSQL não disponível: {error}")

    services = build_sql_services(redis, settings)
    app.state.services = services
    if settings.NOTIFICATION_WORKERS_ENABLED:
        await services.dispatcher.start()
        logger.info(f"{settings.NOTIFICATION_WORKER_CONCURRENCY} worker(s) de notificação ativos")

    yield

    logger.info(f"Encerrando {settings.APP_NAME}")
    await services.aclose()
    await close_redis()
    await engine.dispose()


app = FastAPI(
    title=settings.APP_NAME,
    description="Empréstimos, reservas e notificações de uma biblioteca",
    version="0.1.0",
    docs_url=None if settings.is_production else "/docs",
    redoc_url=None if settings.is_production else "/redoc",
    lifespan=lifespan,
)

register_exception_handlers(app)
app.include_router(api_router)


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="Status da aplicação e das dependências",
)
async def health_check() -> HealthResponse:
    """
    Healthcheck para load balancers.

    Sempre 200; status "degraded" quando PostgreSQL ou Redis não respondem.
    """
    database_ok, _ = await check_database_connection()
    redis_ok = await check_redis_connection()
    return HealthResponse(
        status="healthy" if database_ok and redis_ok else "degraded",
        app_name=settings.APP_NAME,
        environment=settings.ENVIRONMENT,
        database=database_ok,
        redis=redis_ok,
    )


if __name__ == "__main__":
    uvicorn.run("circulation.main:app", host=settings.HOST, port=settings.PORT)
