"""
Worker de notificações e varreduras periódicas.

Uso:
    python -m circulation.workers.notifications

Sobe o pool de workers de entrega (NOTIFICATION_WORKER_CONCURRENCY) e duas
varreduras periódicas:
    - Expiração de reservas NOTIFIED vencidas (RESERVATION_EXPIRY_INTERVAL_SECONDS)
    - Lembretes de empréstimos atrasados (OVERDUE_REMINDER_INTERVAL_SECONDS)

Encerra com SIGINT/SIGTERM, dando aos jobs em andamento um prazo para terminar.
A API não precisa subir os workers quando este processo está rodando
(NOTIFICATION_WORKERS_ENABLED=false).
"""

import asyncio
import signal
from typing import Awaitable, Callable

from circulation.core.config import get_settings
from circulation.core.errors import DomainError
from circulation.core.logging import get_logger, setup_logging
from circulation.core.result import Result
from circulation.db.redis import close_redis, init_redis
from circulation.db.session import engine
from circulation.services.container import CirculationServices, build_sql_services

logger = get_logger(__name__)

Sweep = Callable[[], Awaitable[Result[object, DomainError]]]


async def run_periodic(
    name: str,
    sweep: Sweep,
    interval: float,
    stopping: asyncio.Event,
) -> int:
    """
    Executa sweep a cada interval segundos até stopping ser sinalizado.

    Erros de domínio são logados e a próxima rodada acontece normalmente.

    Returns:
        Número de rodadas executadas
    """
    rounds = 0
    while not stopping.is_set():
        result = await sweep()
        rounds += 1
        if result.is_err():
            logger.error(f"Varredura {name} falhou: {result.error.to_dict()}")
        else:
            logger.info(f"Varredura {name}: {result.value}")

        try:
            await asyncio.wait_for(stopping.wait(), timeout=interval)
        except asyncio.TimeoutError:
            pass
    return rounds


async def run_worker(services: CirculationServices, stopping: asyncio.Event) -> None:
    """Roda workers de entrega e varreduras até stopping ser sinalizado."""
    settings = services.settings
    await services.dispatcher.start()

    sweeps = [
        asyncio.create_task(run_periodic(
            "expire-reservations",
            services.reservations.expire_stale_reservations,
            settings.RESERVATION_EXPIRY_INTERVAL_SECONDS,
            stopping,
        )),
        asyncio.create_task(run_periodic(
            "overdue-reminders",
            services.loans.remind_overdue_loans,
            settings.OVERDUE_REMINDER_INTERVAL_SECONDS,
            stopping,
        )),
    ]

    try:
        await stopping.wait()
    finally:
        await asyncio.gather(*sweeps, return_exceptions=True)
        await services.aclose()


async def main() -> None:
    settings = get_settings()
    setup_logging(component="worker")
    logger.info(f"Iniciando worker de notificações ({settings.ENVIRONMENT})")

    redis = await init_redis(settings)
    services = build_sql_services(redis, settings)

    stopping = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stopping.set)

    try:
        await run_worker(services, stopping)
    finally:
        await close_redis()
        await engine.dispose()
        logger.info("Worker de notificações encerrado")


if __name__ == "__main__":
    asyncio.run(main())
