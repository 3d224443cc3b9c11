"""
Montagem dos services do núcleo de circulação.

Cada service recebe suas dependências pelo construtor. Este módulo junta
as peças para os dois cenários:
    - build_sql_services: PostgreSQL + Redis (API e worker)
    - build_memory_services: tudo em memória (testes e desenvolvimento)
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable

from redis.asyncio import Redis

from circulation.core.clock import utcnow
from circulation.core.config import Settings, get_settings
from circulation.db.session import async_session_factory
from circulation.repositories.interfaces import NotificationHistoryRepository, UnitOfWorkFactory
from circulation.repositories.memory import (
    MemoryNotificationHistoryRepository,
    MemoryStore,
    memory_unit_of_work_factory,
)
from circulation.repositories.notification import SqlNotificationHistoryRepository
from circulation.repositories.unit_of_work import sql_unit_of_work_factory
from circulation.services.inventory import InventoryLedger
from circulation.services.job_queue import InMemoryJobQueue, JobQueue, RedisJobQueue
from circulation.services.loan import LoanManager
from circulation.services.notification import NotificationContextResolver, NotificationDispatcher
from circulation.services.reservation import ReservationQueue
from circulation.services.transport import LoggingTransport, Transport, WebhookTransport


@dataclass
class CirculationServices:
    """Services prontos para uso, compartilhados pela aplicação."""
    settings: Settings
    uow_factory: UnitOfWorkFactory
    queue: JobQueue
    transport: Transport
    history: NotificationHistoryRepository
    ledger: InventoryLedger
    dispatcher: NotificationDispatcher
    reservations: ReservationQueue
    loans: LoanManager
    store: MemoryStore | None = None

    async def aclose(self) -> None:
        """Para os workers e fecha o transporte."""
        await self.dispatcher.stop()
        close = getattr(self.transport, "aclose", None)
        if close is not None:
            await close()


def build_services(
    uow_factory: UnitOfWorkFactory,
    queue: JobQueue,
    transport: Transport,
    history: NotificationHistoryRepository,
    settings: Settings | None = None,
    clock: Callable = utcnow,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> CirculationServices:
    """Liga ledger, dispatcher, fila de reservas e empréstimos."""
    settings = settings or get_settings()

    ledger = InventoryLedger(uow_factory)
    dispatcher = NotificationDispatcher(
        queue=queue,
        transport=transport,
        history=history,
        resolver=NotificationContextResolver(uow_factory),
        settings=settings,
        clock=clock,
        sleep=sleep,
    )
    reservations = ReservationQueue(uow_factory, ledger, dispatcher, settings, clock)
    loans = LoanManager(uow_factory, ledger, reservations, dispatcher, settings, clock)

    return CirculationServices(
        settings=settings,
        uow_factory=uow_factory,
        queue=queue,
        transport=transport,
        history=history,
        ledger=ledger,
        dispatcher=dispatcher,
        reservations=reservations,
        loans=loans,
    )


def build_transport(settings: Settings) -> Transport:
    """Webhook se NOTIFICATION_WEBHOOK_URL estiver definido; senão, apenas log."""
    if settings.NOTIFICATION_WEBHOOK_URL:
        return WebhookTransport(
            settings.NOTIFICATION_WEBHOOK_URL,
            timeout=settings.NOTIFICATION_WEBHOOK_TIMEOUT_SECONDS,
        )
    return LoggingTransport()


def build_sql_services(redis: Redis, settings: Settings | None = None) -> CirculationServices:
    """Services sobre PostgreSQL (SQLAlchemy) e fila no Redis."""
    settings = settings or get_settings()
    return build_services(
        uow_factory=sql_unit_of_work_factory(async_session_factory),
        queue=RedisJobQueue(redis, settings.NOTIFICATION_QUEUE_NAME),
        transport=build_transport(settings),
        history=SqlNotificationHistoryRepository(async_session_factory),
        settings=settings,
    )


def build_memory_services(
    store: MemoryStore | None = None,
    transport: Transport | None = None,
    settings: Settings | None = None,
    clock: Callable = utcnow,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> CirculationServices:
    """Services inteiramente em memória."""
    store = store or MemoryStore()
    services = build_services(
        uow_factory=memory_unit_of_work_factory(store),
        queue=InMemoryJobQueue(),
        transport=transport or LoggingTransport(),
        history=MemoryNotificationHistoryRepository(),
        settings=settings,
        clock=clock,
        sleep=sleep,
    )
    services.store = store
    return services
