"""
Fixtures compartilhadas para testes.

Os services rodam inteiramente em memória (MemoryStore + InMemoryJobQueue),
com relógio controlado e espera entre tentativas registrada em vez de
dormir de verdade.
"""

from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest
from httpx import AsyncClient, ASGITransport

from circulation.core.config import Settings
from circulation.core.deps import get_services
from circulation.main import app
from circulation.models.enums import CopyStatus
from circulation.repositories.memory import MemoryStore
from circulation.schemas.notification import OutboundMessage
from circulation.services.container import CirculationServices, build_memory_services
from circulation.services.transport import LoggingTransport


# ==========================================
# Event loop configuration
# ==========================================

@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


# ==========================================
# Clock / settings
# ==========================================

class FakeClock:
    """Relógio manual: só anda quando o teste chama advance()."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class SleepRecorder:
    """Substitui asyncio.sleep guardando os intervalos pedidos."""

    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc))


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def settings() -> Settings:
    """Configuração de teste (rate limit desligado, política padrão)."""
    return Settings(
        RATE_LIMIT_ENABLED=False,
        NOTIFICATION_MAX_ATTEMPTS=3,
        NOTIFICATION_RETRY_DELAY_SECONDS=30.0,
        NOTIFICATION_RETRY_BACKOFF="fixed",
        NOTIFICATION_WORKER_CONCURRENCY=2,
        NOTIFICATION_WEBHOOK_URL="",
    )


# ==========================================
# Services fixtures
# ==========================================

class RecordingTransport(LoggingTransport):
    """LoggingTransport que guarda as mensagens entregues."""

    def __init__(self):
        self.sent: list[OutboundMessage] = []

    async def send(self, message: OutboundMessage):
        self.sent.append(message)
        return await super().send(message)


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def services(settings, clock, sleeps, transport) -> CirculationServices:
    """Services em memória, novos a cada teste."""
    return build_memory_services(
        store=MemoryStore(),
        transport=transport,
        settings=settings,
        clock=clock,
        sleep=sleeps,
    )


@pytest.fixture
def store(services) -> MemoryStore:
    return services.store


@pytest.fixture
def borrower(store):
    """Leitor com limite padrão (5)."""
    return store.seed_borrower("Ana Souza", "ana@example.com")


@pytest.fixture
def other_borrower(store):
    return store.seed_borrower("Bruno Lima", "bruno@example.com")


@pytest.fixture
def title(store):
    return store.seed_title("Dom Casmurro", "Machado de Assis")


@pytest.fixture
def book_copy(store, title):
    """Cópia AVAILABLE do título."""
    return store.seed_copy(title.id, CopyStatus.AVAILABLE, "Estante 1")


# ==========================================
# HTTP Client fixtures
# ==========================================

@pytest.fixture
async def client(services) -> AsyncGenerator[AsyncClient, None]:
    """
    Cliente HTTP assíncrono para testes.

    Substitui a dependency get_services pelos services em memória.
    O lifespan não roda com ASGITransport, então nada conecta ao banco.
    """
    app.dependency_overrides[get_services] = lambda: services

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    # Limpar override após o teste
    app.dependency_overrides.clear()
