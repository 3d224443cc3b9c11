"""
Testes de concorrência sobre PostgreSQL.

Usam TEST_DATABASE_URL (ou DATABASE_URL) em um schema próprio, recriado a
cada teste. Sem banco acessível os testes são ignorados.
"""

import asyncio
import os

import pytest
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from circulation.core.config import get_settings
from circulation.core.errors import ErrorKind
from circulation.core.ids import BorrowerId, CopyId, TitleId
from circulation.db.session import Base
from circulation.models.enums import CopyStatus, ReservationStatus
from circulation.repositories.notification import SqlNotificationHistoryRepository
from circulation.repositories.unit_of_work import sql_unit_of_work_factory
from circulation.schemas.book import BorrowerRead, CopyRead, TitleRead
from circulation.services.container import build_services
from circulation.services.job_queue import InMemoryJobQueue

TEST_SCHEMA = "circulation_test"

settings = get_settings()


# ==========================================
# Database fixtures
# ==========================================

@pytest.fixture
async def sql_engine():
    """
    Engine com NullPool apontando para o schema de teste.

    Cada unidade de trabalho abre sua própria conexão, então as transações
    concorrentes dos testes disputam os locks de verdade.
    """
    engine = create_async_engine(
        os.environ.get("TEST_DATABASE_URL", settings.DATABASE_URL),
        poolclass=NullPool,
        connect_args={"server_settings": {"search_path": TEST_SCHEMA}, "timeout": 3},
    )
    try:
        async with engine.begin() as conn:
            await conn.execute(text(f"DROP SCHEMA IF EXISTS {TEST_SCHEMA} CASCADE"))
            await conn.execute(text(f"CREATE SCHEMA {TEST_SCHEMA}"))
            await conn.run_sync(Base.metadata.create_all)
    except (SQLAlchemyError, OSError) as exc:
        await engine.dispose()
        pytest.skip(f"PostgreSQL indisponível: {exc}")

    yield engine

    async with engine.begin() as conn:
        await conn.execute(text(f"DROP SCHEMA IF EXISTS {TEST_SCHEMA} CASCADE"))
    await engine.dispose()


@pytest.fixture
def sql_services(sql_engine, settings, clock, transport):
    session_factory = async_sessionmaker(sql_engine, class_=AsyncSession, expire_on_commit=False)
    return build_services(
        uow_factory=sql_unit_of_work_factory(session_factory),
        queue=InMemoryJobQueue(),
        transport=transport,
        history=SqlNotificationHistoryRepository(session_factory),
        settings=settings,
        clock=clock,
    )


async def seed(services, borrowers=2, copies=1, loan_limit=5, copy_status=CopyStatus.AVAILABLE):
    """Grava leitores, um título e suas cópias; retorna (leitores, título, cópias)."""
    async with services.uow_factory() as uow:
        title = await uow.titles.add(TitleRead(id=TitleId.generate(), title="Dom Casmurro"))
        people = [
            await uow.borrowers.add(BorrowerRead(
                id=BorrowerId.generate(),
                name=f"Leitor {index}",
                email=f"leitor{index}@example.com",
                loan_limit=loan_limit,
            ))
            for index in range(borrowers)
        ]
        items = [
            await uow.copies.add(CopyRead(id=CopyId.generate(), book_title_id=title.id, status=copy_status))
            for _ in range(copies)
        ]
        await uow.commit()
    return people, title, items


# ==========================================
# Concorrência
# ==========================================

class TestSqlConcurrency:
    """Operações simultâneas em transações PostgreSQL independentes."""

    @pytest.mark.anyio
    async def test_double_borrow_same_copy(self, sql_services):
        people, _, (copy,) = await seed(sql_services, borrowers=4)

        results = await asyncio.gather(*[
            sql_services.loans.create_loan(person.id, copy.id) for person in people
        ])

        assert sum(result.is_ok() for result in results) == 1
        assert all(
            result.error.kind == ErrorKind.BOOK_NOT_AVAILABLE
            for result in results if result.is_err()
        )
        async with sql_services.uow_factory() as uow:
            assert (await uow.copies.get(copy.id)).status == CopyStatus.BORROWED
            assert await uow.loans.get_open_by_copy(copy.id) is not None

    @pytest.mark.anyio
    async def test_loan_limit_under_concurrency(self, sql_services):
        (person,), _, copies = await seed(sql_services, borrowers=1, copies=5, loan_limit=2)

        results = await asyncio.gather(*[
            sql_services.loans.create_loan(person.id, copy.id) for copy in copies
        ])

        assert sum(result.is_ok() for result in results) == 2
        assert all(
            result.error.kind == ErrorKind.LOAN_LIMIT_EXCEEDED
            for result in results if result.is_err()
        )
        async with sql_services.uow_factory() as uow:
            assert await uow.loans.count_open_by_borrower(person.id) == 2

    @pytest.mark.anyio
    async def test_concurrent_returns_close_once(self, sql_services):
        (person, _), _, (copy,) = await seed(sql_services)
        loan = (await sql_services.loans.create_loan(person.id, copy.id)).value

        results = await asyncio.gather(
            sql_services.loans.return_book(loan.id),
            sql_services.loans.return_book(loan.id),
        )

        assert sum(result.is_ok() for result in results) == 1
        assert [result.error.kind for result in results if result.is_err()] == [ErrorKind.ALREADY_RETURNED]
        async with sql_services.uow_factory() as uow:
            assert (await uow.copies.get(copy.id)).status == CopyStatus.AVAILABLE

    @pytest.mark.anyio
    async def test_concurrent_reservations_get_contiguous_positions(self, sql_services):
        people, title, _ = await seed(sql_services, borrowers=6, copy_status=CopyStatus.BORROWED)

        results = await asyncio.gather(*[
            sql_services.reservations.create_reservation(person.id, title.id) for person in people
        ])

        assert all(result.is_ok() for result in results)
        async with sql_services.uow_factory() as uow:
            queue = await uow.reservations.list_active(title.id)
        assert [reservation.queue_position for reservation in queue] == [1, 2, 3, 4, 5, 6]

    @pytest.mark.anyio
    async def test_return_hands_copy_to_head_of_queue(self, sql_services):
        (holder, waiting), title, (copy,) = await seed(sql_services)
        loan = (await sql_services.loans.create_loan(holder.id, copy.id)).value
        reservation = (await sql_services.reservations.create_reservation(waiting.id, title.id)).value

        await sql_services.loans.return_book(loan.id)
        refused, accepted = await asyncio.gather(
            sql_services.loans.create_loan(holder.id, copy.id),
            sql_services.loans.create_loan(waiting.id, copy.id),
        )

        assert refused.error.kind == ErrorKind.BOOK_NOT_AVAILABLE
        assert accepted.is_ok()
        async with sql_services.uow_factory() as uow:
            assert (await uow.reservations.get(reservation.id)).status == ReservationStatus.FULFILLED
            stored = await uow.copies.get(copy.id)
        assert stored.status == CopyStatus.BORROWED
        assert stored.hold_reservation_id is None
