"""
Unidade de trabalho sobre uma AsyncSession do SQLAlchemy.

Todas as leituras e escritas de uma operação de circulação (empréstimo,
devolução, reserva, varredura) acontecem na mesma transação. As travas
de linha (SELECT ... FOR UPDATE) valem até o commit ou rollback.
"""

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from circulation.core.errors import PersistenceUnavailable
from circulation.db.session import async_session_factory
from circulation.repositories.book import BookCopyRepository, BookTitleRepository
from circulation.repositories.borrower import BorrowerRepository
from circulation.repositories.loan import LoanRepository, OverdueRecordRepository
from circulation.repositories.reservation import ReservationRepository

_DB_ERRORS = (SQLAlchemyError, OSError)


class SqlAlchemyUnitOfWork:
    """
    Transação SQL exposta como async context manager.

    Exceções do driver/SQLAlchemy são convertidas em PersistenceUnavailable
    para que os services não dependam do SQLAlchemy.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] = async_session_factory):
        self.session_factory = session_factory
        self.session: AsyncSession | None = None

    async def __aenter__(self) -> "SqlAlchemyUnitOfWork":
        self.session = self.session_factory()
        self.borrowers = BorrowerRepository(self.session)
        self.titles = BookTitleRepository(self.session)
        self.copies = BookCopyRepository(self.session)
        self.loans = LoanRepository(self.session)
        self.overdue_records = OverdueRecordRepository(self.session)
        self.reservations = ReservationRepository(self.session)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            await self.session.rollback()
        except _DB_ERRORS as rollback_exc:
            if exc is None:
                raise PersistenceUnavailable(str(rollback_exc)) from rollback_exc
        finally:
            await self.session.close()

        if isinstance(exc, _DB_ERRORS):
            raise PersistenceUnavailable(str(exc)) from exc

    async def commit(self) -> None:
        try:
            await self.session.commit()
        except _DB_ERRORS as exc:
            raise PersistenceUnavailable(str(exc)) from exc

    async def rollback(self) -> None:
        try:
            await self.session.rollback()
        except _DB_ERRORS as exc:
            raise PersistenceUnavailable(str(exc)) from exc


def sql_unit_of_work_factory(
    session_factory: async_sessionmaker[AsyncSession] = async_session_factory,
):
    """Retorna uma factory de SqlAlchemyUnitOfWork ligada ao session_factory."""

    def factory() -> SqlAlchemyUnitOfWork:
        return SqlAlchemyUnitOfWork(session_factory)

    return factory
