"""
Repository do histórico de entregas de notificação.

Cada gravação usa sua própria sessão: o histórico é escrito pelos
workers do dispatcher, fora de qualquer transação de circulação.
"""

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from circulation.core.errors import PersistenceUnavailable
from circulation.core.ids import BorrowerId
from circulation.models.notification import NotificationHistory
from circulation.schemas.notification import NotificationHistoryRecord


class SqlNotificationHistoryRepository:
    """Histórico de notificações persistido no PostgreSQL."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def add(self, record: NotificationHistoryRecord) -> None:
        """Insere um registro de tentativa (commit imediato)."""
        try:
            async with self.session_factory() as session:
                session.add(NotificationHistory(**record.model_dump()))
                await session.commit()
        except (SQLAlchemyError, OSError) as exc:
            raise PersistenceUnavailable(str(exc)) from exc

    async def list_for_borrower(self, borrower_id: BorrowerId) -> list[NotificationHistoryRecord]:
        return await self._list(NotificationHistory.borrower_id == str(borrower_id))

    async def _list(self, criteria) -> list[NotificationHistoryRecord]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(NotificationHistory)
                    .where(criteria)
                    .order_by(NotificationHistory.sent_at, NotificationHistory.attempt)
                )
                return [
                    NotificationHistoryRecord.model_validate(row)
                    for row in result.scalars().all()
                ]
        except (SQLAlchemyError, OSError) as exc:
            raise PersistenceUnavailable(str(exc)) from exc
