"""
Repository para operações de Reservation no banco de dados.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from circulation.core.ids import BorrowerId, ReservationId, TitleId
from circulation.models.enums import ReservationStatus
from circulation.models.reservation import Reservation
from circulation.repositories.base import BaseRepository, as_uuid_key
from circulation.schemas.reservation import ReservationRead


class ReservationRepository(BaseRepository[Reservation, ReservationRead]):
    """Repository de reservas."""

    def __init__(self, db: AsyncSession):
        super().__init__(Reservation, ReservationRead, db)

    async def get_active_for(
        self,
        borrower_id: BorrowerId,
        title_id: TitleId,
    ) -> ReservationRead | None:
        """
        Busca reserva ativa (PENDING ou NOTIFIED) de um leitor para um título.

        Usado para verificar duplicatas antes de criar nova reserva.
        """
        borrower_key = as_uuid_key(borrower_id)
        title_key = as_uuid_key(title_id)
        if borrower_key is None or title_key is None:
            return None
        result = await self.db.execute(
            select(Reservation)
            .where(
                Reservation.borrower_id == borrower_key,
                Reservation.book_title_id == title_key,
                Reservation.status.in_(ReservationStatus.active()),
            )
            .execution_options(populate_existing=True)
        )
        return self._to_entity(result.scalars().first())

    async def count_active(self, title_id: TitleId) -> int:
        """Conta reservas que ocupam posição na fila do título."""
        key = as_uuid_key(title_id)
        if key is None:
            return 0
        result = await self.db.execute(
            select(func.count(Reservation.id))
            .where(
                Reservation.book_title_id == key,
                Reservation.status.in_(ReservationStatus.active()),
            )
        )
        return result.scalar_one()

    async def list_active(self, title_id: TitleId) -> list[ReservationRead]:
        """
        Lista a fila do título (PENDING e NOTIFIED).

        Ordem: queue_position, depois reserved_at (FIFO).
        """
        key = as_uuid_key(title_id)
        if key is None:
            return []
        result = await self.db.execute(
            select(Reservation)
            .where(
                Reservation.book_title_id == key,
                Reservation.status.in_(ReservationStatus.active()),
            )
            .order_by(Reservation.queue_position, Reservation.reserved_at)
            .execution_options(populate_existing=True)
        )
        return [self._to_entity(reservation) for reservation in result.scalars().all()]

    async def first_pending(self, title_id: TitleId) -> ReservationRead | None:
        """Reserva PENDING de menor posição (quem espera há mais tempo)."""
        key = as_uuid_key(title_id)
        if key is None:
            return None
        result = await self.db.execute(
            select(Reservation)
            .where(
                Reservation.book_title_id == key,
                Reservation.status == ReservationStatus.PENDING,
            )
            .order_by(Reservation.queue_position, Reservation.reserved_at)
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return self._to_entity(result.scalar_one_or_none())

    async def list_expired(self, now: datetime) -> list[ReservationRead]:
        """Reservas NOTIFIED com expires_at no passado."""
        result = await self.db.execute(
            select(Reservation)
            .where(
                Reservation.status == ReservationStatus.NOTIFIED,
                Reservation.expires_at < now,
            )
            .order_by(Reservation.expires_at)
            .execution_options(populate_existing=True)
        )
        return [self._to_entity(reservation) for reservation in result.scalars().all()]

    async def update(self, reservation_id: ReservationId, **fields: Any) -> ReservationRead | None:
        """Atualiza campos da reserva e retorna o estado persistido."""
        key = as_uuid_key(reservation_id)
        if key is None:
            return None
        result = await self.db.execute(
            update(Reservation)
            .where(Reservation.id == key)
            .values(**fields)
            .returning(Reservation)
            .execution_options(populate_existing=True, synchronize_session=False)
        )
        return self._to_entity(result.scalar_one_or_none())
