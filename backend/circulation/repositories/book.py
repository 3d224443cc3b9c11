"""
Repository para operações de BookTitle e BookCopy no banco de dados.
"""

from typing import Collection

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from circulation.core.ids import CopyId, ReservationId, TitleId
from circulation.models.book import BookTitle, BookCopy
from circulation.models.enums import CopyStatus
from circulation.repositories.base import BaseRepository, as_uuid_key
from circulation.schemas.book import CopyRead, CopyStatusCounts, TitleRead


class BookTitleRepository(BaseRepository[BookTitle, TitleRead]):
    """
    Repository de títulos.

    get_for_update trava a linha do título; é o que serializa a
    numeração da fila de reservas do título.
    """

    def __init__(self, db: AsyncSession):
        super().__init__(BookTitle, TitleRead, db)


class BookCopyRepository(BaseRepository[BookCopy, CopyRead]):
    """Repository de cópias físicas."""

    def __init__(self, db: AsyncSession):
        super().__init__(BookCopy, CopyRead, db)

    async def compare_and_set_status(
        self,
        copy_id: CopyId,
        sources: Collection[CopyStatus],
        target: CopyStatus,
        hold_reservation_id: ReservationId | None = None,
        expected_hold: ReservationId | None = None,
    ) -> CopyRead | None:
        """
        Troca o status da cópia em um único UPDATE condicional.

        UPDATE book_copies SET status = :target
        WHERE id = :id AND status IN (:sources)
          [AND hold_reservation_id = :expected_hold] RETURNING *

        Returns:
            A cópia atualizada, ou None se a cópia não existe, o status
            atual não estava em sources ou a cópia está separada para
            outra reserva.
        """
        key = as_uuid_key(copy_id)
        if key is None or not sources:
            return None

        conditions = [BookCopy.id == key, BookCopy.status.in_(list(sources))]
        if expected_hold is not None:
            conditions.append(BookCopy.hold_reservation_id == as_uuid_key(expected_hold))

        result = await self.db.execute(
            update(BookCopy)
            .where(*conditions)
            .values(
                status=target,
                hold_reservation_id=hold_reservation_id if target == CopyStatus.RESERVED else None,
            )
            .returning(BookCopy)
            .execution_options(populate_existing=True, synchronize_session=False)
        )
        return self._to_entity(result.scalar_one_or_none())

    async def first_available(self, title_id: TitleId) -> CopyRead | None:
        """Primeira cópia AVAILABLE do título (ordem de cadastro)."""
        key = as_uuid_key(title_id)
        if key is None:
            return None
        result = await self.db.execute(
            select(BookCopy)
            .where(
                BookCopy.book_title_id == key,
                BookCopy.status == CopyStatus.AVAILABLE,
            )
            .order_by(BookCopy.created_at, BookCopy.id)
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return self._to_entity(result.scalar_one_or_none())

    async def get_held_by(self, reservation_id: ReservationId) -> CopyRead | None:
        """Cópia RESERVED separada para a reserva informada."""
        key = as_uuid_key(reservation_id)
        if key is None:
            return None
        result = await self.db.execute(
            select(BookCopy)
            .where(
                BookCopy.hold_reservation_id == key,
                BookCopy.status == CopyStatus.RESERVED,
            )
            .execution_options(populate_existing=True)
        )
        return self._to_entity(result.scalars().first())

    async def count_by_status(self, title_id: TitleId) -> CopyStatusCounts:
        """
        Conta cópias de um título por status.

        Returns:
            CopyStatusCounts com total e contagem de cada status
        """
        key = as_uuid_key(title_id)
        if key is None:
            return CopyStatusCounts()

        result = await self.db.execute(
            select(BookCopy.status, func.count(BookCopy.id))
            .where(BookCopy.book_title_id == key)
            .group_by(BookCopy.status)
        )

        counts = {status.value.lower(): 0 for status in CopyStatus}
        for status, count in result.all():
            counts[status.value.lower()] = count

        return CopyStatusCounts(total=sum(counts.values()), **counts)
