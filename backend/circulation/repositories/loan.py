"""
Repository para operações de Loan e OverdueRecord no banco de dados.
"""

from datetime import datetime
from typing import Collection

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from circulation.core.ids import BorrowerId, CopyId, LoanId
from circulation.models.loan import Loan, OverdueRecord
from circulation.repositories.base import BaseRepository, as_uuid_key
from circulation.schemas.loan import LoanRead, OverdueRecordRead


class LoanRepository(BaseRepository[Loan, LoanRead]):
    """Repository de empréstimos."""

    def __init__(self, db: AsyncSession):
        super().__init__(Loan, LoanRead, db)

    async def count_open_by_borrower(self, borrower_id: BorrowerId) -> int:
        """Conta empréstimos abertos (returned_at NULL) de um leitor."""
        key = as_uuid_key(borrower_id)
        if key is None:
            return 0
        result = await self.db.execute(
            select(func.count(Loan.id))
            .where(
                Loan.borrower_id == key,
                Loan.returned_at.is_(None),
            )
        )
        return result.scalar_one()

    async def get_open_by_copy(self, copy_id: CopyId) -> LoanRead | None:
        """Busca empréstimo aberto de uma cópia específica."""
        key = as_uuid_key(copy_id)
        if key is None:
            return None
        result = await self.db.execute(
            select(Loan)
            .where(
                Loan.book_copy_id == key,
                Loan.returned_at.is_(None),
            )
        )
        return self._to_entity(result.scalar_one_or_none())

    async def list_open_by_copies(self, copy_ids: Collection[CopyId]) -> dict[str, LoanRead]:
        """
        Empréstimos abertos de várias cópias em uma consulta.

        Returns:
            Dicionário {copy_id: empréstimo aberto}; cópias sem empréstimo
            aberto não aparecem.
        """
        keys = [key for key in (as_uuid_key(copy_id) for copy_id in copy_ids) if key]
        if not keys:
            return {}
        result = await self.db.execute(
            select(Loan)
            .where(
                Loan.book_copy_id.in_(keys),
                Loan.returned_at.is_(None),
            )
        )
        return {str(loan.book_copy_id): self._to_entity(loan) for loan in result.scalars().all()}

    async def close(self, loan_id: LoanId, returned_at: datetime) -> LoanRead | None:
        """
        Registra a devolução em um UPDATE condicional.

        Returns:
            O empréstimo fechado, ou None se já estava devolvido
        """
        key = as_uuid_key(loan_id)
        if key is None:
            return None
        result = await self.db.execute(
            update(Loan)
            .where(
                Loan.id == key,
                Loan.returned_at.is_(None),
            )
            .values(returned_at=returned_at)
            .returning(Loan)
            .execution_options(populate_existing=True, synchronize_session=False)
        )
        return self._to_entity(result.scalar_one_or_none())

    async def list_overdue(self, now: datetime) -> list[LoanRead]:
        """Empréstimos abertos com prazo vencido, mais atrasados primeiro."""
        result = await self.db.execute(
            select(Loan)
            .where(
                Loan.returned_at.is_(None),
                Loan.due_at < now,
            )
            .order_by(Loan.due_at)
        )
        return [self._to_entity(loan) for loan in result.scalars().all()]


class OverdueRecordRepository(BaseRepository[OverdueRecord, OverdueRecordRead]):
    """Repository de registros de atraso."""

    def __init__(self, db: AsyncSession):
        super().__init__(OverdueRecord, OverdueRecordRead, db)

    async def list_for_loan(self, loan_id: LoanId) -> list[OverdueRecordRead]:
        key = as_uuid_key(loan_id)
        if key is None:
            return []
        result = await self.db.execute(
            select(OverdueRecord)
            .where(OverdueRecord.loan_id == key)
            .order_by(OverdueRecord.recorded_at)
        )
        return [self._to_entity(record) for record in result.scalars().all()]
