"""
Repository para operações de Borrower no banco de dados.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from circulation.models.borrower import Borrower
from circulation.repositories.base import BaseRepository
from circulation.schemas.book import BorrowerRead


class BorrowerRepository(BaseRepository[Borrower, BorrowerRead]):
    """Repository de leitores (consulta e trava da linha para o limite)."""

    def __init__(self, db: AsyncSession):
        super().__init__(Borrower, BorrowerRead, db)

    async def get_by_email(self, email: str) -> BorrowerRead | None:
        """Busca leitor por email."""
        result = await self.db.execute(
            select(Borrower).where(Borrower.email == email)
        )
        return self._to_entity(result.scalar_one_or_none())
