"""
Schemas Pydantic para títulos, cópias e leitores.
"""

from pydantic import Field

from circulation.core.ids import BorrowerId, CopyId, ReservationId, TitleId
from circulation.models.enums import CopyStatus
from circulation.schemas.base import BaseSchema, RequestSchema


class TitleRead(BaseSchema):
    """Título do catálogo (apenas o que a circulação consulta)."""
    id: TitleId
    title: str
    author: str | None = None


class CopyRead(BaseSchema):
    """Cópia física e seu status no inventário."""
    id: CopyId
    book_title_id: TitleId
    location: str = ""
    status: CopyStatus
    hold_reservation_id: ReservationId | None = Field(
        None,
        description="Reserva NOTIFIED para a qual a cópia está separada",
    )


class BorrowerRead(BaseSchema):
    """Leitor (apenas o que a circulação consulta)."""
    id: BorrowerId
    name: str
    email: str
    loan_limit: int = 5


class CopyStatusCounts(BaseSchema):
    """Contagem de cópias de um título por status."""
    total: int = 0
    available: int = 0
    borrowed: int = 0
    reserved: int = 0
    maintenance: int = 0


class CopyCreate(RequestSchema):
    """Corpo de POST /copies."""
    title_id: TitleId
    location: str = Field("", max_length=100)
