"""
Schemas Pydantic para Reservation.
"""

from datetime import datetime

from pydantic import Field

from circulation.core.ids import BorrowerId, CopyId, ReservationId, TitleId
from circulation.models.enums import ReservationStatus
from circulation.schemas.base import BaseSchema, RequestSchema


class ReservationCreate(RequestSchema):
    """Corpo de POST /reservations."""
    borrower_id: BorrowerId
    title_id: TitleId


class ReservationRead(BaseSchema):
    """Reserva de um título."""
    id: ReservationId
    borrower_id: BorrowerId
    book_title_id: TitleId
    reserved_at: datetime
    notified_at: datetime | None = None
    expires_at: datetime | None = None
    status: ReservationStatus
    queue_position: int = Field(..., ge=1, description="Posição na fila (1 = próximo)")

    @property
    def is_active(self) -> bool:
        """True se a reserva ocupa posição na fila (PENDING ou NOTIFIED)."""
        return self.status in ReservationStatus.active()


class Promotion(BaseSchema):
    """Resultado da promoção do primeiro da fila."""
    reservation: ReservationRead
    book_copy_id: CopyId


class ExpireReservationsResult(BaseSchema):
    """Resultado da varredura de reservas vencidas."""
    expired_count: int
    promoted_count: int
    affected_title_ids: list[TitleId] = Field(default_factory=list)
    message: str
