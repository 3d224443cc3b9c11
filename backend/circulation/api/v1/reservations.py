"""
Endpoints de Reservas.

Contratos:
    - POST /reservations: Entra na fila de um título {borrowerId, titleId}
    - GET /reservations/{id}: Detalhes da reserva
    - POST /reservations/{id}/cancel: Cancela reserva PENDING/NOTIFIED

Regras:
    - Reserva só é permitida se NÃO há cópia disponível (409 BOOK_AVAILABLE)
    - Um leitor tem no máximo uma reserva ativa por título (409 ALREADY_RESERVED)

Rate limit:
    - POST /reservations: 30 req/min por IP
"""

from fastapi import APIRouter, Depends, status

from circulation.api.errors import unwrap
from circulation.core.deps import Reservations
from circulation.core.ids import ReservationId
from circulation.core.rate_limit import rate_limit_strict
from circulation.schemas.base import ErrorResponse
from circulation.schemas.reservation import ReservationCreate, ReservationRead

router = APIRouter(prefix="/reservations", tags=["Reservations"])


@router.post(
    "",
    response_model=ReservationRead,
    status_code=status.HTTP_201_CREATED,
    summary="Criar reserva",
    description="Coloca o leitor na fila FIFO do título. Só é permitido quando nenhuma cópia está disponível.",
    dependencies=[Depends(rate_limit_strict)],
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        429: {"description": "Rate limit excedido"},
    },
)
async def create_reservation(data: ReservationCreate, reservations: Reservations) -> ReservationRead:
    """
    Cria uma reserva PENDING no fim da fila do título.

    Raises:
        404: BORROWER_NOT_FOUND, TITLE_NOT_FOUND
        409: ALREADY_RESERVED, BOOK_AVAILABLE
    """
    return unwrap(await reservations.create_reservation(data.borrower_id, data.title_id))


@router.get(
    "/{reservation_id}",
    response_model=ReservationRead,
    summary="Detalhes da reserva",
    responses={404: {"model": ErrorResponse}},
)
async def get_reservation(reservation_id: str, reservations: Reservations) -> ReservationRead:
    return unwrap(await reservations.get_reservation(ReservationId(reservation_id)))


@router.post(
    "/{reservation_id}/cancel",
    response_model=ReservationRead,
    summary="Cancelar reserva",
    description="Cancela a reserva e renumera a fila. Uma cópia separada passa ao próximo da fila.",
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def cancel_reservation(reservation_id: str, reservations: Reservations) -> ReservationRead:
    """
    Raises:
        404: RESERVATION_NOT_FOUND
        409: RESERVATION_NOT_ACTIVE
    """
    return unwrap(await reservations.cancel_reservation(ReservationId(reservation_id)))
