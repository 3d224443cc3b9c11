"""
Endpoints de Sistema (varreduras periódicas).

Contratos:
    - POST /system/expire-reservations: Expira reservas NOTIFIED vencidas
    - POST /system/overdue-reminders: Enfileira lembretes de atraso
    - POST /system/titles/{id}/process-queue: Oferece cópias AVAILABLE à fila

O worker (python -m circulation.workers.notifications) executa as duas
primeiras varreduras periodicamente; os endpoints permitem disparo manual.

Status codes:
    - 200: Sucesso
    - 503: Banco ou fila indisponíveis
"""

from fastapi import APIRouter

from circulation.api.errors import unwrap
from circulation.core.deps import Loans, Reservations
from circulation.core.ids import TitleId
from circulation.schemas.base import ErrorResponse
from circulation.schemas.loan import OverdueRemindersResult
from circulation.schemas.reservation import ExpireReservationsResult, Promotion

router = APIRouter(prefix="/system", tags=["System"])


@router.post(
    "/expire-reservations",
    response_model=ExpireReservationsResult,
    summary="Expirar reservas vencidas",
    description="Expira reservas NOTIFIED cujo prazo de retirada passou e promove o próximo da fila.",
)
async def expire_reservations(reservations: Reservations) -> ExpireReservationsResult:
    """
    Para cada reserva NOTIFIED com expires_at < agora:
        1. Marca a reserva como EXPIRED
        2. Libera a cópia separada ou a passa ao próximo PENDING
        3. Renumera a fila do título

    Executar de novo sem novas reservas vencidas não altera nada.
    """
    return unwrap(await reservations.expire_stale_reservations())


@router.post(
    "/overdue-reminders",
    response_model=OverdueRemindersResult,
    summary="Enviar lembretes de atraso",
    description="Enfileira um lembrete para cada empréstimo aberto com prazo vencido.",
)
async def overdue_reminders(loans: Loans) -> OverdueRemindersResult:
    enqueued = unwrap(await loans.remind_overdue_loans())
    return OverdueRemindersResult(
        enqueued=enqueued,
        message=f"{enqueued} lembrete(s) enfileirado(s)",
    )


@router.post(
    "/titles/{title_id}/process-queue",
    response_model=Promotion | None,
    summary="Processar fila do título",
    description="Separa uma cópia AVAILABLE para a primeira reserva PENDING, se houver.",
    responses={404: {"model": ErrorResponse}},
)
async def process_queue(title_id: str, reservations: Reservations) -> Promotion | None:
    return unwrap(await reservations.process_returned_book(TitleId(title_id)))
