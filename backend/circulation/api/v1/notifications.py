"""
Endpoints de Notificações.

Contratos:
    - GET /notifications/jobs/{id}: Situação de um job (status, tentativas)
    - GET /notifications/borrowers/{id}/history: Histórico de entregas do leitor
"""

from fastapi import APIRouter

from circulation.api.errors import unwrap
from circulation.core.deps import Dispatcher
from circulation.core.ids import BorrowerId, JobId
from circulation.schemas.base import ErrorResponse
from circulation.schemas.notification import JobStatusInfo, NotificationHistoryRecord

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get(
    "/jobs/{job_id}",
    response_model=JobStatusInfo,
    summary="Situação do job",
    responses={404: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def get_job_status(job_id: str, dispatcher: Dispatcher) -> JobStatusInfo:
    """status: PENDING, PROCESSING, COMPLETED ou FAILED."""
    return unwrap(await dispatcher.get_job_status(JobId(job_id)))


@router.get(
    "/borrowers/{borrower_id}/history",
    response_model=list[NotificationHistoryRecord],
    summary="Histórico de notificações do leitor",
)
async def borrower_history(borrower_id: str, dispatcher: Dispatcher) -> list[NotificationHistoryRecord]:
    return unwrap(await dispatcher.history_for_borrower(BorrowerId(borrower_id)))
