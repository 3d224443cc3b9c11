"""
Endpoints de inventário (cópias) e filas por título.

Contratos:
    - POST /copies: Cadastra cópia de um título (nasce AVAILABLE)
    - GET /copies/{id}: Detalhes da cópia
    - GET /copies/{id}/loan-status: Se a cópia está emprestada e até quando
    - POST /copies/loan-status: Mesma consulta para várias cópias
    - POST /copies/{id}/maintenance: Retira a cópia de circulação
    - POST /copies/{id}/restore: Devolve a cópia à circulação
    - GET /titles/{id}/copies/status: Contagem de cópias por status
    - GET /titles/{id}/queue: Fila de reservas do título
"""

from fastapi import APIRouter, status

from circulation.api.errors import unwrap
from circulation.core.deps import Ledger, Loans, Reservations
from circulation.core.ids import CopyId, TitleId
from circulation.schemas.base import ErrorResponse
from circulation.schemas.book import CopyCreate, CopyRead, CopyStatusCounts
from circulation.schemas.loan import BulkCopyLoanStatusRequest, CopyLoanStatus
from circulation.schemas.reservation import ReservationRead

router = APIRouter(tags=["Inventory"])


@router.post(
    "/copies",
    response_model=CopyRead,
    status_code=status.HTTP_201_CREATED,
    summary="Cadastrar cópia",
    responses={404: {"model": ErrorResponse}},
)
async def register_copy(data: CopyCreate, ledger: Ledger) -> CopyRead:
    return unwrap(await ledger.register_copy(data.title_id, data.location))


@router.get(
    "/copies/{copy_id}",
    response_model=CopyRead,
    summary="Detalhes da cópia",
    responses={404: {"model": ErrorResponse}},
)
async def get_copy(copy_id: str, ledger: Ledger) -> CopyRead:
    return unwrap(await ledger.get_copy(CopyId(copy_id)))


@router.get(
    "/copies/{copy_id}/loan-status",
    response_model=CopyLoanStatus,
    summary="Situação de empréstimo da cópia",
    responses={404: {"model": ErrorResponse}},
)
async def get_copy_loan_status(copy_id: str, loans: Loans) -> CopyLoanStatus:
    return unwrap(await loans.get_copy_loan_status(CopyId(copy_id)))


@router.post(
    "/copies/loan-status",
    response_model=dict[str, CopyLoanStatus],
    summary="Situação de empréstimo de várias cópias",
)
async def get_bulk_copy_loan_status(
    data: BulkCopyLoanStatusRequest,
    loans: Loans,
) -> dict[str, CopyLoanStatus]:
    return unwrap(await loans.get_bulk_copy_loan_status(data.copy_ids))


@router.post(
    "/copies/{copy_id}/maintenance",
    response_model=CopyRead,
    summary="Enviar cópia para manutenção",
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def send_to_maintenance(copy_id: str, ledger: Ledger) -> CopyRead:
    return unwrap(await ledger.send_to_maintenance(CopyId(copy_id)))


@router.post(
    "/copies/{copy_id}/restore",
    response_model=CopyRead,
    summary="Retornar cópia da manutenção",
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def restore_from_maintenance(copy_id: str, ledger: Ledger) -> CopyRead:
    return unwrap(await ledger.restore_from_maintenance(CopyId(copy_id)))


@router.get(
    "/titles/{title_id}/copies/status",
    response_model=CopyStatusCounts,
    summary="Cópias do título por status",
    responses={404: {"model": ErrorResponse}},
)
async def count_copies_by_status(title_id: str, ledger: Ledger) -> CopyStatusCounts:
    return unwrap(await ledger.count_by_status(TitleId(title_id)))


@router.get(
    "/titles/{title_id}/queue",
    response_model=list[ReservationRead],
    summary="Fila de reservas do título",
    responses={404: {"model": ErrorResponse}},
)
async def list_queue(title_id: str, reservations: Reservations) -> list[ReservationRead]:
    return unwrap(await reservations.list_queue(TitleId(title_id)))
