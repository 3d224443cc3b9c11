"""
Endpoints de Empréstimos (Loan).

Contratos:
    - POST /loans: Cria empréstimo {borrowerId, copyId}
    - GET /loans/{id}: Detalhes do empréstimo
    - POST /loans/{id}/return: Devolve livro

Status codes:
    - 200: Sucesso
    - 201: Criado com sucesso
    - 400: Erro de validação
    - 404: Leitor, cópia ou empréstimo não encontrado
    - 409: Limite de empréstimos, cópia indisponível ou já devolvido
    - 503: Banco indisponível (com correlation_id)
"""

from fastapi import APIRouter, status

from circulation.api.errors import unwrap
from circulation.core.deps import Loans
from circulation.core.ids import LoanId
from circulation.schemas.base import ErrorResponse
from circulation.schemas.loan import LoanCreate, LoanRead, ReturnReceipt

router = APIRouter(prefix="/loans", tags=["Loans"])


@router.post(
    "",
    response_model=LoanRead,
    status_code=status.HTTP_201_CREATED,
    summary="Criar empréstimo",
    description="Empresta uma cópia para um leitor. Prazo padrão de 14 dias.",
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def create_loan(data: LoanCreate, loans: Loans) -> LoanRead:
    """
    Cria novo empréstimo.

    Raises:
        404: BORROWER_NOT_FOUND, COPY_NOT_FOUND
        409: LOAN_LIMIT_EXCEEDED (com limit e current_count), BOOK_NOT_AVAILABLE
    """
    return unwrap(await loans.create_loan(data.borrower_id, data.copy_id))


@router.get(
    "/{loan_id}",
    response_model=LoanRead,
    summary="Detalhes do empréstimo",
    responses={404: {"model": ErrorResponse}},
)
async def get_loan(loan_id: str, loans: Loans) -> LoanRead:
    """Retorna um empréstimo pelo ID."""
    return unwrap(await loans.get_loan(LoanId(loan_id)))


@router.post(
    "/{loan_id}/return",
    response_model=ReturnReceipt,
    response_model_exclude_none=True,
    summary="Devolver livro",
    description="Processa a devolução e oferece a cópia ao primeiro da fila de reservas.",
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def return_loan(loan_id: str, loans: Loans) -> ReturnReceipt:
    """
    Processa a devolução de um empréstimo.

    Returns:
        loan, is_overdue e overdue_days (apenas quando atrasado)

    Raises:
        404: LOAN_NOT_FOUND
        409: ALREADY_RETURNED
    """
    return unwrap(await loans.return_book(LoanId(loan_id)))
