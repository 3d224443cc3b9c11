"""
Schemas Pydantic para Loan (empréstimo).
"""

from datetime import datetime

from pydantic import Field

from circulation.core.ids import BorrowerId, CopyId, LoanId
from circulation.schemas.base import BaseSchema, RequestSchema


class LoanCreate(RequestSchema):
    """Corpo de POST /loans."""

    borrower_id: BorrowerId = Field(..., description="ID do leitor")
    copy_id: CopyId = Field(..., description="ID da cópia física")


class LoanRead(BaseSchema):
    """Empréstimo."""

    id: LoanId
    borrower_id: BorrowerId
    book_copy_id: CopyId
    borrowed_at: datetime
    due_at: datetime
    returned_at: datetime | None = None


class ReturnReceipt(BaseSchema):
    """Resultado de uma devolução."""

    loan: LoanRead
    is_overdue: bool
    overdue_days: int | None = Field(
        None,
        description="Dias inteiros de atraso (apenas quando is_overdue)",
    )


class OverdueRecordRead(BaseSchema):
    """Registro de devolução em atraso."""

    id: str
    loan_id: LoanId
    overdue_days: int
    recorded_at: datetime


class CopyLoanStatus(BaseSchema):
    """Situação de empréstimo de uma cópia."""

    copy_id: CopyId
    is_borrowed: bool
    loan: LoanRead | None = None
    due_at: datetime | None = None


class BulkCopyLoanStatusRequest(RequestSchema):
    """Corpo de POST /copies/loan-status."""

    copy_ids: list[CopyId] = Field(..., min_length=1, max_length=200)


class OverdueRemindersResult(BaseSchema):
    """Resultado da varredura de empréstimos atrasados."""

    enqueued: int
    message: str
