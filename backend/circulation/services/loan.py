"""
Service para lógica de negócio de empréstimos (Loan).

Regras de negócio:
    - Leitor pode ter no máximo loan_limit empréstimos abertos (padrão 5)
    - Prazo padrão: LOAN_PERIOD_DAYS (14 dias)
    - Cópia precisa estar AVAILABLE, ou RESERVED para uma reserva
      NOTIFIED do próprio leitor
    - Devolução com atraso gera um OverdueRecord
    - Cópia devolvida é oferecida ao primeiro da fila de reservas na
      mesma transação
"""

import math
from datetime import datetime, timedelta
from typing import Collection

from circulation.core.clock import utcnow
from circulation.core.config import Settings, get_settings
from circulation.core.errors import DomainError, ErrorKind, guard_persistence
from circulation.core.ids import BorrowerId, CopyId, LoanId
from circulation.core.logging import get_logger
from circulation.core.result import Err, Ok, Result
from circulation.models.base import new_uuid
from circulation.models.enums import CopyStatus, ReservationStatus
from circulation.repositories.interfaces import UnitOfWorkFactory
from circulation.schemas.loan import (
    CopyLoanStatus,
    LoanRead,
    OverdueRecordRead,
    ReturnReceipt,
)
from circulation.services.inventory import InventoryLedger
from circulation.services.notification import NotificationDispatcher
from circulation.services.reservation import ReservationQueue

logger = get_logger(__name__)


def overdue_days(due_at: datetime, returned_at: datetime) -> int:
    """
    Dias de atraso de uma devolução.

    Fração de dia conta como um dia inteiro; devolução no prazo retorna 0.
    """
    late = returned_at - due_at
    if late <= timedelta(0):
        return 0
    return math.ceil(late / timedelta(days=1))


class LoanManager:
    """Service para operações de empréstimo."""

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        ledger: InventoryLedger,
        reservations: ReservationQueue,
        dispatcher: NotificationDispatcher,
        settings: Settings | None = None,
        clock=utcnow,
    ):
        self.uow_factory = uow_factory
        self.ledger = ledger
        self.reservations = reservations
        self.dispatcher = dispatcher
        self.settings = settings or get_settings()
        self.clock = clock

    @property
    def loan_period(self) -> timedelta:
        return timedelta(days=self.settings.LOAN_PERIOD_DAYS)

    # ==========================================
    # Create Loan
    # ==========================================

    @guard_persistence
    async def create_loan(
        self,
        borrower_id: BorrowerId,
        copy_id: CopyId,
    ) -> Result[LoanRead, DomainError]:
        """
        Cria um novo empréstimo.

        Ordem das validações (a primeira que falha encerra):
            1. Leitor existe -> BORROWER_NOT_FOUND
            2. Empréstimos abertos < limite -> LOAN_LIMIT_EXCEEDED{limit, current_count}
            3. Cópia existe -> COPY_NOT_FOUND
            4. Cópia AVAILABLE (ou RESERVED para o próprio leitor) -> BOOK_NOT_AVAILABLE

        A linha do leitor fica travada durante a transação, então
        empréstimos simultâneos do mesmo leitor são serializados e o
        limite nunca é ultrapassado. Em seguida o título é travado, como
        na expiração e no cancelamento de reservas, e a cópia é relida.
        Uma cópia RESERVED só sai para o dono da reserva NOTIFIED ainda
        dentro do prazo. A troca de status da cópia é um UPDATE
        condicional (status e, com reserva, hold_reservation_id); se
        outra transação levou a cópia antes, nada é gravado.

        Returns:
            Ok(empréstimo) ou Err com o motivo
        """
        async with self.uow_factory() as uow:
            borrower = await uow.borrowers.get_for_update(borrower_id)
            if borrower is None:
                return Err(DomainError(
                    ErrorKind.BORROWER_NOT_FOUND,
                    "Leitor não encontrado",
                    {"borrower_id": str(borrower_id)},
                ))

            current_count = await uow.loans.count_open_by_borrower(borrower.id)
            if current_count >= borrower.loan_limit:
                return Err(DomainError(
                    ErrorKind.LOAN_LIMIT_EXCEEDED,
                    f"Limite de {borrower.loan_limit} empréstimos abertos atingido",
                    {"limit": borrower.loan_limit, "current_count": current_count},
                ))

            copy = await uow.copies.get(copy_id)
            if copy is None:
                return Err(DomainError(
                    ErrorKind.COPY_NOT_FOUND,
                    "Cópia não encontrada",
                    {"copy_id": str(copy_id)},
                ))

            # Ordem de locks: leitor, título, cópia. A cópia e a reserva
            # são relidas depois do lock do título.
            await uow.titles.get_for_update(copy.book_title_id)
            copy = await uow.copies.get(copy.id)
            now = self.clock()

            not_available = Err(DomainError(
                ErrorKind.BOOK_NOT_AVAILABLE,
                "Cópia não está disponível para empréstimo",
                {"copy_id": str(copy.id), "status": copy.status.value},
            ))

            hold = None
            if copy.status == CopyStatus.RESERVED and copy.hold_reservation_id:
                hold = await uow.reservations.get(copy.hold_reservation_id)
                if (
                    hold is None
                    or hold.borrower_id != borrower.id
                    or hold.status != ReservationStatus.NOTIFIED
                    or (hold.expires_at is not None and hold.expires_at < now)
                ):
                    return not_available
            elif copy.status != CopyStatus.AVAILABLE:
                return not_available

            if hold is not None:
                transitioned = await self.ledger.apply(
                    uow, copy.id, CopyStatus.RESERVED, CopyStatus.BORROWED,
                    expected_hold=hold.id,
                )
            else:
                transitioned = await self.ledger.apply(uow, copy.id, CopyStatus.AVAILABLE, CopyStatus.BORROWED)
            if transitioned.is_err():
                return not_available

            if hold is not None and await self.reservations.fulfill(uow, hold) is None:
                return not_available

            loan = await uow.loans.add(LoanRead(
                id=LoanId.generate(),
                borrower_id=borrower.id,
                book_copy_id=copy.id,
                borrowed_at=now,
                due_at=now + self.loan_period,
            ))

            await uow.commit()

        logger.info(
            f"Empréstimo {loan.id} criado: leitor {borrower.id}, cópia {copy.id}, "
            f"devolução até {loan.due_at.date().isoformat()}"
        )
        return Ok(loan)

    # ==========================================
    # Return
    # ==========================================

    @guard_persistence
    async def return_book(self, loan_id: LoanId) -> Result[ReturnReceipt, DomainError]:
        """
        Processa a devolução de um empréstimo.

        Fluxo (uma transação):
            1. Fecha o empréstimo (returned_at = agora)
            2. Se atrasado, grava OverdueRecord com os dias de atraso
            3. Cópia BORROWED -> AVAILABLE
            4. Se há reserva PENDING para o título, a cópia fica RESERVED
               para a primeira da fila, que passa a NOTIFIED

        Depois do commit o aviso de reserva disponível é enfileirado.

        Returns:
            Ok(ReturnReceipt) ou Err(LOAN_NOT_FOUND | ALREADY_RETURNED)
        """
        async with self.uow_factory() as uow:
            loan = await uow.loans.get(loan_id)
            if loan is None:
                return Err(DomainError(
                    ErrorKind.LOAN_NOT_FOUND,
                    "Empréstimo não encontrado",
                    {"loan_id": str(loan_id)},
                ))

            already_returned = Err(DomainError(
                ErrorKind.ALREADY_RETURNED,
                "Empréstimo já foi devolvido",
                {"loan_id": str(loan.id), "returned_at": loan.returned_at.isoformat() if loan.returned_at else None},
            ))
            if loan.returned_at is not None:
                return already_returned

            # Mesma ordem de locks das demais operações: título antes da cópia
            copy = await uow.copies.get(loan.book_copy_id)
            if copy is not None:
                await uow.titles.get_for_update(copy.book_title_id)

            closed = await uow.loans.close(loan.id, self.clock())
            if closed is None:
                return already_returned

            days = overdue_days(closed.due_at, closed.returned_at)
            if days > 0:
                await uow.overdue_records.add(OverdueRecordRead(
                    id=new_uuid(),
                    loan_id=closed.id,
                    overdue_days=days,
                    recorded_at=closed.returned_at,
                ))

            promotion = None
            released = await self.ledger.apply(uow, closed.book_copy_id, CopyStatus.BORROWED, CopyStatus.AVAILABLE)
            if released.is_ok():
                promotion = await self.reservations.promote_next(
                    uow, released.value.book_title_id, closed.book_copy_id
                )
            else:
                # Cópia foi para manutenção durante o empréstimo
                logger.warning(
                    f"Cópia {closed.book_copy_id} não voltou a AVAILABLE na devolução: "
                    f"{released.error.message}"
                )

            await uow.commit()

        delay = f" com {days} dia(s) de atraso" if days else ""
        logger.info(f"Empréstimo {closed.id} devolvido{delay}")
        await self.reservations.announce(promotion)

        return Ok(ReturnReceipt(
            loan=closed,
            is_overdue=days > 0,
            overdue_days=days if days > 0 else None,
        ))

    # ==========================================
    # Queries
    # ==========================================

    @guard_persistence
    async def get_loan(self, loan_id: LoanId) -> Result[LoanRead, DomainError]:
        """Busca empréstimo por ID. Err(LOAN_NOT_FOUND) se não existir."""
        async with self.uow_factory() as uow:
            loan = await uow.loans.get(loan_id)
        if loan is None:
            return Err(DomainError(
                ErrorKind.LOAN_NOT_FOUND,
                "Empréstimo não encontrado",
                {"loan_id": str(loan_id)},
            ))
        return Ok(loan)

    @guard_persistence
    async def get_copy_loan_status(self, copy_id: CopyId) -> Result[CopyLoanStatus, DomainError]:
        """Informa se a cópia está emprestada e até quando."""
        async with self.uow_factory() as uow:
            copy = await uow.copies.get(copy_id)
            if copy is None:
                return Err(DomainError(
                    ErrorKind.COPY_NOT_FOUND,
                    "Cópia não encontrada",
                    {"copy_id": str(copy_id)},
                ))
            loan = await uow.loans.get_open_by_copy(copy.id)

        return Ok(CopyLoanStatus(
            copy_id=copy.id,
            is_borrowed=loan is not None,
            loan=loan,
            due_at=loan.due_at if loan else None,
        ))

    @guard_persistence
    async def get_bulk_copy_loan_status(
        self,
        copy_ids: Collection[CopyId],
    ) -> Result[dict[str, CopyLoanStatus], DomainError]:
        """
        Situação de empréstimo de várias cópias em uma consulta.

        Cópias inexistentes aparecem como não emprestadas.
        """
        async with self.uow_factory() as uow:
            open_loans = await uow.loans.list_open_by_copies(copy_ids)

        statuses = {}
        for copy_id in copy_ids:
            loan = open_loans.get(str(copy_id))
            statuses[str(copy_id)] = CopyLoanStatus(
                copy_id=copy_id,
                is_borrowed=loan is not None,
                loan=loan,
                due_at=loan.due_at if loan else None,
            )
        return Ok(statuses)

    # ==========================================
    # Overdue reminders
    # ==========================================

    @guard_persistence
    async def remind_overdue_loans(self) -> Result[int, DomainError]:
        """
        Enfileira um OVERDUE_REMINDER para cada empréstimo aberto vencido.

        Returns:
            Ok(quantidade de lembretes enfileirados)
        """
        async with self.uow_factory() as uow:
            overdue = await uow.loans.list_overdue(self.clock())

        enqueued = 0
        for loan in overdue:
            result = await self.dispatcher.notify_overdue(loan.borrower_id, loan.id)
            if result.is_err():
                logger.error(f"Lembrete do empréstimo {loan.id} não enfileirado: {result.error.to_dict()}")
                continue
            enqueued += 1

        logger.info(f"{enqueued}/{len(overdue)} lembrete(s) de atraso enfileirado(s)")
        return Ok(enqueued)
